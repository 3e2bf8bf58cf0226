# API surface model package

from src.surface.authorizers import AuthorizerBinding, build_authorizer
from src.surface.builder import (
    ApiSurface,
    build_api_surface,
    REQUIRED_HANDLERS,
    PRODUCTS_FETCH_HANDLER,
    PRODUCTS_ADMIN_HANDLER,
    ORDERS_HANDLER,
    ORDER_EVENTS_FETCH_HANDLER,
    PRODUCTS_AUTHORIZER,
    PRODUCTS_ADMIN_AUTHORIZER,
    ORDERS_AUTHORIZER,
)
from src.surface.edge import (
    EdgeGateway,
    EdgeRequest,
    HandlerEnvelope,
    HandlerResponse,
    TokenClaims,
)
from src.surface.errors import (
    # Build-time violations
    SurfaceBuildError,
    UndeclaredScopeError,
    DuplicateMethodError,
    MissingRealmError,
    ScopeRealmMismatchError,
    # Edge rejections
    EdgeRejection,
    RouteNotFound,
    MethodNotAllowed,
    Unauthorized,
    AuthorizationRejected,
    ValidationRejected,
)
from src.surface.grants import UserLookupGrant, user_lookup_grants
from src.surface.methods import (
    AuthOptions,
    HttpVerb,
    MethodBinding,
    MethodRegistry,
    ValidationOptions,
)
from src.surface.realms import (
    ADMIN_REALM,
    CUSTOMER_REALM,
    ClientConfig,
    ClientType,
    IdentityRealm,
    IdentityRealmSpec,
    PasswordPolicy,
    SignUpPolicy,
    admin_realm_spec,
    build_identity_realm,
    customer_realm_spec,
)
from src.surface.resources import ResourceNode, ResourceTree
from src.surface.schemas import (
    FieldRule,
    FieldType,
    ValidationTarget,
    ValidatorSchema,
    ORDER_DELETION_SCHEMA,
    ORDER_EVENTS_FETCH_SCHEMA,
    ORDER_SCHEMA,
    PRODUCT_SCHEMA,
)
from src.surface.scopes import Scope, ScopeLattice

__all__ = [
    # Builder
    "ApiSurface",
    "build_api_surface",
    "REQUIRED_HANDLERS",
    "PRODUCTS_FETCH_HANDLER",
    "PRODUCTS_ADMIN_HANDLER",
    "ORDERS_HANDLER",
    "ORDER_EVENTS_FETCH_HANDLER",
    "PRODUCTS_AUTHORIZER",
    "PRODUCTS_ADMIN_AUTHORIZER",
    "ORDERS_AUTHORIZER",
    # Realms and scopes
    "ADMIN_REALM",
    "CUSTOMER_REALM",
    "ClientConfig",
    "ClientType",
    "IdentityRealm",
    "IdentityRealmSpec",
    "PasswordPolicy",
    "SignUpPolicy",
    "admin_realm_spec",
    "build_identity_realm",
    "customer_realm_spec",
    "Scope",
    "ScopeLattice",
    "AuthorizerBinding",
    "build_authorizer",
    # Resources and methods
    "ResourceNode",
    "ResourceTree",
    "AuthOptions",
    "HttpVerb",
    "MethodBinding",
    "MethodRegistry",
    "ValidationOptions",
    # Validation
    "FieldRule",
    "FieldType",
    "ValidationTarget",
    "ValidatorSchema",
    "ORDER_DELETION_SCHEMA",
    "ORDER_EVENTS_FETCH_SCHEMA",
    "ORDER_SCHEMA",
    "PRODUCT_SCHEMA",
    # Grants
    "UserLookupGrant",
    "user_lookup_grants",
    # Edge
    "EdgeGateway",
    "EdgeRequest",
    "HandlerEnvelope",
    "HandlerResponse",
    "TokenClaims",
    # Errors
    "SurfaceBuildError",
    "UndeclaredScopeError",
    "DuplicateMethodError",
    "MissingRealmError",
    "ScopeRealmMismatchError",
    "EdgeRejection",
    "RouteNotFound",
    "MethodNotAllowed",
    "Unauthorized",
    "AuthorizationRejected",
    "ValidationRejected",
]
