"""
Identity realm models for the E-Commerce API.

An identity realm is an isolated Cognito user pool with its own sign-up
policy, verification flow and a resource server whose scopes are requested
by the realm's app clients. Two realms exist: customers and administrators.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


logger = logging.getLogger(__name__)


# System-wide token and password constants. These are not per-realm overrides.
PASSWORD_MIN_LENGTH = 8
TEMP_PASSWORD_VALIDITY_DAYS = 3
ACCESS_TOKEN_VALIDITY_MINUTES = 60
REFRESH_TOKEN_VALIDITY_DAYS = 7

CUSTOMER_REALM = "customer"
ADMIN_REALM = "admin"


class SignUpPolicy(str, Enum):
    """How principals join a realm."""
    SELF_SERVICE = "self_service"
    ADMIN_INVITE_ONLY = "admin_invite_only"


class ClientType(str, Enum):
    """App client platform; doubles as the OAuth scope name."""
    WEB = "web"
    MOBILE = "mobile"


class VerificationStyle(str, Enum):
    CODE = "code"
    LINK = "link"


class PasswordPolicy(BaseModel):
    """Password rules shared by every realm."""
    model_config = ConfigDict(frozen=True)

    min_length: int = Field(default=PASSWORD_MIN_LENGTH, ge=6)
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_digits: bool = True
    require_symbols: bool = False
    temp_password_validity_days: int = Field(default=TEMP_PASSWORD_VALIDITY_DAYS, ge=1)


class VerificationFlow(BaseModel):
    """Email verification sent after self sign-up."""
    model_config = ConfigDict(frozen=True)

    channel: str = "email"
    style: VerificationStyle = VerificationStyle.CODE
    email_subject: str
    email_body: str

    @field_validator("email_body")
    @classmethod
    def validate_code_placeholder(cls, v):
        """Code-style verification bodies must carry the {####} placeholder."""
        if "{####}" not in v:
            raise ValueError("Verification email body must contain '{####}'")
        return v


class InvitationMessage(BaseModel):
    """Invitation sent when an administrator creates a principal."""
    model_config = ConfigDict(frozen=True)

    email_subject: str
    email_body: str


class StandardAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    required: bool = True
    mutable: bool = False


class ClientConfig(BaseModel):
    """App client requesting exactly one scope from its realm's resource server."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    client_type: ClientType
    scope_name: str = Field(..., min_length=1)
    access_token_validity_minutes: int = ACCESS_TOKEN_VALIDITY_MINUTES
    refresh_token_validity_days: int = REFRESH_TOKEN_VALIDITY_DAYS
    user_password_auth: bool = True


class IdentityRealmSpec(BaseModel):
    """Input to the realm builder."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    pool_name: str = Field(..., min_length=1)
    resource_server_identifier: str = Field(..., min_length=1)
    resource_server_name: str = Field(..., min_length=1)
    sign_up_policy: SignUpPolicy
    verification: Optional[VerificationFlow] = None
    invitation: Optional[InvitationMessage] = None
    standard_attributes: Tuple[StandardAttribute, ...] = ()
    scope_descriptions: Dict[str, str] = Field(default_factory=dict)
    clients: Tuple[ClientConfig, ...] = ()
    domain_prefix: str = Field(..., min_length=1)
    pre_authentication_hook: bool = False
    post_confirmation_hook: bool = False

    @model_validator(mode="after")
    def validate_sign_up_flow(self):
        """Self-service realms verify by email; invite-only realms send invitations."""
        if self.sign_up_policy == SignUpPolicy.SELF_SERVICE and self.verification is None:
            raise ValueError(f"Realm '{self.name}' allows self sign-up but has no verification flow")
        if self.sign_up_policy == SignUpPolicy.ADMIN_INVITE_ONLY and self.invitation is None:
            raise ValueError(f"Realm '{self.name}' is invite-only but has no invitation message")
        return self


class IdentityRealm(BaseModel):
    """A built identity realm. Fixed for the life of the system."""
    model_config = ConfigDict(frozen=True)

    name: str
    pool_name: str
    resource_server_identifier: str
    resource_server_name: str
    sign_up_policy: SignUpPolicy
    verification: Optional[VerificationFlow] = None
    invitation: Optional[InvitationMessage] = None
    password_policy: PasswordPolicy = Field(default_factory=PasswordPolicy)
    standard_attributes: Tuple[StandardAttribute, ...] = ()
    scope_descriptions: Dict[str, str] = Field(default_factory=dict)
    clients: Tuple[ClientConfig, ...] = ()
    domain_prefix: str
    pre_authentication_hook: bool = False
    post_confirmation_hook: bool = False

    @property
    def self_sign_up_enabled(self) -> bool:
        return self.sign_up_policy == SignUpPolicy.SELF_SERVICE

    @property
    def scope_names(self) -> List[str]:
        """Scope names declared on this realm's resource server, in declaration order."""
        return list(self.scope_descriptions)

    def qualified_scopes(self) -> List[str]:
        """Scopes as they appear in access tokens, e.g. ``customer/web``."""
        return [f"{self.resource_server_identifier}/{name}" for name in self.scope_names]


def build_identity_realm(spec: IdentityRealmSpec) -> IdentityRealm:
    """
    Build an identity realm from its declared options.

    Every client must request a scope declared on the realm's own resource
    server; client names must be unique within the realm.

    Raises:
        ValueError: If a client requests an undeclared scope or names repeat.
    """
    seen_clients = set()
    for client in spec.clients:
        if client.name in seen_clients:
            raise ValueError(f"Duplicate client '{client.name}' in realm '{spec.name}'")
        seen_clients.add(client.name)

        if client.scope_name not in spec.scope_descriptions:
            raise ValueError(
                f"Client '{client.name}' requests scope '{client.scope_name}' "
                f"not declared on resource server '{spec.resource_server_identifier}'"
            )

    realm = IdentityRealm(
        name=spec.name,
        pool_name=spec.pool_name,
        resource_server_identifier=spec.resource_server_identifier,
        resource_server_name=spec.resource_server_name,
        sign_up_policy=spec.sign_up_policy,
        verification=spec.verification,
        invitation=spec.invitation,
        standard_attributes=spec.standard_attributes,
        scope_descriptions=dict(spec.scope_descriptions),
        clients=spec.clients,
        domain_prefix=spec.domain_prefix,
        pre_authentication_hook=spec.pre_authentication_hook,
        post_confirmation_hook=spec.post_confirmation_hook,
    )
    logger.debug(
        "Built identity realm %s with scopes %s",
        realm.name,
        realm.qualified_scopes(),
    )
    return realm


def customer_realm_spec(domain_prefix: str) -> IdentityRealmSpec:
    """Customer realm: self sign-up, email code verification, web and mobile clients."""
    return IdentityRealmSpec(
        name=CUSTOMER_REALM,
        pool_name="CustomerPool",
        resource_server_identifier="customer",
        resource_server_name="CustomerResourceServer",
        sign_up_policy=SignUpPolicy.SELF_SERVICE,
        verification=VerificationFlow(
            email_subject="Verify your email for the ECommerce service!",
            email_body="Thanks for signup to ECommerce service! Your verification code is {####}",
        ),
        standard_attributes=(
            StandardAttribute(name="fullname", required=True, mutable=False),
        ),
        scope_descriptions={
            "web": "Customer Web operation",
            "mobile": "Customer Mobile operation",
        },
        clients=(
            ClientConfig(name="customerWebClient", client_type=ClientType.WEB, scope_name="web"),
            ClientConfig(name="customerMobileClient", client_type=ClientType.MOBILE, scope_name="mobile"),
        ),
        domain_prefix=domain_prefix,
        pre_authentication_hook=True,
        post_confirmation_hook=True,
    )


def admin_realm_spec(domain_prefix: str) -> IdentityRealmSpec:
    """Admin realm: invitation only, a single web client."""
    return IdentityRealmSpec(
        name=ADMIN_REALM,
        pool_name="AdminPool",
        resource_server_identifier="admin",
        resource_server_name="AdminResourceServer",
        sign_up_policy=SignUpPolicy.ADMIN_INVITE_ONLY,
        invitation=InvitationMessage(
            email_subject="Welcome to ECommerce administrator service",
            email_body="Your username is {username} and temporary password is {####}",
        ),
        standard_attributes=(
            StandardAttribute(name="email", required=True, mutable=False),
        ),
        scope_descriptions={"web": "Admin Web operation"},
        clients=(
            ClientConfig(name="adminWebClient", client_type=ClientType.WEB, scope_name="web"),
        ),
        domain_prefix=domain_prefix,
    )
