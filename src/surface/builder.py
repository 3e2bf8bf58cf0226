"""
API surface builder.

``build_api_surface`` assembles the whole access-controlled surface in one
pass (realms, scope lattice, authorizers, resource tree, method bindings)
and returns an immutable ``ApiSurface``. Handler targets are opaque: plain
names or callables in tests, Lambda functions when synthesized by CDK.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from src.surface.authorizers import AuthorizerBinding, build_authorizer
from src.surface.errors import MissingRealmError, SurfaceBuildError
from src.surface.methods import AuthOptions, HttpVerb, MethodBinding, MethodRegistry, ValidationOptions
from src.surface.realms import (
    ADMIN_REALM,
    CUSTOMER_REALM,
    IdentityRealm,
    IdentityRealmSpec,
    build_identity_realm,
)
from src.surface.resources import ResourceNode, ResourceTree
from src.surface.schemas import (
    ORDER_DELETION_SCHEMA,
    ORDER_EVENTS_FETCH_SCHEMA,
    ORDER_SCHEMA,
    PRODUCT_SCHEMA,
    ValidatorSchema,
)
from src.surface.scopes import ScopeLattice


logger = logging.getLogger(__name__)


# Handler target names
PRODUCTS_FETCH_HANDLER = "productsFetchHandler"
PRODUCTS_ADMIN_HANDLER = "productsAdminHandler"
ORDERS_HANDLER = "ordersHandler"
ORDER_EVENTS_FETCH_HANDLER = "orderEventsFetchHandler"

REQUIRED_HANDLERS = (
    PRODUCTS_FETCH_HANDLER,
    PRODUCTS_ADMIN_HANDLER,
    ORDERS_HANDLER,
    ORDER_EVENTS_FETCH_HANDLER,
)

# Authorizer names
PRODUCTS_AUTHORIZER = "ProductsAuthorizer"
PRODUCTS_ADMIN_AUTHORIZER = "ProductsAdminAuthorizer"
ORDERS_AUTHORIZER = "OrdersAuthorizer"

# Scope sets
CUSTOMER_WEB = "customer/web"
CUSTOMER_MOBILE = "customer/mobile"
ADMIN_WEB = "admin/web"

PRODUCTS_FETCH_WEB_MOBILE_SCOPES = (CUSTOMER_WEB, CUSTOMER_MOBILE, ADMIN_WEB)
PRODUCTS_FETCH_WEB_SCOPES = (CUSTOMER_WEB, ADMIN_WEB)
PRODUCTS_ADMIN_SCOPES = (ADMIN_WEB,)
ORDERS_SCOPES = (ADMIN_WEB, CUSTOMER_WEB)


@dataclass(frozen=True)
class ApiSurface:
    """Finished, immutable description of the API surface."""
    realms: Mapping[str, IdentityRealm]
    lattice: ScopeLattice
    authorizers: Mapping[str, AuthorizerBinding]
    tree: ResourceTree
    resources: Mapping[str, ResourceNode]
    methods: Tuple[MethodBinding, ...]

    @property
    def root(self) -> ResourceNode:
        return self.tree.root

    @property
    def validators(self) -> List[ValidatorSchema]:
        """Distinct validators, in first-use order."""
        seen: Dict[str, ValidatorSchema] = {}
        for method in self.methods:
            if method.validator is not None:
                seen.setdefault(method.validator.name, method.validator)
        return list(seen.values())

    def realm(self, name: str) -> IdentityRealm:
        try:
            return self.realms[name]
        except KeyError:
            raise MissingRealmError(name)

    def method(self, verb: str, path: str) -> Optional[MethodBinding]:
        return next((m for m in self.methods if m.verb.value == verb and m.path == path), None)

    def methods_for(self, resource: ResourceNode) -> List[MethodBinding]:
        return [m for m in self.methods if m.resource is resource]

    def routing_table(self) -> List[Dict[str, Any]]:
        """Verb, path, scopes and validator of every method, sorted by path then verb."""
        rows = [
            {
                "verb": method.verb.value,
                "path": method.path,
                "handler": method.handler_name,
                "authorizer": method.authorizer.name if method.authorizer else None,
                "scopes": method.allowed_scope_strings(),
                "validator": method.validator.name if method.validator else None,
                "request_parameters": dict(method.request_parameters),
            }
            for method in self.methods
        ]
        return sorted(rows, key=lambda row: (row["path"], row["verb"]))


def _require_realms(realm_specs: Sequence[IdentityRealmSpec]) -> Dict[str, IdentityRealm]:
    realms: Dict[str, IdentityRealm] = {}
    resource_servers: Dict[str, str] = {}
    for spec in realm_specs:
        if spec.name in realms:
            raise SurfaceBuildError(f"Identity realm '{spec.name}' declared twice", realm=spec.name)
        owner = resource_servers.setdefault(spec.resource_server_identifier, spec.name)
        if owner != spec.name:
            raise SurfaceBuildError(
                f"Resource server '{spec.resource_server_identifier}' declared by two realms: "
                f"'{owner}' and '{spec.name}'",
                realm=spec.name,
                resource_server=spec.resource_server_identifier,
            )
        realms[spec.name] = build_identity_realm(spec)

    for required in (CUSTOMER_REALM, ADMIN_REALM):
        if required not in realms:
            raise MissingRealmError(required)
    return realms


def _require_handlers(handler_targets: Mapping[str, Any]) -> None:
    missing = [name for name in REQUIRED_HANDLERS if handler_targets.get(name) is None]
    if missing:
        raise SurfaceBuildError(f"Missing handler targets: {', '.join(missing)}", missing=missing)


def _add_products_methods(
    tree: ResourceTree,
    registry: MethodRegistry,
    authorizers: Mapping[str, AuthorizerBinding],
    handler_targets: Mapping[str, Any],
) -> Dict[str, ResourceNode]:
    products = tree.add_resource(tree.root, "products")
    product_id = tree.add_resource(products, "{id}")

    fetch = handler_targets[PRODUCTS_FETCH_HANDLER]
    admin = handler_targets[PRODUCTS_ADMIN_HANDLER]
    products_auth = authorizers[PRODUCTS_AUTHORIZER]
    admin_auth = AuthOptions(authorizers[PRODUCTS_ADMIN_AUTHORIZER], PRODUCTS_ADMIN_SCOPES)
    product_body = ValidationOptions(validator=PRODUCT_SCHEMA)

    # GET /products
    registry.add_method(
        products, HttpVerb.GET, PRODUCTS_FETCH_HANDLER, fetch,
        auth=AuthOptions(products_auth, PRODUCTS_FETCH_WEB_MOBILE_SCOPES),
    )
    # GET /products/{id}
    registry.add_method(
        product_id, HttpVerb.GET, PRODUCTS_FETCH_HANDLER, fetch,
        auth=AuthOptions(products_auth, PRODUCTS_FETCH_WEB_SCOPES),
    )
    # POST /products
    registry.add_method(
        products, HttpVerb.POST, PRODUCTS_ADMIN_HANDLER, admin,
        auth=admin_auth, validation=product_body,
    )
    # PUT /products/{id}
    registry.add_method(
        product_id, HttpVerb.PUT, PRODUCTS_ADMIN_HANDLER, admin,
        auth=admin_auth, validation=product_body,
    )
    # DELETE /products/{id}
    registry.add_method(
        product_id, HttpVerb.DELETE, PRODUCTS_ADMIN_HANDLER, admin,
        auth=admin_auth,
    )
    return {products.path: products, product_id.path: product_id}


def _add_orders_methods(
    tree: ResourceTree,
    registry: MethodRegistry,
    authorizers: Mapping[str, AuthorizerBinding],
    handler_targets: Mapping[str, Any],
) -> Dict[str, ResourceNode]:
    orders = tree.add_resource(tree.root, "orders")
    order_events = tree.add_resource(orders, "events")

    orders_target = handler_targets[ORDERS_HANDLER]
    orders_auth = AuthOptions(authorizers[ORDERS_AUTHORIZER], ORDERS_SCOPES)

    # GET /orders, GET /orders?email={email}, GET /orders?email={email}&orderId={id}
    registry.add_method(
        orders, HttpVerb.GET, ORDERS_HANDLER, orders_target,
        auth=orders_auth,
        validation=ValidationOptions(optional_query_parameters=("email", "orderId")),
    )
    # DELETE /orders?email={email}&orderId={id}
    registry.add_method(
        orders, HttpVerb.DELETE, ORDERS_HANDLER, orders_target,
        auth=orders_auth,
        validation=ValidationOptions(validator=ORDER_DELETION_SCHEMA),
    )
    # POST /orders
    registry.add_method(
        orders, HttpVerb.POST, ORDERS_HANDLER, orders_target,
        auth=orders_auth,
        validation=ValidationOptions(validator=ORDER_SCHEMA),
    )
    # GET /orders/events?email={email}&eventType={type}
    registry.add_method(
        order_events, HttpVerb.GET, ORDER_EVENTS_FETCH_HANDLER,
        handler_targets[ORDER_EVENTS_FETCH_HANDLER],
        auth=orders_auth,
        validation=ValidationOptions(validator=ORDER_EVENTS_FETCH_SCHEMA),
    )
    return {orders.path: orders, order_events.path: order_events}


def build_api_surface(
    handler_targets: Mapping[str, Any],
    realm_specs: Sequence[IdentityRealmSpec],
) -> ApiSurface:
    """
    Build the complete access-controlled API surface.

    Args:
        handler_targets: Handler name to opaque invocation target. Must contain
            every name in ``REQUIRED_HANDLERS``.
        realm_specs: Specifications for the customer and admin realms.

    Returns:
        Immutable ``ApiSurface``.

    Raises:
        SurfaceBuildError: On any contract violation. Nothing is returned for
            a partially valid surface.
    """
    _require_handlers(handler_targets)
    realms = _require_realms(realm_specs)
    customer = realms[CUSTOMER_REALM]
    admin = realms[ADMIN_REALM]

    lattice = ScopeLattice(realms.values())
    logger.info("Scope lattice: %s", lattice.as_strings())

    authorizers = {
        PRODUCTS_AUTHORIZER: build_authorizer(PRODUCTS_AUTHORIZER, [customer, admin]),
        PRODUCTS_ADMIN_AUTHORIZER: build_authorizer(PRODUCTS_ADMIN_AUTHORIZER, [admin]),
        ORDERS_AUTHORIZER: build_authorizer(ORDERS_AUTHORIZER, [admin, customer]),
    }

    tree = ResourceTree()
    registry = MethodRegistry(lattice)
    resources = {"/": tree.root}
    resources.update(_add_orders_methods(tree, registry, authorizers, handler_targets))
    resources.update(_add_products_methods(tree, registry, authorizers, handler_targets))
    tree.freeze()

    surface = ApiSurface(
        realms=MappingProxyType(realms),
        lattice=lattice,
        authorizers=MappingProxyType(authorizers),
        tree=tree,
        resources=MappingProxyType(resources),
        methods=registry.snapshot(),
    )
    logger.info(
        "Built API surface with %d resources and %d methods",
        len(tree.paths),
        len(surface.methods),
    )
    return surface
