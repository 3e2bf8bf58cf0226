"""
User-lookup permission grants.

Some handlers read principal details from an identity realm
(``cognito-idp:AdminGetUser``). The grants are computed after the surface
is built, from the realm handles it exposes, and applied by the stack.
"""

from dataclasses import dataclass
from typing import List, Tuple

from src.surface.builder import ApiSurface, ORDERS_HANDLER, PRODUCTS_ADMIN_HANDLER
from src.surface.realms import ADMIN_REALM, CUSTOMER_REALM, IdentityRealm


USER_LOOKUP_ACTIONS = ("cognito-idp:AdminGetUser",)


@dataclass(frozen=True)
class UserLookupGrant:
    """Read-only lookup permission on one realm for a set of handlers."""
    policy_name: str
    realm: IdentityRealm
    handler_names: Tuple[str, ...]
    actions: Tuple[str, ...] = USER_LOOKUP_ACTIONS


def user_lookup_grants(surface: ApiSurface, include_customer_realm: bool = True) -> List[UserLookupGrant]:
    """
    Grants for the admin-area handlers.

    The products admin handler and the orders handler may look up
    administrators; the orders handler may also look up customers unless
    ``include_customer_realm`` is False.
    """
    grants = [
        UserLookupGrant(
            policy_name="AdminGetUserPolicy",
            realm=surface.realm(ADMIN_REALM),
            handler_names=(PRODUCTS_ADMIN_HANDLER, ORDERS_HANDLER),
        )
    ]
    if include_customer_realm:
        grants.append(
            UserLookupGrant(
                policy_name="CustomerGetUserPolicy",
                realm=surface.realm(CUSTOMER_REALM),
                handler_names=(ORDERS_HANDLER,),
            )
        )
    return grants
