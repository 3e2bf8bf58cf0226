"""
Authorizer bindings: named associations between identity realms and methods.
"""

import logging
from typing import Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from src.surface.errors import SurfaceBuildError
from src.surface.realms import IdentityRealm


logger = logging.getLogger(__name__)


class AuthorizerBinding(BaseModel):
    """Token verification policy trusting one or more identity realms."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    realms: Tuple[IdentityRealm, ...]

    @property
    def realm_names(self) -> Tuple[str, ...]:
        return tuple(realm.name for realm in self.realms)

    def trusts(self, realm_name: str) -> bool:
        return realm_name in self.realm_names

    def trusts_resource_server(self, resource_server: str) -> bool:
        return any(realm.resource_server_identifier == resource_server for realm in self.realms)


def build_authorizer(name: str, realms: Sequence[IdentityRealm]) -> AuthorizerBinding:
    """
    Bind an authorizer to its realms.

    Realms may be shared between authorizers; the only requirement is that
    the list is non-empty.

    Raises:
        SurfaceBuildError: If no realms are given.
    """
    if not realms:
        raise SurfaceBuildError(f"Authorizer '{name}' needs at least one identity realm", authorizer=name)
    binding = AuthorizerBinding(name=name, realms=tuple(realms))
    logger.debug("Built authorizer %s trusting realms %s", name, binding.realm_names)
    return binding
