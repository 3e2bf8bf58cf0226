"""
OAuth scope lattice.

Scopes are namespaced by resource-server identifier (``admin/web``,
``customer/mobile``). The lattice is the deduplicated set of every scope the
identity realms declare; method bindings may only reference scopes from it.
"""

from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.surface.errors import UndeclaredScopeError
from src.surface.realms import IdentityRealm


class Scope(BaseModel):
    """A resource-server qualified OAuth scope."""
    model_config = ConfigDict(frozen=True)

    resource_server: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, value: str) -> "Scope":
        """
        Parse ``<resource-server>/<scope>``.

        Raises:
            ValueError: If the value is not qualified by a resource server.
        """
        resource_server, sep, name = value.partition("/")
        if not sep or not resource_server or not name or "/" in name:
            raise ValueError(f"Scope '{value}' must look like '<resource-server>/<name>'")
        return cls(resource_server=resource_server, name=name)

    def __str__(self) -> str:
        return f"{self.resource_server}/{self.name}"


class ScopeLattice:
    """Deduplicated set of (resource server, scope name) pairs across all realms."""

    def __init__(self, realms: Iterable[IdentityRealm]):
        self._owners: Dict[Scope, str] = {}
        for realm in realms:
            for scope_name in realm.scope_names:
                scope = Scope(resource_server=realm.resource_server_identifier, name=scope_name)
                self._owners.setdefault(scope, realm.name)

    def __contains__(self, scope: object) -> bool:
        if isinstance(scope, str):
            try:
                scope = Scope.parse(scope)
            except ValueError:
                return False
        return scope in self._owners

    def __iter__(self) -> Iterator[Scope]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def require(self, scope: str) -> Scope:
        """
        Resolve a scope string to a declared lattice entry.

        Raises:
            UndeclaredScopeError: If no realm declares the scope.
        """
        try:
            parsed = Scope.parse(scope)
        except ValueError:
            raise UndeclaredScopeError(scope, self.as_strings())
        if parsed not in self._owners:
            raise UndeclaredScopeError(scope, self.as_strings())
        return parsed

    def require_all(self, scopes: Iterable[str]) -> FrozenSet[Scope]:
        return frozenset(self.require(scope) for scope in scopes)

    def owner_of(self, scope: Scope) -> Optional[str]:
        """Name of the realm whose resource server declares ``scope``."""
        return self._owners.get(scope)

    def scopes_for_realm(self, realm_name: str) -> List[Scope]:
        return [scope for scope, owner in self._owners.items() if owner == realm_name]

    def as_strings(self) -> List[str]:
        return sorted(str(scope) for scope in self._owners)
