"""
Method bindings: one (resource, HTTP verb) wired to a handler, an authorizer
with its allowed scopes and an optional request validator.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

from src.surface.authorizers import AuthorizerBinding
from src.surface.errors import DuplicateMethodError, ScopeRealmMismatchError, SurfaceBuildError
from src.surface.resources import ResourceNode
from src.surface.schemas import ValidatorSchema, query_parameter_declarations
from src.surface.scopes import Scope, ScopeLattice


logger = logging.getLogger(__name__)


class HttpVerb(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuthOptions:
    """Authorizer and the scopes it accepts for one method."""
    authorizer: AuthorizerBinding
    scopes: Tuple[str, ...]


@dataclass(frozen=True)
class ValidationOptions:
    """Validator plus query parameters declared without being enforced."""
    validator: Optional[ValidatorSchema] = None
    optional_query_parameters: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodBinding:
    resource: ResourceNode
    verb: HttpVerb
    handler_name: str
    handler_target: Any
    authorizer: Optional[AuthorizerBinding]
    allowed_scopes: FrozenSet[Scope]
    validator: Optional[ValidatorSchema] = None
    request_parameters: Dict[str, bool] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.resource.path

    @property
    def key(self) -> Tuple[str, str]:
        return self.resource.path, self.verb.value

    def allowed_scope_strings(self) -> List[str]:
        return sorted(str(scope) for scope in self.allowed_scopes)


class MethodRegistry:
    """
    Collects method bindings for a surface under construction.

    Every binding is checked against the scope lattice at the moment it is
    added, so an invalid surface fails on the first offending method.
    """

    def __init__(self, lattice: ScopeLattice):
        self._lattice = lattice
        self._bindings: Dict[Tuple[str, str], MethodBinding] = {}

    def add_method(
        self,
        resource: ResourceNode,
        verb: HttpVerb,
        handler_name: str,
        handler_target: Any,
        auth: Optional[AuthOptions] = None,
        validation: Optional[ValidationOptions] = None,
    ) -> MethodBinding:
        """
        Bind a verb on a resource.

        Raises:
            DuplicateMethodError: If the (resource, verb) pair is already bound.
            UndeclaredScopeError: If an allowed scope is not in the lattice.
            ScopeRealmMismatchError: If an allowed scope's realm is not trusted
                by the authorizer.
        """
        verb = HttpVerb(verb)
        key = (resource.path, verb.value)
        if key in self._bindings:
            raise DuplicateMethodError(verb.value, resource.path)
        if handler_target is None:
            raise SurfaceBuildError(
                f"Method {verb.value} {resource.path} has no handler target",
                handler=handler_name,
            )

        allowed: FrozenSet[Scope] = frozenset()
        authorizer = None
        if auth is not None:
            authorizer = auth.authorizer
            if not auth.scopes:
                raise SurfaceBuildError(
                    f"Method {verb.value} {resource.path} uses authorizer "
                    f"'{authorizer.name}' without any allowed scope",
                )
            allowed = self._lattice.require_all(auth.scopes)
            for scope in allowed:
                if not authorizer.trusts_resource_server(scope.resource_server):
                    raise ScopeRealmMismatchError(str(scope), authorizer.name)

        validation = validation or ValidationOptions()
        request_parameters = query_parameter_declarations(
            {name: False for name in validation.optional_query_parameters}
        )
        if validation.validator is not None:
            request_parameters.update(validation.validator.request_parameters())

        binding = MethodBinding(
            resource=resource,
            verb=verb,
            handler_name=handler_name,
            handler_target=handler_target,
            authorizer=authorizer,
            allowed_scopes=allowed,
            validator=validation.validator,
            request_parameters=request_parameters,
        )
        self._bindings[key] = binding
        logger.debug(
            "Bound %s %s -> %s (scopes=%s, validator=%s)",
            verb.value,
            resource.path,
            handler_name,
            binding.allowed_scope_strings(),
            validation.validator.name if validation.validator else None,
        )
        return binding

    def __iter__(self) -> Iterator[MethodBinding]:
        return iter(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    def snapshot(self) -> Tuple[MethodBinding, ...]:
        return tuple(self._bindings.values())
