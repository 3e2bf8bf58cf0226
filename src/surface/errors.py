"""
Exceptions for the API surface model.

Two families live here:
- Build-time contract violations (``SurfaceBuildError`` and subclasses). These
  abort the whole build; a partially built surface is never returned.
- Edge rejections (``EdgeRejection`` and subclasses). These are terminal for a
  single request and are raised before any handler is invoked.
"""

from typing import Any, Dict, List, Optional


class SurfaceBuildError(Exception):
    """Exception raised when the API surface violates a build-time contract."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(self.message)


class UndeclaredScopeError(SurfaceBuildError):
    """A method binding references a scope missing from the scope lattice."""

    def __init__(self, scope: str, declared: Optional[List[str]] = None):
        self.scope = scope
        self.declared = sorted(declared or [])
        super().__init__(
            f"Scope '{scope}' is not declared by any identity realm",
            scope=scope,
            declared=self.declared,
        )


class DuplicateMethodError(SurfaceBuildError):
    """A (resource, verb) pair was bound twice."""

    def __init__(self, verb: str, path: str):
        self.verb = verb
        self.path = path
        super().__init__(f"Method {verb} {path} is already bound", verb=verb, path=path)


class MissingRealmError(SurfaceBuildError):
    """A required identity realm was not supplied to the builder."""

    def __init__(self, realm_name: str):
        self.realm_name = realm_name
        super().__init__(f"Identity realm '{realm_name}' is required", realm_name=realm_name)


class ScopeRealmMismatchError(SurfaceBuildError):
    """An allowed scope belongs to a realm the method's authorizer does not trust."""

    def __init__(self, scope: str, authorizer: str):
        self.scope = scope
        self.authorizer = authorizer
        super().__init__(
            f"Scope '{scope}' cannot be satisfied through authorizer '{authorizer}'",
            scope=scope,
            authorizer=authorizer,
        )


class EdgeRejection(Exception):
    """Request rejected at the edge before reaching its handler."""

    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_response_body(self) -> Dict[str, Any]:
        """Body returned to the caller for this rejection."""
        body: Dict[str, Any] = {"message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class RouteNotFound(EdgeRejection):
    """No resource matches the path, or the resource has no such method."""

    status_code = 404


class MethodNotAllowed(RouteNotFound):
    status_code = 405


class Unauthorized(EdgeRejection):
    """Missing or unverifiable token."""

    status_code = 401


class AuthorizationRejected(EdgeRejection):
    """Token verified but carries none of the route's allowed scopes."""

    status_code = 403


class ValidationRejected(EdgeRejection):
    """Request does not satisfy the attached validator schema."""

    status_code = 400

    def __init__(self, message: str, validator_name: str, violations: List[str]):
        self.validator_name = validator_name
        self.violations = list(violations)
        super().__init__(
            message,
            details={"validator": validator_name, "violations": self.violations},
        )
