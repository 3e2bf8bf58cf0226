"""
Edge evaluation of requests against a built API surface.

``EdgeGateway`` applies, in order, the checks the deployed REST API performs
before a handler runs:

1. Route lookup (resource path, then HTTP verb).
2. Cognito authorization: the token's issuing realm must be trusted by the
   method's authorizer and the token must carry one of the allowed scopes.
   Scopes are compared with their resource-server identifier, and that
   identifier must belong to the issuing realm.
3. Request validation against the attached validator schema.

Only then is the handler invoked, with a fixed envelope. Every rejection is
terminal and the handler never sees the request.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from src.surface.builder import ApiSurface
from src.surface.errors import (
    AuthorizationRejected,
    EdgeRejection,
    MethodNotAllowed,
    RouteNotFound,
    Unauthorized,
)
from src.surface.methods import MethodBinding
from src.surface.schemas import ValidationTarget
from src.surface.scopes import Scope


logger = logging.getLogger(__name__)


class TokenClaims(BaseModel):
    """Verified access-token claims, as Cognito would present them."""
    model_config = ConfigDict(frozen=True)

    issuer_realm: str = Field(..., min_length=1, description="Name of the realm that issued the token")
    scope: str = Field(default="", description="Space-separated scope claim")
    sub: str = "00000000-0000-0000-0000-000000000000"
    username: Optional[str] = None
    client_id: Optional[str] = None
    token_use: str = "access"

    @property
    def scopes(self) -> List[str]:
        return [s for s in self.scope.split(" ") if s]

    def to_claims(self) -> Dict[str, Any]:
        claims = {
            "sub": self.sub,
            "scope": self.scope,
            "token_use": self.token_use,
            "realm": self.issuer_realm,
        }
        if self.username is not None:
            claims["username"] = self.username
        if self.client_id is not None:
            claims["client_id"] = self.client_id
        return claims


class EdgeRequest(BaseModel):
    verb: str
    path: str
    query: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[str, Dict[str, Any], List[Any]]] = None
    token: Optional[TokenClaims] = None


class HandlerEnvelope(BaseModel):
    """What a handler receives once the edge has accepted a request."""
    model_config = ConfigDict(frozen=True)

    http_method: str
    resource: str
    path: str
    path_parameters: Dict[str, str] = Field(default_factory=dict)
    query_parameters: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class HandlerResponse(BaseModel):
    status_code: int = Field(..., ge=100, le=599)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_handler_result(cls, result: Any) -> "HandlerResponse":
        """Accept either a ``HandlerResponse`` or a Lambda proxy style dict."""
        if isinstance(result, HandlerResponse):
            return result
        if isinstance(result, Mapping) and "statusCode" in result:
            return cls(
                status_code=result["statusCode"],
                headers=dict(result.get("headers") or {}),
                body=result.get("body"),
            )
        raise TypeError(f"Handler returned an unsupported response: {type(result).__name__}")


Handler = Callable[[HandlerEnvelope], Any]


class EdgeGateway:
    """Request evaluator for an ``ApiSurface``."""

    def __init__(self, surface: ApiSurface, handlers: Optional[Mapping[str, Handler]] = None):
        self.surface = surface
        self.handlers = dict(handlers or {})

    def resolve(self, verb: str, path: str) -> Tuple[MethodBinding, Dict[str, str]]:
        """
        Find the method binding for a request.

        Raises:
            RouteNotFound: If no resource matches ``path``.
            MethodNotAllowed: If the resource has no binding for ``verb``.
        """
        match = self.surface.tree.match(path)
        if match is None:
            raise RouteNotFound("Missing Authentication Token", details={"path": path})
        resource, path_parameters = match
        binding = next(
            (m for m in self.surface.methods_for(resource) if m.verb.value == verb.upper()),
            None,
        )
        if binding is None:
            raise MethodNotAllowed(
                f"Method {verb.upper()} is not allowed on {resource.path}",
                details={"path": resource.path},
            )
        return binding, path_parameters

    def authorize(self, binding: MethodBinding, token: Optional[TokenClaims]) -> None:
        """
        Enforce the method's authorizer and scope set.

        Raises:
            Unauthorized: Missing token, or a token from an untrusted realm.
            AuthorizationRejected: No scope claim satisfies the method.
        """
        authorizer = binding.authorizer
        if authorizer is None:
            return
        if token is None or token.token_use != "access":
            raise Unauthorized("Unauthorized")
        if not authorizer.trusts(token.issuer_realm):
            raise Unauthorized(
                "Unauthorized",
                details={"authorizer": authorizer.name, "realm": token.issuer_realm},
            )

        issuer = self.surface.realm(token.issuer_realm)
        for claimed in token.scopes:
            try:
                scope = Scope.parse(claimed)
            except ValueError:
                continue
            if scope.resource_server != issuer.resource_server_identifier:
                logger.warning(
                    "Ignoring scope %s not issued by realm %s", claimed, issuer.name
                )
                continue
            if scope in binding.allowed_scopes:
                return

        raise AuthorizationRejected(
            "Forbidden",
            details={"allowed_scopes": binding.allowed_scope_strings()},
        )

    @staticmethod
    def validate(binding: MethodBinding, request: EdgeRequest) -> Any:
        """
        Run the method's validator and return the parsed body.

        Raises:
            ValidationRejected: If the request violates the schema.
        """
        body = request.body
        if isinstance(body, str) and body:
            try:
                body = json.loads(body)
            except ValueError:
                logger.debug("Passing non-JSON body through unparsed")

        validator = binding.validator
        if validator is None:
            return body
        if validator.target == ValidationTarget.QUERY_PARAMS:
            validator.validate_request(query=request.query)
        else:
            validator.validate_request(body=request.body)
        return body

    def _handler_for(self, binding: MethodBinding) -> Handler:
        handler = self.handlers.get(binding.handler_name)
        if handler is None and callable(binding.handler_target):
            handler = binding.handler_target
        if handler is None:
            raise RuntimeError(f"No callable registered for handler '{binding.handler_name}'")
        return handler

    def dispatch(self, request: EdgeRequest) -> HandlerResponse:
        """
        Evaluate a request and invoke its handler.

        Raises:
            EdgeRejection: For any edge-level rejection.
        """
        binding, path_parameters = self.resolve(request.verb, request.path)
        self.authorize(binding, request.token)
        body = self.validate(binding, request)

        envelope = HandlerEnvelope(
            http_method=binding.verb.value,
            resource=binding.path,
            path=request.path,
            path_parameters=path_parameters,
            query_parameters=dict(request.query),
            body=body,
            claims=request.token.to_claims() if request.token else {},
        )
        logger.debug("Invoking %s for %s %s", binding.handler_name, binding.verb.value, request.path)
        return HandlerResponse.from_handler_result(self._handler_for(binding)(envelope))

    def handle(self, request: EdgeRequest) -> HandlerResponse:
        """Evaluate a request, turning edge rejections into error responses."""
        try:
            return self.dispatch(request)
        except EdgeRejection as e:
            logger.info(
                "Rejected %s %s with %d: %s",
                request.verb,
                request.path,
                e.status_code,
                e.message,
            )
            return HandlerResponse(
                status_code=e.status_code,
                headers={"Content-Type": "application/json"},
                body=json.dumps(e.to_response_body()),
            )
