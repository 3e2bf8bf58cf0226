"""
CDK Constructs for the REST API.

This module provides:
- JSON Schema conversion from validator schemas to API Gateway models
- Surface REST API construct: materializes an ``ApiSurface`` as an API
  Gateway REST API with Cognito authorizers, request validators and
  Lambda proxy integrations
"""

from typing import Any, Dict, Mapping, Optional

from aws_cdk import (
    aws_apigateway as apigw,
    aws_cognito as cognito,
    aws_lambda as lambda_,
    aws_logs as logs,
)
from constructs import Construct

from src.surface.builder import ApiSurface
from src.surface.methods import MethodBinding
from src.surface.schemas import ValidationTarget, ValidatorSchema


JSON_CONTENT_TYPE = "application/json"

_JSON_SCHEMA_TYPES = {
    "string": apigw.JsonSchemaType.STRING,
    "number": apigw.JsonSchemaType.NUMBER,
    "array": apigw.JsonSchemaType.ARRAY,
    "object": apigw.JsonSchemaType.OBJECT,
}


def to_api_json_schema(schema: Mapping[str, Any], top_level: bool = True) -> apigw.JsonSchema:
    """Convert a plain JSON Schema dict into an API Gateway ``JsonSchema``."""
    kwargs: Dict[str, Any] = {"type": _JSON_SCHEMA_TYPES[schema["type"]]}
    if top_level:
        kwargs["schema"] = apigw.JsonSchemaVersion.DRAFT4
    if "properties" in schema:
        kwargs["properties"] = {
            name: to_api_json_schema(prop, top_level=False)
            for name, prop in schema["properties"].items()
        }
    if "required" in schema:
        kwargs["required"] = list(schema["required"])
    if "enum" in schema:
        kwargs["enum"] = list(schema["enum"])
    if "minItems" in schema:
        kwargs["min_items"] = schema["minItems"]
    if "items" in schema:
        kwargs["items"] = to_api_json_schema(schema["items"], top_level=False)
    return apigw.JsonSchema(**kwargs)


class SurfaceRestApi(Construct):
    """
    CDK Construct for the access-controlled REST API.

    Implements:
    - REST API with a JSON access log and CloudWatch role
    - One Cognito authorizer per authorizer binding
    - One request validator per validator schema, plus its body model
    - Resource tree and methods exactly as described by the surface
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        surface: ApiSurface,
        user_pools: Mapping[str, cognito.IUserPool],
        handlers: Mapping[str, lambda_.IFunction],
        api_name: str,
        stage_name: str,
        access_log_group: logs.ILogGroup,
        enable_tracing: bool = True,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.surface = surface
        self._user_pools = user_pools
        self._handlers = handlers

        self.api = apigw.RestApi(
            self,
            "RestApi",
            rest_api_name=api_name,
            cloud_watch_role=True,
            deploy_options=apigw.StageOptions(
                stage_name=stage_name,
                tracing_enabled=enable_tracing,
                access_log_destination=apigw.LogGroupLogDestination(access_log_group),
                access_log_format=apigw.AccessLogFormat.json_with_standard_fields(
                    http_method=True,
                    ip=True,
                    protocol=True,
                    request_time=True,
                    resource_path=True,
                    response_length=True,
                    status=True,
                    caller=True,
                    user=True,
                ),
            ),
        )

        self.authorizers = self._create_authorizers()
        self.request_validators: Dict[str, apigw.RequestValidator] = {}
        self.models: Dict[str, apigw.Model] = {}
        for schema in surface.validators:
            self._create_validator(schema)

        self.resources = self._create_resources()
        self.methods: Dict[tuple, apigw.Method] = {}
        for binding in surface.methods:
            self.methods[binding.key] = self._create_method(binding)

    def _create_authorizers(self) -> Dict[str, apigw.CognitoUserPoolsAuthorizer]:
        """Create one Cognito authorizer per binding, trusting its realms' pools."""
        authorizers = {}
        for name, binding in self.surface.authorizers.items():
            authorizers[name] = apigw.CognitoUserPoolsAuthorizer(
                self,
                name,
                authorizer_name=name,
                cognito_user_pools=[self._user_pools[realm] for realm in binding.realm_names],
            )
        return authorizers

    def _create_validator(self, schema: ValidatorSchema) -> None:
        """Create the request validator and, for body schemas, its model."""
        is_body = schema.target == ValidationTarget.BODY
        self.request_validators[schema.name] = self.api.add_request_validator(
            schema.name,
            request_validator_name=schema.name,
            validate_request_body=is_body,
            validate_request_parameters=not is_body,
        )
        if is_body:
            self.models[schema.name] = self.api.add_model(
                schema.body_model_name,
                model_name=schema.body_model_name,
                content_type=JSON_CONTENT_TYPE,
                schema=to_api_json_schema(schema.to_json_schema()),
            )

    def _create_resources(self) -> Dict[str, apigw.IResource]:
        """Mirror the surface's resource tree, parents before children."""
        resources: Dict[str, apigw.IResource] = {"/": self.api.root}
        for node in self.surface.tree.root.walk():
            if node.is_root:
                continue
            resources[node.path] = resources[node.parent.path].add_resource(node.segment)
        return resources

    def _create_method(self, binding: MethodBinding) -> apigw.Method:
        options: Dict[str, Any] = {}
        if binding.authorizer is not None:
            options["authorizer"] = self.authorizers[binding.authorizer.name]
            options["authorization_type"] = apigw.AuthorizationType.COGNITO
            options["authorization_scopes"] = binding.allowed_scope_strings()
        if binding.request_parameters:
            options["request_parameters"] = dict(binding.request_parameters)
        if binding.validator is not None:
            options["request_validator"] = self.request_validators[binding.validator.name]
            model: Optional[apigw.Model] = self.models.get(binding.validator.name)
            if model is not None:
                options["request_models"] = {JSON_CONTENT_TYPE: model}

        return self.resources[binding.path].add_method(
            binding.verb.value,
            apigw.LambdaIntegration(self._handlers[binding.handler_name]),
            **options
        )
