"""
API stack for the E-Commerce API.

This stack builds the access-controlled API surface (customer and admin
identity realms, authorizers, resources, methods and validators) and
synthesizes it as Cognito user pools and an API Gateway REST API.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from aws_cdk import (
    Stack,
    RemovalPolicy,
    CfnOutput,
    aws_cognito as cognito,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_ssm as ssm,
)
from constructs import Construct

from infrastructure.api.constructs import SurfaceRestApi
from infrastructure.auth.constructs import AuthHooksConstruct, IdentityRealmConstruct
from infrastructure.config.environment_config import EnvironmentConfig
from infrastructure.stacks.layers_stack import shared_layer_parameter_name
from src.surface.builder import ApiSurface, build_api_surface
from src.surface.grants import UserLookupGrant, user_lookup_grants
from src.surface.realms import admin_realm_spec, customer_realm_spec


@dataclass(frozen=True)
class DeployedApi:
    """Handles to everything the API stack synthesized."""
    surface: ApiSurface
    rest_api: SurfaceRestApi
    realms: Mapping[str, IdentityRealmConstruct]
    hooks: AuthHooksConstruct
    grants: Mapping[str, iam.Policy]

    def user_pool(self, realm_name: str) -> cognito.UserPool:
        return self.realms[realm_name].user_pool


class ECommerceApiStack(Stack):
    """Main CDK stack for the E-Commerce REST API and its identity realms."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        handlers: Mapping[str, lambda_.IFunction],
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.env_name = config.environment_name

        # Build and check the surface before synthesizing anything
        self.surface = build_api_surface(
            handlers,
            [
                customer_realm_spec(config.customer_domain_prefix),
                admin_realm_spec(config.admin_domain_prefix),
            ],
        )

        # Shared layer published by the layers stack
        self.shared_layer = lambda_.LayerVersion.from_layer_version_arn(
            self,
            "SharedLayer",
            ssm.StringParameter.value_for_string_parameter(
                self, shared_layer_parameter_name(self.env_name)
            ),
        )

        # Identity hooks and realms
        self.auth_hooks = AuthHooksConstruct(
            self,
            "AuthHooks",
            env_name=self.env_name,
            blocked_emails=config.blocked_sign_in_emails,
            memory_mb=config.hook_memory_mb,
            timeout_seconds=config.hook_timeout_seconds,
            enable_tracing=config.enable_xray_tracing,
            layers=[self.shared_layer],
        )
        self.realms = {
            name: IdentityRealmConstruct(
                self,
                f"{realm.pool_name}Realm",
                realm=realm,
                env_name=self.env_name,
                hooks=self.auth_hooks,
            )
            for name, realm in self.surface.realms.items()
        }

        # REST API
        self.access_log_group = self._create_access_log_group()
        self.rest_api = SurfaceRestApi(
            self,
            "ECommerceApi",
            surface=self.surface,
            user_pools={name: realm.user_pool for name, realm in self.realms.items()},
            handlers=handlers,
            api_name=config.api_name,
            stage_name=config.api_stage_name,
            access_log_group=self.access_log_group,
            enable_tracing=config.enable_xray_tracing,
        )
        self._grant_invoke_permissions(handlers)

        # User lookup grants for the admin-area handlers
        self.grant_policies = {
            grant.policy_name: self._create_grant_policy(grant, handlers)
            for grant in user_lookup_grants(
                self.surface, include_customer_realm=config.grant_orders_customer_lookup
            )
        }

        self.deployed = DeployedApi(
            surface=self.surface,
            rest_api=self.rest_api,
            realms=MappingProxyType(dict(self.realms)),
            hooks=self.auth_hooks,
            grants=MappingProxyType(dict(self.grant_policies)),
        )

        # Publish configuration to Parameter Store
        self._create_parameter_store_config()

        # Create stack outputs
        self._create_outputs()

    def _create_parameter_store_config(self) -> None:
        """Create Parameter Store parameters for configuration."""
        for key, value in self.config.to_dict().items():
            ssm.StringParameter(
                self,
                f"Config{key.replace('_', '').title()}",
                parameter_name=f"/ecommerce/{self.env_name}/config/{key}",
                string_value=str(value),
                description=f"E-Commerce API {key} configuration for {self.env_name}"
            )

    def _create_access_log_group(self) -> logs.LogGroup:
        """Create the CloudWatch log group for API access logs."""
        return logs.LogGroup(
            self,
            "ECommerceApiLogs",
            log_group_name=f"/aws/apigateway/ecommerce-api-{self.env_name}",
            retention=self._get_log_retention(self.config.log_retention_days),
            removal_policy=RemovalPolicy.DESTROY
        )

    def _grant_invoke_permissions(self, handlers: Mapping[str, lambda_.IFunction]) -> None:
        """Allow API Gateway to invoke every handler used by the surface."""
        handler_names = sorted({method.handler_name for method in self.surface.methods})
        for handler_name in handler_names:
            lambda_.CfnPermission(
                self,
                f"{handler_name}InvokePermission",
                action="lambda:InvokeFunction",
                function_name=handlers[handler_name].function_arn,
                principal="apigateway.amazonaws.com",
                source_arn=self.rest_api.api.arn_for_execute_api()
            )

    def _create_grant_policy(
        self,
        grant: UserLookupGrant,
        handlers: Mapping[str, lambda_.IFunction],
    ) -> iam.Policy:
        """Attach a user lookup policy on one realm's pool to the grant's handler roles."""
        user_pool = self.realms[grant.realm.name].user_pool
        policy = iam.Policy(
            self,
            grant.policy_name,
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=list(grant.actions),
                    resources=[user_pool.user_pool_arn]
                )
            ]
        )
        for handler_name in grant.handler_names:
            role = handlers[handler_name].role
            if role is None:
                raise ValueError(f"Handler '{handler_name}' has no execution role to grant to")
            policy.attach_to_role(role)
        return policy

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for key resources."""

        CfnOutput(
            self,
            "ApiUrl",
            value=self.rest_api.api.url,
            description="URL of the E-Commerce REST API",
            export_name=f"ecommerce-{self.env_name}-api-url"
        )

        for name, realm in self.realms.items():
            CfnOutput(
                self,
                f"{realm.realm.pool_name}Id",
                value=realm.user_pool.user_pool_id,
                description=f"ID of the {name} Cognito User Pool",
                export_name=f"ecommerce-{self.env_name}-{name}-user-pool-id"
            )
            for client_name, client in realm.clients.items():
                CfnOutput(
                    self,
                    f"{client_name[0].upper()}{client_name[1:]}Id",
                    value=client.user_pool_client_id,
                    description=f"ID of the {client_name} app client",
                    export_name=f"ecommerce-{self.env_name}-{client_name}-id"
                )

    def _get_log_retention(self, days: int) -> logs.RetentionDays:
        """Map days to RetentionDays enum."""
        retention_map = {
            1: logs.RetentionDays.ONE_DAY,
            3: logs.RetentionDays.THREE_DAYS,
            5: logs.RetentionDays.FIVE_DAYS,
            7: logs.RetentionDays.ONE_WEEK,
            14: logs.RetentionDays.TWO_WEEKS,
            30: logs.RetentionDays.ONE_MONTH,
            60: logs.RetentionDays.TWO_MONTHS,
            90: logs.RetentionDays.THREE_MONTHS,
            180: logs.RetentionDays.SIX_MONTHS,
            365: logs.RetentionDays.ONE_YEAR,
        }

        # Round up to the closest supported period
        for key in sorted(retention_map):
            if days <= key:
                return retention_map[key]

        raise ValueError(
            f"Unsupported log retention period: {days} days. "
            f"Supported values: {sorted(retention_map)}"
        )
