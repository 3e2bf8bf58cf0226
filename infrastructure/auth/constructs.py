"""
CDK Constructs for Cognito identity realms.

This module provides:
- Identity realm construct: user pool, hosted domain, resource server and
  app clients for one realm
- Auth hooks construct: pre-authentication and post-confirmation triggers
"""

import os
from typing import Dict, List, Optional

from aws_cdk import (
    Duration,
    RemovalPolicy,
    aws_cognito as cognito,
    aws_lambda as lambda_,
    aws_ssm as ssm,
)
from constructs import Construct

from src.surface.realms import IdentityRealm, VerificationStyle


PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
AUTH_LAMBDAS_DIR = os.path.join(PROJECT_ROOT, "src", "lambdas", "auth")


class AuthHooksConstruct(Construct):
    """
    CDK Construct for the customer pool's Lambda triggers.

    Implements:
    - Pre-authentication trigger that can deny a sign-in
    - Parameter Store blocklist read by the pre-authentication trigger
    - Post-confirmation trigger run after email verification
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        env_name: str,
        blocked_emails: Optional[List[str]] = None,
        memory_mb: int = 128,
        timeout_seconds: int = 2,
        enable_tracing: bool = True,
        layers: Optional[List[lambda_.ILayerVersion]] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.env_name = env_name
        common_env = {
            "ENVIRONMENT": env_name,
            "LOG_LEVEL": "DEBUG" if env_name == "dev" else "INFO",
            "POWERTOOLS_METRICS_NAMESPACE": f"ECommerceApi/{env_name}",
        }

        # SSM rejects empty values; a lone comma parses as an empty list
        self.blocklist_parameter_name = f"/ecommerce/{env_name}/auth/blocked-emails"
        self.blocklist_parameter = ssm.StringParameter(
            self,
            "BlockedEmails",
            parameter_name=self.blocklist_parameter_name,
            string_value=",".join(blocked_emails or []) or ",",
            description=f"Emails denied at sign-in for {env_name}"
        )

        self.pre_authentication_function = self._create_hook_function(
            "PreAuthenticationFunction",
            "pre_authentication",
            environment={
                **common_env,
                "POWERTOOLS_SERVICE_NAME": "pre-authentication",
                "BLOCKLIST_PARAMETER": self.blocklist_parameter_name,
            },
            memory_mb=memory_mb,
            timeout_seconds=timeout_seconds,
            enable_tracing=enable_tracing,
            layers=layers,
        )
        self.blocklist_parameter.grant_read(self.pre_authentication_function)

        self.post_confirmation_function = self._create_hook_function(
            "PostConfirmationFunction",
            "post_confirmation",
            environment={**common_env, "POWERTOOLS_SERVICE_NAME": "post-confirmation"},
            memory_mb=memory_mb,
            timeout_seconds=timeout_seconds,
            enable_tracing=enable_tracing,
            layers=layers,
        )

    def _create_hook_function(
        self,
        construct_id: str,
        package: str,
        environment: Dict[str, str],
        memory_mb: int,
        timeout_seconds: int,
        enable_tracing: bool,
        layers: Optional[List[lambda_.ILayerVersion]],
    ) -> lambda_.Function:
        """Create one trigger function from its package under src/lambdas/auth."""
        return lambda_.Function(
            self,
            construct_id,
            function_name=f"ecommerce-{package.replace('_', '-')}-{self.env_name}",
            runtime=lambda_.Runtime.PYTHON_3_11,
            handler="handler.lambda_handler",
            code=lambda_.Code.from_asset(os.path.join(AUTH_LAMBDAS_DIR, package)),
            memory_size=memory_mb,
            timeout=Duration.seconds(timeout_seconds),
            layers=layers,
            environment=environment,
            tracing=lambda_.Tracing.ACTIVE if enable_tracing else lambda_.Tracing.DISABLED,
        )


class IdentityRealmConstruct(Construct):
    """
    CDK Construct for one identity realm.

    Implements:
    - Cognito user pool with the realm's sign-up and password policies
    - Hosted UI domain
    - Resource server declaring the realm's OAuth scopes
    - One app client per client config, each requesting a single scope
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        realm: IdentityRealm,
        env_name: str,
        hooks: Optional[AuthHooksConstruct] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.realm = realm
        self.env_name = env_name

        self.user_pool = self._create_user_pool(hooks)
        self.domain = self.user_pool.add_domain(
            f"{realm.pool_name}Domain",
            cognito_domain=cognito.CognitoDomainOptions(domain_prefix=realm.domain_prefix),
        )
        self.scopes = {
            name: cognito.ResourceServerScope(scope_name=name, scope_description=description)
            for name, description in realm.scope_descriptions.items()
        }
        self.resource_server = self.user_pool.add_resource_server(
            realm.resource_server_name,
            identifier=realm.resource_server_identifier,
            user_pool_resource_server_name=realm.resource_server_name,
            scopes=list(self.scopes.values()),
        )
        self.clients = self._create_clients()

    def _create_user_pool(self, hooks: Optional[AuthHooksConstruct]) -> cognito.UserPool:
        """Create the Cognito user pool for this realm."""
        realm = self.realm
        policy = realm.password_policy

        triggers = None
        if hooks is not None and (realm.pre_authentication_hook or realm.post_confirmation_hook):
            triggers = cognito.UserPoolTriggers(
                pre_authentication=hooks.pre_authentication_function if realm.pre_authentication_hook else None,
                post_confirmation=hooks.post_confirmation_function if realm.post_confirmation_hook else None,
            )

        user_verification = None
        if realm.verification is not None:
            user_verification = cognito.UserVerificationConfig(
                email_subject=realm.verification.email_subject,
                email_body=realm.verification.email_body,
                email_style=(
                    cognito.VerificationEmailStyle.CODE
                    if realm.verification.style == VerificationStyle.CODE
                    else cognito.VerificationEmailStyle.LINK
                ),
            )

        user_invitation = None
        if realm.invitation is not None:
            user_invitation = cognito.UserInvitationConfig(
                email_subject=realm.invitation.email_subject,
                email_body=realm.invitation.email_body,
            )

        return cognito.UserPool(
            self,
            realm.pool_name,
            user_pool_name=f"{realm.pool_name}-{self.env_name}",
            lambda_triggers=triggers,
            self_sign_up_enabled=realm.self_sign_up_enabled,
            auto_verify=cognito.AutoVerifiedAttrs(email=True, phone=False) if realm.self_sign_up_enabled else None,
            user_verification=user_verification,
            user_invitation=user_invitation,
            sign_in_aliases=cognito.SignInAliases(username=False, email=True),
            standard_attributes=cognito.StandardAttributes(**{
                attribute.name: cognito.StandardAttribute(
                    required=attribute.required,
                    mutable=attribute.mutable
                )
                for attribute in realm.standard_attributes
            }),
            password_policy=cognito.PasswordPolicy(
                min_length=policy.min_length,
                require_lowercase=policy.require_lowercase,
                require_uppercase=policy.require_uppercase,
                require_digits=policy.require_digits,
                require_symbols=policy.require_symbols,
                temp_password_validity=Duration.days(policy.temp_password_validity_days)
            ),
            account_recovery=cognito.AccountRecovery.EMAIL_ONLY,
            removal_policy=RemovalPolicy.DESTROY if self.env_name == "dev" else RemovalPolicy.RETAIN
        )

    def _create_clients(self) -> Dict[str, cognito.UserPoolClient]:
        """Create app clients, each scoped to one resource-server scope."""
        clients = {}
        for client in self.realm.clients:
            clients[client.name] = self.user_pool.add_client(
                f"{self.realm.name}-{client.client_type.value}-client",
                user_pool_client_name=client.name,
                auth_flows=cognito.AuthFlow(user_password=client.user_password_auth),
                access_token_validity=Duration.minutes(client.access_token_validity_minutes),
                refresh_token_validity=Duration.days(client.refresh_token_validity_days),
                o_auth=cognito.OAuthSettings(
                    scopes=[
                        cognito.OAuthScope.resource_server(
                            self.resource_server,
                            self.scopes[client.scope_name]
                        )
                    ]
                ),
            )
        return clients
