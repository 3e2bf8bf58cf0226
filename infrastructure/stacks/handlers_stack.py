"""
Handler reference stack for the E-Commerce API.

The products and orders handlers are deployed by their own applications.
This stack imports them by function name and execution role, giving the API
stack concrete Lambda handles to integrate with and to grant permissions to.
"""

from typing import Dict, Mapping

from aws_cdk import (
    Aws,
    Stack,
    aws_iam as iam,
    aws_lambda as lambda_,
)
from constructs import Construct

from infrastructure.config.environment_config import EnvironmentConfig


def handler_function_arn(function_name: str) -> str:
    """Function ARN built from unscoped pseudo parameters, resolved by whichever stack uses it."""
    return f"arn:{Aws.PARTITION}:lambda:{Aws.REGION}:{Aws.ACCOUNT_ID}:function:{function_name}"


def handler_role_name(function_name: str) -> str:
    """Execution role name of an externally deployed handler."""
    return f"{function_name}Role"


class ECommerceHandlersStack(Stack):
    """Stack importing the externally deployed API handlers."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.env_name = config.environment_name
        self.handlers = self._import_handlers(config.handler_function_names())

    def _import_handlers(self, function_names: Mapping[str, str]) -> Dict[str, lambda_.IFunction]:
        """
        Import every handler with a mutable role.

        Invoke permissions are skipped here; the API stack grants them
        against its own execute-api ARN.
        """
        handlers = {}
        for handler_name, function_name in function_names.items():
            role = iam.Role.from_role_name(
                self,
                f"{function_name}Role",
                handler_role_name(function_name),
                mutable=True,
            )
            handlers[handler_name] = lambda_.Function.from_function_attributes(
                self,
                function_name,
                function_arn=handler_function_arn(function_name),
                role=role,
                skip_permissions=True,
            )
        return handlers
