"""
Lambda layers stack for the E-Commerce API.

Layer versions are published here and their ARNs written to Parameter Store,
so that consuming stacks look them up by parameter name instead of holding
cross-stack references.
"""

import os

from aws_cdk import (
    Stack,
    RemovalPolicy,
    aws_lambda as lambda_,
    aws_ssm as ssm,
)
from constructs import Construct

from infrastructure.config.environment_config import EnvironmentConfig


PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def shared_layer_parameter_name(env_name: str) -> str:
    """Parameter Store name holding the shared layer version ARN."""
    return f"/ecommerce/{env_name}/layers/SharedLayerVersionArn"


class ECommerceLayersStack(Stack):
    """Stack publishing shared Lambda layers."""

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

        self.shared_layer = lambda_.LayerVersion(
            self,
            "SharedLayer",
            layer_version_name=f"ecommerce-shared-{self.env_name}",
            description="Shared dependencies for E-Commerce API Lambda functions",
            code=lambda_.Code.from_asset(os.path.join(PROJECT_ROOT, config.shared_layer_asset_path)),
            compatible_runtimes=[
                lambda_.Runtime.PYTHON_3_11,
                lambda_.Runtime.PYTHON_3_12
            ],
            compatible_architectures=[lambda_.Architecture.X86_64],
            removal_policy=RemovalPolicy.RETAIN
        )

        self.shared_layer_parameter = ssm.StringParameter(
            self,
            "SharedLayerVersionArn",
            parameter_name=shared_layer_parameter_name(self.env_name),
            string_value=self.shared_layer.layer_version_arn,
            description=f"Shared layer version ARN for {self.env_name}"
        )
