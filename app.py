#!/usr/bin/env python3
"""
E-Commerce API CDK Application Entry Point

This is the main entry point for the AWS CDK application that deploys
the E-Commerce API across multiple environments. Stacks are created in
dependency order: layers, handler references, then the API itself.
"""

import os
import aws_cdk as cdk
from aws_cdk import Environment

from infrastructure.config.environment_config import EnvironmentConfig
from infrastructure.stacks.ecommerce_api_stack import ECommerceApiStack
from infrastructure.stacks.handlers_stack import ECommerceHandlersStack
from infrastructure.stacks.layers_stack import ECommerceLayersStack


def main():
    """Main application entry point."""
    app = cdk.App()

    # Get environment from context or default to 'dev'
    env_name = app.node.try_get_context("environment") or "dev"

    # Load environment-specific configuration, account injected from the CLI
    base_config = EnvironmentConfig.get_config(env_name)
    config = base_config.with_overrides(
        aws_account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        aws_region=os.environ.get("CDK_DEFAULT_REGION", base_config.aws_region),
    ).validate()

    # Define AWS environment
    aws_env = Environment(account=config.aws_account, region=config.aws_region)

    layers_stack = ECommerceLayersStack(
        app,
        f"ECommerceLayers-{env_name}",
        config=config,
        env=aws_env,
        tags=config.tags,
        description=f"E-Commerce API Lambda layers for {env_name} environment"
    )

    handlers_stack = ECommerceHandlersStack(
        app,
        f"ECommerceHandlers-{env_name}",
        config=config,
        env=aws_env,
        tags=config.tags,
        description=f"E-Commerce API handler references for {env_name} environment"
    )
    handlers_stack.add_dependency(layers_stack)

    api_stack = ECommerceApiStack(
        app,
        f"ECommerceApi-{env_name}",
        config=config,
        handlers=handlers_stack.handlers,
        env=aws_env,
        tags=config.tags,
        description=f"E-Commerce API and identity realms for {env_name} environment"
    )
    api_stack.add_dependency(handlers_stack)

    app.synth()


if __name__ == "__main__":
    main()
