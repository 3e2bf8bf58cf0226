"""
Environment-specific configuration management for the E-Commerce API.

This module provides configuration classes for different deployment environments
(dev, staging, production). Account, region, tags and Cognito domain prefixes
are injected here rather than embedded in the stacks.
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, Any, List, Optional

from src.surface.builder import (
    ORDER_EVENTS_FETCH_HANDLER,
    ORDERS_HANDLER,
    PRODUCTS_ADMIN_HANDLER,
    PRODUCTS_FETCH_HANDLER,
)


# Fields that must hold a non-empty value before any stack is synthesized
REQUIRED_FIELDS = (
    "environment_name",
    "aws_account",
    "aws_region",
    "tags",
    "api_name",
    "customer_domain_prefix",
    "admin_domain_prefix",
    "products_fetch_function_name",
    "products_admin_function_name",
    "orders_function_name",
    "order_events_fetch_function_name",
)


@dataclass(frozen=True)
class EnvironmentConfig:
    """Environment-specific configuration settings."""

    environment_name: str
    aws_region: str
    aws_account: Optional[str]
    tags: Dict[str, str]

    # API Gateway settings
    api_name: str
    api_stage_name: str

    # Cognito settings
    customer_domain_prefix: str
    admin_domain_prefix: str
    blocked_sign_in_emails: List[str]

    # External handler functions (deployed outside these stacks)
    products_fetch_function_name: str
    products_admin_function_name: str
    orders_function_name: str
    order_events_fetch_function_name: str

    # Auth hook Lambda settings
    hook_memory_mb: int = 128
    hook_timeout_seconds: int = 2

    # Lambda layers published to Parameter Store
    shared_layer_asset_path: str = "lambda_layers/shared"

    # Permission grants
    grant_orders_customer_lookup: bool = True

    # Monitoring settings
    enable_xray_tracing: bool = True
    log_retention_days: int = 7

    @classmethod
    def get_config(cls, environment: str) -> "EnvironmentConfig":
        """Get configuration for the specified environment."""
        configs = {
            "dev": cls._dev_config,
            "staging": cls._staging_config,
            "production": cls._production_config
        }

        if environment not in configs:
            raise ValueError(f"Unknown environment: {environment}")

        return configs[environment]()

    @classmethod
    def _dev_config(cls) -> "EnvironmentConfig":
        """Development environment configuration."""
        return cls(
            environment_name="dev",
            aws_region="us-east-1",
            aws_account=None,
            tags={"cost": "ECommerce", "team": "ECommerceApi", "environment": "dev"},

            # API Gateway
            api_name="ECommerceApi",
            api_stage_name="prod",

            # Cognito - prefixes must be globally unique per region
            customer_domain_prefix="ecommerce-customer-service-dev",
            admin_domain_prefix="ecommerce-admin-service-dev",
            blocked_sign_in_emails=["blocked-user@example.com"],

            # Handlers
            products_fetch_function_name="ProductsFetchFunction",
            products_admin_function_name="ProductsAdminFunction",
            orders_function_name="OrdersFunction",
            order_events_fetch_function_name="OrderEventsFetchFunction",

            # Monitoring - Detailed for debugging
            enable_xray_tracing=True,
            log_retention_days=7
        )

    @classmethod
    def _staging_config(cls) -> "EnvironmentConfig":
        """Staging environment configuration."""
        return cls(
            environment_name="staging",
            aws_region="us-east-1",
            aws_account=None,
            tags={"cost": "ECommerce", "team": "ECommerceApi", "environment": "staging"},

            api_name="ECommerceApi",
            api_stage_name="prod",

            customer_domain_prefix="ecommerce-customer-service-staging",
            admin_domain_prefix="ecommerce-admin-service-staging",
            blocked_sign_in_emails=[],

            products_fetch_function_name="ProductsFetchFunction-staging",
            products_admin_function_name="ProductsAdminFunction-staging",
            orders_function_name="OrdersFunction-staging",
            order_events_fetch_function_name="OrderEventsFetchFunction-staging",

            enable_xray_tracing=True,
            log_retention_days=30
        )

    @classmethod
    def _production_config(cls) -> "EnvironmentConfig":
        """Production environment configuration."""
        return cls(
            environment_name="production",
            aws_region="us-east-1",
            aws_account=None,
            tags={"cost": "ECommerce", "team": "ECommerceApi", "environment": "production"},

            api_name="ECommerceApi",
            api_stage_name="prod",

            customer_domain_prefix="ecommerce-customer-service",
            admin_domain_prefix="ecommerce-admin-service",
            blocked_sign_in_emails=[],

            products_fetch_function_name="ProductsFetchFunction-production",
            products_admin_function_name="ProductsAdminFunction-production",
            orders_function_name="OrdersFunction-production",
            order_events_fetch_function_name="OrderEventsFetchFunction-production",

            # Monitoring - Essential only
            enable_xray_tracing=True,
            log_retention_days=90
        )

    def with_overrides(self, **overrides: Any) -> "EnvironmentConfig":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(unknown)}")
        return replace(self, **overrides)

    def missing_fields(self) -> List[str]:
        """Required fields that are unset or empty."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def validate(self) -> "EnvironmentConfig":
        """
        Check that every required field is set.

        Raises:
            ValueError: Naming all missing fields.
        """
        missing = self.missing_fields()
        if missing:
            raise ValueError(
                f"Configuration for '{self.environment_name or '<unnamed>'}' "
                f"is missing required fields: {', '.join(missing)}"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment_name == "production"

    def handler_function_names(self) -> Dict[str, str]:
        """Handler target name to deployed function name."""
        return {
            PRODUCTS_FETCH_HANDLER: self.products_fetch_function_name,
            PRODUCTS_ADMIN_HANDLER: self.products_admin_function_name,
            ORDERS_HANDLER: self.orders_function_name,
            ORDER_EVENTS_FETCH_HANDLER: self.order_events_fetch_function_name,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for parameter store."""
        return {
            "environment_name": self.environment_name,
            "aws_region": self.aws_region,
            "api_name": self.api_name,
            "api_stage_name": self.api_stage_name,
            "customer_domain_prefix": self.customer_domain_prefix,
            "admin_domain_prefix": self.admin_domain_prefix,
            "hook_memory_mb": str(self.hook_memory_mb),
            "hook_timeout_seconds": str(self.hook_timeout_seconds),
            "enable_xray_tracing": str(self.enable_xray_tracing),
            "log_retention_days": str(self.log_retention_days)
        }
