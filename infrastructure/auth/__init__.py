"""
Infrastructure constructs for Cognito identity realms.

This module provides CDK constructs for the customer and admin user pools
and the Lambda triggers attached to them.
"""

from infrastructure.auth.constructs import (
    AuthHooksConstruct,
    IdentityRealmConstruct,
)

__all__ = [
    "AuthHooksConstruct",
    "IdentityRealmConstruct",
]
