"""
Pre-Authentication Trigger Lambda.

Cognito invokes this function before authenticating a customer. It is a veto
point: the sign-in proceeds when the function returns the event, and is
aborted when it raises. The exception message is surfaced to the caller.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional

import boto3
from botocore.exceptions import ClientError
from aws_lambda_powertools import Logger, Tracer, Metrics
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import event_source
from aws_lambda_powertools.utilities.data_classes.cognito_user_pool_event import (
    PreAuthenticationTriggerEvent,
)
from aws_lambda_powertools.utilities.typing import LambdaContext

# Initialize AWS Lambda Powertools
logger = Logger(service="pre-authentication")
tracer = Tracer(service="pre-authentication")
metrics = Metrics(namespace="ECommerceApi", service="pre-authentication")

# Environment variables
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
BLOCKLIST_PARAMETER = os.environ.get("BLOCKLIST_PARAMETER", "")
BLOCKED_EMAILS = os.environ.get("BLOCKED_EMAILS", "")
BLOCK_REASON = os.environ.get("BLOCK_REASON", "TEST")

# Cache for the SSM client
_ssm_client = None


class SignInBlockedError(Exception):
    """Raised to make Cognito deny the authentication attempt."""

    def __init__(self, reason: str, email: Optional[str] = None):
        self.reason = reason
        self.email = email
        super().__init__(reason)


@dataclass(frozen=True)
class HookDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "HookDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "HookDecision":
        return cls(allowed=False, reason=reason)


def parse_blocklist(value: str) -> FrozenSet[str]:
    """Parse a comma-separated list of emails, normalized to lower case."""
    if not value:
        return frozenset()
    return frozenset(e.strip().lower() for e in value.split(",") if e.strip())


def get_ssm_client():
    """Get or create the SSM client."""
    global _ssm_client

    if _ssm_client is None:
        _ssm_client = boto3.client("ssm")
    return _ssm_client


@tracer.capture_method
def load_blocklist(parameter_name: str = "", fallback: str = "") -> FrozenSet[str]:
    """
    Load blocked emails from Parameter Store.

    Without a parameter name the comma-separated ``fallback`` is used.

    Raises:
        ClientError: If the parameter cannot be read. Cognito then denies
            the sign-in.
    """
    if not parameter_name:
        return parse_blocklist(fallback)

    try:
        response = get_ssm_client().get_parameter(Name=parameter_name)
    except ClientError as e:
        logger.error(
            "Failed to read sign-in blocklist",
            extra={"parameter_name": parameter_name, "error": str(e)}
        )
        raise
    return parse_blocklist(response["Parameter"]["Value"])


def evaluate_sign_in(
    user_attributes: Mapping[str, str],
    blocked_emails: FrozenSet[str],
    block_reason: str = "TEST",
) -> HookDecision:
    """Deny identities whose email is blocklisted, allow everyone else."""
    email = (user_attributes.get("email") or "").strip().lower()
    if email and email in blocked_emails:
        return HookDecision.deny(f"This user is blocked. Reason: {block_reason}")
    return HookDecision.allow()


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=PreAuthenticationTriggerEvent)
def lambda_handler(event: PreAuthenticationTriggerEvent, context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda handler for the customer pool pre-authentication trigger.

    Returns the unchanged event to allow sign-in.

    Raises:
        SignInBlockedError: When the identity is blocklisted.
    """
    user_attributes = event.request.user_attributes
    blocked_emails = load_blocklist(BLOCKLIST_PARAMETER, fallback=BLOCKED_EMAILS)
    decision = evaluate_sign_in(user_attributes, blocked_emails, BLOCK_REASON)

    if not decision.allowed:
        metrics.add_metric(name="SignInBlocked", unit=MetricUnit.Count, value=1)
        logger.warning(
            "Blocked sign-in attempt",
            extra={
                "environment": ENVIRONMENT,
                "user_pool_id": event.user_pool_id,
                "user_name": event.user_name,
                "reason": decision.reason,
            }
        )
        raise SignInBlockedError(decision.reason, email=user_attributes.get("email"))

    metrics.add_metric(name="SignInAllowed", unit=MetricUnit.Count, value=1)
    logger.info(
        "Sign-in allowed",
        extra={"user_pool_id": event.user_pool_id, "user_name": event.user_name}
    )
    return event.raw_event
