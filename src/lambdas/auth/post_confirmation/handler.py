"""
Post-Confirmation Trigger Lambda.

Cognito invokes this function after a customer confirms their email. It has
no veto: it records the confirmation and always hands the event back.
"""

import os
from typing import Any, Dict

from aws_lambda_powertools import Logger, Tracer, Metrics
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import event_source
from aws_lambda_powertools.utilities.data_classes.cognito_user_pool_event import (
    PostConfirmationTriggerEvent,
)
from aws_lambda_powertools.utilities.typing import LambdaContext

# Initialize AWS Lambda Powertools
logger = Logger(service="post-confirmation")
tracer = Tracer(service="post-confirmation")
metrics = Metrics(namespace="ECommerceApi", service="post-confirmation")

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

CONFIRM_SIGN_UP = "PostConfirmation_ConfirmSignUp"
CONFIRM_FORGOT_PASSWORD = "PostConfirmation_ConfirmForgotPassword"


def describe_confirmation(trigger_source: str, user_attributes: Dict[str, str]) -> Dict[str, Any]:
    """Structured log fields for a confirmation event."""
    return {
        "environment": ENVIRONMENT,
        "trigger_source": trigger_source,
        "sign_up": trigger_source == CONFIRM_SIGN_UP,
        "email_verified": user_attributes.get("email_verified") == "true",
        "has_fullname": bool(user_attributes.get("name")),
    }


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=PostConfirmationTriggerEvent)
def lambda_handler(event: PostConfirmationTriggerEvent, context: LambdaContext) -> Dict[str, Any]:
    """Record the confirmation and return the event unchanged."""
    fields = describe_confirmation(event.trigger_source, dict(event.request.user_attributes))

    if fields["sign_up"]:
        metrics.add_metric(name="CustomerSignUpConfirmed", unit=MetricUnit.Count, value=1)
    elif event.trigger_source == CONFIRM_FORGOT_PASSWORD:
        metrics.add_metric(name="CustomerPasswordReset", unit=MetricUnit.Count, value=1)

    logger.info(
        "Customer confirmed",
        extra={**fields, "user_pool_id": event.user_pool_id, "user_name": event.user_name}
    )
    return event.raw_event
