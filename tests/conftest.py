"""
Pytest configuration and fixtures for E-Commerce API tests.
"""

import os

# Lambda Powertools and boto3 read these at import time
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "1")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "ECommerceApiTest")

from unittest.mock import MagicMock

import pytest
from moto import mock_aws

from infrastructure.config.environment_config import EnvironmentConfig
from src.surface.builder import REQUIRED_HANDLERS, build_api_surface
from src.surface.edge import EdgeGateway, TokenClaims
from src.surface.realms import ADMIN_REALM, CUSTOMER_REALM, admin_realm_spec, customer_realm_spec


@pytest.fixture(scope="session")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock AWS services for testing."""
    with mock_aws():
        yield


@pytest.fixture
def dev_config():
    """Development configuration with a concrete account."""
    return EnvironmentConfig.get_config("dev").with_overrides(aws_account="123456789012")


@pytest.fixture
def realm_specs():
    """Customer and admin realm options."""
    return [
        customer_realm_spec("test-customer-domain"),
        admin_realm_spec("test-admin-domain"),
    ]


@pytest.fixture
def handler_targets():
    """Opaque handler targets keyed by handler name."""
    return {name: f"arn:aws:lambda:us-east-1:123456789012:function:{name}" for name in REQUIRED_HANDLERS}


@pytest.fixture
def surface(handler_targets, realm_specs):
    """A fully built API surface."""
    return build_api_surface(handler_targets, realm_specs)


@pytest.fixture
def handler_doubles():
    """One MagicMock per handler, each answering 200."""
    doubles = {}
    for name in REQUIRED_HANDLERS:
        double = MagicMock(name=name)
        double.return_value = {"statusCode": 200, "body": "{}"}
        doubles[name] = double
    return doubles


@pytest.fixture
def gateway(surface, handler_doubles):
    """Edge gateway dispatching to handler doubles."""
    return EdgeGateway(surface, handler_doubles)


@pytest.fixture
def customer_web_token():
    """Access token issued by the customer realm to the web client."""
    return TokenClaims(issuer_realm=CUSTOMER_REALM, scope="customer/web", username="customer@example.com")


@pytest.fixture
def customer_mobile_token():
    """Access token issued by the customer realm to the mobile client."""
    return TokenClaims(issuer_realm=CUSTOMER_REALM, scope="customer/mobile", username="customer@example.com")


@pytest.fixture
def admin_web_token():
    """Access token issued by the admin realm to the web client."""
    return TokenClaims(issuer_realm=ADMIN_REALM, scope="admin/web", username="admin@example.com")


@pytest.fixture
def lambda_context():
    """Minimal Lambda context for Powertools-decorated handlers."""
    context = MagicMock()
    context.function_name = "test-function"
    context.memory_limit_in_mb = 128
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    context.aws_request_id = "test-request-id"
    return context
