"""
Unit tests for the Cognito identity hook Lambdas.
"""

import boto3
import pytest
from botocore.exceptions import ClientError

from src.lambdas.auth.pre_authentication import handler as pre_auth
from src.lambdas.auth.post_confirmation import handler as post_confirmation


def _trigger_event(trigger_source, email, **attributes):
    """Cognito user pool trigger event for the customer pool."""
    return {
        "version": "1",
        "triggerSource": trigger_source,
        "region": "us-east-1",
        "userPoolId": "us-east-1_TestPool",
        "userName": "customer-1",
        "callerContext": {"awsSdkVersion": "1", "clientId": "customerWebClient"},
        "request": {"userAttributes": {"email": email, **attributes}},
        "response": {},
    }


class TestParseBlocklist:
    """Test blocklist parsing."""

    def test_empty(self):
        assert pre_auth.parse_blocklist("") == frozenset()
        assert pre_auth.parse_blocklist(",") == frozenset()

    def test_normalizes_case_and_whitespace(self):
        assert pre_auth.parse_blocklist(" Blocked@Example.com ,other@example.com") == frozenset(
            {"blocked@example.com", "other@example.com"}
        )


class TestEvaluateSignIn:
    """Test the allow/deny decision."""

    def test_allows_unlisted_email(self):
        decision = pre_auth.evaluate_sign_in({"email": "ok@example.com"}, frozenset({"blocked@example.com"}))
        assert decision.allowed
        assert decision.reason is None

    def test_denies_blocked_email(self):
        """Test the denial reason surfaced to the caller."""
        decision = pre_auth.evaluate_sign_in({"email": "Blocked@Example.com"}, frozenset({"blocked@example.com"}))
        assert not decision.allowed
        assert decision.reason == "This user is blocked. Reason: TEST"

    def test_custom_reason(self):
        decision = pre_auth.evaluate_sign_in(
            {"email": "blocked@example.com"}, frozenset({"blocked@example.com"}), block_reason="FRAUD"
        )
        assert decision.reason == "This user is blocked. Reason: FRAUD"

    def test_missing_email_allowed(self):
        assert pre_auth.evaluate_sign_in({}, frozenset({"blocked@example.com"})).allowed


class TestLoadBlocklist:
    """Test reading the blocklist from Parameter Store."""

    PARAMETER = "/ecommerce/test/auth/blocked-emails"

    @pytest.fixture
    def ssm_client(self, mock_aws_services, monkeypatch):
        monkeypatch.setattr(pre_auth, "_ssm_client", None)
        return boto3.client("ssm", region_name="us-east-1")

    def test_fallback_without_parameter(self):
        assert pre_auth.load_blocklist("", fallback="a@example.com") == frozenset({"a@example.com"})

    def test_reads_parameter(self, ssm_client):
        ssm_client.put_parameter(Name=self.PARAMETER, Value="a@example.com,B@example.com", Type="String")
        assert pre_auth.load_blocklist(self.PARAMETER) == frozenset({"a@example.com", "b@example.com"})

    def test_missing_parameter_raises(self, ssm_client):
        """Test that an unreadable blocklist fails the sign-in."""
        with pytest.raises(ClientError):
            pre_auth.load_blocklist(self.PARAMETER)


class TestPreAuthenticationHandler:
    """Test the pre-authentication Lambda handler."""

    @pytest.fixture(autouse=True)
    def blocklist(self, monkeypatch):
        monkeypatch.setattr(pre_auth, "BLOCKLIST_PARAMETER", "")
        monkeypatch.setattr(pre_auth, "BLOCKED_EMAILS", "blocked@example.com")

    def test_allowed_returns_event(self, lambda_context):
        """Test that an allowed sign-in hands the event back unchanged."""
        event = _trigger_event("PreAuthentication_Authentication", "customer@example.com")
        assert pre_auth.lambda_handler(event, lambda_context) == event

    def test_blocked_raises(self, lambda_context):
        """Test that a blocked sign-in raises with the denial reason."""
        event = _trigger_event("PreAuthentication_Authentication", "blocked@example.com")
        with pytest.raises(pre_auth.SignInBlockedError) as exc_info:
            pre_auth.lambda_handler(event, lambda_context)
        assert str(exc_info.value) == "This user is blocked. Reason: TEST"
        assert exc_info.value.email == "blocked@example.com"


class TestPostConfirmationHandler:
    """Test the post-confirmation Lambda handler."""

    def test_describe_sign_up(self):
        fields = post_confirmation.describe_confirmation(
            post_confirmation.CONFIRM_SIGN_UP,
            {"email": "customer@example.com", "email_verified": "true", "name": "Ada Lovelace"},
        )
        assert fields["sign_up"]
        assert fields["email_verified"]
        assert fields["has_fullname"]

    def test_describe_password_reset(self):
        fields = post_confirmation.describe_confirmation(
            post_confirmation.CONFIRM_FORGOT_PASSWORD, {"email": "customer@example.com"}
        )
        assert not fields["sign_up"]
        assert not fields["email_verified"]

    @pytest.mark.parametrize(
        "trigger_source",
        [post_confirmation.CONFIRM_SIGN_UP, post_confirmation.CONFIRM_FORGOT_PASSWORD],
    )
    def test_returns_event(self, lambda_context, trigger_source):
        """Test that the hook never vetoes a confirmation."""
        event = _trigger_event(trigger_source, "customer@example.com", email_verified="true")
        assert post_confirmation.lambda_handler(event, lambda_context) == event
