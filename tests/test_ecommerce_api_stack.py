"""
Unit tests for the E-Commerce API stacks.

Tests Cognito realms, API Gateway authorizers, validators, methods and
permission grants in the synthesized templates.
"""

import pytest
import aws_cdk as cdk
from aws_cdk import assertions

from infrastructure.config.environment_config import EnvironmentConfig
from infrastructure.stacks.ecommerce_api_stack import ECommerceApiStack
from infrastructure.stacks.handlers_stack import ECommerceHandlersStack, handler_role_name
from infrastructure.stacks.layers_stack import ECommerceLayersStack
from src.surface.builder import REQUIRED_HANDLERS
from src.surface.errors import SurfaceBuildError


TEST_ENV = cdk.Environment(account="123456789012", region="us-east-1")


def _config(**overrides):
    return EnvironmentConfig.get_config("dev").with_overrides(aws_account="123456789012", **overrides)


def _synth_api_stack(config):
    app = cdk.App()
    handlers_stack = ECommerceHandlersStack(app, "TestHandlers", config=config, env=TEST_ENV)
    api_stack = ECommerceApiStack(
        app, "TestApi", config=config, handlers=handlers_stack.handlers, env=TEST_ENV
    )
    return api_stack, assertions.Template.from_stack(api_stack)


@pytest.fixture(scope="module")
def api_stack_and_template():
    return _synth_api_stack(_config())


@pytest.fixture(scope="module")
def template(api_stack_and_template):
    return api_stack_and_template[1]


def _user_lookup_policies(template):
    policies = template.find_resources("AWS::IAM::Policy")
    return {
        logical_id: resource["Properties"]
        for logical_id, resource in policies.items()
        if any(
            statement.get("Action") == "cognito-idp:AdminGetUser"
            for statement in resource["Properties"]["PolicyDocument"]["Statement"]
        )
    }


class TestIdentityRealms:
    """Test Cognito user pools, resource servers and clients."""

    def test_two_user_pools(self, template):
        template.resource_count_is("AWS::Cognito::UserPool", 2)

    def test_customer_pool_self_sign_up(self, template):
        """Test that customers register themselves and verify by code."""
        template.has_resource_properties(
            "AWS::Cognito::UserPool",
            {
                "UserPoolName": "CustomerPool-dev",
                "AdminCreateUserConfig": {"AllowAdminCreateUserOnly": False},
                "UsernameAttributes": ["email"],
                "VerificationMessageTemplate": assertions.Match.object_like({
                    "DefaultEmailOption": "CONFIRM_WITH_CODE",
                    "EmailSubject": "Verify your email for the ECommerce service!",
                }),
                "Schema": assertions.Match.array_with([
                    {"Name": "name", "Required": True, "Mutable": False}
                ]),
                "LambdaConfig": {
                    "PreAuthentication": assertions.Match.any_value(),
                    "PostConfirmation": assertions.Match.any_value(),
                },
            },
        )

    def test_admin_pool_invite_only(self, template):
        """Test that administrators are invited, never self registered."""
        template.has_resource_properties(
            "AWS::Cognito::UserPool",
            {
                "UserPoolName": "AdminPool-dev",
                "AdminCreateUserConfig": assertions.Match.object_like({
                    "AllowAdminCreateUserOnly": True,
                    "InviteMessageTemplate": assertions.Match.object_like({
                        "EmailSubject": "Welcome to ECommerce administrator service",
                    }),
                }),
                "LambdaConfig": assertions.Match.absent(),
            },
        )

    def test_password_policy(self, template):
        template.all_resources_properties(
            "AWS::Cognito::UserPool",
            {
                "Policies": {
                    "PasswordPolicy": {
                        "MinimumLength": 8,
                        "RequireLowercase": True,
                        "RequireUppercase": True,
                        "RequireNumbers": True,
                        "RequireSymbols": False,
                        "TemporaryPasswordValidityDays": 3,
                    }
                },
                "AccountRecoverySetting": {
                    "RecoveryMechanisms": [{"Name": "verified_email", "Priority": 1}]
                },
            },
        )

    def test_resource_servers(self, template):
        template.has_resource_properties(
            "AWS::Cognito::UserPoolResourceServer",
            {
                "Identifier": "customer",
                "Name": "CustomerResourceServer",
                "Scopes": [
                    {"ScopeName": "web", "ScopeDescription": "Customer Web operation"},
                    {"ScopeName": "mobile", "ScopeDescription": "Customer Mobile operation"},
                ],
            },
        )
        template.has_resource_properties(
            "AWS::Cognito::UserPoolResourceServer",
            {
                "Identifier": "admin",
                "Scopes": [{"ScopeName": "web", "ScopeDescription": "Admin Web operation"}],
            },
        )

    def test_domains(self, template):
        template.has_resource_properties("AWS::Cognito::UserPoolDomain", {"Domain": "ecommerce-customer-service-dev"})
        template.has_resource_properties("AWS::Cognito::UserPoolDomain", {"Domain": "ecommerce-admin-service-dev"})

    @pytest.mark.parametrize("client_name", ["customerWebClient", "customerMobileClient", "adminWebClient"])
    def test_clients(self, template, client_name):
        """Test token validity and auth flows on every client."""
        template.has_resource_properties(
            "AWS::Cognito::UserPoolClient",
            {
                "ClientName": client_name,
                "AccessTokenValidity": 60,
                "RefreshTokenValidity": 10080,
                "ExplicitAuthFlows": assertions.Match.array_with(["ALLOW_USER_PASSWORD_AUTH"]),
                "AllowedOAuthScopes": assertions.Match.any_value(),
            },
        )

    def test_client_count(self, template):
        template.resource_count_is("AWS::Cognito::UserPoolClient", 3)


class TestAuthHooks:
    """Test the identity hook Lambdas."""

    def test_hook_functions(self, template):
        template.resource_count_is("AWS::Lambda::Function", 2)
        template.all_resources_properties(
            "AWS::Lambda::Function",
            {
                "Runtime": "python3.11",
                "MemorySize": 128,
                "Timeout": 2,
                "TracingConfig": {"Mode": "Active"},
            },
        )

    def test_blocklist_parameter(self, template):
        """Test that the pre-authentication hook reads its blocklist from SSM."""
        template.has_resource_properties(
            "AWS::SSM::Parameter",
            {"Name": "/ecommerce/dev/auth/blocked-emails", "Value": "blocked-user@example.com"},
        )
        template.has_resource_properties(
            "AWS::Lambda::Function",
            {
                "FunctionName": "ecommerce-pre-authentication-dev",
                "Environment": {
                    "Variables": assertions.Match.object_like({
                        "BLOCKLIST_PARAMETER": "/ecommerce/dev/auth/blocked-emails",
                    })
                },
            },
        )


class TestRestApi:
    """Test the REST API shape."""

    def test_resources(self, template):
        resources = template.find_resources("AWS::ApiGateway::Resource")
        assert sorted(r["Properties"]["PathPart"] for r in resources.values()) == [
            "events", "orders", "products", "{id}",
        ]

    def test_method_count(self, template):
        template.resource_count_is("AWS::ApiGateway::Method", 9)

    def test_authorizers(self, template):
        """Test that each authorizer trusts the expected number of pools."""
        authorizers = {
            r["Properties"]["Name"]: r["Properties"]
            for r in template.find_resources("AWS::ApiGateway::Authorizer").values()
        }
        assert set(authorizers) == {"ProductsAuthorizer", "ProductsAdminAuthorizer", "OrdersAuthorizer"}
        assert all(a["Type"] == "COGNITO_USER_POOLS" for a in authorizers.values())
        assert len(authorizers["ProductsAuthorizer"]["ProviderARNs"]) == 2
        assert len(authorizers["ProductsAdminAuthorizer"]["ProviderARNs"]) == 1
        assert len(authorizers["OrdersAuthorizer"]["ProviderARNs"]) == 2

    def test_every_method_uses_cognito(self, template):
        template.all_resources_properties(
            "AWS::ApiGateway::Method",
            {"AuthorizationType": "COGNITO_USER_POOLS"},
        )

    def test_order_deletion_method(self, template):
        """Test DELETE /orders scopes and required query parameters."""
        template.has_resource_properties(
            "AWS::ApiGateway::Method",
            {
                "HttpMethod": "DELETE",
                "AuthorizationScopes": ["admin/web", "customer/web"],
                "RequestParameters": {
                    "method.request.querystring.email": True,
                    "method.request.querystring.orderId": True,
                },
                "RequestValidatorId": assertions.Match.any_value(),
            },
        )

    def test_products_fetch_scopes(self, template):
        template.has_resource_properties(
            "AWS::ApiGateway::Method",
            {
                "HttpMethod": "GET",
                "AuthorizationScopes": ["admin/web", "customer/mobile", "customer/web"],
            },
        )

    def test_request_validators(self, template):
        template.resource_count_is("AWS::ApiGateway::RequestValidator", 4)
        template.has_resource_properties(
            "AWS::ApiGateway::RequestValidator",
            {"Name": "OrderRequestValidator", "ValidateRequestBody": True, "ValidateRequestParameters": False},
        )
        template.has_resource_properties(
            "AWS::ApiGateway::RequestValidator",
            {"Name": "OrderDeletionValidator", "ValidateRequestBody": False, "ValidateRequestParameters": True},
        )

    def test_order_model(self, template):
        """Test the order body model schema."""
        template.has_resource_properties(
            "AWS::ApiGateway::Model",
            {
                "Name": "OrderModel",
                "ContentType": "application/json",
                "Schema": assertions.Match.object_like({
                    "type": "object",
                    "required": ["productIds", "payment"],
                    "properties": {
                        "productIds": {"type": "array", "minItems": 1, "items": {"type": "string"}},
                        "payment": {"type": "string", "enum": ["CASH", "DEBIT_CARD", "CREDIT_CARD"]},
                    },
                }),
            },
        )

    def test_access_logging(self, template):
        template.has_resource_properties(
            "AWS::ApiGateway::Stage",
            {
                "StageName": "prod",
                "AccessLogSetting": assertions.Match.object_like({"DestinationArn": assertions.Match.any_value()}),
            },
        )
        template.has_resource_properties(
            "AWS::Logs::LogGroup",
            {"LogGroupName": "/aws/apigateway/ecommerce-api-dev", "RetentionInDays": 7},
        )
        template.resource_count_is("AWS::ApiGateway::Account", 1)

    def test_invoke_permissions(self, template):
        """Test one API Gateway invoke permission per handler."""
        permissions = template.find_resources(
            "AWS::Lambda::Permission",
            {"Properties": {"Principal": "apigateway.amazonaws.com"}},
        )
        assert len(permissions) == len(REQUIRED_HANDLERS)


class TestGrants:
    """Test AdminGetUser grants on handler roles."""

    def test_admin_and_customer_grants(self, template):
        policies = _user_lookup_policies(template)
        assert sorted(tuple(p["Roles"]) for p in policies.values()) == [
            (handler_role_name("OrdersFunction"),),
            (handler_role_name("ProductsAdminFunction"), handler_role_name("OrdersFunction")),
        ]

    def test_customer_grant_can_be_disabled(self):
        _, template = _synth_api_stack(_config(grant_orders_customer_lookup=False))
        policies = _user_lookup_policies(template)
        assert len(policies) == 1


class TestOutputs:
    """Test stack outputs."""

    @pytest.mark.parametrize(
        "output",
        ["ApiUrl", "CustomerPoolId", "AdminPoolId", "CustomerWebClientId", "CustomerMobileClientId", "AdminWebClientId"],
    )
    def test_output_present(self, template, output):
        assert output in template.find_outputs("*")

    def test_deployed_result(self, api_stack_and_template):
        """Test the immutable result handed back by the stack."""
        stack, _ = api_stack_and_template
        deployed = stack.deployed
        assert set(deployed.realms) == {"customer", "admin"}
        assert set(deployed.grants) == {"AdminGetUserPolicy", "CustomerGetUserPolicy"}
        assert deployed.surface is stack.surface
        with pytest.raises(TypeError):
            deployed.realms["partner"] = None


class TestStackFailures:
    """Test that an invalid surface aborts synthesis."""

    def test_missing_handler(self):
        app = cdk.App()
        config = _config()
        handlers_stack = ECommerceHandlersStack(app, "TestHandlers", config=config, env=TEST_ENV)
        handlers = dict(handlers_stack.handlers)
        del handlers["orderEventsFetchHandler"]
        with pytest.raises(SurfaceBuildError, match="orderEventsFetchHandler"):
            ECommerceApiStack(app, "TestApi", config=config, handlers=handlers, env=TEST_ENV)


class TestSupportingStacks:
    """Test the layers and handler reference stacks."""

    def test_layers_stack(self):
        app = cdk.App()
        stack = ECommerceLayersStack(app, "TestLayers", config=_config(), env=TEST_ENV)
        template = assertions.Template.from_stack(stack)
        template.resource_count_is("AWS::Lambda::LayerVersion", 1)
        template.has_resource_properties(
            "AWS::SSM::Parameter",
            {"Name": "/ecommerce/dev/layers/SharedLayerVersionArn", "Type": "String"},
        )

    def test_handlers_stack_imports_every_handler(self):
        app = cdk.App()
        stack = ECommerceHandlersStack(app, "TestHandlers", config=_config(), env=TEST_ENV)
        assert set(stack.handlers) == set(REQUIRED_HANDLERS)
        assert all(fn.role is not None for fn in stack.handlers.values())
