"""Tests for the CloudFormation deployment provider."""

from unittest.mock import Mock

import pytest
from botocore.exceptions import WaiterError

from src.awsrollout.rollout.errors import ErrorCategory, ErrorClassifier
from src.awsrollout.rollout.exceptions import DeploymentFailedError, TemplateError
from src.awsrollout.rollout.models import DeploymentContext, DeploymentRequest, Target, TemplateRef
from src.awsrollout.rollout.provider import CloudFormationProvider, template_source
from tests.fixtures.rollout import client_error

TEMPLATE_URL = "https://example-bucket.s3.amazonaws.com/template.yaml"
STACK_ID = "arn:aws:cloudformation:us-east-1:123456789012:stack/rollout/abc"


def make_request(uri=TEMPLATE_URL, tags=None):
    return DeploymentRequest(
        target=Target("123456789012", "us-east-1"),
        template=TemplateRef(uri=uri),
        parameters={"Env": "prod"},
        generated_name="rollout-123456789012-us-east-1",
        tags=tags or {},
    )


@pytest.fixture
def mock_cfn():
    """Mock CloudFormation client with no existing stack."""
    cfn = Mock()
    cfn.describe_stacks.side_effect = client_error(
        "ValidationError", "Stack with id rollout does not exist", "DescribeStacks"
    )
    cfn.create_stack.return_value = {"StackId": STACK_ID}
    return cfn


@pytest.fixture
def mock_context(mock_cfn):
    """Context whose sessions hand out the mock CloudFormation client."""
    context = Mock(spec=DeploymentContext)
    context.create_session.return_value.client.return_value = mock_cfn
    return context


def existing_stack(status):
    return {"Stacks": [{"StackId": STACK_ID, "StackStatus": status}]}


class TestCloudFormationProvider:
    """Test cases for CloudFormationProvider."""

    def test_create_new_stack(self, mock_cfn, mock_context):
        provider = CloudFormationProvider(capabilities=["CAPABILITY_IAM"], poll_delay=1)

        stack_id = provider.deploy(make_request(tags={"team": "platform"}), mock_context)

        assert stack_id == STACK_ID
        mock_context.create_session.assert_called_once_with("us-east-1")
        kwargs = mock_cfn.create_stack.call_args.kwargs
        assert kwargs["StackName"] == "rollout-123456789012-us-east-1"
        assert kwargs["TemplateURL"] == TEMPLATE_URL
        assert kwargs["Parameters"] == [{"ParameterKey": "Env", "ParameterValue": "prod"}]
        assert kwargs["Capabilities"] == ["CAPABILITY_IAM"]
        assert kwargs["Tags"] == [{"Key": "team", "Value": "platform"}]
        assert kwargs["OnFailure"] == "DELETE"
        mock_cfn.get_waiter.assert_called_once_with("stack_create_complete")
        mock_cfn.get_waiter.return_value.wait.assert_called_once_with(
            StackName=STACK_ID, WaiterConfig={"Delay": 1, "MaxAttempts": 120}
        )

    def test_update_existing_stack(self, mock_cfn, mock_context):
        mock_cfn.describe_stacks.side_effect = None
        mock_cfn.describe_stacks.return_value = existing_stack("CREATE_COMPLETE")
        provider = CloudFormationProvider()

        stack_id = provider.deploy(make_request(), mock_context)

        assert stack_id == STACK_ID
        mock_cfn.create_stack.assert_not_called()
        mock_cfn.update_stack.assert_called_once()
        assert "OnFailure" not in mock_cfn.update_stack.call_args.kwargs
        mock_cfn.get_waiter.assert_called_once_with("stack_update_complete")

    def test_update_without_changes_succeeds(self, mock_cfn, mock_context):
        """Test an up-to-date stack counts as a successful deployment."""
        mock_cfn.describe_stacks.side_effect = None
        mock_cfn.describe_stacks.return_value = existing_stack("UPDATE_COMPLETE")
        mock_cfn.update_stack.side_effect = client_error(
            "ValidationError", "No updates are to be performed.", "UpdateStack"
        )
        provider = CloudFormationProvider()

        assert provider.deploy(make_request(), mock_context) == STACK_ID
        mock_cfn.get_waiter.assert_not_called()

    def test_other_update_errors_propagate(self, mock_cfn, mock_context):
        mock_cfn.describe_stacks.side_effect = None
        mock_cfn.describe_stacks.return_value = existing_stack("UPDATE_COMPLETE")
        mock_cfn.update_stack.side_effect = client_error("Throttling", "Rate exceeded")
        provider = CloudFormationProvider()

        with pytest.raises(Exception) as exc_info:
            provider.deploy(make_request(), mock_context)

        assert "Rate exceeded" in str(exc_info.value)

    def test_rolled_back_stack_is_a_name_conflict(self, mock_cfn, mock_context):
        """Test a stack that can not be updated is classified as a name conflict."""
        mock_cfn.describe_stacks.side_effect = None
        mock_cfn.describe_stacks.return_value = existing_stack("ROLLBACK_COMPLETE")
        provider = CloudFormationProvider()

        with pytest.raises(DeploymentFailedError) as exc_info:
            provider.deploy(make_request(), mock_context)

        classification = ErrorClassifier().classify(exc_info.value)
        assert classification.category == ErrorCategory.NAME_CONFLICT
        assert exc_info.value.resource_id == STACK_ID

    def test_in_progress_stack_is_transient(self, mock_cfn, mock_context):
        mock_cfn.describe_stacks.side_effect = None
        mock_cfn.describe_stacks.return_value = existing_stack("UPDATE_IN_PROGRESS")
        provider = CloudFormationProvider()

        with pytest.raises(DeploymentFailedError) as exc_info:
            provider.deploy(make_request(), mock_context)

        classification = ErrorClassifier().classify(exc_info.value)
        assert classification.category == ErrorCategory.TRANSIENT_PROVIDER_STATE

    def test_waiter_failure_reports_first_failed_event(self, mock_cfn, mock_context):
        mock_cfn.get_waiter.return_value.wait.side_effect = WaiterError(
            "StackCreateComplete", "Waiter encountered a terminal failure state", {}
        )
        mock_cfn.describe_stack_events.return_value = {
            "StackEvents": [
                {"ResourceStatus": "ROLLBACK_IN_PROGRESS", "ResourceStatusReason": "rolling back"},
                {"ResourceStatus": "CREATE_FAILED", "ResourceStatusReason": "Resource cancelled"},
                {
                    "ResourceStatus": "CREATE_FAILED",
                    "ResourceStatusReason": "Maximum number of buckets reached",
                },
            ]
        }
        provider = CloudFormationProvider()

        with pytest.raises(DeploymentFailedError) as exc_info:
            provider.deploy(make_request(), mock_context)

        assert "Maximum number of buckets reached" in str(exc_info.value)
        classification = ErrorClassifier().classify(exc_info.value)
        assert classification.category == ErrorCategory.QUOTA_EXCEEDED

    def test_describe_errors_propagate(self, mock_cfn, mock_context):
        mock_cfn.describe_stacks.side_effect = client_error(
            "AccessDenied", "not authorized", "DescribeStacks"
        )
        provider = CloudFormationProvider()

        with pytest.raises(Exception):
            provider.deploy(make_request(), mock_context)

        mock_cfn.create_stack.assert_not_called()


class TestTemplateSource:
    """Test template argument construction."""

    def test_remote_uri(self):
        assert template_source(TEMPLATE_URL) == {"TemplateURL": TEMPLATE_URL}

    def test_local_file(self, tmp_path):
        template = tmp_path / "template.yaml"
        template.write_text("Resources: {}\n")

        assert template_source(str(template)) == {"TemplateBody": "Resources: {}\n"}
        assert template_source(f"file://{template}") == {"TemplateBody": "Resources: {}\n"}

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(TemplateError):
            template_source(str(tmp_path / "missing.yaml"))
