"""Deployment providers.

The rollout core only sees the ``DeploymentProvider`` interface. The
CloudFormation implementation performs an idempotent create-or-update of one
stack and waits for it to settle.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import ClientError, WaiterError

from .exceptions import DeploymentFailedError, TemplateError
from .models import DeploymentContext, DeploymentRequest

logger = logging.getLogger(__name__)

NO_UPDATES_MESSAGE = "No updates are to be performed"
UNRECOVERABLE_STATES = {"ROLLBACK_COMPLETE", "ROLLBACK_FAILED", "DELETE_FAILED"}


def template_source(uri: str) -> Dict[str, str]:
    """Build the CloudFormation template argument for a URI.

    Remote URIs are passed through as ``TemplateURL``; local paths (optionally
    prefixed with ``file://``) are read and sent as ``TemplateBody``.
    """
    if uri.startswith(("https://", "http://", "s3://")):
        return {"TemplateURL": uri}

    path = Path(uri[len("file://") :] if uri.startswith("file://") else uri).expanduser()
    if not path.is_file():
        raise TemplateError(f"Template file not found: {path}", uri=uri)
    try:
        return {"TemplateBody": path.read_text(encoding="utf-8")}
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateError(f"Failed to read template file {path}: {e}", uri=uri)


class DeploymentProvider(ABC):
    """Performs one create-or-update against a target."""

    @abstractmethod
    def deploy(self, request: DeploymentRequest, context: DeploymentContext) -> str:
        """Create or update the deployment described by the request.

        Args:
            request: Deployment request for a single attempt
            context: Credentials for the request's account

        Returns:
            Provider identifier of the deployed resource

        Raises:
            Exception: Any provider error; the executor classifies it
        """
        pass


class CloudFormationProvider(DeploymentProvider):
    """Deploys a CloudFormation stack per request."""

    def __init__(
        self,
        capabilities: Optional[Sequence[str]] = None,
        on_failure: str = "DELETE",
        poll_delay: int = 15,
        max_wait_attempts: int = 120,
    ):
        """Initialize the CloudFormation provider.

        Args:
            capabilities: Capabilities acknowledged for every stack
            on_failure: Action on create failure ('DELETE', 'ROLLBACK' or 'DO_NOTHING')
            poll_delay: Seconds between waiter polls
            max_wait_attempts: Waiter poll limit
        """
        self.capabilities = list(capabilities or [])
        self.on_failure = on_failure
        self.poll_delay = poll_delay
        self.max_wait_attempts = max_wait_attempts

    def deploy(self, request: DeploymentRequest, context: DeploymentContext) -> str:
        session = context.create_session(request.target.region)
        cfn = session.client("cloudformation")
        stack_name = request.generated_name

        existing = self._describe_stack(cfn, stack_name)
        if existing is None:
            return self._create_stack(cfn, request)

        status = existing.get("StackStatus", "")
        if status in UNRECOVERABLE_STATES:
            raise DeploymentFailedError(
                f"Stack {stack_name} is in {status} state and can not be updated",
                code="AlreadyExistsException",
                resource_id=existing.get("StackId"),
            )
        if status.endswith("_IN_PROGRESS"):
            raise DeploymentFailedError(
                f"Stack {stack_name} is in {status} state",
                code="OperationInProgressException",
                resource_id=existing.get("StackId"),
            )

        return self._update_stack(cfn, request, existing["StackId"])

    def _describe_stack(self, cfn: Any, stack_name: str) -> Optional[Dict[str, Any]]:
        try:
            response = cfn.describe_stacks(StackName=stack_name)
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message", "")
            if "does not exist" in message:
                return None
            raise

        stacks = response.get("Stacks", [])
        return stacks[0] if stacks else None

    def _stack_arguments(self, request: DeploymentRequest) -> Dict[str, Any]:
        arguments: Dict[str, Any] = {
            "StackName": request.generated_name,
            "Parameters": [
                {"ParameterKey": key, "ParameterValue": value}
                for key, value in request.parameters.items()
            ],
        }
        arguments.update(template_source(request.template.uri))
        if self.capabilities:
            arguments["Capabilities"] = self.capabilities
        if request.tags:
            arguments["Tags"] = [{"Key": k, "Value": v} for k, v in request.tags.items()]
        return arguments

    def _create_stack(self, cfn: Any, request: DeploymentRequest) -> str:
        arguments = self._stack_arguments(request)
        arguments["OnFailure"] = self.on_failure

        logger.info(
            f"Creating stack {request.generated_name} in {request.target.get_display_name()}"
        )
        response = cfn.create_stack(**arguments)
        stack_id = response["StackId"]
        self._wait(cfn, "stack_create_complete", stack_id, request.generated_name)
        return stack_id

    def _update_stack(self, cfn: Any, request: DeploymentRequest, stack_id: str) -> str:
        arguments = self._stack_arguments(request)

        logger.info(
            f"Updating stack {request.generated_name} in {request.target.get_display_name()}"
        )
        try:
            cfn.update_stack(**arguments)
        except ClientError as e:
            if NO_UPDATES_MESSAGE in e.response.get("Error", {}).get("Message", ""):
                logger.debug(f"Stack {request.generated_name} is already up to date")
                return stack_id
            raise

        self._wait(cfn, "stack_update_complete", stack_id, request.generated_name)
        return stack_id

    def _wait(self, cfn: Any, waiter_name: str, stack_id: str, stack_name: str) -> None:
        waiter = cfn.get_waiter(waiter_name)
        try:
            waiter.wait(
                StackName=stack_id,
                WaiterConfig={"Delay": self.poll_delay, "MaxAttempts": self.max_wait_attempts},
            )
        except WaiterError as e:
            reason = self._failure_reason(cfn, stack_id) or str(e)
            raise DeploymentFailedError(
                f"Stack {stack_name} did not complete: {reason}", resource_id=stack_id
            )

    def _failure_reason(self, cfn: Any, stack_id: str) -> Optional[str]:
        """Find the first failed resource event for a stack, if any."""
        try:
            response = cfn.describe_stack_events(StackName=stack_id)
        except ClientError as e:
            logger.debug(f"Could not read stack events for {stack_id}: {e}")
            return None

        events: List[Dict[str, Any]] = response.get("StackEvents", [])
        # Events are newest first; the earliest failure is the root cause.
        for event in reversed(events):
            if event.get("ResourceStatus", "").endswith("_FAILED"):
                return event.get("ResourceStatusReason")
        return None
