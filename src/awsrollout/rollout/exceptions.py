"""Custom exception classes for rollout operations."""

from typing import Any, Dict, List, Optional


class RolloutError(Exception):
    """Base exception for rollout operations."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize rollout error.

        Args:
            message: Error message
            context: Additional context information
        """
        super().__init__(message)
        self.context = context or {}


class AuthenticationError(RolloutError):
    """Raised when the caller cannot authenticate. Aborts the whole run."""


class PlanValidationError(RolloutError):
    """Raised when a rollout plan fails validation."""

    def __init__(self, errors: List[str], plan_name: Optional[str] = None):
        """Initialize plan validation error.

        Args:
            errors: List of validation error messages
            plan_name: Name of the plan that failed validation
        """
        summary = "Rollout plan validation failed"
        if plan_name:
            summary += f" for '{plan_name}'"
        if len(errors) == 1:
            summary += f": {errors[0]}"
        else:
            summary += f" with {len(errors)} errors"

        super().__init__(summary, context={"errors": errors, "plan_name": plan_name})
        self.errors = errors


class TemplateError(RolloutError):
    """Raised when a template cannot be inspected or its parameters do not match."""

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message, context={"uri": uri})
        self.uri = uri


class DeploymentFailedError(RolloutError):
    """A deployment reached a failed state on the provider side.

    Carries a structured ``code`` when one is known so the classifier does not
    have to fall back to message matching.
    """

    def __init__(self, message: str, code: Optional[str] = None, resource_id: Optional[str] = None):
        super().__init__(message, context={"code": code, "resource_id": resource_id})
        self.code = code
        self.resource_id = resource_id

