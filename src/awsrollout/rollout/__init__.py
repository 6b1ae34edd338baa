"""Multi-account, multi-region rollout engine.

This package enumerates (account, region) targets, deploys a template to each
one with bounded retries, and reports one outcome per target.
"""

from .backoff import BackoffStrategy, ExponentialBackoffStrategy, FixedBackoffStrategy
from .cancellation import CancellationToken
from .errors import ERROR_ACTIONS, ErrorCategory, ErrorClassification, ErrorClassifier, RetryAction
from .exceptions import (
    AuthenticationError,
    DeploymentFailedError,
    PlanValidationError,
    RolloutError,
    TemplateError,
)
from .executor import DeployExecutor
from .models import (
    DeploymentContext,
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentStatus,
    RunSummary,
    Target,
    TemplateRef,
)
from .naming import UniqueNameGenerator
from .provider import CloudFormationProvider, DeploymentProvider
from .reporting import ReportGenerator, ReportingSink, RunLogReader
from .scheduler import BatchScheduler, partition_waves

__all__ = [
    "AuthenticationError",
    "BackoffStrategy",
    "BatchScheduler",
    "CancellationToken",
    "CloudFormationProvider",
    "DeployExecutor",
    "DeploymentContext",
    "DeploymentFailedError",
    "DeploymentOutcome",
    "DeploymentProvider",
    "DeploymentRequest",
    "DeploymentStatus",
    "ERROR_ACTIONS",
    "ErrorCategory",
    "ErrorClassification",
    "ErrorClassifier",
    "ExponentialBackoffStrategy",
    "FixedBackoffStrategy",
    "PlanValidationError",
    "ReportGenerator",
    "ReportingSink",
    "RetryAction",
    "RolloutError",
    "RunLogReader",
    "RunSummary",
    "Target",
    "TemplateError",
    "TemplateRef",
    "UniqueNameGenerator",
    "partition_waves",
]
