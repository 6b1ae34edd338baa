"""Error classification for rollout deployments.

This module maps provider errors to a small taxonomy and maps each category
to the action the executor takes. Structured error codes are matched first;
message patterns are only a fallback for errors that carry no usable code.

Classes:
    ErrorCategory: Enumeration of deployment error categories
    RetryAction: What the executor does for a category
    ErrorClassification: Result of classifying one exception
    ErrorClassifier: Code-first, message-fallback classifier
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError

from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Enumeration of deployment error categories."""

    CAPABILITY_UNAVAILABLE = "CapabilityUnavailable"
    QUOTA_EXCEEDED = "QuotaExceeded"
    POLICY_BLOCKED = "PolicyBlocked"
    NAME_CONFLICT = "NameConflict"
    TRANSIENT_PROVIDER_STATE = "TransientProviderState"
    UNCLASSIFIED = "Unclassified"
    AUTHENTICATION = "Authentication"


class RetryAction(str, Enum):
    """Action taken by the executor for a classified error."""

    SKIP = "skip"
    FAIL = "fail"
    BLOCK = "block"
    RENAME_AND_RETRY = "rename_and_retry"
    BACKOFF_AND_RETRY = "backoff_and_retry"
    ABORT = "abort"


ERROR_ACTIONS: Dict[ErrorCategory, RetryAction] = {
    ErrorCategory.CAPABILITY_UNAVAILABLE: RetryAction.SKIP,
    ErrorCategory.QUOTA_EXCEEDED: RetryAction.FAIL,
    ErrorCategory.POLICY_BLOCKED: RetryAction.BLOCK,
    ErrorCategory.NAME_CONFLICT: RetryAction.RENAME_AND_RETRY,
    ErrorCategory.TRANSIENT_PROVIDER_STATE: RetryAction.BACKOFF_AND_RETRY,
    ErrorCategory.UNCLASSIFIED: RetryAction.BACKOFF_AND_RETRY,
    ErrorCategory.AUTHENTICATION: RetryAction.ABORT,
}

DEFAULT_ERROR_CODES: Dict[ErrorCategory, List[str]] = {
    ErrorCategory.CAPABILITY_UNAVAILABLE: [
        "OptInRequired",
        "UnsupportedOperation",
        "UnsupportedRegion",
        "InvalidRegion",
        "RegionDisabledException",
    ],
    ErrorCategory.QUOTA_EXCEEDED: [
        "LimitExceededException",
        "LimitExceeded",
        "ServiceQuotaExceededException",
        "InstanceLimitExceeded",
        "VcpuLimitExceeded",
        "AddressLimitExceeded",
        "VpcLimitExceeded",
    ],
    ErrorCategory.POLICY_BLOCKED: [
        "AccessDenied",
        "AccessDeniedException",
        "UnauthorizedOperation",
        "AuthorizationError",
        "InsufficientCapabilitiesException",
    ],
    ErrorCategory.NAME_CONFLICT: [
        "AlreadyExistsException",
        "AlreadyExists",
        "EntityAlreadyExists",
        "BucketAlreadyExists",
        "NameConflict",
    ],
    ErrorCategory.TRANSIENT_PROVIDER_STATE: [
        "Throttling",
        "ThrottlingException",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "InternalFailure",
        "InternalError",
        "RequestTimeout",
        "RequestTimeoutException",
        "OperationInProgressException",
        "PendingVerification",
        "SubscriptionRequiredException",
    ],
    ErrorCategory.AUTHENTICATION: [
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "UnrecognizedClientException",
        "SignatureDoesNotMatch",
        "AuthFailure",
    ],
}

# Fallback only; provider messages are not a stable interface.
DEFAULT_MESSAGE_PATTERNS: Dict[ErrorCategory, List[str]] = {
    ErrorCategory.CAPABILITY_UNAVAILABLE: [
        r"not (?:supported|available) in (?:this|the) region",
        r"is not supported in region",
        r"region .* is (?:not enabled|disabled)",
    ],
    ErrorCategory.QUOTA_EXCEEDED: [
        r"quota",
        r"limit exceeded",
        r"maximum number of .* (?:reached|exceeded)",
    ],
    ErrorCategory.POLICY_BLOCKED: [
        r"explicit deny",
        r"service control polic",
        r"not authorized to perform",
        r"denied by (?:a |an )?polic",
    ],
    ErrorCategory.NAME_CONFLICT: [
        r"already exists",
        r"name .* (?:is )?(?:already )?in use",
        r"ROLLBACK_COMPLETE state and can not be updated",
    ],
    ErrorCategory.TRANSIENT_PROVIDER_STATE: [
        r"rate exceeded",
        r"_IN_PROGRESS state",
        r"not (?:yet )?registered",
        r"try again",
        r"temporarily unavailable",
    ],
}


@dataclass(frozen=True)
class ErrorClassification:
    """Result of classifying one exception."""

    category: ErrorCategory
    action: RetryAction
    code: Optional[str]
    message: str
    matched_by: str  # 'code', 'pattern', 'type' or 'default'

    def is_terminal(self) -> bool:
        """Check if retrying cannot change the outcome."""
        return self.action in {RetryAction.SKIP, RetryAction.FAIL, RetryAction.BLOCK}

    def is_retryable(self) -> bool:
        """Check if the executor retries this error."""
        return self.action in {RetryAction.RENAME_AND_RETRY, RetryAction.BACKOFF_AND_RETRY}


def extract_error_code(error: Exception) -> Optional[str]:
    """Get the structured error code from an exception, if it has one."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code") or None
    return getattr(error, "code", None) or None


def extract_error_message(error: Exception) -> str:
    """Get the human-readable provider message from an exception."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message") or str(error)
    return str(error)


class ErrorClassifier:
    """Classifies deployment errors into categories and actions."""

    def __init__(
        self,
        extra_codes: Optional[Mapping[str, Iterable[str]]] = None,
        extra_patterns: Optional[Mapping[str, Iterable[str]]] = None,
    ):
        """Initialize the classifier.

        Args:
            extra_codes: Additional error codes per category value
            extra_patterns: Additional message regexes per category value
        """
        self._codes: Dict[str, ErrorCategory] = {}
        for category, codes in DEFAULT_ERROR_CODES.items():
            for code in codes:
                self._codes[code] = category

        patterns: Dict[ErrorCategory, List[str]] = {
            category: list(values) for category, values in DEFAULT_MESSAGE_PATTERNS.items()
        }

        for category_name, codes in (extra_codes or {}).items():
            category = ErrorCategory(category_name)
            for code in codes:
                self._codes[code] = category

        for category_name, values in (extra_patterns or {}).items():
            patterns.setdefault(ErrorCategory(category_name), []).extend(values)

        self._patterns = [
            (category, re.compile(pattern, re.IGNORECASE))
            for category, values in patterns.items()
            for pattern in values
        ]

    def classify(self, error: Exception) -> ErrorClassification:
        """Classify an exception.

        Args:
            error: Exception raised by a deployment attempt

        Returns:
            ErrorClassification with the category and action
        """
        code = extract_error_code(error)
        message = extract_error_message(error)

        if isinstance(error, (AuthenticationError, NoCredentialsError, PartialCredentialsError)):
            return self._build(ErrorCategory.AUTHENTICATION, code, message, "type")

        if code and code in self._codes:
            return self._build(self._codes[code], code, message, "code")

        for category, pattern in self._patterns:
            if pattern.search(message):
                logger.debug(f"Classified error by message pattern '{pattern.pattern}': {message}")
                return self._build(category, code, message, "pattern")

        if isinstance(error, (ConnectionError, TimeoutError)):
            return self._build(ErrorCategory.TRANSIENT_PROVIDER_STATE, code, message, "type")

        return self._build(ErrorCategory.UNCLASSIFIED, code, message, "default")

    def action_for(self, category: ErrorCategory) -> RetryAction:
        """Get the action for a category."""
        return ERROR_ACTIONS[category]

    def _build(
        self, category: ErrorCategory, code: Optional[str], message: str, matched_by: str
    ) -> ErrorClassification:
        return ErrorClassification(
            category=category,
            action=ERROR_ACTIONS[category],
            code=code,
            message=message,
            matched_by=matched_by,
        )
