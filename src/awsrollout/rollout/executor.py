"""Deploy executor: one target, bounded retries, exactly one outcome."""

import logging
import time
from typing import Mapping, Optional

from .backoff import BackoffStrategy, ExponentialBackoffStrategy
from .cancellation import CancellationToken
from .errors import ErrorClassification, ErrorClassifier, RetryAction
from .exceptions import AuthenticationError
from .models import (
    DeploymentContext,
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentStatus,
    Target,
    TemplateRef,
)
from .naming import UniqueNameGenerator
from .provider import DeploymentProvider

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {
    RetryAction.SKIP: DeploymentStatus.SKIPPED,
    RetryAction.FAIL: DeploymentStatus.FAILED,
    RetryAction.BLOCK: DeploymentStatus.BLOCKED,
}


class DeployExecutor:
    """Runs the create-or-update retry loop for a single target.

    Each attempt builds a new ``DeploymentRequest``. Terminal categories end
    the loop after one attempt, name conflicts retry at once under a fresh
    name, and transient or unclassified errors back off before retrying with
    the same name. With a retry budget of N there are at most N + 1 attempts.
    """

    def __init__(
        self,
        provider: DeploymentProvider,
        template: TemplateRef,
        name_generator: UniqueNameGenerator,
        classifier: Optional[ErrorClassifier] = None,
        backoff: Optional[BackoffStrategy] = None,
        max_retries: int = 3,
        cancellation: Optional[CancellationToken] = None,
        tags: Optional[Mapping[str, str]] = None,
        dry_run: bool = False,
    ):
        """Initialize the executor.

        Args:
            provider: Provider performing the create-or-update
            template: Template and parameter mapping to deploy
            name_generator: Generator for deployment names
            classifier: Error classifier (default rules if not provided)
            backoff: Backoff strategy for retriable errors
            max_retries: Retry budget; attempts are capped at max_retries + 1
            cancellation: Token checked during backoff sleeps
            tags: Tags applied to every deployment
            dry_run: If True, report what would be deployed without calling the provider
        """
        self.provider = provider
        self.template = template
        self.name_generator = name_generator
        self.classifier = classifier or ErrorClassifier()
        self.backoff = backoff or ExponentialBackoffStrategy()
        self.max_retries = max(0, max_retries)
        self.cancellation = cancellation or CancellationToken()
        self.tags = dict(tags or {})
        self.dry_run = dry_run

    def build_request(self, target: Target, name: str, attempt: int) -> DeploymentRequest:
        """Build the request for one attempt."""
        return DeploymentRequest(
            target=target,
            template=self.template,
            parameters=self.template.render_parameters(target, name),
            generated_name=name,
            attempt=attempt,
            tags=self.tags,
        )

    def execute(self, target: Target, context: DeploymentContext) -> DeploymentOutcome:
        """Deploy to one target.

        Args:
            target: Target to deploy to
            context: Credentials for the target's account

        Returns:
            The single terminal outcome for this target

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        started_at = time.time()
        name = self.name_generator.next_name(target)

        if self.dry_run:
            return DeploymentOutcome(
                target=target,
                success=False,
                status=DeploymentStatus.SKIPPED,
                reason=f"Dry run: would deploy {name}",
                attempts=0,
                deployment_name=name,
                started_at=started_at,
            )

        attempt = 0
        while True:
            attempt += 1
            request = self.build_request(target, name, attempt)
            try:
                resource_id = self.provider.deploy(request, context)
            except Exception as e:
                classification = self.classifier.classify(e)
            else:
                logger.info(f"Deployed {name} to {target.get_display_name()} (attempt {attempt})")
                return DeploymentOutcome.succeeded(request, resource_id, started_at)

            logger.debug(
                f"Attempt {attempt} for {target.get_display_name()} failed: "
                f"{classification.category.value} ({classification.code}) {classification.message}"
            )

            if classification.action == RetryAction.ABORT:
                raise AuthenticationError(
                    f"Authentication failed for account {target.account_id}: "
                    f"{classification.message}",
                    context={"target": target.get_display_name(), "code": classification.code},
                )

            if classification.is_terminal():
                return self._terminal_outcome(request, classification, started_at)

            if attempt > self.max_retries:
                return self._exhausted_outcome(request, classification, started_at)

            if classification.action == RetryAction.RENAME_AND_RETRY:
                name = self.name_generator.next_name(target)
                logger.warning(
                    f"Name conflict in {target.get_display_name()}, retrying as {name}"
                )
                continue

            delay = self.backoff.calculate_delay(attempt - 1, classification.category)
            logger.warning(
                f"Retry {attempt}/{self.max_retries} for {target.get_display_name()} "
                f"after {delay:.1f}s: {classification.category.value}"
            )
            if self.cancellation.wait(delay):
                return DeploymentOutcome(
                    target=target,
                    success=False,
                    status=DeploymentStatus.FAILED,
                    reason="Cancelled during retry backoff",
                    error=classification.message,
                    error_category=classification.category.value,
                    attempts=attempt,
                    deployment_name=name,
                    started_at=started_at,
                )

    def _exhausted_outcome(
        self,
        request: DeploymentRequest,
        classification: ErrorClassification,
        started_at: float,
    ) -> DeploymentOutcome:
        logger.warning(
            f"{request.target.get_display_name()} failed after {request.attempt} attempts: "
            f"{classification.category.value}"
        )
        return DeploymentOutcome(
            target=request.target,
            success=False,
            status=DeploymentStatus.FAILED,
            reason=f"Retry budget exhausted after {request.attempt} attempts",
            error=classification.message,
            error_category=classification.category.value,
            attempts=request.attempt,
            deployment_name=request.generated_name,
            started_at=started_at,
        )

    def _terminal_outcome(
        self,
        request: DeploymentRequest,
        classification: ErrorClassification,
        started_at: float,
    ) -> DeploymentOutcome:
        status = TERMINAL_STATUSES[classification.action]
        logger.info(
            f"{request.target.get_display_name()} ended as {status.value}: "
            f"{classification.category.value}"
        )
        return DeploymentOutcome(
            target=request.target,
            success=False,
            status=status,
            reason=classification.category.value,
            error=classification.message,
            error_category=classification.category.value,
            attempts=request.attempt,
            deployment_name=request.generated_name,
            started_at=started_at,
        )
