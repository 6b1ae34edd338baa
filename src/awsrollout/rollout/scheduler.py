"""Wave-synchronized batch scheduler.

Targets are split into waves of at most ``concurrency`` targets. Each wave
runs on a thread pool and must finish completely before the next wave
starts. A fixed, cancellable pause separates waves. Assumed-role contexts
that are close to expiry are refreshed before the wave that needs them.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .cancellation import CancellationToken
from .exceptions import AuthenticationError
from .executor import DeployExecutor
from .models import DeploymentContext, DeploymentOutcome, DeploymentStatus, Target
from .reporting import ReportingSink

logger = logging.getLogger(__name__)


def partition_waves(targets: Sequence[Target], size: int) -> List[List[Target]]:
    """Split targets into consecutive waves of at most ``size`` targets."""
    if size < 1:
        raise ValueError("Wave size must be at least 1")
    return [list(targets[i : i + size]) for i in range(0, len(targets), size)]


class BatchScheduler:
    """Dispatches the executor per target in bounded, synchronized waves."""

    def __init__(
        self,
        executor: DeployExecutor,
        concurrency: int = 5,
        wave_delay: float = 2.0,
        cancellation: Optional[CancellationToken] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        context_refresher: Optional[Callable[[str], DeploymentContext]] = None,
        refresh_margin: float = 1800.0,
    ):
        """Initialize the scheduler.

        Args:
            executor: Executor run once per target
            concurrency: Maximum targets in flight at once (wave size)
            wave_delay: Pause in seconds between waves
            cancellation: Token checked at wave boundaries
            progress_callback: Optional callback receiving (completed, total)
            context_refresher: Returns a fresh context for an account ID
            refresh_margin: Seconds before expiry at which a context is refreshed
        """
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")

        self.executor = executor
        self.concurrency = concurrency
        self.wave_delay = max(0.0, wave_delay)
        self.cancellation = cancellation or executor.cancellation
        self.progress_callback = progress_callback
        self.context_refresher = context_refresher
        self.refresh_margin = max(0.0, refresh_margin)

    def run(
        self,
        targets: Sequence[Target],
        contexts: Mapping[str, DeploymentContext],
        sink: ReportingSink,
    ) -> List[DeploymentOutcome]:
        """Deploy to every target, wave by wave.

        Args:
            targets: Ordered targets to deploy to
            contexts: Credential contexts keyed by account ID (not modified)
            sink: Sink receiving each outcome as it completes

        Returns:
            Outcomes in completion order, one per dispatched target

        Raises:
            AuthenticationError: After the current wave drains, if any target
                hit an authentication failure
            KeyboardInterrupt: After cancelling the token so in-flight
                targets stop at their next backoff
        """
        contexts = dict(contexts)
        outcomes: List[DeploymentOutcome] = []
        waves = partition_waves(targets, self.concurrency)
        total = len(targets)

        for index, wave in enumerate(waves, 1):
            if self.cancellation.cancelled:
                logger.warning(
                    f"Rollout cancelled before wave {index}/{len(waves)}; "
                    f"{total - len(outcomes)} targets not attempted"
                )
                break

            logger.info(f"Starting wave {index}/{len(waves)} with {len(wave)} targets")
            refresh_errors = self._refresh_expiring(wave, contexts)
            auth_error = self._run_wave(wave, contexts, refresh_errors, sink, outcomes, total)
            if auth_error is not None:
                self.cancellation.cancel("authentication failure")
                raise auth_error

            if index < len(waves) and self.wave_delay > 0:
                # Cancellation during the pause is picked up at the top of the loop.
                self.cancellation.wait(self.wave_delay)

        return outcomes

    def _refresh_expiring(
        self, wave: List[Target], contexts: Dict[str, DeploymentContext]
    ) -> Dict[str, str]:
        """Replace contexts in this wave that expire within the refresh margin.

        Returns:
            Refresh errors keyed by account ID; those accounts lose their context
        """
        errors: Dict[str, str] = {}
        if self.context_refresher is None:
            return errors

        for account_id in dict.fromkeys(target.account_id for target in wave):
            context = contexts.get(account_id)
            if context is None or not context.is_expired(margin=self.refresh_margin):
                continue
            try:
                contexts[account_id] = self.context_refresher(account_id)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Could not refresh credentials for account {account_id}: {e}")
                del contexts[account_id]
                errors[account_id] = str(e)
        return errors

    def _run_wave(
        self,
        wave: List[Target],
        contexts: Mapping[str, DeploymentContext],
        refresh_errors: Mapping[str, str],
        sink: ReportingSink,
        outcomes: List[DeploymentOutcome],
        total: int,
    ) -> Optional[AuthenticationError]:
        auth_error: Optional[AuthenticationError] = None

        with ThreadPoolExecutor(max_workers=len(wave)) as pool:
            try:
                future_to_target = {}
                for target in wave:
                    context = contexts.get(target.account_id)
                    if context is None:
                        if target.account_id in refresh_errors:
                            outcome = self._failed(
                                target,
                                "Credential refresh failed",
                                refresh_errors[target.account_id],
                            )
                        else:
                            outcome = self._failed(target, "No credential context for account")
                        self._collect(outcome, sink, outcomes, total)
                        continue
                    future = pool.submit(self.executor.execute, target, context)
                    future_to_target[future] = target

                for future in as_completed(future_to_target):
                    target = future_to_target[future]
                    try:
                        outcome = future.result()
                    except AuthenticationError as e:
                        logger.error(
                            f"Authentication failed for {target.get_display_name()}: {e}"
                        )
                        auth_error = auth_error or e
                        outcome = self._failed(target, "Authentication failed", str(e))
                    except Exception as e:
                        logger.error(
                            f"Unexpected error deploying to {target.get_display_name()}: {e}",
                            exc_info=True,
                        )
                        outcome = self._failed(target, "Unexpected executor error", str(e))

                    self._collect(outcome, sink, outcomes, total)
            except BaseException:
                # Must happen before the pool joins its workers.
                self.cancellation.cancel("interrupted")
                raise

        return auth_error

    def _collect(
        self,
        outcome: DeploymentOutcome,
        sink: ReportingSink,
        outcomes: List[DeploymentOutcome],
        total: int,
    ) -> None:
        outcomes.append(outcome)
        sink.record(outcome)
        if self.progress_callback:
            self.progress_callback(len(outcomes), total)

    @staticmethod
    def _failed(target: Target, reason: str, error: Optional[str] = None) -> DeploymentOutcome:
        return DeploymentOutcome(
            target=target,
            success=False,
            status=DeploymentStatus.FAILED,
            reason=reason,
            error=error,
        )

