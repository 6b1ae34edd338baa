"""Cycle runner for one-shot and recurring rollouts."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .cancellation import CancellationToken
from .enumerator import EnumerationResult, TargetEnumerator
from .exceptions import AuthenticationError
from .models import DeploymentOutcome, RunSummary
from .reporting import ReportingSink
from .scheduler import BatchScheduler

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Everything produced by one enumerate, schedule and persist cycle."""

    summary: RunSummary
    outcomes: List[DeploymentOutcome] = field(default_factory=list)
    enumeration: Optional[EnumerationResult] = None
    persisted: bool = False


class RecurringRollout:
    """Runs rollout cycles on a fixed interval until cancelled.

    Every cycle is a separate run with its own sink and run id. A cycle
    always finishes its current wave and persists before the next one starts.
    """

    def __init__(
        self,
        enumerator: TargetEnumerator,
        scheduler: BatchScheduler,
        interval: float = 3600.0,
        run_log_path: Optional[Path] = None,
        cancellation: Optional[CancellationToken] = None,
        on_cycle_complete: Optional[Callable[[CycleResult], None]] = None,
    ):
        """Initialize the recurring rollout.

        Args:
            enumerator: Enumerator run at the start of every cycle
            scheduler: Scheduler dispatching the targets
            interval: Seconds between the end of one cycle and the start of the next
            run_log_path: Run log the sink appends to
            cancellation: Token stopping further cycles
            on_cycle_complete: Callback receiving each cycle's result
        """
        self.enumerator = enumerator
        self.scheduler = scheduler
        self.interval = max(0.0, interval)
        self.run_log_path = run_log_path
        self.cancellation = cancellation or scheduler.cancellation
        self.on_cycle_complete = on_cycle_complete

    def run_cycle(self) -> CycleResult:
        """Run a single enumerate, schedule and persist cycle.

        Raises:
            AuthenticationError: If the base session or any target fails to
                authenticate; outcomes collected so far are persisted first
            KeyboardInterrupt: If interrupted; outcomes collected so far are
                persisted first
        """
        sink = ReportingSink(run_log_path=self.run_log_path)
        logger.info(f"Starting rollout run {sink.run_id}")

        # Base names restart each cycle so existing stacks are updated in place.
        self.scheduler.executor.name_generator.reset()

        enumeration = self.enumerator.enumerate()
        try:
            outcomes = self.scheduler.run(enumeration.targets, enumeration.contexts, sink)
        except (AuthenticationError, KeyboardInterrupt):
            sink.persist()
            raise

        persisted = sink.persist()
        summary = sink.summary(finished_at=time.time())
        logger.info(
            f"Run {summary.run_id} finished: {summary.succeeded} succeeded, "
            f"{summary.failed} failed, {summary.skipped} skipped, {summary.blocked} blocked",
            extra={"summary": summary.get_summary_stats()},
        )
        return CycleResult(
            summary=summary, outcomes=outcomes, enumeration=enumeration, persisted=persisted
        )

    def run(self, max_cycles: Optional[int] = None) -> List[CycleResult]:
        """Run cycles until cancelled or ``max_cycles`` is reached.

        Args:
            max_cycles: Number of cycles to run (None runs until cancelled)

        Returns:
            Results of the completed cycles
        """
        results: List[CycleResult] = []
        while not self.cancellation.cancelled:
            result = self.run_cycle()
            results.append(result)
            if self.on_cycle_complete:
                self.on_cycle_complete(result)

            if max_cycles is not None and len(results) >= max_cycles:
                break

            logger.info(f"Next rollout cycle in {self.interval:.0f}s")
            if self.cancellation.wait(self.interval):
                break

        if self.cancellation.cancelled:
            logger.info(f"Recurring rollout stopped: {self.cancellation.reason}")
        return results
