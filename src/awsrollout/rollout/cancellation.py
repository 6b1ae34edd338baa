"""Cancellation token shared by the scheduler, executors and recurring runs."""

import threading
from typing import Optional


class CancellationToken:
    """Thread-safe cancellation flag with an interruptible wait."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Idempotent."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled, False if the timeout elapsed
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)
