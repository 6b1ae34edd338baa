"""Backoff strategies for deployment retries.

Classes:
    BackoffStrategy: Base class for backoff strategies
    ExponentialBackoffStrategy: Exponential backoff with jitter
    FixedBackoffStrategy: Constant delay, used in tests and for tight loops
"""

import random
from abc import ABC, abstractmethod

from .errors import ErrorCategory

# Throttling-like errors wait longer than generic failures.
CATEGORY_MULTIPLIERS = {
    ErrorCategory.TRANSIENT_PROVIDER_STATE: 1.5,
    ErrorCategory.UNCLASSIFIED: 1.0,
}


class BackoffStrategy(ABC):
    """Base class for backoff strategies."""

    @abstractmethod
    def calculate_delay(self, retry_count: int, category: ErrorCategory) -> float:
        """Calculate the delay before the next attempt.

        Args:
            retry_count: Number of retries already made (0 for the first retry)
            category: Category of the error that triggered the retry

        Returns:
            Delay in seconds
        """
        pass


class ExponentialBackoffStrategy(BackoffStrategy):
    """Exponential backoff strategy with jitter."""

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter_factor: float = 0.1,
    ):
        """Initialize exponential backoff strategy.

        Args:
            base_delay: Base delay in seconds
            max_delay: Maximum delay in seconds
            exponential_base: Base for exponential calculation
            jitter_factor: Factor for jitter (0.0 to 1.0)
        """
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter_factor = jitter_factor

    def calculate_delay(self, retry_count: int, category: ErrorCategory) -> float:
        """Calculate exponential backoff delay with jitter."""
        delay = self.base_delay * (self.exponential_base**retry_count)
        delay *= CATEGORY_MULTIPLIERS.get(category, 1.0)
        delay = min(delay, self.max_delay)

        # Add jitter to avoid thundering herd
        if self.jitter_factor > 0:
            delay += delay * self.jitter_factor * random.random()

        return min(delay, self.max_delay)


class FixedBackoffStrategy(BackoffStrategy):
    """Constant delay between attempts."""

    def __init__(self, delay: float = 0.0):
        self.delay = max(0.0, delay)

    def calculate_delay(self, retry_count: int, category: ErrorCategory) -> float:
        return self.delay
