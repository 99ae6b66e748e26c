"""Retry strategies for transient execution failures.

The execution engine never sleeps between attempts. A transiently failed
entry goes back to PENDING with ``next_attempt_at = now + next_delay(n)`` and
is picked up by a later cycle once that time has passed.

Example:
    >>> from lifecycle_spine.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_attempts=3, base_delay=300.0, max_delay=3600.0)
    >>> [strategy.next_delay(n) for n in range(3)]
    [300.0, 600.0, 1200.0]
    >>> strategy.should_retry(3)
    False
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from lifecycle_spine.core.settings import LifecycleSettings


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_attempts: int

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before the entry is dispatchable again
        """
        ...

    def should_retry(self, attempts_made: int) -> bool:
        """True while the attempt budget is not exhausted.

        Args:
            attempts_made: Attempts already performed, including the failed one
        """
        return attempts_made < self.max_attempts


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) + jitter

    Attributes:
        max_attempts: Total attempts including the first
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness so retries of a batch spread out
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
    """

    max_attempts: int = 3
    base_delay: float = 300.0
    max_delay: float = 3600.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier ** attempt),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries (0 = retry on the next cycle)."""

    max_attempts: int = 3
    delay: float = 300.0

    def next_delay(self, attempt: int) -> float:
        """Return constant delay."""
        return self.delay


def strategy_from_settings(settings: LifecycleSettings) -> RetryStrategy:
    """Build the configured strategy (``exponential``, ``fixed`` or ``none``)."""
    if settings.retry_backoff == "exponential":
        return ExponentialBackoff(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )
    if settings.retry_backoff == "fixed":
        return ConstantBackoff(max_attempts=settings.max_attempts, delay=settings.retry_base_delay_seconds)
    return ConstantBackoff(max_attempts=settings.max_attempts, delay=0.0)


__all__ = ["ConstantBackoff", "ExponentialBackoff", "RetryStrategy", "strategy_from_settings"]
