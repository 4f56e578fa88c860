"""Backoff calculation for retried service calls."""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Optional

JITTER_RATIO = 0.2


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including initial attempt)
        base_delay: Delay in seconds before the first retry
        max_delay: Ceiling in seconds for the un-jittered delay
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delays
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")
        if self.max_attempts > 10:
            raise ValueError("max_attempts should not exceed 10 for practical purposes")

    def calculate_backoff_delay(
        self, attempt: int, rng: Optional[Callable[[], float]] = None
    ) -> float:
        """Calculate the delay to sleep after a failed attempt.

        Args:
            attempt: Index of the attempt that just failed (0-based)
            rng: Source of uniform floats in [0, 1), ``random.random`` by default

        Returns:
            Delay in seconds
        """
        return calculate_delay(
            attempt,
            self.base_delay,
            self.max_delay,
            self.exponential_base,
            self.jitter,
            rng=rng,
        )


def calculate_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
    rng: Optional[Callable[[], float]] = None,
) -> float:
    """Calculate delay for a given attempt with exponential backoff and jitter.

    The un-jittered delay is ``min(base_delay * exponential_base ** attempt, max_delay)``.
    Jitter then moves it by up to ±20% in either direction and the result is
    clamped back under ``max_delay``.

    Args:
        attempt: Current attempt number (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum un-jittered delay in seconds
        exponential_base: Base for exponential calculation
        jitter: Whether to add random jitter
        rng: Source of uniform floats in [0, 1)

    Returns:
        Calculated delay in seconds, between 0 and max_delay
    """
    if attempt < 0:
        raise ValueError("attempt must be non-negative")

    delay = min(base_delay * (exponential_base ** attempt), max_delay)

    if jitter:
        draw = (rng or random.random)()
        # Map [0, 1) onto [-1, 1) for symmetric jitter
        delay += delay * JITTER_RATIO * (2.0 * draw - 1.0)

    return max(0.0, min(delay, max_delay))
