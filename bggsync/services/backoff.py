"""Exponential backoff policy for retrying upstream requests."""

from dataclasses import dataclass

INITIAL_RETRY_DELAY = 1.0
BACKOFF_MULTIPLIER = 1.4
MAX_RETRY_DELAY = 15.0


@dataclass(frozen=True)
class BackoffPolicy:
    """Computes how long to wait before the next attempt.

    The policy only computes durations; callers own the actual suspension.

    Attributes:
        initial_delay: Delay in seconds after the first failed attempt
        multiplier: Growth factor applied per additional failed attempt
        max_delay: Upper bound in seconds for any single delay
    """
    initial_delay: float = INITIAL_RETRY_DELAY
    multiplier: float = BACKOFF_MULTIPLIER
    max_delay: float = MAX_RETRY_DELAY

    def __post_init__(self) -> None:
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must not be smaller than initial_delay")

    def delay_for(self, attempt: int) -> float:
        """Return the wait in seconds after `attempt` failed attempts.

        Args:
            attempt: Number of failed attempts so far (1 for the first failure)

        Returns:
            Delay in seconds, 0.0 for attempt < 1, never above max_delay
        """
        if attempt < 1:
            return 0.0
        if self.initial_delay == 0 or self.multiplier == 1:
            return min(self.initial_delay, self.max_delay)

        delay = self.initial_delay
        for _ in range(attempt - 1):
            delay *= self.multiplier
            if delay >= self.max_delay:
                return self.max_delay
        return min(delay, self.max_delay)
