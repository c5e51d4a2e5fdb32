"""
RetryPolicy - Decides whether a failed attempt is retried and how long to wait.

Delay schedule: base * 2^(attempt-1) + uniform(0, jitter_ceiling).
Exponential growth spaces attempts out; jitter keeps many callers from
retrying in lockstep.
"""

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from logservice.services.errors import ConfigurationError
from logservice.services.invocation import AttemptOutcome

if TYPE_CHECKING:
    from logservice.settings import Settings

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_PER_ATTEMPT_TIMEOUT = 1.0
DEFAULT_BACKOFF_BASE = 0.1
DEFAULT_JITTER_CEILING = 0.05

_RETRYABLE = frozenset({AttemptOutcome.RETRYABLE_FAILURE, AttemptOutcome.TIMED_OUT})


@dataclass(frozen=True)
class RetryDecision:
    """Whether to retry, and the delay in seconds before doing so."""

    should_retry: bool
    delay: float = 0.0


STOP = RetryDecision(should_retry=False)


def backoff_delay(
    attempt_number: int,
    backoff_base: float = DEFAULT_BACKOFF_BASE,
    jitter_ceiling: float = DEFAULT_JITTER_CEILING,
) -> float:
    """Delay before the attempt following `attempt_number`."""
    jitter = random.uniform(0, jitter_ceiling) if jitter_ceiling > 0 else 0.0
    return backoff_base * 2 ** (attempt_number - 1) + jitter


def decide(
    outcome: AttemptOutcome,
    attempt_number: int,
    max_attempts: int,
    backoff_base: float = DEFAULT_BACKOFF_BASE,
    jitter_ceiling: float = DEFAULT_JITTER_CEILING,
) -> RetryDecision:
    """Pure retry decision from an attempt's outcome and ordinal."""
    if outcome not in _RETRYABLE:
        return STOP
    if attempt_number >= max_attempts:
        return STOP
    return RetryDecision(
        should_retry=True,
        delay=backoff_delay(attempt_number, backoff_base, jitter_ceiling),
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry and timeout configuration for one logical call.

    Usage:
        policy = RetryPolicy(max_attempts=3, per_attempt_timeout=1.0)
        decision = policy.decide(attempt.outcome, attempt.attempt_number)
        if decision.should_retry:
            await asyncio.sleep(decision.delay)
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    per_attempt_timeout: float = DEFAULT_PER_ATTEMPT_TIMEOUT  # seconds
    backoff_base: float = DEFAULT_BACKOFF_BASE  # seconds
    jitter_ceiling: float = DEFAULT_JITTER_CEILING  # seconds

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be >= 1, got {self.max_attempts}"
            )
        if self.per_attempt_timeout <= 0:
            raise ConfigurationError(
                f"per_attempt_timeout must be > 0, got {self.per_attempt_timeout}"
            )
        if self.backoff_base < 0:
            raise ConfigurationError(
                f"backoff_base must be >= 0, got {self.backoff_base}"
            )
        if self.jitter_ceiling < 0:
            raise ConfigurationError(
                f"jitter_ceiling must be >= 0, got {self.jitter_ceiling}"
            )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            per_attempt_timeout=settings.per_attempt_timeout,
            backoff_base=settings.backoff_base,
            jitter_ceiling=settings.jitter_ceiling,
        )

    def decide(self, outcome: AttemptOutcome, attempt_number: int) -> RetryDecision:
        return decide(
            outcome,
            attempt_number,
            self.max_attempts,
            self.backoff_base,
            self.jitter_ceiling,
        )

    def backoff_delay(self, attempt_number: int) -> float:
        return backoff_delay(attempt_number, self.backoff_base, self.jitter_ceiling)

    @property
    def max_backoff(self) -> float:
        """Largest delay this policy can ever sleep between two attempts."""
        if self.max_attempts < 2:
            return 0.0
        return self.backoff_base * 2 ** (self.max_attempts - 2) + self.jitter_ceiling

    @property
    def worst_case_duration(self) -> float:
        """Upper bound on the wall-clock time of one logical call."""
        return self.max_attempts * (self.per_attempt_timeout + self.max_backoff)
