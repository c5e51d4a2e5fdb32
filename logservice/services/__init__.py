"""
Service layer infrastructure - resilience patterns for dependency calls.

Provides:
- CorrelationContext: Request-scoped identifier propagated to dependencies
- TimedInvocation: One outbound call bounded by a deadline
- RetryPolicy: Exponential backoff with jitter
- ResilientClient: Unified client combining all patterns, with degradation
"""

from logservice.services.errors import (
    ServiceError,
    InvalidTargetError,
    ConfigurationError,
)
from logservice.services.correlation import CorrelationContext
from logservice.services.invocation import (
    AttemptOutcome,
    DependencyTarget,
    InvocationAttempt,
    TimedInvocation,
)
from logservice.services.retry import RetryDecision, RetryPolicy, decide
from logservice.services.client import (
    CallResult,
    DegradationReason,
    ResilientClient,
)

__all__ = [
    # Errors
    "ServiceError",
    "InvalidTargetError",
    "ConfigurationError",
    # Correlation
    "CorrelationContext",
    # Invocation
    "AttemptOutcome",
    "DependencyTarget",
    "InvocationAttempt",
    "TimedInvocation",
    # Retry
    "RetryDecision",
    "RetryPolicy",
    "decide",
    # Client
    "CallResult",
    "DegradationReason",
    "ResilientClient",
]
