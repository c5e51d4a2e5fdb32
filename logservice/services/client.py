"""
ResilientClient - Single entry point for calling a downstream dependency.

Combines:
- CorrelationContext for outbound request correlation
- TimedInvocation for per-attempt deadlines
- RetryPolicy for exponential backoff with jitter

A call either returns the dependency's parsed payload as enrichment, or a
degraded result that still carries the caller's primary value. Dependency
failures never escape as exceptions.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

import httpx
from loguru import logger

from logservice.services.correlation import CorrelationContext
from logservice.services.invocation import (
    AttemptOutcome,
    DependencyTarget,
    InvocationAttempt,
    TimedInvocation,
)
from logservice.services.retry import RetryDecision, RetryPolicy

T = TypeVar("T")


class DegradationReason(str, Enum):
    """Why a call fell back to its primary value only."""

    NONE = "none"
    TIMEOUT = "timeout"
    DEPENDENCY_ERROR = "dependency_error"
    RETRIES_EXHAUSTED = "retries_exhausted"


@dataclass
class CallResult(Generic[T]):
    """Result of a resilient call."""

    primary: T
    enrichment: Any = None
    degradation_reason: DegradationReason = DegradationReason.NONE
    attempts: int = 0
    status_code: int | None = None

    @property
    def degraded(self) -> bool:
        return self.degradation_reason != DegradationReason.NONE


def _parse_json(response: httpx.Response) -> Any:
    return response.json()


class ResilientClient:
    """
    HTTP client wrapper with per-attempt timeouts, retries and degradation.

    Usage:
        async with ResilientClient(RetryPolicy(max_attempts=3)) as client:
            result = await client.call(
                target=DependencyTarget("http://echo-service:8080/info"),
                correlation=ctx,
                primary={"message": "Hello"},
            )
            if result.degraded:
                ...
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._policy.per_attempt_timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def call(
        self,
        target: DependencyTarget,
        correlation: CorrelationContext,
        primary: T,
        payload: Any = None,
        policy: RetryPolicy | None = None,
        parse: Callable[[httpx.Response], Any] | None = None,
    ) -> CallResult[T]:
        """
        Call a dependency, retrying transient failures.

        Args:
            target: Dependency to call
            correlation: Context of the inbound request being served
            primary: Value returned regardless of the dependency's health
            payload: Request body (JSON-serializable, bytes/str, or None)
            policy: Override the client's default retry policy
            parse: Turns a successful response into enrichment (default: JSON)

        Returns:
            CallResult with enrichment, or degraded with a reason

        Raises:
            InvalidTargetError: If the target is malformed
        """
        policy = policy or self._policy
        parse = parse or _parse_json
        target.validate()

        invocation = TimedInvocation(await self._get_http_client())
        log = logger.bind(
            correlation_id=correlation.id,
            service_id=target.service_id or target.url,
        )

        failures: list[AttemptOutcome] = []
        last_attempt: InvocationAttempt | None = None

        for attempt_number in range(1, policy.max_attempts + 1):
            attempt = await invocation.execute(
                target,
                payload,
                correlation.as_outbound_header(),
                policy.per_attempt_timeout,
                attempt_number=attempt_number,
            )
            last_attempt = attempt

            if attempt.succeeded:
                self._log_attempt(log, attempt, policy)
                return self._success(log, attempt, primary, parse)

            failures.append(attempt.outcome)
            decision = policy.decide(attempt.outcome, attempt_number)
            self._log_attempt(log, attempt, policy, decision)

            if not decision.should_retry:
                break
            await self._sleep(decision.delay)

        reason = self._degradation_reason(failures)
        log.bind(reason=reason.value).warning(
            f"Dependency call degraded ({reason.value}) "
            f"after {len(failures)} attempt(s)"
        )
        return CallResult(
            primary=primary,
            enrichment=None,
            degradation_reason=reason,
            attempts=len(failures),
            status_code=last_attempt.status_code if last_attempt else None,
        )

    def _success(
        self,
        log: Any,
        attempt: InvocationAttempt,
        primary: T,
        parse: Callable[[httpx.Response], Any],
    ) -> CallResult[T]:
        try:
            enrichment = parse(attempt.response)
        except ValueError as e:
            log.warning(f"Dependency returned an unparseable body: {e}")
            return CallResult(
                primary=primary,
                enrichment=None,
                degradation_reason=DegradationReason.DEPENDENCY_ERROR,
                attempts=attempt.attempt_number,
                status_code=attempt.status_code,
            )

        return CallResult(
            primary=primary,
            enrichment=enrichment,
            degradation_reason=DegradationReason.NONE,
            attempts=attempt.attempt_number,
            status_code=attempt.status_code,
        )

    @staticmethod
    def _log_attempt(
        log: Any,
        attempt: InvocationAttempt,
        policy: RetryPolicy,
        decision: RetryDecision | None = None,
    ) -> None:
        """Emit the single log record for one attempt."""
        record = log.bind(
            attempt=attempt.attempt_number,
            outcome=attempt.outcome.value,
            status_code=attempt.status_code,
            elapsed_ms=round(attempt.elapsed * 1000),
        )
        progress = f"attempt {attempt.attempt_number}/{policy.max_attempts}"

        if attempt.succeeded:
            record.info(f"Dependency call succeeded on {progress}")
        elif decision is not None and decision.should_retry:
            record.bind(delay_ms=round(decision.delay * 1000)).warning(
                f"Dependency call failed on {progress}: {attempt.error}. "
                f"Retrying in {decision.delay * 1000:.0f}ms"
            )
        else:
            record.warning(
                f"Dependency call failed on {progress}: {attempt.error}. "
                "Not retrying"
            )

    @staticmethod
    def _degradation_reason(failures: list[AttemptOutcome]) -> DegradationReason:
        if not failures or failures[-1] == AttemptOutcome.NON_RETRYABLE_FAILURE:
            return DegradationReason.DEPENDENCY_ERROR

        kinds = set(failures)
        if kinds == {AttemptOutcome.TIMED_OUT}:
            return DegradationReason.TIMEOUT
        if kinds == {AttemptOutcome.RETRYABLE_FAILURE}:
            return DegradationReason.DEPENDENCY_ERROR
        return DegradationReason.RETRIES_EXHAUSTED

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
        self._http_client = None
        logger.debug("ResilientClient closed")

    async def __aenter__(self) -> "ResilientClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
