"""
TimedInvocation - Executes exactly one outbound call bounded by a deadline.

The whole attempt (connect, send, body read) runs inside asyncio.wait_for.
When the bound elapses the in-flight coroutine is cancelled, which makes
httpx abort the socket operation; the caller is released at the deadline no
matter how the dependency behaves.

Outcome classification:
- 2xx                                   -> SUCCESS
- bound elapsed / httpx timeout         -> TIMED_OUT
- 5xx, transport or decoding error      -> RETRYABLE_FAILURE
- 4xx (any other status), redirect loop -> NON_RETRYABLE_FAILURE
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from logservice.services.errors import ConfigurationError, InvalidTargetError

ALLOWED_METHODS = frozenset(
    {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
)


def _header_bytes(value: str) -> bytes:
    """Encode a header value for the wire without altering it.

    Inbound headers are decoded as latin-1 by the ASGI server, so latin-1
    restores the original bytes; anything outside latin-1 goes out as UTF-8.
    """
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


class AttemptOutcome(str, Enum):
    """Classified result of one invocation attempt."""

    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"
    TIMED_OUT = "timed_out"


@dataclass
class DependencyTarget:
    """Where and how to call a dependency."""

    url: str
    method: str = "GET"
    headers: dict[str, str] | None = None
    service_id: str | None = None

    def validate(self) -> None:
        """Raise InvalidTargetError if the target can never be called."""
        try:
            parsed = httpx.URL(self.url)
        except httpx.InvalidURL as e:
            raise InvalidTargetError(self.url, str(e), self.service_id) from e

        if parsed.scheme not in ("http", "https"):
            raise InvalidTargetError(
                self.url, "scheme must be http or https", self.service_id
            )
        if not parsed.host:
            raise InvalidTargetError(self.url, "missing host", self.service_id)
        if self.method.upper() not in ALLOWED_METHODS:
            raise InvalidTargetError(
                self.url, f"unsupported method '{self.method}'", self.service_id
            )


@dataclass
class InvocationAttempt:
    """One dispatched call and its classified outcome."""

    attempt_number: int
    deadline: float  # time.monotonic() value
    outcome: AttemptOutcome
    status_code: int | None = None
    response: httpx.Response | None = None  # only set on SUCCESS
    error: str | None = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


class TimedInvocation:
    """
    Runs a single bounded call through a shared httpx.AsyncClient.

    Usage:
        invocation = TimedInvocation(http_client)
        attempt = await invocation.execute(
            target, payload=None, correlation_header=ctx.as_outbound_header(),
            bound_duration=1.0,
        )
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def execute(
        self,
        target: DependencyTarget,
        payload: Any,
        correlation_header: tuple[str, str],
        bound_duration: float,
        attempt_number: int = 1,
    ) -> InvocationAttempt:
        """
        Dispatch one call and classify it.

        Args:
            target: Dependency to call
            payload: JSON-serializable body, raw bytes/str, or None
            correlation_header: (name, value) pair to attach
            bound_duration: Seconds this attempt may take in total
            attempt_number: 1-based ordinal within the logical call

        Returns:
            InvocationAttempt with its outcome

        Raises:
            InvalidTargetError: If the target is malformed
            ConfigurationError: If bound_duration is not positive
        """
        target.validate()
        if bound_duration <= 0:
            raise ConfigurationError(
                f"bound_duration must be positive, got {bound_duration}",
                service_id=target.service_id,
            )

        headers: dict[str, str | bytes] = dict(target.headers or {})
        name, value = correlation_header
        headers[name] = _header_bytes(value)

        started = time.monotonic()
        deadline = started + bound_duration

        try:
            response = await asyncio.wait_for(
                self._send(target, payload, headers, bound_duration),
                timeout=bound_duration,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            # Anything the dependency sends after this point is dropped
            return InvocationAttempt(
                attempt_number=attempt_number,
                deadline=deadline,
                outcome=AttemptOutcome.TIMED_OUT,
                error=f"timed out after {bound_duration}s ({type(e).__name__})",
                elapsed=time.monotonic() - started,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidTargetError(target.url, str(e), target.service_id) from e
        except httpx.TooManyRedirects as e:
            return InvocationAttempt(
                attempt_number=attempt_number,
                deadline=deadline,
                outcome=AttemptOutcome.NON_RETRYABLE_FAILURE,
                error=f"{type(e).__name__}: {e}",
                elapsed=time.monotonic() - started,
            )
        except httpx.RequestError as e:
            # Transport errors and undecodable bodies
            return InvocationAttempt(
                attempt_number=attempt_number,
                deadline=deadline,
                outcome=AttemptOutcome.RETRYABLE_FAILURE,
                error=f"{type(e).__name__}: {e}",
                elapsed=time.monotonic() - started,
            )

        return self._classify(
            response, attempt_number, deadline, time.monotonic() - started
        )

    async def _send(
        self,
        target: DependencyTarget,
        payload: Any,
        headers: dict[str, str | bytes],
        timeout: float,
    ) -> httpx.Response:
        """Send the request and read the full body."""
        kwargs: dict[str, Any] = {"headers": headers, "timeout": timeout}
        if isinstance(payload, (bytes, str)):
            kwargs["content"] = payload
        elif payload is not None:
            kwargs["json"] = payload

        logger.debug(f"{target.method.upper()} {target.url}")
        return await self._client.request(target.method.upper(), target.url, **kwargs)

    @staticmethod
    def _classify(
        response: httpx.Response,
        attempt_number: int,
        deadline: float,
        elapsed: float,
    ) -> InvocationAttempt:
        status = response.status_code

        if response.is_success:
            return InvocationAttempt(
                attempt_number=attempt_number,
                deadline=deadline,
                outcome=AttemptOutcome.SUCCESS,
                status_code=status,
                response=response,
                elapsed=elapsed,
            )

        outcome = (
            AttemptOutcome.RETRYABLE_FAILURE
            if response.is_server_error
            else AttemptOutcome.NON_RETRYABLE_FAILURE
        )
        return InvocationAttempt(
            attempt_number=attempt_number,
            deadline=deadline,
            outcome=outcome,
            status_code=status,
            error=f"HTTP {status}: {response.text[:200]}",
            elapsed=elapsed,
        )
