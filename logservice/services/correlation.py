"""
CorrelationContext - Request-scoped identifier for cross-service log correlation.

One context is created where a request enters the service and is passed
explicitly to every outbound call made while handling it.
"""

import re
import secrets
import uuid
from dataclasses import dataclass

REQUEST_ID_HEADER = "X-Request-ID"
TRACEPARENT_HEADER = "traceparent"

_TRACEPARENT_RE = re.compile(
    r"^(?P<version>[0-9a-f]{2})-(?P<trace_id>[0-9a-f]{32})-"
    r"(?P<parent_id>[0-9a-f]{16})-(?P<flags>[0-9a-f]{2})$"
)


@dataclass(frozen=True)
class CorrelationContext:
    """
    Correlation identifier for one inbound request.

    Usage:
        ctx = CorrelationContext.obtain_or_create(request.headers.get("X-Request-ID"))
        name, value = ctx.as_outbound_header()
    """

    id: str
    header_name: str = REQUEST_ID_HEADER

    @classmethod
    def obtain_or_create(
        cls,
        inbound_value: str | None,
        header_name: str = REQUEST_ID_HEADER,
    ) -> "CorrelationContext":
        """Reuse the inbound identifier verbatim, or generate a new one."""
        if inbound_value:
            return cls(id=inbound_value, header_name=header_name)
        return cls(id=cls._generate(header_name), header_name=header_name)

    @staticmethod
    def _generate(header_name: str) -> str:
        if header_name.lower() == TRACEPARENT_HEADER:
            return f"00-{secrets.token_hex(16)}-{secrets.token_hex(8)}-01"
        return str(uuid.uuid4())

    @property
    def is_traceparent(self) -> bool:
        return self.header_name.lower() == TRACEPARENT_HEADER

    @property
    def trace_id(self) -> str:
        """Trace-id portion of a traceparent, otherwise the id itself."""
        if self.is_traceparent:
            match = _TRACEPARENT_RE.match(self.id)
            if match:
                return match.group("trace_id")
        return self.id

    def as_outbound_header(self) -> tuple[str, str]:
        """Header pair to attach to every outbound call for this request."""
        if not self.is_traceparent:
            return self.header_name, self.id

        match = _TRACEPARENT_RE.match(self.id)
        if match is None:
            # Unknown format, forward as received
            return self.header_name, self.id

        # Per-hop form: same trace, new parent span
        value = (
            f"{match.group('version')}-{match.group('trace_id')}-"
            f"{secrets.token_hex(8)}-{match.group('flags')}"
        )
        return self.header_name, value
