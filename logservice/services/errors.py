"""
Service layer exceptions.

Dependency-side failures are never raised from this layer; they are reported
as attempt outcomes and degradation reasons. The exceptions below signal
programmer errors that no retry can fix.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class InvalidTargetError(ServiceError):
    """Dependency target is malformed (bad URL, scheme or method)."""

    def __init__(self, url: str, reason: str, service_id: str | None = None):
        self.url = url
        self.reason = reason
        super().__init__(
            f"Invalid dependency target '{url}': {reason}",
            service_id=service_id,
        )


class ConfigurationError(ServiceError):
    """Retry policy or client configured with invalid values."""

    pass
