"""
Service layer exceptions.

Raw upstream failures are turned into one of the ``ServiceError`` variants
at the network boundary (``ProviderClient``); the classifier then maps them
onto the closed ``ErrorKind`` taxonomy carried by ``ClassifiedError``.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Client-facing error taxonomy."""

    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    AUTH_ERROR = "AUTH_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    retryable: bool = True

    def __init__(
        self,
        message: str,
        service_id: str | None = None,
        expose: bool = False,
    ):
        self.service_id = service_id
        # Whether the message is safe to show to API clients as-is
        self.expose = expose
        super().__init__(message)


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded."""

    def __init__(self, service_id: str, retry_after: int | None = None):
        self.retry_after = retry_after
        msg = f"Rate limit exceeded for service '{service_id}'"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(msg, service_id=service_id)


class ServiceUnavailableError(ServiceError):
    """Service could not be reached (connection refused, DNS failure)."""

    pass


class AuthenticationError(ServiceError):
    """API key missing or rejected by the provider."""

    retryable = False


class InvalidResponseError(ServiceError):
    """Provider answered, but not with the expected payload shape."""

    retryable = False


class UpstreamError(ServiceError):
    """Provider returned an error status or an embedded error body."""

    def __init__(
        self,
        message: str,
        service_id: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
        expose: bool = False,
    ):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, service_id=service_id, expose=expose)


class ClassifiedError(Exception):
    """
    Normalized, client-safe representation of a failure.

    Produced once by ``classify_error`` and forwarded unchanged to the API
    boundary. Attributes are read-only.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: int,
        code: str,
        origin_service: str,
        retry_after: int | None = None,
    ):
        self._kind = kind
        self._message = message
        self._http_status = http_status
        self._code = code
        self._origin_service = origin_service
        self._retry_after = retry_after
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def http_status(self) -> int:
        return self._http_status

    @property
    def code(self) -> str:
        return self._code

    @property
    def origin_service(self) -> str:
        return self._origin_service

    @property
    def retry_after(self) -> int | None:
        return self._retry_after

    def to_dict(self) -> dict[str, Any]:
        """Response body for the HTTP layer."""
        body: dict[str, Any] = {"error": self._message, "code": self._code}
        if self._retry_after:
            body["retryAfter"] = self._retry_after
        return body

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self._kind.value}, code={self._code}, "
            f"http_status={self._http_status}, origin={self._origin_service!r})"
        )
