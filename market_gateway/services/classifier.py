"""
Error classifier - maps any raw failure onto exactly one ClassifiedError.

Classification order (first match wins):
1. Rate limit        -> 429 RATE_LIMIT_EXCEEDED (retry_after defaults to 60s)
2. Timeout           -> 504 TIMEOUT
3. Connection failure -> 503 SERVICE_UNAVAILABLE
4. Credential problem -> 500 AUTH_ERROR
5. Malformed payload -> 502 INVALID_RESPONSE
6. Anything else     -> 500 INTERNAL_ERROR
"""

import asyncio
import json
import socket

import httpx
from pydantic import ValidationError

from market_gateway.services.errors import (
    AuthenticationError,
    ClassifiedError,
    ErrorKind,
    InvalidResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
    UpstreamError,
)

DEFAULT_RETRY_AFTER = 60

# Display names used in client-facing messages
SERVICE_NAMES = {
    "alphavantage": "Alpha Vantage",
    "coingecko": "CoinGecko",
    "newsapi": "NewsAPI",
    "fmp": "Financial Modeling Prep",
    "polygon": "Polygon",
    "exchangerate": "ExchangeRate-API",
}

RATE_LIMIT_PHRASES = (
    "frequency limit",
    "call frequency",
    "call limit",
    "rate limit",
    "ratelimited",
    "limit reach",
    "too many requests",
)
AUTH_PHRASES = ("api key", "apikey", "authentication", "not authorized")

_RATE_LIMIT_MESSAGES = {
    "Alpha Vantage": (
        "Stock data requests are temporarily limited. Please wait a moment and "
        "try again. Data will be available shortly."
    ),
    "CoinGecko": (
        "Cryptocurrency data requests are temporarily limited. Please wait a "
        "moment and try again. Data will be available shortly."
    ),
    "NewsAPI": (
        "News data requests are temporarily limited. Please wait a moment and "
        "try again."
    ),
    "Financial Modeling Prep": (
        "Financial data requests are temporarily limited. Please wait a moment "
        "and try again."
    ),
    "Polygon": (
        "Market data requests are temporarily limited. Please wait a moment and "
        "try again."
    ),
    "ExchangeRate-API": (
        "Exchange rate requests are temporarily limited. Please wait a moment "
        "and try again."
    ),
}
_DEFAULT_RATE_LIMIT_MESSAGE = (
    "Data requests are temporarily limited. Please wait a moment and try again."
)


def service_display_name(service: str | None) -> str:
    """Resolve a service id (or display name) to its display name."""
    if not service:
        return "API"
    return SERVICE_NAMES.get(service, service)


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, UpstreamError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def _mentions(exc: BaseException, phrases: tuple[str, ...]) -> bool:
    text = str(exc).lower()
    return any(p in text for p in phrases)


def _is_rate_limit(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError) or _status_of(exc) == 429:
        return True
    return _mentions(exc, RATE_LIMIT_PHRASES)


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(
        exc, (RequestTimeoutError, httpx.TimeoutException, asyncio.TimeoutError)
    )


def _is_connection_failure(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (
            ServiceUnavailableError,
            httpx.ConnectError,
            httpx.NetworkError,
            ConnectionError,
            socket.gaierror,
        ),
    )


def _is_auth(exc: BaseException) -> bool:
    if isinstance(exc, AuthenticationError) or _status_of(exc) in (401, 403):
        return True
    # Only foreign exceptions are inspected by message; our own variants
    # already carry their kind in their type.
    if isinstance(exc, ServiceError) and not isinstance(exc, UpstreamError):
        return False
    return _mentions(exc, AUTH_PHRASES)


def _is_invalid_response(exc: BaseException) -> bool:
    return isinstance(
        exc, (InvalidResponseError, json.JSONDecodeError, ValidationError)
    )


def classify_error(exc: BaseException, service: str | None = None) -> ClassifiedError:
    """
    Classify a raw failure.

    Args:
        exc: Any exception raised while serving an operation
        service: Service id or display name of the provider involved

    Returns:
        ClassifiedError safe to expose to API clients
    """
    if isinstance(exc, ClassifiedError):
        return exc

    if service is None and isinstance(exc, ServiceError):
        service = exc.service_id
    name = service_display_name(service)

    if _is_rate_limit(exc):
        retry_after = getattr(exc, "retry_after", None) or DEFAULT_RETRY_AFTER
        return ClassifiedError(
            kind=ErrorKind.RATE_LIMIT,
            message=_RATE_LIMIT_MESSAGES.get(name, _DEFAULT_RATE_LIMIT_MESSAGE),
            http_status=429,
            code="RATE_LIMIT_EXCEEDED",
            origin_service=name,
            retry_after=int(retry_after),
        )

    if _is_timeout(exc):
        return ClassifiedError(
            kind=ErrorKind.TIMEOUT,
            message=(
                "The request took too long to complete. "
                "Please try again in a moment."
            ),
            http_status=504,
            code="TIMEOUT",
            origin_service=name,
        )

    if _is_connection_failure(exc):
        target = name if name != "API" else "data service"
        return ClassifiedError(
            kind=ErrorKind.SERVICE_UNAVAILABLE,
            message=f"Unable to connect to {target}. Please try again later.",
            http_status=503,
            code="SERVICE_UNAVAILABLE",
            origin_service=name,
        )

    if _is_auth(exc):
        return ClassifiedError(
            kind=ErrorKind.AUTH_ERROR,
            message=(
                "Service authentication error. "
                "Please contact support if this persists."
            ),
            http_status=500,
            code="AUTH_ERROR",
            origin_service=name,
        )

    if _is_invalid_response(exc):
        return ClassifiedError(
            kind=ErrorKind.INVALID_RESPONSE,
            message="Received unexpected data format. Please try again in a moment.",
            http_status=502,
            code="INVALID_RESPONSE",
            origin_service=name,
        )

    if isinstance(exc, ServiceError) and exc.expose:
        message = str(exc)
    else:
        message = "An unexpected error occurred. Please try again later."
    return ClassifiedError(
        kind=ErrorKind.INTERNAL_ERROR,
        message=message,
        http_status=500,
        code="INTERNAL_ERROR",
        origin_service=name,
    )
