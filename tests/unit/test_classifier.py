"""Unit tests for error classification."""
import asyncio
import json

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from market_gateway.services.classifier import classify_error
from market_gateway.services.errors import (
    AuthenticationError,
    ClassifiedError,
    ErrorKind,
    InvalidResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    UpstreamError,
)


class _Quote(BaseModel):
    price: float


def _validation_error() -> ValidationError:
    try:
        _Quote.model_validate({"price": "not a number"})
    except ValidationError as e:
        return e
    raise AssertionError("expected a ValidationError")


class TestClassifyError:

    def test_rate_limit_defaults_retry_after(self):
        result = classify_error(RateLimitError("alphavantage"))

        assert result.kind == ErrorKind.RATE_LIMIT
        assert result.http_status == 429
        assert result.code == "RATE_LIMIT_EXCEEDED"
        assert result.retry_after == 60
        assert result.origin_service == "Alpha Vantage"
        assert "Stock data requests are temporarily limited" in result.message

    def test_rate_limit_keeps_upstream_retry_after(self):
        result = classify_error(RateLimitError("coingecko", retry_after=15))
        assert result.retry_after == 15
        assert "Cryptocurrency data" in result.message

    def test_rate_limit_from_foreign_message(self):
        result = classify_error(RuntimeError("API call frequency exceeded"), "newsapi")
        assert result.kind == ErrorKind.RATE_LIMIT
        assert result.origin_service == "NewsAPI"

    def test_rate_limit_unknown_service_uses_generic_message(self):
        result = classify_error(RuntimeError("Too Many Requests"))
        assert result.kind == ErrorKind.RATE_LIMIT
        assert result.message.startswith("Data requests are temporarily limited")

    def test_status_429_is_rate_limit(self):
        result = classify_error(UpstreamError("HTTP 429", "fmp", status_code=429))
        assert result.kind == ErrorKind.RATE_LIMIT

    @pytest.mark.parametrize(
        "exc",
        [
            RequestTimeoutError("polygon", 10.0),
            httpx.ReadTimeout("timed out"),
            asyncio.TimeoutError(),
        ],
    )
    def test_timeouts(self, exc):
        result = classify_error(exc, "polygon")
        assert result.kind == ErrorKind.TIMEOUT
        assert result.http_status == 504
        assert result.code == "TIMEOUT"

    @pytest.mark.parametrize(
        "exc",
        [
            ServiceUnavailableError("refused", service_id="coingecko"),
            httpx.ConnectError("connection refused"),
            ConnectionRefusedError("refused"),
        ],
    )
    def test_connection_failures(self, exc):
        result = classify_error(exc, "coingecko")
        assert result.kind == ErrorKind.SERVICE_UNAVAILABLE
        assert result.http_status == 503
        assert result.message == "Unable to connect to CoinGecko. Please try again later."

    def test_connection_failure_without_service(self):
        result = classify_error(ConnectionError("reset"))
        assert "Unable to connect to data service" in result.message

    @pytest.mark.parametrize(
        "exc",
        [
            AuthenticationError("missing key", service_id="fmp"),
            UpstreamError("HTTP 401", "fmp", status_code=401),
            UpstreamError("HTTP 403", "fmp", status_code=403),
            RuntimeError("Invalid API key supplied"),
        ],
    )
    def test_auth_errors(self, exc):
        result = classify_error(exc, "fmp")
        assert result.kind == ErrorKind.AUTH_ERROR
        assert result.http_status == 500
        assert result.code == "AUTH_ERROR"
        # Never echoes upstream details about credentials
        assert "key" not in result.message.lower()

    @pytest.mark.parametrize(
        "exc",
        [
            InvalidResponseError("bad shape", service_id="exchangerate"),
            json.JSONDecodeError("Expecting value", "<html>", 0),
        ],
    )
    def test_invalid_responses(self, exc):
        result = classify_error(exc, "exchangerate")
        assert result.kind == ErrorKind.INVALID_RESPONSE
        assert result.http_status == 502
        assert result.code == "INVALID_RESPONSE"

    def test_validation_error_is_invalid_response(self):
        result = classify_error(_validation_error(), "alphavantage")
        assert result.kind == ErrorKind.INVALID_RESPONSE

    def test_unknown_error_is_internal_and_hides_message(self):
        result = classify_error(KeyError("secret internals"), "polygon")
        assert result.kind == ErrorKind.INTERNAL_ERROR
        assert result.http_status == 500
        assert result.code == "INTERNAL_ERROR"
        assert "secret" not in result.message

    def test_exposed_upstream_message_is_kept(self):
        exc = UpstreamError(
            "No previous close data found for ZZZZ",
            "polygon",
            retryable=False,
            expose=True,
        )
        result = classify_error(exc)
        assert result.kind == ErrorKind.INTERNAL_ERROR
        assert result.message == "No previous close data found for ZZZZ"
        assert result.origin_service == "Polygon"

    def test_rate_limit_wins_over_timeout_wording(self):
        # First match wins: a rate-limit phrase beats anything later in the order
        result = classify_error(TimeoutError("rate limit reached"), "alphavantage")
        assert result.kind == ErrorKind.RATE_LIMIT

    def test_classified_error_passes_through(self):
        original = classify_error(RateLimitError("fmp"))
        assert classify_error(original, "polygon") is original

    def test_exactly_one_kind_per_error(self):
        for exc in (
            RateLimitError("fmp"),
            RequestTimeoutError("fmp", 1.0),
            ServiceUnavailableError("x", "fmp"),
            AuthenticationError("x", "fmp"),
            InvalidResponseError("x", "fmp"),
            ValueError("x"),
        ):
            result = classify_error(exc)
            assert isinstance(result, ClassifiedError)
            assert result.kind in ErrorKind


class TestClassifiedError:

    def test_to_dict_with_retry_after(self):
        body = classify_error(RateLimitError("fmp", retry_after=30)).to_dict()
        assert body["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["retryAfter"] == 30
        assert "error" in body

    def test_to_dict_without_retry_after(self):
        body = classify_error(RequestTimeoutError("fmp", 10.0)).to_dict()
        assert set(body) == {"error", "code"}

    def test_fields_are_read_only(self):
        result = classify_error(RequestTimeoutError("fmp", 10.0))
        with pytest.raises(AttributeError):
            result.http_status = 200
