"""
ProviderClient - Async HTTP client for a single upstream provider.

Combines:
- Credential injection as a query parameter
- Bounded per-call timeout
- Retry with linear backoff for transient failures
- Provider-specific detection of errors embedded in 200 responses

The client never touches the cache; caching is the orchestrator's job.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from market_gateway.services.errors import (
    AuthenticationError,
    InvalidResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
    UpstreamError,
)

PayloadCheck = Callable[[Any], None]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimit:
    """Upstream quota. Informs TTL choice only, never enforced here."""

    calls: int
    per: str  # 'minute' | 'day' | 'month'

    def __str__(self) -> str:
        return f"{self.calls}/{self.per}"


@dataclass(frozen=True)
class ProviderConfig:
    """Static configuration for one upstream provider."""

    service_id: str
    name: str
    base_url: str
    rate_limit: RateLimit
    api_key: str | None = None
    api_key_param: str | None = None  # None: provider needs no key
    timeout: float = 10.0
    max_attempts: int = 3
    backoff: float = 1.0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def requires_key(self) -> bool:
        return self.api_key_param is not None

    def is_configured(self) -> bool:
        return not self.requires_key or bool(self.api_key)


def _parse_retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


class ProviderClient:
    """
    HTTP client for one upstream.

    Usage:
        client = ProviderClient(ProviderConfig(
            service_id="polygon",
            name="Polygon",
            base_url="https://api.polygon.io",
            rate_limit=RateLimit(5, "minute"),
            api_key="...",
            api_key_param="apiKey",
        ))

        data = await client.request("/v2/aggs/ticker/AAPL/prev")
    """

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep | None = None,
    ):
        self.config = config
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._sleep = sleep or asyncio.sleep

        if not config.is_configured():
            logger.warning(f"{config.name} API key not configured")

    @property
    def service_id(self) -> str:
        return self.config.service_id

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                headers=self.config.headers or None,
            )
        return self._http_client

    async def request(
        self,
        path: str = "",
        params: dict[str, Any] | None = None,
        check: PayloadCheck | None = None,
    ) -> Any:
        """
        GET a provider endpoint with retry.

        Args:
            path: Path appended to the provider base URL
            params: Query parameters (the API key is added here)
            check: Hook raising a ServiceError for errors embedded in the body

        Returns:
            Decoded JSON payload

        Raises:
            ServiceError: The failure of the last attempt
        """
        if not self.config.is_configured():
            raise AuthenticationError(
                f"{self.config.name} API key not configured",
                service_id=self.service_id,
            )

        query = {k: v for k, v in (params or {}).items() if v is not None}
        if self.config.requires_key:
            query[self.config.api_key_param] = self.config.api_key

        url = f"{self.config.base_url}{path}"
        attempts = max(1, self.config.max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                payload = await self._execute_request(url, query)
                if check is not None:
                    check(payload)
                return payload

            except ServiceError as e:
                if not e.retryable or attempt == attempts:
                    if attempt > 1:
                        logger.warning(
                            f"{self.config.name} request failed after "
                            f"{attempt} attempts: {e}"
                        )
                    raise

                delay = attempt * self.config.backoff
                logger.debug(
                    f"{self.config.name} attempt {attempt}/{attempts} failed "
                    f"({type(e).__name__}), retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        # range() is never empty, the loop always returns or raises
        raise ServiceError("Max retries exceeded", service_id=self.service_id)

    async def _execute_request(self, url: str, params: dict[str, Any]) -> Any:
        """Execute one HTTP request, translating failures to ServiceError."""
        client = await self._get_http_client()
        service_id = self.service_id

        try:
            response = await client.get(url, params=params, timeout=self.config.timeout)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(service_id, self.config.timeout) from e
        except httpx.ConnectError as e:
            raise ServiceUnavailableError(
                f"Unable to connect to {self.config.name}: {e}",
                service_id=service_id,
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(str(e), service_id=service_id) from e

        status = response.status_code
        if status == 429:
            raise RateLimitError(service_id, _parse_retry_after(response))
        if status in (401, 403):
            raise AuthenticationError(
                f"{self.config.name} rejected the API key (HTTP {status})",
                service_id=service_id,
            )
        if status >= 400:
            raise UpstreamError(
                f"HTTP {status} from {self.config.name}",
                service_id=service_id,
                status_code=status,
                retryable=status >= 500,
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Invalid response from {self.config.name}: body is not JSON",
                service_id=service_id,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug(f"{self.config.name} client closed")
