"""Shared fixtures: a scripted upstream, a fake clock and a recording sleep."""
from datetime import date

import httpx
import pytest

from market_gateway.datasource.crypto import CoinGeckoSource
from market_gateway.datasource.fx import ExchangeRateSource
from market_gateway.datasource.markets import AlphaVantageSource, FmpSource, PolygonSource
from market_gateway.datasource.news import NewsAPISource
from market_gateway.gateway import MarketDataGateway, build_provider_configs
from market_gateway.services.cache import CacheStore, MemoryBackend
from market_gateway.services.client import ProviderClient
from market_gateway.settings import Settings

TODAY = date(2024, 6, 14)

GLOBAL_QUOTE = {
    "Global Quote": {
        "01. symbol": "AAPL",
        "02. open": "189.3300",
        "03. high": "191.0500",
        "04. low": "188.2000",
        "05. price": "190.6400",
        "06. volume": "48794400",
        "07. latest trading day": "2024-06-13",
        "08. previous close": "189.2500",
        "09. change": "1.3900",
        "10. change percent": "0.7345%",
    }
}


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingBackend(MemoryBackend):
    """Memory backend that remembers the TTL of every write."""

    def __init__(self, clock=None):
        super().__init__(clock)
        self.writes: list[tuple[str, int]] = []

    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> None:
        self.writes.append((key, ttl_seconds))
        await super().setex(key, ttl_seconds, value)

    def ttl_for(self, prefix: str) -> int:
        return next(ttl for key, ttl in self.writes if key.startswith(prefix))


class UnreachableBackend(MemoryBackend):
    async def get(self, key: str) -> bytes | None:
        raise ConnectionError("cache unreachable")

    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> None:
        raise ConnectionError("cache unreachable")


class Upstream:
    """
    Scripted provider endpoints behind an httpx.MockTransport.

    Replies are queued per (host, path); the last queued reply repeats.
    A reply is either an httpx.Response factory or an exception to raise.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list] = {}

    def reply(self, host: str, path: str, *replies) -> None:
        self._routes[(host, path)] = list(replies)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.url.host, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "not scripted"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply()


def ok(payload, status: int = 200, headers: dict | None = None):
    return lambda: httpx.Response(status, json=payload, headers=headers)


@pytest.fixture
def settings() -> Settings:
    return Settings.model_validate(
        {
            "ENVIRONMENT": "test",
            "ALPHA_VANTAGE_KEY": "av-key",
            "POLYGON_KEY": "poly-key",
            "FMP_KEY": "fmp-key",
            "NEWS_API_KEY": "news-key",
            "ALPHA_VANTAGE_BASE_URL": "https://av.test/query",
            "POLYGON_BASE_URL": "https://polygon.test",
            "COINGECKO_BASE_URL": "https://coingecko.test/api/v3",
            "FMP_BASE_URL": "https://fmp.test/api/v3",
            "EXCHANGE_RATE_BASE_URL": "https://fx.test/v4",
            "NEWS_API_BASE_URL": "https://news.test/v2",
        }
    )


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def backend(clock) -> RecordingBackend:
    return RecordingBackend(clock)


@pytest.fixture
def http_client(upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


@pytest.fixture
def make_gateway(settings, http_client, sleep, backend):
    """Factory so tests can swap the cache backend."""

    def build(cache_backend=None) -> MarketDataGateway:
        configs = build_provider_configs(settings)

        def client(service_id: str) -> ProviderClient:
            return ProviderClient(configs[service_id], http_client=http_client, sleep=sleep)

        return MarketDataGateway(
            cache=CacheStore(cache_backend if cache_backend is not None else backend),
            alpha_vantage=AlphaVantageSource(client("alphavantage")),
            polygon=PolygonSource(client("polygon")),
            coingecko=CoinGeckoSource(client("coingecko")),
            fmp=FmpSource(client("fmp")),
            exchange_rate=ExchangeRateSource(client("exchangerate")),
            news=NewsAPISource(client("newsapi")),
            today=lambda: TODAY,
        )

    return build


@pytest.fixture
def gateway(make_gateway) -> MarketDataGateway:
    return make_gateway()
