"""
ReadThroughCache - the fetch pattern every provider operation follows.

1. compute the cache key
2. on hit, decode and return without touching the provider
3. on miss, call the loader, store the result with the operation's TTL
4. on failure, classify the error and re-raise; nothing is cached

Concurrent misses for the same key may both reach the provider and both
write the entry; no per-key locking is done.
"""

from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from market_gateway.services.cache import CacheStore, make_cache_key
from market_gateway.services.classifier import classify_error
from market_gateway.services.errors import ClassifiedError

T = TypeVar("T")


class ReadThroughCache:
    """
    Read-through wrapper around a CacheStore.

    Usage:
        read_through = ReadThroughCache(cache)

        quote = await read_through.fetch(
            namespace="alphavantage:quote",
            params={"symbol": "AAPL"},
            ttl=300,
            loader=lambda: source.fetch_quote("AAPL"),
            adapter=TypeAdapter(StockQuote),
            service_id="alphavantage",
        )
    """

    def __init__(self, cache: CacheStore):
        self._cache = cache

    @property
    def cache(self) -> CacheStore:
        return self._cache

    async def fetch(
        self,
        namespace: str,
        params: dict[str, Any],
        ttl: int,
        loader: Callable[[], Awaitable[T]],
        adapter: TypeAdapter[T],
        service_id: str | None = None,
    ) -> T:
        """
        Return the cached value for (namespace, params) or load and cache it.

        Raises:
            ClassifiedError: If the loader failed
        """
        key = make_cache_key(namespace, **params)

        raw = await self._cache.get(key)
        if raw is not None:
            try:
                return adapter.validate_json(raw)
            except ValidationError as e:
                # Entry written by an older schema; refetch and overwrite it
                logger.warning(f"Discarding undecodable cache entry {key[:80]}: {e}")

        try:
            value = await loader()
        except ClassifiedError:
            raise
        except Exception as e:
            classified = classify_error(e, service_id)
            logger.warning(
                f"{namespace} failed: {classified.code} "
                f"({type(e).__name__}: {e})"
            )
            raise classified from e

        await self._cache.set(key, adapter.dump_json(value), ttl)
        return value
