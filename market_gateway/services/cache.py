"""
CacheStore - Read-through cache storage with per-write TTL.

Features:
- Pluggable backends: Redis (network store) or in-process memory
- TTL chosen per write, not per store
- Failures never surface: a failed read is a miss, a failed write is skipped
- Canonical cache key construction
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote

from loguru import logger
from redis.asyncio import Redis

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """A single cache entry with its absolute expiry time."""

    key: str
    value: bytes
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check if entry is past its TTL."""
        return now >= self.expires_at


class CacheBackend(ABC):
    """Raw key/value storage. Implementations may raise on any call."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None: ...

    @abstractmethod
    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> None: ...

    async def close(self) -> None:
        return None


class MemoryBackend(CacheBackend):
    """
    In-process backend.

    Used when no Redis URL is configured and in tests. An expired entry is
    dropped when it is read, and a write made after the earliest expiry has
    passed sweeps every expired entry.
    """

    def __init__(self, clock: Clock | None = None):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock or time.monotonic
        self._next_expiry = float("inf")

    async def get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> None:
        now = self._clock()
        if now >= self._next_expiry:
            self._sweep(now)
        entry = CacheEntry(key=key, value=value, expires_at=now + ttl_seconds)
        self._entries[key] = entry
        self._next_expiry = min(self._next_expiry, entry.expires_at)

    def _sweep(self, now: float) -> None:
        self._entries = {
            key: entry for key, entry in self._entries.items() if not entry.is_expired(now)
        }
        self._next_expiry = min(
            (entry.expires_at for entry in self._entries.values()), default=float("inf")
        )
        logger.debug(f"Memory cache sweep kept {len(self._entries)} entries")

    def __len__(self) -> int:
        return len(self._entries)


class RedisBackend(CacheBackend):
    """
    Redis backend (``GET`` / ``SETEX``).

    The connection is created on first use and reused afterwards.
    """

    def __init__(self, url: str, socket_timeout: float = 2.0):
        self._url = url
        self._socket_timeout = socket_timeout
        self._client: Redis | None = None

    def _get_client(self) -> Redis:
        """Get or create the Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self._url,
                socket_connect_timeout=self._socket_timeout,
                socket_timeout=self._socket_timeout,
            )
            logger.info("Redis cache client created")
        return self._client

    async def get(self, key: str) -> bytes | None:
        return await self._get_client().get(key)

    async def setex(self, key: str, ttl_seconds: int, value: bytes) -> None:
        await self._get_client().setex(key, ttl_seconds, value)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis cache client closed")


class CacheStore:
    """
    Cache store used by the read-through orchestrator.

    Usage:
        cache = CacheStore(MemoryBackend())

        raw = await cache.get("alphavantage:quote:symbol=AAPL")
        if raw is None:
            raw = encode(await fetch())
            await cache.set("alphavantage:quote:symbol=AAPL", raw, 300)
    """

    def __init__(self, backend: CacheBackend, debug: bool = False):
        self._backend = backend
        self._debug = debug
        self._stats = CacheStats()

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def get(self, key: str) -> bytes | None:
        """Return the cached value, or None on miss or backend failure."""
        try:
            value = await self._backend.get(key)
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache read failed for {key[:80]}: {e}")
            return None

        if value is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:80]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:80]}")
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store a value; returns False (and logs) if the backend failed."""
        try:
            await self._backend.setex(key, ttl_seconds, value)
        except Exception as e:
            self._stats.errors += 1
            logger.warning(f"Cache write failed for {key[:80]}: {e}")
            return False

        self._stats.writes += 1
        self._log(f"SET: {key[:80]} (TTL: {ttl_seconds}s)")
        return True

    async def close(self) -> None:
        try:
            await self._backend.close()
        except Exception as e:
            logger.warning(f"Cache backend close failed: {e}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "errors": self.errors,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


def _canonical_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(sorted(quote(str(v), safe="") for v in value))
    return quote(str(value), safe="")


def make_cache_key(namespace: str, **params: Any) -> str:
    """
    Build a cache key from a namespace and the parameters affecting the result.

    Parameters are ordered by name and list values are sorted, so the key only
    depends on the parameter values. Values are percent-quoted so that
    separators inside a value cannot produce the key of another parameter set.
    Case folding is the caller's job (symbols upper, coin ids lower, ...).
    """
    parts = [namespace]
    for name in sorted(params):
        parts.append(f"{name}={_canonical_value(params[name])}")
    return ":".join(parts)


def create_cache_store(redis_url: str = "", debug: bool = False) -> CacheStore:
    """Create a cache store for the configured backend."""
    if redis_url:
        return CacheStore(RedisBackend(redis_url), debug=debug)
    logger.warning("REDIS_URL not configured, using in-process cache")
    return CacheStore(MemoryBackend(), debug=debug)
