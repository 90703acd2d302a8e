"""
Service layer infrastructure - the caching and upstream-fetch core.

Provides:
- CacheStore: TTL cache over Redis or memory, failures degrade to misses
- ProviderClient: Per-upstream HTTP client with timeout and retry
- classify_error: Maps raw failures onto the ClassifiedError taxonomy
- ReadThroughCache: Cache-then-fetch pattern used by every operation
"""

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
from market_gateway.services.cache import (
    CacheBackend,
    CacheEntry,
    CacheStore,
    MemoryBackend,
    RedisBackend,
    create_cache_store,
    make_cache_key,
)
from market_gateway.services.classifier import classify_error
from market_gateway.services.client import ProviderClient, ProviderConfig, RateLimit
from market_gateway.services.read_through import ReadThroughCache

__all__ = [
    # Errors
    "AuthenticationError",
    "ClassifiedError",
    "ErrorKind",
    "InvalidResponseError",
    "RateLimitError",
    "RequestTimeoutError",
    "ServiceError",
    "ServiceUnavailableError",
    "UpstreamError",
    "classify_error",
    # Cache
    "CacheBackend",
    "CacheEntry",
    "CacheStore",
    "MemoryBackend",
    "RedisBackend",
    "create_cache_store",
    "make_cache_key",
    # Client
    "ProviderClient",
    "ProviderConfig",
    "RateLimit",
    # Orchestration
    "ReadThroughCache",
]
