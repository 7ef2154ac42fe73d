"""
Estado compartido del motor: cache de resultados y rate limiter.

Ambos están indexados por usuario y delegan el storage en un store
intercambiable (en memoria por default).
"""

from afinidad.cache.result_cache import (
    CacheEntry,
    CacheStore,
    InMemoryCacheStore,
    ResultCache,
)
from afinidad.cache.rate_limiter import (
    InMemoryRateLimiterStore,
    RateLimitDecision,
    RateLimiter,
    RateLimiterStore,
    WindowRecord,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "ResultCache",
    "InMemoryRateLimiterStore",
    "RateLimitDecision",
    "RateLimiter",
    "RateLimiterStore",
    "WindowRecord",
]
