"""
Service layer infrastructure - resilience patterns for external API calls.

Provides:
- SWRCache: In-memory stale-while-revalidate cache with LRU eviction
- RequestDeduplicator: Single-flight registry for concurrent loads
- fetch_with_retry: Exponential backoff with jitter and cancellation
- RequestLimiter: Concurrency cap and start-rate budget
- ServiceClient: Unified client combining hooks, retry and validation
"""

from hnreel.services.errors import (
    ServiceError,
    RequestCancelledError,
    UnexpectedStatusError,
    RetriesExhaustedError,
    RateLimitError,
    PayloadValidationError,
)
from hnreel.services.cancellation import CancellationToken
from hnreel.services.cache import CacheConfig, CacheEntry, CacheStats, SWRCache
from hnreel.services.deduplicator import RequestDeduplicator
from hnreel.services.hooks import ClientHooks, HookRegistry
from hnreel.services.limiter import RequestLimiter
from hnreel.services.retry import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    compute_backoff,
    fetch_with_retry,
)
from hnreel.services.client import ServiceClient, HttpxTransport

__all__ = [
    # Errors
    "ServiceError",
    "RequestCancelledError",
    "UnexpectedStatusError",
    "RetriesExhaustedError",
    "RateLimitError",
    "PayloadValidationError",
    # Cancellation
    "CancellationToken",
    # Cache
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "SWRCache",
    # Deduplicator
    "RequestDeduplicator",
    # Hooks
    "ClientHooks",
    "HookRegistry",
    # Limiter
    "RequestLimiter",
    # Retry
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "compute_backoff",
    "fetch_with_retry",
    # Client
    "ServiceClient",
    "HttpxTransport",
]
