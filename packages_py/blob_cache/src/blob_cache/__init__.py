"""
HTTP response cache on top of a key-value blob store.

Supports max-age and stale-while-revalidate freshness, background refresh of
stale entries, and a registry of named caches.
"""
from .types import (
    RequestInfo,
    Fetcher,
    CacheMetadata,
    StoredBlob,
    CacheEntry,
    CacheFreshness,
    FreshnessPolicy,
    FreshnessVerdict,
    CacheQueryOptions,
    MultiCacheQueryOptions,
    BlobCacheEventType,
    BlobCacheEvent,
    BlobCacheEventListener,
    BlobStore,
    StoreFactory,
)
from .errors import BlobCacheError, CacheValidationError
from .config import (
    BlobCacheConfig,
    DEFAULT_BLOB_CACHE_CONFIG,
    merge_blob_cache_config,
    config_from_env,
)
from .keys import to_key, from_key, namespace_for
from .freshness import (
    parse_max_age,
    parse_stale_while_revalidate,
    get_header,
    get_header_values,
    is_vary_wildcard,
    is_ok_status,
    evaluate_freshness,
    format_http_date,
)
from .adapter import EntryStoreAdapter
from .refresh import BackgroundRefresher
from .cache import BlobCache, create_blob_cache
from .storage import BlobCacheStorage, create_blob_cache_storage
from .stores import (
    MemoryBlobStore,
    create_memory_blob_store,
    memory_store_factory,
    RedisBlobStore,
    RedisClientProtocol,
    create_redis_blob_store,
    redis_store_factory,
)


__all__ = [
    # Types
    "RequestInfo",
    "Fetcher",
    "CacheMetadata",
    "StoredBlob",
    "CacheEntry",
    "CacheFreshness",
    "FreshnessPolicy",
    "FreshnessVerdict",
    "CacheQueryOptions",
    "MultiCacheQueryOptions",
    "BlobCacheEventType",
    "BlobCacheEvent",
    "BlobCacheEventListener",
    "BlobStore",
    "StoreFactory",
    # Errors
    "BlobCacheError",
    "CacheValidationError",
    # Config
    "BlobCacheConfig",
    "DEFAULT_BLOB_CACHE_CONFIG",
    "merge_blob_cache_config",
    "config_from_env",
    # Keys
    "to_key",
    "from_key",
    "namespace_for",
    # Freshness
    "parse_max_age",
    "parse_stale_while_revalidate",
    "get_header",
    "get_header_values",
    "is_vary_wildcard",
    "is_ok_status",
    "evaluate_freshness",
    "format_http_date",
    # Cache
    "EntryStoreAdapter",
    "BackgroundRefresher",
    "BlobCache",
    "create_blob_cache",
    "BlobCacheStorage",
    "create_blob_cache_storage",
    # Stores
    "MemoryBlobStore",
    "create_memory_blob_store",
    "memory_store_factory",
    "RedisBlobStore",
    "RedisClientProtocol",
    "create_redis_blob_store",
    "redis_store_factory",
]

__version__ = "1.0.0"
