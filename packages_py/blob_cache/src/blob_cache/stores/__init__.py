"""
Blob store implementations.
"""
from .memory import (
    MemoryBlobStore,
    create_memory_blob_store,
    memory_store_factory,
)
from .redis import (
    RedisBlobStore,
    RedisClientProtocol,
    create_redis_blob_store,
    redis_store_factory,
)

__all__ = [
    "MemoryBlobStore",
    "create_memory_blob_store",
    "memory_store_factory",
    "RedisBlobStore",
    "RedisClientProtocol",
    "create_redis_blob_store",
    "redis_store_factory",
]
