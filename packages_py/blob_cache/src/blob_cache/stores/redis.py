"""
Redis blob store implementation.
Suitable for caches shared across processes and hosts.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Union
from urllib.parse import quote

import redis.asyncio as aioredis

from ..types import BlobStore, StoreFactory, StoredBlob

logger = logging.getLogger(__name__)

_DATA_FIELD = "data"
_METADATA_FIELD = "metadata"
_GLOB_SPECIAL = "\\*?[]"


class RedisClientProtocol(Protocol):
    """Protocol for Redis client (compatible with redis-py async)"""

    async def hset(self, name: str, mapping: Mapping[str, Any]) -> int:
        ...

    async def hget(self, name: str, key: str) -> Any:
        ...

    async def hgetall(self, name: str) -> Dict[Any, Any]:
        ...

    async def delete(self, *names: str) -> int:
        ...

    def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> AsyncIterator[Any]:
        ...

    async def aclose(self) -> None:
        ...


def _escape_glob(value: str) -> str:
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in value)


def _to_str(value: Union[bytes, str]) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisBlobStore(BlobStore):
    """
    Redis implementation of BlobStore.

    Each entry is one hash holding the body and the JSON metadata, so a
    single HSET writes both atomically.
    """

    def __init__(
        self,
        client: RedisClientProtocol,
        namespace: str = "",
        key_prefix: str = "",
        scan_count: int = 100,
        owns_client: bool = True,
    ) -> None:
        """
        Create a new RedisBlobStore.

        Args:
            client: Redis client (async redis-py instance, decode_responses=False)
            namespace: Namespace this store reads and writes
            key_prefix: Prefix for all Redis keys. Default: ''
            scan_count: SCAN batch size hint. Default: 100
            owns_client: Close the client in close(). Default: True
        """
        self._client = client
        self._namespace = namespace
        self._key_prefix = key_prefix
        self._scan_count = scan_count
        self._owns_client = owns_client

    @property
    def namespace(self) -> str:
        """Namespace name."""
        return self._namespace

    def _base(self) -> str:
        # The encoded namespace never contains ':'.
        return f"{self._key_prefix}{quote(self._namespace, safe='')}:"

    def _get_key(self, key: str) -> str:
        """Get the full key with prefix and namespace"""
        return f"{self._base()}{key}"

    async def set(self, key: str, value: bytes, metadata: Dict[str, Any]) -> None:
        """Store a value together with its metadata."""
        await self._client.hset(
            self._get_key(key),
            mapping={
                _DATA_FIELD: bytes(value),
                _METADATA_FIELD: json.dumps(metadata),
            },
        )
        logger.debug(f"RedisBlobStore.set: wrote {self._get_key(key)} ({len(value)} bytes)")

    async def get(self, key: str) -> Optional[bytes]:
        """Get a value by key."""
        return await self._client.hget(self._get_key(key), _DATA_FIELD)

    async def get_with_metadata(self, key: str) -> Optional[StoredBlob]:
        """Get a value and its metadata."""
        raw = await self._client.hgetall(self._get_key(key))
        if not raw:
            return None

        fields = {_to_str(k): v for k, v in raw.items()}
        data = fields.get(_DATA_FIELD)
        metadata_raw = fields.get(_METADATA_FIELD)
        metadata = json.loads(_to_str(metadata_raw)) if metadata_raw else {}
        return StoredBlob(data=data, metadata=metadata)

    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self._client.delete(self._get_key(key))

    async def list(self) -> List[str]:
        """List every key in the namespace."""
        base = self._base()
        pattern = f"{_escape_glob(base)}*"
        keys: List[str] = []
        async for raw_key in self._client.scan_iter(match=pattern, count=self._scan_count):
            full_key = _to_str(raw_key)
            if full_key.startswith(base):
                keys.append(full_key[len(base):])
        return keys

    async def close(self) -> None:
        """Close the store and cleanup resources"""
        if self._owns_client:
            await self._client.aclose()

    def __repr__(self) -> str:
        return f"RedisBlobStore(namespace={self._namespace!r}, key_prefix={self._key_prefix!r})"


def create_redis_blob_store(
    client: Optional[RedisClientProtocol] = None,
    *,
    namespace: str = "",
    key_prefix: str = "",
    url: str = "redis://localhost:6379/0",
) -> RedisBlobStore:
    """
    Create a new RedisBlobStore instance.

    Args:
        client: Redis client. Default: a client built from url
        namespace: Namespace this store reads and writes
        key_prefix: Prefix for all Redis keys
        url: Redis URL used when no client is given

    Returns:
        RedisBlobStore instance
    """
    if client is None:
        client = aioredis.from_url(url, decode_responses=False)
    return RedisBlobStore(client, namespace=namespace, key_prefix=key_prefix)


def redis_store_factory(
    client: RedisClientProtocol, key_prefix: str = ""
) -> StoreFactory:
    """
    Create a store factory whose stores share one Redis client.

    The produced stores never close the shared client; the caller owns it.
    """

    def factory(namespace: str) -> BlobStore:
        return RedisBlobStore(
            client, namespace=namespace, key_prefix=key_prefix, owns_client=False
        )

    return factory
