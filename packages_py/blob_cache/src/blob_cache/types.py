"""
Types for the blob-store backed HTTP response cache.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx


RequestInfo = Union[str, httpx.Request]
"""A URL string or a full request object."""

Fetcher = Callable[[httpx.Request], Awaitable[httpx.Response]]
"""Network fetch primitive used by add() and stale refreshes."""


@dataclass
class CacheMetadata:
    """Metadata persisted alongside each cached body."""

    status: int
    """Response status code at write time."""

    headers: List[Tuple[str, str]]
    """Response headers in original order, duplicates preserved."""

    timestamp: int
    """Write time in milliseconds since epoch."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-wire metadata record."""
        return {
            "status": self.status,
            "headers": [[name, value] for name, value in self.headers],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMetadata":
        """Create from an on-wire metadata record."""
        status = data.get("status")
        return cls(
            status=int(status) if status is not None else 200,
            headers=[(str(name), str(value)) for name, value in data.get("headers", [])],
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class StoredBlob:
    """Value and metadata as returned by a blob store."""

    data: Optional[bytes]
    """Raw body bytes."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Metadata record written with the value."""


@dataclass
class CacheEntry:
    """A decoded cache entry."""

    key: str
    """Store key (percent-encoded URL)."""

    body: bytes
    """Response body."""

    metadata: CacheMetadata
    """Status, headers and write timestamp."""


class CacheFreshness(str, Enum):
    """Cache freshness status."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


@dataclass
class FreshnessPolicy:
    """Fallback lifetimes used when Cache-Control omits a directive."""

    default_max_age_seconds: float = 0
    """max-age assumed when the header has none."""

    default_stale_while_revalidate_seconds: float = 0
    """stale-while-revalidate assumed when the header has none."""


@dataclass
class FreshnessVerdict:
    """Result of evaluating a stored entry against the clock."""

    freshness: CacheFreshness
    age_seconds: float
    max_age_seconds: float
    stale_while_revalidate_seconds: float


@dataclass
class CacheQueryOptions:
    """Query options accepted by the named cache operations.

    Only a single variant is stored per URL, so these are accepted for API
    compatibility and otherwise ignored.
    """

    ignore_search: bool = False
    ignore_method: bool = False
    ignore_vary: bool = False


@dataclass
class MultiCacheQueryOptions(CacheQueryOptions):
    """Query options for registry-level match."""

    cache_name: Optional[str] = None
    """Restrict the lookup to a single named cache."""


class BlobCacheEventType(str, Enum):
    """Event types for cache operations."""

    CACHE_HIT = "cache:hit"
    CACHE_STALE = "cache:stale"
    CACHE_MISS = "cache:miss"
    CACHE_EXPIRE = "cache:expire"
    CACHE_STORE = "cache:store"
    CACHE_DELETE = "cache:delete"
    CACHE_REFRESH = "cache:refresh"
    CACHE_REFRESH_ERROR = "cache:refresh-error"


@dataclass
class BlobCacheEvent:
    """Cache event."""

    type: BlobCacheEventType
    key: str
    url: str
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None


BlobCacheEventListener = Callable[[BlobCacheEvent], None]
"""Event listener type."""


class BlobStore(ABC):
    """Key-value blob store interface.

    One instance covers a single namespace. Implementations surface their own
    failures unchanged.
    """

    @abstractmethod
    async def set(self, key: str, value: bytes, metadata: Dict[str, Any]) -> None:
        """Store a value together with its metadata."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Get a value by key, or None if absent."""
        pass

    @abstractmethod
    async def get_with_metadata(self, key: str) -> Optional[StoredBlob]:
        """Get a value and its metadata, or None if absent."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        pass

    @abstractmethod
    async def list(self) -> List[str]:
        """List every key in the namespace."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the store and release resources."""
        pass


StoreFactory = Callable[[str], BlobStore]
"""Builds a store for a namespace name."""
