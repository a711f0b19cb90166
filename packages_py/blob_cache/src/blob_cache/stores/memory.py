"""
In-memory blob store.

Suitable for tests and single-process use. Several namespaces can share one
backing dict, the way several named caches share one site's blob storage.
"""
import copy
from typing import Any, Dict, List, Optional, Tuple

from ..types import BlobStore, StoreFactory, StoredBlob

_Backing = Dict[str, Dict[str, Tuple[bytes, Dict[str, Any]]]]


class MemoryBlobStore(BlobStore):
    """
    In-memory implementation of BlobStore.

    Example:
        store = MemoryBlobStore("blobcache-pages")
        await store.set("key", b"body", {"status": 200})
        blob = await store.get_with_metadata("key")
    """

    def __init__(self, namespace: str = "", backing: Optional[_Backing] = None) -> None:
        """
        Create a new MemoryBlobStore.

        Args:
            namespace: Namespace this store reads and writes
            backing: Shared backing dict. Default: a private dict
        """
        self._namespace = namespace
        self._backing: _Backing = backing if backing is not None else {}
        self._closed = False

    @property
    def namespace(self) -> str:
        """Namespace name."""
        return self._namespace

    def _data(self) -> Dict[str, Tuple[bytes, Dict[str, Any]]]:
        return self._backing.setdefault(self._namespace, {})

    async def set(self, key: str, value: bytes, metadata: Dict[str, Any]) -> None:
        """Store a value together with its metadata."""
        self._data()[key] = (bytes(value), copy.deepcopy(metadata))

    async def get(self, key: str) -> Optional[bytes]:
        """Get a value by key."""
        entry = self._data().get(key)
        return entry[0] if entry is not None else None

    async def get_with_metadata(self, key: str) -> Optional[StoredBlob]:
        """Get a value and its metadata."""
        entry = self._data().get(key)
        if entry is None:
            return None
        value, metadata = entry
        return StoredBlob(data=value, metadata=copy.deepcopy(metadata))

    async def delete(self, key: str) -> None:
        """Delete a key."""
        self._data().pop(key, None)

    async def list(self) -> List[str]:
        """List every key in the namespace."""
        return list(self._data().keys())

    async def close(self) -> None:
        """Close the store. Data stays in the backing dict."""
        self._closed = True

    def __repr__(self) -> str:
        return f"MemoryBlobStore(namespace={self._namespace!r}, entries={len(self._data())})"


def create_memory_blob_store(
    namespace: str = "", backing: Optional[_Backing] = None
) -> MemoryBlobStore:
    """Create a memory blob store."""
    return MemoryBlobStore(namespace, backing)


def memory_store_factory(backing: Optional[_Backing] = None) -> StoreFactory:
    """
    Create a store factory whose stores share one backing dict.

    Args:
        backing: Shared backing dict. Default: a new dict

    Returns:
        Callable mapping a namespace to a MemoryBlobStore
    """
    shared: _Backing = backing if backing is not None else {}

    def factory(namespace: str) -> BlobStore:
        return MemoryBlobStore(namespace, shared)

    return factory
