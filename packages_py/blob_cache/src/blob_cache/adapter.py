"""
Maps cache entries onto a blob store's value/metadata primitives.
"""
import logging
from typing import List, Optional

from .keys import from_key, to_key
from .types import BlobStore, CacheEntry, CacheMetadata

logger = logging.getLogger(__name__)


class EntryStoreAdapter:
    """
    Reads and writes cache entries through a BlobStore.

    Every path (write, read, remove, enumerate) goes through encode_key so
    keys compare by equality. Store failures propagate unchanged.
    """

    def __init__(self, store: BlobStore) -> None:
        self._store = store

    @property
    def store(self) -> BlobStore:
        """The underlying blob store."""
        return self._store

    def encode_key(self, url: str) -> str:
        """Encode a URL into a store key."""
        return to_key(url)

    async def write(self, url: str, body: bytes, metadata: CacheMetadata) -> None:
        """Write body and metadata for a URL, replacing any existing entry."""
        key = self.encode_key(url)
        logger.debug(
            f"EntryStoreAdapter.write: key={key} status={metadata.status} "
            f"bytes={len(body)} timestamp={metadata.timestamp}"
        )
        await self._store.set(key, body, metadata.to_dict())

    async def read(self, url: str) -> Optional[CacheEntry]:
        """Read the entry for a URL, or None if absent."""
        key = self.encode_key(url)
        blob = await self._store.get_with_metadata(key)
        if blob is None or blob.data is None:
            logger.debug(f"EntryStoreAdapter.read: key={key} absent")
            return None

        logger.debug(f"EntryStoreAdapter.read: key={key} found ({len(blob.data)} bytes)")
        return CacheEntry(
            key=key,
            body=blob.data,
            metadata=CacheMetadata.from_dict(blob.metadata or {}),
        )

    async def remove(self, url: str) -> None:
        """Remove the entry for a URL. Missing entries are ignored."""
        key = self.encode_key(url)
        logger.debug(f"EntryStoreAdapter.remove: key={key}")
        await self._store.delete(key)

    async def enumerate(self, url_filter: Optional[str] = None) -> List[str]:
        """
        List stored URLs.

        Args:
            url_filter: Only include the key equal to this URL's key

        Returns:
            Decoded URLs in store order
        """
        wanted = self.encode_key(url_filter) if url_filter is not None else None
        urls = [
            from_key(key)
            for key in await self._store.list()
            if wanted is None or key == wanted
        ]
        logger.debug(f"EntryStoreAdapter.enumerate: {len(urls)} keys (filter={wanted})")
        return urls

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()
