"""
Registry of named blob caches.
"""
import logging
from typing import Callable, Dict, List, Optional

import httpx

from .cache import BlobCache
from .config import BlobCacheConfig, merge_blob_cache_config
from .keys import namespace_for
from .stores.memory import memory_store_factory
from .types import Fetcher, MultiCacheQueryOptions, RequestInfo, StoreFactory

logger = logging.getLogger(__name__)


class BlobCacheStorage:
    """
    Process-lifetime mapping from cache name to BlobCache.

    Caches are created lazily by open() and only leave the registry through
    delete(). Removing a cache from the registry leaves its stored entries in
    place.

    Example:
        storage = BlobCacheStorage(store_factory=redis_store_factory(client))

        pages = await storage.open("pages")
        await pages.add("https://example.com/")

        response = await storage.match("https://example.com/")
    """

    def __init__(
        self,
        *,
        store_factory: Optional[StoreFactory] = None,
        config: Optional[BlobCacheConfig] = None,
        fetcher: Optional[Fetcher] = None,
        clock: Optional[Callable[[], float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Create a new BlobCacheStorage.

        Args:
            store_factory: Builds the store for a cache namespace. Default: in-memory
            config: Configuration shared by every cache
            fetcher: Network fetch primitive shared by every cache
            clock: Clock shared by every cache
            transport: Transport for the default httpx client of every cache
        """
        self._config = merge_blob_cache_config(config)
        self._store_factory = store_factory or memory_store_factory()
        self._fetcher = fetcher
        self._clock = clock
        self._transport = transport
        self._caches: Dict[str, BlobCache] = {}

    async def open(self, name: str) -> BlobCache:
        """Get the named cache, creating it on first use."""
        cache = self._caches.get(name)
        if cache is None:
            namespace = namespace_for(name, self._config.namespace_prefix)
            cache = BlobCache(
                name,
                store=self._store_factory(namespace),
                config=self._config,
                fetcher=self._fetcher,
                clock=self._clock,
                transport=self._transport,
            )
            self._caches[name] = cache
            logger.debug(f"BlobCacheStorage.open: registered {name!r} ({namespace})")
        return cache

    async def has(self, name: str) -> bool:
        """Check if a cache name is registered."""
        return name in self._caches

    async def delete(self, name: str) -> bool:
        """
        Remove a cache from the registry.

        Returns True if the name was registered. Stored entries are not purged.
        """
        cache = self._caches.pop(name, None)
        if cache is None:
            return False
        logger.debug(f"BlobCacheStorage.delete: unregistered {name!r}")
        return True

    async def keys(self) -> List[str]:
        """Get registered cache names in registration order."""
        return list(self._caches.keys())

    async def match(
        self,
        request: RequestInfo,
        options: Optional[MultiCacheQueryOptions] = None,
    ) -> Optional[httpx.Response]:
        """
        Look up a response across caches.

        With options.cache_name only that cache is searched; otherwise caches
        are tried in registration order and the first hit wins.
        """
        if options is not None and options.cache_name:
            cache = self._caches.get(options.cache_name)
            if cache is None:
                return None
            return await cache.match(request, options)

        for cache in list(self._caches.values()):
            response = await cache.match(request, options)
            if response is not None:
                return response
        return None

    async def close(self) -> None:
        """Close and unregister every cache."""
        caches = list(self._caches.values())
        self._caches.clear()
        for cache in caches:
            await cache.close()


def create_blob_cache_storage(
    *,
    store_factory: Optional[StoreFactory] = None,
    config: Optional[BlobCacheConfig] = None,
    fetcher: Optional[Fetcher] = None,
    clock: Optional[Callable[[], float]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BlobCacheStorage:
    """Create a blob cache registry."""
    return BlobCacheStorage(
        store_factory=store_factory,
        config=config,
        fetcher=fetcher,
        clock=clock,
        transport=transport,
    )
