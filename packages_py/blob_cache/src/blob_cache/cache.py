"""
Named request/response cache backed by a blob store.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence, Set

import httpx

from .adapter import EntryStoreAdapter
from .config import BlobCacheConfig, merge_blob_cache_config
from .errors import CacheValidationError
from .freshness import evaluate_freshness, format_http_date, is_ok_status, is_vary_wildcard
from .keys import from_key, namespace_for, request_url, to_request
from .refresh import BackgroundRefresher
from .stores.memory import MemoryBlobStore
from .types import (
    BlobCacheEvent,
    BlobCacheEventListener,
    BlobCacheEventType,
    BlobStore,
    CacheFreshness,
    CacheMetadata,
    CacheQueryOptions,
    Fetcher,
    RequestInfo,
)

logger = logging.getLogger(__name__)

# The reconstructed body is already decoded, so these would misdescribe it.
_BODY_FRAMING_HEADERS = ("content-encoding", "content-length", "transfer-encoding")


class BlobCache:
    """
    Request/response cache stored in a blob store namespace.

    Implements:
    - add / add_all / put / match / match_all / delete / keys
    - max-age and stale-while-revalidate freshness from the stored
      Cache-Control header
    - detached background refresh of stale entries, shared per key
    - removal of expired entries on lookup

    Example:
        cache = BlobCache("pages", store=create_redis_blob_store(namespace="blobcache-pages"))

        await cache.add("https://example.com/data.json")

        response = await cache.match("https://example.com/data.json")
        if response is not None:
            print(response.headers["cache"])  # HIT or STALE
    """

    def __init__(
        self,
        name: str = "",
        *,
        store: Optional[BlobStore] = None,
        config: Optional[BlobCacheConfig] = None,
        fetcher: Optional[Fetcher] = None,
        clock: Optional[Callable[[], float]] = None,
        refresher: Optional[BackgroundRefresher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Create a new BlobCache.

        Args:
            name: Cache name, used to derive the store namespace
            store: Blob store for this cache's namespace. Default: in-memory
            config: Cache configuration
            fetcher: Network fetch primitive. Default: an httpx.AsyncClient
            clock: Returns the current time in seconds. Default: time.time
            refresher: Background refresh scheduler
            transport: Transport for the default httpx client
        """
        self._config = merge_blob_cache_config(config)
        self._name = name
        self._namespace = namespace_for(name, self._config.namespace_prefix)
        self._adapter = EntryStoreAdapter(store or MemoryBlobStore(self._namespace))
        self._policy = self._config.freshness_policy()
        self._fetcher = fetcher
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._clock = clock or time.time
        self._listeners: Set[BlobCacheEventListener] = set()
        self._refresher = refresher or BackgroundRefresher(
            single_flight=self._config.single_flight_refresh,
            on_complete=self._on_refresh_complete,
            on_error=self._on_refresh_error,
        )

    @property
    def name(self) -> str:
        """Cache name."""
        return self._name

    @property
    def namespace(self) -> str:
        """Store namespace derived from the name."""
        return self._namespace

    @property
    def refresher(self) -> BackgroundRefresher:
        """Background refresh scheduler."""
        return self._refresher

    def get_config(self) -> BlobCacheConfig:
        """Get configuration."""
        return self._config

    def _now_ms(self) -> int:
        return int(round(self._clock() * 1000))

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        if self._fetcher is not None:
            return await self._fetcher(request)

        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.fetch_timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            )
        return await self._client.send(request)

    async def add(self, request: RequestInfo) -> None:
        """
        Fetch a request and store the response.

        Raises:
            CacheValidationError: If the fetched response cannot be cached
            httpx.HTTPError: If the fetch fails
        """
        response = await self._fetch(to_request(request))
        await self.put(request, response)

    async def add_all(self, requests: Sequence[RequestInfo]) -> None:
        """Add every request independently. Individual failures are logged, not raised."""
        results = await asyncio.gather(
            *(self.add(request) for request in requests), return_exceptions=True
        )
        for request, result in zip(requests, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"BlobCache.add_all: failed to cache {request_url(request)}: {result!r}"
                )

    async def put(self, request: RequestInfo, response: httpx.Response) -> None:
        """
        Store a response for a request.

        Raises:
            CacheValidationError: If the status is not 2xx, the method is not
                GET, the status is 206, or Vary contains '*'
        """
        req = to_request(request)
        status = response.status_code

        if not is_ok_status(status):
            raise CacheValidationError(
                f"Cannot cache response with status {status}",
                CacheValidationError.UNCACHEABLE_STATUS,
            )
        if req.method != "GET":
            raise CacheValidationError(
                f"Cannot cache response to {req.method} request",
                CacheValidationError.UNCACHEABLE_METHOD,
            )
        if status == 206:
            raise CacheValidationError(
                "Cannot cache response to a range request (206 Partial Content).",
                CacheValidationError.PARTIAL_CONTENT,
            )

        headers = list(response.headers.multi_items())
        if is_vary_wildcard(headers):
            raise CacheValidationError(
                "Cannot cache response with 'Vary: *' header.",
                CacheValidationError.VARY_WILDCARD,
            )

        metadata = CacheMetadata(status=status, headers=headers, timestamp=self._now_ms())
        body = await response.aread()

        url = request_url(request)
        await self._adapter.write(url, body, metadata)

        self._emit(
            BlobCacheEventType.CACHE_STORE,
            url,
            {"status": status, "timestamp": metadata.timestamp},
        )

    async def match(
        self,
        request: RequestInfo,
        options: Optional[CacheQueryOptions] = None,
    ) -> Optional[httpx.Response]:
        """
        Look up a stored response.

        Fresh entries are returned with ``cache: HIT``. Stale entries are
        returned with ``cache: STALE`` and refreshed in the background.
        Expired entries are deleted and reported as a miss.
        """
        if isinstance(request, httpx.Request) and request.method != "GET":
            return None

        url = request_url(request)
        entry = await self._adapter.read(url)

        if entry is None:
            self._emit(BlobCacheEventType.CACHE_MISS, url)
            return None

        verdict = evaluate_freshness(entry.metadata, self._now_ms(), self._policy)
        event_metadata = {
            "age_seconds": verdict.age_seconds,
            "max_age_seconds": verdict.max_age_seconds,
            "stale_while_revalidate_seconds": verdict.stale_while_revalidate_seconds,
        }

        if verdict.freshness == CacheFreshness.EXPIRED:
            logger.info(f"BlobCache.match: expired {url} (age={verdict.age_seconds:.1f}s)")
            await self._adapter.remove(url)
            self._emit(BlobCacheEventType.CACHE_EXPIRE, url, event_metadata)
            return None

        is_stale = verdict.freshness == CacheFreshness.STALE

        headers = httpx.Headers(entry.metadata.headers)
        for name in _BODY_FRAMING_HEADERS:
            if name in headers:
                del headers[name]
        headers["cache"] = "STALE" if is_stale else "HIT"
        headers["date"] = format_http_date(entry.metadata.timestamp)

        if is_stale:
            logger.info(f"BlobCache.match: stale {url} (age={verdict.age_seconds:.1f}s)")
            self._emit(BlobCacheEventType.CACHE_STALE, url, event_metadata)
            self._refresher.schedule(entry.key, lambda: self.add(url))
        else:
            self._emit(BlobCacheEventType.CACHE_HIT, url, event_metadata)

        return httpx.Response(
            status_code=entry.metadata.status or 200,
            headers=headers,
            content=entry.body,
        )

    async def match_all(
        self,
        request: Optional[RequestInfo] = None,
        options: Optional[CacheQueryOptions] = None,
    ) -> List[httpx.Response]:
        """Get all matching responses. At most one variant is stored per URL."""
        if not request:
            return []
        response = await self.match(request, options)
        return [response] if response is not None else []

    async def delete(
        self,
        request: RequestInfo,
        options: Optional[CacheQueryOptions] = None,
    ) -> bool:
        """
        Delete the entry for a request.

        Always returns True: the store cannot tell us whether the key existed.
        """
        url = request_url(request)
        await self._adapter.remove(url)
        self._emit(BlobCacheEventType.CACHE_DELETE, url)
        return True

    async def keys(
        self,
        request: Optional[RequestInfo] = None,
        options: Optional[CacheQueryOptions] = None,
    ) -> List[httpx.Request]:
        """Get GET requests for every stored URL, optionally only the one matching a request."""
        url_filter = request_url(request) if request else None
        urls = await self._adapter.enumerate(url_filter)
        return [httpx.Request("GET", url) for url in urls]

    def _on_refresh_complete(self, key: str) -> None:
        self._emit(BlobCacheEventType.CACHE_REFRESH, from_key(key))

    def _on_refresh_error(self, key: str, error: BaseException) -> None:
        self._emit(
            BlobCacheEventType.CACHE_REFRESH_ERROR,
            from_key(key),
            {"error": repr(error)},
        )

    def on(self, listener: BlobCacheEventListener) -> Callable[[], None]:
        """Add event listener."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: BlobCacheEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(
        self,
        event_type: BlobCacheEventType,
        url: str,
        metadata: Optional[dict] = None,
    ) -> None:
        """Emit an event to all listeners."""
        event = BlobCacheEvent(
            type=event_type,
            key=self._adapter.encode_key(url),
            url=url,
            timestamp=self._clock(),
            metadata=metadata,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.debug(f"BlobCache._emit: listener failed for {event_type.value}", exc_info=True)

    async def drain(self) -> None:
        """Wait for background refreshes to finish."""
        await self._refresher.drain()

    async def close(self) -> None:
        """Cancel background refreshes and release the client and store."""
        await self._refresher.close()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self._adapter.close()
        self._listeners.clear()

    def __repr__(self) -> str:
        return f"BlobCache(name={self._name!r}, namespace={self._namespace!r})"


def create_blob_cache(
    name: str = "",
    *,
    store: Optional[BlobStore] = None,
    config: Optional[BlobCacheConfig] = None,
    fetcher: Optional[Fetcher] = None,
    clock: Optional[Callable[[], float]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BlobCache:
    """Create a blob cache instance."""
    return BlobCache(
        name,
        store=store,
        config=config,
        fetcher=fetcher,
        clock=clock,
        transport=transport,
    )
