"""Pytest configuration and fixtures for blob_cache tests."""
from typing import Any, AsyncGenerator, AsyncIterator, Dict, List, Mapping, Optional, Tuple

import httpx
import pytest

from blob_cache import (
    BlobCache,
    BlobCacheConfig,
    BlobCacheStorage,
    MemoryBlobStore,
)


T0 = 1_700_000_000.0


class FakeClock:
    """Controllable clock returning seconds since epoch."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockFetcher:
    """Fetcher returning canned responses and recording requests."""

    def __init__(
        self,
        response_status: int = 200,
        response_content: bytes = b"hello world",
        response_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.response_status = response_status
        self.response_content = response_content
        self.response_headers = response_headers or {"cache-control": "max-age=100"}
        self.routes: Dict[str, Tuple[int, Dict[str, str], bytes]] = {}
        self.errors: Dict[str, Exception] = {}
        self.requests: List[httpx.Request] = []

    def route(
        self,
        url: str,
        content: bytes,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Register a response for one URL."""
        self.routes[url] = (status, headers or dict(self.response_headers), content)

    def fail(self, url: str, error: Exception) -> None:
        """Make fetches of one URL raise."""
        self.errors[url] = error

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.errors:
            raise self.errors[url]
        status, headers, content = self.routes.get(
            url,
            (self.response_status, self.response_headers, self.response_content),
        )
        return httpx.Response(status_code=status, headers=headers, content=content)


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport for exercising the default httpx fetcher."""

    def __init__(
        self,
        response_status: int = 200,
        response_content: bytes = b'{"success": true}',
        response_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.response_status = response_status
        self.response_content = response_content
        self.response_headers = response_headers or {
            "content-type": "application/json",
            "cache-control": "max-age=3600",
        }
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle the async request and return a mock response."""
        self.requests.append(request)
        return httpx.Response(
            status_code=self.response_status,
            headers=self.response_headers,
            content=self.response_content,
        )


class FakeRedis:
    """In-memory stand-in for the redis.asyncio hash/scan commands we use."""

    def __init__(self) -> None:
        self.hashes: Dict[str, Dict[bytes, bytes]] = {}
        self.closed = False

    @staticmethod
    def _encode(value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode()

    async def hset(self, name: str, mapping: Mapping[str, Any]) -> int:
        fields = self.hashes.setdefault(name, {})
        added = 0
        for key, value in mapping.items():
            encoded = self._encode(key)
            if encoded not in fields:
                added += 1
            fields[encoded] = self._encode(value)
        return added

    async def hget(self, name: str, key: str) -> Optional[bytes]:
        return self.hashes.get(name, {}).get(self._encode(key))

    async def hgetall(self, name: str) -> Dict[bytes, bytes]:
        return dict(self.hashes.get(name, {}))

    async def delete(self, *names: str) -> int:
        return sum(1 for name in names if self.hashes.pop(name, None) is not None)

    async def scan_iter(
        self, match: Optional[str] = None, count: Optional[int] = None
    ) -> AsyncIterator[bytes]:
        # Only trailing-'*' patterns are issued by RedisBlobStore.
        prefix = (match or "*")[:-1].replace("\\", "")
        for name in list(self.hashes):
            if name.startswith(prefix):
                yield name.encode()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def fetcher() -> MockFetcher:
    """Create a mock fetcher."""
    return MockFetcher()


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Create a fake redis client."""
    return FakeRedis()


@pytest.fixture
def memory_store() -> MemoryBlobStore:
    """Create a memory blob store for the 'test' cache."""
    return MemoryBlobStore("blobcache-test")


@pytest.fixture
async def cache(
    memory_store: MemoryBlobStore,
    fetcher: MockFetcher,
    clock: FakeClock,
) -> AsyncGenerator[BlobCache, None]:
    """Create a blob cache for testing."""
    c = BlobCache("test", store=memory_store, fetcher=fetcher, clock=clock)
    yield c
    await c.close()


@pytest.fixture
async def unshared_cache(
    memory_store: MemoryBlobStore,
    fetcher: MockFetcher,
    clock: FakeClock,
) -> AsyncGenerator[BlobCache, None]:
    """Create a blob cache whose stale refreshes are not deduplicated."""
    c = BlobCache(
        "test",
        store=memory_store,
        fetcher=fetcher,
        clock=clock,
        config=BlobCacheConfig(single_flight_refresh=False),
    )
    yield c
    await c.close()


@pytest.fixture
async def storage(
    fetcher: MockFetcher,
    clock: FakeClock,
) -> AsyncGenerator[BlobCacheStorage, None]:
    """Create a cache registry for testing."""
    s = BlobCacheStorage(fetcher=fetcher, clock=clock)
    yield s
    await s.close()


@pytest.fixture
def mock_transport() -> MockAsyncTransport:
    """Create a mock transport for the default httpx client."""
    return MockAsyncTransport()
