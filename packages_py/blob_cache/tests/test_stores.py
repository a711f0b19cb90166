"""Tests for blob store implementations."""
import json

import pytest

from blob_cache import (
    MemoryBlobStore,
    RedisBlobStore,
    create_memory_blob_store,
    create_redis_blob_store,
    memory_store_factory,
    redis_store_factory,
)


class TestMemoryBlobStore:
    """Tests for MemoryBlobStore."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, memory_store):
        await memory_store.set("k", b"body", {"status": 200})

        assert await memory_store.get("k") == b"body"

    @pytest.mark.asyncio
    async def test_get_with_metadata(self, memory_store):
        await memory_store.set("k", b"body", {"status": 201, "headers": [["a", "b"]]})

        blob = await memory_store.get_with_metadata("k")
        assert blob is not None
        assert blob.data == b"body"
        assert blob.metadata == {"status": 201, "headers": [["a", "b"]]}

    @pytest.mark.asyncio
    async def test_missing_key(self, memory_store):
        assert await memory_store.get("missing") is None
        assert await memory_store.get_with_metadata("missing") is None

    @pytest.mark.asyncio
    async def test_set_replaces(self, memory_store):
        await memory_store.set("k", b"one", {"n": 1})
        await memory_store.set("k", b"two", {"n": 2})

        blob = await memory_store.get_with_metadata("k")
        assert blob.data == b"two"
        assert blob.metadata == {"n": 2}

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, memory_store):
        await memory_store.set("k", b"body", {})
        await memory_store.delete("k")
        await memory_store.delete("k")

        assert await memory_store.get("k") is None

    @pytest.mark.asyncio
    async def test_list(self, memory_store):
        await memory_store.set("a", b"1", {})
        await memory_store.set("b", b"2", {})

        assert sorted(await memory_store.list()) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_metadata_is_copied(self, memory_store):
        metadata = {"headers": [["a", "b"]]}
        await memory_store.set("k", b"body", metadata)
        metadata["headers"].append(["c", "d"])

        blob = await memory_store.get_with_metadata("k")
        blob.metadata["headers"].clear()

        again = await memory_store.get_with_metadata("k")
        assert again.metadata == {"headers": [["a", "b"]]}

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self):
        backing = {}
        a = create_memory_blob_store("blobcache-a", backing)
        b = create_memory_blob_store("blobcache-b", backing)

        await a.set("k", b"from a", {})

        assert await b.get("k") is None
        assert await b.list() == []
        assert set(backing) == {"blobcache-a", "blobcache-b"}

    @pytest.mark.asyncio
    async def test_factory_shares_backing(self):
        factory = memory_store_factory()

        first = factory("blobcache-pages")
        await first.set("k", b"body", {})
        await first.close()

        second = factory("blobcache-pages")
        assert await second.get("k") == b"body"
        assert second.namespace == "blobcache-pages"


class TestRedisBlobStore:
    """Tests for RedisBlobStore."""

    @pytest.fixture
    def store(self, fake_redis):
        return RedisBlobStore(fake_redis, namespace="blobcache-test", key_prefix="app:")

    @pytest.mark.asyncio
    async def test_set_writes_one_hash(self, store, fake_redis):
        await store.set("k", b"body", {"status": 200, "headers": [], "timestamp": 5})

        fields = fake_redis.hashes["app:blobcache-test:k"]
        assert fields[b"data"] == b"body"
        assert json.loads(fields[b"metadata"]) == {
            "status": 200,
            "headers": [],
            "timestamp": 5,
        }

    @pytest.mark.asyncio
    async def test_get_with_metadata(self, store):
        await store.set("k", b"body", {"status": 200, "headers": [["a", "b"]]})

        blob = await store.get_with_metadata("k")
        assert blob.data == b"body"
        assert blob.metadata == {"status": 200, "headers": [["a", "b"]]}
        assert await store.get("k") == b"body"

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        assert await store.get("missing") is None
        assert await store.get_with_metadata("missing") is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store):
        await store.set("k", b"body", {})
        await store.delete("k")
        await store.delete("k")

        assert await store.get_with_metadata("k") is None

    @pytest.mark.asyncio
    async def test_list_strips_prefix_and_namespace(self, store, fake_redis):
        await store.set("https%3A%2F%2Fa", b"1", {})
        await store.set("https%3A%2F%2Fb", b"2", {})
        other = RedisBlobStore(fake_redis, namespace="blobcache-other", key_prefix="app:")
        await other.set("c", b"3", {})

        assert sorted(await store.list()) == ["https%3A%2F%2Fa", "https%3A%2F%2Fb"]
        assert await other.list() == ["c"]

    @pytest.mark.asyncio
    async def test_namespace_prefix_of_another_is_isolated(self, fake_redis):
        short = RedisBlobStore(fake_redis, namespace="blobcache-a")
        longer = RedisBlobStore(fake_redis, namespace="blobcache-a:b")

        await longer.set("http%3A%2F%2Fn%2Fonly-in-ab", b"ab", {})
        await short.set("http%3A%2F%2Fn%2Fonly-in-a", b"a", {})

        assert await short.list() == ["http%3A%2F%2Fn%2Fonly-in-a"]
        assert await longer.list() == ["http%3A%2F%2Fn%2Fonly-in-ab"]
        assert "blobcache-a%3Ab:http%3A%2F%2Fn%2Fonly-in-ab" in fake_redis.hashes

    @pytest.mark.asyncio
    async def test_close_closes_owned_client(self, store, fake_redis):
        await store.close()
        assert fake_redis.closed

    @pytest.mark.asyncio
    async def test_factory_does_not_close_shared_client(self, fake_redis):
        factory = redis_store_factory(fake_redis, key_prefix="app:")

        store = factory("blobcache-pages")
        await store.set("k", b"body", {})
        await store.close()

        assert not fake_redis.closed
        assert "app:blobcache-pages:k" in fake_redis.hashes

    def test_create_with_client(self, fake_redis):
        store = create_redis_blob_store(fake_redis, namespace="blobcache-x")

        assert isinstance(store, RedisBlobStore)
        assert store.namespace == "blobcache-x"


class TestStoreInterchangeability:
    """The same operations behave alike across store implementations."""

    @pytest.fixture(params=["memory", "redis"])
    def any_store(self, request, fake_redis):
        if request.param == "memory":
            return MemoryBlobStore("blobcache-test")
        return RedisBlobStore(fake_redis, namespace="blobcache-test")

    @pytest.mark.asyncio
    async def test_write_read_list_delete(self, any_store):
        await any_store.set("k", b"\x00\xffbinary", {"status": 200})

        blob = await any_store.get_with_metadata("k")
        assert blob.data == b"\x00\xffbinary"
        assert blob.metadata == {"status": 200}
        assert await any_store.list() == ["k"]

        await any_store.delete("k")
        assert await any_store.list() == []
