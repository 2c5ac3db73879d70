"""
Integration tests for the gRPC server and SDK client.

Tests cover:
- The four RPCs over a real loopback channel
- store_latest retrying after conflicts
- INTERNAL status mapping and protobuf interoperability
"""

from contextlib import asynccontextmanager

import grpc
import pytest
from grpc import aio as grpc_aio

from puzzlewiki.wiki_sdk import VersionConflictError, WikiClient, WikiServiceError
from puzzlewiki.wiki_server.api import GrpcServer, WikiServicer
from puzzlewiki.wiki_server.api.generated import (
    ContentRequest,
    VersionRequest,
    WikiRequest,
    WikiStub,
)
from puzzlewiki.wiki_server.config import SqliteConfig
from puzzlewiki.wiki_server.pages import Content, PageStore, Response
from puzzlewiki.wiki_server.storage import InMemoryRecordBackend, SqliteRecordBackend


@asynccontextmanager
async def running_server(store):
    """Serve store on a free loopback port and yield a connected client."""
    server = GrpcServer(WikiServicer(store), host="127.0.0.1", port=0)
    await server.start()
    try:
        async with WikiClient(f"127.0.0.1:{server.bound_port}", timeout=5.0) as client:
            yield client, server
    finally:
        await server.stop(0)


class _AlwaysConflictingStore:
    """Store where another writer always wins."""

    def __init__(self) -> None:
        self.stores = 0

    async def load(self, wiki_id, ref, version=0):
        return Content(version=self.stores + 1, text="theirs", created_at=1)

    async def store(self, wiki_id, ref, user_id, text, last):
        self.stores += 1
        return Response(success=False)


class TestWikiService:
    """End-to-end RPCs over the in-memory backend."""

    @pytest.fixture
    def backend(self):
        return InMemoryRecordBackend()

    @pytest.mark.asyncio
    async def test_scenario(self, backend):
        """Two authors edit a page, then the first version is deleted."""
        async with running_server(PageStore(backend)) as (wiki, _):
            assert await wiki.store(1, "home", user_id=7, text="A", last=0) is True

            content = await wiki.load(1, "home")
            assert (content.version, content.text) == (1, "A")
            assert content.created_at > 0

            assert await wiki.store(1, "home", user_id=8, text="B", last=0) is False
            assert await wiki.store(1, "home", user_id=8, text="B", last=1) is True

            versions = await wiki.list_versions(1, "home")
            assert sorted((v.number, v.user_id) for v in versions) == [(1, 7), (2, 8)]

            assert await wiki.delete(1, "home", version=1) is True
            assert (await wiki.load(1, "home", version=1)).version == 0
            assert await wiki.delete(1, "home", version=1) is True

    @pytest.mark.asyncio
    async def test_missing_page(self, backend):
        """A missing page is a normal empty response."""
        async with running_server(PageStore(backend)) as (wiki, _):
            content = await wiki.load(5, "nowhere")

            assert content.version == 0
            assert content.text == ""
            assert not content.exists
            assert await wiki.list_versions(5, "nowhere") == []

    @pytest.mark.asyncio
    async def test_store_latest_appends(self, backend):
        """store_latest writes on top of the current version."""
        async with running_server(PageStore(backend)) as (wiki, _):
            await wiki.store(1, "home", user_id=7, text="A", last=0)

            created = await wiki.store_latest(1, "home", user_id=8, text="B")

            assert created == 2
            assert (await wiki.load(1, "home")).text == "B"

    @pytest.mark.asyncio
    async def test_store_latest_gives_up(self):
        """store_latest raises after losing every attempt."""
        store = _AlwaysConflictingStore()
        async with running_server(store) as (wiki, _):
            with pytest.raises(VersionConflictError) as exc_info:
                await wiki.store_latest(1, "home", user_id=8, text="B", max_attempts=2)

        assert exc_info.value.attempts == 2
        assert store.stores == 2

    @pytest.mark.asyncio
    async def test_backend_failure_is_internal(self, backend):
        """Backend outages surface as INTERNAL without detail."""
        async with running_server(PageStore(backend)) as (wiki, _):
            backend.set_available(False)

            with pytest.raises(WikiServiceError) as exc_info:
                await wiki.load(1, "home")

        assert exc_info.value.status == "INTERNAL"
        assert exc_info.value.method == "Load"
        assert "memory" not in exc_info.value.message.lower()

    @pytest.mark.asyncio
    async def test_generated_stub_interoperates(self, backend):
        """A plain puzzlewikiservice stub talks to the server."""
        async with running_server(PageStore(backend)) as (_, server):
            async with grpc_aio.insecure_channel(f"127.0.0.1:{server.bound_port}") as channel:
                stub = WikiStub(channel)

                stored = await stub.Store(
                    ContentRequest(wikiId=1, wikiRef="home", last=0, userId=7, text="A"),
                    timeout=5.0,
                )
                content = await stub.Load(WikiRequest(wikiId=1, wikiRef="home"), timeout=5.0)
                versions = await stub.ListVersions(
                    VersionRequest(wikiId=1, wikiRef="home"), timeout=5.0
                )

        assert stored.success is True
        assert (content.version, content.text) == (1, "A")
        assert content.createdAt > 0
        assert [(v.number, v.userId) for v in versions.list] == [(1, 7)]

    @pytest.mark.asyncio
    async def test_out_of_range_id_is_internal(self, backend, tmp_path):
        """A uint64 id the database cannot hold fails as INTERNAL without detail."""
        sqlite = SqliteRecordBackend(SqliteConfig(data_dir=str(tmp_path), wal_mode=False))
        await sqlite.initialize()

        async with running_server(PageStore(sqlite)) as (wiki, _):
            with pytest.raises(WikiServiceError) as exc_info:
                await wiki.store(2**63, "home", user_id=7, text="A", last=0)

        assert exc_info.value.status == "INTERNAL"
        assert "sqlite" not in exc_info.value.message.lower()

    @pytest.mark.asyncio
    async def test_malformed_request_is_rejected(self, backend):
        """Bodies that are not valid messages never reach the store."""
        async with running_server(PageStore(backend)) as (_, server):
            async with grpc_aio.insecure_channel(f"127.0.0.1:{server.bound_port}") as channel:
                rpc = channel.unary_unary("/puzzlewikiservice.Wiki/Store")

                with pytest.raises(grpc.RpcError) as exc_info:
                    await rpc(b"\xff\xff\xff", timeout=5.0)

        assert exc_info.value.code() != grpc.StatusCode.OK
        assert backend.record_count == 0

    @pytest.mark.asyncio
    async def test_unknown_method(self, backend):
        """Methods outside the service are UNIMPLEMENTED."""
        async with running_server(PageStore(backend)) as (_, server):
            async with grpc_aio.insecure_channel(f"127.0.0.1:{server.bound_port}") as channel:
                rpc = channel.unary_unary("/puzzlewikiservice.Wiki/Rename")


                with pytest.raises(grpc.RpcError) as exc_info:
                    await rpc(b"{}", timeout=5.0)

        assert exc_info.value.code() == grpc.StatusCode.UNIMPLEMENTED


class TestGrpcServerLifecycle:
    """Tests for GrpcServer start/stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        server = GrpcServer(WikiServicer(PageStore(InMemoryRecordBackend())), host="127.0.0.1", port=0)

        assert not server.is_running
        await server.start()
        assert server.is_running
        assert server.bound_port > 0

        await server.stop(0)
        assert not server.is_running
        await server.stop(0)
