"""
Unit tests for the in-memory record backend.

Tests cover:
- Atomic insert-if-absent
- Equality filters, projection and max-of-field lookup
- Deletion counts
- Session bookkeeping and availability simulation
"""

import asyncio

import pytest

from puzzlewiki.wiki_server.storage import (
    CREATED_AT_KEY,
    BackendConnectionError,
    InMemoryRecordBackend,
)


def page(version, user_id=7, text="t", wiki_id=1, ref="home"):
    return {"wikiId": wiki_id, "ref": ref, "version": version, "userId": user_id, "text": text}


class TestInMemoryRecordBackend:
    """Tests for InMemoryRecordBackend."""

    @pytest.fixture
    def backend(self):
        """Create a fresh backend."""
        return InMemoryRecordBackend()

    @pytest.mark.asyncio
    async def test_insert_then_conflict(self, backend):
        """Second insert of the same key reports a conflict."""
        async with backend.session() as session:
            assert await session.insert_if_absent(page(1)) is True
            assert await session.insert_if_absent(page(1, user_id=8)) is False

        assert backend.record_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_inserts_one_wins(self, backend):
        """Racing inserts of one key produce exactly one creation."""
        async def attempt(i):
            async with backend.session() as session:
                return await session.insert_if_absent(page(1, user_id=i))

        results = await asyncio.gather(*[attempt(i) for i in range(20)])

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_find_one_max_field(self, backend):
        """max_field selects the greatest version."""
        async with backend.session() as session:
            for v in (1, 3, 2):
                await session.insert_if_absent(page(v, text=f"v{v}"))

            record = await session.find_one(
                {"wikiId": 1, "ref": "home"}, ["version", "text"], max_field="version"
            )

        assert record == {"version": 3, "text": "v3"}

    @pytest.mark.asyncio
    async def test_find_one_projection_includes_created_at(self, backend):
        """createdAt is attached by the backend, not by the caller."""
        async with backend.session() as session:
            await session.insert_if_absent(page(1))
            record = await session.find_one(
                {"wikiId": 1, "ref": "home", "version": 1}, ["version", CREATED_AT_KEY]
            )

        assert record["version"] == 1
        assert record[CREATED_AT_KEY].tzinfo is not None
        assert "userId" not in record

    @pytest.mark.asyncio
    async def test_find_one_not_found(self, backend):
        """No match returns None."""
        async with backend.session() as session:
            assert await session.find_one({"wikiId": 1, "ref": "home"}, ["version"]) is None

    @pytest.mark.asyncio
    async def test_find_all_filters_by_page(self, backend):
        """find_all returns only records of the requested page."""
        async with backend.session() as session:
            await session.insert_if_absent(page(1))
            await session.insert_if_absent(page(2, user_id=8))
            await session.insert_if_absent(page(1, ref="other"))

            records = await session.find_all({"wikiId": 1, "ref": "home"}, ["version", "userId"])

        assert records == [{"version": 1, "userId": 7}, {"version": 2, "userId": 8}]

    @pytest.mark.asyncio
    async def test_delete_all_counts(self, backend):
        """delete_all reports how many records were removed."""
        async with backend.session() as session:
            await session.insert_if_absent(page(1))

            assert await session.delete_all({"wikiId": 1, "ref": "home", "version": 1}) == 1
            assert await session.delete_all({"wikiId": 1, "ref": "home", "version": 1}) == 0

    @pytest.mark.asyncio
    async def test_deleted_version_can_be_recreated(self, backend):
        """After delete the key is free again."""
        async with backend.session() as session:
            await session.insert_if_absent(page(1))
            await session.delete_all({"wikiId": 1, "ref": "home", "version": 1})

            assert await session.insert_if_absent(page(1, text="again")) is True

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, backend):
        """Filters on unknown fields are a programming error."""
        async with backend.session() as session:
            with pytest.raises(ValueError):
                await session.find_all({"title": "home"}, ["version"])

    @pytest.mark.asyncio
    async def test_unavailable_backend_refuses_sessions(self, backend):
        """set_available(False) makes session acquisition fail."""
        backend.set_available(False)

        with pytest.raises(BackendConnectionError):
            async with backend.session():
                pass

        assert backend.open_sessions == 0

    @pytest.mark.asyncio
    async def test_session_released_on_exception(self, backend):
        """open_sessions returns to zero when the block raises."""
        with pytest.raises(RuntimeError):
            async with backend.session():
                assert backend.open_sessions == 1
                raise RuntimeError("boom")

        assert backend.open_sessions == 0
