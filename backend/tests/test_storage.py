"""
Tests for the local key-value store and the local session store.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from companion.models.session import TherapySession

from conftest import make_messages

BASE = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def session(session_id, user_id=None, minutes=0, text="Hallo"):
    return TherapySession(
        id=session_id,
        user_id=user_id,
        date=BASE + timedelta(minutes=minutes),
        messages=make_messages(("user", text)),
    )


class TestKeyValueStore:

    @pytest.mark.asyncio
    async def test_set_get_remove(self, kv_store):
        assert await kv_store.get_item("prefs") is None
        await kv_store.set_item("prefs", '{"theme": "licht"}')
        assert await kv_store.get_item("prefs") == '{"theme": "licht"}'

        await kv_store.remove_item("prefs")
        assert await kv_store.get_item("prefs") is None
        await kv_store.remove_item("prefs")

    @pytest.mark.asyncio
    async def test_values_are_utf8(self, kv_store):
        await kv_store.set_item("notes", "één stap")
        assert await kv_store.get_item("notes") == "één stap"

    @pytest.mark.parametrize("key", ["../escape", "a/b", ".hidden", ""])
    def test_rejects_unsafe_keys(self, kv_store, key):
        with pytest.raises(ValueError):
            kv_store._get_full_path(key)


class TestLocalSessionStore:

    @pytest.mark.asyncio
    async def test_save_is_upsert(self, local_store):
        first = session("s1")
        await local_store.save(first)
        first.title = "Bijgewerkt"
        await local_store.save(first)

        stored = await local_store.load_all(None)
        assert [s.title for s in stored] == ["Bijgewerkt"]

    @pytest.mark.asyncio
    async def test_load_all_filters_owner_and_sorts_newest_first(self, local_store):
        await local_store.save(session("old", minutes=0))
        await local_store.save(session("new", minutes=30))
        await local_store.save(session("mine", user_id="user-1", minutes=60))

        assert [s.id for s in await local_store.load_all(None)] == ["new", "old"]
        assert [s.id for s in await local_store.load_all("user-1")] == ["mine"]
        assert await local_store.load_all("user-2") == []

    @pytest.mark.asyncio
    async def test_get_and_delete(self, local_store):
        await local_store.save(session("s1"))
        await local_store.save(session("s2"))
        assert (await local_store.get("s1")).id == "s1"
        assert await local_store.get("missing") is None

        await local_store.delete("s1")
        assert await local_store.get("s1") is None
        assert await local_store.get("s2") is not None

    @pytest.mark.asyncio
    async def test_delete_all_only_touches_owner(self, local_store):
        await local_store.save(session("anon"))
        await local_store.save(session("mine", user_id="user-1"))
        await local_store.delete_all("user-1")
        assert [s.id for s in await local_store.load_all(None)] == ["anon"]
        assert await local_store.load_all("user-1") == []

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, local_store):
        await local_store.save(session("anon"))
        await local_store.save(session("mine", user_id="user-1"))
        await local_store.clear()
        assert await local_store.load_all(None) == []
        assert await local_store.load_all("user-1") == []

    @pytest.mark.asyncio
    async def test_storage_format_is_camel_case_array(self, local_store, kv_store):
        await local_store.save(session("s1", user_id="user-1"))
        entries = json.loads(await kv_store.get_item("actTherapySessions"))
        assert isinstance(entries, list)
        assert entries[0]["id"] == "s1"
        assert entries[0]["userId"] == "user-1"

    @pytest.mark.asyncio
    async def test_corrupt_store_reads_as_empty(self, local_store, kv_store):
        await kv_store.set_item("actTherapySessions", "{niet json")
        assert await local_store.load_all(None) == []

        await kv_store.set_item("actTherapySessions", '{"id": "s1"}')
        assert await local_store.load_all(None) == []

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self, local_store, kv_store):
        good = session("good").to_storage()
        await kv_store.set_item("actTherapySessions", json.dumps([{"title": "geen id"}, good]))
        assert [s.id for s in await local_store.load_all(None)] == ["good"]

    @pytest.mark.asyncio
    async def test_create_is_a_no_op(self, local_store):
        await local_store.create(session("s1"))
        assert await local_store.get("s1") is None
