"""
Tests for the persistence policy that routes between the remote and local stores.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from companion.core.exceptions import LocalStoreError, RemoteStoreError
from companion.models.session import TherapySession
from companion.storage.persistence import SessionPersistence

from conftest import InMemoryRemoteStore, make_messages

DATE = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def session(session_id, user_id=None):
    return TherapySession(id=session_id, user_id=user_id, date=DATE, messages=make_messages(("user", "Hallo")))


@pytest.fixture
def persistence(local_store, remote_store):
    return SessionPersistence(local_store, remote_store)


class TestRouting:

    @pytest.mark.asyncio
    async def test_anonymous_sessions_never_reach_remote(self, persistence, remote_store, local_store):
        await persistence.create(session("anon"))
        await persistence.save(session("anon"))
        assert remote_store.calls == []
        assert [s.id for s in await persistence.load_all(None)] == ["anon"]

    @pytest.mark.asyncio
    async def test_owned_sessions_go_remote_with_local_backup(self, persistence, remote_store, local_store):
        await persistence.save(session("s1", "user-1"))
        assert "s1" in remote_store.sessions
        assert await local_store.get("s1") is not None

    @pytest.mark.asyncio
    async def test_remote_save_failure_keeps_local_copy(self, persistence, remote_store, local_store):
        remote_store.fail_on.add("save")
        await persistence.save(session("s1", "user-1"))
        assert remote_store.sessions == {}
        assert await local_store.get("s1") is not None

    @pytest.mark.asyncio
    async def test_create_errors_propagate(self, persistence, remote_store):
        remote_store.fail_on.add("create")
        with pytest.raises(RemoteStoreError):
            await persistence.create(session("s1", "user-1"))

    @pytest.mark.asyncio
    async def test_without_remote_everything_is_local(self, local_store):
        persistence = SessionPersistence(local_store)
        await persistence.save(session("s1", "user-1"))
        assert [s.id for s in await persistence.load_all("user-1")] == ["s1"]


class TestReads:

    @pytest.mark.asyncio
    async def test_anonymous_get_hides_owned_sessions(self, persistence, local_store):
        await local_store.save(session("owned", "user-1"))
        await local_store.save(session("anon"))
        assert await persistence.get("owned", None) is None
        assert (await persistence.get("anon", None)).id == "anon"

    @pytest.mark.asyncio
    async def test_load_all_falls_back_to_owned_local_copies(self, persistence, remote_store, local_store):
        await local_store.save(session("mine", "user-1"))
        await local_store.save(session("theirs", "user-2"))
        await local_store.save(session("anon"))
        remote_store.fail_on.add("load_all")

        assert [s.id for s in await persistence.load_all("user-1")] == ["mine"]

    @pytest.mark.asyncio
    async def test_get_falls_back_but_respects_owner(self, persistence, remote_store, local_store):
        await local_store.save(session("mine", "user-1"))
        await local_store.save(session("theirs", "user-2"))
        remote_store.fail_on.add("get")

        assert (await persistence.get("mine", "user-1")).id == "mine"
        assert await persistence.get("theirs", "user-1") is None


class TestDeletes:

    @pytest.mark.asyncio
    async def test_delete_removes_remote_then_local(self, persistence, remote_store, local_store):
        await persistence.save(session("s1", "user-1"))
        await persistence.delete("s1", "user-1")
        assert "s1" not in remote_store.sessions
        assert await local_store.get("s1") is None

    @pytest.mark.asyncio
    async def test_failed_remote_delete_keeps_local_backup(self, persistence, remote_store, local_store):
        await persistence.save(session("s1", "user-1"))
        remote_store.fail_on.add("delete")
        with pytest.raises(RemoteStoreError):
            await persistence.delete("s1", "user-1")
        assert await local_store.get("s1") is not None

    @pytest.mark.asyncio
    async def test_delete_all_for_user_keeps_anonymous_sessions(self, persistence, remote_store, local_store):
        await persistence.save(session("s1", "user-1"))
        await persistence.save(session("anon"))
        await persistence.delete_all("user-1")
        assert remote_store.sessions == {}
        assert [s.id for s in await local_store.load_all(None)] == ["anon"]

    @pytest.mark.asyncio
    async def test_delete_all_anonymous_clears_local_store(self, persistence, remote_store, local_store):
        await local_store.save(session("anon"))
        await local_store.save(session("mine", "user-1"))
        await persistence.delete_all(None)
        assert remote_store.calls == []
        assert await local_store.load_all("user-1") == []

    @pytest.mark.asyncio
    async def test_failed_remote_delete_all_propagates(self, persistence, remote_store):
        await persistence.save(session("s1", "user-1"))
        remote_store.fail_on.add("delete_all")
        with pytest.raises(RemoteStoreError):
            await persistence.delete_all("user-1")
        assert "s1" in remote_store.sessions


class HalfWrittenRemoteStore(InMemoryRemoteStore):
    """Updates the session row but loses the messages, like a failed message insert."""

    def __init__(self):
        super().__init__()
        self.drop_messages = False

    async def save(self, session):
        if not self.drop_messages:
            return await super().save(session)
        self.calls.append("save")
        self.sessions[session.id] = session.model_copy(update={"messages": []}, deep=True)
        raise RemoteStoreError("insert messages failed")


class TestStaleRemoteCopies:

    @pytest.fixture
    def half_remote(self):
        return HalfWrittenRemoteStore()

    @pytest.fixture
    def persistence(self, local_store, half_remote):
        return SessionPersistence(local_store, half_remote)

    @pytest.mark.asyncio
    async def test_half_written_remote_save_reads_local_backup(self, persistence, half_remote):
        current = session("s1", "user-1")
        await persistence.save(current)

        current.messages = make_messages(("user", "Hallo"), ("assistant", "Hoi"), ("user", "Ik ben moe"))
        half_remote.drop_messages = True
        await persistence.save(current)

        assert half_remote.sessions["s1"].messages == []
        loaded = await persistence.get("s1", "user-1")
        assert len(loaded.messages) == 3
        listed = await persistence.load_all("user-1")
        assert [len(s.messages) for s in listed] == [3]

    @pytest.mark.asyncio
    async def test_remote_copy_further_along_wins(self, persistence, half_remote, local_store):
        await local_store.save(session("s1", "user-1"))
        other_device = session("s1", "user-1")
        other_device.messages = make_messages(("user", "Hallo"), ("assistant", "Hoi"), ("user", "Verder"))
        other_device.duration = 15
        half_remote.sessions["s1"] = other_device

        assert len((await persistence.get("s1", "user-1")).messages) == 3
        assert len((await persistence.load_all("user-1"))[0].messages) == 3


class TestBackupWrites:

    @pytest.mark.asyncio
    async def test_failed_backup_after_remote_save_is_not_fatal(self, persistence, remote_store, local_store):
        local_store.save = AsyncMock(side_effect=LocalStoreError("disk full"))
        await persistence.save(session("s1", "user-1"))
        assert "s1" in remote_store.sessions

    @pytest.mark.asyncio
    async def test_failed_sole_copy_is_raised(self, persistence, remote_store, local_store):
        local_store.save = AsyncMock(side_effect=LocalStoreError("disk full"))
        remote_store.fail_on.add("save")
        with pytest.raises(LocalStoreError):
            await persistence.save(session("s1", "user-1"))
        with pytest.raises(LocalStoreError):
            await persistence.save(session("anon"))
