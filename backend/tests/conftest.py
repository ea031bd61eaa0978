"""
Shared test fixtures and configuration.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/companion_test_data")

from companion.clients.supabase_auth import SupabaseAuthClient
from companion.core.derivation import DerivationEngine
from companion.core.exceptions import RemoteStoreError
from companion.core.session_manager import SessionManager
from companion.models.session import ChatMessage, TherapySession
from companion.services.auth_service import AuthService
from companion.storage.interface import SessionStore
from companion.storage.key_value import KeyValueStore
from companion.storage.local_store import LocalSessionStore
from companion.storage.persistence import SessionPersistence


class FakeClock:
    """Controllable "now"."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 10, 19, 14, 5, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryRemoteStore(SessionStore):
    """Remote store double; names in ``fail_on`` raise RemoteStoreError."""

    def __init__(self):
        self.sessions: Dict[str, TherapySession] = {}
        self.fail_on = set()
        self.calls: List[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RemoteStoreError(f"{operation} unavailable")

    async def create(self, session):
        self._check("create")
        self.sessions[session.id] = session.model_copy(deep=True)

    async def save(self, session):
        self._check("save")
        self.sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id):
        self._check("get")
        session = self.sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def load_all(self, user_id):
        self._check("load_all")
        return [s.model_copy(deep=True) for s in self.sessions.values() if s.user_id == user_id]

    async def delete(self, session_id):
        self._check("delete")
        self.sessions.pop(session_id, None)

    async def delete_all(self, user_id):
        self._check("delete_all")
        self.sessions = {k: v for k, v in self.sessions.items() if v.user_id != user_id}


def user_payload(user_id: str = "user-1", email: str = "anna@example.com") -> dict:
    return {"id": user_id, "email": email, "user_metadata": {}}


def session_payload(user_id: str = "user-1") -> dict:
    return {
        "access_token": f"access-{user_id}",
        "refresh_token": f"refresh-{user_id}",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": user_payload(user_id),
    }


def make_messages(*pairs) -> List[ChatMessage]:
    return [ChatMessage(role=role, content=content) for role, content in pairs]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv_store(tmp_path):
    return KeyValueStore(str(tmp_path / "data"))


@pytest.fixture
def local_store(kv_store):
    return LocalSessionStore(kv_store)


@pytest.fixture
def remote_store():
    return InMemoryRemoteStore()


@pytest.fixture
def auth_client():
    """Real client with the network layer replaced."""
    client = SupabaseAuthClient("https://project.supabase.co", "anon-key")
    client._request = AsyncMock(return_value=session_payload())
    return client


@pytest.fixture
def auth(auth_client):
    return AuthService(auth_client)


@pytest.fixture
def anonymous_auth():
    return AuthService(None)


@pytest.fixture
def make_manager(local_store, remote_store, clock):
    """Build a SessionManager around the given auth service."""

    def factory(auth_service, llm_provider=None, remote=remote_store):
        return SessionManager(
            auth_service,
            SessionPersistence(local_store, remote),
            DerivationEngine(llm_provider, clock=clock),
            debounce_seconds=10,
            clock=clock,
        )

    return factory
