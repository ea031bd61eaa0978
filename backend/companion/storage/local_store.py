"""
Local fallback session store.

All sessions live in one JSON array under a single key. Every mutation is a
read-modify-write of that array.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError

from ..models.session import TherapySession
from .interface import SessionStore
from .key_value import KeyValueStore

logger = logging.getLogger(__name__)


class LocalSessionStore(SessionStore):
    """Session store used for anonymous people and as an offline backup."""

    def __init__(self, kv: KeyValueStore, key: str = "actTherapySessions"):
        self.kv = kv
        self.key = key

    async def _read(self) -> List[TherapySession]:
        raw = await self.kv.get_item(self.key)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Local session store is not valid JSON, treating as empty: {e}")
            return []
        if not isinstance(entries, list):
            logger.error("Local session store does not hold a list, treating as empty")
            return []

        sessions = []
        for entry in entries:
            try:
                sessions.append(TherapySession.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed local session: {e.error_count()} errors")
        return sessions

    async def _write(self, sessions: List[TherapySession]) -> None:
        payload = json.dumps([s.to_storage() for s in sessions], ensure_ascii=False)
        await self.kv.set_item(self.key, payload)

    async def create(self, session: TherapySession) -> None:
        # Nothing to reserve: sessions only land here once they are worth saving
        return None

    async def save(self, session: TherapySession) -> None:
        sessions = await self._read()
        for index, existing in enumerate(sessions):
            if existing.id == session.id:
                sessions[index] = session
                break
        else:
            sessions.append(session)
        await self._write(sessions)

    async def get(self, session_id: str) -> Optional[TherapySession]:
        for session in await self._read():
            if session.id == session_id:
                return session
        return None

    async def load_all(self, user_id: Optional[str]) -> List[TherapySession]:
        sessions = [s for s in await self._read() if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.date, reverse=True)

    async def delete(self, session_id: str) -> None:
        sessions = await self._read()
        await self._write([s for s in sessions if s.id != session_id])

    async def delete_all(self, user_id: Optional[str]) -> None:
        sessions = await self._read()
        await self._write([s for s in sessions if s.user_id != user_id])

    async def clear(self) -> None:
        """Drop the whole store, whoever owns the entries."""
        await self.kv.remove_item(self.key)
