"""
Persistence policy - decides which store serves each operation.

Saving is remote-primary with a local safety net; deleting hits exactly one
backend and never silently falls back.
"""

import logging
from typing import List, Optional

from ..core.exceptions import LocalStoreError, RemoteStoreError
from ..models.session import TherapySession
from .interface import SessionStore
from .local_store import LocalSessionStore

logger = logging.getLogger(__name__)


def _freshness(session: TherapySession) -> tuple:
    return (session.duration, len(session.messages), len(session.insights))


def prefer_fresher(remote: TherapySession, backup: Optional[TherapySession]) -> TherapySession:
    """
    Pick the local backup over the remote copy when the backup is further
    along, e.g. after a remote save that failed halfway. Ties go to remote.
    """
    if backup is not None and backup.id == remote.id and _freshness(backup) > _freshness(remote):
        logger.warning(f"Remote copy of session {remote.id} is behind the local backup, using the backup")
        return backup
    return remote


class SessionPersistence:
    """
    Composes the remote and local stores.

    The backend is picked from the session owner. Ownership is fixed at
    creation, so an anonymous session stays local after a later sign-in.
    Without a remote store (Supabase not configured) everything is local.
    """

    def __init__(self, local: LocalSessionStore, remote: Optional[SessionStore] = None):
        self.local = local
        self.remote = remote

    def _uses_remote(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.remote is not None

    async def create(self, session: TherapySession) -> None:
        """Reserve the session upstream. Remote errors propagate to the caller."""
        if self._uses_remote(session.user_id):
            await self.remote.create(session)
        else:
            await self.local.create(session)

    async def save(self, session: TherapySession) -> None:
        if not self._uses_remote(session.user_id):
            await self.local.save(session)
            return

        remote_saved = True
        try:
            await self.remote.save(session)
        except RemoteStoreError as e:
            remote_saved = False
            logger.warning(
                f"Remote save failed for session {session.id}, keeping local copy: {e}",
                extra={"extra_fields": {"session_id": session.id}}
            )

        # Backup copy; only fatal when it is the sole copy
        try:
            await self.local.save(session)
        except LocalStoreError as e:
            if not remote_saved:
                raise
            logger.warning(f"Local backup of session {session.id} failed, remote copy is current: {e}")

    async def get(self, session_id: str, user_id: Optional[str]) -> Optional[TherapySession]:
        if not self._uses_remote(user_id):
            session = await self.local.get(session_id)
            if session is not None and session.user_id is not None:
                return None
            return session

        backup = await self.local.get(session_id)
        if backup is not None and backup.user_id != user_id:
            backup = None
        try:
            session = await self.remote.get(session_id)
        except RemoteStoreError as e:
            logger.warning(f"Remote load failed for session {session_id}, using local backup: {e}")
            return backup
        if session is None:
            return None
        return prefer_fresher(session, backup)

    async def load_all(self, user_id: Optional[str]) -> List[TherapySession]:
        if not self._uses_remote(user_id):
            return await self.local.load_all(user_id)
        backups = await self.local.load_all(user_id)
        try:
            sessions = await self.remote.load_all(user_id)
        except RemoteStoreError as e:
            logger.warning(f"Remote session list failed for user {user_id}, using local backup: {e}")
            return backups
        by_id = {s.id: s for s in backups}
        return [prefer_fresher(s, by_id.get(s.id)) for s in sessions]

    async def delete(self, session_id: str, user_id: Optional[str]) -> None:
        """Remote failures propagate; the local backup goes only after the remote row."""
        if self._uses_remote(user_id):
            await self.remote.delete(session_id)
        await self.local.delete(session_id)

    async def delete_all(self, user_id: Optional[str]) -> None:
        if self._uses_remote(user_id):
            await self.remote.delete_all(user_id)
            await self.local.delete_all(user_id)
        else:
            await self.local.clear()
