"""
Remote session store backed by the hosted ``sessions`` and ``messages`` tables.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..clients.supabase_rest import SupabaseRestClient, eq, in_
from ..models.session import ChatMessage, SessionSummary, TherapySession
from .interface import SessionStore

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "sessions"
MESSAGES_TABLE = "messages"


def _parse_summary(raw: Any, session_id: str) -> Optional[SessionSummary]:
    """Decode the JSON summary column; anything unreadable counts as absent."""
    if not raw:
        return None
    try:
        if isinstance(raw, str):
            return SessionSummary.model_validate_json(raw)
        return SessionSummary.model_validate(raw)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Ignoring malformed summary on session {session_id}: {e}")
        return None


def session_to_row(session: TherapySession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "title": session.title,
        "created_at": session.date.isoformat(),
        "duration": session.duration,
        "insights": list(session.insights),
        "summary": session.summary.model_dump_json(by_alias=True) if session.summary else None,
    }


def message_to_row(session_id: str, message: ChatMessage) -> Dict[str, Any]:
    row = {
        "session_id": session_id,
        "role": message.role,
        "content": message.content,
        "essence": message.essence,
    }
    if message.timestamp is not None:
        row["created_at"] = message.timestamp.isoformat()
    return row


def row_to_message(row: Dict[str, Any]) -> ChatMessage:
    return ChatMessage(
        role=row["role"],
        content=row.get("content") or "",
        essence=row.get("essence"),
        timestamp=row.get("created_at") or row.get("timestamp"),
    )


def row_to_session(row: Dict[str, Any], messages: List[ChatMessage]) -> TherapySession:
    values: Dict[str, Any] = {
        "id": row["id"],
        "user_id": row.get("user_id"),
        "duration": row.get("duration") or 0,
        "messages": messages,
        "insights": row.get("insights") or [],
        "summary": _parse_summary(row.get("summary"), row["id"]),
    }
    if row.get("title"):
        values["title"] = row["title"]
    if row.get("created_at"):
        values["date"] = row["created_at"]
    return TherapySession(**values)


class RemoteSessionStore(SessionStore):
    """
    Session store for authenticated identities.

    Messages are rewritten wholesale on every save; the ``messages`` rows
    always reference an existing ``sessions`` row, so deletes go messages
    first.
    """

    def __init__(self, client: SupabaseRestClient):
        self.client = client

    async def _exists(self, session_id: str) -> bool:
        rows = await self.client.select(SESSIONS_TABLE, {"id": eq(session_id)}, columns="id")
        return bool(rows)

    async def _load_messages(self, session_id: str) -> List[ChatMessage]:
        rows = await self.client.select(
            MESSAGES_TABLE, {"session_id": eq(session_id)}, order="created_at.asc"
        )
        return [row_to_message(row) for row in rows]

    async def create(self, session: TherapySession) -> None:
        await self.client.insert(SESSIONS_TABLE, session_to_row(session))
        logger.info(f"Created remote session {session.id}")

    async def save(self, session: TherapySession) -> None:
        row = session_to_row(session)
        if await self._exists(session.id):
            values = {k: v for k, v in row.items() if k not in ("id", "user_id", "created_at")}
            await self.client.update(SESSIONS_TABLE, values, {"id": eq(session.id)})
        else:
            await self.client.insert(SESSIONS_TABLE, row)

        await self.client.delete(MESSAGES_TABLE, {"session_id": eq(session.id)})
        if session.messages:
            await self.client.insert(
                MESSAGES_TABLE,
                [message_to_row(session.id, m) for m in session.messages],
            )
        logger.info(
            f"Saved remote session {session.id}",
            extra={"extra_fields": {
                "session_id": session.id,
                "message_count": len(session.messages),
            }}
        )

    async def get(self, session_id: str) -> Optional[TherapySession]:
        rows = await self.client.select(SESSIONS_TABLE, {"id": eq(session_id)})
        if not rows:
            return None
        try:
            return row_to_session(rows[0], await self._load_messages(session_id))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed remote session {session_id}: {e.error_count()} errors")
            return None

    async def load_all(self, user_id: Optional[str]) -> List[TherapySession]:
        if user_id is None:
            return []
        rows = await self.client.select(
            SESSIONS_TABLE,
            {"user_id": eq(user_id), "is_archived": eq("false")},
            order="created_at.desc",
        )
        sessions = []
        for row in rows:
            try:
                sessions.append(row_to_session(row, await self._load_messages(row["id"])))
            except ValidationError as e:
                logger.warning(f"Skipping malformed remote session {row.get('id')}: {e.error_count()} errors")
        return sessions

    async def delete(self, session_id: str) -> None:
        await self.client.delete(MESSAGES_TABLE, {"session_id": eq(session_id)})
        await self.client.delete(SESSIONS_TABLE, {"id": eq(session_id)})
        logger.info(f"Deleted remote session {session_id}")

    async def delete_all(self, user_id: Optional[str]) -> None:
        if user_id is None:
            return
        rows = await self.client.select(SESSIONS_TABLE, {"user_id": eq(user_id)}, columns="id")
        session_ids = [row["id"] for row in rows]
        if session_ids:
            await self.client.delete(MESSAGES_TABLE, {"session_id": in_(session_ids)})
        await self.client.delete(SESSIONS_TABLE, {"user_id": eq(user_id)})
        logger.info(f"Deleted {len(session_ids)} remote sessions for user {user_id}")
