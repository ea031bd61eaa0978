"""
Session Manager - owns the current session and the saved-sessions list.

Creates, mutates, saves, loads and deletes sessions, generates derived
content on save and re-initializes itself when the identity changes.
State is only mutated here. Suspended loads can be overtaken by later calls;
generation counters make sure a late result never overwrites newer state.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..models.session import (
    ChatMessage,
    DEFAULT_SESSION_TITLE,
    SessionSummary,
    TherapySession,
    is_eligible_for_save,
    utc_now,
)
from ..models.user import Identity
from ..services.auth_service import AuthService
from ..storage.persistence import SessionPersistence
from .derivation import DerivationEngine
from .exceptions import CompanionError

logger = logging.getLogger(__name__)

MIN_MESSAGES_FOR_SUMMARY = 2


class SessionManager:
    """Session lifecycle for the person using this companion."""

    def __init__(
        self,
        auth: AuthService,
        persistence: SessionPersistence,
        derivation: DerivationEngine,
        debounce_seconds: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            auth: Identity adapter; its identity-changed events drive re-initialization
            persistence: Store policy
            derivation: Engine producing summaries
            debounce_seconds: Window in which start_new_session reuses the current session
            clock: Source of "now"
        """
        self.auth = auth
        self.persistence = persistence
        self.derivation = derivation
        self.debounce_seconds = debounce_seconds
        self._clock = clock

        self.current_session: Optional[TherapySession] = None
        self.saved_sessions: List[TherapySession] = []
        self.is_loading = False
        self.initialized_for: Optional[str] = None

        # Bumped whenever a newer operation claims the slot
        self._list_generation = 0
        self._current_generation = 0
        # Saves in flight are dropped once their session is deleted or the scope wiped
        self._delete_tokens: Dict[str, int] = {}
        self._wipe_generation = 0

        self._unsubscribe = auth.subscribe(self.handle_identity_change)

    @property
    def user_id(self) -> Optional[str]:
        return self.auth.user_id

    @property
    def initialized(self) -> bool:
        return self.initialized_for is not None

    def close(self) -> None:
        self._unsubscribe()

    def _save_token(self, session_id: str) -> tuple:
        return (self._wipe_generation, self._delete_tokens.get(session_id, 0))

    def _invalidate_saves(self, session_id: Optional[str] = None) -> None:
        if session_id is None:
            self._wipe_generation += 1
        else:
            self._delete_tokens[session_id] = self._delete_tokens.get(session_id, 0) + 1

    # ------------------------------------------------------------------
    # Identity transitions
    # ------------------------------------------------------------------

    async def handle_identity_change(self, user: Optional[Identity]) -> None:
        if user is None:
            self._invalidate_saves()
            self.current_session = None
            self.saved_sessions = []
            self.initialized_for = None
            self._list_generation += 1
            self._current_generation += 1
            logger.info("Identity cleared, session state reset")
            return

        if self.initialized_for != user.id:
            current = self.current_session
            if current is not None and current.user_id not in (None, user.id):
                self.current_session = None
                self._current_generation += 1
            await self.load_saved_sessions()
            self.initialized_for = user.id

    # ------------------------------------------------------------------
    # Current session
    # ------------------------------------------------------------------

    async def start_new_session(self) -> str:
        """
        Start a session, or return the current one if it is younger than the
        debounce window (component remounts call this repeatedly).
        """
        now = self._clock()
        if self.current_session is not None:
            age = (now - self.current_session.date).total_seconds()
            if age < self.debounce_seconds:
                return self.current_session.id

        session = TherapySession(
            id=str(uuid.uuid4()),
            user_id=self.user_id,
            title=DEFAULT_SESSION_TITLE,
            date=now,
        )
        self.current_session = session
        self._current_generation += 1
        logger.info(f"Started session {session.id} for {session.user_id or 'anonymous'}")

        if session.user_id is not None:
            try:
                await self.persistence.create(session)
            except CompanionError as e:
                # The first save inserts the row instead
                logger.warning(f"Eager create of session {session.id} failed: {e}")

        return session.id

    def update_session_messages(self, messages: List[ChatMessage]) -> None:
        """Replace the message list, stamping messages that have no timestamp."""
        if self.current_session is None:
            return
        now = self._clock()
        self.current_session.messages = [
            m if m.timestamp is not None else m.model_copy(update={"timestamp": now})
            for m in messages
        ]
        self.current_session.recompute_duration(now)

    def add_session_insight(self, insight: str) -> None:
        if self.current_session is None:
            return
        self.current_session.add_insight(insight)

    async def generate_session_summary(self, force: bool = False) -> Optional[SessionSummary]:
        """
        Attach derived content to the current session.

        Args:
            force: Regenerate even if a summary is already attached
        """
        session = self.current_session
        if session is None or not session.messages:
            return None
        if session.summary is not None and not force:
            return session.summary

        summary = await self.derivation.generate_summary(session)
        session.summary = summary
        session.title = summary.title
        return summary

    async def save_current_session(self) -> Optional[str]:
        """
        Persist the current session. Returns its id, or None when there is
        nothing worth saving.
        """
        session = self.current_session
        if session is None or not is_eligible_for_save(session):
            return None

        token = self._save_token(session.id)
        self.is_loading = True
        try:
            if session.summary is None and len(session.messages) >= MIN_MESSAGES_FOR_SUMMARY:
                await self.generate_session_summary()
            if token != self._save_token(session.id):
                logger.info(f"Session {session.id} was deleted while saving, dropping the save")
                return None
            session.recompute_duration(self._clock())

            try:
                await self.persistence.save(session)
            except CompanionError as e:
                logger.error(f"Saving session {session.id} failed: {e}")
                return None

            if token != self._save_token(session.id):
                # A delete overtook the write; remove what the write put back
                try:
                    await self.persistence.delete(session.id, session.user_id)
                except CompanionError as e:
                    logger.error(f"Removing overtaken save of session {session.id} failed: {e}")
                return None

            await self.load_saved_sessions()
            return session.id
        finally:
            self.is_loading = False

    # ------------------------------------------------------------------
    # Saved sessions
    # ------------------------------------------------------------------

    async def load_saved_sessions(self) -> List[TherapySession]:
        self._list_generation += 1
        generation = self._list_generation
        user_id = self.user_id

        self.is_loading = True
        try:
            sessions = await self.persistence.load_all(user_id)
        except CompanionError as e:
            logger.error(f"Loading sessions failed: {e}")
            return self.saved_sessions
        finally:
            self.is_loading = False

        if generation != self._list_generation:
            logger.debug("Discarding stale session list")
            return sessions
        self.saved_sessions = sessions
        return sessions

    async def load_session(self, session_id: str) -> Optional[TherapySession]:
        """Fetch a session by id and make it the current one."""
        self._current_generation += 1
        generation = self._current_generation

        try:
            session = await self.persistence.get(session_id, self.user_id)
        except CompanionError as e:
            logger.error(f"Loading session {session_id} failed: {e}")
            return None

        if session is None:
            return None
        if generation != self._current_generation:
            logger.debug(f"Discarding stale load of session {session_id}")
            return session
        self.current_session = session
        return session

    async def delete_session(self, session_id: str) -> bool:
        self._invalidate_saves(session_id)
        try:
            await self.persistence.delete(session_id, self.user_id)
        except CompanionError as e:
            logger.error(f"Deleting session {session_id} failed: {e}")
            return False

        self._list_generation += 1
        self.saved_sessions = [s for s in self.saved_sessions if s.id != session_id]
        if self.current_session is not None and self.current_session.id == session_id:
            self.current_session = None
            self._current_generation += 1
        return True

    async def delete_all_sessions(self) -> bool:
        """Wipe every session in the current identity's scope."""
        # Any list load or save still in flight predates the wipe
        self._list_generation += 1
        self._invalidate_saves()
        try:
            await self.persistence.delete_all(self.user_id)
        except CompanionError as e:
            logger.error(f"Deleting all sessions failed: {e}")
            return False

        self._list_generation += 1
        self._current_generation += 1
        self.saved_sessions = []
        self.current_session = None
        return True
