"""
Session Store Interface - contract shared by the local and remote backends.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.session import TherapySession


class SessionStore(ABC):
    """
    Abstract session store.

    Implementations raise their backend's CompanionError subclass on
    failure; choosing a fallback is the caller's business.
    """

    @abstractmethod
    async def create(self, session: TherapySession) -> None:
        """
        Reserve a record for a freshly started session.

        Args:
            session: The new, still empty session
        """
        pass

    @abstractmethod
    async def save(self, session: TherapySession) -> None:
        """
        Insert or update ``session`` keyed by its id, messages included.

        Args:
            session: Session to persist
        """
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[TherapySession]:
        """
        Load one session with its messages.

        Args:
            session_id: Session identifier

        Returns:
            The session, or None if it does not exist
        """
        pass

    @abstractmethod
    async def load_all(self, user_id: Optional[str]) -> List[TherapySession]:
        """
        Load every session owned by ``user_id`` (None = anonymous).

        Args:
            user_id: Owner to filter on

        Returns:
            Sessions, newest first
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """
        Remove one session and its messages.

        Args:
            session_id: Session identifier
        """
        pass

    @abstractmethod
    async def delete_all(self, user_id: Optional[str]) -> None:
        """
        Remove every session owned by ``user_id``.

        Args:
            user_id: Owner whose sessions are wiped (None = anonymous)
        """
        pass
