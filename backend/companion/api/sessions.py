"""
Sessions API endpoints - the saved-sessions list and session details.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..core.session_manager import SessionManager
from ..dependencies import get_session_manager
from ..models.session import TherapySession
from ..utils.dates import format_date, format_duration

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionOverviewItem(BaseModel):
    """A saved session as shown in the history list."""
    id: str
    title: str
    date: datetime
    date_label: str
    duration_label: str
    key_themes: List[str] = []
    message_count: int


@router.get("", response_model=List[TherapySession])
async def list_sessions(manager: SessionManager = Depends(get_session_manager)):
    """Saved sessions visible to the current identity, newest first."""
    return await manager.load_saved_sessions()


@router.get("/overview", response_model=List[SessionOverviewItem])
async def sessions_overview(manager: SessionManager = Depends(get_session_manager)):
    """History list with Dutch date and duration labels."""
    sessions = await manager.load_saved_sessions()
    return [
        SessionOverviewItem(
            id=s.id,
            title=s.title,
            date=s.date,
            date_label=format_date(s.date),
            duration_label=format_duration(s.duration),
            key_themes=s.summary.key_themes if s.summary else [],
            message_count=len(s.messages),
        )
        for s in sessions
    ]


@router.get("/{session_id}", response_model=TherapySession)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    session = await manager.load_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    if not await manager.delete_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Session could not be deleted",
        )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_all_sessions(manager: SessionManager = Depends(get_session_manager)):
    if not await manager.delete_all_sessions():
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Sessions could not be deleted",
        )
