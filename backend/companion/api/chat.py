"""
Chat API endpoints - the current session of the conversation screen.
All routes except the landing route sit behind the navigation guard.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ..core.session_manager import SessionManager
from ..dependencies import get_auth_service, get_session_manager, navigation_allowed, require_identity
from ..models.session import ChatMessage, SessionSummary, TherapySession
from ..services.auth_service import AuthService
from ..utils.routing import resolve_navigation, route_path

router = APIRouter(prefix="/chat", tags=["chat"])


class InsightRequest(BaseModel):
    insight: str


class SaveResponse(BaseModel):
    session_id: Optional[str] = None
    saved: bool


def _require_current(manager: SessionManager) -> TherapySession:
    if manager.current_session is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No active session")
    return manager.current_session


@router.get("", response_model=Optional[TherapySession])
async def chat_page(
    auth: AuthService = Depends(get_auth_service),
    manager: SessionManager = Depends(get_session_manager),
):
    """The conversation screen: the current session, or a redirect to sign in."""
    redirect = resolve_navigation("chat", navigation_allowed(auth))
    if redirect:
        return RedirectResponse(route_path(redirect), status_code=status.HTTP_303_SEE_OTHER)
    return manager.current_session


@router.post("/session", dependencies=[Depends(require_identity)])
async def start_session(manager: SessionManager = Depends(get_session_manager)):
    session_id = await manager.start_new_session()
    return {"session_id": session_id}


@router.put("/session/messages", response_model=TherapySession, dependencies=[Depends(require_identity)])
async def update_messages(
    messages: List[ChatMessage],
    manager: SessionManager = Depends(get_session_manager),
):
    _require_current(manager)
    manager.update_session_messages(messages)
    return manager.current_session


@router.post("/session/insights", response_model=TherapySession, dependencies=[Depends(require_identity)])
async def add_insight(
    payload: InsightRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    _require_current(manager)
    manager.add_session_insight(payload.insight)
    return manager.current_session


@router.post("/session/save", response_model=SaveResponse, dependencies=[Depends(require_identity)])
async def save_session(manager: SessionManager = Depends(get_session_manager)):
    """Persist the current session; ``saved`` is false when it has no user input yet."""
    _require_current(manager)
    session_id = await manager.save_current_session()
    return SaveResponse(session_id=session_id, saved=session_id is not None)


@router.post("/session/summary", response_model=SessionSummary, dependencies=[Depends(require_identity)])
async def generate_summary(
    force: bool = Query(False, description="Regenerate an existing summary"),
    manager: SessionManager = Depends(get_session_manager),
):
    _require_current(manager)
    summary = await manager.generate_session_summary(force=force)
    if summary is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session has no messages")
    return summary
