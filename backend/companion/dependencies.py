"""
FastAPI dependencies - hand the per-app services to route handlers and
enforce the navigation guard on protected routes.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .container import ServiceContainer
from .core.session_manager import SessionManager
from .services.auth_service import AuthService
from .utils.routing import resolve_navigation


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_auth_service(container: ServiceContainer = Depends(get_container)) -> AuthService:
    return container.auth


def get_session_manager(container: ServiceContainer = Depends(get_container)) -> SessionManager:
    return container.sessions


def navigation_allowed(auth: AuthService) -> bool:
    """Whether protected routes are open: signed in, or auth not configured at all."""
    return auth.has_session or not auth.enabled


def require_identity(auth: AuthService = Depends(get_auth_service)) -> Optional[str]:
    """
    Guard for protected routes.

    Returns:
        The signed-in user id (None in local-only mode)

    Raises:
        HTTPException: 401 when there is no identity session
    """
    if resolve_navigation("chat", navigation_allowed(auth)) == "auth":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in to continue",
        )
    return auth.user_id
