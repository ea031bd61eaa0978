"""
Named routes and the navigation guard.

Protected routes need an identity session; the auth route is skipped once
signed in.
"""

from typing import Dict, Optional

ROUTES: Dict[str, Dict[str, object]] = {
    "home": {"path": "/", "requires_auth": False},
    "auth": {"path": "/auth", "requires_auth": False},
    "chat": {"path": "/chat", "requires_auth": True},
    "sessions": {"path": "/sessions", "requires_auth": False},
    "session-detail": {"path": "/sessions/{session_id}", "requires_auth": False},
}


def route_path(name: str) -> str:
    return str(ROUTES[name]["path"])


def resolve_navigation(route_name: str, has_session: bool) -> Optional[str]:
    """
    Decide where a navigation to ``route_name`` should end up.

    Returns:
        The name of the route to redirect to, or None to proceed.
    """
    route = ROUTES.get(route_name)
    if route is None:
        return "home"
    if route["requires_auth"] and not has_session:
        return "auth"
    if route_name == "auth" and has_session:
        return "chat"
    return None
