"""
Authentication API endpoints.
Sign-up, sign-in (password and OAuth), sign-out and password management.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse

from ..core.exceptions import AuthError
from ..models.user import AuthResult, Credentials, EmailRequest, OAuthCallback, PasswordUpdate
from ..services.auth_service import AuthService
from ..dependencies import get_auth_service, navigation_allowed, require_identity
from ..utils.routing import resolve_navigation, route_path

router = APIRouter(prefix="/auth", tags=["auth"])


def _raise_on_error(result: AuthResult) -> AuthResult:
    if result.error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result


@router.get("")
async def auth_page(auth: AuthService = Depends(get_auth_service)):
    """Auth landing route; signed-in visitors are sent on to the chat."""
    redirect = resolve_navigation("auth", auth.has_session)
    if redirect:
        return RedirectResponse(route_path(redirect), status_code=status.HTTP_303_SEE_OTHER)
    return {"route": "auth", "enabled": auth.enabled}


@router.post("/signup", response_model=AuthResult)
async def sign_up(credentials: Credentials, auth: AuthService = Depends(get_auth_service)):
    """Register; without auto-confirm the provider answers with the bare user."""
    data = _raise_on_error(await auth.sign_up(credentials.email, credentials.password)).data
    return AuthResult(data={
        "user": data.get("user", data),
        "confirmation_required": not data.get("access_token"),
    })


@router.post("/signin", response_model=AuthResult)
async def sign_in(credentials: Credentials, auth: AuthService = Depends(get_auth_service)):
    _raise_on_error(await auth.sign_in(credentials.email, credentials.password))
    return AuthResult(data={"user": auth.user.model_dump() if auth.user else None})


@router.get("/oauth/{provider}", response_model=AuthResult)
async def sign_in_with_oauth(provider: str, auth: AuthService = Depends(get_auth_service)):
    """Returns the provider URL the browser should be sent to."""
    return _raise_on_error(await auth.sign_in_with_oauth(provider))


@router.post("/oauth/callback", response_model=AuthResult)
async def oauth_callback(payload: OAuthCallback, auth: AuthService = Depends(get_auth_service)):
    """Finish an OAuth redirect with the tokens it handed back."""
    return _raise_on_error(
        await auth.complete_oauth(payload.access_token, payload.refresh_token, payload.type)
    )


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(auth: AuthService = Depends(get_auth_service)):
    try:
        await auth.sign_out()
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post("/reset-password", response_model=AuthResult)
async def reset_password(payload: EmailRequest, auth: AuthService = Depends(get_auth_service)):
    return _raise_on_error(await auth.reset_password(payload.email))


@router.put("/password", response_model=AuthResult)
async def update_password(
    payload: PasswordUpdate,
    auth: AuthService = Depends(get_auth_service),
    user_id: str = Depends(require_identity),
):
    _raise_on_error(await auth.update_password(payload.password))
    return AuthResult(data={"updated": True})


@router.get("/me")
async def get_current_user(auth: AuthService = Depends(get_auth_service)):
    """Current identity, or null for anonymous visitors."""
    return {
        "user": auth.user.model_dump() if auth.user else None,
        "protected_routes_open": navigation_allowed(auth),
    }
