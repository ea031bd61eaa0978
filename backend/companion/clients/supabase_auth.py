"""
Supabase Auth (GoTrue) client.

Talks to ``{supabase_url}/auth/v1`` over httpx, keeps the current session in
memory and notifies listeners whenever that session changes, including
changes nobody asked for such as a refresh token that expired.
"""

import inspect
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from ..core.exceptions import AuthError, LocalStoreError
from ..models.user import AuthSession, Identity

if TYPE_CHECKING:
    from ..storage.key_value import KeyValueStore

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"
PASSWORD_RECOVERY = "PASSWORD_RECOVERY"

AuthStateListener = Callable[[str, Optional[AuthSession]], Any]


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a GoTrue error body."""
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(payload, dict):
        for key in ("msg", "error_description", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return f"HTTP {resp.status_code}"


def _parse_session(payload: Dict[str, Any]) -> AuthSession:
    try:
        return AuthSession.from_payload(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise AuthError(f"Identity provider returned an incomplete session: {e}") from e


def _parse_identity(payload: Dict[str, Any]) -> Identity:
    try:
        return Identity.from_payload(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise AuthError(f"Identity provider returned an incomplete user: {e}") from e


class SupabaseAuthClient:
    """
    Identity provider boundary.

    Every network operation raises AuthError on failure; success returns the
    decoded payload.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 30.0,
        redirect_to: Optional[str] = None,
        storage: Optional["KeyValueStore"] = None,
        storage_key: str = "authSession",
    ):
        """
        Args:
            url: Supabase project URL
            anon_key: Public anon key
            timeout: Request timeout in seconds
            redirect_to: Landing page for OAuth and recovery links
            storage: Where the session survives restarts; memory only if None
            storage_key: Key of the stored session
        """
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.timeout = timeout
        self.redirect_to = redirect_to
        self.storage = storage
        self.storage_key = storage_key
        self._session: Optional[AuthSession] = None
        self._listeners: List[AuthStateListener] = []

    def _get_headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        start_time = time.time()
        url = f"{self.base_url}/{path}"
        logger.debug(f"Auth API call starting: {method} {path}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._get_headers(access_token),
                )
        except httpx.HTTPError as e:
            logger.error(f"Auth API call failed: {method} {path} - {e}")
            raise AuthError(f"Could not reach the identity provider: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning(
                f"Auth API call rejected: {method} {path} - {resp.status_code} {message}",
                extra={"extra_fields": {
                    "path": path,
                    "status_code": resp.status_code,
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            raise AuthError(message, status_code=resp.status_code)

        logger.info(
            f"Auth API call completed: {method} {path}",
            extra={"extra_fields": {
                "path": path,
                "status_code": resp.status_code,
                "duration_ms": round(duration_ms, 2),
            }}
        )
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            logger.warning(f"Auth API call returned a non-JSON body: {method} {path}")
            raise AuthError("Identity provider returned an unreadable response", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise AuthError("Identity provider returned an unexpected response", status_code=resp.status_code)
        return data

    # ------------------------------------------------------------------
    # Auth state stream
    # ------------------------------------------------------------------

    def on_auth_state_change(self, listener: AuthStateListener) -> Callable[[], None]:
        """Subscribe to session changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        logger.debug(f"Auth state change: {event}")
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Auth state listener failed on {event}: {e}", exc_info=True)

    async def _persist(self) -> None:
        """Mirror the current session to storage; a failed write only costs the restore."""
        if self.storage is None:
            return
        try:
            if self._session is None:
                await self.storage.remove_item(self.storage_key)
            else:
                await self.storage.set_item(self.storage_key, self._session.model_dump_json())
        except LocalStoreError as e:
            logger.warning(f"Could not persist auth session: {e}")

    async def _store_session(self, payload: Dict[str, Any], event: str) -> AuthSession:
        self._session = _parse_session(payload)
        await self._persist()
        await self._emit(event, self._session)
        return self._session

    async def _clear_session(self) -> None:
        had_session = self._session is not None
        self._session = None
        await self._persist()
        if had_session:
            await self._emit(SIGNED_OUT, None)

    async def _ensure_fresh(self) -> None:
        if self._session is not None and self._session.is_expired:
            await self.refresh_session()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """
        Register a new account.

        When the project auto-confirms e-mail the response already carries a
        session and the identity is signed in right away.
        """
        params = {"redirect_to": self.redirect_to} if self.redirect_to else None
        data = await self._request(
            "POST", "signup", json={"email": email, "password": password}, params=params
        )
        if data.get("access_token"):
            await self._store_session(data, SIGNED_IN)
        return data

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            "token",
            json={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        await self._store_session(data, SIGNED_IN)
        return data

    def sign_in_with_oauth(self, provider: str, redirect_to: Optional[str] = None) -> Dict[str, Any]:
        """Build the provider authorize URL; the redirect finishes in ``set_session``."""
        params = {"provider": provider}
        target = redirect_to or self.redirect_to
        if target:
            params["redirect_to"] = target
        return {"provider": provider, "url": f"{self.base_url}/authorize?{urlencode(params)}"}

    async def set_session(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        link_type: Optional[str] = None,
    ) -> AuthSession:
        """
        Adopt tokens handed back by an OAuth or e-mail link redirect.

        A ``recovery`` link signs the person in to pick a new password, so it
        is announced as PASSWORD_RECOVERY instead of SIGNED_IN.
        """
        user = await self._request("GET", "user", access_token=access_token)
        event = PASSWORD_RECOVERY if link_type == "recovery" else SIGNED_IN
        return await self._store_session(
            {"access_token": access_token, "refresh_token": refresh_token, "user": user},
            event,
        )

    async def restore_session(self) -> Optional[AuthSession]:
        """
        Load the session persisted by an earlier run.

        An expired session is refreshed first; if the refresh is rejected the
        stored login is dropped and the AuthError propagates.
        """
        if self._session is not None:
            await self._ensure_fresh()
            return self._session
        if self.storage is None:
            return None
        raw = await self.storage.get_item(self.storage_key)
        if raw is None:
            return None
        try:
            self._session = AuthSession.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable stored auth session: {e}")
            await self._persist()
            return None
        logger.info(f"Restored auth session for {self._session.user.id}")
        await self._ensure_fresh()
        return self._session

    async def get_access_token(self) -> Optional[str]:
        """Token for data requests, refreshed when expired; None when signed out."""
        try:
            await self._ensure_fresh()
        except AuthError as e:
            logger.warning(f"Access token refresh failed: {e.message}")
            return None
        return self.access_token

    async def discard_session(self) -> None:
        """Forget a session the provider no longer accepts."""
        await self._clear_session()

    async def refresh_session(self) -> Optional[AuthSession]:
        """
        Exchange the refresh token for a new session.

        A rejected refresh means the login is gone: the session is cleared
        and SIGNED_OUT is emitted before the error propagates.
        """
        if self._session is None or not self._session.refresh_token:
            return None
        try:
            data = await self._request(
                "POST",
                "token",
                json={"refresh_token": self._session.refresh_token},
                params={"grant_type": "refresh_token"},
            )
        except AuthError:
            await self._clear_session()
            raise
        return await self._store_session(data, TOKEN_REFRESHED)

    async def sign_out(self) -> None:
        if self._session is not None:
            try:
                await self._request("POST", "logout", access_token=self._session.access_token)
            except AuthError as e:
                # A token the server no longer knows is as good as signed out
                if e.status_code not in (401, 403, 404):
                    raise
        await self._clear_session()

    async def reset_password_for_email(self, email: str) -> Dict[str, Any]:
        params = {"redirect_to": self.redirect_to} if self.redirect_to else None
        return await self._request("POST", "recover", json={"email": email}, params=params)

    async def update_user(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None:
            raise AuthError("Not signed in")
        await self._ensure_fresh()
        data = await self._request(
            "PUT", "user", json=attributes, access_token=self._session.access_token
        )
        self._session = self._session.model_copy(update={"user": _parse_identity(data)})
        await self._persist()
        await self._emit(USER_UPDATED, self._session)
        return data

    async def get_user(self) -> Optional[Identity]:
        """Ask the provider who the current token belongs to."""
        await self._ensure_fresh()
        if self._session is None:
            return None
        data = await self._request("GET", "user", access_token=self._session.access_token)
        return _parse_identity(data)

    def get_session(self) -> Optional[AuthSession]:
        """Current session as held locally; no network call."""
        return self._session

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None
