"""
Auth Service - the app-facing identity adapter.

Wraps the identity provider so that every operation reports failure as an
AuthResult instead of raising (sign-out excepted), keeps ``loading`` and
``error`` up to date, and republishes identity changes to subscribers.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..clients.supabase_auth import SupabaseAuthClient
from ..core.events import EventChannel
from ..core.exceptions import AuthError
from ..models.user import AuthResult, AuthSession, Identity

logger = logging.getLogger(__name__)

IdentityHandler = Callable[[Optional[Identity]], Any]


class AuthService:
    """
    Mirrors the provider's current identity and exposes the auth operations.

    Subscribes to the provider's auth-state stream once, at construction,
    and keeps that subscription until ``close``.
    """

    def __init__(self, client: Optional[SupabaseAuthClient]):
        """
        Args:
            client: Identity provider client, None when auth is not configured
        """
        self.client = client
        self.user: Optional[Identity] = None
        self.loading = False
        self.error: Optional[str] = None
        self.identity_changed = EventChannel("identity_changed")
        self._unsubscribe: Optional[Callable[[], None]] = None
        if client is not None:
            self._unsubscribe = client.on_auth_state_change(self._handle_auth_state_change)

    def subscribe(self, handler: IdentityHandler) -> Callable[[], None]:
        """Get called with the new identity (or None) whenever it changes."""
        return self.identity_changed.subscribe(handler)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def get_session(self) -> Optional[AuthSession]:
        return self.client.get_session() if self.client else None

    @property
    def enabled(self) -> bool:
        """False when no identity provider is configured (local-only mode)."""
        return self.client is not None

    @property
    def has_session(self) -> bool:
        return self.get_session() is not None

    async def _set_user(self, user: Optional[Identity]) -> None:
        previous = self.user_id
        self.user = user
        if previous != self.user_id:
            logger.info(f"Identity changed: {previous or 'anonymous'} -> {self.user_id or 'anonymous'}")
            await self.identity_changed.publish(user)

    async def _handle_auth_state_change(self, event: str, session: Optional[AuthSession]) -> None:
        await self._set_user(session.user if session else None)

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[Optional[Dict[str, Any]]]],
    ) -> AuthResult:
        """Shared loading/error bookkeeping for the result-returning operations."""
        self.loading = True
        self.error = None
        try:
            if self.client is None:
                raise AuthError("Authentication is not configured")
            data = await call()
            return AuthResult(data=data or {}, error=None)
        except AuthError as e:
            logger.warning(f"{operation} failed: {e.message}")
            self.error = e.message
            return AuthResult(data=None, error=self.error)
        finally:
            self.loading = False

    async def init_user(self) -> Optional[Identity]:
        """
        Restore the identity persisted by an earlier run, if any.

        The stored session is refreshed when expired and then confirmed with
        the provider. A token the provider rejects is discarded; an
        unreachable provider only leaves this run anonymous.
        """
        if self.client is None:
            return None
        try:
            await self.client.restore_session()
            user = await self.client.get_user()
        except AuthError as e:
            logger.info(f"No identity restored: {e.message}")
            if e.status_code in (401, 403):
                await self.client.discard_session()
            user = None
        await self._set_user(user)
        return user

    async def sign_up(self, email: str, password: str) -> AuthResult:
        return await self._run("Sign up", lambda: self.client.sign_up(email, password))

    async def sign_in(self, email: str, password: str) -> AuthResult:
        async def call():
            data = await self.client.sign_in_with_password(email, password)
            await self._set_user(self.client.get_session().user)
            return data
        return await self._run("Sign in", call)

    async def sign_in_with_oauth(self, provider: str) -> AuthResult:
        async def call():
            return self.client.sign_in_with_oauth(provider)
        return await self._run(f"OAuth sign in ({provider})", call)

    async def complete_oauth(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        link_type: Optional[str] = None,
    ) -> AuthResult:
        """Finish an OAuth or e-mail link redirect; ``link_type`` is the link's ``type``."""
        async def call():
            session = await self.client.set_session(access_token, refresh_token, link_type)
            return {"user": session.user.model_dump()}
        return await self._run("OAuth completion", call)

    async def sign_out(self) -> None:
        """Sign out. Unlike the other operations, failures are re-raised."""
        self.loading = True
        self.error = None
        try:
            if self.client is not None:
                await self.client.sign_out()
            await self._set_user(None)
            logger.info("Sign out successful")
        except AuthError as e:
            logger.error(f"Sign out failed: {e.message}")
            self.error = e.message
            raise
        finally:
            self.loading = False

    async def reset_password(self, email: str) -> AuthResult:
        return await self._run("Password reset", lambda: self.client.reset_password_for_email(email))

    async def update_password(self, new_password: str) -> AuthResult:
        return await self._run("Password update", lambda: self.client.update_user({"password": new_password}))
