"""
Identity Models - the signed-in person, provider sessions and auth results.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field


class Identity(BaseModel):
    """The authenticated person as reported by the identity provider."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Identity":
        return cls(
            id=payload["id"],
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


class AuthSession(BaseModel):
    """Tokens for an authenticated identity."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: Identity

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AuthSession":
        expires_at = None
        if payload.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(payload["expires_at"]), tz=timezone.utc)
        elif payload.get("expires_in"):
            expires_at = datetime.fromtimestamp(
                datetime.now(timezone.utc).timestamp() + int(payload["expires_in"]),
                tz=timezone.utc,
            )
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type", "bearer"),
            expires_at=expires_at,
            user=Identity.from_payload(payload["user"]),
        )


class AuthResult(BaseModel):
    """Outcome of an auth operation: payload on success, message on failure."""
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class EmailRequest(BaseModel):
    email: EmailStr


class PasswordUpdate(BaseModel):
    password: str = Field(..., min_length=6)


class OAuthCallback(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    type: Optional[str] = None
