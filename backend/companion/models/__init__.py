"""Models module."""

from .session import (
    ChatMessage,
    SessionSummary,
    TherapySession,
    DEFAULT_SESSION_TITLE,
    calculate_duration,
    is_eligible_for_save,
    utc_now,
)
from .user import Identity, AuthSession, AuthResult, Credentials, EmailRequest, PasswordUpdate, OAuthCallback

__all__ = [
    'ChatMessage', 'SessionSummary', 'TherapySession', 'DEFAULT_SESSION_TITLE',
    'calculate_duration', 'is_eligible_for_save', 'utc_now',
    'Identity', 'AuthSession', 'AuthResult', 'Credentials', 'EmailRequest',
    'PasswordUpdate', 'OAuthCallback',
]
