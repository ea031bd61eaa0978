"""
Session Models - conversation messages, derived summaries and sessions.

Field names serialize in camelCase (``userId``, ``keyThemes``) so the local
fallback store keeps the same JSON shape as the web client.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_SESSION_TITLE = "Nieuwe sessie"
MAX_THEMES = 4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ChatMessage(_CamelModel):
    """A single conversation turn."""
    role: Literal["user", "assistant"]
    content: str
    essence: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None


class SessionSummary(_CamelModel):
    """AI-derived digest of a finished conversation."""
    id: str
    title: str
    date: datetime
    duration: int = 0  # minutes
    key_themes: List[str] = Field(default_factory=list)
    summary: str
    reflective_questions: List[str] = Field(default_factory=list)

    @field_validator("key_themes")
    @classmethod
    def _cap_themes(cls, value: List[str]) -> List[str]:
        return value[:MAX_THEMES]


class TherapySession(_CamelModel):
    """One guided conversation with its metadata and derived content."""
    id: str
    user_id: Optional[str] = None
    title: str = DEFAULT_SESSION_TITLE
    date: datetime = Field(default_factory=utc_now)
    duration: int = 0
    messages: List[ChatMessage] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    summary: Optional[SessionSummary] = None

    @field_validator("date")
    @classmethod
    def _date_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("insights")
    @classmethod
    def _dedupe_insights(cls, value: List[str]) -> List[str]:
        # Set semantics, first occurrence wins
        return list(dict.fromkeys(value))

    def add_insight(self, insight: str) -> bool:
        """Insert ``insight`` unless already present. Returns True if added."""
        if insight in self.insights:
            return False
        self.insights.append(insight)
        return True

    def recompute_duration(self, now: Optional[datetime] = None) -> int:
        self.duration = calculate_duration(self.date, now)
        return self.duration

    def to_storage(self) -> dict:
        """Serialize to the camelCase JSON shape used by the local store."""
        return self.model_dump(mode="json", by_alias=True)


def calculate_duration(started_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole minutes elapsed between ``started_at`` and ``now``."""
    now = _as_utc(now or utc_now())
    elapsed = (now - _as_utc(started_at)).total_seconds()
    return max(0, int(elapsed // 60))


def is_eligible_for_save(session: TherapySession) -> bool:
    """A session is worth persisting once it holds a non-empty user message."""
    return any(
        m.role == "user" and m.content.strip()
        for m in session.messages
    )
