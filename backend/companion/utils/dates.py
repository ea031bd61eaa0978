"""
Dutch date and duration formatting for titles and session listings.
"""

from datetime import datetime
from typing import Optional

MONTHS_NL = [
    "januari", "februari", "maart", "april", "mei", "juni",
    "juli", "augustus", "september", "oktober", "november", "december",
]

WEEKDAYS_NL = ["maandag", "dinsdag", "woensdag", "donderdag", "vrijdag", "zaterdag", "zondag"]


def format_day(value: datetime) -> str:
    """``19 oktober 2026``"""
    return f"{value.day} {MONTHS_NL[value.month - 1]} {value.year}"


def format_date(value: datetime) -> str:
    """``maandag 19 oktober 2026 om 14:05``"""
    return f"{WEEKDAYS_NL[value.weekday()]} {format_day(value)} om {value:%H:%M}"


def format_duration(minutes: Optional[int]) -> str:
    """Human-readable length of a session."""
    if not minutes or minutes < 1:
        return "Minder dan 1 minuut"
    if minutes < 60:
        return f"{minutes} {'minuut' if minutes == 1 else 'minuten'}"

    hours, remaining = divmod(minutes, 60)
    hours_text = f"{hours} {'uur' if hours == 1 else 'uren'}"
    if remaining == 0:
        return hours_text
    return f"{hours_text} en {remaining} {'minuut' if remaining == 1 else 'minuten'}"


def conversation_title(value: datetime) -> str:
    """Fallback session title when nothing better is available."""
    return f"Gesprek op {format_day(value)}"
