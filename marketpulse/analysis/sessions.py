"""Forex trading sessions — pure functions over UTC hours."""

from datetime import datetime, timezone
from typing import Optional

from marketpulse.analysis.models import MarketSession

# (name, open hour inclusive, close hour exclusive), all UTC.
SESSION_HOURS: tuple[tuple[str, int, int], ...] = (
    ("Sydney", 21, 6),
    ("Tokyo", 0, 9),
    ("London", 8, 17),
    ("New York", 13, 22),
)


def is_session_active(utc_hour: int, open_hour: int, close_hour: int) -> bool:
    """Return True if *utc_hour* falls within ``[open_hour, close_hour)``.

    Windows with ``open_hour > close_hour`` wrap past midnight
    (Sydney 21:00–06:00).
    """
    if not 0 <= utc_hour <= 23:
        raise ValueError(f"utc_hour must be in 0-23, got {utc_hour}")
    if open_hour <= close_hour:
        return open_hour <= utc_hour < close_hour
    return utc_hour >= open_hour or utc_hour < close_hour


def market_sessions(now: Optional[datetime] = None) -> list[MarketSession]:
    """All four sessions flagged active or inactive at *now* (UTC)."""
    if now is None:
        now = datetime.now(timezone.utc)
    hour = now.astimezone(timezone.utc).hour if now.tzinfo else now.hour
    return [
        MarketSession(
            name=name,
            open_hour=open_hour,
            close_hour=close_hour,
            is_active=is_session_active(hour, open_hour, close_hour),
        )
        for name, open_hour, close_hour in SESSION_HOURS
    ]


def current_session_label(utc_hour: int) -> str:
    """Coarse session label used when briefing the AI analyst."""
    if 0 <= utc_hour < 7:
        return "Asian Session"
    if 7 <= utc_hour < 15:
        return "European Session"
    if 15 <= utc_hour < 22:
        return "American Session"
    return "Asian Session"
