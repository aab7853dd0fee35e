"""Economic calendar and news scoring — pure functions, no I/O."""

from typing import Iterable, Optional

from marketpulse.analysis.models import (
    EconomicEvent,
    EventScore,
    EventSentiment,
    Impact,
    NewsItem,
)

IMPACT_WEIGHTS: dict[Impact, int] = {
    Impact.LOW: 1,
    Impact.MEDIUM: 2,
    Impact.HIGH: 3,
}


def impact_weight(impact: Impact) -> int:
    return IMPACT_WEIGHTS[impact]


def compare_release(
    actual: Optional[float],
    forecast: Optional[float],
) -> EventSentiment:
    """Directional call from a release versus its consensus forecast."""
    if actual is None or forecast is None:
        return EventSentiment.NEUTRAL
    if actual > forecast:
        return EventSentiment.POSITIVE
    if actual < forecast:
        return EventSentiment.NEGATIVE
    return EventSentiment.NEUTRAL


def score_event(event: EconomicEvent) -> EventScore:
    """Classify a calendar event.

    A release without an ``actual`` (or without a ``forecast`` to compare
    against) is pending and carries no directional call.
    """
    pending = event.actual is None or event.forecast is None
    return EventScore(
        impact=event.impact,
        sentiment=compare_release(event.actual, event.forecast),
        pending=pending,
    )


def score_news(item: NewsItem) -> EventScore:
    """Classify a news item; unlabelled headlines are neutral."""
    return EventScore(
        impact=item.impact,
        sentiment=item.sentiment or EventSentiment.NEUTRAL,
        pending=False,
    )


def rank_events(events: Iterable[EconomicEvent]) -> list[EconomicEvent]:
    """Order events by impact (highest first), then by scheduled time."""
    return sorted(events, key=lambda e: (-impact_weight(e.impact), e.time))
