"""In-memory alert history with aggregate statistics.

The history is an explicit object owned by the caller; nothing is kept at
module level.  Storage format is the caller's concern.
"""

import dataclasses
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from marketpulse.alerts.models import (
    Alert,
    AlertStatistics,
    AlertStatus,
    AlertType,
    Outcome,
)
from marketpulse.errors import InvalidInput

logger = logging.getLogger("marketpulse")


def calculate_statistics(alerts: Iterable[Alert]) -> AlertStatistics:
    """Summarise *alerts*.

    ``win_rate = wins / closed × 100`` (0 when nothing is closed) and
    ``total_pnl`` sums ``result.pnl`` over every alert that has a result.

    ``wins`` and ``losses`` count every alert carrying a result, whatever
    its status, while ``closed`` counts only CLOSED alerts.  An ACTIVE
    alert that already has a WIN result therefore raises ``win_rate``,
    which can exceed 100 when results are recorded before closing.
    """
    alerts = list(alerts)
    closed = sum(1 for a in alerts if a.status is AlertStatus.CLOSED)
    wins = sum(1 for a in alerts if a.result and a.result.outcome is Outcome.WIN)
    losses = sum(1 for a in alerts if a.result and a.result.outcome is Outcome.LOSS)
    return AlertStatistics(
        total=len(alerts),
        active=sum(1 for a in alerts if a.status is AlertStatus.ACTIVE),
        closed=closed,
        wins=wins,
        losses=losses,
        win_rate=(wins / closed) * 100.0 if closed > 0 else 0.0,
        total_pnl=sum(a.result.pnl for a in alerts if a.result is not None),
    )


class AlertHistory:
    """Newest-first, bounded list of alerts.

    Args:
        limit: Maximum alerts retained; the oldest are dropped.
        retention_days: Age after which :meth:`clear_old` discards alerts.
        clock: Returns "now"; defaults to the current UTC time.
    """

    def __init__(
        self,
        limit: int = 500,
        retention_days: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if limit <= 0:
            raise InvalidInput(f"limit must be positive, got {limit}")
        self._limit = limit
        self._retention = timedelta(days=retention_days)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._alerts: list[Alert] = []

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts)

    def __len__(self) -> int:
        return len(self._alerts)

    def add(self, alert: Alert) -> str:
        """Record *alert* and return its id (generated when blank)."""
        alert_id = alert.id or f"alert-{uuid.uuid4().hex[:12]}"
        stored = dataclasses.replace(alert, id=alert_id)
        self._alerts = [stored, *self._alerts][: self._limit]
        logger.info(
            "Added alert: %s %s (%s)", stored.symbol, stored.action, stored.type.value
        )
        return alert_id

    def update(self, alert_id: str, **changes) -> Alert:
        """Apply *changes* to the alert with *alert_id*.

        Raises ``KeyError`` for an unknown id.
        """
        for i, alert in enumerate(self._alerts):
            if alert.id == alert_id:
                updated = dataclasses.replace(alert, **changes)
                self._alerts[i] = updated
                return updated
        raise KeyError(f"Unknown alert: {alert_id}")

    def for_symbol(self, symbol: str) -> list[Alert]:
        return [a for a in self._alerts if a.symbol == symbol]

    def by_type(self, alert_type: AlertType) -> list[Alert]:
        return [a for a in self._alerts if a.type is alert_type]

    def active(self) -> list[Alert]:
        return [a for a in self._alerts if a.status is AlertStatus.ACTIVE]

    def clear_old(self, now: Optional[datetime] = None) -> int:
        """Drop alerts older than the retention window; return the count."""
        cutoff = (now or self._clock()) - self._retention
        kept = [a for a in self._alerts if a.timestamp > cutoff]
        removed = len(self._alerts) - len(kept)
        if removed:
            self._alerts = kept
            logger.info("Cleared %d old alert(s)", removed)
        return removed

    def statistics(self) -> AlertStatistics:
        return calculate_statistics(self._alerts)
