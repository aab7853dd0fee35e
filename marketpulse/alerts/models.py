"""Alert history data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class AlertType(str, Enum):
    SCALPING = "SCALPING"
    ML_TRADING = "ML_TRADING"


class AlertStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class Outcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    BREAKEVEN = "BREAKEVEN"


@dataclass(frozen=True)
class AlertResult:
    outcome: Outcome
    pnl: float
    duration_minutes: float = 0.0


@dataclass(frozen=True)
class Alert:
    """A signal that was shown to the user, and what became of it."""

    symbol: str
    type: AlertType
    action: str  # "BUY" or "SELL"
    confidence: int
    timestamp: datetime
    entry_price: float
    stop_loss: float
    take_profit: float
    reason: str = ""
    status: AlertStatus = AlertStatus.ACTIVE
    result: Optional[AlertResult] = None
    id: str = ""
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AlertStatistics:
    total: int
    active: int
    closed: int
    wins: int
    losses: int
    win_rate: float  # percent
    total_pnl: float
