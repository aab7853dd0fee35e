"""Signal data models — typed representations for signal generator outputs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from marketpulse.analysis.models import Indicator


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SignalSource(str, Enum):
    """Provenance flag: who produced the recommendation."""

    AI = "ai"
    FALLBACK = "fallback"


class MarketTrend(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    SIDEWAYS = "SIDEWAYS"


@dataclass(frozen=True)
class MarketSnapshot:
    """A single quote handed to the signal generator."""

    symbol: str
    price: float
    change_percent: float
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None
    spread: Optional[float] = None


@dataclass(frozen=True)
class Signal:
    """A BUY / SELL / HOLD recommendation with price levels."""

    symbol: str
    action: Action
    confidence: int  # 0–100
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_level: RiskLevel
    reasoning: str
    timestamp: datetime
    indicators: tuple[Indicator, ...] = ()
    source: SignalSource = SignalSource.FALLBACK
    timeframe: str = "4H"
    market_sentiment: Optional[str] = None  # "BULLISH" or "BEARISH"
    rsi: Optional[float] = None
    macd: Optional[float] = None


@dataclass(frozen=True)
class MarketOverview:
    trend: MarketTrend
    volatility: RiskLevel
    risk_level: int  # 1–10
    recommendation: str


@dataclass(frozen=True)
class AnalysisResult:
    """Signals for a basket plus the basket-wide overview."""

    signals: tuple[Signal, ...]
    overview: MarketOverview
    source: SignalSource = SignalSource.FALLBACK
    economic_factors: dict = field(default_factory=dict)
