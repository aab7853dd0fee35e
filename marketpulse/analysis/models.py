"""Analysis data models — typed representations for indicator and market outputs."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Bias(str, Enum):
    """Directional read of an indicator or sentiment snapshot."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    SIDEWAYS = "sideways"


class CorrelationStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EventSentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# ── Indicators ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Indicator:
    """One computed technical indicator for a single instrument."""

    name: str
    value: float
    signal: Bias
    strength: float  # 0–100
    description: str


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float


# ── Aggregates ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MarketSentiment:
    """Bullish / bearish / neutral split for one instrument (sums to 100)."""

    symbol: str
    bullish: float
    bearish: float
    neutral: float
    overall: Bias
    confidence: float


@dataclass(frozen=True)
class FearGreedReading:
    value: int  # 0–100
    classification: str


@dataclass(frozen=True)
class CurrencyStrength:
    """Relative strength of one currency across the instrument basket."""

    currency: str
    strength: float  # -100 to 100
    change_24h: float
    trend: Trend


@dataclass(frozen=True)
class CorrelationPair:
    pair1: str
    pair2: str
    correlation: float  # -1 to 1
    strength: CorrelationStrength


# ── Calendar / news ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class EconomicEvent:
    """A scheduled macro release."""

    id: str
    title: str
    country: str
    currency: str
    impact: Impact
    time: datetime
    description: str = ""
    actual: Optional[float] = None
    forecast: Optional[float] = None
    previous: Optional[float] = None


@dataclass(frozen=True)
class NewsItem:
    """A headline with the pairs it is expected to move."""

    id: str
    title: str
    summary: str
    impact: Impact
    affected_pairs: tuple[str, ...]
    timestamp: datetime
    source: str
    sentiment: Optional[EventSentiment] = None


@dataclass(frozen=True)
class EventScore:
    """Impact and directional call for an event or news item."""

    impact: Impact
    sentiment: EventSentiment
    pending: bool


# ── Sessions ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MarketSession:
    name: str
    open_hour: int  # UTC, inclusive
    close_hour: int  # UTC, exclusive
    is_active: bool

    @property
    def open_time(self) -> str:
        return f"{self.open_hour:02d}:00"

    @property
    def close_time(self) -> str:
        return f"{self.close_hour:02d}:00"


def clamp(value: float, low: float, high: float) -> float:
    """Clamp *value* into ``[low, high]``."""
    return max(low, min(high, value))
