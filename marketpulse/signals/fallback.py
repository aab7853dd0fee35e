"""Fallback signal heuristic — used when the AI analyst is unreachable.

Pure apart from the injected ``RandomSource``: the same snapshot, RSI and
MACD always produce the same action and risk level, and with a pinned
source the same confidence.

Decision table (per instrument)::

    change > 0 and rsi < 50 and macd > 0  → BUY
    change < 0 and rsi > 50 and macd < 0  → SELL
    anything else                         → HOLD (risk LOW)

BUY / SELL are HIGH risk when ``|change| > 1`` %, otherwise MEDIUM.
"""

from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence

from marketpulse.analysis.indicators import (
    MACD_NAME,
    RSI_NAME,
    compute_indicators,
    indicator_value,
)
from marketpulse.analysis.models import Indicator
from marketpulse.analysis.series import MIN_SAMPLES_RSI
from marketpulse.random_source import RandomSource, uniform
from marketpulse.signals.models import (
    Action,
    AnalysisResult,
    MarketOverview,
    MarketSnapshot,
    MarketTrend,
    RiskLevel,
    Signal,
    SignalSource,
)

VOLATILITY_THRESHOLD = 1.0
MAX_CONFIDENCE = 95
BASE_CONFIDENCE = 60.0
CONFIDENCE_JITTER = 20.0

# (stop-loss %, take-profit %) of price
VOLATILE_OFFSETS = (0.015, 0.025)
CALM_OFFSETS = (0.008, 0.015)

RSI_RANGE = (30.0, 70.0)
MACD_RANGE = (-0.001, 0.001)


def decide_action(
    change_percent: float,
    rsi: float,
    macd: float,
) -> tuple[Action, RiskLevel]:
    """Apply the decision table; no randomness involved."""
    is_volatile = abs(change_percent) > VOLATILITY_THRESHOLD
    directional_risk = RiskLevel.HIGH if is_volatile else RiskLevel.MEDIUM
    if change_percent > 0 and rsi < 50 and macd > 0:
        return Action.BUY, directional_risk
    if change_percent < 0 and rsi > 50 and macd < 0:
        return Action.SELL, directional_risk
    return Action.HOLD, RiskLevel.LOW


def price_levels(
    price: float,
    action: Action,
    is_volatile: bool,
) -> tuple[float, float]:
    """Return ``(stop_loss, take_profit)`` as percentage offsets of *price*.

    BUY puts the stop below and the target above; SELL and HOLD mirror it.
    """
    sl_pct, tp_pct = VOLATILE_OFFSETS if is_volatile else CALM_OFFSETS
    sl_distance = price * sl_pct
    tp_distance = price * tp_pct
    if action is Action.BUY:
        return price - sl_distance, price + tp_distance
    return price + sl_distance, price - tp_distance


def planned_reward_ratio(is_volatile: bool) -> float:
    """Target distance over stop distance implied by the offsets."""
    sl_pct, tp_pct = VOLATILE_OFFSETS if is_volatile else CALM_OFFSETS
    return tp_pct / sl_pct


def build_reasoning(action: Action, rsi: float, macd: float) -> str:
    """Templated explanation citing the values that drove *action*."""
    if action is Action.BUY:
        return (
            f"Strong bullish momentum detected. RSI at {rsi:.1f} indicates "
            f"potential upside. MACD at {macd:.4f} positive crossover suggests "
            f"trend continuation."
        )
    if action is Action.SELL:
        return (
            f"Bearish pressure building. RSI at {rsi:.1f} shows overbought "
            f"conditions. MACD at {macd:.4f} negative divergence confirms "
            f"downtrend."
        )
    return (
        f"Mixed signals detected. Market consolidation phase. RSI at {rsi:.1f} "
        f"and MACD at {macd:.4f} suggest neutral momentum."
    )


def generate_fallback_signal(
    snapshot: MarketSnapshot,
    rng: RandomSource,
    rsi: Optional[float] = None,
    macd: Optional[float] = None,
    indicators: Sequence[Indicator] = (),
    now: Optional[datetime] = None,
) -> Signal:
    """Produce a recommendation for one instrument without the AI analyst.

    Args:
        snapshot: Latest quote for the instrument.
        rng: Source for the RSI / MACD draws (when not supplied) and the
            confidence jitter.
        rsi: Computed RSI; drawn from ``[30, 70)`` when ``None``.
        macd: Computed MACD; drawn from ``[-0.001, 0.001)`` when ``None``.
        indicators: Indicators attached to the signal unchanged.
        now: Signal timestamp; defaults to the current UTC time.

    Never raises for a well-formed snapshot.
    """
    volatility = abs(snapshot.change_percent)
    is_volatile = volatility > VOLATILITY_THRESHOLD

    if rsi is None:
        rsi = uniform(rng, *RSI_RANGE)
    if macd is None:
        macd = uniform(rng, *MACD_RANGE)

    action, risk_level = decide_action(snapshot.change_percent, rsi, macd)

    jitter = rng.next() * CONFIDENCE_JITTER
    confidence = round(min(MAX_CONFIDENCE, BASE_CONFIDENCE + volatility * 10 + jitter))

    stop_loss, take_profit = price_levels(snapshot.price, action, is_volatile)

    return Signal(
        symbol=snapshot.symbol,
        action=action,
        confidence=int(confidence),
        entry_price=snapshot.price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        risk_level=risk_level,
        reasoning=build_reasoning(action, rsi, macd),
        timestamp=now or datetime.now(timezone.utc),
        indicators=tuple(indicators),
        source=SignalSource.FALLBACK,
        timeframe="1H" if is_volatile else "4H",
        market_sentiment="BULLISH" if snapshot.change_percent > 0 else "BEARISH",
        rsi=rsi,
        macd=macd,
    )


def fallback_signal_from_history(
    snapshot: MarketSnapshot,
    rng: RandomSource,
    prices: Sequence[float] = (),
    now: Optional[datetime] = None,
) -> Signal:
    """Heuristic signal, driven by real indicators when history allows.

    With at least 15 prices the RSI and MACD come from the indicator
    engine; otherwise they are drawn from *rng*.
    """
    indicators = compute_indicators(prices) if prices else []
    rsi = macd = None
    if len(prices) >= MIN_SAMPLES_RSI:
        rsi = indicator_value(indicators, RSI_NAME)
        macd = indicator_value(indicators, MACD_NAME)
    return generate_fallback_signal(
        snapshot, rng, rsi=rsi, macd=macd, indicators=indicators, now=now,
    )


# ── Basket overview ──────────────────────────────────────────────────────


def _recommendation(trend: MarketTrend) -> str:
    if trend is MarketTrend.BULLISH:
        return (
            "Market showing bullish bias. Consider selective long positions "
            "with proper risk management."
        )
    if trend is MarketTrend.BEARISH:
        return (
            "Bearish sentiment prevailing. Focus on short opportunities and "
            "capital preservation."
        )
    return (
        "Mixed market conditions. Maintain balanced approach with tight "
        "risk controls."
    )


def summarize_market(
    signals: Iterable[Signal],
    snapshots: Sequence[MarketSnapshot],
) -> MarketOverview:
    """Basket-wide trend, volatility band and 1–10 risk score."""
    signals = list(signals)
    buys = sum(1 for s in signals if s.action is Action.BUY)
    sells = sum(1 for s in signals if s.action is Action.SELL)
    if buys > sells:
        trend = MarketTrend.BULLISH
    elif sells > buys:
        trend = MarketTrend.BEARISH
    else:
        trend = MarketTrend.SIDEWAYS

    if snapshots:
        avg_volatility = sum(abs(s.change_percent) for s in snapshots) / len(snapshots)
    else:
        avg_volatility = 0.0

    if avg_volatility > 2:
        volatility = RiskLevel.HIGH
    elif avg_volatility > 1:
        volatility = RiskLevel.MEDIUM
    else:
        volatility = RiskLevel.LOW

    return MarketOverview(
        trend=trend,
        volatility=volatility,
        risk_level=min(10, round(avg_volatility * 2 + 3)),
        recommendation=_recommendation(trend),
    )


def generate_fallback_analysis(
    snapshots: Sequence[MarketSnapshot],
    rng: RandomSource,
    max_signals: int = 5,
    series_by_symbol: Optional[Mapping[str, Sequence[float]]] = None,
    now: Optional[datetime] = None,
) -> AnalysisResult:
    """Fallback signals for the first *max_signals* snapshots plus overview.

    *series_by_symbol* supplies price history per instrument; symbols
    without one get drawn RSI and MACD values.
    """
    series_by_symbol = series_by_symbol or {}
    signals = tuple(
        fallback_signal_from_history(
            snap, rng, series_by_symbol.get(snap.symbol, ()), now
        )
        for snap in snapshots[:max_signals]
    )
    return AnalysisResult(
        signals=signals,
        overview=summarize_market(signals, snapshots),
        source=SignalSource.FALLBACK,
    )
