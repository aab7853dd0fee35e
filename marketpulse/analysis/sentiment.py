"""Sentiment aggregation — coarse bullish/bearish/neutral splits.

These are heuristics for dashboard cards.  ``confidence`` is the largest of
the three shares and is not a calibrated probability.
"""

from typing import Iterable, Sequence

from marketpulse.analysis.models import (
    Bias,
    FearGreedReading,
    Indicator,
    MarketSentiment,
    clamp,
)
from marketpulse.random_source import RandomSource, uniform

SAMPLED_SHARE_LOW = 30.0
SAMPLED_SHARE_HIGH = 70.0


def _overall(bullish: float, bearish: float) -> Bias:
    if bullish > bearish:
        return Bias.BULLISH
    if bearish > bullish:
        return Bias.BEARISH
    return Bias.NEUTRAL


def _build(symbol: str, bullish: float, bearish: float) -> MarketSentiment:
    bullish = clamp(bullish, 0.0, 100.0)
    bearish = clamp(bearish, 0.0, 100.0 - bullish)
    neutral = 100.0 - bullish - bearish
    return MarketSentiment(
        symbol=symbol,
        bullish=bullish,
        bearish=bearish,
        neutral=neutral,
        overall=_overall(bullish, bearish),
        confidence=max(bullish, bearish, neutral),
    )


def aggregate_indicators(
    symbol: str,
    indicators: Iterable[Indicator],
) -> MarketSentiment:
    """Split *indicators* into bullish/bearish/neutral percentages.

    An empty indicator list is reported as fully neutral.
    """
    counts = {Bias.BULLISH: 0, Bias.BEARISH: 0, Bias.NEUTRAL: 0}
    for ind in indicators:
        counts[ind.signal] += 1
    total = sum(counts.values())
    if total == 0:
        return _build(symbol, 0.0, 0.0)
    return _build(
        symbol,
        counts[Bias.BULLISH] / total * 100.0,
        counts[Bias.BEARISH] / total * 100.0,
    )


def sample_sentiment(symbol: str, rng: RandomSource) -> MarketSentiment:
    """Draw a bounded sentiment split for the sentiment screens.

    Bullish and bearish shares are drawn independently from ``[30, 70)``.
    When together they exceed 100 both are scaled down proportionally so the
    neutral share is never negative.
    """
    bullish = uniform(rng, SAMPLED_SHARE_LOW, SAMPLED_SHARE_HIGH)
    bearish = uniform(rng, SAMPLED_SHARE_LOW, SAMPLED_SHARE_HIGH)
    combined = bullish + bearish
    if combined > 100.0:
        scale = 100.0 / combined
        bullish *= scale
        bearish *= scale
    return _build(symbol, bullish, bearish)


# ── Fear & Greed ─────────────────────────────────────────────────────────

_FEAR_GREED_BANDS: tuple[tuple[int, str], ...] = (
    (20, "Extreme Fear"),
    (40, "Fear"),
    (60, "Neutral"),
    (80, "Greed"),
)


def classify_fear_greed(value: int) -> str:
    for upper, label in _FEAR_GREED_BANDS:
        if value <= upper:
            return label
    return "Extreme Greed"


def fear_greed_index(
    momentum: Sequence[float],
    rng: RandomSource,
) -> FearGreedReading:
    """Score market mood from per-instrument momentum.

    Starts at 50, adds ``30 × mean momentum`` (greed), subtracts
    ``20 × mean |momentum|`` (volatility breeds fear) and adds up to ±10
    points of jitter.  The result is clamped to 0–100.
    """
    if momentum:
        avg_momentum = sum(momentum) / len(momentum)
        avg_volatility = sum(abs(m) for m in momentum) / len(momentum)
    else:
        avg_momentum = avg_volatility = 0.0

    score = 50.0 + avg_momentum * 30.0 - avg_volatility * 20.0
    score += (rng.next() - 0.5) * 20.0
    value = int(round(clamp(score, 0.0, 100.0)))
    return FearGreedReading(value=value, classification=classify_fear_greed(value))
