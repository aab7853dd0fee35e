"""Currency strength — equal-weighted average of pair changes per currency.

Each pair ``BASEQUOTE`` moving by ``+x %`` counts as ``+x`` for the base
currency and ``-x`` for the quote currency.
"""

import re
from typing import Mapping

from marketpulse.analysis.models import CurrencyStrength, Trend, clamp
from marketpulse.errors import InvalidInput

# A 2 % average move maps to full strength (±100).
DEFAULT_STRENGTH_SCALE = 2.0

TREND_THRESHOLD = 1.0

_SYMBOL_SEPARATORS = re.compile(r"[_/\-\s]")


def split_pair(symbol: str) -> tuple[str, str]:
    """Split ``EURUSD`` / ``EUR_USD`` / ``EUR/USD`` into ``("EUR", "USD")``."""
    cleaned = _SYMBOL_SEPARATORS.sub("", symbol).upper()
    if len(cleaned) != 6 or not cleaned.isalpha():
        raise InvalidInput(f"Cannot split '{symbol}' into two currency codes")
    return cleaned[:3], cleaned[3:]


def classify_trend(change_24h: float) -> Trend:
    if change_24h > TREND_THRESHOLD:
        return Trend.UP
    if change_24h < -TREND_THRESHOLD:
        return Trend.DOWN
    return Trend.SIDEWAYS


def compute_currency_strength(
    basket: Mapping[str, float],
    scale: float = DEFAULT_STRENGTH_SCALE,
) -> list[CurrencyStrength]:
    """Compute relative strength for every currency in *basket*.

    Args:
        basket: Pair symbol → 24h percent change.
        scale: Average percent move that maps to a strength of ±100.

    Returns:
        One ``CurrencyStrength`` per currency, in first-seen order.

    Raises:
        InvalidInput: If a symbol is not a six-letter pair or *scale* is
            not positive.
    """
    if scale <= 0:
        raise InvalidInput(f"scale must be positive, got {scale}")

    contributions: dict[str, list[float]] = {}
    for symbol, change in basket.items():
        base, quote = split_pair(symbol)
        contributions.setdefault(base, []).append(change)
        contributions.setdefault(quote, []).append(-change)

    result: list[CurrencyStrength] = []
    for currency, moves in contributions.items():
        change_24h = sum(moves) / len(moves)
        result.append(
            CurrencyStrength(
                currency=currency,
                strength=clamp(change_24h * 100.0 / scale, -100.0, 100.0),
                change_24h=change_24h,
                trend=classify_trend(change_24h),
            )
        )
    return result
