"""Technical indicators — RSI, SMA, MACD, Bollinger Bands. Pure functions, no I/O.

Every function takes a plain sequence of prices (oldest first) so callers can
pass a ``PriceSeriesStore`` snapshot directly.  Short series never raise:
each indicator falls back to a documented neutral reading instead.
"""

import math
from typing import Iterable, Optional, Sequence

from marketpulse.analysis.models import (
    BollingerBands,
    Bias,
    Indicator,
    MACDResult,
    clamp,
)
from marketpulse.errors import InvalidInput

RSI_NAME = "RSI (14)"
MACD_NAME = "MACD"
BOLLINGER_NAME = "Bollinger Bands"

INDICATOR_NAMES: tuple[str, ...] = ("rsi", "macd", "bollinger")

# Neutral RSI reading returned when there is not enough history.
NEUTRAL_RSI = 50.0

MACD_FAST_PERIOD = 12
MACD_SLOW_PERIOD = 26
# Signal line is a fixed fraction of MACD, not a 9-period EMA.
MACD_SIGNAL_FACTOR = 0.8


# ── SMA ──────────────────────────────────────────────────────────────────


def calculate_sma(prices: Sequence[float], period: int) -> float:
    """Simple moving average of the last *period* prices.

    When fewer than *period* prices exist the average is taken over the
    whole series.  Returns ``0.0`` for an empty series.
    """
    if period <= 0:
        raise InvalidInput(f"period must be positive, got {period}")
    if not prices:
        return 0.0
    window = prices[-period:]
    return sum(window) / len(window)


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(prices: Sequence[float], period: int = 14) -> float:
    """Calculate the Relative Strength Index over the last *period* deltas.

    Algorithm:
        1. delta = price[i] - price[i-1] for the trailing *period* deltas.
        2. avg_gain = sum(positive deltas) / period
           avg_loss = sum(|negative deltas|) / period
        3. RS = avg_gain / avg_loss
        4. RSI = 100 - 100 / (1 + RS)

    Returns ``50.0`` when fewer than ``period + 1`` prices are available
    and ``100.0`` when there are no losses in the window.
    """
    if period <= 0:
        raise InvalidInput(f"period must be positive, got {period}")
    if len(prices) < period + 1:
        return NEUTRAL_RSI

    window = prices[-(period + 1):]
    gains = 0.0
    losses = 0.0
    for i in range(1, len(window)):
        change = window[i] - window[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(prices: Sequence[float]) -> MACDResult:
    """Calculate MACD as the spread of a fast and slow moving average.

    ``macd = SMA(12) - SMA(26)`` over the tail of *prices*.  The signal
    line is ``0.8 × macd`` and ``histogram = macd - signal``.  Series
    shorter than 26 use whatever tail is available.
    """
    fast = calculate_sma(prices, MACD_FAST_PERIOD)
    slow = calculate_sma(prices, MACD_SLOW_PERIOD)
    macd = fast - slow
    signal = macd * MACD_SIGNAL_FACTOR
    return MACDResult(macd=macd, signal=signal, histogram=macd - signal)


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    prices: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerBands:
    """Calculate Bollinger Bands for the latest price.

    Middle = SMA(price, *period*)
    Upper  = middle + *std_dev* × σ
    Lower  = middle − *std_dev* × σ

    σ is the population standard deviation of the window.  Shorter series
    use the available tail; an empty series yields all-zero bands.
    """
    if period <= 0:
        raise InvalidInput(f"period must be positive, got {period}")
    if not prices:
        return BollingerBands(upper=0.0, middle=0.0, lower=0.0)

    window = prices[-period:]
    sma = sum(window) / len(window)
    variance = sum((x - sma) ** 2 for x in window) / len(window)
    sigma = math.sqrt(variance)
    return BollingerBands(
        upper=sma + std_dev * sigma,
        middle=sma,
        lower=sma - std_dev * sigma,
    )


def band_position(price: float, bands: BollingerBands) -> float:
    """Percent position of *price* inside the band (0 = lower, 100 = upper).

    A zero-width band reports the midpoint, 50.
    """
    width = bands.upper - bands.lower
    if width == 0:
        return 50.0
    return (price - bands.lower) / width * 100.0


# ── Indicator objects ────────────────────────────────────────────────────


def rsi_indicator(prices: Sequence[float], period: int = 14) -> Indicator:
    rsi = calculate_rsi(prices, period)
    if rsi > 70:
        signal, description = Bias.BEARISH, "Overbought condition"
    elif rsi < 30:
        signal, description = Bias.BULLISH, "Oversold condition"
    else:
        signal, description = Bias.NEUTRAL, "Neutral momentum"
    return Indicator(
        name=RSI_NAME,
        value=rsi,
        signal=signal,
        strength=clamp(abs(rsi - 50.0) * 2.0, 0.0, 100.0),
        description=description,
    )


def macd_indicator(prices: Sequence[float]) -> Indicator:
    result = calculate_macd(prices)
    bullish = result.histogram > 0
    return Indicator(
        name=MACD_NAME,
        value=result.macd,
        signal=Bias.BULLISH if bullish else Bias.BEARISH,
        strength=clamp(abs(result.histogram) * 100.0, 0.0, 100.0),
        description="Bullish momentum" if bullish else "Bearish momentum",
    )


def bollinger_indicator(prices: Sequence[float], period: int = 20) -> Indicator:
    bands = calculate_bollinger(prices, period)
    price = prices[-1] if prices else 0.0

    # Two-tier strength: 80 outside the bands, 30 inside.
    if price > bands.upper:
        signal, strength, description = Bias.BEARISH, 80.0, "Price above upper band"
    elif price < bands.lower:
        signal, strength, description = Bias.BULLISH, 80.0, "Price below lower band"
    else:
        signal, strength, description = Bias.NEUTRAL, 30.0, "Price within bands"

    return Indicator(
        name=BOLLINGER_NAME,
        value=band_position(price, bands),
        signal=signal,
        strength=strength,
        description=description,
    )


_BUILDERS = {
    "rsi": rsi_indicator,
    "macd": macd_indicator,
    "bollinger": bollinger_indicator,
}


def compute_indicators(
    prices: Sequence[float],
    names: Optional[Iterable[str]] = None,
) -> list[Indicator]:
    """Compute the requested indicators for one price snapshot.

    Args:
        prices: Price history, oldest first.
        names: Subset of ``"rsi"``, ``"macd"``, ``"bollinger"``.  ``None``
            computes all three in that order.

    Returns:
        One ``Indicator`` per requested name, or an empty list when
        *prices* is empty.

    Raises:
        InvalidInput: If an unknown indicator name is requested.
    """
    requested = list(INDICATOR_NAMES if names is None else names)
    unknown = [n for n in requested if n not in _BUILDERS]
    if unknown:
        raise InvalidInput(
            f"Unknown indicator(s): {', '.join(unknown)}. "
            f"Available: {', '.join(INDICATOR_NAMES)}"
        )
    if not prices:
        return []
    return [_BUILDERS[name](prices) for name in requested]


def indicator_value(indicators: Iterable[Indicator], name: str) -> Optional[float]:
    """Return the value of the indicator called *name*, if present."""
    for ind in indicators:
        if ind.name == name:
            return ind.value
    return None
