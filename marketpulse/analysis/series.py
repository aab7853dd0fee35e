"""Rolling price history per instrument.

The store is the only mutable object in the analysis path.  Every consumer
works on an immutable snapshot taken with :meth:`PriceSeriesStore.snapshot`,
so concurrent refreshes never observe a half-appended series.
"""

import logging
import math
from collections import deque
from typing import Iterable

from marketpulse.errors import InvalidInput

logger = logging.getLogger("marketpulse")

# Minimum samples for each indicator to use its full window.
MIN_SAMPLES_RSI = 15
MIN_SAMPLES_MACD = 26


class PriceSeriesStore:
    """Bounded, append-only price history keyed by instrument symbol.

    Args:
        max_length: Samples kept per instrument.  Oldest samples are
            dropped once the cap is reached.
    """

    def __init__(self, max_length: int = 200) -> None:
        if max_length < MIN_SAMPLES_MACD:
            raise InvalidInput(
                f"max_length must be at least {MIN_SAMPLES_MACD}, got {max_length}"
            )
        self._max_length = max_length
        self._series: dict[str, deque[float]] = {}

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def symbols(self) -> list[str]:
        """Instruments with at least one sample, in insertion order."""
        return list(self._series.keys())

    def append(self, symbol: str, price: float) -> None:
        """Append one sample to *symbol*'s series.

        Raises ``InvalidInput`` for non-finite or non-positive prices.
        """
        if not math.isfinite(price) or price <= 0:
            raise InvalidInput(f"price must be positive and finite, got {price}")
        series = self._series.get(symbol)
        if series is None:
            series = deque(maxlen=self._max_length)
            self._series[symbol] = series
        series.append(float(price))

    def extend(self, symbol: str, prices: Iterable[float]) -> None:
        for price in prices:
            self.append(symbol, price)

    def snapshot(self, symbol: str) -> tuple[float, ...]:
        """Immutable copy of *symbol*'s history, oldest first.

        Unknown symbols yield an empty tuple.
        """
        return tuple(self._series.get(symbol, ()))

    def snapshot_all(self) -> dict[str, tuple[float, ...]]:
        return {symbol: tuple(series) for symbol, series in self._series.items()}

    def latest(self, symbol: str) -> float | None:
        series = self._series.get(symbol)
        if not series:
            return None
        return series[-1]

    def change_percent(self, symbol: str) -> float:
        """Percent change from the oldest to the newest retained sample."""
        series = self._series.get(symbol)
        if not series or len(series) < 2:
            return 0.0
        first = series[0]
        return (series[-1] - first) / first * 100.0

    def clear(self, symbol: str | None = None) -> None:
        """Drop one instrument's history, or every instrument's."""
        if symbol is None:
            self._series.clear()
            logger.debug("Cleared all price series")
        else:
            self._series.pop(symbol, None)

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._series
