"""Pairwise correlation of instrument returns."""

import itertools
import math
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from marketpulse.analysis.models import CorrelationPair, CorrelationStrength, clamp

WEAK_THRESHOLD = 0.3
STRONG_THRESHOLD = 0.7

# Need at least two returns, i.e. three prices.
_MIN_PRICES = 3

DEFAULT_CORRELATION_PAIRS: tuple[tuple[str, str], ...] = (
    ("EURUSD", "GBPUSD"),
    ("EURUSD", "USDJPY"),
    ("GBPUSD", "USDJPY"),
    ("AUDUSD", "NZDUSD"),
    ("USDCHF", "EURUSD"),
)


def classify_correlation(correlation: float) -> CorrelationStrength:
    """Bucket ``|correlation|``: weak < 0.3 ≤ moderate < 0.7 ≤ strong."""
    magnitude = abs(correlation)
    if magnitude < WEAK_THRESHOLD:
        return CorrelationStrength.WEAK
    if magnitude < STRONG_THRESHOLD:
        return CorrelationStrength.MODERATE
    return CorrelationStrength.STRONG


def _returns(prices: Sequence[float]) -> np.ndarray:
    arr = np.asarray(prices, dtype=np.float64)
    return np.diff(arr) / arr[:-1]


def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation of period returns over the common tail.

    Returns ``0.0`` when fewer than three aligned prices exist or either
    return series has zero variance.
    """
    n = min(len(a), len(b))
    if n < _MIN_PRICES:
        return 0.0
    ra = _returns(a[-n:])
    rb = _returns(b[-n:])
    if np.std(ra) == 0 or np.std(rb) == 0:
        return 0.0
    corr = float(np.corrcoef(ra, rb)[0, 1])
    if not math.isfinite(corr):
        return 0.0
    return clamp(corr, -1.0, 1.0)


def compute_correlations(
    series_by_symbol: Mapping[str, Sequence[float]],
    pairs: Optional[Iterable[tuple[str, str]]] = None,
) -> list[CorrelationPair]:
    """Correlate instruments in the basket.

    Args:
        series_by_symbol: Symbol → price history (oldest first).
        pairs: Pairs to report.  ``None`` reports every unordered pair of
            symbols in insertion order.  Pairs naming a symbol that is not
            in the basket are skipped.
    """
    if pairs is None:
        pairs = itertools.combinations(series_by_symbol.keys(), 2)

    result: list[CorrelationPair] = []
    for pair1, pair2 in pairs:
        if pair1 not in series_by_symbol or pair2 not in series_by_symbol:
            continue
        corr = pearson_correlation(series_by_symbol[pair1], series_by_symbol[pair2])
        result.append(
            CorrelationPair(
                pair1=pair1,
                pair2=pair2,
                correlation=corr,
                strength=classify_correlation(corr),
            )
        )
    return result
