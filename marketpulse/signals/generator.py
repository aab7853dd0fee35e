"""Signal generation pipeline — AI analyst first, heuristic fallback always.

Two explicit stages:

1. :meth:`SignalGenerator.attempt_external` wraps the AI call and returns an
   ``ExternalResult`` instead of raising.
2. :meth:`ExternalResult.or_else` yields the AI analysis when it succeeded,
   otherwise the fallback heuristic's.

The fallback path performs no I/O and never raises, so
:meth:`SignalGenerator.generate_analysis` always returns a result.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Sequence

from marketpulse.errors import (
    ExternalServiceUnavailable,
    MalformedExternalResponse,
    MarketPulseError,
)
from marketpulse.random_source import RandomSource
from marketpulse.signals.ai_client import AIAnalystClient
from marketpulse.signals.fallback import (
    fallback_signal_from_history,
    generate_fallback_analysis,
)
from marketpulse.signals.models import (
    Action,
    AnalysisResult,
    MarketSnapshot,
    Signal,
)

logger = logging.getLogger("marketpulse")

MAX_SIGNALS = 5


@dataclass(frozen=True)
class ExternalResult:
    """Outcome of the AI stage: a value or the error that replaced it."""

    value: Optional[AnalysisResult] = None
    error: Optional[MarketPulseError] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    def or_else(self, fallback: Callable[[], AnalysisResult]) -> AnalysisResult:
        if self.value is not None:
            return self.value
        return fallback()


def levels_consistent(signal: Signal) -> bool:
    """True when stop and target sit on the correct sides of entry."""
    if signal.action is Action.BUY:
        return signal.stop_loss < signal.entry_price < signal.take_profit
    if signal.action is Action.SELL:
        return signal.take_profit < signal.entry_price < signal.stop_loss
    return True


class SignalGenerator:
    """Produces signals for a basket of instruments.

    Args:
        rng: Random source for the fallback heuristic.
        ai_client: Optional AI analyst.  Without one every call uses the
            fallback.
        max_signals: Instruments analysed per call (first N snapshots).
    """

    def __init__(
        self,
        rng: RandomSource,
        ai_client: Optional[AIAnalystClient] = None,
        max_signals: int = MAX_SIGNALS,
    ) -> None:
        self._rng = rng
        self._ai_client = ai_client
        self._max_signals = max_signals

    # ── Stage 1: external ────────────────────────────────────────────────

    async def attempt_external(
        self,
        snapshots: Sequence[MarketSnapshot],
        now: datetime,
    ) -> ExternalResult:
        if self._ai_client is None:
            return ExternalResult(
                error=ExternalServiceUnavailable("no AI analyst configured")
            )
        try:
            result = await self._ai_client.request_analysis(snapshots, now)
        except (ExternalServiceUnavailable, MalformedExternalResponse) as exc:
            logger.warning("AI analyst failed, using fallback heuristic: %s", exc)
            return ExternalResult(error=exc)
        return ExternalResult(value=result)

    # ── Stage 2: fallback ────────────────────────────────────────────────

    def fallback_signal(
        self,
        snapshot: MarketSnapshot,
        prices: Sequence[float] = (),
        now: Optional[datetime] = None,
    ) -> Signal:
        """Heuristic signal; see :func:`fallback_signal_from_history`."""
        return fallback_signal_from_history(snapshot, self._rng, prices, now)

    def fallback_analysis(
        self,
        snapshots: Sequence[MarketSnapshot],
        series_by_symbol: Optional[Mapping[str, Sequence[float]]] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        return generate_fallback_analysis(
            snapshots,
            self._rng,
            max_signals=self._max_signals,
            series_by_symbol=series_by_symbol,
            now=now,
        )

    # ── Pipeline ─────────────────────────────────────────────────────────

    def _validated(
        self,
        result: AnalysisResult,
        snapshots: Sequence[MarketSnapshot],
        series_by_symbol: Mapping[str, Sequence[float]],
        now: datetime,
    ) -> AnalysisResult:
        """Replace AI signals whose price levels contradict their action."""
        by_symbol = {s.symbol: s for s in snapshots}
        checked: list[Signal] = []
        for signal in result.signals:
            if levels_consistent(signal):
                checked.append(signal)
                continue
            logger.warning(
                "AI signal for %s has inconsistent levels (%s entry=%.5f "
                "sl=%.5f tp=%.5f), replacing with fallback",
                signal.symbol, signal.action.value, signal.entry_price,
                signal.stop_loss, signal.take_profit,
            )
            snap = by_symbol.get(signal.symbol)
            if snap is not None:
                checked.append(
                    self.fallback_signal(snap, series_by_symbol.get(snap.symbol, ()), now)
                )
        if not checked:
            return self.fallback_analysis(snapshots, series_by_symbol, now)
        return AnalysisResult(
            signals=tuple(checked),
            overview=result.overview,
            source=result.source,
            economic_factors=result.economic_factors,
        )

    async def generate_analysis(
        self,
        snapshots: Sequence[MarketSnapshot],
        use_ai: bool = True,
        series_by_symbol: Optional[Mapping[str, Sequence[float]]] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        """Signals and overview for *snapshots*; always returns a result."""
        if now is None:
            now = datetime.now(timezone.utc)
        series_by_symbol = series_by_symbol or {}

        def _fallback() -> AnalysisResult:
            return self.fallback_analysis(snapshots, series_by_symbol, now)

        if not use_ai or not snapshots:
            return _fallback()

        external = await self.attempt_external(snapshots, now)
        if external.ok:
            external = ExternalResult(
                value=self._validated(external.value, snapshots, series_by_symbol, now)
            )
        return external.or_else(_fallback)

    async def generate_signal(
        self,
        snapshot: MarketSnapshot,
        use_ai: bool = True,
        prices: Sequence[float] = (),
        now: Optional[datetime] = None,
    ) -> Signal:
        """Signal for a single instrument.

        Falls back to the heuristic when the AI analysis does not cover
        *snapshot*'s symbol.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        analysis = await self.generate_analysis(
            [snapshot],
            use_ai=use_ai,
            series_by_symbol={snapshot.symbol: prices},
            now=now,
        )
        for signal in analysis.signals:
            if signal.symbol == snapshot.symbol:
                return signal
        logger.info("AI analysis omitted %s, using fallback", snapshot.symbol)
        return self.fallback_signal(snapshot, prices, now)
