"""MarketPulse — analysis engine (refresh loop).

Ties the price store, indicator engine, aggregators and signal generator
into one refresh cycle.  Market analysis refreshes every
``analysis_refresh_seconds``; the AI signal cycle runs every
``signal_refresh_seconds``.  The caller drives the loop and stops it with
:meth:`AnalysisEngine.stop`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

from marketpulse.analysis.correlation import compute_correlations
from marketpulse.analysis.indicators import compute_indicators
from marketpulse.analysis.models import (
    CorrelationPair,
    CurrencyStrength,
    FearGreedReading,
    Indicator,
    MarketSentiment,
    MarketSession,
)
from marketpulse.analysis.sentiment import fear_greed_index, sample_sentiment
from marketpulse.analysis.series import PriceSeriesStore
from marketpulse.analysis.sessions import market_sessions
from marketpulse.analysis.strength import compute_currency_strength, split_pair
from marketpulse.config import Config
from marketpulse.errors import InvalidInput
from marketpulse.random_source import RandomSource
from marketpulse.signals.generator import SignalGenerator
from marketpulse.signals.models import AnalysisResult, MarketSnapshot

logger = logging.getLogger("marketpulse.engine")

SnapshotProvider = Callable[[], Awaitable[Sequence[MarketSnapshot]]]


@dataclass(frozen=True)
class MarketAnalysis:
    """Everything the dashboard shows for one refresh."""

    timestamp: datetime
    indicators: dict[str, list[Indicator]] = field(default_factory=dict)
    sentiment: list[MarketSentiment] = field(default_factory=list)
    currency_strength: list[CurrencyStrength] = field(default_factory=list)
    correlations: list[CorrelationPair] = field(default_factory=list)
    sessions: list[MarketSession] = field(default_factory=list)
    fear_greed: Optional[FearGreedReading] = None


class AnalysisEngine:
    """Runs analysis and signal cycles over a shared price store.

    Args:
        config: Application configuration.
        generator: Signal generator (with or without an AI client).
        rng: Random source for the sampled sentiment and fear/greed jitter.
        store: Price store; a fresh one sized from *config* by default.
    """

    def __init__(
        self,
        config: Config,
        generator: SignalGenerator,
        rng: RandomSource,
        store: Optional[PriceSeriesStore] = None,
    ) -> None:
        self._config = config
        self._generator = generator
        self._rng = rng
        self._store = store or PriceSeriesStore(config.series_max_length)
        self._running = False
        self._cycle_count = 0
        self._last_analysis: Optional[MarketAnalysis] = None
        self._last_signals: Optional[AnalysisResult] = None

    @property
    def store(self) -> PriceSeriesStore:
        return self._store

    @property
    def last_analysis(self) -> Optional[MarketAnalysis]:
        return self._last_analysis

    @property
    def last_signals(self) -> Optional[AnalysisResult]:
        return self._last_signals

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def running(self) -> bool:
        return self._running

    # ── Cycles ───────────────────────────────────────────────────────────

    def ingest(self, snapshots: Sequence[MarketSnapshot]) -> None:
        for snap in snapshots:
            self._store.append(snap.symbol, snap.price)

    def run_analysis_cycle(
        self,
        snapshots: Sequence[MarketSnapshot] = (),
        now: Optional[datetime] = None,
    ) -> MarketAnalysis:
        """Recompute every market summary from the current store snapshot.

        24h changes come from *snapshots* where given, otherwise from the
        retained history.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        series = self._store.snapshot_all()
        changes = {s.symbol: s.change_percent for s in snapshots}
        for symbol in series:
            changes.setdefault(symbol, self._store.change_percent(symbol))

        strength_basket: dict[str, float] = {}
        for symbol, change in changes.items():
            try:
                split_pair(symbol)
            except InvalidInput:
                # Crypto tickers and other non-pair symbols carry no currency split.
                continue
            strength_basket[symbol] = change

        analysis = MarketAnalysis(
            timestamp=now,
            indicators={sym: compute_indicators(prices) for sym, prices in series.items()},
            sentiment=[sample_sentiment(sym, self._rng) for sym in series],
            currency_strength=compute_currency_strength(strength_basket),
            correlations=compute_correlations(series),
            sessions=market_sessions(now),
            fear_greed=fear_greed_index(list(changes.values()), self._rng),
        )
        self._last_analysis = analysis
        return analysis

    async def run_signal_cycle(
        self,
        snapshots: Sequence[MarketSnapshot],
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        result = await self._generator.generate_analysis(
            snapshots,
            use_ai=self._config.ai_enabled,
            series_by_symbol=self._store.snapshot_all(),
            now=now,
        )
        self._last_signals = result
        logger.info(
            "Signal cycle produced %d signal(s) from %s",
            len(result.signals), result.source.value,
        )
        return result

    async def run_once(self, snapshots: Sequence[MarketSnapshot]) -> dict:
        """One refresh: ingest quotes, analyse, and run signals when due."""
        self.ingest(snapshots)
        analysis = self.run_analysis_cycle(snapshots)
        summary = {
            "cycle": self._cycle_count,
            "instruments": len(analysis.indicators),
            "signals": None,
        }

        every = max(
            1,
            self._config.signal_refresh_seconds // max(1, self._config.analysis_refresh_seconds),
        )
        if self._last_signals is None or self._cycle_count % every == 0:
            result = await self.run_signal_cycle(snapshots)
            summary["signals"] = len(result.signals)
        return summary

    # ── Polling loop ─────────────────────────────────────────────────────

    def stop(self) -> None:
        """Signal the engine to stop after the current cycle."""
        self._running = False

    async def run(
        self,
        provider: SnapshotProvider,
        poll_interval: Optional[float] = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Refresh until stopped.

        Args:
            provider: Coroutine returning the latest quotes.
            poll_interval: Seconds between cycles.  Defaults to
                ``analysis_refresh_seconds``.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle summary dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.analysis_refresh_seconds

        self._running = True
        results: list[dict] = []

        while self._running:
            self._cycle_count += 1
            try:
                snapshots = await provider()
                result = await self.run_once(snapshots)
                results.append(result)
                logger.info(
                    "Cycle %d: %d instrument(s) analysed",
                    self._cycle_count, result["instruments"],
                )
            except Exception as exc:
                logger.error("Cycle %d error: %s", self._cycle_count, exc)
                results.append({"cycle": self._cycle_count, "error": str(exc)})

            if max_cycles and len(results) >= max_cycles:
                break
            if self._running:
                await asyncio.sleep(poll_interval)

        self._running = False
        return results
