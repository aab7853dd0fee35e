"""Tests for the analysis engine orchestration.

Verifies the refresh flow: ingest quotes → analysis cycle → signal cycle.
Runs without an AI analyst so every signal comes from the fallback.
"""

from datetime import datetime, timezone

import pytest

from marketpulse.analysis.indicators import RSI_NAME
from marketpulse.config import Config
from marketpulse.engine import AnalysisEngine
from marketpulse.random_source import SystemRandomSource
from marketpulse.signals.generator import SignalGenerator
from marketpulse.signals.models import MarketSnapshot, SignalSource

NOW = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    """Build a Config with sensible test defaults."""
    defaults = dict(
        ai_service_url="http://localhost/llm",
        ai_enabled=False,
        ai_timeout_seconds=1.0,
        ai_max_retries=0,
        series_max_length=60,
        analysis_refresh_seconds=30,
        signal_refresh_seconds=60,
        default_risk_pct=1.0,
        alert_history_limit=50,
        alert_retention_days=30,
        log_level="WARNING",
        api_port=8080,
    )
    defaults.update(overrides)
    return Config(**defaults)


def _make_engine(**overrides) -> AnalysisEngine:
    rng = SystemRandomSource(seed=42)
    return AnalysisEngine(_make_config(**overrides), SignalGenerator(rng), rng)


def _snapshots(step: int = 0) -> list[MarketSnapshot]:
    return [
        MarketSnapshot("EURUSD", 1.08 + 0.001 * step, 0.4),
        MarketSnapshot("GBPUSD", 1.26 + 0.0012 * step, 0.6),
        MarketSnapshot("USDJPY", 150.0 - 0.1 * step, -0.3),
    ]


def _seed(engine: AnalysisEngine, samples: int = 30) -> None:
    for i in range(samples):
        engine.ingest(_snapshots(i))


class _Feed:
    """Async snapshot provider that walks prices forward each call."""

    def __init__(self, fail_on: int = 0, on_call=None):
        self.calls = 0
        self.fail_on = fail_on
        self.on_call = on_call

    async def __call__(self):
        self.calls += 1
        if self.on_call is not None:
            self.on_call(self.calls)
        if self.calls == self.fail_on:
            raise RuntimeError("feed dropped")
        return _snapshots(30 + self.calls)


# ── Analysis cycle ───────────────────────────────────────────────────────


class TestAnalysisCycle:
    def test_full_analysis(self):
        engine = _make_engine()
        _seed(engine)
        analysis = engine.run_analysis_cycle(_snapshots(30), now=NOW)

        assert analysis.timestamp == NOW
        assert set(analysis.indicators) == {"EURUSD", "GBPUSD", "USDJPY"}
        assert analysis.indicators["EURUSD"][0].name == RSI_NAME
        assert [s.symbol for s in analysis.sentiment] == ["EURUSD", "GBPUSD", "USDJPY"]
        for s in analysis.sentiment:
            assert s.bullish + s.bearish + s.neutral == pytest.approx(100.0)
        assert len(analysis.correlations) == 3
        assert {c.currency for c in analysis.currency_strength} == {"EUR", "USD", "GBP", "JPY"}
        assert {s.name for s in analysis.sessions if s.is_active} == {"London", "New York"}
        assert 0 <= analysis.fear_greed.value <= 100
        assert engine.last_analysis is analysis

    def test_non_pair_symbols_skip_strength(self):
        engine = _make_engine()
        engine.ingest([MarketSnapshot("BTCUSDT", 65_000.0, 2.0)])
        engine.ingest(_snapshots())
        analysis = engine.run_analysis_cycle(now=NOW)
        assert "BTCUSDT" in analysis.indicators
        assert "BTC" not in {c.currency for c in analysis.currency_strength}

    def test_empty_store(self):
        analysis = _make_engine().run_analysis_cycle(now=NOW)
        assert analysis.indicators == {}
        assert analysis.correlations == []
        assert len(analysis.sessions) == 4

    def test_store_respects_config_cap(self):
        engine = _make_engine(series_max_length=40)
        _seed(engine, samples=100)
        assert len(engine.store.snapshot("EURUSD")) == 40


# ── Signal cycle ─────────────────────────────────────────────────────────


class TestSignalCycle:
    @pytest.mark.asyncio
    async def test_signal_cycle_uses_store_history(self):
        engine = _make_engine()
        _seed(engine)
        result = await engine.run_signal_cycle(_snapshots(30), now=NOW)
        assert result.source is SignalSource.FALLBACK
        assert len(result.signals) == 3
        # 30 samples of history, so RSI comes from the indicator engine.
        assert all(len(s.indicators) == 3 for s in result.signals)
        assert engine.last_signals is result


# ── Polling loop ─────────────────────────────────────────────────────────


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_run_max_cycles_and_signal_cadence(self):
        engine = _make_engine(analysis_refresh_seconds=30, signal_refresh_seconds=60)
        _seed(engine)
        results = await engine.run(_Feed(), poll_interval=0, max_cycles=4)

        assert [r["cycle"] for r in results] == [1, 2, 3, 4]
        # Signals on the first cycle, then every second cycle.
        assert [r["signals"] is not None for r in results] == [True, True, False, True]
        assert engine.cycle_count == 4
        assert engine.running is False

    @pytest.mark.asyncio
    async def test_cycle_error_is_recorded_and_loop_continues(self):
        engine = _make_engine()
        _seed(engine)
        results = await engine.run(_Feed(fail_on=2), poll_interval=0, max_cycles=3)
        assert results[1] == {"cycle": 2, "error": "feed dropped"}
        assert "error" not in results[2]

    @pytest.mark.asyncio
    async def test_stop_ends_loop(self):
        engine = _make_engine()
        _seed(engine)

        def _stop_on_second(call):
            if call == 2:
                engine.stop()

        results = await engine.run(_Feed(on_call=_stop_on_second), poll_interval=0)
        assert len(results) == 2
        assert engine.running is False
