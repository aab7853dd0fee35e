"""Tests for the CLI report formatter."""

from datetime import datetime, timezone

from marketpulse.analysis.models import (
    Bias,
    CorrelationPair,
    CorrelationStrength,
    CurrencyStrength,
    FearGreedReading,
    Indicator,
    MarketSession,
    Trend,
)
from marketpulse.cli.report import format_report
from marketpulse.engine import MarketAnalysis
from marketpulse.signals.models import (
    Action,
    AnalysisResult,
    MarketOverview,
    MarketTrend,
    RiskLevel,
    Signal,
)

NOW = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)


def _analysis() -> MarketAnalysis:
    return MarketAnalysis(
        timestamp=NOW,
        indicators={
            "EURUSD": [Indicator("RSI (14)", 72.5, Bias.BEARISH, 45.0, "Overbought condition")],
        },
        currency_strength=[
            CurrencyStrength("USD", -20.0, -0.4, Trend.SIDEWAYS),
            CurrencyStrength("EUR", 35.0, 0.7, Trend.SIDEWAYS),
        ],
        correlations=[CorrelationPair("EURUSD", "GBPUSD", 0.82, CorrelationStrength.STRONG)],
        sessions=[
            MarketSession("London", 8, 17, True),
            MarketSession("Tokyo", 0, 9, False),
        ],
        fear_greed=FearGreedReading(value=64, classification="Greed"),
    )


def test_report_lists_analysis(capsys):
    output = format_report(_analysis())
    assert "Sessions:        London" in output
    assert "Fear & Greed:    64 (Greed)" in output
    assert "RSI (14) 72.50 bearish" in output
    assert "Strength:        EUR +35, USD -20" in output
    assert "Corr EURUSD/GBPUSD: +0.82 (strong)" in output
    assert capsys.readouterr().out.strip() == output.strip()


def test_report_includes_signals(capsys):
    signals = AnalysisResult(
        signals=(
            Signal(
                symbol="EURUSD",
                action=Action.SELL,
                confidence=78,
                entry_price=1.0847,
                stop_loss=1.0934,
                take_profit=1.0684,
                risk_level=RiskLevel.MEDIUM,
                reasoning="",
                timestamp=NOW,
            ),
        ),
        overview=MarketOverview(MarketTrend.BEARISH, RiskLevel.LOW, 4, ""),
    )
    output = format_report(_analysis(), signals)
    assert "Overview:        BEARISH, volatility LOW, risk 4/10 [fallback]" in output
    assert "EURUSD   SELL  78%" in output


def test_report_without_active_sessions(capsys):
    analysis = MarketAnalysis(timestamp=NOW)
    assert "Sessions:        none" in format_report(analysis)
