"""CLI report — prints one analysis refresh to the console."""

from typing import Optional

from marketpulse.engine import MarketAnalysis
from marketpulse.signals.models import AnalysisResult


def format_report(
    analysis: MarketAnalysis,
    signals: Optional[AnalysisResult] = None,
) -> str:
    """Format and print a market analysis (and signals, if any).

    Returns:
        The formatted string (also printed to stdout).
    """
    lines = [
        "─────────────── MarketPulse Analysis ───────────────",
        f"  Time:            {analysis.timestamp.isoformat()}",
    ]

    active = [s.name for s in analysis.sessions if s.is_active]
    lines.append(f"  Sessions:        {', '.join(active) if active else 'none'}")
    if analysis.fear_greed is not None:
        lines.append(
            f"  Fear & Greed:    {analysis.fear_greed.value} "
            f"({analysis.fear_greed.classification})"
        )

    for symbol, indicators in analysis.indicators.items():
        parts = [f"{ind.name} {ind.value:.2f} {ind.signal.value}" for ind in indicators]
        lines.append(f"  {symbol:<16} {' | '.join(parts)}")

    if analysis.currency_strength:
        ranked = sorted(analysis.currency_strength, key=lambda c: -c.strength)
        lines.append(
            "  Strength:        "
            + ", ".join(f"{c.currency} {c.strength:+.0f}" for c in ranked)
        )

    for pair in analysis.correlations:
        lines.append(
            f"  Corr {pair.pair1}/{pair.pair2}: "
            f"{pair.correlation:+.2f} ({pair.strength.value})"
        )

    if signals is not None:
        lines.append(
            f"  Overview:        {signals.overview.trend.value}, "
            f"volatility {signals.overview.volatility.value}, "
            f"risk {signals.overview.risk_level}/10 [{signals.source.value}]"
        )
        for sig in signals.signals:
            lines.append(
                f"  {sig.symbol:<8} {sig.action.value:<4} {sig.confidence:>3}%  "
                f"entry {sig.entry_price:.5f}  SL {sig.stop_loss:.5f}  "
                f"TP {sig.take_profit:.5f}  risk {sig.risk_level.value}"
            )

    lines.append("────────────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output
