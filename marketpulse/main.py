"""MarketPulse — application entry point.

Builds the FastAPI app around an explicit ``ApiContext`` and provides the
CLI entry point for the ``serve`` and ``report`` modes.
"""

import dataclasses
import logging
from typing import Optional

from fastapi import FastAPI

from marketpulse.alerts.history import AlertHistory
from marketpulse.api.routers import ApiContext, router
from marketpulse.config import Config, load_config
from marketpulse.engine import AnalysisEngine
from marketpulse.random_source import RandomSource, SystemRandomSource, uniform
from marketpulse.signals.ai_client import AIAnalystClient
from marketpulse.signals.generator import SignalGenerator
from marketpulse.signals.models import MarketSnapshot

logger = logging.getLogger("marketpulse")

# Reference quotes for the demo feed.
DEMO_BASE_PRICES: dict[str, float] = {
    "EURUSD": 1.0847,
    "GBPUSD": 1.2634,
    "USDJPY": 149.85,
    "USDCHF": 0.8756,
    "AUDUSD": 0.6543,
    "USDCAD": 1.3456,
    "NZDUSD": 0.6012,
}


def build_context(config: Config, rng: Optional[RandomSource] = None) -> ApiContext:
    """Wire generator, engine and alert history from *config*."""
    rng = rng or SystemRandomSource()
    ai_client = AIAnalystClient(config) if config.ai_enabled else None
    generator = SignalGenerator(rng, ai_client=ai_client)
    return ApiContext(
        generator=generator,
        alerts=AlertHistory(
            limit=config.alert_history_limit,
            retention_days=config.alert_retention_days,
        ),
        engine=AnalysisEngine(config, generator, rng),
        default_risk_pct=config.default_risk_pct,
    )


def create_app(context: Optional[ApiContext] = None) -> FastAPI:
    """Create the API app; builds a context from the environment if none given."""
    if context is None:
        context = build_context(load_config())
    application = FastAPI(title="MarketPulse Engine API", version="0.1.0")
    application.state.context = context
    application.include_router(router)
    return application


class DemoFeed:
    """Random-walk quotes around ``DEMO_BASE_PRICES``.

    Each tick moves every price by at most half of *volatility* (as a
    fraction of the current price) in either direction.
    """

    def __init__(self, rng: RandomSource, volatility: float = 0.01) -> None:
        self._rng = rng
        self._volatility = volatility
        self._open = dict(DEMO_BASE_PRICES)
        self._prices = dict(DEMO_BASE_PRICES)

    def warm_up(self, engine: AnalysisEngine, samples: int = 50) -> None:
        """Seed *engine*'s store with *samples* quotes per instrument."""
        for _ in range(samples):
            engine.ingest(self.tick())

    def tick(self) -> list[MarketSnapshot]:
        snapshots = []
        for symbol, price in self._prices.items():
            price += uniform(self._rng, -0.5, 0.5) * self._volatility * price
            self._prices[symbol] = price
            change = (price - self._open[symbol]) / self._open[symbol] * 100.0
            snapshots.append(
                MarketSnapshot(symbol=symbol, price=price, change_percent=change)
            )
        return snapshots

    async def __call__(self) -> list[MarketSnapshot]:
        return self.tick()


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio

    from marketpulse.cli.report import format_report

    parser = argparse.ArgumentParser(description="MarketPulse analysis engine")
    parser.add_argument(
        "--mode",
        choices=["serve", "report"],
        default="report",
        help="serve: API + refresh loop; report: print one refresh (default)",
    )
    parser.add_argument("--seed", type=int, help="Seed for the demo feed and jitter")
    parser.add_argument("--no-ai", action="store_true", help="Skip the AI analyst")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if args.no_ai:
        config = dataclasses.replace(config, ai_enabled=False)

    rng = SystemRandomSource(args.seed)
    context = build_context(config, rng)
    feed = DemoFeed(rng)
    feed.warm_up(context.engine)

    if args.mode == "report":
        async def _report():
            snapshots = feed.tick()
            context.engine.ingest(snapshots)
            analysis = context.engine.run_analysis_cycle(snapshots)
            signals = await context.engine.run_signal_cycle(snapshots)
            format_report(analysis, signals)

        asyncio.run(_report())
    else:
        asyncio.run(_serve(create_app(context), context.engine, feed, config.api_port))


async def _serve(application: FastAPI, engine: AnalysisEngine, feed: DemoFeed, port: int) -> None:
    """Start the API server and the refresh loop concurrently."""
    import asyncio
    import uvicorn

    server = uvicorn.Server(
        uvicorn.Config(application, host="0.0.0.0", port=port, log_level="info")
    )

    async def _run_server():
        try:
            await server.serve()
        finally:
            # Engine exits after its current sleep.
            engine.stop()

    logger.info("MarketPulse API available at http://localhost:%d", port)
    results = await asyncio.gather(_run_server(), engine.run(feed), return_exceptions=True)
    logger.info("MarketPulse stopped. Results: %s", results)


if __name__ == "__main__":
    _run_cli()
