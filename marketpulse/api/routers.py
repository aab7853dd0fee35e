"""Internal API routers — engine operations exposed over HTTP.

No business logic here: request bodies are parsed, handed to the engine
modules, and the dataclass results returned as JSON.  Shared objects live
on ``app.state.context`` (an ``ApiContext``), set by ``create_app``.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from marketpulse.alerts.history import AlertHistory
from marketpulse.analysis.correlation import compute_correlations
from marketpulse.analysis.events import score_event
from marketpulse.analysis.indicators import compute_indicators
from marketpulse.analysis.models import EconomicEvent, Impact
from marketpulse.analysis.sentiment import aggregate_indicators
from marketpulse.analysis.sessions import market_sessions
from marketpulse.analysis.strength import compute_currency_strength
from marketpulse.engine import AnalysisEngine
from marketpulse.errors import InvalidInput
from marketpulse.risk.calculator import calculate_risk
from marketpulse.signals.generator import SignalGenerator
from marketpulse.signals.models import MarketSnapshot

logger = logging.getLogger("marketpulse")
router = APIRouter()


@dataclass
class ApiContext:
    """Objects the endpoints share for the lifetime of the app."""

    generator: SignalGenerator
    alerts: AlertHistory
    engine: Optional[AnalysisEngine] = None
    default_risk_pct: float = 1.0


def _context(request: Request) -> ApiContext:
    return request.app.state.context


def _as_json(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj):
        return dataclasses.asdict(obj)
    if isinstance(obj, list):
        return [_as_json(o) for o in obj]
    return obj


def _number(body: dict, key: str, default: Optional[float] = None) -> float:
    value = body.get(key, default)
    if value is None:
        raise InvalidInput(f"'{key}' is required")
    if isinstance(value, bool):
        raise InvalidInput(f"'{key}' must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"'{key}' must be a number, got {value!r}") from None


def _prices(raw: Any, key: str = "prices") -> list[float]:
    if not isinstance(raw, list) or any(isinstance(p, bool) for p in raw):
        raise InvalidInput(f"'{key}' must be a list of numbers")
    try:
        return [float(p) for p in raw]
    except (TypeError, ValueError):
        raise InvalidInput(f"'{key}' must be a list of numbers") from None


def _snapshot(raw: Any) -> MarketSnapshot:
    if not isinstance(raw, dict) or not raw.get("symbol"):
        raise InvalidInput("each snapshot needs a 'symbol'")
    optional = {
        k: _number(raw, k) for k in ("high", "low", "volume", "spread")
        if raw.get(k) is not None
    }
    return MarketSnapshot(
        symbol=str(raw["symbol"]),
        price=_number(raw, "price"),
        change_percent=_number(raw, "change_percent", 0.0),
        **optional,
    )


def _names(raw: Any) -> Optional[list[str]]:
    if raw is None:
        return None
    if not isinstance(raw, list) or not all(isinstance(n, str) for n in raw):
        raise InvalidInput("'names' must be a list of indicator names")
    return raw


def _series(raw: Any) -> dict[str, list[float]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InvalidInput("'series' must be an object of symbol to prices")
    return {str(sym): _prices(p, f"series.{sym}") for sym, p in raw.items()}


def _invalid(exc: InvalidInput) -> HTTPException:
    return HTTPException(status_code=422, detail=str(exc))


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/indicators")
async def post_indicators(body: dict):
    """Indicators for a price list, plus the indicator-count sentiment."""
    try:
        prices = _prices(body.get("prices"))
        indicators = compute_indicators(prices, _names(body.get("names")))
    except InvalidInput as exc:
        raise _invalid(exc) from exc
    symbol = str(body.get("symbol", ""))
    return {
        "indicators": _as_json(indicators),
        "sentiment": _as_json(aggregate_indicators(symbol, indicators)),
    }


@router.post("/signals")
async def post_signals(body: dict, request: Request):
    """Signals for a basket; falls back to the heuristic when AI fails."""
    ctx = _context(request)
    try:
        raw = body.get("snapshots")
        if not isinstance(raw, list) or not raw:
            raise InvalidInput("'snapshots' must be a non-empty list")
        snapshots = [_snapshot(s) for s in raw]
        series = _series(body.get("series"))
    except InvalidInput as exc:
        raise _invalid(exc) from exc

    result = await ctx.generator.generate_analysis(
        snapshots,
        use_ai=bool(body.get("use_ai", True)),
        series_by_symbol=series,
    )
    return _as_json(result)


@router.post("/risk")
async def post_risk(body: dict, request: Request):
    """Position sizing; 'risk_percentage' defaults to DEFAULT_RISK_PCT."""
    default_pct = _context(request).default_risk_pct
    try:
        calc = calculate_risk(
            account_balance=_number(body, "account_balance"),
            risk_percentage=_number(body, "risk_percentage", default_pct),
            entry_price=_number(body, "entry_price"),
            stop_loss=_number(body, "stop_loss"),
            target_price=_number(body, "target_price"),
        )
    except InvalidInput as exc:
        raise _invalid(exc) from exc
    return {**_as_json(calc), "assessment": calc.assessment}


@router.post("/strength")
async def post_strength(body: dict):
    basket = body.get("basket")
    if not isinstance(basket, dict):
        raise HTTPException(status_code=422, detail="'basket' must be an object")
    try:
        changes = {sym: _number(basket, sym) for sym in basket}
        strength = compute_currency_strength(changes)
    except InvalidInput as exc:
        raise _invalid(exc) from exc
    return {"currencies": _as_json(strength)}


@router.post("/correlations")
async def post_correlations(body: dict):
    raw_series = body.get("series")
    if not isinstance(raw_series, dict):
        raise HTTPException(status_code=422, detail="'series' must be an object")
    try:
        series = {sym: _prices(p, f"series.{sym}") for sym, p in raw_series.items()}
    except InvalidInput as exc:
        raise _invalid(exc) from exc
    pairs = body.get("pairs")
    if pairs is not None:
        if not isinstance(pairs, list) or any(
            not isinstance(p, list) or len(p) != 2 for p in pairs
        ):
            raise HTTPException(
                status_code=422, detail="'pairs' must be a list of [symbol, symbol]"
            )
        pairs = [(str(a), str(b)) for a, b in pairs]
    return {"correlations": _as_json(compute_correlations(series, pairs))}


@router.post("/events/score")
async def post_event_score(body: dict):
    try:
        impact = Impact(str(body.get("impact", "medium")).lower())
    except ValueError:
        raise HTTPException(status_code=422, detail="impact must be low, medium or high")
    try:
        releases = {
            k: _number(body, k) for k in ("actual", "forecast", "previous")
            if body.get(k) is not None
        }
    except InvalidInput as exc:
        raise _invalid(exc) from exc
    event = EconomicEvent(
        id=str(body.get("id", "")),
        title=str(body.get("title", "")),
        country=str(body.get("country", "")),
        currency=str(body.get("currency", "")),
        impact=impact,
        time=datetime.now(timezone.utc),
        **releases,
    )
    return _as_json(score_event(event))


@router.get("/sessions")
async def get_sessions():
    return {"sessions": _as_json(market_sessions())}


@router.get("/alerts/statistics")
async def get_alert_statistics(request: Request):
    return _as_json(_context(request).alerts.statistics())


@router.get("/analysis/latest")
async def get_latest_analysis(request: Request):
    engine = _context(request).engine
    if engine is None or engine.last_analysis is None:
        return {"analysis": None}
    return {"analysis": _as_json(engine.last_analysis)}
