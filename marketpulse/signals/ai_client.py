"""External AI analyst async client.

Sends the basket to an LLM endpoint and parses its JSON verdict into an
``AnalysisResult``.  Every failure surfaces as ``ExternalServiceUnavailable``
or ``MalformedExternalResponse``; the signal generator recovers from both.

Contract::

    POST {"messages": [{"role": ..., "content": ...}, ...]}
    200  {"completion": "<JSON string with signals + marketOverview>"}
"""

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import httpx

from marketpulse.analysis.sessions import current_session_label
from marketpulse.config import Config
from marketpulse.errors import ExternalServiceUnavailable, MalformedExternalResponse
from marketpulse.signals.models import (
    Action,
    AnalysisResult,
    MarketOverview,
    MarketSnapshot,
    MarketTrend,
    RiskLevel,
    Signal,
    SignalSource,
)

logger = logging.getLogger("marketpulse")

_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

SYSTEM_PROMPT = (
    "You are a professional trading AI that provides accurate, actionable "
    "trading signals based on technical and fundamental analysis."
)

_RESPONSE_SCHEMA_EXAMPLE = {
    "signals": [
        {
            "symbol": "EURUSD",
            "action": "BUY",
            "confidence": 85,
            "entryPrice": 1.0542,
            "stopLoss": 1.0520,
            "takeProfit": 1.0580,
            "reasoning": "Strong bullish momentum with RSI oversold recovery",
            "timeframe": "4H",
            "riskLevel": "MEDIUM",
            "marketSentiment": "BULLISH",
        }
    ],
    "marketOverview": {
        "trend": "BULLISH",
        "volatility": "MEDIUM",
        "riskLevel": 6,
        "recommendation": "Cautious optimism with selective long positions",
    },
    "economicFactors": {
        "inflation": 3.2,
        "interestRates": 5.25,
        "gdpGrowth": 2.1,
        "geopoliticalRisk": 4,
    },
}


def volatility_index(snapshots: Sequence[MarketSnapshot]) -> float:
    """Mean absolute percent change, rounded to one decimal."""
    if not snapshots:
        return 0.0
    avg = sum(abs(s.change_percent) for s in snapshots) / len(snapshots)
    return round(avg, 1)


def build_prompt(snapshots: Sequence[MarketSnapshot], now: datetime) -> str:
    """User prompt describing the basket and the required JSON schema."""
    context = [
        {
            "symbol": s.symbol,
            "price": s.price,
            "change": s.change_percent,
            "volume": s.volume,
            "high": s.high,
            "low": s.low,
        }
        for s in snapshots
    ]
    return (
        "You are an expert trading AI analyst. Analyze the following market "
        "data and provide trading signals:\n\n"
        f"Market Data:\n{json.dumps(context, indent=2)}\n\n"
        "Current Market Conditions:\n"
        f"- Time: {now.isoformat()}\n"
        f"- Market Session: {current_session_label(now.hour)}\n"
        f"- Volatility Index: {volatility_index(snapshots)}\n\n"
        "Provide analysis in this exact JSON format:\n"
        f"{json.dumps(_RESPONSE_SCHEMA_EXAMPLE, indent=2)}\n\n"
        "Provide 3-5 high-quality signals with detailed reasoning."
    )


# ── Response parsing ─────────────────────────────────────────────────────


def _enum_field(raw: dict, key: str, enum_cls, default=None):
    value = raw.get(key, default)
    if value is None:
        raise MalformedExternalResponse(f"missing '{key}'")
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise MalformedExternalResponse(f"invalid {key} '{value}'") from None


def _float_field(raw: dict, key: str) -> float:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedExternalResponse(f"'{key}' must be a number, got {value!r}")
    if not math.isfinite(value):
        raise MalformedExternalResponse(f"'{key}' must be finite, got {value!r}")
    return float(value)


def _optional_float(raw: dict, key: str) -> Optional[float]:
    """Informational numbers: anything but a finite number reads as absent."""
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _parse_signal(raw: Any, now: datetime) -> Signal:
    if not isinstance(raw, dict):
        raise MalformedExternalResponse("signal entry is not an object")
    symbol = raw.get("symbol")
    if not isinstance(symbol, str) or not symbol:
        raise MalformedExternalResponse("signal is missing 'symbol'")

    confidence = _float_field(raw, "confidence")
    if not 0 <= confidence <= 100:
        raise MalformedExternalResponse(f"confidence out of range: {confidence}")

    indicators = raw.get("technicalIndicators")
    if not isinstance(indicators, dict):
        indicators = {}
    rsi = _optional_float(indicators, "rsi")
    macd = _optional_float(indicators, "macd")

    return Signal(
        symbol=symbol,
        action=_enum_field(raw, "action", Action),
        confidence=int(round(confidence)),
        entry_price=_float_field(raw, "entryPrice"),
        stop_loss=_float_field(raw, "stopLoss"),
        take_profit=_float_field(raw, "takeProfit"),
        risk_level=_enum_field(raw, "riskLevel", RiskLevel, "MEDIUM"),
        reasoning=str(raw.get("reasoning", "")).strip(),
        timestamp=now,
        source=SignalSource.AI,
        timeframe=str(raw.get("timeframe", "4H")),
        market_sentiment=raw.get("marketSentiment"),
        rsi=rsi,
        macd=macd,
    )


def _parse_overview(raw: Any) -> MarketOverview:
    if not isinstance(raw, dict):
        raise MalformedExternalResponse("'marketOverview' is not an object")
    risk_level = _float_field(raw, "riskLevel")
    return MarketOverview(
        trend=_enum_field(raw, "trend", MarketTrend),
        volatility=_enum_field(raw, "volatility", RiskLevel),
        risk_level=max(1, min(10, int(round(risk_level)))),
        recommendation=str(raw.get("recommendation", "")),
    )


def parse_completion(body: Any, now: datetime) -> AnalysisResult:
    """Validate the service response and build an ``AnalysisResult``.

    Raises ``MalformedExternalResponse`` on any schema deviation.
    """
    if not isinstance(body, dict) or not isinstance(body.get("completion"), str):
        raise MalformedExternalResponse("response has no 'completion' string")
    try:
        payload = json.loads(body["completion"])
    except json.JSONDecodeError as exc:
        raise MalformedExternalResponse(f"completion is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedExternalResponse("completion JSON is not an object")

    raw_signals = payload.get("signals")
    if not isinstance(raw_signals, list) or not raw_signals:
        raise MalformedExternalResponse("'signals' must be a non-empty list")

    factors = payload.get("economicFactors")
    return AnalysisResult(
        signals=tuple(_parse_signal(s, now) for s in raw_signals),
        overview=_parse_overview(payload.get("marketOverview")),
        source=SignalSource.AI,
        economic_factors=factors if isinstance(factors, dict) else {},
    )


class AIAnalystClient:
    """Async client for the LLM analyst endpoint.

    Args:
        config: Application configuration (URL, timeout, retry budget).
        retry_base_delay: First backoff delay in seconds; doubles per retry.
    """

    def __init__(
        self,
        config: Config,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._url = config.ai_service_url
        self._timeout = config.ai_timeout_seconds
        self._max_attempts = 1 + max(0, config.ai_max_retries)
        self._retry_base_delay = retry_base_delay
        self._headers = {"Content-Type": "application/json"}

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _post_with_retry(self, payload: dict) -> httpx.Response:
        """POST *payload* with exponential-backoff retry.

        Retries on transport errors (timeouts included), 429 and 5xx
        gateway errors.  Other non-2xx statuses and malformed requests
        fail immediately.
        """
        last_reason = "no attempt made"

        for attempt in range(self._max_attempts):
            delay = self._retry_base_delay * (2 ** attempt)
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self._url,
                        headers=self._headers,
                        json=payload,
                        timeout=self._timeout,
                    )
            except httpx.TransportError as exc:
                last_reason = f"transport error ({exc.__class__.__name__}: {exc})"
                logger.warning(
                    "AI analyst %s — attempt %d/%d",
                    last_reason, attempt + 1, self._max_attempts,
                )
                if attempt + 1 < self._max_attempts:
                    await asyncio.sleep(delay)
                continue
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                # Bad URL or request construction; retrying cannot help.
                raise ExternalServiceUnavailable(
                    f"AI analyst request failed ({exc.__class__.__name__}: {exc})"
                ) from exc

            if resp.status_code in _RETRYABLE_STATUS_CODES:
                last_reason = f"status {resp.status_code}"
                logger.warning(
                    "AI analyst returned %d — attempt %d/%d",
                    resp.status_code, attempt + 1, self._max_attempts,
                )
                if attempt + 1 < self._max_attempts:
                    await asyncio.sleep(delay)
                continue

            if not resp.is_success:
                raise ExternalServiceUnavailable(
                    f"AI analyst returned status {resp.status_code}"
                )
            return resp

        raise ExternalServiceUnavailable(
            f"AI analyst unavailable after {self._max_attempts} attempt(s): {last_reason}"
        )

    # ── Analysis ─────────────────────────────────────────────────────────

    async def request_analysis(
        self,
        snapshots: Sequence[MarketSnapshot],
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        """Ask the analyst for signals on *snapshots*.

        Raises:
            ExternalServiceUnavailable: Network failure, timeout or non-2xx.
            MalformedExternalResponse: Body is not the documented schema.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        payload = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(snapshots, now)},
            ]
        }
        resp = await self._post_with_retry(payload)
        try:
            body = resp.json()
        except ValueError as exc:
            raise MalformedExternalResponse(f"response body is not JSON: {exc}") from exc
        result = parse_completion(body, now)
        logger.info("AI analyst returned %d signal(s)", len(result.signals))
        return result
