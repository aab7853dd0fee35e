"""Tests for marketpulse.signals.ai_client — AI analyst with mocked HTTP responses."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from marketpulse.config import Config
from marketpulse.errors import ExternalServiceUnavailable, MalformedExternalResponse
from marketpulse.random_source import SystemRandomSource
from marketpulse.signals.ai_client import (
    AIAnalystClient,
    build_prompt,
    parse_completion,
    volatility_index,
)
from marketpulse.signals.generator import SignalGenerator
from marketpulse.signals.models import (
    Action,
    MarketSnapshot,
    MarketTrend,
    RiskLevel,
    SignalSource,
)

NOW = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)
URL = "https://llm.test/text/llm/"


def _make_config(max_retries: int = 2) -> Config:
    return Config(
        ai_service_url=URL,
        ai_enabled=True,
        ai_timeout_seconds=5.0,
        ai_max_retries=max_retries,
        series_max_length=200,
        analysis_refresh_seconds=30,
        signal_refresh_seconds=300,
        default_risk_pct=1.0,
        alert_history_limit=500,
        alert_retention_days=30,
        log_level="INFO",
        api_port=8080,
    )


SNAPSHOTS = [
    MarketSnapshot(symbol="EURUSD", price=1.0847, change_percent=0.4, high=1.09, low=1.08),
    MarketSnapshot(symbol="USDJPY", price=149.85, change_percent=-1.1),
]


# ── Mock analyst responses ───────────────────────────────────────────────

MOCK_ANALYSIS = {
    "signals": [
        {
            "symbol": "EURUSD",
            "action": "BUY",
            "confidence": 85,
            "entryPrice": 1.0847,
            "stopLoss": 1.0820,
            "takeProfit": 1.0900,
            "reasoning": "Strong bullish momentum with RSI oversold recovery",
            "timeframe": "4H",
            "riskLevel": "MEDIUM",
            "marketSentiment": "BULLISH",
            "technicalIndicators": {"rsi": 42.5, "macd": 0.0004},
        },
        {
            "symbol": "USDJPY",
            "action": "sell",
            "confidence": 72.4,
            "entryPrice": 149.85,
            "stopLoss": 150.60,
            "takeProfit": 148.50,
            "reasoning": "Yen strength on BoJ commentary",
        },
    ],
    "marketOverview": {
        "trend": "BULLISH",
        "volatility": "MEDIUM",
        "riskLevel": 6,
        "recommendation": "Cautious optimism with selective long positions",
    },
    "economicFactors": {"inflation": 3.2, "interestRates": 5.25},
}


def _completion(payload) -> dict:
    return {"completion": json.dumps(payload)}


def _response(status: int, url: str, body=None, text=None) -> httpx.Response:
    request = httpx.Request("POST", url)
    if text is not None:
        return httpx.Response(status, text=text, request=request)
    return httpx.Response(status, json=body if body is not None else {}, request=request)


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseCompletion:
    def test_parses_signals_and_overview(self):
        result = parse_completion(_completion(MOCK_ANALYSIS), NOW)
        assert result.source is SignalSource.AI
        assert len(result.signals) == 2

        eur = result.signals[0]
        assert eur.action is Action.BUY
        assert eur.confidence == 85
        assert eur.entry_price == pytest.approx(1.0847)
        assert eur.rsi == pytest.approx(42.5)
        assert eur.source is SignalSource.AI
        assert eur.timestamp == NOW

        jpy = result.signals[1]
        assert jpy.action is Action.SELL
        assert jpy.confidence == 72
        assert jpy.risk_level is RiskLevel.MEDIUM  # default
        assert jpy.rsi is None

        assert result.overview.trend is MarketTrend.BULLISH
        assert result.overview.risk_level == 6
        assert result.economic_factors == {"inflation": 3.2, "interestRates": 5.25}

    def test_overview_risk_clamped(self):
        payload = dict(MOCK_ANALYSIS, marketOverview=dict(MOCK_ANALYSIS["marketOverview"], riskLevel=14))
        assert parse_completion(_completion(payload), NOW).overview.risk_level == 10

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"completion": 42},
            {"completion": "not json"},
            {"completion": "[1, 2]"},
            _completion({"signals": [], "marketOverview": MOCK_ANALYSIS["marketOverview"]}),
            _completion({"signals": MOCK_ANALYSIS["signals"]}),
        ],
    )
    def test_malformed_envelope(self, body):
        with pytest.raises(MalformedExternalResponse):
            parse_completion(body, NOW)

    @pytest.mark.parametrize(
        "override",
        [
            {"action": "STRONG_BUY"},
            {"confidence": 150},
            {"confidence": "high"},
            {"entryPrice": "1.08"},
            {"stopLoss": None},
            {"symbol": ""},
        ],
    )
    def test_malformed_signal(self, override):
        signal = dict(MOCK_ANALYSIS["signals"][0], **override)
        payload = dict(MOCK_ANALYSIS, signals=[signal])
        with pytest.raises(MalformedExternalResponse):
            parse_completion(_completion(payload), NOW)

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e999"])
    def test_non_finite_numbers_rejected(self, literal):
        raw = json.dumps(MOCK_ANALYSIS).replace("\"entryPrice\": 1.0847", f"\"entryPrice\": {literal}")
        with pytest.raises(MalformedExternalResponse, match="finite"):
            parse_completion({"completion": raw}, NOW)

    def test_non_finite_indicator_reads_as_absent(self):
        raw = json.dumps(MOCK_ANALYSIS).replace("\"rsi\": 42.5", "\"rsi\": NaN")
        eur = parse_completion({"completion": raw}, NOW).signals[0]
        assert eur.rsi is None
        assert eur.macd == pytest.approx(0.0004)


class TestPrompt:
    def test_volatility_index(self):
        assert volatility_index(SNAPSHOTS) == pytest.approx(0.8)  # mean 0.75, one decimal
        assert volatility_index([]) == 0.0

    def test_prompt_mentions_basket_and_session(self):
        prompt = build_prompt(SNAPSHOTS, NOW)
        assert '"symbol": "EURUSD"' in prompt
        assert '"symbol": "USDJPY"' in prompt
        assert "European Session" in prompt
        assert "marketOverview" in prompt


# ── HTTP ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_request_payload(monkeypatch):
    """System + user messages posted to the configured URL."""
    client = AIAnalystClient(_make_config(), retry_base_delay=0)
    captured = {}

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        captured.update(url=url, body=json, timeout=timeout)
        return _response(200, url, _completion(MOCK_ANALYSIS))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    result = await client.request_analysis(SNAPSHOTS, NOW)
    assert len(result.signals) == 2
    assert captured["url"] == URL
    assert captured["timeout"] == 5.0
    roles = [m["role"] for m in captured["body"]["messages"]]
    assert roles == ["system", "user"]


@pytest.mark.asyncio
async def test_retries_gateway_errors(monkeypatch):
    """503 twice, then success on the last allowed attempt."""
    client = AIAnalystClient(_make_config(max_retries=2), retry_base_delay=0)
    statuses = [503, 503, 200]
    calls = []

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        status = statuses[len(calls)]
        calls.append(status)
        return _response(status, url, _completion(MOCK_ANALYSIS))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    result = await client.request_analysis(SNAPSHOTS, NOW)
    assert calls == [503, 503, 200]
    assert result.source is SignalSource.AI


@pytest.mark.asyncio
async def test_gives_up_after_retry_budget(monkeypatch):
    client = AIAnalystClient(_make_config(max_retries=1), retry_base_delay=0)
    calls = []

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        calls.append(url)
        raise httpx.ConnectTimeout("timed out")

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    with pytest.raises(ExternalServiceUnavailable, match="2 attempt"):
        await client.request_analysis(SNAPSHOTS, NOW)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_client_error_not_retried(monkeypatch):
    client = AIAnalystClient(_make_config(max_retries=3), retry_base_delay=0)
    calls = []

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        calls.append(url)
        return _response(500, url, {"error": "boom"})

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    with pytest.raises(ExternalServiceUnavailable, match="500"):
        await client.request_analysis(SNAPSHOTS, NOW)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_non_json_body(monkeypatch):
    client = AIAnalystClient(_make_config(), retry_base_delay=0)

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        return _response(200, url, text="<html>gateway</html>")

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    with pytest.raises(MalformedExternalResponse):
        await client.request_analysis(SNAPSHOTS, NOW)


# ── End to end through the generator ────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["timeout", "status", "garbage"])
async def test_generator_falls_back_on_any_failure(monkeypatch, failure):
    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        if failure == "timeout":
            raise httpx.ReadTimeout("slow")
        if failure == "status":
            return _response(500, url)
        return _response(200, url, {"completion": "{not json"})

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    ai = AIAnalystClient(_make_config(max_retries=0), retry_base_delay=0)
    gen = SignalGenerator(SystemRandomSource(seed=3), ai_client=ai)
    result = await gen.generate_analysis(SNAPSHOTS, now=NOW)
    assert result.source is SignalSource.FALLBACK
    assert [s.symbol for s in result.signals] == ["EURUSD", "USDJPY"]


@pytest.mark.asyncio
async def test_generator_uses_ai_on_success(monkeypatch):
    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        return _response(200, url, _completion(MOCK_ANALYSIS))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    ai = AIAnalystClient(_make_config(), retry_base_delay=0)
    gen = SignalGenerator(SystemRandomSource(seed=3), ai_client=ai)
    result = await gen.generate_analysis(SNAPSHOTS, now=NOW)
    assert result.source is SignalSource.AI
    assert result.signals[0].reasoning.startswith("Strong bullish momentum")


@pytest.mark.asyncio
@pytest.mark.parametrize("literal", ["1e999", "NaN", "Infinity"])
async def test_generator_falls_back_on_non_finite_risk_level(monkeypatch, literal):
    completion = json.dumps(MOCK_ANALYSIS).replace('"riskLevel": 6', f'"riskLevel": {literal}')

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        return _response(200, url, {"completion": completion})

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    ai = AIAnalystClient(_make_config(max_retries=0), retry_base_delay=0)
    gen = SignalGenerator(SystemRandomSource(seed=3), ai_client=ai)
    result = await gen.generate_analysis(SNAPSHOTS, now=NOW)
    assert result.source is SignalSource.FALLBACK
    assert 1 <= result.overview.risk_level <= 10


@pytest.mark.asyncio
async def test_invalid_url_is_unavailable_not_retried(monkeypatch):
    calls = []

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        calls.append(url)
        raise httpx.InvalidURL("No scheme included in URL.")

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)

    client = AIAnalystClient(_make_config(max_retries=3), retry_base_delay=0)
    with pytest.raises(ExternalServiceUnavailable, match="InvalidURL"):
        await client.request_analysis(SNAPSHOTS, NOW)
    assert len(calls) == 1

    gen = SignalGenerator(SystemRandomSource(seed=3), ai_client=client)
    result = await gen.generate_analysis(SNAPSHOTS, now=NOW)
    assert result.source is SignalSource.FALLBACK
