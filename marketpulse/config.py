"""MarketPulse — application configuration.

Loads .env variables into a typed config object.
Every variable has a default; malformed values fail on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv
import httpx


_DEFAULT_AI_SERVICE_URL = "https://toolkit.rork.com/text/llm/"

# MACD needs a 26-sample slow average, so shorter caps are useless.
_MIN_SERIES_LENGTH = 26


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    ai_service_url: str
    ai_enabled: bool
    ai_timeout_seconds: float
    ai_max_retries: int
    series_max_length: int
    analysis_refresh_seconds: int
    signal_refresh_seconds: int
    default_risk_pct: float
    alert_history_limit: int
    alert_retention_days: int
    log_level: str
    api_port: int


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None


def _env_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _env_bool(name: str, default: str) -> bool:
    raw = os.environ.get(name, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def _env_url(name: str, default: str) -> str:
    raw = os.environ.get(name, default).strip()
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL:
        raise ValueError(f"{name} must be a URL, got '{raw}'") from None
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"{name} must be an http(s) URL, got '{raw}'")
    return raw


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the variable when a value
    cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    series_max_length = _env_int("SERIES_MAX_LENGTH", "200")
    if series_max_length < _MIN_SERIES_LENGTH:
        raise ValueError(
            f"SERIES_MAX_LENGTH must be at least {_MIN_SERIES_LENGTH}, "
            f"got {series_max_length}"
        )

    return Config(
        ai_service_url=_env_url("AI_SERVICE_URL", _DEFAULT_AI_SERVICE_URL),
        ai_enabled=_env_bool("AI_ENABLED", "true"),
        ai_timeout_seconds=_env_float("AI_TIMEOUT_SECONDS", "15"),
        ai_max_retries=_env_int("AI_MAX_RETRIES", "2"),
        series_max_length=series_max_length,
        analysis_refresh_seconds=_env_int("ANALYSIS_REFRESH_SECONDS", "30"),
        signal_refresh_seconds=_env_int("SIGNAL_REFRESH_SECONDS", "300"),
        default_risk_pct=_env_float("DEFAULT_RISK_PCT", "1.0"),
        alert_history_limit=_env_int("ALERT_HISTORY_LIMIT", "500"),
        alert_retention_days=_env_int("ALERT_RETENTION_DAYS", "30"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_int("API_PORT", "8080"),
    )
