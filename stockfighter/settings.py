from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Literal
import yaml
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()
ROOT = Path(__file__).resolve().parents[1]

# Identifiers of the always-open practice venue
TEST_ACCOUNT = "EXB123456"
TEST_VENUE = "TESTEX"
TEST_SYMBOL = "FOOBAR"


# --- API Settings ---
class ApiSettings(BaseModel):
    base_url: str = "https://api.stockfighter.io/ob/api/"
    ws_base_url: str = "wss://api.stockfighter.io/ob/api/ws/"
    api_key: str | None = None
    account: str = ""
    venue: str = ""
    symbol: str = ""
    timeout_seconds: float = 30.0
    env: Literal["test", "live"] = "live"


# --- Telemetry / Logging ---
class LocalTraceSettings(BaseModel):
    path: str = "runs/traces/"


class TelemetrySettings(BaseModel):
    tracing_provider: str = "none"
    local: LocalTraceSettings = LocalTraceSettings()
    redact_keys: list[str] = ["api_key", "X-Starfighter-Authorization"]


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["text", "json"] = "text"


class Settings(BaseModel):
    api: ApiSettings = ApiSettings()
    telemetry: TelemetrySettings = TelemetrySettings()
    logging: LoggingSettings = LoggingSettings()


def _expand_env(content: str) -> str:
    # Allow ${VAR} expansion from OS env vars
    return os.path.expandvars(content)


def _config_path() -> Path:
    override = os.getenv("STOCKFIGHTER_CONFIG")
    return Path(override) if override else ROOT / "config" / "settings.yaml"


def load_settings(path: Path | None = None) -> Settings:
    cfg_path = path or _config_path()
    data: dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            raw = _expand_env(f.read())
        data = yaml.safe_load(raw) or {}

    api = data.setdefault("api", {}) or {}
    data["api"] = api

    # Unexpanded placeholders mean the variable was not set
    for key, value in list(api.items()):
        if isinstance(value, str) and value.startswith("${"):
            api.pop(key)

    # Resolve venue env
    env = os.getenv("STOCKFIGHTER_ENV", api.get("env", "live")).lower()
    api["env"] = env
    if env == "test":
        api["account"] = TEST_ACCOUNT
        api["venue"] = TEST_VENUE
        api["symbol"] = TEST_SYMBOL

    s = Settings(**data)

    return s


try:
    settings = load_settings()
except Exception as e:
    # Use print because logger may depend on settings
    print(f"[config] Failed to load settings: {type(e).__name__}: {e}", flush=True)
    raise  # bubble up so we see the stack
