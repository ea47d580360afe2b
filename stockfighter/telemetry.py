from __future__ import annotations
import csv
import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any

from stockfighter.settings import settings

logger = logging.getLogger(__name__)


class Tracer:
    """Records one event per venue call to daily JSONL/CSV files."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Tracer, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.provider = settings.telemetry.tracing_provider
        self.local_path = Path(settings.telemetry.local.path)
        self.redact_keys = settings.telemetry.redact_keys
        self.csv_headers = [
            "ts_iso", "event_type", "method", "endpoint", "url",
            "status", "error_type", "error_message", "latency_ms",
            "account", "venue", "symbol",
        ]

        self._initialized = True

    def _get_log_paths(self) -> tuple[Path | None, Path | None]:
        if "local" not in self.provider:
            return None, None

        self.local_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        csv_path = self.local_path / f"{today}_calls.csv" if "csv" in self.provider or "both" in self.provider else None
        jsonl_path = self.local_path / f"{today}_calls.jsonl" if "jsonl" in self.provider or "both" in self.provider else None

        if csv_path and not csv_path.exists():
            with open(csv_path, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=self.csv_headers)
                writer.writeheader()

        return csv_path, jsonl_path

    def _redact(self, data: Any) -> Any:
        """
        Recursively replaces the values of sensitive keys (API key, auth header)
        so they never reach the trace files.
        """
        if isinstance(data, dict):
            redacted = {}
            for key, value in data.items():
                if key in self.redact_keys:
                    redacted[key] = "***REDACTED***"
                else:
                    redacted[key] = self._redact(value)
            return redacted
        elif isinstance(data, list):
            return [self._redact(item) for item in data]
        else:
            return data

    def log(self, event: Dict[str, Any]):
        if self.provider == "none":
            return

        event.setdefault("ts_iso", datetime.now(timezone.utc).isoformat())

        sanitized_event = self._redact(event)

        # Tracing never changes the outcome of the traced call
        try:
            csv_path, jsonl_path = self._get_log_paths()

            if jsonl_path:
                with open(jsonl_path, "a") as f:
                    f.write(json.dumps(sanitized_event, default=str) + "\n")

            if csv_path:
                csv_row = {k: sanitized_event.get(k, "") for k in self.csv_headers}
                with open(csv_path, "a", newline="") as f:
                    writer = csv.DictWriter(f, fieldnames=self.csv_headers)
                    writer.writerow(csv_row)
        except OSError as e:
            logger.warning("Could not write trace to %s: %s", self.local_path, e)


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(log_data)


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level name, defaults to ``settings.logging.level``
        log_format: 'json' or 'text', defaults to ``settings.logging.format``
    """
    log_level = log_level or settings.logging.level
    log_format = log_format or settings.logging.format

    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(numeric_level)

    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


# Singleton instance
tracer = Tracer()
