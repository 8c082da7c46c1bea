"""Log formatting for harness records and the dictConfig the pytest plugin applies.

Harness modules log with ``extra={"data": {...}}``. :class:`ExtrasFormatter`
renders that payload after the message on a console line, or folds the whole
record into one JSON object per line when ``ASTERISK_HARNESS_JSON_LOGS`` is set
(or when running under Kubernetes, where the collector parses JSON lines).

Only the ``asterisk_harness`` and ``panoramisk`` loggers are configured. The root
logger belongs to the test runner.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from datetime import datetime, timezone
from logging.config import dictConfig
from pathlib import PurePath
from typing import Any

from opentelemetry import trace

JSON_LOGS_ENV = "ASTERISK_HARNESS_JSON_LOGS"
HARNESS_LEVEL_ENV = "ASTERISK_HARNESS_LOG_LEVEL"
PANORAMISK_LEVEL_ENV = "PANORAMISK_LOG_LEVEL"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_MAX_DEPTH = 8


def json_logs_requested() -> bool:
    return bool(os.getenv(JSON_LOGS_ENV) or os.getenv("KUBERNETES_SERVICE_HOST"))


def _env_level(*names: str, default: str) -> str:
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value.upper()
    return default


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def to_jsonable(value: Any, depth: int = _MAX_DEPTH) -> Any:
    """Reduce log payloads (paths, bytes, tuples of args) to plain JSON values."""

    if depth == 0:
        return "<nested too deep>"
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item, depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item, depth - 1) for item in value]
    return repr(value)


class ExtrasFormatter(logging.Formatter):
    """Append structured `data` payloads when present."""

    def format(self, record: logging.LogRecord) -> str:
        data = getattr(record, "data", None)
        if json_logs_requested():
            return _dumps(self._document(record, data))

        line = super().format(record)
        if not data:
            return line
        return f"{line} | data={_dumps(to_jsonable(data))}"

    def _document(self, record: logging.LogRecord, data: Any) -> dict[str, Any]:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        document: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if data:
            document["data"] = to_jsonable(data)
        otel = getattr(record, "otel", None)
        if otel:
            document["otel"] = otel
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return document


class OtelContextLogFilter(logging.Filter):
    """Attach the active OpenTelemetry trace and span ids to the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.otel = {
                "trace_id": f"{span_context.trace_id:032x}",
                "span_id": f"{span_context.span_id:016x}",
            }
        return True


def build_log_config(*, default_level: str = "INFO") -> dict[str, Any]:
    """Return a dictConfig mapping for the harness and AMI client loggers."""

    handler_names = ["harness_console"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "harness": {
                "()": ExtrasFormatter,
                "format": CONSOLE_FORMAT,
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {"otel_context": {"()": OtelContextLogFilter}},
        "handlers": {
            "harness_console": {
                "class": "logging.StreamHandler",
                "formatter": "harness",
                "filters": ["otel_context"],
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            "asterisk_harness": {
                "level": _env_level(HARNESS_LEVEL_ENV, "LOG_LEVEL", default=default_level),
                "handlers": handler_names,
            },
            "panoramisk": {
                "level": _env_level(PANORAMISK_LEVEL_ENV, default="WARNING"),
                "handlers": handler_names,
            },
        },
    }


def configure_logging(*, default_level: str = "INFO") -> None:
    dictConfig(build_log_config(default_level=default_level))
    logging.getLogger(__name__).debug(
        "harness logging configured",
        extra={"data": {"json": json_logs_requested()}},
    )


__all__ = [
    "ExtrasFormatter",
    "OtelContextLogFilter",
    "build_log_config",
    "configure_logging",
    "json_logs_requested",
    "to_jsonable",
]
