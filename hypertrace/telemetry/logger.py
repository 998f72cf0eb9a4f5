"""
Structured Logger
==================

Structured logging for hypertrace's own diagnostics (sink installation,
metrics listener lifecycle, degraded capabilities). Trace and lifecycle
events are never logged here; they go to the sinks the host installs.

Design:
  - JSON-structured output for machine parsing
  - Human-readable fallback for development
  - Event-name + keyword-field call style: log.info("sink_set", slot="trace")
  - Level check before any formatting work
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_RESERVED = frozenset({
    "name", "msg", "args", "created", "relativeCreated",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "pathname", "filename", "module", "levelno", "levelname",
    "thread", "threadName", "process", "processName", "msecs",
    "taskName", "message",
})
_JSON_SAFE = (str, int, float, bool, type(None))

# ── Structured Formatter ──────────────────────────────────────────

class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter; extra fields land under ``data``."""

    def __init__(self, *, json_output: bool = True, include_traceback: bool = True):
        super().__init__()
        self._json = json_output
        self._include_tb = include_traceback
        self._pid = os.getpid()

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "pid": self._pid,
            "thread": record.threadName,
        }

        extras: dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED:
                continue
            extras[key] = val if isinstance(val, _JSON_SAFE) else str(val)
        if extras:
            entry["data"] = extras

        if record.exc_info and self._include_tb:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
                if record.exc_info[2]
                else None,
            }

        if self._json:
            return json.dumps(entry, default=str, ensure_ascii=False)

        fields = " ".join(f"{k}={v}" for k, v in extras.items())
        line = (
            f"{entry['timestamp']} | {entry['level']:8s} | "
            f"{entry['logger']}:{entry['line']} | {entry['message']}"
        )
        return f"{line} {fields}" if fields else line

# ── Structured Logger ─────────────────────────────────────────────

class StructuredLogger:
    """
    Wrapper around stdlib logger providing structured logging helpers.

    Usage:
        log = StructuredLogger("hypertrace.tracing.context")
        log.info("trace_sink_set", sink="collector")
        log.warning("weak_observation_unsupported", class_name="Point")
    """

    __slots__ = ("_logger", "_name")

    def __init__(self, name: str):
        self._name = name
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._name

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, event: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, event, extra=kwargs, stacklevel=3)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, exc: BaseException | None = None, **kwargs: Any) -> None:
        if exc:
            self._logger.error(event, extra=kwargs, exc_info=exc, stacklevel=2)
        else:
            self._log(logging.ERROR, event, **kwargs)

    def bind(self, **context: Any) -> BoundLogger:
        """Create a child logger with bound context fields."""
        return BoundLogger(self, context)

class BoundLogger:
    """Logger with pre-bound context fields."""

    __slots__ = ("_context", "_parent")

    def __init__(self, parent: StructuredLogger, context: dict[str, Any]):
        self._parent = parent
        self._context = context

    def _merged(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {**self._context, **kwargs}

    def debug(self, event: str, **kwargs: Any) -> None:
        self._parent.debug(event, **self._merged(kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self._parent.info(event, **self._merged(kwargs))

    def warning(self, event: str, **kwargs: Any) -> None:
        self._parent.warning(event, **self._merged(kwargs))

    def error(self, event: str, exc: BaseException | None = None, **kwargs: Any) -> None:
        self._parent.error(event, exc=exc, **self._merged(kwargs))

# ── Setup ──────────────────────────────────────────────────────────

_initialized = False

def setup_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    log_dir: str | None = None,
) -> None:
    """
    Attach handlers to the ``hypertrace`` logger. Call once at host startup.

    Hypertrace is a library: the root logger is left alone and nothing is
    configured until the host asks for it.

    Args:
        level: Log level. Defaults to settings.LOG_LEVEL.
        json_output: Force JSON output. Defaults to settings.LOG_JSON, or
            JSON outside development when that is unset.
        log_dir: Directory for a rotating log file. None = stdout only.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    from hypertrace.core.config import settings

    if level is None:
        level = settings.LOG_LEVEL
    if json_output is None:
        json_output = settings.LOG_JSON
    if json_output is None:
        json_output = not settings.is_development
    if log_dir is None:
        log_dir = settings.LOG_DIR

    package_logger = logging.getLogger("hypertrace")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()
    package_logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(json_output=json_output))
    package_logger.addHandler(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "hypertrace.log",
            maxBytes=20 * 1024 * 1024,  # 20MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter(json_output=True))
        package_logger.addHandler(file_handler)

    # uvicorn serves the metrics endpoint; its access log is noise here
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

def reset_logging() -> None:
    """Drop the handlers installed by ``setup_logging`` (tests)."""
    global _initialized
    _initialized = False
    package_logger = logging.getLogger("hypertrace")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)

def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
