"""
Projekt L Logging Subsystem

Purpose
-------
One logging stack for the progression core:

- Structured JSON records for aggregation, readable text for development
- Progression context (user, quest, skill, faction, operation) carried in a
  ContextVar and stamped on every record, so a single quest progress call
  can be followed through the services it touches
- Handlers run on a QueueListener thread; the event loop only enqueues
- Optional daily rotating JSON file next to the console output

Responsibilities
----------------
- ``setup_logging()`` / ``shutdown_logging()`` own the root handler stack
- ``LogContext`` scopes context fields; nested scopes inherit the outer
  fields and correlation id
- ``get_logging_health()`` reports queue depth and drop counters

Design Decisions
----------------
- Nothing is configured at import time; ``projektl.app`` calls
  ``setup_logging()`` and library code only calls ``get_logger()``.
- ``extra={...}`` fields land under ``"extra"`` in the JSON payload.
- The queue is bounded; a full queue drops the record and counts it.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# Fields a LogContext may carry; every record gets all of them.
CONTEXT_FIELDS: Tuple[str, ...] = (
    "correlation_id",
    "user_id",
    "quest_id",
    "skill_id",
    "faction_id",
    "operation",
)
MISSING = "-"

_progression_context: ContextVar[Dict[str, Any]] = ContextVar(
    "progression_log_context", default={}
)


def _config():
    from projektl.core.config.config import Config

    return Config


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Formatting constants plus environment-derived switches."""

    CONSOLE_FORMAT: str = (
        "%(asctime)s | %(levelname)-8s | %(correlation_id)-8s | %(name)s | %(message)s"
    )
    DATE_FORMAT: str = "%H:%M:%S"

    DAILY_BASENAME: str = "projektl.json.log"
    DAILY_BACKUP_COUNT: int = 3

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(getattr(_config(), "ENVIRONMENT", "development")).lower()

    @property
    def logs_dir(self) -> Path:
        return Path(_config().LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        name = getattr(_config(), "LOG_LEVEL", "INFO")
        level = logging.getLevelName(str(name).upper())
        return level if isinstance(level, int) else logging.INFO

    @property
    def use_json(self) -> bool:
        flag = getattr(_config(), "LOG_JSON", None)
        if flag is None:
            return self.environment == "production"
        return bool(flag)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Health
# ============================================================================


@dataclass(slots=True)
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None
_INIT_FLAG = "_projektl_logging_initialized"


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active progression context onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _progression_context.get()
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name, MISSING))
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().formatMessage(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


# Attributes every LogRecord has; anything else came in through ``extra``.
RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def safe_extra(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Make ``fields`` usable as ``extra=``.

    ``Logger.makeRecord`` raises KeyError when an extra key shadows a
    LogRecord attribute (``created``, ``name``, ``module``...); such keys
    are kept under a ``field_`` prefix instead.

    >>> safe_extra({"created": 3, "rows": 1})
    {'field_created': 3, 'rows': 1}
    """
    return {
        (f"field_{key}" if key in RESERVED_RECORD_ATTRS else key): value
        for key, value in fields.items()
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line: core fields, context, then extras."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = {
            name: getattr(record, name)
            for name in CONTEXT_FIELDS
            if getattr(record, name, MISSING) != MISSING
        }
        if context:
            payload["context"] = context

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in RESERVED_RECORD_ATTRS
            and key not in CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue Handler & Listener
# ============================================================================


class ProjektLQueueHandler(QueueHandler):
    """Never blocks the caller; a full queue drops the record."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            return
        _logging_metrics.records_enqueued += 1


class ProjektLQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        sys.stderr.write(f"projektl logging: handler failed for {record.name}\n")


def _console_formatter() -> logging.Formatter:
    if LOGGER_CONFIG.use_json:
        return JSONFormatter()
    formatter_cls = ColoredFormatter if LOGGER_CONFIG.use_colors else logging.Formatter
    return formatter_cls(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)


def _build_handlers(file_output: bool) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_console_formatter())
    handlers: list[logging.Handler] = [console]

    if file_output:
        LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
            when="midnight",
            backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(LOGGER_CONFIG.log_level)
    return handlers


# ============================================================================
# Global Setup
# ============================================================================


def setup_logging(*, file_output: bool = True) -> None:
    """
    Install the queue-based handler stack on the root logger.

    Idempotent; a second call is a no-op until ``shutdown_logging()``.
    """
    global _queue_listener, _logging_metrics, _log_queue

    root = logging.getLogger()
    if getattr(root, _INIT_FLAG, False):
        return

    _logging_metrics = LoggingMetrics()
    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)

    _queue_listener = ProjektLQueueListener(
        _log_queue, *_build_handlers(file_output), respect_handler_level=True
    )
    _queue_listener.start()

    queue_handler = ProjektLQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    # The ContextVar is read here, on the logging task, not on the listener thread.
    queue_handler.addFilter(ContextFilter())

    root.handlers.clear()
    root.setLevel(LOGGER_CONFIG.log_level)
    root.addHandler(queue_handler)

    for noisy in ("sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    setattr(root, _INIT_FLAG, True)
    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "file_output": file_output,
        },
    )


def shutdown_logging() -> None:
    """Stop the listener, then flush and detach every root handler."""
    global _queue_listener, _log_queue

    root = logging.getLogger()
    if not getattr(root, _INIT_FLAG, False):
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.close()
        _queue_listener = None

    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    setattr(root, _INIT_FLAG, False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    return LoggingHealth(
        initialized=bool(getattr(logging.getLogger(), _INIT_FLAG, False)),
        queue_size=_log_queue.qsize() if _log_queue is not None else 0,
        queue_max_size=_log_queue.maxsize if _log_queue is not None else 0,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Scoped progression context, usable with ``with`` and ``async with``.

    Fields not given are inherited from the enclosing context; a fresh
    correlation id is only minted for the outermost scope.

    Example
    -------
    >>> async with LogContext(user_id=uid, quest_id=qid, operation="apply_quest_action"):
    ...     logger.info("Quest progress requested")
    """

    def __init__(self, **fields: Any) -> None:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
        self._fields = {key: str(value) for key, value in fields.items() if value is not None}
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> Dict[str, Any]:
        context = {**_progression_context.get(), **self._fields}
        context.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _progression_context.set(context)
        return context

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _progression_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> Dict[str, Any]:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def get_log_context() -> Dict[str, Any]:
    return dict(_progression_context.get())
