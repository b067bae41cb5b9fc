"""
Structured Logging Subsystem

Purpose
-------
Provide an async-safe logging stack that is the single source of truth for
observability of the progression core:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of operation context via ContextVars.
- Correlation IDs for end-to-end traceability of one settlement.
- Async-safe logging via a QueueHandler + QueueListener architecture.
- Console output (JSON in production, colored text in dev) plus an optional
  rotating JSON file sink.

Responsibilities
----------------
- Initialize and configure the global logging stack.
- Enrich all log records with contextual fields:
  character_id, club_id, event_id, correlation_id, component, operation.
- Provide helper APIs: get_logger(), LogContext, set_log_context(),
  clear_log_context(), setup_logging(), shutdown_logging().

Design Decisions
----------------
- JSONFormatter is the canonical representation.
- ContextFilter uses ContextVars to safely enrich logs in async code.
- Extra fields passed via ``logger.info("msg", extra={...})`` are merged
  into the JSON ``extra`` object.
- A bounded log queue drops records instead of blocking under log storms.

Dependencies
------------
- src.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.config import Config


# ============================================================================
# Operation Context (ContextVars)
# ============================================================================

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context",
    default={},
)

CONTEXT_FIELDS = (
    "character_id",
    "club_id",
    "event_id",
    "correlation_id",
    "component",
    "operation",
)


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Configuration for the logging subsystem, read lazily from Config."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "progression.json.log"
    DAILY_BACKUP_COUNT: int = 1
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(getattr(Config, "ENVIRONMENT", "development")).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        if not isinstance(level_name, str):
            level_name = "INFO"
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        json_flag = getattr(Config, "LOG_JSON", None)
        if json_flag is None:
            return self.is_production
        return bool(json_flag)

    @property
    def use_colors(self) -> bool:
        if self.use_json:
            return False
        return sys.stdout.isatty()

    @property
    def to_file(self) -> bool:
        return bool(getattr(Config, "LOG_TO_FILE", False))


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copies the current LogContext onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name, "N/A"))

        if getattr(record, "component", "N/A") in (None, "N/A"):
            record.component = record.name.split(".", 2)[-1]

        for key, value in context.items():
            if key not in CONTEXT_FIELDS and not hasattr(record, key):
                setattr(record, key, value)

        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        prefix = self.COLORS.get(original, "")
        if prefix:
            record.levelname = f"{prefix}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return repr(value)


class JSONFormatter(logging.Formatter):
    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        created_dt = datetime.fromtimestamp(record.created, tz=timezone.utc)

        log_data: Dict[str, Any] = {
            "timestamp": created_dt.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=_json_default)


# ============================================================================
# Queue Handler
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    dropped: int = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _DroppingQueueHandler.dropped += 1
            sys.stderr.write("Logging queue full; dropping log record.\n")


# ============================================================================
# Global Setup
# ============================================================================

_queue_listener: Optional[QueueListener] = None


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )
    return handler


def _build_daily_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Install the queue-based handler stack on the root logger (idempotent)."""
    global _queue_listener

    root = logging.getLogger()
    if getattr(root, "_progression_logging_initialized", False):
        return

    root.setLevel(LOGGER_CONFIG.log_level)

    handlers: List[logging.Handler] = [_build_console_handler()]
    if LOGGER_CONFIG.to_file:
        handlers.append(_build_daily_file_handler())

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    # Filter on the handler so context is captured in the emitting task.
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if getattr(Config, "DATABASE_ECHO", False) else logging.WARNING
    )
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    setattr(root, "_progression_logging_initialized", True)
    setattr(root, "_progression_queue_handler", queue_handler)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "to_file": LOGGER_CONFIG.to_file,
        },
    )


def shutdown_logging() -> None:
    """Stop the queue listener and detach the handler installed by setup_logging()."""
    global _queue_listener

    root = logging.getLogger()
    if not getattr(root, "_progression_logging_initialized", False):
        return

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None

    queue_handler = getattr(root, "_progression_queue_handler", None)
    if queue_handler is not None:
        root.removeHandler(queue_handler)
        queue_handler.close()

    setattr(root, "_progression_logging_initialized", False)
    setattr(root, "_progression_queue_handler", None)


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind operation context to every log line emitted inside the block.

    Example
    -------
    >>> async with LogContext(character_id=7, operation="settle"):
    ...     logger.info("Settling")   # carries character_id=7
    """

    def __init__(
        self,
        character_id: Optional[int] = None,
        club_id: Optional[int] = None,
        event_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        parent = _request_context.get({})
        self.context: Dict[str, Any] = {
            **parent,
            "correlation_id": correlation_id
            or parent.get("correlation_id")
            or self._generate_correlation_id(),
            **extra,
        }
        for key, value in (
            ("character_id", character_id),
            ("club_id", club_id),
            ("event_id", event_id),
            ("component", component),
            ("operation", operation),
        ):
            if value is not None:
                self.context[key] = value

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return uuid.uuid4().hex[:8]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge ``fields`` into the current context (None values are ignored)."""
    current = _request_context.get({}).copy()
    current.update({k: v for k, v in fields.items() if v is not None})
    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})


# Initialize logging automatically
setup_logging()
