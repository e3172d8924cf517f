"""
Structured logging for the event mesh.

Purpose
-------
Every component in eventmesh logs through the standard ``logging`` module.
This module wires the root logger once per process so that records from
the bus, the graph store and the database layer share one pipeline:

    caller task ──► ContextFilter ──► bounded queue ──► listener thread
                                                          ├─► stdout
                                                          └─► daily JSON file

Publishing code never blocks on I/O: records are stamped with the ambient
operation context on the calling task and handed to a background listener.
When the queue is full the record is counted and dropped.

Context
-------
``LogContext`` (sync or async ``with``) and ``set_log_context`` bind fields
such as ``component``, ``operation`` and ``event_name`` to the current task
through a ContextVar. Fields passed explicitly with ``extra=`` take
precedence over bound ones.

Only payload *keys* are ever bound; payload values stay out of the logs.

Dependencies
------------
- eventmesh.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from eventmesh.core.config.config import Config

_ROOT_MARKER = "_eventmesh_logging_initialized"

# Fields ContextFilter guarantees on every record; "N/A" when unbound.
EVENT_FIELDS = ("event_name", "source", "owner_id", "user_id", "session_id")
_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_bound_context: ContextVar[Dict[str, Any]] = ContextVar("eventmesh_log_context", default={})


# ----------------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Logging settings derived from Config at the time they are read."""

    text_format: str = "%(asctime)s %(levelname)-8s [%(component)s] %(name)s: %(message)s"
    date_format: str = "%H:%M:%S"
    file_name: str = "eventmesh.jsonl"
    file_backups: int = 3
    queue_size: int = 10_000

    @property
    def level(self) -> int:
        name = str(Config.LOG_LEVEL).upper()
        return getattr(logging, name) if name in _LEVELS else logging.INFO

    @property
    def json_console(self) -> bool:
        if Config.LOG_JSON is None:
            return Config.is_production()
        return bool(Config.LOG_JSON)

    @property
    def colored(self) -> bool:
        return Config.LOG_COLORS and not self.json_console and sys.stdout.isatty()

    @property
    def file_path(self) -> Optional[Path]:
        if not Config.LOG_TO_FILE:
            return None
        return Path(Config.LOGS_DIR).resolve() / self.file_name


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    """Snapshot returned by get_logging_health()."""

    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


@dataclass(slots=True)
class _PipelineState:
    queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    enqueued: int = 0
    dropped: int = 0
    listener_errors: int = 0
    handlers: List[logging.Handler] = field(default_factory=list)


_state = _PipelineState()


# ----------------------------------------------------------------------------
# Record enrichment and formatting
# ----------------------------------------------------------------------------


class ContextFilter(logging.Filter):
    """Copy the task-bound context onto each record before it is queued."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        bound = _bound_context.get()

        record.correlation_id = bound.get("correlation_id", "N/A")
        record.operation = bound.get("operation") or "N/A"
        if not getattr(record, "component", None):
            record.component = bound.get("component") or record.name.rsplit(".", 1)[-1]

        for name in EVENT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, bound.get(name, "N/A"))

        for name, value in bound.items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


class LevelColorFormatter(logging.Formatter):
    """Text formatter that tints the level name for interactive terminals."""

    PALETTE = {
        logging.DEBUG: "2",
        logging.INFO: "36",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "1;31",
    }

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        code = self.PALETTE.get(record.levelno)
        if code is None:
            return super().formatMessage(record)
        plain = record.levelname
        record.levelname = f"\033[{code}m{plain}\033[0m"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


# LogRecord attributes that are not user data.
_RESERVED = frozenset(
    vars(logging.LogRecord("x", logging.INFO, "x", 0, "x", None, None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; unbound context fields are omitted."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED or key.startswith("_") or value == "N/A":
                continue
            entry[key] = value
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


# ----------------------------------------------------------------------------
# Queue plumbing
# ----------------------------------------------------------------------------


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.dropped += 1
            return
        _state.enqueued += 1


class _CountingQueueListener(QueueListener):
    def handle(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            super().handle(record)
        except Exception as exc:
            _state.listener_errors += 1
            sys.stderr.write(f"eventmesh log handler failed: {exc!r}\n")


def _output_handlers(settings: LoggerConfig) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if settings.json_console:
        console.setFormatter(JSONFormatter())
    else:
        text_cls = LevelColorFormatter if settings.colored else logging.Formatter
        console.setFormatter(text_cls(settings.text_format, settings.date_format))
    handlers: List[logging.Handler] = [console]

    path = settings.file_path
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            path, when="midnight", backupCount=settings.file_backups, encoding="utf-8", utc=True
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(settings.level)
    return handlers


# ----------------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------------


def setup_logging() -> None:
    """
    Route the root logger through the queue pipeline.

    Idempotent: a second call while the pipeline is running does nothing.
    """
    root = logging.getLogger()
    if getattr(root, _ROOT_MARKER, False):
        return

    settings = LoggerConfig()
    _state.enqueued = _state.dropped = _state.listener_errors = 0
    _state.queue = queue.Queue(settings.queue_size)
    _state.handlers = _output_handlers(settings)
    _state.listener = _CountingQueueListener(
        _state.queue, *_state.handlers, respect_handler_level=True
    )
    _state.listener.start()

    entry = _DroppingQueueHandler(_state.queue)
    entry.addFilter(ContextFilter())

    root.handlers.clear()
    root.setLevel(settings.level)
    root.addHandler(entry)
    for noisy in ("sqlalchemy.engine", "sqlalchemy.pool", "asyncio", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    setattr(root, _ROOT_MARKER, True)

    logging.getLogger(__name__).debug(
        "Logging pipeline started",
        extra={
            "environment": Config.ENVIRONMENT,
            "json_console": settings.json_console,
            "file": str(settings.file_path) if settings.file_path else None,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue, close every handler and detach from the root logger."""
    root = logging.getLogger()
    if not getattr(root, _ROOT_MARKER, False):
        return

    if _state.listener is not None:
        _state.listener.stop()
    for handler in [*root.handlers, *_state.handlers]:
        handler.flush()
        handler.close()
        if handler in root.handlers:
            root.removeHandler(handler)

    _state.listener = None
    _state.queue = None
    _state.handlers = []
    setattr(root, _ROOT_MARKER, False)


def get_logging_health() -> LoggingHealth:
    pending = _state.queue
    return LoggingHealth(
        initialized=bool(getattr(logging.getLogger(), _ROOT_MARKER, False)),
        queue_size=pending.qsize() if pending is not None else 0,
        queue_max_size=pending.maxsize if pending is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
        listener_errors=_state.listener_errors,
    )


# ----------------------------------------------------------------------------
# Public helpers
# ----------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind log fields for the duration of a block.

    Examples
    --------
    >>> async with LogContext(component="event_graph", operation="publish"):
    ...     logger.info("Event stored")   # record carries both fields
    """

    def __init__(
        self,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **fields: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            **fields,
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _bound_context.set(self.context)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            _bound_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


def set_log_context(**fields: Any) -> None:
    """Merge non-None fields into the context bound to the current task."""
    merged = dict(_bound_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    _bound_context.set(merged)


def get_log_context() -> Dict[str, Any]:
    return dict(_bound_context.get())


def clear_log_context() -> None:
    _bound_context.set({})


setup_logging()
