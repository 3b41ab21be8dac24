"""
zkfss Logging Subsystem

Purpose
-------
zkfss runs inside host applications, so importing it never touches the root
logger. Records go wherever the host's logging sends them until the host
opts in with `setup_logging()`.

Once installed, records are handed to a bounded queue on the emitting thread
and written by a QueueListener. Watch callbacks on kazoo's event thread and
lookups on application threads never wait on console or file I/O. When the
queue is full the record is dropped and counted instead of stalling the
caller.

Lookup Context
--------------
Every record carries the lookup context active on the emitting thread:

- correlation_id: one id per lookup or lifecycle call
- operation: "start", "stop", "resolve", "install_watch", "apply_push"
- feature_key: the key being resolved
- zk_path: the ZooKeeper path being watched

Contexts nest. An inner LogContext keeps the enclosing fields and correlation
id and overrides only the fields it names, so a watch install logged deep in
the cache still shows which feature key triggered it.

Output
------
- Console: JSON in production (or with LOG_JSON), otherwise one line of text
  with the context appended, coloured on a terminal when LOG_COLORS is on.
- File: a daily rotating JSON file when LOGS_DIR is configured.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from collections import Counter
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from zkfss.core.config.config import Config

CONTEXT_FIELDS = ("correlation_id", "operation", "feature_key", "zk_path")

_log_context: ContextVar[Dict[str, Any]] = ContextVar("zkfss_log_context", default={})


# ============================================================================
# SETTINGS
# ============================================================================


@dataclass(frozen=True)
class LogSettings:
    """Logging options resolved from Config when the stack is installed."""

    level: int = logging.INFO
    json: bool = False
    colors: bool = False
    logs_dir: Optional[Path] = None
    queue_size: int = 10_000
    file_name: str = "zkfss.json.log"
    file_backups: int = 1

    @classmethod
    def from_config(cls) -> "LogSettings":
        Config.ensure_loaded()
        production = Config.is_production()
        use_json = production if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        return cls(
            level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
            json=use_json,
            colors=not use_json and bool(Config.LOG_COLORS) and sys.stdout.isatty(),
            logs_dir=Config.LOGS_DIR,
        )


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int


# ============================================================================
# CONTEXT
# ============================================================================


class LogContext:
    """
    Bind lookup context to every record logged inside the block.

    Example
    -------
    >>> with LogContext(operation="resolve", feature_key="checkout"):
    ...     with LogContext(operation="install_watch", zk_path="/zkfss/checkout"):
    ...         logger.debug("installing")  # carries both keys and one id
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        feature_key: Optional[str] = None,
        zk_path: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self._fields = {
            name: value
            for name, value in (
                ("operation", operation),
                ("feature_key", feature_key),
                ("zk_path", zk_path),
                ("correlation_id", correlation_id),
            )
            if value is not None
        }
        self._token: Optional[Token[Dict[str, Any]]] = None
        self.context: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        merged = {**_log_context.get(), **self._fields}
        merged.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self.context = merged
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    @property
    def correlation_id(self) -> Optional[str]:
        return self.context.get("correlation_id")


class ContextFilter(logging.Filter):
    """Copy the active lookup context onto the record, keeping explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name))
        return True


# ============================================================================
# FORMATTERS
# ============================================================================

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unset context fields are left out."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable line with the lookup context and extras appended."""

    FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    LEVEL_COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[1;91m",
    }
    RESET = "\033[0m"

    def __init__(self, colors: bool = False) -> None:
        super().__init__(fmt=self.FORMAT, datefmt=self.DATE_FORMAT)
        self._colors = colors

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)

        details: List[str] = []
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                details.append(f"{name}={value}")
        details.extend(f"{key}={value}" for key, value in _record_extras(record).items())
        if details:
            line = f"{line} [{' '.join(details)}]"

        color = self.LEVEL_COLORS.get(record.levelname) if self._colors else None
        return f"{color}{line}{self.RESET}" if color else line


# ============================================================================
# QUEUE PLUMBING
# ============================================================================


class _LoggingState:
    def __init__(self) -> None:
        self.handler: Optional[QueueHandler] = None
        self.listener: Optional[QueueListener] = None
        self.queue: Optional["queue.Queue[logging.LogRecord]"] = None
        self.counts: Counter = Counter()


_state = _LoggingState()


class ZkfssQueueHandler(QueueHandler):
    """Non-blocking enqueue; a full queue drops the record."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.counts["enqueued"] += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.counts["dropped"] += 1


def _output_handlers(settings: LogSettings) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JSONFormatter() if settings.json else ConsoleFormatter(settings.colors))
    handlers: List[logging.Handler] = [console]

    if settings.logs_dir is not None:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(settings.logs_dir / settings.file_name),
            when="midnight",
            backupCount=settings.file_backups,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(settings.level)
    return handlers


# ============================================================================
# PUBLIC API
# ============================================================================


def setup_logging(settings: Optional[LogSettings] = None) -> None:
    """
    Install the queue-backed logging stack on the root logger.

    Replaces the root logger's handlers. Calling it again while installed is
    a no-op; call `shutdown_logging()` first to reconfigure.
    """
    if _state.handler is not None:
        return

    settings = settings or LogSettings.from_config()
    root = logging.getLogger()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(settings.queue_size)
    listener = QueueListener(log_queue, *_output_handlers(settings), respect_handler_level=True)

    # The filter runs on the emitting thread, where the context is visible
    handler = ZkfssQueueHandler(log_queue)
    handler.setLevel(settings.level)
    handler.addFilter(ContextFilter())

    root.handlers.clear()
    root.setLevel(settings.level)
    root.addHandler(handler)
    logging.getLogger("kazoo").setLevel(max(settings.level, logging.WARNING))

    _state.counts.clear()
    _state.queue = log_queue
    _state.listener = listener
    _state.handler = handler
    listener.start()

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings.level),
            "json": settings.json,
            "logs_dir": str(settings.logs_dir) if settings.logs_dir else None,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue, close the output handlers and detach from root."""
    handler = _state.handler
    if handler is None:
        return

    logging.getLogger(__name__).info("Shutting down logging")
    logging.getLogger().removeHandler(handler)

    if _state.listener is not None:
        _state.listener.stop()
        for output in _state.listener.handlers:
            output.close()

    handler.close()
    _state.handler = None
    _state.listener = None
    _state.queue = None


def get_logging_health() -> LoggingHealth:
    log_queue = _state.queue
    return LoggingHealth(
        initialized=_state.handler is not None,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.counts["enqueued"],
        records_dropped=_state.counts["dropped"],
    )


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)
