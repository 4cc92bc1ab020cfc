"""
dexter — structured logging

File: src/dexter/observability/logging.py
Last updated: 2026-10-19

Purpose
- Route every ``structlog`` event through one queue-backed stdlib sink that
  writes redacted JSON lines to ``dexter.jsonl``.
- Carry per-request correlation fields (``request_id``) via structlog contextvars.

Record layout
- ``timestamp`` (UTC, ``Z`` suffix), ``level``, ``logger``, ``event``.
- Bound correlation fields at the top level.
- Remaining event keys nested under ``fields``; ``exception`` when present.
"""

from __future__ import annotations

import atexit
import copy
import logging
import logging.handlers
import math
import queue
import threading
import time
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from contextvars import Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

from dexter.constants import APP_NAME, SESSION_BLOCK_LIMIT
from dexter.security.redaction import redact_sensitive_text, redact_structure

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[object], JSONValue]

LOG_FILENAME: Final[str] = f"{APP_NAME}.jsonl"
_QUEUE_SIZE: Final[int] = 4096
_TRUNCATION_SUFFIX: Final[str] = "\n...[truncated]"
_CORRELATION_KEY: Final[str] = "_correlation"

_active_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how loudly to log; mirrors the ``[logging]`` config table."""

    log_dir: Path | str
    level: int | str = "INFO"
    log_to_stderr: bool = False
    logger_name: str = APP_NAME
    queue_size: int = _QUEUE_SIZE
    log_filename: str = LOG_FILENAME

    @classmethod
    def from_mapping(cls, section: Mapping[str, object]) -> LoggingConfig:
        level = section.get("level", "INFO")
        log_dir = section.get("log_dir", "logs")
        return cls(
            log_dir=log_dir if isinstance(log_dir, (str, Path)) else "logs",
            level=level if isinstance(level, (int, str)) else "INFO",
            log_to_stderr=bool(section.get("log_to_stderr", False)),
        )


# ----------------------------------------------------------------------
# structlog wiring
# ----------------------------------------------------------------------


def _attach_correlation(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    # Runs in the caller's context; the sink thread cannot see its contextvars.
    context = get_correlation_context()
    if context:
        event_dict[_CORRELATION_KEY] = context
    return event_dict


def configure_structlog() -> None:
    """Hand structlog events to stdlib logging with the event dict left intact."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            _attach_correlation,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    root = logging.getLogger(APP_NAME)
    if not any(isinstance(handler, logging.NullHandler) for handler in root.handlers):
        root.addHandler(logging.NullHandler())


def log_session_block(logger: Any, label: str, body: str) -> None:
    """Emit one labelled transcript block, redacted and size-capped."""

    logger.info("session_block", label=label, body=session_block_body(body))


def session_block_body(body: str, *, limit: int = SESSION_BLOCK_LIMIT) -> str:
    redacted = redact_sensitive_text(body)
    if len(redacted) <= limit:
        return redacted
    return redacted[:limit] + _TRUNCATION_SUFFIX


class _JsonLineLayout:
    """Final-stage processor that shapes an event dict into the on-disk record."""

    def __init__(self, redactor: LogRedactor) -> None:
        self._redactor = redactor

    def __call__(
        self, _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> dict[str, JSONValue]:
        record: logging.LogRecord = event_dict.pop("_record")
        event_dict.pop("_from_structlog", None)
        correlation = event_dict.pop(_CORRELATION_KEY, None) or {}
        exception = event_dict.pop("exception", None)
        message = event_dict.pop("event", "")

        shaped: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": _as_text(self._redactor(message)),
        }
        for key in sorted(correlation):
            shaped[str(key)] = str(correlation[key])
        if event_dict:
            shaped["fields"] = self._redactor(dict(event_dict))
        if exception:
            shaped["exception"] = _as_text(self._redactor(exception))
        return shaped


def _json_formatter(redactor: LogRedactor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            _JsonLineLayout(redactor),
            structlog.processors.JSONRenderer(
                sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ),
        ],
    )


# ----------------------------------------------------------------------
# Queue sink
# ----------------------------------------------------------------------


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    """Enqueue without blocking; a full queue drops the record and counts it."""

    def __init__(self, log_queue: queue.Queue[Any]) -> None:
        super().__init__(log_queue)
        self._dropped = 0
        self._dropped_lock = threading.Lock()

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The base class stringifies msg; the sink formatter needs the event dict.
        return copy.copy(record)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1


@dataclass(slots=True, eq=False)
class StructuredLoggingHandle:
    """The installed sink: stop it with ``shutdown`` (idempotent)."""

    logger: logging.Logger
    log_path: Path
    queue_handler: _DroppingQueueHandler
    listener: logging.handlers.QueueListener
    sinks: tuple[logging.Handler, ...]
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _closed: bool = False

    @property
    def dropped_records(self) -> int:
        return self.queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        pending: queue.Queue[Any] = self.queue_handler.queue  # type: ignore[assignment]
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while pending.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self.sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self.listener.stop()
            self.logger.removeHandler(self.queue_handler)
            self.queue_handler.close()
            for sink in self.sinks:
                sink.close()
            self._closed = True


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Install the JSON-lines sink on the ``dexter`` logger tree.

    Any previously installed sink is shut down first, so at most one is live.
    """

    global _active
    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    filename = _checked_filename(config.log_filename)
    level = _level_number(config.level)
    shutdown_logging()

    log_dir = Path(config.log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / filename

    formatter = _json_formatter(default_log_redactor)
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stderr:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for stale in [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]:
        logger.removeHandler(stale)
        stale.close()

    queue_handler = _DroppingQueueHandler(queue.Queue(maxsize=config.queue_size))
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(
        queue_handler.queue, *sinks, respect_handler_level=True
    )
    listener.start()
    logger.addHandler(queue_handler)
    configure_structlog()

    handle = StructuredLoggingHandle(
        logger=logger,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    with _active_lock:
        _active = handle
    _ensure_atexit()
    return handle


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    global _active
    target = handle if handle is not None else get_active_logging_handle()
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    with _active_lock:
        if _active is target:
            _active = None


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active


def _ensure_atexit() -> None:
    global _atexit_registered
    if not _atexit_registered:
        atexit.register(shutdown_logging)
        _atexit_registered = True


# ----------------------------------------------------------------------
# Correlation
# ----------------------------------------------------------------------


def get_correlation_context() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def set_correlation_fields(**fields: str | None) -> Mapping[str, Token[Any]]:
    """Bind non-None fields; returns the tokens ``reset_correlation_fields`` needs."""

    bound: dict[str, str] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if not value.strip():
            raise ValueError(f"correlation value for {key!r} must not be empty")
        bound[key] = value.strip()
    return structlog.contextvars.bind_contextvars(**bound)


def reset_correlation_fields(tokens: Mapping[str, Token[Any]]) -> None:
    structlog.contextvars.reset_contextvars(**tokens)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    tokens = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(tokens)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def default_log_redactor(value: object) -> JSONValue:
    """Normalize to JSON, then mask secrets by key name and by text pattern."""

    return _to_json(redact_structure(_to_json(value)))


def _checked_filename(log_filename: str) -> str:
    name = log_filename.strip()
    if not name:
        raise ValueError("log_filename must not be empty")
    if Path(name).name != name:
        raise ValueError("log_filename must not include path separators")
    return name


def _level_number(value: int | str) -> int:
    if isinstance(value, int):
        return value
    number = logging.getLevelName(value.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return number


def _utc_timestamp(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_text(value: JSONValue) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else repr(value)


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_to_json(item) for item in value), key=repr)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (Path, datetime)):
        return str(value)
    return repr(value)


__all__ = [
    "JSONValue",
    "LOG_FILENAME",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "log_session_block",
    "reset_correlation_fields",
    "session_block_body",
    "set_correlation_fields",
    "setup_structured_logging",
    "shutdown_logging",
]
