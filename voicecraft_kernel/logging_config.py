"""
Structured JSON logging for the voicecraft kernel.

Every kernel module logs through ``get_logger(<dotted name>)``; the message
is an event name (``ledger_entry_recorded``, ``accept_estimate_rejected``)
and the payload travels in ``extra``.  ``StructuredFormatter`` writes one
JSON object per line: the envelope, the fields bound in ``LogContext`` for
the running workflow call, the extras, and the fields of a logged kernel
exception.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ContextManager, Iterator
from uuid import UUID

_ROOT = "voicecraft_kernel"
_HANDLER_NAME = "voicecraft_json"

# ---------------------------------------------------------------------------
# Per-call context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "project_id", "actor_id", "action")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"voicecraft_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context[name]
    except KeyError:
        raise TypeError(f"unknown log context field {name!r}") from None


class LogContext:
    """
    Fields stamped on every line logged during one workflow call.

    TransitionService binds correlation_id, project_id, actor_id and action
    around each operation.  Values live in ContextVars, so threads and tasks
    never see each other's fields.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set the given fields; None leaves a field as it was."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        values = {name: var.get() for name, var in _context.items()}
        return {name: value for name, value in values.items() if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in _context.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> ContextManager[None]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        return _bound(fields)


@contextmanager
def _bound(fields: dict[str, Any]) -> Iterator[None]:
    pending = [(_context_var(name), value) for name, value in fields.items()]
    tokens = [(var, var.set(str(value))) for var, value in pending if value is not None]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else on a record came from extra.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, exc_info) -> dict[str, Any]:
        """Type, message and traceback, plus ``code`` and the data a kernel error carries."""
        exc = exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        fields.update(
            (f"exc_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_")
        )
        fields["traceback"] = self.formatException(exc_info)
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``voicecraft_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


_lock = threading.Lock()


def _installed(logger: logging.Logger) -> logging.Handler | None:
    return next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Install the JSON handler on the ``voicecraft_kernel`` logger.

    get_engine() and the config bridge both call this; only the first call
    installs anything, later ones return the handler already in place.
    """
    logger = logging.getLogger(_ROOT)
    with _lock:
        existing = _installed(logger)
        if existing is not None:
            return existing
        installed = handler
        if installed is None:
            installed = logging.StreamHandler(stream or sys.stderr)
        installed.set_name(_HANDLER_NAME)
        installed.setFormatter(StructuredFormatter())
        logger.addHandler(installed)
        logger.setLevel(level)
        logger.propagate = False
        return installed


def reset_logging() -> None:
    """Remove the JSON handler and restore the logger's defaults (tests)."""
    logger = logging.getLogger(_ROOT)
    with _lock:
        for installed in [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]:
            logger.removeHandler(installed)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
