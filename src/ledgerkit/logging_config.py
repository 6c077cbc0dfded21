"""Logging setup for ledgerkit.

Services obtain loggers through :func:`get_logger`, which places them under the
``ledgerkit`` namespace. Nothing is emitted until :func:`configure_logging`
attaches a handler (the CLI does this when ``--log-level`` is given).
"""

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

_LOGGER_PREFIX = "ledgerkit"

_operation: ContextVar[Optional[str]] = ContextVar("ledgerkit_operation", default=None)


class LogContext:
    """Context holder for the operation currently being performed."""

    @staticmethod
    def bind(operation: str) -> "_OperationScope":
        """Tag every record logged inside the ``with`` block with ``operation``."""
        return _OperationScope(operation)

    @staticmethod
    def current() -> Optional[str]:
        return _operation.get()


class _OperationScope:
    def __init__(self, operation: str):
        self._operation = operation
        self._token = None

    def __enter__(self) -> None:
        self._token = _operation.set(self._operation)

    def __exit__(self, *exc: Any) -> None:
        _operation.reset(self._token)


_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {
    "message",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Format each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        operation = LogContext.current()
        if operation is not None:
            payload["operation"] = operation

        # Structured fields passed through ``extra=``
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ledgerkit namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    level: int = logging.INFO,
    stream: Any = None,
    structured: bool = True,
) -> None:
    """Attach a stream handler to the ledgerkit logger hierarchy (idempotent).

    Args:
        level: Minimum level to emit
        stream: Output stream, defaults to stderr
        structured: Emit JSON lines when True, plain text otherwise
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    handler = logging.StreamHandler(stream or sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove handlers installed by configure_logging. Used by tests."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
