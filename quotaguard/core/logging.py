"""Log correlation and formatting for limiter events.

Engine modules log dotted event names (``rate_limit.exceeded``,
``registry.evicted``, ...) with structured ``extra`` fields. This module adds:
- the hashed key of the registry entry being dispatched, carried in a
  contextvar so every record emitted during a keyed operation can be tied to
  it without logging the raw key
- a filter that stamps that hash on records and masks raw identifiers
- a JSON formatter and ``configure_logging`` for applications that opt in
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from quotaguard.core.config import LogSettings, settings

_limiter_key_var: ContextVar[str | None] = ContextVar("limiter_key", default=None)

REDACTED = "[REDACTED]"

# Extras that may carry raw client identifiers.
RAW_KEY_FIELDS = frozenset({"key", "raw_key", "api_key", "x-api-key", "authorization"})

_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def hash_key(key: str) -> str:
    """Hash a limiter key for logging without exposing raw identifiers."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def set_limiter_key(key: str | None) -> Token:
    """Store the (hashed) limiter key for subsequent logs in this context.

    Args:
        key: Raw registry key, or None to clear.

    Returns:
        Token usable with ``reset_limiter_key`` to restore the previous value.
    """

    return _limiter_key_var.set(hash_key(key) if key is not None else None)


def reset_limiter_key(token: Token) -> None:
    _limiter_key_var.reset(token)


def get_limiter_key() -> str | None:
    """Fetch the hashed limiter key from context, if any."""

    return _limiter_key_var.get()


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields of ``record`` with raw identifiers masked."""

    return {
        name: REDACTED if name.lower() in RAW_KEY_FIELDS else value
        for name, value in record.__dict__.items()
        if name not in _RECORD_ATTRS and not name.startswith("_")
    }


class LimiterContextFilter(logging.Filter):
    """Stamp the dispatched key's hash on records and mask raw identifiers."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "limiter_key", None) is None:
            record.limiter_key = get_limiter_key()
        for name in RAW_KEY_FIELDS.intersection(record.__dict__):
            setattr(record, name, REDACTED)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: event name, level, logger and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(
            (name, value) for name, value in record_fields(record).items() if value is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(log_settings: LogSettings | None = None) -> logging.Handler:
    """Install a single root handler built from ``log_settings``.

    The engine never calls this itself; embedding applications opt in.
    ``output=file`` writes to ``file_path`` and rotates at ``max_bytes``
    (0 never rotates).

    Returns:
        The installed handler.
    """

    cfg = log_settings or settings.log

    if cfg.output.lower() == "file":
        path = Path(cfg.file_path or "logs/quotaguard.log")
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            path, maxBytes=cfg.max_bytes, backupCount=cfg.backup_count, encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.addFilter(LimiterContextFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))
    return handler
