"""Structured JSON logging with request correlation and secret redaction.

Services log event names (``rate_limit.exceeded``, ``cache.read_failed``)
with structured ``extra`` fields. Store failures carry a
``diagnostic_code`` (``0168``, ``0201``...) that the formatter lifts next
to the message so operators can grep one field across services.

Redaction matches field names by marker, not exact name: any extra whose
name contains ``password``, ``secret``, ``api_key``... is masked, which
covers ``redis_password`` and ``app_admin_api_keys`` without listing them.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

SENSITIVE_MARKERS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "cookie",
)

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}

# Extras promoted to fixed positions in the JSON line
_PROMOTED = ("request_id", "diagnostic_code")

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def is_sensitive(name: str, markers: Iterable[str] = SENSITIVE_MARKERS) -> bool:
    """True when a field name looks like it holds a credential.

    Examples:
        >>> is_sensitive("X-API-Key")
        True
        >>> is_sensitive("cache_key")
        False
    """
    normalized = name.lower().replace("-", "_")
    return any(marker in normalized for marker in markers)


def redact(value: Any, markers: Iterable[str] = SENSITIVE_MARKERS) -> Any:
    """Mask credential-looking keys inside nested mappings and sequences."""

    markers = tuple(markers)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if is_sensitive(str(k), markers) else redact(v, markers)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, markers) for v in value)
    return value


def record_extras(record: LogRecord, markers: Iterable[str] = SENSITIVE_MARKERS) -> dict[str, Any]:
    """Fields passed via ``extra=``, with credentials masked."""

    markers = tuple(markers)
    return {
        key: REDACTED if is_sensitive(key, markers) else redact(value, markers)
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id of the current context."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask credentials on the record itself, so every formatter sees them masked."""

    def __init__(self, markers: Iterable[str] | None = None) -> None:
        super().__init__()
        self.markers = tuple(markers or SENSITIVE_MARKERS)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        record.__dict__.update(record_extras(record, self.markers))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Layout: ``timestamp``, ``level``, ``logger``, ``message``, then
    ``request_id`` and ``diagnostic_code`` when present, then remaining
    extras, then ``exc_type``/``exc_info`` for logged exceptions.
    """

    def __init__(
        self,
        *,
        markers: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.markers = tuple(markers or SENSITIVE_MARKERS)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = record_extras(record, self.markers)
        extras.setdefault("request_id", get_request_id())
        for name in _PROMOTED:
            value = extras.pop(name, None)
            if value is not None:
                payload[name] = value
        payload.update(extras)

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the JSON (or plain) handler on the root logger.

    Safe to call more than once; each call replaces the previous handler.

    Args:
        log_settings: Log configuration; the global settings when omitted.
    """

    cfg = log_settings or settings.log
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # uvicorn installs its own handlers
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # redis-py reconnect chatter; store failures are reported by the services
    logging.getLogger("redis").setLevel(max(level, logging.WARNING))
