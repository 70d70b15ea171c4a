"""Logging setup: JSON output, redaction, request and sync correlation.

Records emitted anywhere in the package pick up:
- ``request_id`` of the HTTP request being served (middleware sets it)
- ``sync_action`` / ``sync_entity`` while a guarded SAP call runs
- redaction of credentials, SAP session cookies and customer contact data
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from sapsync.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_sync_context_var: ContextVar[dict[str, Any] | None] = ContextVar("sync_context", default=None)

# Field names whose values never reach a log sink. Matching is
# case-insensitive and also catches prefixed names (sap_password).
SENSITIVE_KEYS_DEFAULT: set[str] = {
    "api_key",
    "api_keys",
    "x-api-key",
    "authorization",
    "token",
    "secret",
    "password",
    "cookie",
    "set-cookie",
    "b1session",
    "routeid",
    "consumer_key",
    "consumer_secret",
    "webhook_secret",
    "redis_url",
    "email",
    "phone",
    "billing",
    "shipping",
    "request_payload",
    "response_payload",
}

# SAP Service Layer session cookies inside free text (error messages, headers)
_SESSION_COOKIE_RE = re.compile(r"\b(B1SESSION|ROUTEID)=([^;,\s]+)", re.IGNORECASE)

# LogRecord attributes that are not user extras
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


@contextmanager
def sync_context(**fields: Any) -> Iterator[None]:
    """Attach sync fields (action, entity) to every record logged inside the block.

    Usage:
        with sync_context(sync_action="manual_sync", sync_entity="order"):
            ...
    """

    current = _sync_context_var.get() or {}
    token = _sync_context_var.set({**current, **fields})
    try:
        yield
    finally:
        _sync_context_var.reset(token)


def get_sync_context() -> dict[str, Any]:
    return dict(_sync_context_var.get() or {})


def _is_sensitive_key(key: str, sensitive_keys: set[str]) -> bool:
    lowered = key.lower()
    if lowered in sensitive_keys:
        return True
    return any(lowered.endswith(f"_{k}") for k in sensitive_keys)


def scrub_text(text: str) -> str:
    """Mask SAP session cookie values embedded in text."""

    return _SESSION_COOKIE_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", text)


def _redact_value(value: Any, sensitive_keys: set[str]) -> Any:
    """Recursively redact sensitive mapping keys and session cookies in strings."""

    if isinstance(value, Mapping):
        return {
            k: REDACTED if _is_sensitive_key(str(k), sensitive_keys) else _redact_value(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v, sensitive_keys) for v in value)
    if isinstance(value, str):
        return scrub_text(value)
    return value


def _record_extras(record: LogRecord, sensitive_keys: set[str]) -> dict[str, Any]:
    """Return the record's extra fields, redacted."""

    data: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        data[key] = REDACTED if _is_sensitive_key(key, sensitive_keys) else _redact_value(value, sensitive_keys)
    return data


class RequestIdFilter(logging.Filter):
    """Copy request_id and the active sync context onto the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        for key, value in get_sync_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extras in place, before any formatter runs."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _record_extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        if isinstance(record.msg, str):
            record.msg = scrub_text(record.msg)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": scrub_text(record.getMessage()),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_record_extras(record, self.sensitive_keys))

        if record.exc_info:
            payload["exception"] = scrub_text(self.formatException(record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Stdout handler, or a (rotating) file handler when output=file."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/sapsync.log")
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

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)
    handler = _build_handler(cfg)

    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(SENSITIVE_KEYS_DEFAULT))

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter(sensitive_keys=SENSITIVE_KEYS_DEFAULT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # Connection-pool chatter from redis-py is noise at DEBUG
    logging.getLogger("redis").setLevel(max(level, logging.INFO))
