from __future__ import annotations

import logging
from typing import Any

from .http_client import redact_url

# Prefer the service's JSONL writer; stay importable (and silent) without it.
_logging_backend = None
try:
    from service import logging_utils as _svc_logging

    _logging_backend = _svc_logging
except ImportError:
    _logging_backend = None

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "token",
    "bot_token",
    "secret",
    "authorization",
    "auth",
    "bearer",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record, redact secret-like top-level fields and scrub bot tokens
    out of string values (Telegram puts the token in the request path).
    """
    redacted: dict[str, Any] = {}
    for k, v in record.items():
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_token") or lk.endswith("_secret"):
            redacted[k] = "***REDACTED***"
        elif isinstance(v, str):
            redacted[k] = redact_url(v)
        else:
            redacted[k] = v
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the service JSONL log if available.
    Falls back to stdlib logging as structured info.
    """
    payload = _redact_record(record)
    if _logging_backend is not None:
        try:
            _logging_backend.write_activity_log(payload)
            return
        except OSError:
            logging.getLogger("job_alert.activity").debug("JSONL activity write failed", exc_info=True)
    logging.getLogger("job_alert.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the service JSONL log if available, and always echo
    it to stdlib logging so failures show up on the console.
    """
    payload = _redact_record(record)
    logging.getLogger("job_alert.error").error(payload)
    if _logging_backend is not None:
        try:
            _logging_backend.write_error_log(payload)
        except OSError:
            logging.getLogger("job_alert.error").debug("JSONL error write failed", exc_info=True)
