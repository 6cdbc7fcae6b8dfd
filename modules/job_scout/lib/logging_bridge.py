from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _sink

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "api_key",
    "apikey",
    "app_key",
    "gemini_api_key",
    "service_account_json",
    "private_key",
    "token",
    "secret",
    "authorization",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    The sink scrubs nested values again on write.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_key"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the JSONL sink.
    Falls back to stdlib logging if the sink cannot write.
    """
    payload = _redact_record(record)
    try:
        _sink.write_activity_log(payload)
    except OSError:
        logging.getLogger("job_scout.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the JSONL sink.
    Falls back to stdlib logging if the sink cannot write.
    """
    payload = _redact_record(record)
    try:
        _sink.write_error_log(payload)
    except OSError:
        logging.getLogger("job_scout.error").error(payload)
