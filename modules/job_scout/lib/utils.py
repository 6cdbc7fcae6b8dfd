from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def today_str(fmt: str) -> str:
    """Local calendar date for the 'Date' column of a new sheet row."""
    return date.today().strftime(fmt)


def clip(text: str | None, limit: int) -> str:
    """Truncate to at most `limit` characters; None becomes ''."""
    return (text or "")[: max(0, limit)]


def or_sentinel(value: Any, sentinel: str) -> str:
    s = str(value).strip() if value is not None else ""
    return s or sentinel


_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.I)


def strip_code_fences(text: str) -> str:
    """Drop markdown ``` / ```json fences that models like to wrap JSON in."""
    return _FENCE_RE.sub("", text or "").strip()


def col_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters
