from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .queries import build_queries
from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Defaults
# -----------------------------
DEFAULT_QUERIES: tuple[str, ...] = (
    "mern developer",
    "node.js backend developer",
    "react node developer",
    "javascript full stack developer",
    "typescript backend developer",
)

STORE_KINDS = ("sheets", "sqlite")


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for a 'job_scout' run.

    Credentials come from the environment; everything else may be overridden
    by kwargs (CLI / caller). Validation happens once, at construction, so a
    missing key is a startup failure and never a per-posting one.
    """

    # Classification service
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # Store
    store: str = "sheets"
    sheet_id: str = ""
    sheet_name: str | None = None
    service_account_json: str = ""
    sqlite_path: str = "/app/local/state/jobscout.db"
    date_format: str = "%d/%m/%Y"

    # Search source
    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    adzuna_country: str = "gb"
    queries: list[str] = field(default_factory=lambda: list(DEFAULT_QUERIES))
    resume_text: str = ""  # set only when queries/profile are not given explicitly
    location: str = "india"
    max_jobs: int = 50

    # Pacing
    batch_size: int = 15
    call_interval_s: float = 6.5
    quota_backoff_s: float = 10.0

    # Run flags
    skip_fetch: bool = False
    include_jobs: bool = False
    store_only: bool = False

    # ------------- convenience -------------
    def service_account_info(self) -> dict[str, Any]:
        """Parse the service-account JSON blob (validated at construction)."""
        return json.loads(self.service_account_json)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from env + kwargs with validation (kwargs win).

        Recognized kwargs:

            store: "sheets" | "sqlite"
            sqlite_path: str
            sheet_name: str
            queries: list[str] | str (comma separated)
            profile: dict | str(JSON)    # derive queries when none are given
            resume_text: str             # or resume_path / JOB_SCOUT_RESUME_PATH;
                                         # profile extracted by Gemini at run time
            location: str
            max_jobs: int = 50
            batch_size: int = 15
            call_interval_s: float = 6.5
            quota_backoff_s: float = 10.0
            skip_fetch: bool = false     # caller supplies postings itself
            include_jobs: bool = false   # echo classified postings in the report
            store_only: bool = false     # store maintenance only; no API keys needed
        """
        kw = dict(kwargs or {})

        def pick(key: str, env: str, default: Any = None) -> Any:
            val = kw.get(key)
            if val is None or val == "":
                val = os.getenv(env)
            return default if val is None or val == "" else val

        try:
            settings = cls(
                gemini_api_key=str(pick("gemini_api_key", "GEMINI_API_KEY", "")).strip(),
                gemini_model=str(pick("gemini_model", "GEMINI_MODEL", "gemini-2.0-flash")),
                store=str(pick("store", "JOB_SCOUT_STORE", "sheets")).strip().lower(),
                sheet_id=str(pick("sheet_id", "GOOGLE_SHEET_ID", "")).strip(),
                sheet_name=(str(pick("sheet_name", "GOOGLE_SHEET_NAME", "")).strip() or None),
                service_account_json=str(pick("service_account_json", "GOOGLE_SERVICE_ACCOUNT_JSON", "")),
                sqlite_path=str(pick("sqlite_path", "JOB_SCOUT_SQLITE_PATH", "/app/local/state/jobscout.db")),
                date_format=str(pick("date_format", "JOB_SCOUT_DATE_FORMAT", "%d/%m/%Y")),
                adzuna_app_id=str(pick("adzuna_app_id", "ADZUNA_APP_ID", "")).strip(),
                adzuna_app_key=str(pick("adzuna_app_key", "ADZUNA_APP_KEY", "")).strip(),
                adzuna_country=str(pick("adzuna_country", "ADZUNA_COUNTRY", "gb")).strip().lower(),
                queries=_parse_queries(kw.get("queries"), kw.get("profile")),
                resume_text=_resume_text(kw, pick("resume_path", "JOB_SCOUT_RESUME_PATH", "")),
                location=str(pick("location", "JOB_SCOUT_LOCATION", "india")),
                max_jobs=int(pick("max_jobs", "JOB_SCOUT_MAX_JOBS", 50)),
                batch_size=int(pick("batch_size", "JOB_SCOUT_BATCH_SIZE", 15)),
                call_interval_s=float(pick("call_interval_s", "JOB_SCOUT_CALL_INTERVAL_S", 6.5)),
                quota_backoff_s=float(pick("quota_backoff_s", "JOB_SCOUT_QUOTA_BACKOFF_S", 10.0)),
                skip_fetch=truthy(kw.get("skip_fetch")),
                include_jobs=truthy(kw.get("include_jobs")),
                store_only=truthy(kw.get("store_only")),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid job_scout setting: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _parse_queries(value: Any, profile: Any = None) -> list[str]:
    """
    Accept a list of strings or a comma-separated string.
    Empty/absent -> queries derived from `profile` (dict or JSON), else DEFAULT_QUERIES.
    """
    if value is None or value == "":
        if profile:
            if isinstance(profile, str):
                try:
                    profile = json.loads(profile)
                except json.JSONDecodeError as e:
                    raise ConfigError("'profile' must be a JSON object.") from e
            if not isinstance(profile, Mapping):
                raise ConfigError("'profile' must be a JSON object.")
            derived = build_queries(profile)
            if derived:
                return derived
        return list(DEFAULT_QUERIES)
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ConfigError("'queries' must be a list of strings or a comma-separated string.")
    out = [str(q).strip() for q in items]
    if any(not q for q in out):
        raise ConfigError("All queries must be non-empty strings.")
    return out


def _resume_text(kw: Mapping[str, Any], path: str) -> str:
    """
    Resume text used to derive queries at run time.
    Ignored when queries or a profile are given, or when no search will run.
    """
    if kw.get("queries") or kw.get("profile"):
        return ""
    if truthy(kw.get("skip_fetch")) or truthy(kw.get("store_only")):
        return ""
    text = str(kw.get("resume_text") or "")
    if not text.strip() and path:
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except OSError as e:
            raise ConfigError(f"Cannot read resume file {path!r}: {e}") from e
    return text.strip()


def _validate_settings(s: Settings) -> None:
    if not s.store_only and not s.gemini_api_key:
        raise ConfigError("Missing Gemini API key (GEMINI_API_KEY).")

    if s.store not in STORE_KINDS:
        raise ConfigError(f"'store' must be one of {STORE_KINDS}, got {s.store!r}.")
    if s.store == "sheets":
        if not s.sheet_id:
            raise ConfigError("Missing Google Sheet ID (GOOGLE_SHEET_ID).")
        if not s.service_account_json.strip():
            raise ConfigError("Missing Google Service Account JSON (GOOGLE_SERVICE_ACCOUNT_JSON).")
        try:
            info = json.loads(s.service_account_json)
        except json.JSONDecodeError as e:
            raise ConfigError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON.") from e
        if not isinstance(info, dict):
            raise ConfigError("GOOGLE_SERVICE_ACCOUNT_JSON must be a JSON object.")
    elif not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")

    if not (s.skip_fetch or s.store_only) and not (s.adzuna_app_id and s.adzuna_app_key):
        raise ConfigError("Missing Adzuna API credentials (ADZUNA_APP_ID / ADZUNA_APP_KEY).")

    if s.batch_size < 1:
        raise ConfigError("'batch_size' must be >= 1.")
    if s.max_jobs < 1:
        raise ConfigError("'max_jobs' must be >= 1.")
    if s.call_interval_s < 0 or s.quota_backoff_s < 0:
        raise ConfigError("'call_interval_s' and 'quota_backoff_s' must be >= 0.")
