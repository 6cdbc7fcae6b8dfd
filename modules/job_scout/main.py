from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'job_scout' module.

    Accepts kwargs (from the CLI or a caller), including:
      store: "sheets" | "sqlite"
      sqlite_path: str = "/app/local/state/jobscout.db"
      queries: list[str] | str
      profile: dict | str          # derive queries when none are given
      location: str = "india"
      max_jobs: int = 50
      batch_size: int = 15

      # Special-run flags:
      postings: list[Posting]      # pre-fetched; skips the search source
      include_jobs: bool = False   # echo classified postings in the report

    Returns:
      The run report as a plain dict (camelCase keys).
    """
    postings = kwargs.pop("postings", None)
    if postings is not None:
        kwargs.setdefault("skip_fetch", True)

    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "job_scout.main",
        "op": "start",
        "store": settings.store,
        "queries": settings.queries,
        "location": settings.location,
        "flags": {
            "skip_fetch": settings.skip_fetch,
            "include_jobs": settings.include_jobs,
        },
    })

    report = _run_engine(settings, postings=postings)
    return report.to_dict(include_jobs=settings.include_jobs)
