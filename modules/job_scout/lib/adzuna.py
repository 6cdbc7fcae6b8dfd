from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import requests

from . import logging_bridge
from .config import ConfigError
from .http_client import HttpClient
from .models import Posting
from .rate_limit import IntervalLimiter
from .utils import now_iso, or_sentinel

log = logging.getLogger(__name__)

ADZUNA_BASE_URL = "https://api.adzuna.com/v1/api"


def _strip(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _salary(job: dict[str, Any]) -> str:
    high = job.get("salary_max")
    if not high:
        return "N/A"
    return f"{job.get('salary_min') or 0} - {high}"


def to_posting(job: dict[str, Any], query: str) -> Posting:
    """Map one Adzuna result object to a Posting ('N/A' for absent fields)."""
    return Posting(
        apply_link=or_sentinel(job.get("redirect_url") or job.get("url"), "N/A"),
        title=or_sentinel(job.get("title"), "N/A"),
        company=or_sentinel((job.get("company") or {}).get("display_name"), "N/A"),
        location=or_sentinel((job.get("location") or {}).get("display_name"), "N/A"),
        description=or_sentinel(job.get("description"), "N/A"),
        posted_date=_strip(job.get("created")) or now_iso(),
        search_query=query,
        salary=_salary(job),
        source_id=_strip(job.get("id")),
    )


class AdzunaSource:
    """
    Paginated Adzuna search with query templating.

    Queries run one after another with `query_interval_s` between them; a
    failing query is logged and skipped.
    """

    def __init__(
        self,
        app_id: str,
        app_key: str,
        *,
        country: str = "gb",
        results_per_page: int = 20,
        query_interval_s: float = 1.0,
        http: HttpClient | None = None,
        limiter: IntervalLimiter | None = None,
    ) -> None:
        if not (app_id and app_key):
            raise ConfigError("Missing Adzuna API credentials")
        self._app_id = app_id
        self._app_key = app_key
        self.country = country
        self.results_per_page = results_per_page
        self._http = http or HttpClient(timeout=20.0)
        self._limiter = limiter or IntervalLimiter(query_interval_s)

    def search_url(self, page: int) -> str:
        return f"{ADZUNA_BASE_URL}/jobs/{self.country}/search/{page}"

    def fetch(self, query: str, location: str = "india", page: int = 1) -> list[Posting]:
        """One page of results; raises requests exceptions on failure."""
        params = {
            "app_id": self._app_id,
            "app_key": self._app_key,
            "results_per_page": str(self.results_per_page),
            "what": query,
            "where": location,
            "content-type": "application/json",
        }
        log.info("Fetching jobs from Adzuna: %s in %s (page %d)", query, location, page)
        data = self._http.get_json(self.search_url(page), params=params)
        results = data.get("results") or []
        return [to_posting(job, query) for job in results if isinstance(job, dict)]

    def fetch_many(self, queries: Iterable[str], location: str = "india", *, pages: int = 1) -> list[Posting]:
        """All queries x pages, deduplicated by apply link (first occurrence wins)."""
        queries = list(queries)
        seen: set[str] = set()
        out: list[Posting] = []
        failures = 0
        for query in queries:
            for page in range(1, pages + 1):
                self._limiter.acquire()
                try:
                    batch = self.fetch(query, location, page)
                except (requests.RequestException, ValueError) as e:
                    failures += 1
                    logging_bridge.error({
                        "component": "job_scout.adzuna",
                        "op": "fetch",
                        "query": query,
                        "page": page,
                        "error": repr(e),
                    })
                    break
                for p in batch:
                    if p.apply_link in seen:
                        continue
                    seen.add(p.apply_link)
                    out.append(p)
                if len(batch) < self.results_per_page:
                    break

        logging_bridge.activity({
            "component": "job_scout.adzuna",
            "op": "fetched",
            "location": location,
            "queries": queries,
            "unique": len(out),
            "failed_queries": failures,
        })
        return out

    def close(self) -> None:
        self._http.close()
