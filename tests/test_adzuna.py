# tests/test_adzuna.py
import pytest
import requests

from modules.job_scout.lib.adzuna import AdzunaSource, to_posting
from modules.job_scout.lib.config import ConfigError
from modules.job_scout.lib.rate_limit import IntervalLimiter


def _job(n, **extra):
    job = {
        "id": str(n),
        "title": f"Node Developer {n}",
        "company": {"display_name": "Acme"},
        "location": {"display_name": "Pune, Maharashtra"},
        "description": "Node.js and React",
        "redirect_url": f"https://adzuna.example/{n}",
        "created": "2025-01-02T03:04:05Z",
        "salary_min": 400000,
        "salary_max": 600000,
    }
    job.update(extra)
    return job


class _FakeHttp:
    """Maps (query, page) -> list of jobs or an exception."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def get_json(self, url, *, params=None, headers=None, timeout=None):
        page = int(url.rsplit("/", 1)[-1])
        self.calls.append((params["what"], page, params["where"]))
        result = self.pages.get((params["what"], page), [])
        if isinstance(result, Exception):
            raise result
        return {"results": result}

    def close(self):
        pass


def _source(http, clock, **kw):
    limiter = IntervalLimiter(1.0, clock=clock, sleep=clock.sleep)
    return AdzunaSource("app-id", "app-key", http=http, limiter=limiter, **kw)


def test_to_posting_normalises_fields():
    p = to_posting(_job(1), "node developer")
    assert p.apply_link == "https://adzuna.example/1"
    assert p.company == "Acme"
    assert p.location == "Pune, Maharashtra"
    assert p.salary == "400000 - 600000"
    assert p.search_query == "node developer"
    assert p.source_id == "1"


def test_to_posting_sentinels():
    p = to_posting({"title": "  "}, "q")
    assert (p.apply_link, p.title, p.company, p.location, p.description) == ("N/A",) * 5
    assert p.salary == "N/A"
    assert p.posted_date  # stamped with now


def test_fetch_many_dedupes_across_queries(fake_clock):
    http = _FakeHttp({
        ("mern developer", 1): [_job(1), _job(2)],
        ("react developer", 1): [_job(2), _job(3)],
    })
    posts = _source(http, fake_clock).fetch_many(["mern developer", "react developer"], "india")

    assert [p.apply_link for p in posts] == [f"https://adzuna.example/{n}" for n in (1, 2, 3)]
    assert posts[1].search_query == "mern developer"  # first occurrence wins
    assert fake_clock.sleeps == [1.0]  # one pause between the two queries


def test_failing_query_is_skipped(fake_clock):
    http = _FakeHttp({
        ("a", 1): requests.HTTPError("401 Client Error"),
        ("b", 1): [_job(9)],
    })
    posts = _source(http, fake_clock).fetch_many(["a", "b"])
    assert [p.source_id for p in posts] == ["9"]


def test_pages_stop_on_short_page(fake_clock):
    http = _FakeHttp({
        ("q", 1): [_job(1), _job(2)],
        ("q", 2): [_job(3)],
        ("q", 3): [_job(4), _job(5)],
    })
    posts = _source(http, fake_clock, results_per_page=2).fetch_many(["q"], pages=3)

    assert [p.source_id for p in posts] == ["1", "2", "3"]
    assert [c[1] for c in http.calls] == [1, 2]


def test_missing_credentials():
    with pytest.raises(ConfigError):
        AdzunaSource("", "key")
