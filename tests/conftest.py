# tests/conftest.py
import os
import tempfile
from collections.abc import Sequence

import pytest
from freezegun import freeze_time

from modules.job_scout.lib import config as js_config
from modules.job_scout.lib.db import SqliteSheetBackend
from modules.job_scout.lib.gemini import LLMOutcome, LLMStatus
from modules.job_scout.lib.models import Posting
from modules.job_scout.lib.store import SheetBackend, StoreError, TagRule

# Every env var Settings reads; cleared per test so a developer's shell never leaks in.
_JOB_SCOUT_ENV = (
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "JOB_SCOUT_STORE",
    "GOOGLE_SHEET_ID",
    "GOOGLE_SHEET_NAME",
    "GOOGLE_SERVICE_ACCOUNT_JSON",
    "JOB_SCOUT_SQLITE_PATH",
    "JOB_SCOUT_DATE_FORMAT",
    "ADZUNA_APP_ID",
    "ADZUNA_APP_KEY",
    "ADZUNA_COUNTRY",
    "JOB_SCOUT_LOCATION",
    "JOB_SCOUT_MAX_JOBS",
    "JOB_SCOUT_BATCH_SIZE",
    "JOB_SCOUT_CALL_INTERVAL_S",
    "JOB_SCOUT_QUOTA_BACKOFF_S",
    "JOB_SCOUT_RESUME_PATH",
)


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, request):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="js-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("LOG_DISABLE", raising=False)

    # Live runs keep the real credentials from the shell.
    if "live" not in request.keywords:
        for name in _JOB_SCOUT_ENV:
            monkeypatch.delenv(name, raising=False)

    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------
class FakeClock:
    """Monotonic clock whose sleep() only advances time (and records the call)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# ---------------------------------------------------------------------
# Gemini stand-in
# ---------------------------------------------------------------------
class FakeGenerator:
    """
    Replays queued LLMOutcomes (or raw text, taken as SUCCESS) in order.
    When the queue is empty the last entry repeats.
    """

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> LLMOutcome:
        self.prompts.append(prompt)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return LLMOutcome(LLMStatus.SUCCESS, text=item)
        return item


@pytest.fixture
def fake_generator():
    return FakeGenerator


# ---------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------
class MemorySheet(SheetBackend):
    """
    In-memory sheet that records every backend call.

    fail_appends: 1-based append call numbers that raise StoreError.
    fail_tagging: make apply_tag_rules raise.
    """

    def __init__(self, rows: Sequence[Sequence[str]] = (), *, fail_appends=(), fail_tagging=False) -> None:
        self.rows: list[list[str]] = [list(r) for r in rows]
        self.calls: list[str] = []
        self.appends = 0
        self.fail_appends = set(fail_appends)
        self.fail_tagging = fail_tagging
        self.header_styled = False
        self.tag_rules: dict[int, list[TagRule]] = {}

    def read_row(self, row: int) -> list[str]:
        self.calls.append("read_row")
        return list(self.rows[row - 1]) if len(self.rows) >= row else []

    def write_row(self, row: int, values: Sequence[str]) -> None:
        self.calls.append("write_row")
        while len(self.rows) < row:
            self.rows.append([])
        self.rows[row - 1] = list(values)

    def read_column(self, col: int) -> list[str]:
        self.calls.append("read_column")
        return [r[col] if len(r) > col else "" for r in self.rows]

    def read_rows(self) -> list[list[str]]:
        self.calls.append("read_rows")
        return [list(r) for r in self.rows]

    def append_rows(self, rows: Sequence[Sequence[str]]) -> str | None:
        self.calls.append("append_rows")
        self.appends += 1
        if self.appends in self.fail_appends:
            raise StoreError(f"append #{self.appends} refused")
        first = len(self.rows) + 1
        self.rows.extend(list(r) for r in rows)
        return f"A{first}:H{len(self.rows)}"

    def update_cell(self, row: int, col: int, value: str) -> None:
        self.calls.append("update_cell")
        cells = self.rows[row - 1]
        cells.extend([""] * (col + 1 - len(cells)))
        cells[col] = value

    def style_header(self, width: int) -> None:
        self.calls.append("style_header")
        self.header_styled = True

    def apply_tag_rules(self, col: int, rules: Sequence[TagRule]) -> None:
        self.calls.append("apply_tag_rules")
        if self.fail_tagging:
            raise StoreError("formatting not allowed")
        have = self.tag_rules.setdefault(col, [])
        have.extend([r for r in rules if r not in have])

    @property
    def data_rows(self) -> list[list[str]]:
        return self.rows[1:]


@pytest.fixture
def memory_sheet():
    return MemorySheet


@pytest.fixture
def sqlite_sheet(tmp_path):
    return SqliteSheetBackend(str(tmp_path / "sheet.db"))


# ---------------------------------------------------------------------
# Domain helpers
# ---------------------------------------------------------------------
@pytest.fixture
def make_posting():
    def _make(n: int | str, **overrides) -> Posting:
        fields = {
            "apply_link": f"https://jobs.example.com/{n}",
            "title": f"Node.js Developer {n}",
            "company": f"Acme {n}",
            "location": "Bengaluru",
            "description": "Build REST APIs with Node.js, Express and MongoDB.",
            "search_query": "node.js backend developer",
        }
        fields.update(overrides)
        return Posting(**fields)

    return _make


@pytest.fixture
def settings_factory(tmp_path):
    """Build a fresh Settings per call: sqlite store in tmp, no search fetch, no pacing."""

    def _build(**overrides):
        kwargs = {
            "gemini_api_key": "test-gemini-key",
            "store": "sqlite",
            "sqlite_path": str(tmp_path / "jobscout.db"),
            "skip_fetch": True,
            "call_interval_s": 0,
            "quota_backoff_s": 0,
        }
        kwargs.update(overrides)
        return js_config.Settings.from_env_and_kwargs(kwargs)

    return _build
