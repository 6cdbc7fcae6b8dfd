"""
Deduplicating writer over a tabular store (Google Sheet or local SQLite sheet).

Row layout (1-based row numbers; row 1 is the header):

    Date | Company | Role | Location | Apply Link | AI Classification | AI Summary | Status

The Apply Link column is the dedup key. Existing links are read from the store
on every `insert()` and passed along explicitly; nothing is cached between
calls because the sheet may be edited by hand between runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from . import logging_bridge
from .models import ClassifiedPosting, InsertStats, Label, SheetStats
from .utils import or_sentinel, today_str

log = logging.getLogger(__name__)

HEADERS: tuple[str, ...] = (
    "Date",
    "Company",
    "Role",
    "Location",
    "Apply Link",
    "AI Classification",
    "AI Summary",
    "Status",
)
LINK_COL = HEADERS.index("Apply Link")
LABEL_COL = HEADERS.index("AI Classification")
STATUS_COL = HEADERS.index("Status")

INITIAL_STATUS = "New"

RGB = tuple[float, float, float]


class StoreError(RuntimeError):
    """Raised by a backend when the underlying store cannot be read or written."""


@dataclass(frozen=True)
class TagRule:
    """Conditional format: cells equal to `value` get these colours."""

    value: str
    background: RGB
    foreground: RGB


TAG_RULES: tuple[TagRule, ...] = (
    TagRule(Label.GOOD_FIT.value, background=(0.8, 1.0, 0.8), foreground=(0.0, 0.5, 0.0)),
    TagRule(Label.MAYBE_FIT.value, background=(1.0, 1.0, 0.8), foreground=(0.8, 0.6, 0.0)),
    TagRule(Label.IGNORE.value, background=(1.0, 0.8, 0.8), foreground=(0.8, 0.0, 0.0)),
)


# =============================================================================
# BACKEND INTERFACE
# =============================================================================
class SheetBackend(ABC):
    """
    Minimal tabular store contract.

    Columns are 0-based indexes, rows are 1-based (row 1 = header), matching
    spreadsheet conventions. Implementations raise StoreError on failure.
    """

    @abstractmethod
    def read_row(self, row: int) -> list[str]:
        """Cells of one row; [] if the row is empty/absent."""

    @abstractmethod
    def write_row(self, row: int, values: Sequence[str]) -> None:
        """Overwrite one row starting at column 0."""

    @abstractmethod
    def read_column(self, col: int) -> list[str]:
        """Every cell of one column from row 1 down (header included)."""

    @abstractmethod
    def read_rows(self) -> list[list[str]]:
        """The whole table, header included."""

    @abstractmethod
    def append_rows(self, rows: Sequence[Sequence[str]]) -> str | None:
        """Add rows after the last one in a single call (never overwrite). Returns the range written, if known."""

    @abstractmethod
    def update_cell(self, row: int, col: int, value: str) -> None:
        """Set a single cell."""

    @abstractmethod
    def style_header(self, width: int) -> None:
        """Apply header styling to row 1, columns [0, width)."""

    @abstractmethod
    def apply_tag_rules(self, col: int, rules: Sequence[TagRule]) -> None:
        """Ensure the given conditional-format rules exist on `col`; must not duplicate rules."""


# =============================================================================
# WRITER
# =============================================================================
class StoreWriter:
    def __init__(
        self,
        backend: SheetBackend,
        *,
        date_format: str = "%d/%m/%Y",
        today: Callable[[], str] | None = None,
    ) -> None:
        self.backend = backend
        self.date_format = date_format
        self._today = today or (lambda: today_str(self.date_format))

    def ensure_header(self) -> bool:
        """Write + style the header row if missing. Returns True if it was written."""
        if any(c.strip() for c in self.backend.read_row(1)):
            return False
        log.info("Adding headers to sheet...")
        self.backend.write_row(1, list(HEADERS))
        self.backend.style_header(len(HEADERS))
        return True

    def existing_links(self) -> set[str]:
        """Fresh read of the Apply Link column (header literal and blanks excluded)."""
        cells = self.backend.read_column(LINK_COL)
        return {c.strip() for c in cells if c and c.strip() and c.strip() != HEADERS[LINK_COL]}

    def insert(self, classified: Sequence[ClassifiedPosting]) -> InsertStats:
        """
        Append postings whose apply link is not yet stored.

        Links repeated within `classified` are kept once (first wins) and the
        repeats count as duplicates. Empty input touches nothing.
        """
        if not classified:
            return InsertStats(inserted=0, duplicates=0)

        self.ensure_header()
        new_items, duplicates = partition_new(classified, self.existing_links())

        if not new_items:
            logging_bridge.activity({
                "component": "job_scout.store",
                "op": "insert",
                "inserted": 0,
                "duplicates": duplicates,
            })
            return InsertStats(inserted=0, duplicates=duplicates)

        date_cell = self._today()
        rows = [build_row(c, date_cell) for c in new_items]
        updated_range = self.backend.append_rows(rows)

        try:
            self.backend.apply_tag_rules(LABEL_COL, TAG_RULES)
        except Exception as e:
            log.warning("Could not apply conditional formatting: %s", e)
            logging_bridge.error({
                "component": "job_scout.store",
                "op": "apply_tag_rules",
                "error": repr(e),
            })

        logging_bridge.activity({
            "component": "job_scout.store",
            "op": "insert",
            "inserted": len(rows),
            "duplicates": duplicates,
            "range": updated_range,
        })
        return InsertStats(inserted=len(rows), duplicates=duplicates, updated_range=updated_range)


def link_key(c: ClassifiedPosting) -> str:
    return or_sentinel(c.apply_link, "N/A")


def partition_new(
    classified: Sequence[ClassifiedPosting],
    existing: set[str],
) -> tuple[list[ClassifiedPosting], int]:
    """Split input into (new items in input order, duplicate count) against `existing`."""
    seen = set(existing)
    fresh: list[ClassifiedPosting] = []
    for c in classified:
        key = link_key(c)
        if key in seen:
            continue
        seen.add(key)
        fresh.append(c)
    return fresh, len(classified) - len(fresh)


def build_row(c: ClassifiedPosting, date_cell: str) -> list[str]:
    p, v = c.posting, c.verdict
    return [
        date_cell,
        or_sentinel(p.company, "N/A"),
        or_sentinel(p.title, "N/A"),
        or_sentinel(p.location, "N/A"),
        link_key(c),
        or_sentinel(v.label.value if v else None, "UNPROCESSED"),
        or_sentinel(v.summary if v else None, "Not processed"),
        INITIAL_STATUS,
    ]


# =============================================================================
# STATUS + STATS (read/modify existing rows)
# =============================================================================
def update_status(backend: SheetBackend, apply_link: str, status: str) -> bool:
    """Set the Status cell of the row whose Apply Link matches. False if not found."""
    target = (apply_link or "").strip()
    for idx, cell in enumerate(backend.read_column(LINK_COL)):
        if idx == 0:
            continue  # header
        if cell.strip() == target:
            backend.update_cell(idx + 1, STATUS_COL, status)
            logging_bridge.activity({
                "component": "job_scout.store",
                "op": "update_status",
                "row": idx + 1,
                "status": status,
            })
            return True
    return False


def sheet_stats(backend: SheetBackend) -> SheetStats:
    rows = backend.read_rows()[1:]  # skip header

    def cell(row: list[str], col: int) -> str:
        return row[col] if len(row) > col else ""

    labels = [cell(r, LABEL_COL) for r in rows]
    statuses = [cell(r, STATUS_COL) for r in rows]
    return SheetStats(
        total=len(rows),
        good_fit=labels.count(Label.GOOD_FIT.value),
        maybe_fit=labels.count(Label.MAYBE_FIT.value),
        ignore=labels.count(Label.IGNORE.value),
        applied=statuses.count("Applied"),
        new=statuses.count(INITIAL_STATUS),
    )
