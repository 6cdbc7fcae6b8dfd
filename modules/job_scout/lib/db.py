"""
SQLite-backed sheet for local runs and tests.

Mirrors the spreadsheet model the writer expects: numbered rows of string
cells, a header row, and per-column conditional formatting rules kept as
metadata.
"""

from __future__ import annotations

import contextlib
import json
import os
import sqlite3
from collections.abc import Sequence

from .store import SheetBackend, StoreError, TagRule
from .utils import col_letter

# ---- Public API -------------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def count_rows(sqlite_path: str) -> int:
    """Return total data rows (header excluded); 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM sheet_rows WHERE row_num > 1").fetchone()
    return int(n or 0)


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    with contextlib.suppress(FileNotFoundError):
        os.remove(sqlite_path)


class SqliteSheetBackend(SheetBackend):
    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        init_db(sqlite_path)

    # ---- reads ----
    def read_row(self, row: int) -> list[str]:
        with self._conn() as conn:
            hit = conn.execute("SELECT cells FROM sheet_rows WHERE row_num = ?", (row,)).fetchone()
        return json.loads(hit[0]) if hit else []

    def read_column(self, col: int) -> list[str]:
        return [r[col] if len(r) > col else "" for r in self.read_rows()]

    def read_rows(self) -> list[list[str]]:
        with self._conn() as conn:
            found = conn.execute("SELECT row_num, cells FROM sheet_rows ORDER BY row_num").fetchall()
        if not found:
            return []
        # Dense like a sheet range read: gaps come back as empty rows.
        by_num = {n: json.loads(cells) for n, cells in found}
        return [by_num.get(n, []) for n in range(1, found[-1][0] + 1)]

    # ---- writes ----
    def write_row(self, row: int, values: Sequence[str]) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO sheet_rows (row_num, cells) VALUES (?, ?) "
                "ON CONFLICT(row_num) DO UPDATE SET cells = excluded.cells",
                (row, json.dumps([str(v) for v in values])),
            )

    def append_rows(self, rows: Sequence[Sequence[str]]) -> str | None:
        if not rows:
            return None
        with self._conn() as conn:
            (last,) = conn.execute("SELECT COALESCE(MAX(row_num), 0) FROM sheet_rows").fetchone()
            first = int(last) + 1
            conn.executemany(
                "INSERT INTO sheet_rows (row_num, cells) VALUES (?, ?)",
                [(first + i, json.dumps([str(v) for v in r])) for i, r in enumerate(rows)],
            )
        width = max(len(r) for r in rows)
        return f"A{first}:{col_letter(width - 1)}{first + len(rows) - 1}"

    def update_cell(self, row: int, col: int, value: str) -> None:
        cells = self.read_row(row)
        cells.extend([""] * (col + 1 - len(cells)))
        cells[col] = str(value)
        self.write_row(row, cells)

    def style_header(self, width: int) -> None:
        self._set_meta("header_style", {"width": width, "bold": True, "background": [0.2, 0.2, 0.2]})

    def apply_tag_rules(self, col: int, rules: Sequence[TagRule]) -> None:
        key = f"tag_rules:{col}"
        current = {r["value"]: r for r in (self._get_meta(key) or [])}
        for rule in rules:
            current.setdefault(
                rule.value,
                {"value": rule.value, "background": list(rule.background), "foreground": list(rule.foreground)},
            )
        self._set_meta(key, list(current.values()))

    def tag_rules(self, col: int) -> list[dict]:
        return list(self._get_meta(f"tag_rules:{col}") or [])

    # ---- internals ----
    @contextlib.contextmanager
    def _conn(self):
        try:
            with contextlib.closing(_connect(self.sqlite_path)) as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException:
                    conn.rollback()
                    raise
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"sqlite store {self.sqlite_path!r}: {e}") from e

    def _get_meta(self, key: str):
        with self._conn() as conn:
            hit = conn.execute("SELECT value FROM sheet_meta WHERE key = ?", (key,)).fetchone()
        return json.loads(hit[0]) if hit else None

    def _set_meta(self, key: str, value) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO sheet_meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, json.dumps(value)),
            )


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; we'll manage transactions explicitly.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sheet_rows (
          row_num INTEGER PRIMARY KEY,
          cells   TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sheet_meta (
          key   TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
