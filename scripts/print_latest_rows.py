#!/usr/bin/env python3
"""
Print the newest rows of every local job sheet (SQLite store).

    python scripts/print_latest_rows.py [LIMIT] [--dir local/state]
"""

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent  # ../scripts → project root
sys.path.insert(0, str(PROJECT_ROOT))

from modules.job_scout.lib.db import SqliteSheetBackend, count_rows  # noqa: E402
from modules.job_scout.lib.store import HEADERS, StoreError  # noqa: E402


def latest_rows(db_path: Path, limit: int) -> list[dict[str, str]]:
    """Last `limit` data rows, newest first, keyed by header."""
    rows = SqliteSheetBackend(str(db_path)).read_rows()[1:]
    return [dict(zip(HEADERS, r)) for r in reversed(rows[-limit:])]


def main() -> int:
    ap = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    ap.add_argument("limit", nargs="?", type=int, default=15)
    ap.add_argument("--dir", default=str(PROJECT_ROOT / "local" / "state"))
    args = ap.parse_args()

    db_dir = Path(args.dir)
    if not db_dir.is_dir():
        print(f"Directory not found: {db_dir}", file=sys.stderr)
        return 1

    db_files = sorted(db_dir.glob("*.db"))
    if not db_files:
        print(f"No .db files found in {db_dir}")
        return 0

    for db_path in db_files:
        print("=" * 80)
        print(f"{db_path.name}: {count_rows(str(db_path))} row(s)")
        print("-" * 80)
        try:
            rows = latest_rows(db_path, max(1, args.limit))
        except StoreError as e:
            print(f"  unreadable: {e}", file=sys.stderr)
            continue
        for i, row in enumerate(rows, 1):
            print(f"{i:2d}. [{row.get('Date', '')}] {row.get('AI Classification', ''):<9} {row.get('Status', '')}")
            print(f"     {row.get('Role', '')} @ {row.get('Company', '')}")
            print(f"     {row.get('Apply Link', '')}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
