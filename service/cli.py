# service/cli.py
"""
Command-line entrypoints for job_scout.

    run [--set k=v ...] [--include-jobs]     one fetch/classify/store cycle, JSON report
    stats [--set k=v ...]                    row, label and status counts of the store
    set-status LINK STATUS [--set k=v ...]   update the Status cell for one apply link
    validate-config [--set k=v ...]          build Settings from env + overrides

Overrides are Settings kwargs; values that parse as JSON (numbers, booleans,
lists) are decoded, anything else stays a string.

Exit codes: 0 ok, 1 runtime failure (or link not found), 2 invalid
configuration, 130 interrupted.
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import asdict
from datetime import datetime
from typing import Any

from modules.job_scout import run as _run_job_scout
from modules.job_scout.lib.config import ConfigError, Settings
from modules.job_scout.lib.engine import build_backend
from modules.job_scout.lib.store import SheetBackend, sheet_stats, update_status
from service import logging_utils as L

LOG = logging.getLogger("service.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def _setup_logging() -> None:
    if logging.getLogger().handlers:
        return
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _override(raw: str) -> tuple[str, Any]:
    """argparse type for one k=v override."""
    key, sep, value = raw.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    value = value.strip()
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return dict(args.overrides or [])


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat()


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _exit_codes(fn: Callable[[argparse.Namespace], int]) -> Callable[[argparse.Namespace], int]:
    """Map interrupts, config errors and failures of a subcommand onto exit codes."""

    @functools.wraps(fn)
    def wrapper(args: argparse.Namespace) -> int:
        try:
            return fn(args)
        except KeyboardInterrupt:
            return EXIT_INTERRUPTED
        except ConfigError as e:
            print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
            return EXIT_CONFIG
        except Exception as e:
            LOG.debug("%s failed", args.cmd, exc_info=True)
            print(f"FAILURE: {e}", file=sys.stderr)
            L.write_error_log({
                "ts": _timestamp(),
                "where": f"cli.{args.cmd}",
                "overrides": _overrides(args),
                "error": repr(e),
            })
            return EXIT_FAILURE

    return wrapper


def _store(args: argparse.Namespace) -> SheetBackend:
    # Store maintenance needs no Gemini/Adzuna credentials.
    settings = Settings.from_env_and_kwargs({**_overrides(args), "store_only": True})
    return build_backend(settings)


# ------------------------------ Subcommands ----------------------------------
@_exit_codes
def cmd_run(args: argparse.Namespace) -> int:
    kwargs = _overrides(args)
    if args.include_jobs:
        kwargs["include_jobs"] = True

    run_id = uuid.uuid4().hex
    started = time.monotonic()
    report = _run_job_scout(**kwargs)

    L.write_activity_log({
        "ts": _timestamp(),
        "event": "cli_run",
        "run_id": run_id,
        "overrides": kwargs,
        "inserted": report.get("inserted"),
        "failed_batches": report.get("failedBatches"),
        "duration_ms": int((time.monotonic() - started) * 1000),
    })
    _emit(report)
    return EXIT_OK


@_exit_codes
def cmd_stats(args: argparse.Namespace) -> int:
    _emit(asdict(sheet_stats(_store(args))))
    return EXIT_OK


@_exit_codes
def cmd_set_status(args: argparse.Namespace) -> int:
    found = update_status(_store(args), args.link, args.status)
    L.write_activity_log({
        "ts": _timestamp(),
        "event": "cli_set_status",
        "link": args.link,
        "status": args.status,
        "found": found,
    })
    _emit({"link": args.link, "status": args.status, "updated": found})
    return EXIT_OK if found else EXIT_FAILURE


@_exit_codes
def cmd_validate_config(args: argparse.Namespace) -> int:
    settings = Settings.from_env_and_kwargs(_overrides(args))
    print(f"OK: configuration is valid (store={settings.store}, queries={len(settings.queries)}).")
    return EXIT_OK


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--set",
        dest="overrides",
        metavar="k=v",
        nargs="*",
        type=_override,
        help="Settings overrides, e.g. store=sqlite max_jobs=10.",
    )

    p = argparse.ArgumentParser(prog="job-scout", description="Job scout command-line tools")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", parents=[common], help="Fetch, classify and store one round of postings.")
    sp.add_argument("--include-jobs", action="store_true", help="Include every classified posting in the report.")
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("stats", parents=[common], help="Print counts from the configured store.")
    sp.set_defaults(func=cmd_stats)

    sp = sub.add_parser("set-status", parents=[common], help="Update the Status cell for one apply link.")
    sp.add_argument("link", help="Apply link of the stored row.")
    sp.add_argument("status", help="New status text (e.g. Applied).")
    sp.set_defaults(func=cmd_set_status)

    sp = sub.add_parser("validate-config", parents=[common], help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


def main(argv: Iterable[str] | None = None) -> int:
    _setup_logging()
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
