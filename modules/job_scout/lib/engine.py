"""
Pipeline driver: fetch -> classify in batches -> dedup/append per batch -> report.

Features:
  - Strictly sequential batches paced by a leaky-bucket limiter
  - Per-batch flush to the store; a failing flush is recorded, not fatal
  - Aggregate report (per-label counts, per-batch insert stats, duration)
  - Dependency injection for testability (classifier, backend, source, sleep/clock)
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Callable, Sequence

from . import logging_bridge
from .adzuna import AdzunaSource
from .batching import DEFAULT_BATCH_SIZE, BatchScheduler, SupportsClassify
from .classifier import Classifier, TextGenerator
from .config import Settings
from .db import SqliteSheetBackend
from .models import BatchResult, Label, PipelineReport, Posting
from .rate_limit import IntervalLimiter
from .resume import queries_from_resume
from .sheets_api import GoogleSheetsBackend
from .store import SheetBackend, StoreWriter


# =============================================================================
# DRIVER
# =============================================================================
class Pipeline:
    def __init__(self, scheduler: BatchScheduler, *, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.scheduler = scheduler
        self.batch_size = batch_size

    def process(self, postings: Sequence[Posting], *, total_fetched: int | None = None) -> PipelineReport:
        """
        Classify and persist every posting, batch by batch.

        Never aborts on a batch's persistence failure; the failed batch index is
        listed in `failed_batches` and its postings still count as classified.
        """
        start_ns = time.perf_counter_ns()
        batches: list[BatchResult] = list(self.scheduler.iter_batches(postings, self.batch_size))

        report = summarize(batches, total_fetched=len(postings) if total_fetched is None else total_fetched)
        report.duration_ms = int((time.perf_counter_ns() - start_ns) // 1_000_000)

        # -------------------------------------------------------------------------
        # SUMMARY LOG (always emitted)
        # -------------------------------------------------------------------------
        logging_bridge.activity({
            "component": "job_scout.engine",
            "op": "summary",
            "total_fetched": report.total_fetched,
            "total_classified": report.total_classified,
            "per_label": report.per_label_counts,
            "inserted": report.inserted,
            "duplicates": report.duplicates,
            "fallbacks": report.fallback_count,
            "errors": report.error_count,
            "failed_batches": report.failed_batches,
            "duration_ms": report.duration_ms,
        })
        return report


def summarize(batches: Sequence[BatchResult], *, total_fetched: int) -> PipelineReport:
    """Fold per-batch results into one report; counts come only from each batch's own result."""
    classified = [c for b in batches for c in b.items]
    labels = Counter(c.verdict.label.value for c in classified)

    report = PipelineReport(
        total_fetched=total_fetched,
        total_classified=len(classified),
        per_label_counts={label.value: labels.get(label.value, 0) for label in Label},
        classified=classified,
    )
    for b in batches:
        report.per_batch.append({
            "batch": b.index,
            "size": len(b.items),
            "inserted": b.inserted,
            "duplicates": b.duplicates,
            "error": b.error,
        })
        report.inserted += b.inserted
        report.duplicates += b.duplicates
        if not b.ok:
            report.failed_batches.append(b.index)
    report.fallback_count = sum(1 for c in classified if c.verdict.used_fallback)
    report.error_count = sum(1 for c in classified if not c.processed)
    return report


# =============================================================================
# WIRING (PRODUCTION DEFAULTS)
# =============================================================================
def build_backend(settings: Settings) -> SheetBackend:
    if settings.store == "sqlite":
        return SqliteSheetBackend(settings.sqlite_path)
    return GoogleSheetsBackend.from_service_account(
        settings.sheet_id,
        settings.service_account_info(),
        sheet_name=settings.sheet_name,
    )


def build_pipeline(
    settings: Settings,
    *,
    backend: SheetBackend | None = None,
    classifier: SupportsClassify | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Pipeline:
    writer = StoreWriter(backend or build_backend(settings), date_format=settings.date_format)
    limiter = IntervalLimiter(settings.call_interval_s, clock=clock, sleep=sleep)
    if classifier is None:
        classifier = Classifier.from_settings(settings, sleep=sleep)
    scheduler = BatchScheduler(classifier, limiter, writer.insert)
    return Pipeline(scheduler, batch_size=settings.batch_size)


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    *,
    postings: Sequence[Posting] | None = None,
    source: AdzunaSource | None = None,
    backend: SheetBackend | None = None,
    classifier: SupportsClassify | None = None,
    profile_generator: TextGenerator | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PipelineReport:
    """
    Run one complete cycle.

    Args:
        settings: validated configuration.
        postings: pre-fetched postings; when given (or settings.skip_fetch) no search call is made.
        profile_generator: model used to read settings.resume_text before searching.
        source/backend/classifier/sleep/clock: overrides for tests.

    Returns:
        PipelineReport; total_fetched counts postings before the max_jobs cap.
    """
    # Build the pipeline first so configuration problems surface before any fetch.
    pipeline = build_pipeline(settings, backend=backend, classifier=classifier, sleep=sleep, clock=clock)

    if postings is None and settings.skip_fetch:
        postings = []
    elif postings is None:
        queries = queries_from_resume(settings, generator=profile_generator)
        if source is not None:
            postings = source.fetch_many(queries, settings.location)
        else:
            source = AdzunaSource(settings.adzuna_app_id, settings.adzuna_app_key, country=settings.adzuna_country)
            try:
                postings = source.fetch_many(queries, settings.location)
            finally:
                source.close()

    fetched = len(postings)
    to_process = list(postings)[: settings.max_jobs]

    logging_bridge.activity({
        "component": "job_scout.engine",
        "op": "start",
        "fetched": fetched,
        "processing": len(to_process),
        "batch_size": settings.batch_size,
        "store": settings.store,
    })

    if not to_process:
        return PipelineReport(
            total_fetched=fetched,
            per_label_counts={label.value: 0 for label in Label},
        )
    return pipeline.process(to_process, total_fetched=fetched)
