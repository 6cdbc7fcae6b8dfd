"""
Sequential batch scheduling of classification calls with a flush per batch.

Both upstream services rate-limit per caller, so nothing here runs
concurrently: one classification call at a time, paced by the limiter, and one
flush per completed batch. A failing flush is recorded on its BatchResult and
does not stop later batches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Protocol

from . import logging_bridge
from .classifier import fallback_classify
from .models import BatchResult, ClassificationVerdict, ClassifiedPosting, InsertStats, Posting
from .rate_limit import IntervalLimiter

log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 15


class SupportsClassify(Protocol):
    def classify(self, title: str, description: str | None, company: str) -> ClassificationVerdict: ...


Flush = Callable[[Sequence[ClassifiedPosting]], InsertStats]


def partition(postings: Sequence[Posting], batch_size: int) -> list[list[Posting]]:
    """Consecutive slices of `batch_size`; the last may be shorter."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(postings[i : i + batch_size]) for i in range(0, len(postings), batch_size)]


class BatchScheduler:
    def __init__(
        self,
        classifier: SupportsClassify,
        limiter: IntervalLimiter,
        flush: Flush,
    ) -> None:
        self.classifier = classifier
        self.limiter = limiter
        self.flush = flush

    def classify_one(self, posting: Posting) -> ClassifiedPosting:
        self.limiter.acquire()
        try:
            verdict = self.classifier.classify(posting.title, posting.description, posting.company)
        except Exception as e:
            err = f"{type(e).__name__}: {e}"
            log.warning("Failed to classify job %r: %s", posting.title, err)
            verdict = fallback_classify(posting.title, posting.description, error=err)
        if verdict.error:
            return ClassifiedPosting(posting=posting, verdict=verdict, processed=False, error=verdict.error)
        return ClassifiedPosting(posting=posting, verdict=verdict)

    def run_batch(self, index: int, batch: Sequence[Posting]) -> BatchResult:
        result = BatchResult(index=index, items=[self.classify_one(p) for p in batch])
        try:
            stats = self.flush(result.items)
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            logging_bridge.error({
                "component": "job_scout.batching",
                "op": "flush",
                "batch": index,
                "size": len(result.items),
                "error": repr(e),
            })
            return result

        result.inserted = stats.inserted
        result.duplicates = stats.duplicates
        logging_bridge.activity({
            "component": "job_scout.batching",
            "op": "batch_done",
            "batch": index,
            "size": len(result.items),
            "inserted": stats.inserted,
            "duplicates": stats.duplicates,
        })
        return result

    def iter_batches(self, postings: Sequence[Posting], batch_size: int = DEFAULT_BATCH_SIZE) -> Iterator[BatchResult]:
        batches = partition(postings, batch_size)
        for index, batch in enumerate(batches, start=1):
            log.info("Processing batch %d/%d (%d jobs)", index, len(batches), len(batch))
            yield self.run_batch(index, batch)

    def run(self, postings: Sequence[Posting], batch_size: int = DEFAULT_BATCH_SIZE) -> list[BatchResult]:
        return list(self.iter_batches(postings, batch_size))
