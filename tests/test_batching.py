# tests/test_batching.py
import pytest

from modules.job_scout.lib.batching import BatchScheduler, partition
from modules.job_scout.lib.classifier import Classifier
from modules.job_scout.lib.gemini import LLMOutcome, LLMStatus
from modules.job_scout.lib.models import ClassificationVerdict, InsertStats, Label
from modules.job_scout.lib.rate_limit import IntervalLimiter
from modules.job_scout.lib.store import StoreWriter

OK_JSON = '{"classification": "MAYBE_FIT", "summary": "Some overlap."}'


def _scheduler(gen, flush, clock):
    limiter = IntervalLimiter(6.5, clock=clock, sleep=clock.sleep)
    return BatchScheduler(Classifier(gen, quota_backoff_s=0), limiter, flush)


def test_partition_shapes(make_posting):
    posts = [make_posting(i) for i in range(7)]
    assert [len(b) for b in partition(posts, 3)] == [3, 3, 1]
    assert [len(b) for b in partition(posts, 15)] == [7]
    assert partition([], 3) == []
    with pytest.raises(ValueError):
        partition(posts, 0)


def test_every_posting_lands_in_exactly_one_batch(make_posting, fake_generator, fake_clock):
    flushed = []

    def flush(items):
        flushed.append([c.apply_link for c in items])
        return InsertStats(inserted=len(items))

    posts = [make_posting(i) for i in range(7)]
    results = _scheduler(fake_generator(OK_JSON), flush, fake_clock).run(posts, batch_size=3)

    assert [r.index for r in results] == [1, 2, 3]
    links = [c.apply_link for r in results for c in r.items]
    assert links == [p.apply_link for p in posts]
    assert flushed == [[p.apply_link for p in posts[i : i + 3]] for i in (0, 3, 6)]
    assert all(c.verdict.label is Label.MAYBE_FIT for r in results for c in r.items)


def test_calls_are_paced_by_the_limiter(make_posting, fake_generator, fake_clock):
    posts = [make_posting(i) for i in range(5)]
    _scheduler(fake_generator(OK_JSON), lambda items: InsertStats(), fake_clock).run(posts, batch_size=2)

    # first call immediate, four waits of the full interval (fake calls take no time)
    assert fake_clock.sleeps == [6.5] * 4


def test_failed_flush_is_recorded_and_later_batches_continue(
    make_posting, fake_generator, fake_clock, memory_sheet
):
    sheet = memory_sheet(fail_appends={2})
    writer = StoreWriter(sheet, today=lambda: "01/01/2025")
    posts = [make_posting(i) for i in range(7)]

    results = _scheduler(fake_generator(OK_JSON), writer.insert, fake_clock).run(posts, batch_size=3)

    assert [r.ok for r in results] == [True, False, True]
    assert "append #2 refused" in results[1].error
    assert [r.inserted for r in results] == [3, 0, 1]
    # the failed batch's postings are still classified and reported
    assert len(results[1].items) == 3
    stored = [row[4] for row in sheet.data_rows]
    assert stored == [posts[i].apply_link for i in (0, 1, 2, 6)]


def test_verdict_error_marks_posting_unprocessed(make_posting, fake_generator, fake_clock):
    gen = fake_generator(LLMOutcome(LLMStatus.NETWORK_ERROR, error="Gemini request failed: timeout"))
    [result] = _scheduler(gen, lambda items: InsertStats(), fake_clock).run([make_posting(1)])

    [item] = result.items
    assert item.processed is False
    assert item.error == "Gemini request failed: timeout"
    assert item.verdict.used_fallback is True


def test_clean_fallback_stays_processed(make_posting, fake_generator, fake_clock):
    gen = fake_generator(LLMOutcome(LLMStatus.MALFORMED, error="Invalid response from Gemini API"))
    [result] = _scheduler(gen, lambda items: InsertStats(), fake_clock).run([make_posting(1)])

    [item] = result.items
    assert item.processed is True
    assert item.error is None
    assert item.verdict.used_fallback is True


def test_classifier_exception_gets_fallback(make_posting, fake_clock):
    class Exploding:
        def classify(self, title, description, company) -> ClassificationVerdict:
            raise RuntimeError("kaboom")

    limiter = IntervalLimiter(0, clock=fake_clock, sleep=fake_clock.sleep)
    sched = BatchScheduler(Exploding(), limiter, lambda items: InsertStats(inserted=len(items)))
    [result] = sched.run([make_posting(1)])

    [item] = result.items
    assert item.processed is False
    assert "kaboom" in item.error
    assert item.verdict.used_fallback is True
    assert item.verdict.label is Label.GOOD_FIT  # node.js + express + mongodb
    assert result.inserted == 1
