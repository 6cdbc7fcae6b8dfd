from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Label(str, Enum):
    GOOD_FIT = "GOOD_FIT"
    MAYBE_FIT = "MAYBE_FIT"
    IGNORE = "IGNORE"


EXPERIENCE_LEVELS = ("entry", "junior", "mid", "senior", "unclear")


@dataclass(frozen=True)
class Posting:
    """
    A single job posting as returned by the search source.
    Dedupe is performed against the store on `apply_link`.
    """

    apply_link: str
    title: str
    company: str
    location: str = ""
    description: str = ""
    posted_date: str = ""
    search_query: str = ""
    salary: str = ""
    source_id: str = ""


@dataclass(frozen=True)
class ClassificationVerdict:
    label: Label
    summary: str
    matched_skills: tuple[str, ...] = ()
    concerns: tuple[str, ...] = ()
    experience_level: str = "unclear"
    used_fallback: bool = False
    # Set when the verdict is a fallback caused by a transport/service failure.
    error: str | None = None


@dataclass(frozen=True)
class ClassifiedPosting:
    posting: Posting
    verdict: ClassificationVerdict
    processed: bool = True
    error: str | None = None

    @property
    def apply_link(self) -> str:
        return self.posting.apply_link

    def to_dict(self) -> dict[str, Any]:
        p, v = self.posting, self.verdict
        return {
            "title": p.title,
            "company": p.company,
            "location": p.location,
            "applyLink": p.apply_link,
            "searchQuery": p.search_query,
            "aiClassification": v.label.value,
            "aiSummary": v.summary,
            "matchedSkills": list(v.matched_skills),
            "concerns": list(v.concerns),
            "experienceLevel": v.experience_level,
            "usedFallback": v.used_fallback,
            "processed": self.processed,
            "error": self.error,
        }


@dataclass(frozen=True)
class InsertStats:
    inserted: int = 0
    duplicates: int = 0
    updated_range: str | None = None


@dataclass
class BatchResult:
    """
    Outcome of one batch: every posting in the batch is present in `items`
    (classified or fallback), whether or not the flush to the store succeeded.
    """

    index: int
    items: list[ClassifiedPosting] = field(default_factory=list)
    inserted: int = 0
    duplicates: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PipelineReport:
    total_fetched: int = 0
    total_classified: int = 0
    per_label_counts: dict[str, int] = field(default_factory=dict)
    per_batch: list[dict[str, Any]] = field(default_factory=list)
    inserted: int = 0
    duplicates: int = 0
    fallback_count: int = 0
    error_count: int = 0
    failed_batches: list[int] = field(default_factory=list)
    duration_ms: int = 0
    classified: list[ClassifiedPosting] = field(default_factory=list, repr=False)

    def to_dict(self, *, include_jobs: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "totalFetched": self.total_fetched,
            "totalClassified": self.total_classified,
            "perLabelCounts": dict(self.per_label_counts),
            "perBatchInsertStats": list(self.per_batch),
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "fallbackCount": self.fallback_count,
            "errorCount": self.error_count,
            "failedBatches": list(self.failed_batches),
            "durationMs": self.duration_ms,
        }
        if include_jobs:
            out["jobs"] = [c.to_dict() for c in self.classified]
        return out


@dataclass(frozen=True)
class SheetStats:
    total: int = 0
    good_fit: int = 0
    maybe_fit: int = 0
    ignore: int = 0
    applied: int = 0
    new: int = 0
