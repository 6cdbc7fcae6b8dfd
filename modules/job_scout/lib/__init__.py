# modules/job_scout/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .batching import BatchScheduler
from .classifier import Classifier, fallback_classify
from .config import ConfigError, Settings
from .engine import Pipeline, run_once
from .models import (
    BatchResult,
    ClassificationVerdict,
    ClassifiedPosting,
    InsertStats,
    Label,
    PipelineReport,
    Posting,
)
from .rate_limit import IntervalLimiter
from .store import StoreError, StoreWriter

__all__ = [
    "BatchResult",
    "BatchScheduler",
    "ClassificationVerdict",
    "ClassifiedPosting",
    "Classifier",
    "ConfigError",
    "InsertStats",
    "IntervalLimiter",
    "Label",
    "Pipeline",
    "PipelineReport",
    "Posting",
    "Settings",
    "StoreError",
    "StoreWriter",
    "fallback_classify",
    "run_once",
]
