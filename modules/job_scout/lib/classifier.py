"""
Relevance classification of a single posting against the target profile.

Flow:
  - build a bounded prompt and ask Gemini (via an `LLMOutcome`)
  - parse/repair the JSON verdict on success
  - on quota: back off once, then use the keyword fallback (no retry)
  - on malformed output or transport/service failure: keyword fallback

`Classifier.classify` never raises; configuration problems (missing API key)
surface when the classifier is built, not per call.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from . import logging_bridge
from .gemini import GeminiClient, LLMOutcome, LLMStatus
from .models import EXPERIENCE_LEVELS, ClassificationVerdict, Label
from .utils import clip, strip_code_fences

log = logging.getLogger(__name__)

DESCRIPTION_BUDGET = 2000

GOOD_FIT_KEYWORDS: tuple[str, ...] = (
    "node.js",
    "nodejs",
    "express",
    "react",
    "mongodb",
    "postgresql",
    "mern",
    "pern",
    "javascript",
    "typescript",
    "docker",
    "aws",
)

BAD_FIT_KEYWORDS: tuple[str, ...] = (
    "php",
    "java",
    "spring",
    ".net",
    "c#",
    "python",
    "django",
    "senior",
    "3+ years",
    "4+ years",
    "5+ years",
)

PROMPT_TEMPLATE = """\
You are a job classification assistant. Analyze this job posting and classify it based on these criteria:

**TARGET PROFILE:**
- MERN/PERN Stack (MongoDB/PostgreSQL, Express, React, Node.js)
- Backend Technologies: Node.js, Express, REST APIs, GraphQL
- Cloud & DevOps: Docker, AWS, Azure, GCP
- Languages: JavaScript, TypeScript
- Experience: 0-2 years (Junior/Entry level)
- Location: India or Remote work allowed

**JOB TO ANALYZE:**
Title: {title}
Company: {company}
Description: {description}

**CLASSIFICATION RULES:**
GOOD_FIT: Perfect match - MERN/PERN stack, Node.js backend, 0-2 YOE, India/Remote, mentions specific tech stack
MAYBE_FIT: Partial match - some relevant technologies but missing key requirements or unclear experience level
IGNORE: Not relevant - different tech stack (PHP, Java, .NET), senior roles (3+ years), non-tech roles, wrong location

**RESPONSE FORMAT (JSON only):**
{{
  "classification": "GOOD_FIT|MAYBE_FIT|IGNORE",
  "summary": "Brief 2-3 sentence explanation of why this job fits/doesn't fit the criteria",
  "matchedSkills": ["skill1", "skill2"],
  "concerns": ["concern1", "concern2"],
  "experienceLevel": "entry|junior|mid|senior|unclear"
}}

Respond only with valid JSON.
"""


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> LLMOutcome: ...


# =============================================================================
# PROMPT + RESPONSE HANDLING
# =============================================================================
def build_prompt(title: str, description: str | None, company: str) -> str:
    return PROMPT_TEMPLATE.format(
        title=title or "",
        company=company or "",
        description=clip(description, DESCRIPTION_BUDGET),
    )


def parse_response(text: str) -> LLMOutcome:
    """
    Turn raw model text into SUCCESS(payload) or MALFORMED.

    Accepts fenced JSON and JSON embedded in surrounding prose (outermost
    braces). `classification` and `summary` must both be present and non-empty.
    """
    payload = extract_json_object(text)
    if payload is None:
        return LLMOutcome(LLMStatus.MALFORMED, text=text, error="AI response is not a JSON object")
    if not payload.get("classification") or not payload.get("summary"):
        return LLMOutcome(LLMStatus.MALFORMED, text=text, error="Missing required fields in AI response")
    return LLMOutcome(LLMStatus.SUCCESS, text=text, payload=payload)


def verdict_from_payload(payload: dict[str, Any]) -> ClassificationVerdict:
    """Repair a parsed model verdict; an unknown label becomes MAYBE_FIT."""
    # Case and surrounding whitespace are forgiven ("good_fit" is GOOD_FIT).
    raw_label = str(payload.get("classification")).strip().upper()
    try:
        label = Label(raw_label)
    except ValueError:
        log.debug("Coercing unknown label %r to MAYBE_FIT", raw_label)
        label = Label.MAYBE_FIT

    level = str(payload.get("experienceLevel") or "unclear").strip().lower()
    if level not in EXPERIENCE_LEVELS:
        level = "unclear"

    return ClassificationVerdict(
        label=label,
        summary=str(payload.get("summary")).strip(),
        matched_skills=_str_tuple(payload.get("matchedSkills")),
        concerns=_str_tuple(payload.get("concerns")),
        experience_level=level,
        used_fallback=False,
    )


# =============================================================================
# KEYWORD FALLBACK
# =============================================================================
def _keyword_pattern(keyword: str, *, bounded: bool = False) -> re.Pattern[str]:
    if not bounded:
        return re.compile(re.escape(keyword))
    # Alphanumeric edges must not touch other alphanumerics ("java" vs "javascript").
    head = r"(?<![a-z0-9])" if keyword[0].isalnum() else ""
    tail = r"(?![a-z0-9])" if keyword[-1].isalnum() else ""
    return re.compile(head + re.escape(keyword) + tail)


# Good-fit keywords match anywhere ("reactjs", "expressjs"); bad-fit ones only as whole tokens.
_GOOD_PATTERNS = [(k, _keyword_pattern(k)) for k in GOOD_FIT_KEYWORDS]
_BAD_PATTERNS = [(k, _keyword_pattern(k, bounded=True)) for k in BAD_FIT_KEYWORDS]


def match_keywords(text: str, patterns: Iterable[tuple[str, re.Pattern[str]]]) -> list[str]:
    return [k for k, pat in patterns if pat.search(text)]


def fallback_classify(title: str, description: str | None, *, error: str | None = None) -> ClassificationVerdict:
    """Deterministic keyword classifier; no network."""
    text = f"{title or ''} {description or ''}".lower()
    good = match_keywords(text, _GOOD_PATTERNS)
    bad = match_keywords(text, _BAD_PATTERNS)

    if len(good) >= 2 and not bad:
        label = Label.GOOD_FIT
        summary = f"Matches key technologies: {', '.join(good)}"
    elif good:
        label = Label.MAYBE_FIT
        summary = f"Partial match with some relevant skills: {', '.join(good)}"
        if bad:
            summary += f" (concerns: {', '.join(bad)})"
    else:
        label = Label.IGNORE
        summary = "Fallback classification - no target-stack keywords matched"
        if bad:
            summary += f"; found: {', '.join(bad)}"

    return ClassificationVerdict(
        label=label,
        summary=summary,
        matched_skills=tuple(good),
        concerns=tuple(bad),
        experience_level="unclear",
        used_fallback=True,
        error=error,
    )


# =============================================================================
# CLASSIFIER
# =============================================================================
class Classifier:
    def __init__(
        self,
        generator: TextGenerator,
        *,
        quota_backoff_s: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._generator = generator
        self.quota_backoff_s = float(quota_backoff_s)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> Classifier:
        """Raises ConfigError immediately if the API key is missing."""
        client = GeminiClient(settings.gemini_api_key, settings.gemini_model)
        return cls(client, quota_backoff_s=settings.quota_backoff_s, **kwargs)

    def ask(self, title: str, description: str | None, company: str) -> LLMOutcome:
        outcome = self._generator.generate(build_prompt(title, description, company))
        if outcome.ok and outcome.payload is None:
            return parse_response(outcome.text)
        return outcome

    def classify(self, title: str, description: str | None, company: str) -> ClassificationVerdict:
        log.debug("Classifying job: %s at %s", title, company)
        try:
            outcome = self.ask(title, description, company)
        except Exception as e:
            outcome = LLMOutcome(LLMStatus.NETWORK_ERROR, error=f"{type(e).__name__}: {e}")
        return self.resolve(outcome, title, description)

    def resolve(self, outcome: LLMOutcome, title: str, description: str | None) -> ClassificationVerdict:
        """Single dispatch from outcome status to verdict."""
        if outcome.status is LLMStatus.SUCCESS and outcome.payload is not None:
            verdict = verdict_from_payload(outcome.payload)
            log.debug("Job classified as: %s", verdict.label.value)
            return verdict

        if outcome.status is LLMStatus.QUOTA_EXCEEDED and self.quota_backoff_s > 0:
            self._sleep(self.quota_backoff_s)

        # Only transport/service failures are annotated on the output record.
        error = outcome.error if outcome.status is LLMStatus.NETWORK_ERROR else None
        logging_bridge.activity({
            "component": "job_scout.classifier",
            "op": "fallback",
            "reason": outcome.status.value,
            "title": title,
            "error": outcome.error,
        })
        return fallback_classify(title, description, error=error)


# ---- helpers -----------------------------------------------------------------
def extract_json_object(text: str) -> dict[str, Any] | None:
    """JSON object from model text: fenced, bare, or the outermost braces inside prose."""
    cleaned = strip_code_fences(text)
    payload = _loads_object(cleaned)
    if payload is None:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if 0 <= start < end:
            payload = _loads_object(cleaned[start : end + 1])
    return payload


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(v).strip() for v in value if str(v).strip())
