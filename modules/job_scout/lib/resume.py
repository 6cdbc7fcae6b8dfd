"""
Candidate profile extraction from resume text.

The profile ({skills, experienceYears, preferredRoles, techStack, location})
feeds `build_queries`. Extraction is best effort: any model failure yields an
empty profile and the configured queries stay in place.
"""

from __future__ import annotations

import logging
from typing import Any

from . import logging_bridge
from .classifier import TextGenerator, extract_json_object
from .gemini import GeminiClient, LLMOutcome, LLMStatus
from .queries import build_queries
from .utils import clip

log = logging.getLogger(__name__)

RESUME_BUDGET = 8000

PROFILE_KEYS = ("skills", "experienceYears", "preferredRoles", "techStack", "location")

PROFILE_PROMPT = """\
Extract skills, experience level, and job preferences from this resume:

{resume}

Return JSON only:
{{
  "skills": ["skill1", "skill2"],
  "experienceYears": 2,
  "preferredRoles": ["Backend Developer", "Full Stack"],
  "techStack": ["Node.js", "React"],
  "location": "Remote/Bangalore"
}}
"""


def extract_profile(generator: TextGenerator, resume_text: str | None) -> dict[str, Any]:
    """Ask the model for a profile; {} when the text is empty or the answer is unusable."""
    if not (resume_text or "").strip():
        return {}

    try:
        outcome = generator.generate(PROFILE_PROMPT.format(resume=clip(resume_text, RESUME_BUDGET)))
    except Exception as e:
        outcome = LLMOutcome(LLMStatus.NETWORK_ERROR, error=f"{type(e).__name__}: {e}")

    payload = extract_json_object(outcome.text) if outcome.ok else None
    if payload is None:
        logging_bridge.activity({
            "component": "job_scout.resume",
            "op": "profile_unavailable",
            "reason": (outcome.status if not outcome.ok else LLMStatus.MALFORMED).value,
            "error": outcome.error,
        })
        return {}

    profile = {k: payload[k] for k in PROFILE_KEYS if payload.get(k) not in (None, "", [])}
    log.debug("Extracted profile keys: %s", sorted(profile))
    return profile


def queries_from_resume(settings: Any, *, generator: TextGenerator | None = None) -> list[str]:
    """
    Search queries for this run.

    Without resume text the configured queries are returned unchanged. With it,
    queries are derived from the extracted profile, falling back to the
    configured ones when nothing usable comes back.
    """
    if not settings.resume_text:
        return list(settings.queries)

    client = None
    if generator is None:
        client = generator = GeminiClient(settings.gemini_api_key, settings.gemini_model)
    try:
        derived = build_queries(extract_profile(generator, settings.resume_text))
    finally:
        if client is not None:
            client.close()

    queries = derived or list(settings.queries)
    logging_bridge.activity({
        "component": "job_scout.resume",
        "op": "queries",
        "source": "resume" if derived else "configured",
        "queries": queries,
    })
    return queries
