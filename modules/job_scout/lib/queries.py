from __future__ import annotations

from collections.abc import Mapping
from typing import Any

MAX_QUERIES = 5


def build_queries(profile: Mapping[str, Any], limit: int = MAX_QUERIES) -> list[str]:
    """
    Derive search queries from a candidate profile:

        {"preferredRoles": [...], "techStack": [...], "experienceYears": 2}

    Order: roles, "<tech> developer" per tech, the combined stack, then an
    experience-qualified query. Unique (first occurrence kept), capped at `limit`.
    """
    roles = [str(r).strip().lower() for r in profile.get("preferredRoles") or [] if str(r).strip()]
    stack = [str(t).strip() for t in profile.get("techStack") or [] if str(t).strip()]

    candidates = list(roles)
    candidates += [f"{t} developer" for t in stack]
    if stack:
        candidates.append(f"{' '.join(stack)} developer")
        years = profile.get("experienceYears")
        if years is not None:
            candidates.append(f"{years} year {stack[0]} developer")

    return list(dict.fromkeys(candidates))[:limit]
