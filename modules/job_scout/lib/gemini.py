"""
Gemini generateContent client.

Every call resolves to an `LLMOutcome`; transport and HTTP failures are mapped
to a status at this boundary instead of escaping as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import requests

from .config import ConfigError
from .http_client import HttpClient

log = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.1,
    "topK": 1,
    "topP": 1,
    "maxOutputTokens": 500,
}

SAFETY_SETTINGS: list[dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class LLMStatus(str, Enum):
    SUCCESS = "LLM_SUCCESS"
    QUOTA_EXCEEDED = "LLM_QUOTA_EXCEEDED"
    MALFORMED = "LLM_MALFORMED"
    NETWORK_ERROR = "LLM_NETWORK_ERROR"


@dataclass(frozen=True)
class LLMOutcome:
    status: LLMStatus
    text: str = ""
    payload: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is LLMStatus.SUCCESS


class GeminiClient:
    """Thin facade over the generateContent REST endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        *,
        http: HttpClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not (api_key or "").strip():
            raise ConfigError("Missing Gemini API key")
        self._api_key = api_key.strip()
        self.model = model
        self.url = f"{GEMINI_BASE_URL}/{model}:generateContent"
        self._http = http or HttpClient(timeout=timeout)

    def build_request(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(GENERATION_CONFIG),
            "safetySettings": [dict(s) for s in SAFETY_SETTINGS],
        }

    def generate(self, prompt: str) -> LLMOutcome:
        """Send one prompt; returns SUCCESS with the candidate text or a failure status."""
        try:
            resp = self._http.post(
                self.url,
                json_body=self.build_request(prompt),
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
            )
        except requests.RequestException as e:
            return LLMOutcome(LLMStatus.NETWORK_ERROR, error=f"Gemini request failed: {e}")

        if resp.status_code == 429:
            return LLMOutcome(LLMStatus.QUOTA_EXCEEDED, error=f"Gemini API error: 429 - {resp.text[:200]}")
        if not resp.ok:
            return LLMOutcome(
                LLMStatus.NETWORK_ERROR,
                error=f"Gemini API error: {resp.status_code} - {resp.text[:200]}",
            )

        try:
            data = resp.json()
        except ValueError:
            return LLMOutcome(LLMStatus.MALFORMED, error="Gemini returned a non-JSON body")

        text = _candidate_text(data)
        if not text:
            return LLMOutcome(LLMStatus.MALFORMED, error="Invalid response from Gemini API")
        log.debug("Gemini returned %d chars", len(text))
        return LLMOutcome(LLMStatus.SUCCESS, text=text)

    def close(self) -> None:
        self._http.close()


def _candidate_text(data: Any) -> str:
    try:
        return str(data["candidates"][0]["content"]["parts"][0]["text"]).strip()
    except (KeyError, IndexError, TypeError):
        return ""
