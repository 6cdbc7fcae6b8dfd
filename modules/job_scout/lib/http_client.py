# job_scout/http_client.py
from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

LOG = logging.getLogger(__name__)

# 429 is deliberately absent: quota responses must reach the caller untouched.
TRANSIENT_STATUSES = (500, 502, 503, 504)


class HttpClient:
    """Shared HTTP client with retry on transient 5xx and small JSON helpers."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "JobScoutAgent/1.0",
        *,
        session: requests.Session | None = None,
        retries: int = 2,
        status_forcelist: Sequence[int] = TRANSIENT_STATUSES,
    ):
        self.timeout = float(timeout)
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

        retry = Retry(
            total=retries,
            backoff_factor=0.5,
            status_forcelist=tuple(status_forcelist),
            allowed_methods=frozenset(["GET", "POST", "PUT"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=8)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    # ---- raw ----
    def post(
        self,
        url: str,
        *,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        """POST and return the response without raising on HTTP status."""
        return self.session.post(
            url, json=json_body, params=params, headers=headers, timeout=timeout or self.timeout
        )

    # ---- convenience ----
    def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET and parse JSON; raises requests.HTTPError on non-2xx."""
        resp = self.session.get(url, params=params, headers=headers, timeout=timeout or self.timeout)
        resp.raise_for_status()
        return _decode(resp, url)

    def send_json(
        self,
        method: str,
        url: str,
        body: Any,
        *,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """PUT/POST a JSON body and parse the JSON reply; raises on non-2xx."""
        resp = self.session.request(method, url, json=body, params=params, timeout=timeout or self.timeout)
        resp.raise_for_status()
        if not resp.content:
            return {}
        return _decode(resp, url)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)


def _decode(resp: requests.Response, url: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        try:
            return json.loads(resp.text)
        except ValueError:
            preview = resp.text[:200].replace("\n", " ")
            raise ValueError(f"JSON decode failed for {url!r}; body starts: {preview!r}") from e
