"""
Replicate REST client — thin wrapper over ``requests`` with retry handling.

Retry policy per request (attempts = 1 + max_retries):
  - 429            wait rate_limit_delay, retry; "Rate limit exceeded" when exhausted
  - other 4xx      raise immediately with the body's ``detail`` / ``error``
  - 5xx, transport wait retry_delay * (attempt + 1), retry; then raise (transport as 502)

Every call needs the API token; a missing token raises ConfigurationError
before any request is made.
"""
from __future__ import annotations
import threading
import time
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import requests

from .. import logging_service as logger
from ..config import (
    MAX_RETRIES,
    RATE_LIMIT_RETRY_DELAY_S,
    REPLICATE_API_BASE,
    REQUEST_TIMEOUT_S,
    RETRY_DELAY_S,
    get_replicate_token,
)

SEARCH_LIMIT_MAX = 50
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


class ReplicateError(Exception):
    """Upstream API failure carrying the HTTP status to report."""

    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"ReplicateError({self.message!r}, {self.status})"


def _error_message(response: requests.Response) -> str:
    text = response.text or ""
    try:
        body = response.json()
    except ValueError:
        return text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        message = body.get("detail") or body.get("error")
        if message:
            return str(message)
    return text or f"HTTP {response.status_code}"


def _cursor_value(cursor: str | None) -> str | None:
    """Accept a bare cursor or the full ``next`` URL returned by a listing."""
    cursor = (cursor or "").strip()
    if not cursor:
        return None
    if cursor.startswith(("http://", "https://")):
        values = parse_qs(urlparse(cursor).query).get("cursor")
        return values[0] if values else None
    return cursor


class ReplicateClient:
    def __init__(
        self,
        token: str | None = None,
        base_url: str = REPLICATE_API_BASE,
        session: requests.Session | None = None,
        *,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_S,
        rate_limit_delay: float = RATE_LIMIT_RETRY_DELAY_S,
        timeout: float = REQUEST_TIMEOUT_S,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self._sleep = sleep

    # ── Transport ────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        token = self._token or get_replicate_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        req_headers = {**self._headers(), **(headers or {})}
        params = {k: v for k, v in (params or {}).items() if v is not None}

        for attempt in range(self.max_retries + 1):
            last = attempt >= self.max_retries
            try:
                response = self.session.request(
                    method, url,
                    params=params or None,
                    json=json,
                    data=data,
                    headers=req_headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                if last:
                    logger.log("system", "ERROR", f"Upstream request failed: {method} {path}", {
                        "error": str(e), "attempts": attempt + 1,
                    }, component="replicate")
                    raise ReplicateError(f"Upstream request failed: {e}", 502) from e
                self._back_off(method, path, attempt, str(e))
                continue

            status = response.status_code

            if status == 429:
                if last:
                    raise ReplicateError(RATE_LIMIT_MESSAGE, 429)
                logger.log("system", "WARNING", f"Rate limited, retrying in {self.rate_limit_delay}s", {
                    "method": method, "path": path, "attempt": attempt + 1,
                }, component="replicate")
                self._sleep(self.rate_limit_delay)
                continue

            if 400 <= status < 500:
                raise ReplicateError(_error_message(response), status)

            if status >= 500:
                if last:
                    raise ReplicateError(_error_message(response), status)
                self._back_off(method, path, attempt, f"HTTP {status}")
                continue

            if status == 204 or not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise ReplicateError("Invalid JSON in upstream response", 502) from e

        raise ReplicateError("Max retries exceeded", 500)

    def _back_off(self, method: str, path: str, attempt: int, reason: str) -> None:
        delay = self.retry_delay * (attempt + 1)
        logger.log("system", "WARNING", f"Request failed, retrying ({attempt + 1}/{self.max_retries})", {
            "method": method, "path": path, "reason": reason, "delay_s": delay,
        }, component="replicate")
        self._sleep(delay)

    # ── Models ───────────────────────────────────────────────────────────────

    def list_models(
        self,
        cursor: str | None = None,
        sort_by: str | None = None,
        sort_direction: str | None = None,
    ) -> dict:
        """One page of public models: ``{results, next, previous}``."""
        return self._request("GET", "/models", params={
            "cursor": _cursor_value(cursor),
            "sort_by": sort_by,
            "sort_direction": sort_direction,
        })

    def get_model(self, owner: str, name: str) -> dict:
        return self._request("GET", f"/models/{owner}/{name}")

    def get_model_versions(self, owner: str, name: str) -> dict:
        return self._request("GET", f"/models/{owner}/{name}/versions")

    def get_model_version(self, owner: str, name: str, version_id: str) -> dict:
        return self._request("GET", f"/models/{owner}/{name}/versions/{version_id}")

    def search_models(self, query: str, limit: int = 20) -> dict:
        """Upstream search (HTTP ``QUERY /models``), at most 50 results, no cursor."""
        limit = min(SEARCH_LIMIT_MAX, max(1, limit))
        result = self._request(
            "QUERY", "/models",
            data=query.strip(),
            headers={"Content-Type": "text/plain"},
        )
        results = (result.get("results") or []) if isinstance(result, dict) else []
        return {"results": results[:limit]}

    # ── Collections ──────────────────────────────────────────────────────────

    def list_collections(self) -> dict:
        return self._request("GET", "/collections")

    def get_collection(self, slug: str) -> dict:
        return self._request("GET", f"/collections/{slug}")

    # ── Predictions ──────────────────────────────────────────────────────────

    def create_prediction(
        self,
        version: str,
        input: dict[str, Any],
        webhook: str | None = None,
    ) -> dict:
        body: dict[str, Any] = {"version": version, "input": input}
        if webhook:
            body["webhook"] = webhook
        return self._request("POST", "/predictions", json=body)

    def create_prediction_for_model(self, owner: str, name: str, input: dict[str, Any]) -> dict:
        """Run the model's latest version via the model endpoint."""
        return self._request("POST", f"/models/{owner}/{name}/predictions", json={"input": input})

    def get_prediction(self, prediction_id: str) -> dict:
        return self._request("GET", f"/predictions/{prediction_id}")

    def cancel_prediction(self, prediction_id: str) -> dict:
        return self._request("POST", f"/predictions/{prediction_id}/cancel")

    def list_predictions(self, cursor: str | None = None) -> dict:
        return self._request("GET", "/predictions", params={"cursor": _cursor_value(cursor)})

    # ── Misc ─────────────────────────────────────────────────────────────────

    def list_hardware(self) -> list[dict]:
        return self._request("GET", "/hardware")


# ── Module singleton ─────────────────────────────────────────────────────────

_client: ReplicateClient | None = None
_client_lock = threading.Lock()


def get_client() -> ReplicateClient:
    global _client
    with _client_lock:
        if _client is None:
            _client = ReplicateClient()
        return _client


def set_client(client: ReplicateClient | None) -> None:
    """Replace the shared client (None resets to a fresh default on next use)."""
    global _client
    with _client_lock:
        _client = client
