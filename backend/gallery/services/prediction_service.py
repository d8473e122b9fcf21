"""
Prediction service — validates run requests against the model's Input
schema, submits them upstream and keeps the local history in sync.

Ids accepted by refresh / cancel / delete may be either a local id
(``local_...``) or the upstream prediction id.
"""
from __future__ import annotations
import asyncio
import time
from typing import Any, AsyncIterator

from .. import logging_service as logger
from ..config import POLL_INTERVAL_S, POLL_TIMEOUT_S
from ..constants import PredictionStatus
from ..schemas.prediction import MIRRORED_FIELDS
from . import prediction_store
from .replicate_client import get_client
from .schema_resolver import extract_input_schema, validate_input


class InputValidationError(Exception):
    """Submitted input violates the model's Input schema; nothing was sent upstream."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "Invalid input")
        self.errors = list(errors)


class PredictionNotFoundError(Exception):
    """No stored prediction matches the given id."""


# ── Schema lookup ────────────────────────────────────────────────────────────

def fetch_input_schema(owner: str, name: str, version: str | None = None) -> dict | None:
    """Input schema of a specific version, or of the model's latest version."""
    client = get_client()
    if version:
        descriptor = client.get_model_version(owner, name, version)
    else:
        descriptor = (client.get_model(owner, name) or {}).get("latest_version") or {}
    return extract_input_schema(descriptor.get("openapi_schema"))


# ── Submit ───────────────────────────────────────────────────────────────────

def submit(
    owner: str | None,
    name: str | None,
    input: dict[str, Any] | None,
    version: str | None = None,
) -> dict:
    """Validate, create the upstream prediction and store it.

    Raises:
        ValueError: Neither owner/name nor version was given.
        InputValidationError: Input fails schema validation.
    """
    values = {k: v for k, v in (input or {}).items() if v is not None}
    has_model = bool(owner and name)
    if not has_model and not version:
        raise ValueError("Either version or model_owner/model_name is required")

    client = get_client()
    if has_model:
        schema = fetch_input_schema(owner, name, version)  # type: ignore[arg-type]
        result = validate_input(values, schema)
        if not result.valid:
            logger.log("prediction", "WARNING", "Input rejected by schema validation", {
                "errors": result.errors,
            }, model=f"{owner}/{name}")
            raise InputValidationError(result.errors)

    # a pinned version runs exactly the version that was validated
    if version:
        prediction = client.create_prediction(version, values)
    else:
        prediction = client.create_prediction_for_model(owner, name, values)  # type: ignore[arg-type]

    stored = prediction_store.store_prediction(
        prediction,
        owner or "unknown",
        name or "unknown",
        model_display_name=name,
    )
    logger.log("prediction", "INFO", "Prediction created", {
        "status": stored.get("status"),
        "version": stored.get("version"),
        "input_keys": sorted(values),
    }, prediction_id=stored["local_id"], model=f"{stored['model_owner']}/{stored['model_name']}")
    return stored


# ── Status ───────────────────────────────────────────────────────────────────

def _remote_id(prediction_id: str) -> tuple[dict | None, str]:
    stored = prediction_store.resolve(prediction_id)
    return stored, (stored or {}).get("id") or prediction_id


def refresh(prediction_id: str) -> dict:
    """Fetch current upstream state; mirror it into the store when the id is known locally."""
    stored, remote_id = _remote_id(prediction_id)
    prediction = get_client().get_prediction(remote_id)

    if stored is None:
        return {**prediction, "local_id": None}

    previous = stored.get("status")
    update = {f: prediction.get(f) for f in MIRRORED_FIELDS if f in prediction}
    updated = prediction_store.update_prediction(stored["local_id"], update) or stored

    if update.get("status") != previous and update.get("status") in PredictionStatus.TERMINAL:
        level = "ERROR" if update["status"] == PredictionStatus.FAILED else "INFO"
        logger.log("prediction", level, f"Prediction {update['status']}", {
            "status": update["status"],
            "error": update.get("error"),
            "metrics": update.get("metrics"),
        }, prediction_id=stored["local_id"], model=f"{stored.get('model_owner')}/{stored.get('model_name')}")
    return updated


def cancel(prediction_id: str) -> dict:
    stored, remote_id = _remote_id(prediction_id)
    prediction = get_client().cancel_prediction(remote_id)
    if stored is None:
        return prediction
    prediction_store.update_prediction(stored["local_id"], {"status": prediction.get("status")})
    logger.log("prediction", "INFO", "Prediction cancel requested", {
        "status": prediction.get("status"),
    }, prediction_id=stored["local_id"])
    return prediction


def delete(prediction_id: str) -> bool:
    """Remove from local history only; the upstream prediction is untouched."""
    stored = prediction_store.resolve(prediction_id)
    if stored is None:
        return False
    return prediction_store.delete_prediction(stored["local_id"])


def clone_values(local_id: str) -> dict[str, Any]:
    """Stored input of a previous run, for seeding a new form."""
    stored = prediction_store.resolve(local_id)
    if stored is None:
        raise PredictionNotFoundError(local_id)
    return dict(stored.get("input") or {})


# ── Polling ──────────────────────────────────────────────────────────────────

async def poll_until_terminal(
    prediction_id: str,
    interval: float = POLL_INTERVAL_S,
    timeout: float = POLL_TIMEOUT_S,
) -> AsyncIterator[dict]:
    """Yield the prediction each time its status changes, until terminal.

    Refreshes run in a worker thread. Raises TimeoutError when ``timeout``
    seconds pass without a terminal status.
    """
    deadline = time.monotonic() + timeout
    last_status: str | None = None
    while True:
        prediction = await asyncio.to_thread(refresh, prediction_id)
        status = prediction.get("status")
        if status != last_status:
            last_status = status
            yield prediction
        if status in PredictionStatus.TERMINAL:
            return
        if time.monotonic() + interval > deadline:
            raise TimeoutError(f"Prediction {prediction_id} not finished after {timeout}s")
        await asyncio.sleep(interval)
