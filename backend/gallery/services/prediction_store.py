"""
Local history of submitted predictions, keyed by a locally generated id.

Directory layout:
  PREDICTIONS_DIR/
    {local_id}.json    ← StoredPrediction
    _index.json        ← id / model / status / saved_at per record

This is a cache of what was submitted from this service; the upstream API
stays authoritative for status and output.
"""
from __future__ import annotations
import random
import re
import string
import time
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from ..config import PREDICTIONS_DIR
from ..schemas.prediction import StoredPrediction
from .base_storage import BaseJsonStorage

_INDEX_FIELDS = ("id", "model_owner", "model_name", "status", "saved_at")
_ID_ALPHABET = string.ascii_lowercase + string.digits
_VALID_ID = re.compile(r"^[A-Za-z0-9_-]+$")

_store = BaseJsonStorage(PREDICTIONS_DIR, index_fields=_INDEX_FIELDS)


def generate_local_id() -> str:
    """``local_<epoch ms>_<7 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"local_{int(time.time() * 1000)}_{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


# ── CRUD ─────────────────────────────────────────────────────────────────────

def store_prediction(
    prediction: dict[str, Any],
    model_owner: str,
    model_name: str,
    model_display_name: str | None = None,
) -> dict:
    """Save an upstream prediction under a new local id. Returns the stored record."""
    record = StoredPrediction.model_validate({
        **prediction,
        "model_owner": model_owner,
        "model_name": model_name,
        "model_display_name": model_display_name,
        "local_id": generate_local_id(),
        "saved_at": _now_iso(),
    }).model_dump()
    _store.save(record["local_id"], record)
    return record


def update_prediction(local_id: str, update: dict[str, Any]) -> dict | None:
    """Merge ``update`` into a stored record. None if the id is unknown."""
    existing = _store.load(local_id)
    if existing is None:
        return None
    updated = {**existing, **update, "local_id": local_id}
    _store.save(local_id, updated)
    return updated


def get_prediction(local_id: str) -> dict | None:
    if not _VALID_ID.match(local_id):
        return None
    return _store.load(local_id)


def get_by_remote_id(remote_id: str) -> dict | None:
    """Look a record up by its upstream prediction id."""
    found = _store.find(id=remote_id)
    return found[0] if found else None


def resolve(prediction_id: str) -> dict | None:
    """Accept either a local id or an upstream id."""
    return get_prediction(prediction_id) or get_by_remote_id(prediction_id)


def list_predictions(
    model_owner: str | None = None,
    model_name: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    """Stored predictions, newest first, optionally filtered.

    The model filter only applies when both owner and name are given.
    """
    filters: dict[str, Any] = {"status": status}
    if model_owner and model_name:
        filters["model_owner"] = model_owner
        filters["model_name"] = model_name
    results = _store.find(**filters)
    results.sort(key=lambda r: r.get("saved_at") or "", reverse=True)
    offset = max(offset, 0)
    limit = limit if limit and limit > 0 else 50
    return results[offset: offset + limit]


def delete_prediction(local_id: str) -> bool:
    if not _VALID_ID.match(local_id):
        return False
    return _store.delete(local_id)


def clear_predictions() -> int:
    return _store.clear()


def count() -> int:
    return _store.count()


def count_by_status() -> dict[str, int]:
    counts: dict[str, int] = {}
    for summary in _store.summaries().values():
        status = summary.get("status") or "unknown"
        counts[status] = counts.get(status, 0) + 1
    return counts


# ── Backup / restore ─────────────────────────────────────────────────────────

def export_predictions() -> list[dict]:
    return _store.find()


def import_predictions(records: Iterable[dict]) -> int:
    """Restore records; ones without a local_id or already present are skipped."""
    imported = 0
    for raw in records:
        if not isinstance(raw, dict):
            continue
        local_id = raw.get("local_id")
        if not isinstance(local_id, str) or not _VALID_ID.match(local_id) or _store.exists(local_id):
            continue
        try:
            record = StoredPrediction.model_validate(raw).model_dump()
        except ValidationError:
            continue
        _store.save(local_id, record)
        imported += 1
    return imported
