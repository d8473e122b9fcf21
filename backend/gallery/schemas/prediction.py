"""
Pydantic schemas for predictions (upstream run requests) and their local history.
"""
from __future__ import annotations
from typing import Any

from pydantic import BaseModel, Field


class Prediction(BaseModel):
    """Prediction record as returned by the upstream API."""
    id: str
    version: str | None = None
    model: str | None = None
    status: str = "starting"           # starting, processing, succeeded, failed, canceled
    input: dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    error: Any = None
    logs: str | None = None
    metrics: dict[str, Any] | None = None
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    urls: dict[str, Any] | None = None

    model_config = {"extra": "allow"}


class StoredPrediction(Prediction):
    """Prediction plus the local bookkeeping kept in the prediction store."""
    model_owner: str = "unknown"
    model_name: str = "unknown"
    model_display_name: str | None = None
    local_id: str
    saved_at: str

    model_config = {"extra": "allow", "protected_namespaces": ()}


class CreatePredictionRequest(BaseModel):
    """Request to run a model.

    Either ``model_owner`` + ``model_name`` (latest version) or ``version``
    must be given.
    """
    version: str | None = None
    model_owner: str | None = None
    model_name: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)

    model_config = {"protected_namespaces": ()}


# Fields mirrored from upstream into the store on every refresh
MIRRORED_FIELDS = ("status", "output", "error", "logs", "metrics", "started_at", "completed_at")
