"""
Shared constants used across backend modules.
Consolidates hardcoded string literals for prediction statuses, SSE event types, etc.
"""
from __future__ import annotations


# ── Prediction statuses (upstream values) ────────────────────────────────────

class PredictionStatus:
    """Status strings reported by the upstream prediction API."""
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    ALL = (STARTING, PROCESSING, SUCCEEDED, FAILED, CANCELED)

    # Polling stops once one of these is reached
    TERMINAL = frozenset({SUCCEEDED, FAILED, CANCELED})


# ── SSE Event Types ───────────────────────────────────────────────────────────
# Used by prediction_service (poll) and stream_controller (emit).

class SSEEvent:
    """Event type strings sent via Server-Sent Events."""
    STATUS = "status"
    COMPLETE = "complete"
    TIMEOUT = "timeout"
    ERROR = "error"

    TERMINAL = frozenset({COMPLETE, TIMEOUT, ERROR})


# ── Log categories ────────────────────────────────────────────────────────────

LOG_CATEGORIES = ("system", "model", "prediction")


# ── Model browsing ────────────────────────────────────────────────────────────

MODALITIES = ("all", "image", "video", "audio", "text")

SEARCH_RESULT_LIMIT = 50
