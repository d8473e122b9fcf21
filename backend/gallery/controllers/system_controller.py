"""
System Controller — configuration health check and dashboard statistics.
"""
from __future__ import annotations
from datetime import datetime, timezone

from fastapi import APIRouter

from ..config import APP_VERSION, is_replicate_configured
from ..plugins.loader import all_classifiers, get_classifier
from ..services import prediction_store

router = APIRouter(tags=["System"])

SETUP_INSTRUCTIONS = [
    "1. Get your API token from https://replicate.com/account/api-tokens",
    "2. Export it: REPLICATE_API_TOKEN=your_token_here",
    "3. Restart the server",
]


@router.get("/api/health", summary="Configuration health check")
async def health():
    """
    Report whether the upstream API token is configured.
    Always 200; the token itself is never returned.
    """
    configured = is_replicate_configured()
    response = {
        "status": "healthy" if configured else "misconfigured",
        "replicate_configured": configured,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not configured:
        response["message"] = "Replicate API token is not configured."
        response["setup_instructions"] = SETUP_INSTRUCTIONS
    return response


@router.get("/api/stats", summary="Dashboard statistics")
async def get_stats():
    """Return aggregated stats for the dashboard."""
    by_status = prediction_store.count_by_status()
    return {
        "total_predictions": prediction_store.count(),
        "predictions_by_status": by_status,
        "active_predictions": by_status.get("starting", 0) + by_status.get("processing", 0),
        "field_classifier": get_classifier().name,
        "field_classifiers": [c.name for c in all_classifiers()],
    }
