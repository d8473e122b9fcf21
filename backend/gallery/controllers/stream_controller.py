"""
Stream Controller — Server-Sent Events (SSE) for prediction progress.

Endpoints:
  - GET /api/predictions/{prediction_id}/stream — status changes until the run finishes
"""
from __future__ import annotations
import json
import math
from typing import Any

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from .. import logging_service as logger
from ..config import POLL_INTERVAL_S, POLL_TIMEOUT_S, ConfigurationError
from ..constants import PredictionStatus, SSEEvent
from ..services import prediction_service
from ..services.replicate_client import ReplicateError

router = APIRouter(tags=["Streaming"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sanitize(obj: Any) -> Any:
    """Recursively replace inf/nan floats with None so JSON serialization never fails."""
    if isinstance(obj, float):
        return None if not math.isfinite(obj) else obj
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    return obj


def _event(event_type: str, payload: dict) -> str:
    data = json.dumps(_sanitize({"type": event_type, **payload}), default=str)
    return f"event: {event_type}\ndata: {data}\n\n"


async def _prediction_events(prediction_id: str, interval: float, timeout: float):
    """
    Poll the prediction and emit one ``status`` event per status change.
    Ends with ``complete`` (terminal status), ``timeout`` or ``error``.
    """
    yield ": connected\n\n"
    try:
        async for prediction in prediction_service.poll_until_terminal(prediction_id, interval, timeout):
            status = prediction.get("status")
            if status in PredictionStatus.TERMINAL:
                yield _event(SSEEvent.COMPLETE, {"status": status, "prediction": prediction})
                return
            yield _event(SSEEvent.STATUS, {"status": status, "prediction": prediction})
    except TimeoutError:
        yield _event(SSEEvent.TIMEOUT, {"message": f"No terminal status after {timeout}s"})
    except ReplicateError as e:
        logger.log("prediction", "ERROR", "Status stream failed", {
            "error": e.message, "status": e.status,
        }, prediction_id=prediction_id)
        yield _event(SSEEvent.ERROR, {"message": e.message, "code": "REPLICATE_API_ERROR"})
    except ConfigurationError as e:
        yield _event(SSEEvent.ERROR, {"message": e.message, "code": e.code})


@router.get("/api/predictions/{prediction_id}/stream", summary="SSE stream of prediction status")
async def stream_prediction(
    prediction_id: str,
    interval: float = POLL_INTERVAL_S,
    timeout: float = POLL_TIMEOUT_S,
):
    """
    Subscribe to status changes of a prediction (local or upstream id).
    Events: status, complete, timeout, error.
    """
    interval = max(0.1, interval)
    return StreamingResponse(
        _prediction_events(prediction_id, interval, timeout),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
