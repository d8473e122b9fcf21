"""
Log Controller — read the gallery's structured logs.

Besides the generic filtered listing, logs are exposed the way the UI looks
at them: the lifecycle of one prediction, the activity around one model,
and the upstream client's retry / rate-limit warnings.
"""
from __future__ import annotations
from fastapi import APIRouter, HTTPException

from .. import logging_service as logger
from ..constants import LOG_CATEGORIES, PredictionStatus
from ..services import prediction_store

router = APIRouter(prefix="/api/logs", tags=["Logs"])

UPSTREAM_COMPONENT = "replicate"


def _check_category(category: str | None) -> None:
    if category and category not in LOG_CATEGORIES:
        raise HTTPException(400, {
            "error": f"Unknown log category: {category}",
            "code": "INVALID_CATEGORY",
            "hint": f"Use one of: {', '.join(LOG_CATEGORIES)}",
        })


@router.get("/", summary="Fetch application logs")
def get_logs(
    category: str | None = None,
    level: str | None = None,
    min_level: str | None = None,
    status: str | None = None,
    prediction_id: str | None = None,
    model: str | None = None,
    since: str | None = None,
    until: str | None = None,
    days: int = 7,
    limit: int = 100,
    offset: int = 0,
):
    """
    Structured log entries, newest first.

    - **category**: system, model, prediction
    - **level** / **min_level**: exact level, or that level and above
    - **status**: prediction status recorded with the entry (e.g. failed)
    - **prediction_id**: local or upstream id
    - **model**: "owner/name"
    """
    _check_category(category)
    if status and status not in PredictionStatus.ALL:
        raise HTTPException(400, f"Unknown prediction status: {status}")
    if prediction_id:
        stored = prediction_store.resolve(prediction_id)
        prediction_id = stored["local_id"] if stored else prediction_id
    return logger.get_logs(
        category=category, level=level, limit=limit, offset=offset,
        prediction_id=prediction_id, model=model, status=status,
        min_level=min_level, since=since, until=until, days=days,
    )


@router.get("/predictions/{prediction_id}", summary="Lifecycle of one prediction")
def get_prediction_timeline(prediction_id: str, days: int = 30):
    """Entries for a stored prediction (local or upstream id), oldest first."""
    stored = prediction_store.resolve(prediction_id)
    if stored is None:
        raise HTTPException(404, f"Prediction '{prediction_id}' not found")
    entries = logger.get_logs(
        category="prediction", prediction_id=stored["local_id"], limit=1000, days=days,
    )
    return {
        "local_id": stored["local_id"],
        "id": stored.get("id"),
        "status": stored.get("status"),
        "entries": entries[::-1],
    }


@router.get("/models/{owner}/{name}", summary="Activity around one model")
def get_model_logs(owner: str, name: str, min_level: str | None = None, limit: int = 100):
    return logger.get_logs(model=f"{owner}/{name}", min_level=min_level, limit=limit)


@router.get("/upstream", summary="Upstream API retries and failures")
def get_upstream_logs(limit: int = 100, days: int = 1):
    """Rate-limit waits, retried requests and exhausted retries, newest first."""
    return logger.get_logs(
        category="system", component=UPSTREAM_COMPONENT, min_level="WARNING",
        limit=limit, days=days,
    )


@router.get("/stats", summary="Log storage and level")
def get_log_stats():
    return logger.get_log_stats()


@router.delete("/", summary="Clear logs")
def clear_logs():
    count = logger.clear_logs()
    return {"message": f"Cleared {count} log entries", "removed": count}


@router.post("/cleanup", summary="Delete expired log files")
def cleanup_old_logs(retention_days: int | None = None):
    deleted = logger.cleanup_old_logs(retention_days)
    return {"message": f"Deleted {deleted} old log files", "deleted": deleted}


@router.get("/level", summary="Current minimum log level")
def get_log_level():
    return {"level": logger.get_min_level()}


@router.put("/level", summary="Set minimum log level")
def set_log_level(level: str):
    """DEBUG, INFO, WARNING or ERROR; takes effect immediately."""
    try:
        level = logger.set_min_level(level)
    except ValueError as e:
        raise HTTPException(400, str(e))
    logger.log("system", "INFO", f"Minimum log level set to {level}")
    return {"level": level}
