"""
Prediction Controller — submit model runs, track them and manage the local history.
"""
from __future__ import annotations
from fastapi import APIRouter, Body, HTTPException

from .. import logging_service as logger
from ..schemas.prediction import CreatePredictionRequest
from ..services import prediction_service, prediction_store
from ..services.replicate_client import get_client

router = APIRouter(prefix="/api/predictions", tags=["Predictions"])


@router.get("/", summary="List predictions")
def list_predictions(
    model_owner: str | None = None,
    model_name: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    local: bool = True,
    cursor: str | None = None,
):
    """
    Prediction history, newest first.

    - **local**: read the local history (default); false proxies the upstream listing
    - **model_owner + model_name**: filter by model (both required)
    - **status**: starting, processing, succeeded, failed, canceled
    """
    if not local:
        return get_client().list_predictions(cursor)
    results = prediction_store.list_predictions(
        model_owner=model_owner, model_name=model_name, status=status,
        limit=limit, offset=offset,
    )
    return {"results": results, "total": prediction_store.count()}


@router.post("/", summary="Create a prediction")
def create_prediction(req: CreatePredictionRequest):
    """Validate the input against the model's schema, then run it upstream.

    Invalid input returns 422 with the accumulated ``errors`` and is never sent.
    """
    try:
        return prediction_service.submit(req.model_owner, req.model_name, req.input, req.version)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.delete("/", summary="Clear local prediction history")
def clear_predictions():
    removed = prediction_store.clear_predictions()
    logger.log("prediction", "INFO", "Prediction history cleared", {"removed": removed})
    return {"message": f"Cleared {removed} predictions", "removed": removed}


@router.get("/export", summary="Export local prediction history")
def export_predictions():
    return {"predictions": prediction_store.export_predictions()}


@router.post("/import", summary="Import prediction history")
def import_predictions(predictions: list[dict] = Body(..., embed=True)):
    """Restore exported records; existing local ids are left untouched."""
    imported = prediction_store.import_predictions(predictions)
    logger.log("prediction", "INFO", "Prediction history imported", {
        "received": len(predictions), "imported": imported,
    })
    return {"imported": imported, "skipped": len(predictions) - imported}


@router.get("/{prediction_id}", summary="Get prediction status")
def get_prediction(prediction_id: str):
    """Current upstream state; the local record is updated when the id is known."""
    return prediction_service.refresh(prediction_id)


@router.post("/{prediction_id}/cancel", summary="Cancel a running prediction")
def cancel_prediction(prediction_id: str):
    return prediction_service.cancel(prediction_id)


@router.delete("/{prediction_id}", summary="Delete a prediction from local history")
def delete_prediction(prediction_id: str):
    if not prediction_service.delete(prediction_id):
        raise HTTPException(status_code=404, detail=f"Prediction '{prediction_id}' not found")
    logger.log("prediction", "INFO", "Prediction deleted", prediction_id=prediction_id)
    return {"message": f"Prediction '{prediction_id}' deleted"}
