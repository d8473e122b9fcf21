"""
Model Controller — browse, search and inspect upstream models, and build
the run form for a model version.
"""
from __future__ import annotations
from fastapi import APIRouter, HTTPException

from .. import logging_service as logger
from ..constants import SEARCH_RESULT_LIMIT
from ..schemas.form_field import ValidateRequest, ValidationResult
from ..services import prediction_service, ranking
from ..services.replicate_client import ReplicateError, get_client
from ..services.schema_resolver import (
    extract_input_schema,
    extract_output_schema,
    infer_output_type,
    parse_input_schema,
    seed_form_values,
    validate_input,
)

router = APIRouter(prefix="/api/models", tags=["Models"])


@router.get("/", summary="List models (ranked first page)")
def list_models(
    cursor: str | None = None,
    collection: str | None = None,
    featured: bool = False,
    sort_by: str | None = None,
    sort_direction: str | None = None,
    modality: str | None = None,
    q: str | None = None,
):
    """
    One page of public models.

    - **collection**: return that collection's models instead (ranked)
    - **featured**: rank the page even when a cursor is given
    - **modality**: image, video, audio, text (keyword filter)
    - **q**: filter and order the page by relevance
    """
    client = get_client()

    if collection:
        try:
            data = client.get_collection(collection)
        except ReplicateError as e:
            logger.log("model", "WARNING", f"Collection not found: {collection}", {"error": e.message})
        else:
            models = ranking.rank(data.get("models") or [])
            return {
                "results": ranking.filter_by_modality(models, modality),
                "next": None,
                "previous": None,
                "collection": {"name": data.get("name"), "description": data.get("description")},
            }

    cursor = (cursor or "").strip() or None
    try:
        response = client.list_models(cursor, sort_by, sort_direction)
    except ReplicateError as e:
        if "cursor" in e.message.lower():
            raise HTTPException(400, {"error": "Invalid pagination cursor", "code": "INVALID_CURSOR"})
        raise

    models = response.get("results") or []
    if q and q.strip():
        models = ranking.search_and_rank(models, q)
    elif featured or not cursor:
        models = ranking.rank(models)

    return {
        "results": ranking.filter_by_modality(models, modality),
        "next": (response.get("next") or "").strip() or None,
        "previous": response.get("previous") or None,
    }


@router.get("/search", summary="Search models")
def search_models(q: str | None = None, limit: int = 20, modality: str | None = None):
    """Upstream search (at most 50 results, no pagination), then relevance ranking."""
    if not q or not q.strip():
        raise HTTPException(400, {
            "error": "Search query is required",
            "code": "MISSING_QUERY",
            "hint": "Add ?q=your_search_term to the request",
        })
    query = q.strip()
    limit = min(SEARCH_RESULT_LIMIT, max(1, limit))

    response = get_client().search_models(query, limit)
    ranked = ranking.search_and_rank(response.get("results") or [], query)
    # upstream matches on fields we do not see; keep its hits that score zero here
    seen = {id(m) for m in ranked}
    ranked += ranking.rank([m for m in response.get("results") or [] if id(m) not in seen])

    return {
        "results": ranking.filter_by_modality(ranked, modality),
        "query": query,
        "limit": limit,
    }


@router.get("/{owner}/{name}", summary="Get a model with its versions")
def get_model(owner: str, name: str):
    client = get_client()
    model = client.get_model(owner, name)
    try:
        versions = client.get_model_versions(owner, name).get("results") or []
    except ReplicateError as e:
        logger.log("model", "WARNING", "Version listing failed", {"error": e.message}, model=f"{owner}/{name}")
        versions = []
    return {**model, "versions": versions}


@router.get("/{owner}/{name}/form", summary="Build the run form for a model")
def get_model_form(
    owner: str,
    name: str,
    version: str | None = None,
    clone_from: str | None = None,
):
    """
    Ordered form fields for the model's Input schema plus initial values.

    - **version**: a specific version id (default: latest)
    - **clone_from**: a stored prediction id whose input seeds the values
    """
    client = get_client()
    if version:
        descriptor = client.get_model_version(owner, name, version)
    else:
        descriptor = client.get_model(owner, name).get("latest_version") or {}
    openapi_schema = descriptor.get("openapi_schema")
    input_schema = extract_input_schema(openapi_schema)

    clone_input = None
    if clone_from:
        try:
            clone_input = prediction_service.clone_values(clone_from)
        except prediction_service.PredictionNotFoundError:
            raise HTTPException(404, f"Prediction not found: {clone_from}")

    return {
        "version": descriptor.get("id"),
        "fields": parse_input_schema(input_schema),
        "values": seed_form_values(input_schema, clone_input),
        "output_type": infer_output_type(extract_output_schema(openapi_schema)),
    }


@router.post("/{owner}/{name}/validate", response_model=ValidationResult, summary="Validate run input")
def validate_model_input(owner: str, name: str, req: ValidateRequest):
    schema = prediction_service.fetch_input_schema(owner, name, req.version)
    return validate_input(req.input, schema)


# ── Collections ──────────────────────────────────────────────────────────────

collections_router = APIRouter(prefix="/api/collections", tags=["Models"])


@collections_router.get("/", summary="List collections")
def list_collections():
    return get_client().list_collections()


@collections_router.get("/{slug}", summary="Get a collection (models ranked)")
def get_collection(slug: str):
    data = get_client().get_collection(slug)
    return {**data, "models": ranking.rank(data.get("models") or [])}
