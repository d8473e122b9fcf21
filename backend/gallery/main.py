"""
Model Gallery — FastAPI Backend
================================
Browse hosted machine-learning models, build run forms from their input
schemas, and track the resulting predictions.

  - Models: ranked listing, search, model detail, run form + validation
  - Predictions: submit, poll, cancel, local history with export/import
  - Streaming: Server-Sent Events for prediction status

Uses the create_app() factory pattern for clean initialization.
All paths and settings are centralized in config.py.
"""
from __future__ import annotations
import json
import math
import time
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from . import logging_service as logger
from .config import APP_NAME, APP_VERSION, CORS_ORIGINS, ConfigurationError
from .services.prediction_service import InputValidationError
from .services.replicate_client import ReplicateError


# ─── Safe JSON Response (replaces NaN/Inf with None) ─────────────────────────

def _sanitize(obj: Any) -> Any:
    """Recursively replace inf/nan floats with None so JSON never fails."""
    if isinstance(obj, float):
        return None if not math.isfinite(obj) else obj
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(v) for v in obj]
    return obj


class SafeJSONResponse(JSONResponse):
    """JSONResponse that silently converts NaN/Inf to None."""
    def render(self, content: Any) -> bytes:
        return json.dumps(
            _sanitize(content),
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
            default=str,
        ).encode("utf-8")


# ─── System Logging Middleware ────────────────────────────────────────────────

class SystemLogMiddleware(BaseHTTPMiddleware):
    """Auto-logs every HTTP request with method, path, status, and duration."""

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000, 1)

        path = request.url.path
        if path in ("/docs", "/redoc", "/openapi.json", "/favicon.ico"):
            return response

        logger.log("system", "INFO", f"{request.method} {path}", {
            "status": response.status_code,
            "duration_ms": duration_ms,
            "client": request.client.host if request.client else "unknown",
        })
        return response


# ─── Error mapping ───────────────────────────────────────────────────────────

def _register_exception_handlers(application: FastAPI) -> None:

    @application.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        logger.log("system", "ERROR", f"Configuration error: {exc.message}", {"path": request.url.path})
        return SafeJSONResponse(status_code=500, content={
            "error": exc.message,
            "code": exc.code,
            "hint": "Check /api/health for setup instructions",
        })

    @application.exception_handler(ReplicateError)
    async def replicate_error(request: Request, exc: ReplicateError):
        logger.log("system", "ERROR", f"Upstream API error: {exc.message}", {
            "path": request.url.path, "status": exc.status,
        })
        return SafeJSONResponse(status_code=exc.status, content={
            "error": exc.message,
            "code": "REPLICATE_API_ERROR",
        })

    @application.exception_handler(InputValidationError)
    async def input_validation_error(request: Request, exc: InputValidationError):
        return SafeJSONResponse(status_code=422, content={
            "error": "Input validation failed",
            "code": "INVALID_INPUT",
            "errors": exc.errors,
        })


# ─── App Factory ─────────────────────────────────────────────────────────────

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    application = FastAPI(
        title=APP_NAME,
        description="Browse hosted models, generate run forms from their input "
                    "schemas, and track predictions.",
        version=APP_VERSION,
        default_response_class=SafeJSONResponse,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "Models", "description": "Model listing, search, detail and run forms"},
            {"name": "Predictions", "description": "Prediction submit, status and local history"},
            {"name": "Streaming", "description": "Server-Sent Events for prediction status"},
            {"name": "Logs", "description": "System-wide structured logs"},
            {"name": "System", "description": "Health check and statistics"},
        ],
    )

    # ── Middleware ────────────────────────────────────────────────────────────
    application.add_middleware(SystemLogMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(application)

    # ── Routers ──────────────────────────────────────────────────────────────
    from .controllers.model_controller import router as model_router
    from .controllers.model_controller import collections_router
    from .controllers.prediction_controller import router as prediction_router
    from .controllers.stream_controller import router as stream_router
    from .controllers.log_controller import router as log_router
    from .controllers.system_controller import router as system_router

    for router in (
        model_router, collections_router, prediction_router,
        stream_router, log_router, system_router,
    ):
        application.include_router(router)

    # ── Startup: discover plugins ───────────────────────────────────────────
    from .plugins.loader import discover_plugins
    counts = discover_plugins()
    logger.log("system", "INFO", f"Plugins discovered: {counts}")

    # ── Startup: old log cleanup ────────────────────────────────────────────
    removed = logger.cleanup_old_logs()
    if removed:
        logger.log("system", "INFO", f"Removed {removed} expired log files")

    @application.get("/", include_in_schema=False)
    async def root():
        return {
            "app": APP_NAME,
            "version": APP_VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    return application


# ─── Module-level app instance (used by uvicorn) ────────────────────────────

app = create_app()
