"""
Centralized configuration — all paths, env vars, and settings in one place.

All data directories are consolidated under DATA_DIR (backend/data/).
Environment variables:
  - DATA_DIR:                     override data root (default: backend/data/)
  - LOG_LEVEL:                    minimum log level (default: INFO)
  - LOG_RETENTION_DAYS:           auto-cleanup threshold (default: 30)
  - REPLICATE_API_TOKEN:          upstream API token (fallback: REPLICATE_API_KEY)
  - REPLICATE_API_BASE:           upstream REST root
  - REPLICATE_MAX_RETRIES:        retries for 429 / 5xx / transport errors (default: 3)
  - REPLICATE_RETRY_DELAY_S:      base back-off between retries (default: 1.0)
  - REPLICATE_RATE_LIMIT_DELAY_S: wait after a 429 (default: 5.0)
  - REPLICATE_TIMEOUT_S:          per-request timeout (default: 30)
  - POLL_INTERVAL_S / POLL_TIMEOUT_S: prediction status polling
  - FIELD_HEURISTICS_FILE:        optional YAML extending the form-field keyword lists
"""
from __future__ import annotations
import os
from pathlib import Path

# ─── Root directories ────────────────────────────────────────────────────────

# Project root: model-gallery/
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Backend root: model-gallery/backend/
BACKEND_ROOT = Path(__file__).parent.parent

# Data root: all persistent data lives here
DATA_DIR = Path(os.environ.get("DATA_DIR", str(BACKEND_ROOT / "data")))

# ─── Data sub-directories ────────────────────────────────────────────────────

PREDICTIONS_DIR = DATA_DIR / "predictions"
LOGS_DIR        = DATA_DIR / "logs"

for _d in (PREDICTIONS_DIR, LOGS_DIR):
    _d.mkdir(parents=True, exist_ok=True)

# ─── Logging ─────────────────────────────────────────────────────────────────

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))

# ─── CORS ─────────────────────────────────────────────────────────────────────

_DEFAULT_CORS = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.environ.get("CORS_ORIGINS", _DEFAULT_CORS).split(",") if o.strip()
]

# ─── Upstream API ─────────────────────────────────────────────────────────────

REPLICATE_API_BASE = os.environ.get("REPLICATE_API_BASE", "https://api.replicate.com/v1").rstrip("/")
MAX_RETRIES = int(os.environ.get("REPLICATE_MAX_RETRIES", "3"))
RETRY_DELAY_S = float(os.environ.get("REPLICATE_RETRY_DELAY_S", "1.0"))
RATE_LIMIT_RETRY_DELAY_S = float(os.environ.get("REPLICATE_RATE_LIMIT_DELAY_S", "5.0"))
REQUEST_TIMEOUT_S = float(os.environ.get("REPLICATE_TIMEOUT_S", "30"))

# ─── Prediction polling ───────────────────────────────────────────────────────

POLL_INTERVAL_S = float(os.environ.get("POLL_INTERVAL_S", "1.5"))
POLL_TIMEOUT_S = float(os.environ.get("POLL_TIMEOUT_S", "600"))

# ─── Form field heuristics ───────────────────────────────────────────────────

FIELD_HEURISTICS_FILE = os.environ.get("FIELD_HEURISTICS_FILE", "")

# ─── App metadata ────────────────────────────────────────────────────────────

APP_NAME = "Model Gallery API"
APP_VERSION = "1.0.0"


# ─── Token resolution ────────────────────────────────────────────────────────

ERROR_CODE_MISSING_TOKEN = "MISSING_API_TOKEN"

REPLICATE_TOKEN_ERROR = (
    "Missing Replicate API token. Set REPLICATE_API_TOKEN in environment variables."
)


class ConfigurationError(Exception):
    """Raised when a required setting is missing."""

    def __init__(self, message: str, code: str = "CONFIG_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


def is_replicate_configured() -> bool:
    """True when an API token is available. Never raises."""
    return bool(os.environ.get("REPLICATE_API_TOKEN") or os.environ.get("REPLICATE_API_KEY"))


def get_replicate_token() -> str:
    """Return the API token.

    Resolution order: REPLICATE_API_TOKEN, then REPLICATE_API_KEY.
    Read at call time so the token can be set after import.

    Raises:
        ConfigurationError: If neither variable is set.
    """
    token = os.environ.get("REPLICATE_API_TOKEN") or os.environ.get("REPLICATE_API_KEY")
    if not token:
        raise ConfigurationError(REPLICATE_TOKEN_ERROR, ERROR_CODE_MISSING_TOKEN)
    return token
