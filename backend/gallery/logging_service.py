"""
Structured logging service — per-category log directories, daily rotation,
configurable minimum level, structured metadata, auto-cleanup.

Directory layout:
  backend/data/logs/
    system/system-YYYY-MM-DD.jsonl          (HTTP requests, startup)
    model/model-YYYY-MM-DD.jsonl            (listing / descriptor fetches)
    prediction/prediction-YYYY-MM-DD.jsonl  (submit / refresh / cancel / poll)
"""
from __future__ import annotations
import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Literal

from .config import LOGS_DIR as LOG_DIR
from .config import LOG_LEVEL, LOG_RETENTION_DAYS
from .constants import LOG_CATEGORIES

# ─── Configuration ──────────────────────────────────────────────────────────

Category = Literal["system", "model", "prediction"]
Level = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

_LEVEL_ORDER = {"DEBUG": 0, "INFO": 1, "WARNING": 2, "ERROR": 3}

# Runtime-configurable minimum level
_min_level: str = LOG_LEVEL
_lock = threading.Lock()


def set_min_level(level: str) -> str:
    """Set the minimum log level at runtime. Raises ValueError for unknown levels."""
    global _min_level
    level = level.upper()
    if level not in _LEVEL_ORDER:
        raise ValueError(f"Invalid level: {level}")
    _min_level = level
    return level


def get_min_level() -> str:
    return _min_level


# ─── Category directories ───────────────────────────────────────────────────

for _cat in LOG_CATEGORIES:
    (LOG_DIR / _cat).mkdir(parents=True, exist_ok=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _category_dir(category: str) -> Path:
    d = LOG_DIR / category
    d.mkdir(parents=True, exist_ok=True)
    return d


def _daily_file(category: str, date: datetime | None = None) -> Path:
    """Return the daily log file for a category."""
    dt = date or _now()
    return _category_dir(category) / f"{category}-{dt.strftime('%Y-%m-%d')}.jsonl"


# ─── Core log function ──────────────────────────────────────────────────────

def log(
    category: Category,
    level: Level,
    message: str,
    data: dict | None = None,
    *,
    prediction_id: str | None = None,
    model: str | None = None,
    component: str | None = None,
) -> dict:
    """
    Write a structured log entry and return it ({} when below the level gate).

    ``prediction_id`` and ``model`` ("owner/name") are lifted to top-level
    keys so get_logs() can filter on them; they are also picked up from
    ``data`` when passed there.
    """
    if _LEVEL_ORDER.get(level, 1) < _LEVEL_ORDER.get(_min_level, 1):
        return {}

    entry = {
        "timestamp": _now().strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "category": category,
        "level": level,
        "message": message,
        "data": data or {},
    }

    if isinstance(data, dict):
        prediction_id = prediction_id or data.get("prediction_id")
        model = model or data.get("model")
    if prediction_id:
        entry["prediction_id"] = prediction_id
    if model:
        entry["model"] = model
    if component:
        entry["component"] = component

    line = json.dumps(entry, default=str) + "\n"

    with _lock:
        with open(_daily_file(category), "a") as f:
            f.write(line)

    return entry


# ─── Query / Read ────────────────────────────────────────────────────────────

def get_logs(
    category: str | None = None,
    level: str | None = None,
    limit: int = 100,
    offset: int = 0,
    *,
    prediction_id: str | None = None,
    model: str | None = None,
    status: str | None = None,
    component: str | None = None,
    min_level: str | None = None,
    since: str | None = None,
    until: str | None = None,
    days: int = 7,
) -> list[dict]:
    """
    Read structured log entries with filters, most recent first.

    Params:
        category: filter by category (None = all)
        level: filter by exact level
        limit: max entries to return
        offset: skip first N matching entries
        prediction_id: filter by prediction id (local or upstream)
        model: filter by "owner/name"
        status: filter by the prediction status recorded in ``data``
        component: filter by emitting component (e.g. "replicate")
        min_level: keep entries at or above this level
        since / until: ISO timestamp bounds (inclusive)
        days: how many days of log files to scan
    """
    now = _now()
    cats = [category] if (category and category in LOG_CATEGORIES) else list(LOG_CATEGORIES)
    files_to_scan: list[Path] = []
    for cat in cats:
        for d in range(days):
            f = _daily_file(cat, now - timedelta(days=d))
            if f.exists():
                files_to_scan.append(f)

    entries: list[dict] = []
    for fp in files_to_scan:
        with open(fp) as f:
            for raw_line in f:
                raw_line = raw_line.strip()
                if not raw_line:
                    continue
                try:
                    entry = json.loads(raw_line)
                except json.JSONDecodeError:
                    continue

                if category and entry.get("category") != category:
                    continue
                if level and entry.get("level") != level:
                    continue
                if prediction_id and entry.get("prediction_id") != prediction_id:
                    continue
                if model and entry.get("model") != model:
                    continue
                if status and (entry.get("data") or {}).get("status") != status:
                    continue
                if component and entry.get("component") != component:
                    continue
                if min_level and _LEVEL_ORDER.get(entry.get("level"), 1) < _LEVEL_ORDER.get(min_level.upper(), 0):
                    continue
                if since and entry.get("timestamp", "") < since:
                    continue
                if until and entry.get("timestamp", "") > until:
                    continue

                entries.append(entry)

    # later lines first when timestamps tie
    entries.reverse()
    entries.sort(key=lambda e: e.get("timestamp", ""), reverse=True)
    return entries[offset: offset + limit]


# ─── Clear / Cleanup ────────────────────────────────────────────────────────

def clear_logs() -> int:
    """Clear all logs across all categories. Returns total entries deleted."""
    count = 0
    with _lock:
        for cat in LOG_CATEGORIES:
            cat_dir = LOG_DIR / cat
            if not cat_dir.is_dir():
                continue
            for fp in cat_dir.glob("*.jsonl"):
                with open(fp) as f:
                    count += sum(1 for _ in f)
                fp.unlink()
    return count


def cleanup_old_logs(retention_days: int | None = None) -> int:
    """Delete log files older than retention_days. Returns number of files deleted."""
    days = retention_days if retention_days is not None else LOG_RETENTION_DAYS
    if days <= 0:
        return 0

    cutoff_str = (_now() - timedelta(days=days)).strftime("%Y-%m-%d")
    deleted = 0

    for cat in LOG_CATEGORIES:
        cat_dir = LOG_DIR / cat
        if not cat_dir.is_dir():
            continue
        for fp in cat_dir.glob("*.jsonl"):
            # "prediction-2026-02-12" → "2026-02-12"
            parts = fp.stem.rsplit("-", 3)
            if len(parts) < 4:
                continue
            file_date = "-".join(parts[-3:])
            if file_date < cutoff_str:
                fp.unlink(missing_ok=True)
                deleted += 1

    return deleted


def get_log_stats() -> dict:
    """Return summary stats about log storage."""
    stats: dict = {
        "min_level": _min_level,
        "retention_days": LOG_RETENTION_DAYS,
        "categories": {},
        "total_files": 0,
        "total_size_bytes": 0,
    }

    for cat in LOG_CATEGORIES:
        cat_dir = LOG_DIR / cat
        if not cat_dir.is_dir():
            continue
        files = list(cat_dir.glob("*.jsonl"))
        size = sum(f.stat().st_size for f in files if f.exists())
        stats["categories"][cat] = {"file_count": len(files), "size_bytes": size}
        stats["total_files"] += len(files)
        stats["total_size_bytes"] += size

    return stats
