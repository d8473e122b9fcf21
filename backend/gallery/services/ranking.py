"""
Model ranking — deterministic quality score over listing metadata, plus
query relevance for search.

Quality score (additive):
  - log10(run_count + 1) * 5       popularity, log scale so one viral model
                                   cannot bury everything else
  - +15 verified owner              case-insensitive allow-list
  - +5 / +3 / +1 recency            latest version < 7 / 30 / 90 days old
  - +2 cover image
  - +1 description longer than 20 characters

Inputs may be ModelRecord instances or raw upstream dicts; the functions
return the caller's own objects, reordered, and never mutate the input list.
"""
from __future__ import annotations
import math
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Iterable, Sequence, TypeVar

from ..schemas.model_record import ModelRecord

M = TypeVar("M")

VERIFIED_OWNERS = frozenset({
    "stability-ai",
    "black-forest-labs",
    "meta",
    "openai",
    "anthropic",
    "google",
    "bytedance",
    "tencent",
    "alibaba",
    "microsoft",
    "nvidia",
    "salesforce",
    "huggingface",
    "deepmind",
    "together",
    "mistralai",
    "replicate",
    "zsxkib",
    "lucataco",
    "cjwbw",
})

# Relevance weights (search)
REL_NAME_EXACT = 100
REL_OWNER_EXACT = 90
REL_NAME_PREFIX = 80
REL_NAME_CONTAINS = 60
REL_OWNER_CONTAINS = 40
REL_DESCRIPTION = 20

# Relevance gap at or above which relevance alone decides the order
RELEVANCE_GAP = 20

MODALITY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "image": ("image", "photo", "diffusion", "stable", "flux", "sdxl"),
    "video": ("video", "animate"),
    "audio": ("audio", "music", "speech", "voice"),
    "text": ("llama", "gpt", "text", "language", "chat"),
}

_SECONDS_PER_DAY = 86400.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _record(model: Any) -> ModelRecord:
    return ModelRecord.parse(model)


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 string or datetime → aware datetime (naive = UTC). None if unparseable."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def recency_bonus(created_at: Any, now: datetime | None = None) -> int:
    created = parse_timestamp(created_at)
    if created is None:
        return 0
    now = parse_timestamp(now) or _utcnow()
    days = (now - created).total_seconds() / _SECONDS_PER_DAY
    if days < 7:
        return 5
    if days < 30:
        return 3
    if days < 90:
        return 1
    return 0


# ── Quality score ────────────────────────────────────────────────────────────

def score(model: ModelRecord | dict, now: datetime | None = None) -> float:
    """Quality score of one model. Pure; higher is better."""
    m = _record(model)
    total = 0.0

    run_count = m.run_count or 0
    if run_count > 0:
        total += math.log10(run_count + 1) * 5

    if m.owner.lower() in VERIFIED_OWNERS:
        total += 15

    total += recency_bonus(m.latest_version_created_at, now)

    if m.cover_image_url:
        total += 2

    if m.description and len(m.description) > 20:
        total += 1

    return total


def _quality_key(model: Any, now: datetime) -> tuple[float, int]:
    m = _record(model)
    return score(m, now), max(m.run_count or 0, 0)


def rank(models: Iterable[M], now: datetime | None = None) -> list[M]:
    """New list ordered by score desc, ties broken by run count desc (stable)."""
    now = parse_timestamp(now) or _utcnow()
    items = list(models)
    keys = [_quality_key(m, now) for m in items]
    order = sorted(range(len(items)), key=lambda i: (-keys[i][0], -keys[i][1]))
    return [items[i] for i in order]


# ── Search ───────────────────────────────────────────────────────────────────

def relevance(model: ModelRecord | dict, query: str) -> int:
    """Highest single match weight of ``query`` against name, owner, description.

    Matches do not add up: a model matching on owner and description gets the
    owner weight only.
    """
    q = query.strip().lower()
    if not q:
        return 0
    m = _record(model)
    name = m.name.lower()
    owner = m.owner.lower()
    desc = (m.description or "").lower()

    rel = 0
    if name == q:
        rel = REL_NAME_EXACT
    elif name.startswith(q):
        rel = REL_NAME_PREFIX
    elif q in name:
        rel = REL_NAME_CONTAINS

    if owner == q:
        rel = max(rel, REL_OWNER_EXACT)
    elif q in owner:
        rel = max(rel, REL_OWNER_CONTAINS)

    if q in desc:
        rel = max(rel, REL_DESCRIPTION)

    return rel


def search_and_rank(models: Iterable[M], query: str, now: datetime | None = None) -> list[M]:
    """Drop models that do not match ``query`` and order the rest.

    Pairs whose relevance differs by RELEVANCE_GAP or more are ordered by
    relevance; closer pairs fall back to the quality order used by rank().
    An empty or blank query is exactly rank(models).
    """
    if not query or not query.strip():
        return rank(models, now)

    now = parse_timestamp(now) or _utcnow()
    candidates = []
    for m in models:
        rel = relevance(m, query)
        if rel > 0:
            candidates.append((m, rel, _quality_key(m, now)))

    def compare(a, b) -> int:
        if abs(a[1] - b[1]) >= RELEVANCE_GAP:
            return b[1] - a[1]
        if a[2] == b[2]:
            return 0
        return -1 if a[2] > b[2] else 1

    candidates.sort(key=cmp_to_key(compare))
    return [c[0] for c in candidates]


# ── Modality filter ──────────────────────────────────────────────────────────

def filter_by_modality(models: Sequence[M], modality: str | None) -> list[M]:
    """Keep models whose name/description mention the modality's keywords.

    ``all``, empty or unknown modalities return an unfiltered copy.
    """
    keywords = MODALITY_KEYWORDS.get((modality or "all").lower())
    if not keywords:
        return list(models)
    out = []
    for model in models:
        m = _record(model)
        text = f"{m.name} {m.description or ''}".lower()
        if any(k in text for k in keywords):
            out.append(model)
    return out
