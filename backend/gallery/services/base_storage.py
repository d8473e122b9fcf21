"""
BaseJsonStorage — key-value store of JSON records, one file per key, with an
LRU read cache and a small summary index.

Layout:
  directory/
    {record_id}.json
    _index.json        ← record_id → {indexed field: value}

The index lets callers list and filter records (``find``) without loading
every file. It is rebuilt from disk when missing or unreadable, so it is a
cache only; the record files are the source of truth.
"""
from __future__ import annotations
import json
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Iterable


class BaseJsonStorage:
    """Generic JSON-file storage with save/load/find/delete + LRU caching."""

    def __init__(
        self,
        directory: Path,
        *,
        index_fields: Iterable[str] = (),
        cache_max_size: int = 256,
    ):
        """Initialise storage.

        Args:
            directory: Root directory containing records.
            index_fields: Top-level record fields copied into the index.
            cache_max_size: Maximum LRU cache entries.
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.index_fields = tuple(index_fields)

        self._cache: OrderedDict[str, dict] = OrderedDict()
        self._cache_max = cache_max_size
        self._lock = threading.RLock()

        self._index_path = self.directory / "_index.json"
        self._index: dict[str, dict] | None = None  # lazy loaded

    # ── Internal helpers ─────────────────────────────────────────────────────

    def _path(self, record_id: str) -> Path:
        return self.directory / f"{record_id}.json"

    def _summary(self, data: dict) -> dict:
        return {f: data.get(f) for f in self.index_fields}

    def _cache_put(self, record_id: str, data: dict) -> None:
        self._cache[record_id] = data
        self._cache.move_to_end(record_id)
        while len(self._cache) > self._cache_max:
            self._cache.popitem(last=False)

    def _load_index(self) -> dict[str, dict]:
        if self._index is not None:
            return self._index
        if self._index_path.exists():
            try:
                with open(self._index_path) as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._index = loaded
                    return self._index
            except (OSError, json.JSONDecodeError):
                pass
        self._rebuild_index()
        return self._index  # type: ignore[return-value]

    def _rebuild_index(self) -> None:
        """Scan record files and rebuild the index."""
        idx: dict[str, dict] = {}
        for p in self.directory.glob("*.json"):
            if p.name.startswith("_"):
                continue
            try:
                with open(p) as f:
                    idx[p.stem] = self._summary(json.load(f))
            except (OSError, json.JSONDecodeError):
                continue
        self._index = idx
        self._save_index()

    def _save_index(self) -> None:
        if self._index is None:
            return
        with open(self._index_path, "w") as f:
            json.dump(self._index, f, indent=1, default=str)

    # ── Public API ───────────────────────────────────────────────────────────

    def save(self, record_id: str, data: dict) -> str:
        """Write a record (create or replace). Returns the record_id."""
        with self._lock:
            with open(self._path(record_id), "w") as f:
                json.dump(data, f, indent=2, default=str)
            self._cache_put(record_id, data)
            self._load_index()[record_id] = self._summary(data)
            self._save_index()
        return record_id

    def load(self, record_id: str) -> dict | None:
        """Load a record — cache first, then disk. None if not found."""
        with self._lock:
            if record_id in self._cache:
                self._cache.move_to_end(record_id)
                return self._cache[record_id]
            path = self._path(record_id)
            if not path.exists():
                return None
            with open(path) as f:
                data = json.load(f)
            self._cache_put(record_id, data)
            return data

    def exists(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._load_index() or self._path(record_id).exists()

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._load_index())

    def summaries(self) -> dict[str, dict]:
        """Copy of the index: record_id → indexed fields."""
        with self._lock:
            return {rid: dict(s) for rid, s in self._load_index().items()}

    def find(self, **filters: Any) -> list[dict]:
        """Records whose indexed fields equal every non-None filter value."""
        matches = [
            rid for rid, summary in self.summaries().items()
            if all(v is None or summary.get(k) == v for k, v in filters.items())
        ]
        results = []
        for rid in matches:
            data = self.load(rid)
            if data is None:
                # stale index entry, file removed externally
                self._drop_from_index(rid)
                continue
            results.append(data)
        return results

    def delete(self, record_id: str) -> bool:
        """Delete a record from disk, cache and index. True if it existed."""
        with self._lock:
            path = self._path(record_id)
            existed = path.exists()
            if existed:
                path.unlink()
            self._cache.pop(record_id, None)
            self._drop_from_index(record_id)
        return existed

    def clear(self) -> int:
        """Delete every record. Returns how many were removed."""
        with self._lock:
            removed = 0
            for rid in self.ids():
                if self.delete(rid):
                    removed += 1
            return removed

    def count(self) -> int:
        with self._lock:
            return len(self._load_index())

    def _drop_from_index(self, record_id: str) -> None:
        with self._lock:
            idx = self._load_index()
            if idx.pop(record_id, None) is not None:
                self._save_index()
