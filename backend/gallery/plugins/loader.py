"""
Plugin loader — registry of form-field classifier plugins.

The active classifier is used by the schema resolver whenever a caller
does not pass one explicitly.
"""
from __future__ import annotations
from pathlib import Path

import yaml

from .base import FieldClassifierPlugin
from .classifiers.keyword import KeywordClassifier


# ── Registry ─────────────────────────────────────────────────────────────────

_classifier_plugins: dict[str, FieldClassifierPlugin] = {}
_active: str | None = None


def register_classifier(plugin: FieldClassifierPlugin, *, activate: bool = False) -> None:
    global _active
    _classifier_plugins[plugin.name.lower()] = plugin
    if activate or _active is None:
        _active = plugin.name.lower()


def set_active_classifier(name: str) -> None:
    """Make a registered classifier the default. Raises KeyError if unknown."""
    global _active
    key = name.lower()
    if key not in _classifier_plugins:
        raise KeyError(f"Unknown field classifier: {name}")
    _active = key


def all_classifiers() -> list[FieldClassifierPlugin]:
    return list(_classifier_plugins.values())


def get_classifier(name: str | None = None) -> FieldClassifierPlugin:
    """Return a classifier by name, or the active one.

    Always returns something: the built-in keyword classifier is registered
    on first use, and unknown names fall back to the active classifier.
    """
    if not _classifier_plugins:
        register_classifier(KeywordClassifier())
    if name and name.lower() in _classifier_plugins:
        return _classifier_plugins[name.lower()]
    return _classifier_plugins[_active]  # type: ignore[index]


def reset() -> None:
    """Drop all registrations (tests)."""
    global _active
    _classifier_plugins.clear()
    _active = None


# ── Discovery ────────────────────────────────────────────────────────────────

def load_heuristics_file(path: str | Path) -> dict:
    """Read keyword overrides from YAML. Returns {} for an empty document."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def discover_plugins(heuristics_file: str | Path | None = None) -> dict[str, int]:
    """Register built-in classifiers; extend keywords from YAML when configured.

    Returns counts per plugin kind, like ``{"classifiers": 2}``.
    """
    from .. import logging_service as logger
    from ..config import FIELD_HEURISTICS_FILE

    base = KeywordClassifier()
    register_classifier(base, activate=True)

    path = heuristics_file if heuristics_file is not None else FIELD_HEURISTICS_FILE
    if path:
        try:
            overrides = load_heuristics_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.log("system", "WARNING", f"Field heuristics file ignored: {e}", {"path": str(path)})
        else:
            register_classifier(base.extended(overrides, name="keyword-custom"), activate=True)
            logger.log("system", "INFO", "Field heuristics extended from file", {
                "path": str(path), "keys": sorted(overrides),
            })

    return {"classifiers": len(_classifier_plugins)}
