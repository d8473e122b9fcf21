"""
JSON-Schema node as found in a model version's OpenAPI ``Input`` schema.

Raw upstream schemas are untrusted: ``SchemaNode.parse()`` keeps every
well-typed key, silently drops wrongly typed ones and never raises, so a
malformed fragment degrades to a node with less information instead of
an error.
"""
from __future__ import annotations
import math
from typing import Any, Mapping

from pydantic import BaseModel, Field

_COMBINATORS = ("all_of", "any_of", "one_of")


class SchemaNode(BaseModel):
    """One (possibly nested) JSON-Schema node."""
    type: str | None = None
    title: str | None = None
    description: str | None = None
    default: Any = None
    enum: list[Any] | None = None
    const: Any = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    format: str | None = None
    items: SchemaNode | None = None
    properties: dict[str, SchemaNode] | None = None
    required: list[str] | None = None
    all_of: list[SchemaNode] | None = Field(None, alias="allOf")
    any_of: list[SchemaNode] | None = Field(None, alias="anyOf")
    one_of: list[SchemaNode] | None = Field(None, alias="oneOf")
    order: int | float | None = Field(None, alias="x-order")

    model_config = {"populate_by_name": True, "extra": "allow"}

    # ── Presence checks (absent ≠ explicit null) ────────────────────────────

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    @property
    def has_const(self) -> bool:
        return "const" in self.model_fields_set

    @property
    def has_combinator(self) -> bool:
        return any(getattr(self, k) is not None for k in _COMBINATORS)

    def present(self, *, drop_combinators: bool = False) -> dict[str, Any]:
        """Shallow ``{field_name: value}`` of the keys actually set on this node."""
        fields = type(self).model_fields
        values = {k: getattr(self, k) for k in self.model_fields_set if k in fields}
        values.update(self.model_extra or {})
        if drop_combinators:
            for k in _COMBINATORS:
                values.pop(k, None)
        return values

    @classmethod
    def build(cls, values: dict[str, Any]) -> SchemaNode:
        """Build from a ``present()``-style mapping (already sanitized values)."""
        return cls.model_validate(values)

    # ── Lenient parsing ─────────────────────────────────────────────────────

    @classmethod
    def parse(cls, raw: Any) -> SchemaNode:
        """Parse a raw JSON object. Never raises; non-dict input gives an empty node."""
        if isinstance(raw, SchemaNode):
            return raw
        if not isinstance(raw, Mapping):
            return cls()
        return cls.model_validate(_sanitize(dict(raw)))


SchemaNode.model_rebuild()


# ── Sanitizers ───────────────────────────────────────────────────────────────

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _is_count(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def _schema_type(v: Any) -> str | None:
    """``"string"`` or ``["string", "null"]`` → first non-null type name."""
    if isinstance(v, str):
        return v
    if isinstance(v, list):
        names = [t for t in v if isinstance(t, str)]
        non_null = [t for t in names if t != "null"]
        if non_null:
            return non_null[0]
        if names:
            return names[0]
    return None


def _node_list(v: Any) -> list[SchemaNode] | None:
    if not isinstance(v, list):
        return None
    return [SchemaNode.parse(item) for item in v if isinstance(item, dict)]


_STRINGS = ("title", "description", "format")
_NUMBERS = {"minimum": "minimum", "maximum": "maximum", "x-order": "order"}
_COUNTS = {"minLength": "min_length", "maxLength": "max_length"}
_NODE_LISTS = {"allOf": "all_of", "anyOf": "any_of", "oneOf": "one_of"}

# python-side names that must not be smuggled in as raw keys
_RESERVED = set(SchemaNode.model_fields) - {
    "type", "title", "description", "default", "enum", "const",
    "minimum", "maximum", "format", "items", "properties", "required",
}


def _sanitize(raw: dict) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or key in _RESERVED:
            continue
        if key == "type":
            t = _schema_type(value)
            if t is not None:
                clean["type"] = t
        elif key in _STRINGS:
            if isinstance(value, str):
                clean[key] = value
        elif key in ("default", "const"):
            clean[key] = value
        elif key == "enum":
            if isinstance(value, list):
                clean["enum"] = list(value)
        elif key in _NUMBERS:
            if _is_number(value):
                clean[_NUMBERS[key]] = value
        elif key in _COUNTS:
            if _is_count(value):
                clean[_COUNTS[key]] = value
        elif key == "items":
            if isinstance(value, dict):
                clean["items"] = SchemaNode.parse(value)
        elif key == "properties":
            if isinstance(value, dict):
                clean["properties"] = {
                    str(name): SchemaNode.parse(prop)
                    for name, prop in value.items()
                    if isinstance(prop, dict)
                }
        elif key == "required":
            if isinstance(value, list):
                clean["required"] = [r for r in value if isinstance(r, str)]
        elif key in _NODE_LISTS:
            nodes = _node_list(value)
            if nodes is not None:
                clean[_NODE_LISTS[key]] = nodes
        else:
            clean[key] = value
    return clean
