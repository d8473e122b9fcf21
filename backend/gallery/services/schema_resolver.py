"""
Schema resolver — turns a model version's OpenAPI ``Input`` schema into an
ordered list of typed form fields, and validates submitted values against it.

Pipeline per property:
  1. resolve_composite(): collapse allOf / anyOf / oneOf into one node
     (nullable-enum and const-union patterns become a plain ``enum``).
  2. determine_kind(): first matching rule wins
        enum → select
        uri + media wording → file
        integer/number → slider (both bounds) | number
        boolean → boolean
        string → textarea (long / prompt-like) | file (uri) | text
        array → array, object → json
        untyped → inferred from default, else text
  3. resolve_field(): build the FormField (label, choices, bounds, step, accept).

Everything here is pure: inputs are never mutated, nothing is logged and
nothing raises. Malformed fragments degrade to a plain text field.
"""
from __future__ import annotations
import math
import re
from typing import Any, Mapping

from ..plugins.base import FieldClassifierPlugin
from ..plugins.loader import get_classifier
from ..schemas.form_field import (
    ALL_FILE_KINDS, Choice, FieldKind, FileKind, FormField, ValidationResult,
)
from ..schemas.schema_node import SchemaNode

# Sort key for properties without x-order: after every declared order
_UNORDERED = math.inf


# ── Labels ───────────────────────────────────────────────────────────────────

_SEPARATORS = re.compile(r"[_-]")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WORD_START = re.compile(r"\b\w")


def format_label(name: str) -> str:
    """``guidance_scale`` / ``guidanceScale`` → ``Guidance Scale``."""
    text = _SEPARATORS.sub(" ", name)
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    text = _WORD_START.sub(lambda m: m.group(0).upper(), text)
    return text.strip()


def format_choice_label(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    elif value is None:
        value = "none"
    return format_label(str(value))


# ── Composite resolution ─────────────────────────────────────────────────────

def resolve_composite(node: SchemaNode) -> SchemaNode:
    """Collapse allOf / anyOf / oneOf into a single combinator-free node.

    allOf: shallow merge left to right, later branches win; an ``enum`` already
    on the merged node is kept over a branch's.

    anyOf / oneOf (anyOf takes precedence when both are present):
      a. a branch with a non-empty enum wins        (nullable enum)
      b. two or more ``const`` branches → string enum in branch order (const union)
      c. else the first branch whose type is not "null"
      d. else the first branch
    The chosen branch's keys are merged over the parent's.

    Branches are resolved before they are merged, so nested combinators are
    handled too. A node without combinators is returned unchanged.
    """
    if not node.has_combinator:
        return node

    if node.all_of:
        merged = node.present()
        merged.pop("all_of")
        for branch in node.all_of:
            values = resolve_composite(branch).present()
            kept_enum = merged.get("enum")
            merged.update(values)
            if kept_enum:
                merged["enum"] = kept_enum
        # parent-level anyOf/oneOf still apply to the merged node
        return resolve_composite(SchemaNode.build(merged))

    base = node.present(drop_combinators=True)
    branches = [resolve_composite(b) for b in (node.any_of or node.one_of or [])]
    if not branches:
        return SchemaNode.build(base)

    enum_branch = next((b for b in branches if b.enum), None)
    if enum_branch is not None:
        base.update(enum_branch.present())
        return SchemaNode.build(base)

    consts = [b.const for b in branches if b.has_const]
    if len(consts) > 1:
        base["enum"] = consts
        base["type"] = "string"
        return SchemaNode.build(base)

    chosen = next((b for b in branches if b.type != "null"), branches[0])
    base.update(chosen.present())
    return SchemaNode.build(base)


# ── Kind determination ───────────────────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_media_uri(node: SchemaNode, classifier: FieldClassifierPlugin) -> bool:
    return node.format == "uri" and classifier.is_media_field(node)


def determine_kind(
    name: str,
    node: SchemaNode,
    classifier: FieldClassifierPlugin | None = None,
) -> FieldKind:
    """Pick the control kind for an already-resolved node."""
    classifier = classifier or get_classifier()

    if node.enum:
        return FieldKind.SELECT

    if _is_media_uri(node, classifier):
        return FieldKind.FILE

    if node.type in ("integer", "number"):
        if node.minimum is not None and node.maximum is not None:
            return FieldKind.SLIDER
        return FieldKind.NUMBER

    if node.type == "boolean":
        return FieldKind.BOOLEAN

    if node.type == "string":
        if classifier.is_multiline_field(name, node):
            return FieldKind.TEXTAREA
        if node.format == "uri":
            return FieldKind.FILE
        return FieldKind.TEXT

    if node.type == "array":
        return FieldKind.ARRAY

    if node.type == "object":
        return FieldKind.JSON

    if node.has_default:
        if isinstance(node.default, bool):
            return FieldKind.BOOLEAN
        if _is_number(node.default):
            return FieldKind.NUMBER
    return FieldKind.TEXT


def determine_step(node: SchemaNode) -> int | float:
    """Increment for numeric controls, scaled to the declared range."""
    if node.type == "integer":
        return 1
    if node.minimum is not None and node.maximum is not None:
        span = node.maximum - node.minimum
        if span <= 1:
            return 0.01
        if span <= 10:
            return 0.1
        if span <= 100:
            return 1
        return math.floor(span / 100 + 0.5)
    return 0.1


def determine_accept(
    name: str,
    node: SchemaNode,
    classifier: FieldClassifierPlugin | None = None,
) -> list[FileKind]:
    """Accepted media kinds for a file field.

    Media-worded uri fields with no specific signal accept everything; plain
    string uri fields default to images.
    """
    classifier = classifier or get_classifier()
    kinds = classifier.accepted_file_kinds(name, node)
    if kinds:
        return kinds
    if _is_media_uri(node, classifier):
        return list(ALL_FILE_KINDS)
    return [FileKind.IMAGE]


# ── Field synthesis ──────────────────────────────────────────────────────────

def resolve_field(
    name: str,
    schema: SchemaNode | Mapping | None,
    is_required: bool = False,
    classifier: FieldClassifierPlugin | None = None,
) -> FormField | None:
    """Build the FormField for one property, or None when there is no schema."""
    if schema is None:
        return None
    classifier = classifier or get_classifier()
    node = resolve_composite(SchemaNode.parse(schema))
    kind = determine_kind(name, node, classifier)

    field: dict[str, Any] = {
        "name": name,
        "kind": kind,
        "label": format_label(node.title or name) or name,
        "description": node.description,
        "required": is_required,
        "default": node.default if node.has_default else None,
        "order": node.order,
    }

    if kind is FieldKind.SELECT:
        field["choices"] = [Choice(label=format_choice_label(v), value=v) for v in node.enum or []]
    elif kind in (FieldKind.SLIDER, FieldKind.NUMBER):
        field["min"] = node.minimum
        field["max"] = node.maximum
        field["step"] = determine_step(node)
    elif kind is FieldKind.BOOLEAN:
        if field["default"] is None:
            field["default"] = False
    elif kind is FieldKind.FILE:
        field["accept"] = determine_accept(name, node, classifier)

    return FormField(**field)


def parse_input_schema(
    schema: SchemaNode | Mapping | None,
    classifier: FieldClassifierPlugin | None = None,
) -> list[FormField]:
    """All fields of an object schema, ordered by x-order (unordered last, stable)."""
    if schema is None:
        return []
    root = SchemaNode.parse(schema)
    if not root.properties:
        return []

    classifier = classifier or get_classifier()
    required = set(root.required or [])
    fields = []
    for name, prop in root.properties.items():
        field = resolve_field(name, prop, name in required, classifier)
        if field is not None:
            fields.append(field)

    return sorted(fields, key=lambda f: _UNORDERED if f.order is None else f.order)


# ── Defaults ─────────────────────────────────────────────────────────────────

def get_schema_defaults(schema: SchemaNode | Mapping | None) -> dict[str, Any]:
    """``{name: default}`` for every top-level property whose resolved node has one."""
    if schema is None:
        return {}
    root = SchemaNode.parse(schema)
    defaults: dict[str, Any] = {}
    for name, prop in (root.properties or {}).items():
        node = resolve_composite(prop)
        if node.has_default:
            defaults[name] = node.default
    return defaults


def seed_form_values(
    schema: SchemaNode | Mapping | None,
    clone_input: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Initial form state: schema defaults, overridden by non-null clone values."""
    values = get_schema_defaults(schema)
    for name, value in (clone_input or {}).items():
        if value is not None:
            values[name] = value
    return values


# ── Validation ───────────────────────────────────────────────────────────────

def _fmt(n: int | float) -> str:
    if isinstance(n, float) and n.is_integer():
        return str(int(n))
    return str(n)


def validate_input(
    values: Mapping[str, Any] | None,
    schema: SchemaNode | Mapping | None,
) -> ValidationResult:
    """Check submitted values against the schema; every violation is reported."""
    values = values or {}
    root = SchemaNode.parse(schema) if schema is not None else SchemaNode()
    if not root.properties:
        return ValidationResult(valid=True)

    props = root.properties
    errors: list[str] = []

    def label(name: str) -> str:
        node = resolve_composite(props[name]) if name in props else None
        title = node.title if node is not None else None
        return format_label(title or name) or name

    missing = set()
    for name in root.required or []:
        value = values.get(name)
        if value is None or value == "":
            missing.add(name)
            errors.append(f"{label(name)} is required")

    for name, prop in props.items():
        value = values.get(name)
        # a missing required value reports only "is required"
        if value is None or name in missing:
            continue
        node = resolve_composite(prop)

        if node.enum and value not in node.enum:
            options = ", ".join(str(v) for v in node.enum)
            errors.append(f"{label(name)} must be one of: {options}")

        if _is_number(value):
            if node.minimum is not None and value < node.minimum:
                errors.append(f"{label(name)} must be at least {_fmt(node.minimum)}")
            if node.maximum is not None and value > node.maximum:
                errors.append(f"{label(name)} must be at most {_fmt(node.maximum)}")

        if isinstance(value, str):
            if node.min_length is not None and len(value) < node.min_length:
                errors.append(f"{label(name)} must be at least {node.min_length} characters")
            if node.max_length is not None and len(value) > node.max_length:
                errors.append(f"{label(name)} must be at most {node.max_length} characters")

    return ValidationResult(valid=not errors, errors=errors)


# ── OpenAPI helpers ──────────────────────────────────────────────────────────

def _component_schema(openapi_schema: Any, key: str) -> dict | None:
    if not isinstance(openapi_schema, dict):
        return None
    schemas = (openapi_schema.get("components") or {}).get("schemas") or {}
    found = schemas.get(key) if isinstance(schemas, dict) else None
    return found if isinstance(found, dict) else None


def extract_input_schema(openapi_schema: Any) -> dict | None:
    """``components.schemas.Input`` of a version's OpenAPI document."""
    return _component_schema(openapi_schema, "Input")


def extract_output_schema(openapi_schema: Any) -> dict | None:
    """``components.schemas.Output`` of a version's OpenAPI document."""
    return _component_schema(openapi_schema, "Output")


def infer_output_type(schema: SchemaNode | Mapping | None) -> str:
    """Display hint for a model's output: image, video, audio, text, json, array or unknown."""
    if schema is None:
        return "unknown"
    node = resolve_composite(SchemaNode.parse(schema))

    if node.format == "uri":
        text = f"{node.description or ''} {node.title or ''}".lower()
        if "image" in text:
            return "image"
        if "video" in text:
            return "video"
        if "audio" in text:
            return "audio"
        return "image"

    if node.type == "string":
        return "text"
    if node.type == "array":
        if node.items is not None and node.items.format == "uri":
            return "image"
        return "array"
    if node.type == "object":
        return "json"
    return "unknown"
