"""
Tests for the schema resolver: composite resolution, field kinds, ordering,
defaults and input validation.

Run from the backend/ directory:
    python -m pytest tests/test_schema_resolver.py -v
"""
from __future__ import annotations
import copy

import pytest

from conftest import SDXL_INPUT, SDXL_OUTPUT
from gallery.schemas.form_field import FieldKind, FileKind
from gallery.schemas.schema_node import SchemaNode
from gallery.services.schema_resolver import (
    determine_step,
    extract_input_schema,
    extract_output_schema,
    format_choice_label,
    format_label,
    get_schema_defaults,
    infer_output_type,
    parse_input_schema,
    resolve_composite,
    resolve_field,
    seed_form_values,
    validate_input,
)


def _resolve(raw: dict) -> SchemaNode:
    return resolve_composite(SchemaNode.parse(raw))


# ─────────────────────────────────────────────────────────────────────────────
# 1. Labels
# ─────────────────────────────────────────────────────────────────────────────

class TestLabels:

    @pytest.mark.parametrize("name, expected", [
        ("guidance_scale", "Guidance Scale"),
        ("guidanceScale", "Guidance Scale"),
        ("num-inference-steps", "Num Inference Steps"),
        ("prompt", "Prompt"),
    ])
    def test_format_label(self, name, expected):
        assert format_label(name) == expected

    def test_choice_labels(self):
        assert format_choice_label("k_euler") == "K Euler"
        assert format_choice_label(True) == "True"
        assert format_choice_label(None) == "None"
        assert format_choice_label(512) == "512"


# ─────────────────────────────────────────────────────────────────────────────
# 2. Composite resolution
# ─────────────────────────────────────────────────────────────────────────────

class TestResolveComposite:

    def test_plain_node_returned_unchanged(self):
        node = SchemaNode.parse({"type": "string", "title": "Name"})
        assert resolve_composite(node) is node

    def test_all_of_merges_branch_over_parent(self):
        node = _resolve({"allOf": [{"type": "string", "enum": ["a", "b"]}], "default": "a"})
        assert node.type == "string"
        assert node.enum == ["a", "b"]
        assert node.default == "a"
        assert not node.has_combinator

    def test_all_of_keeps_enum_already_present(self):
        node = _resolve({"enum": ["p"], "allOf": [{"type": "string", "enum": ["q"]}]})
        assert node.enum == ["p"]
        assert node.type == "string"

    def test_nullable_enum(self):
        node = _resolve({
            "title": "Mode",
            "anyOf": [{"type": "string", "enum": ["x", "y"]}, {"type": "null"}],
        })
        assert node.enum == ["x", "y"]
        assert node.title == "Mode"

    def test_const_union_becomes_string_enum(self):
        node = _resolve({"oneOf": [{"const": "low"}, {"const": "high"}, {"const": "max"}]})
        assert node.type == "string"
        assert node.enum == ["low", "high", "max"]

    def test_single_const_is_not_a_union(self):
        node = _resolve({"anyOf": [{"const": "only"}, {"type": "integer"}]})
        assert node.enum is None
        assert node.const == "only"

    def test_first_non_null_branch(self):
        node = _resolve({"anyOf": [{"type": "null"}, {"type": "integer", "minimum": 1}]})
        assert node.type == "integer"
        assert node.minimum == 1

    def test_all_null_branches_fall_back_to_first(self):
        node = _resolve({"anyOf": [{"type": "null"}]})
        assert node.type == "null"

    def test_any_of_takes_precedence_over_one_of(self):
        node = _resolve({"anyOf": [{"type": "integer"}], "oneOf": [{"type": "string"}]})
        assert node.type == "integer"
        assert not node.has_combinator

    def test_nested_combinators(self):
        node = _resolve({"anyOf": [{"allOf": [{"enum": ["a"]}]}, {"type": "null"}]})
        assert node.enum == ["a"]

    def test_all_of_then_parent_any_of(self):
        # allOf is merged first; a parent-level anyOf still applies to the result
        node = _resolve({
            "allOf": [{"title": "Quality"}],
            "anyOf": [{"type": "null"}, {"type": "integer", "maximum": 10}],
        })
        assert node.title == "Quality"
        assert node.type == "integer"
        assert node.maximum == 10
        assert not node.has_combinator

    def test_input_is_not_mutated(self):
        raw = {"anyOf": [{"type": "string", "enum": ["x"]}, {"type": "null"}], "default": "x"}
        before = copy.deepcopy(raw)
        _resolve(raw)
        assert raw == before

    @pytest.mark.parametrize("name, raw", [
        ("mode", {"title": "Mode", "anyOf": [{"type": "string", "enum": ["x", "y"]}, {"type": "null"}]}),
        ("quality", {"oneOf": [{"const": "low"}, {"const": "high"}], "default": "low"}),
        ("scheduler", SDXL_INPUT["properties"]["scheduler"]),
        ("image", {"anyOf": [{"allOf": [{"type": "string", "format": "uri"}]}, {"type": "null"}],
                   "description": "Input image"}),
        ("steps", {"allOf": [{"type": "integer"}], "anyOf": [{"minimum": 1, "maximum": 50}]}),
    ])
    def test_resolving_twice_gives_the_same_field(self, name, raw):
        assert resolve_field(name, raw) == resolve_field(name, _resolve(raw))


# ─────────────────────────────────────────────────────────────────────────────
# 3. Field kinds
# ─────────────────────────────────────────────────────────────────────────────

class TestFieldKinds:

    def test_enum_is_select_with_choices(self):
        field = resolve_field("scheduler", SDXL_INPUT["properties"]["scheduler"])
        assert field.kind is FieldKind.SELECT
        assert [c.value for c in field.choices] == ["DDIM", "K_EULER"]
        assert [c.label for c in field.choices] == ["DDIM", "K EULER"]
        assert field.default == "K_EULER"
        assert field.label == "Scheduler"

    def test_media_uri_is_file(self):
        field = resolve_field("image", SDXL_INPUT["properties"]["image"])
        assert field.kind is FieldKind.FILE
        assert field.accept == [FileKind.IMAGE]
        assert field.accept_attr == "image/*"

    def test_generic_media_upload_accepts_all_kinds(self):
        field = resolve_field("input_file", {
            "type": "string", "format": "uri", "description": "Upload a file",
        })
        assert field.kind is FieldKind.FILE
        assert field.accept == [FileKind.IMAGE, FileKind.VIDEO, FileKind.AUDIO]

    def test_audio_upload(self):
        field = resolve_field("audio", {
            "type": "string", "format": "uri", "description": "Audio file to transcribe",
        })
        assert field.accept == [FileKind.AUDIO]

    def test_plain_uri_defaults_to_image(self):
        field = resolve_field("webhook", {"type": "string", "format": "uri", "title": "Webhook"})
        assert field.kind is FieldKind.FILE
        assert field.accept == [FileKind.IMAGE]

    def test_bounded_number_is_slider(self):
        field = resolve_field("width", SDXL_INPUT["properties"]["width"])
        assert field.kind is FieldKind.SLIDER
        assert (field.min, field.max, field.step) == (256, 2048, 1)
        assert field.default == 1024

    def test_unbounded_integer_is_number(self):
        field = resolve_field("seed", SDXL_INPUT["properties"]["seed"])
        assert field.kind is FieldKind.NUMBER
        assert field.min is None and field.max is None
        assert field.step == 1

    def test_one_sided_bound_is_number(self):
        field = resolve_field("strength", {"type": "number", "minimum": 0})
        assert field.kind is FieldKind.NUMBER
        assert field.step == 0.1

    def test_boolean_default_false_when_absent(self):
        field = resolve_field("upscale", {"type": "boolean"})
        assert field.kind is FieldKind.BOOLEAN
        assert field.default is False

    def test_boolean_keeps_explicit_default(self):
        field = resolve_field("upscale", {"type": "boolean", "default": True})
        assert field.default is True

    def test_prompt_is_textarea(self):
        field = resolve_field("prompt", SDXL_INPUT["properties"]["prompt"])
        assert field.kind is FieldKind.TEXTAREA

    def test_long_max_length_is_textarea(self):
        field = resolve_field("notes", {"type": "string", "maxLength": 500})
        assert field.kind is FieldKind.TEXTAREA

    def test_short_string_is_text(self):
        field = resolve_field("model", {"type": "string", "title": "Model"})
        assert field.kind is FieldKind.TEXT

    @pytest.mark.parametrize("schema, kind", [
        ({"type": "array", "items": {"type": "string"}}, FieldKind.ARRAY),
        ({"type": "object"}, FieldKind.JSON),
        ({"default": 3}, FieldKind.NUMBER),
        ({"default": 2.5}, FieldKind.NUMBER),
        ({"default": True}, FieldKind.BOOLEAN),
        ({"default": "x"}, FieldKind.TEXT),
        ({}, FieldKind.TEXT),
        ({"anyOf": [{"type": "null"}]}, FieldKind.TEXT),
    ])
    def test_other_kinds(self, schema, kind):
        assert resolve_field("value", schema).kind is kind

    def test_none_schema_gives_no_field(self):
        assert resolve_field("x", None) is None

    def test_kind_serializes_to_wire_name(self):
        field = resolve_field("width", SDXL_INPUT["properties"]["width"])
        assert field.model_dump(mode="json")["kind"] == "slider"


class TestDetermineStep:

    @pytest.mark.parametrize("schema, step", [
        ({"type": "integer", "minimum": 0, "maximum": 1}, 1),
        ({"type": "number", "minimum": 0, "maximum": 1}, 0.01),
        ({"type": "number", "minimum": 0, "maximum": 10}, 0.1),
        ({"type": "number", "minimum": 0, "maximum": 100}, 1),
        ({"type": "number", "minimum": 0, "maximum": 250}, 3),
        ({"type": "number", "minimum": 0, "maximum": 1000}, 10),
        ({"type": "number"}, 0.1),
    ])
    def test_step(self, schema, step):
        assert determine_step(SchemaNode.parse(schema)) == step


# ─────────────────────────────────────────────────────────────────────────────
# 4. Whole-schema parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestParseInputSchema:

    def test_fields_follow_x_order(self):
        fields = parse_input_schema(SDXL_INPUT)
        assert [f.name for f in fields] == [
            "prompt", "image", "width", "guidance_scale",
            "scheduler", "seed", "disable_safety_checker",
        ]

    def test_required_flag(self):
        fields = {f.name: f for f in parse_input_schema(SDXL_INPUT)}
        assert fields["prompt"].required is True
        assert fields["width"].required is False

    def test_unordered_fields_last_in_declaration_order(self):
        schema = {"type": "object", "properties": {
            "a": {"type": "string"},
            "b": {"type": "string", "x-order": 1},
            "c": {"type": "string"},
            "d": {"type": "string", "x-order": 0},
        }}
        assert [f.name for f in parse_input_schema(schema)] == ["d", "b", "a", "c"]

    @pytest.mark.parametrize("schema", [None, {}, {"type": "object"}, "nonsense", 42])
    def test_empty_or_invalid_schema(self, schema):
        assert parse_input_schema(schema) == []

    def test_malformed_fragments_degrade(self):
        schema = {"properties": {
            "x": {"type": 5, "minimum": "big", "title": ["bad"]},
            "y": "junk",
        }}
        fields = parse_input_schema(schema)
        assert len(fields) == 1
        assert fields[0].name == "x"
        assert fields[0].kind is FieldKind.TEXT
        assert fields[0].label == "X"

    def test_type_list_uses_first_non_null(self):
        fields = parse_input_schema({"properties": {"n": {"type": ["null", "integer"]}}})
        assert fields[0].kind is FieldKind.NUMBER


# ─────────────────────────────────────────────────────────────────────────────
# 5. Defaults and seeding
# ─────────────────────────────────────────────────────────────────────────────

class TestDefaults:

    def test_schema_defaults(self):
        assert get_schema_defaults(SDXL_INPUT) == {
            "width": 1024,
            "guidance_scale": 7.5,
            "scheduler": "K_EULER",
            "disable_safety_checker": False,
        }

    def test_explicit_null_default_is_kept(self):
        schema = {"properties": {"mask": {"type": "string", "default": None}}}
        assert get_schema_defaults(schema) == {"mask": None}

    def test_seed_without_clone_is_defaults(self):
        assert seed_form_values(SDXL_INPUT) == get_schema_defaults(SDXL_INPUT)

    def test_clone_values_override_defaults(self):
        values = seed_form_values(SDXL_INPUT, {"prompt": "a cat", "width": 512, "seed": None})
        assert values["prompt"] == "a cat"
        assert values["width"] == 512
        assert values["scheduler"] == "K_EULER"
        assert "seed" not in values


# ─────────────────────────────────────────────────────────────────────────────
# 6. Validation
# ─────────────────────────────────────────────────────────────────────────────

class TestValidateInput:

    def test_valid_input(self):
        result = validate_input({"prompt": "a cat", "width": 1024, "scheduler": "DDIM"}, SDXL_INPUT)
        assert result.valid is True
        assert result.errors == []

    @pytest.mark.parametrize("values", [{}, {"prompt": ""}, {"prompt": None}])
    def test_required(self, values):
        result = validate_input(values, SDXL_INPUT)
        assert result.valid is False
        assert result.errors == ["Prompt is required"]

    def test_empty_required_value_reports_only_required(self):
        schema = {
            "required": ["mode", "name"],
            "properties": {
                "mode": {"enum": ["a", "b"]},
                "name": {"type": "string", "minLength": 3},
            },
        }
        assert validate_input({"mode": "", "name": ""}, schema).errors == [
            "Mode is required",
            "Name is required",
        ]

    def test_empty_optional_value_is_still_checked(self):
        schema = {"properties": {"name": {"type": "string", "minLength": 3}}}
        assert validate_input({"name": ""}, schema).errors == ["Name must be at least 3 characters"]

    def test_numeric_bounds(self):
        low = validate_input({"prompt": "x", "width": 100}, SDXL_INPUT)
        high = validate_input({"prompt": "x", "width": 4096}, SDXL_INPUT)
        assert low.errors == ["Width must be at least 256"]
        assert high.errors == ["Width must be at most 2048"]

    def test_enum_membership(self):
        result = validate_input({"prompt": "x", "scheduler": "PNDM"}, SDXL_INPUT)
        assert result.errors == ["Scheduler must be one of: DDIM, K_EULER"]

    def test_errors_accumulate(self):
        result = validate_input({"width": 1, "guidance_scale": 50, "scheduler": "X"}, SDXL_INPUT)
        assert result.valid is False
        assert result.errors == [
            "Prompt is required",
            "Width must be at least 256",
            "Guidance Scale must be at most 20",
            "Scheduler must be one of: DDIM, K_EULER",
        ]

    def test_string_length(self):
        schema = {"properties": {"name": {"type": "string", "minLength": 3, "maxLength": 5}}}
        assert validate_input({"name": "ab"}, schema).errors == ["Name must be at least 3 characters"]
        assert validate_input({"name": "abcdef"}, schema).errors == ["Name must be at most 5 characters"]
        assert validate_input({"name": "abcd"}, schema).valid

    def test_booleans_are_not_range_checked(self):
        schema = {"properties": {"flag": {"minimum": 5}}}
        assert validate_input({"flag": True}, schema).valid

    def test_missing_schema_accepts_anything(self):
        assert validate_input({"anything": 1}, None).valid
        assert validate_input(None, {"properties": {}}).valid

    def test_label_uses_name_when_untitled(self):
        schema = {"required": ["num_outputs"], "properties": {"num_outputs": {"type": "integer"}}}
        assert validate_input({}, schema).errors == ["Num Outputs is required"]


# ─────────────────────────────────────────────────────────────────────────────
# 7. OpenAPI helpers
# ─────────────────────────────────────────────────────────────────────────────

class TestOpenAPIHelpers:

    def test_extract_schemas(self):
        doc = {"components": {"schemas": {"Input": SDXL_INPUT, "Output": SDXL_OUTPUT}}}
        assert extract_input_schema(doc) is SDXL_INPUT
        assert extract_output_schema(doc) is SDXL_OUTPUT

    @pytest.mark.parametrize("doc", [None, {}, {"components": {}}, {"components": {"schemas": []}}, "x"])
    def test_missing_schema(self, doc):
        assert extract_input_schema(doc) is None

    @pytest.mark.parametrize("schema, kind", [
        (SDXL_OUTPUT, "image"),
        ({"type": "string"}, "text"),
        ({"type": "string", "format": "uri", "description": "Generated video"}, "video"),
        ({"type": "string", "format": "uri", "title": "Audio"}, "audio"),
        ({"type": "string", "format": "uri"}, "image"),
        ({"type": "array", "items": {"type": "string"}}, "array"),
        ({"type": "object"}, "json"),
        ({}, "unknown"),
        (None, "unknown"),
    ])
    def test_infer_output_type(self, schema, kind):
        assert infer_output_type(schema) == kind
