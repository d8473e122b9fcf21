"""
Schemas for synthesized form fields.

A FormField is built fresh from a SchemaNode on every parse and is never
mutated afterwards; the renderer picks a control from ``kind`` and the
validator re-checks submitted values against the same schema.
"""
from __future__ import annotations
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FieldKind(str, Enum):
    """Control type for one input property."""
    TEXT = "text"              # single-line text
    TEXTAREA = "textarea"      # multiline text
    NUMBER = "number"          # integer-or-float input
    SLIDER = "slider"          # bounded number
    SELECT = "select"          # single choice from enum
    BOOLEAN = "boolean"
    FILE = "file"              # file reference (uploaded or URL)
    ARRAY = "array"            # edited as JSON
    JSON = "json"              # object, edited as JSON


class FileKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


ALL_FILE_KINDS: tuple[FileKind, ...] = (FileKind.IMAGE, FileKind.VIDEO, FileKind.AUDIO)


class Choice(BaseModel):
    """One option of a select field."""
    label: str
    value: Any

    model_config = {"frozen": True}


class FormField(BaseModel):
    """A typed, orderable form field derived from one schema property."""
    name: str
    kind: FieldKind
    label: str
    description: str | None = None
    required: bool = False
    default: Any = None
    choices: list[Choice] = Field(default_factory=list)   # select only
    min: int | float | None = None                        # number / slider
    max: int | float | None = None
    step: int | float | None = None
    accept: list[FileKind] = Field(default_factory=list)  # file only
    order: int | float | None = None                      # x-order

    model_config = {"frozen": True}

    @property
    def accept_attr(self) -> str:
        """HTML ``accept`` attribute, e.g. ``"image/*,audio/*"``."""
        return ",".join(f"{k.value}/*" for k in self.accept)


class ValidationResult(BaseModel):
    """Outcome of validating a submitted input mapping. Errors are accumulated."""
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ValidateRequest(BaseModel):
    """Request to validate form values against a model's input schema."""
    input: dict[str, Any] = Field(default_factory=dict)
    version: str | None = None
