"""
Plugin base classes:
  - FieldClassifierPlugin : fuzzy text heuristics used while turning schema
                            properties into form fields (media detection,
                            multiline detection, accepted file kinds).
"""
from __future__ import annotations
from abc import ABC, abstractmethod

from ..schemas.form_field import FileKind
from ..schemas.schema_node import SchemaNode


class FieldClassifierPlugin(ABC):
    """Base class for form-field classifiers.

    Implementations must be pure and must not raise for any SchemaNode.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def is_media_field(self, node: SchemaNode) -> bool:
        """True when a ``format: uri`` property looks like a media upload."""

    @abstractmethod
    def is_multiline_field(self, name: str, node: SchemaNode) -> bool:
        """True when a string property should be edited as multiline text."""

    @abstractmethod
    def accepted_file_kinds(self, name: str, node: SchemaNode) -> list[FileKind]:
        """Media kinds signalled by the property's text, or [] when none is."""
