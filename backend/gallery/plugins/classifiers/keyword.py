"""
Keyword classifier — case-insensitive substring matching over a property's
name, title and description.
"""
from __future__ import annotations
from typing import Iterable

from ..base import FieldClassifierPlugin
from ...schemas.form_field import FileKind
from ...schemas.schema_node import SchemaNode

DEFAULT_MEDIA_KEYWORDS = ("image", "file", "upload", "audio", "video", "photo", "picture")
DEFAULT_MULTILINE_KEYWORDS = ("prompt", "text", "message", "content", "description", "caption", "negative")
DEFAULT_AUDIO_KEYWORDS = ("audio", "sound", "music")
DEFAULT_VIDEO_KEYWORDS = ("video", "movie")
DEFAULT_IMAGE_KEYWORDS = ("image", "photo", "picture")
DEFAULT_LONG_TEXT_THRESHOLD = 200


def _merge(base: Iterable[str], extra: Iterable[str] | None) -> tuple[str, ...]:
    out = [k.lower() for k in base]
    for k in extra or ():
        k = str(k).lower().strip()
        if k and k not in out:
            out.append(k)
    return tuple(out)


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


class KeywordClassifier(FieldClassifierPlugin):
    """Substring heuristics; keyword lists are configurable per instance."""

    def __init__(
        self,
        *,
        media: Iterable[str] = DEFAULT_MEDIA_KEYWORDS,
        multiline: Iterable[str] = DEFAULT_MULTILINE_KEYWORDS,
        audio: Iterable[str] = DEFAULT_AUDIO_KEYWORDS,
        video: Iterable[str] = DEFAULT_VIDEO_KEYWORDS,
        image: Iterable[str] = DEFAULT_IMAGE_KEYWORDS,
        long_text_threshold: int = DEFAULT_LONG_TEXT_THRESHOLD,
        name: str = "keyword",
    ):
        self._name = name
        self.media = _merge(media, None)
        self.multiline = _merge(multiline, None)
        self.audio = _merge(audio, None)
        self.video = _merge(video, None)
        self.image = _merge(image, None)
        self.long_text_threshold = long_text_threshold

    @property
    def name(self) -> str:
        return self._name

    def extended(self, overrides: dict, name: str | None = None) -> KeywordClassifier:
        """Return a copy whose keyword lists are extended by ``overrides``.

        ``overrides`` uses the YAML layout::

            media: [scan]
            multiline: [instructions]
            audio: [speech]
            long_text_threshold: 500
        """
        threshold = overrides.get("long_text_threshold", self.long_text_threshold)
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            threshold = self.long_text_threshold
        return KeywordClassifier(
            media=_merge(self.media, _as_list(overrides.get("media"))),
            multiline=_merge(self.multiline, _as_list(overrides.get("multiline"))),
            audio=_merge(self.audio, _as_list(overrides.get("audio"))),
            video=_merge(self.video, _as_list(overrides.get("video"))),
            image=_merge(self.image, _as_list(overrides.get("image"))),
            long_text_threshold=threshold,
            name=name or self._name,
        )

    # ── FieldClassifierPlugin ────────────────────────────────────────────────

    def is_media_field(self, node: SchemaNode) -> bool:
        text = f"{node.description or ''} {node.title or ''}".lower()
        return _contains_any(text, self.media)

    def is_multiline_field(self, name: str, node: SchemaNode) -> bool:
        if node.max_length is not None and node.max_length > self.long_text_threshold:
            return True
        text = f"{name} {node.title or ''} {node.description or ''}".lower()
        return _contains_any(text, self.multiline)

    def accepted_file_kinds(self, name: str, node: SchemaNode) -> list[FileKind]:
        text = f"{name} {node.description or ''} {node.title or ''}".lower()
        if _contains_any(text, self.audio):
            return [FileKind.AUDIO]
        if _contains_any(text, self.video):
            return [FileKind.VIDEO]
        if _contains_any(text, self.image):
            return [FileKind.IMAGE]
        return []


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, str)]
    return []
