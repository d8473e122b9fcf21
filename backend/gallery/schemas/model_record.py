"""
Schemas for upstream model listings.

Identity of a model is the ``owner/name`` pair. Records are immutable once
fetched; ranking only reorders them.
"""
from __future__ import annotations
from typing import Any

from pydantic import BaseModel, ValidationError


class ModelVersion(BaseModel):
    """One published version of a model."""
    id: str = ""
    created_at: str | None = None
    cog_version: str | None = None
    openapi_schema: dict[str, Any] | None = None

    model_config = {"extra": "allow"}


class ModelRecord(BaseModel):
    """Model metadata as listed by the upstream API."""
    owner: str = ""
    name: str = ""
    description: str | None = None
    url: str | None = None
    visibility: str | None = None
    github_url: str | None = None
    paper_url: str | None = None
    license_url: str | None = None
    run_count: int | None = None
    cover_image_url: str | None = None
    default_example: dict[str, Any] | None = None
    latest_version: ModelVersion | None = None

    model_config = {"extra": "allow", "frozen": True}

    @property
    def identity(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def latest_version_created_at(self) -> str | None:
        return self.latest_version.created_at if self.latest_version else None

    @classmethod
    def parse(cls, raw: Any) -> ModelRecord:
        """Lenient parse: wrongly typed fields are dropped instead of raising."""
        if isinstance(raw, ModelRecord):
            return raw
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError:
            pass
        return cls.model_validate(_sanitize(raw))


def _opt_str(v: Any) -> str | None:
    return v if isinstance(v, str) else None


def _sanitize(raw: dict) -> dict[str, Any]:
    run_count = raw.get("run_count")
    if isinstance(run_count, bool) or not isinstance(run_count, (int, float)) or run_count < 0:
        run_count = None
    elif isinstance(run_count, float):
        run_count = int(run_count)

    version = raw.get("latest_version")
    latest = None
    if isinstance(version, dict):
        latest = ModelVersion(
            id=version.get("id") if isinstance(version.get("id"), str) else "",
            created_at=_opt_str(version.get("created_at")),
            cog_version=_opt_str(version.get("cog_version")),
            openapi_schema=version.get("openapi_schema") if isinstance(version.get("openapi_schema"), dict) else None,
        )

    example = raw.get("default_example")
    return {
        "owner": raw.get("owner") if isinstance(raw.get("owner"), str) else "",
        "name": raw.get("name") if isinstance(raw.get("name"), str) else "",
        "description": _opt_str(raw.get("description")),
        "url": _opt_str(raw.get("url")),
        "visibility": _opt_str(raw.get("visibility")),
        "github_url": _opt_str(raw.get("github_url")),
        "paper_url": _opt_str(raw.get("paper_url")),
        "license_url": _opt_str(raw.get("license_url")),
        "run_count": run_count,
        "cover_image_url": _opt_str(raw.get("cover_image_url")),
        "default_example": example if isinstance(example, dict) else None,
        "latest_version": latest,
    }
