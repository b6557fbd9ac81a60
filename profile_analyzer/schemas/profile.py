from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SECTION_NAMES: tuple[str, ...] = (
    "photo",
    "headline",
    "about",
    "experience",
    "skills",
    "education",
    "recommendations",
    "certifications",
    "projects",
    "featured",
)


class SectionItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: str | None = None
    caption: str | None = None
    description: str | None = None
    url: str | None = None


class ProfileSectionResult(BaseModel):
    """Outcome of one extraction phase for one section.

    Counts are normalised on construction: ``total_count`` never drops below
    ``visible_count`` and ``has_more`` is always derived from the two.
    """

    model_config = ConfigDict(frozen=True)

    exists: bool = False
    visible_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    has_more: bool = False
    detail_url: str | None = None
    text: str | None = None
    char_count: int = Field(default=0, ge=0)
    items: tuple[SectionItem, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _normalize_counts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)
        visible = max(0, int(values.get("visible_count") or 0))
        total = max(visible, int(values.get("total_count") or 0))
        values["visible_count"] = visible
        values["total_count"] = total
        values["has_more"] = total > visible
        text = values.get("text")
        if text is not None and not values.get("char_count"):
            values["char_count"] = len(text)
        return values

    @classmethod
    def missing(cls) -> "ProfileSectionResult":
        return cls(exists=False)

    def evolve(self, **changes: Any) -> "ProfileSectionResult":
        # model_copy skips validation, so rebuild to keep counts consistent
        return type(self).model_validate({**self.model_dump(), **changes})

    @property
    def described_items(self) -> int:
        return sum(1 for item in self.items if (item.description or "").strip())


class ProfileSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    sections: dict[str, ProfileSectionResult] = Field(default_factory=dict)

    @field_validator("sections", mode="before")
    @classmethod
    def _fill_sections(cls, value: Any) -> dict[str, Any]:
        provided = dict(value or {})
        unknown = sorted(set(provided) - set(SECTION_NAMES))
        if unknown:
            raise ValueError(f"Unknown section names: {', '.join(unknown)}")
        return {name: provided.get(name) or ProfileSectionResult.missing() for name in SECTION_NAMES}

    @classmethod
    def empty(cls) -> "ProfileSnapshot":
        return cls(sections={})

    @classmethod
    def from_results(cls, results: Mapping[str, ProfileSectionResult]) -> "ProfileSnapshot":
        return cls(sections=dict(results))

    def get(self, name: str) -> ProfileSectionResult:
        if name not in SECTION_NAMES:
            raise KeyError(name)
        return self.sections[name]

    def exists(self, name: str) -> bool:
        return self.get(name).exists

    def with_section(self, name: str, result: ProfileSectionResult) -> "ProfileSnapshot":
        if name not in SECTION_NAMES:
            raise KeyError(name)
        updated = dict(self.sections)
        updated[name] = result
        return ProfileSnapshot(sections=updated)

    def canonical_features(self) -> list[list[Any]]:
        """Coarse per-section features that feed the fingerprint (never raw text)."""
        features: list[list[Any]] = []
        for name in SECTION_NAMES:
            section = self.sections[name]
            features.append(
                [
                    name,
                    bool(section.exists),
                    int(section.char_count),
                    int(section.visible_count),
                    int(section.total_count),
                ]
            )
        return features

    def fingerprint(self) -> str:
        payload = json.dumps(self.canonical_features(), separators=(",", ":"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
