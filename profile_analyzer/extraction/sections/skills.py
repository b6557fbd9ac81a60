from __future__ import annotations

from bs4 import Tag

from profile_analyzer.extraction.base import SectionExtractor
from profile_analyzer.extraction.document import visible_text

_MAX_SKILL_CHARS = 100


class SkillsExtractor(SectionExtractor):
    name = "skills"

    def find_items(self, region: Tag) -> list[Tag]:
        items = super().find_items(region)
        kept: list[Tag] = []
        for item in items:
            text = visible_text(item)
            # endorsement rows and footers share the list markup
            if not text or len(text) > _MAX_SKILL_CHARS or "endorse" in text.lower():
                continue
            if text.lower().startswith("show all"):
                continue
            kept.append(item)
        return kept


def skill_names(items) -> list[str]:
    seen: list[str] = []
    for item in items:
        name = item.title.strip()
        if name and name.lower() not in (existing.lower() for existing in seen):
            seen.append(name)
    return seen
