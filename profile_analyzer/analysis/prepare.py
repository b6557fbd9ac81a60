from __future__ import annotations

from typing import Any

from profile_analyzer.ai.types import PreparedSection
from profile_analyzer.core.scoring import get_scoring_value
from profile_analyzer.extraction.base import chunk_text
from profile_analyzer.extraction.sections.experience import experience_signals
from profile_analyzer.extraction.sections.skills import skill_names
from profile_analyzer.extraction.signals import about_signals, headline_signals
from profile_analyzer.schemas.profile import ProfileSectionResult


def _item_lines(section: ProfileSectionResult, description_chars: int) -> str:
    lines = []
    for item in section.items:
        parts = [item.title]
        parts.extend(part for part in (item.subtitle, item.caption) if part)
        line = " | ".join(parts)
        if item.description:
            line += f"\n{item.description[:description_chars]}"
        lines.append(line)
    return "\n\n".join(lines)


def prepare_section(name: str, section: ProfileSectionResult) -> PreparedSection:
    """Turn a deep extraction result into analyzer input."""
    if not section.exists:
        return PreparedSection(name=name, exists=False)

    description_chars = int(get_scoring_value("analysis.description_chars", 600))
    signals: dict[str, Any] = {}
    if name == "headline":
        text = section.text or ""
        signals = headline_signals(text)
    elif name == "about":
        text = section.text or ""
        signals = about_signals(text)
    elif name == "skills":
        names = skill_names(section.items)
        text = ", ".join(names)
        signals = {"listed": len(names), "declared_total": section.total_count}
    elif name == "experience":
        text = _item_lines(section, description_chars)
        signals = experience_signals(section.items)
        signals["declared_total"] = section.total_count
    elif name == "photo":
        text = ""
        signals = {"has_photo": True}
    else:
        text = _item_lines(section, description_chars) or (section.text or "")
        signals = {"declared_total": section.total_count}

    return PreparedSection(
        name=name,
        exists=True,
        chunks=tuple(chunk_text(text)),
        item_count=max(section.total_count, len(section.items)),
        signals=signals,
    )


def has_analyzable_content(prepared: PreparedSection) -> bool:
    return prepared.exists and bool(prepared.chunks)
