from __future__ import annotations

import json
from typing import Mapping

from profile_analyzer.ai.types import ChatMessage, PreparedSection
from profile_analyzer.schemas.analysis import AnalysisOptions

_DEFAULT_ROLE = "their current career track"
_DEFAULT_SENIORITY = "their current"

_SECTION_SCHEMA = (
    '{"score": number 0-10, "positiveInsight": string, "gapAnalysis": string, '
    '"actionItems": [{"what": string, "how": string, "priority": "critical"|"high"|"medium"|"low"}]}'
)
_PROFILE_SCHEMA = (
    '{"sectionScores": {"<section>": number 0-10}, '
    '"recommendations": {"critical": [string], "high": [string], "medium": [string], "low": [string]}, '
    '"insights": {"strengths": string, "improvements": string, "industryAlignment": string}}'
)


def _coach_intro(options: AnalysisOptions) -> str:
    role = (options.target_role or "").strip() or _DEFAULT_ROLE
    seniority = (options.seniority_level or "").strip() or _DEFAULT_SENIORITY
    lines = [
        f"You are an experienced career coach helping professionals land {role} roles "
        f"at the {seniority} level. You optimize professional profiles for impact.",
        f"Target role: {role}",
        f"Seniority level: {seniority}",
    ]
    extra = (options.custom_instructions or "").strip()
    if extra:
        lines.append(f"Additional context: {extra}")
    return "\n".join(lines)


def build_section_prompt(section_name: str, options: AnalysisOptions) -> str:
    return (
        f"{_coach_intro(options)}\n\n"
        f"Analyze the {section_name} section:\n"
        "1. Acknowledge what is working, specifically and honestly.\n"
        "2. Identify the gaps that keep this person from the target role.\n"
        "3. Give actionable improvements with concrete 'how' guidance.\n\n"
        f"Reply with JSON only. Schema: {_SECTION_SCHEMA}. "
        "Score 0-10 where 10 is ideal for the target role."
    )


def build_profile_prompt(options: AnalysisOptions) -> str:
    return (
        f"{_coach_intro(options)}\n\n"
        "Analyze the whole profile below. Score every section that has content; "
        "leave missing sections out of sectionScores.\n\n"
        f"Reply with JSON only. Schema: {_PROFILE_SCHEMA}."
    )


def build_context(sections: Mapping[str, PreparedSection]) -> str:
    blocks = []
    for name, section in sections.items():
        if not section.exists:
            blocks.append(f"{name.upper()}: Missing")
            continue
        header = f"{name.upper()} ({section.item_count} item(s))"
        if section.signals:
            header += f"\nsignals: {json.dumps(dict(section.signals), sort_keys=True, default=str)}"
        body = "\n".join(f"[{i}] {chunk}" for i, chunk in enumerate(section.chunks, start=1))
        blocks.append(f"{header}\n{body}".strip())
    return "\n\n".join(blocks).strip()


def build_analysis_messages(prompt: str, sections: Mapping[str, PreparedSection]) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=prompt),
        ChatMessage(role="user", content=f"PROFILE CONTENT:\n{build_context(sections)}\n\nJSON:"),
    ]
