from __future__ import annotations

import re

_GENERIC_PHRASES = (
    "passionate",
    "results-driven",
    "results driven",
    "hard-working",
    "hardworking",
    "team player",
    "detail-oriented",
    "self-motivated",
    "go-getter",
    "think outside the box",
)
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_CALL_TO_ACTION = re.compile(r"\b(contact me|reach out|connect with me|email me|let'?s talk|dm me)\b", re.IGNORECASE)
_METRIC = re.compile(r"\d+\s*(%|\+|k\b|m\b|x\b|years?)", re.IGNORECASE)
_HEADLINE_SEPARATORS = re.compile(r"\s*[|•·,/]\s*")


def generic_phrases(text: str | None) -> list[str]:
    lowered = (text or "").lower()
    return [phrase for phrase in _GENERIC_PHRASES if phrase in lowered]


def headline_signals(text: str | None) -> dict[str, object]:
    text = text or ""
    parts = [part for part in _HEADLINE_SEPARATORS.split(text) if part]
    lowered = f" {text.lower()} "
    return {
        "char_count": len(text),
        "word_count": len(text.split()),
        "keyword_count": len(parts),
        "has_separators": len(parts) > 1,
        "mentions_company": " at " in lowered or "@" in lowered,
        "generic_phrases": generic_phrases(text),
    }


def about_signals(text: str | None) -> dict[str, object]:
    text = text or ""
    paragraphs = [block for block in re.split(r"\n\s*\n", text) if block.strip()]
    return {
        "char_count": len(text),
        "word_count": len(text.split()),
        "paragraphs": len(paragraphs),
        "has_call_to_action": bool(_CALL_TO_ACTION.search(text)),
        "has_contact_info": bool(_EMAIL.search(text)),
        "has_metrics": bool(_METRIC.search(text)),
        "generic_phrases": generic_phrases(text),
    }
