from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from bs4 import Tag

from profile_analyzer.extraction.document import (
    ProfileDocument,
    filter_selectors,
    normalize_whitespace,
    safe_select,
    safe_select_one,
)
from profile_analyzer.extraction.strategies import SectionStrategy, get_strategy

logger = logging.getLogger(__name__)

ANCHOR_CLASS = "pv-profile-card__anchor"
MAX_SIBLING_HOPS = 5
MIN_SIBLING_TEXT = 20


def _is_anchor(element: Tag) -> bool:
    return ANCHOR_CLASS in (element.get("class") or [])


def _sibling_has_content(sibling: Tag, strategy: SectionStrategy) -> bool:
    if strategy.content_selector:
        return bool(safe_select(sibling, strategy.content_selector))
    has_list = bool(safe_select_one(sibling, "ul, .pvs-list, li"))
    text = normalize_whitespace(sibling.get_text(" ", strip=True))
    if not has_list or len(text) <= MIN_SIBLING_TEXT:
        return False
    if strategy.content_keywords:
        lowered = text.lower()
        return any(keyword in lowered for keyword in strategy.content_keywords)
    return True


def _by_selectors(document: ProfileDocument, strategy: SectionStrategy) -> Tag | None:
    for selector in filter_selectors(strategy.selectors):
        for match in document.select(selector):
            # the anchor is only a marker; content lives next to it
            if _is_anchor(match):
                continue
            return match
    return None


def _by_anchor(document: ProfileDocument, strategy: SectionStrategy) -> Tag | None:
    for anchor_id in strategy.anchor_candidates():
        anchor = document.find_anchor(anchor_id)
        if anchor is None:
            continue
        if not strategy.skip_parent_section:
            parent = anchor.find_parent("section")
            if parent is not None:
                return parent
        sibling = anchor.find_next_sibling()
        hops = 0
        while sibling is not None and hops < MAX_SIBLING_HOPS:
            if _sibling_has_content(sibling, strategy):
                return sibling
            sibling = sibling.find_next_sibling()
            hops += 1
        logger.debug("anchor_without_content section=%s anchor=%s", strategy.name, anchor_id)
    return None


def _heading_container(heading: Tag) -> Tag | None:
    return heading.find_parent("section") or heading.find_parent(
        "div", attrs={"data-view-name": "profile-card"}
    )


def _by_heading(document: ProfileDocument, strategy: SectionStrategy) -> Tag | None:
    if not strategy.heading_search or not strategy.labels:
        return None
    labels = [label.lower() for label in strategy.labels]
    headings = [(heading, normalize_whitespace(heading.get_text(" ", strip=True)).lower()) for heading in document.headings()]
    # exact matches first so "Skills" does not resolve to "Top skills"
    for heading, text in headings:
        if text in labels:
            container = _heading_container(heading)
            if container is not None:
                return container
    for heading, text in headings:
        if text and any(label in text for label in labels):
            container = _heading_container(heading)
            if container is not None:
                return container
    return None


def locate_with_fallback(document: ProfileDocument, strategy: SectionStrategy) -> Tag | None:
    """Resolve a section region: selectors, then anchor walk, then heading text."""
    for step in (_by_selectors, _by_anchor, _by_heading):
        region = step(document, strategy)
        if region is not None:
            logger.debug("section_located section=%s via=%s", strategy.name, step.__name__.lstrip("_"))
            return region
    logger.debug("section_not_found section=%s", strategy.name)
    return None


class SectionLocator:
    def __init__(self, document: ProfileDocument):
        self.document = document

    def locate(self, section_id: str, candidate_selectors: Iterable[str] | None = None) -> Tag | None:
        strategy = get_strategy(section_id)
        if candidate_selectors is not None:
            strategy = replace(strategy, selectors=tuple(candidate_selectors))
        return locate_with_fallback(self.document, strategy)
