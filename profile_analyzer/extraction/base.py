from __future__ import annotations

import logging
import re
from typing import ClassVar

from bs4 import Tag

from profile_analyzer.core.config import settings
from profile_analyzer.core.scoring import get_scoring_value
from profile_analyzer.extraction.document import (
    ProfileDocument,
    full_text,
    has_show_more,
    normalize_whitespace,
    safe_select,
    safe_select_one,
    visible_text,
)
from profile_analyzer.extraction.locator import SectionLocator
from profile_analyzer.extraction.strategies import SectionStrategy, get_strategy
from profile_analyzer.schemas.profile import ProfileSectionResult, SectionItem

logger = logging.getLogger(__name__)

_NUMBER = r"(\d[\d,]*)"
_MAX_COUNT_TEXT = 200

_TITLE_SELECTORS = (
    '.t-bold span[aria-hidden="true"]',
    'h3 span[aria-hidden="true"]',
    ".t-bold",
    "h3",
)
_SUBTITLE_SELECTORS = ('.t-14.t-normal:not(.t-black--light) span[aria-hidden="true"]',)
_CAPTION_SELECTORS = (
    '.pvs-entity__caption-wrapper[aria-hidden="true"]',
    ".pvs-entity__caption-wrapper",
    '.t-14.t-normal.t-black--light span[aria-hidden="true"]',
)
_DESCRIPTION_SELECTORS = (
    ".pvs-entity__sub-components .inline-show-more-text",
    ".inline-show-more-text",
    ".pvs-entity__sub-components",
)


def _to_int(raw: str) -> int:
    return int(raw.replace(",", ""))


def parse_count(text: str, nouns: tuple[str, ...] = ()) -> int | None:
    """Pull an item total out of labels like "Show all 23 skills"."""
    cleaned = normalize_whitespace(text).lower()
    if not cleaned:
        return None
    patterns = [rf"show\s+all\s+\(?{_NUMBER}\)?", rf"view\s+all\s+{_NUMBER}"]
    if nouns:
        alternation = "|".join(re.escape(noun) for noun in nouns)
        patterns.append(rf"{_NUMBER}\s+(?:{alternation})\b")
        patterns.append(rf"(?:{alternation})\s*\(\s*{_NUMBER}\s*\)")
    patterns.extend([rf"{_NUMBER}\s+items?\b", rf"{_NUMBER}\s+total\b"])
    for pattern in patterns:
        match = re.search(pattern, cleaned)
        if match:
            return _to_int(match.group(1))
    return None


def read_total(region: Tag, strategy: SectionStrategy) -> tuple[int | None, str | None]:
    """Return the declared total and the detail link, if the region shows one."""
    selectors = [f'a[href*="{path}"]' for path in strategy.detail_paths]
    selectors.extend(
        [
            '[aria-label*="Show all"]',
            ".pvs-list__footer-wrapper a",
            'a[id*="navigation-index-Show-all"]',
        ]
    )
    detail_url: str | None = None
    for selector in selectors:
        for element in safe_select(region, selector):
            label = " ".join(
                part for part in (element.get("aria-label"), element.get_text(" ", strip=True)) if part
            )
            href = element.get("href") if element.name == "a" else None
            if href and detail_url is None:
                detail_url = str(href)
            count = parse_count(label, strategy.count_nouns)
            if count is not None:
                return count, str(href) if href else detail_url

    for element in region.find_all(["span", "a", "button"]):
        text = element.get_text(" ", strip=True)
        if not text or len(text) > _MAX_COUNT_TEXT:
            continue
        lowered = text.lower()
        if "show all" not in lowered and "view all" not in lowered and "total" not in lowered:
            continue
        count = parse_count(text, strategy.count_nouns)
        if count is not None:
            return count, detail_url
    return None, detail_url


def top_level(elements: list[Tag]) -> list[Tag]:
    """Drop matches nested inside another match (grouped roles nest list items)."""
    chosen = set(id(element) for element in elements)
    result: list[Tag] = []
    for element in elements:
        if any(id(parent) in chosen for parent in element.parents):
            continue
        result.append(element)
    return result


def _first_text(root: Tag, selectors: tuple[str, ...]) -> str | None:
    for selector in selectors:
        element = safe_select_one(root, selector)
        if element is None:
            continue
        text = visible_text(element)
        if text:
            return text
    return None


def parse_item(element: Tag, *, deep: bool = False) -> SectionItem | None:
    if element.name == "a" and element.get("data-field") == "skill_card_skill_topic":
        title = visible_text(element)
        return SectionItem(title=title, url=element.get("href")) if title else None

    title = _first_text(element, _TITLE_SELECTORS)
    if not title:
        title = visible_text(element)[:120] or None
    if not title:
        return None

    description = None
    for selector in _DESCRIPTION_SELECTORS:
        block = safe_select_one(element, selector)
        if block is None:
            continue
        text = full_text(block) if deep else visible_text(block)
        if text and text != title:
            description = text
            break

    link = safe_select_one(element, "a[href]")
    return SectionItem(
        title=title,
        subtitle=_first_text(element, _SUBTITLE_SELECTORS),
        caption=_first_text(element, _CAPTION_SELECTORS),
        description=description,
        url=str(link.get("href")) if link is not None else None,
    )


def chunk_text(text: str, limit: int | None = None) -> list[str]:
    """Split text into pieces of at most ``limit`` characters, on word boundaries when possible."""
    size = int(limit or get_scoring_value("analysis.chunk_chars", 1000))
    text = (text or "").strip()
    if not text:
        return []
    chunks: list[str] = []
    while len(text) > size:
        cut = text.rfind(" ", 0, size + 1)
        if cut <= 0:
            cut = size
        chunks.append(text[:cut].strip())
        text = text[cut:].strip()
    if text:
        chunks.append(text)
    return chunks


class SectionExtractor:
    """Base for the per-section extractors.

    ``scan`` is cheap and only answers existence and counts. ``extract`` reads
    a bounded preview of visible items. ``extract_deep`` reads everything the
    page holds, expanding collapsed text.
    """

    name: ClassVar[str]

    def __init__(self, document: ProfileDocument, *, preview_limit: int | None = None):
        self.document = document
        self.strategy = get_strategy(self.name)
        self.locator = SectionLocator(document)
        self.preview_limit = preview_limit if preview_limit is not None else settings.extract_preview_limit

    def locate(self) -> Tag | None:
        return self.locator.locate(self.name)

    def find_items(self, region: Tag) -> list[Tag]:
        for selector in self.strategy.item_selectors:
            items = top_level(safe_select(region, selector))
            if items:
                return items
        return []

    def read_items(self, region: Tag, *, limit: int | None, deep: bool) -> tuple[SectionItem, ...]:
        elements = self.find_items(region)
        if limit is not None:
            elements = elements[:limit]
        parsed = (parse_item(element, deep=deep) for element in elements)
        return tuple(item for item in parsed if item is not None)

    def _base(self, region: Tag) -> dict:
        visible = len(self.find_items(region))
        total, detail_url = read_total(region, self.strategy)
        if total is None and self.strategy.skip_parent_section and region.parent is not None:
            # sibling-walk regions leave the "Show all" footer in the enclosing card
            total, parent_url = read_total(region.parent, self.strategy)
            detail_url = detail_url or parent_url
        exists = (visible > 0 or bool(total)) if self.strategy.require_items else True
        return {
            "exists": exists,
            "visible_count": visible,
            "total_count": total or visible,
            "detail_url": detail_url,
        }

    async def scan(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        return ProfileSectionResult(**self._base(region))

    async def extract(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        values = self._base(region)
        values["items"] = self.read_items(region, limit=self.preview_limit, deep=False)
        return ProfileSectionResult(**values)

    async def extract_deep(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        values = self._base(region)
        items = self.read_items(region, limit=None, deep=True)
        values["items"] = items
        values["text"] = self.compose_text(items) or None
        logger.debug("section_extracted_deep section=%s items=%s", self.name, len(items))
        return ProfileSectionResult(**values)

    def compose_text(self, items: tuple[SectionItem, ...]) -> str:
        blocks = []
        for item in items:
            lines = [part for part in (item.title, item.subtitle, item.caption, item.description) if part]
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


class TextSectionExtractor(SectionExtractor):
    """Sections whose content is a single text block."""

    preview_chars: ClassVar[int] = 500

    def read_text(self, region: Tag, *, deep: bool) -> str:
        return full_text(region) if deep else visible_text(region)

    def _text_result(self, text: str, *, truncate: bool) -> ProfileSectionResult:
        shown = text[: self.preview_chars] if truncate else text
        present = bool(text)
        return ProfileSectionResult(
            exists=present,
            visible_count=1 if present else 0,
            total_count=1 if present else 0,
            text=shown or None,
            char_count=len(text),
        )

    async def scan(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        present = bool(self.read_text(region, deep=False))
        return ProfileSectionResult(exists=present, visible_count=int(present), total_count=int(present))

    async def extract(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        return self._text_result(self.read_text(region, deep=False), truncate=True)

    async def extract_deep(self) -> ProfileSectionResult:
        region = self.locate()
        if region is None:
            return ProfileSectionResult.missing()
        if has_show_more(region):
            logger.debug("section_expanded section=%s", self.name)
        return self._text_result(self.read_text(region, deep=True), truncate=False)
