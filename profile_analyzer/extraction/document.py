from __future__ import annotations

import logging
import re
from typing import Iterable

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

# Pseudo-classes some page scripts use that a real selector engine rejects.
_UNSUPPORTED_SELECTOR_TOKENS = (":contains(", ":has-text(")
_WS_RE = re.compile(r"\s+")
_SEE_MORE_RE = re.compile(r"(?:…|\.\.\.)?\s*see more\s*$", re.IGNORECASE)


def normalize_whitespace(text: str | None) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def strip_see_more(text: str) -> str:
    return _SEE_MORE_RE.sub("", text).strip()


def is_supported_selector(selector: str) -> bool:
    if not selector or not selector.strip():
        return False
    return not any(token in selector for token in _UNSUPPORTED_SELECTOR_TOKENS)


def filter_selectors(selectors: Iterable[str]) -> list[str]:
    return [selector for selector in selectors if is_supported_selector(selector)]


def safe_select(root: Tag | None, selector: str) -> list[Tag]:
    """``root.select`` that treats unsupported or malformed selectors as no match."""
    if root is None or not is_supported_selector(selector):
        return []
    try:
        return list(root.select(selector))
    except (SelectorSyntaxError, NotImplementedError, ValueError) as exc:
        logger.debug("selector_rejected selector=%r: %s", selector, exc)
        return []


def safe_select_one(root: Tag | None, selector: str) -> Tag | None:
    matches = safe_select(root, selector)
    return matches[0] if matches else None


def visible_text(element: Tag | None) -> str:
    """Text a reader sees without expanding anything.

    Pages duplicate text into ``aria-hidden`` spans for display and
    ``visually-hidden`` spans for screen readers, so prefer the former.
    """
    if element is None:
        return ""
    spans = element.select('span[aria-hidden="true"]')
    if spans:
        parts: list[str] = []
        for span in spans:
            # nested aria-hidden spans would repeat their text
            if span.find_parent("span", attrs={"aria-hidden": "true"}) is not None:
                continue
            text = normalize_whitespace(span.get_text(" ", strip=True))
            if text and text not in parts:
                parts.append(text)
        if parts:
            return strip_see_more(" ".join(parts))
    return strip_see_more(normalize_whitespace(element.get_text(" ", strip=True)))


def full_text(element: Tag | None) -> str:
    """Complete text of a possibly collapsed block.

    Collapsed blocks keep the untruncated copy in a ``visually-hidden`` span;
    when one is present it wins over the truncated visible copy.
    """
    if element is None:
        return ""
    best = ""
    for hidden in element.select(".visually-hidden"):
        text = normalize_whitespace(hidden.get_text(" ", strip=True))
        if len(text) > len(best):
            best = text
    shown = visible_text(element)
    if len(best) > len(shown):
        return strip_see_more(best)
    return shown


def has_show_more(element: Tag | None) -> bool:
    if element is None:
        return False
    if safe_select_one(element, ".inline-show-more-text__button, .inline-show-more-text--is-collapsed"):
        return True
    for button in element.find_all(["button", "a"]):
        if "see more" in normalize_whitespace(button.get_text(" ", strip=True)).lower():
            return True
    return False


class ProfileDocument:
    """Read-only view over a rendered profile page."""

    def __init__(self, html: str, url: str | None = None):
        self.url = url
        self.soup = BeautifulSoup(html or "", "lxml")

    @property
    def root(self) -> Tag:
        return self.soup

    def select(self, selector: str, root: Tag | None = None) -> list[Tag]:
        return safe_select(root if root is not None else self.soup, selector)

    def select_one(self, selector: str, root: Tag | None = None) -> Tag | None:
        return safe_select_one(root if root is not None else self.soup, selector)

    def find_anchor(self, anchor_id: str) -> Tag | None:
        # ids are matched as attributes so labels with spaces or '&' work
        for candidate in self.soup.find_all("div", id=anchor_id):
            if "pv-profile-card__anchor" in (candidate.get("class") or []):
                return candidate
        return None

    def headings(self) -> list[Tag]:
        return safe_select(self.soup, 'h1, h2, h3, [role="heading"]')

    def text(self) -> str:
        return normalize_whitespace(self.soup.get_text(" ", strip=True))
