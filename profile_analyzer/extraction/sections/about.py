from __future__ import annotations

from bs4 import Tag

from profile_analyzer.extraction.base import TextSectionExtractor
from profile_analyzer.extraction.document import full_text, safe_select_one, visible_text

_TEXT_CONTAINERS = (
    ".inline-show-more-text",
    ".pv-shared-text-with-see-more",
    ".display-flex.ph5.pv3",
    ".pv-about__summary-text",
)


class AboutExtractor(TextSectionExtractor):
    name = "about"

    def _container(self, region: Tag) -> Tag:
        for selector in _TEXT_CONTAINERS:
            container = safe_select_one(region, selector)
            if container is not None:
                return container
        return region

    def read_text(self, region: Tag, *, deep: bool) -> str:
        container = self._container(region)
        text = full_text(container) if deep else visible_text(container)
        # the region fallback includes the heading itself
        if container is region and text.lower().startswith("about "):
            text = text[len("about ") :].strip()
        return text
