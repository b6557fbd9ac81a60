from __future__ import annotations

import logging

from bs4 import Tag

from profile_analyzer.extraction.base import SectionExtractor, TextSectionExtractor
from profile_analyzer.extraction.document import visible_text
from profile_analyzer.schemas.profile import ProfileSectionResult, SectionItem

logger = logging.getLogger(__name__)

_PHOTO_ALT_MARKERS = ("profile photo", "profile picture")


class PhotoExtractor(SectionExtractor):
    name = "photo"

    def locate(self) -> Tag | None:
        region = super().locate()
        if region is not None:
            return region
        for image in self.document.soup.find_all("img"):
            alt = (image.get("alt") or "").lower()
            classes = " ".join(image.get("class") or [])
            if any(marker in alt for marker in _PHOTO_ALT_MARKERS) or "profile-photo" in classes:
                logger.debug("photo_found_by_attributes")
                return image
        return None

    def _photo_result(self) -> ProfileSectionResult:
        image = self.locate()
        if image is None:
            return ProfileSectionResult.missing()
        src = image.get("src") or image.get("data-delayed-url")
        return ProfileSectionResult(
            exists=True,
            visible_count=1,
            total_count=1,
            items=(SectionItem(title="Profile photo", url=str(src) if src else None),),
        )

    async def scan(self) -> ProfileSectionResult:
        return self._photo_result()

    async def extract(self) -> ProfileSectionResult:
        return self._photo_result()

    async def extract_deep(self) -> ProfileSectionResult:
        return self._photo_result()


class HeadlineExtractor(TextSectionExtractor):
    name = "headline"
    preview_chars = 220

    def read_text(self, region: Tag, *, deep: bool) -> str:
        return visible_text(region)
