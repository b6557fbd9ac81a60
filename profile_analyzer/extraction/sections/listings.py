from __future__ import annotations

import re

from bs4 import Tag

from profile_analyzer.extraction.base import SectionExtractor
from profile_analyzer.extraction.document import safe_select, visible_text

_RECEIVED = re.compile(r"received\s*\((\d+)\)", re.IGNORECASE)


class EducationExtractor(SectionExtractor):
    name = "education"


class RecommendationsExtractor(SectionExtractor):
    name = "recommendations"

    def _base(self, region: Tag) -> dict:
        values = super()._base(region)
        # "Received (N)" tab labels beat any list-derived count
        for tab in safe_select(region, '[role="tab"]'):
            match = _RECEIVED.search(visible_text(tab))
            if match:
                values["total_count"] = max(values["total_count"], int(match.group(1)))
                break
        return values


class CertificationsExtractor(SectionExtractor):
    name = "certifications"


class ProjectsExtractor(SectionExtractor):
    name = "projects"


class FeaturedExtractor(SectionExtractor):
    name = "featured"
