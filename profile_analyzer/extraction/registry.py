from __future__ import annotations

from profile_analyzer.extraction.base import SectionExtractor
from profile_analyzer.extraction.document import ProfileDocument
from profile_analyzer.extraction.sections.about import AboutExtractor
from profile_analyzer.extraction.sections.experience import ExperienceExtractor
from profile_analyzer.extraction.sections.listings import (
    CertificationsExtractor,
    EducationExtractor,
    FeaturedExtractor,
    ProjectsExtractor,
    RecommendationsExtractor,
)
from profile_analyzer.extraction.sections.skills import SkillsExtractor
from profile_analyzer.extraction.sections.top_card import HeadlineExtractor, PhotoExtractor

EXTRACTORS: tuple[type[SectionExtractor], ...] = (
    PhotoExtractor,
    HeadlineExtractor,
    AboutExtractor,
    ExperienceExtractor,
    SkillsExtractor,
    EducationExtractor,
    RecommendationsExtractor,
    CertificationsExtractor,
    ProjectsExtractor,
    FeaturedExtractor,
)


def build_extractors(document: ProfileDocument, *, preview_limit: int | None = None) -> dict[str, SectionExtractor]:
    return {cls.name: cls(document, preview_limit=preview_limit) for cls in EXTRACTORS}
