from __future__ import annotations

from dataclasses import dataclass

_LIST_ITEMS: tuple[str, ...] = (
    ".pvs-list__paged-list-item",
    ".artdeco-list__item",
    '[data-view-name="profile-component-entity"]',
    ".pvs-entity",
)


@dataclass(frozen=True)
class SectionStrategy:
    """How to find one section on the page.

    Selectors are tried in order. When none match, anchors derived from the
    labels are tried, then a heading text search.
    """

    name: str
    selectors: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    anchor_ids: tuple[str, ...] = ()
    # Skills and recommendations anchors sit next to header-only siblings.
    skip_parent_section: bool = False
    content_selector: str | None = None
    content_keywords: tuple[str, ...] = ()
    item_selectors: tuple[str, ...] = _LIST_ITEMS
    detail_paths: tuple[str, ...] = ()
    count_nouns: tuple[str, ...] = ()
    require_items: bool = False
    heading_search: bool = True

    def anchor_candidates(self) -> list[str]:
        """Anchor ids to probe, explicit ids first, then label variants."""
        candidates: list[str] = list(self.anchor_ids)
        for label in self.labels:
            lowered = label.lower().strip()
            if not lowered:
                continue
            variants = (
                "-".join(lowered.replace("&", " ").split()),
                lowered.replace(" ", ""),
                lowered.split()[0],
                lowered,
            )
            for variant in variants:
                if variant and variant not in candidates:
                    candidates.append(variant)
        return candidates


STRATEGIES: dict[str, SectionStrategy] = {
    "photo": SectionStrategy(
        name="photo",
        selectors=(
            ".pv-top-card-profile-picture img",
            ".profile-photo-edit__preview",
            ".pv-top-card__photo img",
            'img[class*="profile-photo"]',
            'img[class*="pv-top-card-profile-picture"]',
        ),
        heading_search=False,
        item_selectors=(),
    ),
    "headline": SectionStrategy(
        name="headline",
        selectors=(
            ".text-body-medium[data-generated-suggestion-target]",
            ".pv-text-details__left-panel .text-body-medium",
            "section[data-member-id] .text-body-medium",
            ".ph5 .text-body-medium",
            "div.text-body-medium.break-words",
        ),
        heading_search=False,
        item_selectors=(),
    ),
    "about": SectionStrategy(
        name="about",
        selectors=(
            "section:has(> #about)",
            'section[data-section="summary"]',
            "section.pv-about-section",
            "section.summary",
        ),
        labels=("About",),
        anchor_ids=("about",),
        item_selectors=(),
    ),
    "experience": SectionStrategy(
        name="experience",
        selectors=(
            "section:has(> #experience)",
            'section[data-section="experience"]',
            "section.experience-section",
            "#experience-section",
        ),
        labels=("Experience",),
        anchor_ids=("experience",),
        detail_paths=("/details/experience",),
        count_nouns=("experiences", "experience", "positions", "position"),
        require_items=True,
    ),
    "skills": SectionStrategy(
        name="skills",
        selectors=(
            'section[data-section="skills"]',
            "section.pv-skill-categories-section",
            ".skills-section",
        ),
        labels=("Skills",),
        anchor_ids=("skills",),
        skip_parent_section=True,
        content_selector='[data-field="skill_card_skill_topic"]',
        item_selectors=('a[data-field="skill_card_skill_topic"]',) + _LIST_ITEMS,
        detail_paths=("/details/skills",),
        count_nouns=("skills", "skill"),
    ),
    "education": SectionStrategy(
        name="education",
        selectors=(
            "section:has(> #education)",
            'section[data-section="educationsDetails"]',
            "section.education-section",
            "#education-section",
        ),
        labels=("Education",),
        anchor_ids=("education",),
        detail_paths=("/details/education",),
        count_nouns=("education", "schools", "school"),
    ),
    "recommendations": SectionStrategy(
        name="recommendations",
        selectors=(
            'section[data-section="recommendations"]',
            "section.pv-recommendations-section",
        ),
        labels=("Recommendations",),
        anchor_ids=("recommendations",),
        skip_parent_section=True,
        content_keywords=("recommend", "received", "given"),
        detail_paths=("/details/recommendations",),
        count_nouns=("recommendations", "recommendation"),
    ),
    "certifications": SectionStrategy(
        name="certifications",
        selectors=(
            "section:has(> #licenses_and_certifications)",
            'section[data-section="certifications"]',
            "section.certifications-section",
        ),
        labels=("Licenses & certifications", "Licenses and certifications", "Certifications"),
        anchor_ids=("licenses_and_certifications", "certifications"),
        detail_paths=("/details/certifications",),
        count_nouns=("certifications", "certification", "licenses", "license"),
    ),
    "projects": SectionStrategy(
        name="projects",
        selectors=(
            "section:has(> #projects)",
            'section[data-section="projects"]',
            "section.projects-section",
        ),
        labels=("Projects",),
        anchor_ids=("projects",),
        detail_paths=("/details/projects",),
        count_nouns=("projects", "project"),
    ),
    "featured": SectionStrategy(
        name="featured",
        selectors=(
            "section:has(> #featured)",
            'section[data-section="featured"]',
            "section.pv-featured-container",
        ),
        labels=("Featured",),
        anchor_ids=("featured",),
        item_selectors=_LIST_ITEMS + (".pv-featured-container__item",),
        detail_paths=("/details/featured",),
        count_nouns=("featured", "items", "item"),
    ),
}


def get_strategy(section_name: str) -> SectionStrategy:
    try:
        return STRATEGIES[section_name]
    except KeyError as exc:
        raise KeyError(f"No locator strategy for section '{section_name}'") from exc
