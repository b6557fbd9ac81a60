from __future__ import annotations

import math
from typing import Any, Callable

from profile_analyzer.core.scoring import get_scoring_section, get_scoring_value
from profile_analyzer.extraction.sections.skills import skill_names
from profile_analyzer.schemas.profile import SECTION_NAMES, ProfileSectionResult, ProfileSnapshot
from profile_analyzer.schemas.scoring import CompletenessResult, Recommendation, SubScore

_LIST_SECTIONS = {"experience", "skills", "education", "recommendations", "certifications", "projects", "featured"}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _count(section: ProfileSectionResult) -> int:
    return max(section.total_count, section.visible_count)


def _distinct_skills(section: ProfileSectionResult) -> int:
    # repeated rows in the parsed items do not count twice
    duplicates = len(section.items) - len(skill_names(section.items))
    return max(_count(section) - duplicates, 0)


class CompletenessScorer:
    """Pure, deterministic completeness score over a profile snapshot."""

    def __init__(
        self,
        weights: dict[str, Any] | None = None,
        thresholds: dict[str, Any] | None = None,
        levels: dict[str, Any] | None = None,
        optimized_score: int | None = None,
    ):
        self.weights = {name: float(value) for name, value in (weights or get_scoring_section("completeness.weights")).items()}
        self.thresholds = thresholds or get_scoring_section("completeness.thresholds")
        self.levels = levels or get_scoring_section("completeness.levels")
        self.optimized_score = int(
            optimized_score if optimized_score is not None else get_scoring_value("completeness.optimized_score", 85)
        )
        self._ratios: dict[str, Callable[[ProfileSectionResult], float]] = {
            "headline": lambda s: self._chars_ratio(s, "headline_chars"),
            "about": lambda s: self._chars_ratio(s, "about_chars"),
            "experience": self._experience_ratio,
            "skills": lambda s: min(_distinct_skills(s) / float(self.thresholds["skills_count"]), 1.0) if s.exists else 0.0,
        }

    def _chars_ratio(self, section: ProfileSectionResult, key: str) -> float:
        if not section.exists:
            return 0.0
        return min(section.char_count / float(self.thresholds[key]), 1.0)

    def _experience_ratio(self, section: ProfileSectionResult) -> float:
        if not section.exists:
            return 0.0
        positions = min(_count(section) / float(self.thresholds["experience_positions"]), 1.0)
        described = min(section.described_items / float(self.thresholds["experience_described"]), 1.0)
        return 0.5 * positions + 0.5 * described

    def ratio(self, name: str, section: ProfileSectionResult) -> float:
        rule = self._ratios.get(name)
        if rule is not None:
            return rule(section)
        if name in _LIST_SECTIONS:
            return 1.0 if section.exists and _count(section) >= 1 else 0.0
        return 1.0 if section.exists else 0.0

    def message(self, name: str, section: ProfileSectionResult) -> str:
        count = _count(section)
        if name == "photo":
            return "Add a professional photo"
        if name == "headline":
            if not section.exists:
                return "Add a professional headline"
            if section.char_count < 30:
                return "Expand your headline (minimum 50 characters)"
            return f"Add more keywords to your headline (aim for {self.thresholds['headline_chars']}+ characters)"
        if name == "about":
            if not section.exists or section.char_count == 0:
                return "Add an About section"
            if section.char_count < int(self.thresholds["about_chars"]) // 2:
                return f"Expand your About section (aim for {self.thresholds['about_chars']}+ characters)"
            return "Add more detail to your About section"
        if name == "experience":
            if not section.exists or count == 0:
                return "Add your work experience"
            needed = int(self.thresholds["experience_positions"])
            if count < needed:
                return f"Add more work experiences (at least {needed})"
            return f"Describe your achievements in at least {self.thresholds['experience_described']} roles"
        if name == "skills":
            count = _distinct_skills(section)
            if not section.exists or count == 0:
                return "Add relevant skills"
            return f"Add {int(self.thresholds['skills_count']) - count} more skills (aim for {self.thresholds['skills_count']}+)"
        return {
            "education": "Add your education",
            "recommendations": "Request at least one recommendation",
            "certifications": "Add relevant certifications",
            "projects": "Showcase projects you've worked on",
            "featured": "Feature your best work in the Featured section",
        }.get(name, f"Add {name} section")

    def level(self, score: int) -> str:
        for level in ("excellent", "good", "fair", "needs_work"):
            if score >= int(self.levels[level]):
                return level
        return "poor"

    def score(self, snapshot: ProfileSnapshot) -> CompletenessResult:
        section_scores: dict[str, SubScore] = {}
        recommendations: list[tuple[float, int, Recommendation]] = []
        total = 0.0
        for order, name in enumerate(SECTION_NAMES):
            weight = self.weights.get(name, 0.0)
            section = snapshot.get(name)
            ratio = max(0.0, min(self.ratio(name, section), 1.0))
            earned = weight * ratio
            total += earned
            section_scores[name] = SubScore(weight=weight, earned=round(earned, 2), ratio=round(ratio, 4), passed=ratio >= 1.0)
            if ratio < 1.0 and weight > 0:
                impact = round(weight * (1.0 - ratio), 1)
                recommendations.append(
                    (impact, order, Recommendation(section=name, message=self.message(name, section), impact_percent=impact))
                )

        recommendations.sort(key=lambda entry: (-entry[0], entry[1]))
        score = max(0, min(_round_half_up(total), 100))
        return CompletenessResult(
            score=score,
            section_scores=section_scores,
            recommendations=[entry[2] for entry in recommendations],
            level=self.level(score),
            is_optimized=score >= self.optimized_score,
        )


def calculate_completeness(snapshot: ProfileSnapshot) -> CompletenessResult:
    return CompletenessScorer().score(snapshot)
