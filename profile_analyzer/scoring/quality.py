from __future__ import annotations

import logging
from typing import Any, Mapping

from profile_analyzer.core.scoring import get_scoring_section, get_scoring_value
from profile_analyzer.schemas.profile import SECTION_NAMES, ProfileSnapshot
from profile_analyzer.schemas.scoring import (
    MissingCritical,
    QualityInsights,
    QualityRecommendations,
    QualityResult,
)

logger = logging.getLogger(__name__)

_PRIORITIES = ("critical", "high", "medium", "low")


def _coerce_score(value: Any) -> float | None:
    if isinstance(value, Mapping):
        value = value.get("score")
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return max(0.0, min(number, 10.0))


def parse_section_scores(raw: Any) -> dict[str, float]:
    """Numeric 0..10 scores keyed by known section name; anything else is dropped."""
    if not isinstance(raw, Mapping):
        return {}
    known = {name.lower(): name for name in SECTION_NAMES}
    scores: dict[str, float] = {}
    for key, value in raw.items():
        name = known.get(str(key).strip().lower())
        if name is None:
            continue
        score = _coerce_score(value)
        if score is not None:
            scores[name] = score
    return scores


def _recommendation_text(item: Any) -> str | None:
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, Mapping):
        what = str(item.get("what") or item.get("action") or "").strip()
        how = str(item.get("how") or "").strip()
        if what and how:
            return f"{what}: {how}"
        return what or how or None
    return None


def parse_recommendations(raw: Any) -> QualityRecommendations:
    buckets: dict[str, list[str]] = {priority: [] for priority in _PRIORITIES}
    if isinstance(raw, Mapping):
        for priority in _PRIORITIES:
            items = raw.get(priority) or []
            if not isinstance(items, list):
                items = [items]
            for item in items:
                text = _recommendation_text(item)
                if text and text not in buckets[priority]:
                    buckets[priority].append(text)
    return QualityRecommendations(**buckets)


def parse_insights(raw: Any) -> QualityInsights:
    if not isinstance(raw, Mapping):
        return QualityInsights()
    return QualityInsights(
        strengths=str(raw.get("strengths") or ""),
        improvements=str(raw.get("improvements") or ""),
        industry_alignment=str(raw.get("industryAlignment") or raw.get("industry_alignment") or ""),
    )


def merge_section_reports(reports: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Fold per-section analyzer replies into one whole-profile payload."""
    section_scores: dict[str, Any] = {}
    recommendations: dict[str, list[Any]] = {priority: [] for priority in _PRIORITIES}
    strengths: list[str] = []
    improvements: list[str] = []
    for name, report in reports.items():
        if not isinstance(report, Mapping):
            continue
        if "score" in report:
            section_scores[name] = report.get("score")
        if report.get("positiveInsight"):
            strengths.append(f"{name}: {report['positiveInsight']}")
        if report.get("gapAnalysis"):
            improvements.append(f"{name}: {report['gapAnalysis']}")
        for item in report.get("actionItems") or []:
            if not isinstance(item, Mapping):
                continue
            priority = str(item.get("priority") or "medium").lower()
            recommendations.setdefault(priority if priority in recommendations else "medium", []).append(item)
    return {
        "sectionScores": section_scores,
        "recommendations": recommendations,
        "insights": {"strengths": "\n".join(strengths), "improvements": "\n".join(improvements)},
    }


class QualityScoreAggregator:
    """Combine analyzer section scores into one capped 0..10 quality score."""

    def __init__(
        self,
        weights: Mapping[str, Any] | None = None,
        critical_sections: Mapping[str, Any] | None = None,
        max_score: int | None = None,
        neutral_score: float | None = None,
    ):
        self.weights = {name: float(value) for name, value in (weights or get_scoring_section("quality.weights")).items()}
        self.critical_sections = critical_sections or get_scoring_section("quality.critical_sections")
        self.max_score = int(max_score if max_score is not None else get_scoring_value("quality.max_score", 10))
        self.neutral_score = float(
            neutral_score if neutral_score is not None else get_scoring_value("quality.neutral_score", 5.0)
        )

    def score_cap(self, snapshot: ProfileSnapshot) -> tuple[int, list[MissingCritical]]:
        cap = self.max_score
        missing: list[MissingCritical] = []
        for name, rule in self.critical_sections.items():
            if snapshot.exists(name):
                continue
            limit = int(rule["max_score_without"])
            missing.append(MissingCritical(section=name, capped_at=limit))
            cap = min(cap, limit)
        return cap, missing

    def weighted_base(self, section_scores: Mapping[str, float]) -> float | None:
        present = {name: score for name, score in section_scores.items() if self.weights.get(name, 0.0) > 0}
        total_weight = sum(self.weights[name] for name in present)
        if total_weight <= 0:
            return None
        return sum(score * self.weights[name] for name, score in present.items()) / total_weight

    def aggregate(
        self,
        snapshot: ProfileSnapshot,
        payload: Mapping[str, Any] | None,
        *,
        error_message: str | None = None,
    ) -> QualityResult:
        cap, missing = self.score_cap(snapshot)
        payload = payload if isinstance(payload, Mapping) else {}
        section_scores = parse_section_scores(payload.get("sectionScores"))
        recommendations = parse_recommendations(payload.get("recommendations"))
        for entry in missing:
            message = f"Add your {entry.section} section (score capped at {entry.capped_at})"
            if message not in recommendations.critical:
                recommendations.critical.insert(0, message)
        insights = parse_insights(payload.get("insights"))

        base = self.weighted_base(section_scores)
        if base is None:
            reason = error_message or "Analyzer output contained no usable section scores."
            logger.warning("quality_fallback_neutral cap=%s reason=%s", cap, reason)
            return QualityResult(
                overall_score=min(self.neutral_score, float(cap)),
                base_score=None,
                section_scores={},
                score_cap=cap,
                missing_critical=missing,
                recoverable_error=True,
                error_message=reason,
                recommendations=recommendations,
                insights=insights,
            )

        overall = min(round(base, 1), float(cap))
        return QualityResult(
            overall_score=overall,
            base_score=round(base, 2),
            section_scores=section_scores,
            score_cap=cap,
            missing_critical=missing,
            recoverable_error=error_message is not None,
            error_message=error_message,
            recommendations=recommendations,
            insights=insights,
        )
