from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

CompletenessLevel = Literal["excellent", "good", "fair", "needs_work", "poor"]


class SubScore(BaseModel):
    weight: float
    earned: float
    ratio: float = Field(ge=0.0, le=1.0)
    passed: bool


class Recommendation(BaseModel):
    section: str
    message: str
    impact_percent: float


class CompletenessResult(BaseModel):
    score: int = Field(ge=0, le=100)
    section_scores: dict[str, SubScore] = Field(default_factory=dict)
    recommendations: list[Recommendation] = Field(default_factory=list)
    level: CompletenessLevel = "poor"
    is_optimized: bool = False

    def top_recommendations(self, limit: int = 3) -> list[Recommendation]:
        return self.recommendations[: max(0, limit)]


class MissingCritical(BaseModel):
    section: str
    capped_at: int


class QualityRecommendations(BaseModel):
    critical: list[str] = Field(default_factory=list)
    high: list[str] = Field(default_factory=list)
    medium: list[str] = Field(default_factory=list)
    low: list[str] = Field(default_factory=list)


class QualityInsights(BaseModel):
    strengths: str = ""
    improvements: str = ""
    industry_alignment: str = ""


class QualityResult(BaseModel):
    overall_score: float = Field(ge=0.0, le=10.0)
    base_score: float | None = None
    section_scores: dict[str, float] = Field(default_factory=dict)
    score_cap: int = Field(default=10, ge=0, le=10)
    missing_critical: list[MissingCritical] = Field(default_factory=list)
    recoverable_error: bool = False
    error_message: str | None = None
    recommendations: QualityRecommendations = Field(default_factory=QualityRecommendations)
    insights: QualityInsights = Field(default_factory=QualityInsights)

    @model_validator(mode="after")
    def _check_cap(self) -> "QualityResult":
        if self.overall_score > self.score_cap:
            raise ValueError("overall_score must not exceed score_cap")
        return self
