from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from profile_analyzer.schemas.scoring import CompletenessResult, QualityResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    profile_id: str = Field(min_length=1)
    fingerprint: str = Field(min_length=1)
    completeness: CompletenessResult | None = None
    quality: QualityResult | None = None
    settings_key: str | None = None
    computed_at: datetime = Field(default_factory=_utc_now)

    @property
    def identity(self) -> tuple[str, str]:
        return self.profile_id, self.fingerprint

    @property
    def has_score(self) -> bool:
        return self.completeness is not None and isinstance(self.completeness.score, int)

    def quality_for(self, settings_key: str) -> QualityResult | None:
        """Stored quality, only when it was computed under the same analysis settings."""
        if self.quality is None or self.quality.recoverable_error:
            return None
        return self.quality if self.settings_key == settings_key else None
