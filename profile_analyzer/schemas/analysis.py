from __future__ import annotations

import hashlib
import json
from enum import Enum

from pydantic import BaseModel, Field


class AnalysisState(str, Enum):
    INITIALIZING = "initializing"
    SCANNING = "scanning"
    EXTRACTING = "extracting"
    CALCULATING = "calculating"
    AI_ANALYZING = "ai_analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class AnalysisEvent(BaseModel):
    run_id: int
    state: AnalysisState
    section_name: str | None = None
    item_count: int | None = None
    completeness: int | None = None
    quality_score: float | None = None
    from_cache: bool = False
    message: str | None = None


class AnalysisOptions(BaseModel):
    enable_ai: bool = False
    force_refresh: bool = False
    target_role: str | None = Field(default=None, max_length=120)
    seniority_level: str | None = Field(default=None, max_length=60)
    custom_instructions: str | None = Field(default=None, max_length=1000)
    mode: str | None = Field(default=None, pattern="^(section|profile)$")

    def settings_key(self, default_mode: str) -> str:
        """Short hash of the settings that shape the AI result."""
        payload = json.dumps(
            {
                "target_role": (self.target_role or "").strip().lower(),
                "seniority_level": (self.seniority_level or "").strip().lower(),
                "custom_instructions": (self.custom_instructions or "").strip(),
                "mode": self.mode or default_mode,
            },
            separators=(",", ":"),
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class AnalyzeRequest(AnalysisOptions):
    url: str | None = None
    html: str = Field(min_length=1)
