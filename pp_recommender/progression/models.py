from __future__ import annotations

from pydantic import BaseModel, Field


class DisciplineDiagnostics(BaseModel):
    slope: float = 0.0
    recent_slope: float = 0.0
    progression_index: float = Field(default=0.0, ge=0.0, le=100.0)
    boosted_by_experience: bool = False
    freshness_factor: float = 0.0
    density_factor: float = 0.0
    acc_consistency: float = 0.0
    pp_consistency: float = 0.0
    challenge_level: float = 0.0
    skewness_score: float = 0.0
    kurtosis_score: float = 0.0
    mod_diversity: int = 0
    overperforming_ratio: float = 0.0
    burst_detected: bool = False
    last_score_age_days: int = 0
    best_score_age_days: int = 0
    score_count: int = 0


class ProgressionResult(BaseModel):
    player_id: int
    global_score: float = Field(default=0.0, ge=0.0, le=100.0)
    per_discipline: dict[str, DisciplineDiagnostics] = Field(default_factory=dict)
    experience_detected: dict[str, bool] = Field(default_factory=dict)
    summary: str = ""
