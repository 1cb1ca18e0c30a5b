from __future__ import annotations

from dataclasses import dataclass, field


def _default_weights() -> dict[str, float]:
    return {"osu": 1.2, "mania": 1.0, "taiko": 1.0, "catch": 1.0}


@dataclass(frozen=True)
class ProgressionConfig:
    discipline_weights: dict[str, float] = field(default_factory=_default_weights)
    min_entries: int = 20
    recent_window: int = 20
    experience_threshold: float = 5000.0
    experience_boost: float = 10.0


DEFAULT_PROGRESSION_CONFIG = ProgressionConfig()
