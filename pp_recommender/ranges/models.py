from __future__ import annotations

from pydantic import BaseModel, model_validator


class RangeResult(BaseModel):
    min: float
    max: float
    margin: float
    skew: float = 0.0

    @model_validator(mode="after")
    def _ordered(self) -> "RangeResult":
        if self.min < 0:
            raise ValueError("min must be >= 0")
        if self.min > self.max:
            raise ValueError("min must be <= max")
        return self

    def window(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}
