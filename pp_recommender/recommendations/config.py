from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from ..ranges.algorithms import ALGORITHM_ORDER

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class EngineConfig:
    algorithm_order: tuple[str, ...] = ALGORITHM_ORDER
    selection_tiers: tuple[int, ...] = tuple(range(1, 9))
    legacy_target_offset: float = 20.25
    worker_timeout: float = float(os.getenv("WORKER_TIMEOUT", "30"))
    services_factory: str = os.getenv("PP_RECOMMENDER_SERVICES", "")
    alert_webhook_url: str = os.getenv("ALERT_WEBHOOK_URL", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


DEFAULT_ENGINE_CONFIG = EngineConfig()
