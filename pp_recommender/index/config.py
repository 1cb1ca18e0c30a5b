from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class IndexConfig:
    host: str = os.getenv("REDIS_HOST", "localhost")
    port: int = int(os.getenv("REDIS_PORT", "6379"))
    db: int = int(os.getenv("REDIS_DB", "0"))
    connect_timeout: float = 2.0
    scores_key: str = "scores_by_pp"
    chunk_size: int = 1000
    max_results: int = 50_000
    scan_limit: int = 1_000_000
    precision_cap: int = 5
    bpm_margin: float = 10.0
    pending_ttl: int = 30
    suggestion_retention: int = 7 * 24 * 3600
    progression_ttl: int = 300


DEFAULT_INDEX_CONFIG = IndexConfig()
