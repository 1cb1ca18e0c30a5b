from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import redis

from ..alerts import send_alert
from ..index.config import DEFAULT_INDEX_CONFIG, IndexConfig
from ..index.query import ScoreIndex
from ..recommendations.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..recommendations.models import ChartMetadata, PlayerProfile, TopPerformanceSet


@dataclass
class RecommendationServices:
    """External collaborators the pipeline talks to.

    ``get_top_scores`` returns one TopPerformanceSet per discipline the
    player has played.
    """

    get_user: Callable[[str], PlayerProfile | None]
    get_top_scores: Callable[[PlayerProfile], Mapping[str, TopPerformanceSet]]
    get_chart_metadata: Callable[[int], ChartMetadata]
    index: ScoreIndex
    store: redis.Redis
    alert: Callable[[str, str], object] = send_alert
    config: EngineConfig = field(default=DEFAULT_ENGINE_CONFIG)
    index_config: IndexConfig = field(default=DEFAULT_INDEX_CONFIG)


def load_services_factory(dotted: str) -> Callable[[], RecommendationServices]:
    """Resolve ``package.module:function`` (or ``package.module.function``)."""
    if not dotted:
        raise ValueError("No services factory configured (PP_RECOMMENDER_SERVICES)")
    if ":" in dotted:
        module_name, attr = dotted.split(":", 1)
    else:
        module_name, _, attr = dotted.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid services factory path: {dotted!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)
