from __future__ import annotations

from collections import Counter
from typing import Any

REQUEST_EVENT = "recommendation"


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    requests = [e for e in events if e["type"] == REQUEST_EVENT]
    total = len(requests)

    found = sum(1 for r in requests if r.get("status") == "found")
    not_found = sum(1 for r in requests if r.get("status") == "not_found")
    errors = sum(1 for r in requests if r.get("status") in ("error", "timeout"))
    timeouts = sum(1 for r in requests if r.get("status") == "timeout")

    # Average latency
    times = [r["elapsed_ms"] for r in requests if r.get("elapsed_ms") is not None]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    tier_counter: Counter[str] = Counter()
    algorithm_counter: Counter[str] = Counter()
    for r in requests:
        if r.get("status") != "found":
            continue
        tier_counter[r.get("tier") or "requested"] += 1
        algorithm_counter[r.get("algorithm") or "unknown"] += 1

    discipline_counter: Counter[str] = Counter(r.get("discipline", "osu") for r in requests)

    return {
        "total_requests": total,
        "found": found,
        "not_found": not_found,
        "errors": errors,
        "timeouts": timeouts,
        "success_rate": round(found / total * 100, 1) if total else 0.0,
        "avg_response_time_ms": avg_time,
        "tiers": dict(tier_counter),
        "algorithms": [{"name": n, "count": c} for n, c in algorithm_counter.most_common()],
        "disciplines": dict(discipline_counter),
    }
