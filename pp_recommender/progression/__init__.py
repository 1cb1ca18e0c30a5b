"""
Progression analytics.

Responsibilities:
- Score each discipline's trend, freshness, density and consistency.
- Combine disciplines into a bounded global progression score.
- Derive a target PP value from the best-performance list.
- Cache results briefly in Redis.
"""
