"""
Beatmap recommendation engine.

Responsibilities:
- Analyse a player's best-performance history into a progression signal.
- Turn rating + history + progression into PP search windows.
- Query the Redis score index for candidate charts inside a window.
- Filter and select a chart through escalating fallback tiers.
"""
