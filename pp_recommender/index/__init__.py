"""
Score index layer.

Responsibilities:
- Manage the Redis connection and key layout of the score index.
- Run the server-side range scan script, single-shot or chunked.
- Hydrate matching keys into ScoreRecord objects.
- Keep short-lived request markers and per-player suggestion history.
"""
