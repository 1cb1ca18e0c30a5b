"""
Recommendation engine.

Responsibilities:
- Hold the request and record models shared by the pipeline.
- Filter index hits by top-100 membership, mods and precision.
- Drive range computation and index queries through fallback tiers.
- Select one chart and word the player-facing reply.
"""
