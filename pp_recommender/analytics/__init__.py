"""
Request analytics.

Responsibilities:
- Keep an in-process log of recommendation outcomes seen by the parent.
- Aggregate that log into counts, rates and latency figures.
"""
