from __future__ import annotations


class RecommenderError(Exception):
    """Base class for recommendation pipeline failures."""


class InvalidRangeError(RecommenderError, ValueError):
    """Raised when a PP window is malformed, before the index is queried."""


class IndexQueryError(RecommenderError):
    """Raised when the score index store cannot be reached or answers badly."""
