"""Router package exports."""

from . import analytics, attempts, health, review

__all__ = [
    "analytics",
    "attempts",
    "health",
    "review",
]
