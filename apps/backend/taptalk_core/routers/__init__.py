"""Router package exports."""

from . import health

__all__ = [
    "health",
]
