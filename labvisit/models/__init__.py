"""Database models."""

from labvisit.models.appointments import appointments, metadata

__all__ = [
    "appointments",
    "metadata",
]
