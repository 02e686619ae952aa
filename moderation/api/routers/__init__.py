"""API routers for the moderation service."""

from . import admin
from . import health

__all__ = [
    "admin",
    "health",
]
