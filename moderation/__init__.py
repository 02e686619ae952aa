"""Moderation queue service for user-submitted organisations, businesses and artists."""

__version__ = "0.1.0"
