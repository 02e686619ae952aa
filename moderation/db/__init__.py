"""Database layer for the moderation service."""
