"""Database models for the moderation service."""

from moderation.db.models.submission import SubmissionRecord, SubmissionHistory

__all__ = [
    "SubmissionRecord",
    "SubmissionHistory",
]
