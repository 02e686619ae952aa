"""Moderation queue: review states, submission store, stats and gateway."""

from .states import (
    SubmissionKind,
    SubmissionStatus,
    ReviewVerb,
    IllegalTransitionError,
    TERMINAL_STATUSES,
    next_status,
)
from .errors import (
    ModerationError,
    ForbiddenError,
    SubmissionNotFoundError,
    AlreadyReviewedError,
    StatusConflictError,
)
from .store import StatusChange, Submission, SubmissionStore, InMemorySubmissionStore
from .stats import DashboardStats, StatsAggregator, StatsCache
from .gateway import BatchResult, ModerationGateway

__all__ = [
    "SubmissionKind",
    "SubmissionStatus",
    "ReviewVerb",
    "IllegalTransitionError",
    "TERMINAL_STATUSES",
    "next_status",
    "ModerationError",
    "ForbiddenError",
    "SubmissionNotFoundError",
    "AlreadyReviewedError",
    "StatusConflictError",
    "StatusChange",
    "Submission",
    "SubmissionStore",
    "InMemorySubmissionStore",
    "DashboardStats",
    "StatsAggregator",
    "StatsCache",
    "BatchResult",
    "ModerationGateway",
]
