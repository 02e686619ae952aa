"""Errors surfaced by the moderation queue.

Each error carries a stable ``code`` so callers can tell them apart without
parsing messages.
"""

from typing import Optional

from .states import SubmissionKind, SubmissionStatus


class ModerationError(Exception):
    """Base class for moderation queue failures."""

    code = "moderation_error"


class ForbiddenError(ModerationError):
    """Raised when the caller's role lacks the required permission."""

    code = "forbidden"

    def __init__(self, required_permission: str, role: Optional[str] = None):
        super().__init__(f"Permission denied: requires {required_permission}")
        self.required_permission = required_permission
        self.role = role


class SubmissionNotFoundError(ModerationError):
    """Raised when no submission exists for a kind/id pair."""

    code = "not_found"

    def __init__(self, kind: SubmissionKind, submission_id: str):
        super().__init__(f"{kind.value} submission {submission_id} not found")
        self.kind = kind
        self.submission_id = submission_id


class AlreadyReviewedError(ModerationError):
    """Raised when a submission already reached a terminal status."""

    code = "already_reviewed"

    def __init__(self, kind: SubmissionKind, submission_id: str, status: SubmissionStatus):
        super().__init__(
            f"{kind.value} submission {submission_id} was already reviewed ({status.value})"
        )
        self.kind = kind
        self.submission_id = submission_id
        self.status = status


class StatusConflictError(ModerationError):
    """Raised when a compare-and-set finds a status other than the expected one."""

    code = "conflict"

    def __init__(
        self,
        kind: SubmissionKind,
        submission_id: str,
        expected: SubmissionStatus,
        actual: Optional[SubmissionStatus] = None,
    ):
        found = actual.value if actual else "unknown"
        super().__init__(
            f"{kind.value} submission {submission_id} changed concurrently "
            f"(expected {expected.value}, found {found})"
        )
        self.kind = kind
        self.submission_id = submission_id
        self.expected = expected
        self.actual = actual
