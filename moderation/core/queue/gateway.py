"""Moderation gateway: the public contract of the review queue.

Every operation passes one authorization guard before touching the store.
Decisions run fetch, transition, compare-and-set and retry once when another
operator won the race, so callers may replay a decision freely.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from moderation.core.rbac import RolePolicy
from moderation.core.rbac.permissions import (
    STATS_READ,
    SUBMISSIONS_APPROVE,
    SUBMISSIONS_LIST,
    SUBMISSIONS_READ,
    SUBMISSIONS_REJECT,
)

from .errors import (
    AlreadyReviewedError,
    ForbiddenError,
    ModerationError,
    StatusConflictError,
)
from .states import (
    IllegalTransitionError,
    ReviewVerb,
    SubmissionKind,
    SubmissionStatus,
    next_status,
    target_status,
)
from .stats import DashboardStats, StatsAggregator
from .store import StatusChange, Submission, SubmissionStore

logger = logging.getLogger(__name__)

VERB_PERMISSIONS: Dict[ReviewVerb, str] = {
    ReviewVerb.APPROVE: SUBMISSIONS_APPROVE,
    ReviewVerb.REJECT: SUBMISSIONS_REJECT,
}


@dataclass
class BatchResult:
    """Per-item outcome of a batch decision."""

    succeeded: List[Submission] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": [s.id for s in self.succeeded],
            "failed": self.failed,
        }


class ModerationGateway:
    """
    High-level service for reviewing submissions.

    Handles:
    - Authorization of the caller role for every operation
    - Approve/reject decisions with replay and race safety
    - Pending queues per kind
    - Dashboard statistics
    """

    def __init__(
        self,
        store: SubmissionStore,
        role_policy: RolePolicy,
        *,
        aggregator: Optional[StatsAggregator] = None,
        max_attempts: int = 2,
    ):
        """
        Initialize the gateway.

        Args:
            store: Submission store holding review status
            role_policy: Resolves caller roles to permissions
            aggregator: Stats view to invalidate after decisions;
                an uncached one over ``store`` is created when omitted
            max_attempts: Fetch/compare-and-set attempts per decision
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.store = store
        self.role_policy = role_policy
        self.aggregator = aggregator or StatsAggregator(store)
        self.max_attempts = max_attempts

    def list_pending(self, kind: SubmissionKind, caller_role: Optional[str]) -> List[Submission]:
        """Get submissions of a kind awaiting review, oldest first."""
        self._authorize(caller_role, SUBMISSIONS_LIST)
        return self.store.list_by_status(kind, SubmissionStatus.PENDING)

    def list_all_pending(self, caller_role: Optional[str]) -> Dict[SubmissionKind, List[Submission]]:
        """Get the pending queue of every kind."""
        self._authorize(caller_role, SUBMISSIONS_LIST)
        return {
            kind: self.store.list_by_status(kind, SubmissionStatus.PENDING)
            for kind in SubmissionKind
        }

    def decide(
        self,
        kind: SubmissionKind,
        submission_id: str,
        verb: ReviewVerb,
        caller_role: Optional[str],
        caller_id: str,
    ) -> Submission:
        """
        Approve or reject a submission.

        Replaying a decision the same caller already recorded returns the
        submission unchanged.

        Returns:
            The submission in its decided state

        Raises:
            ForbiddenError: If the caller role may not perform ``verb``
            SubmissionNotFoundError: If the kind/id pair does not exist
            AlreadyReviewedError: If the submission was already decided otherwise
            StatusConflictError: If the race was lost on every attempt
        """
        self._authorize(caller_role, VERB_PERMISSIONS[verb])

        conflict: Optional[StatusConflictError] = None
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.get(kind, submission_id)

            try:
                new_status = next_status(current.status, verb)
            except IllegalTransitionError:
                if self._is_replay(current, verb, caller_id):
                    logger.info(
                        "Replayed %s on %s %s by %s, already %s",
                        verb.value, kind.value, submission_id, caller_id, current.status.value,
                    )
                    return current
                logger.info(
                    "Refused %s on %s %s by %s: already %s",
                    verb.value, kind.value, submission_id, caller_id, current.status.value,
                )
                raise AlreadyReviewedError(kind, submission_id, current.status)

            try:
                updated = self.store.compare_and_set_status(
                    kind, submission_id, current.status, new_status, caller_id
                )
            except StatusConflictError as e:
                logger.warning(
                    "Lost race deciding %s %s (attempt %d/%d): %s",
                    kind.value, submission_id, attempt, self.max_attempts, e,
                )
                conflict = e
                continue

            logger.info(
                "%s %s %s by %s",
                new_status.value.capitalize(), kind.value, submission_id, caller_id,
            )
            self._refresh_stats(kind)
            return updated

        raise conflict

    def decide_many(
        self,
        kind: SubmissionKind,
        submission_ids: Iterable[str],
        verb: ReviewVerb,
        caller_role: Optional[str],
        caller_id: str,
    ) -> BatchResult:
        """
        Apply one verb to several submissions.

        Each item is decided independently; a failure is recorded and the
        rest of the batch continues.
        """
        self._authorize(caller_role, VERB_PERMISSIONS[verb])

        result = BatchResult()
        for submission_id in submission_ids:
            try:
                result.succeeded.append(
                    self.decide(kind, submission_id, verb, caller_role, caller_id)
                )
            except ModerationError as e:
                result.failed.append({
                    "id": submission_id,
                    "code": e.code,
                    "error": str(e),
                })
        return result

    def get_history(
        self,
        kind: SubmissionKind,
        submission_id: str,
        caller_role: Optional[str],
    ) -> List[StatusChange]:
        """Get the status history of a submission, oldest first."""
        self._authorize(caller_role, SUBMISSIONS_READ)
        return list(self.store.get(kind, submission_id).history)

    def get_stats(self, caller_role: Optional[str]) -> DashboardStats:
        """Get dashboard counters."""
        self._authorize(caller_role, STATS_READ)
        return self.aggregator.compute_stats()

    def _authorize(self, caller_role: Optional[str], permission: str) -> None:
        if not self.role_policy.checker(caller_role).has_permission(permission):
            logger.warning("Role %r denied %s", caller_role, permission)
            raise ForbiddenError(permission, caller_role)

    def _is_replay(self, current: Submission, verb: ReviewVerb, caller_id: str) -> bool:
        """Check if ``current`` already holds this caller's identical decision."""
        if current.status != target_status(verb):
            return False
        last = current.last_change
        return last is not None and last.actor_id == caller_id

    def _refresh_stats(self, kind: SubmissionKind) -> None:
        # The status write already committed; stats catch up on the next read
        try:
            self.aggregator.invalidate(kind)
        except Exception:
            logger.exception("Failed to invalidate stats for %s", kind.value)
