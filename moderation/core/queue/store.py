"""Submission store interface and in-memory implementation.

The store is the source of truth for review status. ``compare_and_set_status``
is its only mutation of an existing record and the basis for race safety:
it refuses to overwrite a status other than the one the caller observed.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import StatusConflictError, SubmissionNotFoundError
from .states import SubmissionKind, SubmissionStatus

CreateListener = Callable[[SubmissionKind], None]


@dataclass(frozen=True)
class StatusChange:
    """One entry of a submission's status history."""

    status: SubmissionStatus
    actor_id: Optional[str]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class Submission:
    """Snapshot of a user-created entity and its review status."""

    id: str
    kind: SubmissionKind
    owner_id: str
    status: SubmissionStatus
    created_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)
    history: Tuple[StatusChange, ...] = ()

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING

    @property
    def last_change(self) -> Optional[StatusChange]:
        return self.history[-1] if self.history else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary for serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "owner_id": self.owner_id,
            "status": self.status.value,
            "payload": dict(self.payload),
            "created_at": self.created_at.isoformat(),
            "history": [change.to_dict() for change in self.history],
        }


class SubmissionStore(ABC):
    """Durable keyed records of submissions, one namespace per kind."""

    @abstractmethod
    def create(
        self,
        kind: SubmissionKind,
        owner_id: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        submission_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Submission:
        """Register a new pending submission.

        Used by the CRUD layer that owns the entity records; the moderation
        queue itself never originates submissions.
        """

    @abstractmethod
    def get(self, kind: SubmissionKind, submission_id: str) -> Submission:
        """Fetch a submission.

        Raises:
            SubmissionNotFoundError: If the kind/id pair does not exist
        """

    @abstractmethod
    def list_by_status(self, kind: SubmissionKind, status: SubmissionStatus) -> List[Submission]:
        """List submissions of a kind in a status, oldest first."""

    @abstractmethod
    def count_by_status(self, kind: SubmissionKind) -> Dict[SubmissionStatus, int]:
        """Count submissions of a kind per status. Every status is present."""

    @abstractmethod
    def compare_and_set_status(
        self,
        kind: SubmissionKind,
        submission_id: str,
        expected: SubmissionStatus,
        new: SubmissionStatus,
        actor_id: Optional[str],
    ) -> Submission:
        """Set the status only if it still equals ``expected``.

        Appends one history entry in the same unit of work.

        Returns:
            The updated submission

        Raises:
            SubmissionNotFoundError: If the kind/id pair does not exist
            StatusConflictError: If the stored status differs from ``expected``
        """


class InMemorySubmissionStore(SubmissionStore):
    """Thread-safe in-process store.

    Each submission has its own lock, so decisions on unrelated submissions
    never wait on each other. Readers work on snapshots and take no locks.
    Ids are unique across kinds.

    Args:
        on_create: Called with the kind after each new submission is stored
    """

    def __init__(self, on_create: Optional[CreateListener] = None):
        self._records: Dict[SubmissionKind, Dict[str, Submission]] = {
            kind: {} for kind in SubmissionKind
        }
        self._locks: Dict[Tuple[SubmissionKind, str], threading.Lock] = {}
        # Only guards id allocation on create
        self._create_lock = threading.Lock()
        self.on_create = on_create

    def create(
        self,
        kind: SubmissionKind,
        owner_id: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        submission_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Submission:
        submission = Submission(
            id=submission_id or str(uuid.uuid4()),
            kind=kind,
            owner_id=owner_id,
            status=SubmissionStatus.PENDING,
            created_at=created_at or datetime.utcnow(),
            payload=dict(payload or {}),
        )

        with self._create_lock:
            if any(submission.id in records for records in self._records.values()):
                raise ValueError(f"Submission {submission.id} already exists")
            self._locks[(kind, submission.id)] = threading.Lock()
            self._records[kind][submission.id] = submission

        if self.on_create is not None:
            self.on_create(kind)
        return submission

    def get(self, kind: SubmissionKind, submission_id: str) -> Submission:
        submission = self._records[kind].get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(kind, submission_id)
        return submission

    def list_by_status(self, kind: SubmissionKind, status: SubmissionStatus) -> List[Submission]:
        snapshot = list(self._records[kind].values())
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(
            (s for s in snapshot if s.status == status),
            key=lambda s: s.created_at,
        )

    def count_by_status(self, kind: SubmissionKind) -> Dict[SubmissionStatus, int]:
        counts = Counter(s.status for s in list(self._records[kind].values()))
        return {status: counts.get(status, 0) for status in SubmissionStatus}

    def compare_and_set_status(
        self,
        kind: SubmissionKind,
        submission_id: str,
        expected: SubmissionStatus,
        new: SubmissionStatus,
        actor_id: Optional[str],
    ) -> Submission:
        lock = self._locks.get((kind, submission_id))
        if lock is None:
            raise SubmissionNotFoundError(kind, submission_id)

        with lock:
            current = self._records[kind][submission_id]
            if current.status != expected:
                raise StatusConflictError(kind, submission_id, expected, current.status)

            change = StatusChange(status=new, actor_id=actor_id, timestamp=datetime.utcnow())
            updated = replace(current, status=new, history=current.history + (change,))
            self._records[kind][submission_id] = updated

        return updated
