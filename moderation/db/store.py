"""SQLAlchemy-backed submission store.

Compare-and-set is a conditional ``UPDATE ... WHERE status = :expected``;
the history row is inserted in the same transaction, and both commit
together before the call returns.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import and_, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from moderation.core.queue.errors import StatusConflictError, SubmissionNotFoundError
from moderation.core.queue.states import SubmissionKind, SubmissionStatus
from moderation.core.queue.store import CreateListener, StatusChange, Submission, SubmissionStore
from moderation.db.models import SubmissionHistory, SubmissionRecord

logger = logging.getLogger(__name__)


class SqlSubmissionStore(SubmissionStore):
    """Submission store over a SQLAlchemy session.

    Args:
        db: Database session, owned by the caller
        on_create: Called with the kind after each new submission commits
    """

    def __init__(self, db: Session, on_create: Optional[CreateListener] = None):
        self.db = db
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
        record = SubmissionRecord(
            kind=kind.value,
            owner_id=owner_id,
            status=SubmissionStatus.PENDING.value,
            payload=dict(payload or {}),
        )
        if submission_id:
            record.id = submission_id
        if created_at:
            record.created_at = created_at

        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValueError(f"Submission {submission_id} already exists") from e
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(record)
        if self.on_create is not None:
            self.on_create(kind)
        return self._to_submission(record)

    def get(self, kind: SubmissionKind, submission_id: str) -> Submission:
        record = self._query_record(kind, submission_id).first()
        if record is None:
            raise SubmissionNotFoundError(kind, submission_id)
        return self._to_submission(record)

    def list_by_status(self, kind: SubmissionKind, status: SubmissionStatus) -> List[Submission]:
        records = self.db.query(SubmissionRecord).filter(
            and_(
                SubmissionRecord.kind == kind.value,
                SubmissionRecord.status == status.value,
            )
        ).order_by(SubmissionRecord.created_at.asc(), SubmissionRecord.seq.asc()).all()

        return [self._to_submission(r) for r in records]

    def count_by_status(self, kind: SubmissionKind) -> Dict[SubmissionStatus, int]:
        rows = self.db.query(
            SubmissionRecord.status, func.count(SubmissionRecord.seq)
        ).filter(
            SubmissionRecord.kind == kind.value
        ).group_by(SubmissionRecord.status).all()

        counts = {status: 0 for status in SubmissionStatus}
        for status, count in rows:
            counts[SubmissionStatus(status)] = count
        return counts

    def compare_and_set_status(
        self,
        kind: SubmissionKind,
        submission_id: str,
        expected: SubmissionStatus,
        new: SubmissionStatus,
        actor_id: Optional[str],
    ) -> Submission:
        now = datetime.utcnow()

        try:
            result = self.db.execute(
                update(SubmissionRecord)
                .where(
                    and_(
                        SubmissionRecord.kind == kind.value,
                        SubmissionRecord.id == submission_id,
                        SubmissionRecord.status == expected.value,
                    )
                )
                .values(status=new.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )

            updated = result.rowcount == 1
            if updated:
                self.db.add(SubmissionHistory(
                    submission_id=submission_id,
                    status=new.value,
                    actor_id=actor_id,
                    created_at=now,
                ))
                self.db.commit()
            else:
                self.db.rollback()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if not updated:
            actual = self._query_record(kind, submission_id).with_entities(
                SubmissionRecord.status
            ).scalar()
            if actual is None:
                raise SubmissionNotFoundError(kind, submission_id)
            logger.debug(
                "Compare-and-set missed on %s %s: expected %s, found %s",
                kind.value, submission_id, expected.value, actual,
            )
            raise StatusConflictError(kind, submission_id, expected, SubmissionStatus(actual))

        # The bulk update bypassed the identity map
        self.db.expire_all()
        return self.get(kind, submission_id)

    def _query_record(self, kind: SubmissionKind, submission_id: str):
        return self.db.query(SubmissionRecord).filter(
            and_(
                SubmissionRecord.kind == kind.value,
                SubmissionRecord.id == submission_id,
            )
        )

    def _to_submission(self, record: SubmissionRecord) -> Submission:
        """Convert a SubmissionRecord model to a detached snapshot."""
        return Submission(
            id=record.id,
            kind=SubmissionKind(record.kind),
            owner_id=record.owner_id,
            status=SubmissionStatus(record.status),
            created_at=record.created_at,
            payload=dict(record.payload or {}),
            history=tuple(
                StatusChange(
                    status=SubmissionStatus(h.status),
                    actor_id=h.actor_id,
                    timestamp=h.created_at,
                )
                for h in record.history
            ),
        )
