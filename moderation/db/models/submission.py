"""Submission database models.

Stores the review status of user-created entities and its change history.
Descriptive fields belong to the CRUD layer and are kept here only as an
opaque JSON payload.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import relationship

from moderation.db.base import Base


class SubmissionRecord(Base):
    """
    One organisation, business or artist awaiting or having received review.

    ``seq`` breaks ties between equal ``created_at`` values so the queue
    order is stable.
    """
    __tablename__ = "submissions"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    kind = Column(String(32), nullable=False)
    owner_id = Column(String(255), nullable=False)

    # Workflow state
    status = Column(String(32), nullable=False, default="pending")

    # Kind-specific descriptive fields, never inspected here
    payload = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    history = relationship(
        "SubmissionHistory",
        back_populates="submission",
        order_by="SubmissionHistory.seq",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_submissions_kind_status_created", "kind", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SubmissionRecord {self.kind}:{self.id} [{self.status}]>"


class SubmissionHistory(Base):
    """
    Records every status change of a submission.

    Append-only; provides the audit trail and replay detection.
    """
    __tablename__ = "submission_history"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        String(36), ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(32), nullable=False)
    actor_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    submission = relationship("SubmissionRecord", back_populates="history")

    def __repr__(self) -> str:
        return f"<SubmissionHistory {self.submission_id} -> {self.status}>"
