"""Submission and dashboard schemas for the moderation API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from moderation.core.queue import SubmissionKind, SubmissionStatus


class StatusChangeResponse(BaseModel):
    status: SubmissionStatus
    actor_id: Optional[str]
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class SubmissionResponse(BaseModel):
    id: str
    kind: SubmissionKind
    owner_id: str
    status: SubmissionStatus
    payload: Dict[str, Any]
    created_at: datetime
    history: List[StatusChangeResponse] = []

    model_config = ConfigDict(from_attributes=True)


class PendingQueuesResponse(BaseModel):
    organisations: List[SubmissionResponse]
    businesses: List[SubmissionResponse]
    artists: List[SubmissionResponse]


class StatsResponse(BaseModel):
    organisations: int
    businesses: int
    artists: int
    pending_organisations: int
    pending_businesses: int
    pending_artists: int
    total_pending: int


class BatchDecisionRequest(BaseModel):
    submission_ids: List[str] = Field(..., min_length=1)


class BatchDecisionResponse(BaseModel):
    succeeded: List[str] = []
    failed: List[Dict[str, str]] = []
