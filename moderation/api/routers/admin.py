"""Admin moderation API endpoints.

Moderation errors propagate to the application's exception handler, which
maps each to its HTTP status and stable error code.
"""

from typing import List

from fastapi import APIRouter, Depends

from moderation.api.deps import Caller, get_caller, get_gateway
from moderation.api.schemas.submission import (
    BatchDecisionRequest,
    BatchDecisionResponse,
    PendingQueuesResponse,
    StatsResponse,
    StatusChangeResponse,
    SubmissionResponse,
)
from moderation.core.queue import ModerationGateway, ReviewVerb, SubmissionKind

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/pending", response_model=PendingQueuesResponse)
def list_all_pending(
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """List the pending queue of every submission kind."""
    queues = gateway.list_all_pending(caller.role)
    return PendingQueuesResponse(**{
        kind.plural: [SubmissionResponse.model_validate(s) for s in items]
        for kind, items in queues.items()
    })


@router.get("/pending/{kind}", response_model=List[SubmissionResponse])
def list_pending(
    kind: SubmissionKind,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """List pending submissions of one kind, oldest first."""
    return [SubmissionResponse.model_validate(s) for s in gateway.list_pending(kind, caller.role)]


@router.post("/approve/{kind}/{submission_id}", response_model=SubmissionResponse)
def approve_submission(
    kind: SubmissionKind,
    submission_id: str,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """Approve a pending submission. Safe to retry."""
    submission = gateway.decide(kind, submission_id, ReviewVerb.APPROVE, caller.role, caller.id)
    return SubmissionResponse.model_validate(submission)


@router.post("/reject/{kind}/{submission_id}", response_model=SubmissionResponse)
def reject_submission(
    kind: SubmissionKind,
    submission_id: str,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """Reject a pending submission. Safe to retry."""
    submission = gateway.decide(kind, submission_id, ReviewVerb.REJECT, caller.role, caller.id)
    return SubmissionResponse.model_validate(submission)


@router.post("/batch/{verb}/{kind}", response_model=BatchDecisionResponse)
def decide_batch(
    verb: ReviewVerb,
    kind: SubmissionKind,
    batch: BatchDecisionRequest,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """Approve or reject several submissions of one kind."""
    result = gateway.decide_many(kind, batch.submission_ids, verb, caller.role, caller.id)
    return BatchDecisionResponse(**result.to_dict())


@router.get(
    "/submissions/{kind}/{submission_id}/history",
    response_model=List[StatusChangeResponse],
)
def get_submission_history(
    kind: SubmissionKind,
    submission_id: str,
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """Get the status history of a submission."""
    history = gateway.get_history(kind, submission_id, caller.role)
    return [StatusChangeResponse.model_validate(h) for h in history]


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    caller: Caller = Depends(get_caller),
    gateway: ModerationGateway = Depends(get_gateway),
):
    """Get dashboard counters."""
    return StatsResponse(**gateway.get_stats(caller.role).to_dict())
