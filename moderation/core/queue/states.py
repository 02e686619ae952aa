"""Submission review states and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (created by the owning user)
    └────┬─────┘
         │
         ├──────────────┐
         │              │
    ┌────▼─────┐  ┌─────▼────┐
    │ APPROVED │  │ REJECTED │
    └──────────┘  └──────────┘

Both decisions are terminal. Re-opening a decision means creating a new
submission, never a backward transition.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Set


class SubmissionKind(str, Enum):
    """Entity kinds that go through moderation."""

    ORGANISATION = "organisation"
    BUSINESS = "business"
    ARTIST = "artist"

    @property
    def plural(self) -> str:
        return f"{self.value}es" if self.value.endswith("s") else f"{self.value}s"


class SubmissionStatus(str, Enum):
    """Review status of a submission."""

    PENDING = "pending"      # Awaiting an operator decision
    APPROVED = "approved"    # Accepted by an operator
    REJECTED = "rejected"    # Declined by an operator


class ReviewVerb(str, Enum):
    """Operator actions on a pending submission."""

    APPROVE = "approve"
    REJECT = "reject"


class IllegalTransitionError(Exception):
    """Raised when a verb is not permitted from the current status."""

    code = "illegal_transition"

    def __init__(self, current: SubmissionStatus, verb: ReviewVerb):
        super().__init__(f"Cannot {verb.value} a submission in state {current.value}")
        self.current = current
        self.verb = verb


class TransitionRule(NamedTuple):
    """Defines a valid status transition."""
    from_status: SubmissionStatus
    to_status: SubmissionStatus
    verb: ReviewVerb


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.APPROVED, ReviewVerb.APPROVE),
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.REJECTED, ReviewVerb.REJECT),
]

TRANSITION_TARGETS: Dict[tuple[SubmissionStatus, ReviewVerb], SubmissionStatus] = {
    (rule.from_status, rule.verb): rule.to_status for rule in TRANSITION_RULES
}

# Status each verb leads to, regardless of where it started
VERB_TARGETS: Dict[ReviewVerb, SubmissionStatus] = {
    rule.verb: rule.to_status for rule in TRANSITION_RULES
}

TERMINAL_STATUSES: Set[SubmissionStatus] = {
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
}


def can_transition(current: SubmissionStatus, verb: ReviewVerb) -> bool:
    """Check if a verb is valid from the given status."""
    return (current, verb) in TRANSITION_TARGETS


def get_target_status(current: SubmissionStatus, verb: ReviewVerb) -> Optional[SubmissionStatus]:
    """Get the target status for a transition, or None when it is illegal."""
    return TRANSITION_TARGETS.get((current, verb))


def target_status(verb: ReviewVerb) -> SubmissionStatus:
    """Status a verb produces when applied to a pending submission."""
    return VERB_TARGETS[verb]


def next_status(current: SubmissionStatus, verb: ReviewVerb) -> SubmissionStatus:
    """Compute the status that follows ``current`` when ``verb`` is applied.

    Raises:
        IllegalTransitionError: If the submission already reached a terminal state
    """
    target = get_target_status(current, verb)
    if target is None:
        raise IllegalTransitionError(current, verb)
    return target
