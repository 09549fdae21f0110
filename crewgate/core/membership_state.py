"""Membership State Machine — decides what a join request does to an existing row.

Invariants:
    - No prior membership            -> CREATE (Pending approval)
    - Prior membership is Cancelled  -> REACTIVATE (Pending approval, evaluation reset)
    - Any other prior status         -> CONFLICT (no transition)
    - Approved / Not approved are driven elsewhere and treated as opaque here
    - Fresh and reactivated rows are indistinguishable in evaluation fields:
      match_percentage 0, ai_match_score / ai_match_reasoning / auto_approved None

Design Decisions:
    - Decision and field sets are pure so the lifecycle manager's retry loop can
      re-run them after losing a race without duplicating rules
"""

from enum import Enum

from crewgate.core.domain_types import MembershipStatus


class JoinAction(str, Enum):
    """Outcome of a join request against the current row (if any)."""
    CREATE = "create"
    REACTIVATE = "reactivate"
    CONFLICT = "conflict"


# Statuses a participant may move out of by cancelling
CANCELLABLE_STATUSES = frozenset({
    MembershipStatus.PENDING_APPROVAL,
    MembershipStatus.APPROVED,
})


def decide_join_action(existing_status: MembershipStatus | str | None) -> JoinAction:
    """Map the existing membership status (None = no row) to a join action."""
    if existing_status is None:
        return JoinAction.CREATE
    if MembershipStatus(existing_status) == MembershipStatus.CANCELLED:
        return JoinAction.REACTIVATE
    return JoinAction.CONFLICT


def _evaluation_reset() -> dict:
    return {
        "status": MembershipStatus.PENDING_APPROVAL.value,
        "match_percentage": 0,
        "ai_match_score": None,
        "ai_match_reasoning": None,
        "auto_approved": None,
    }


def fresh_membership_fields(notes: str | None) -> dict:
    """Column values for a brand-new membership row."""
    return {**_evaluation_reset(), "notes": notes or None}


def reactivation_fields(notes: str | None) -> dict:
    """Column values applied to a Cancelled row on reactivation (clean slate)."""
    return {**_evaluation_reset(), "notes": notes or None}


def can_cancel(status: MembershipStatus | str) -> bool:
    """Participant-side cancellation is allowed from pending or approved."""
    return MembershipStatus(status) in CANCELLABLE_STATUSES
