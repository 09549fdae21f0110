"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Collaborators outside this service (notifications, AI scoring) are reached through Protocols
    - The observer is a side channel: no control flow depends on what it does

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Observer injected per component instead of logging inline, so the pipeline is
      testable without asserting on log output
"""

from typing import Protocol
from uuid import UUID

from crewgate.core.domain_types import (
    ActivityId, FailType, MembershipId, ParticipantId, SegmentId,
)


class AssessmentRunner(Protocol):
    """The deferred scoring task. Mutates the membership row; returns nothing."""
    async def __call__(self, membership_id: MembershipId) -> None: ...


class OwnerNotifier(Protocol):
    """Immediate human-review notice to the activity owner.

    Returns {"notification_id": ...} or {"error": "..."}; never raises.
    """
    async def __call__(
        self,
        owner_id: UUID,
        membership_id: MembershipId,
        activity_id: ActivityId,
        activity_name: str,
        participant_display_name: str,
        acting_participant_id: ParticipantId,
    ) -> dict: ...


class AdmissionObserver(Protocol):
    """Side-channel events emitted by the admission components."""
    def precheck_failed(
        self, participant_id: ParticipantId, activity_id: ActivityId,
        fail_type: FailType, reason: str,
    ) -> None: ...

    def membership_created(
        self, membership_id: MembershipId, participant_id: ParticipantId,
        segment_id: SegmentId,
    ) -> None: ...

    def membership_reactivated(
        self, membership_id: MembershipId, participant_id: ParticipantId,
        segment_id: SegmentId, answers_deleted: int,
    ) -> None: ...

    def answers_persisted(self, membership_id: MembershipId, count: int) -> None: ...

    def assessment_scheduled(self, membership_id: MembershipId) -> None: ...

    def assessment_skipped(self, membership_id: MembershipId, reason: str) -> None: ...

    def assessment_failed(self, membership_id: MembershipId, error: BaseException) -> None: ...

    def owner_notification_failed(self, membership_id: MembershipId, error: str) -> None: ...
