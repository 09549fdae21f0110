"""Membership Lifecycle Manager — create, reactivate, cancel and list memberships.

Invariants:
    - At most one membership row per (participant, segment); the unique constraint
      is the arbiter when two requests race
    - create_or_reactivate leaves the row Pending approval with match_percentage 0
      and AI fields NULL, whether fresh or reactivated
    - Reactivation is a conditional UPDATE ... WHERE status = 'Cancelled': a row that
      changed underneath us is never overwritten
    - The reactivation reset and the removal of the prior answers commit together
    - Losing a race (IntegrityError on insert, 0 rows on update) rolls back and re-runs
      the whole lookup-decide-write; the rerun then resolves to CONFLICT
    - Only the owning participant may cancel, and only from Pending approval / Approved

Design Decisions:
    - Check-then-act with bounded retry over SELECT ... FOR UPDATE: works the same on
      PostgreSQL and SQLite and keeps the transaction short
    - Decisions and reset values come from core/membership_state.py
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import (
    MembershipId, MembershipStatus, ParticipantId, SegmentId, ValidationReason,
)
from crewgate.core.errors import (
    ConflictError, ErrorContext, ForbiddenError, PersistenceFailedError,
    ResourceNotFoundError, ValidationFailedError,
)
from crewgate.core.membership_state import (
    JoinAction, can_cancel, decide_join_action, fresh_membership_fields,
    reactivation_fields,
)
from crewgate.models.membership import Membership
from crewgate.models.membership_answer import MembershipAnswer

logger = logging.getLogger(__name__)


@dataclass
class MembershipOutcome:
    membership: Membership
    is_reactivation: bool
    answers_removed: int = 0


class MembershipLifecycle:
    """Owns every write to the memberships table."""

    def __init__(self, db: AsyncSession, max_attempts: int = 3):
        self.db = db
        self.max_attempts = max_attempts

    async def find(
        self, participant_id: ParticipantId, segment_id: SegmentId,
    ) -> Membership | None:
        result = await self.db.execute(
            select(Membership).where(
                Membership.participant_id == participant_id,
                Membership.segment_id == segment_id,
            ),
        )
        return result.scalar_one_or_none()

    async def create_or_reactivate(
        self,
        participant_id: ParticipantId,
        segment_id: SegmentId,
        notes: str | None = None,
    ) -> MembershipOutcome:
        """Insert a fresh membership or reactivate a cancelled one."""
        for attempt in range(1, self.max_attempts + 1):
            existing = await self.find(participant_id, segment_id)
            action = decide_join_action(existing.status if existing else None)

            match action:
                case JoinAction.CONFLICT:
                    raise ConflictError(
                        "You have already registered for this leg",
                        existing_id=str(existing.id),
                        context=ErrorContext(
                            participant_id=str(participant_id),
                            segment_id=str(segment_id),
                            membership_id=str(existing.id),
                        ),
                    )
                case JoinAction.CREATE:
                    membership = await self._insert(participant_id, segment_id, notes)
                    if membership is not None:
                        return MembershipOutcome(membership, is_reactivation=False)
                case JoinAction.REACTIVATE:
                    reactivated = await self._reactivate(MembershipId(existing.id), notes)
                    if reactivated is not None:
                        membership, removed = reactivated
                        return MembershipOutcome(
                            membership, is_reactivation=True, answers_removed=removed,
                        )

            logger.warning(
                f"Concurrent membership write detected, retrying ({action.value})",
                extra={
                    "participant_id": participant_id,
                    "segment_id": segment_id,
                    "attempt": attempt,
                },
            )

        raise PersistenceFailedError(
            f"gave up after {self.max_attempts} attempts", "membership",
            context=ErrorContext(
                participant_id=str(participant_id), segment_id=str(segment_id),
            ),
        )

    async def cancel(
        self, participant_id: ParticipantId, membership_id: MembershipId,
    ) -> Membership:
        """Participant-side cancellation of their own membership."""
        membership = await self.db.get(Membership, membership_id)
        if membership is None:
            raise ResourceNotFoundError("Membership", str(membership_id))
        if membership.participant_id != participant_id:
            raise ForbiddenError("You can only cancel your own registrations")
        if not can_cancel(membership.status):
            raise ValidationFailedError(
                f"Registration cannot be cancelled from status '{membership.status}'",
                ValidationReason.ALREADY_CANCELLED
                if membership.status == MembershipStatus.CANCELLED.value
                else ValidationReason.NOT_CANCELLABLE,
                details={"membership_id": str(membership_id), "status": membership.status},
            )
        membership.status = MembershipStatus.CANCELLED.value
        membership.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(membership)
        return membership

    async def list_for_participant(
        self,
        participant_id: ParticipantId,
        segment_id: SegmentId | None = None,
        status: MembershipStatus | None = None,
    ) -> list[Membership]:
        query = (
            select(Membership)
            .where(Membership.participant_id == participant_id)
            .order_by(Membership.created_at.desc())
        )
        if segment_id is not None:
            query = query.where(Membership.segment_id == segment_id)
        if status is not None:
            query = query.where(Membership.status == status.value)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _insert(
        self, participant_id: ParticipantId, segment_id: SegmentId, notes: str | None,
    ) -> Membership | None:
        membership = Membership(
            participant_id=participant_id,
            segment_id=segment_id,
            **fresh_membership_fields(notes),
        )
        self.db.add(membership)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return None
        await self.db.refresh(membership)
        return membership

    async def _reactivate(
        self, membership_id: MembershipId, notes: str | None,
    ) -> tuple[Membership, int] | None:
        """Reset a Cancelled row and drop its answers. None if the row changed meanwhile."""
        result = await self.db.execute(
            update(Membership)
            .where(
                Membership.id == membership_id,
                Membership.status == MembershipStatus.CANCELLED.value,
            )
            .values(
                **reactivation_fields(notes),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            await self.db.rollback()
            return None
        removed = await self.db.execute(
            delete(MembershipAnswer)
            .where(MembershipAnswer.membership_id == membership_id),
        )
        await self.db.commit()
        membership = await self.db.get(Membership, membership_id, populate_existing=True)
        return membership, removed.rowcount or 0
