"""Notification Dispatcher — in-app notification rows for owners and crew.

Invariants:
    - Never raises: store failures come back as {"error": "..."} and the caller decides
    - One row per call, committed immediately (the membership is already durable)
    - notify_owner writes type new_registration addressed to the activity owner

Design Decisions:
    - Return dicts (not exceptions), like the core enforce_* modules: the human-review path
      must not fail a request whose membership already exists
    - OwnerNotificationDispatcher binds the session so the pipeline sees the OwnerNotifier
      Protocol (core/repository_protocols.py) and tests can swap in a fake
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import (
    ActivityId, MembershipId, NotificationType, ParticipantId,
)
from crewgate.models.notification import Notification

logger = logging.getLogger(__name__)


def registration_link(membership_id: MembershipId) -> str:
    return f"/owner/registrations/{membership_id}"


async def create_notification(
    db: AsyncSession,
    *,
    user_id: UUID,
    kind: NotificationType,
    title: str,
    message: str,
    link: str | None = None,
    payload: dict | None = None,
) -> dict:
    """Insert one notification row. Returns {"notification_id"} or {"error"}."""
    notification = Notification(
        user_id=user_id,
        type=kind.value,
        title=title,
        message=message,
        link=link,
        payload=payload or {},
    )
    try:
        db.add(notification)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create {kind.value} notification: {e}")
        return {"error": f"notification insert failed: {type(e).__name__}"}
    return {"notification_id": str(notification.id)}


async def notify_owner(
    db: AsyncSession,
    owner_id: UUID,
    membership_id: MembershipId,
    activity_id: ActivityId,
    activity_name: str,
    participant_display_name: str,
    acting_participant_id: ParticipantId,
) -> dict:
    """Tell the activity owner a new membership awaits human review."""
    return await create_notification(
        db,
        user_id=owner_id,
        kind=NotificationType.NEW_REGISTRATION,
        title="New Crew Registration",
        message=(
            f'{participant_display_name} has registered for "{activity_name}". '
            f"Review their application now."
        ),
        link=registration_link(membership_id),
        payload={
            "registration_id": str(membership_id),
            "journey_id": str(activity_id),
            "journey_name": activity_name,
            "crew_name": participant_display_name,
            "crew_id": str(acting_participant_id),
            "sender_id": str(acting_participant_id),
        },
    )


class OwnerNotificationDispatcher:
    """OwnerNotifier bound to a request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def __call__(
        self,
        owner_id: UUID,
        membership_id: MembershipId,
        activity_id: ActivityId,
        activity_name: str,
        participant_display_name: str,
        acting_participant_id: ParticipantId,
    ) -> dict:
        return await notify_owner(
            self.db, owner_id, membership_id, activity_id, activity_name,
            participant_display_name, acting_participant_id,
        )
