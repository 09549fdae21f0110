"""Membership Routes — join (create or reactivate), list and cancel.

Invariants:
    - POST returns 201 for a fresh membership and 200 for a reactivation
    - Every failure is a CrewGateError rendered by the global handler
    - The join handler is time-bounded by request_timeout_seconds; it never waits
      on the deferred assessment
    - Listing and cancelling are scoped to the calling participant
    - Cancelling stops an assessment still running for the membership

Design Decisions:
    - Thin handlers: all admission rules live in AdmissionPipeline
"""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.api.dependencies import (
    get_admission_pipeline, get_assessment_trigger, get_participant_id,
    require_eligible_role,
)
from crewgate.config import get_settings
from crewgate.core.domain_types import (
    MembershipId, MembershipStatus, ParticipantId, SegmentId, ValidationReason,
)
from crewgate.core.errors import ValidationFailedError
from crewgate.infrastructure.database import get_db
from crewgate.models.membership import Membership
from crewgate.schemas.membership import (
    MembershipCreate, MembershipEnvelope, MembershipList, MembershipListItem,
    MembershipResponse,
)
from crewgate.services.admission_pipeline import AdmissionPipeline, JoinRequest
from crewgate.services.assessment_trigger import AssessmentTrigger
from crewgate.services.membership_lifecycle import MembershipLifecycle

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/memberships", tags=["memberships"])


@router.post(
    "", response_model=MembershipEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_membership(
    body: MembershipCreate,
    participant_id: ParticipantId = Depends(require_eligible_role),
    pipeline: AdmissionPipeline = Depends(get_admission_pipeline),
):
    """Register the caller for a segment, or reactivate a cancelled registration."""
    result = await asyncio.wait_for(
        pipeline.admit(JoinRequest(
            participant_id=participant_id,
            segment_id=SegmentId(body.segment_id),
            notes=body.notes,
            answers=body.submitted_answers(),
            passport_document_id=body.passport_document(),
        )),
        timeout=get_settings().request_timeout_seconds,
    )
    envelope = MembershipEnvelope(
        membership=MembershipResponse.model_validate(result.membership),
        message=(
            "Registration reactivated" if result.is_reactivation
            else "Registration created successfully"
        ),
    )
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if result.is_reactivation else status.HTTP_201_CREATED
        ),
        content=envelope.model_dump(mode="json"),
    )


@router.get("", response_model=MembershipList)
async def list_memberships(
    segment_id: UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    participant_id: ParticipantId = Depends(get_participant_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's memberships, newest first."""
    status_value = None
    if status_filter:
        try:
            status_value = MembershipStatus(status_filter)
        except ValueError:
            raise ValidationFailedError(
                f"Unknown status '{status_filter}'",
                ValidationReason.INVALID_STATUS_FILTER,
                details={"allowed": [s.value for s in MembershipStatus]},
            )
    memberships = await MembershipLifecycle(db).list_for_participant(
        participant_id,
        SegmentId(segment_id) if segment_id else None,
        status_value,
    )
    items = [_list_item(m) for m in memberships]
    return MembershipList(memberships=items, count=len(items))


@router.post("/{membership_id}/cancel", response_model=MembershipEnvelope)
async def cancel_membership(
    membership_id: UUID,
    participant_id: ParticipantId = Depends(get_participant_id),
    db: AsyncSession = Depends(get_db),
    trigger: AssessmentTrigger = Depends(get_assessment_trigger),
):
    """Cancel one of the caller's memberships and stop its running assessment."""
    membership = await MembershipLifecycle(db).cancel(
        participant_id, MembershipId(membership_id),
    )
    await trigger.cancel(MembershipId(membership_id))
    logger.info(
        "Membership cancelled",
        extra={"membership_id": membership_id, "participant_id": participant_id},
    )
    return MembershipEnvelope(
        membership=MembershipResponse.model_validate(membership),
        message="Registration cancelled",
    )


def _list_item(membership: Membership) -> MembershipListItem:
    item = MembershipListItem.model_validate(membership)
    segment = membership.segment
    if segment is not None:
        item.segment_name = segment.name
        item.activity_id = segment.activity_id
        item.activity_name = segment.activity.name if segment.activity else None
    return item
