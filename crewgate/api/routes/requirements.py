"""Requirement Routes — read-only view of an activity's requirement catalog.

Invariants:
    - 404 when the activity does not exist
    - Requirements of a non-published activity are visible to its owner only (403 otherwise)
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.api.dependencies import get_participant_id
from crewgate.core.domain_types import ActivityId, ActivityState, ParticipantId
from crewgate.core.errors import ErrorContext, ForbiddenError, ResourceNotFoundError
from crewgate.infrastructure.database import get_db
from crewgate.models.activity import Activity
from crewgate.schemas.requirement import RequirementList, RequirementResponse
from crewgate.services.requirement_catalog import RequirementCatalog

router = APIRouter(prefix="/api/v1/activities", tags=["requirements"])


@router.get("/{activity_id}/requirements", response_model=RequirementList)
async def list_requirements(
    activity_id: UUID,
    participant_id: ParticipantId = Depends(get_participant_id),
    db: AsyncSession = Depends(get_db),
):
    """Requirements of one activity, in evaluation order."""
    activity = await db.get(Activity, activity_id)
    if activity is None:
        raise ResourceNotFoundError("Activity", str(activity_id))
    if (
        activity.state != ActivityState.PUBLISHED.value
        and activity.asset.owner_id != participant_id
    ):
        raise ForbiddenError(
            "Requirements of unpublished journeys are visible to the owner only",
            context=ErrorContext(
                participant_id=str(participant_id), activity_id=str(activity_id),
            ),
        )
    rows = await RequirementCatalog(db).list_rows(ActivityId(activity_id))
    return RequirementList(
        requirements=[RequirementResponse.model_validate(r) for r in rows],
        count=len(rows),
    )
