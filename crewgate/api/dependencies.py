"""API Dependencies — caller identity and collaborator wiring for route handlers.

Invariants:
    - Identity comes from the upstream gateway: X-Participant-Id (UUID) and
      X-Participant-Roles (comma separated); this service never authenticates
    - Missing or malformed participant id -> UnauthorizedError (401)
    - Joining requires settings.eligible_role -> ForbiddenError (403) otherwise
    - Process-wide collaborators (observer, assessment runner) are built once

Design Decisions:
    - Everything injected through Depends so tests override single seams via
      app.dependency_overrides
"""

from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.config import get_settings
from crewgate.core.domain_types import ParticipantId
from crewgate.core.errors import ForbiddenError, UnauthorizedError
from crewgate.core.repository_protocols import AdmissionObserver, AssessmentRunner
from crewgate.infrastructure.anthropic_client import ResilientAnthropicClient
from crewgate.infrastructure.background_tasks import (
    BackgroundTaskRegistry, get_task_registry,
)
from crewgate.infrastructure.database import get_db
from crewgate.infrastructure.observability import LoggingAdmissionObserver
from crewgate.services.admission_pipeline import AdmissionPipeline
from crewgate.services.assess_membership import MembershipAssessor
from crewgate.services.assessment_trigger import AssessmentTrigger
from crewgate.services.notify_owner import OwnerNotificationDispatcher


async def get_participant_id(
    x_participant_id: str | None = Header(None),
) -> ParticipantId:
    if not x_participant_id:
        raise UnauthorizedError()
    try:
        return ParticipantId(UUID(x_participant_id))
    except ValueError:
        raise UnauthorizedError("Invalid participant identity")


async def get_participant_roles(
    x_participant_roles: str | None = Header(None),
) -> frozenset[str]:
    if not x_participant_roles:
        return frozenset()
    return frozenset(
        role.strip().lower() for role in x_participant_roles.split(",") if role.strip()
    )


async def require_eligible_role(
    participant_id: ParticipantId = Depends(get_participant_id),
    roles: frozenset[str] = Depends(get_participant_roles),
) -> ParticipantId:
    """Participant id of a caller allowed to join segments."""
    if get_settings().eligible_role not in roles:
        raise ForbiddenError("Only crew members can register for legs")
    return participant_id


@lru_cache
def get_observer() -> AdmissionObserver:
    return LoggingAdmissionObserver()


@lru_cache
def get_assessment_runner() -> AssessmentRunner:
    settings = get_settings()
    client = ResilientAnthropicClient(
        api_key=settings.anthropic_api_key,
        max_retries=settings.anthropic_max_retries,
        base_delay_ms=settings.anthropic_base_delay_ms,
        max_delay_ms=settings.anthropic_max_delay_ms,
        timeout_seconds=settings.anthropic_timeout_seconds,
    )
    return MembershipAssessor(
        client,
        model=settings.assessment_model,
        max_tokens=settings.assessment_max_tokens,
        observer=get_observer(),
    )


def get_assessment_trigger(
    registry: BackgroundTaskRegistry = Depends(get_task_registry),
    runner: AssessmentRunner = Depends(get_assessment_runner),
    observer: AdmissionObserver = Depends(get_observer),
) -> AssessmentTrigger:
    return AssessmentTrigger(
        registry, runner, observer,
        timeout_seconds=get_settings().assessment_timeout_seconds,
    )


def get_admission_pipeline(
    db: AsyncSession = Depends(get_db),
    trigger: AssessmentTrigger = Depends(get_assessment_trigger),
    observer: AdmissionObserver = Depends(get_observer),
) -> AdmissionPipeline:
    return AdmissionPipeline(
        db, trigger, OwnerNotificationDispatcher(db), observer,
    )
