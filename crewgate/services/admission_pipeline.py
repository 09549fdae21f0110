"""Admission Pipeline — orchestrates one join request from segment lookup to trigger.

Invariants:
    - Stage order is fixed: segment -> published check -> passport ownership -> requirement
      load + pre-checks -> answer validation -> create/reactivate (a reactivation drops the
      prior answers in the same commit) -> answer persistence -> passport answer -> trigger
      or owner notification
    - Nothing is written before every check that can reject the request has passed
    - An activity with zero requirements skips pre-checks, answer validation and assessment
    - Failures after the membership write carry the membership id ("created, but incomplete")
    - The deferred assessment is submitted, never awaited; owner-notification failures on
      the human-review path (no assessment triggered) are reported to the observer only

Design Decisions:
    - Collaborators injected (catalog, lifecycle, writer, trigger, notifier, observer) so the
      route stays thin and tests can replace any seam
    - Reactivation runs the same stages as a fresh join; an assessment still running for the
      old answers is superseded by the new one
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import (
    ActivityId, ActivityState, DocumentId, MembershipId, ParticipantId, SegmentId,
    ValidationReason,
)
from crewgate.core.enforce_answers import SubmittedAnswer
from crewgate.core.enforce_eligibility import perform_pre_checks
from crewgate.core.errors import (
    EligibilityFailedError, ErrorContext, ForbiddenError, ResourceNotFoundError,
    ValidationFailedError,
)
from crewgate.core.repository_protocols import AdmissionObserver, OwnerNotifier
from crewgate.models.document import Document
from crewgate.models.membership import Membership
from crewgate.models.profile import Profile
from crewgate.models.segment import Segment
from crewgate.services.answer_writer import AnswerWriter
from crewgate.services.assess_membership import candidate_from_profile
from crewgate.services.assessment_trigger import AssessmentTrigger
from crewgate.services.membership_lifecycle import MembershipLifecycle
from crewgate.services.requirement_catalog import RequirementCatalog, defaults_for

logger = logging.getLogger(__name__)


@dataclass
class JoinRequest:
    participant_id: ParticipantId
    segment_id: SegmentId
    notes: str | None = None
    answers: tuple[SubmittedAnswer, ...] = ()
    passport_document_id: DocumentId | None = None


@dataclass
class AdmissionResult:
    membership: Membership
    is_reactivation: bool
    assessment_scheduled: bool


class AdmissionPipeline:
    """Create-or-reactivate a membership with all admission checks."""

    def __init__(
        self,
        db: AsyncSession,
        trigger: AssessmentTrigger,
        notifier: OwnerNotifier,
        observer: AdmissionObserver,
        catalog: RequirementCatalog | None = None,
        lifecycle: MembershipLifecycle | None = None,
        writer: AnswerWriter | None = None,
    ):
        self.db = db
        self.trigger = trigger
        self.notifier = notifier
        self.observer = observer
        self.catalog = catalog or RequirementCatalog(db)
        self.lifecycle = lifecycle or MembershipLifecycle(db)
        self.writer = writer or AnswerWriter(db, self.catalog, observer)

    async def admit(self, request: JoinRequest) -> AdmissionResult:
        ctx = ErrorContext(
            participant_id=str(request.participant_id),
            segment_id=str(request.segment_id),
        )
        segment = await self.db.get(Segment, request.segment_id)
        if segment is None:
            raise ResourceNotFoundError("Segment", str(request.segment_id), context=ctx)
        activity = segment.activity
        activity_id = ActivityId(activity.id)
        ctx.activity_id = str(activity_id)

        if activity.state != ActivityState.PUBLISHED.value:
            raise ValidationFailedError(
                "Cannot register for legs in non-published journeys",
                ValidationReason.ACTIVITY_NOT_PUBLISHED,
                details={"activity_id": str(activity_id), "state": activity.state},
                context=ctx,
            )

        if request.passport_document_id is not None:
            await self._check_document_owner(
                request.passport_document_id, request.participant_id, ctx,
            )

        profile = await self.db.get(Profile, request.participant_id)
        if profile is None:
            raise ResourceNotFoundError("Profile", str(request.participant_id), context=ctx)
        candidate = candidate_from_profile(profile)

        has_requirements = await self.catalog.has_requirements(activity_id)
        if has_requirements:
            requirements = await self.catalog.load_requirements(
                activity_id, defaults_for(activity),
            )
            verdict = perform_pre_checks(candidate, activity_id, requirements)
            if not verdict.passed:
                self.observer.precheck_failed(
                    request.participant_id, activity_id,
                    verdict.fail_type, verdict.fail_reason,
                )
                raise EligibilityFailedError(
                    verdict.fail_reason, verdict.fail_type, context=ctx,
                )
            error = await self.writer.validate(list(request.answers), activity_id)
            if error:
                raise _validation_error(error, ctx)

        outcome = await self.lifecycle.create_or_reactivate(
            request.participant_id, request.segment_id, request.notes,
        )
        membership = outcome.membership
        membership_id = MembershipId(membership.id)
        ctx.membership_id = str(membership_id)

        if outcome.is_reactivation:
            self.observer.membership_reactivated(
                membership_id, request.participant_id, request.segment_id,
                outcome.answers_removed,
            )
        else:
            self.observer.membership_created(
                membership_id, request.participant_id, request.segment_id,
            )

        if has_requirements:
            error = await self.writer.validate_and_persist(
                membership_id, list(request.answers), activity_id, context=ctx,
            )
            if error:
                raise _validation_error(error, ctx)
        if request.passport_document_id is not None:
            await self.writer.persist_passport_answer(
                membership_id, request.passport_document_id, activity_id, context=ctx,
            )

        scheduled = await self.trigger.maybe_trigger(
            membership_id, activity.auto_approval_enabled, has_requirements,
            supersede=outcome.is_reactivation,
        )
        if not self.trigger.should_trigger(activity.auto_approval_enabled, has_requirements):
            await self._notify_owner(
                activity, membership_id, candidate.display_name, request.participant_id,
            )

        await self.db.refresh(membership)
        return AdmissionResult(
            membership=membership,
            is_reactivation=outcome.is_reactivation,
            assessment_scheduled=scheduled,
        )

    async def _check_document_owner(
        self, document_id: DocumentId, participant_id: ParticipantId, ctx: ErrorContext,
    ) -> None:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise ResourceNotFoundError("Document", str(document_id), context=ctx)
        if document.owner_id != participant_id:
            raise ForbiddenError(
                "Passport document does not belong to you", context=ctx,
            )

    async def _notify_owner(
        self, activity, membership_id: MembershipId, display_name: str,
        participant_id: ParticipantId,
    ) -> None:
        try:
            outcome = await self.notifier(
                activity.asset.owner_id, membership_id, ActivityId(activity.id),
                activity.name, display_name, participant_id,
            )
        except Exception as e:
            logger.error(f"Owner notifier raised: {e!r}", exc_info=True)
            outcome = {"error": str(e)}
        if "error" in outcome:
            self.observer.owner_notification_failed(membership_id, outcome["error"])


def _validation_error(error: dict, ctx: ErrorContext) -> ValidationFailedError:
    details = {
        k: v for k, v in error.items() if k not in ("status", "reason", "message")
    }
    if ctx.membership_id:
        details["membership_id"] = ctx.membership_id
    return ValidationFailedError(
        error["message"], ValidationReason(error["reason"]),
        details=details or None, context=ctx,
    )
