"""Deferred Membership Assessment — AI scoring and auto-approval, run after the response.

Invariants:
    - Opens its own session: the request session is closed by the time this runs
    - Skips without writing when auto-approval is off, the activity has no requirements,
      or the participant withheld AI-processing consent (owner asked to review manually)
    - Sole writer of ai_match_score / ai_match_reasoning / auto_approved; writes them
      once per invocation, in one commit
    - Approves only a row that is still Pending approval at write time
      (conditional UPDATE); a row moved on by the owner keeps its status
    - The verdict is written only if the row's updated_at still matches the value read
      before scoring; a cancel or reactivation in between discards it
    - Any failure before the write leaves the membership untouched

Design Decisions:
    - Prompt, parsing and the approval rule are pure (core/assessment_rules.py);
      this module only gathers data, calls the model and writes the verdict
    - Notification failures are logged, never raised: the verdict is already durable
"""

import json
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.assessment_rules import (
    AssessmentContext, AssessmentResult, build_assessment_prompt, parse_assessment,
    should_auto_approve,
)
from crewgate.core.domain_types import (
    MembershipId, MembershipStatus, NotificationType, ParticipantId,
)
from crewgate.core.enforce_eligibility import CandidateProfile
from crewgate.core.errors import AssessmentError, ErrorContext
from crewgate.core.repository_protocols import AdmissionObserver
from crewgate.infrastructure.anthropic_client import (
    ResilientAnthropicClient, response_text,
)
from crewgate.infrastructure.database import get_db_manager
from crewgate.models.activity import Activity
from crewgate.models.membership import Membership
from crewgate.models.membership_answer import MembershipAnswer
from crewgate.models.profile import Profile
from crewgate.services.notify_owner import create_notification, registration_link
from crewgate.services.requirement_catalog import RequirementCatalog, defaults_for

logger = logging.getLogger(__name__)

SessionProvider = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def candidate_from_profile(profile: Profile) -> CandidateProfile:
    return CandidateProfile(
        participant_id=ParticipantId(profile.id),
        display_name=profile.display_name,
        experience_level=profile.experience_level,
        risk_levels=tuple(profile.risk_levels or ()),
        skills=tuple(profile.skills or ()),
        ai_processing_consent=bool(profile.ai_processing_consent),
    )


class MembershipAssessor:
    """AssessmentRunner backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: ResilientAnthropicClient,
        model: str,
        max_tokens: int = 1024,
        session_provider: SessionProvider | None = None,
        observer: AdmissionObserver | None = None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self._session_provider = session_provider
        self.observer = observer

    async def __call__(self, membership_id: MembershipId) -> None:
        provider = self._session_provider or get_db_manager().session
        async with provider() as db:
            await self.assess(db, membership_id)

    async def assess(self, db: AsyncSession, membership_id: MembershipId) -> None:
        membership = await db.get(Membership, membership_id)
        if membership is None:
            raise AssessmentError(f"Membership {membership_id} not found")
        await db.refresh(membership)
        version = membership.updated_at
        activity: Activity = membership.segment.activity

        if not activity.auto_approval_enabled:
            self._skipped(membership_id, "auto-approval disabled")
            return

        requirements = await RequirementCatalog(db).load_requirements(
            activity.id, defaults_for(activity),
        )
        if not requirements:
            self._skipped(membership_id, "activity has no requirements")
            return

        profile = await db.get(Profile, membership.participant_id)
        if profile is None:
            raise AssessmentError(
                f"Profile {membership.participant_id} not found",
                context=ErrorContext(membership_id=str(membership_id)),
            )

        if not profile.ai_processing_consent:
            self._skipped(membership_id, "participant has not consented to AI processing")
            await self._notify(
                db, activity.asset.owner_id, NotificationType.AI_REVIEW_NEEDED,
                "Manual Review Required",
                "A crew member has applied but has not consented to AI matching. "
                "Please review manually.",
                membership_id,
                {"registration_id": str(membership_id),
                 "journey_id": str(activity.id), "reason": "no_ai_consent"},
            )
            return

        candidate = candidate_from_profile(profile)
        segment = membership.segment
        ctx = AssessmentContext(
            candidate=candidate,
            activity_name=activity.name,
            segment_name=segment.name,
            segment_skills=tuple(segment.skills or ()),
            start_date=segment.start_date.isoformat() if segment.start_date else None,
            end_date=segment.end_date.isoformat() if segment.end_date else None,
            requirements=requirements,
            answers=await self._load_answers(db, membership_id),
        )
        response = await self.client.create_message(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": build_assessment_prompt(ctx)}],
            context=ErrorContext(
                membership_id=str(membership_id), activity_id=str(activity.id),
            ),
        )
        result = parse_assessment(response_text(response))

        approved = await self._write_verdict(
            db, membership, result, activity.auto_approval_threshold, version,
        )
        if approved is None:
            self._skipped(membership_id, "membership changed during assessment")
            return
        logger.info(
            f"Assessment complete: score={result.match_score} "
            f"recommendation={result.recommendation.value} approved={approved}",
            extra={"membership_id": membership_id, "activity_id": activity.id},
        )
        await self._notify_verdict(db, activity, candidate, membership_id, result, approved)

    async def _write_verdict(
        self,
        db: AsyncSession,
        membership: Membership,
        result: AssessmentResult,
        threshold: int | None,
        version,
    ) -> bool | None:
        """Write the verdict; True if approved, None if the row changed since `version`."""
        await db.refresh(membership)
        if membership.updated_at != version:
            return None
        unchanged = (
            Membership.id == membership.id,
            Membership.updated_at == version,
        )
        fields = {
            "ai_match_score": result.match_score,
            "ai_match_reasoning": result.reasoning or None,
            "match_percentage": int(round(result.match_score)),
        }
        approved = False
        if should_auto_approve(result, threshold, membership.status):
            outcome = await db.execute(
                update(Membership)
                .where(
                    *unchanged,
                    Membership.status == MembershipStatus.PENDING_APPROVAL.value,
                )
                .values(
                    **fields,
                    status=MembershipStatus.APPROVED.value,
                    auto_approved=True,
                )
                .execution_options(synchronize_session=False),
            )
            approved = outcome.rowcount == 1
        if not approved:
            outcome = await db.execute(
                update(Membership)
                .where(*unchanged)
                .values(**fields)
                .execution_options(synchronize_session=False),
            )
            if outcome.rowcount != 1:
                await db.rollback()
                return None
        await db.commit()
        return approved

    async def _load_answers(
        self, db: AsyncSession, membership_id: MembershipId,
    ) -> dict[str, str]:
        result = await db.execute(
            select(MembershipAnswer)
            .where(MembershipAnswer.membership_id == membership_id),
        )
        answers = {}
        for answer in result.scalars().all():
            if answer.answer_text:
                rendered = answer.answer_text
            elif answer.answer_json is not None:
                rendered = json.dumps(answer.answer_json, ensure_ascii=False)
            elif answer.passport_document_id is not None:
                rendered = "document provided"
            else:
                continue
            answers[str(answer.requirement_id)] = rendered
        return answers

    async def _notify_verdict(
        self,
        db: AsyncSession,
        activity: Activity,
        candidate: CandidateProfile,
        membership_id: MembershipId,
        result: AssessmentResult,
        approved: bool,
    ) -> None:
        owner_id = activity.asset.owner_id
        payload = {
            "registration_id": str(membership_id),
            "journey_id": str(activity.id),
            "journey_name": activity.name,
            "crew_name": candidate.display_name,
            "crew_id": str(candidate.participant_id),
            "match_score": result.match_score,
            "recommendation": result.recommendation.value,
        }
        score = f"{result.match_score:g}"
        if approved:
            await self._notify(
                db, candidate.participant_id, NotificationType.REGISTRATION_APPROVED,
                "Registration Approved",
                f'Your registration for "{activity.name}" has been approved.',
                membership_id,
                {"journey_id": str(activity.id), "journey_name": activity.name},
                link=f"/crew/registrations/{membership_id}",
            )
            await self._notify(
                db, owner_id, NotificationType.AI_AUTO_APPROVED,
                "Registration Auto-Approved",
                f"{candidate.display_name}'s registration for \"{activity.name}\" was "
                f"automatically approved by AI (Score: {score}%).",
                membership_id, payload,
            )
        else:
            await self._notify(
                db, owner_id, NotificationType.AI_REVIEW_NEEDED,
                "Registration Needs Review",
                f"{candidate.display_name}'s registration for \"{activity.name}\" needs "
                f"your review (AI Score: {score}%).",
                membership_id, payload,
            )

    async def _notify(
        self,
        db: AsyncSession,
        user_id,
        kind: NotificationType,
        title: str,
        message: str,
        membership_id: MembershipId,
        payload: dict,
        link: str | None = None,
    ) -> None:
        outcome = await create_notification(
            db, user_id=user_id, kind=kind, title=title, message=message,
            link=link or registration_link(membership_id), payload=payload,
        )
        if "error" in outcome:
            logger.warning(
                f"{kind.value} notification failed: {outcome['error']}",
                extra={"membership_id": membership_id},
            )

    def _skipped(self, membership_id: MembershipId, reason: str) -> None:
        if self.observer:
            self.observer.assessment_skipped(membership_id, reason)
        else:
            logger.info(
                f"Assessment skipped: {reason}", extra={"membership_id": membership_id},
            )
