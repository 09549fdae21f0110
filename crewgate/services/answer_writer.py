"""Answer Validator & Writer — the IO half of answer handling.

Invariants:
    - Only question requirements are answerable by the submitter
    - validate() and validate_and_persist() return the validation error dict or None
    - Answers are written in one batch; a store failure raises PersistenceFailedError
      carrying the membership id (the membership already exists at this point) and the
      caller's request context
    - A passport answer is written only when the activity defines a passport requirement
    - Assessment-only columns (ai_score, passed, photo_*) are never set here

Design Decisions:
    - Rules live in core/enforce_answers.py; this module only loads and writes
    - validate() is exposed separately so the pipeline can reject bad input before
      any membership row exists
"""

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import ActivityId, DocumentId, MembershipId
from crewgate.core.enforce_answers import (
    SubmittedAnswer, build_answer_rows, validate_answers,
)
from crewgate.core.errors import ErrorContext, PersistenceFailedError
from crewgate.core.repository_protocols import AdmissionObserver
from crewgate.models.membership_answer import MembershipAnswer
from crewgate.services.requirement_catalog import RequirementCatalog


class AnswerWriter:
    """Validates submitted answers and persists them for one membership."""

    def __init__(
        self,
        db: AsyncSession,
        catalog: RequirementCatalog | None = None,
        observer: AdmissionObserver | None = None,
    ):
        self.db = db
        self.catalog = catalog or RequirementCatalog(db)
        self.observer = observer

    async def validate(
        self, submitted: list[SubmittedAnswer], activity_id: ActivityId,
    ) -> dict | None:
        questions = await self.catalog.load_question_requirements(activity_id)
        return validate_answers(questions, submitted)

    async def validate_and_persist(
        self,
        membership_id: MembershipId,
        submitted: list[SubmittedAnswer],
        activity_id: ActivityId,
        context: ErrorContext | None = None,
    ) -> dict | None:
        """Validate against the activity's questions, then batch-insert the answers."""
        questions = await self.catalog.load_question_requirements(activity_id)
        error = validate_answers(questions, submitted)
        if error:
            return error

        rows = build_answer_rows(membership_id, questions, submitted)
        if not rows:
            return None
        try:
            await self.db.execute(insert(MembershipAnswer), rows)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailedError(
                f"answer batch insert failed ({type(e).__name__})",
                "answers",
                membership_id=str(membership_id),
                context=context,
            )
        if self.observer:
            self.observer.answers_persisted(membership_id, len(rows))
        return None

    async def persist_passport_answer(
        self,
        membership_id: MembershipId,
        document_id: DocumentId,
        activity_id: ActivityId,
        context: ErrorContext | None = None,
    ) -> bool:
        """Write the passport answer. No passport requirement -> no-op, returns False."""
        requirement = await self.catalog.load_passport_requirement(activity_id)
        if requirement is None:
            return False
        try:
            self.db.add(MembershipAnswer(
                membership_id=membership_id,
                requirement_id=requirement.id,
                passport_document_id=document_id,
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailedError(
                f"passport answer insert failed ({type(e).__name__})",
                "passport_answer",
                membership_id=str(membership_id),
                context=context,
            )
        return True

