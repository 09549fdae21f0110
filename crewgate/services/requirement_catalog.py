"""Requirement Catalog — read access to an activity's eligibility rules.

Invariants:
    - Read-only: this service never writes requirement rows
    - load_requirements returns typed variants ordered by `order`, then creation time
    - Risk/experience targets left empty on a row are filled from the owning activity
    - An unknown requirement_type fails loudly (ValueError); kinds are never guessed

Design Decisions:
    - has_requirements is a COUNT(*) fast path: the pipeline needs only the boolean for
      the trigger gate and must not pay for row conversion twice
    - Rows converted through core.requirements.requirement_from_row so ORM models never
      reach the pure core
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import ActivityId, RequirementKind
from crewgate.core.requirements import (
    ActivityDefaults, PassportRequirement, QuestionRequirement, Requirement,
    requirement_from_row,
)
from crewgate.models.activity import Activity
from crewgate.models.requirement import ActivityRequirement


class RequirementCatalog:
    """Loads requirement variants for one activity."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_rows(self, activity_id: ActivityId) -> list[ActivityRequirement]:
        result = await self.db.execute(
            select(ActivityRequirement)
            .where(ActivityRequirement.activity_id == activity_id)
            .order_by(ActivityRequirement.order, ActivityRequirement.created_at),
        )
        return list(result.scalars().all())

    async def load_requirements(
        self,
        activity_id: ActivityId,
        defaults: ActivityDefaults | None = None,
    ) -> list[Requirement]:
        """All requirements of the activity as typed variants, in evaluation order."""
        rows = await self.list_rows(activity_id)
        if not rows:
            return []
        if defaults is None:
            defaults = await self._activity_defaults(activity_id)
        return [requirement_from_row(row.to_row(), defaults) for row in rows]

    async def has_requirements(self, activity_id: ActivityId) -> bool:
        result = await self.db.execute(
            select(func.count())
            .select_from(ActivityRequirement)
            .where(ActivityRequirement.activity_id == activity_id),
        )
        return (result.scalar_one() or 0) > 0

    async def load_question_requirements(
        self, activity_id: ActivityId,
    ) -> list[QuestionRequirement]:
        result = await self.db.execute(
            select(ActivityRequirement)
            .where(
                ActivityRequirement.activity_id == activity_id,
                ActivityRequirement.requirement_type == RequirementKind.QUESTION.value,
            )
            .order_by(ActivityRequirement.order, ActivityRequirement.created_at),
        )
        return [requirement_from_row(row.to_row()) for row in result.scalars().all()]

    async def load_passport_requirement(
        self, activity_id: ActivityId,
    ) -> PassportRequirement | None:
        result = await self.db.execute(
            select(ActivityRequirement)
            .where(
                ActivityRequirement.activity_id == activity_id,
                ActivityRequirement.requirement_type == RequirementKind.PASSPORT.value,
            )
            .order_by(ActivityRequirement.order, ActivityRequirement.created_at)
            .limit(1),
        )
        row = result.scalar_one_or_none()
        return requirement_from_row(row.to_row()) if row else None

    async def _activity_defaults(self, activity_id: ActivityId) -> ActivityDefaults:
        activity = await self.db.get(Activity, activity_id)
        if activity is None:
            return ActivityDefaults()
        return defaults_for(activity)


def defaults_for(activity: Activity) -> ActivityDefaults:
    """Activity-level risk/experience targets as catalog defaults."""
    return ActivityDefaults(
        risk_levels=tuple(activity.risk_levels or ()),
        min_experience_level=activity.min_experience_level,
    )
