"""ActivityRequirement ORM — one eligibility rule attached to an activity.

Invariants:
    - requirement_type in {risk_level, experience_level, skill, passport, question}
    - weight and pass_confidence_score in 0..10
    - At most one risk_level, experience_level and passport row per activity (owner-side rule)

Design Decisions:
    - Single table with kind-specific nullable columns; core/requirements.py turns each
      row into its typed variant
    - risk_levels / min_experience_level NULL means "use the activity's values"
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class ActivityRequirement(Base):
    """Requirement row — read-only catalog entry."""
    __tablename__ = "activity_requirements"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    requirement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    question_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    skill_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    qualification_criteria: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    require_photo_validation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    pass_confidence_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=7,
    )
    risk_levels: Mapped[list | None] = mapped_column(JSON, nullable=True)
    min_experience_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_row(self) -> dict:
        """Plain dict consumed by core.requirements.requirement_from_row."""
        return {
            "id": self.id,
            "activity_id": self.activity_id,
            "requirement_type": self.requirement_type,
            "question_text": self.question_text,
            "skill_name": self.skill_name,
            "qualification_criteria": self.qualification_criteria,
            "weight": self.weight,
            "require_photo_validation": self.require_photo_validation,
            "pass_confidence_score": self.pass_confidence_score,
            "risk_levels": self.risk_levels,
            "min_experience_level": self.min_experience_level,
            "is_required": self.is_required,
            "order": self.order,
        }
