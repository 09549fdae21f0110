"""MembershipAnswer ORM — one answer to one requirement of a membership.

Invariants:
    - Unique (membership_id, requirement_id)
    - Deleted with the membership (ON DELETE CASCADE) and on reactivation
    - ai_* / photo_* / passed are assessment outputs; never set at submission
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Text, Integer, Float, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class MembershipAnswer(Base):
    """Answer row — question text/JSON or a passport document reference."""
    __tablename__ = "membership_answers"
    __table_args__ = (
        UniqueConstraint(
            "membership_id", "requirement_id",
            name="uq_membership_answers_membership_requirement",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    membership_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("memberships.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    requirement_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activity_requirements.id", ondelete="CASCADE"),
        nullable=False,
    )
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    answer_json: Mapped[dict | list | None] = mapped_column(JSON, nullable=True)
    passport_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=True,
    )
    ai_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_verification_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    photo_confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
