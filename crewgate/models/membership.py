"""Membership ORM — a participant's enrollment on one segment.

Invariants:
    - Exactly one row per (participant_id, segment_id) for its whole life;
      reactivation updates the same row
    - status in {"Pending approval", "Approved", "Not approved", "Cancelled"}
    - ai_match_score / ai_match_reasoning / auto_approved are written only by the
      deferred assessment; NULL until then

Design Decisions:
    - Plain unique constraint instead of a partial index on active statuses: a cancelled
      row is reused, so at most one row exists and the constraint is the race arbiter
    - segment loaded eagerly (selectin) for list responses
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Text, Integer, Float, Boolean, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class Membership(Base):
    """Membership (registration) — the aggregate this service owns."""
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint(
            "participant_id", "segment_id",
            name="uq_memberships_participant_segment",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    participant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True,
    )
    segment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("segments.id"), nullable=False, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="Pending approval",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    match_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ai_match_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_match_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_approved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
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

    segment: Mapped["Segment"] = relationship("Segment", lazy="selectin")
