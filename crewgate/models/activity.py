"""Activity ORM — the journey a segment belongs to.

Invariants:
    - state in {"In planning", "Published", "Archived"}; only Published accepts memberships
    - auto_approval_threshold in 0..100
    - risk_levels / min_experience_level are defaults for risk and experience requirements

Design Decisions:
    - asset loaded eagerly (selectin): every admission needs the owner id
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class Activity(Base):
    """Activity (journey) — read-only from the admission pipeline."""
    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default="In planning",
    )
    risk_levels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    min_experience_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_approval_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    auto_approval_threshold: Mapped[int] = mapped_column(
        Integer, nullable=False, default=80,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    asset: Mapped["Asset"] = relationship("Asset", lazy="selectin")
