"""Profile ORM — the participant data pre-checks and assessment read.

Invariants:
    - id equals the authenticated user id supplied by the gateway
    - roles is a JSON list of role names ("crew", "owner")
    - experience_level in 1..4 or NULL (not yet declared)

Design Decisions:
    - JSON lists for roles / risk_levels / skills: portable across PostgreSQL and SQLite
    - ai_processing_consent folded into the profile: the assessment checks it before scoring
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class Profile(Base):
    """User profile — crew candidates and asset owners."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    roles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    experience_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    risk_levels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    skills: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sailing_preferences: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_processing_consent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or "A crew member"
