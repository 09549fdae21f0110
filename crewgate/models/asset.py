"""Asset ORM — the boat that owns activities; carries the owner id."""

import uuid

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from crewgate.db.base import Base


class Asset(Base):
    """Asset (boat) — owner_id is the user notified about new memberships."""
    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
