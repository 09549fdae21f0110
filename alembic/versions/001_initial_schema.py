"""Initial schema — profiles, assets, activities, segments, requirements,
memberships, membership answers, documents, notifications.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("roles", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("experience_level", sa.Integer, nullable=True),
        sa.Column("risk_levels", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("sailing_preferences", sa.Text, nullable=True),
        sa.Column("ai_processing_consent", sa.Boolean, nullable=False, server_default="false"),
        _created_at(),
    )

    op.create_table(
        "assets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
    )

    op.create_table(
        "activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("asset_id", UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("state", sa.String(20), nullable=False, server_default="In planning"),
        sa.Column("risk_levels", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("min_experience_level", sa.Integer, nullable=True),
        sa.Column("auto_approval_enabled", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("auto_approval_threshold", sa.Integer, nullable=False, server_default="80"),
        _created_at(),
        sa.CheckConstraint(
            "auto_approval_threshold >= 0 AND auto_approval_threshold <= 100",
            name="ck_activities_threshold_range",
        ),
    )

    op.create_table(
        "segments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("activity_id", UUID(as_uuid=True), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("start_date", sa.Date, nullable=True),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
        _created_at(),
    )

    op.create_table(
        "activity_requirements",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "activity_id", UUID(as_uuid=True),
            sa.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("requirement_type", sa.String(50), nullable=False),
        sa.Column("question_text", sa.Text, nullable=True),
        sa.Column("skill_name", sa.Text, nullable=True),
        sa.Column("qualification_criteria", sa.Text, nullable=True),
        sa.Column("weight", sa.Integer, nullable=False, server_default="5"),
        sa.Column("require_photo_validation", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("pass_confidence_score", sa.Integer, nullable=False, server_default="7"),
        sa.Column("risk_levels", sa.JSON, nullable=True),
        sa.Column("min_experience_level", sa.Integer, nullable=True),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        sa.CheckConstraint(
            "requirement_type IN ('risk_level', 'experience_level', 'skill', 'passport', 'question')",
            name="ck_activity_requirements_type",
        ),
    )
    op.create_index(
        "ix_activity_requirements_activity_id", "activity_requirements", ["activity_id"],
    )

    op.create_table(
        "documents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="passport"),
        sa.Column("file_name", sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_index("ix_documents_owner_id", "documents", ["owner_id"])

    op.create_table(
        "memberships",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("participant_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("segment_id", UUID(as_uuid=True), sa.ForeignKey("segments.id"), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="Pending approval"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("match_percentage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("ai_match_score", sa.Float, nullable=True),
        sa.Column("ai_match_reasoning", sa.Text, nullable=True),
        sa.Column("auto_approved", sa.Boolean, nullable=True),
        _created_at(),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "participant_id", "segment_id", name="uq_memberships_participant_segment",
        ),
        sa.CheckConstraint(
            "status IN ('Pending approval', 'Approved', 'Not approved', 'Cancelled')",
            name="ck_memberships_status",
        ),
    )
    op.create_index("ix_memberships_participant_id", "memberships", ["participant_id"])
    op.create_index("ix_memberships_segment_id", "memberships", ["segment_id"])

    op.create_table(
        "membership_answers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "membership_id", UUID(as_uuid=True),
            sa.ForeignKey("memberships.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "requirement_id", UUID(as_uuid=True),
            sa.ForeignKey("activity_requirements.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("answer_text", sa.Text, nullable=True),
        sa.Column("answer_json", sa.JSON, nullable=True),
        sa.Column(
            "passport_document_id", UUID(as_uuid=True),
            sa.ForeignKey("documents.id"), nullable=True,
        ),
        sa.Column("ai_score", sa.Float, nullable=True),
        sa.Column("ai_reasoning", sa.Text, nullable=True),
        sa.Column("photo_verification_passed", sa.Boolean, nullable=True),
        sa.Column("photo_confidence_score", sa.Integer, nullable=True),
        sa.Column("passed", sa.Boolean, nullable=True),
        _created_at(),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "membership_id", "requirement_id",
            name="uq_membership_answers_membership_requirement",
        ),
    )
    op.create_index(
        "ix_membership_answers_membership_id", "membership_answers", ["membership_id"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("read", sa.Boolean, nullable=False, server_default="false"),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("membership_answers")
    op.drop_table("memberships")
    op.drop_table("documents")
    op.drop_table("activity_requirements")
    op.drop_table("segments")
    op.drop_table("activities")
    op.drop_table("assets")
    op.drop_table("profiles")
