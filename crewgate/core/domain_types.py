"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - ParticipantId, SegmentId, MembershipId ... wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - Enum values equal the strings persisted in the database

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum, IntEnum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

ParticipantId = NewType("ParticipantId", UUID)
ActivityId = NewType("ActivityId", UUID)
SegmentId = NewType("SegmentId", UUID)
MembershipId = NewType("MembershipId", UUID)
RequirementId = NewType("RequirementId", UUID)
DocumentId = NewType("DocumentId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class MembershipStatus(str, Enum):
    """Membership lifecycle states — maps to DB `status` column."""
    PENDING_APPROVAL = "Pending approval"
    APPROVED = "Approved"
    REJECTED = "Not approved"
    CANCELLED = "Cancelled"


class ActivityState(str, Enum):
    """Activity lifecycle. Only PUBLISHED accepts new memberships."""
    IN_PLANNING = "In planning"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


class RequirementKind(str, Enum):
    """The closed set of requirement kinds an activity may define."""
    RISK_LEVEL = "risk_level"
    EXPERIENCE_LEVEL = "experience_level"
    SKILL = "skill"
    PASSPORT = "passport"
    QUESTION = "question"


class RiskLevel(str, Enum):
    """Sailing comfort zones, ordered from least to most demanding."""
    COASTAL = "Coastal sailing"
    OFFSHORE = "Offshore sailing"
    EXTREME = "Extreme sailing"


class ExperienceLevel(IntEnum):
    """Sailing experience ladder stored on profiles and activities."""
    BEGINNER = 1
    COMPETENT_CREW = 2
    COASTAL_SKIPPER = 3
    OFFSHORE_SKIPPER = 4


class FailType(str, Enum):
    """Stable pre-check failure tokens — clients branch UI on these."""
    RISK_LEVEL = "risk_level"
    EXPERIENCE_LEVEL = "experience_level"
    PROFILE_INCOMPLETE = "profile_incomplete"


class ValidationReason(str, Enum):
    """Machine-readable reasons carried by ValidationFailedError."""
    MISSING_FIELD = "missing_field"
    ACTIVITY_NOT_PUBLISHED = "activity_not_published"
    MISSING_ANSWERS = "missing_answers"
    EMPTY_ANSWER = "empty_answer"
    INVALID_STATUS_FILTER = "invalid_status_filter"
    ALREADY_CANCELLED = "already_cancelled"
    NOT_CANCELLABLE = "not_cancellable"


class NotificationType(str, Enum):
    """Notification kinds written by this service."""
    NEW_REGISTRATION = "new_registration"
    AI_AUTO_APPROVED = "ai_auto_approved"
    AI_REVIEW_NEEDED = "ai_review_needed"
    REGISTRATION_APPROVED = "registration_approved"


class Recommendation(str, Enum):
    """Deferred assessment verdicts returned by the scoring model."""
    APPROVE = "approve"
    DENY = "deny"
    REVIEW = "review"
