"""Membership Schemas — Pydantic models for the membership endpoints.

Invariants:
    - MembershipCreate.segment_id is required; everything else optional
    - notes stripped; blank notes become None
    - answers: each entry names a requirement id; text/JSON content is checked by the
      answer validator, not here (unknown ids are ignored there)

Design Decisions:
    - from_attributes on responses: built straight from ORM rows
    - Answer content rules stay in core/enforce_answers.py so the REST layer and any
      other caller share one rule set
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crewgate.core.domain_types import DocumentId, RequirementId
from crewgate.core.enforce_answers import SubmittedAnswer


class AnswerIn(BaseModel):
    """One submitted answer."""
    requirement_id: UUID
    answer_text: str | None = Field(None, max_length=10_000)
    answer_json: Any = None

    def to_submitted(self) -> SubmittedAnswer:
        return SubmittedAnswer(
            requirement_id=RequirementId(self.requirement_id),
            answer_text=self.answer_text,
            answer_json=self.answer_json,
        )


class MembershipCreate(BaseModel):
    """Join request body."""
    segment_id: UUID
    notes: str | None = Field(None, max_length=2000)
    answers: list[AnswerIn] = Field(default_factory=list, max_length=100)
    passport_document_id: UUID | None = None

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    def submitted_answers(self) -> tuple[SubmittedAnswer, ...]:
        return tuple(a.to_submitted() for a in self.answers)

    def passport_document(self) -> DocumentId | None:
        if self.passport_document_id is None:
            return None
        return DocumentId(self.passport_document_id)


class MembershipResponse(BaseModel):
    """Public view of a membership row."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    participant_id: UUID
    segment_id: UUID
    status: str
    notes: str | None = None
    match_percentage: int = 0
    ai_match_score: float | None = None
    ai_match_reasoning: str | None = None
    auto_approved: bool | None = None
    created_at: datetime
    updated_at: datetime


class MembershipEnvelope(BaseModel):
    membership: MembershipResponse
    message: str


class MembershipListItem(MembershipResponse):
    segment_name: str | None = None
    activity_id: UUID | None = None
    activity_name: str | None = None


class MembershipList(BaseModel):
    memberships: list[MembershipListItem]
    count: int
