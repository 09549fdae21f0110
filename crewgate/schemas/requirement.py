"""Requirement Schemas — read-only view of an activity's requirement catalog."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    activity_id: UUID
    requirement_type: str
    question_text: str | None = None
    skill_name: str | None = None
    qualification_criteria: str | None = None
    weight: int
    require_photo_validation: bool
    pass_confidence_score: int
    risk_levels: list[str] | None = None
    min_experience_level: int | None = None
    is_required: bool
    order: int


class RequirementList(BaseModel):
    requirements: list[RequirementResponse]
    count: int
