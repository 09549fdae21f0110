"""Requirement Variants — closed tagged union over the five requirement kinds.

Invariants:
    - Exactly five variants; requirement_from_row raises on any other kind
    - Every variant carries id, activity_id, is_required, order
    - Risk/experience targets are resolved at load time: row values win, activity defaults fill gaps

Design Decisions:
    - Dataclass per kind over one class with optional fields: consumers pattern-match on the
      type and the type checker sees every kind-specific field (ADR: no stringly-typed branching)
    - Rows arrive as plain dicts: core never imports ORM models
"""

from dataclasses import dataclass
from typing import Union
from uuid import UUID

from crewgate.core.domain_types import ActivityId, RequirementId, RequirementKind


@dataclass(frozen=True)
class _RequirementBase:
    id: RequirementId
    activity_id: ActivityId
    is_required: bool = True
    order: int = 0


@dataclass(frozen=True)
class RiskLevelRequirement(_RequirementBase):
    """Candidate must be comfortable with every listed risk level."""
    levels: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExperienceLevelRequirement(_RequirementBase):
    """Candidate experience must reach min_level (1-4)."""
    min_level: int | None = None


@dataclass(frozen=True)
class SkillRequirement(_RequirementBase):
    """Assessed by the deferred AI task only."""
    skill_name: str = ""
    qualification_criteria: str = ""
    weight: int = 5


@dataclass(frozen=True)
class PassportRequirement(_RequirementBase):
    """Satisfied by an ownership-verified document reference."""
    require_photo_validation: bool = False
    pass_confidence_score: int = 7


@dataclass(frozen=True)
class QuestionRequirement(_RequirementBase):
    """Free-text question answered by the submitter."""
    question_text: str = ""
    qualification_criteria: str = ""
    weight: int = 5


Requirement = Union[
    RiskLevelRequirement,
    ExperienceLevelRequirement,
    SkillRequirement,
    PassportRequirement,
    QuestionRequirement,
]


@dataclass(frozen=True)
class ActivityDefaults:
    """Activity-level targets used when a requirement row leaves them empty."""
    risk_levels: tuple[str, ...] = ()
    min_experience_level: int | None = None


def requirement_from_row(
    row: dict, defaults: ActivityDefaults | None = None,
) -> Requirement:
    """Build the typed variant from a requirement row dict."""
    defaults = defaults or ActivityDefaults()
    kind = RequirementKind(row["requirement_type"])  # ValueError on unknown kinds
    common = {
        "id": RequirementId(_as_uuid(row["id"])),
        "activity_id": ActivityId(_as_uuid(row["activity_id"])),
        "is_required": bool(row.get("is_required", True)),
        "order": int(row.get("order") or 0),
    }

    match kind:
        case RequirementKind.RISK_LEVEL:
            levels = row.get("risk_levels") or defaults.risk_levels
            return RiskLevelRequirement(**common, levels=tuple(levels))
        case RequirementKind.EXPERIENCE_LEVEL:
            min_level = row.get("min_experience_level")
            if min_level is None:
                min_level = defaults.min_experience_level
            return ExperienceLevelRequirement(**common, min_level=min_level)
        case RequirementKind.SKILL:
            return SkillRequirement(
                **common,
                skill_name=row.get("skill_name") or "",
                qualification_criteria=row.get("qualification_criteria") or "",
                weight=_weight(row),
            )
        case RequirementKind.PASSPORT:
            return PassportRequirement(
                **common,
                require_photo_validation=bool(row.get("require_photo_validation")),
                pass_confidence_score=int(row.get("pass_confidence_score") or 7),
            )
        case RequirementKind.QUESTION:
            return QuestionRequirement(
                **common,
                question_text=row.get("question_text") or "",
                qualification_criteria=row.get("qualification_criteria") or "",
                weight=_weight(row),
            )
    raise ValueError(f"Unsupported requirement_type: {kind}")


def sort_by_order(requirements: list[Requirement]) -> list[Requirement]:
    """Stable sort by `order` ascending."""
    return sorted(requirements, key=lambda r: r.order)


def _weight(row: dict) -> int:
    weight = row.get("weight")
    return 5 if weight is None else int(weight)


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))
