"""Eligibility Pre-Checks — deterministic gate evaluated before any membership write.

Invariants:
    - perform_pre_checks is PURE: no IO, no async, no DB, no side effects
    - Only required requirements of the given activity are evaluated, in `order`
    - First failing requirement wins; its fail_type is a stable FailType token
    - An ineligible candidate is a negative result, never an exception
    - skill / passport / question kinds are not pre-checkable and always pass here

Design Decisions:
    - Return PreCheckResult (not exceptions): the shell decides how a failure is surfaced,
      and calling twice with identical inputs yields identical results (fresh join + reactivation)
    - A candidate with no declared risk levels or experience fails as profile_incomplete,
      distinct from a real mismatch, so the UI can send them to their profile
"""

from dataclasses import dataclass
from typing import assert_never

from crewgate.core.domain_types import (
    ActivityId, ExperienceLevel, FailType, ParticipantId, RiskLevel,
)
from crewgate.core.requirements import (
    ExperienceLevelRequirement,
    PassportRequirement,
    QuestionRequirement,
    Requirement,
    RiskLevelRequirement,
    SkillRequirement,
    sort_by_order,
)


@dataclass(frozen=True)
class CandidateProfile:
    """Snapshot of the joining participant's stored profile."""
    participant_id: ParticipantId
    display_name: str = "A crew member"
    experience_level: int | None = None
    risk_levels: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    ai_processing_consent: bool = False


@dataclass(frozen=True)
class PreCheckResult:
    """Ephemeral pre-check verdict, consumed once per request."""
    passed: bool
    fail_reason: str = ""
    fail_type: FailType | None = None


PASSED = PreCheckResult(passed=True)


def check_risk_level(
    candidate: CandidateProfile, requirement: RiskLevelRequirement,
) -> PreCheckResult | None:
    """Candidate's accepted risk levels must cover every level of the activity."""
    if not requirement.levels:
        return None
    if not candidate.risk_levels:
        return PreCheckResult(
            passed=False,
            fail_reason=(
                "Your profile does not state which sailing conditions you are "
                "comfortable with. Add your risk levels to your profile."
            ),
            fail_type=FailType.PROFILE_INCOMPLETE,
        )
    uncovered = [
        level for level in _by_severity(requirement.levels)
        if level not in candidate.risk_levels
    ]
    if uncovered:
        return PreCheckResult(
            passed=False,
            fail_reason=(
                f"This journey involves {', '.join(uncovered)}, which is not "
                f"among your accepted risk levels."
            ),
            fail_type=FailType.RISK_LEVEL,
        )
    return None


def check_experience_level(
    candidate: CandidateProfile, requirement: ExperienceLevelRequirement,
) -> PreCheckResult | None:
    """Candidate experience must be at least the required minimum."""
    if requirement.min_level is None:
        return None
    if candidate.experience_level is None:
        return PreCheckResult(
            passed=False,
            fail_reason=(
                "Your profile does not state your sailing experience level."
            ),
            fail_type=FailType.PROFILE_INCOMPLETE,
        )
    if candidate.experience_level < requirement.min_level:
        return PreCheckResult(
            passed=False,
            fail_reason=(
                f"This journey requires experience level "
                f"{_experience_label(requirement.min_level)} or higher; "
                f"your profile states {_experience_label(candidate.experience_level)}."
            ),
            fail_type=FailType.EXPERIENCE_LEVEL,
        )
    return None


def evaluate_requirement(
    candidate: CandidateProfile, requirement: Requirement,
) -> PreCheckResult | None:
    """Dispatch one requirement. None means 'nothing to object to'."""
    match requirement:
        case RiskLevelRequirement():
            return check_risk_level(candidate, requirement)
        case ExperienceLevelRequirement():
            return check_experience_level(candidate, requirement)
        case SkillRequirement() | PassportRequirement() | QuestionRequirement():
            return None
        case _:
            assert_never(requirement)


def perform_pre_checks(
    candidate: CandidateProfile,
    activity_id: ActivityId,
    requirements: list[Requirement],
) -> PreCheckResult:
    """Evaluate required pre-checkable requirements in order. First failure wins."""
    for requirement in sort_by_order(requirements):
        if requirement.activity_id != activity_id or not requirement.is_required:
            continue
        result = evaluate_requirement(candidate, requirement)
        if result is not None:
            return result
    return PASSED


def _by_severity(levels: tuple[str, ...]) -> list[str]:
    rank = {level.value: i for i, level in enumerate(RiskLevel)}
    return sorted(dict.fromkeys(levels), key=lambda lv: rank.get(lv, len(rank)))


def _experience_label(level: int) -> str:
    try:
        name = ExperienceLevel(level).name.replace("_", " ").title()
    except ValueError:
        return str(level)
    return f"{level} ({name})"
