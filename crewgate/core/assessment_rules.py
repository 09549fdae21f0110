"""Assessment Rules — prompt construction, response parsing and the auto-approval rule.

Invariants:
    - All functions are PURE: the deferred task does the IO around them
    - match_score must be a number in 0-100, otherwise parsing fails
    - Auto-approval requires score >= threshold AND a recommendation other than deny
    - Only a membership still Pending approval may be auto-approved

Design Decisions:
    - Parse the first {...} block of the model's text: the model is asked for bare JSON
      but occasionally wraps it in prose
    - AssessmentError on malformed output: the trigger logs it and leaves the row untouched
"""

import json
import re
from dataclasses import dataclass

from crewgate.core.domain_types import (
    ExperienceLevel, MembershipStatus, Recommendation,
)
from crewgate.core.enforce_eligibility import CandidateProfile
from crewgate.core.errors import AssessmentError
from crewgate.core.requirements import (
    PassportRequirement, QuestionRequirement, Requirement, SkillRequirement,
    sort_by_order,
)

DEFAULT_THRESHOLD: int = 80

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class AssessmentResult:
    """Parsed verdict of one assessment run."""
    match_score: float
    reasoning: str
    recommendation: Recommendation


@dataclass(frozen=True)
class AssessmentContext:
    """Everything the prompt needs, already loaded by the shell."""
    candidate: CandidateProfile
    activity_name: str
    segment_name: str
    segment_skills: tuple[str, ...]
    start_date: str | None
    end_date: str | None
    requirements: list[Requirement]
    answers: dict[str, str]  # requirement id -> rendered answer


ASSESSMENT_INSTRUCTIONS = """\
Please assess this match and provide a JSON response with exactly this structure:
{
  "match_score": <integer 0-100>,
  "reasoning": "<string explaining your assessment>",
  "recommendation": "<'approve', 'deny', or 'review'>"
}

Be thorough and fair. Consider technical skills, experience level, risk tolerance,
the quality of the answers to the custom questions and the overall fit.

Respond with ONLY the JSON object, no additional text."""


def build_assessment_prompt(ctx: AssessmentContext) -> str:
    """Render the assessment prompt for one membership."""
    candidate = ctx.candidate
    experience = (
        _experience_name(candidate.experience_level)
        if candidate.experience_level is not None else "Not specified"
    )
    lines = [
        "You are an expert sailing crew matching assistant. Assess how well a "
        "crew member matches the requirements for a sailing journey leg.",
        "",
        "Crew Member Profile:",
        f"- Name: {candidate.display_name}",
        f"- Experience Level: {experience}",
        f"- Skills: {', '.join(candidate.skills) or 'None listed'}",
        f"- Risk Tolerance: {', '.join(candidate.risk_levels) or 'Not specified'}",
        "",
        "Journey:",
        f"- Journey: {ctx.activity_name}",
        f"- Leg: {ctx.segment_name}",
        f"- Leg Skills: {', '.join(ctx.segment_skills) or 'None specified'}",
        f"- Dates: {ctx.start_date or 'N/A'} to {ctx.end_date or 'N/A'}",
        "",
        "Requirements & Answers:",
        _render_requirements(ctx.requirements, ctx.answers) or "No assessable requirements",
        "",
        ASSESSMENT_INSTRUCTIONS,
    ]
    return "\n".join(lines)


def parse_assessment(text: str) -> AssessmentResult:
    """Extract and validate the JSON verdict from model output."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise AssessmentError("No JSON found in assessment response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AssessmentError(f"Failed to parse assessment JSON: {e}")

    score = data.get("match_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        raise AssessmentError(f"Invalid match_score: {score!r}")
    try:
        recommendation = Recommendation(str(data.get("recommendation", "review")).lower())
    except ValueError:
        recommendation = Recommendation.REVIEW
    return AssessmentResult(
        match_score=float(score),
        reasoning=str(data.get("reasoning") or ""),
        recommendation=recommendation,
    )


def should_auto_approve(
    result: AssessmentResult,
    threshold: int | None,
    current_status: MembershipStatus | str,
) -> bool:
    """Auto-approve only pending memberships scoring at or above threshold."""
    if MembershipStatus(current_status) != MembershipStatus.PENDING_APPROVAL:
        return False
    limit = DEFAULT_THRESHOLD if threshold is None else threshold
    return (
        result.match_score >= limit
        and result.recommendation != Recommendation.DENY
    )


def _render_requirements(
    requirements: list[Requirement], answers: dict[str, str],
) -> str:
    blocks = []
    for idx, req in enumerate(sort_by_order(requirements), start=1):
        match req:
            case QuestionRequirement():
                answer = answers.get(str(req.id), "Not answered")
                blocks.append(
                    f"Q{idx} (Weight: {req.weight}/10): {req.question_text}\n"
                    f"Criteria: {req.qualification_criteria or 'n/a'}\n"
                    f"A{idx}: {answer}"
                )
            case SkillRequirement():
                blocks.append(
                    f"S{idx} (Weight: {req.weight}/10): skill '{req.skill_name}'\n"
                    f"Criteria: {req.qualification_criteria or 'n/a'}"
                )
            case PassportRequirement():
                provided = "provided" if str(req.id) in answers else "not provided"
                blocks.append(f"P{idx}: passport document {provided}")
            case _:
                # risk / experience already enforced by pre-checks
                continue
    return "\n\n".join(blocks)


def _experience_name(level: int) -> str:
    try:
        return f"{level} ({ExperienceLevel(level).name.replace('_', ' ').title()})"
    except ValueError:
        return str(level)
