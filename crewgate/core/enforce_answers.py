"""Answer Rules — validation of submitted answers against question requirements.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Only QuestionRequirement is answerable by the submitter
    - Missing required answers are reported by requirement id (never by question text)
    - Submitted answers for unknown requirement ids are ignored, not rejected
    - Return error dict on violation, None on success

Design Decisions:
    - Return dicts (not exceptions), same shape as the other enforce_* modules:
      the shell maps them onto ValidationFailedError
    - answer_json counts as a non-empty structured answer; answer_text must be
      non-blank after stripping when it is the only content
"""

from dataclasses import dataclass
from typing import Any

from crewgate.core.domain_types import (
    MembershipId, RequirementId, ValidationReason,
)
from crewgate.core.requirements import QuestionRequirement, sort_by_order


@dataclass(frozen=True)
class SubmittedAnswer:
    """One answer as submitted by the joining participant."""
    requirement_id: RequirementId
    answer_text: str | None = None
    answer_json: Any = None

    @property
    def is_blank(self) -> bool:
        if self.answer_json not in (None, "", [], {}):
            return False
        return not (self.answer_text or "").strip()


def find_missing_required(
    questions: list[QuestionRequirement], submitted: list[SubmittedAnswer],
) -> list[RequirementId]:
    """Required question ids with no submitted answer, in catalog order."""
    answered = {a.requirement_id for a in submitted}
    return [
        q.id for q in sort_by_order(questions)
        if q.is_required and q.id not in answered
    ]


def check_required_present(
    questions: list[QuestionRequirement], submitted: list[SubmittedAnswer],
) -> dict | None:
    """Rule 1: every required question has a submitted answer."""
    missing = find_missing_required(questions, submitted)
    if missing:
        return {
            "status": "error",
            "reason": ValidationReason.MISSING_ANSWERS,
            "message": "Missing answers for required questions",
            "missing_requirement_ids": [str(rid) for rid in missing],
        }
    return None


def check_answers_not_blank(
    questions: list[QuestionRequirement], submitted: list[SubmittedAnswer],
) -> dict | None:
    """Rule 2: answers to known questions must carry content."""
    known = {q.id for q in questions}
    for answer in submitted:
        if answer.requirement_id in known and answer.is_blank:
            return {
                "status": "error",
                "reason": ValidationReason.EMPTY_ANSWER,
                "message": "Answer text cannot be empty",
                "requirement_id": str(answer.requirement_id),
            }
    return None


def validate_answers(
    questions: list[QuestionRequirement], submitted: list[SubmittedAnswer],
) -> dict | None:
    """Chain all answer checks. Returns first error or None."""
    return (
        check_required_present(questions, submitted)
        or check_answers_not_blank(questions, submitted)
    )


def build_answer_rows(
    membership_id: MembershipId,
    questions: list[QuestionRequirement],
    submitted: list[SubmittedAnswer],
) -> list[dict]:
    """Rows to insert: known questions only, last submission per requirement wins."""
    known = {q.id for q in questions}
    rows: dict[RequirementId, dict] = {}
    for answer in submitted:
        if answer.requirement_id not in known:
            continue
        rows[answer.requirement_id] = {
            "membership_id": membership_id,
            "requirement_id": answer.requirement_id,
            "answer_text": (answer.answer_text or "").strip() or None,
            "answer_json": answer.answer_json,
        }
    return list(rows.values())
