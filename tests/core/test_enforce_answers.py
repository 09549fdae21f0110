"""Answer Rules — tests for the pure answer validator.

Tests cover:
    - missing required questions reported by id, in catalog order
    - optional questions may be omitted
    - blank answers rejected, structured answers accepted
    - unknown requirement ids ignored
    - build_answer_rows keeps known questions only, last submission wins
"""

from uuid import uuid4

from crewgate.core.domain_types import ValidationReason
from crewgate.core.enforce_answers import (
    SubmittedAnswer, build_answer_rows, find_missing_required, validate_answers,
)
from crewgate.core.requirements import QuestionRequirement

ACTIVITY = uuid4()


def _question(order=0, is_required=True) -> QuestionRequirement:
    return QuestionRequirement(
        id=uuid4(), activity_id=ACTIVITY, question_text="Why this leg?",
        order=order, is_required=is_required,
    )


def test_missing_required_reported_by_id_in_order():
    q1, q2 = _question(order=2), _question(order=1)
    missing = find_missing_required([q1, q2], [])
    assert missing == [q2.id, q1.id]


def test_validate_reports_missing_answers():
    q = _question()
    error = validate_answers([q], [])
    assert error["reason"] == ValidationReason.MISSING_ANSWERS
    assert error["missing_requirement_ids"] == [str(q.id)]


def test_optional_question_may_be_omitted():
    assert validate_answers([_question(is_required=False)], []) is None


def test_non_empty_answer_passes():
    q = _question()
    assert validate_answers([q], [SubmittedAnswer(q.id, answer_text="I love sailing")]) is None


def test_whitespace_answer_is_empty():
    q = _question()
    error = validate_answers([q], [SubmittedAnswer(q.id, answer_text="   ")])
    assert error["reason"] == ValidationReason.EMPTY_ANSWER
    assert error["requirement_id"] == str(q.id)


def test_structured_answer_counts_as_content():
    q = _question()
    assert validate_answers([q], [SubmittedAnswer(q.id, answer_json={"choice": 2})]) is None


def test_unknown_requirement_ids_are_ignored():
    q = _question(is_required=False)
    stray = SubmittedAnswer(uuid4(), answer_text="")
    assert validate_answers([q], [stray]) is None


def test_build_rows_skips_unknown_and_keeps_last():
    q = _question()
    rows = build_answer_rows(
        uuid4(), [q],
        [
            SubmittedAnswer(q.id, answer_text="first"),
            SubmittedAnswer(uuid4(), answer_text="stray"),
            SubmittedAnswer(q.id, answer_text="  second  "),
        ],
    )
    assert len(rows) == 1
    assert rows[0]["requirement_id"] == q.id
    assert rows[0]["answer_text"] == "second"
