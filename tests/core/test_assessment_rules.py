"""Assessment Rules — tests for prompt building, response parsing and auto-approval.

Tests cover:
    - parse_assessment accepts JSON wrapped in prose
    - parse_assessment rejects missing JSON, bad JSON, out-of-range or non-numeric scores
    - unknown recommendation degrades to review
    - should_auto_approve: threshold, deny veto, status guard, default threshold
    - prompt includes profile, questions with answers, and skips pre-checked kinds
"""

import json
from uuid import uuid4

import pytest

from crewgate.core.assessment_rules import (
    DEFAULT_THRESHOLD, AssessmentContext, AssessmentResult, build_assessment_prompt,
    parse_assessment, should_auto_approve,
)
from crewgate.core.domain_types import Recommendation
from crewgate.core.enforce_eligibility import CandidateProfile
from crewgate.core.errors import AssessmentError
from crewgate.core.requirements import (
    ExperienceLevelRequirement, QuestionRequirement, SkillRequirement,
)


# ─── parse_assessment ────────────────────────────────────────────

def test_parse_plain_json():
    result = parse_assessment(
        '{"match_score": 85, "reasoning": "Strong fit", "recommendation": "approve"}',
    )
    assert result == AssessmentResult(85.0, "Strong fit", Recommendation.APPROVE)


def test_parse_json_wrapped_in_prose():
    text = 'Here you go:\n{"match_score": 40, "reasoning": "x", "recommendation": "deny"}\nThanks'
    result = parse_assessment(text)
    assert result.match_score == 40
    assert result.recommendation == Recommendation.DENY


def test_parse_without_json_raises():
    with pytest.raises(AssessmentError):
        parse_assessment("I cannot assess this candidate.")


def test_parse_invalid_json_raises():
    with pytest.raises(AssessmentError):
        parse_assessment('{"match_score": 85, reasoning: }')


@pytest.mark.parametrize("score", [-1, 101, "80", None, True])
def test_parse_rejects_invalid_score(score):
    with pytest.raises(AssessmentError):
        parse_assessment(json.dumps({"match_score": score, "recommendation": "approve"}))


def test_unknown_recommendation_becomes_review():
    result = parse_assessment('{"match_score": 90, "recommendation": "maybe"}')
    assert result.recommendation == Recommendation.REVIEW


# ─── should_auto_approve ─────────────────────────────────────────

def _result(score, rec=Recommendation.APPROVE):
    return AssessmentResult(score, "", rec)


def test_auto_approve_at_threshold():
    assert should_auto_approve(_result(70), 70, "Pending approval")


def test_no_auto_approve_below_threshold():
    assert not should_auto_approve(_result(69.5), 70, "Pending approval")


def test_deny_vetoes_high_score():
    assert not should_auto_approve(_result(99, Recommendation.DENY), 50, "Pending approval")


def test_review_recommendation_can_auto_approve():
    assert should_auto_approve(_result(90, Recommendation.REVIEW), 80, "Pending approval")


def test_only_pending_memberships_are_approved():
    assert not should_auto_approve(_result(100), 10, "Cancelled")
    assert not should_auto_approve(_result(100), 10, "Not approved")


def test_missing_threshold_uses_default():
    assert should_auto_approve(_result(DEFAULT_THRESHOLD), None, "Pending approval")
    assert not should_auto_approve(_result(DEFAULT_THRESHOLD - 1), None, "Pending approval")


# ─── build_assessment_prompt ─────────────────────────────────────

def test_prompt_includes_profile_questions_and_answers():
    activity = uuid4()
    question = QuestionRequirement(
        id=uuid4(), activity_id=activity, question_text="Night watches?",
        qualification_criteria="Has done night sailing", weight=7,
    )
    skill = SkillRequirement(id=uuid4(), activity_id=activity, skill_name="Navigation")
    experience = ExperienceLevelRequirement(id=uuid4(), activity_id=activity, min_level=2)
    ctx = AssessmentContext(
        candidate=CandidateProfile(
            participant_id=uuid4(), display_name="Ada", experience_level=3,
            risk_levels=("Coastal sailing",), skills=("Cooking",),
        ),
        activity_name="Atlantic Crossing",
        segment_name="Canaries to Cape Verde",
        segment_skills=("Navigation",),
        start_date="2026-11-01",
        end_date="2026-11-08",
        requirements=[experience, question, skill],
        answers={str(question.id): "Yes, many"},
    )
    prompt = build_assessment_prompt(ctx)
    assert "Ada" in prompt
    assert "Coastal Skipper" in prompt
    assert "Night watches?" in prompt
    assert "Yes, many" in prompt
    assert "Weight: 7/10" in prompt
    assert "skill 'Navigation'" in prompt
    assert "match_score" in prompt


def test_prompt_with_only_prechecked_requirements():
    activity = uuid4()
    ctx = AssessmentContext(
        candidate=CandidateProfile(participant_id=uuid4()),
        activity_name="A", segment_name="S", segment_skills=(),
        start_date=None, end_date=None,
        requirements=[ExperienceLevelRequirement(id=uuid4(), activity_id=activity, min_level=1)],
        answers={},
    )
    assert "No assessable requirements" in build_assessment_prompt(ctx)
