"""Admission Routes — POST /api/v1/memberships end to end.

Invariants:
    - Duplicate active membership → 409, reactivation of a cancelled one → 200 with a clean slate
    - Zero requirements → no pre-checks, no answer validation, no assessment
    - Rejections (unpublished, foreign passport, pre-check, missing answers) write nothing
    - With auto-approval and requirements the assessment runs exactly once, after the
      response, and its failure never changes the response
    - Cancelling or rejoining while an assessment runs stops it; the rejoin is assessed anew
    - A failed answer batch after the membership write reports the membership id

Design Decisions:
    - FakeRunner gates the deferred task with an Event so "response before assessment"
      is observable without timing assumptions
"""

import asyncio
from uuid import UUID, uuid4

from sqlalchemy import Insert, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from crewgate.core.domain_types import RiskLevel
from crewgate.models import Membership, MembershipAnswer, Notification


async def _count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def _membership(db, membership_id) -> Membership:
    db.expire_all()
    return await db.get(Membership, membership_id)


async def _answers(db, membership_id) -> list[MembershipAnswer]:
    db.expire_all()
    result = await db.execute(
        select(MembershipAnswer).where(MembershipAnswer.membership_id == membership_id),
    )
    return list(result.scalars().all())


# ─── identity ────────────────────────────────────────────────────

async def test_missing_identity_returns_401(client, seed):
    journey = await seed.journey()
    res = await client.post("/api/v1/memberships", json={"segment_id": str(journey.segment.id)})
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "UNAUTHORIZED"


async def test_non_crew_role_returns_403(client, seed, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew, roles="owner"),
    )
    assert res.status_code == 403


# ─── request validation ──────────────────────────────────────────

async def test_missing_segment_id_is_validation_error(client, seed, crew_headers):
    crew = await seed.profile()
    res = await client.post("/api/v1/memberships", json={}, headers=crew_headers(crew))
    assert res.status_code == 400
    body = res.json()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert body["reason"] == "missing_field"


async def test_unknown_segment_returns_404(client, seed, crew_headers):
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships", json={"segment_id": str(uuid4())}, headers=crew_headers(crew),
    )
    assert res.status_code == 404
    assert res.json()["error"]["details"]["resource_type"] == "Segment"


async def test_unpublished_activity_rejected_with_state(
    client, seed, test_db, crew_headers,
):
    journey = await seed.journey(state="In planning")
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 400
    body = res.json()["error"]
    assert body["reason"] == "activity_not_published"
    assert body["details"] == {"activity_id": str(journey.activity.id), "state": "In planning"}
    assert await _count(test_db, Membership) == 0


# ─── fresh creation ──────────────────────────────────────────────

async def test_create_without_requirements(
    client, seed, test_db, runner, observer, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id), "notes": "  Keen to help  "},
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Registration created successfully"
    membership = body["membership"]
    assert membership["status"] == "Pending approval"
    assert membership["match_percentage"] == 0
    assert membership["ai_match_score"] is None
    assert membership["auto_approved"] is None
    assert membership["notes"] == "Keen to help"
    assert runner.calls == []
    assert "precheck_failed" not in observer.names


async def test_human_review_path_notifies_owner(client, seed, test_db, crew_headers):
    journey = await seed.journey(auto_approval_enabled=False)
    crew = await seed.profile(full_name="Ada Lovelace")
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    result = await test_db.execute(select(Notification))
    notification = result.scalar_one()
    assert notification.user_id == journey.owner.id
    assert notification.type == "new_registration"
    assert "Ada Lovelace" in notification.message
    assert notification.payload["registration_id"] == res.json()["membership"]["id"]


async def test_duplicate_active_membership_conflicts(client, seed, test_db, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    existing = await seed.membership(crew, journey.segment, status="Pending approval")
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 409
    assert res.json()["error"]["details"]["existing_membership_id"] == str(existing.id)
    assert await _count(test_db, Membership) == 1


async def test_approved_membership_also_conflicts(client, seed, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    await seed.membership(crew, journey.segment, status="Approved")
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 409


# ─── reactivation ────────────────────────────────────────────────

async def test_reactivation_resets_evaluation_and_answers(
    client, seed, test_db, runner, registry, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    old = await seed.membership(
        crew, journey.segment, status="Cancelled", notes="old",
        match_percentage=55, ai_match_score=55.0, ai_match_reasoning="meh",
        auto_approved=False,
    )
    test_db.add(MembershipAnswer(
        membership_id=old.id, requirement_id=question.id, answer_text="stale answer",
    ))
    await test_db.commit()

    res = await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(journey.segment.id),
            "notes": "back again",
            "answers": [{"requirement_id": str(question.id), "answer_text": "fresh answer"}],
        },
        headers=crew_headers(crew),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Registration reactivated"
    assert body["membership"]["id"] == str(old.id)

    membership = await _membership(test_db, old.id)
    assert membership.status == "Pending approval"
    assert membership.match_percentage == 0
    assert membership.ai_match_score is None
    assert membership.ai_match_reasoning is None
    assert membership.auto_approved is None
    assert membership.notes == "back again"

    answers = await _answers(test_db, old.id)
    assert [a.answer_text for a in answers] == ["fresh answer"]
    await registry.drain(timeout=1)
    assert [str(c) for c in runner.calls] == [str(old.id)]


async def test_reactivation_reruns_prechecks(client, seed, test_db, crew_headers):
    journey = await seed.journey(min_experience_level=4)
    await seed.requirement(journey.activity, "experience_level")
    crew = await seed.profile(experience_level=1)
    old = await seed.membership(crew, journey.segment, status="Cancelled")
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 400
    assert res.json()["error"]["fail_type"] == "experience_level"
    assert (await _membership(test_db, old.id)).status == "Cancelled"


# ─── pre-checks & answers ────────────────────────────────────────

async def test_precheck_failure_writes_nothing(
    client, seed, test_db, observer, crew_headers,
):
    journey = await seed.journey(risk_levels=[RiskLevel.OFFSHORE.value])
    await seed.requirement(journey.activity, "risk_level")
    crew = await seed.profile(risk_levels=[RiskLevel.COASTAL.value])
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 400
    body = res.json()["error"]
    assert body["code"] == "ELIGIBILITY_FAILED"
    assert body["fail_type"] == "risk_level"
    assert observer.names == ["precheck_failed"]
    assert await _count(test_db, Membership) == 0


async def test_incomplete_profile_fail_type(client, seed, crew_headers):
    journey = await seed.journey(min_experience_level=2)
    await seed.requirement(journey.activity, "experience_level")
    crew = await seed.profile(experience_level=None)
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.json()["error"]["fail_type"] == "profile_incomplete"


async def test_auto_approval_requires_answers(client, seed, test_db, runner, crew_headers):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 400
    body = res.json()["error"]
    assert body["reason"] == "missing_answers"
    assert body["details"]["missing_requirement_ids"] == [str(question.id)]
    assert await _count(test_db, Membership) == 0
    assert runner.calls == []


async def test_blank_answer_rejected(client, seed, test_db, crew_headers):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(journey.segment.id),
            "answers": [{"requirement_id": str(question.id), "answer_text": "   "}],
        },
        headers=crew_headers(crew),
    )
    assert res.status_code == 400
    assert res.json()["error"]["reason"] == "empty_answer"
    assert await _count(test_db, Membership) == 0


async def test_answers_persisted_and_unknown_ids_ignored(
    client, seed, test_db, observer, crew_headers,
):
    journey = await seed.journey()
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(journey.segment.id),
            "answers": [
                {"requirement_id": str(question.id), "answer_text": "  Because  "},
                {"requirement_id": str(uuid4()), "answer_text": "ignored"},
            ],
        },
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    membership_id = res.json()["membership"]["id"]
    answers = await _answers(test_db, membership_id)
    assert len(answers) == 1
    assert answers[0].requirement_id == question.id
    assert answers[0].answer_text == "Because"
    assert answers[0].ai_score is None
    assert ("answers_persisted", (answers[0].membership_id, 1)) in observer.events


async def test_answer_batch_failure_reports_created_membership(
    client, seed, test_db, monkeypatch, crew_headers,
):
    journey = await seed.journey()
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    execute = AsyncSession.execute

    async def failing_execute(self, statement, *args, **kwargs):
        if isinstance(statement, Insert) and statement.table.name == "membership_answers":
            raise OperationalError(str(statement), None, Exception("disk full"))
        return await execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", failing_execute)

    res = await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(journey.segment.id),
            "answers": [{"requirement_id": str(question.id), "answer_text": "Because"}],
        },
        headers=crew_headers(crew),
    )

    assert res.status_code == 500
    error = res.json()["error"]
    assert error["code"] == "PERSISTENCE_FAILED"
    assert error["details"]["operation"] == "answers"
    assert error["details"]["membership_created"] is True
    membership_id = error["details"]["membership_id"]
    assert error["context"]["membership_id"] == membership_id
    assert error["context"]["participant_id"] == str(crew.id)
    assert error["context"]["segment_id"] == str(journey.segment.id)

    membership = await _membership(test_db, membership_id)
    assert membership is not None
    assert membership.status == "Pending approval"
    assert await _answers(test_db, membership_id) == []


# ─── passport ────────────────────────────────────────────────────

async def test_foreign_passport_forbidden_before_write(client, seed, test_db, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    stranger = await seed.profile(full_name="Someone Else")
    document = await seed.document(stranger)
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id), "passport_document_id": str(document.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 403
    assert await _count(test_db, Membership) == 0


async def test_missing_passport_document_not_found(client, seed, test_db, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id), "passport_document_id": str(uuid4())},
        headers=crew_headers(crew),
    )
    assert res.status_code == 404
    assert await _count(test_db, Membership) == 0


async def test_passport_answer_written(client, seed, test_db, crew_headers):
    journey = await seed.journey()
    passport = await seed.requirement(journey.activity, "passport", require_photo_validation=True)
    crew = await seed.profile()
    document = await seed.document(crew)
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id), "passport_document_id": str(document.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    answers = await _answers(test_db, res.json()["membership"]["id"])
    assert len(answers) == 1
    assert answers[0].requirement_id == passport.id
    assert answers[0].passport_document_id == document.id
    assert answers[0].photo_verification_passed is None


async def test_passport_without_requirement_is_noop(client, seed, test_db, crew_headers):
    journey = await seed.journey()
    crew = await seed.profile()
    document = await seed.document(crew)
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id), "passport_document_id": str(document.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    assert await _count(test_db, MembershipAnswer) == 0


# ─── deferred assessment ─────────────────────────────────────────

async def test_assessment_triggered_once_without_delaying_response(
    client, seed, runner, registry, observer, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    runner.release.clear()

    res = await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(journey.segment.id),
            "answers": [{"requirement_id": str(question.id), "answer_text": "Love it"}],
        },
        headers=crew_headers(crew),
    )

    assert res.status_code == 201
    assert registry.pending == 1
    assert "assessment_scheduled" in observer.names

    runner.release.set()
    assert await registry.drain(timeout=1) == 0
    assert [str(c) for c in runner.calls] == [res.json()["membership"]["id"]]


async def test_assessment_failure_does_not_affect_response(
    client, seed, runner, registry, observer, test_db, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    await seed.requirement(journey.activity, "skill", skill_name="Navigation")
    crew = await seed.profile()
    runner.error = RuntimeError("model exploded")

    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    await registry.drain(timeout=1)

    assert res.status_code == 201
    assert "assessment_failed" in observer.names
    membership = await _membership(test_db, res.json()["membership"]["id"])
    assert membership.status == "Pending approval"


async def test_no_assessment_without_auto_approval(client, seed, runner, crew_headers):
    journey = await seed.journey(auto_approval_enabled=False)
    await seed.requirement(journey.activity, "skill", skill_name="Navigation")
    crew = await seed.profile()
    res = await client.post(
        "/api/v1/memberships",
        json={"segment_id": str(journey.segment.id)},
        headers=crew_headers(crew),
    )
    assert res.status_code == 201
    assert runner.calls == []


async def _started(runner, count: int) -> None:
    for _ in range(100):
        if len(runner.calls) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"runner not started {count} times")


async def _join(client, crew_headers, crew, segment, question, text):
    return await client.post(
        "/api/v1/memberships",
        json={
            "segment_id": str(segment.id),
            "answers": [{"requirement_id": str(question.id), "answer_text": text}],
        },
        headers=crew_headers(crew),
    )


async def test_cancel_and_rejoin_while_assessing_reassesses(
    client, seed, runner, registry, observer, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    runner.release.clear()

    first = await _join(client, crew_headers, crew, journey.segment, question, "First try")
    assert first.status_code == 201
    membership_id = first.json()["membership"]["id"]
    await _started(runner, 1)

    cancelled = await client.post(
        f"/api/v1/memberships/{membership_id}/cancel", headers=crew_headers(crew),
    )
    assert cancelled.status_code == 200
    assert registry.pending == 0

    again = await _join(client, crew_headers, crew, journey.segment, question, "Second try")
    assert again.status_code == 200
    assert again.json()["membership"]["id"] == membership_id

    runner.release.set()
    await registry.drain(timeout=1)
    assert [str(c) for c in runner.calls] == [membership_id, membership_id]
    assert observer.names.count("assessment_scheduled") == 2
    assert "assessment_skipped" not in observer.names


async def test_rejoin_supersedes_assessment_still_running(
    client, seed, test_db, runner, registry, observer, crew_headers,
):
    journey = await seed.journey(auto_approval_enabled=True)
    question = await seed.requirement(journey.activity, "question", question_text="Why?")
    crew = await seed.profile()
    runner.release.clear()

    first = await _join(client, crew_headers, crew, journey.segment, question, "First try")
    membership_id = first.json()["membership"]["id"]
    await _started(runner, 1)

    await test_db.execute(
        update(Membership)
        .where(Membership.id == UUID(membership_id))
        .values(status="Cancelled"),
    )
    await test_db.commit()

    again = await _join(client, crew_headers, crew, journey.segment, question, "Second try")
    assert again.status_code == 200
    assert registry.pending == 1

    runner.release.set()
    await registry.drain(timeout=1)
    assert [str(c) for c in runner.calls] == [membership_id, membership_id]
    assert "assessment_skipped" not in observer.names
    assert [a.answer_text for a in await _answers(test_db, membership_id)] == ["Second try"]
