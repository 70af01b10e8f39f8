"""
Test: correction pipeline (submit, resubmit, failures), history and essay lookup.
"""
import json
import uuid

import pytest
from sqlalchemy import func, select

from app.errors import GradeFormatError, NotFoundError, UpstreamError, ValidationError
from app.models.correction import Correction
from app.models.essay import Essay
from app.services import essay_service
from app.services.grading_client import GraderBlockedError, GraderError
from conftest import FakeGrader, fenced, make_grade


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestSubmitEssay:
    async def test_creates_essay_and_correction(self, db_session, user):
        grader = FakeGrader([fenced(make_grade(c1=200, c2=160, c3=160, c4=160, c5=160))])
        record = await essay_service.submit_essay(db_session, grader, user.id, "Tema T", "Texto X")
        assert record.topic == "Tema T"
        assert record.text == "Texto X"
        assert record.correction.total == 840
        assert record.correction.grade.total == 840
        assert record.correction.model == "fake-grader"
        assert await _count(db_session, Essay) == 1
        assert await _count(db_session, Correction) == 1

    async def test_prompt_contains_topic_text_and_rubric(self, db_session, user):
        grader = FakeGrader()
        await essay_service.submit_essay(db_session, grader, user.id, "Mobilidade urbana", "Meu texto {com chaves}")
        assert len(grader.prompts) == 1
        prompt = grader.prompts[0]
        assert "Mobilidade urbana" in prompt
        assert "Meu texto {com chaves}" in prompt
        assert "0, 40, 80, 120, 160 ou 200" in prompt
        assert '"competencias"' in prompt

    async def test_total_from_grader_is_not_trusted(self, db_session, user):
        grader = FakeGrader([json.dumps(make_grade(c1=40, c2=40, c3=40, c4=40, c5=40, total=1000))])
        record = await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert record.correction.total == 200
        stored = (await db_session.execute(select(Correction))).scalar_one()
        assert stored.total == 200
        assert stored.grade["total"] == 200

    async def test_resubmission_reuses_essay(self, db_session, user):
        grader = FakeGrader([json.dumps(make_grade(c5=120)), json.dumps(make_grade(c5=200))])
        first = await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        second = await essay_service.submit_essay(db_session, grader, user.id, " T ", "X\n")
        assert first.essay_id == second.essay_id
        assert await _count(db_session, Essay) == 1
        assert await _count(db_session, Correction) == 2

        history = await essay_service.get_history(db_session, user.id)
        assert len(history) == 1
        assert history[0].corrections_count == 2
        assert history[0].latest_total == second.correction.total == 840

    async def test_same_text_different_user_is_separate(self, db_session, user, other_user):
        grader = FakeGrader()
        a = await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        b = await essay_service.submit_essay(db_session, grader, other_user.id, "T", "X")
        assert a.essay_id != b.essay_id

    @pytest.mark.parametrize("topic,text", [("", "X"), ("T", ""), ("   ", "X"), ("T", " \n ")])
    async def test_empty_input_rejected_before_call(self, db_session, user, topic, text):
        grader = FakeGrader()
        with pytest.raises(ValidationError):
            await essay_service.submit_essay(db_session, grader, user.id, topic, text)
        assert grader.prompts == []
        assert await _count(db_session, Essay) == 0

    async def test_unparseable_response(self, db_session, user):
        grader = FakeGrader(["Desculpe, não posso ajudar com isso."])
        with pytest.raises(GradeFormatError) as exc:
            await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert exc.value.raw == "Desculpe, não posso ajudar com isso."
        assert "Desculpe" not in exc.value.message
        assert await _count(db_session, Correction) == 0
        # сочинение сохраняется без оценки
        assert await _count(db_session, Essay) == 1

    async def test_invalid_grade_not_persisted(self, db_session, user):
        grade = make_grade()
        del grade["competencias"]["c3"]
        grader = FakeGrader([json.dumps(grade)])
        with pytest.raises(GradeFormatError):
            await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert await _count(db_session, Correction) == 0

    async def test_oversized_total_is_format_error(self, db_session, user):
        grader = FakeGrader([json.dumps(make_grade(total=10 ** 400 - 1))])
        with pytest.raises(GradeFormatError):
            await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert await _count(db_session, Correction) == 0

    async def test_grader_failure(self, db_session, user):
        grader = FakeGrader(error=GraderError("timeout"))
        with pytest.raises(UpstreamError) as exc:
            await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert not exc.value.blocked
        assert "timeout" not in exc.value.message
        assert await _count(db_session, Correction) == 0

    async def test_blocked_content(self, db_session, user):
        grader = FakeGrader(error=GraderBlockedError("SAFETY"))
        with pytest.raises(UpstreamError) as exc:
            await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        assert exc.value.blocked
        assert exc.value.message == UpstreamError.blocked_message
        assert exc.value.message != UpstreamError.message


class TestHistoryAndLookup:
    async def test_history_newest_first_and_paginated(self, db_session, user):
        grader = FakeGrader()
        for i in range(3):
            await essay_service.submit_essay(db_session, grader, user.id, f"Tema {i}", f"Texto {i}")
        history = await essay_service.get_history(db_session, user.id, page=1, limit=2)
        assert [h.topic for h in history] == ["Tema 2", "Tema 1"]
        page2 = await essay_service.get_history(db_session, user.id, page=2, limit=2)
        assert [h.topic for h in page2] == ["Tema 0"]

    async def test_history_only_own_essays(self, db_session, user, other_user):
        grader = FakeGrader()
        await essay_service.submit_essay(db_session, grader, other_user.id, "T", "X")
        assert await essay_service.get_history(db_session, user.id) == []

    async def test_get_essay_with_corrections(self, db_session, user):
        grader = FakeGrader([json.dumps(make_grade(c1=40)), json.dumps(make_grade(c1=200))])
        await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        record = await essay_service.submit_essay(db_session, grader, user.id, "T", "X")
        detail = await essay_service.get_essay(db_session, user.id, record.essay_id)
        assert [c.total for c in detail.corrections] == [840, 680]

    async def test_get_essay_of_other_user_is_not_found(self, db_session, user, other_user):
        record = await essay_service.submit_essay(db_session, FakeGrader(), other_user.id, "T", "X")
        with pytest.raises(NotFoundError):
            await essay_service.get_essay(db_session, user.id, record.essay_id)
        with pytest.raises(NotFoundError):
            await essay_service.get_essay(db_session, user.id, uuid.uuid4())

    async def test_zero_limit_means_default(self, db_session, user):
        grader = FakeGrader()
        for i in range(12):
            await essay_service.submit_essay(db_session, grader, user.id, f"Tema {i}", f"Texto {i}")
        history = await essay_service.get_history(db_session, user.id, page=0, limit=0)
        assert len(history) == essay_service.HISTORY_DEFAULT_LIMIT
        assert history[0].topic == "Tema 11"
