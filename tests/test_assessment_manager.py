"""Tests for the AssessmentManager facade."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from assessment_app.core.errors import NotFoundError
from assessment_app.core.models import MarksDecision

from conftest import assessment_fields, question_fields


def test_detail_for_students_is_masked(manager):
    assessment = manager.create_assessment(assessment_fields())
    manager.add_question(assessment.id, question_fields())

    authoring = manager.get_assessment_detail(assessment.id)
    student = manager.get_assessment_detail(assessment.id, masked=True)

    assert len(authoring.questions) == 1 and authoring.question_views == []
    assert student.questions == [] and len(student.question_views) == 1


def test_lookup_by_lesson_after_delete_is_empty(manager):
    assessment = manager.create_assessment(assessment_fields(lesson_id=21))
    for _ in range(3):
        manager.add_question(assessment.id, question_fields())

    assert manager.get_assessment_by_lesson(21) is not None
    assert manager.delete_assessment(assessment.id) == 3
    assert manager.get_assessment_by_lesson(21) is None


def test_keep_stated_total_leaves_assessment_alone(manager):
    assessment = manager.create_assessment(assessment_fields(total_marks=10))
    manager.add_question(assessment.id, question_fields(marks=8))

    kept = manager.resolve_total_marks(assessment.id, MarksDecision.KEEP_STATED)

    assert kept.total_marks == 10
    assert manager.reconcile_total_marks(assessment.id).matches is False


def test_adopt_computed_total_updates_assessment(manager):
    assessment = manager.create_assessment(assessment_fields(total_marks=10))
    manager.add_question(assessment.id, question_fields(marks=3))
    manager.add_question(assessment.id, question_fields(marks=5))

    adopted = manager.resolve_total_marks(assessment.id, MarksDecision.ADOPT_COMPUTED)

    assert adopted.total_marks == 8
    assert manager.reconcile_total_marks(assessment.id).matches is True


def test_list_attempts_for_unknown_assessment(manager):
    with pytest.raises(NotFoundError):
        manager.list_attempts(404)


def test_concurrent_answers_are_all_recorded(manager):
    assessment = manager.create_assessment(assessment_fields())
    questions = [manager.add_question(assessment.id, question_fields()) for _ in range(20)]
    attempt = manager.start_attempt(42, assessment.id).attempt

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda q: manager.record_answer(attempt.id, q.id, "B"), questions))
    result = manager.submit_attempt(attempt.id)

    assert len(result.responses) == 20
    assert result.attempt.total_marks_scored == 20
    assert len({r.id for r in result.responses}) == 20
