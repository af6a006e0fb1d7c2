"""Shared fixtures: a controllable clock and pre-populated services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from assessment_app.config.settings import Settings, TokenGrant
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.models import Role
from assessment_app.core.services.assessment_store import AssessmentStore
from assessment_app.core.services.attempt_engine import AttemptEngine

TEACHER_TOKEN = "teacher-token"
OTHER_TEACHER_TOKEN = "other-teacher-token"
ADMIN_TOKEN = "admin-token"
STUDENT_TOKEN = "student-token"
OTHER_STUDENT_TOKEN = "other-student-token"
PARENT_TOKEN = "parent-token"

TEACHER_ID = 7
OTHER_TEACHER_ID = 8
ADMIN_ID = 1
STUDENT_ID = 42
OTHER_STUDENT_ID = 43
PARENT_ID = 99


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def assessment_fields(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "lesson_id": 10,
        "title": "Cell biology check",
        "instructions": "Choose one answer per question.",
        "total_marks": 5,
        "type": "quiz",
        "status": "published",
    }
    data.update(overrides)
    return data


def question_fields(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "question_text": "Which organelle produces most of a cell's ATP?",
        "option_a": "Nucleus",
        "option_b": "Mitochondrion",
        "option_c": "Ribosome",
        "option_d": "",
        "correct_option": "B",
        "marks": 1,
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> AssessmentStore:
    return AssessmentStore(clock=clock)


@pytest.fixture
def engine(store: AssessmentStore, clock: FakeClock) -> AttemptEngine:
    return AttemptEngine(store, clock=clock)


@pytest.fixture
def manager(clock: FakeClock) -> AssessmentManager:
    return AssessmentManager(clock=clock)


@pytest.fixture
def two_question_assessment(store: AssessmentStore):
    """Published assessment worth 2 + 3 marks; Q1 answer A, Q2 answer B."""
    assessment = store.create_assessment(assessment_fields())
    first = store.add_question(
        assessment.id, question_fields(question_text="2 + 2 = ?", option_a="4", option_b="5", correct_option="A", marks=2)
    )
    second = store.add_question(assessment.id, question_fields(marks=3))
    return assessment, [first, second]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_tokens={
            TEACHER_TOKEN: TokenGrant(user_id=TEACHER_ID, role=Role.TEACHER),
            OTHER_TEACHER_TOKEN: TokenGrant(user_id=OTHER_TEACHER_ID, role=Role.TEACHER),
            ADMIN_TOKEN: TokenGrant(user_id=ADMIN_ID, role=Role.ADMIN),
            STUDENT_TOKEN: TokenGrant(user_id=STUDENT_ID, role=Role.STUDENT),
            OTHER_STUDENT_TOKEN: TokenGrant(user_id=OTHER_STUDENT_ID, role=Role.STUDENT),
            PARENT_TOKEN: TokenGrant(user_id=PARENT_ID, role=Role.PARENT),
        },
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
