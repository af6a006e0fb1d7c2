"""Tests for the httpx gateway, against the real app and against scripted transports."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from assessment_app.client.gateway import HttpAssessmentGateway, best_effort_list, flatten_error_message
from assessment_app.client.session import ApiSession
from assessment_app.core.errors import (
    AlreadyInProgressError,
    AuthenticationError,
    GatewayError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ResponseParseError,
    UnknownQuestionError,
    ValidationError,
)
from assessment_app.core.models import AttemptStatus, MarksDecision, OptionLetter
from assessment_app.server.api_server import create_api_app

from conftest import STUDENT_TOKEN, TEACHER_TOKEN, assessment_fields, question_fields

BASE_URL = "http://testserver/api/"

QUESTION_JSON = {
    "id": 1,
    "assessment_id": 1,
    "question_text": "Pick one",
    "marks": 1,
    "option_a": "Yes",
    "option_b": "No",
    "correct_option": "A",
    "created_at": "2026-01-05T09:00:00Z",
    "updated_at": "2026-01-05T09:00:00Z",
}


@pytest.fixture
def app(manager, settings):
    return create_api_app(manager, settings=settings)


def _gateway(app, token: str | None) -> HttpAssessmentGateway:
    session = ApiSession(base_url=BASE_URL, token=token)
    return HttpAssessmentGateway(session, client=TestClient(app, base_url=BASE_URL))


def _scripted(handler, sleeps: list[float] | None = None, retry_attempts: int = 3) -> HttpAssessmentGateway:
    session = ApiSession(base_url=BASE_URL, token=TEACHER_TOKEN)
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpAssessmentGateway(
        session,
        client=client,
        retry_attempts=retry_attempts,
        retry_backoff_seconds=0.5,
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )


@pytest.fixture
def teacher(app) -> HttpAssessmentGateway:
    return _gateway(app, TEACHER_TOKEN)


@pytest.fixture
def student(app) -> HttpAssessmentGateway:
    return _gateway(app, STUDENT_TOKEN)


def test_authoring_round_trip(teacher):
    created = teacher.create_assessment(assessment_fields(lesson_id=5, total_marks=10))
    teacher.create_question(created.id, question_fields(marks=3))
    teacher.create_question(created.id, question_fields(marks=5, correct_option="c"))

    detail = teacher.get_assessment_by_lesson(5)
    reconciliation = teacher.reconcile_total_marks(created.id)
    resolved = teacher.resolve_total_marks(created.id, MarksDecision.ADOPT_COMPUTED)

    assert detail is not None and detail.assessment.id == created.id
    assert [q.marks for q in detail.questions] == [3, 5]
    assert detail.questions[1].correct_option is OptionLetter.C
    assert (reconciliation.computed, reconciliation.stated, reconciliation.needs_decision) == (8, 10, True)
    assert resolved.total_marks == 8


def test_lesson_without_assessment_is_none(teacher):
    assert teacher.get_assessment_by_lesson(404) is None


def test_update_and_delete(teacher):
    created = teacher.create_assessment(assessment_fields())
    question = teacher.create_question(created.id, question_fields())

    updated = teacher.update_question(question.id, {"question_text": "Reworded"})
    teacher.delete_question(question.id)
    renamed = teacher.update_assessment(created.id, {"title": "Renamed"})
    teacher.delete_assessment(created.id)

    assert updated.question_text == "Reworded"
    assert renamed.title == "Renamed"
    with pytest.raises(NotFoundError):
        teacher.get_assessment(created.id)


def test_list_assessments_returns_page(teacher):
    for lesson_id in (1, 2, 3):
        teacher.create_assessment(assessment_fields(lesson_id=lesson_id))

    page = teacher.list_assessments(page=1, per_page=2)

    assert [a.lesson_id for a in page.items] == [1, 2]
    assert page.last_page == 2


def test_student_attempt_flow(teacher, student):
    created = teacher.create_assessment(assessment_fields())
    first = teacher.create_question(created.id, question_fields(correct_option="A", marks=2))
    second = teacher.create_question(created.id, question_fields(marks=3))

    started = student.start_attempt(created.id)
    student.record_answer(created.id, started.attempt.id, first.id, "A")
    result = student.submit_attempt(created.id, started.attempt.id, {second.id: "C"})

    assert result.attempt.status is AttemptStatus.GRADED
    assert result.breakdown.total_scored == 2
    assert result.breakdown.percentage == 40.0
    assert student.get_attempt_results(created.id, started.attempt.id).breakdown.total_possible == 5
    assert [a.id for a in student.list_attempts(created.id)] == [started.attempt.id]

    with pytest.raises(InvalidStateError):
        student.submit_attempt(created.id, started.attempt.id)
    with pytest.raises(InvalidStateError):
        student.record_answer(created.id, started.attempt.id, first.id, "A")


def test_server_errors_map_to_typed_exceptions(app, teacher, student):
    created = teacher.create_assessment(assessment_fields())
    running = student.start_attempt(created.id)

    with pytest.raises(PermissionDeniedError):
        student.create_assessment(assessment_fields(lesson_id=2))
    with pytest.raises(AuthenticationError) as unauthenticated:
        _gateway(app, None).list_assessments()
    with pytest.raises(AlreadyInProgressError) as in_progress:
        student.start_attempt(created.id)
    with pytest.raises(UnknownQuestionError):
        student.record_answer(created.id, running.attempt.id, 999, "A")
    with pytest.raises(ValidationError) as duplicate:
        teacher.create_assessment(assessment_fields())

    assert unauthenticated.value.message == "Unauthenticated."
    assert in_progress.value.attempt_id == running.attempt.id
    assert "lesson_id" in duplicate.value.field_errors


def test_local_validation_happens_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    gateway = _scripted(handler)

    with pytest.raises(ValidationError):
        gateway.create_assessment({"title": "No lesson"})
    with pytest.raises(ValidationError):
        gateway.create_question(1, {"question_text": "Missing options"})
    with pytest.raises(ValidationError):
        gateway.record_answer(1, 1, 1, "Z")
    with pytest.raises(ValidationError) as question_update:
        gateway.update_question(1, {"marks": 0, "correct_option": "Z"})
    with pytest.raises(ValidationError) as assessment_update:
        gateway.update_assessment(1, {"total_marks": -3})
    with pytest.raises(ValidationError) as cleared_answer:
        gateway.update_question(1, {"correct_option": "C", "option_c": ""})

    assert "correct_option" in cleared_answer.value.field_errors
    assert set(question_update.value.field_errors) == {"marks", "correct_option"}
    assert set(assessment_update.value.field_errors) == {"total_marks"}


def test_partial_updates_send_only_cleaned_fields():
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {**QUESTION_JSON, "correct_option": "C"}, "message": None})

    updated = _scripted(handler).update_question(1, {"correct_option": "c", "marks": "2"})

    assert sent == [{"correct_option": "C", "marks": 2}]
    assert updated.correct_option is OptionLetter.C


def test_reads_retry_on_gateway_errors():
    calls: list[str] = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if len(calls) < 3:
            return httpx.Response(503, json={"message": "Service unavailable"})
        return httpx.Response(200, json={"data": [QUESTION_JSON], "message": None})

    questions = _scripted(handler, sleeps).list_questions(1)

    assert [q.question_text for q in questions] == ["Pick one"]
    assert calls == ["/api/questions"] * 3
    assert sleeps == [0.5, 1.0]


def test_record_answer_retries_transport_failures():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(
            200,
            json={
                "data": {
                    "id": 1,
                    "attempt_id": 2,
                    "question_id": 3,
                    "selected_option": "B",
                    "answered_at": "2026-01-05T09:01:00Z",
                },
                "message": None,
            },
        )

    response = _scripted(handler).record_answer(1, 2, 3, "b")

    assert calls == 2
    assert response.selected_option is OptionLetter.B
    assert response.is_correct is None


def test_reads_give_up_after_configured_attempts():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError) as excinfo:
        _scripted(handler).list_assessments()

    assert calls == 3
    assert excinfo.value.message.startswith("Failed to load assessments")


def test_submit_is_never_retried():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, json={"message": "Try again later"})

    with pytest.raises(GatewayError) as excinfo:
        _scripted(handler).submit_attempt(1, 2, {3: "A"})

    assert calls == 1
    assert excinfo.value.message == "Try again later"


def test_start_attempt_transport_failure_is_not_retried():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError):
        _scripted(handler).start_attempt(1)

    assert calls == 1


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"items": []}),
        httpx.Response(200, json={"data": [{"id": "not-a-question"}]}),
        httpx.Response(200, text="<html>proxy page</html>"),
    ],
)
def test_unexpected_success_bodies_raise_parse_errors(response):
    with pytest.raises(ResponseParseError):
        _scripted(lambda request: response).list_questions(1)


def test_error_without_json_body_uses_generic_message():
    gateway = _scripted(lambda request: httpx.Response(500, text="Internal Server Error"))

    with pytest.raises(GatewayError) as excinfo:
        gateway.list_questions(1)

    assert excinfo.value.message == "Failed to load questions."


def test_session_token_is_sent_as_bearer_header():
    seen: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"data": [], "message": None})

    _scripted(handler).list_questions(1)

    assert seen == [f"Bearer {TEACHER_TOKEN}"]


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ({"message": "Top", "errors": {"title": ["Title is required."]}}, "Title is required."),
        ({"message": "Top", "errors": {}}, "Top"),
        ({"error": "not_found"}, "Fallback"),
        ("plain text", "Fallback"),
        (None, "Fallback"),
    ],
)
def test_flatten_error_message(body, expected):
    assert flatten_error_message(body, "Fallback") == expected


def test_best_effort_list_degrades_to_empty():
    gateway = _scripted(lambda request: httpx.Response(404, json={"message": "Gone", "error": "not_found"}))

    assert best_effort_list(lambda: gateway.list_attempts(1), "attempts") == []


def test_gateway_from_settings_uses_configured_client(settings):
    settings.api_base_url = "http://assessments.internal/api/"
    settings.retry_attempts = 5

    with HttpAssessmentGateway.from_settings(settings, token="abc") as gateway:
        assert str(gateway._client.base_url) == "http://assessments.internal/api/"
        assert gateway._retry_attempts == 5
        assert gateway._session.auth_headers() == {"Authorization": "Bearer abc"}
