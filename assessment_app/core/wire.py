"""JSON wire schemas shared by the API server and the HTTP gateway.

Every successful response body is an envelope ``{"data": ..., "message": ...}``.
The server builds it with :func:`envelope`; the client unwraps it with
:func:`decode_envelope`, which is the only place response shapes are checked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from assessment_app.core.errors import ResponseParseError
from assessment_app.core.models import (
    Assessment,
    AssessmentDetail,
    AssessmentPage,
    AssessmentStatus,
    AssessmentType,
    Attempt,
    AttemptResult,
    AttemptStatus,
    MarksDecision,
    MarksReconciliation,
    OptionLetter,
    Question,
    QuestionScore,
    QuestionView,
    ScoreBreakdown,
    StartedAttempt,
    StudentResponse,
)


class WireModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Outbound (response) schemas ---


class AssessmentOut(WireModel):
    id: int
    lesson_id: int
    course_id: int | None = None
    teacher_id: int | None = None
    title: str
    instructions: str | None = None
    type: AssessmentType
    total_marks: int
    duration_minutes: int | None = None
    status: AssessmentStatus
    created_at: datetime
    updated_at: datetime

    def to_domain(self) -> Assessment:
        return Assessment(**self.model_dump())


class QuestionOut(WireModel):
    id: int
    assessment_id: int
    set_by: int | None = None
    question_text: str
    marks: int
    option_a: str
    option_b: str
    option_c: str | None = None
    option_d: str | None = None
    correct_option: OptionLetter
    created_at: datetime
    updated_at: datetime

    def to_domain(self) -> Question:
        return Question(**self.model_dump())


class QuestionViewOut(WireModel):
    """Question without its answer key."""

    question_id: int
    question_text: str
    question_html: str | None = None
    marks: int
    options: dict[OptionLetter, str]
    options_html: dict[OptionLetter, str] = {}

    def to_domain(self) -> QuestionView:
        return QuestionView(
            question_id=self.question_id,
            question_text=self.question_text,
            marks=self.marks,
            options=dict(self.options),
        )


class AssessmentDetailOut(AssessmentOut):
    questions: list[QuestionOut] = []
    student_questions: list[QuestionViewOut] = []

    @classmethod
    def from_detail(cls, detail: AssessmentDetail) -> AssessmentDetailOut:
        base = AssessmentOut.model_validate(detail.assessment).model_dump()
        return cls(
            **base,
            questions=[QuestionOut.model_validate(q) for q in detail.questions],
            student_questions=[QuestionViewOut.model_validate(v) for v in detail.question_views],
        )

    def to_detail(self) -> AssessmentDetail:
        return AssessmentDetail(
            assessment=AssessmentOut(**self.model_dump(exclude={"questions", "student_questions"})).to_domain(),
            questions=[q.to_domain() for q in self.questions],
            question_views=[v.to_domain() for v in self.student_questions],
        )


class AssessmentPageOut(WireModel):
    items: list[AssessmentOut]
    page: int
    per_page: int
    total: int
    last_page: int

    def to_domain(self) -> AssessmentPage:
        return AssessmentPage(
            items=[item.to_domain() for item in self.items],
            page=self.page,
            per_page=self.per_page,
            total=self.total,
        )


class ReconciliationOut(WireModel):
    assessment_id: int
    computed: int
    stated: int
    question_count: int
    matches: bool
    needs_decision: bool

    def to_domain(self) -> MarksReconciliation:
        return MarksReconciliation(
            assessment_id=self.assessment_id,
            computed=self.computed,
            stated=self.stated,
            question_count=self.question_count,
        )


class AttemptOut(WireModel):
    id: int
    student_id: int
    assessment_id: int
    started_at: datetime
    deadline: datetime | None = None
    submitted_at: datetime | None = None
    status: AttemptStatus
    total_marks_scored: int
    total_marks_possible: int
    score_percentage: float

    def to_domain(self) -> Attempt:
        return Attempt(**self.model_dump())


class StartedAttemptOut(WireModel):
    attempt: AttemptOut
    questions: list[QuestionViewOut]

    def to_domain(self) -> StartedAttempt:
        return StartedAttempt(
            attempt=self.attempt.to_domain(),
            questions=[q.to_domain() for q in self.questions],
        )


class ResponseOut(WireModel):
    id: int
    attempt_id: int
    question_id: int
    selected_option: OptionLetter
    answered_at: datetime
    is_correct: bool | None = None
    marks_awarded: int = 0

    def to_domain(self) -> StudentResponse:
        return StudentResponse(**self.model_dump())


class QuestionScoreOut(WireModel):
    question_id: int
    is_correct: bool
    marks_awarded: int
    selected_option: OptionLetter | None = None


class ScoreBreakdownOut(WireModel):
    per_question: list[QuestionScoreOut]
    total_scored: int
    total_possible: int
    percentage: float
    display_percentage: float

    def to_domain(self) -> ScoreBreakdown:
        return ScoreBreakdown(
            per_question=[QuestionScore(**item.model_dump()) for item in self.per_question],
            total_scored=self.total_scored,
            total_possible=self.total_possible,
            percentage=self.percentage,
        )


class ResultSummaryOut(WireModel):
    display_percentage: float
    passed: bool
    headline: str
    message: str


class AttemptResultOut(WireModel):
    attempt: AttemptOut
    breakdown: ScoreBreakdownOut
    responses: list[ResponseOut]
    summary: ResultSummaryOut | None = None

    def to_domain(self) -> AttemptResult:
        return AttemptResult(
            attempt=self.attempt.to_domain(),
            breakdown=self.breakdown.to_domain(),
            responses=[r.to_domain() for r in self.responses],
        )


# --- Inbound (request) schemas ---
# Every field is optional here; the domain validator reports what is missing.


class AssessmentIn(BaseModel):
    lesson_id: int | None = None
    course_id: int | None = None
    teacher_id: int | None = None
    title: str | None = None
    instructions: str | None = None
    type: str | None = None
    total_marks: int | None = None
    duration_minutes: int | None = None
    status: str | None = None


class QuestionIn(BaseModel):
    assessment_id: int | None = None
    question_text: str | None = None
    marks: int | None = None
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    correct_option: str | None = None


class AnswerIn(BaseModel):
    selected_option: str | None = None


class ResponseIn(BaseModel):
    question_id: int
    selected_option: str | None = None


class SubmitIn(BaseModel):
    attempt_id: int
    responses: list[ResponseIn] = []


class ReconciliationDecisionIn(BaseModel):
    decision: MarksDecision


# --- Envelope ---


def envelope(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Wrap a payload (wire model, list of wire models or plain JSON) in the response envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    return {"data": data, "message": message}


def decode_envelope(payload: Any, schema: Any) -> Any:
    """Unwrap and validate an envelope; ``schema`` is a wire model type or e.g. ``list[QuestionOut]``.

    Raises ``ResponseParseError`` for anything that is not an envelope or whose
    ``data`` does not match the schema.
    """
    if not isinstance(payload, dict) or "data" not in payload:
        raise ResponseParseError("Unexpected response shape: missing 'data' envelope.")
    if schema is None:
        return None
    try:
        return TypeAdapter(schema).validate_python(payload["data"])
    except PydanticValidationError as exc:
        raise ResponseParseError(f"Unexpected response payload: {exc.error_count()} invalid field(s).") from exc
