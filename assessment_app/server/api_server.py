"""FastAPI server that exposes assessment authoring and attempt endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from assessment_app.config.settings import Settings, get_settings
from assessment_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.errors import AssessmentError, NotFoundError, ValidationError
from assessment_app.core.models import (
    Assessment,
    AssessmentDetail,
    AssessmentStatus,
    Attempt,
    AttemptResult,
    QuestionView,
    Role,
)
from assessment_app.core.result_summary import summarize_result
from assessment_app.core.text_renderer import renderer
from assessment_app.core.wire import (
    AnswerIn,
    AssessmentDetailOut,
    AssessmentIn,
    AssessmentOut,
    AssessmentPageOut,
    AttemptOut,
    AttemptResultOut,
    QuestionIn,
    QuestionOut,
    QuestionViewOut,
    ReconciliationDecisionIn,
    ReconciliationOut,
    ResponseOut,
    ResultSummaryOut,
    StartedAttemptOut,
    SubmitIn,
    envelope,
)
from assessment_app.server.auth import (
    Principal,
    TokenRegistry,
    can_view_attempt,
    require_author,
    require_owner,
    require_student,
)

logger = logging.getLogger(__name__)

_IGNORED_LOCATION_PARTS = {"body", "query", "path", "header"}


def _student_view(view: QuestionView) -> QuestionViewOut:
    return QuestionViewOut(
        question_id=view.question_id,
        question_text=view.question_text,
        question_html=renderer.render_question(view.question_text),
        marks=view.marks,
        options=view.options,
        options_html=renderer.render_options(view.options),
    )


def _detail_out(detail: AssessmentDetail) -> AssessmentDetailOut:
    out = AssessmentDetailOut.from_detail(detail)
    out.student_questions = [_student_view(view) for view in detail.question_views]
    return out


def _request_field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        parts = [str(part) for part in error.get("loc", ()) if part not in _IGNORED_LOCATION_PARTS]
        field_name = ".".join(parts) or "body"
        field_errors.setdefault(field_name, []).append(error.get("msg", "Invalid value."))
    return field_errors


def create_api_app(
    manager: AssessmentManager,
    settings: Settings | None = None,
    tokens: TokenRegistry | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to the provided assessment manager."""
    settings = settings or get_settings()
    tokens = tokens or TokenRegistry(settings.api_tokens)
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    router = APIRouter(prefix=settings.api_prefix.rstrip("/"))

    def current_principal(authorization: str | None = Header(default=None)) -> Principal:
        return tokens.resolve(authorization)

    @app.exception_handler(AssessmentError)
    def handle_assessment_error(request: Request, exc: AssessmentError) -> JSONResponse:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError.from_fields(_request_field_errors(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    def visible_assessment(principal: Principal, assessment: Assessment) -> None:
        if principal.sees_published_only:
            if assessment.status is not AssessmentStatus.PUBLISHED:
                raise NotFoundError(f"Assessment {assessment.id} not found.")
        else:
            require_owner(principal, assessment)

    def student_attempt(principal: Principal, assessment_id: int, attempt_id: int) -> Attempt:
        require_student(principal)
        attempt = manager.get_attempt(attempt_id)
        if attempt.assessment_id != assessment_id or attempt.student_id != principal.user_id:
            raise NotFoundError(f"Attempt {attempt_id} not found.")
        return attempt

    def result_out(result: AttemptResult) -> AttemptResultOut:
        out = AttemptResultOut.model_validate(result)
        out.summary = ResultSummaryOut.model_validate(
            summarize_result(result.breakdown, settings.pass_percentage)
        )
        return out

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # --- Assessments ---

    @router.get("/assessments")
    def list_assessments(
        page: int = Query(default=1, ge=1),
        per_page: int | None = Query(default=None, ge=1),
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        size = min(per_page or settings.default_page_size, settings.max_page_size)
        if principal.sees_published_only:
            result = manager.list_assessments(page, size, status=AssessmentStatus.PUBLISHED)
        elif principal.is_admin:
            result = manager.list_assessments(page, size)
        else:
            result = manager.list_assessments(page, size, teacher_id=principal.user_id)
        return envelope(AssessmentPageOut.model_validate(result))

    @router.get("/assessments/{assessment_id}")
    def get_assessment(
        assessment_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        assessment = manager.get_assessment(assessment_id)
        visible_assessment(principal, assessment)
        detail = manager.get_assessment_detail(assessment_id, masked=principal.sees_published_only)
        return envelope(_detail_out(detail))

    @router.get("/lessons/{lesson_id}/assessment")
    def get_lesson_assessment(
        lesson_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        detail = manager.get_assessment_by_lesson(lesson_id, masked=principal.sees_published_only)
        if detail is None:
            raise NotFoundError(f"Lesson {lesson_id} has no assessment.")
        visible_assessment(principal, detail.assessment)
        return envelope(_detail_out(detail))

    @router.post("/assessments", status_code=201)
    def create_assessment(
        payload: AssessmentIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_author(principal)
        data = payload.model_dump(exclude_unset=True)
        if not principal.is_admin or data.get("teacher_id") is None:
            data["teacher_id"] = principal.user_id
        assessment = manager.create_assessment(data)
        return envelope(AssessmentOut.model_validate(assessment), "Assessment created successfully")

    @router.put("/assessments/{assessment_id}")
    def update_assessment(
        assessment_id: int,
        payload: AssessmentIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_owner(principal, manager.get_assessment(assessment_id))
        data = payload.model_dump(exclude_unset=True)
        if not principal.is_admin:
            data.pop("teacher_id", None)
        assessment = manager.update_assessment(assessment_id, data)
        return envelope(AssessmentOut.model_validate(assessment), "Assessment updated successfully")

    @router.delete("/assessments/{assessment_id}")
    def delete_assessment(
        assessment_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_owner(principal, manager.get_assessment(assessment_id))
        removed = manager.delete_assessment(assessment_id)
        return envelope({"deleted_questions": removed}, "Assessment deleted successfully")

    @router.get("/assessments/{assessment_id}/marks-reconciliation")
    def get_reconciliation(
        assessment_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_owner(principal, manager.get_assessment(assessment_id))
        return envelope(ReconciliationOut.model_validate(manager.reconcile_total_marks(assessment_id)))

    @router.post("/assessments/{assessment_id}/marks-reconciliation")
    def resolve_reconciliation(
        assessment_id: int,
        payload: ReconciliationDecisionIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_owner(principal, manager.get_assessment(assessment_id))
        assessment = manager.resolve_total_marks(assessment_id, payload.decision)
        return envelope(AssessmentOut.model_validate(assessment))

    # --- Questions ---

    @router.get("/questions")
    def list_questions(
        assessment_id: int = Query(...),
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_owner(principal, manager.get_assessment(assessment_id))
        questions = manager.list_questions(assessment_id)
        return envelope([QuestionOut.model_validate(q) for q in questions])

    @router.post("/questions", status_code=201)
    def create_question(
        payload: QuestionIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_author(principal)
        if payload.assessment_id is None:
            raise ValidationError.from_fields({"assessment_id": ["The assessment_id field is required."]})
        require_owner(principal, manager.get_assessment(payload.assessment_id))
        data = payload.model_dump(exclude_unset=True)
        data["set_by"] = principal.user_id
        question = manager.add_question(payload.assessment_id, data)
        return envelope(QuestionOut.model_validate(question), "Question added successfully")

    @router.put("/questions/{question_id}")
    def update_question(
        question_id: int,
        payload: QuestionIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        question = manager.get_question(question_id)
        require_owner(principal, manager.get_assessment(question.assessment_id))
        question = manager.update_question(question_id, payload.model_dump(exclude_unset=True))
        return envelope(QuestionOut.model_validate(question), "Question updated successfully")

    @router.delete("/questions/{question_id}")
    def delete_question(
        question_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        question = manager.get_question(question_id)
        require_owner(principal, manager.get_assessment(question.assessment_id))
        manager.delete_question(question_id)
        return envelope(None, "Question deleted successfully")

    # --- Attempts ---

    @router.post("/assessments/{assessment_id}/attempt/start", status_code=201)
    def start_attempt(
        assessment_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        require_student(principal)
        started = manager.start_attempt(principal.user_id, assessment_id)
        out = StartedAttemptOut(
            attempt=AttemptOut.model_validate(started.attempt),
            questions=[_student_view(view) for view in started.questions],
        )
        return envelope(out)

    @router.put("/assessments/{assessment_id}/attempts/{attempt_id}/responses/{question_id}")
    def record_answer(
        assessment_id: int,
        attempt_id: int,
        question_id: int,
        payload: AnswerIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        student_attempt(principal, assessment_id, attempt_id)
        response = manager.record_answer(attempt_id, question_id, payload.selected_option)
        return envelope(ResponseOut.model_validate(response))

    @router.post("/assessments/{assessment_id}/submit")
    def submit_attempt(
        assessment_id: int,
        payload: SubmitIn,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        student_attempt(principal, assessment_id, payload.attempt_id)
        result = manager.submit_attempt(
            payload.attempt_id,
            [response.model_dump() for response in payload.responses],
        )
        return envelope(result_out(result), "Assessment submitted successfully")

    @router.get("/assessments/{assessment_id}/attempts")
    def list_attempts(
        assessment_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        if principal.role is Role.STUDENT:
            attempts = manager.list_attempts(assessment_id, student_id=principal.user_id)
        else:
            require_owner(principal, manager.get_assessment(assessment_id))
            attempts = manager.list_attempts(assessment_id)
        return envelope([AttemptOut.model_validate(a) for a in attempts])

    @router.get("/assessments/{assessment_id}/attempts/{attempt_id}/results")
    def get_attempt_results(
        assessment_id: int,
        attempt_id: int,
        principal: Principal = Depends(current_principal),
    ) -> dict[str, object]:
        attempt = manager.get_attempt(attempt_id)
        if attempt.assessment_id != assessment_id:
            raise NotFoundError(f"Attempt {attempt_id} not found.")
        try:
            assessment = manager.get_assessment(assessment_id)
        except NotFoundError:
            assessment = None
        if not can_view_attempt(principal, attempt, assessment):
            raise NotFoundError(f"Attempt {attempt_id} not found.")
        return envelope(result_out(manager.get_results(attempt_id)))

    app.include_router(router)
    return app


def run_api_server(manager: AssessmentManager, settings: Settings | None = None) -> None:
    """Serve the API with uvicorn until interrupted."""
    settings = settings or get_settings()
    app = create_api_app(manager, settings=settings)
    config = uvicorn.Config(
        app=app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    server.run()
