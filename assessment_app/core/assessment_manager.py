"""Business logic shared by the API server: assessments, questions and attempts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from threading import Lock
from typing import Any

from assessment_app.constants.assessment_constants import DEFAULT_PAGE_SIZE
from assessment_app.core.errors import ValidationError
from assessment_app.core.models import (
    Assessment,
    AssessmentDetail,
    AssessmentPage,
    AssessmentStatus,
    Attempt,
    AttemptResult,
    MarksDecision,
    MarksReconciliation,
    Question,
    QuestionView,
    StartedAttempt,
    StudentResponse,
)
from assessment_app.core.question_exporter import save_questions_to_file
from assessment_app.core.question_importer import load_questions_from_file
from assessment_app.core.services.assessment_store import AssessmentStore, Clock, utc_now
from assessment_app.core.services.attempt_engine import AttemptEngine, ResponseInput
from assessment_app.core.services.scoring_policy import ScoringPolicy
from assessment_app.core.validation import clean_question_fields


class AssessmentManager:
    """Facade over AssessmentStore and AttemptEngine.

    Every call runs under one lock, so question edits and mark-total
    reconciliation never interleave.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        enforce_deadlines: bool = True,
        scoring_policy: ScoringPolicy | None = None,
    ) -> None:
        self._lock = Lock()
        self._store = AssessmentStore(clock=clock)
        self._engine = AttemptEngine(
            self._store,
            scoring_policy=scoring_policy,
            clock=clock,
            enforce_deadlines=enforce_deadlines,
        )

    # --- Assessment Store Delegation ---

    def create_assessment(self, data: Mapping[str, Any]) -> Assessment:
        with self._lock:
            return self._store.create_assessment(data)

    def update_assessment(self, assessment_id: int, data: Mapping[str, Any]) -> Assessment:
        with self._lock:
            return self._store.update_assessment(assessment_id, data)

    def delete_assessment(self, assessment_id: int) -> int:
        with self._lock:
            return self._store.delete_assessment(assessment_id)

    def get_assessment(self, assessment_id: int) -> Assessment:
        with self._lock:
            return self._store.get_assessment(assessment_id)

    def get_assessment_detail(self, assessment_id: int, masked: bool = False) -> AssessmentDetail:
        with self._lock:
            assessment = self._store.get_assessment(assessment_id)
            return self._detail(assessment, masked)

    def get_assessment_by_lesson(self, lesson_id: int, masked: bool = False) -> AssessmentDetail | None:
        with self._lock:
            assessment = self._store.get_assessment_by_lesson(lesson_id)
            if assessment is None:
                return None
            return self._detail(assessment, masked)

    def list_assessments(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
        status: AssessmentStatus | None = None,
        teacher_id: int | None = None,
    ) -> AssessmentPage:
        with self._lock:
            return self._store.list_assessments(page, per_page, status=status, teacher_id=teacher_id)

    def add_question(self, assessment_id: int, data: Mapping[str, Any]) -> Question:
        with self._lock:
            return self._store.add_question(assessment_id, data)

    def update_question(self, question_id: int, data: Mapping[str, Any]) -> Question:
        with self._lock:
            return self._store.update_question(question_id, data)

    def delete_question(self, question_id: int) -> None:
        with self._lock:
            self._store.delete_question(question_id)

    def get_question(self, question_id: int) -> Question:
        with self._lock:
            return self._store.get_question(question_id)

    def list_questions(self, assessment_id: int) -> list[Question]:
        with self._lock:
            return self._store.list_questions(assessment_id)

    def reconcile_total_marks(self, assessment_id: int) -> MarksReconciliation:
        with self._lock:
            return self._store.reconcile_total_marks(assessment_id)

    def resolve_total_marks(self, assessment_id: int, decision: MarksDecision) -> Assessment:
        """Apply the operator's choice between the stated and the computed total."""
        with self._lock:
            reconciliation = self._store.reconcile_total_marks(assessment_id)
            if decision is MarksDecision.ADOPT_COMPUTED and not reconciliation.matches:
                return self._store.update_assessment(
                    assessment_id, {"total_marks": reconciliation.computed}
                )
            return self._store.get_assessment(assessment_id)

    # --- Question Files ---

    def import_questions(self, assessment_id: int, file_path: Path, set_by: int | None = None) -> list[Question]:
        """Add every question in the file, or none of them if any is invalid."""
        imported = load_questions_from_file(file_path)
        with self._lock:
            self._store.get_assessment(assessment_id)
            for number, data in enumerate(imported.questions, start=1):
                try:
                    clean_question_fields(data)
                except ValidationError as exc:
                    raise ValidationError(f"Question {number}: {exc.message}", exc.field_errors) from exc
            return [
                self._store.add_question(assessment_id, {**data, "set_by": set_by})
                for data in imported.questions
            ]

    def export_questions(self, assessment_id: int, file_path: Path) -> int:
        with self._lock:
            questions = self._store.list_questions(assessment_id)
        save_questions_to_file(file_path, questions)
        return len(questions)

    # --- Attempt Engine Delegation ---

    def start_attempt(self, student_id: int, assessment_id: int) -> StartedAttempt:
        with self._lock:
            return self._engine.start_attempt(student_id, assessment_id)

    def record_answer(self, attempt_id: int, question_id: int, selected_option: Any) -> StudentResponse:
        with self._lock:
            return self._engine.record_answer(attempt_id, question_id, selected_option)

    def submit_attempt(self, attempt_id: int, responses: Iterable[ResponseInput] = ()) -> AttemptResult:
        with self._lock:
            return self._engine.submit_attempt(attempt_id, responses)

    def get_attempt(self, attempt_id: int) -> Attempt:
        with self._lock:
            return self._engine.get_attempt(attempt_id)

    def list_attempts(self, assessment_id: int, student_id: int | None = None) -> list[Attempt]:
        with self._lock:
            self._store.get_assessment(assessment_id)
            return self._engine.list_attempts(assessment_id, student_id=student_id)

    def get_results(self, attempt_id: int) -> AttemptResult:
        with self._lock:
            return self._engine.get_results(attempt_id)

    def _detail(self, assessment: Assessment, masked: bool) -> AssessmentDetail:
        questions = self._store.list_questions(assessment.id)
        if masked:
            return AssessmentDetail(
                assessment=assessment,
                question_views=[QuestionView.from_question(q) for q in questions],
            )
        return AssessmentDetail(assessment=assessment, questions=questions)
