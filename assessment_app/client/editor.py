"""Form-state logic behind the assessment authoring screen.

The editor holds the unsaved form fields and the question list for one
lesson and talks to the backend only through an ``AssessmentGateway``.
Whenever the stated total marks disagree with the sum of the question marks
the caller's ``decide`` callback chooses between keeping the stated total and
adopting the computed one; this runs before a save and before leaving.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any

from assessment_app.client.gateway import AssessmentGateway
from assessment_app.core.errors import InvalidStateError
from assessment_app.core.models import (
    Assessment,
    AssessmentStatus,
    AssessmentType,
    MarksDecision,
    MarksReconciliation,
    Question,
)
from assessment_app.core.validation import coerce_int, clean_assessment_fields

logger = logging.getLogger(__name__)

DecisionCallback = Callable[[MarksReconciliation], MarksDecision]

EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "instructions",
    "type",
    "total_marks",
    "duration_minutes",
    "status",
)

SAVE_FIRST_MESSAGE = "Please save the assessment first."


class AssessmentEditor:
    """Authoring state for the single assessment attached to a lesson."""

    def __init__(
        self,
        gateway: AssessmentGateway,
        lesson_id: int,
        course_id: int | None = None,
    ) -> None:
        self._gateway = gateway
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.assessment: Assessment | None = None
        self.questions: list[Question] = []
        self.fields: dict[str, Any] = {
            "title": "",
            "instructions": "",
            "type": AssessmentType.QUIZ.value,
            "total_marks": "",
            "duration_minutes": "",
            "status": AssessmentStatus.DRAFT.value,
        }

    @classmethod
    def for_lesson(
        cls, gateway: AssessmentGateway, lesson_id: int, course_id: int | None = None
    ) -> AssessmentEditor:
        """Open the editor on the lesson's existing assessment, or a blank form."""
        editor = cls(gateway, lesson_id, course_id)
        detail = gateway.get_assessment_by_lesson(lesson_id)
        if detail is not None:
            editor._load(detail.assessment, detail.questions)
        return editor

    @property
    def is_saved(self) -> bool:
        return self.assessment is not None

    def set_field(self, name: str, value: Any) -> None:
        if name not in EDITABLE_FIELDS:
            raise KeyError(f"Unknown assessment field: {name}")
        self.fields[name] = value

    def computed_total_marks(self) -> int:
        return sum(question.marks for question in self.questions)

    def reconciliation(self) -> MarksReconciliation:
        """Compare the form's stated total with the questions currently listed."""
        return MarksReconciliation(
            assessment_id=self.assessment.id if self.assessment else 0,
            computed=self.computed_total_marks(),
            stated=coerce_int(self.fields.get("total_marks")) or 0,
            question_count=len(self.questions),
        )

    def save(self, decide: DecisionCallback) -> Assessment:
        """Validate the form, settle any total-marks mismatch, then create or update."""
        cleaned = clean_assessment_fields(self._form_payload())
        if self._apply_decision(decide):
            cleaned["total_marks"] = self.computed_total_marks()

        if self.assessment is None:
            saved = self._gateway.create_assessment(cleaned)
            logger.info("Created assessment %s for lesson %s", saved.id, self.lesson_id)
        else:
            update = {key: cleaned[key] for key in EDITABLE_FIELDS}
            saved = self._gateway.update_assessment(self.assessment.id, update)
        self._load(saved, self.questions)
        return saved

    def close(self, decide: DecisionCallback) -> Assessment | None:
        """Settle a total-marks mismatch before leaving the editor."""
        if self.assessment is None:
            return None
        if self._apply_decision(decide):
            self.assessment = self._gateway.update_assessment(
                self.assessment.id, {"total_marks": self.computed_total_marks()}
            )
            self.fields["total_marks"] = self.assessment.total_marks
        return self.assessment

    # --- Questions ---

    def add_question(self, data: Mapping[str, Any]) -> Question:
        assessment = self._require_saved()
        question = self._gateway.create_question(assessment.id, data)
        self.questions.append(question)
        return question

    def update_question(self, question_id: int, data: Mapping[str, Any]) -> Question:
        self._require_saved()
        question = self._gateway.update_question(question_id, data)
        self.questions = [question if q.id == question_id else q for q in self.questions]
        return question

    def delete_question(self, question_id: int) -> None:
        self._require_saved()
        self._gateway.delete_question(question_id)
        self.questions = [q for q in self.questions if q.id != question_id]

    def refresh_questions(self) -> list[Question]:
        assessment = self._require_saved()
        self.questions = self._gateway.list_questions(assessment.id)
        return self.questions

    # --- Internal ---

    def _apply_decision(self, decide: DecisionCallback) -> bool:
        """Ask ``decide`` when totals disagree; True means adopt the computed total."""
        reconciliation = self.reconciliation()
        if not reconciliation.needs_decision:
            return False
        decision = MarksDecision(decide(reconciliation))
        if decision is MarksDecision.ADOPT_COMPUTED:
            self.fields["total_marks"] = reconciliation.computed
            return True
        return False

    def _form_payload(self) -> dict[str, Any]:
        payload = {key: self.fields.get(key) for key in EDITABLE_FIELDS}
        payload["lesson_id"] = self.lesson_id
        payload["course_id"] = self.course_id
        if self.assessment is not None:
            payload["teacher_id"] = self.assessment.teacher_id
        return payload

    def _require_saved(self) -> Assessment:
        if self.assessment is None:
            raise InvalidStateError(SAVE_FIRST_MESSAGE)
        return self.assessment

    def _load(self, assessment: Assessment, questions: list[Question]) -> None:
        self.assessment = assessment
        self.course_id = assessment.course_id
        self.questions = list(questions)
        self.fields = {
            "title": assessment.title,
            "instructions": assessment.instructions or "",
            "type": assessment.type.value,
            "total_marks": assessment.total_marks,
            "duration_minutes": assessment.duration_minutes or "",
            "status": assessment.status.value,
        }
