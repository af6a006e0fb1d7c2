"""Service for storing assessments and their questions."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
import logging
from typing import Any

from assessment_app.constants.assessment_constants import DEFAULT_PAGE_SIZE
from assessment_app.core.errors import NotFoundError, ValidationError
from assessment_app.core.models import (
    Assessment,
    AssessmentPage,
    AssessmentStatus,
    MarksReconciliation,
    Question,
)
from assessment_app.core.validation import (
    ASSESSMENT_FIELDS,
    QUESTION_FIELDS,
    clean_assessment_fields,
    clean_question_fields,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentStore:
    """In-memory repository for assessments and questions.

    Questions are kept in creation order. Deleting an assessment deletes its
    questions with it.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._assessments: dict[int, Assessment] = {}
        self._questions: dict[int, Question] = {}
        self._assessment_counter: int = 0
        self._question_counter: int = 0

    # --- Assessments ---

    def create_assessment(self, data: Mapping[str, Any]) -> Assessment:
        cleaned = clean_assessment_fields(data)
        existing = self.get_assessment_by_lesson(cleaned["lesson_id"])
        if existing is not None:
            raise ValidationError.from_fields(
                {"lesson_id": [f"Lesson {cleaned['lesson_id']} already has an assessment."]}
            )

        now = self._clock()
        assessment = Assessment(
            id=self._next_assessment_id(),
            created_at=now,
            updated_at=now,
            **cleaned,
        )
        self._assessments[assessment.id] = assessment
        logger.info("Created assessment %s for lesson %s", assessment.id, assessment.lesson_id)
        return assessment

    def update_assessment(self, assessment_id: int, data: Mapping[str, Any]) -> Assessment:
        assessment = self.get_assessment(assessment_id)
        current = {name: getattr(assessment, name) for name in ASSESSMENT_FIELDS}
        merged = {**current, **{k: v for k, v in data.items() if k in ASSESSMENT_FIELDS}}
        cleaned = clean_assessment_fields(merged)

        if cleaned["lesson_id"] != assessment.lesson_id:
            other = self.get_assessment_by_lesson(cleaned["lesson_id"])
            if other is not None:
                raise ValidationError.from_fields(
                    {"lesson_id": [f"Lesson {cleaned['lesson_id']} already has an assessment."]}
                )

        if cleaned == current:
            return assessment

        for name, value in cleaned.items():
            setattr(assessment, name, value)
        assessment.updated_at = self._clock()
        return assessment

    def delete_assessment(self, assessment_id: int) -> int:
        """Delete an assessment and its questions; returns the number of questions removed."""
        self.get_assessment(assessment_id)
        question_ids = [q.id for q in self._questions.values() if q.assessment_id == assessment_id]
        for question_id in question_ids:
            del self._questions[question_id]
        del self._assessments[assessment_id]
        logger.info(
            "Deleted assessment %s together with %d question(s)", assessment_id, len(question_ids)
        )
        return len(question_ids)

    def get_assessment(self, assessment_id: int) -> Assessment:
        assessment = self._assessments.get(assessment_id)
        if assessment is None:
            raise NotFoundError(f"Assessment {assessment_id} not found.")
        return assessment

    def get_assessment_by_lesson(self, lesson_id: int) -> Assessment | None:
        """Return the lesson's assessment, or None since most lessons have none."""
        return next((a for a in self._assessments.values() if a.lesson_id == lesson_id), None)

    def list_assessments(
        self,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
        status: AssessmentStatus | None = None,
        teacher_id: int | None = None,
    ) -> AssessmentPage:
        if page < 1:
            raise ValidationError.from_fields({"page": ["Page must be at least 1."]})
        if per_page < 1:
            raise ValidationError.from_fields({"per_page": ["Page size must be at least 1."]})

        matching = [
            a
            for a in sorted(self._assessments.values(), key=lambda a: a.id)
            if (status is None or a.status == status)
            and (teacher_id is None or a.teacher_id == teacher_id)
        ]
        start = (page - 1) * per_page
        return AssessmentPage(
            items=matching[start : start + per_page],
            page=page,
            per_page=per_page,
            total=len(matching),
        )

    # --- Questions ---

    def add_question(self, assessment_id: int, data: Mapping[str, Any]) -> Question:
        self.get_assessment(assessment_id)
        cleaned = clean_question_fields(data)
        cleaned["assessment_id"] = assessment_id

        now = self._clock()
        question = Question(
            id=self._next_question_id(),
            created_at=now,
            updated_at=now,
            **cleaned,
        )
        self._questions[question.id] = question
        return question

    def update_question(self, question_id: int, data: Mapping[str, Any]) -> Question:
        question = self.get_question(question_id)
        current = {name: getattr(question, name) for name in QUESTION_FIELDS}
        merged = {**current, **{k: v for k, v in data.items() if k in QUESTION_FIELDS}}
        # Questions never move between assessments
        merged["assessment_id"] = question.assessment_id
        cleaned = clean_question_fields(merged)

        if cleaned == current:
            return question

        for name, value in cleaned.items():
            setattr(question, name, value)
        question.updated_at = self._clock()
        return question

    def delete_question(self, question_id: int) -> None:
        self.get_question(question_id)
        del self._questions[question_id]

    def get_question(self, question_id: int) -> Question:
        question = self._questions.get(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found.")
        return question

    def list_questions(self, assessment_id: int) -> list[Question]:
        """Return the assessment's questions in creation order."""
        self.get_assessment(assessment_id)
        return sorted(
            (q for q in self._questions.values() if q.assessment_id == assessment_id),
            key=lambda q: q.id,
        )

    def reconcile_total_marks(self, assessment_id: int) -> MarksReconciliation:
        assessment = self.get_assessment(assessment_id)
        questions = self.list_questions(assessment_id)
        return MarksReconciliation(
            assessment_id=assessment_id,
            computed=sum(q.marks for q in questions),
            stated=assessment.total_marks,
            question_count=len(questions),
        )

    def _next_assessment_id(self) -> int:
        self._assessment_counter += 1
        return self._assessment_counter

    def _next_question_id(self) -> int:
        self._question_counter += 1
        return self._question_counter
