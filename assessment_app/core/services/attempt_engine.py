"""Service for running students' attempts at published assessments."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
import logging
from typing import Any

from assessment_app.core.errors import (
    AlreadyInProgressError,
    AttemptExpiredError,
    InvalidStateError,
    NotFoundError,
    NotPublishedError,
    UnknownQuestionError,
    ValidationError,
)
from assessment_app.core.models import (
    Assessment,
    AssessmentStatus,
    Attempt,
    AttemptResult,
    AttemptStatus,
    OptionLetter,
    Question,
    QuestionView,
    ScoreBreakdown,
    StartedAttempt,
    StudentResponse,
)
from assessment_app.core.services.assessment_store import AssessmentStore, Clock, utc_now
from assessment_app.core.services.scoring_policy import ScoringPolicy
from assessment_app.core.validation import parse_option_letter

logger = logging.getLogger(__name__)

ResponseInput = Mapping[str, Any] | tuple[int, Any]


class AttemptEngine:
    """Owns the attempt state machine: in progress, then graded (terminal).

    Only one attempt per (student, assessment) may be in progress. Timed
    attempts get a deadline; with ``enforce_deadlines`` on, answers after the
    deadline are rejected and a late submission scores only what was recorded
    in time.
    """

    def __init__(
        self,
        store: AssessmentStore,
        scoring_policy: ScoringPolicy | None = None,
        clock: Clock = utc_now,
        enforce_deadlines: bool = True,
    ) -> None:
        self._store = store
        self._scoring = scoring_policy or ScoringPolicy()
        self._clock = clock
        self._enforce_deadlines = enforce_deadlines
        self._attempts: dict[int, Attempt] = {}
        self._responses: dict[int, dict[int, StudentResponse]] = {}
        self._breakdowns: dict[int, ScoreBreakdown] = {}
        self._attempt_counter: int = 0
        self._response_counter: int = 0

    def start_attempt(self, student_id: int, assessment_id: int) -> StartedAttempt:
        assessment = self._store.get_assessment(assessment_id)
        if assessment.status is not AssessmentStatus.PUBLISHED:
            raise NotPublishedError(f"Assessment {assessment_id} is not published.")

        now = self._clock()
        active = self._find_active_attempt(student_id, assessment_id)
        if active is not None:
            if self._enforce_deadlines and active.is_overdue(now):
                logger.warning(
                    "Auto-submitting overdue attempt %s before starting a new one", active.id
                )
                self._finalize(active, late_responses=[])
            else:
                raise AlreadyInProgressError(
                    f"Student {student_id} already has attempt {active.id} in progress.",
                    attempt_id=active.id,
                )

        attempt = Attempt(
            id=self._next_attempt_id(),
            student_id=student_id,
            assessment_id=assessment_id,
            started_at=now,
            deadline=_deadline_for(assessment, now),
        )
        self._attempts[attempt.id] = attempt
        self._responses[attempt.id] = {}
        logger.info(
            "Student %s started attempt %s on assessment %s", student_id, attempt.id, assessment_id
        )

        questions = self._store.list_questions(assessment_id)
        return StartedAttempt(
            attempt=attempt,
            questions=[QuestionView.from_question(q) for q in questions],
        )

    def record_answer(self, attempt_id: int, question_id: int, selected_option: Any) -> StudentResponse:
        """Record or overwrite the answer to one question."""
        attempt = self.get_attempt(attempt_id)
        self._require_in_progress(attempt)
        if self._enforce_deadlines and attempt.is_overdue(self._clock()):
            raise AttemptExpiredError(f"Attempt {attempt_id} passed its deadline.")

        question = self._question_for(attempt, question_id)
        letter = _checked_option(question, selected_option)
        return self._upsert_response(attempt, question.id, letter)

    def submit_attempt(
        self,
        attempt_id: int,
        responses: Iterable[ResponseInput] = (),
    ) -> AttemptResult:
        """Merge late responses, score the attempt and freeze it.

        All late responses are validated before anything is stored, so a bad
        entry rejects the whole submission.
        """
        attempt = self.get_attempt(attempt_id)
        self._require_in_progress(attempt)

        late: list[tuple[int, OptionLetter]] = []
        for entry in responses:
            question_id, raw_option = _unpack_response(entry)
            question = self._question_for(attempt, question_id)
            late.append((question.id, _checked_option(question, raw_option)))

        if late and self._enforce_deadlines and attempt.is_overdue(self._clock()):
            logger.warning(
                "Dropping %d response(s) submitted after the deadline of attempt %s",
                len(late),
                attempt.id,
            )
            late = []

        return self._finalize(attempt, late)

    def get_attempt(self, attempt_id: int) -> Attempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise NotFoundError(f"Attempt {attempt_id} not found.")
        return attempt

    def list_attempts(self, assessment_id: int, student_id: int | None = None) -> list[Attempt]:
        return [
            attempt
            for attempt in sorted(self._attempts.values(), key=lambda a: a.id)
            if attempt.assessment_id == assessment_id
            and (student_id is None or attempt.student_id == student_id)
        ]

    def get_responses(self, attempt_id: int) -> list[StudentResponse]:
        self.get_attempt(attempt_id)
        return sorted(self._responses[attempt_id].values(), key=lambda r: r.question_id)

    def get_results(self, attempt_id: int) -> AttemptResult:
        """Return the scored breakdown of a finished attempt."""
        attempt = self.get_attempt(attempt_id)
        if not attempt.status.is_terminal:
            raise InvalidStateError(f"Attempt {attempt_id} has not been submitted yet.")
        # Snapshot taken at grading time; later question edits do not rescore
        breakdown = self._breakdowns[attempt_id]
        return AttemptResult(
            attempt=attempt,
            breakdown=breakdown,
            responses=self.get_responses(attempt_id),
        )

    def _finalize(
        self,
        attempt: Attempt,
        late_responses: list[tuple[int, OptionLetter]],
    ) -> AttemptResult:
        for question_id, letter in late_responses:
            self._upsert_response(attempt, question_id, letter)

        questions = self._attempt_questions(attempt)
        responses = self.get_responses(attempt.id)
        breakdown = self._scoring.score(questions, responses)

        scores = {item.question_id: item for item in breakdown.per_question}
        for response in responses:
            item = scores.get(response.question_id)
            response.is_correct = item.is_correct if item else False
            response.marks_awarded = item.marks_awarded if item else 0

        attempt.status = AttemptStatus.GRADED
        attempt.submitted_at = self._clock()
        attempt.total_marks_scored = breakdown.total_scored
        attempt.total_marks_possible = breakdown.total_possible
        attempt.score_percentage = breakdown.percentage
        self._breakdowns[attempt.id] = breakdown
        logger.info(
            "Attempt %s graded: %d/%d",
            attempt.id,
            breakdown.total_scored,
            breakdown.total_possible,
        )
        return AttemptResult(attempt=attempt, breakdown=breakdown, responses=responses)

    def _upsert_response(self, attempt: Attempt, question_id: int, letter: OptionLetter) -> StudentResponse:
        responses = self._responses[attempt.id]
        existing = responses.get(question_id)
        now = self._clock()
        if existing is not None:
            existing.selected_option = letter
            existing.answered_at = now
            return existing

        response = StudentResponse(
            id=self._next_response_id(),
            attempt_id=attempt.id,
            question_id=question_id,
            selected_option=letter,
            answered_at=now,
        )
        responses[question_id] = response
        return response

    def _attempt_questions(self, attempt: Attempt) -> list[Question]:
        return self._store.list_questions(attempt.assessment_id)

    def _question_for(self, attempt: Attempt, question_id: Any) -> Question:
        try:
            question = self._store.get_question(int(question_id))
        except (NotFoundError, TypeError, ValueError):
            question = None
        if question is None or question.assessment_id != attempt.assessment_id:
            raise UnknownQuestionError(
                f"Question {question_id} is not part of assessment {attempt.assessment_id}."
            )
        return question

    def _find_active_attempt(self, student_id: int, assessment_id: int) -> Attempt | None:
        return next(
            (
                a
                for a in self._attempts.values()
                if a.student_id == student_id
                and a.assessment_id == assessment_id
                and a.status is AttemptStatus.IN_PROGRESS
            ),
            None,
        )

    @staticmethod
    def _require_in_progress(attempt: Attempt) -> None:
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Attempt {attempt.id} is {attempt.status.value}; it can no longer change."
            )

    def _next_attempt_id(self) -> int:
        self._attempt_counter += 1
        return self._attempt_counter

    def _next_response_id(self) -> int:
        self._response_counter += 1
        return self._response_counter


def _deadline_for(assessment: Assessment, started_at: datetime) -> datetime | None:
    if assessment.duration_minutes is None:
        return None
    return started_at + timedelta(minutes=assessment.duration_minutes)


def _checked_option(question: Question, raw_option: Any) -> OptionLetter:
    letter = parse_option_letter(raw_option)
    if not question.option_text(letter):
        raise ValidationError.from_fields(
            {"selected_option": [f"Option {letter.value} is not available for question {question.id}."]}
        )
    return letter


def _unpack_response(entry: ResponseInput) -> tuple[Any, Any]:
    if isinstance(entry, Mapping):
        return entry.get("question_id"), entry.get("selected_option")
    question_id, selected_option = entry
    return question_id, selected_option
