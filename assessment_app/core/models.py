"""Domain models for lesson assessments, attempts and scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    PARENT = "parent"
    ADMIN = "admin"


class AssessmentType(str, Enum):
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    EXAM = "exam"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS


class OptionLetter(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class MarksDecision(str, Enum):
    """Operator choice when the stated total disagrees with the question marks."""

    KEEP_STATED = "keep_stated"
    ADOPT_COMPUTED = "adopt_computed"


@dataclass(slots=True)
class Assessment:
    """Assessment attached to exactly one lesson."""

    id: int
    lesson_id: int
    title: str
    total_marks: int
    created_at: datetime
    updated_at: datetime
    type: AssessmentType = AssessmentType.QUIZ
    status: AssessmentStatus = AssessmentStatus.DRAFT
    instructions: str | None = None
    duration_minutes: int | None = None  # None means untimed
    teacher_id: int | None = None
    course_id: int | None = None

    @property
    def is_timed(self) -> bool:
        return self.duration_minutes is not None


@dataclass(slots=True)
class Question:
    """Multiple-choice question with two required and two optional options."""

    id: int
    assessment_id: int
    question_text: str
    option_a: str
    option_b: str
    correct_option: OptionLetter
    created_at: datetime
    updated_at: datetime
    marks: int = 1
    option_c: str | None = None
    option_d: str | None = None
    set_by: int | None = None

    def option_text(self, letter: OptionLetter) -> str | None:
        return {
            OptionLetter.A: self.option_a,
            OptionLetter.B: self.option_b,
            OptionLetter.C: self.option_c,
            OptionLetter.D: self.option_d,
        }[letter]

    def populated_options(self) -> dict[OptionLetter, str]:
        """Return the non-empty option slots keyed by letter, in display order."""
        options: dict[OptionLetter, str] = {}
        for letter in OptionLetter:
            text = self.option_text(letter)
            if text:
                options[letter] = text
        return options


@dataclass(slots=True)
class QuestionView:
    """A question as shown to a student before submission (no answer key)."""

    question_id: int
    question_text: str
    marks: int
    options: dict[OptionLetter, str]

    @classmethod
    def from_question(cls, question: Question) -> QuestionView:
        return cls(
            question_id=question.id,
            question_text=question.question_text,
            marks=question.marks,
            options=question.populated_options(),
        )


@dataclass(slots=True)
class Attempt:
    """One student's attempt at one assessment."""

    id: int
    student_id: int
    assessment_id: int
    started_at: datetime
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    deadline: datetime | None = None
    submitted_at: datetime | None = None
    total_marks_scored: int = 0
    total_marks_possible: int = 0
    score_percentage: float = 0.0

    def is_overdue(self, now: datetime) -> bool:
        return self.deadline is not None and now > self.deadline


@dataclass(slots=True)
class StudentResponse:
    """Selected option for one question within an attempt."""

    id: int
    attempt_id: int
    question_id: int
    selected_option: OptionLetter
    answered_at: datetime
    is_correct: bool | None = None  # Filled in at submission
    marks_awarded: int = 0


@dataclass(slots=True)
class MarksReconciliation:
    """Comparison between an assessment's stated total and its question marks."""

    assessment_id: int
    computed: int
    stated: int
    question_count: int

    @property
    def matches(self) -> bool:
        return self.computed == self.stated

    @property
    def needs_decision(self) -> bool:
        return not self.matches and self.question_count > 0


@dataclass(slots=True)
class QuestionScore:
    question_id: int
    is_correct: bool
    marks_awarded: int
    selected_option: OptionLetter | None = None


@dataclass(slots=True)
class ScoreBreakdown:
    """Result of scoring a full response set against an answer key."""

    per_question: list[QuestionScore]
    total_scored: int
    total_possible: int
    percentage: float

    @property
    def display_percentage(self) -> float:
        return round(self.percentage, 1)


@dataclass(slots=True)
class StartedAttempt:
    attempt: Attempt
    questions: list[QuestionView]


@dataclass(slots=True)
class AttemptResult:
    attempt: Attempt
    breakdown: ScoreBreakdown
    responses: list[StudentResponse] = field(default_factory=list)


@dataclass(slots=True)
class AssessmentDetail:
    """Assessment together with its questions (full or masked)."""

    assessment: Assessment
    questions: list[Question] = field(default_factory=list)
    question_views: list[QuestionView] = field(default_factory=list)


@dataclass(slots=True)
class AssessmentPage:
    items: list[Assessment]
    page: int
    per_page: int
    total: int

    @property
    def last_page(self) -> int:
        if self.total == 0:
            return 1
        return -(-self.total // self.per_page)
