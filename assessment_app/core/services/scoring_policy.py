"""Scoring of submitted responses against an assessment's answer key."""

from __future__ import annotations

from collections.abc import Iterable

from assessment_app.core.models import (
    OptionLetter,
    Question,
    QuestionScore,
    ScoreBreakdown,
    StudentResponse,
)


class ScoringPolicy:
    """Binary, single-select scoring with no partial credit.

    Unanswered questions score zero but still count towards the possible
    total. Responses to questions outside ``questions`` are ignored. When the
    same question is answered more than once, the last response wins.
    """

    def score(
        self,
        questions: Iterable[Question],
        responses: Iterable[StudentResponse],
    ) -> ScoreBreakdown:
        question_list = list(questions)
        known_ids = {question.id for question in question_list}

        selected: dict[int, OptionLetter] = {}
        for response in responses:
            if response.question_id in known_ids:
                selected[response.question_id] = response.selected_option

        per_question: list[QuestionScore] = []
        total_scored = 0
        total_possible = 0
        for question in question_list:
            choice = selected.get(question.id)
            is_correct = choice is not None and choice == question.correct_option
            marks_awarded = question.marks if is_correct else 0
            per_question.append(
                QuestionScore(
                    question_id=question.id,
                    is_correct=is_correct,
                    marks_awarded=marks_awarded,
                    selected_option=choice,
                )
            )
            total_scored += marks_awarded
            total_possible += question.marks

        return ScoreBreakdown(
            per_question=per_question,
            total_scored=total_scored,
            total_possible=total_possible,
            percentage=_percentage(total_scored, total_possible),
        )


def _percentage(scored: int, possible: int) -> float:
    if possible == 0:
        return 0.0
    return scored * 100 / possible
