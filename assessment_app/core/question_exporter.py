"""Utilities for exporting questions to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path

from assessment_app.core.models import OptionLetter, Question
from assessment_app.core.question_importer import CONTINUATION_ESCAPE


def save_questions_to_file(file_path: Path, questions: list[Question]) -> None:
    """Persist the provided questions to disk in the text import format."""

    if not questions:
        raise ValueError("Cannot export an assessment without questions.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_questions(questions), encoding="utf-8")


def serialize_questions(questions: list[Question]) -> str:
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    lines = _marked_lines("Q", question.question_text)

    for letter, option_text in question.populated_options().items():
        lines.extend(_marked_lines(letter.value, option_text))

    lines.append(f"CORRECT: {OptionLetter(question.correct_option).value}")
    lines.append(f"MARKS: {question.marks}")
    return "\n".join(lines)


def _marked_lines(marker: str, text: str) -> list[str]:
    # Continuation lines are escaped so blank lines, indentation and
    # marker-like text survive a re-import unchanged.
    first, *rest = text.splitlines() or [text]
    return [f"{marker}: {first}", *(f"{CONTINUATION_ESCAPE}{line}" for line in rest)]
