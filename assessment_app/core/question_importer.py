"""Utilities for importing assessment questions from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text     (optional)
    D: Fourth option text    (optional)
    CORRECT: A|B|C|D
    MARKS: positive integer  (optional, defaults to 1)

A line starting with a backslash continues the current section verbatim: the
backslash is dropped and the rest is kept as written, so blank lines,
indentation and text such as "A: ..." can appear inside question or option
text. Exported files write every continuation line this way.

Example:

    Q: Which organelle produces most of a cell's ATP?
    A: Nucleus
    B: Mitochondrion
    C: Ribosome
    CORRECT: B
    MARKS: 2

The importer only parses; validation of the resulting fields is left to the
store so imported and hand-entered questions follow the same rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from assessment_app.constants.assessment_constants import OPTION_LETTERS, REQUIRED_OPTION_LETTERS
from assessment_app.core.errors import QuestionImportError

CONTINUATION_ESCAPE = "\\"


@dataclass(slots=True)
class ImportedQuestionSet:
    """Container for question data parsed from a file."""

    source_path: Path
    questions: list[dict[str, Any]]


def load_questions_from_file(file_path: Path) -> ImportedQuestionSet:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_questions_text(text)
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return ImportedQuestionSet(source_path=file_path, questions=questions)


def parse_questions_text(text: str) -> list[dict[str, Any]]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block, number) for number, block in enumerate(blocks, start=1) if block]


def _parse_block(block: str, number: int) -> dict[str, Any]:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    marks: int | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(CONTINUATION_ESCAPE):
            line = raw_line.lstrip()[len(CONTINUATION_ESCAPE):]
            if current_section == "Q":
                question_lines.append(line)
            elif current_section in OPTION_LETTERS:
                options[current_section] = options[current_section] + f"\n{line}"
            else:
                raise QuestionImportError(
                    f"Question {number}: continuation line outside of a question or option."
                )
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("MARKS:"):
            marks = _parse_marks(line.split(":", 1)[1].strip(), number)
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionImportError(
                f"Question {number}: text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionImportError(f"Question {number}: question text missing (Q: ...).")
    for letter in REQUIRED_OPTION_LETTERS:
        if not options.get(letter, "").strip():
            raise QuestionImportError(f"Question {number}: option {letter} is required.")
    if correct_letter is None:
        raise QuestionImportError(f"Question {number}: CORRECT line missing.")
    if correct_letter not in OPTION_LETTERS:
        raise QuestionImportError(f"Question {number}: CORRECT must be one of A, B, C, or D.")
    if not options.get(correct_letter, "").strip():
        raise QuestionImportError(
            f"Question {number}: CORRECT points at option {correct_letter}, which is empty."
        )

    parsed: dict[str, Any] = {
        "question_text": question_text,
        "correct_option": correct_letter,
    }
    for letter in OPTION_LETTERS:
        parsed[f"option_{letter.lower()}"] = options.get(letter, "").strip() or None
    if marks is not None:
        parsed["marks"] = marks
    return parsed


def _parse_marks(raw_value: str, number: int) -> int:
    if not raw_value:
        raise QuestionImportError(f"Question {number}: MARKS must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuestionImportError(f"Question {number}: MARKS must be an integer.") from exc
    if parsed_value <= 0:
        raise QuestionImportError(f"Question {number}: MARKS must be a positive integer.")
    return parsed_value
