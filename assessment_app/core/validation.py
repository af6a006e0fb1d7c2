"""Field validation for assessment and question data.

Both the store and the client-side editor run these checks, so input that can
be rejected locally never reaches the network. Each function takes a complete
set of fields and returns a cleaned copy or raises ``ValidationError`` with
per-field messages. With ``partial=True`` only the supplied keys are checked
and returned; the client uses this for updates, and the store merges updates
onto the stored record and checks the full set again.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from assessment_app.constants.assessment_constants import DEFAULT_QUESTION_MARKS
from assessment_app.core.errors import ValidationError
from assessment_app.core.models import AssessmentStatus, AssessmentType, OptionLetter

ASSESSMENT_FIELDS: tuple[str, ...] = (
    "lesson_id",
    "course_id",
    "teacher_id",
    "title",
    "instructions",
    "type",
    "total_marks",
    "duration_minutes",
    "status",
)

QUESTION_FIELDS: tuple[str, ...] = (
    "assessment_id",
    "set_by",
    "question_text",
    "marks",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_option",
)


class _FieldErrors:
    def __init__(self, only: set[str] | None = None) -> None:
        self._errors: dict[str, list[str]] = {}
        self._only = only

    def add(self, field_name: str, message: str) -> None:
        if self._only is not None and field_name not in self._only:
            return
        self._errors.setdefault(field_name, []).append(message)

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._errors

    def raise_if_any(self) -> None:
        if self._errors:
            raise ValidationError.from_fields(self._errors)


def clean_assessment_fields(data: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    """Validate assessment fields; a partial update checks only the keys it carries."""
    errors = _FieldErrors(set(data) if partial else None)
    cleaned: dict[str, Any] = {}

    title = _clean_text(data.get("title"))
    if not title:
        errors.add("title", "The title field is required.")
    cleaned["title"] = title

    cleaned["instructions"] = _clean_text(data.get("instructions")) or None

    cleaned["lesson_id"] = _required_int(data, "lesson_id", errors)
    cleaned["course_id"] = _optional_int(data, "course_id", errors)
    cleaned["teacher_id"] = _optional_int(data, "teacher_id", errors)

    total_marks = _required_int(data, "total_marks", errors)
    if total_marks is not None and total_marks <= 0:
        errors.add("total_marks", "Total marks must be a positive integer.")
    cleaned["total_marks"] = total_marks

    duration = _optional_int(data, "duration_minutes", errors)
    if duration is not None and duration <= 0:
        errors.add("duration_minutes", "Duration must be a positive number of minutes.")
    cleaned["duration_minutes"] = duration

    cleaned["type"] = _enum_value(data.get("type"), AssessmentType, AssessmentType.QUIZ, "type", errors)
    cleaned["status"] = _enum_value(
        data.get("status"), AssessmentStatus, AssessmentStatus.DRAFT, "status", errors
    )

    errors.raise_if_any()
    return _supplied(cleaned, data) if partial else cleaned


def clean_question_fields(data: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    """Validate question fields, including the answer key.

    In a partial update the correct option is only checked against an option
    text supplied alongside it; otherwise the stored option decides.
    """
    errors = _FieldErrors(set(data) if partial else None)
    cleaned: dict[str, Any] = {}

    question_text = _clean_text(data.get("question_text"))
    if not question_text:
        errors.add("question_text", "Question text must not be empty.")
    cleaned["question_text"] = question_text

    for letter in ("a", "b"):
        key = f"option_{letter}"
        text = _clean_text(data.get(key))
        if not text:
            errors.add(key, f"Option {letter.upper()} is required.")
        cleaned[key] = text
    for letter in ("c", "d"):
        key = f"option_{letter}"
        cleaned[key] = _clean_text(data.get(key)) or None

    marks = _optional_int(data, "marks", errors)
    if marks is None and "marks" not in errors:
        marks = DEFAULT_QUESTION_MARKS
    if marks is not None and marks < 1:
        errors.add("marks", "Marks must be at least 1.")
    cleaned["marks"] = marks

    correct = _enum_value(data.get("correct_option"), OptionLetter, None, "correct_option", errors)
    if correct is None and "correct_option" not in errors:
        errors.add("correct_option", "The correct option is required.")
    elif correct is not None:
        option_key = f"option_{correct.value.lower()}"
        if not cleaned.get(option_key) and (not partial or option_key in data):
            errors.add("correct_option", f"Correct option {correct.value} refers to an empty option.")
    cleaned["correct_option"] = correct

    cleaned["assessment_id"] = _optional_int(data, "assessment_id", errors)
    cleaned["set_by"] = _optional_int(data, "set_by", errors)

    errors.raise_if_any()
    return _supplied(cleaned, data) if partial else cleaned


def parse_option_letter(value: Any) -> OptionLetter:
    """Parse a selected option (case-insensitive) or raise ``ValidationError``."""
    errors = _FieldErrors()
    letter = _enum_value(value, OptionLetter, None, "selected_option", errors)
    if letter is None:
        errors.add("selected_option", "The selected option is required.")
    errors.raise_if_any()
    return letter


def _supplied(cleaned: dict[str, Any], data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in cleaned.items() if key in data}


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    return None


def _required_int(data: Mapping[str, Any], key: str, errors: _FieldErrors) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        errors.add(key, f"The {key} field is required.")
        return None
    parsed = coerce_int(value)
    if parsed is None:
        errors.add(key, f"The {key} field must be an integer.")
    return parsed


def _optional_int(data: Mapping[str, Any], key: str, errors: _FieldErrors) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    parsed = coerce_int(value)
    if parsed is None:
        errors.add(key, f"The {key} field must be an integer.")
    return parsed


def _enum_value(value: Any, enum_cls: type[Enum], default: Any, key: str, errors: _FieldErrors) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    raw = str(value).strip()
    if enum_cls is OptionLetter:
        raw = raw.upper()
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        errors.add(key, f"The {key} field must be one of: {allowed}.")
        return default
