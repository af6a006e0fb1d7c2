"""Typed errors raised by the assessment domain, server and client."""

from __future__ import annotations


class AssessmentError(Exception):
    """Base class for every error the assessment service raises on purpose."""

    code: str = "assessment_error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        return {"message": self.message, "error": self.code}


class ValidationError(AssessmentError):
    """Malformed input: missing required field, invalid enum, non-positive number."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field_errors: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}

    @classmethod
    def from_fields(cls, field_errors: dict[str, list[str]]) -> ValidationError:
        first_messages = next(iter(field_errors.values()))
        return cls(first_messages[0], field_errors)

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.field_errors:
            payload["errors"] = self.field_errors
        return payload


class NotFoundError(AssessmentError):
    code = "not_found"
    status_code = 404


class UnknownQuestionError(AssessmentError):
    """Question does not belong to the attempt's assessment."""

    code = "unknown_question"
    status_code = 422


class InvalidStateError(AssessmentError):
    code = "invalid_state"
    status_code = 409


class AttemptExpiredError(InvalidStateError):
    code = "attempt_expired"


class AlreadyInProgressError(AssessmentError):
    code = "already_in_progress"
    status_code = 409

    def __init__(self, message: str, attempt_id: int | None = None) -> None:
        super().__init__(message)
        self.attempt_id = attempt_id

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.attempt_id is not None:
            payload["attempt_id"] = self.attempt_id
        return payload


class NotPublishedError(AssessmentError):
    code = "not_published"
    status_code = 409


class PermissionDeniedError(AssessmentError):
    code = "forbidden"
    status_code = 403


class AuthenticationError(AssessmentError):
    code = "unauthenticated"
    status_code = 401


class QuestionImportError(AssessmentError):
    """Raised when a question file cannot be parsed."""

    code = "import_error"
    status_code = 422


class GatewayError(AssessmentError):
    """Transport failure or unexpected response from the remote API."""

    code = "gateway_error"
    status_code = 502


class ResponseParseError(GatewayError):
    code = "parse_error"


_ERRORS_BY_CODE: dict[str, type[AssessmentError]] = {
    error_cls.code: error_cls
    for error_cls in (
        ValidationError,
        NotFoundError,
        UnknownQuestionError,
        InvalidStateError,
        AttemptExpiredError,
        AlreadyInProgressError,
        NotPublishedError,
        PermissionDeniedError,
        AuthenticationError,
        QuestionImportError,
        GatewayError,
        ResponseParseError,
    )
}

_ERRORS_BY_STATUS: dict[int, type[AssessmentError]] = {
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: InvalidStateError,
    422: ValidationError,
}


def error_class_for(code: str | None, status_code: int) -> type[AssessmentError]:
    """Resolve the error class for a wire error code, falling back on HTTP status."""
    if code and code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code]
    return _ERRORS_BY_STATUS.get(status_code, GatewayError)
