"""Gateway to the remote assessment API.

``AssessmentGateway`` is the interface presentation code depends on;
``HttpAssessmentGateway`` implements it over HTTP with httpx. Reads and
answer recording are retried on transport failures because they are
idempotent; submission is sent exactly once so an attempt is never scored
twice.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
import logging
import time
from typing import Any, TypeVar

import httpx

from assessment_app.config.settings import Settings
from assessment_app.constants.network_constants import (
    IDEMPOTENT_RETRY_ATTEMPTS,
    RETRY_BACKOFF_SECONDS,
    RETRYABLE_STATUS_CODES,
)
from assessment_app.core.errors import (
    AlreadyInProgressError,
    AssessmentError,
    GatewayError,
    NotFoundError,
    ResponseParseError,
    ValidationError,
    error_class_for,
)
from assessment_app.core.models import (
    Assessment,
    AssessmentDetail,
    AssessmentPage,
    Attempt,
    AttemptResult,
    MarksDecision,
    MarksReconciliation,
    Question,
    StartedAttempt,
    StudentResponse,
)
from assessment_app.core.validation import (
    clean_assessment_fields,
    clean_question_fields,
    parse_option_letter,
)
from assessment_app.core.wire import (
    AssessmentDetailOut,
    AssessmentOut,
    AssessmentPageOut,
    AttemptOut,
    AttemptResultOut,
    QuestionOut,
    ReconciliationOut,
    ResponseOut,
    StartedAttemptOut,
    decode_envelope,
)
from assessment_app.client.session import ApiSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

ResponseEntries = Mapping[int, Any] | Iterable[tuple[int, Any]]


class AssessmentGateway(ABC):
    """Operations the presentation layer needs from the assessment backend."""

    @abstractmethod
    def list_assessments(self, page: int = 1, per_page: int | None = None) -> AssessmentPage: ...

    @abstractmethod
    def get_assessment(self, assessment_id: int) -> AssessmentDetail: ...

    @abstractmethod
    def get_assessment_by_lesson(self, lesson_id: int) -> AssessmentDetail | None:
        """Return the lesson's assessment, or None when the lesson has none."""

    @abstractmethod
    def create_assessment(self, data: Mapping[str, Any]) -> Assessment: ...

    @abstractmethod
    def update_assessment(self, assessment_id: int, data: Mapping[str, Any]) -> Assessment: ...

    @abstractmethod
    def delete_assessment(self, assessment_id: int) -> None: ...

    @abstractmethod
    def reconcile_total_marks(self, assessment_id: int) -> MarksReconciliation: ...

    @abstractmethod
    def resolve_total_marks(self, assessment_id: int, decision: MarksDecision) -> Assessment: ...

    @abstractmethod
    def list_questions(self, assessment_id: int) -> list[Question]: ...

    @abstractmethod
    def create_question(self, assessment_id: int, data: Mapping[str, Any]) -> Question: ...

    @abstractmethod
    def update_question(self, question_id: int, data: Mapping[str, Any]) -> Question: ...

    @abstractmethod
    def delete_question(self, question_id: int) -> None: ...

    @abstractmethod
    def start_attempt(self, assessment_id: int) -> StartedAttempt: ...

    @abstractmethod
    def record_answer(
        self, assessment_id: int, attempt_id: int, question_id: int, selected_option: Any
    ) -> StudentResponse: ...

    @abstractmethod
    def submit_attempt(
        self, assessment_id: int, attempt_id: int, responses: ResponseEntries = ()
    ) -> AttemptResult: ...

    @abstractmethod
    def get_attempt_results(self, assessment_id: int, attempt_id: int) -> AttemptResult: ...

    @abstractmethod
    def list_attempts(self, assessment_id: int) -> list[Attempt]: ...


class HttpAssessmentGateway(AssessmentGateway):
    """httpx implementation of :class:`AssessmentGateway`."""

    def __init__(
        self,
        session: ApiSession,
        client: httpx.Client | None = None,
        retry_attempts: int = IDEMPOTENT_RETRY_ATTEMPTS,
        retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._owns_client = client is None
        self._client = client if client is not None else session.open_client()
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, token: str | None = None) -> HttpAssessmentGateway:
        return cls(
            ApiSession.from_settings(settings, token),
            retry_attempts=settings.retry_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpAssessmentGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Assessments ---

    def list_assessments(self, page: int = 1, per_page: int | None = None) -> AssessmentPage:
        params: dict[str, int] = {"page": page}
        if per_page is not None:
            params["per_page"] = per_page
        out = self._request(
            "load assessments", "GET", "/assessments", params=params,
            schema=AssessmentPageOut, idempotent=True,
        )
        return out.to_domain()

    def get_assessment(self, assessment_id: int) -> AssessmentDetail:
        out = self._request(
            "load assessment", "GET", f"/assessments/{assessment_id}",
            schema=AssessmentDetailOut, idempotent=True,
        )
        return out.to_detail()

    def get_assessment_by_lesson(self, lesson_id: int) -> AssessmentDetail | None:
        try:
            out = self._request(
                "load assessment", "GET", f"/lessons/{lesson_id}/assessment",
                schema=AssessmentDetailOut, idempotent=True,
            )
        except NotFoundError:
            return None
        return out.to_detail()

    def create_assessment(self, data: Mapping[str, Any]) -> Assessment:
        payload = _jsonable(clean_assessment_fields(data))
        out = self._request("save assessment", "POST", "/assessments", json=payload, schema=AssessmentOut)
        return out.to_domain()

    def update_assessment(self, assessment_id: int, data: Mapping[str, Any]) -> Assessment:
        payload = _jsonable(clean_assessment_fields(data, partial=True))
        out = self._request(
            "save assessment", "PUT", f"/assessments/{assessment_id}",
            json=payload, schema=AssessmentOut,
        )
        return out.to_domain()

    def delete_assessment(self, assessment_id: int) -> None:
        self._request("delete assessment", "DELETE", f"/assessments/{assessment_id}", schema=None)

    def reconcile_total_marks(self, assessment_id: int) -> MarksReconciliation:
        out = self._request(
            "check total marks", "GET", f"/assessments/{assessment_id}/marks-reconciliation",
            schema=ReconciliationOut, idempotent=True,
        )
        return out.to_domain()

    def resolve_total_marks(self, assessment_id: int, decision: MarksDecision) -> Assessment:
        out = self._request(
            "update total marks", "POST", f"/assessments/{assessment_id}/marks-reconciliation",
            json={"decision": MarksDecision(decision).value}, schema=AssessmentOut,
        )
        return out.to_domain()

    # --- Questions ---

    def list_questions(self, assessment_id: int) -> list[Question]:
        out = self._request(
            "load questions", "GET", "/questions", params={"assessment_id": assessment_id},
            schema=list[QuestionOut], idempotent=True,
        )
        return [question.to_domain() for question in out]

    def create_question(self, assessment_id: int, data: Mapping[str, Any]) -> Question:
        cleaned = clean_question_fields({**data, "assessment_id": assessment_id})
        cleaned.pop("set_by", None)
        out = self._request("save question", "POST", "/questions", json=_jsonable(cleaned), schema=QuestionOut)
        return out.to_domain()

    def update_question(self, question_id: int, data: Mapping[str, Any]) -> Question:
        payload = _jsonable(clean_question_fields(data, partial=True))
        out = self._request(
            "save question", "PUT", f"/questions/{question_id}",
            json=payload, schema=QuestionOut,
        )
        return out.to_domain()

    def delete_question(self, question_id: int) -> None:
        self._request("delete question", "DELETE", f"/questions/{question_id}", schema=None)

    # --- Attempts ---

    def start_attempt(self, assessment_id: int) -> StartedAttempt:
        out = self._request(
            "start assessment", "POST", f"/assessments/{assessment_id}/attempt/start",
            schema=StartedAttemptOut,
        )
        return out.to_domain()

    def record_answer(
        self, assessment_id: int, attempt_id: int, question_id: int, selected_option: Any
    ) -> StudentResponse:
        letter = parse_option_letter(selected_option)
        out = self._request(
            "save answer", "PUT",
            f"/assessments/{assessment_id}/attempts/{attempt_id}/responses/{question_id}",
            json={"selected_option": letter.value}, schema=ResponseOut, idempotent=True,
        )
        return out.to_domain()

    def submit_attempt(
        self, assessment_id: int, attempt_id: int, responses: ResponseEntries = ()
    ) -> AttemptResult:
        entries = responses.items() if isinstance(responses, Mapping) else responses
        payload = {
            "attempt_id": attempt_id,
            "responses": [
                {"question_id": question_id, "selected_option": parse_option_letter(option).value}
                for question_id, option in entries
            ],
        }
        out = self._request(
            "submit assessment", "POST", f"/assessments/{assessment_id}/submit",
            json=payload, schema=AttemptResultOut,
        )
        return out.to_domain()

    def get_attempt_results(self, assessment_id: int, attempt_id: int) -> AttemptResult:
        out = self._request(
            "load results", "GET", f"/assessments/{assessment_id}/attempts/{attempt_id}/results",
            schema=AttemptResultOut, idempotent=True,
        )
        return out.to_domain()

    def list_attempts(self, assessment_id: int) -> list[Attempt]:
        out = self._request(
            "load attempts", "GET", f"/assessments/{assessment_id}/attempts",
            schema=list[AttemptOut], idempotent=True,
        )
        return [attempt.to_domain() for attempt in out]

    # --- Transport ---

    def _request(
        self,
        action: str,
        method: str,
        path: str,
        *,
        schema: Any,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        idempotent: bool = False,
    ) -> Any:
        attempts = self._retry_attempts if idempotent else 1
        for attempt_number in range(1, attempts + 1):
            try:
                response = self._client.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    headers=self._session.auth_headers(),
                )
            except httpx.TransportError as exc:
                if attempt_number < attempts:
                    self._back_off(action, attempt_number, repr(exc))
                    continue
                raise GatewayError(f"Failed to {action}. Please check your connection.") from exc

            if response.status_code in RETRYABLE_STATUS_CODES and attempt_number < attempts:
                self._back_off(action, attempt_number, f"HTTP {response.status_code}")
                continue
            return _decode_response(action, response, schema)

        raise GatewayError(f"Failed to {action}.")  # pragma: no cover - loop always returns or raises

    def _back_off(self, action: str, attempt_number: int, reason: str) -> None:
        logger.warning("Retrying '%s' after attempt %d failed: %s", action, attempt_number, reason)
        self._sleep(self._retry_backoff_seconds * attempt_number)


def best_effort_list(fetch: Callable[[], list[T]], description: str) -> list[T]:
    """Run a non-critical list fetch, degrading to an empty list on failure."""
    try:
        return fetch()
    except AssessmentError as exc:
        logger.warning("Could not load %s: %s", description, exc.message)
        return []


def flatten_error_message(body: Any, fallback: str) -> str:
    """Reduce an error body to one human-readable message."""
    if not isinstance(body, Mapping):
        return fallback
    errors = body.get("errors")
    if isinstance(errors, Mapping) and errors:
        first = next(iter(errors.values()))
        if isinstance(first, list) and first:
            return str(first[0])
        if isinstance(first, str) and first:
            return first
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return fallback


def _decode_response(action: str, response: httpx.Response, schema: Any) -> Any:
    try:
        body = response.json()
    except ValueError as exc:
        if response.is_success:
            raise ResponseParseError(f"Failed to {action}: response was not JSON.") from exc
        body = None

    if response.is_success:
        return decode_envelope(body, schema)
    raise _error_from_response(action, response.status_code, body)


def _error_from_response(action: str, status_code: int, body: Any) -> AssessmentError:
    message = flatten_error_message(body, f"Failed to {action}.")
    code = body.get("error") if isinstance(body, Mapping) else None
    error_cls = error_class_for(code, status_code)
    if issubclass(error_cls, ValidationError):
        errors = body.get("errors") if isinstance(body, Mapping) else None
        return error_cls(message, dict(errors) if isinstance(errors, Mapping) else None)
    if issubclass(error_cls, AlreadyInProgressError):
        return error_cls(message, attempt_id=body.get("attempt_id") if isinstance(body, Mapping) else None)
    return error_cls(message)


def _jsonable(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}
