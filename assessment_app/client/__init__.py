"""Client-side access to the assessment API."""

from .editor import AssessmentEditor, DecisionCallback
from .gateway import (
    AssessmentGateway,
    HttpAssessmentGateway,
    best_effort_list,
    flatten_error_message,
)
from .session import ApiSession

__all__ = [
    "ApiSession",
    "AssessmentEditor",
    "AssessmentGateway",
    "DecisionCallback",
    "HttpAssessmentGateway",
    "best_effort_list",
    "flatten_error_message",
]
