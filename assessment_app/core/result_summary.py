"""Pass/fail presentation of a scored attempt.

Kept outside the scoring policy so the pass mark can be configured per
deployment without touching how marks are awarded.
"""

from __future__ import annotations

from dataclasses import dataclass

from assessment_app.constants.assessment_constants import (
    DEFAULT_PASS_PERCENTAGE,
    PERCENTAGE_DISPLAY_DECIMALS,
)
from assessment_app.core.models import ScoreBreakdown


@dataclass(slots=True)
class ResultSummary:
    """User-facing summary of a scored attempt."""

    total_scored: int
    total_possible: int
    display_percentage: float
    passed: bool
    headline: str
    message: str


def summarize_result(
    breakdown: ScoreBreakdown,
    pass_percentage: float = DEFAULT_PASS_PERCENTAGE,
) -> ResultSummary:
    display = round(breakdown.percentage, PERCENTAGE_DISPLAY_DECIMALS)
    passed = breakdown.percentage >= pass_percentage
    formatted = f"{display:.{PERCENTAGE_DISPLAY_DECIMALS}f}%"
    if passed:
        headline = "Congratulations!"
        message = f"You scored {formatted} - You passed!"
    else:
        headline = "Assessment Completed"
        message = f"You scored {formatted} - Please review the lesson and try again."
    return ResultSummary(
        total_scored=breakdown.total_scored,
        total_possible=breakdown.total_possible,
        display_percentage=display,
        passed=passed,
        headline=headline,
        message=message,
    )
