"""
Custom exceptions for the clarity scorer.
"""
from typing import Any, Optional


class ClarityScorerError(Exception):
    """Base exception for the clarity scorer."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidLikertValue(ClarityScorerError):
    """Raised when a Likert raw value is not an integer in 1..5.

    Fatal for the single answer only; ingestion excludes the answer and
    reports it as a validation detail.
    """
    def __init__(self, value: Any, question_id: Optional[str] = None):
        self.value = value
        self.question_id = question_id
        where = f" for question {question_id}" if question_id else ""
        super().__init__(f"Invalid Likert value{where}: {value!r} (expected an integer 1-5)")


class ConfigurationError(ClarityScorerError):
    """Raised at load time for invalid variants, weights, thresholds or registry data."""
    def __init__(self, message: str, issues: Optional[list[str]] = None):
        self.issues = issues or [message]
        super().__init__(message)


class AssessmentInputError(ClarityScorerError):
    """Raised when an assessment document cannot be read or parsed."""
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)
