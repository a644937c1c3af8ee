"""Decision Clarity Scoring Engine."""

from .engine import ScoringEngine, load_assessment
from .exceptions import (
    AssessmentInputError,
    ClarityScorerError,
    ConfigurationError,
    InvalidLikertValue,
)
from .schema import Answer, EvaluationResult, Variant, Verdict

__all__ = [
    "Answer",
    "AssessmentInputError",
    "ClarityScorerError",
    "ConfigurationError",
    "EvaluationResult",
    "InvalidLikertValue",
    "ScoringEngine",
    "Variant",
    "Verdict",
    "load_assessment",
]
