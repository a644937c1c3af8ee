"""Open-text classification of free-text follow-up answers.

Classifiers are pluggable. Whatever a classifier returns is coerced into
the closed category set, with anything unknown becoming UNCLASSIFIED.
Classifications only feed interpretation, never scoring.
"""

import logging
from typing import Optional

from .normalizer import AnswerSnapshot
from .registry import QuestionRegistry
from .schema import OpenTextCategory, OpenTextClassification

logger = logging.getLogger(__name__)


class OpenTextClassifier:
    """Base classifier. Subclasses return (label, confidence) for a text."""

    def classify(self, text: str) -> tuple[str, float]:
        raise NotImplementedError


class KeywordClassifier(OpenTextClassifier):
    """Deterministic keyword classifier.

    Each keyword group that matches adds points to its category; the
    highest score wins, ties going to the earlier category below.
    """

    KEYWORDS = {
        OpenTextCategory.DATA_QUALITY: (
            "data", "quality", "accuracy", "incomplete", "missing data",
        ),
        OpenTextCategory.TECHNICAL_UNCERTAINTY: (
            "technical", "integration", "architecture", "system", "complexity", "infrastructure",
        ),
        OpenTextCategory.PROCESS_INSTABILITY: (
            "process", "workflow", "bottleneck", "manual", "inconsistent",
        ),
        OpenTextCategory.CULTURAL_RESISTANCE: (
            "adoption", "resistance", "change", "training", "culture", "user",
        ),
        OpenTextCategory.ROLE_CONFLICT: (
            "politics", "conflict", "blame", "responsibility", "ownership", "power",
        ),
        OpenTextCategory.AVOIDED_TOPIC: (
            "avoid", "elephant", "unspoken", "taboo", "sensitive", "hidden",
        ),
        OpenTextCategory.KNOWN_RISK: (
            "risk", "concern", "worry", "problem", "issue", "challenge",
        ),
    }

    # Generic risk words are weaker evidence than the specific groups
    POINTS = {OpenTextCategory.KNOWN_RISK: 2}
    DEFAULT_POINTS = 3

    def classify(self, text: str) -> tuple[str, float]:
        lower = text.lower()
        scores = {}
        for category, keywords in self.KEYWORDS.items():
            if any(k in lower for k in keywords):
                scores[category] = self.POINTS.get(category, self.DEFAULT_POINTS)

        if not scores:
            return OpenTextCategory.UNCLASSIFIED.value, 0.0

        best = max(scores.values())
        category = next(c for c, s in scores.items() if s == best)
        return category.value, min(0.9, 0.5 + 0.1 * best)


class OpenTextAnalyzer:
    """Runs a classifier over eligible open-text answers."""

    def __init__(
        self,
        registry: QuestionRegistry,
        classifier: Optional[OpenTextClassifier] = None,
        min_length: int = 5,
    ):
        self.registry = registry
        self.classifier = classifier or KeywordClassifier()
        self.min_length = min_length

    def classify_all(self, snapshot: AnswerSnapshot) -> list[OpenTextClassification]:
        """Classify every open-text answer whose trigger question was answered."""
        results = []
        for question in self.registry.open_text_questions:
            for answer in snapshot.for_question(question.id):
                text = (answer.text or "").strip()
                if len(text) < self.min_length:
                    continue
                trigger = question.trigger_question_id
                if trigger and not snapshot.is_answered(trigger, answer.participant_id):
                    continue

                label, confidence = self.classifier.classify(text)
                category = OpenTextCategory.from_label(label)
                if category == OpenTextCategory.UNCLASSIFIED:
                    confidence = 0.0

                results.append(OpenTextClassification(
                    question_id=question.id,
                    participant_id=answer.participant_id,
                    role=answer.role,
                    category=category,
                    confidence=confidence,
                ))

        logger.debug("Classified %d open-text answers", len(results))
        return results
