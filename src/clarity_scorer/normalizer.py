"""Normalizer - Phase 1 of the Scoring Engine.

Checks raw answers against the question registry, tags each value by its
declared answer type and converts Likert answers into reverse-scored
0-100 values. Bad answers are excluded and reported, never fatal.
"""

import logging
from typing import Iterable, Optional, Sequence

from .exceptions import InvalidLikertValue
from .registry import QuestionRegistry
from .schema import (
    Answer,
    AnswerType,
    ChoiceValue,
    LikertValue,
    MultiChoiceValue,
    NormalizedScore,
    QuestionDefinition,
    Role,
    TextValue,
    TypedAnswer,
    ValidationCode,
    ValidationDetail,
)

logger = logging.getLogger(__name__)


def normalise(raw, is_reverse: bool, question_id: Optional[str] = None) -> NormalizedScore:
    """Convert a raw Likert value into a NormalizedScore.

    adjusted = 6 - raw for reversed questions, raw otherwise.
    score_0_100 = (adjusted - 1) * 25, so 1 -> 0 and 5 -> 100.

    Raises:
        InvalidLikertValue: If raw is not an integer in 1..5.
    """
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidLikertValue(raw, question_id)
    if isinstance(raw, float):
        if not raw.is_integer():
            raise InvalidLikertValue(raw, question_id)
        raw = int(raw)
    if raw < 1 or raw > 5:
        raise InvalidLikertValue(raw, question_id)

    adjusted = 6 - raw if is_reverse else raw
    return NormalizedScore(
        raw=raw,
        adjusted=adjusted,
        score_0_100=float((adjusted - 1) * 25),
        is_reverse=is_reverse,
    )


def average_of(values: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean of the non-None values, or None when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def round_score(value: Optional[float], decimals: int = 1) -> Optional[float]:
    """Round a score, passing None through."""
    if value is None:
        return None
    return round(value, decimals)


class AnswerSnapshot:
    """Immutable, indexed view of the typed answers for one evaluation."""

    def __init__(self, answers: Sequence[TypedAnswer]):
        self._answers = tuple(answers)
        by_question: dict[str, list[TypedAnswer]] = {}
        for a in self._answers:
            by_question.setdefault(a.question_id, []).append(a)
        self._by_question = {qid: tuple(items) for qid, items in by_question.items()}
        self._participants = tuple(sorted({a.participant_id for a in self._answers}))

    def __len__(self) -> int:
        return len(self._answers)

    def __iter__(self):
        return iter(self._answers)

    @property
    def participants(self) -> tuple[str, ...]:
        return self._participants

    def for_question(self, question_id: str) -> tuple[TypedAnswer, ...]:
        return self._by_question.get(question_id, ())

    def for_participant(self, participant_id: str, question_id: str) -> Optional[TypedAnswer]:
        for a in self.for_question(question_id):
            if a.participant_id == participant_id:
                return a
        return None

    def for_respondent(
        self, participant_id: str, question_id: str, process_id: Optional[str] = None
    ) -> Optional[TypedAnswer]:
        """The participant's answer to a question within one process."""
        for a in self.for_question(question_id):
            if a.participant_id == participant_id and a.process_id == process_id:
                return a
        return None

    def is_answered(self, question_id: str, participant_id: Optional[str] = None) -> bool:
        if participant_id is None:
            return bool(self.for_question(question_id))
        return self.for_participant(participant_id, question_id) is not None

    def roles(self) -> list[Role]:
        present = {a.role for a in self._answers}
        return [r for r in Role if r in present]


class AnswerNormalizer:
    """Ingests raw answers into an AnswerSnapshot.

    Each raw value is checked once against its question's answer type.
    Answers that fail are dropped and reported as ValidationDetail records.
    Later answers for the same (participant, question, process) replace
    earlier ones.
    """

    def __init__(self, registry: QuestionRegistry):
        self.registry = registry

    def ingest(self, answers: Iterable[Answer]) -> tuple[AnswerSnapshot, list[ValidationDetail]]:
        """Build the snapshot for one evaluation.

        Returns:
            Tuple of (snapshot, validation_details)
        """
        latest: dict[tuple[str, str, str], Answer] = {}
        for answer in answers:
            latest[(answer.participant_id, answer.question_id, answer.process_id or "")] = answer

        typed: list[TypedAnswer] = []
        details: list[ValidationDetail] = []

        for answer in latest.values():
            question = self.registry.get(answer.question_id)
            if question is None:
                details.append(self._detail(
                    ValidationCode.UNKNOWN_QUESTION, answer,
                    f"Unknown question {answer.question_id}",
                ))
                continue

            if answer.role != question.role:
                details.append(self._detail(
                    ValidationCode.ROLE_MISMATCH, answer,
                    f"{answer.question_id} belongs to {question.role.value}, "
                    f"answered as {answer.role.value}",
                ))
                continue

            try:
                value = self._tag_value(question, answer.raw_value)
            except InvalidLikertValue as e:
                details.append(self._detail(ValidationCode.INVALID_LIKERT, answer, e.message))
                continue
            except ValueError as e:
                details.append(self._detail(ValidationCode.INVALID_VALUE, answer, str(e)))
                continue

            typed.append(TypedAnswer(
                question_id=answer.question_id,
                participant_id=answer.participant_id,
                role=answer.role,
                value=value,
                process_id=answer.process_id,
            ))

        details.sort(key=lambda d: (d.participant_id, d.question_id))
        for detail in details:
            logger.warning("Excluded answer (%s): %s", detail.code.value, detail.message)

        typed.sort(key=lambda a: (a.participant_id, a.question_id, a.process_id or ""))
        return AnswerSnapshot(typed), details

    def _tag_value(self, question: QuestionDefinition, raw):
        if question.answer_type == AnswerType.LIKERT:
            return LikertValue(score=normalise(raw, question.is_reverse, question.id))

        if question.answer_type == AnswerType.SINGLE_SELECT:
            if not isinstance(raw, str) or not raw.strip():
                raise ValueError(f"{question.id} expects a single option, got {raw!r}")
            return ChoiceValue(choice=raw.strip())

        if question.answer_type == AnswerType.MULTI_SELECT:
            if isinstance(raw, str):
                raw = [raw]
            if not isinstance(raw, (list, tuple)) or not all(isinstance(v, str) for v in raw):
                raise ValueError(f"{question.id} expects a list of options, got {raw!r}")
            return MultiChoiceValue(choices=tuple(v.strip() for v in raw))

        if not isinstance(raw, str):
            raise ValueError(f"{question.id} expects free text, got {raw!r}")
        return TextValue(text=raw)

    @staticmethod
    def _detail(code: ValidationCode, answer: Answer, message: str) -> ValidationDetail:
        return ValidationDetail(
            code=code,
            question_id=answer.question_id,
            participant_id=answer.participant_id,
            message=message,
        )
