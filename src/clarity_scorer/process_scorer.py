"""Process Scorer - per-process readiness for multi-process assessments.

Scores the process dimension separately for each process area, then
takes a weighted aggregate and the weakest link. The weakest process is
what the process gate checks.
"""

from typing import Optional, Sequence

from .normalizer import AnswerSnapshot, average_of, round_score
from .registry import QuestionRegistry
from .schema import (
    GATE_DIMENSION,
    ProcessArea,
    ProcessScore,
    ProcessScoringResult,
)


class ProcessScorer:
    """Scores process areas from process-tagged Likert answers."""

    def __init__(self, registry: QuestionRegistry):
        self.registry = registry

    def score(
        self,
        snapshot: AnswerSnapshot,
        processes: Sequence[ProcessArea],
    ) -> Optional[ProcessScoringResult]:
        """Score each process area.

        Returns None when no processes are defined.
        """
        if not processes:
            return None

        scores = [self._score_process(snapshot, p) for p in processes]
        return ProcessScoringResult(
            processes=scores,
            aggregate=self._aggregate(scores),
            weakest=self._weakest(scores),
        )

    def _score_process(self, snapshot: AnswerSnapshot, process: ProcessArea) -> ProcessScore:
        values = []
        for answer in snapshot:
            if answer.process_id != process.process_id or answer.score is None:
                continue
            question = self.registry.get(answer.question_id)
            if question.dimension == GATE_DIMENSION:
                values.append(answer.score.score_0_100)

        return ProcessScore(
            process_id=process.process_id,
            name=process.name,
            weight=process.weight,
            score=round_score(average_of(values)),
            answer_count=len(values),
        )

    def _aggregate(self, scores: list[ProcessScore]) -> Optional[float]:
        """Weighted average over scored processes, weights in percent."""
        scored = [s for s in scores if s.score is not None and s.weight > 0]
        total_weight = sum(s.weight for s in scored)
        if not scored or total_weight == 0:
            return None
        return round_score(sum(s.score * s.weight for s in scored) / total_weight)

    def _weakest(self, scores: list[ProcessScore]) -> Optional[ProcessScore]:
        weakest = None
        for s in scores:
            if s.score is None:
                continue
            if weakest is None or s.score < weakest.score:
                weakest = s
        return weakest


def gate_process_score(
    result: Optional[ProcessScoringResult],
    case_process_score: Optional[float],
) -> Optional[float]:
    """Score checked by the process gate: weakest process, else the case score."""
    if result is None:
        return case_process_score
    if result.weakest is None:
        return None
    return result.weakest.score
