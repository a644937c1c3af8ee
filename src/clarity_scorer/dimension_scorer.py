"""Dimension Scorer - Phase 2 of the Scoring Engine.

Aggregates normalized Likert answers into participant, role and case
dimension scores. Missing data stays None at every level.
"""

import logging
from typing import Optional

from .config import VariantConfig
from .normalizer import AnswerSnapshot, average_of
from .registry import QuestionRegistry
from .schema import (
    GATE_DIMENSION,
    PROCESS_ROLE,
    Dimension,
    DimensionScoreMap,
    DimensionScoringResult,
    Role,
)

logger = logging.getLogger(__name__)


def _empty_scores() -> DimensionScoreMap:
    return {dim: None for dim in Dimension}


class DimensionScorer:
    """Scores dimensions for one answer snapshot under a variant.

    Scoring principles:
    - Only Likert answers contribute
    - Participants sharing a role are averaged per participant first
    - Case scores weight index roles and renormalize over roles with data
    - The process dimension comes from the process role alone
    - No data means None, never 0
    """

    def __init__(self, registry: QuestionRegistry):
        self.registry = registry

    def score(self, snapshot: AnswerSnapshot, variant: VariantConfig) -> DimensionScoringResult:
        """Compute participant, role and case dimension scores."""
        participant_scores, participant_roles = self._score_participants(snapshot)
        role_scores = self._score_roles(participant_scores, participant_roles)
        case_scores = self._score_case(role_scores, variant)

        logger.debug(
            "Scored %d participants across %d roles",
            len(participant_scores), len(role_scores),
        )

        return DimensionScoringResult(
            case_scores=case_scores,
            role_scores=role_scores,
            participant_scores=participant_scores,
        )

    def _score_participants(
        self,
        snapshot: AnswerSnapshot,
    ) -> tuple[dict[str, DimensionScoreMap], dict[str, Role]]:
        collected: dict[str, dict[Dimension, list[float]]] = {}
        roles: dict[str, Role] = {}

        for answer in snapshot:
            roles.setdefault(answer.participant_id, answer.role)
            score = answer.score
            if score is None:
                continue
            question = self.registry.get(answer.question_id)
            by_dim = collected.setdefault(answer.participant_id, {})
            by_dim.setdefault(question.dimension, []).append(score.score_0_100)

        scores = {}
        for participant_id in sorted(roles):
            by_dim = collected.get(participant_id, {})
            scores[participant_id] = {
                dim: average_of(by_dim.get(dim, [])) for dim in Dimension
            }
        return scores, roles

    def _score_roles(
        self,
        participant_scores: dict[str, DimensionScoreMap],
        participant_roles: dict[str, Role],
    ) -> dict[Role, DimensionScoreMap]:
        role_scores: dict[Role, DimensionScoreMap] = {}
        for role in Role:
            members = [pid for pid, r in participant_roles.items() if r == role]
            if not members:
                continue
            role_scores[role] = {
                dim: average_of(participant_scores[pid][dim] for pid in members)
                for dim in Dimension
            }
        return role_scores

    def _score_case(
        self,
        role_scores: dict[Role, DimensionScoreMap],
        variant: VariantConfig,
    ) -> DimensionScoreMap:
        case = _empty_scores()

        for dim in Dimension.index_dimensions():
            case[dim] = self._weighted_dimension(dim, role_scores, variant)

        case[GATE_DIMENSION] = role_scores.get(PROCESS_ROLE, {}).get(GATE_DIMENSION)
        return case

    def _weighted_dimension(
        self,
        dimension: Dimension,
        role_scores: dict[Role, DimensionScoreMap],
        variant: VariantConfig,
    ) -> Optional[float]:
        """Weighted average over index roles that scored this dimension."""
        weighted_sum = 0.0
        total_weight = 0.0

        for role in variant.index_roles:
            score = role_scores.get(role, {}).get(dimension)
            weight = variant.role_weights.get(role, 0.0)
            if score is None or weight <= 0:
                continue
            weighted_sum += weight * score
            total_weight += weight

        if total_weight == 0:
            return None
        return weighted_sum / total_weight
