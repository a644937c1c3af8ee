"""Gate Evaluator - Phase 5 of the Scoring Engine.

Four independent checks run after scoring and flagging. Gates are
additive, and any fired gate holds the recommendation at CLARIFY or below.
"""

import logging
from typing import Optional

from .config import AdoptionRiskConfig, ThresholdsConfig, VariantConfig
from .schema import (
    Dimension,
    DimensionScoringResult,
    FlagEngineResult,
    FlagId,
    Gate,
    GateEvaluationResult,
    GateId,
    Severity,
    Verdict,
)

logger = logging.getLogger(__name__)


class GateEvaluator:
    """Evaluates the dimension, process, adoption and ownership gates."""

    def __init__(
        self,
        thresholds: Optional[ThresholdsConfig] = None,
        adoption_risk: Optional[AdoptionRiskConfig] = None,
    ):
        self.thresholds = thresholds or ThresholdsConfig()
        self.adoption_risk = adoption_risk or AdoptionRiskConfig()

    def evaluate_all_gates(
        self,
        dimension_scores: DimensionScoringResult,
        flags: FlagEngineResult,
        variant: VariantConfig,
        process_score: Optional[float] = None,
    ) -> GateEvaluationResult:
        """Run all four gates.

        Args:
            dimension_scores: Case and role dimension scores
            flags: Flag engine output
            variant: Active variant configuration
            process_score: Score checked by the process gate (weakest
                process, or the case process score)

        Returns:
            GateEvaluationResult with every gate that fired
        """
        gates: list[Gate] = []
        gates.extend(self._check_dimension_floor(dimension_scores))
        gates.extend(self._check_process_floor(variant, process_score))
        gates.extend(self._check_adoption_risk(dimension_scores))
        gates.extend(self._check_critical_ownership(flags))

        for gate in gates:
            logger.debug("Gate %s fired: %s", gate.gate_id.value, gate.reason)

        gate_ids = []
        for gate in gates:
            if gate.gate_id not in gate_ids:
                gate_ids.append(gate.gate_id)

        return GateEvaluationResult(
            gates=gates,
            has_gates=bool(gates),
            gate_ids=gate_ids,
        )

    def _check_dimension_floor(self, dimension_scores: DimensionScoringResult) -> list[Gate]:
        """G1: any index dimension below the floor."""
        floor = self.thresholds.dimension_floor
        gates = []
        for dim in Dimension.index_dimensions():
            score = dimension_scores.case_scores.get(dim)
            if score is None or score >= floor:
                continue
            gates.append(Gate(
                gate_id=GateId.G1,
                action=Verdict.CLARIFY,
                flag_id=f"LOW_DIMENSION_SCORE_{dim.value}",
                dimension=dim,
                reason=(
                    f"{dim.display_name} ({dim.value}) scored {score:.1f}, "
                    f"below the floor of {floor:g}."
                ),
                values={"score": round(score, 1), "floor": floor},
            ))
        return gates

    def _check_process_floor(
        self,
        variant: VariantConfig,
        process_score: Optional[float],
    ) -> list[Gate]:
        """G2: process readiness below the floor, for process-gate variants only."""
        if not variant.process_is_gate or process_score is None:
            return []
        floor = self.thresholds.process_floor
        if process_score >= floor:
            return []
        return [Gate(
            gate_id=GateId.G2,
            action=Verdict.CLARIFY,
            flag_id="AUTOMATION_PREMATURITY",
            dimension=Dimension.P,
            reason=(
                f"Process readiness scored {process_score:.1f}, below the floor of {floor:g}; "
                f"the process is not ready for automation."
            ),
            values={"score": round(process_score, 1), "floor": floor},
        )]

    def _check_adoption_risk(self, dimension_scores: DimensionScoringResult) -> list[Gate]:
        """G3: user friction and leadership readiness both high at once."""
        cfg = self.adoption_risk
        friction = dimension_scores.role_score(cfg.friction_role, cfg.friction_dimension)
        readiness = dimension_scores.role_score(cfg.readiness_role, cfg.readiness_dimension)
        if friction is None or readiness is None:
            return []
        if friction <= cfg.friction_threshold or readiness <= cfg.readiness_threshold:
            return []
        return [Gate(
            gate_id=GateId.G3,
            action=Verdict.CLARIFY,
            flag_id="ADOPTION_RISK",
            dimension=cfg.friction_dimension,
            reason=(
                f"{cfg.friction_role.value} {cfg.friction_dimension.value} is {friction:.1f} "
                f"while {cfg.readiness_role.value} {cfg.readiness_dimension.value} is "
                f"{readiness:.1f}; self-assessed readiness does not match the user view."
            ),
            values={"friction": round(friction, 1), "readiness": round(readiness, 1)},
        )]

    def _check_critical_ownership(self, flags: FlagEngineResult) -> list[Gate]:
        """G4: ownership diffusion flagged as CRITICAL."""
        if not flags.has_flag(FlagId.OWNERSHIP_DIFFUSION, Severity.CRITICAL):
            return []
        return [Gate(
            gate_id=GateId.G4,
            action=Verdict.CLARIFY,
            flag_id=FlagId.OWNERSHIP_DIFFUSION.value,
            reason="Ownership of outcomes is diffused or undefined across roles.",
        )]
