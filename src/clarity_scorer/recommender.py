"""Recommendation Engine - Phase 6 of the Scoring Engine.

Turns the clarity index, flags and gates into GO / CLARIFY / NO_GO using
a fixed precedence. First matching rule wins:

1. Variant computes no index      -> None     (NOT_APPLICABLE)
2. Any CRITICAL flag              -> NO_GO    (CRITICAL_FLAG)
3. Index missing                  -> None     (INSUFFICIENT_DATA)
4. Index below the low threshold  -> NO_GO    (INDEX_LOW)
5. Any gate fired                 -> CLARIFY  (GATE_TRIGGERED)
6. Index below the high threshold -> CLARIFY  (INDEX_MID)
7. Otherwise                      -> GO       (INDEX_HIGH)
"""

from typing import Optional

from .config import ThresholdsConfig, VariantConfig
from .schema import (
    FlagEngineResult,
    GateEvaluationResult,
    IndexResult,
    PrimaryFactor,
    RecommendationResult,
    Severity,
    Verdict,
)


class RecommendationEngine:
    """Pure, total decision over (index, flags, gates, variant)."""

    def __init__(self, thresholds: Optional[ThresholdsConfig] = None):
        self.thresholds = thresholds or ThresholdsConfig()

    def recommend(
        self,
        index: IndexResult,
        flags: FlagEngineResult,
        gates: GateEvaluationResult,
        variant: VariantConfig,
    ) -> RecommendationResult:
        """Decide the recommendation for one evaluation."""
        low = self.thresholds.index_low
        high = self.thresholds.index_high
        factors = self._collect_factors(index, flags, gates)

        if not variant.computes_index:
            return RecommendationResult(
                value=None,
                primary_factor=PrimaryFactor.NOT_APPLICABLE,
                reason="This assessment variant does not produce a clarity index or recommendation.",
                factors=factors,
            )

        if flags.has_critical:
            critical_ids = sorted({
                f.flag_id.value for f in flags.flags if f.severity == Severity.CRITICAL
            })
            return RecommendationResult(
                value=Verdict.NO_GO,
                primary_factor=PrimaryFactor.CRITICAL_FLAG,
                reason=f"Critical flag(s) present: {', '.join(critical_ids)}.",
                factors=factors,
            )

        if index.value is None:
            return RecommendationResult(
                value=None,
                primary_factor=PrimaryFactor.INSUFFICIENT_DATA,
                reason="Not enough answers to compute the clarity index.",
                factors=factors,
            )

        if index.value < low:
            return RecommendationResult(
                value=Verdict.NO_GO,
                primary_factor=PrimaryFactor.INDEX_LOW,
                reason=f"Clarity index {index.value:.1f} is below {low:g}.",
                factors=factors,
            )

        if gates.has_gates:
            gate_ids = ", ".join(g.value for g in gates.gate_ids)
            return RecommendationResult(
                value=Verdict.CLARIFY,
                primary_factor=PrimaryFactor.GATE_TRIGGERED,
                reason=f"Gate(s) {gate_ids} require clarification before proceeding.",
                factors=factors,
            )

        if index.value < high:
            reason = f"Clarity index {index.value:.1f} is between {low:g} and {high:g}."
            if flags.warn_count:
                reason += f" {flags.warn_count} warning flag(s) to address."
            return RecommendationResult(
                value=Verdict.CLARIFY,
                primary_factor=PrimaryFactor.INDEX_MID,
                reason=reason,
                factors=factors,
            )

        return RecommendationResult(
            value=Verdict.GO,
            primary_factor=PrimaryFactor.INDEX_HIGH,
            reason=(
                f"Clarity index {index.value:.1f} is at or above {high:g} "
                f"with no critical flags or gates."
            ),
            factors=factors,
        )

    def _collect_factors(
        self,
        index: IndexResult,
        flags: FlagEngineResult,
        gates: GateEvaluationResult,
    ) -> list[str]:
        factors = []
        if index.value is not None:
            factors.append(f"ICS: {index.value:.1f} ({index.short_label})")
        if flags.critical_count:
            ids = sorted({f.flag_id.value for f in flags.flags if f.severity == Severity.CRITICAL})
            factors.append(f"{flags.critical_count} critical flag(s): {', '.join(ids)}")
        for gate in gates.gates:
            factors.append(f"Gate {gate.gate_id.value}: {gate.flag_id}")
        if flags.warn_count:
            factors.append(f"{flags.warn_count} warning flag(s)")
        return factors
