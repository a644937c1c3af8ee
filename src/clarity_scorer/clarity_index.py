"""Clarity Index - Phase 3 of the Scoring Engine.

Weighted sum of the five index dimensions into a single 0-100 value.
The process dimension is carried in the breakdown with weight 0.
"""

from typing import Optional

from .config import IndexWeightsConfig, ProcessReadinessConfig, ThresholdsConfig, VariantConfig
from .normalizer import round_score
from .schema import (
    GATE_DIMENSION,
    Dimension,
    DimensionScoreMap,
    IndexContribution,
    IndexResult,
)


class ClarityIndexCalculator:
    """Computes the clarity index and its label."""

    LABELS = {
        "low": "Low clarity / high risk",
        "mid": "Partial clarity / clarification required",
        "high": "High clarity / ready to proceed if no critical flags",
    }

    SHORT_LABELS = {
        "low": "Low Clarity",
        "mid": "Partial Clarity",
        "high": "High Clarity",
    }

    def __init__(
        self,
        weights: Optional[IndexWeightsConfig] = None,
        thresholds: Optional[ThresholdsConfig] = None,
    ):
        self.weights = (weights or IndexWeightsConfig()).as_map()
        self.thresholds = thresholds or ThresholdsConfig()

    def compute(self, case_scores: DimensionScoreMap, variant: VariantConfig) -> IndexResult:
        """Compute the index for a set of case dimension scores.

        Dimensions without data are listed as missing and contribute
        nothing. Returns value=None with computed=False when the variant
        skips the index, and value=None with computed=True when no
        dimension has data.
        """
        if not variant.computes_index:
            return IndexResult(value=None, computed=False)

        breakdown = []
        missing = []
        total = 0.0
        has_data = False

        for dim in [*Dimension.index_dimensions(), GATE_DIMENSION]:
            score = case_scores.get(dim)
            weight = self.weights[dim]
            contribution = None
            if score is not None:
                contribution = weight * score
                if weight > 0:
                    total += contribution
                    has_data = True
            elif weight > 0:
                missing.append(dim)
            breakdown.append(IndexContribution(
                dimension=dim,
                score=round_score(score),
                weight=weight,
                contribution=round_score(contribution, 2),
            ))

        value = round_score(total) if has_data else None
        tier = self.tier(value)
        return IndexResult(
            value=value,
            computed=True,
            label=self.LABELS.get(tier),
            short_label=self.SHORT_LABELS.get(tier),
            bucket=self.bucket(value),
            breakdown=breakdown,
            missing_dimensions=missing,
        )

    def tier(self, value: Optional[float]) -> Optional[str]:
        if value is None:
            return None
        if value < self.thresholds.index_low:
            return "low"
        if value < self.thresholds.index_high:
            return "mid"
        return "high"

    def label(self, value: Optional[float]) -> Optional[str]:
        return self.LABELS.get(self.tier(value))

    def bucket(self, value: Optional[float]) -> str:
        tier = self.tier(value)
        if tier is None:
            return "N/A"
        low = f"{self.thresholds.index_low:g}"
        high = f"{self.thresholds.index_high:g}"
        return {
            "low": f"0-{low}",
            "mid": f"{low}-{high}",
            "high": f"{high}-100",
        }[tier]


def classify_process_readiness(
    score: Optional[float],
    cut_points: Optional[ProcessReadinessConfig] = None,
) -> Optional[str]:
    """Classify a process readiness score into an action class."""
    if score is None:
        return None
    cut_points = cut_points or ProcessReadinessConfig()
    if score >= cut_points.automate:
        return "Automate"
    if score >= cut_points.improve_first:
        return "Improve first"
    if score >= cut_points.clarify_ownership:
        return "Clarify ownership"
    return "Defer"
