"""Scoring Engine - orchestrates the full evaluation pipeline.

Phases:
1. Normalize answers into a typed snapshot
2. Score dimensions (participant, role, case)
3. Compute the clarity index
4. Detect flags
5. Evaluate gates
6. Decide the recommendation

Each call is a pure function of (registry, answers, variant config).
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import yaml
from pydantic import ValidationError

from .clarity_index import ClarityIndexCalculator
from .config import ScorerConfig, get_config, parse_config, validate_config
from .dimension_scorer import DimensionScorer
from .exceptions import AssessmentInputError, ConfigurationError
from .explainer import ResultExplainer
from .flag_engine import FlagEngine
from .gate_evaluator import GateEvaluator
from .normalizer import AnswerNormalizer
from .open_text import OpenTextClassifier
from .process_scorer import ProcessScorer, gate_process_score
from .recommender import RecommendationEngine
from .registry import QuestionRegistry, get_default_registry
from .schema import (
    GATE_DIMENSION,
    Answer,
    AssessmentInput,
    CaseInterpretation,
    EvaluationResult,
    ProcessArea,
    ValidationCode,
    ValidationDetail,
    Variant,
)

logger = logging.getLogger(__name__)


class ScoringEngine:
    """Main scoring engine for decision clarity assessments.

    Usage:
        engine = ScoringEngine()
        result = engine.evaluate(answers, Variant.CORE)
        interpretation = engine.interpret(result)
    """

    def __init__(
        self,
        config: Optional[ScorerConfig] = None,
        registry: Optional[QuestionRegistry] = None,
        classifier: Optional[OpenTextClassifier] = None,
    ):
        """Initialize the scoring engine.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.config = config or get_config()
        validate_config(self.config)
        self.registry = registry or get_default_registry()

        self.normalizer = AnswerNormalizer(self.registry)
        self.dimension_scorer = DimensionScorer(self.registry)
        self.index_calculator = ClarityIndexCalculator(
            weights=self.config.index_weights,
            thresholds=self.config.thresholds,
        )
        self.process_scorer = ProcessScorer(self.registry)
        self.flag_engine = FlagEngine(
            self.registry,
            thresholds=self.config.thresholds,
            classifier=classifier,
        )
        self.gate_evaluator = GateEvaluator(
            thresholds=self.config.thresholds,
            adoption_risk=self.config.adoption_risk,
        )
        self.recommender = RecommendationEngine(thresholds=self.config.thresholds)
        self.explainer = ResultExplainer(self.config)

    def evaluate(
        self,
        answers: Iterable[Union[Answer, dict]],
        variant: Union[Variant, str],
        processes: Optional[Iterable[Union[ProcessArea, dict]]] = None,
    ) -> EvaluationResult:
        """Evaluate one assessment.

        Args:
            answers: Raw answers (Answer models or dicts)
            variant: Assessment variant
            processes: Optional process areas for per-process scoring

        Returns:
            EvaluationResult with scores, flags, gates and the recommendation
        """
        if not isinstance(variant, Variant):
            try:
                variant = Variant.from_string(variant)
            except ValueError as e:
                raise AssessmentInputError(f"Unknown variant: {variant}") from e
        variant_config = self.config.variant(variant)

        answers, malformed = self._parse_answers(answers)
        process_areas = [
            p if isinstance(p, ProcessArea) else ProcessArea.model_validate(p)
            for p in (processes or [])
        ]

        # Phase 1: Normalize
        snapshot, validation_details = self.normalizer.ingest(answers)
        if malformed:
            validation_details = sorted(
                validation_details + malformed,
                key=lambda d: (d.participant_id, d.question_id),
            )

        # Phase 2: Dimension scores
        dimension_scores = self.dimension_scorer.score(snapshot, variant_config)

        # Phase 3: Clarity index
        index = self.index_calculator.compute(dimension_scores.case_scores, variant_config)

        # Per-process scores feed the process gate
        process_scores = self.process_scorer.score(snapshot, process_areas)
        process_gate = gate_process_score(
            process_scores, dimension_scores.case_scores.get(GATE_DIMENSION)
        )

        # Phase 4: Flags
        flags = self.flag_engine.run(snapshot)

        # Phase 5: Gates
        gates = self.gate_evaluator.evaluate_all_gates(
            dimension_scores, flags, variant_config, process_score=process_gate
        )

        # Phase 6: Recommendation
        recommendation = self.recommender.recommend(index, flags, gates, variant_config)

        logger.info(
            "Evaluated %s: %d participants, index=%s, %d flag(s), %d gate(s), recommendation=%s",
            variant.value,
            len(snapshot.participants),
            index.value,
            flags.total_count,
            len(gates.gates),
            recommendation.value.value if recommendation.value else None,
        )

        return EvaluationResult(
            variant=variant,
            participant_count=len(snapshot.participants),
            answer_count=len(snapshot),
            dimension_scores=dimension_scores,
            clarity_index=index,
            process_scores=process_scores,
            process_gate_score=process_gate,
            flags=flags,
            gates=gates,
            recommendation=recommendation,
            validation_details=validation_details,
        )

    @staticmethod
    def _parse_answers(
        answers: Iterable[Union[Answer, dict]],
    ) -> tuple[list[Answer], list[ValidationDetail]]:
        """Parse raw answers, setting aside the ones that do not parse."""
        parsed = []
        malformed = []
        for raw in answers:
            if isinstance(raw, Answer):
                parsed.append(raw)
                continue
            try:
                parsed.append(Answer.model_validate(raw))
            except ValidationError as e:
                fields = raw if isinstance(raw, dict) else {}
                malformed.append(ValidationDetail(
                    code=ValidationCode.MALFORMED_ANSWER,
                    question_id=str(fields.get("question_id") or ""),
                    participant_id=str(fields.get("participant_id") or ""),
                    message=f"Answer could not be parsed: {e.errors()[0]['msg']}",
                ))
                logger.warning("Excluded malformed answer: %s", e)
        return parsed, malformed

    def evaluate_assessment(
        self,
        assessment: AssessmentInput,
        variant: Optional[Union[Variant, str]] = None,
    ) -> EvaluationResult:
        """Evaluate a parsed assessment document, optionally overriding its variant."""
        return self.evaluate(
            assessment.answers,
            variant or assessment.variant,
            processes=assessment.processes,
        )

    def evaluate_file(
        self,
        path: Union[str, Path],
        variant: Optional[Union[Variant, str]] = None,
    ) -> EvaluationResult:
        """Load and evaluate an assessment file."""
        return self.evaluate_assessment(load_assessment(path), variant)

    def interpret(self, result: EvaluationResult) -> CaseInterpretation:
        """Build the read-only interpretation of a finished result."""
        return self.explainer.explain(result)


def load_assessment(path: Union[str, Path]) -> AssessmentInput:
    """Load an assessment document from JSON or YAML.

    Raises:
        AssessmentInputError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise AssessmentInputError(f"Cannot read assessment: {e}", str(path)) from e

    # A bare list is treated as answers with the default variant
    if isinstance(data, list):
        data = {"answers": data}

    try:
        return AssessmentInput.model_validate(data or {})
    except (ValidationError, ValueError) as e:
        raise AssessmentInputError(f"Invalid assessment: {e}", str(path)) from e


def validate_assessment(
    path: Union[str, Path],
    registry: Optional[QuestionRegistry] = None,
) -> tuple[bool, list[str]]:
    """Validate an assessment file.

    Returns:
        Tuple of (is_valid, list of issues)
    """
    try:
        assessment = load_assessment(path)
    except AssessmentInputError as e:
        return False, [e.message]

    issues = []
    if not assessment.answers:
        issues.append("No answers found")

    normalizer = AnswerNormalizer(registry or get_default_registry())
    _, details = normalizer.ingest(assessment.answers)
    for detail in details:
        issues.append(
            f"{detail.participant_id}/{detail.question_id}: {detail.message}"
        )

    process_ids = {p.process_id for p in assessment.processes}
    for answer in assessment.answers:
        if answer.process_id and answer.process_id not in process_ids:
            issues.append(
                f"{answer.participant_id}/{answer.question_id}: "
                f"unknown process {answer.process_id}"
            )

    return len(issues) == 0, issues


def validate_config_file(path: Union[str, Path]) -> tuple[bool, list[str]]:
    """Validate a scorer configuration file.

    Returns:
        Tuple of (is_valid, list of issues)
    """
    try:
        parse_config(Path(path))
    except ConfigurationError as e:
        return False, e.issues
    except (OSError, yaml.YAMLError) as e:
        return False, [f"Cannot read config: {e}"]
    return True, []
