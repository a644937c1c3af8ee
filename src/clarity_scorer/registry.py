"""Question Registry - read-only catalog of survey questions.

Loads question definitions once and builds the lookup indexes the flag
engine needs: reverse pairs, triads, contradiction groups, confidence
pairs, ownership and trade-off questions, time pairs and open-text
follow-ups. Every index is immutable; the registry is passed by reference
into each evaluation.
"""

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .schema import (
    AnswerType,
    Dimension,
    QuestionDefinition,
    Role,
    TimePosition,
    TriadRole,
)

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "data" / "questions.yaml"


class QuestionRegistry:
    """Immutable question catalog with group-membership indexes."""

    def __init__(self, questions: Iterable[QuestionDefinition]):
        questions = tuple(questions)
        by_id: dict[str, QuestionDefinition] = {}
        for q in questions:
            if q.id in by_id:
                raise ConfigurationError(f"Duplicate question id in registry: {q.id}")
            by_id[q.id] = q

        self._questions = questions
        self._by_id: Mapping[str, QuestionDefinition] = MappingProxyType(by_id)
        self._validate()

        self._reverse_pairs = tuple(
            (q, by_id[q.reverse_of]) for q in questions if q.is_reverse and q.reverse_of
        )
        self._triads = self._build_triads()
        self._contradiction_groups = self._group_by(lambda q: q.contradiction_group)
        self._confidence_pairs = tuple(
            (q, by_id[q.confidence_pair_id]) for q in questions if q.confidence_pair_id
        )
        self._ownership_questions = tuple(q for q in questions if q.ownership_group)
        self._trade_off_questions = tuple(q for q in questions if q.trade_off_group)
        self._time_pairs = self._build_time_pairs()
        self._open_text_questions = tuple(
            q for q in questions if q.answer_type == AnswerType.TEXT
        )

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._by_id

    def __iter__(self):
        return iter(self._questions)

    def get(self, question_id: str) -> Optional[QuestionDefinition]:
        return self._by_id.get(question_id)

    @property
    def questions(self) -> tuple[QuestionDefinition, ...]:
        return self._questions

    def for_role(self, role: Role) -> list[QuestionDefinition]:
        return [q for q in self._questions if q.role == role]

    def for_dimension(self, dimension: Dimension) -> list[QuestionDefinition]:
        return [q for q in self._questions if q.dimension == dimension]

    @property
    def reverse_pairs(self) -> tuple[tuple[QuestionDefinition, QuestionDefinition], ...]:
        """(reversed question, the question it reverses)."""
        return self._reverse_pairs

    @property
    def triads(self) -> Mapping[str, Mapping[TriadRole, QuestionDefinition]]:
        return self._triads

    @property
    def contradiction_groups(self) -> Mapping[str, tuple[QuestionDefinition, ...]]:
        return self._contradiction_groups

    @property
    def confidence_pairs(self) -> tuple[tuple[QuestionDefinition, QuestionDefinition], ...]:
        """(confidence question, evidence question)."""
        return self._confidence_pairs

    @property
    def ownership_questions(self) -> tuple[QuestionDefinition, ...]:
        return self._ownership_questions

    @property
    def trade_off_questions(self) -> tuple[QuestionDefinition, ...]:
        return self._trade_off_questions

    @property
    def time_pairs(self) -> Mapping[str, Mapping[TimePosition, QuestionDefinition]]:
        return self._time_pairs

    @property
    def open_text_questions(self) -> tuple[QuestionDefinition, ...]:
        return self._open_text_questions

    def _validate(self) -> None:
        """Check cross-references between questions."""
        issues = []
        for q in self._questions:
            for attr in ("reverse_of", "confidence_pair_id", "trigger_question_id"):
                ref = getattr(q, attr)
                if ref and ref not in self._by_id:
                    issues.append(f"{q.id}.{attr} references unknown question {ref}")
            if q.reverse_of and not q.is_reverse:
                issues.append(f"{q.id} has reverse_of but is not reversed")
            if q.triad_group and not q.triad_role:
                issues.append(f"{q.id} is in triad {q.triad_group} without a triad_role")
            if q.time_pair_id and not q.time_position:
                issues.append(f"{q.id} is in time pair {q.time_pair_id} without a time_position")
            if q.answer_type == AnswerType.SINGLE_SELECT and not q.options:
                issues.append(f"{q.id} is single-select without options")
        if issues:
            raise ConfigurationError(
                f"Invalid question registry: {'; '.join(issues)}",
                issues=issues,
            )

    def _group_by(self, key) -> Mapping[str, tuple[QuestionDefinition, ...]]:
        groups: dict[str, list[QuestionDefinition]] = {}
        for q in self._questions:
            name = key(q)
            if name:
                groups.setdefault(name, []).append(q)
        return MappingProxyType({name: tuple(qs) for name, qs in groups.items()})

    def _build_triads(self) -> Mapping[str, Mapping[TriadRole, QuestionDefinition]]:
        triads: dict[str, dict[TriadRole, QuestionDefinition]] = {}
        for q in self._questions:
            if q.triad_group and q.triad_role:
                members = triads.setdefault(q.triad_group, {})
                if q.triad_role in members:
                    raise ConfigurationError(
                        f"Triad {q.triad_group} has two {q.triad_role.value} questions"
                    )
                members[q.triad_role] = q
        return MappingProxyType({k: MappingProxyType(v) for k, v in triads.items()})

    def _build_time_pairs(self) -> Mapping[str, Mapping[TimePosition, QuestionDefinition]]:
        pairs: dict[str, dict[TimePosition, QuestionDefinition]] = {}
        for q in self._questions:
            if q.time_pair_id and q.time_position:
                pairs.setdefault(q.time_pair_id, {})[q.time_position] = q
        return MappingProxyType({k: MappingProxyType(v) for k, v in pairs.items()})


def load_registry(path: Optional[Path] = None) -> QuestionRegistry:
    """Load a question registry from YAML.

    Args:
        path: Registry file. Defaults to the bundled questions.yaml.

    Raises:
        ConfigurationError: If the file is malformed or fails integrity checks.
    """
    path = Path(path) if path else DEFAULT_REGISTRY_PATH

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    raw_questions = data.get("questions") if isinstance(data, dict) else None
    if not raw_questions:
        raise ConfigurationError(f"No questions found in registry file {path}")

    try:
        questions = [QuestionDefinition.model_validate(q) for q in raw_questions]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid question definition in {path}: {e}") from e

    registry = QuestionRegistry(questions)
    logger.debug("Loaded %d questions from %s", len(registry), path)
    return registry


@lru_cache(maxsize=1)
def get_default_registry() -> QuestionRegistry:
    """The bundled registry, loaded once per process."""
    return load_registry()
