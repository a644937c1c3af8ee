"""Shared fixtures for the clarity scorer tests."""

import logging

import pytest

from clarity_scorer.app_logging import ROOT_LOGGER_NAME
from clarity_scorer.config import ScorerConfig, reset_config
from clarity_scorer.engine import ScoringEngine
from clarity_scorer.normalizer import AnswerNormalizer
from clarity_scorer.registry import get_default_registry
from clarity_scorer.schema import Answer, AnswerType, Role


# Select answers that keep a case free of flags
CLEAR_CHOICES = {
    "E12": "Business Owner",
    "B2": "A documented financial baseline",
    "B3": "The initiative will be stopped",
    "B4": "Business Owner",
    "B9": "Another initiative",
    "T6": "Teams will be overloaded",
    "T10": "Business",
    "U4": "Reporting",
    "P5": "A clearly defined role",
}

# Late complexity acknowledgments answered low so no denial pair fires
LOW_LIKERT = {"B11": 2, "T12": 2}


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the default global configuration."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def quiet_package_logger():
    """Undo any handlers installed by setup_logging during a test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(scope="session")
def registry():
    return get_default_registry()


@pytest.fixture
def config():
    return ScorerConfig()


@pytest.fixture
def engine(config):
    return ScoringEngine(config=config)


@pytest.fixture
def make_answer(registry):
    """Factory for answers with the role taken from the registry."""
    def _make(question_id, value, participant=None, process_id=None, role=None):
        question = registry.get(question_id)
        role = role or question.role
        return Answer(
            question_id=question_id,
            participant_id=participant or f"{role.value.lower()}-1",
            role=role,
            raw_value=value,
            process_id=process_id,
        )
    return _make


@pytest.fixture
def snapshot_of(registry):
    """Ingest answers and return only the snapshot."""
    def _snapshot(answers):
        snapshot, _ = AnswerNormalizer(registry).ingest(answers)
        return snapshot
    return _snapshot


@pytest.fixture
def clear_answers(registry, make_answer):
    """Factory for a high-clarity answer set covering the given roles.

    Likert questions are answered at the clear end of the scale. Reversed
    questions with a partner are skipped, since answering both ends of a
    pair counts as a contradiction. Overrides replace single values; an
    override of None drops the question.
    """
    def _build(roles, overrides=None, participant_suffix="1"):
        overrides = overrides or {}
        answers = []
        for role in roles:
            participant = f"{role.value.lower()}-{participant_suffix}"
            for q in registry.for_role(role):
                if q.id in overrides:
                    value = overrides[q.id]
                elif q.answer_type == AnswerType.LIKERT:
                    if q.reverse_of:
                        continue
                    value = LOW_LIKERT.get(q.id, 1 if q.is_reverse else 5)
                elif q.answer_type == AnswerType.SINGLE_SELECT:
                    value = CLEAR_CHOICES.get(q.id)
                else:
                    value = None
                if value is None:
                    continue
                answers.append(make_answer(q.id, value, participant=participant))
        return answers
    return _build

