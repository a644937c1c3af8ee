"""Tests for the contradiction flag detectors."""

import pytest

from clarity_scorer.flag_engine import FlagEngine
from clarity_scorer.open_text import KeywordClassifier, OpenTextClassifier
from clarity_scorer.schema import (
    Flag,
    FlagEvidence,
    FlagId,
    OpenTextCategory,
    Role,
    Severity,
)


@pytest.fixture
def flag_engine(registry):
    return FlagEngine(registry)


@pytest.fixture
def run_flags(flag_engine, snapshot_of):
    def _run(answers):
        return flag_engine.run(snapshot_of(answers))
    return _run


def ids(result):
    return [f.flag_id for f in result.flags]


class TestWithinRoleContradiction:
    """Tests for reversed-logic pairs."""

    def test_both_high_flags(self, run_flags, make_answer):
        """A respondent high on a statement and on its reversed partner."""
        result = run_flags([make_answer("E1", 5), make_answer("E6", 1)])

        assert ids(result) == [FlagId.WITHIN_ROLE_CONTRADICTION]
        flag = result.flags[0]
        assert flag.severity == Severity.WARN
        assert flag.evidence.question_ids == ["E1", "E6"]
        assert flag.evidence.raw_values == {"E1": 5, "E6": 1}

    def test_consistent_answers_do_not_flag(self, run_flags, make_answer):
        """A low adjusted score on either side means no contradiction."""
        result = run_flags([make_answer("E1", 5), make_answer("E6", 4)])

        assert result.flags == []

    def test_different_participants_do_not_pair(self, run_flags, make_answer):
        """Answers from two executives are never compared with each other."""
        result = run_flags([
            make_answer("E1", 5, participant="exec-a"),
            make_answer("E6", 1, participant="exec-b"),
        ])

        assert result.flags == []

    def test_answers_from_different_processes_do_not_pair(self, run_flags, make_answer):
        """Each process is checked on its own answers."""
        result = run_flags([
            make_answer("P1", 5, process_id="intake"),
            make_answer("P2", 5, process_id="intake"),
            make_answer("P1", 1, process_id="billing"),
            make_answer("P2", 1, process_id="billing"),
        ])

        assert FlagId.WITHIN_ROLE_CONTRADICTION not in ids(result)

    def test_contradiction_within_one_process(self, run_flags, make_answer):
        """Both statements agreed with inside the same process still flag."""
        result = run_flags([
            make_answer("P1", 5, process_id="intake"),
            make_answer("P2", 1, process_id="intake"),
            make_answer("P1", 1, process_id="billing"),
            make_answer("P2", 5, process_id="billing"),
        ])

        assert ids(result) == [FlagId.WITHIN_ROLE_CONTRADICTION]
        assert result.flags[0].evidence.raw_values == {"P1": 5, "P2": 1}


class TestTriads:
    """Tests for claim / proof / consequence triads."""

    def test_weak_proof_and_unowned_consequence(self, run_flags, make_answer):
        """Both failures escalate to one critical narrative inflation flag."""
        result = run_flags([
            make_answer("B1", 5),
            make_answer("B2", "Assumptions only"),
            make_answer("B3", "The initiative will continue anyway"),
        ])

        assert ids(result) == [FlagId.NARRATIVE_INFLATION_RISK]
        assert result.flags[0].severity == Severity.CRITICAL
        assert not result.has_flag(FlagId.PROOF_GAP)

    def test_weak_proof_only(self, run_flags, make_answer):
        """An owned consequence leaves only the proof gap."""
        result = run_flags([
            make_answer("B1", 5),
            make_answer("B2", "No formal documentation"),
            make_answer("B3", "The initiative will be stopped"),
        ])

        assert ids(result) == [FlagId.PROOF_GAP]
        assert result.flags[0].severity == Severity.WARN

    def test_unowned_consequence_only(self, run_flags, make_answer):
        """Strong proof with nobody owning failure."""
        result = run_flags([
            make_answer("B1", 4),
            make_answer("B2", "A documented financial baseline"),
            make_answer("B3", "This has not been defined"),
        ])

        assert ids(result) == [FlagId.CONSEQUENCE_UNOWNED]

    def test_moderate_claim_not_checked(self, run_flags, make_answer):
        """A neutral value claim is not held to the triad."""
        result = run_flags([
            make_answer("B1", 3),
            make_answer("B2", "Assumptions only"),
            make_answer("B3", "The initiative will continue anyway"),
        ])

        assert result.flags == []

    def test_incomplete_triad_skipped(self, run_flags, make_answer):
        """Without the consequence answer the triad is not evaluated."""
        result = run_flags([
            make_answer("B1", 5),
            make_answer("B2", "Assumptions only"),
        ])

        assert result.flags == []


class TestOverconfidence:
    """Tests for confidence measured against evidence strength."""

    def test_high_confidence_without_documentation(self, run_flags, make_answer):
        """Confidence at 5 with no documentation is critical."""
        result = run_flags([
            make_answer("E24", 5),
            make_answer("B2", "No formal documentation"),
        ])

        assert ids(result) == [FlagId.OVERCONFIDENCE]
        flag = result.flags[0]
        assert flag.severity == Severity.CRITICAL
        assert flag.evidence.roles == [Role.EXEC, Role.BUSINESS_OWNER]

    def test_high_confidence_on_assumptions(self, run_flags, make_answer):
        """Confidence at 4 resting on assumptions is a warning."""
        result = run_flags([
            make_answer("B12", 4),
            make_answer("B2", "Assumptions only"),
        ])

        assert ids(result) == [FlagId.OVERCONFIDENCE]
        assert result.flags[0].severity == Severity.WARN

    def test_pilot_evidence_supports_confidence(self, run_flags, make_answer):
        """Measured pilot results justify high confidence."""
        result = run_flags([
            make_answer("T13", 5),
            make_answer("B2", "Measured results from a pilot"),
        ])

        assert result.flags == []

    def test_neutral_confidence_not_flagged(self, run_flags, make_answer):
        """Confidence below the claim level is never overconfidence."""
        result = run_flags([
            make_answer("E24", 3),
            make_answer("B2", "No formal documentation"),
        ])

        assert result.flags == []

    @pytest.mark.parametrize("value,strength", [
        ("A documented financial baseline", 5),
        ("Documented cost baseline", 5),
        ("Pilot study", 4),
        ("Assumptions only", 2),
        ("No documentation", 1),
        ("Something else", 3),
        (None, 3),
    ])
    def test_evidence_strength(self, flag_engine, value, strength):
        """Evidence answers map onto strength tiers, unknown text is neutral."""
        assert flag_engine.evidence_strength(value) == strength


class TestCrossRoleMismatch:
    """Tests for roles rating the same fact far apart."""

    def test_data_readiness_gap_is_critical(self, run_flags, make_answer):
        """Executives and technical owners far apart on data readiness."""
        result = run_flags([make_answer("E17", 5), make_answer("T1", 2)])

        assert ids(result) == [FlagId.CROSS_ROLE_MISMATCH]
        flag = result.flags[0]
        assert flag.severity == Severity.CRITICAL
        assert flag.evidence.group == "DATA_READINESS"
        assert flag.evidence.gap == 75.0
        assert flag.evidence.roles == [Role.EXEC, Role.TECH_OWNER]
        assert flag.evidence.raw_values == {"EXEC_score": 100.0, "TECH_OWNER_score": 25.0}

    def test_other_groups_warn(self, run_flags, make_answer):
        """Value quantification gaps are warnings."""
        result = run_flags([make_answer("E7", 5), make_answer("B1", 3)])

        assert ids(result) == [FlagId.CROSS_ROLE_MISMATCH]
        assert result.flags[0].severity == Severity.WARN

    def test_small_gap_ignored(self, run_flags, make_answer):
        """One Likert step apart is below the threshold."""
        result = run_flags([make_answer("E7", 5), make_answer("B1", 4)])

        assert result.flags == []

    def test_role_average_used(self, run_flags, make_answer):
        """Several answers from one role are averaged before comparing."""
        result = run_flags([
            make_answer("E7", 5),
            make_answer("B1", 3, participant="biz-a"),
            make_answer("B1", 4, participant="biz-b"),
        ])

        assert result.flags[0].evidence.gap == 37.5


class TestOwnershipDiffusion:
    """Tests for outcome ownership answers across roles."""

    def test_unclear_owner_with_two_distinct_answers(self, run_flags, make_answer):
        """Any 'not clearly defined' answer is critical on its own."""
        result = run_flags([
            make_answer("E12", "Business Owner"),
            make_answer("B4", "Not clearly defined"),
        ])

        assert ids(result) == [FlagId.OWNERSHIP_DIFFUSION]
        assert result.flags[0].severity == Severity.CRITICAL

    def test_three_distinct_owners(self, run_flags, make_answer):
        """Three different named owners is diffusion."""
        result = run_flags([
            make_answer("E12", "Business Owner"),
            make_answer("B4", "Executive Sponsor"),
            make_answer("T10", "IT / Technical Team"),
        ])

        assert ids(result) == [FlagId.OWNERSHIP_DIFFUSION]
        assert result.flags[0].evidence.roles == [
            Role.EXEC, Role.BUSINESS_OWNER, Role.TECH_OWNER,
        ]

    def test_aliases_collapse(self, run_flags, make_answer):
        """'Business' and 'Business Owner' are the same owner."""
        result = run_flags([
            make_answer("E12", "Business Owner"),
            make_answer("T10", "Business"),
            make_answer("B4", "Joint responsibility"),
        ])

        assert result.flags == []

    def test_agreement_not_flagged(self, run_flags, make_answer):
        """All roles naming the same owner."""
        result = run_flags([
            make_answer("E12", "Business Owner"),
            make_answer("B4", "Business Owner"),
        ])

        assert result.flags == []

    def test_process_owner_without_owner(self, run_flags, make_answer):
        """A single 'no clear owner' answer is enough."""
        result = run_flags([make_answer("P5", "No clear owner")])

        assert ids(result) == [FlagId.OWNERSHIP_DIFFUSION]

    @pytest.mark.parametrize("value,expected", [
        ("joint responsibility", "Joint responsibility"),
        ("IT", "IT / Technical Team"),
        ("  Business   Owner ", "Business Owner"),
        ("Unclear", "Not clearly defined"),
        ("Finance team", "Finance team"),
    ])
    def test_normalize_ownership(self, flag_engine, value, expected):
        """Whole-value aliases only, so 'responsibility' is not read as IT."""
        assert flag_engine.normalize_ownership(value) == expected


class TestCapacityIllusion:
    """Tests for forced trade-off questions."""

    def test_business_only(self, run_flags, make_answer):
        """The business owner alone claiming nothing gives way."""
        result = run_flags([
            make_answer("B9", "Nothing will be deprioritized"),
            make_answer("T6", "Teams will be overloaded"),
        ])

        assert ids(result) == [FlagId.CAPACITY_ILLUSION_BUSINESS]
        assert result.flags[0].severity == Severity.WARN

    def test_tech_only(self, run_flags, make_answer):
        """The technical owner alone claiming nothing is impacted."""
        result = run_flags([make_answer("T6", "Nothing critical will be impacted")])

        assert ids(result) == [FlagId.CAPACITY_ILLUSION_TECH]

    def test_confirmed_replaces_role_warnings(self, run_flags, make_answer):
        """Both owners claiming nothing gives only the confirmed flag."""
        result = run_flags([
            make_answer("B9", "Nothing will be deprioritized"),
            make_answer("T6", "Nothing critical will be impacted"),
        ])

        assert ids(result) == [FlagId.CAPACITY_ILLUSION_CONFIRMED]
        assert result.flags[0].severity == Severity.CRITICAL

    def test_user_answer_ignored(self, run_flags, make_answer):
        """Users answering 'Nothing' is not a capacity illusion."""
        result = run_flags([make_answer("U4", "Nothing")])

        assert result.flags == []


class TestComplexityDenial:
    """Tests for time-separated complexity pairs."""

    def test_simple_and_complex(self, run_flags, make_answer):
        """Agreeing early that it simplifies and late that it adds complexity."""
        result = run_flags([make_answer("B10", 5), make_answer("B11", 4)])

        assert ids(result) == [FlagId.COMPLEXITY_DENIAL]
        assert result.flags[0].evidence.group == "BIZ_COMPLEXITY"

    def test_low_late_answer(self, run_flags, make_answer):
        """Not acknowledging new complexity is consistent."""
        result = run_flags([make_answer("B10", 5), make_answer("B11", 2)])

        assert result.flags == []

    def test_early_question_without_partner(self, run_flags, make_answer):
        """A time pair with only an early question never fires."""
        result = run_flags([make_answer("E3", 5)])

        assert result.flags == []


class TestFlagAggregation:
    """Tests for the combined flag result."""

    def test_empty_snapshot(self, run_flags):
        """No answers, no flags, no errors."""
        result = run_flags([])

        assert result.flags == []
        assert result.total_count == 0
        assert not result.has_critical

    def test_sorted_by_severity(self, run_flags, make_answer):
        """Critical flags come before warnings."""
        result = run_flags([
            make_answer("B10", 5),
            make_answer("B11", 5),
            make_answer("E17", 5),
            make_answer("T1", 1),
            make_answer("B9", "Nothing will be deprioritized"),
        ])

        ranks = [f.severity.rank for f in result.flags]
        assert ranks == sorted(ranks)
        assert result.flags[0].flag_id == FlagId.CROSS_ROLE_MISMATCH
        assert result.critical_count == 1
        assert result.warn_count == 2
        assert result.has_critical

    def test_input_order_does_not_matter(self, run_flags, make_answer):
        """The same answers in reverse order give identical flags."""
        answers = [
            make_answer("E1", 5),
            make_answer("E6", 1),
            make_answer("E7", 5),
            make_answer("B1", 1),
            make_answer("B12", 5),
            make_answer("B2", "Assumptions only"),
        ]
        forward = run_flags(answers)
        backward = run_flags(list(reversed(answers)))

        assert forward.model_dump() == backward.model_dump()

    def test_duplicates_removed(self, flag_engine):
        """Identical flag and evidence is reported once."""
        flag = Flag(
            flag_id=FlagId.PROOF_GAP,
            severity=Severity.WARN,
            evidence=FlagEvidence(question_ids=["B1", "B2", "B3"], roles=[Role.BUSINESS_OWNER]),
        )

        assert len(flag_engine._deduplicate([flag, flag])) == 1


class FixedClassifier(OpenTextClassifier):
    def __init__(self, label):
        self.label = label

    def classify(self, text):
        return self.label, 0.9


class TestOpenText:
    """Tests for free-text classification."""

    def test_triggered_text_classified(self, run_flags, make_answer):
        """A follow-up answer after its trigger is classified, not flagged."""
        result = run_flags([
            make_answer("E24", 4),
            make_answer("E25", "Data quality is poor and incomplete"),
        ])

        assert result.flags == []
        assert len(result.open_text) == 1
        assert result.open_text[0].category == OpenTextCategory.DATA_QUALITY

    def test_untriggered_text_skipped(self, run_flags, make_answer):
        """Text without an answer to its trigger question is ignored."""
        result = run_flags([make_answer("E25", "Data quality is poor and incomplete")])

        assert result.open_text == []

    def test_short_text_skipped(self, run_flags, make_answer):
        """Very short answers are not classified."""
        result = run_flags([make_answer("E24", 4), make_answer("E25", "ok")])

        assert result.open_text == []

    def test_unknown_labels_coerced(self, registry, snapshot_of, make_answer):
        """A classifier label outside the closed set becomes unclassified."""
        engine = FlagEngine(registry, classifier=FixedClassifier("Budget"))
        result = engine.run(snapshot_of([
            make_answer("B12", 4),
            make_answer("B13", "The budget is not approved yet"),
        ]))

        assert result.open_text[0].category == OpenTextCategory.UNCLASSIFIED
        assert result.open_text[0].confidence == 0.0

    @pytest.mark.parametrize("text,category,confidence", [
        ("There is a lot of politics and blame", OpenTextCategory.ROLE_CONFLICT, 0.8),
        ("general risk here", OpenTextCategory.KNOWN_RISK, 0.7),
        ("lorem ipsum", OpenTextCategory.UNCLASSIFIED, 0.0),
    ])
    def test_keyword_classifier(self, text, category, confidence):
        """Specific keyword groups outrank generic risk words."""
        label, score = KeywordClassifier().classify(text)

        assert OpenTextCategory.from_label(label) == category
        assert score == pytest.approx(confidence)
