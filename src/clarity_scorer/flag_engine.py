"""Flag Engine - Phase 4 of the Scoring Engine.

Runs seven independent detectors over the same answer snapshot, each
looking for a distinct contradiction pattern, and classifies triggered
open-text answers alongside them. Flags are deduplicated and sorted by
severity so the output never depends on detector order.

A detector whose questions were not answered returns no flags.
"""

import logging
from itertools import combinations
from typing import Optional

from .config import ThresholdsConfig
from .normalizer import AnswerSnapshot, average_of
from .open_text import OpenTextAnalyzer, OpenTextClassifier
from .registry import QuestionRegistry
from .schema import (
    AnswerType,
    Flag,
    FlagEngineResult,
    FlagEvidence,
    FlagId,
    Role,
    Severity,
    TimePosition,
    TriadRole,
    TypedAnswer,
)

logger = logging.getLogger(__name__)

LIKERT_UNIT = 25.0  # 0-100 points per Likert step


def _matches_any(value: Optional[str], patterns: tuple[str, ...]) -> bool:
    if not value:
        return False
    lower = value.lower()
    return any(p.lower() in lower for p in patterns)


class FlagEngine:
    """Detects contradiction patterns in a set of answers.

    Detectors:
    - Within-role contradiction (reversed-logic pairs)
    - Claim / proof / consequence triads
    - Overconfidence (confidence vs. evidence strength)
    - Cross-role mismatch (same fact rated by several roles)
    - Ownership diffusion
    - Capacity illusion (forced trade-offs)
    - Complexity denial (time-separated pairs)
    - Open-text classification (no flags, feeds interpretation)
    """

    WEAK_PROOF_VALUES = (
        "Assumptions only",
        "No formal documentation",
        "No documentation",
    )

    UNOWNED_CONSEQUENCE_VALUES = (
        "The initiative will continue anyway",
        "Continue anyway",
        "This has not been defined",
        "Not defined",
    )

    # Evidence strength tiers, 5 = strongest
    EVIDENCE_STRENGTH = {
        "a documented financial baseline": 5,
        "measured results from a pilot": 4,
        "assumptions only": 2,
        "no formal documentation": 1,
        "no documentation": 1,
    }

    UNCLEAR_OWNERSHIP_VALUES = (
        "Not clearly defined",
        "No clear owner",
        "Not defined",
        "Unclear",
    )

    # Canonical ownership answers, matched on whole lowercase values
    OWNERSHIP_ALIASES = {
        "business owner": "Business Owner",
        "business": "Business Owner",
        "executive sponsor": "Executive Sponsor",
        "executive": "Executive Sponsor",
        "it / technical team": "IT / Technical Team",
        "it": "IT / Technical Team",
        "technical team": "IT / Technical Team",
        "joint responsibility": "Joint responsibility",
        "a clearly defined role": "A clearly defined role",
        "multiple shared roles": "Multiple shared roles",
    }
    UNCLEAR_OWNER = "Not clearly defined"

    NOTHING_VALUES = (
        "Nothing will be deprioritized",
        "Nothing critical will be impacted",
        "Nothing",
    )

    TRADE_OFF_FLAGS = {
        Role.BUSINESS_OWNER: FlagId.CAPACITY_ILLUSION_BUSINESS,
        Role.TECH_OWNER: FlagId.CAPACITY_ILLUSION_TECH,
    }

    # Cross-role gaps in this group are CRITICAL, all others WARN
    CRITICAL_MISMATCH_GROUPS = {"DATA_READINESS"}

    def __init__(
        self,
        registry: QuestionRegistry,
        thresholds: Optional[ThresholdsConfig] = None,
        classifier: Optional[OpenTextClassifier] = None,
    ):
        self.registry = registry
        self.thresholds = thresholds or ThresholdsConfig()
        self.open_text = OpenTextAnalyzer(
            registry,
            classifier=classifier,
            min_length=self.thresholds.open_text_min_length,
        )

    def run(self, snapshot: AnswerSnapshot) -> FlagEngineResult:
        """Run every detector and aggregate the flags."""
        detectors = (
            self._detect_within_role_contradictions,
            self._detect_triads,
            self._detect_overconfidence,
            self._detect_cross_role_mismatches,
            self._detect_ownership_diffusion,
            self._detect_capacity_illusion,
            self._detect_complexity_denial,
        )

        flags: list[Flag] = []
        for detector in detectors:
            found = detector(snapshot)
            logger.debug("%s: %d flag(s)", detector.__name__.lstrip("_"), len(found))
            flags.extend(found)

        flags = self._deduplicate(flags)
        flags.sort(key=lambda f: f.sort_key())

        counts = {s: sum(1 for f in flags if f.severity == s) for s in Severity}
        flag_ids = []
        for f in flags:
            if f.flag_id not in flag_ids:
                flag_ids.append(f.flag_id)

        return FlagEngineResult(
            flags=flags,
            critical_count=counts[Severity.CRITICAL],
            warn_count=counts[Severity.WARN],
            info_count=counts[Severity.INFO],
            total_count=len(flags),
            has_critical=counts[Severity.CRITICAL] > 0,
            flag_ids=flag_ids,
            open_text=self.open_text.classify_all(snapshot),
        )

    def _deduplicate(self, flags: list[Flag]) -> list[Flag]:
        seen = set()
        unique = []
        for f in flags:
            key = (f.flag_id, f.evidence.key())
            if key in seen:
                continue
            seen.add(key)
            unique.append(f)
        return unique

    def _is_high(self, answer: Optional[TypedAnswer]) -> bool:
        return (
            answer is not None
            and answer.score is not None
            and answer.score.adjusted >= self.thresholds.high_adjusted
        )

    def _detect_within_role_contradictions(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """A reversed question and its partner both answered high by one respondent."""
        flags = []
        for reversed_q, original_q in self.registry.reverse_pairs:
            for answer in snapshot.for_question(reversed_q.id):
                partner = snapshot.for_respondent(
                    answer.participant_id, original_q.id, answer.process_id
                )
                if not (self._is_high(answer) and self._is_high(partner)):
                    continue
                flags.append(Flag(
                    flag_id=FlagId.WITHIN_ROLE_CONTRADICTION,
                    severity=Severity.WARN,
                    evidence=FlagEvidence(
                        question_ids=[original_q.id, reversed_q.id],
                        raw_values={
                            original_q.id: partner.score.raw,
                            reversed_q.id: answer.score.raw,
                        },
                        roles=[answer.role],
                        participant_ids=[answer.participant_id],
                        description=(
                            f"{answer.role.value} agreed with both {original_q.id} and its "
                            f"reversed counterpart {reversed_q.id}."
                        ),
                    ),
                ))
        return flags

    def _detect_triads(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """High claims checked against proof strength and consequence ownership."""
        flags = []
        for group, members in self.registry.triads.items():
            claim_q = members.get(TriadRole.CLAIM)
            proof_q = members.get(TriadRole.PROOF)
            consequence_q = members.get(TriadRole.CONSEQUENCE)
            if not (claim_q and proof_q and consequence_q):
                continue

            for claim in snapshot.for_question(claim_q.id):
                proof = snapshot.for_respondent(
                    claim.participant_id, proof_q.id, claim.process_id
                )
                consequence = snapshot.for_respondent(
                    claim.participant_id, consequence_q.id, claim.process_id
                )
                if proof is None or consequence is None or not self._is_high(claim):
                    continue

                weak_proof = _matches_any(proof.choice, self.WEAK_PROOF_VALUES)
                unowned = _matches_any(consequence.choice, self.UNOWNED_CONSEQUENCE_VALUES)

                def triad_flag(flag_id: FlagId, severity: Severity, description: str) -> Flag:
                    return Flag(
                        flag_id=flag_id,
                        severity=severity,
                        evidence=FlagEvidence(
                            question_ids=[claim_q.id, proof_q.id, consequence_q.id],
                            raw_values={
                                claim_q.id: claim.score.raw,
                                proof_q.id: proof.choice,
                                consequence_q.id: consequence.choice or (
                                    consequence.score.raw if consequence.score else None
                                ),
                            },
                            roles=[claim.role],
                            participant_ids=[claim.participant_id],
                            group=group,
                            description=description,
                        ),
                    )

                if weak_proof and unowned:
                    flags.append(triad_flag(
                        FlagId.NARRATIVE_INFLATION_RISK, Severity.CRITICAL,
                        "High value claim with weak evidence and no owned consequence.",
                    ))
                    continue
                if weak_proof:
                    flags.append(triad_flag(
                        FlagId.PROOF_GAP, Severity.WARN,
                        "High value claim is not backed by documented evidence.",
                    ))
                if unowned:
                    flags.append(triad_flag(
                        FlagId.CONSEQUENCE_UNOWNED, Severity.WARN,
                        "Nobody owns what happens if the expected value is not realized.",
                    ))
        return flags

    def evidence_strength(self, value: Optional[str]) -> int:
        """Map an evidence answer to a 1-5 strength tier (3 when unknown)."""
        if not value:
            return 3
        lower = value.strip().lower()
        if lower in self.EVIDENCE_STRENGTH:
            return self.EVIDENCE_STRENGTH[lower]
        if "documented" in lower and "baseline" in lower:
            return 5
        if "pilot" in lower or "measured" in lower:
            return 4
        if "assumptions only" in lower:
            return 2
        if lower.startswith("no") and ("documentation" in lower or "formal" in lower):
            return 1
        return 3

    def _detect_overconfidence(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """Confidence at or above the claim level paired with weak evidence."""
        flags = []
        for confidence_q, evidence_q in self.registry.confidence_pairs:
            evidence = [a for a in snapshot.for_question(evidence_q.id) if a.choice]
            if not evidence:
                continue
            weakest = min(evidence, key=lambda a: self.evidence_strength(a.choice))
            strength = self.evidence_strength(weakest.choice)
            if strength == 1:
                severity = Severity.CRITICAL
            elif strength == 2:
                severity = Severity.WARN
            else:
                continue

            for confidence in snapshot.for_question(confidence_q.id):
                if not self._is_high(confidence):
                    continue
                flags.append(Flag(
                    flag_id=FlagId.OVERCONFIDENCE,
                    severity=severity,
                    evidence=FlagEvidence(
                        question_ids=[confidence_q.id, evidence_q.id],
                        raw_values={
                            confidence_q.id: confidence.score.raw,
                            evidence_q.id: weakest.choice,
                        },
                        roles=[confidence.role, weakest.role],
                        participant_ids=[confidence.participant_id, weakest.participant_id],
                        description=(
                            f"{confidence.role.value} reports high confidence while the "
                            f"supporting evidence is '{weakest.choice}'."
                        ),
                    ),
                ))
        return flags

    def _detect_cross_role_mismatches(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """Roles rating the same underlying fact far apart."""
        flags = []
        threshold = self.thresholds.cross_role_gap

        for group, questions in self.registry.contradiction_groups.items():
            role_answers: dict[Role, list[TypedAnswer]] = {}
            for q in questions:
                if q.answer_type != AnswerType.LIKERT:
                    continue
                for a in snapshot.for_question(q.id):
                    if a.score is not None:
                        role_answers.setdefault(a.role, []).append(a)

            roles = [r for r in Role if r in role_answers]
            if len(roles) < 2:
                continue

            role_scores = {
                r: average_of(a.score.score_0_100 for a in role_answers[r]) for r in roles
            }
            severity = (
                Severity.CRITICAL if group in self.CRITICAL_MISMATCH_GROUPS else Severity.WARN
            )

            for role_a, role_b in combinations(roles, 2):
                score_a, score_b = role_scores[role_a], role_scores[role_b]
                gap = abs(score_a - score_b)
                if gap / LIKERT_UNIT < threshold:
                    continue
                question_ids = sorted(
                    {a.question_id for a in role_answers[role_a] + role_answers[role_b]},
                    key=lambda qid: [q.id for q in questions].index(qid),
                )
                flags.append(Flag(
                    flag_id=FlagId.CROSS_ROLE_MISMATCH,
                    severity=severity,
                    evidence=FlagEvidence(
                        question_ids=question_ids,
                        raw_values={
                            f"{role_a.value}_score": round(score_a, 1),
                            f"{role_b.value}_score": round(score_b, 1),
                        },
                        roles=[role_a, role_b],
                        group=group,
                        gap=round(gap, 1),
                        description=(
                            f"{role_a.value} and {role_b.value} differ by {gap:.0f} points "
                            f"on {group.replace('_', ' ').lower()}."
                        ),
                    ),
                ))
        return flags

    def normalize_ownership(self, value: str) -> str:
        """Canonical form of an ownership answer."""
        if _matches_any(value, self.UNCLEAR_OWNERSHIP_VALUES):
            return self.UNCLEAR_OWNER
        key = " ".join(value.split()).lower()
        return self.OWNERSHIP_ALIASES.get(key, " ".join(value.split()))

    def _detect_ownership_diffusion(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """Ownership answered three different ways, or with no owner at all."""
        answers = []
        for q in self.registry.ownership_questions:
            answers.extend(a for a in snapshot.for_question(q.id) if a.choice)
        if not answers:
            return []

        normalized = [self.normalize_ownership(a.choice) for a in answers]
        distinct = sorted(set(normalized))
        has_unclear = self.UNCLEAR_OWNER in distinct
        if len(distinct) < 3 and not has_unclear:
            return []

        if has_unclear:
            description = "At least one role reports that ownership is not clearly defined."
        else:
            description = f"Ownership is answered {len(distinct)} different ways across roles."

        return [Flag(
            flag_id=FlagId.OWNERSHIP_DIFFUSION,
            severity=Severity.CRITICAL,
            evidence=FlagEvidence(
                question_ids=sorted({a.question_id for a in answers}, key=self._question_order),
                raw_values={f"{a.question_id}:{a.participant_id}": a.choice for a in answers},
                roles=[r for r in Role if any(a.role == r for a in answers)],
                description=description,
            ),
        )]

    def _detect_capacity_illusion(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """Business and technical owners claiming nothing has to give."""
        nothing: dict[Role, list[TypedAnswer]] = {}
        for q in self.registry.trade_off_questions:
            if q.role not in self.TRADE_OFF_FLAGS:
                continue
            for a in snapshot.for_question(q.id):
                if _matches_any(a.choice, self.NOTHING_VALUES):
                    nothing.setdefault(q.role, []).append(a)

        def evidence(answers: list[TypedAnswer], description: str) -> FlagEvidence:
            return FlagEvidence(
                question_ids=sorted({a.question_id for a in answers}, key=self._question_order),
                raw_values={a.question_id: a.choice for a in answers},
                roles=[r for r in Role if any(a.role == r for a in answers)],
                description=description,
            )

        if len(nothing) == len(self.TRADE_OFF_FLAGS):
            all_answers = [a for role in self.TRADE_OFF_FLAGS for a in nothing[role]]
            return [Flag(
                flag_id=FlagId.CAPACITY_ILLUSION_CONFIRMED,
                severity=Severity.CRITICAL,
                evidence=evidence(
                    all_answers,
                    "Both business and technical owners state that nothing will be impacted.",
                ),
            )]

        flags = []
        for role, answers in nothing.items():
            flags.append(Flag(
                flag_id=self.TRADE_OFF_FLAGS[role],
                severity=Severity.WARN,
                evidence=evidence(
                    answers,
                    f"{role.value} states that nothing will be impacted by this initiative.",
                ),
            ))
        return flags

    def _detect_complexity_denial(self, snapshot: AnswerSnapshot) -> list[Flag]:
        """Early simplicity claim and late complexity acknowledgment, both high."""
        flags = []
        for pair_id, members in self.registry.time_pairs.items():
            early_q = members.get(TimePosition.EARLY)
            late_q = members.get(TimePosition.LATE)
            if not (early_q and late_q):
                continue
            for early in snapshot.for_question(early_q.id):
                late = snapshot.for_respondent(early.participant_id, late_q.id, early.process_id)
                if not (self._is_high(early) and self._is_high(late)):
                    continue
                flags.append(Flag(
                    flag_id=FlagId.COMPLEXITY_DENIAL,
                    severity=Severity.WARN,
                    evidence=FlagEvidence(
                        question_ids=[early_q.id, late_q.id],
                        raw_values={
                            early_q.id: early.score.raw,
                            late_q.id: late.score.raw,
                        },
                        roles=[early.role],
                        participant_ids=[early.participant_id],
                        group=pair_id,
                        description=(
                            f"{early.role.value} expects simplification ({early_q.id}) "
                            f"and also new complexity ({late_q.id})."
                        ),
                    ),
                ))
        return flags

    def _question_order(self, question_id: str) -> int:
        for i, q in enumerate(self.registry.questions):
            if q.id == question_id:
                return i
        return len(self.registry)
