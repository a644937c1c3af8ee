"""Explainer - read-only interpretation of an evaluation result.

Builds top mismatches, ranked blind spots, the next-gate checklist and
summary lines from a finished EvaluationResult. Nothing here feeds back
into scoring; the result is only read.
"""

from typing import Optional

from .clarity_index import classify_process_readiness
from .config import ScorerConfig, get_config
from .schema import (
    GATE_DIMENSION,
    BlindSpot,
    CaseInterpretation,
    ChecklistItem,
    CrossRoleMismatch,
    EvaluationResult,
    Flag,
    FlagId,
    OpenTextClassification,
    OpenTextCategory,
    Role,
    Severity,
    Verdict,
)


class ResultExplainer:
    """Generates deterministic interpretation for evaluation results.

    Principles:
    - Reads the finished result, never recomputes it
    - Every blind spot and checklist item links back to its flag or gate
    - Single-participant cases have no blind spots
    """

    FLAG_LABELS = {
        "NARRATIVE_INFLATION_RISK": "Value claims may be inflated",
        "PROOF_GAP": "Value assumptions lack evidence",
        "CONSEQUENCE_UNOWNED": "Failure consequences not owned",
        "OVERCONFIDENCE": "Confidence exceeds evidence",
        "CROSS_ROLE_MISMATCH": "Roles see different realities",
        "OWNERSHIP_DIFFUSION": "Accountability is unclear",
        "CAPACITY_ILLUSION_BUSINESS": "Business underestimates impact",
        "CAPACITY_ILLUSION_TECH": "Technical team underestimates impact",
        "CAPACITY_ILLUSION_CONFIRMED": "Organization-wide capacity illusion",
        "COMPLEXITY_DENIAL": "Complexity is being downplayed",
        "WITHIN_ROLE_CONTRADICTION": "Contradictory responses detected",
        "ADOPTION_RISK": "Adoption barriers underestimated",
        "AUTOMATION_PREMATURITY": "Process not ready for automation",
        "LOW_DIMENSION_SCORE_D1": "Strategic intent unclear",
        "LOW_DIMENSION_SCORE_D2": "Value case weak",
        "LOW_DIMENSION_SCORE_D3": "Organization not ready",
        "LOW_DIMENSION_SCORE_D4": "Risks not understood",
        "LOW_DIMENSION_SCORE_D5": "Governance gaps",
    }

    # (prompt, responsible role, required input type)
    CHECKLIST_TEMPLATES = {
        "NARRATIVE_INFLATION_RISK": (
            "Document the quantified value baseline with supporting evidence "
            "(financial data, pilot results, or documented metrics).",
            Role.BUSINESS_OWNER.value, "DOCUMENT",
        ),
        "PROOF_GAP": (
            "Provide documented evidence supporting the value estimate "
            "(financial baseline, pilot results, or formal analysis).",
            Role.BUSINESS_OWNER.value, "DOCUMENT",
        ),
        "CONSEQUENCE_UNOWNED": (
            "Define and assign accountability for what happens if expected value is not realized.",
            Role.EXEC.value, "DECISION",
        ),
        "OVERCONFIDENCE": (
            "Review assumptions and gather supporting evidence to validate confidence level.",
            "ALL", "DATA",
        ),
        "CROSS_ROLE_MISMATCH": (
            "Conduct alignment session between roles to resolve perception gaps "
            "and establish shared understanding.",
            "ALL", "MEETING",
        ),
        "OWNERSHIP_DIFFUSION": (
            "Clarify and document single-point accountability for initiative success/failure.",
            Role.EXEC.value, "DECISION",
        ),
        "CAPACITY_ILLUSION_BUSINESS": (
            "Identify what will be deprioritized or delayed to accommodate this initiative.",
            Role.BUSINESS_OWNER.value, "DECISION",
        ),
        "CAPACITY_ILLUSION_TECH": (
            "Document realistic capacity impact and identify trade-offs for delivery.",
            Role.TECH_OWNER.value, "DOCUMENT",
        ),
        "CAPACITY_ILLUSION_CONFIRMED": (
            "Both Business and Technical teams must identify concrete trade-offs before proceeding.",
            "ALL", "MEETING",
        ),
        "COMPLEXITY_DENIAL": (
            "Reconcile claims about simplification with acknowledged new complexity/dependencies.",
            "ALL", "CLARIFICATION",
        ),
        "WITHIN_ROLE_CONTRADICTION": (
            "Review contradictory responses and clarify actual position.",
            "ALL", "CLARIFICATION",
        ),
        "ADOPTION_RISK": (
            "Address adoption barriers identified by users before proceeding.",
            Role.BUSINESS_OWNER.value, "MEETING",
        ),
        "AUTOMATION_PREMATURITY": (
            "Improve process stability and clarity before automation.",
            Role.PROCESS_OWNER.value, "DOCUMENT",
        ),
        "LOW_DIMENSION_SCORE_D1": (
            "Clarify strategic intent and alignment with organizational priorities.",
            Role.EXEC.value, "CLARIFICATION",
        ),
        "LOW_DIMENSION_SCORE_D2": (
            "Strengthen value case with documented evidence and clear metrics.",
            Role.BUSINESS_OWNER.value, "DOCUMENT",
        ),
        "LOW_DIMENSION_SCORE_D3": (
            "Address organizational readiness gaps (capacity, capabilities, change management).",
            "ALL", "MEETING",
        ),
        "LOW_DIMENSION_SCORE_D4": (
            "Document and assess key risks and dependencies.",
            Role.TECH_OWNER.value, "DOCUMENT",
        ),
        "LOW_DIMENSION_SCORE_D5": (
            "Establish clear governance, decision rights, and success criteria.",
            Role.EXEC.value, "DECISION",
        ),
    }

    def __init__(self, config: Optional[ScorerConfig] = None):
        self.config = config or get_config()

    def explain(self, result: EvaluationResult) -> CaseInterpretation:
        """Build the full interpretation for a result."""
        mismatches = self.top_mismatches(result)
        process_score = (
            result.process_gate_score
            if result.process_gate_score is not None
            else result.dimension_scores.case_scores.get(GATE_DIMENSION)
        )
        return CaseInterpretation(
            top_mismatches=mismatches,
            blind_spots=self.blind_spots(result, mismatches),
            checklist=self.checklist(result),
            process_readiness=classify_process_readiness(
                process_score, self.config.process_readiness
            ),
            summary=self.summary_lines(result),
        )

    def top_mismatches(self, result: EvaluationResult) -> list[CrossRoleMismatch]:
        """Cross-role mismatches sorted by gap, largest first."""
        mismatches = []
        for flag in result.flags.flags:
            if flag.flag_id != FlagId.CROSS_ROLE_MISMATCH or len(flag.evidence.roles) < 2:
                continue
            role_a, role_b = flag.evidence.roles[:2]
            score_a = flag.evidence.raw_values.get(f"{role_a.value}_score", 0.0)
            score_b = flag.evidence.raw_values.get(f"{role_b.value}_score", 0.0)
            gap = flag.evidence.gap if flag.evidence.gap is not None else abs(score_a - score_b)
            mismatches.append(CrossRoleMismatch(
                group=flag.evidence.group or "UNKNOWN",
                role_a=role_a,
                role_b=role_b,
                score_a=score_a,
                score_b=score_b,
                gap=gap,
                severity=flag.severity,
            ))
        mismatches.sort(key=lambda m: -m.gap)
        return mismatches[:self.config.reporting.mismatch_limit]

    def blind_spots(
        self,
        result: EvaluationResult,
        mismatches: Optional[list[CrossRoleMismatch]] = None,
    ) -> list[BlindSpot]:
        """Ranked blind-spot candidates.

        Priority: critical flags, largest cross-role gaps, overconfidence,
        other warnings, then the most common open-text category.
        """
        if result.participant_count <= 1:
            return []

        limit = self.config.reporting.blind_spot_limit
        if mismatches is None:
            mismatches = self.top_mismatches(result)
        flags = result.flags.flags
        spots: list[BlindSpot] = []

        def room() -> bool:
            return len(spots) < limit

        for flag in flags:
            if flag.severity == Severity.CRITICAL and room():
                spots.append(self._flag_spot(flag, len(spots) + 1))

        covered_groups = {
            f.evidence.group for f in flags
            if f.flag_id == FlagId.CROSS_ROLE_MISMATCH and f.severity == Severity.CRITICAL
        }
        for mismatch in mismatches:
            if mismatch.group in covered_groups or not room():
                continue
            spots.append(self._mismatch_spot(mismatch, len(spots) + 1))
            covered_groups.add(mismatch.group)

        for flag in flags:
            if flag.flag_id == FlagId.OVERCONFIDENCE and flag.severity != Severity.CRITICAL and room():
                spots.append(self._flag_spot(flag, len(spots) + 1))

        for flag in flags:
            if flag.severity != Severity.WARN or not room():
                continue
            if any(s.source == flag.flag_id.value for s in spots):
                continue
            spots.append(self._flag_spot(flag, len(spots) + 1))

        if room():
            spot = self._open_text_spot(result.flags.open_text, len(spots) + 1)
            if spot:
                spots.append(spot)

        return spots

    def checklist(self, result: EvaluationResult) -> list[ChecklistItem]:
        """Next-gate action items.

        Generated when the recommendation is CLARIFY, any critical flag
        exists, or a high value claim rests on weak proof.
        """
        flags = result.flags
        needed = (
            result.recommendation.value == Verdict.CLARIFY
            or flags.has_critical
            or flags.has_flag(FlagId.PROOF_GAP)
        )
        if not needed:
            return []

        items: list[ChecklistItem] = []
        added: set[str] = set()

        def add(source: str, question_ids: list[str], fallback_role: str, description: str):
            if source in added:
                return
            priority = len(items) + 1
            template = self.CHECKLIST_TEMPLATES.get(source)
            if template:
                prompt, role, input_type = template
            else:
                prompt = f"Address {source.replace('_', ' ').lower()}: {description or 'Review and resolve.'}"
                role, input_type = fallback_role, "CLARIFICATION"
            items.append(ChecklistItem(
                id=f"CHK-{source}-{priority}",
                prompt=prompt,
                responsible_role=role,
                linked_question_ids=question_ids,
                required_input_type=input_type,
                priority=priority,
                source=source,
            ))
            added.add(source)

        def flag_role(flag: Flag) -> str:
            return flag.evidence.roles[0].value if flag.evidence.roles else "ALL"

        for flag in flags.flags:
            if flag.severity == Severity.CRITICAL:
                add(flag.flag_id.value, flag.evidence.question_ids, flag_role(flag),
                    flag.evidence.description)

        for flag in flags.flags:
            if flag.severity == Severity.WARN and flag.flag_id.value in self.CHECKLIST_TEMPLATES:
                add(flag.flag_id.value, flag.evidence.question_ids, flag_role(flag),
                    flag.evidence.description)

        for gate in result.gates.gates:
            add(gate.flag_id, [], "ALL", gate.reason)

        return items

    def summary_lines(self, result: EvaluationResult) -> list[str]:
        """Plain one-line facts for display."""
        lines = []
        rec = result.recommendation
        verdict = rec.value.value if rec.value else "N/A"
        lines.append(f"Recommendation: {verdict} ({rec.primary_factor.value})")

        index = result.clarity_index
        if not index.computed:
            lines.append("Clarity index: not computed for this variant")
        elif index.value is None:
            lines.append("Clarity index: insufficient data")
        else:
            lines.append(f"Clarity index: {index.value:.1f} - {index.label}")

        flags = result.flags
        lines.append(
            f"Flags: {flags.critical_count} critical, {flags.warn_count} warning, "
            f"{flags.info_count} info"
        )
        if result.gates.has_gates:
            lines.append(f"Gates: {', '.join(g.value for g in result.gates.gate_ids)}")
        if result.validation_details:
            lines.append(f"Excluded answers: {len(result.validation_details)}")
        return lines

    def _flag_spot(self, flag: Flag, rank: int) -> BlindSpot:
        roles = flag.evidence.roles
        return BlindSpot(
            rank=rank,
            label=self.FLAG_LABELS.get(flag.flag_id.value, flag.flag_id.value.replace("_", " ").lower()),
            explanation=flag.evidence.description or f"{flag.flag_id.value} was detected.",
            who_sees_it=roles[:1],
            who_doesnt=roles[1:],
            linked_question_ids=flag.evidence.question_ids,
            severity=flag.severity,
            source=flag.flag_id.value,
        )

    def _mismatch_spot(self, mismatch: CrossRoleMismatch, rank: int) -> BlindSpot:
        if mismatch.score_a > mismatch.score_b:
            higher, lower = mismatch.role_a, mismatch.role_b
        else:
            higher, lower = mismatch.role_b, mismatch.role_a
        high_score = max(mismatch.score_a, mismatch.score_b)
        low_score = min(mismatch.score_a, mismatch.score_b)
        return BlindSpot(
            rank=rank,
            label=f"{mismatch.group.replace('_', ' ')} perception gap",
            explanation=(
                f"{higher.value} scores {high_score:.0f} while {lower.value} scores "
                f"{low_score:.0f}; a gap of {mismatch.gap:.0f} points suggests different realities."
            ),
            who_sees_it=[higher],
            who_doesnt=[lower],
            severity=mismatch.severity,
            source=FlagId.CROSS_ROLE_MISMATCH.value,
        )

    def _open_text_spot(
        self,
        classifications: list[OpenTextClassification],
        rank: int,
    ) -> Optional[BlindSpot]:
        by_category: dict[OpenTextCategory, list[OpenTextClassification]] = {}
        for c in classifications:
            if c.category != OpenTextCategory.UNCLASSIFIED:
                by_category.setdefault(c.category, []).append(c)
        if not by_category:
            return None

        category, items = max(by_category.items(), key=lambda kv: len(kv[1]))
        return BlindSpot(
            rank=rank,
            label=f"Open concerns: {category.value}",
            explanation=(
                f"{len(items)} participant(s) raised concerns classified as "
                f"\"{category.value}\" in open text responses."
            ),
            who_sees_it=[r for r in Role if any(c.role == r for c in items)],
            linked_question_ids=[c.question_id for c in items],
            severity=Severity.WARN,
            source="OPEN_TEXT",
        )
