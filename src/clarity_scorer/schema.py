"""Pydantic models for the Decision Clarity Scoring Engine.

Input schemas for question definitions and survey answers, and output
schemas for scores, flags, gates and the final recommendation.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Core Enums
# =============================================================================


class Role(str, Enum):
    """Stakeholder role answering a survey."""
    EXEC = "EXEC"
    BUSINESS_OWNER = "BUSINESS_OWNER"
    TECH_OWNER = "TECH_OWNER"
    USER = "USER"
    PROCESS_OWNER = "PROCESS_OWNER"

    @classmethod
    def from_string(cls, value: str) -> "Role":
        """Parse role from string (accepts spaces, dashes and lowercase)."""
        key = value.strip().upper().replace(" ", "_").replace("-", "_")
        aliases = {
            "EXECUTIVE": cls.EXEC,
            "BUSINESS": cls.BUSINESS_OWNER,
            "TECH": cls.TECH_OWNER,
            "TECHNICAL_OWNER": cls.TECH_OWNER,
            "PROCESS": cls.PROCESS_OWNER,
        }
        if key in aliases:
            return aliases[key]
        return cls(key)


class Dimension(str, Enum):
    """Evaluation axis. P is gate-only and never enters the clarity index."""
    D1 = "D1"  # Strategic Intent
    D2 = "D2"  # Value & Economics
    D3 = "D3"  # Organizational Readiness
    D4 = "D4"  # Risk & Dependencies
    D5 = "D5"  # Decision Governance
    P = "P"  # Process Readiness

    @property
    def display_name(self) -> str:
        return DIMENSION_NAMES[self]

    @classmethod
    def index_dimensions(cls) -> list["Dimension"]:
        """Dimensions that contribute to the clarity index."""
        return [cls.D1, cls.D2, cls.D3, cls.D4, cls.D5]


DIMENSION_NAMES = {
    Dimension.D1: "Strategic Intent",
    Dimension.D2: "Value & Economics",
    Dimension.D3: "Organizational Readiness",
    Dimension.D4: "Risk & Dependencies",
    Dimension.D5: "Decision Governance",
    Dimension.P: "Process Readiness",
}

# The gate-only dimension and the role that scores it
GATE_DIMENSION = Dimension.P
PROCESS_ROLE = Role.PROCESS_OWNER


class AnswerType(str, Enum):
    """Declared answer type of a question."""
    LIKERT = "LIKERT"
    SINGLE_SELECT = "SINGLE_SELECT"
    MULTI_SELECT = "MULTI_SELECT"
    TEXT = "TEXT"


class TriadRole(str, Enum):
    """Position of a question inside a claim/proof/consequence triad."""
    CLAIM = "claim"
    PROOF = "proof"
    CONSEQUENCE = "consequence"


class TimePosition(str, Enum):
    """Where a time-separated question sits in the survey."""
    EARLY = "early"
    LATE = "late"


class Severity(str, Enum):
    """Flag severity, most severe first."""
    CRITICAL = "CRITICAL"
    WARN = "WARN"
    INFO = "INFO"

    @property
    def rank(self) -> int:
        return {Severity.CRITICAL: 0, Severity.WARN: 1, Severity.INFO: 2}[self]


class FlagId(str, Enum):
    """Catalog of contradiction flags raised by the flag engine."""
    WITHIN_ROLE_CONTRADICTION = "WITHIN_ROLE_CONTRADICTION"
    NARRATIVE_INFLATION_RISK = "NARRATIVE_INFLATION_RISK"
    PROOF_GAP = "PROOF_GAP"
    CONSEQUENCE_UNOWNED = "CONSEQUENCE_UNOWNED"
    OVERCONFIDENCE = "OVERCONFIDENCE"
    CROSS_ROLE_MISMATCH = "CROSS_ROLE_MISMATCH"
    OWNERSHIP_DIFFUSION = "OWNERSHIP_DIFFUSION"
    CAPACITY_ILLUSION_BUSINESS = "CAPACITY_ILLUSION_BUSINESS"
    CAPACITY_ILLUSION_TECH = "CAPACITY_ILLUSION_TECH"
    CAPACITY_ILLUSION_CONFIRMED = "CAPACITY_ILLUSION_CONFIRMED"
    COMPLEXITY_DENIAL = "COMPLEXITY_DENIAL"


class GateId(str, Enum):
    """Override gates evaluated after scoring and flagging."""
    G1 = "G1"  # Dimension floor
    G2 = "G2"  # Process floor
    G3 = "G3"  # Adoption-risk conflict
    G4 = "G4"  # Critical ownership


class Verdict(str, Enum):
    """Final recommendation value."""
    GO = "GO"
    CLARIFY = "CLARIFY"
    NO_GO = "NO_GO"


class PrimaryFactor(str, Enum):
    """Which precedence rule decided the recommendation."""
    NOT_APPLICABLE = "NOT_APPLICABLE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    CRITICAL_FLAG = "CRITICAL_FLAG"
    INDEX_LOW = "INDEX_LOW"
    GATE_TRIGGERED = "GATE_TRIGGERED"
    INDEX_MID = "INDEX_MID"
    INDEX_HIGH = "INDEX_HIGH"


class Variant(str, Enum):
    """Named assessment configuration."""
    QUICK_CHECK = "QUICK_CHECK"
    CORE = "CORE"
    FULL = "FULL"
    PROCESS_STANDALONE = "PROCESS_STANDALONE"

    @classmethod
    def from_string(cls, value: str) -> "Variant":
        """Parse variant from string (case-insensitive, dashes allowed)."""
        return cls(value.strip().upper().replace("-", "_").replace(" ", "_"))


class OpenTextCategory(str, Enum):
    """Closed set of open-text classification labels."""
    KNOWN_RISK = "Known risk"
    AVOIDED_TOPIC = "Avoided topic"
    ROLE_CONFLICT = "Role conflict / politics"
    CULTURAL_RESISTANCE = "Cultural resistance / adoption"
    TECHNICAL_UNCERTAINTY = "Technical uncertainty"
    PROCESS_INSTABILITY = "Process instability"
    DATA_QUALITY = "Data quality issues"
    UNCLASSIFIED = "unclassified"

    @classmethod
    def from_label(cls, label: Any) -> "OpenTextCategory":
        """Coerce a classifier label into the closed set."""
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            return cls.UNCLASSIFIED
        wanted = label.strip().lower()
        for category in cls:
            if category.value.lower() == wanted or category.name.lower() == wanted:
                return category
        return cls.UNCLASSIFIED


class ValidationCode(str, Enum):
    """Reason an answer was excluded at ingestion."""
    INVALID_LIKERT = "INVALID_LIKERT"
    INVALID_VALUE = "INVALID_VALUE"
    UNKNOWN_QUESTION = "UNKNOWN_QUESTION"
    ROLE_MISMATCH = "ROLE_MISMATCH"
    MALFORMED_ANSWER = "MALFORMED_ANSWER"


# =============================================================================
# Question Registry Models
# =============================================================================


class QuestionDefinition(BaseModel):
    """A single survey question with its scoring and grouping tags."""
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    dimension: Dimension
    answer_type: AnswerType
    text: str = ""
    options: tuple[str, ...] = ()
    is_reverse: bool = False
    reverse_of: Optional[str] = None

    # Grouping tags used by the flag engine
    triad_group: Optional[str] = None
    triad_role: Optional[TriadRole] = None
    contradiction_group: Optional[str] = None
    confidence_pair_id: Optional[str] = None  # Evidence question for a confidence question
    ownership_group: Optional[str] = None
    trade_off_group: Optional[str] = None
    time_pair_id: Optional[str] = None
    time_position: Optional[TimePosition] = None
    trigger_question_id: Optional[str] = None  # Open-text follow-up trigger

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v):
        if v is None:
            return ()
        return tuple(v)


# =============================================================================
# Answer Models
# =============================================================================


class ProcessArea(BaseModel):
    """A process assessed separately in a multi-process case."""
    process_id: str
    name: str = ""
    weight: float = Field(100.0, ge=0, description="Weight in percent")


class Answer(BaseModel):
    """A raw survey answer as recorded by the collecting system."""
    question_id: str
    participant_id: str
    role: Role
    raw_value: Any = None
    process_id: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        if isinstance(v, str):
            return Role.from_string(v)
        return v


class NormalizedScore(BaseModel):
    """Likert answer after reverse-scoring and 0-100 scaling."""
    model_config = ConfigDict(frozen=True)

    raw: int
    adjusted: int
    score_0_100: float
    is_reverse: bool


class LikertValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["likert"] = "likert"
    score: NormalizedScore


class ChoiceValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["single_select"] = "single_select"
    choice: str


class MultiChoiceValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["multi_select"] = "multi_select"
    choices: tuple[str, ...]


class TextValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


AnswerValue = Annotated[
    Union[LikertValue, ChoiceValue, MultiChoiceValue, TextValue],
    Field(discriminator="kind"),
]


class TypedAnswer(BaseModel):
    """An answer checked against its question and tagged by answer type."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    participant_id: str
    role: Role
    value: AnswerValue
    process_id: Optional[str] = None

    @property
    def score(self) -> Optional[NormalizedScore]:
        """Normalized score for Likert answers, None otherwise."""
        return self.value.score if isinstance(self.value, LikertValue) else None

    @property
    def choice(self) -> Optional[str]:
        """Selected option for single-select answers, None otherwise."""
        return self.value.choice if isinstance(self.value, ChoiceValue) else None

    @property
    def text(self) -> Optional[str]:
        """Free text for text answers, None otherwise."""
        return self.value.text if isinstance(self.value, TextValue) else None


class ValidationDetail(BaseModel):
    """An answer excluded at ingestion, reported without failing the evaluation."""
    model_config = ConfigDict(frozen=True)

    code: ValidationCode
    question_id: str
    participant_id: str
    message: str


class AssessmentInput(BaseModel):
    """An assessment document: variant selection, answers and optional processes."""
    variant: Variant = Variant.CORE
    answers: list[Answer] = Field(default_factory=list)
    processes: list[ProcessArea] = Field(default_factory=list)

    @field_validator("variant", mode="before")
    @classmethod
    def parse_variant(cls, v):
        if isinstance(v, str):
            return Variant.from_string(v)
        return v


# =============================================================================
# Scoring Output Models
# =============================================================================


DimensionScoreMap = dict[Dimension, Optional[float]]


class DimensionScoringResult(BaseModel):
    """Dimension scores at participant, role and case level.

    A None score means insufficient data for that dimension.
    """
    model_config = ConfigDict(frozen=True)

    case_scores: DimensionScoreMap
    role_scores: dict[Role, DimensionScoreMap] = Field(default_factory=dict)
    participant_scores: dict[str, DimensionScoreMap] = Field(default_factory=dict)

    def role_score(self, role: Role, dimension: Dimension) -> Optional[float]:
        return self.role_scores.get(role, {}).get(dimension)


class IndexContribution(BaseModel):
    """One dimension's share of the clarity index."""
    model_config = ConfigDict(frozen=True)

    dimension: Dimension
    score: Optional[float]
    weight: float
    contribution: Optional[float]


class IndexResult(BaseModel):
    """Clarity index value with label and per-dimension breakdown."""
    model_config = ConfigDict(frozen=True)

    value: Optional[float] = None
    computed: bool = True
    label: Optional[str] = None
    short_label: Optional[str] = None
    bucket: str = "N/A"
    breakdown: list[IndexContribution] = Field(default_factory=list)
    missing_dimensions: list[Dimension] = Field(default_factory=list)


class ProcessScore(BaseModel):
    """Process readiness score for one process area."""
    model_config = ConfigDict(frozen=True)

    process_id: str
    name: str = ""
    weight: float
    score: Optional[float]
    answer_count: int = 0


class ProcessScoringResult(BaseModel):
    """Per-process scores with weighted aggregate and weakest link."""
    model_config = ConfigDict(frozen=True)

    processes: list[ProcessScore]
    aggregate: Optional[float]
    weakest: Optional[ProcessScore]


# =============================================================================
# Flag and Gate Models
# =============================================================================


class FlagEvidence(BaseModel):
    """Structured evidence behind a flag.

    raw_values holds select choices and Likert values keyed by question id;
    free text is never included.
    """
    model_config = ConfigDict(frozen=True)

    question_ids: list[str] = Field(default_factory=list)
    raw_values: dict[str, Any] = Field(default_factory=dict)
    roles: list[Role] = Field(default_factory=list)
    participant_ids: list[str] = Field(default_factory=list)
    group: Optional[str] = None
    gap: Optional[float] = None
    description: str = ""

    def key(self) -> tuple:
        """Identity of the evidence, used for deduplication and ordering."""
        return (
            tuple(self.question_ids),
            tuple(r.value for r in self.roles),
            tuple(self.participant_ids),
            self.group or "",
        )

    def redacted(self) -> "FlagEvidence":
        """Copy without respondent-level raw values."""
        return self.model_copy(update={"raw_values": {}, "participant_ids": []})


class Flag(BaseModel):
    """A detected contradiction or risk pattern."""
    model_config = ConfigDict(frozen=True)

    flag_id: FlagId
    severity: Severity
    evidence: FlagEvidence = Field(default_factory=FlagEvidence)

    def sort_key(self) -> tuple:
        return (self.severity.rank, self.flag_id.value, self.evidence.key())


class OpenTextClassification(BaseModel):
    """Category assigned to one free-text answer. The text itself is not kept."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    participant_id: str
    role: Role
    category: OpenTextCategory
    confidence: float = 0.0


class FlagEngineResult(BaseModel):
    """All flags for one evaluation, sorted by severity."""
    model_config = ConfigDict(frozen=True)

    flags: list[Flag] = Field(default_factory=list)
    critical_count: int = 0
    warn_count: int = 0
    info_count: int = 0
    total_count: int = 0
    has_critical: bool = False
    flag_ids: list[FlagId] = Field(default_factory=list)
    open_text: list[OpenTextClassification] = Field(default_factory=list)

    def has_flag(self, flag_id: FlagId, severity: Optional[Severity] = None) -> bool:
        return any(
            f.flag_id == flag_id and (severity is None or f.severity == severity)
            for f in self.flags
        )


class Gate(BaseModel):
    """A fired override gate."""
    model_config = ConfigDict(frozen=True)

    gate_id: GateId
    action: Verdict = Verdict.CLARIFY
    flag_id: str
    dimension: Optional[Dimension] = None
    reason: str = ""
    values: dict[str, float] = Field(default_factory=dict)


class GateEvaluationResult(BaseModel):
    """Every gate fired for an evaluation."""
    model_config = ConfigDict(frozen=True)

    gates: list[Gate] = Field(default_factory=list)
    has_gates: bool = False
    gate_ids: list[GateId] = Field(default_factory=list)


class RecommendationResult(BaseModel):
    """Final verdict with the rule that decided it."""
    model_config = ConfigDict(frozen=True)

    value: Optional[Verdict] = None
    primary_factor: PrimaryFactor
    reason: str
    factors: list[str] = Field(default_factory=list)


class EvaluationResult(BaseModel):
    """Complete output of one evaluation pass.

    Frozen: downstream consumers read it, they never write back.
    """
    model_config = ConfigDict(frozen=True)

    variant: Variant
    participant_count: int
    answer_count: int
    dimension_scores: DimensionScoringResult
    clarity_index: IndexResult
    process_scores: Optional[ProcessScoringResult] = None
    process_gate_score: Optional[float] = None
    flags: FlagEngineResult
    gates: GateEvaluationResult
    recommendation: RecommendationResult
    validation_details: list[ValidationDetail] = Field(default_factory=list)


# =============================================================================
# Interpretation Models
# =============================================================================


class CrossRoleMismatch(BaseModel):
    """A cross-role perception gap, extracted from a mismatch flag."""
    model_config = ConfigDict(frozen=True)

    group: str
    role_a: Role
    role_b: Role
    score_a: float
    score_b: float
    gap: float
    severity: Severity


class BlindSpot(BaseModel):
    """Ranked blind-spot candidate."""
    model_config = ConfigDict(frozen=True)

    rank: int
    label: str
    explanation: str
    who_sees_it: list[Role] = Field(default_factory=list)
    who_doesnt: list[Role] = Field(default_factory=list)
    linked_question_ids: list[str] = Field(default_factory=list)
    severity: Severity
    source: str


class ChecklistItem(BaseModel):
    """An action item needed to pass the next gate."""
    model_config = ConfigDict(frozen=True)

    id: str
    prompt: str
    responsible_role: str  # A Role value or "ALL"
    linked_question_ids: list[str] = Field(default_factory=list)
    required_input_type: str
    status: str = "OPEN"
    priority: int
    source: str


class CaseInterpretation(BaseModel):
    """Deterministic read-only interpretation of an evaluation result."""
    model_config = ConfigDict(frozen=True)

    top_mismatches: list[CrossRoleMismatch] = Field(default_factory=list)
    blind_spots: list[BlindSpot] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    process_readiness: Optional[str] = None
    summary: list[str] = Field(default_factory=list)
