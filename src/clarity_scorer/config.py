"""Centralized configuration management for the clarity scorer."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError
from .schema import GATE_DIMENSION, PROCESS_ROLE, Dimension, Role, Variant

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6

CONFIG_ENV_VAR = "CLARITY_SCORER_CONFIG"
CONFIG_FILE_NAMES = ("clarity-config.yaml", "clarity-config.yml")


class IndexWeightsConfig(BaseModel):
    """Weights of the five index dimensions in the clarity index.

    They must sum to 1.0. The process dimension has no weight here and
    is only ever used as a gate.
    """
    D1: float = Field(0.20, ge=0, description="Strategic Intent")
    D2: float = Field(0.25, ge=0, description="Value & Economics")
    D3: float = Field(0.20, ge=0, description="Organizational Readiness")
    D4: float = Field(0.20, ge=0, description="Risk & Dependencies")
    D5: float = Field(0.15, ge=0, description="Decision Governance")

    def as_map(self) -> dict[Dimension, float]:
        weights = {dim: getattr(self, dim.value) for dim in Dimension.index_dimensions()}
        weights[GATE_DIMENSION] = 0.0
        return weights


class ThresholdsConfig(BaseModel):
    """Thresholds for recommendation tiers, gates and detectors."""
    index_low: float = Field(
        55.0,
        description="Clarity index below this is NO_GO (0-100)"
    )
    index_high: float = Field(
        75.0,
        description="Clarity index at or above this is GO when nothing else fires (0-100)"
    )
    dimension_floor: float = Field(
        50.0,
        description="Any index dimension below this fires gate G1 (0-100)"
    )
    process_floor: float = Field(
        50.0,
        description="Process readiness below this fires gate G2 (0-100)"
    )
    high_adjusted: int = Field(
        4,
        description="Adjusted Likert level treated as a strong claim (1-5)"
    )
    cross_role_gap: float = Field(
        1.2,
        description="Cross-role gap that raises a mismatch, in Likert units (1-5 scale)"
    )
    open_text_min_length: int = Field(
        5,
        description="Open-text answers shorter than this are not classified"
    )


class AdoptionRiskConfig(BaseModel):
    """Sources and thresholds for the adoption-risk gate (G3)."""
    friction_role: Role = Field(Role.USER, description="Role whose score signals user friction")
    friction_dimension: Dimension = Field(Dimension.D3, description="Dimension read for friction")
    friction_threshold: float = Field(60.0, description="Friction score above this is high")
    readiness_role: Role = Field(Role.EXEC, description="Role whose score signals readiness")
    readiness_dimension: Dimension = Field(Dimension.D3, description="Dimension read for readiness")
    readiness_threshold: float = Field(70.0, description="Readiness score above this is high")


class ProcessReadinessConfig(BaseModel):
    """Cut points for classifying a process readiness score."""
    automate: float = Field(75.0, description="At or above: Automate")
    improve_first: float = Field(60.0, description="At or above: Improve first")
    clarify_ownership: float = Field(45.0, description="At or above: Clarify ownership, below: Defer")


class ReportingConfig(BaseModel):
    """Limits for interpretation output."""
    blind_spot_limit: int = Field(5, description="Maximum blind spots reported")
    mismatch_limit: int = Field(5, description="Maximum cross-role mismatches reported")


class VariantConfig(BaseModel):
    """A named assessment configuration.

    Role weights cover every active role and sum to 1.0. Index roles are
    the active roles other than the process owner; their weights are
    renormalized over the roles that actually answered.
    """
    model_config = ConfigDict(frozen=True)

    active_roles: tuple[Role, ...]
    role_weights: dict[Role, float]
    computes_index: bool = True
    process_is_gate: bool = False
    description: str = ""

    @property
    def index_roles(self) -> list[Role]:
        return [r for r in self.active_roles if r != PROCESS_ROLE]


def _default_variants() -> dict[Variant, VariantConfig]:
    return {
        Variant.QUICK_CHECK: VariantConfig(
            active_roles=(Role.EXEC,),
            role_weights={Role.EXEC: 1.0},
            description="Executive-only quick check",
        ),
        Variant.CORE: VariantConfig(
            active_roles=(Role.EXEC, Role.BUSINESS_OWNER, Role.TECH_OWNER),
            role_weights={Role.EXEC: 0.50, Role.BUSINESS_OWNER: 0.25, Role.TECH_OWNER: 0.25},
            description="Executive, business and technical owners",
        ),
        Variant.FULL: VariantConfig(
            active_roles=(Role.EXEC, Role.BUSINESS_OWNER, Role.TECH_OWNER, Role.PROCESS_OWNER),
            role_weights={
                Role.EXEC: 0.40,
                Role.BUSINESS_OWNER: 0.20,
                Role.TECH_OWNER: 0.20,
                Role.PROCESS_OWNER: 0.20,
            },
            process_is_gate=True,
            description="All roles, with process readiness as a gate",
        ),
        Variant.PROCESS_STANDALONE: VariantConfig(
            active_roles=(Role.PROCESS_OWNER,),
            role_weights={Role.PROCESS_OWNER: 1.0},
            computes_index=False,
            description="Process readiness only, no clarity index",
        ),
    }


class ScorerConfig(BaseModel):
    """Complete configuration for the clarity scorer."""
    index_weights: IndexWeightsConfig = Field(default_factory=IndexWeightsConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    adoption_risk: AdoptionRiskConfig = Field(default_factory=AdoptionRiskConfig)
    process_readiness: ProcessReadinessConfig = Field(default_factory=ProcessReadinessConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    variants: dict[Variant, VariantConfig] = Field(default_factory=_default_variants)

    def variant(self, variant: Variant) -> VariantConfig:
        try:
            return self.variants[variant]
        except KeyError as e:
            raise ConfigurationError(f"Variant not configured: {variant.value}") from e


def validate_variant(name: Variant, variant: VariantConfig) -> list[str]:
    """Check one variant's roles and weights. Returns the list of issues."""
    issues = []
    label = name.value

    if not variant.active_roles:
        issues.append(f"{label}: no active roles")

    for role, weight in variant.role_weights.items():
        if weight < 0:
            issues.append(f"{label}: negative weight for {role.value}")
        if role not in variant.active_roles:
            issues.append(f"{label}: weight given for inactive role {role.value}")

    for role in variant.active_roles:
        if role not in variant.role_weights:
            issues.append(f"{label}: active role {role.value} has no weight")

    total = sum(variant.role_weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        issues.append(f"{label}: role weights sum to {total:.4f}, expected 1.0")

    if variant.process_is_gate and PROCESS_ROLE not in variant.active_roles:
        issues.append(
            f"{label}: process dimension is a gate but {PROCESS_ROLE.value} is not active"
        )

    if variant.computes_index:
        index_weight = sum(variant.role_weights.get(r, 0.0) for r in variant.index_roles)
        if index_weight <= 0:
            issues.append(f"{label}: computes the clarity index but has no weighted index role")

    return issues


def validate_config(config: ScorerConfig) -> None:
    """Validate a configuration, raising ConfigurationError on any issue."""
    issues = []

    weights = config.index_weights.as_map()
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        issues.append(f"index weights sum to {total:.4f}, expected 1.0")

    t = config.thresholds
    if t.index_low >= t.index_high:
        issues.append(f"index_low ({t.index_low}) must be below index_high ({t.index_high})")
    if not 1 <= t.high_adjusted <= 5:
        issues.append(f"high_adjusted must be 1-5, got {t.high_adjusted}")
    if t.cross_role_gap <= 0:
        issues.append("cross_role_gap must be positive")

    p = config.process_readiness
    if not p.automate >= p.improve_first >= p.clarify_ownership:
        issues.append("process readiness cut points must be descending")

    for name, variant in config.variants.items():
        issues.extend(validate_variant(name, variant))

    if issues:
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(issues)}",
            issues=issues,
        )


# Global config instance
_config: Optional[ScorerConfig] = None


def get_config() -> ScorerConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = ScorerConfig()
        validate_config(_config)
    return _config


def parse_config(path: Path) -> ScorerConfig:
    """Read and validate a YAML configuration without installing it.

    Raises:
        ConfigurationError: If the file does not describe a valid configuration.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    try:
        config = ScorerConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    validate_config(config)
    return config


def load_config(path: Path) -> ScorerConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded ScorerConfig.

    Raises:
        ConfigurationError: If the file does not describe a valid configuration.
    """
    global _config

    _config = parse_config(path)
    logger.info("Loaded scorer configuration from %s", path)
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = ScorerConfig()


def find_config_file(assessment: Optional[Path] = None) -> Optional[Path]:
    """Find a scorer configuration file.

    Looks in (order of priority):
    1. CLARITY_SCORER_CONFIG environment variable
    2. clarity-config.yaml / .yml beside the assessment, when one is given
    3. ./clarity-config.yaml / .yml
    4. ~/.config/clarity-scorer/config.yaml

    Args:
        assessment: Optional assessment file whose directory is searched
            before the current directory.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    directories = [Path(assessment).parent] if assessment else []
    directories.append(Path("."))
    for directory in directories:
        for name in CONFIG_FILE_NAMES:
            path = directory / name
            if path.exists():
                return path

    user_config = Path.home() / ".config" / "clarity-scorer" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def _variant_summary(config: ScorerConfig) -> str:
    lines = []
    for name, variant in config.variants.items():
        weights = ", ".join(
            f"{role.value} {variant.role_weights.get(role, 0.0):.2f}"
            for role in variant.active_roles
        )
        lines.append(f"#   {name.value}: {weights}")
    return "\n".join(lines)


def save_default_config(path: Path, config: Optional[ScorerConfig] = None) -> None:
    """Save a configuration to a YAML file.

    The configuration is validated first, so a file written here always
    loads back cleanly.

    Args:
        path: Path where to save the configuration.
        config: Configuration to write (default: the built-in defaults).

    Raises:
        ConfigurationError: If the configuration is invalid. Nothing is written.
    """
    config = config or ScorerConfig()
    validate_config(config)

    data = config.model_dump(mode="json")

    yaml_content = f"""# Clarity Scorer Configuration
# ============================
#
# This file configures index weights, recommendation thresholds,
# gate sources and the assessment variants.
#
# Variant role weights:
{_variant_summary(config)}
#
# Place this file beside an assessment, or in one of these locations:
#   - ./clarity-config.yaml (current directory)
#   - ~/.config/clarity-scorer/config.yaml (user config)
#
# Or set the {CONFIG_ENV_VAR} environment variable.

"""
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
    logger.info("Wrote scorer configuration to %s", path)
