"""Centralized configuration for specforge.

Single source of truth for pipeline iteration budgets, agent retry policy,
LLM settings and model presets.

Design Principles:
- Frozen dataclasses for every config object
- Enums for type-safe status and phase values
- Settings can be loaded from environment variables or a YAML file
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from specforge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# =============================================================================
# Enums for Type Safety
# =============================================================================


class PhaseName(Enum):
    """The six pipeline phases, in execution order."""

    DISCOVERY = "discovery"
    CHALLENGE = "challenge"
    DESIGN = "design"
    DECOMPOSITION = "decomposition"
    VALIDATION = "validation"
    SYNTHESIS = "synthesis"

    @classmethod
    def values(cls) -> list[str]:
        """Return all phase names as strings, in execution order."""
        return [phase.value for phase in cls]


class PhaseStatus(Enum):
    """Valid status values for a single phase."""

    PENDING = "pending"
    RUNNING = "running"
    ITERATING = "iterating"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings."""
        return [status.value for status in cls]


class PipelineStatus(Enum):
    """Valid status values for a whole pipeline run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class EventType(Enum):
    """Lifecycle events emitted by the orchestrator."""

    PHASE_STARTED = "phase_started"
    PHASE_COMPLETED = "phase_completed"
    PHASE_FAILED = "phase_failed"
    ITERATION_STARTED = "iteration_started"
    LOOP_BACK = "loop_back"
    PIPELINE_COMPLETED = "pipeline_completed"
    PIPELINE_FAILED = "pipeline_failed"


class ModelTier(Enum):
    """Model tier for cost/quality routing."""

    HEAVY = "heavy"  # Capable model for structured output
    LIGHT = "light"  # Cheaper model for extraction/summarization
    REASONING = "reasoning"  # Strongest model for architecture and auditing


# =============================================================================
# Iteration Configuration
# =============================================================================

UNLIMITED = "unlimited"

# Stand-in budget recorded on the validation PhaseState when unlimited
UNLIMITED_VALIDATION_SENTINEL = 999

# Minimum accepted confidence; anything below 100 is not a passing artifact
REQUIRED_CONFIDENCE = 100


@dataclass(frozen=True)
class IterationConfig:
    """Iteration budgets for the three loop pairs."""

    discovery_challenge_max: int = 3
    design_decomposition_max: int = 3
    decomposition_validation_max: int | str = UNLIMITED
    min_confidence: int = REQUIRED_CONFIDENCE

    def __post_init__(self):
        for name in ("discovery_challenge_max", "design_decomposition_max"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        cap = self.decomposition_validation_max
        if cap != UNLIMITED and (not isinstance(cap, int) or isinstance(cap, bool) or cap < 1):
            raise ConfigurationError(
                f"decomposition_validation_max must be a positive integer or "
                f"'{UNLIMITED}', got {cap!r}"
            )

        if self.min_confidence != REQUIRED_CONFIDENCE:
            raise ConfigurationError(
                f"min_confidence must be {REQUIRED_CONFIDENCE}, got {self.min_confidence!r}"
            )

    @property
    def validation_unlimited(self) -> bool:
        return self.decomposition_validation_max == UNLIMITED

    @property
    def validation_budget(self) -> int:
        """Budget recorded on the validation phase state."""
        if self.validation_unlimited:
            return UNLIMITED_VALIDATION_SENTINEL
        return int(self.decomposition_validation_max)


DEFAULT_ITERATION_CONFIG = IterationConfig()


# =============================================================================
# Retry Configuration
# =============================================================================


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for a single agent invocation.

    Delay between attempts is exponential and capped:
    ``min(base_delay * exponential_base ** attempt, max_delay)``.
    """

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    exponential_base: float = 2.0
    timeout: float | None = 120.0  # per call, seconds; None disables

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must be non-negative")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given retry attempt (0-based)."""
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)


DEFAULT_RETRY_CONFIG = RetryConfig()


# =============================================================================
# LLM Configuration
# =============================================================================

# Token limit for phase outputs; decomposition and synthesis emit large JSON
TOKENS_PHASE_OUTPUT = 8192

DEFAULT_TEMPERATURE = 0.1


@dataclass(frozen=True)
class LLMConfig:
    """Model settings for one phase collaborator."""

    tier: ModelTier = ModelTier.HEAVY
    model_id: str | None = None  # None resolves through the provider tier
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = TOKENS_PHASE_OUTPUT


# Collaborator phases; validation defaults to the local quality gate
LLM_PHASES = (
    PhaseName.DISCOVERY,
    PhaseName.CHALLENGE,
    PhaseName.DESIGN,
    PhaseName.DECOMPOSITION,
    PhaseName.VALIDATION,
    PhaseName.SYNTHESIS,
)

MODEL_PRESETS: dict[str, dict[PhaseName, ModelTier]] = {
    "quality": {phase: ModelTier.HEAVY for phase in LLM_PHASES},
    "speed": {
        PhaseName.DISCOVERY: ModelTier.LIGHT,
        PhaseName.CHALLENGE: ModelTier.LIGHT,
        PhaseName.DESIGN: ModelTier.HEAVY,
        PhaseName.DECOMPOSITION: ModelTier.HEAVY,
        PhaseName.VALIDATION: ModelTier.HEAVY,
        PhaseName.SYNTHESIS: ModelTier.LIGHT,
    },
    "balanced": {
        PhaseName.DISCOVERY: ModelTier.HEAVY,
        PhaseName.CHALLENGE: ModelTier.HEAVY,
        PhaseName.DESIGN: ModelTier.REASONING,
        PhaseName.DECOMPOSITION: ModelTier.HEAVY,
        PhaseName.VALIDATION: ModelTier.REASONING,
        PhaseName.SYNTHESIS: ModelTier.HEAVY,
    },
}


def llm_configs_for_preset(preset: str, base: LLMConfig | None = None) -> dict[PhaseName, LLMConfig]:
    """Return a per-phase LLMConfig map for a named preset.

    Raises:
        ConfigurationError: If the preset is unknown.
    """
    tiers = MODEL_PRESETS.get(preset)
    if tiers is None:
        raise ConfigurationError(
            f"Unknown model preset '{preset}'. Available presets: {', '.join(MODEL_PRESETS)}"
        )
    base = base or LLMConfig()
    return {phase: replace(base, tier=tier) for phase, tier in tiers.items()}


# =============================================================================
# Pipeline Settings
# =============================================================================


@dataclass(frozen=True)
class PipelineSettings:
    """Bundle of every tunable the orchestrator reads."""

    iteration: IterationConfig = field(default_factory=IterationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    preset: str | None = None
    enable_tracking: bool = False

    def llm_configs(self) -> dict[PhaseName, LLMConfig]:
        """Per-phase LLM settings, honouring the preset when one is set."""
        if self.preset:
            return llm_configs_for_preset(self.preset, self.llm)
        return {phase: self.llm for phase in LLM_PHASES}

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Create settings from ``SPECFORGE_*`` environment variables."""
        validation_max = os.getenv("SPECFORGE_VALIDATION_MAX", UNLIMITED).strip().lower()

        try:
            iteration = IterationConfig(
                discovery_challenge_max=int(os.getenv("SPECFORGE_DISCOVERY_CHALLENGE_MAX", "3")),
                design_decomposition_max=int(
                    os.getenv("SPECFORGE_DESIGN_DECOMPOSITION_MAX", "3")
                ),
                decomposition_validation_max=(
                    UNLIMITED if validation_max == UNLIMITED else int(validation_max)
                ),
            )
            timeout_raw = os.getenv("SPECFORGE_AGENT_TIMEOUT", "120")
            retry = RetryConfig(
                max_retries=int(os.getenv("SPECFORGE_MAX_RETRIES", "3")),
                base_delay=float(os.getenv("SPECFORGE_RETRY_BASE_DELAY", "1.0")),
                max_delay=float(os.getenv("SPECFORGE_RETRY_MAX_DELAY", "10.0")),
                timeout=float(timeout_raw) if timeout_raw else None,
            )
            llm = LLMConfig(
                model_id=os.getenv("SPECFORGE_MODEL_ID") or None,
                temperature=float(os.getenv("SPECFORGE_TEMPERATURE", str(DEFAULT_TEMPERATURE))),
                max_tokens=int(os.getenv("SPECFORGE_MAX_TOKENS", str(TOKENS_PHASE_OUTPUT))),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid SPECFORGE_* environment value: {e}") from e

        enable_tracking = os.getenv("SPECFORGE_TRACKING", "false").lower() in ("true", "1", "yes")

        return cls(
            iteration=iteration,
            retry=retry,
            llm=llm,
            preset=os.getenv("SPECFORGE_PRESET") or None,
            enable_tracking=enable_tracking,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PipelineSettings":
        """Load settings from a YAML file.

        Expected layout::

            iteration:
              discovery_challenge_max: 3
              decomposition_validation_max: unlimited
            retry:
              max_retries: 2
            llm:
              tier: heavy
            preset: speed

        Raises:
            ConfigurationError: If the file is missing, malformed, or has
                unknown keys.
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not load settings from {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")

        unknown = set(data) - {"iteration", "retry", "llm", "preset", "enable_tracking"}
        if unknown:
            raise ConfigurationError(f"Unknown settings sections: {', '.join(sorted(unknown))}")

        llm_data = dict(data.get("llm") or {})
        if "tier" in llm_data:
            try:
                llm_data["tier"] = ModelTier(str(llm_data["tier"]).lower())
            except ValueError as e:
                raise ConfigurationError(f"Unknown model tier: {llm_data['tier']!r}") from e

        settings = cls(
            iteration=_build_section(IterationConfig, data.get("iteration")),
            retry=_build_section(RetryConfig, data.get("retry")),
            llm=_build_section(LLMConfig, llm_data),
            preset=data.get("preset"),
            enable_tracking=bool(data.get("enable_tracking", False)),
        )
        if settings.preset:
            # Fail fast on typos rather than at pipeline construction
            llm_configs_for_preset(settings.preset)

        logger.info(f"Loaded pipeline settings from {path}")
        return settings


def _build_section(config_cls: type, values: dict[str, Any] | None) -> Any:
    """Instantiate a frozen config dataclass from a mapping, rejecting unknown keys."""
    values = values or {}
    if not isinstance(values, dict):
        raise ConfigurationError(f"{config_cls.__name__} section must be a mapping")

    known = {f.name for f in fields(config_cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {config_cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    return config_cls(**values)
