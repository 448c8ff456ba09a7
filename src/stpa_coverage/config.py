"""Configuration management for the coverage engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import hashlib
import tomllib

# Guide-word questions asked for every control action, in review order.
DEFAULT_ANALYSIS_TYPES: tuple[str, ...] = (
    "not-provided",
    "provided-unsafe",
    "too-early",
    "too-late",
    "wrong-order",
    "too-long",
    "too-short",
)


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    # Logging severity threshold (INFO/DEBUG/etc.).
    level: str = Field(default="INFO", description="Logging level")
    # Emit JSON if True; otherwise emit a human-readable format.
    json_format: bool = Field(default=True, description="Emit JSON logs")
    # Optional file path for log output; if None, logs go to stderr.
    log_file: str | None = Field(default=None, description="Optional log file path")
    # Maximum size (bytes) before log rotation.
    max_bytes: int = Field(default=1_000_000, description="Max log file size before rotation")
    # Number of backup files to retain.
    backup_count: int = Field(default=3, description="Number of rotated log files to keep")


class EnumerationConfig(BaseModel):
    """Options controlling candidate combination enumeration."""

    # Largest subset of control actions considered together.
    max_combination_size: int = Field(default=3, ge=2, description="Maximum combination size")
    # Combinations whose controllers all sit inside one Team.
    include_same_team_abstraction: bool = Field(default=True, description="Generate same-team combinations")
    # Combinations spanning controllers outside a single Team.
    include_cross_controller_abstraction: bool = Field(
        default=True, description="Generate cross-controller combinations"
    )
    # Simultaneous provide/not-provide conflicts.
    include_co_occurrence_type: bool = Field(default=True, description="Generate co-occurrence candidates")
    # Unsafe sequencing or timing between actions.
    include_temporal_ordering_type: bool = Field(
        default=True, description="Generate temporal-ordering candidates"
    )
    # Groups of functionally equivalent controller ids; candidates differing
    # only by a swap within a group are reported once.
    interchangeable_groups: tuple[tuple[str, ...], ...] = Field(
        default=(), description="Interchangeable controller groups"
    )

    @field_validator("interchangeable_groups")
    @classmethod
    def _disjoint_groups(cls, value: tuple[tuple[str, ...], ...]) -> tuple[tuple[str, ...], ...]:
        seen: set[str] = set()
        for group in value:
            if len(set(group)) < 2:
                raise ValueError("interchangeable groups need at least two distinct controllers")
            if seen & set(group):
                raise ValueError("a controller may belong to only one interchangeable group")
            seen |= set(group)
        return value


class CoverageConfig(BaseModel):
    """Options controlling the individual review traversal."""

    # Ordered analysis types; one coverage cell per (action, type).
    analysis_types: tuple[str, ...] = Field(default=DEFAULT_ANALYSIS_TYPES, description="Analysis type order")

    @field_validator("analysis_types")
    @classmethod
    def _unique_types(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("analysis_types must not be empty")
        if len(set(value)) != len(value):
            raise ValueError("analysis_types must not contain duplicates")
        return value


class RiskWeights(BaseModel):
    """Versioned additive weights for candidate risk scoring.

    Changing any weight must bump ``version`` so that stored scores can be
    traced back to the rule set that produced them.
    """

    version: str = Field(default="1", description="Rule set version")
    extra_controller: int = Field(default=10, ge=0, description="Per controller beyond the first")
    controller_type: int = Field(default=5, ge=0, description="Per controller type beyond the first")
    team_present: int = Field(default=15, ge=0, description="Any Team controller participates")
    organization_present: int = Field(default=20, ge=0, description="Any Organization controller participates")
    flagged_action: int = Field(default=10, ge=0, description="Per action with a recorded finding")
    multi_role_team: int = Field(default=8, ge=0, description="Per Team controller with several roles")
    ceiling: int = Field(default=100, ge=0, le=100, description="Upper clamp for scores")


class EngineSettings(BaseSettings):
    """Configuration settings loaded from env or optional TOML."""

    # Environment keys use STPA_ prefix and "__" nesting.
    model_config = SettingsConfigDict(env_prefix="STPA_", env_nested_delimiter="__", extra="ignore")

    # Nested configs provide defaults for each subsystem.
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    enumeration: EnumerationConfig = Field(default_factory=EnumerationConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
    risk: RiskWeights = Field(default_factory=RiskWeights)

    @classmethod
    def from_toml(cls, path: str | Path) -> "EngineSettings":
        data: dict[str, Any] = tomllib.loads(Path(path).read_text())
        return cls.model_validate(data)

    def fingerprint(self) -> str:
        """Digest of the settings that influence generated results."""

        payload = "|".join(
            model.model_dump_json() for model in (self.enumeration, self.coverage, self.risk)
        )
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()
