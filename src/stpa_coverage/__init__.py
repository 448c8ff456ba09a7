"""Top-level package for STPA combination enumeration and coverage tracking."""

from .api import CoverageEngine, RankingResult, build_engine
from .combinations import (
    AbstractionLevel,
    CandidateCombination,
    CombinationGenerator,
    CombinationType,
    SubsetIndexSequence,
    canonical_key,
    parse_key,
)
from .config import (
    DEFAULT_ANALYSIS_TYPES,
    CoverageConfig,
    EngineSettings,
    EnumerationConfig,
    LoggingConfig,
    RiskWeights,
)
from .coverage import (
    TERMINAL,
    CellKey,
    CellState,
    CoverageCell,
    CoverageEvent,
    CoverageSummary,
    CoverageTracker,
    Cursor,
    SessionRegistry,
    TraversalPlan,
)
from .errors import (
    CoverageEngineError,
    GraphCycleError,
    InsufficientControllersError,
    InvalidConfigurationError,
)
from .export import CandidateRecord, render, to_csv, to_json, to_records
from .hierarchy import Hierarchy, HierarchyBuilder, HierarchyStep, Movement, build_hierarchy
from .interactions import SpecialInteractions, apply_special_interactions, load_interactions
from .logging_utils import JsonFormatter, configure_logging
from .models import SnapshotModel, load_snapshot
from .prioritization import prioritize, priority_key
from .review import CandidateReview, Decision, ReviewEvent, ReviewProgress
from .scoring import RiskScorer
from .snapshot import (
    AnalysisSnapshot,
    ControlAction,
    ControlPath,
    Controller,
    ControllerType,
    Finding,
    Role,
)

__all__ = [
    "CoverageEngine",
    "RankingResult",
    "build_engine",
    "AbstractionLevel",
    "CandidateCombination",
    "CombinationGenerator",
    "CombinationType",
    "SubsetIndexSequence",
    "canonical_key",
    "parse_key",
    "DEFAULT_ANALYSIS_TYPES",
    "CoverageConfig",
    "EngineSettings",
    "EnumerationConfig",
    "LoggingConfig",
    "RiskWeights",
    "TERMINAL",
    "CellKey",
    "CellState",
    "CoverageCell",
    "CoverageEvent",
    "CoverageSummary",
    "CoverageTracker",
    "Cursor",
    "SessionRegistry",
    "TraversalPlan",
    "CoverageEngineError",
    "GraphCycleError",
    "InsufficientControllersError",
    "InvalidConfigurationError",
    "CandidateRecord",
    "render",
    "to_csv",
    "to_json",
    "to_records",
    "Hierarchy",
    "HierarchyBuilder",
    "HierarchyStep",
    "Movement",
    "build_hierarchy",
    "SpecialInteractions",
    "apply_special_interactions",
    "load_interactions",
    "JsonFormatter",
    "configure_logging",
    "SnapshotModel",
    "load_snapshot",
    "prioritize",
    "priority_key",
    "CandidateReview",
    "Decision",
    "ReviewEvent",
    "ReviewProgress",
    "RiskScorer",
    "AnalysisSnapshot",
    "ControlAction",
    "ControlPath",
    "Controller",
    "ControllerType",
    "Finding",
    "Role",
]
