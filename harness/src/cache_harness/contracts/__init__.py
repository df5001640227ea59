from .caching_config import (
    DEFAULT_FORBIDDEN_TYPES,
    DEFAULT_INFRASTRUCTURE_FILE_PATTERNS,
    DEFAULT_SINK_STEP_PATTERNS,
    CachingConfig,
    qualified_type_name,
)
from .engine import PipelineEngine, Traversable
from .report import CachingReport, ForbiddenTypeViolation, StepCachingAnalysis
from .run_result import (
    REUSE_REASONS,
    EmittedArtifact,
    OutputGroup,
    PipelineRunResult,
    ReuseReason,
    StepExecutionRecord,
    StepInput,
    StepOutput,
)
from .tracking import CheckStatus, TrackingClient

__all__ = [
    "CachingConfig",
    "DEFAULT_FORBIDDEN_TYPES",
    "DEFAULT_SINK_STEP_PATTERNS",
    "DEFAULT_INFRASTRUCTURE_FILE_PATTERNS",
    "qualified_type_name",
    "PipelineEngine",
    "Traversable",
    "PipelineRunResult",
    "OutputGroup",
    "EmittedArtifact",
    "StepExecutionRecord",
    "StepInput",
    "StepOutput",
    "ReuseReason",
    "REUSE_REASONS",
    "CachingReport",
    "ForbiddenTypeViolation",
    "StepCachingAnalysis",
    "TrackingClient",
    "CheckStatus",
]
