from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ForbiddenTypeViolation:
    """
    A session-scoped handle reachable from a step's recorded output.

    `forbidden_type` is the qualified name of the offending object's runtime type and
    `path` is the field/index chain from the output root, e.g. `Output.handle`.
    """

    step_name: str
    forbidden_type: str
    path: str

    @property
    def type_name(self) -> str:
        """Short type name for human-facing output."""
        return self.forbidden_type.rpartition(".")[2]


@dataclass(frozen=True, slots=True)
class StepCachingAnalysis:
    """
    Reuse-reason counts for one step over the second run.
    """

    step_name: str
    cached: int = 0
    unchanged: int = 0
    modified: int = 0
    new: int = 0
    removed: int = 0
    elapsed_s: float = 0.0
    has_forbidden_types: bool = False

    @property
    def total(self) -> int:
        return self.cached + self.unchanged + self.modified + self.new + self.removed

    @property
    def is_cached_successfully(self) -> bool:
        return self.modified == 0 and self.new == 0 and self.removed == 0


@dataclass(frozen=True, slots=True)
class CachingReport:
    """
    Aggregated caching verdict for one pipeline.

    Holds plain values only: no reference back into either run.
    """

    pipeline_name: str
    observable_steps: tuple[StepCachingAnalysis, ...] = ()
    sink_steps: tuple[StepCachingAnalysis, ...] = ()
    forbidden_type_violations: tuple[ForbiddenTypeViolation, ...] = ()
    produced_output: bool = False

    def step(self, step_name: str) -> StepCachingAnalysis | None:
        for analysis in self.observable_steps:
            if analysis.step_name == step_name:
                return analysis
        return None
