from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

ReuseReason = Literal["new", "cached", "unchanged", "modified", "removed"]

REUSE_REASONS: tuple[ReuseReason, ...] = ("new", "cached", "unchanged", "modified", "removed")


@dataclass(frozen=True, slots=True)
class StepInput:
    source: str
    reason: ReuseReason


@dataclass(frozen=True, slots=True)
class StepOutput:
    value: Any
    reason: ReuseReason


@dataclass(frozen=True, slots=True)
class StepExecutionRecord:
    """
    One (re)execution of a named pipeline step.

    Produced by the pipeline engine only; analysis code must treat it as read-only.
    """

    step_name: str
    key: str
    outputs: tuple[StepOutput, ...] = ()
    inputs: tuple[StepInput, ...] = ()
    elapsed_s: float = 0.0


@dataclass(frozen=True, slots=True)
class EmittedArtifact:
    name: str
    content: str


@dataclass(frozen=True, slots=True)
class OutputGroup:
    # step name -> records in execution order
    tracked_steps: Mapping[str, tuple[StepExecutionRecord, ...]] = field(default_factory=dict)
    diagnostics: tuple[str, ...] = ()
    artifacts: tuple[EmittedArtifact, ...] = ()


@dataclass(frozen=True, slots=True)
class PipelineRunResult:
    """
    Public snapshot of one pipeline execution.

    Keep this stable: analysis only depends on these fields.
    """

    pipeline_name: str
    groups: tuple[OutputGroup, ...] = ()
    tracking_enabled: bool = True

    @property
    def artifacts(self) -> tuple[EmittedArtifact, ...]:
        return tuple(artifact for group in self.groups for artifact in group.artifacts)

    @property
    def diagnostics(self) -> tuple[str, ...]:
        return tuple(diagnostic for group in self.groups for diagnostic in group.diagnostics)
