from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cache_harness.contracts import PipelineEngine, PipelineRunResult

_logger = logging.getLogger("cache_harness.orchestration")


class InputSnapshotError(ValueError):
    pass


class RunCancelledError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class TwoRunResult:
    first: PipelineRunResult
    second: PipelineRunResult


def run_twice(
    engine: PipelineEngine,
    inputs: Any,
    *,
    snapshot: Callable[[Any], Any] = copy.deepcopy,
    track_steps: bool = True,
    cancel: threading.Event | None = None,
) -> TwoRunResult:
    """
    Run the pipeline twice on the same engine against equal but distinct inputs.

    The second snapshot is taken before the first run so that run 1 cannot leak
    state into it. Cancellation is honored only before run 1 and between runs.
    """
    second_inputs = snapshot(inputs)
    if second_inputs is inputs:
        raise InputSnapshotError(
            "Input snapshot returned the same object; the second run needs a distinct instance"
        )
    if second_inputs != inputs:
        raise InputSnapshotError(
            f"Input snapshot of type {type(inputs).__name__} does not compare equal to the "
            "original; inputs must define value equality"
        )

    _raise_if_cancelled(cancel, stage="before first run")
    _logger.info("Starting first run of '%s' (track_steps=%s)", engine.name, track_steps)
    first = engine.run(inputs, track_steps=track_steps)

    if second_inputs != inputs:
        raise InputSnapshotError(f"Pipeline '{engine.name}' mutated its input during the first run")

    _raise_if_cancelled(cancel, stage="between runs")
    _logger.info("Starting second run of '%s' (track_steps=%s)", engine.name, track_steps)
    second = engine.run(second_inputs, track_steps=track_steps)

    return TwoRunResult(first=first, second=second)


def _raise_if_cancelled(cancel: threading.Event | None, *, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        _logger.info("Caching check cancelled %s", stage)
        raise RunCancelledError(f"Caching check cancelled {stage}")
