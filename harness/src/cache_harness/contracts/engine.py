from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from cache_harness.contracts.run_result import PipelineRunResult


@runtime_checkable
class PipelineEngine(Protocol):
    """
    Pipeline engine contract.

    Engines are stateful: each `run` call reuses the cache populated by the previous one.
    """

    @property
    def name(self) -> str: ...

    def run(self, inputs: Any, *, track_steps: bool) -> PipelineRunResult:
        """
        Execute the pipeline against `inputs` and return an immutable run snapshot.

        Per-step execution records are only populated when `track_steps` is true.
        """
        ...


@runtime_checkable
class Traversable(Protocol):
    """
    Optional traversal hook for values recorded in step outputs.

    Implementations list the members the forbidden-type scanner should inspect,
    as `(label, value)` pairs. Labels become path segments (`Output.<label>`).
    """

    def caching_children(self) -> Iterable[tuple[str, Any]]: ...
