from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, Protocol, runtime_checkable

from cache_harness.contracts.report import CachingReport

CheckStatus = Literal["ok", "failed"]


@runtime_checkable
class TrackingClient(Protocol):
    """
    Facade contract for publishing caching checks to a tracking backend.
    """

    @property
    def active_run_id(self) -> str | None:
        """Return the active run id, if any."""
        ...

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        """Start a new tracking run and return its id."""
        ...

    def end_run(self, *, status: CheckStatus) -> None:
        """End the active run with the given status."""
        ...

    def log_params(self, params: Mapping[str, Any]) -> None:
        """Log multiple parameters."""
        ...

    def log_metrics(self, metrics: Mapping[str, float]) -> None:
        """Log multiple metrics."""
        ...

    def set_tags(self, tags: Mapping[str, str]) -> None:
        """Set tags on the active run."""
        ...

    def log_report(self, report: CachingReport) -> None:
        """Publish a caching report as metrics and verdict tags."""
        ...

    def log_artifacts(self, local_dir: str, *, artifact_path: str | None = None) -> None:
        """Log all artifacts within a directory."""
        ...
