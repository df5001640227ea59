from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cache_harness.contracts.report import CachingReport
from cache_harness.contracts.tracking import CheckStatus
from cache_harness.tracking.report_logging import report_metrics, report_tags


@dataclass(frozen=True, slots=True)
class TrackingCall:
    """Record of a tracking call for assertions in tests."""

    name: str
    kwargs: dict[str, Any]


class FakeTrackingClient:
    """
    In-memory TrackingClient for unit tests and offline checks.
    """

    def __init__(self) -> None:
        self._active_run_id: str | None = None
        self._run_counter = 0
        self._calls: list[TrackingCall] = []

    @property
    def active_run_id(self) -> str | None:
        """Return the active run id, if any."""
        return self._active_run_id

    @property
    def calls(self) -> list[TrackingCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    def calls_named(self, name: str) -> list[TrackingCall]:
        return [call for call in self._calls if call.name == name]

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        """Start a fake run and return its id."""
        self._ensure_no_active_run()
        self._run_counter += 1
        self._active_run_id = f"check_{self._run_counter}"
        self._record("start_run", run_name=run_name, tags=dict(tags))
        return self._active_run_id

    def end_run(self, *, status: CheckStatus) -> None:
        """End the active fake run."""
        self._ensure_active_run()
        self._record("end_run", status=status)
        self._active_run_id = None

    def log_params(self, params: Mapping[str, Any]) -> None:
        self._ensure_active_run()
        self._record("log_params", params=dict(params))

    def log_metrics(self, metrics: Mapping[str, float]) -> None:
        self._ensure_active_run()
        self._record("log_metrics", metrics=dict(metrics))

    def set_tags(self, tags: Mapping[str, str]) -> None:
        self._ensure_active_run()
        self._record("set_tags", tags=dict(tags))

    def log_report(self, report: CachingReport) -> None:
        """Record a report the way a real backend receives it: metrics, then tags."""
        self.log_metrics(report_metrics(report))
        self.set_tags(report_tags(report))

    def logged_metrics(self) -> dict[str, float]:
        """Merge every metric logged so far, later calls winning."""
        merged: dict[str, float] = {}
        for call in self.calls_named("log_metrics"):
            merged.update(call.kwargs["metrics"])
        return merged

    def log_artifacts(self, local_dir: str, *, artifact_path: str | None = None) -> None:
        self._ensure_active_run()
        self._record("log_artifacts", local_dir=local_dir, artifact_path=artifact_path)

    def _record(self, name: str, **kwargs: Any) -> None:
        self._calls.append(TrackingCall(name=name, kwargs=kwargs))

    def _ensure_active_run(self) -> None:
        if self._active_run_id is None:
            raise RuntimeError("No active run. Call start_run first.")

    def _ensure_no_active_run(self) -> None:
        if self._active_run_id is not None:
            raise RuntimeError("A run is already active.")
