from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from cache_harness.contracts.report import CachingReport
from cache_harness.contracts.tracking import CheckStatus
from cache_harness.tracking.report_logging import report_metrics, report_tags

try:
    import mlflow as _mlflow
except Exception:  # pragma: no cover - handled via runtime error
    _mlflow = None


def _require_mlflow() -> Any:
    if _mlflow is None:
        raise RuntimeError(
            "mlflow is not installed. Install the 'mlflow' extra to publish caching checks."
        )
    return _mlflow


class MlflowTrackingClient:
    """
    MLflow-backed implementation of the TrackingClient facade.

    Each caching check becomes one MLflow run; report counts are logged as metrics.
    """

    def __init__(
        self,
        *,
        tracking_uri: str | None = None,
        experiment_name: str | None = None,
        experiment_id: str | None = None,
    ) -> None:
        if experiment_name and experiment_id:
            raise ValueError("Provide either experiment_name or experiment_id, not both.")

        self._mlflow = _require_mlflow()
        self._experiment_id = experiment_id
        self._active_run_id: str | None = None

        if tracking_uri is not None:
            self._mlflow.set_tracking_uri(tracking_uri)
        if experiment_name is not None:
            self._mlflow.set_experiment(experiment_name)

    @property
    def active_run_id(self) -> str | None:
        return self._active_run_id

    def start_run(self, *, run_name: str, tags: Mapping[str, str]) -> str:
        self._ensure_no_active_run()
        run = self._mlflow.start_run(
            run_name=run_name,
            tags=dict(tags),
            experiment_id=self._experiment_id,
        )
        self._active_run_id = run.info.run_id
        return self._active_run_id

    def end_run(self, *, status: CheckStatus) -> None:
        self._ensure_active_run()
        self._mlflow.end_run(status=_map_check_status(status))
        self._active_run_id = None

    def log_params(self, params: Mapping[str, Any]) -> None:
        self._ensure_active_run()
        self._mlflow.log_params(dict(params))

    def log_metrics(self, metrics: Mapping[str, float]) -> None:
        self._ensure_active_run()
        self._mlflow.log_metrics(dict(metrics))

    def set_tags(self, tags: Mapping[str, str]) -> None:
        self._ensure_active_run()
        self._mlflow.set_tags(dict(tags))

    def log_report(self, report: CachingReport) -> None:
        self._ensure_active_run()
        self._mlflow.log_metrics(report_metrics(report))
        self._mlflow.set_tags(report_tags(report))

    def log_artifacts(self, local_dir: str, *, artifact_path: str | None = None) -> None:
        self._ensure_active_run()
        self._mlflow.log_artifacts(local_dir, artifact_path=artifact_path)

    def _ensure_active_run(self) -> None:
        if self._active_run_id is None:
            raise RuntimeError("No active MLflow run. Call start_run first.")

    def _ensure_no_active_run(self) -> None:
        if self._active_run_id is not None or self._mlflow.active_run() is not None:
            raise RuntimeError("An MLflow run is already active.")


def _map_check_status(status: CheckStatus) -> str:
    mapping = {
        "ok": "FINISHED",
        "failed": "FAILED",
    }
    return mapping[status]
