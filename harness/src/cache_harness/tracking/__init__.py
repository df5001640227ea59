from .fakes import FakeTrackingClient, TrackingCall
from .mlflow_client import MlflowTrackingClient
from .report_logging import metric_key, report_metrics, report_tags

__all__ = [
    "FakeTrackingClient",
    "TrackingCall",
    "MlflowTrackingClient",
    "metric_key",
    "report_metrics",
    "report_tags",
]
