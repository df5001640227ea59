"""Step classification, trace extraction, forbidden-type scanning and report building."""

from cache_harness.analysis.classification import StepClassifier
from cache_harness.analysis.extraction import extract_steps
from cache_harness.analysis.report import StepSetMismatchError, analyze_step, create_caching_report
from cache_harness.analysis.scanner import ForbiddenTypeScanner, TrackingDisabledError, analyze_run

__all__ = [
    "StepClassifier",
    "extract_steps",
    "ForbiddenTypeScanner",
    "TrackingDisabledError",
    "analyze_run",
    "StepSetMismatchError",
    "analyze_step",
    "create_caching_report",
]
