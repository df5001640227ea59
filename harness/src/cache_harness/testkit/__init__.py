"""In-memory pipeline engine and handle types for exercising caching checks."""

from cache_harness.testkit.handles import SessionHandle, SyntaxHandle
from cache_harness.testkit.pipeline import INPUT_SOURCE, InMemoryPipelineEngine, StepDefinition

__all__ = [
    "INPUT_SOURCE",
    "InMemoryPipelineEngine",
    "StepDefinition",
    "SessionHandle",
    "SyntaxHandle",
]
