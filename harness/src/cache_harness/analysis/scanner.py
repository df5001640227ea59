from __future__ import annotations

import enum
import inspect
import logging
import types
from collections.abc import Mapping, Sequence, Set
from datetime import date, time, timedelta, tzinfo
from decimal import Decimal
from fractions import Fraction
from functools import lru_cache
from pathlib import PurePath
from typing import Any
from uuid import UUID

from cache_harness.analysis.extraction import extract_steps
from cache_harness.contracts import (
    CachingConfig,
    ForbiddenTypeViolation,
    PipelineRunResult,
    qualified_type_name,
)

_logger = logging.getLogger("cache_harness.scanner")

_ROOT_PATH = "Output"

# Never descended into and never tracked in the visited map.
_LEAF_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    memoryview,
    enum.Enum,
    Decimal,
    Fraction,
    date,
    time,
    timedelta,
    tzinfo,
    UUID,
    PurePath,
    range,
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.MethodWrapperType,
    types.WrapperDescriptorType,
    types.MethodDescriptorType,
)


class TrackingDisabledError(RuntimeError):
    pass


class ForbiddenTypeScanner:
    """
    Finds session-scoped handles reachable from the recorded step outputs of a run.

    Traversal is depth-first over an explicit stack with one visited map (keyed by
    object identity) for the whole run, so each distinct object is inspected once and
    cyclic graphs terminate. The map holds every visited node until the scan ends so
    that children built on demand by `caching_children()` cannot be freed and have
    their id reused by a later node. The scanner never descends into a forbidden object.
    """

    def __init__(self, config: CachingConfig | None = None) -> None:
        self._config = config or CachingConfig()
        self._forbidden = frozenset(self._config.forbidden_types)
        self._safe = frozenset(self._config.safe_types)
        self._type_cache: dict[type, tuple[str | None, bool]] = {}

    def analyze_run(self, run: PipelineRunResult) -> tuple[ForbiddenTypeViolation, ...]:
        """Return violations deduplicated by (step, type, path), in discovery order."""
        if not run.tracking_enabled:
            raise TrackingDisabledError(
                f"Step tracking disabled for pipeline '{run.pipeline_name}'; "
                "forbidden-type analysis needs a run executed with track_steps=True"
            )

        violations: list[ForbiddenTypeViolation] = []
        seen: set[ForbiddenTypeViolation] = set()
        visited: dict[int, Any] = {}
        steps = extract_steps(run)

        for step_name in sorted(steps):
            for record in steps[step_name]:
                for output in record.outputs:
                    completed = self._visit(output.value, step_name, violations, seen, visited)
                    if not completed:
                        _logger.warning(
                            "Stopped scanning '%s' after %d violations",
                            run.pipeline_name,
                            len(violations),
                        )
                        return tuple(violations)

        _logger.debug(
            "Scanned %d objects across %d steps of '%s': %d violations",
            len(visited),
            len(steps),
            run.pipeline_name,
            len(violations),
        )
        return tuple(violations)

    def _visit(
        self,
        root: Any,
        step_name: str,
        violations: list[ForbiddenTypeViolation],
        seen: set[ForbiddenTypeViolation],
        visited: dict[int, Any],
    ) -> bool:
        max_depth = self._config.max_depth
        stack: list[tuple[Any, str, int]] = [(root, _ROOT_PATH, 0)]

        while stack:
            node, path, depth = stack.pop()
            forbidden, leaf = self._classify(type(node))
            if forbidden is None and leaf:
                continue
            if id(node) in visited:
                continue
            visited[id(node)] = node

            if forbidden is not None:
                violation = ForbiddenTypeViolation(step_name=step_name, forbidden_type=forbidden, path=path)
                if violation not in seen:
                    seen.add(violation)
                    violations.append(violation)
                if len(violations) >= self._config.max_violations:
                    return False
                continue

            if max_depth is not None and depth >= max_depth:
                continue

            children = self._children(node, path)
            # reversed so that pops follow declaration order
            stack.extend((child, child_path, depth + 1) for child_path, child in reversed(children))

        return True

    def _classify(self, cls: type) -> tuple[str | None, bool]:
        cached = self._type_cache.get(cls)
        if cached is not None:
            return cached

        mro_names = {qualified_type_name(base) for base in cls.__mro__}
        forbidden = qualified_type_name(cls) if mro_names & self._forbidden else None
        leaf = issubclass(cls, _LEAF_TYPES) or bool(mro_names & self._safe)
        self._type_cache[cls] = (forbidden, leaf)
        return forbidden, leaf

    def _children(self, node: Any, path: str) -> list[tuple[str, Any]]:
        try:
            if _is_traversable(node):
                return [(f"{path}.{label}", value) for label, value in node.caching_children()]
            if isinstance(node, Mapping):
                return self._mapping_children(node, path)
            if isinstance(node, (Sequence, Set)):
                return [(f"{path}[{index}]", item) for index, item in enumerate(node)]
        except Exception:
            _logger.debug("Skipping unreadable container at %s", path, exc_info=True)
            return []
        return _member_children(node, path)

    def _mapping_children(self, node: Mapping[Any, Any], path: str) -> list[tuple[str, Any]]:
        children: list[tuple[str, Any]] = []
        for index, (key, value) in enumerate(list(node.items())):
            forbidden, leaf = self._classify(type(key))
            if forbidden is not None or not leaf:
                children.append((f"{path}.keys[{index}]", key))
            children.append((f"{path}[{key!r}]", value))
        return children


def analyze_run(
    run: PipelineRunResult, config: CachingConfig | None = None
) -> tuple[ForbiddenTypeViolation, ...]:
    return ForbiddenTypeScanner(config).analyze_run(run)


def _is_traversable(node: Any) -> bool:
    # static lookup on the type; a permissive __getattr__ must not opt a value in
    return callable(inspect.getattr_static(type(node), "caching_children", None))


def _member_children(node: Any, path: str) -> list[tuple[str, Any]]:
    children: list[tuple[str, Any]] = []
    try:
        attrs = dict(vars(node))
    except TypeError:
        attrs = {}
    except Exception:
        _logger.debug("Skipping unreadable __dict__ at %s", path, exc_info=True)
        attrs = {}
    for name, value in attrs.items():
        children.append((f"{path}.{name}", value))

    for name in _slot_names(type(node)):
        if name in attrs:
            continue
        try:
            value = getattr(node, name)
        except AttributeError:
            # unset slot
            continue
        except Exception:
            _logger.debug("Skipping unreadable member %s.%s", path, name, exc_info=True)
            continue
        children.append((f"{path}.{name}", value))
    return children


@lru_cache(maxsize=None)
def _slot_names(cls: type) -> tuple[str, ...]:
    names: list[str] = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name.startswith("__") and name.endswith("__"):
                continue
            if name.startswith("__"):
                name = f"_{klass.__name__.lstrip('_')}{name}"
            if name not in names:
                names.append(name)
    return tuple(names)
