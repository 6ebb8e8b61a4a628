"""
Variant key model.

A render request fans out into a set of variants. Each variant has an
opaque key that is unique within its run plus the fields that distinguish
it from its siblings (angle, finish, environment, pipeline stage).

Three enumeration shapes are supported:
- pipeline: ordered stages, each depending on the one before it
- flat: independent keys rendered concurrently
- cartesian: a cross product of named dimensions, optionally filtered
  down to an inclusion list of keys

Enumeration is pure and deterministic.
"""

from dataclasses import dataclass, field
from enum import Enum
from itertools import product
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class Strategy(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


# Presets used by the wrap visualizer, the studio renderer and the proof flow
VISUALIZER_ANGLES: Tuple[str, ...] = ("hero", "side", "rear", "detail")
STUDIO_VIEWS: Tuple[str, ...] = ("driver_side", "front", "rear", "passenger_side", "top", "detail")
PROOF_STAGES: Tuple[str, ...] = ("flat-panel", "3d-proof", "print-file")

KEY_SEPARATOR = "-"


@dataclass(frozen=True)
class Variant:
    key: str
    fields: Dict[str, Any] = field(default_factory=dict)
    depends_on: Optional[str] = None


@dataclass(frozen=True)
class VariantPlan:
    """Ordered variants plus the concurrency mode they must run under."""

    variants: Tuple[Variant, ...]
    strategy: Strategy

    @property
    def keys(self) -> List[str]:
        return [v.key for v in self.variants]

    def __len__(self) -> int:
        return len(self.variants)

    def __iter__(self):
        return iter(self.variants)


def _check_unique(keys: Sequence[str]):
    if not keys:
        raise ValueError("At least one variant is required")
    seen = set()
    for key in keys:
        if not key:
            raise ValueError("Variant keys must be non-empty")
        if key in seen:
            raise ValueError(f"Duplicate variant key: {key}")
        seen.add(key)


def pipeline_plan(stages: Sequence[str], panels: Optional[Iterable[str]] = None) -> VariantPlan:
    """
    Strictly ordered stages; stage N+1 consumes stage N's output.

    >>> pipeline_plan(PROOF_STAGES).variants[1].depends_on
    'flat-panel'
    """
    stages = list(stages)
    _check_unique(stages)
    extra = _panel_fields(panels)

    variants = []
    previous = None
    for stage in stages:
        variants.append(Variant(key=stage, fields={"stage": stage, **extra}, depends_on=previous))
        previous = stage
    return VariantPlan(tuple(variants), Strategy.SEQUENTIAL)


def flat_plan(
    keys: Sequence[str],
    dimension: str = "angle",
    sequential: bool = False,
    panels: Optional[Iterable[str]] = None,
) -> VariantPlan:
    """Independent keys. Sequential mode only throttles; there are no dependencies."""
    keys = list(keys)
    _check_unique(keys)
    extra = _panel_fields(panels)

    variants = tuple(Variant(key=k, fields={dimension: k, **extra}) for k in keys)
    strategy = Strategy.SEQUENTIAL if sequential else Strategy.PARALLEL
    return VariantPlan(variants, strategy)


def cartesian_plan(
    dimensions: Sequence[Tuple[str, Sequence[str]]],
    include: Optional[Iterable[str]] = None,
    panels: Optional[Iterable[str]] = None,
) -> VariantPlan:
    """
    Cross product of dimensions, in the order given.

    Keys join the dimension values with "-", e.g. ("rear", "gloss", "studio")
    becomes "rear-gloss-studio". When `include` is given only keys named in
    it survive.

    Args:
        dimensions: (name, values) pairs, e.g. [("angle", [...]), ("finish", [...])]
        include: optional inclusion list of variant keys
        panels: selected geometry panels carried into every variant's fields
    """
    dimensions = [(name, list(values)) for name, values in dimensions]
    if not dimensions:
        raise ValueError("At least one dimension is required")
    for name, values in dimensions:
        if not values:
            raise ValueError(f"Dimension '{name}' has no values")

    allowed = set(include) if include is not None else None
    extra = _panel_fields(panels)
    names = [name for name, _ in dimensions]

    variants = []
    for combo in product(*(values for _, values in dimensions)):
        key = KEY_SEPARATOR.join(combo)
        if allowed is not None and key not in allowed:
            continue
        variants.append(Variant(key=key, fields={**dict(zip(names, combo)), **extra}))

    keys = [v.key for v in variants]
    _check_unique(keys)
    return VariantPlan(tuple(variants), Strategy.PARALLEL)


def _panel_fields(panels: Optional[Iterable[str]]) -> Dict[str, Any]:
    if panels is None:
        return {}
    return {"panels": list(panels)}
