"""Package utilities for werner-gravity.

The model itself lives in the top-level packages `geometry/`, `runtime/`,
`core/` and `parameters/`. This package exposes the version and stable entry
points for callers that only need the gravity kernel.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from runtime.field_evaluator import (
    DisplacementCache,
    FieldEvaluation,
    evaluate,
    evaluate_points,
    is_inside,
    solid_angle_sum,
)
from runtime.topology import Topology, build_topology, check_closed_manifold

try:
    __version__ = version("werner-gravity")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "DisplacementCache",
    "FieldEvaluation",
    "Topology",
    "build_topology",
    "check_closed_manifold",
    "evaluate",
    "evaluate_points",
    "is_inside",
    "solid_angle_sum",
]
