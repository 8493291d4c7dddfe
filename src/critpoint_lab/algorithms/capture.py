"""Capture analysis of computed critical points against a known set.

The key metric: what fraction of ALL known critical points in the domain
have at least one computed point nearby (set-based matching)? Nearness is
measured at several tolerances expressed as fractions of the domain
diameter, so the metric is scale-invariant across domains.

Memory: nearest neighbours are found one known point at a time, so the
full n_known × n_computed distance matrix is never materialized.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

import numpy as np

from critpoint_lab.data.domain import (
    CAPTURE_TYPES,
    CriticalPointType,
    KnownCriticalPoints,
    as_point_array,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numpy.typing import ArrayLike, NDArray


DEFAULT_TOLERANCE_FRACTIONS: tuple[float, ...] = (0.01, 0.025, 0.05, 0.10)
"""Tolerances as fractions of domain diameter (1%, 2.5%, 5%, 10%)."""


@dataclass(frozen=True, slots=True)
class CaptureResult:
    """How well a computed point set covers a known critical point set."""

    distances: NDArray[np.float64]
    """Distance from each known point to its nearest computed point."""

    nearest_indices: NDArray[np.intp]
    """Index of the nearest computed point (-1 if none computed)."""

    tolerance_fractions: tuple[float, ...]
    """Tolerances as fractions of the domain diameter (ascending)."""

    tolerance_values: tuple[float, ...]
    """Absolute tolerances."""

    captured_at: NDArray[np.bool_]
    """captured_at[t, k]: known point k captured at tolerance t."""

    capture_rates: tuple[float, ...]
    """Fraction of known points captured at each tolerance."""

    type_capture_rates: Mapping[CriticalPointType, tuple[float, ...]]
    """Per-type capture rate at each tolerance (types present only, read-only)."""

    n_known: int
    """Number of known critical points."""

    n_computed: int
    """Number of computed points."""

    domain_diameter: float
    """Domain diameter the tolerances are relative to."""

    type_counts: Mapping[CriticalPointType, int]
    """Number of known points of each type present (read-only)."""

    known_types: tuple[CriticalPointType, ...]
    """Type of each known point, in known-set order."""

    def captured_count(self, tolerance_index: int) -> int:
        """Number of known points captured at a tolerance level."""
        return int(np.count_nonzero(self.captured_at[tolerance_index]))

    def type_captured_count(
        self, cp_type: CriticalPointType, tolerance_index: int
    ) -> int:
        """Number of known points of one type captured at a tolerance level."""
        captured = self.captured_at[tolerance_index]
        return sum(
            1 for k, t in enumerate(self.known_types) if t is cp_type and captured[k]
        )

    def tolerance_index(self, fraction: float) -> int:
        """Index of a tolerance fraction; raises ValueError if absent."""
        for i, f in enumerate(self.tolerance_fractions):
            if math.isclose(f, fraction, rel_tol=1e-9, abs_tol=1e-12):
                return i
        msg = (
            f"tolerance fraction {fraction} not found in "
            f"{list(self.tolerance_fractions)}"
        )
        raise ValueError(msg)

    def rate_at(self, fraction: float) -> float:
        """Overall capture rate at a tolerance fraction."""
        return self.capture_rates[self.tolerance_index(fraction)]


@dataclass(frozen=True, slots=True)
class MissedPoint:
    """A known critical point with no computed point within tolerance."""

    index: int
    point: NDArray[np.float64]
    value: float
    cp_type: CriticalPointType
    nearest_distance: float


def _validate_fractions(tolerance_fractions: Sequence[float]) -> tuple[float, ...]:
    fractions = tuple(sorted(float(f) for f in tolerance_fractions))
    if not fractions:
        msg = "tolerance_fractions must be non-empty"
        raise ValueError(msg)
    for f in fractions:
        if not (math.isfinite(f) and f > 0):
            msg = f"tolerance fractions must be positive and finite, got {f}"
            raise ValueError(msg)
    return fractions


def nearest_neighbors(
    known_points: NDArray[np.float64],
    computed_points: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.intp]]:
    """Nearest computed point for each known point, one row at a time.

    Ties resolve to the lowest computed index.

    Returns:
        (distances, indices); (inf, -1) everywhere if nothing is computed.
    """
    n_known = known_points.shape[0]
    distances = np.full(n_known, np.inf)
    indices = np.full(n_known, -1, dtype=np.intp)

    if computed_points.shape[0] == 0:
        return distances, indices

    for k in range(n_known):
        row = np.linalg.norm(computed_points - known_points[k], axis=1)
        best = int(np.argmin(row))
        distances[k] = row[best]
        indices[k] = best
    return distances, indices


def compute_capture_analysis(
    known: KnownCriticalPoints,
    computed_points: ArrayLike,
    tolerance_fractions: Sequence[float] = DEFAULT_TOLERANCE_FRACTIONS,
) -> CaptureResult:
    """Compute multi-tolerance capture rates, overall and per type.

    A known point is captured at tolerance ``tol`` if ANY computed point is
    within Euclidean distance ``tol`` (inclusive) of it.

    Args:
        known: Known critical points with types.
        computed_points: Computed points (same dimension; may be empty).
        tolerance_fractions: Tolerances as fractions of the domain diameter,
            sorted ascending internally.

    Returns:
        CaptureResult. With no computed points every distance is ``inf`` and
        every rate is 0.0.

    Raises:
        ValueError: On dimension mismatch or invalid tolerance fractions.

    Example:
        >>> known = KnownCriticalPoints.from_bounds(
        ...     [[0.0, 0.0], [1.0, 1.0]], [0.0, 2.0], ["min", "saddle"],
        ...     [(-2.0, 2.0), (-2.0, 2.0)],
        ... )
        >>> result = compute_capture_analysis(
        ...     known, [[0.05, -0.05], [0.5, 0.5], [0.99, 1.01]], [0.01, 0.05]
        ... )
        >>> result.capture_rates
        (0.5, 1.0)
    """
    fractions = _validate_fractions(tolerance_fractions)
    computed = as_point_array(computed_points, ndim=known.ndim)

    n_known = len(known)
    tol_values = tuple(f * known.domain_diameter for f in fractions)

    distances, nearest = nearest_neighbors(known.points, computed)

    captured_at = np.vstack([distances <= tol for tol in tol_values])
    capture_rates = tuple(float(row.sum()) / n_known for row in captured_at)

    type_counts = known.type_counts()
    type_capture_rates: dict[CriticalPointType, tuple[float, ...]] = {}
    for cp_type in CAPTURE_TYPES:
        if cp_type not in type_counts:
            continue
        mask = known.mask(cp_type)
        count = type_counts[cp_type]
        type_capture_rates[cp_type] = tuple(
            float(np.count_nonzero(row & mask)) / count for row in captured_at
        )

    for array in (distances, nearest, captured_at):
        array.flags.writeable = False

    return CaptureResult(
        distances=distances,
        nearest_indices=nearest,
        tolerance_fractions=fractions,
        tolerance_values=tol_values,
        captured_at=captured_at,
        capture_rates=capture_rates,
        type_capture_rates=MappingProxyType(type_capture_rates),
        n_known=n_known,
        n_computed=int(computed.shape[0]),
        domain_diameter=known.domain_diameter,
        type_counts=MappingProxyType(type_counts),
        known_types=known.types,
    )


def missed_critical_points(
    result: CaptureResult,
    known: KnownCriticalPoints,
    tolerance_index: int = -1,
) -> list[MissedPoint]:
    """Known critical points NOT captured at a tolerance level.

    Args:
        result: Output of :func:`compute_capture_analysis`.
        known: The known set the result was computed for.
        tolerance_index: Tolerance level (default: largest). Negative values
            count from the end.

    Returns:
        Missed points in known-set order.

    Raises:
        ValueError: If the index is out of range or the known set does not
            match the result.
    """
    n_tol = len(result.tolerance_fractions)
    if not -n_tol <= tolerance_index < n_tol:
        msg = f"tolerance_index {tolerance_index} out of range [{-n_tol}, {n_tol - 1}]"
        raise ValueError(msg)
    if len(known) != result.n_known:
        msg = f"known set has {len(known)} points but the result has {result.n_known}"
        raise ValueError(msg)

    captured = result.captured_at[tolerance_index]
    return [
        MissedPoint(
            index=k,
            point=known.points[k],
            value=float(known.values[k]),
            cp_type=known.types[k],
            nearest_distance=float(result.distances[k]),
        )
        for k in np.flatnonzero(~captured).tolist()
    ]


__all__ = [
    "DEFAULT_TOLERANCE_FRACTIONS",
    "CaptureResult",
    "MissedPoint",
    "compute_capture_analysis",
    "missed_critical_points",
    "nearest_neighbors",
]
