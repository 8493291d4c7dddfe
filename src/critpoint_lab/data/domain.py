"""
Domain and Critical Point Definitions - Single Source of Truth

This module defines the search domain, the critical point type labels, and
the canonical set of known critical points that capture analysis measures
computed points against.

All relative tolerances in the package are fractions of the domain diameter
‖upper − lower‖₂, which makes capture metrics comparable across domains of
different size.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class CriticalPointType(Enum):
    """Classification of a critical point from its Hessian curvature."""

    MINIMUM = "min"
    MAXIMUM = "max"
    SADDLE = "saddle"
    DEGENERATE = "degenerate"  # at least one eigenvalue numerically zero

    @property
    def capture_type(self) -> CriticalPointType:
        """Label used for capture analysis (degenerate counts as saddle)."""
        if self is CriticalPointType.DEGENERATE:
            return CriticalPointType.SADDLE
        return self


CAPTURE_TYPES: tuple[CriticalPointType, ...] = (
    CriticalPointType.MINIMUM,
    CriticalPointType.MAXIMUM,
    CriticalPointType.SADDLE,
)
"""Capture-relevant labels in canonical display order."""


_TYPE_ALIASES: dict[str, CriticalPointType] = {
    "min": CriticalPointType.MINIMUM,
    "minimum": CriticalPointType.MINIMUM,
    "max": CriticalPointType.MAXIMUM,
    "maximum": CriticalPointType.MAXIMUM,
    "saddle": CriticalPointType.SADDLE,
    "degenerate": CriticalPointType.DEGENERATE,
}


def parse_cp_type(name: CriticalPointType | str) -> CriticalPointType:
    """
    Parse a critical point type from an enum member or a string.

    Args:
        name: Enum member, short value ('min') or long name ('minimum').

    Returns:
        The matching CriticalPointType.

    Raises:
        ValueError: If the name is unknown.

    Example:
        >>> parse_cp_type("Maximum")
        <CriticalPointType.MAXIMUM: 'max'>
    """
    if isinstance(name, CriticalPointType):
        return name

    normalized = str(name).strip().lower()
    if normalized in _TYPE_ALIASES:
        return _TYPE_ALIASES[normalized]

    valid = sorted(_TYPE_ALIASES)
    raise ValueError(f"Unknown critical point type: '{name}'. Valid: {valid}")


def _frozen(array: NDArray[Any]) -> NDArray[Any]:
    """Mark an array read-only and return it."""
    array.flags.writeable = False
    return array


# =============================================================================
# DOMAIN BOUNDS
# =============================================================================


@dataclass(frozen=True, slots=True)
class DomainBounds:
    """Axis-aligned box domain with strictly positive extent per dimension."""

    lower: NDArray[np.float64]
    """Lower corner."""

    upper: NDArray[np.float64]
    """Upper corner."""

    def __post_init__(self) -> None:
        lower = np.array(self.lower, dtype=float).ravel()
        upper = np.array(self.upper, dtype=float).ravel()

        if lower.shape != upper.shape:
            msg = (
                f"lower bounds have {lower.size} dimensions but upper bounds "
                f"have {upper.size}"
            )
            raise ValueError(msg)
        if lower.size == 0:
            msg = "bounds must have at least one dimension"
            raise ValueError(msg)
        if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
            msg = "bounds must be finite"
            raise ValueError(msg)

        bad = np.flatnonzero(upper <= lower)
        if bad.size:
            i = int(bad[0])
            msg = (
                f"bounds must have positive width in every dimension; "
                f"dimension {i} has lower={lower[i]} upper={upper[i]}"
            )
            raise ValueError(msg)

        object.__setattr__(self, "lower", _frozen(lower))
        object.__setattr__(self, "upper", _frozen(upper))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]) -> DomainBounds:
        """Build bounds from (lower, upper) pairs, one per dimension."""
        pairs = [tuple(p) for p in pairs]
        for i, p in enumerate(pairs):
            if len(p) != 2:
                msg = f"bound pair {i} must have 2 entries, got {len(p)}"
                raise ValueError(msg)
        return cls(
            lower=np.array([p[0] for p in pairs], dtype=float),
            upper=np.array([p[1] for p in pairs], dtype=float),
        )

    @property
    def ndim(self) -> int:
        """Number of dimensions."""
        return int(self.lower.size)

    @property
    def diameter(self) -> float:
        """Euclidean length of the domain diagonal."""
        return float(np.linalg.norm(self.upper - self.lower))

    def pairs(self) -> list[tuple[float, float]]:
        """Return bounds as (lower, upper) pairs."""
        return [(float(lo), float(hi)) for lo, hi in zip(self.lower, self.upper)]

    def check_point(self, x: ArrayLike, *, name: str = "point") -> NDArray[np.float64]:
        """Convert to a float vector and validate its dimension."""
        point = np.asarray(x, dtype=float)
        if point.ndim != 1 or point.size != self.ndim:
            msg = f"{name} has dimension {point.size}, expected {self.ndim} (from bounds)"
            raise ValueError(msg)
        return point

    def clamp(self, x: ArrayLike) -> NDArray[np.float64]:
        """Return a copy of ``x`` clamped into the box."""
        return np.clip(np.asarray(x, dtype=float), self.lower, self.upper)

    def contains(self, x: ArrayLike) -> bool:
        """True if ``x`` lies inside the closed box."""
        point = np.asarray(x, dtype=float)
        return bool(np.all(point >= self.lower) and np.all(point <= self.upper))


def as_bounds(
    bounds: DomainBounds | Iterable[Sequence[float]] | None,
) -> DomainBounds | None:
    """Coerce bounds given as pairs into DomainBounds (None passes through)."""
    if bounds is None or isinstance(bounds, DomainBounds):
        return bounds
    return DomainBounds.from_pairs(bounds)


def as_point_array(points: ArrayLike, *, ndim: int | None = None) -> NDArray[np.float64]:
    """
    Convert a collection of points into an (m, n) float array.

    Args:
        points: Sequence of equally sized coordinate vectors, or a 2-D array.
        ndim: Expected point dimension (checked if given).

    Returns:
        Array of shape (m, n); (0, ndim) for an empty collection.

    Raises:
        ValueError: If points have inconsistent or unexpected dimension.
    """
    if isinstance(points, np.ndarray):
        array = points.astype(float)
    else:
        rows = [np.asarray(p, dtype=float).ravel() for p in points]  # type: ignore[union-attr]
        if not rows:
            return np.empty((0, ndim or 0))
        sizes = {r.size for r in rows}
        if len(sizes) > 1:
            msg = f"points have inconsistent dimensions: {sorted(sizes)}"
            raise ValueError(msg)
        array = np.vstack(rows)

    if array.size == 0:
        return np.empty((0, ndim or (array.shape[-1] if array.ndim == 2 else 0)))
    if array.ndim != 2:
        msg = f"points must form a 2-D array, got shape {array.shape}"
        raise ValueError(msg)
    if ndim is not None and array.shape[1] != ndim:
        msg = f"points have dimension {array.shape[1]}, expected {ndim}"
        raise ValueError(msg)
    return array


# =============================================================================
# KNOWN CRITICAL POINTS
# =============================================================================


@dataclass(frozen=True, slots=True)
class KnownCriticalPoints:
    """Reference set of critical points with values and capture types.

    Construct with :meth:`from_bounds` to compute the domain diameter from
    the search domain.

    Example:
        >>> known = KnownCriticalPoints.from_bounds(
        ...     [[0.0, 0.0], [1.0, 1.0]],
        ...     [0.0, 2.0],
        ...     ["min", "saddle"],
        ...     [(-2.0, 2.0), (-2.0, 2.0)],
        ... )
        >>> round(known.domain_diameter, 4)
        5.6569
    """

    points: NDArray[np.float64]
    """Coordinates, shape (m, n)."""

    values: NDArray[np.float64]
    """Objective value at each point, shape (m,)."""

    types: tuple[CriticalPointType, ...]
    """Capture type of each point (minimum, maximum or saddle)."""

    domain_diameter: float
    """Diameter of the domain the points were computed against."""

    def __post_init__(self) -> None:
        points = as_point_array(self.points)
        values = np.asarray(self.values, dtype=float).ravel()
        types = tuple(parse_cp_type(t) for t in self.types)

        n = points.shape[0]
        if n == 0:
            msg = "KnownCriticalPoints: points must be non-empty"
            raise ValueError(msg)
        if values.size != n:
            msg = f"KnownCriticalPoints: values length ({values.size}) must match points length ({n})"
            raise ValueError(msg)
        if len(types) != n:
            msg = f"KnownCriticalPoints: types length ({len(types)}) must match points length ({n})"
            raise ValueError(msg)
        for i, t in enumerate(types):
            if t not in CAPTURE_TYPES:
                valid = [c.value for c in CAPTURE_TYPES]
                msg = f"KnownCriticalPoints: invalid type {t.value!r} at index {i}. Must be one of {valid}"
                raise ValueError(msg)
        if not (np.isfinite(self.domain_diameter) and self.domain_diameter > 0):
            msg = f"KnownCriticalPoints: domain_diameter must be positive and finite, got {self.domain_diameter}"
            raise ValueError(msg)

        object.__setattr__(self, "points", _frozen(points))
        object.__setattr__(self, "values", _frozen(values))
        object.__setattr__(self, "types", types)
        object.__setattr__(self, "domain_diameter", float(self.domain_diameter))

    @classmethod
    def from_bounds(
        cls,
        points: ArrayLike,
        values: ArrayLike,
        types: Iterable[CriticalPointType | str],
        bounds: DomainBounds | Iterable[Sequence[float]],
    ) -> KnownCriticalPoints:
        """Build a known set, folding degenerate labels into saddle.

        Raises:
            ValueError: If any point dimension differs from the bounds.
        """
        domain = as_bounds(bounds)
        if domain is None:
            msg = "KnownCriticalPoints: bounds are required"
            raise ValueError(msg)
        array = as_point_array(points)
        if array.shape[0] and array.shape[1] != domain.ndim:
            msg = (
                f"KnownCriticalPoints: points have dimension {array.shape[1]}, "
                f"expected {domain.ndim} (from bounds)"
            )
            raise ValueError(msg)
        capture_types = tuple(parse_cp_type(t).capture_type for t in types)
        return cls(
            points=array,
            values=np.asarray(values, dtype=float),
            types=capture_types,
            domain_diameter=domain.diameter,
        )

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def ndim(self) -> int:
        """Dimension of each point."""
        return int(self.points.shape[1])

    def mask(self, cp_type: CriticalPointType | str) -> NDArray[np.bool_]:
        """Boolean mask of points with the given type."""
        wanted = parse_cp_type(cp_type).capture_type
        return np.array([t is wanted for t in self.types], dtype=bool)

    def type_counts(self) -> dict[CriticalPointType, int]:
        """Count of each type present, in canonical order."""
        counts = {t: self.types.count(t) for t in CAPTURE_TYPES}
        return {t: c for t, c in counts.items() if c > 0}


__all__ = [
    "CAPTURE_TYPES",
    "CriticalPointType",
    "DomainBounds",
    "KnownCriticalPoints",
    "as_bounds",
    "as_point_array",
    "parse_cp_type",
]
