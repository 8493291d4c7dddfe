"""Gradient-norm validation of candidate critical points.

A true critical point satisfies ‖∇f(x*)‖ ≈ 0. This module checks a batch of
points against that condition without refining them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from critpoint_lab.algorithms.gradients import Objective, create_oracle
from critpoint_lab.data.domain import as_point_array
from critpoint_lab.data.refinement_config import GradientMethod

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True, slots=True)
class GradientValidationResult:
    """Gradient norms of a point batch and their pass/fail status."""

    norms: NDArray[np.float64]
    """‖∇f(x)‖ per point (``inf`` where evaluation failed)."""

    valid: NDArray[np.bool_]
    """norms < tolerance."""

    n_valid: int
    n_invalid: int
    tolerance: float

    mean_norm: float
    """Mean over finite norms (``inf`` if there are none)."""

    max_norm: float
    min_norm: float

    @property
    def all_valid(self) -> bool:
        return self.n_invalid == 0


def compute_gradient_norms(
    objective: Objective,
    points: ArrayLike,
    method: GradientMethod | str = GradientMethod.EXACT,
) -> NDArray[np.float64]:
    """Euclidean gradient norm at each point.

    Points with a ``nan`` coordinate, and points where differentiation
    fails or yields a non-finite gradient, get ``inf``.
    """
    batch = as_point_array(points)
    oracle = create_oracle(objective, method)

    norms = np.full(batch.shape[0], np.inf)
    for i, point in enumerate(batch):
        if np.any(np.isnan(point)):
            continue
        norm = float(np.linalg.norm(oracle.gradient(point)))
        if np.isfinite(norm):
            norms[i] = norm
    return norms


def validate_critical_points(
    objective: Objective,
    points: ArrayLike,
    tolerance: float = 1e-6,
    method: GradientMethod | str = GradientMethod.EXACT,
) -> GradientValidationResult:
    """Check that each point has a gradient norm below ``tolerance``.

    Args:
        objective: Scalar objective f(x).
        points: Points to validate, shape (m, n).
        tolerance: Maximum gradient norm of a valid critical point.
        method: 'exact' or 'numerical' derivatives.

    Returns:
        GradientValidationResult

    Example:
        >>> result = validate_critical_points(
        ...     lambda x: (x[0] - 1.0) ** 2 + (x[1] - 2.0) ** 2,
        ...     [[1.0, 2.0], [0.5, 1.0]],
        ... )
        >>> result.n_valid, result.n_invalid
        (1, 1)
    """
    if not tolerance > 0:
        msg = f"tolerance must be positive, got {tolerance}"
        raise ValueError(msg)

    norms = compute_gradient_norms(objective, points, method)
    valid = norms < tolerance
    n_valid = int(np.count_nonzero(valid))

    finite = norms[np.isfinite(norms)]
    if finite.size:
        mean_norm, max_norm, min_norm = (
            float(finite.mean()),
            float(finite.max()),
            float(finite.min()),
        )
    else:
        mean_norm = max_norm = min_norm = float("inf")

    norms.flags.writeable = False
    valid.flags.writeable = False

    return GradientValidationResult(
        norms=norms,
        valid=valid,
        n_valid=n_valid,
        n_invalid=int(norms.size) - n_valid,
        tolerance=tolerance,
        mean_norm=mean_norm,
        max_norm=max_norm,
        min_norm=min_norm,
    )


__all__ = [
    "GradientValidationResult",
    "compute_gradient_norms",
    "validate_critical_points",
]
