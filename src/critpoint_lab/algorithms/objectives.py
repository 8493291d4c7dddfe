"""
Benchmark objectives with known critical point structure.

Every function is written with ``jax.numpy`` so it works with both the
exact (JAX) and the numerical (finite-difference) gradient oracles. Each
benchmark carries a default search domain.

Critical points on the default domains:
    quadratic       1 minimum at the origin
    saddle          1 saddle at the origin
    double_well     2 minima at (±1, 0), 1 saddle at the origin
    rosenbrock      1 minimum at (1, 1)
    himmelblau      4 minima, 1 maximum, 4 saddles
    deuflhard       includes a saddle at the origin (eigenvalues ±8)
    six_hump_camel  6 minima (2 global) plus saddles and maxima
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import jax.numpy as jnp
import numpy as np

from critpoint_lab.data.domain import DomainBounds, as_bounds

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


def quadratic(x: Any) -> Any:
    """f(x) = Σ x_i²."""
    return jnp.sum(jnp.asarray(x) ** 2)


def saddle(x: Any) -> Any:
    """f(x, y) = x² − y²."""
    return x[0] ** 2 - x[1] ** 2


def double_well(x: Any) -> Any:
    """f(x, y) = (x² − 1)² + y²."""
    return (x[0] ** 2 - 1.0) ** 2 + x[1] ** 2


def rosenbrock(x: Any) -> Any:
    return (1.0 - x[0]) ** 2 + 100.0 * (x[1] - x[0] ** 2) ** 2


def himmelblau(x: Any) -> Any:
    return (x[0] ** 2 + x[1] - 11.0) ** 2 + (x[0] + x[1] ** 2 - 7.0) ** 2


def deuflhard(x: Any) -> Any:
    """f(x, y) = (exp(x² + y²) − 3)² + (x + y − sin(3(x + y)))²."""
    s = x[0] + x[1]
    return (jnp.exp(x[0] ** 2 + x[1] ** 2) - 3.0) ** 2 + (s - jnp.sin(3.0 * s)) ** 2


def six_hump_camel(x: Any) -> Any:
    a, b = x[0], x[1]
    return (4.0 - 2.1 * a**2 + a**4 / 3.0) * a**2 + a * b + (-4.0 + 4.0 * b**2) * b**2


@dataclass(frozen=True, slots=True)
class BenchmarkObjective:
    """A named test function with its default search domain."""

    name: str
    function: Callable[[Any], Any]
    bounds: DomainBounds
    description: str

    @property
    def ndim(self) -> int:
        return self.bounds.ndim

    def __call__(self, x: Any) -> Any:
        return self.function(x)


def _benchmark(
    name: str,
    function: Callable[[Any], Any],
    pairs: Sequence[tuple[float, float]],
    description: str,
) -> BenchmarkObjective:
    return BenchmarkObjective(name, function, DomainBounds.from_pairs(pairs), description)


_OBJECTIVES: dict[str, BenchmarkObjective] = {
    b.name: b
    for b in (
        _benchmark("quadratic", quadratic, [(-1.0, 1.0)] * 2, "Convex bowl, single minimum"),
        _benchmark("saddle", saddle, [(-1.0, 1.0)] * 2, "Hyperbolic paraboloid, single saddle"),
        _benchmark(
            "double_well", double_well, [(-2.0, 2.0)] * 2, "Two minima separated by a saddle"
        ),
        _benchmark(
            "rosenbrock", rosenbrock, [(-2.0, 2.0), (-1.0, 3.0)], "Curved valley, single minimum"
        ),
        _benchmark(
            "himmelblau", himmelblau, [(-5.0, 5.0)] * 2, "Four minima, one maximum, four saddles"
        ),
        _benchmark(
            "deuflhard", deuflhard, [(-1.2, 1.2)] * 2, "Nonlinear system residual, mixed types"
        ),
        _benchmark(
            "six_hump_camel",
            six_hump_camel,
            [(-3.0, 3.0), (-2.0, 2.0)],
            "Six minima with many saddles",
        ),
    )
}


def get_objective(name: str) -> BenchmarkObjective:
    """
    Look up a benchmark objective by name.

    Args:
        name: Benchmark name (case-insensitive, '-' and '_' interchangeable)

    Returns:
        BenchmarkObjective

    Raises:
        ValueError: If the name is unknown
    """
    normalized = name.strip().lower().replace("-", "_")
    if normalized not in _OBJECTIVES:
        raise ValueError(f"Unknown objective: '{name}'. Valid: {list_objectives()}")
    return _OBJECTIVES[normalized]


def list_objectives() -> list[str]:
    """List available benchmark names."""
    return list(_OBJECTIVES)


def candidate_grid(
    bounds: DomainBounds | Sequence[Sequence[float]],
    points_per_dim: int,
) -> NDArray[np.float64]:
    """
    Uniform tensor grid of start points over a box.

    Points are ordered lexicographically with the last coordinate varying
    fastest, so the output is deterministic.

    Args:
        bounds: Box to cover.
        points_per_dim: Grid points per dimension (endpoints included).

    Returns:
        Array of shape (points_per_dim ** n, n).

    Example:
        >>> candidate_grid([(0.0, 1.0), (0.0, 1.0)], 2).tolist()
        [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
    """
    if points_per_dim < 2:
        msg = f"points_per_dim must be at least 2, got {points_per_dim}"
        raise ValueError(msg)

    domain = as_bounds(bounds)
    if domain is None:
        msg = "bounds are required"
        raise ValueError(msg)

    axes = [np.linspace(lo, hi, points_per_dim) for lo, hi in domain.pairs()]
    return np.array(list(itertools.product(*axes)), dtype=float)


__all__ = [
    "BenchmarkObjective",
    "candidate_grid",
    "deuflhard",
    "double_well",
    "get_objective",
    "himmelblau",
    "list_objectives",
    "quadratic",
    "rosenbrock",
    "saddle",
    "six_hump_camel",
]
