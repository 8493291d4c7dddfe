"""Reference sets of known critical points built by refinement.

When the critical points of an objective are not known analytically, a
reference set is built from raw candidates (e.g. critical points of a
polynomial approximant):

1. Refine every candidate with Newton's method on ∇f = 0
2. Keep converged outcomes only
3. Sort by gradient norm (most accurate first)
4. Greedy deduplication: accept a point only if it is farther than
   ``dedup_fraction · domain_diameter`` from every accepted point
5. Classify survivors (degenerate folded into saddle)

For separable objectives f(x) = g(x₁) + … + g(x_k) the reference set can
instead be assembled from the critical points of the component g, see
:func:`build_known_from_product`.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from critpoint_lab.algorithms.classification import classify_hessian
from critpoint_lab.algorithms.gradients import Objective, create_oracle
from critpoint_lab.algorithms.newton import NewtonRefiner, RefinementOutcome
from critpoint_lab.data.domain import (
    CriticalPointType,
    DomainBounds,
    KnownCriticalPoints,
    as_bounds,
    as_point_array,
)
from critpoint_lab.data.refinement_config import (
    GradientMethod,
    RefinementConfig,
    resolve_config,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReferenceSet:
    """Reference set together with the statistics of how it was built."""

    known: KnownCriticalPoints
    """Deduplicated, classified critical points."""

    outcomes: tuple[RefinementOutcome, ...]
    """Refinement outcome of every candidate, in input order."""

    unique_outcomes: tuple[RefinementOutcome, ...]
    """Accepted outcomes, best (lowest gradient norm) first."""

    n_candidates: int
    """Number of raw candidates."""

    n_converged: int
    """Candidates whose refinement converged."""

    n_duplicates: int
    """Converged outcomes discarded as duplicates."""

    @property
    def n_unique(self) -> int:
        return len(self.unique_outcomes)

    @property
    def convergence_rate(self) -> float:
        """Fraction of candidates that converged."""
        return self.n_converged / self.n_candidates


def deduplicate_outcomes(
    outcomes: Sequence[RefinementOutcome],
    min_distance: float,
) -> list[int]:
    """Indices of outcomes kept by greedy best-first deduplication.

    Outcomes are visited in ascending gradient-norm order (stable, so ties
    keep input order). An outcome is kept if its distance to every kept
    outcome is strictly greater than ``min_distance``.

    Args:
        outcomes: Refinement outcomes (typically converged ones).
        min_distance: Absolute distance threshold.

    Returns:
        Indices into ``outcomes``, best first.
    """
    order = sorted(range(len(outcomes)), key=lambda i: outcomes[i].gradient_norm)

    accepted: list[int] = []
    for i in order:
        point = outcomes[i].point
        if all(
            np.linalg.norm(point - outcomes[j].point) > min_distance for j in accepted
        ):
            accepted.append(i)
    return accepted


class ReferenceSetBuilder:
    """Builds a KnownCriticalPoints set by refining raw candidates.

    Example:
        >>> builder = ReferenceSetBuilder(
        ...     lambda x: (x[0] ** 2 - 1) ** 2 + x[1] ** 2,
        ...     [(-2.0, 2.0), (-2.0, 2.0)],
        ... )
        >>> ref = builder.build([[0.8, 0.1], [-0.9, 0.1], [0.05, 0.05]])
        >>> len(ref.known)
        3
    """

    __slots__ = ("_bounds", "_config", "_refiner")

    def __init__(
        self,
        objective: Objective,
        bounds: DomainBounds | Sequence[Sequence[float]],
        *,
        config: RefinementConfig | None = None,
    ) -> None:
        domain = as_bounds(bounds)
        if domain is None:
            msg = "ReferenceSetBuilder requires domain bounds"
            raise ValueError(msg)

        self._bounds = domain
        self._config = config if config is not None else RefinementConfig()
        self._refiner = NewtonRefiner(objective, config=self._config, bounds=domain)

    @property
    def bounds(self) -> DomainBounds:
        return self._bounds

    @property
    def config(self) -> RefinementConfig:
        return self._config

    def build(self, candidates: ArrayLike) -> ReferenceSet:
        """Refine, filter, deduplicate and classify candidates.

        Args:
            candidates: Raw candidate points, each of the domain dimension.

        Returns:
            ReferenceSet

        Raises:
            ValueError: If candidates are empty, have the wrong dimension,
                or none of them converged.
        """
        starts = as_point_array(candidates)
        if starts.shape[0] == 0:
            msg = "candidate batch is empty"
            raise ValueError(msg)
        if starts.shape[1] != self._bounds.ndim:
            msg = (
                f"candidates have dimension {starts.shape[1]}, "
                f"expected {self._bounds.ndim} (from bounds)"
            )
            raise ValueError(msg)

        outcomes = self._refiner.refine_many(starts)
        converged = [o for o in outcomes if o.converged]

        logger.info(
            "Refined %d candidates: %d converged (%.1f%%)",
            len(outcomes),
            len(converged),
            100.0 * len(converged) / len(outcomes),
        )

        if not converged:
            best = min(o.gradient_norm for o in outcomes)
            msg = (
                f"none of the {len(outcomes)} candidates converged to tol="
                f"{self._config.tol:g} (best gradient norm {best:.3e}); "
                "the batch cannot form a reference set"
            )
            raise ValueError(msg)

        min_distance = self._config.dedup_fraction * self._bounds.diameter
        kept = deduplicate_outcomes(converged, min_distance)
        unique = tuple(converged[i] for i in kept)

        logger.info(
            "Deduplication at %.4g (%.2f%% of diameter): %d unique, %d duplicates",
            min_distance,
            100.0 * self._config.dedup_fraction,
            len(unique),
            len(converged) - len(unique),
        )

        known = KnownCriticalPoints.from_bounds(
            [o.point for o in unique],
            [o.objective_value for o in unique],
            [o.cp_type.capture_type for o in unique],
            self._bounds,
        )

        return ReferenceSet(
            known=known,
            outcomes=tuple(outcomes),
            unique_outcomes=unique,
            n_candidates=len(outcomes),
            n_converged=len(converged),
            n_duplicates=len(converged) - len(unique),
        )


def build_known_critical_points(
    objective: Objective,
    candidates: ArrayLike,
    bounds: DomainBounds | Sequence[Sequence[float]],
    *,
    config: RefinementConfig | None = None,
    **params: Any,
) -> KnownCriticalPoints:
    """Build known critical points from raw candidates.

    Args:
        objective: Scalar objective f(x).
        candidates: Raw candidate points.
        bounds: Search domain.
        config: Base refinement configuration.
        **params: RefinementConfig overrides (e.g. dedup_fraction=0.02).

    Returns:
        KnownCriticalPoints
    """
    builder = ReferenceSetBuilder(
        objective, bounds, config=resolve_config(config, **params)
    )
    return builder.build(candidates).known


def _combine_types(types: Iterable[CriticalPointType]) -> CriticalPointType:
    capture = [t.capture_type for t in types]
    if all(t is CriticalPointType.MINIMUM for t in capture):
        return CriticalPointType.MINIMUM
    if all(t is CriticalPointType.MAXIMUM for t in capture):
        return CriticalPointType.MAXIMUM
    return CriticalPointType.SADDLE


def build_known_from_product(
    component_objective: Objective,
    component_points: ArrayLike,
    bounds: DomainBounds | Sequence[Sequence[float]],
    *,
    n_blocks: int = 2,
    hessian_tol: float = 1e-6,
    gradient_method: GradientMethod | str = GradientMethod.EXACT,
) -> KnownCriticalPoints:
    """Known critical points of a separable sum f(x) = g(x₁) + … + g(x_k).

    Every combination of component critical points is a critical point of
    f. Values add; the combined type is a minimum if all components are
    minima, a maximum if all are maxima, otherwise a saddle.

    Args:
        component_objective: The component function g.
        component_points: Known critical points of g.
        bounds: Domain of f (dimension n_blocks × dim(g)).
        n_blocks: Number of copies of g in the sum.
        hessian_tol: Eigenvalue tolerance for classifying components.
        gradient_method: How component Hessians are computed.

    Returns:
        KnownCriticalPoints with N^k points.

    Example:
        >>> known = build_known_from_product(
        ...     lambda x: x[0] ** 2 - x[1] ** 2,
        ...     [[0.0, 0.0]],
        ...     [(-1.0, 1.0)] * 4,
        ... )
        >>> known.types
        (<CriticalPointType.SADDLE: 'saddle'>,)
    """
    if n_blocks < 1:
        msg = f"n_blocks must be at least 1, got {n_blocks}"
        raise ValueError(msg)

    components = as_point_array(component_points)
    if components.shape[0] == 0:
        msg = "component_points must be non-empty"
        raise ValueError(msg)

    domain = as_bounds(bounds)
    if domain is None:
        msg = "bounds are required"
        raise ValueError(msg)

    expected = n_blocks * components.shape[1]
    if domain.ndim != expected:
        msg = (
            f"bounds have dimension {domain.ndim}, expected {expected} "
            f"({n_blocks} blocks of dimension {components.shape[1]})"
        )
        raise ValueError(msg)

    oracle = create_oracle(component_objective, gradient_method)
    component_values = [oracle.value(p) for p in components]
    component_types = [
        classify_hessian(oracle.hessian(p), hessian_tol)[0] for p in components
    ]

    points, values, types = [], [], []
    for combo in itertools.product(range(components.shape[0]), repeat=n_blocks):
        points.append(np.concatenate([components[i] for i in combo]))
        values.append(sum(component_values[i] for i in combo))
        types.append(_combine_types(component_types[i] for i in combo))

    return KnownCriticalPoints.from_bounds(points, values, types, domain)


__all__ = [
    "ReferenceSet",
    "ReferenceSetBuilder",
    "build_known_critical_points",
    "build_known_from_product",
    "deduplicate_outcomes",
]
