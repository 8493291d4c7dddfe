"""Newton refinement of approximate critical points.

Refines a starting point to a stationary point of the objective by solving
∇f(x) = 0 with Newton's method. Unlike minimization-only solvers this finds
critical points of every type (minima, maxima and saddles), which is what a
type-complete reference set needs.

Safeguards:
- Eigen-regularized step: directions whose curvature is numerically zero are
  dropped from the step instead of being inverted
- Damped line search on ‖∇f‖: the step length is halved while the gradient
  norm gets worse, down to ``min_damping``, after which the step is taken
  anyway
- Box clamping after every proposed step when bounds are given

References:
- Nocedal & Wright: "Numerical Optimization" (2nd ed.), §3.4 and §11.1
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from critpoint_lab.algorithms.classification import classify_hessian
from critpoint_lab.algorithms.gradients import GradientOracle, Objective, create_oracle
from critpoint_lab.data.domain import CriticalPointType, DomainBounds, as_bounds
from critpoint_lab.data.refinement_config import RefinementConfig, resolve_config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

# Relative and absolute floors below which an eigenvalue is treated as zero
# when forming the Newton step.
STEP_REGULARIZATION_RELATIVE = 1e-10
STEP_REGULARIZATION_ABSOLUTE = 1e-12


@dataclass(frozen=True, slots=True)
class RefinementOutcome:
    """Result of refining one starting point."""

    point: NDArray[np.float64]
    """Final iterate."""

    gradient_norm: float
    """‖∇f‖ at the final iterate."""

    objective_value: float
    """f at the final iterate."""

    converged: bool
    """True if gradient_norm < tol at loop exit."""

    iterations: int
    """Completed Newton steps."""

    cp_type: CriticalPointType
    """Classification from the final Hessian."""

    hessian_eigenvalues: NDArray[np.float64]
    """Ascending Hessian eigenvalues at the final iterate."""

    initial_gradient_norm: float
    """‖∇f‖ at the starting point."""

    start_point: NDArray[np.float64]
    """Starting point (after clamping into the bounds)."""

    @property
    def displacement(self) -> float:
        """Distance travelled from the starting point."""
        return float(np.linalg.norm(self.point - self.start_point))


def regularized_newton_step(
    gradient: NDArray[np.float64],
    hessian: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Newton step -H⁺g restricted to well-curved eigendirections.

    Eigenvalues with |λ| ≤ max(1e-12, 1e-10 · max|λ|) are skipped, so flat
    directions contribute nothing to the step.

    Args:
        gradient: ∇f(x).
        hessian: ∇²f(x) (symmetrized here).

    Returns:
        Step vector of the same length as the gradient.
    """
    eigenvalues, V = np.linalg.eigh(0.5 * (hessian + hessian.T))
    threshold = max(
        STEP_REGULARIZATION_ABSOLUTE,
        STEP_REGULARIZATION_RELATIVE * float(np.max(np.abs(eigenvalues))),
    )
    keep = np.abs(eigenvalues) > threshold
    coefficients = V.T @ gradient
    return -(V[:, keep] @ (coefficients[keep] / eigenvalues[keep]))


class NewtonRefiner:
    """Damped, eigen-regularized Newton iteration on ∇f = 0.

    Example:
        >>> refiner = NewtonRefiner(lambda x: x[0] ** 2 - x[1] ** 2)
        >>> outcome = refiner.refine([0.3, 0.4])
        >>> outcome.converged, outcome.cp_type
        (True, <CriticalPointType.SADDLE: 'saddle'>)
    """

    __slots__ = ("_objective", "_config", "_bounds", "_oracle")

    def __init__(
        self,
        objective: Objective,
        *,
        config: RefinementConfig | None = None,
        bounds: DomainBounds | Sequence[Sequence[float]] | None = None,
        oracle: GradientOracle | None = None,
    ) -> None:
        """Initialize the refiner.

        Args:
            objective: Scalar objective f(x).
            config: Refinement parameters (default RefinementConfig()).
            bounds: Optional box; iterates are clamped into it.
            oracle: Pre-built oracle (default: from config.gradient_method).
        """
        self._objective = objective
        self._config = config if config is not None else RefinementConfig()
        self._bounds = as_bounds(bounds)
        self._oracle = (
            oracle
            if oracle is not None
            else create_oracle(objective, self._config.gradient_method)
        )

    @property
    def config(self) -> RefinementConfig:
        return self._config

    @property
    def bounds(self) -> DomainBounds | None:
        return self._bounds

    @property
    def oracle(self) -> GradientOracle:
        return self._oracle

    def _prepare(self, x0: ArrayLike) -> NDArray[np.float64]:
        if self._bounds is None:
            point = np.array(x0, dtype=float)
            if point.ndim != 1 or point.size == 0:
                msg = f"starting point must be a non-empty vector, got shape {point.shape}"
                raise ValueError(msg)
            return point
        point = self._bounds.check_point(x0, name="starting point")
        return self._bounds.clamp(point)

    def _trial_step(
        self, x: NDArray[np.float64], step: NDArray[np.float64], alpha: float
    ) -> tuple[NDArray[np.float64], NDArray[np.float64], float]:
        """Propose x + α·step (clamped) and evaluate its gradient."""
        candidate = x + alpha * step
        if self._bounds is not None:
            candidate = self._bounds.clamp(candidate)
        grad = self._oracle.gradient(candidate)
        return candidate, grad, float(np.linalg.norm(grad))

    def refine(self, x0: ArrayLike) -> RefinementOutcome:
        """Refine one starting point to a critical point.

        Algorithm (per iteration, until ‖∇f‖ < tol or max_iterations):
            1. g = ∇f(x), H = ∇²f(x)
            2. step = regularized_newton_step(g, H)
            3. α = damping; halve α while ‖∇f(x + α·step)‖ > ‖g‖ and
               α > min_damping; take the last proposal
            4. Clamp to bounds after every proposal

        Non-convergence is not an error: the outcome is returned with
        ``converged=False``. A non-finite gradient or Hessian ends the loop.

        Args:
            x0: Starting point.

        Returns:
            RefinementOutcome
        """
        config = self._config
        x = self._prepare(x0)
        start = x.copy()

        grad = self._oracle.gradient(x)
        grad_norm = float(np.linalg.norm(grad))
        initial_grad_norm = grad_norm

        iterations = 0
        while not grad_norm < config.tol and iterations < config.max_iterations:
            if not np.isfinite(grad_norm):
                logger.debug("Non-finite gradient at iteration %d; stopping", iterations)
                break

            hess = self._oracle.hessian(x)
            if not np.all(np.isfinite(hess)):
                logger.debug("Non-finite Hessian at iteration %d; stopping", iterations)
                break

            step = regularized_newton_step(grad, hess)

            alpha = config.damping
            x_new, grad_new, norm_new = self._trial_step(x, step, alpha)
            # "not <=" so that nan/inf count as worse
            while not norm_new <= grad_norm and alpha > config.min_damping:
                alpha *= 0.5
                x_new, grad_new, norm_new = self._trial_step(x, step, alpha)

            x, grad, grad_norm = x_new, grad_new, norm_new
            iterations += 1

            logger.debug(
                "iter %d: |grad|=%.3e alpha=%.4g", iterations, grad_norm, alpha
            )

        converged = bool(grad_norm < config.tol)

        cp_type, eigenvalues = classify_hessian(
            self._oracle.hessian(x), config.hessian_tol
        )
        objective_value = self._oracle.value(x)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Refined %s -> %s in %d iterations (|grad| %.3e -> %.3e, %s, converged=%s)",
                np.array2string(start, precision=4),
                np.array2string(x, precision=6),
                iterations,
                initial_grad_norm,
                grad_norm,
                cp_type.value,
                converged,
            )

        for array in (x, eigenvalues, start):
            array.flags.writeable = False

        return RefinementOutcome(
            point=x,
            gradient_norm=grad_norm,
            objective_value=objective_value,
            converged=converged,
            iterations=iterations,
            cp_type=cp_type,
            hessian_eigenvalues=eigenvalues,
            initial_gradient_norm=initial_grad_norm,
            start_point=start,
        )

    def refine_many(self, points: Iterable[ArrayLike]) -> list[RefinementOutcome]:
        """Refine each point independently; output order matches input order.

        Runs on a thread pool when ``config.max_workers`` > 1.
        """
        starts = list(points)
        workers = self._config.max_workers

        if workers is None or workers <= 1 or len(starts) < 2:
            return [self.refine(p) for p in starts]

        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.refine, starts))


def refine_to_critical_point(
    objective: Objective,
    initial_point: ArrayLike,
    *,
    bounds: DomainBounds | Sequence[Sequence[float]] | None = None,
    config: RefinementConfig | None = None,
    **params: Any,
) -> RefinementOutcome:
    """Refine a single point to a critical point of ``objective``.

    Convenience wrapper around :class:`NewtonRefiner`.

    Args:
        objective: Scalar objective f(x).
        initial_point: Starting point.
        bounds: Optional box constraints (DomainBounds or (lo, hi) pairs).
        config: Base configuration.
        **params: RefinementConfig fields overriding ``config``
            (e.g. gradient_method="numerical", tol=1e-10).

    Returns:
        RefinementOutcome

    Example:
        >>> outcome = refine_to_critical_point(
        ...     lambda x: x[0] ** 2 + x[1] ** 2, [0.5, 0.3], tol=1e-10
        ... )
        >>> outcome.cp_type
        <CriticalPointType.MINIMUM: 'min'>
    """
    refiner = NewtonRefiner(
        objective, config=resolve_config(config, **params), bounds=bounds
    )
    return refiner.refine(initial_point)


def refine_to_critical_points(
    objective: Objective,
    points: Iterable[ArrayLike],
    *,
    bounds: DomainBounds | Sequence[Sequence[float]] | None = None,
    config: RefinementConfig | None = None,
    **params: Any,
) -> list[RefinementOutcome]:
    """Batch version of :func:`refine_to_critical_point` (one outcome per point)."""
    refiner = NewtonRefiner(
        objective, config=resolve_config(config, **params), bounds=bounds
    )
    return refiner.refine_many(points)


__all__ = [
    "NewtonRefiner",
    "RefinementOutcome",
    "refine_to_critical_point",
    "refine_to_critical_points",
    "regularized_newton_step",
]
