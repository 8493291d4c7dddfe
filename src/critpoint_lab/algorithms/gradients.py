"""Gradient and Hessian oracles for scalar objectives.

This module provides two interchangeable strategies for differentiating an
objective ``f: R^n -> R``:

- ExactGradientOracle: automatic differentiation with JAX (float64)
- NumericalGradientOracle: central finite differences, for black-box
  objectives that JAX cannot trace (e.g. an ODE solve inside ``f``)

The strategy is chosen once per refinement run via :func:`create_oracle`.

Failure isolation: an objective that raises or returns a non-finite value
never aborts the caller. The affected derivatives come back as ``inf``/``nan``
so the Newton line search treats the trial point as "did not improve". The
one exception is an objective JAX cannot trace: that fails the same way at
every point, so ExactGradientOracle raises ValueError right away.

References:
- Nocedal & Wright: "Numerical Optimization" (2nd ed.), §8.1
- Bradbury et al.: "JAX: composable transformations of Python+NumPy programs"
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import jax
import jax.numpy as jnp
import numpy as np

from critpoint_lab.data.refinement_config import GradientMethod, parse_gradient_method

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

Objective = Callable[[Any], Any]
"""Scalar objective: point -> float."""

_EPS = float(np.finfo(np.float64).eps)

_TRACING_ERRORS = (
    jax.errors.ConcretizationTypeError,
    jax.errors.TracerArrayConversionError,
    jax.errors.TracerBoolConversionError,
    jax.errors.TracerIntegerConversionError,
)


class GradientOracle(ABC):
    """Abstract base class for derivative strategies.

    All oracle implementations must:
    1. Implement gradient() returning a length-n vector
    2. Implement hessian() returning a symmetric n×n matrix
    3. Return non-finite entries instead of raising when ``f`` fails

    ``evaluations`` counts objective calls made through :meth:`value`. It is
    a diagnostic and is not synchronized across threads.
    """

    __slots__ = ("_objective", "evaluations")

    def __init__(self, objective: Objective) -> None:
        self._objective = objective
        self.evaluations = 0

    @property
    @abstractmethod
    def method(self) -> GradientMethod:
        """Derivative strategy implemented by this oracle."""

    @abstractmethod
    def gradient(self, x: ArrayLike) -> NDArray[np.float64]:
        """Gradient ∇f(x)."""

    @abstractmethod
    def hessian(self, x: ArrayLike) -> NDArray[np.float64]:
        """Symmetric Hessian ∇²f(x)."""

    def value(self, x: ArrayLike) -> float:
        """Objective value f(x); ``inf`` if the objective raises."""
        point = np.asarray(x, dtype=float)
        self.evaluations += 1
        try:
            return float(self._objective(point))
        except Exception as exc:  # objective is a black box
            _log_failure("objective", point, exc)
            return float("inf")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _untraceable(exc: Exception) -> ValueError:
    msg = (
        f"objective cannot be traced by JAX ({type(exc).__name__}); write it with "
        "jax.numpy or use gradient_method='numerical'"
    )
    return ValueError(msg)


def _log_failure(what: str, point: NDArray[np.float64], exc: Exception) -> None:
    logger.warning(
        "%s evaluation failed at %s: %s: %s",
        what,
        np.array2string(point, precision=6),
        type(exc).__name__,
        exc,
    )


class ExactGradientOracle(GradientOracle):
    """Automatic differentiation with JAX.

    The objective must be traceable by JAX: written with ``jax.numpy`` or
    plain arithmetic and indexing. Derivatives are evaluated in float64. An
    objective that cannot be traced (e.g. one calling ``float`` or plain NumPy
    on its argument) raises ValueError instead of yielding ``inf``.

    Example:
        >>> oracle = ExactGradientOracle(lambda x: x[0] ** 2 + 3 * x[1] ** 2)
        >>> oracle.gradient([1.0, 1.0])
        array([2., 6.])
    """

    __slots__ = ("_grad", "_hess")

    def __init__(self, objective: Objective) -> None:
        super().__init__(objective)
        self._grad = jax.grad(self._scalar)
        self._hess = jax.hessian(self._scalar)

    def _scalar(self, x: jax.Array) -> jax.Array:
        return jnp.reshape(self._objective(x), ())

    @property
    def method(self) -> GradientMethod:
        return GradientMethod.EXACT

    def gradient(self, x: ArrayLike) -> NDArray[np.float64]:
        point = np.asarray(x, dtype=float)
        try:
            grad = self._grad(jnp.asarray(point, dtype=jnp.float64))
        except _TRACING_ERRORS as exc:
            raise _untraceable(exc) from exc
        except Exception as exc:
            _log_failure("gradient", point, exc)
            return np.full(point.size, np.inf)
        return np.array(grad, dtype=float)

    def hessian(self, x: ArrayLike) -> NDArray[np.float64]:
        point = np.asarray(x, dtype=float)
        try:
            hess = np.array(self._hess(jnp.asarray(point, dtype=jnp.float64)), dtype=float)
        except _TRACING_ERRORS as exc:
            raise _untraceable(exc) from exc
        except Exception as exc:
            _log_failure("hessian", point, exc)
            return np.full((point.size, point.size), np.inf)
        return 0.5 * (hess + hess.T)


class NumericalGradientOracle(GradientOracle):
    """Central finite differences for black-box objectives.

    Step sizes scale with the coordinate magnitude:
        gradient: h_i = ε^(1/3) · max(1, |x_i|)   (2n evaluations)
        Hessian:  h_i = ε^(1/4) · max(1, |x_i|)   (O(n²) evaluations)

    Args:
        objective: Scalar objective.
        gradient_step: Relative step for the gradient (default ε^(1/3)).
        hessian_step: Relative step for the Hessian (default ε^(1/4)).
    """

    __slots__ = ("_gradient_step", "_hessian_step")

    def __init__(
        self,
        objective: Objective,
        *,
        gradient_step: float | None = None,
        hessian_step: float | None = None,
    ) -> None:
        super().__init__(objective)
        self._gradient_step = gradient_step if gradient_step is not None else _EPS ** (1 / 3)
        self._hessian_step = hessian_step if hessian_step is not None else _EPS ** (1 / 4)

        if self._gradient_step <= 0 or self._hessian_step <= 0:
            msg = "finite-difference steps must be positive"
            raise ValueError(msg)

    @property
    def method(self) -> GradientMethod:
        return GradientMethod.NUMERICAL

    def gradient(self, x: ArrayLike) -> NDArray[np.float64]:
        point = np.asarray(x, dtype=float)
        steps = self._gradient_step * np.maximum(1.0, np.abs(point))

        grad = np.empty(point.size)
        for i, h in enumerate(steps):
            forward = point.copy()
            forward[i] += h
            backward = point.copy()
            backward[i] -= h
            grad[i] = (self.value(forward) - self.value(backward)) / (2.0 * h)
        return grad

    def hessian(self, x: ArrayLike) -> NDArray[np.float64]:
        point = np.asarray(x, dtype=float)
        n = point.size
        steps = self._hessian_step * np.maximum(1.0, np.abs(point))
        f0 = self.value(point)

        def shifted(i: int, si: float, j: int | None = None, sj: float = 0.0) -> float:
            trial = point.copy()
            trial[i] += si * steps[i]
            if j is not None:
                trial[j] += sj * steps[j]
            return self.value(trial)

        hess = np.empty((n, n))
        for i in range(n):
            hess[i, i] = (shifted(i, 1.0) - 2.0 * f0 + shifted(i, -1.0)) / steps[i] ** 2
            for j in range(i + 1, n):
                mixed = (
                    shifted(i, 1.0, j, 1.0)
                    - shifted(i, 1.0, j, -1.0)
                    - shifted(i, -1.0, j, 1.0)
                    + shifted(i, -1.0, j, -1.0)
                ) / (4.0 * steps[i] * steps[j])
                hess[i, j] = mixed
                hess[j, i] = mixed
        return hess

    def __repr__(self) -> str:
        return (
            f"NumericalGradientOracle(gradient_step={self._gradient_step:.2e}, "
            f"hessian_step={self._hessian_step:.2e})"
        )


def create_oracle(
    objective: Objective,
    method: GradientMethod | str = GradientMethod.EXACT,
    **kwargs: Any,
) -> GradientOracle:
    """Factory function to create gradient oracles.

    Args:
        objective: Scalar objective f(x).
        method: 'exact' (JAX) or 'numerical' (finite differences).
        **kwargs: Oracle-specific parameters.

    Returns:
        GradientOracle instance.

    Example:
        >>> oracle = create_oracle(lambda x: x[0] ** 2, "numerical")
        >>> oracle.method
        <GradientMethod.NUMERICAL: 'numerical'>
    """
    oracles: dict[GradientMethod, type[GradientOracle]] = {
        GradientMethod.EXACT: ExactGradientOracle,
        GradientMethod.NUMERICAL: NumericalGradientOracle,
    }
    return oracles[parse_gradient_method(method)](objective, **kwargs)


__all__ = [
    "ExactGradientOracle",
    "GradientOracle",
    "NumericalGradientOracle",
    "Objective",
    "create_oracle",
]
