"""Critical point classification from Hessian eigenvalues.

Categories:
- Minimum: all eigenvalues > tol (positive definite Hessian)
- Maximum: all eigenvalues < -tol (negative definite Hessian)
- Saddle: mixed signs (indefinite Hessian)
- Degenerate: any |λ| ≤ tol, or a non-finite eigenvalue
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import numpy as np

from critpoint_lab.data.domain import CriticalPointType

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


def classify_eigenvalues(eigenvalues: ArrayLike, tol: float = 1e-6) -> CriticalPointType:
    """Classify a critical point from its Hessian eigenvalues.

    Args:
        eigenvalues: Eigenvalues of the Hessian at the point.
        tol: Eigenvalues with |λ| ≤ tol count as zero (must be > 0).

    Returns:
        CriticalPointType

    Raises:
        ValueError: If tol is not positive or no eigenvalues are given.

    Example:
        >>> classify_eigenvalues([2.1, -1.8, 0.5])
        <CriticalPointType.SADDLE: 'saddle'>
    """
    if not tol > 0:
        msg = f"tol must be strictly positive, got {tol}"
        raise ValueError(msg)

    lam = np.asarray(eigenvalues, dtype=float).ravel()
    if lam.size == 0:
        msg = "cannot classify an empty eigenvalue vector"
        raise ValueError(msg)

    if not np.all(np.isfinite(lam)):
        return CriticalPointType.DEGENERATE

    n = lam.size
    n_pos = int(np.count_nonzero(lam > tol))
    n_neg = int(np.count_nonzero(lam < -tol))
    n_zero = int(np.count_nonzero(np.abs(lam) <= tol))

    if n_zero > 0:
        return CriticalPointType.DEGENERATE
    if n_pos == n:
        return CriticalPointType.MINIMUM
    if n_neg == n:
        return CriticalPointType.MAXIMUM
    return CriticalPointType.SADDLE


def hessian_eigenvalues(hessian: ArrayLike) -> NDArray[np.float64]:
    """Ascending eigenvalues of the symmetrized Hessian (NaN if non-finite)."""
    H = np.asarray(hessian, dtype=float)
    if H.ndim != 2 or H.shape[0] != H.shape[1]:
        msg = f"Hessian must be square, got shape {H.shape}"
        raise ValueError(msg)

    if not np.all(np.isfinite(H)):
        return np.full(H.shape[0], np.nan)
    return np.linalg.eigvalsh(0.5 * (H + H.T))


def classify_hessian(
    hessian: ArrayLike, tol: float = 1e-6
) -> tuple[CriticalPointType, NDArray[np.float64]]:
    """Classify from a Hessian matrix; returns (type, eigenvalues)."""
    eigenvalues = hessian_eigenvalues(hessian)
    return classify_eigenvalues(eigenvalues, tol), eigenvalues


def count_classifications(
    types: Iterable[CriticalPointType],
) -> dict[CriticalPointType, int]:
    """Count each classification (every type present as a key)."""
    counts = dict.fromkeys(CriticalPointType, 0)
    for t in types:
        counts[t] += 1
    return counts


__all__ = [
    "classify_eigenvalues",
    "classify_hessian",
    "count_classifications",
    "hessian_eigenvalues",
]
