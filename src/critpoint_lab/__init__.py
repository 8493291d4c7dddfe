"""Critpoint Lab: Refining critical points and measuring how well approximations capture them."""

import logging

import jax

# Newton refinement to tol=1e-8 needs float64 derivatives.
jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"

from critpoint_lab.data.domain import (  # noqa: E402
    CriticalPointType,
    DomainBounds,
    KnownCriticalPoints,
)
from critpoint_lab.data.refinement_config import (  # noqa: E402
    GradientMethod,
    RefinementConfig,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "CriticalPointType",
    "DomainBounds",
    "GradientMethod",
    "KnownCriticalPoints",
    "RefinementConfig",
]
