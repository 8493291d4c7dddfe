"""Data module for the domain model and refinement configuration."""

from critpoint_lab.data.domain import (
    CAPTURE_TYPES,
    CriticalPointType,
    DomainBounds,
    KnownCriticalPoints,
    as_bounds,
    as_point_array,
    parse_cp_type,
)
from critpoint_lab.data.refinement_config import (
    GradientMethod,
    RefinementConfig,
    get_preset,
    list_presets,
    parse_gradient_method,
    resolve_config,
)

__all__ = [
    "CAPTURE_TYPES",
    "CriticalPointType",
    "DomainBounds",
    "GradientMethod",
    "KnownCriticalPoints",
    "RefinementConfig",
    "as_bounds",
    "as_point_array",
    "get_preset",
    "list_presets",
    "parse_cp_type",
    "parse_gradient_method",
    "resolve_config",
]
