"""Numerical algorithms module.

This module contains implementations of:
- Gradient and Hessian oracles (JAX autodiff or finite differences)
- Hessian-based critical point classification
- Damped Newton refinement of approximate critical points
- Reference set construction (refine, deduplicate, classify)
- Multi-tolerance capture analysis and the cross-level verdict
- Gradient-norm validation and benchmark objectives
"""

from critpoint_lab.algorithms.capture import (
    DEFAULT_TOLERANCE_FRACTIONS,
    CaptureResult,
    MissedPoint,
    compute_capture_analysis,
    missed_critical_points,
    nearest_neighbors,
)
from critpoint_lab.algorithms.classification import (
    classify_eigenvalues,
    classify_hessian,
    count_classifications,
    hessian_eigenvalues,
)
from critpoint_lab.algorithms.gradients import (
    ExactGradientOracle,
    GradientOracle,
    NumericalGradientOracle,
    Objective,
    create_oracle,
)
from critpoint_lab.algorithms.newton import (
    NewtonRefiner,
    RefinementOutcome,
    refine_to_critical_point,
    refine_to_critical_points,
    regularized_newton_step,
)
from critpoint_lab.algorithms.objectives import (
    BenchmarkObjective,
    candidate_grid,
    get_objective,
    list_objectives,
)
from critpoint_lab.algorithms.reference_set import (
    ReferenceSet,
    ReferenceSetBuilder,
    build_known_critical_points,
    build_known_from_product,
    deduplicate_outcomes,
)
from critpoint_lab.algorithms.validation import (
    GradientValidationResult,
    compute_gradient_norms,
    validate_critical_points,
)
from critpoint_lab.algorithms.verdict import (
    DEFAULT_REFERENCE_FRACTION,
    CaptureVerdict,
    TypeBreakdown,
    VerdictLabel,
    capture_rate_table,
    classify_rate,
    compute_capture_verdict,
)

__all__ = [
    # Capture analysis
    "DEFAULT_TOLERANCE_FRACTIONS",
    "CaptureResult",
    "MissedPoint",
    "compute_capture_analysis",
    "missed_critical_points",
    "nearest_neighbors",
    # Classification
    "classify_eigenvalues",
    "classify_hessian",
    "count_classifications",
    "hessian_eigenvalues",
    # Gradient oracles
    "ExactGradientOracle",
    "GradientOracle",
    "NumericalGradientOracle",
    "Objective",
    "create_oracle",
    # Newton refinement
    "NewtonRefiner",
    "RefinementOutcome",
    "refine_to_critical_point",
    "refine_to_critical_points",
    "regularized_newton_step",
    # Benchmarks
    "BenchmarkObjective",
    "candidate_grid",
    "get_objective",
    "list_objectives",
    # Reference sets
    "ReferenceSet",
    "ReferenceSetBuilder",
    "build_known_critical_points",
    "build_known_from_product",
    "deduplicate_outcomes",
    # Gradient validation
    "GradientValidationResult",
    "compute_gradient_norms",
    "validate_critical_points",
    # Verdict
    "DEFAULT_REFERENCE_FRACTION",
    "CaptureVerdict",
    "TypeBreakdown",
    "VerdictLabel",
    "capture_rate_table",
    "classify_rate",
    "compute_capture_verdict",
]
