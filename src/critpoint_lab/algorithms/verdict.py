"""Capture verdict across approximation fidelity levels.

Given capture results for a sequence of fidelity levels (e.g. polynomial
degrees), pick the level with the best capture rate at a reference
tolerance, break it down per critical point type, record the trend across
levels, and label the outcome.

Label policy (tunable thresholds):
    rate ≥ 0.80         → EXCELLENT
    0.50 ≤ rate < 0.80  → GOOD
    rate < 0.50         → POOR
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from critpoint_lab.algorithms.capture import CaptureResult
from critpoint_lab.data.domain import CriticalPointType

DEFAULT_REFERENCE_FRACTION = 0.05
EXCELLENT_THRESHOLD = 0.80
GOOD_THRESHOLD = 0.50


class VerdictLabel(Enum):
    """Qualitative capture judgment."""

    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    POOR = "POOR"


@dataclass(frozen=True, slots=True)
class TypeBreakdown:
    """Capture count for one critical point type."""

    captured: int
    total: int

    @property
    def rate(self) -> float:
        return self.captured / self.total if self.total else 0.0


@dataclass(frozen=True, slots=True)
class CaptureVerdict:
    """Best capture across fidelity levels at one reference tolerance."""

    best_level: int
    """Fidelity level with the highest capture rate (first on ties)."""

    capture_rate: float
    """Capture rate at the best level."""

    n_captured: int
    """Known points captured at the best level."""

    n_known: int
    """Size of the known set."""

    tolerance_fraction: float
    """Reference tolerance as a fraction of the domain diameter."""

    tolerance_value: float
    """Reference tolerance as an absolute distance."""

    type_breakdown: Mapping[CriticalPointType, TypeBreakdown]
    """Per-type capture at the best level (read-only)."""

    trend: tuple[tuple[int, float], ...]
    """(level, capture rate) for every input level, in input order."""

    label: VerdictLabel
    """Qualitative judgment of capture_rate."""

    @property
    def passed(self) -> bool:
        """True unless the label is POOR."""
        return self.label is not VerdictLabel.POOR


def classify_rate(
    rate: float,
    excellent_threshold: float = EXCELLENT_THRESHOLD,
    good_threshold: float = GOOD_THRESHOLD,
) -> VerdictLabel:
    """Map a capture rate to a verdict label."""
    if not 0.0 <= good_threshold <= excellent_threshold <= 1.0:
        msg = (
            "thresholds must satisfy 0 <= good <= excellent <= 1, got "
            f"good={good_threshold}, excellent={excellent_threshold}"
        )
        raise ValueError(msg)

    if rate >= excellent_threshold:
        return VerdictLabel.EXCELLENT
    if rate >= good_threshold:
        return VerdictLabel.GOOD
    return VerdictLabel.POOR


def _check_consistent(level_results: Sequence[tuple[int, CaptureResult]]) -> None:
    if not level_results:
        msg = "level_results must be non-empty"
        raise ValueError(msg)

    reference = level_results[0][1].tolerance_fractions
    for i, (level, result) in enumerate(level_results):
        if result.tolerance_fractions != reference:
            msg = (
                f"Inconsistent tolerance_fractions: level {level} (entry {i}) has "
                f"{list(result.tolerance_fractions)} but expected {list(reference)} "
                "(from first entry)"
            )
            raise ValueError(msg)


def compute_capture_verdict(
    level_results: Sequence[tuple[int, CaptureResult]],
    reference_fraction: float = DEFAULT_REFERENCE_FRACTION,
    *,
    excellent_threshold: float = EXCELLENT_THRESHOLD,
    good_threshold: float = GOOD_THRESHOLD,
) -> CaptureVerdict:
    """Summarize capture across fidelity levels at a reference tolerance.

    Args:
        level_results: (fidelity level, capture result) pairs, all computed
            with identical tolerance fractions.
        reference_fraction: Tolerance fraction to judge at (default 5%).
        excellent_threshold: Minimum rate for EXCELLENT.
        good_threshold: Minimum rate for GOOD.

    Returns:
        CaptureVerdict

    Raises:
        ValueError: If the input is empty, tolerance fractions differ
            between entries, or the reference fraction is absent.

    Example:
        >>> from critpoint_lab.algorithms.capture import compute_capture_analysis
        >>> from critpoint_lab.data import KnownCriticalPoints
        >>> known = KnownCriticalPoints.from_bounds(
        ...     [[0.0], [1.0]], [0.0, 1.0], ["min", "max"], [(0.0, 1.0)]
        ... )
        >>> r4 = compute_capture_analysis(known, [[0.0]])
        >>> r8 = compute_capture_analysis(known, [[0.0], [1.0]])
        >>> verdict = compute_capture_verdict([(4, r4), (8, r8)])
        >>> verdict.best_level, verdict.label.value
        (8, 'EXCELLENT')
    """
    _check_consistent(level_results)
    t = level_results[0][1].tolerance_index(reference_fraction)

    best_level, best = level_results[0]
    for level, result in level_results[1:]:
        if result.capture_rates[t] > best.capture_rates[t]:
            best_level, best = level, result

    breakdown = {
        cp_type: TypeBreakdown(
            captured=best.type_captured_count(cp_type, t),
            total=total,
        )
        for cp_type, total in best.type_counts.items()
    }

    rate = best.capture_rates[t]
    return CaptureVerdict(
        best_level=best_level,
        capture_rate=rate,
        n_captured=best.captured_count(t),
        n_known=best.n_known,
        tolerance_fraction=best.tolerance_fractions[t],
        tolerance_value=best.tolerance_values[t],
        type_breakdown=MappingProxyType(breakdown),
        trend=tuple((level, result.capture_rates[t]) for level, result in level_results),
        label=classify_rate(rate, excellent_threshold, good_threshold),
    )


def capture_rate_table(
    level_results: Sequence[tuple[int, CaptureResult]],
) -> list[tuple[int, int, tuple[float, ...]]]:
    """Rows of (level, n_computed, capture rates) for a level-vs-rate table."""
    _check_consistent(level_results)
    return [
        (level, result.n_computed, result.capture_rates)
        for level, result in level_results
    ]


__all__ = [
    "DEFAULT_REFERENCE_FRACTION",
    "CaptureVerdict",
    "TypeBreakdown",
    "VerdictLabel",
    "capture_rate_table",
    "classify_rate",
    "compute_capture_verdict",
]
