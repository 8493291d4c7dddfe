"""Tests for capture module."""

import math

import numpy as np
import pytest

from critpoint_lab.algorithms.capture import (
    DEFAULT_TOLERANCE_FRACTIONS,
    CaptureResult,
    compute_capture_analysis,
    missed_critical_points,
    nearest_neighbors,
)
from critpoint_lab.data.domain import CriticalPointType, KnownCriticalPoints


@pytest.fixture
def known() -> KnownCriticalPoints:
    """Minimum at the origin and saddle at (1, 1) on [-2, 2]²."""
    return KnownCriticalPoints.from_bounds(
        [[0.0, 0.0], [1.0, 1.0]],
        [0.0, 2.0],
        ["min", "saddle"],
        [(-2.0, 2.0), (-2.0, 2.0)],
    )


class TestNearestNeighbors:
    """Tests for nearest_neighbors function."""

    def test_distances_and_indices(self) -> None:
        """Each known point gets its closest computed point."""
        distances, indices = nearest_neighbors(
            np.array([[0.0, 0.0], [3.0, 0.0]]),
            np.array([[0.0, 1.0], [2.5, 0.0], [0.0, 0.5]]),
        )
        np.testing.assert_allclose(distances, [0.5, 0.5])
        np.testing.assert_array_equal(indices, [2, 1])

    def test_tie_lowest_index(self) -> None:
        """Equidistant computed points resolve to the lowest index."""
        _, indices = nearest_neighbors(
            np.array([[0.0, 0.0]]), np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]])
        )
        assert indices[0] == 0

    def test_no_computed_points(self) -> None:
        """With nothing computed, distances are inf and indices -1."""
        distances, indices = nearest_neighbors(np.zeros((2, 2)), np.empty((0, 2)))
        assert np.all(np.isinf(distances))
        np.testing.assert_array_equal(indices, [-1, -1])


class TestComputeCaptureAnalysis:
    """Tests for compute_capture_analysis function."""

    def test_end_to_end(self, known: KnownCriticalPoints) -> None:
        """Both known points have a computed point ≈0.0141 away."""
        result = compute_capture_analysis(
            known, [[0.01, -0.01], [0.5, 0.5], [0.99, 1.01]], [0.01, 0.05]
        )
        assert result.domain_diameter == pytest.approx(5.656854, rel=1e-6)
        assert result.tolerance_values[0] == pytest.approx(0.0565685, rel=1e-5)
        assert result.tolerance_values[1] == pytest.approx(0.282843, rel=1e-5)
        np.testing.assert_allclose(result.distances, [math.sqrt(2e-4)] * 2)
        np.testing.assert_array_equal(result.nearest_indices, [0, 2])
        # 0.0141 < 0.0566, so both are captured even at 1%
        assert result.capture_rates == (1.0, 1.0)
        assert result.n_known == 2
        assert result.n_computed == 3

    def test_saddle_missed_at_smallest_tolerance(self, known: KnownCriticalPoints) -> None:
        """A computed point 0.0707 from the saddle is only captured at 5%."""
        result = compute_capture_analysis(
            known, [[0.01, -0.01], [0.5, 0.5], [0.95, 1.05]], [0.01, 0.05]
        )
        assert result.capture_rates == (0.5, 1.0)
        assert result.type_capture_rates[CriticalPointType.MINIMUM] == (1.0, 1.0)
        assert result.type_capture_rates[CriticalPointType.SADDLE] == (0.0, 1.0)
        assert result.captured_count(0) == 1
        assert result.type_captured_count(CriticalPointType.SADDLE, 1) == 1

    def test_no_computed_points(self, known: KnownCriticalPoints) -> None:
        """An empty computed set captures nothing."""
        result = compute_capture_analysis(known, [])
        assert result.capture_rates == (0.0,) * len(DEFAULT_TOLERANCE_FRACTIONS)
        assert np.all(np.isinf(result.distances))
        assert result.n_computed == 0
        missed = missed_critical_points(result, known)
        assert [m.index for m in missed] == [0, 1]
        assert all(m.nearest_distance == np.inf for m in missed)

    def test_exact_match(self, known: KnownCriticalPoints) -> None:
        """Computing the known points captures everything at every tolerance."""
        result = compute_capture_analysis(known, known.points, [1e-9, 0.01, 0.1])
        assert result.capture_rates == (1.0, 1.0, 1.0)
        np.testing.assert_array_equal(result.distances, [0.0, 0.0])

    def test_monotone_in_tolerance(self) -> None:
        """Capture rate never decreases as tolerance grows."""
        rng = np.random.default_rng(7)
        bounds = [(-1.0, 1.0)] * 3
        points = rng.uniform(-1.0, 1.0, size=(25, 3))
        known = KnownCriticalPoints.from_bounds(
            points, np.zeros(25), ["min", "max", "saddle", "saddle", "min"] * 5, bounds
        )
        computed = points + rng.normal(scale=0.1, size=points.shape)
        fractions = np.linspace(0.001, 0.2, 40)

        result = compute_capture_analysis(known, computed, fractions)

        rates = np.array(result.capture_rates)
        assert np.all(np.diff(rates) >= 0)
        for cp_type, type_rates in result.type_capture_rates.items():
            assert np.all(np.diff(type_rates) >= 0), cp_type

    def test_tolerance_inclusive(self) -> None:
        """A computed point exactly at the tolerance is captured."""
        known = KnownCriticalPoints.from_bounds([[0.0]], [0.0], ["min"], [(0.0, 4.0)])
        result = compute_capture_analysis(known, [[0.5]], [0.125])
        assert result.tolerance_values == (0.5,)
        assert result.capture_rates == (1.0,)

    def test_fractions_sorted(self, known: KnownCriticalPoints) -> None:
        """Tolerance fractions are stored ascending."""
        result = compute_capture_analysis(known, known.points, [0.1, 0.01, 0.05])
        assert result.tolerance_fractions == (0.01, 0.05, 0.1)

    def test_type_rates_present_types_only(self, known: KnownCriticalPoints) -> None:
        """Per-type rates only cover types in the known set."""
        result = compute_capture_analysis(known, known.points)
        assert set(result.type_capture_rates) == {
            CriticalPointType.MINIMUM,
            CriticalPointType.SADDLE,
        }
        assert result.type_counts == {
            CriticalPointType.MINIMUM: 1,
            CriticalPointType.SADDLE: 1,
        }

    @pytest.mark.parametrize("fractions", [[], [0.0], [-0.01], [float("nan")]])
    def test_invalid_fractions(self, known: KnownCriticalPoints, fractions: list[float]) -> None:
        """Tolerance fractions must be non-empty, finite and positive."""
        with pytest.raises(ValueError, match="tolerance"):
            compute_capture_analysis(known, known.points, fractions)

    def test_dimension_mismatch(self, known: KnownCriticalPoints) -> None:
        """Computed points must share the known dimension."""
        with pytest.raises(ValueError, match="expected 2"):
            compute_capture_analysis(known, [[0.0, 0.0, 0.0]])

    def test_result_read_only(self, known: KnownCriticalPoints) -> None:
        """Result arrays cannot be mutated."""
        result = compute_capture_analysis(known, known.points)
        assert isinstance(result, CaptureResult)
        with pytest.raises(ValueError):
            result.distances[0] = 1.0

    def test_type_mappings_read_only(self, known: KnownCriticalPoints) -> None:
        """Per-type rates and counts cannot be mutated."""
        result = compute_capture_analysis(known, known.points)
        with pytest.raises(TypeError):
            result.type_capture_rates[CriticalPointType.MINIMUM] = (0.0,)  # type: ignore[index]
        with pytest.raises(TypeError):
            result.type_counts[CriticalPointType.MAXIMUM] = 3  # type: ignore[index]
        assert CriticalPointType.MAXIMUM not in result.type_counts


class TestToleranceLookup:
    """Tests for tolerance_index and rate_at."""

    def test_rate_at(self, known: KnownCriticalPoints) -> None:
        """Rates are looked up by fraction."""
        result = compute_capture_analysis(known, [[0.0, 0.0]])
        assert result.rate_at(0.05) == 0.5
        assert result.tolerance_index(0.025) == 1

    def test_float_noise_tolerated(self, known: KnownCriticalPoints) -> None:
        """A computed fraction like 0.1 + 0.2 - 0.25 matches 0.05."""
        result = compute_capture_analysis(known, [[0.0, 0.0]])
        assert result.tolerance_index(0.1 + 0.2 - 0.25) == 2

    def test_absent_fraction(self, known: KnownCriticalPoints) -> None:
        """Unknown fractions raise ValueError."""
        result = compute_capture_analysis(known, [[0.0, 0.0]])
        with pytest.raises(ValueError, match="not found"):
            result.tolerance_index(0.2)


class TestMissedCriticalPoints:
    """Tests for missed_critical_points function."""

    def test_missed_at_smallest(self, known: KnownCriticalPoints) -> None:
        """The saddle is missed at 1% and reported with its distance."""
        result = compute_capture_analysis(known, [[0.0, 0.0], [1.1, 1.0]], [0.01, 0.05])
        missed = missed_critical_points(result, known, tolerance_index=0)
        assert len(missed) == 1
        assert missed[0].index == 1
        assert missed[0].cp_type is CriticalPointType.SADDLE
        assert missed[0].value == 2.0
        assert missed[0].nearest_distance == pytest.approx(0.1)
        assert missed_critical_points(result, known) == []

    def test_index_out_of_range(self, known: KnownCriticalPoints) -> None:
        """Out-of-range tolerance indices raise ValueError."""
        result = compute_capture_analysis(known, known.points, [0.01, 0.05])
        with pytest.raises(ValueError, match="out of range"):
            missed_critical_points(result, known, tolerance_index=2)
        with pytest.raises(ValueError, match="out of range"):
            missed_critical_points(result, known, tolerance_index=-3)

    def test_known_set_mismatch(self, known: KnownCriticalPoints) -> None:
        """The known set must be the one the result was computed for."""
        other = KnownCriticalPoints.from_bounds([[0.0, 0.0]], [0.0], ["min"], [(-1.0, 1.0)] * 2)
        result = compute_capture_analysis(known, known.points)
        with pytest.raises(ValueError, match="known set"):
            missed_critical_points(result, other)
