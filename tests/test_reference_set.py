"""Tests for reference_set module."""

import numpy as np
import pytest

from critpoint_lab.algorithms.newton import RefinementOutcome
from critpoint_lab.algorithms.objectives import candidate_grid, deuflhard, double_well
from critpoint_lab.algorithms.reference_set import (
    ReferenceSetBuilder,
    build_known_critical_points,
    build_known_from_product,
    deduplicate_outcomes,
)
from critpoint_lab.data.domain import CriticalPointType
from critpoint_lab.data.refinement_config import RefinementConfig

BOX = [(-2.0, 2.0), (-2.0, 2.0)]

DEUFLHARD_COMPONENTS = [
    [0.0, 0.0],
    [-0.741151903683758, 0.741151903683749],
    [-0.126217280731682, -0.126217280731676],
]


def make_outcome(point: list[float], gradient_norm: float) -> RefinementOutcome:
    """Synthetic converged outcome at a point."""
    x = np.array(point, dtype=float)
    return RefinementOutcome(
        point=x,
        gradient_norm=gradient_norm,
        objective_value=0.0,
        converged=True,
        iterations=1,
        cp_type=CriticalPointType.MINIMUM,
        hessian_eigenvalues=np.ones(x.size),
        initial_gradient_norm=1.0,
        start_point=x,
    )


def sorted_rows(points: np.ndarray) -> np.ndarray:
    """Rows in lexicographic order, for order-insensitive comparison."""
    return points[np.lexsort(points.T[::-1])]


class TestDeduplicateOutcomes:
    """Tests for deduplicate_outcomes function."""

    def test_keeps_most_accurate(self) -> None:
        """Of two nearby outcomes, the lower gradient norm survives."""
        outcomes = [make_outcome([0.0, 0.0], 1e-9), make_outcome([0.001, 0.0], 1e-12)]
        assert deduplicate_outcomes(outcomes, 0.01) == [1]

    def test_distance_must_exceed_threshold(self) -> None:
        """A point exactly at the threshold distance is a duplicate."""
        outcomes = [make_outcome([0.0], 1e-12), make_outcome([0.5], 1e-11)]
        assert deduplicate_outcomes(outcomes, 0.5) == [0]
        assert deduplicate_outcomes(outcomes, 0.49) == [0, 1]

    def test_stable_on_ties(self) -> None:
        """Equal gradient norms keep input order."""
        outcomes = [make_outcome([1.0], 1e-10), make_outcome([1.001], 1e-10)]
        assert deduplicate_outcomes(outcomes, 0.01) == [0]

    def test_compares_against_accepted_only(self) -> None:
        """A rejected point does not block later points."""
        outcomes = [
            make_outcome([0.0], 1e-12),
            make_outcome([0.008], 1e-11),
            make_outcome([0.016], 1e-10),
        ]
        assert deduplicate_outcomes(outcomes, 0.01) == [0, 2]

    def test_empty(self) -> None:
        """No outcomes, nothing kept."""
        assert deduplicate_outcomes([], 0.1) == []


class TestReferenceSetBuilder:
    """Tests for ReferenceSetBuilder engine."""

    def test_double_well_basins(self) -> None:
        """One start per basin yields two minima and a saddle."""
        ref = ReferenceSetBuilder(double_well, BOX).build(
            [[0.8, 0.1], [-0.9, 0.1], [0.05, 0.05]]
        )
        assert len(ref.known) == 3
        assert ref.known.type_counts() == {
            CriticalPointType.MINIMUM: 2,
            CriticalPointType.SADDLE: 1,
        }
        assert ref.n_candidates == 3
        assert ref.n_converged == 3
        assert ref.n_duplicates == 0
        assert ref.convergence_rate == 1.0

    def test_duplicates_counted(self) -> None:
        """Starts in the same basin collapse to one point."""
        ref = ReferenceSetBuilder(double_well, BOX).build(
            [[0.8, 0.1], [1.2, -0.1], [0.05, 0.05]]
        )
        assert ref.n_unique == 2
        assert ref.n_duplicates == 1
        assert len(ref.outcomes) == 3

    def test_unique_sorted_by_gradient_norm(self) -> None:
        """Accepted outcomes are ordered best first."""
        ref = ReferenceSetBuilder(double_well, BOX).build(candidate_grid(BOX, 4))
        norms = [o.gradient_norm for o in ref.unique_outcomes]
        assert norms == sorted(norms)

    def test_known_set_diameter(self) -> None:
        """The known set uses the bounds diameter."""
        ref = ReferenceSetBuilder(double_well, BOX).build([[0.8, 0.1]])
        assert ref.known.domain_diameter == pytest.approx(np.sqrt(32))

    def test_partial_convergence(self) -> None:
        """Non-converged outcomes are dropped and counted."""
        config = RefinementConfig(max_iterations=1)
        ref = ReferenceSetBuilder(double_well, BOX, config=config).build(
            [[1.0, 0.0], [2.0, 0.0]]
        )
        assert ref.n_converged == 1
        assert ref.convergence_rate == 0.5
        assert len(ref.known) == 1

    def test_none_converged(self) -> None:
        """A batch without a converged outcome raises ValueError."""
        config = RefinementConfig(max_iterations=0)
        builder = ReferenceSetBuilder(double_well, BOX, config=config)
        with pytest.raises(ValueError, match="none of the 2 candidates converged"):
            builder.build([[0.5, 0.5], [1.5, -0.5]])

    def test_empty_candidates(self) -> None:
        """Empty candidate batches are rejected."""
        with pytest.raises(ValueError, match="empty"):
            ReferenceSetBuilder(double_well, BOX).build([])

    def test_dimension_mismatch(self) -> None:
        """Candidates must match the bounds dimension."""
        with pytest.raises(ValueError, match="expected 2"):
            ReferenceSetBuilder(double_well, BOX).build([[0.1, 0.2, 0.3]])

    def test_bounds_required(self) -> None:
        """A builder needs a domain."""
        with pytest.raises(ValueError, match="bounds"):
            ReferenceSetBuilder(double_well, None)  # type: ignore[arg-type]

    def test_idempotent(self) -> None:
        """Rebuilding from the output points yields the same set."""
        builder = ReferenceSetBuilder(double_well, BOX)
        first = builder.build(candidate_grid(BOX, 5)).known
        second = builder.build(first.points).known

        assert len(second) == len(first)
        np.testing.assert_allclose(
            sorted_rows(second.points), sorted_rows(first.points), atol=1e-12
        )
        assert sorted(t.value for t in second.types) == sorted(t.value for t in first.types)

    def test_untraceable_objective_fails_fast(self) -> None:
        """A plain-NumPy objective in exact mode names the cause, not convergence."""
        builder = ReferenceSetBuilder(
            lambda x: float(np.sin(x[0]) ** 2 + x[1] ** 2), [(-1.0, 1.0)] * 2
        )
        with pytest.raises(ValueError, match="cannot be traced by JAX"):
            builder.build([[0.1, 0.1], [0.2, -0.1]])

    def test_untraceable_objective_numerical(self) -> None:
        """The same objective builds a reference set with finite differences."""
        config = RefinementConfig(gradient_method="numerical", tol=1e-6)
        ref = ReferenceSetBuilder(
            lambda x: float(np.sin(x[0]) ** 2 + x[1] ** 2), [(-1.0, 1.0)] * 2, config=config
        ).build([[0.1, 0.1], [0.2, -0.1]])
        assert ref.n_unique == 1
        np.testing.assert_allclose(ref.known.points[0], [0.0, 0.0], atol=1e-5)

    def test_logs_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        """Batch statistics are logged at INFO."""
        with caplog.at_level("INFO", logger="critpoint_lab"):
            ReferenceSetBuilder(double_well, BOX).build([[0.8, 0.1], [1.2, -0.1]])
        assert "2 converged" in caplog.text
        assert "1 unique" in caplog.text


class TestBuildKnownCriticalPoints:
    """Tests for build_known_critical_points function."""

    def test_dedup_override(self) -> None:
        """A large dedup fraction merges distinct critical points."""
        candidates = [[0.8, 0.1], [-0.9, 0.1], [0.05, 0.05]]
        default = build_known_critical_points(double_well, candidates, BOX)
        merged = build_known_critical_points(
            double_well, candidates, BOX, dedup_fraction=0.5
        )
        assert len(default) == 3
        assert len(merged) == 1


class TestBuildKnownFromProduct:
    """Tests for build_known_from_product function."""

    def test_deuflhard_4d(self) -> None:
        """Three component points give 9 product points: 1 min, 1 max, 7 saddles."""
        known = build_known_from_product(deuflhard, DEUFLHARD_COMPONENTS, [(-1.2, 1.2)] * 4)
        assert len(known) == 9
        assert known.ndim == 4
        assert known.domain_diameter == pytest.approx(4.8)
        assert known.type_counts() == {
            CriticalPointType.MINIMUM: 1,
            CriticalPointType.MAXIMUM: 1,
            CriticalPointType.SADDLE: 7,
        }

    def test_values_add(self) -> None:
        """Product values are sums of component values."""
        known = build_known_from_product(deuflhard, DEUFLHARD_COMPONENTS, [(-1.2, 1.2)] * 4)
        origin_value = float(deuflhard(np.zeros(2)))
        # first combination is (origin, origin)
        np.testing.assert_array_equal(known.points[0], np.zeros(4))
        assert known.values[0] == pytest.approx(2 * origin_value)

    def test_single_block(self) -> None:
        """With one block the components are the known set."""
        known = build_known_from_product(
            deuflhard, DEUFLHARD_COMPONENTS, [(-1.2, 1.2)] * 2, n_blocks=1
        )
        assert [t.value for t in known.types] == ["saddle", "min", "max"]

    def test_bounds_dimension_checked(self) -> None:
        """Bounds must have n_blocks × component dimensions."""
        with pytest.raises(ValueError, match="expected 4"):
            build_known_from_product(deuflhard, DEUFLHARD_COMPONENTS, [(-1.2, 1.2)] * 3)

    def test_empty_components(self) -> None:
        """Component points are required."""
        with pytest.raises(ValueError, match="non-empty"):
            build_known_from_product(deuflhard, [], [(-1.2, 1.2)] * 4)

    def test_n_blocks_positive(self) -> None:
        """At least one block is required."""
        with pytest.raises(ValueError, match="n_blocks"):
            build_known_from_product(deuflhard, DEUFLHARD_COMPONENTS, [(-1.2, 1.2)] * 4, n_blocks=0)
