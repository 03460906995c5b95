"""Tests for Lloyd relaxation."""
import numpy as np
import pytest

from crystalize.tessellation import build_tessellation
from crystalize.relaxation import (
    lloyd_step,
    polygon_area,
    polygon_centroid,
    relax_seeds,
    relaxation_trace,
)


class TestPolygonCentroid:
    """Test the shoelace centroid."""

    def test_square(self):
        square = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]])
        assert polygon_centroid(square) == pytest.approx((1.0, 1.0))

    def test_orientation_independent(self):
        square = np.array([[0.0, 0.0], [0.0, 2.0], [4.0, 2.0], [4.0, 0.0]])
        assert polygon_area(square) < 0
        assert polygon_centroid(square) == pytest.approx((2.0, 1.0))

    def test_triangle(self):
        triangle = np.array([[0.0, 0.0], [3.0, 0.0], [0.0, 3.0]])
        assert polygon_centroid(triangle) == pytest.approx((1.0, 1.0))

    def test_degenerate_polygons(self):
        line = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])
        assert polygon_centroid(line) is None
        assert polygon_centroid(None) is None
        assert polygon_centroid(np.array([[0.0, 0.0], [1.0, 0.0]])) is None


class TestRelaxSeeds:
    """Test iterative relaxation."""

    def test_zero_steps_is_noop(self):
        seeds = np.array([[1.0, 1.0], [3.0, 3.0]])
        tess = build_tessellation(seeds, 4, 4)

        relaxed, relaxed_tess = relax_seeds(seeds, tess, 0)
        assert relaxed is seeds
        assert relaxed_tess is tess

    def test_single_seed_moves_to_center(self):
        seeds = np.array([[1.0, 1.0]])
        tess = build_tessellation(seeds, 10, 6)

        relaxed, _ = relax_seeds(seeds, tess, 1)
        np.testing.assert_allclose(relaxed, [[5.0, 3.0]])

    def test_degenerate_cell_keeps_seed(self):
        seeds = np.array([[2.0, 2.0], [50.0, 50.0]])
        tess = build_tessellation(seeds, 10, 10)

        relaxed = lloyd_step(seeds, tess)
        np.testing.assert_allclose(relaxed[0], [5.0, 5.0])
        np.testing.assert_array_equal(relaxed[1], [50.0, 50.0])
        assert np.all(np.isfinite(relaxed))

    def test_input_not_modified(self):
        seeds = np.array([[1.0, 1.0], [2.0, 8.0], [9.0, 4.0]])
        original = seeds.copy()
        relax_seeds(seeds, build_tessellation(seeds, 10, 10), 3)
        np.testing.assert_array_equal(seeds, original)

    def test_returns_tessellation_of_relaxed_seeds(self):
        rng = np.random.default_rng(2)
        seeds = rng.random((20, 2)) * 30
        relaxed, tess = relax_seeds(seeds, build_tessellation(seeds, 30, 30), 2)

        np.testing.assert_array_equal(tess.seeds, relaxed)

    def test_step_callback(self):
        rng = np.random.default_rng(4)
        seeds = rng.random((10, 2)) * 20
        calls = []

        relax_seeds(seeds, build_tessellation(seeds, 20, 20), 3,
                    on_step=lambda step, s, t: calls.append(step))
        assert calls == [1, 2, 3]

    def test_converges_toward_even_spacing(self):
        """Nearest-neighbor distance variance drops (or plateaus) step by step."""
        rng = np.random.default_rng(0)
        seeds = rng.random((200, 2)) * 100

        variances = relaxation_trace(seeds, 100, 100, 5)

        assert len(variances) == 6
        assert variances[-1] < 0.5 * variances[0]
        for before, after in zip(variances, variances[1:]):
            assert after <= before + 0.05 * variances[0]
