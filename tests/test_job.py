"""Tests for the crystallization job."""
import numpy as np
import pytest

from crystalize.types import (
    CrystallizeJobError,
    InvalidParametersError,
    RenderOptions,
)
from crystalize.job import CrystallizationJob, crystallize
from crystalize.tessellation import build_tessellation

LATTICE_2X2 = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])


class TestScenarios:
    """End-to-end scenarios on tiny images."""

    @pytest.mark.parametrize("scale", [1, 2])
    def test_solid_red_2x2_any_layout(self, red_2x2, scale):
        size = 2 * scale
        for seed in range(100):
            result = crystallize(
                red_2x2,
                point_count=4,
                detail_bias=0.0,
                relaxation_steps=0,
                draw_borders=False,
                output_scale=scale,
                random_seed=seed,
            )

            assert result.layer.size == (size, size)
            assert result.seeds.shape == (4, 2)
            pixels = np.array(result.layer)
            assert np.all(pixels[..., :3] == (255, 0, 0)), f"random_seed={seed}"
            assert np.all(pixels[..., 3] == 255), f"random_seed={seed}"

    @pytest.mark.parametrize("scale", [1, 3])
    def test_duplicate_seeds_leave_no_holes(self, gradient_image, scale):
        seeds = np.array([[4.0, 4.0], [4.0, 4.0], [30.0, 20.0], [30.0, 20.0], [12.0, 25.0]])
        result = crystallize(gradient_image, existing_seeds=seeds, output_scale=scale)

        assert np.all(np.array(result.layer)[..., 3] == 255)
        assert result.stats['empty_cells'] == 2

    def test_solid_red_2x2_lattice_scaled(self, red_2x2):
        result = crystallize(red_2x2, existing_seeds=LATTICE_2X2, output_scale=2)

        assert result.layer.size == (4, 4)
        pixels = np.array(result.layer)
        assert np.all(pixels[..., :3] == (255, 0, 0))
        assert np.all(pixels[..., 3] == 255)
        np.testing.assert_array_equal(result.seeds, LATTICE_2X2)

    def test_gradient_mosaic(self, gradient_image):
        result = crystallize(gradient_image, point_count=40, random_seed=1, draw_borders=True)

        assert result.layer.size == (48, 32)
        assert result.cell_count == 40
        assert result.stats['empty_cells'] >= 0


class TestDeterminism:
    """Same inputs, same bytes."""

    def test_fixed_seeds_render_identically(self, gradient_image):
        options = RenderOptions(point_count=30, random_seed=4, relaxation_steps=2, draw_borders=True)

        a = CrystallizationJob(options).run(gradient_image)
        b = CrystallizationJob(options).run(gradient_image)

        np.testing.assert_array_equal(a.seeds, b.seeds)
        assert a.layer.tobytes() == b.layer.tobytes()

    def test_job_is_reusable(self, gradient_image):
        job = CrystallizationJob(RenderOptions(point_count=20, random_seed=2))
        assert job.run(gradient_image).layer.tobytes() == job.run(gradient_image).layer.tobytes()


class TestSeedReuse:
    """Reused seeds keep geometry stable."""

    def test_reuse_ignores_bias_and_relaxation(self, gradient_image):
        first = crystallize(gradient_image, point_count=25, random_seed=3, relaxation_steps=2)
        second = crystallize(
            gradient_image,
            existing_seeds=first.seeds,
            detail_bias=0.9,
            relaxation_steps=5,
        )

        np.testing.assert_array_equal(first.seeds, second.seeds)
        assert first.relaxed_steps == 2
        assert second.relaxed_steps == 0
        assert first.layer.tobytes() == second.layer.tobytes()

        a = build_tessellation(first.seeds, 48, 32)
        b = build_tessellation(second.seeds, 48, 32)
        for pa, pb in zip(a.cell_polygons(), b.cell_polygons()):
            np.testing.assert_array_equal(pa, pb)

    def test_reuse_with_new_display_options(self, gradient_image):
        first = crystallize(gradient_image, point_count=25, random_seed=6)
        scaled = crystallize(gradient_image, existing_seeds=first.seeds, output_scale=2, draw_borders=True)

        assert scaled.layer.size == (96, 64)
        np.testing.assert_array_equal(first.seeds, scaled.seeds)

    def test_returned_seeds_are_read_only(self, gradient_image):
        result = crystallize(gradient_image, point_count=10, random_seed=0)
        with pytest.raises(ValueError):
            result.seeds[0, 0] = 0.0

    def test_relaxation_changes_fresh_layouts(self, gradient_image):
        plain = crystallize(gradient_image, point_count=20, random_seed=8)
        relaxed = crystallize(gradient_image, point_count=20, random_seed=8, relaxation_steps=1)
        assert not np.array_equal(plain.seeds, relaxed.seeds)


class TestLayout:
    """Seed layout without rendering."""

    def test_layout_matches_run(self, gradient_image):
        options = RenderOptions(point_count=18, random_seed=11, relaxation_steps=2, detail_bias=0.4)

        seeds = CrystallizationJob(options).layout(gradient_image)
        np.testing.assert_array_equal(seeds, CrystallizationJob(options).run(gradient_image).seeds)
        assert not seeds.flags.writeable

    def test_layout_skips_coloring(self, gradient_image, monkeypatch):
        def explode(*args, **kwargs):
            raise AssertionError("layout must not aggregate colors")

        monkeypatch.setattr("crystalize.job.aggregate_colors", explode)
        monkeypatch.setattr("crystalize.job.render_mosaic", explode)

        seeds = CrystallizationJob(RenderOptions(point_count=7, random_seed=0)).layout(gradient_image)
        assert seeds.shape == (7, 2)

    def test_layout_returns_existing_seeds(self, gradient_image):
        seeds = CrystallizationJob(RenderOptions(existing_seeds=LATTICE_2X2, relaxation_steps=3)).layout(gradient_image)
        np.testing.assert_array_equal(seeds, LATTICE_2X2)

    def test_layout_rejects_invalid_options(self, gradient_image):
        with pytest.raises(InvalidParametersError):
            CrystallizationJob(RenderOptions(point_count=0)).layout(gradient_image)


class TestErrors:
    """Parameter rejection and terminal failures."""

    @pytest.mark.parametrize("overrides", [
        {"point_count": 0},
        {"point_count": -5},
        {"output_scale": 0},
        {"output_scale": -1.0},
        {"output_scale": float("inf")},
        {"output_scale": float("nan")},
        {"detail_bias": 1.5},
        {"relaxation_steps": -1},
        {"existing_seeds": np.zeros((0, 2))},
        {"existing_seeds": np.array([[np.nan, 1.0]])},
    ])
    def test_invalid_options_rejected(self, red_2x2, overrides):
        with pytest.raises(InvalidParametersError):
            crystallize(red_2x2, **overrides)

    def test_invalid_pixels_rejected(self):
        with pytest.raises(InvalidParametersError):
            crystallize(np.zeros((4, 4, 3), dtype=np.uint8))
        with pytest.raises(InvalidParametersError):
            crystallize(np.zeros((0, 4, 4), dtype=np.uint8))

    def test_unknown_option_rejected(self, red_2x2):
        with pytest.raises(InvalidParametersError):
            crystallize(red_2x2, point_cnt=4)

    def test_pipeline_failure_is_terminal(self, red_2x2, monkeypatch):
        def explode(*args, **kwargs):
            raise MemoryError("out of memory")

        monkeypatch.setattr("crystalize.job.aggregate_colors", explode)

        with pytest.raises(CrystallizeJobError) as info:
            crystallize(red_2x2, point_count=4)
        assert isinstance(info.value.__cause__, MemoryError)

    def test_pixels_not_modified(self, gradient_image):
        before = gradient_image.copy()
        crystallize(gradient_image, point_count=15, detail_bias=0.5, relaxation_steps=1, random_seed=0)
        np.testing.assert_array_equal(gradient_image, before)
