"""Crystallization job: seeds -> relaxation -> tessellation -> colors -> render."""
import logging
import time
from typing import Optional, Tuple

import numpy as np

from crystalize.types import (
    CrystallizeJobError,
    CrystallizeResult,
    InvalidParametersError,
    PixelBuffer,
    RenderOptions,
    SeedSet,
    validate_pixels,
)
from crystalize.sampling import sample_seeds
from crystalize.tessellation import Tessellation, build_tessellation
from crystalize.relaxation import relax_seeds
from crystalize.aggregation import aggregate_colors, label_pixels
from crystalize.renderer import render_mosaic

logger = logging.getLogger(__name__)


class CrystallizationJob:
    """One crystallization run over a pixel buffer.

    Holds no state between runs; ``run`` can be called repeatedly.
    """

    def __init__(self, options: Optional[RenderOptions] = None):
        """
        Initialize job with options.

        Args:
            options: Render options. Uses defaults if None.
        """
        self.options = options or RenderOptions()

    def run(self, pixels: PixelBuffer) -> CrystallizeResult:
        """
        Crystallize a pixel buffer.

        Args:
            pixels: RGBA pixel buffer (H, W, 4), never modified

        Returns:
            CrystallizeResult with the rendered layer and the seeds used

        Raises:
            InvalidParametersError: If inputs are rejected before work starts
            CrystallizeJobError: If any pipeline stage fails
        """
        validate_pixels(pixels)
        self.options.validate()

        try:
            return self._run(pixels)
        except Exception as e:
            logger.error(f"Crystallization failed: {e}")
            raise CrystallizeJobError(f"Crystallization failed: {e}") from e

    def layout(self, pixels: PixelBuffer) -> SeedSet:
        """
        Resolve the seed layout without coloring or rendering it.

        Runs the same sampling and relaxation as ``run``, so the returned
        seeds equal ``run(pixels).seeds`` for the same options.

        Args:
            pixels: RGBA pixel buffer (H, W, 4), never modified

        Returns:
            Read-only seed set

        Raises:
            InvalidParametersError: If inputs are rejected before work starts
            CrystallizeJobError: If sampling or tessellation fails
        """
        validate_pixels(pixels)
        self.options.validate()

        try:
            seeds, _, _ = self._resolve_seeds(pixels)
        except Exception as e:
            logger.error(f"Seed layout failed: {e}")
            raise CrystallizeJobError(f"Seed layout failed: {e}") from e

        seeds.setflags(write=False)
        return seeds

    def _resolve_seeds(self, pixels: PixelBuffer) -> Tuple[SeedSet, Tessellation, int]:
        options = self.options
        height, width = pixels.shape[:2]

        # Step 1: resolve seeds
        reused = options.existing_seeds is not None
        if reused:
            seeds = np.array(options.existing_seeds, dtype=np.float64)
            logger.info(f"Reusing {len(seeds)} existing seeds")
        else:
            rng = np.random.default_rng(options.random_seed)
            seeds = sample_seeds(
                width, height, options.point_count,
                pixels=pixels,
                detail_bias=options.detail_bias,
                rng=rng,
            )

        # Step 2: tessellate
        tessellation = build_tessellation(seeds, width, height)

        # Step 3: relax fresh layouts only
        relaxed_steps = 0
        if options.relaxation_steps > 0 and not reused:
            seeds, tessellation = relax_seeds(seeds, tessellation, options.relaxation_steps)
            relaxed_steps = options.relaxation_steps

        return seeds, tessellation, relaxed_steps

    def _run(self, pixels: PixelBuffer) -> CrystallizeResult:
        options = self.options
        height, width = pixels.shape[:2]
        start_time = time.time()

        seeds, tessellation, relaxed_steps = self._resolve_seeds(pixels)

        # Step 4: colors against the final tessellation
        labels = label_pixels(tessellation, width, height)
        colors = aggregate_colors(pixels, tessellation, labels=labels)

        # Step 5: render
        layer = render_mosaic(
            tessellation,
            colors,
            output_scale=options.output_scale,
            draw_borders=options.draw_borders,
            border_color=options.border_color,
            labels=labels,
        )

        elapsed = time.time() - start_time
        logger.info(f"Crystallized {width}x{height} image into {len(seeds)} cells in {elapsed:.2f}s")

        seeds.setflags(write=False)
        return CrystallizeResult(
            layer=layer,
            seeds=seeds,
            cell_count=len(seeds),
            relaxed_steps=relaxed_steps,
            stats={
                'empty_cells': int(np.count_nonzero(colors.counts == 0)),
                'elapsed': elapsed,
            },
        )


def crystallize(
    pixels: PixelBuffer,
    options: Optional[RenderOptions] = None,
    **overrides
) -> CrystallizeResult:
    """
    Crystallize a pixel buffer.

    Convenience function for one-off jobs.

    Args:
        pixels: RGBA pixel buffer (H, W, 4)
        options: Render options (defaults if None)
        **overrides: RenderOptions fields to override

    Returns:
        CrystallizeResult

    Example:
        >>> result = crystallize(pixels, point_count=2000, draw_borders=True)
        >>> again = crystallize(pixels, existing_seeds=result.seeds, output_scale=2)
    """
    options = options or RenderOptions()
    if overrides:
        unknown = set(overrides) - set(vars(options))
        if unknown:
            raise InvalidParametersError(f"Unknown render options: {sorted(unknown)}")
        options = RenderOptions(**{**vars(options), **overrides})
    return CrystallizationJob(options).run(pixels)
