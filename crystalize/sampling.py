"""Seed point generation: uniform and contrast-weighted sampling."""
import logging
from typing import Optional
import numpy as np

from crystalize.types import PixelBuffer, SeedSet

logger = logging.getLogger(__name__)

# Channel difference that saturates the edge score
EDGE_NORMALIZER = 100.0
MAX_ATTEMPTS_PER_POINT = 100


def edge_strength(pixels: PixelBuffer) -> np.ndarray:
    """
    Per-pixel edge score in [0, 1].

    The score is the summed absolute RGB difference between a pixel and
    its right neighbor (the last column compares with itself), divided by
    100 and capped at 1.

    Args:
        pixels: RGBA pixel buffer (H, W, 4)

    Returns:
        Float array (H, W)
    """
    rgb = pixels[..., :3].astype(np.int16)
    right = np.concatenate([rgb[:, 1:], rgb[:, -1:]], axis=1)
    diff = np.abs(rgb - right).sum(axis=2)
    return np.minimum(1.0, diff / EDGE_NORMALIZER)


def sample_uniform(
    width: int,
    height: int,
    count: int,
    rng: np.random.Generator
) -> SeedSet:
    """Draw count points uniformly in [0, width) x [0, height)."""
    points = rng.random((count, 2))
    points[:, 0] *= width
    points[:, 1] *= height
    return points


def sample_weighted(
    width: int,
    height: int,
    count: int,
    pixels: PixelBuffer,
    detail_bias: float,
    rng: np.random.Generator
) -> SeedSet:
    """
    Contrast-weighted rejection sampling.

    Candidates are uniform random pixel positions, accepted with
    probability detail_bias * edge + (1 - detail_bias). After
    100 * count attempts the remainder is filled uniformly, so blank
    images still terminate with exactly count points.

    Args:
        width: Image width
        height: Image height
        count: Number of points to return
        pixels: RGBA pixel buffer (H, W, 4)
        detail_bias: Blend between uniform (0) and edge-only (1) acceptance
        rng: Random generator

    Returns:
        (count, 2) float array of (x, y) points
    """
    accept_prob = detail_bias * edge_strength(pixels) + (1.0 - detail_bias)

    points = np.empty((count, 2), dtype=np.float64)
    added = 0
    attempts = 0
    max_attempts = count * MAX_ATTEMPTS_PER_POINT

    while added < count and attempts < max_attempts:
        needed = count - added
        batch = min(max_attempts - attempts, max(1024, 4 * needed))

        xs = rng.integers(0, width, size=batch)
        ys = rng.integers(0, height, size=batch)
        accepted = np.flatnonzero(rng.random(batch) < accept_prob[ys, xs])
        take = accepted[:needed]

        points[added:added + len(take), 0] = xs[take]
        points[added:added + len(take), 1] = ys[take]
        added += len(take)

        # Attempts past the last needed acceptance were never made
        if len(take) == needed and needed > 0:
            attempts += int(take[-1]) + 1
        else:
            attempts += batch

    if added < count:
        logger.debug(
            f"Weighted sampling exhausted {attempts} attempts with {added}/{count} points, "
            f"filling {count - added} uniformly"
        )
        points[added:] = sample_uniform(width, height, count - added, rng)

    return points


def sample_seeds(
    width: int,
    height: int,
    count: int,
    pixels: Optional[PixelBuffer] = None,
    detail_bias: float = 0.0,
    rng: Optional[np.random.Generator] = None
) -> SeedSet:
    """
    Produce a seed set of exactly count points inside the image.

    Args:
        width: Image width
        height: Image height
        count: Number of seeds
        pixels: RGBA pixel buffer, required when detail_bias > 0
        detail_bias: 0 for uniform sampling, up to 1 for edge-only
        rng: Random generator (a fresh unseeded one if None)

    Returns:
        (count, 2) float array of (x, y) points
    """
    rng = rng if rng is not None else np.random.default_rng()

    if detail_bias > 0:
        if pixels is None:
            raise ValueError("Weighted sampling requires a pixel buffer")
        seeds = sample_weighted(width, height, count, pixels, detail_bias, rng)
    else:
        seeds = sample_uniform(width, height, count, rng)

    logger.info(f"Sampled {count} seeds (detail_bias={detail_bias:.2f})")
    return seeds
