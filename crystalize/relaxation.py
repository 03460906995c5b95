"""Lloyd relaxation of seed layouts."""
import logging
from typing import Callable, List, Optional, Tuple
import numpy as np
from scipy.spatial import cKDTree

from crystalize.types import SeedSet, Polygon
from crystalize.tessellation import Tessellation, build_tessellation

logger = logging.getLogger(__name__)


def polygon_area(polygon: Polygon) -> float:
    """Signed shoelace area (positive for counter-clockwise loops)."""
    x = polygon[:, 0]
    y = polygon[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def polygon_centroid(polygon: Optional[Polygon]) -> Optional[Tuple[float, float]]:
    """
    Area-weighted centroid of a simple polygon.

    Args:
        polygon: (K, 2) vertex loop, or None

    Returns:
        (cx, cy), or None when the polygon is missing or has zero area
    """
    if polygon is None or len(polygon) < 3:
        return None

    x0 = polygon[:, 0]
    y0 = polygon[:, 1]
    x1 = np.roll(x0, -1)
    y1 = np.roll(y0, -1)
    cross = x0 * y1 - x1 * y0

    area = 0.5 * float(np.sum(cross))
    if area == 0 or not np.isfinite(area):
        return None

    factor = 1.0 / (6.0 * area)
    cx = float(np.sum((x0 + x1) * cross)) * factor
    cy = float(np.sum((y0 + y1) * cross)) * factor
    if not (np.isfinite(cx) and np.isfinite(cy)):
        return None
    return cx, cy


def lloyd_step(seeds: SeedSet, tessellation: Tessellation) -> SeedSet:
    """Move every seed to its cell centroid; degenerate cells stay put."""
    relaxed = np.array(seeds, dtype=np.float64)
    kept = 0
    for i in range(len(relaxed)):
        centroid = polygon_centroid(tessellation.cell_polygon(i))
        if centroid is None:
            kept += 1
            continue
        relaxed[i] = centroid

    if kept:
        logger.debug(f"Lloyd step kept {kept} degenerate seeds in place")
    return relaxed


def relax_seeds(
    seeds: SeedSet,
    tessellation: Tessellation,
    steps: int,
    on_step: Optional[Callable[[int, SeedSet, Tessellation], None]] = None
) -> Tuple[SeedSet, Tessellation]:
    """
    Run Lloyd relaxation.

    Pulls seeds toward a centroidal layout. This undoes the edge
    clustering produced by weighted sampling when both are used.

    Args:
        seeds: Starting seed set
        tessellation: Tessellation of the starting seeds
        steps: Number of iterations (0 returns the inputs unchanged)
        on_step: Optional callback invoked after each iteration with
            (step, seeds, tessellation)

    Returns:
        Tuple of (relaxed seeds, tessellation of the relaxed seeds)
    """
    if steps <= 0:
        return seeds, tessellation

    width, height = tessellation.width, tessellation.height
    for step in range(steps):
        seeds = lloyd_step(seeds, tessellation)
        tessellation = build_tessellation(seeds, width, height)
        if on_step is not None:
            on_step(step + 1, seeds, tessellation)

    logger.info(f"Relaxed {len(seeds)} seeds over {steps} steps")
    return seeds, tessellation


def nearest_neighbor_distances(seeds: SeedSet) -> np.ndarray:
    """Distance from each seed to its closest other seed."""
    if len(seeds) < 2:
        return np.zeros(len(seeds))
    distances, _ = cKDTree(seeds).query(seeds, k=2)
    return distances[:, 1]


def relaxation_trace(
    seeds: SeedSet,
    width: float,
    height: float,
    steps: int
) -> List[float]:
    """
    Nearest-neighbor distance variance before and after each Lloyd step.

    Useful for checking convergence toward an even layout.
    """
    tessellation = build_tessellation(seeds, width, height)
    variances = [float(np.var(nearest_neighbor_distances(seeds)))]

    def record(_step, step_seeds, _tessellation):
        variances.append(float(np.var(nearest_neighbor_distances(step_seeds))))

    relax_seeds(seeds, tessellation, steps, on_step=record)
    return variances
