"""Per-cell color aggregation over the source pixel buffer."""
import logging
from typing import Optional
import numpy as np

from crystalize.types import CellColorTable, PixelBuffer
from crystalize.tessellation import Tessellation

logger = logging.getLogger(__name__)

# Pixels located per KD-tree query
CHUNK_PIXELS = 1_000_000


def label_pixels(
    tessellation: Tessellation,
    width: int,
    height: int,
    chunk_pixels: int = CHUNK_PIXELS
) -> np.ndarray:
    """
    Owning cell of every pixel.

    Pixel (x, y) is located at its center (x + 0.5, y + 0.5), the same
    point Pillow samples when filling polygons. Rows are processed in
    row-major order, a block of whole rows at a time.

    Args:
        tessellation: Tessellation to query
        width: Image width
        height: Image height
        chunk_pixels: Approximate number of pixels per query

    Returns:
        (H, W) int64 array of cell indices
    """
    labels = np.empty((height, width), dtype=np.int64)
    rows_per_chunk = max(1, chunk_pixels // max(1, width))
    xs = np.arange(width, dtype=np.float64) + 0.5

    for start in range(0, height, rows_per_chunk):
        end = min(height, start + rows_per_chunk)
        ys = np.arange(start, end, dtype=np.float64) + 0.5
        grid_x, grid_y = np.meshgrid(xs, ys)
        labels[start:end] = tessellation.find_many(grid_x, grid_y).reshape(end - start, width)

    return labels


def aggregate_colors(
    pixels: PixelBuffer,
    tessellation: Tessellation,
    chunk_pixels: int = CHUNK_PIXELS,
    labels: Optional[np.ndarray] = None
) -> CellColorTable:
    """
    Accumulate RGB sums and pixel counts per cell.

    Every pixel contributes to exactly one cell, so the counts always add
    up to width * height. Alpha is ignored.

    Args:
        pixels: RGBA pixel buffer (H, W, 4)
        tessellation: Tessellation built over the same width and height
        chunk_pixels: Approximate number of pixels per query
        labels: Precomputed (H, W) owner labels from label_pixels

    Returns:
        CellColorTable with one entry per seed
    """
    height, width = pixels.shape[:2]
    n_cells = len(tessellation)

    if labels is None:
        labels = label_pixels(tessellation, width, height, chunk_pixels)
    labels = np.asarray(labels).ravel()
    flat = pixels[..., :3].reshape(-1, 3).astype(np.float64)

    table = CellColorTable(
        r_sum=np.bincount(labels, weights=flat[:, 0], minlength=n_cells),
        g_sum=np.bincount(labels, weights=flat[:, 1], minlength=n_cells),
        b_sum=np.bincount(labels, weights=flat[:, 2], minlength=n_cells),
        counts=np.bincount(labels, minlength=n_cells).astype(np.int64),
    )

    empty = int(np.count_nonzero(table.counts == 0))
    if empty:
        logger.debug(f"{empty} of {n_cells} cells cover no pixels and will be skipped")

    return table
