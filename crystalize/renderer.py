"""Mosaic rasterization with Pillow."""
import logging
import math
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from crystalize.types import CellColorTable, Color
from crystalize.tessellation import Tessellation
from crystalize.aggregation import label_pixels

logger = logging.getLogger(__name__)

SEAM_WIDTH = 1.0
BORDER_RADIUS_FACTOR = 0.15


def border_width(width: int, height: int, cell_count: int) -> int:
    """
    Border stroke width in source pixels.

    Proportional to the expected cell radius so that sparse and dense
    mosaics get visually similar borders.
    """
    avg_area = (width * height) / max(1, cell_count)
    avg_radius = math.sqrt(avg_area / math.pi)
    return max(1, int(math.floor(avg_radius * BORDER_RADIUS_FACTOR)))


def output_size(width: int, height: int, scale: float) -> Tuple[int, int]:
    """Pixel size of a render at the given scale."""
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def _scaled_width(source_width: float, scale: float) -> int:
    return max(1, int(round(source_width * scale)))


def _to_points(polygon: np.ndarray, scale: float) -> List[Tuple[float, float]]:
    return [(float(x) * scale, float(y) * scale) for x, y in polygon]


def _underlay(
    labels: np.ndarray,
    means: np.ndarray,
    defined: np.ndarray,
    size: Tuple[int, int]
) -> Image.Image:
    """Every source pixel painted with its owning cell's color, resized to size."""
    rgba = np.zeros(labels.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = means[labels]
    rgba[..., 3] = np.where(defined[labels], 255, 0)
    image = Image.fromarray(rgba)
    if image.size != size:
        image = image.resize(size, Image.NEAREST)
    return image


def render_mosaic(
    tessellation: Tessellation,
    colors: CellColorTable,
    output_scale: float = 1.0,
    draw_borders: bool = False,
    border_color: Color = (0, 0, 0),
    labels: Optional[np.ndarray] = None
) -> Image.Image:
    """
    Rasterize a colored tessellation.

    Geometry stays in source coordinates and every drawing command is
    scaled on the way out, so one tessellation can drive renders of any
    size.

    Polygons are drawn over an underlay of the pixel labels, so slivers
    of cells that own no pixel center show the color of the cell that
    owns the pixel beneath them. Areas owned by cells without a color
    stay transparent.

    Args:
        tessellation: Tessellation computed at source resolution
        colors: Per-cell color sums for the same tessellation
        output_scale: Multiplier applied to the source size
        draw_borders: Stroke all cell edges after filling
        border_color: RGB border color
        labels: Pixel owner labels from label_pixels (computed if None)

    Returns:
        RGBA image of size round(W * scale) x round(H * scale)
    """
    width, height = tessellation.width, tessellation.height
    size = output_size(width, height, output_scale)
    means, defined = colors.mean_colors()
    if labels is None:
        labels = label_pixels(tessellation, int(width), int(height))

    image = _underlay(labels, means, defined, size)
    draw = ImageDraw.Draw(image)
    seam = _scaled_width(SEAM_WIDTH, output_scale)

    # Pass 1: fills, each followed by a same-color stroke over its seams
    drawn = 0
    for index in np.flatnonzero(defined):
        polygon = tessellation.cell_polygon(int(index))
        if polygon is None:
            continue
        fill = tuple(int(c) for c in means[index]) + (255,)
        points = _to_points(polygon, output_scale)
        draw.polygon(points, fill=fill)
        draw.line(points + [points[0]], fill=fill, width=seam, joint='curve')
        drawn += 1

    # Pass 2: every edge once, on top of all fills
    if draw_borders:
        stroke = _scaled_width(border_width(width, height, len(tessellation)), output_scale)
        outline = tuple(int(c) for c in border_color) + (255,)
        for (x0, y0), (x1, y1) in tessellation.cell_edges():
            draw.line(
                [(x0 * output_scale, y0 * output_scale), (x1 * output_scale, y1 * output_scale)],
                fill=outline,
                width=stroke,
            )

    logger.info(
        f"Rendered {drawn}/{len(tessellation)} cells at {size[0]}x{size[1]} "
        f"(scale={output_scale}, borders={draw_borders})"
    )
    return image
