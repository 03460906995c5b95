"""Bounded Voronoi tessellation over a seed set.

Wraps scipy's Qhull Voronoi construction. Four far-away frame points are
added so that every real cell is a finite convex polygon, which is then
clipped to the image rectangle with shapely. Point location uses a
KD-tree over the seeds: the nearest seed owns the point by definition of
the Voronoi diagram.

Coincident seeds share one site: the first occurrence owns the cell and
every later copy is degenerate.
"""
import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np
from scipy.spatial import Voronoi, cKDTree
from shapely.geometry import LineString, box
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient

from crystalize.types import SeedSet, Polygon

logger = logging.getLogger(__name__)

# Frame points sit this many extents away from everything else
FRAME_MARGIN = 10.0


def _frame_points(seeds: np.ndarray, width: float, height: float) -> np.ndarray:
    """Corner points enclosing the seeds and the clip rectangle."""
    lo = np.minimum(seeds.min(axis=0), [0.0, 0.0])
    hi = np.maximum(seeds.max(axis=0), [width, height])
    span = max(float(np.max(hi - lo)), 1.0)
    lo = lo - FRAME_MARGIN * span
    hi = hi + FRAME_MARGIN * span
    return np.array([
        [lo[0], lo[1]],
        [hi[0], lo[1]],
        [hi[0], hi[1]],
        [lo[0], hi[1]],
    ])


def _order_convex(vertices: np.ndarray) -> np.ndarray:
    """Sort the vertices of a convex polygon counter-clockwise."""
    center = vertices.mean(axis=0)
    angles = np.arctan2(vertices[:, 1] - center[1], vertices[:, 0] - center[0])
    return vertices[np.argsort(angles)]


class Tessellation:
    """Read-only Voronoi diagram of a seed set clipped to [0, W] x [0, H]."""

    def __init__(self, seeds: SeedSet, width: float, height: float):
        seeds = np.array(seeds, dtype=np.float64)
        seeds.setflags(write=False)

        self.seeds = seeds
        self.width = width
        self.height = height
        self.bounds = box(0.0, 0.0, float(width), float(height))

        # Distinct sites, each mapped back to its first seed index
        _, first, inverse = np.unique(seeds, axis=0, return_index=True, return_inverse=True)
        self._sites = np.asarray(first, dtype=np.int64)
        self._canonical = self._sites[np.asarray(inverse).reshape(-1)]
        sites = seeds[self._sites]

        frame = _frame_points(seeds, width, height)
        self._voronoi = Voronoi(np.vstack([sites, frame]))
        self._tree = cKDTree(sites)

        self._polygons: List[Optional[Polygon]] = [None] * len(seeds)
        for site, index in enumerate(self._sites):
            self._polygons[index] = self._clip_cell(site)

        duplicates = len(seeds) - len(sites)
        if duplicates:
            logger.debug(f"Tessellation merged {duplicates} duplicate seeds")

        degenerate = sum(1 for p in self._polygons if p is None)
        if degenerate:
            logger.debug(f"Tessellation has {degenerate} degenerate cells")

    def __len__(self) -> int:
        return len(self.seeds)

    def _clip_cell(self, site: int) -> Optional[Polygon]:
        vor = self._voronoi
        region_index = vor.point_region[site]
        if region_index < 0 or region_index >= len(vor.regions):
            return None

        region = vor.regions[region_index]
        if len(region) < 3 or -1 in region:
            return None

        cell = ShapelyPolygon(_order_convex(vor.vertices[region]))
        clipped = cell.intersection(self.bounds)
        if clipped.is_empty or clipped.geom_type != 'Polygon' or clipped.area <= 0:
            return None

        coords = np.asarray(orient(clipped, sign=1.0).exterior.coords)
        # shapely repeats the first vertex at the end
        return coords[:-1]

    def cell_polygon(self, index: int) -> Optional[Polygon]:
        """
        Clipped boundary polygon of a cell.

        Args:
            index: Cell (seed) index

        Returns:
            (K, 2) counter-clockwise vertex loop, or None if the cell is
            degenerate (outside the rectangle or a later copy of a
            duplicate seed)
        """
        return self._polygons[index]

    def cell_polygons(self) -> List[Optional[Polygon]]:
        """Clipped polygons for every cell, indexed like the seeds."""
        return list(self._polygons)

    def cell_edges(self) -> Iterator[Tuple[Tuple[float, float], Tuple[float, float]]]:
        """
        Yield every interior cell edge once, clipped to the rectangle.

        Edges are Voronoi ridges between two seeds; the rectangle outline
        itself is not included.
        """
        vor = self._voronoi
        for ridge in vor.ridge_vertices:
            if -1 in ridge:
                continue
            segment = LineString(vor.vertices[ridge])
            clipped = segment.intersection(self.bounds)
            if clipped.is_empty or clipped.geom_type != 'LineString' or clipped.length <= 0:
                continue
            (x0, y0), (x1, y1) = list(clipped.coords)[:2]
            yield (x0, y0), (x1, y1)

    def find(self, x: float, y: float, hint: Optional[int] = None) -> int:
        """
        Index of the cell containing (x, y).

        Args:
            x: X coordinate
            y: Y coordinate
            hint: Previously found cell; returned when it is at least as
                close as the nearest seed, so sequential scans stay on
                the same cell across ties

        Returns:
            Cell index (the first occurrence for duplicated seeds)
        """
        distance, site = self._tree.query((x, y))
        if hint is not None and 0 <= hint < len(self.seeds):
            hint = int(self._canonical[hint])
            hx, hy = self.seeds[hint]
            if np.hypot(hx - x, hy - y) <= distance:
                return hint
        return int(self._sites[site])

    def find_many(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorized point location for arrays of coordinates."""
        coords = np.column_stack([np.ravel(xs), np.ravel(ys)]).astype(np.float64)
        _, sites = self._tree.query(coords)
        return self._sites[np.asarray(sites, dtype=np.int64)]


def build_tessellation(seeds: SeedSet, width: float, height: float) -> Tessellation:
    """Build the bounded Voronoi tessellation of a seed set."""
    return Tessellation(seeds, width, height)
