"""Core types for the crystallization pipeline."""
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple
import numpy as np
from PIL import Image

# Type aliases
PixelBuffer = np.ndarray  # (H, W, 4) uint8, RGBA
SeedSet = np.ndarray      # (N, 2) float64, columns x, y
Polygon = np.ndarray      # (K, 2) float64, closed implicitly
Color = Tuple[int, int, int]


class CrystallizeError(Exception):
    """Base exception for crystallization errors."""
    pass


class InvalidParametersError(CrystallizeError, ValueError):
    """Raised when a job is rejected before any work starts."""
    pass


class CrystallizeJobError(CrystallizeError):
    """Terminal failure inside the pipeline. No partial output exists."""
    pass


class IngestError(CrystallizeError):
    """Raised when an image cannot be decoded into a pixel buffer."""
    pass


@dataclass
class RenderOptions:
    """Options for a single crystallization job."""
    # Seed generation
    point_count: int = 5000
    detail_bias: float = 0.0  # 0 = uniform, 1 = edges only
    relaxation_steps: int = 0
    random_seed: Optional[int] = None

    # Reuse a previous layout (skips sampling and relaxation)
    existing_seeds: Optional[SeedSet] = None

    # Display
    draw_borders: bool = False
    border_color: Color = (0, 0, 0)
    output_scale: float = 1.0

    def validate(self) -> None:
        """
        Check option ranges.

        Raises:
            InvalidParametersError: If any option is out of range
        """
        if self.existing_seeds is None and self.point_count <= 0:
            raise InvalidParametersError(
                f"point_count must be positive, got {self.point_count}"
            )
        if not 0.0 <= self.detail_bias <= 1.0:
            raise InvalidParametersError(
                f"detail_bias must be in [0, 1], got {self.detail_bias}"
            )
        if self.relaxation_steps < 0:
            raise InvalidParametersError(
                f"relaxation_steps must be >= 0, got {self.relaxation_steps}"
            )
        if not (math.isfinite(self.output_scale) and self.output_scale > 0):
            raise InvalidParametersError(
                f"output_scale must be finite and > 0, got {self.output_scale}"
            )
        if self.existing_seeds is not None:
            validate_seeds(self.existing_seeds)


@dataclass
class CellColorTable:
    """Running per-cell color sums and pixel counts."""
    r_sum: np.ndarray
    g_sum: np.ndarray
    b_sum: np.ndarray
    counts: np.ndarray

    @classmethod
    def empty(cls, n_cells: int) -> "CellColorTable":
        return cls(
            r_sum=np.zeros(n_cells, dtype=np.float64),
            g_sum=np.zeros(n_cells, dtype=np.float64),
            b_sum=np.zeros(n_cells, dtype=np.float64),
            counts=np.zeros(n_cells, dtype=np.int64),
        )

    def __len__(self) -> int:
        return len(self.counts)

    @property
    def defined(self) -> np.ndarray:
        """Boolean mask of cells covering at least one pixel."""
        return self.counts > 0

    def mean_colors(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Average color per cell.

        Returns:
            Tuple of (colors, defined). colors is (N, 3) uint8 holding
            round(sum / count) per channel; rows where defined is False
            are zero and must not be drawn.
        """
        defined = self.defined
        sums = np.stack([self.r_sum, self.g_sum, self.b_sum], axis=1)
        colors = np.zeros((len(self), 3), dtype=np.uint8)
        if np.any(defined):
            means = sums[defined] / self.counts[defined, None]
            # Half-up rounding; np.round would round .5 to even
            colors[defined] = np.clip(np.floor(means + 0.5), 0, 255).astype(np.uint8)
        return colors, defined


@dataclass
class CrystallizeResult:
    """Rendered layer plus the seed set that produced it."""
    layer: Image.Image
    seeds: SeedSet
    cell_count: int = 0
    relaxed_steps: int = 0
    stats: dict = field(default_factory=dict)


def validate_pixels(pixels: PixelBuffer) -> None:
    """
    Check that a pixel buffer is a non-empty (H, W, 4) uint8 array.

    Raises:
        InvalidParametersError: If the buffer is malformed
    """
    if not isinstance(pixels, np.ndarray):
        raise InvalidParametersError(f"Expected numpy array, got {type(pixels).__name__}")
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise InvalidParametersError(f"Expected (H, W, 4) RGBA array, got shape {pixels.shape}")
    if pixels.dtype != np.uint8:
        raise InvalidParametersError(f"Expected uint8 pixels, got {pixels.dtype}")
    height, width = pixels.shape[:2]
    if width <= 0 or height <= 0:
        raise InvalidParametersError(f"Image dimensions must be positive, got {width}x{height}")


def validate_seeds(seeds: SeedSet) -> None:
    """
    Check that a seed set is a non-empty, finite (N, 2) array.

    Raises:
        InvalidParametersError: If the seed set is malformed
    """
    seeds = np.asarray(seeds)
    if seeds.ndim != 2 or seeds.shape[1] != 2:
        raise InvalidParametersError(f"Expected (N, 2) seed array, got shape {seeds.shape}")
    if len(seeds) == 0:
        raise InvalidParametersError("Seed set is empty")
    if not np.all(np.isfinite(seeds)):
        raise InvalidParametersError("Seed set contains non-finite coordinates")
