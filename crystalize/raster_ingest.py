"""Raster image ingestion into read-only RGBA pixel buffers."""
from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image
from PIL import ImageOps

from crystalize.types import PixelBuffer, IngestError, InvalidParametersError


def _freeze(pixels: np.ndarray) -> PixelBuffer:
    pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
    pixels.setflags(write=False)
    return pixels


def ingest(path: Union[str, Path]) -> PixelBuffer:
    """
    Ingest a raster image file.

    Loads the image, applies its EXIF orientation and converts it to an
    RGBA pixel buffer.

    Args:
        path: Path to image file

    Returns:
        Read-only (H, W, 4) uint8 array

    Raises:
        FileNotFoundError: If file doesn't exist
        IngestError: If file cannot be loaded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise IngestError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            # Apply EXIF orientation transformation to handle rotation
            img = ImageOps.exif_transpose(img)
            if img.mode != 'RGBA':
                img = img.convert('RGBA')
            return _freeze(np.array(img))

    except (IOError, OSError) as e:
        raise IngestError(f"Failed to load image {path}: {e}") from e


def ingest_image(image: Image.Image) -> PixelBuffer:
    """Convert an already opened PIL image into a pixel buffer."""
    if image.mode != 'RGBA':
        image = image.convert('RGBA')
    return _freeze(np.array(image))


def ingest_from_array(image: np.ndarray) -> PixelBuffer:
    """
    Create a pixel buffer from a numpy array.

    Args:
        image: Image array (H, W), (H, W, 3) or (H, W, 4). Float arrays
            with max <= 1.0 are treated as normalized.

    Returns:
        Read-only (H, W, 4) uint8 array
    """
    image = np.asarray(image)

    if image.ndim == 2:
        # Grayscale - convert to RGB
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise InvalidParametersError(f"Expected 3D array, got {image.ndim}D")

    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidParametersError(f"Image dimensions must be positive, got shape {image.shape}")

    if image.dtype != np.uint8:
        image = image.astype(np.float64)
        if image.size and image.max() <= 1.0:
            image = image * 255.0
        image = np.clip(np.round(image), 0, 255).astype(np.uint8)

    if image.shape[2] == 3:
        alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
        image = np.concatenate([image, alpha], axis=-1)
    elif image.shape[2] != 4:
        raise InvalidParametersError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    return _freeze(image)


def pixels_to_image(pixels: PixelBuffer) -> Image.Image:
    """Wrap a pixel buffer as an RGBA PIL image (copies the data)."""
    return Image.fromarray(np.array(pixels, dtype=np.uint8))
