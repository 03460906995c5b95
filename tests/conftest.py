"""Pytest configuration and fixtures."""
import numpy as np
import pytest

from crystalize.raster_ingest import ingest_from_array


def solid_image(width: int, height: int, color=(255, 0, 0)) -> np.ndarray:
    """Opaque single-color RGBA buffer."""
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:] = color
    return ingest_from_array(image)


@pytest.fixture
def make_solid():
    """Factory for solid-color RGBA buffers."""
    return solid_image


@pytest.fixture
def red_2x2():
    """2x2 solid red image."""
    return solid_image(2, 2)


@pytest.fixture
def gradient_image():
    """48x32 image with a horizontal red and vertical blue gradient."""
    h, w = 32, 48
    image = np.zeros((h, w, 3), dtype=np.uint8)
    image[..., 0] = np.linspace(0, 255, w, dtype=np.uint8)[None, :]
    image[..., 2] = np.linspace(0, 255, h, dtype=np.uint8)[:, None]
    return ingest_from_array(image)


@pytest.fixture
def split_image():
    """20x10 image, red in columns 0-9 and blue in columns 10-19."""
    image = np.zeros((10, 20, 3), dtype=np.uint8)
    image[:, :10] = (255, 0, 0)
    image[:, 10:] = (0, 0, 255)
    return ingest_from_array(image)
