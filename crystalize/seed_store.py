"""Seed set persistence."""
import logging
from pathlib import Path
from typing import Union
import numpy as np

from crystalize.types import SeedSet, IngestError, validate_seeds

logger = logging.getLogger(__name__)


def save_seeds(path: Union[str, Path], seeds: SeedSet) -> Path:
    """
    Write a seed set to a .npy file.

    Coordinates are stored as float64 so a replay reproduces the exact
    tessellation.
    """
    path = Path(path)
    if path.suffix != '.npy':
        path = path.with_suffix('.npy')
    validate_seeds(seeds)
    np.save(path, np.asarray(seeds, dtype=np.float64), allow_pickle=False)
    logger.info(f"Saved {len(seeds)} seeds to {path}")
    return path


def load_seeds(path: Union[str, Path]) -> SeedSet:
    """
    Read a seed set written by save_seeds.

    Raises:
        FileNotFoundError: If file doesn't exist
        IngestError: If the file is not a valid seed array
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    try:
        seeds = np.load(path, allow_pickle=False)
    except (IOError, OSError, ValueError) as e:
        raise IngestError(f"Failed to load seeds from {path}: {e}") from e

    validate_seeds(seeds)
    return seeds.astype(np.float64, copy=False)
