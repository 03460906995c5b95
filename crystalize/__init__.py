"""Crystal mosaic package: Voronoi stylization of raster images."""
from crystalize.types import (
    RenderOptions,
    CellColorTable,
    CrystallizeResult,
    CrystallizeError,
    InvalidParametersError,
    CrystallizeJobError,
    IngestError,
)
from crystalize.raster_ingest import ingest, ingest_from_array, ingest_image
from crystalize.sampling import sample_seeds
from crystalize.tessellation import Tessellation, build_tessellation
from crystalize.relaxation import relax_seeds, polygon_centroid
from crystalize.aggregation import aggregate_colors
from crystalize.renderer import render_mosaic
from crystalize.job import CrystallizationJob, crystallize
from crystalize.worker import CrystallizationWorker, JobRequest, JobResponse
from crystalize.compositor import render_composite
from crystalize.exporter import export_batch
from crystalize.seed_store import save_seeds, load_seeds

__version__ = "0.1.0"

__all__ = [
    "RenderOptions",
    "CellColorTable",
    "CrystallizeResult",
    "CrystallizeError",
    "InvalidParametersError",
    "CrystallizeJobError",
    "IngestError",
    "ingest",
    "ingest_from_array",
    "ingest_image",
    "sample_seeds",
    "Tessellation",
    "build_tessellation",
    "relax_seeds",
    "polygon_centroid",
    "aggregate_colors",
    "render_mosaic",
    "CrystallizationJob",
    "crystallize",
    "CrystallizationWorker",
    "JobRequest",
    "JobResponse",
    "render_composite",
    "export_batch",
    "save_seeds",
    "load_seeds",
]
