"""Off-main-process crystallization worker.

Jobs are sent to a single worker process as request objects and come back
as response objects through futures. Each submission gets a sequence
number; callers that fire several jobs can use ``is_current`` to drop
replies that were overtaken by a newer submission. Jobs are never
cancelled or coalesced.
"""
import asyncio
import itertools
import logging
import threading
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from dataclasses import dataclass
from typing import Optional

from crystalize.types import (
    CrystallizeError,
    CrystallizeJobError,
    CrystallizeResult,
    PixelBuffer,
    RenderOptions,
    validate_pixels,
)
from crystalize.job import CrystallizationJob

logger = logging.getLogger(__name__)


@dataclass
class JobRequest:
    """Work sent to the worker process."""
    sequence: int
    pixels: PixelBuffer
    options: RenderOptions


@dataclass
class JobResponse:
    """Reply from the worker process."""
    sequence: int
    result: CrystallizeResult


def _execute(request: JobRequest) -> JobResponse:
    # Runs inside the worker process
    result = CrystallizationJob(request.options).run(request.pixels)
    return JobResponse(sequence=request.sequence, result=result)


class CrystallizationWorker:
    """Runs crystallization jobs one at a time in a separate process."""

    def __init__(self, executor: Optional[Executor] = None):
        """
        Initialize the worker.

        Args:
            executor: Executor to run jobs on. Defaults to a single-process
                ProcessPoolExecutor; the worker shuts it down either way.
        """
        self._executor = executor or ProcessPoolExecutor(max_workers=1)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._latest = 0

    def __enter__(self) -> "CrystallizationWorker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker process; pending jobs finish first when wait is True."""
        self._executor.shutdown(wait=wait)

    @property
    def latest_sequence(self) -> int:
        """Sequence number of the most recent submission (0 before any)."""
        return self._latest

    def submit(self, pixels: PixelBuffer, options: Optional[RenderOptions] = None) -> "Future[JobResponse]":
        """
        Queue a job.

        Parameters are validated here, before anything is sent to the
        worker.

        Args:
            pixels: RGBA pixel buffer (H, W, 4)
            options: Render options (defaults if None)

        Returns:
            Future resolving to a JobResponse. Any failure in the worker
            is raised from ``result()`` as CrystallizeJobError.

        Raises:
            InvalidParametersError: If the job is rejected up front
        """
        options = options or RenderOptions()
        validate_pixels(pixels)
        options.validate()

        with self._lock:
            sequence = next(self._counter)
            self._latest = sequence

        logger.info(f"Submitting crystallization job #{sequence}")
        inner = self._executor.submit(_execute, JobRequest(sequence, pixels, options))

        outer: "Future[JobResponse]" = Future()

        def _relay(done: Future) -> None:
            error = done.exception()
            if error is None:
                outer.set_result(done.result())
            elif isinstance(error, CrystallizeError):
                outer.set_exception(error)
            else:
                logger.error(f"Crystallization job #{sequence} failed in worker: {error}")
                wrapped = CrystallizeJobError(f"Worker failed on job #{sequence}: {error}")
                wrapped.__cause__ = error
                outer.set_exception(wrapped)

        inner.add_done_callback(_relay)
        return outer

    async def run(self, pixels: PixelBuffer, options: Optional[RenderOptions] = None) -> JobResponse:
        """Submit a job and await its response without blocking the event loop."""
        return await asyncio.wrap_future(self.submit(pixels, options))

    def is_current(self, response: JobResponse) -> bool:
        """True if no job was submitted after the one that produced response."""
        return response.sequence == self._latest
