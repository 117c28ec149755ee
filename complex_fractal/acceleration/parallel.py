"""
Thread pool helpers for parallel scanline evaluation.

A scanline is split into column chunks that are evaluated independently and
written back in place, so the result does not depend on whether a pool is
used or how many workers it has. numpy releases the GIL inside its array
kernels, which lets the chunks of one row run concurrently on threads.
"""

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_MIN_CHUNK = 64


@dataclass(frozen=True)
class ColumnChunk:
    """A contiguous range of columns ``[start, stop)`` within a row."""
    chunk_id: int
    start: int
    stop: int

    @property
    def width(self) -> int:
        return self.stop - self.start


def get_optimal_worker_count(requested: Optional[int] = None) -> int:
    """
    Number of worker threads to use for column evaluation.

    Args:
        requested: Explicit worker count; None means one per CPU

    Returns:
        A positive worker count
    """
    if requested is not None:
        if requested <= 0:
            raise ValueError("worker count must be positive")
        return requested
    return max(1, os.cpu_count() or 1)


def create_column_chunks(width: int, num_chunks: int,
                         min_chunk: int = DEFAULT_MIN_CHUNK) -> List[ColumnChunk]:
    """
    Split ``width`` columns into at most ``num_chunks`` contiguous chunks.

    Chunks are never narrower than ``min_chunk`` columns (except a row that is
    narrower than that altogether), so small rows are not scattered over the
    pool for no gain.

    Args:
        width: Row width in pixels
        num_chunks: Upper bound on the number of chunks
        min_chunk: Minimum chunk width

    Returns:
        Chunks covering ``[0, width)`` in order
    """
    if width <= 0:
        return []
    num_chunks = max(1, min(num_chunks, width // max(1, min_chunk)))
    base, extra = divmod(width, num_chunks)

    chunks = []
    start = 0
    for chunk_id in range(num_chunks):
        stop = start + base + (1 if chunk_id < extra else 0)
        chunks.append(ColumnChunk(chunk_id, start, stop))
        start = stop
    return chunks


def map_chunks(func: Callable[[ColumnChunk], None], chunks: List[ColumnChunk],
               pool: Optional[Executor] = None) -> None:
    """
    Run ``func`` for every chunk, on ``pool`` when one is given.

    Blocks until all chunks are done; the first exception raised by a chunk
    propagates to the caller.
    """
    if pool is None or len(chunks) <= 1:
        for chunk in chunks:
            func(chunk)
        return

    futures = [pool.submit(func, chunk) for chunk in chunks]
    for future in futures:
        future.result()


class ColumnPool:
    """
    Owned thread pool sized for column evaluation.

    Usable as a context manager; ``executor`` is what the rasterizer takes as
    its ``pool`` argument. With a single worker no pool is created at all.
    """

    def __init__(self, num_workers: Optional[int] = None):
        self.num_workers = get_optimal_worker_count(num_workers)
        self._executor = None
        if self.num_workers > 1:
            self._executor = ThreadPoolExecutor(max_workers=self.num_workers,
                                                thread_name_prefix="fractal-columns")
        logger.debug(f"Column pool: {self.num_workers} workers")

    @property
    def executor(self) -> Optional[Executor]:
        return self._executor

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
