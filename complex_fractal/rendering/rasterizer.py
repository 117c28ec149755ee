"""
Stateless rasterization of escape-time fractals.

Pixel ``(x, y)`` (integer coordinates, y growing downward) is mapped onto the
complex plane by a transform, evaluated by a fractal and colored by a
palette. These functions keep no state between calls; the incremental drawer
and the one-shot export both build on them.
"""

from concurrent.futures import Executor
from typing import Callable, Optional
import logging
import time

import numpy as np

from ..acceleration.parallel import create_column_chunks, get_optimal_worker_count, map_chunks
from ..core.transform import AffineTransform2D, fit_to_canvas

logger = logging.getLogger(__name__)

ROW_BAND = 16

ProgressCallback = Callable[[int, int], None]


def _chunk_count(pool: Optional[Executor]) -> int:
    if pool is None:
        return 1
    return get_optimal_worker_count()


def render_rows(start: int, stop: int, width: int, transform: AffineTransform2D,
                fractal, palette, pool: Optional[Executor] = None) -> np.ndarray:
    """
    Render rows ``[start, stop)`` of an image ``width`` pixels wide.

    Args:
        start: First row (inclusive)
        stop: Last row (exclusive)
        width: Row width in pixels
        transform: Pixel to complex-plane transform
        fractal: Fractal function with ``evaluate_arrays``
        palette: Palette with ``colors_for``
        pool: Optional executor to spread column chunks over

    Returns:
        uint8 array of shape ``(stop - start, width, 4)``
    """
    out = np.empty((stop - start, width, 4), dtype=np.uint8)
    if stop <= start or width <= 0:
        return out

    ys = np.arange(start, stop, dtype=np.float64)[:, np.newaxis]

    def render_chunk(chunk):
        xs = np.arange(chunk.start, chunk.stop, dtype=np.float64)[np.newaxis, :]
        re, im = transform.apply_arrays(*np.broadcast_arrays(xs, ys))
        iterations = fractal.evaluate_arrays(re, im)
        out[:, chunk.start:chunk.stop] = palette.colors_for(iterations)

    map_chunks(render_chunk, create_column_chunks(width, _chunk_count(pool)), pool)
    return out


def render_line(row: int, width: int, transform: AffineTransform2D, fractal, palette,
                pool: Optional[Executor] = None) -> np.ndarray:
    """Render one scanline; returns a ``(width, 4)`` uint8 array."""
    return render_rows(row, row + 1, width, transform, fractal, palette, pool)[0]


def render_image(image: np.ndarray, transform: AffineTransform2D, fractal, palette,
                 pool: Optional[Executor] = None, cancel_token=None) -> bool:
    """
    Fill every row of ``image`` (``height x width x 4``, uint8) in place.

    Rows are rendered in bands of ROW_BAND; the cancellation token, if any, is
    checked between bands.

    Returns:
        True if the image was completed, False if cancelled
    """
    height, width = image.shape[:2]
    for start in range(0, height, ROW_BAND):
        if cancel_token is not None and cancel_token.cancelled:
            return False
        stop = min(start + ROW_BAND, height)
        image[start:stop] = render_rows(start, stop, width, transform, fractal, palette, pool)
    return True


def render_to_image(width: int, height: int, fractal, palette,
                    transform: AffineTransform2D,
                    cancel_token=None,
                    progress_callback: Optional[ProgressCallback] = None,
                    pool: Optional[Executor] = None) -> Optional[np.ndarray]:
    """
    Render a complete image synchronously, without a preview pass.

    The user ``transform`` is composed after the fit-to-canvas transform of
    the requested size, so the same view renders at any resolution.

    Args:
        width, height: Image size in pixels
        fractal: Fractal function
        palette: Palette
        transform: User transform (pan/zoom/rotate)
        cancel_token: Checked before every row
        progress_callback: Called as ``callback(rows_done, height)`` after every row
        pool: Optional executor for column chunks

    Returns:
        ``height x width x 4`` uint8 RGBA array, or None if cancelled
    """
    full = fit_to_canvas(width, height).add_after(transform)
    image = np.zeros((height, width, 4), dtype=np.uint8)

    logger.info(f"Rendering {width}x{height} image of {fractal.name}")
    start_time = time.time()

    for row in range(height):
        if cancel_token is not None and cancel_token.cancelled:
            logger.info(f"Render cancelled after {row}/{height} rows")
            return None
        image[row] = render_line(row, width, full, fractal, palette, pool)
        if progress_callback is not None:
            progress_callback(row + 1, height)

    logger.info(f"Render complete in {time.time() - start_time:.2f}s")
    return image
