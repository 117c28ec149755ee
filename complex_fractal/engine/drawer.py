"""
Incremental fractal rendering engine.

The drawer owns a pixel buffer and a single background worker. Every setter
that changes the fractal, palette, transform or image size marks the drawer
as changed; the worker then renders a coarse preview followed by the full
image row by row, abandoning the pass as soon as the parameters change again.
Setters never block on the worker.
"""

import enum
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
import logging
import time

import numpy as np

from ..acceleration.parallel import ColumnPool
from ..core.fractal_types import MandelbrotSet
from ..core.transform import IDENTITY, AffineTransform2D, Point2D, fit_to_canvas
from ..rendering import rasterizer
from ..rendering.coloring import SinusoidalPalette
from ..rendering.interpolation import bilinear_resize, preview_size
from .buffer import CancellationToken, PixelBuffer

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_EDGE = 40


class DrawerStatus(enum.Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    RENDERING_STALE = "rendering_stale"


class DrawerEvent(enum.Enum):
    STARTED = "started"
    PREVIEW_READY = "preview_ready"
    FINISHED = "finished"


Listener = Callable[["IncrementalFractalDrawer", DrawerEvent], None]


@dataclass(frozen=True)
class DrawerState:
    """Parameters of one render pass, captured atomically."""
    fractal: object
    palette: object
    transform: AffineTransform2D
    width: int
    height: int

    @property
    def resulting_transform(self) -> AffineTransform2D:
        return fit_to_canvas(self.width, self.height).add_after(self.transform)


class IncrementalFractalDrawer:
    """
    Background renderer producing progressively refined images.

    Example:
        >>> with IncrementalFractalDrawer(320, 240, MandelbrotSet()) as drawer:
        ...     drawer.wait_until_idle()
        ...     pixels = drawer.current_buffer().snapshot()
    """

    def __init__(self, width: int, height: int, fractal=None, palette=None,
                 transform: AffineTransform2D = IDENTITY,
                 preview_edge: int = DEFAULT_PREVIEW_EDGE,
                 column_workers: Optional[int] = 1):
        """
        Create the drawer and start rendering immediately.

        Args:
            width, height: Image size; clamped to at least 1x1
            fractal: Fractal function (default Mandelbrot)
            palette: Palette (default SinusoidalPalette)
            transform: User transform applied after fit-to-canvas
            preview_edge: Short edge of the preview image in pixels
            column_workers: Threads evaluating the columns of a row; None
                means one per CPU
        """
        if preview_edge <= 0:
            raise ValueError("preview_edge must be positive")

        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)

        self._fractal = fractal if fractal is not None else MandelbrotSet()
        self._palette = palette if palette is not None else SinusoidalPalette()
        self._transform = transform
        self._width, self._height = self._clamp_size(width, height)
        self._buffer = PixelBuffer(self._width, self._height)
        self.preview_edge = preview_edge

        self._changed = False
        self._running = False
        self._pass_active = False
        self._closed = False
        self._rows_completed = 0
        self._preview_generation = 0
        self._preview_image: Optional[np.ndarray] = None
        self._future: Optional[Future] = None
        self._worker_thread: Optional[threading.Thread] = None
        self._listeners: List[Listener] = []

        self._token = CancellationToken()
        self._columns = ColumnPool(column_workers)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fractal-drawer")

        logger.info(f"Drawer created: {self._width}x{self._height}, {self._fractal.name}")
        with self._lock:
            self._mark_changed()

    @staticmethod
    def _clamp_size(width: int, height: int) -> Tuple[int, int]:
        return max(1, int(width)), max(1, int(height))

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("drawer is closed")

    def _mark_changed(self) -> None:
        # caller holds self._lock
        self._changed = True
        if not self._running:
            self._running = True
            self._rows_completed = 0
            self._future = self._executor.submit(self._work)

    def _update(self, attr: str, value) -> None:
        with self._lock:
            self._check_open()
            if getattr(self, attr) == value:
                return
            setattr(self, attr, value)
            self._mark_changed()

    # Parameters

    def set_fractal(self, fractal) -> None:
        if fractal is None:
            raise ValueError("fractal is None")
        self._update('_fractal', fractal)

    def set_palette(self, palette) -> None:
        if palette is None:
            raise ValueError("palette is None")
        self._update('_palette', palette)

    def set_transform(self, transform: AffineTransform2D) -> None:
        if transform is None:
            raise ValueError("transform is None")
        self._update('_transform', transform)

    def resize(self, width: int, height: int) -> None:
        """Change the image size; sizes below 1x1 are clamped."""
        width, height = self._clamp_size(width, height)
        with self._lock:
            self._check_open()
            if (width, height) == (self._width, self._height):
                return
            self._width, self._height = width, height
            self._buffer = PixelBuffer(width, height)
            self._rows_completed = 0
            self._mark_changed()

    def get_fractal(self):
        return self._fractal

    def get_palette(self):
        return self._palette

    def get_transform(self) -> AffineTransform2D:
        return self._transform

    @property
    def size(self) -> Tuple[int, int]:
        with self._lock:
            return self._width, self._height

    def resulting_transform(self) -> AffineTransform2D:
        """Pixel to complex-plane transform of the current image."""
        with self._lock:
            return fit_to_canvas(self._width, self._height).add_after(self._transform)

    def center_coordinate(self) -> Point2D:
        """Complex-plane point shown at the center of the image."""
        with self._lock:
            return self.resulting_transform().apply((self._width / 2.0, self._height / 2.0))

    # Navigation

    def pan(self, dx: float, dy: float) -> None:
        """Move the view by a pixel delta, so content follows a drag of (dx, dy)."""
        with self._lock:
            resulting = self.resulting_transform()
            p1 = resulting.apply((0.0, 0.0))
            p2 = resulting.apply((dx, dy))
            self.set_transform(self._transform.translate(p1.x - p2.x, p1.y - p2.y))

    def zoom_at(self, sx: float, sy: float, px: float, py: float) -> None:
        """Scale the plane by (sx, sy) keeping the point under pixel (px, py) fixed."""
        with self._lock:
            center = self.resulting_transform().apply((px, py))
            self.set_transform(self._transform.scale_about(sx, sy, center))

    def rotate_around_center(self, angle: float) -> None:
        with self._lock:
            self.set_transform(self._transform.rotate_about(angle, self.center_coordinate()))

    def reset_view(self) -> None:
        self.set_transform(IDENTITY)

    # Observable state

    def status(self) -> DrawerStatus:
        with self._lock:
            if not self._running:
                return DrawerStatus.IDLE
            if self._pass_active and self._changed:
                return DrawerStatus.RENDERING_STALE
            return DrawerStatus.RENDERING

    def is_rendering(self) -> bool:
        return self._running

    def rows_completed(self) -> int:
        return self._rows_completed

    def progress(self) -> float:
        with self._lock:
            return self._rows_completed / self._height

    def current_buffer(self) -> PixelBuffer:
        return self._buffer

    def preview_generation(self) -> int:
        """Counter incremented every time a preview is written to the buffer."""
        return self._preview_generation

    def preview_image(self) -> Optional[np.ndarray]:
        """The low resolution image of the latest preview, if any."""
        return self._preview_image

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the worker has finished rendering the current parameters.

        Returns:
            False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._running, timeout)

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def _notify(self, event: DrawerEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self, event)
            except Exception as e:
                logger.warning(f"Drawer listener failed on {event.value}: {e}")

    def render_to_image(self, width: int, height: int, fractal=None, palette=None,
                        transform: Optional[AffineTransform2D] = None,
                        cancel_token: Optional[CancellationToken] = None,
                        progress_callback=None) -> Optional[np.ndarray]:
        """
        Synchronous one-shot render, independent of the background worker.

        Parameters not given are taken from the drawer's current values.
        """
        with self._lock:
            self._check_open()
            fractal = fractal if fractal is not None else self._fractal
            palette = palette if palette is not None else self._palette
            transform = transform if transform is not None else self._transform
        return rasterizer.render_to_image(width, height, fractal, palette, transform,
                                          cancel_token=cancel_token,
                                          progress_callback=progress_callback,
                                          pool=self._columns.executor)

    # Worker

    def _is_stale(self) -> bool:
        # caller holds self._lock
        return self._changed or self._closed or self._token.cancelled

    def _work(self) -> None:
        self._worker_thread = threading.current_thread()
        try:
            while True:
                with self._lock:
                    if self._closed:
                        self._finish()
                        return
                    state = DrawerState(self._fractal, self._palette, self._transform,
                                        self._width, self._height)
                    self._changed = False
                    self._rows_completed = 0
                    self._pass_active = True

                logger.debug(f"Render pass started: {state.width}x{state.height}")
                self._notify(DrawerEvent.STARTED)
                start_time = time.time()
                completed = self._render_pass(state)

                with self._lock:
                    if self._closed or (completed and not self._changed):
                        self._finish()
                        break
                logger.debug("Render pass abandoned, parameters changed")

            if completed:
                logger.info(f"Render finished in {time.time() - start_time:.2f}s")
                self._notify(DrawerEvent.FINISHED)
        except Exception:
            logger.exception("Render worker failed")
            with self._lock:
                self._finish()
            raise

    def _finish(self) -> None:
        # caller holds self._lock
        self._running = False
        self._pass_active = False
        self._idle.notify_all()

    def _render_pass(self, state: DrawerState) -> bool:
        """Render preview and full image; returns False if the pass went stale."""
        pool = self._columns.executor

        pw, ph = preview_size(state.width, state.height, self.preview_edge)
        preview = np.zeros((ph, pw, 4), dtype=np.uint8)
        preview_transform = fit_to_canvas(pw, ph).add_after(state.transform)
        if not rasterizer.render_image(preview, preview_transform, state.fractal,
                                       state.palette, pool, self._token):
            return False
        upscaled = bilinear_resize(preview, state.width, state.height)

        with self._lock:
            if self._is_stale():
                return False
            self._buffer.write_image(upscaled)
            self._preview_image = preview
            self._preview_generation += 1
        self._notify(DrawerEvent.PREVIEW_READY)

        resulting = state.resulting_transform
        for row in range(state.height):
            with self._lock:
                if self._is_stale():
                    return False
            line = rasterizer.render_line(row, state.width, resulting, state.fractal,
                                          state.palette, pool)
            with self._lock:
                if self._is_stale():
                    return False
                self._buffer.write_row(row, line)
                self._rows_completed = row + 1
        return True

    # Lifecycle

    def close(self) -> None:
        """Stop the worker and wait for it to exit. The drawer is unusable afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._token.cancel()
        # a listener closing the drawer runs on the worker, which cannot join itself
        on_worker = threading.current_thread() is self._worker_thread
        self._executor.shutdown(wait=not on_worker)
        self._columns.shutdown()
        logger.info("Drawer closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
