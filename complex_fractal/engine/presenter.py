"""
Frame-rate capped presentation of an incremental drawer.

The presenter is the bridge between the drawer and whatever displays its
pixels. It never writes to the drawer's buffer; it copies the parts that
changed since the last frame onto a DisplaySurface, and translates gestures
into transform updates on the drawer.
"""

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union
import logging
import time

import numpy as np

from ..acceleration.parallel import ColumnPool
from ..rendering import rasterizer
from ..rendering.image_output import ImageExporter, RenderMetadata
from .buffer import CancellationToken
from .drawer import IncrementalFractalDrawer

logger = logging.getLogger(__name__)

DEFAULT_FPS = 24.0


class DisplaySurface(ABC):
    """Target a presenter paints on, implemented by the hosting toolkit."""

    @abstractmethod
    def draw_image(self, pixels: np.ndarray) -> None:
        """Replace the whole displayed image with ``pixels`` (h x w x 4 uint8)."""

    @abstractmethod
    def draw_rows(self, start_row: int, pixels: np.ndarray) -> None:
        """Paint ``pixels`` over the rows starting at ``start_row``."""

    def set_busy(self, busy: bool) -> None:
        """Show or hide a work indicator."""


class CanvasPresenter:
    """Repaints a DisplaySurface from a drawer at a capped frame rate."""

    def __init__(self, drawer: IncrementalFractalDrawer, surface: DisplaySurface,
                 exporter: Optional[ImageExporter] = None, fps: float = DEFAULT_FPS,
                 export_workers: Optional[int] = None):
        """
        Args:
            drawer: Drawer to present; not owned by the presenter
            surface: Where frames are painted
            exporter: PNG writer used by export(); a default one if None
            fps: Maximum frames per second
            export_workers: Threads evaluating the columns of an exported
                image; None means one per CPU
        """
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.drawer = drawer
        self.surface = surface
        self.exporter = exporter if exporter is not None else ImageExporter()
        self.frame_interval = 1.0 / fps
        self.export_workers = export_workers

        self._last_frame: Optional[float] = None
        self._shown_generation = 0
        self._shown_rows = 0
        self._shown_size = None
        self._busy: Optional[bool] = None

        self._loop_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self._export_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fractal-export")
        self._export_token: Optional[CancellationToken] = None

    # Frames

    def tick(self, now: Optional[float] = None) -> bool:
        """
        Paint one frame unless the previous one was less than a frame ago.

        Args:
            now: Monotonic time in seconds; time.monotonic() if None

        Returns:
            True if anything was painted
        """
        if now is None:
            now = time.monotonic()
        if self._last_frame is not None and now - self._last_frame < self.frame_interval:
            return False
        self._last_frame = now

        drawer = self.drawer
        busy = drawer.is_rendering()
        generation = drawer.preview_generation()
        rows = drawer.rows_completed()
        buffer = drawer.current_buffer()

        painted = False
        if generation != self._shown_generation or buffer.size != self._shown_size:
            self.surface.draw_image(buffer.snapshot())
            self._shown_generation = generation
            self._shown_size = buffer.size
            self._shown_rows = rows
            painted = True
        elif rows < self._shown_rows:
            # a new pass started and has not produced its preview yet
            self._shown_rows = 0
        elif rows > self._shown_rows:
            self.surface.draw_rows(self._shown_rows, buffer.rows(self._shown_rows, rows))
            self._shown_rows = rows
            painted = True

        if busy != self._busy:
            self.surface.set_busy(busy)
            self._busy = busy
        return painted

    def start(self) -> None:
        """Run tick() on a daemon thread until stop()."""
        if self._loop_thread is not None:
            return
        self._stop_event.clear()
        self._loop_thread = threading.Thread(target=self._loop, name="fractal-presenter", daemon=True)
        self._loop_thread.start()

    def _loop(self) -> None:
        while not self._stop_event.wait(self.frame_interval):
            self.tick()

    def stop(self) -> None:
        if self._loop_thread is None:
            return
        self._stop_event.set()
        self._loop_thread.join()
        self._loop_thread = None

    # Gestures

    def pan(self, dx: float, dy: float) -> None:
        self.drawer.pan(dx, dy)

    def zoom(self, sx: float, sy: float, px: float, py: float) -> None:
        self.drawer.zoom_at(sx, sy, px, py)

    def rotate(self, angle: float) -> None:
        self.drawer.rotate_around_center(angle)

    def reset_view(self) -> None:
        self.drawer.reset_view()

    # Export

    def export(self, path: Union[str, Path], width: int, height: int,
               make_dirs: bool = False) -> Future:
        """
        Render the current view at ``width x height`` and save it as PNG.

        The render runs on a background thread. The returned future resolves
        to the written path, or to None if the export was cancelled; write
        errors are raised from ``future.result()``.
        """
        if width <= 0 or height <= 0:
            raise ValueError("export size must be positive")
        fractal = self.drawer.get_fractal()
        palette = self.drawer.get_palette()
        transform = self.drawer.get_transform()
        token = CancellationToken()
        self._export_token = token

        def run():
            start_time = time.time()
            with ColumnPool(self.export_workers) as pool:
                pixels = rasterizer.render_to_image(width, height, fractal, palette, transform,
                                                    cancel_token=token, pool=pool.executor)
            if pixels is None:
                logger.info(f"Export to {path} cancelled")
                return None
            metadata = RenderMetadata.for_render(fractal, palette, transform, width, height,
                                                 time.time() - start_time)
            return self.exporter.save_png(pixels, path, metadata, make_dirs=make_dirs)

        logger.info(f"Exporting {width}x{height} image to {path}")
        return self._export_executor.submit(run)

    def cancel_export(self) -> None:
        if self._export_token is not None:
            self._export_token.cancel()

    def close(self) -> None:
        """Stop the frame loop and any export; the drawer is left open."""
        self.stop()
        self.cancel_export()
        self._export_executor.shutdown(wait=True)
