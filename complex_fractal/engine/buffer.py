"""Pixel storage and cancellation primitives shared by the render engine."""

import threading
from typing import Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked by render loops between rows."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class PixelBuffer:
    """
    RGBA image of ``height x width`` pixels guarded by a lock.

    Writers replace whole rows or the whole image under the lock; readers take
    copies, so a reader never sees a half-written row.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError("buffer dimensions must be positive")
        self._lock = threading.Lock()
        self._pixels = np.zeros((height, width, 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def write_row(self, row: int, pixels: np.ndarray) -> None:
        with self._lock:
            self._pixels[row] = pixels

    def write_image(self, pixels: np.ndarray) -> None:
        with self._lock:
            self._pixels[...] = pixels

    def snapshot(self) -> np.ndarray:
        """Copy of the whole image."""
        with self._lock:
            return self._pixels.copy()

    def rows(self, start: int, stop: int) -> np.ndarray:
        """Copy of rows ``[start, stop)``."""
        with self._lock:
            return self._pixels[start:stop].copy()
