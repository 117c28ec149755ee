"""Bilinear upscaling of low resolution preview images."""

from typing import Tuple
import logging

import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)


def preview_size(width: int, height: int, short_edge: int) -> Tuple[int, int]:
    """
    Size of a preview whose shorter side is ``short_edge`` pixels.

    The aspect ratio of ``width x height`` is kept; neither side is larger
    than the full image nor smaller than one pixel.
    """
    if width <= height:
        pw = min(width, short_edge)
        ph = round(height * pw / width)
    else:
        ph = min(height, short_edge)
        pw = round(width * ph / height)
    return max(1, min(width, pw)), max(1, min(height, ph))


def bilinear_resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resize an RGBA image to ``width x height`` with bilinear interpolation.

    Corner pixels of the source map onto corner pixels of the result.

    Args:
        image: ``h x w x 4`` uint8 array
        width, height: Target size

    Returns:
        ``height x width x 4`` uint8 array
    """
    src_h, src_w = image.shape[:2]
    if (src_w, src_h) == (width, height):
        return image.copy()

    zoom = (height / src_h, width / src_w, 1)
    resized = ndimage.zoom(image.astype(np.float64), zoom, order=1,
                           mode='nearest', grid_mode=False)

    # ndimage rounds the output shape; enforce the exact target
    resized = resized[:height, :width]
    if resized.shape[:2] != (height, width):
        pad_h = height - resized.shape[0]
        pad_w = width - resized.shape[1]
        resized = np.pad(resized, ((0, pad_h), (0, pad_w), (0, 0)), mode='edge')

    return np.clip(np.rint(resized), 0, 255).astype(np.uint8)
