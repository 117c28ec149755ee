"""
Main API classes for fractal generation.

This module provides the high-level interface: a RenderConfig describing
image size, iteration limits, palette and view, and a FractalRenderer that
turns a fractal into pixels or a PNG file and builds interactive drawers
with the same settings.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import logging
import time

import numpy as np

from .acceleration.parallel import ColumnPool
from .core.fractal_types import EscapeTimeFractal, FractalRegistry
from .core.transform import AffineTransform2D, view_transform
from .engine.buffer import CancellationToken
from .engine.drawer import DEFAULT_PREVIEW_EDGE, IncrementalFractalDrawer
from .rendering import rasterizer
from .rendering.coloring import IterativePalette, create_palette
from .rendering.image_output import ImageExporter, RenderMetadata

logger = logging.getLogger(__name__)


@dataclass
class RenderConfig:
    """Configuration for fractal rendering."""

    # Image parameters
    width: int = 800
    height: int = 600

    # Fractal parameters
    max_iterations: int = 1024
    escape_radius: float = 2.0

    # Coloring
    palette: str = 'default'
    palette_params: Dict[str, Any] = field(default_factory=dict)

    # View: plane point at the image center, magnification, rotation in degrees
    center: Tuple[float, float] = (0.0, 0.0)
    zoom: float = 1.0
    rotation: float = 0.0

    # Performance
    num_workers: Optional[int] = None
    preview_edge: int = DEFAULT_PREVIEW_EDGE

    # Output
    save_metadata: bool = True
    make_dirs: bool = False

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Width and height must be positive")

        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")

        if self.escape_radius <= 0:
            raise ValueError("escape_radius must be positive")

        if len(self.center) != 2:
            raise ValueError("center must be (x, y)")

        if not self.zoom > 0:
            raise ValueError("zoom must be positive")

        if self.num_workers is not None and self.num_workers <= 0:
            raise ValueError("num_workers must be positive")

        if self.preview_edge <= 0:
            raise ValueError("preview_edge must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderConfig':
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration parameter(s): {', '.join(sorted(unknown))}")
        values = dict(data)
        if 'center' in values:
            values['center'] = tuple(values['center'])
        return cls(**values)


class FractalRenderer:
    """One-shot fractal rendering driven by a RenderConfig."""

    def __init__(self, config: Optional[RenderConfig] = None,
                 exporter: Optional[ImageExporter] = None):
        """
        Initialize fractal renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
            exporter: PNG writer (a default ImageExporter if None)
        """
        self.config = config or RenderConfig()
        self.config.validate()
        self.image_exporter = exporter or ImageExporter()

        logger.info(f"FractalRenderer initialized: {self.config.width}x{self.config.height}")

    def create_fractal(self, name: str, **params) -> EscapeTimeFractal:
        """Create a fractal using the configured iteration limit and escape radius."""
        params.setdefault('max_iterations', self.config.max_iterations)
        params.setdefault('escape_radius', self.config.escape_radius)
        return FractalRegistry.create_fractal(name, **params)

    def create_palette(self) -> IterativePalette:
        return create_palette(self.config.palette, **self.config.palette_params)

    def create_transform(self) -> AffineTransform2D:
        """User transform for the configured center, zoom and rotation."""
        return view_transform(self.config.center, self.config.zoom,
                              math.radians(self.config.rotation))

    def render(self, fractal: EscapeTimeFractal, output_path: Optional[Union[str, Path]] = None,
               progress_callback=None,
               cancel_token: Optional[CancellationToken] = None) -> Optional[np.ndarray]:
        """
        Render fractal to image.

        Args:
            fractal: Fractal to render
            output_path: Optional PNG output path
            progress_callback: Called as ``callback(rows_done, total_rows)``
            cancel_token: Stops the render between rows when cancelled

        Returns:
            RGBA uint8 image array, or None if cancelled
        """
        start_time = time.time()
        logger.info(f"Starting render: {fractal.name} fractal")

        palette = self.create_palette()
        transform = self.create_transform()

        with ColumnPool(self.config.num_workers) as pool:
            pixels = rasterizer.render_to_image(
                self.config.width, self.config.height, fractal, palette, transform,
                cancel_token=cancel_token,
                progress_callback=progress_callback,
                pool=pool.executor,
            )

        if pixels is None:
            return None

        render_time = time.time() - start_time
        if output_path:
            self._save_image(pixels, output_path, render_time, fractal, palette, transform)

        logger.info(f"Render complete: {render_time:.2f}s")
        return pixels

    def _save_image(self, pixels: np.ndarray, output_path: Union[str, Path], render_time: float,
                    fractal: EscapeTimeFractal, palette: IterativePalette,
                    transform: AffineTransform2D) -> Path:
        """Save rendered image with metadata."""
        metadata = None
        if self.config.save_metadata:
            metadata = RenderMetadata.for_render(fractal, palette, transform,
                                                 self.config.width, self.config.height,
                                                 render_time)
        return self.image_exporter.save_png(pixels, output_path, metadata,
                                            make_dirs=self.config.make_dirs)

    def create_drawer(self, fractal: EscapeTimeFractal) -> IncrementalFractalDrawer:
        """Start an incremental drawer showing ``fractal`` with the configured view."""
        return IncrementalFractalDrawer(
            self.config.width, self.config.height, fractal,
            palette=self.create_palette(),
            transform=self.create_transform(),
            preview_edge=self.config.preview_edge,
            column_workers=self.config.num_workers,
        )

    def update_config(self, **kwargs):
        """Update rendering configuration."""
        for key, value in kwargs.items():
            if hasattr(self.config, key):
                setattr(self.config, key, value)
            else:
                raise ValueError(f"Unknown configuration parameter: {key}")

        self.config.validate()
