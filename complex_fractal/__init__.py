"""
Interactive escape-time fractal rendering.

This library renders Mandelbrot, Julia and power-sum fractals on the complex
plane. An incremental drawer renders in the background, showing a coarse
preview first and refining it row by row, while pan, zoom and rotate gestures
restart it with the new view. A one-shot renderer and a command line tool
produce PNG files.

Example usage:
    >>> from complex_fractal import FractalRenderer, RenderConfig, MandelbrotSet
    >>> renderer = FractalRenderer(RenderConfig(width=640, height=480))
    >>> pixels = renderer.render(MandelbrotSet(), "mandelbrot.png")
"""

__version__ = "1.0.0"
__author__ = "Complex Fractal Team"

from complex_fractal.core.complex_number import ComplexNumber
from complex_fractal.core.transform import AffineTransform2D, Point2D, IDENTITY, fit_to_canvas
from complex_fractal.core.fractal_types import (
    MandelbrotSet, JuliaSet, PowerSumFractal, FractalRegistry, JULIA_PRESETS,
)
from complex_fractal.rendering.coloring import (
    Color, SinusoidalPalette, WrappedSinePalette, PALETTE_PRESETS, create_palette,
)
from complex_fractal.rendering.image_output import ImageExporter, RenderMetadata
from complex_fractal.rendering.rasterizer import render_line, render_image, render_to_image
from complex_fractal.engine.drawer import IncrementalFractalDrawer, DrawerStatus, DrawerEvent
from complex_fractal.engine.presenter import CanvasPresenter, DisplaySurface
from complex_fractal.io.config import ConfigManager

# Main API classes
from complex_fractal.api import FractalRenderer, RenderConfig

__all__ = [
    "FractalRenderer",
    "RenderConfig",
    "ComplexNumber",
    "AffineTransform2D",
    "Point2D",
    "IDENTITY",
    "fit_to_canvas",
    "MandelbrotSet",
    "JuliaSet",
    "PowerSumFractal",
    "FractalRegistry",
    "JULIA_PRESETS",
    "Color",
    "SinusoidalPalette",
    "WrappedSinePalette",
    "PALETTE_PRESETS",
    "create_palette",
    "ImageExporter",
    "RenderMetadata",
    "render_line",
    "render_image",
    "render_to_image",
    "IncrementalFractalDrawer",
    "DrawerStatus",
    "DrawerEvent",
    "CanvasPresenter",
    "DisplaySurface",
    "ConfigManager",
]
