"""
PNG export of rendered fractals.

This module writes RGBA pixel buffers to PNG files with Pillow and embeds the
render parameters as PNG text chunks so an image can be traced back to the
view that produced it.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from PIL import Image, PngImagePlugin

from .. import __version__

logger = logging.getLogger(__name__)

METADATA_KEY = "FractalMetadata"


@dataclass
class RenderMetadata:
    """Metadata for fractal renders."""

    # Fractal parameters
    fractal_type: str
    resolution: Tuple[int, int]  # width, height
    max_iterations: int
    escape_radius: float
    fractal_parameters: Dict[str, Any] = field(default_factory=dict)

    # View and coloring
    transform: List[float] = field(default_factory=list)  # row-major 3x3
    palette: Dict[str, Any] = field(default_factory=dict)

    # Timing and generation info
    render_time_seconds: float = 0.0
    timestamp: str = ""
    software_version: str = __version__

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.resolution = tuple(self.resolution)

    @classmethod
    def for_render(cls, fractal, palette, transform, width: int, height: int,
                   render_time_seconds: float = 0.0) -> 'RenderMetadata':
        """Collect metadata describing one render."""
        params = fractal.to_dict()
        params.pop('type', None)
        max_iterations = params.pop('max_iterations')
        escape_radius = params.pop('escape_radius')
        return cls(
            fractal_type=fractal.name,
            resolution=(width, height),
            max_iterations=max_iterations,
            escape_radius=escape_radius,
            fractal_parameters=params,
            transform=list(transform.matrix),
            palette=palette.to_dict(),
            render_time_seconds=render_time_seconds,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """PNG writer for RGBA pixel buffers."""

    def __init__(self, compress_level: int = 6):
        """
        Initialize image exporter.

        Args:
            compress_level: zlib level from 0 (none) to 9 (max)
        """
        if not 0 <= compress_level <= 9:
            raise ValueError("compress_level must be between 0 and 9")
        self.compress_level = compress_level

    def save_png(self, pixels: np.ndarray, filepath: Union[str, Path],
                 metadata: Optional[RenderMetadata] = None,
                 make_dirs: bool = False) -> Path:
        """
        Save an RGBA pixel buffer as PNG.

        The file is written as given: no overwrite checks are made and parent
        directories are created only when ``make_dirs`` is set. I/O errors
        propagate to the caller.

        Args:
            pixels: ``height x width x 4`` (or ``x 3``) uint8 array
            filepath: Output file path
            metadata: Render metadata to embed as text chunks
            make_dirs: Create missing parent directories

        Returns:
            Path of the written file
        """
        filepath = Path(filepath)
        pixels = self._prepare_image_array(pixels)
        pil_image = Image.fromarray(pixels)

        pnginfo = PngImagePlugin.PngInfo()
        if metadata:
            pnginfo.add_text("Title", f"Fractal: {metadata.fractal_type}")
            pnginfo.add_text("Software", f"complex-fractal v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text(METADATA_KEY, metadata.to_json())

        if make_dirs:
            filepath.parent.mkdir(parents=True, exist_ok=True)

        pil_image.save(filepath, "PNG", pnginfo=pnginfo, compress_level=self.compress_level)
        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image_array: np.ndarray) -> np.ndarray:
        """Validate the shape and convert to 8-bit."""
        image_array = np.asarray(image_array)
        if image_array.ndim != 3 or image_array.shape[2] not in (3, 4):
            raise ValueError(f"Expected RGBA image array (H, W, 4), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            if np.issubdtype(image_array.dtype, np.floating):
                image_array = (np.clip(image_array, 0.0, 1.0) * 255).round().astype(np.uint8)
            else:
                image_array = np.clip(image_array, 0, 255).astype(np.uint8)
        return np.ascontiguousarray(image_array)

    def load_png(self, filepath: Union[str, Path]) -> Tuple[np.ndarray, Optional[RenderMetadata]]:
        """Read a PNG back as an RGBA array together with its metadata."""
        filepath = Path(filepath)
        with Image.open(filepath) as img:
            pixels = np.array(img.convert('RGBA'))
        return pixels, self.extract_metadata_from_image(filepath)

    def extract_metadata_from_image(self, filepath: Union[str, Path]) -> Optional[RenderMetadata]:
        """
        Extract fractal metadata from a saved image.

        Args:
            filepath: Path to image file

        Returns:
            Extracted metadata or None if the image carries none
        """
        filepath = Path(filepath)
        with Image.open(filepath) as img:
            text = getattr(img, 'text', {})
            if METADATA_KEY not in text:
                return None
            raw = text[METADATA_KEY]

        try:
            return RenderMetadata.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse metadata from {filepath}: {e}")
            return None
