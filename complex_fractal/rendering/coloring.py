"""
Coloring of iteration counts.

A palette maps an iteration count to a color; 0 (a point of the set) always
maps to the palette's fractal color. Palettes are immutable value objects and
hold no mutable state, so one instance can be shared by any number of render
threads.
"""

import dataclasses
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Type, Union
import logging

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Color:
    """RGBA color with components in [0, 1]."""
    r: float
    g: float
    b: float
    a: float = 1.0

    def __post_init__(self):
        """Validate RGBA values."""
        for component in (self.r, self.g, self.b, self.a):
            if not 0 <= component <= 1:
                raise ValueError("color components must be between 0 and 1")

    @classmethod
    def from_hex(cls, text: str) -> 'Color':
        """Parse ``#rrggbb`` or ``#rrggbbaa``."""
        digits = text.strip().lstrip('#')
        if len(digits) not in (6, 8):
            raise ValueError(f"Invalid color '{text}', expected #rrggbb or #rrggbbaa")
        try:
            values = [int(digits[i:i + 2], 16) / 255.0 for i in range(0, len(digits), 2)]
        except ValueError:
            raise ValueError(f"Invalid color '{text}'")
        return cls(*values)

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.r, self.g, self.b, self.a)

    def to_rgba8(self) -> Tuple[int, int, int, int]:
        """Convert to 8-bit RGBA, rounding to nearest."""
        return tuple(int(round(c * 255)) for c in self.to_tuple())

    def to_hex(self) -> str:
        r, g, b, a = self.to_rgba8()
        return f"#{r:02x}{g:02x}{b:02x}" if a == 255 else f"#{r:02x}{g:02x}{b:02x}{a:02x}"


BLACK = Color(0.0, 0.0, 0.0)
WHITE = Color(1.0, 1.0, 1.0)


def _channels_to_rgba8(channels, fractal_color: Color, in_set: np.ndarray) -> np.ndarray:
    """Stack float channels into uint8 RGBA, painting ``in_set`` points with the fractal color."""
    rgba = np.empty(in_set.shape + (4,), dtype=np.uint8)
    for index, channel in enumerate(channels):
        rgba[..., index] = np.rint(np.clip(channel, 0.0, 1.0) * 255)
    rgba[..., 3] = 255
    rgba[in_set] = fractal_color.to_rgba8()
    return rgba


@dataclass(frozen=True)
class IterativePalette(ABC):
    """Base class for palettes mapping iteration counts to colors."""

    fractal_color: Color = BLACK

    name = "palette"

    def __post_init__(self):
        if not isinstance(self.fractal_color, Color):
            object.__setattr__(self, 'fractal_color', _to_color(self.fractal_color))
        self.validate()

    def validate(self) -> None:
        pass

    def num_iter_to_color(self, num_iter: int) -> Color:
        """Color of a point that escaped after ``num_iter`` iterations (0: in the set)."""
        if num_iter == 0:
            return self.fractal_color
        return Color(*(min(1.0, max(0.0, c)) for c in self._channels(float(num_iter))))

    def colors_for(self, iterations: np.ndarray) -> np.ndarray:
        """
        Vectorized num_iter_to_color.

        Args:
            iterations: Integer array of iteration counts of any shape

        Returns:
            uint8 array with an extra trailing axis of RGBA components
        """
        iterations = np.asarray(iterations)
        values, inverse = np.unique(iterations, return_inverse=True)
        channels = self._channels(values.astype(np.float64))
        table = _channels_to_rgba8(channels, self.fractal_color, values == 0)
        return table[inverse.reshape(iterations.shape)]

    @abstractmethod
    def _channels(self, n):
        """Unclamped (r, g, b) intensities for iteration count(s) n > 0."""

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': self.name}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.to_hex() if isinstance(value, Color) else value
        return data


@dataclass(frozen=True)
class SinusoidalPalette(IterativePalette):
    """
    Periodic palette with an independent sine wave per channel.

    Each channel is ``sin((n - 1) * 2*pi / period + phase) / 2 + 0.5``; the
    period is measured in iterations and the phase in radians.
    """

    per_r: float = 1024 / 6.8
    per_g: float = 1024 / 4.9
    per_b: float = 1024 / 11.1
    phi0_r: float = -math.pi / 2 + math.pi / 20
    phi0_g: float = -math.pi / 2 + math.pi / 20
    phi0_b: float = -math.pi / 2 + math.pi / 10

    name = "sinusoidal"

    def validate(self) -> None:
        for attr in ('per_r', 'per_g', 'per_b'):
            if not getattr(self, attr) > 0:
                raise ValueError(f"{attr} must be positive")

    def _channels(self, n):
        sin = np.sin if isinstance(n, np.ndarray) else math.sin
        return tuple(
            sin((n - 1) * 2 * math.pi / period + phase) / 2.0 + 0.5
            for period, phase in ((self.per_r, self.phi0_r),
                                  (self.per_g, self.phi0_g),
                                  (self.per_b, self.phi0_b))
        )


def _wrap_sin(x):
    """
    Rising and falling sine: 0 at x=0, 1 at x=510, 0 again at x=1020.

        1.0 |   /\\     /\\
            |  /  \\   /  \\
            |_/    \\_/    \\_
            0  255 511 767 1023
    """
    sin = np.sin if isinstance(x, np.ndarray) else math.sin
    return sin(x * (1.0 / 255.0 * math.pi / 2.0) - math.pi / 2.0) / 2.0 + 0.5


@dataclass(frozen=True)
class WrappedSinePalette(IterativePalette):
    """Legacy palette: each channel is a wrapped sine of ``n * mul``."""

    mul_r: float = 6.8
    mul_g: float = 4.9
    mul_b: float = 11.1

    name = "wrapped_sine"

    def _channels(self, n):
        return (_wrap_sin(n * self.mul_r), _wrap_sin(n * self.mul_g), _wrap_sin(n * self.mul_b))


Palette = Union[SinusoidalPalette, WrappedSinePalette]


def _to_color(value: Any) -> Color:
    if isinstance(value, Color):
        return value
    if isinstance(value, str):
        return Color.from_hex(value)
    if isinstance(value, (tuple, list)) and len(value) in (3, 4):
        return Color(*[float(c) for c in value])
    raise ValueError(f"Invalid color format: {value!r}")


_PALETTE_TYPES: Dict[str, Type[IterativePalette]] = {
    'sinusoidal': SinusoidalPalette,
    'wrapped_sine': WrappedSinePalette,
}

PALETTE_PRESETS: Dict[str, IterativePalette] = {
    'default': SinusoidalPalette(),
    'legacy': WrappedSinePalette(),
    'ice': SinusoidalPalette(per_r=1024 / 3.0, per_g=1024 / 6.0, per_b=1024 / 9.0,
                             phi0_r=-math.pi / 2, phi0_g=-math.pi / 4, phi0_b=0.0),
    'ember': SinusoidalPalette(per_r=1024 / 12.0, per_g=1024 / 6.0, per_b=1024 / 2.0,
                               phi0_r=-math.pi / 4, phi0_g=-math.pi / 2, phi0_b=-math.pi / 2),
    'gray': SinusoidalPalette(per_r=64.0, per_g=64.0, per_b=64.0,
                              phi0_r=-math.pi / 2, phi0_g=-math.pi / 2, phi0_b=-math.pi / 2),
}


def palette_types():
    return list(_PALETTE_TYPES.keys())


def create_palette(name: str = 'sinusoidal', **params) -> IterativePalette:
    """
    Create a palette by type or preset name.

    Args:
        name: A palette type ('sinusoidal', 'wrapped_sine') or a preset name
        **params: Fields to set; with a preset they override its values

    Returns:
        Configured palette
    """
    preset = PALETTE_PRESETS.get(name)
    palette_class = type(preset) if preset is not None else _PALETTE_TYPES.get(name)
    if palette_class is None:
        available = ', '.join(list(_PALETTE_TYPES) + list(PALETTE_PRESETS))
        raise ValueError(f"Unknown color palette '{name}'. Available: {available}")

    known = {f.name for f in dataclasses.fields(palette_class)}
    unknown = set(params) - known
    if unknown:
        raise ValueError(f"Unknown parameters for palette '{name}': {', '.join(sorted(unknown))}")
    if preset is not None:
        return dataclasses.replace(preset, **params) if params else preset
    return palette_class(**params)


def palette_from_dict(data: Dict[str, Any]) -> IterativePalette:
    params = dict(data)
    name = params.pop('type', params.pop('name', 'sinusoidal'))
    return create_palette(name, **params)
