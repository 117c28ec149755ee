"""
Fractal type definitions and parameter management.

This module defines the escape-time fractal variants as immutable value
objects. Each variant evaluates a single point with ComplexNumber arithmetic
(``evaluate``) or whole coordinate arrays through the vectorized kernels of
math_functions (``evaluate_arrays``); both give the same iteration counts.
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Dict, Type, Union
import logging

import numpy as np

from .complex_number import ComplexNumber
from .math_functions import FractalIterator

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 1024
DEFAULT_ESCAPE_RADIUS = 2.0


def _to_point(point) -> ComplexNumber:
    if isinstance(point, ComplexNumber):
        return point
    if isinstance(point, tuple):
        x, y = point
        return ComplexNumber(x, y)
    return ComplexNumber.of(point)


def _to_complex(value: Any, name: str) -> complex:
    """Coerce a coefficient given as text, ComplexNumber or number."""
    if isinstance(value, str):
        return complex(ComplexNumber.parse(value))
    if isinstance(value, ComplexNumber):
        return complex(value)
    try:
        return complex(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a complex number, got {value!r}")


@dataclass(frozen=True)
class EscapeTimeFractal(ABC):
    """Base class for escape-time fractals with validation."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    escape_radius: float = DEFAULT_ESCAPE_RADIUS

    name = "fractal"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate parameter values."""
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, Integral):
            raise ValueError("max_iterations must be an integer")
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if isinstance(self.escape_radius, bool) or not isinstance(self.escape_radius, Real):
            raise ValueError("escape_radius must be numeric")
        if not self.escape_radius > 0:
            raise ValueError("escape_radius must be positive")
        object.__setattr__(self, 'max_iterations', int(self.max_iterations))
        object.__setattr__(self, 'escape_radius', float(self.escape_radius))

    @property
    def iterator(self) -> FractalIterator:
        return FractalIterator(self.max_iterations, self.escape_radius)

    def evaluate(self, point) -> int:
        """
        Count iterations until the orbit of ``point`` escapes.

        Args:
            point: ComplexNumber, complex or (x, y) pair

        Returns:
            0 if the point is taken to belong to the set, otherwise the
            1-based index of the first orbit point outside the escape radius
        """
        c = _to_point(point)
        r2 = self.escape_radius * self.escape_radius
        z = self._initial(c)
        iteration = 1
        while iteration < self.max_iterations and z.square_abs() < r2:
            z = self._step(z, c)
            iteration += 1
        return 0 if z.square_abs() < r2 else iteration

    @abstractmethod
    def _initial(self, c: ComplexNumber) -> ComplexNumber:
        """Starting orbit value z_0 for the point c."""

    @abstractmethod
    def _step(self, z: ComplexNumber, c: ComplexNumber) -> ComplexNumber:
        """Next orbit value; may update and return ``z`` itself."""

    @abstractmethod
    def evaluate_arrays(self, real: np.ndarray, imag: np.ndarray) -> np.ndarray:
        """Iteration counts for every point of the coordinate arrays."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable formula of the fractal."""

    def replace(self, **changes) -> "EscapeTimeFractal":
        """Return a copy with some parameters changed."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to a JSON-friendly dictionary."""
        data = {'type': self.name}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, complex):
                value = [value.real, value.imag]
            data[f.name] = value
        return data


@dataclass(frozen=True)
class MandelbrotSet(EscapeTimeFractal):
    """Mandelbrot set: z_0 = 0, z_{n+1} = z_n^2 + c."""

    name = "mandelbrot"

    def _initial(self, c: ComplexNumber) -> ComplexNumber:
        return ComplexNumber(0.0, 0.0)

    def _step(self, z: ComplexNumber, c: ComplexNumber) -> ComplexNumber:
        z *= z
        z += c
        return z

    def evaluate_arrays(self, real: np.ndarray, imag: np.ndarray) -> np.ndarray:
        return self.iterator.mandelbrot_iteration(real, imag)

    @property
    def description(self) -> str:
        return "Mandelbrot set: z_{n+1} = z_n^2 + c, z_0 = 0"


@dataclass(frozen=True)
class JuliaSet(EscapeTimeFractal):
    """Julia set with a linear term: z_0 = c, z_{n+1} = z_n^2 + z_n*c1 + c2."""

    c1: complex = 0j
    c2: complex = complex(-0.8, 0.2)

    name = "julia"

    def validate(self) -> None:
        super().validate()
        object.__setattr__(self, 'c1', _to_complex(self.c1, "c1"))
        object.__setattr__(self, 'c2', _to_complex(self.c2, "c2"))

    def _initial(self, c: ComplexNumber) -> ComplexNumber:
        return c.copy()

    def _step(self, z: ComplexNumber, c: ComplexNumber) -> ComplexNumber:
        squared = z * z
        linear = z * self.c1
        z.assign(ComplexNumber.of(self.c2))
        z += linear
        z += squared
        return z

    def evaluate_arrays(self, real: np.ndarray, imag: np.ndarray) -> np.ndarray:
        return self.iterator.julia_iteration(real, imag, self.c1, self.c2)

    @property
    def description(self) -> str:
        return (f"Julia set: z_{{n+1}} = z_n^2 + z_n*c1 + c2, where c1 = {self.c1}, "
                f"c2 = {self.c2} and z_0 is the complex coordinate")


@dataclass(frozen=True)
class PowerSumFractal(EscapeTimeFractal):
    """Generalized power-sum fractal: z_0 = 0, z_{n+1} = c + z_n^n1 + z_n^n2."""

    n1: int = 6
    n2: int = 1

    name = "power_sum"

    def validate(self) -> None:
        super().validate()
        for attr in ('n1', 'n2'):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise ValueError(f"{attr} must be an integer")
            object.__setattr__(self, attr, int(value))

    def _initial(self, c: ComplexNumber) -> ComplexNumber:
        return ComplexNumber(0.0, 0.0)

    def _step(self, z: ComplexNumber, c: ComplexNumber) -> ComplexNumber:
        first = z ** self.n1
        second = z ** self.n2
        z.assign(c)
        z += first
        z += second
        return z

    def evaluate_arrays(self, real: np.ndarray, imag: np.ndarray) -> np.ndarray:
        return self.iterator.power_sum_iteration(real, imag, self.n1, self.n2)

    @property
    def description(self) -> str:
        return f"Power sum: z_{{n+1}} = c + z_n^{self.n1} + z_n^{self.n2}, z_0 = 0"


FractalFunction = Union[MandelbrotSet, JuliaSet, PowerSumFractal]


class FractalRegistry:
    """Registry for managing available fractal types."""

    _fractals: Dict[str, Type[EscapeTimeFractal]] = {
        'mandelbrot': MandelbrotSet,
        'julia': JuliaSet,
        'power_sum': PowerSumFractal,
    }

    @classmethod
    def register(cls, name: str, fractal_class: type) -> None:
        """
        Register a new fractal type.

        Args:
            name: Unique identifier for the fractal
            fractal_class: Class implementing the fractal
        """
        if not issubclass(fractal_class, EscapeTimeFractal):
            raise ValueError("Fractal class must inherit from EscapeTimeFractal")
        cls._fractals[name.lower()] = fractal_class
        logger.info(f"Registered fractal type: {name}")

    @classmethod
    def get(cls, name: str) -> Type[EscapeTimeFractal]:
        fractal_class = cls._fractals.get(name.lower())
        if fractal_class is None:
            available = ', '.join(cls._fractals.keys())
            raise ValueError(f"Unknown fractal type '{name}'. Available: {available}")
        return fractal_class

    @classmethod
    def names(cls):
        return list(cls._fractals.keys())

    @classmethod
    def list_fractals(cls) -> Dict[str, str]:
        """Get a dictionary of available fractals and their descriptions."""
        return {name: fractal_class().description for name, fractal_class in cls._fractals.items()}

    @classmethod
    def create_fractal(cls, name: str, **kwargs) -> EscapeTimeFractal:
        """
        Create a fractal instance with the given parameters.

        Args:
            name: Fractal type name
            **kwargs: Parameters for the fractal; unknown names are rejected

        Returns:
            Configured fractal instance
        """
        fractal_class = cls.get(name)
        known = {f.name for f in dataclasses.fields(fractal_class)}
        unknown = set(kwargs) - known
        if unknown:
            raise ValueError(f"Unknown parameters for '{name}': {', '.join(sorted(unknown))}")
        return fractal_class(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EscapeTimeFractal:
        """Inverse of EscapeTimeFractal.to_dict()."""
        params = dict(data)
        name = params.pop('type', 'mandelbrot')
        for key in ('c1', 'c2'):
            if isinstance(params.get(key), (list, tuple)):
                params[key] = complex(*params[key])
        return cls.create_fractal(name, **params)


# Predefined interesting Julia set constants (c1 = 0)
JULIA_PRESETS = {
    'default': JuliaSet(c2=complex(-0.8, 0.2)),
    'dragon': JuliaSet(c2=complex(-0.75, 0.1)),
    'spiral': JuliaSet(c2=complex(-0.4, 0.6)),
    'dendrite': JuliaSet(c2=complex(0.0, 1.0)),
    'rabbit': JuliaSet(c2=complex(-0.123, 0.745)),
    'airplane': JuliaSet(c2=complex(-1.755, 0.0)),
    'san_marco': JuliaSet(c2=complex(-0.75, 0.0)),
    'siegel_disk': JuliaSet(c2=complex(-0.391, -0.587)),
}
