"""
Core mathematical functions for fractal iteration.

This module provides the vectorized escape-time kernels. Complex values are
carried as separate float64 arrays of real and imaginary parts and every
operation mirrors the scalar ComplexNumber arithmetic step for step, so the
iteration counts produced here are identical to the scalar evaluators.

Iteration convention shared by all kernels: examine z_0, z_1, ... while fewer
than ``max_iter`` orbit points have been looked at and ``|z_k|^2 < R^2``.
Return 0 if the last examined point is still inside the radius, otherwise
``k + 1`` for the first point found outside. NaN fails the ``< R^2`` test, so
a NaN orbit counts as escaped at the step where it appeared.
"""

from typing import Callable, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

StepFunction = Callable[[np.ndarray, np.ndarray, np.ndarray], Tuple[np.ndarray, np.ndarray]]


def complex_power_arrays(real: np.ndarray, imag: np.ndarray, n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Raise arrays of complex numbers to an integer power.

    Binary exponentiation with inversion for negative exponents, matching
    complex_number.power_parts operation for operation.
    """
    res_r = np.ones_like(real, dtype=np.float64)
    res_i = np.zeros_like(imag, dtype=np.float64)
    if n == 0:
        return res_r, res_i

    r, i = real, imag
    remaining = abs(n)
    while True:
        if remaining % 2 == 1:
            res_r, res_i = res_r * r - res_i * i, res_r * i + res_i * r
        remaining >>= 1
        if remaining <= 0:
            break
        r, i = r * r - i * i, r * i + i * r

    if n < 0:
        d = res_r * res_r + res_i * res_i
        res_r, res_i = res_r / d, -res_i / d
    return res_r, res_i


class FractalIterator:
    """Vectorized escape-time iteration over coordinate arrays."""

    def __init__(self, max_iter: int = 1024, escape_radius: float = 2.0):
        """
        Initialize fractal iterator.

        Args:
            max_iter: Maximum number of orbit points examined
            escape_radius: Radius for escape condition
        """
        if max_iter <= 0:
            raise ValueError("max_iter must be positive")
        if escape_radius <= 0:
            raise ValueError("escape_radius must be positive")

        self.max_iter = max_iter
        self.escape_radius = escape_radius
        self.escape_radius_sq = escape_radius * escape_radius

    def escape_time(self, z_real: np.ndarray, z_imag: np.ndarray, step: StepFunction) -> np.ndarray:
        """
        Iterate ``step`` from the starting orbit values until escape.

        Args:
            z_real, z_imag: Starting orbit values z_0
            step: Function ``(z_real, z_imag, indices) -> (z_real, z_imag)``
                computing the next orbit values for the still-active points;
                ``indices`` are their positions in the flattened input

        Returns:
            int32 array of iteration counts with the input shape
        """
        shape = np.shape(z_real)
        zr = np.array(z_real, dtype=np.float64).ravel()
        zi = np.array(z_imag, dtype=np.float64).ravel()
        r2 = self.escape_radius_sq

        iterations = np.ones(zr.size, dtype=np.int32)
        active = np.arange(zr.size)

        with np.errstate(all='ignore'):
            for _ in range(self.max_iter - 1):
                ar = zr[active]
                ai = zi[active]
                inside = ar * ar + ai * ai < r2
                if not inside.all():
                    active = active[inside]
                    ar = ar[inside]
                    ai = ai[inside]
                if active.size == 0:
                    break

                nr, ni = step(ar, ai, active)
                zr[active] = nr
                zi[active] = ni
                iterations[active] += 1

            result = np.where(zr * zr + zi * zi < r2, 0, iterations)

        return result.astype(np.int32).reshape(shape)

    def mandelbrot_iteration(self, c_real: np.ndarray, c_imag: np.ndarray) -> np.ndarray:
        """
        Compute Mandelbrot set iterations: z_0 = 0, z_{n+1} = z_n^2 + c.

        Args:
            c_real, c_imag: Coordinates of the points

        Returns:
            Iteration counts (0 for points in the set)
        """
        cr = np.asarray(c_real, dtype=np.float64).ravel()
        ci = np.asarray(c_imag, dtype=np.float64).ravel()

        def step(zr, zi, idx):
            return zr * zr - zi * zi + cr[idx], zr * zi + zi * zr + ci[idx]

        zeros = np.zeros(np.shape(c_real), dtype=np.float64)
        return self.escape_time(zeros, zeros, step)

    def julia_iteration(self, z_real: np.ndarray, z_imag: np.ndarray,
                        c1: complex, c2: complex) -> np.ndarray:
        """
        Compute Julia set iterations: z_0 = point, z_{n+1} = z_n^2 + z_n*c1 + c2.

        Args:
            z_real, z_imag: Coordinates of the points
            c1: Coefficient of the linear term
            c2: Constant term

        Returns:
            Iteration counts (0 for points in the set)
        """
        c1r, c1i = float(c1.real), float(c1.imag)
        c2r, c2i = float(c2.real), float(c2.imag)

        def step(zr, zi, idx):
            sq_r, sq_i = zr * zr - zi * zi, zr * zi + zi * zr
            lin_r, lin_i = zr * c1r - zi * c1i, zr * c1i + zi * c1r
            return c2r + lin_r + sq_r, c2i + lin_i + sq_i

        return self.escape_time(z_real, z_imag, step)

    def power_sum_iteration(self, c_real: np.ndarray, c_imag: np.ndarray,
                            n1: int, n2: int) -> np.ndarray:
        """
        Compute power-sum iterations: z_0 = 0, z_{n+1} = c + z_n^n1 + z_n^n2.

        Args:
            c_real, c_imag: Coordinates of the points
            n1, n2: Integer exponents (negative and zero allowed)

        Returns:
            Iteration counts (0 for points in the set)
        """
        cr = np.asarray(c_real, dtype=np.float64).ravel()
        ci = np.asarray(c_imag, dtype=np.float64).ravel()

        def step(zr, zi, idx):
            p1r, p1i = complex_power_arrays(zr, zi, n1)
            p2r, p2i = complex_power_arrays(zr, zi, n2)
            return cr[idx] + p1r + p2r, ci[idx] + p1i + p2i

        zeros = np.zeros(np.shape(c_real), dtype=np.float64)
        return self.escape_time(zeros, zeros, step)
