"""
2D affine transforms between screen space and the complex plane.

Transforms are immutable 3x3 homogeneous matrices stored row-major. Every
composition returns a new transform; the operation matrix left-multiplies the
existing one, so ``t.translate(...)`` means "apply t, then translate".
"""

import math
from typing import NamedTuple, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

Matrix = Tuple[float, float, float, float, float, float, float, float, float]


class Point2D(NamedTuple):
    """A point on the plane (pixel or complex-plane coordinates)."""
    x: float
    y: float

    def to_complex(self) -> complex:
        return complex(self.x, self.y)


ORIGIN = Point2D(0.0, 0.0)


def _matrix_mul(left: Matrix, right: Matrix) -> Matrix:
    """Return left * right for row-major 3x3 matrices."""
    res = []
    for i in range(3):
        for j in range(3):
            acc = 0.0
            for k in range(3):
                acc += left[i * 3 + k] * right[k * 3 + j]
            res.append(acc)
    return tuple(res)


class AffineTransform2D:
    """Immutable 2D affine transform in homogeneous coordinates."""

    __slots__ = ("_matrix",)

    def __init__(self, matrix=(1.0, 0.0, 0.0,
                               0.0, 1.0, 0.0,
                               0.0, 0.0, 1.0)):
        """
        Create a transform from a row-major 3x3 matrix.

        Args:
            matrix: Nine numbers, row by row

        Raises:
            ValueError: If the matrix does not have exactly nine entries
        """
        values = tuple(float(v) for v in matrix)
        if len(values) != 9:
            raise ValueError("transform matrix must be 3 by 3")
        self._matrix = values

    @property
    def matrix(self) -> Matrix:
        return self._matrix

    def as_array(self) -> np.ndarray:
        return np.array(self._matrix, dtype=np.float64).reshape(3, 3)

    def apply(self, point) -> Point2D:
        """Transform a point, dividing by the homogeneous coordinate."""
        x, y = point
        m = self._matrix
        nx = m[0] * x + m[1] * y + m[2]
        ny = m[3] * x + m[4] * y + m[5]
        nw = m[6] * x + m[7] * y + m[8]
        return Point2D(nx / nw, ny / nw)

    def apply_arrays(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Transform arrays of coordinates element-wise.

        Uses the same arithmetic as apply(), so a point transformed either way
        lands on the same float values.
        """
        m = self._matrix
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        nx = m[0] * xs + m[1] * ys + m[2]
        ny = m[3] * xs + m[4] * ys + m[5]
        nw = m[6] * xs + m[7] * ys + m[8]
        return nx / nw, ny / nw

    def _then(self, op: Matrix) -> "AffineTransform2D":
        return AffineTransform2D(_matrix_mul(op, self._matrix))

    def translate(self, dx: float, dy: float) -> "AffineTransform2D":
        return self._then((1.0, 0.0, dx,
                           0.0, 1.0, dy,
                           0.0, 0.0, 1.0))

    def scale_about(self, sx: float, sy: float, center=ORIGIN) -> "AffineTransform2D":
        """Scale by (sx, sy) keeping ``center`` fixed."""
        cx, cy = center
        return self._then((sx, 0.0, cx * (1 - sx),
                           0.0, sy, cy * (1 - sy),
                           0.0, 0.0, 1.0))

    def scale(self, sx: float, sy: float) -> "AffineTransform2D":
        return self.scale_about(sx, sy, ORIGIN)

    def rotate_about(self, angle: float, center=ORIGIN) -> "AffineTransform2D":
        """Rotate counter-clockwise by ``angle`` radians around ``center``."""
        cx, cy = center
        c = math.cos(angle)
        s = math.sin(angle)
        return self._then((c, -s, cx - c * cx + s * cy,
                           s, c, cy - s * cx - c * cy,
                           0.0, 0.0, 1.0))

    def rotate(self, angle: float) -> "AffineTransform2D":
        return self.rotate_about(angle, ORIGIN)

    def add_after(self, after: "AffineTransform2D") -> "AffineTransform2D":
        """Return the transform that applies this one first and then ``after``."""
        return AffineTransform2D(_matrix_mul(after._matrix, self._matrix))

    def linear_part(self) -> "AffineTransform2D":
        """The transform with its translation removed."""
        m = self._matrix
        return AffineTransform2D((m[0], m[1], 0.0,
                                  m[3], m[4], 0.0,
                                  m[6], m[7], m[8]))

    def inverse(self) -> "AffineTransform2D":
        """
        Invert the transform.

        Raises:
            ValueError: If the matrix is singular
        """
        det = self.determinant()
        if det == 0.0 or not math.isfinite(det):
            raise ValueError("transform is not invertible")
        return AffineTransform2D(np.linalg.inv(self.as_array()).ravel().tolist())

    def determinant(self) -> float:
        return float(np.linalg.det(self.as_array()))

    def __eq__(self, other) -> bool:
        if not isinstance(other, AffineTransform2D):
            return NotImplemented
        return self._matrix == other._matrix

    def __hash__(self) -> int:
        return hash(self._matrix)

    def __repr__(self) -> str:
        rows = "; ".join(
            ", ".join(f"{v:.4g}" for v in self._matrix[i * 3:i * 3 + 3]) for i in range(3)
        )
        return f"AffineTransform2D([{rows}])"


IDENTITY = AffineTransform2D()


def fit_to_canvas(width: int, height: int) -> AffineTransform2D:
    """
    Map pixel coordinates of a ``width`` x ``height`` image onto the plane.

    The image center goes to the origin, the shorter image side spans
    [-1, 1] so the unit disk is fully visible, and the Y axis is flipped so
    plane Y grows upward while pixel Y grows downward.

    Raises:
        ValueError: If either dimension is not positive
    """
    if width <= 0:
        raise ValueError("width must be positive")
    if height <= 0:
        raise ValueError("height must be positive")

    scale = 2.0 / min(width, height)
    return IDENTITY.scale(scale, -scale).translate(-width * scale / 2.0, height * scale / 2.0)


def view_transform(center=ORIGIN, zoom: float = 1.0, rotation: float = 0.0) -> AffineTransform2D:
    """
    Build a user transform that shows ``center`` magnified by ``zoom``.

    Applied after fit_to_canvas, the image center lands on ``center`` and the
    unit disk of the default view shrinks to radius ``1/zoom``, rotated by
    ``rotation`` radians.
    """
    if zoom <= 0:
        raise ValueError("zoom must be positive")
    cx, cy = center
    return IDENTITY.scale(1.0 / zoom, 1.0 / zoom).rotate(rotation).translate(cx, cy)
