"""
Mutable complex arithmetic used by the escape-time evaluators.

The scalar evaluators step a handful of ComplexNumber instances in place
instead of allocating a new value per operation. Every operation is spelled
out on (real, imag) pairs in the same order as the vectorized kernels in
math_functions, so scalar and array evaluation agree bit for bit.
"""

import math
import re
from typing import Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

# Tokens of a complex literal: sign, imaginary part ("2.5i" or a bare "i"),
# real part, whitespace. Only plain decimal notation is accepted.
_TOKEN_PATTERN = re.compile(
    r"(?P<sign>[+-])|(?P<imag>(?:\d+(?:\.\d+)?)?)i|(?P<real>\d+(?:\.\d+)?)|(?P<space>\s+)"
)

Number = Union["ComplexNumber", complex, float, int]


def ieee_divide(numerator: float, denominator: float) -> float:
    """Divide like IEEE 754 does: x/0 gives +-inf, 0/0 and nan/0 give nan."""
    if denominator != 0.0:
        return numerator / denominator
    if numerator == 0.0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)


def power_parts(real: float, imag: float, n: int) -> Tuple[float, float]:
    """
    Raise real + imag*i to an integer power by binary exponentiation.

    Negative exponents invert the positive power; ``n == 0`` yields 1.
    """
    res_r = 1.0
    res_i = 0.0
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
        res_r, res_i = ieee_divide(res_r, d), ieee_divide(-res_i, d)
    return res_r, res_i


class ComplexNumber:
    """A mutable complex number with in-place and copying arithmetic."""

    __slots__ = ("real", "imag")

    def __init__(self, real: float = 0.0, imag: float = 0.0):
        self.real = float(real)
        self.imag = float(imag)

    @classmethod
    def of(cls, value: Number) -> "ComplexNumber":
        """Build a new ComplexNumber from another one, a complex or a real."""
        if isinstance(value, ComplexNumber):
            return value.copy()
        value = complex(value)
        return cls(value.real, value.imag)

    @classmethod
    def try_parse(cls, text: str) -> Optional["ComplexNumber"]:
        """
        Parse a complex literal, returning None if the text is not one.

        Accepted forms include ``"23-0.6i"``, ``"32.32 - 3i"``, ``"-i"`` and
        sums of several terms such as ``"-434+3i+34-i"``. Two signs in a row,
        foreign characters or an empty string are rejected.
        """
        if text is None:
            raise TypeError("text is None")

        real_part = 0.0
        imag_part = 0.0
        has_part = False
        prev_sign = False
        sign = 1.0
        index = 0

        for match in _TOKEN_PATTERN.finditer(text):
            if match.start() != index:
                return None
            index = match.end()

            if match.group("space") is not None:
                continue
            if match.group("sign") is not None:
                if prev_sign:
                    return None
                prev_sign = True
                sign = -1.0 if match.group("sign") == "-" else 1.0
            elif match.group("real") is not None:
                real_part += sign * float(match.group("real"))
                prev_sign = False
                has_part = True
                sign = 1.0
            elif match.group("imag") is not None:
                digits = match.group("imag")
                imag_part += sign * (float(digits) if digits else 1.0)
                prev_sign = False
                has_part = True
                sign = 1.0

        if not has_part or index != len(text):
            return None
        return cls(real_part, imag_part)

    @classmethod
    def parse(cls, text: str) -> "ComplexNumber":
        """Parse a complex literal; raise ValueError on malformed text."""
        result = cls.try_parse(text)
        if result is None:
            raise ValueError(f'"{text}" is not a complex number')
        return result

    @staticmethod
    def is_complex_number(text: str) -> bool:
        return ComplexNumber.try_parse(text) is not None

    def copy(self) -> "ComplexNumber":
        return ComplexNumber(self.real, self.imag)

    def assign(self, other: "ComplexNumber") -> "ComplexNumber":
        """Overwrite this number with the value of another one."""
        self.real = other.real
        self.imag = other.imag
        return self

    def square_abs(self) -> float:
        """Squared magnitude, used for escape tests without a square root."""
        return self.real * self.real + self.imag * self.imag

    def __abs__(self) -> float:
        return math.sqrt(self.square_abs())

    def is_nan(self) -> bool:
        return math.isnan(self.real) or math.isnan(self.imag)

    # In-place arithmetic

    def __iadd__(self, other: Number) -> "ComplexNumber":
        other = _coerce(other)
        self.real += other.real
        self.imag += other.imag
        return self

    def __isub__(self, other: Number) -> "ComplexNumber":
        other = _coerce(other)
        self.real -= other.real
        self.imag -= other.imag
        return self

    def __imul__(self, other: Number) -> "ComplexNumber":
        other = _coerce(other)
        self.real, self.imag = (self.real * other.real - self.imag * other.imag,
                                self.real * other.imag + self.imag * other.real)
        return self

    def __itruediv__(self, other: Number) -> "ComplexNumber":
        other = _coerce(other)
        d = other.real * other.real + other.imag * other.imag
        self.real, self.imag = (ieee_divide(self.real * other.real + self.imag * other.imag, d),
                                ieee_divide(-self.real * other.imag + self.imag * other.real, d))
        return self

    def __ipow__(self, n: int) -> "ComplexNumber":
        if not isinstance(n, int):
            raise TypeError("only integer exponents are supported")
        self.real, self.imag = power_parts(self.real, self.imag, n)
        return self

    # Copying arithmetic

    def __add__(self, other: Number) -> "ComplexNumber":
        result = self.copy()
        result += other
        return result

    def __sub__(self, other: Number) -> "ComplexNumber":
        result = self.copy()
        result -= other
        return result

    def __mul__(self, other: Number) -> "ComplexNumber":
        result = self.copy()
        result *= other
        return result

    def __truediv__(self, other: Number) -> "ComplexNumber":
        result = self.copy()
        result /= other
        return result

    def __pow__(self, n: int) -> "ComplexNumber":
        result = self.copy()
        result **= n
        return result

    def __neg__(self) -> "ComplexNumber":
        return ComplexNumber(-self.real, -self.imag)

    # Conversions and comparison

    def __complex__(self) -> complex:
        return complex(self.real, self.imag)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.real, self.imag)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ComplexNumber):
            return NotImplemented
        return self.real == other.real and self.imag == other.imag

    __hash__ = None

    def __repr__(self) -> str:
        return f"ComplexNumber({self.real!r}, {self.imag!r})"

    def __str__(self) -> str:
        if self.real != 0:
            if self.imag != 0:
                return f"{self.real:f} {self.imag:+f}i"
            return f"{self.real:f}"
        if self.imag != 0:
            return f"{self.imag:f}i"
        return "0.0"


def _coerce(value: Number) -> ComplexNumber:
    if isinstance(value, ComplexNumber):
        return value
    return ComplexNumber.of(value)
