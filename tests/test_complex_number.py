import math

import pytest

from complex_fractal.core.complex_number import ComplexNumber, ieee_divide, power_parts


class TestParse:
    @pytest.mark.parametrize("text, expected", [
        ("23-0.6i", (23.0, -0.6)),
        ("32.32 - 3i", (32.32, -3.0)),
        ("-i", (0.0, -1.0)),
        ("i", (0.0, 1.0)),
        ("0", (0.0, 0.0)),
        ("-0.8+0.2i", (-0.8, 0.2)),
        ("-434+3i+34-i", (-400.0, 2.0)),
        ("  7  ", (7.0, 0.0)),
    ])
    def test_valid(self, text, expected):
        value = ComplexNumber.parse(text)
        assert value.to_tuple() == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "   ", "--1", "1+-2i", "abc", "1.5e3", "2j", "1..2"])
    def test_invalid(self, text):
        assert ComplexNumber.try_parse(text) is None
        assert not ComplexNumber.is_complex_number(text)
        with pytest.raises(ValueError):
            ComplexNumber.parse(text)

    def test_none_is_rejected(self):
        with pytest.raises(TypeError):
            ComplexNumber.try_parse(None)


class TestArithmetic:
    def test_in_place_ops_mutate_and_return_self(self):
        z = ComplexNumber(1, 2)
        same = z
        z += ComplexNumber(1, 1)
        z *= 2
        assert z is same
        assert z == ComplexNumber(4, 6)

    def test_copying_ops_leave_operands(self):
        a = ComplexNumber(1, 2)
        b = ComplexNumber(3, -1)
        assert a + b == ComplexNumber(4, 1)
        assert a - b == ComplexNumber(-2, 3)
        assert a * b == ComplexNumber(5, 5)
        assert a == ComplexNumber(1, 2)
        assert b == ComplexNumber(3, -1)

    def test_mixed_with_builtin_numbers(self):
        z = ComplexNumber(1, 1) + 1j
        assert z == ComplexNumber(1, 2)
        assert complex(ComplexNumber(2, 3) * 2) == complex(4, 6)

    def test_division(self):
        q = ComplexNumber(5, 5) / ComplexNumber(3, -1)
        assert q.to_tuple() == pytest.approx((1.0, 2.0))

    def test_division_by_zero_gives_nan(self):
        q = ComplexNumber(1, 0) / ComplexNumber(0, 0)
        assert q.is_nan()

    def test_ieee_divide(self):
        assert ieee_divide(1.0, 0.0) == math.inf
        assert ieee_divide(-1.0, 0.0) == -math.inf
        assert math.isnan(ieee_divide(0.0, 0.0))
        assert ieee_divide(3.0, 2.0) == 1.5

    @pytest.mark.parametrize("base, n, expected", [
        ((0.0, 1.0), 2, (-1.0, 0.0)),
        ((1.0, 1.0), 3, (-2.0, 2.0)),
        ((5.0, -7.0), 0, (1.0, 0.0)),
        ((2.0, 0.0), -1, (0.5, 0.0)),
        ((0.0, 2.0), -2, (-0.25, 0.0)),
        ((1.0, 2.0), 1, (1.0, 2.0)),
    ])
    def test_power(self, base, n, expected):
        assert (ComplexNumber(*base) ** n).to_tuple() == pytest.approx(expected)
        assert power_parts(*base, n) == pytest.approx(expected)

    def test_power_matches_repeated_multiplication(self):
        z = ComplexNumber(0.3, -0.7)
        product = ComplexNumber(1, 0)
        for _ in range(7):
            product *= z
        assert (z ** 7).to_tuple() == pytest.approx(product.to_tuple())

    def test_zero_to_negative_power_is_nan(self):
        assert (ComplexNumber(0, 0) ** -1).is_nan()

    def test_non_integer_power_rejected(self):
        with pytest.raises(TypeError):
            ComplexNumber(1, 1) ** 1.5

    def test_magnitude(self):
        z = ComplexNumber(3, 4)
        assert z.square_abs() == 25
        assert abs(z) == 5


class TestValueSemantics:
    def test_exact_equality(self):
        assert ComplexNumber(0.1, 0.2) == ComplexNumber(0.1, 0.2)
        assert ComplexNumber(0.1, 0.2) != ComplexNumber(0.1, 0.2000001)

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(ComplexNumber())

    def test_copy_and_assign(self):
        a = ComplexNumber(1, 2)
        b = a.copy()
        b += 1
        assert a == ComplexNumber(1, 2)
        a.assign(b)
        assert a == ComplexNumber(2, 2)

    def test_str(self):
        assert str(ComplexNumber(0, 0)) == "0.0"
        assert str(ComplexNumber(1.5, 0)) == "1.500000"
        assert str(ComplexNumber(0, -2)) == "-2.000000i"
        assert str(ComplexNumber(1, -2)) == "1.000000 -2.000000i"
        assert ComplexNumber.parse(str(ComplexNumber(1, -2))) == ComplexNumber(1, -2)
