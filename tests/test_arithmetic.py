"""Unit tests for the arithmetic kernels of DSCompiler."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from derivstruct import DSArithmeticError, ShapeMismatchError, get_compiler


def _square_at_two() -> np.ndarray:
    """Returns the P=1, N=3 structure of x**2 at x=2."""
    return np.array([4.0, 4.0, 2.0, 0.0])


def _sample(c, seed: int = 0) -> np.ndarray:
    """Returns a structure with a non-zero value and random derivatives."""
    rng = np.random.default_rng(seed)
    ds = rng.uniform(-1.0, 1.0, c.size)
    ds[0] = 1.5
    return ds


def test_multiply_is_leibniz_rule() -> None:
    """Tests (x**2) * (x**2) == x**4 at x=2, value and three derivatives."""
    c = get_compiler(1, 3)
    f = _square_at_two()
    out = c.zeros()
    c.multiply(f, 0, f, 0, out, 0)
    assert_array_equal(out, [16.0, 32.0, 48.0, 48.0])


def test_multiply_two_variables() -> None:
    """Tests x * y**2 at (1, 2) against its hand-computed partials."""
    c = get_compiler(2, 3)
    x = c.variable(0, 1.0)
    y = c.variable(1, 2.0)
    y2 = c.zeros()
    c.multiply(y, 0, y, 0, y2, 0)
    f = c.zeros()
    c.multiply(x, 0, y2, 0, f, 0)

    expected = {
        (0, 0): 4.0, (1, 0): 4.0, (0, 1): 4.0,
        (1, 1): 4.0, (0, 2): 2.0, (1, 2): 2.0,
        (2, 0): 0.0, (3, 0): 0.0, (2, 1): 0.0, (0, 3): 0.0,
    }
    for orders, value in expected.items():
        assert f[c.get_partial_derivative_index(*orders)] == value


def test_add_subtract_negate() -> None:
    """Tests slot-wise addition, subtraction and negation."""
    c = get_compiler(2, 2)
    a = _sample(c, 1)
    b = _sample(c, 2)
    out = c.zeros()
    c.add(a, 0, b, 0, out, 0)
    assert_array_equal(out, a + b)
    c.subtract(a, 0, b, 0, out, 0)
    assert_array_equal(out, a - b)
    c.negate(a, 0, out, 0)
    assert_array_equal(out, -a)


def test_add_tolerates_aliasing() -> None:
    """Tests that add may write into one of its operands."""
    c = get_compiler(2, 2)
    a = _sample(c, 1)
    b = _sample(c, 2)
    expected = a + b
    c.add(a, 0, b, 0, a, 0)
    assert_array_equal(a, expected)


def test_offsets_address_sub_arrays() -> None:
    """Tests that operands and result are located by their offsets."""
    c = get_compiler(1, 3)
    buf = np.zeros(3 * c.size + 2)
    buf[1:1 + c.size] = _square_at_two()
    buf[6:6 + c.size] = _square_at_two()
    c.multiply(buf, 1, buf, 6, buf, 10)
    assert_array_equal(buf[10:], [16.0, 32.0, 48.0, 48.0])
    assert_array_equal(buf[:1], [0.0])


def test_divide_by_itself_is_one() -> None:
    """Tests A / A == 1 with vanishing derivatives."""
    c = get_compiler(3, 3)
    a = _sample(c, 3)
    out = c.zeros()
    c.divide(a, 0, a, 0, out, 0)
    expected = c.constant(1.0)
    assert_allclose(out, expected, rtol=1e-12, atol=1e-12)


def test_divide_uses_divisor_offset() -> None:
    """Tests division with operands at different offsets of one array."""
    c = get_compiler(1, 2)
    buf = np.zeros(2 * c.size + 1)
    buf[0:3] = [6.0, 1.0, 0.0]   # 6 + t
    buf[3:6] = [2.0, 1.0, 0.0]   # 2 + t
    out = c.zeros()
    c.divide(buf, 0, buf, 3, out, 0)
    # (6 + t) / (2 + t) at t = 0: 3, -4 / (2 + t)**2 = -1, 8 / (2 + t)**3 = 1
    assert_allclose(out, [3.0, -1.0, 1.0], rtol=1e-14)


def test_divide_by_zero_value_warns() -> None:
    """Tests the warning for a zero divisor value."""
    c = get_compiler(1, 1)
    with np.errstate(all="ignore"):
        with pytest.warns(RuntimeWarning, match="Zero divisor"):
            c.divide(c.constant(1.0), 0, c.variable(0, 0.0), 0, c.zeros(), 0)


def test_remainder_is_ieee() -> None:
    """Tests the signed IEEE remainder and its derivatives."""
    c = get_compiler(1, 2)
    lhs = np.array([5.3, 1.0, 0.5])
    rhs = np.array([2.0, 0.25, -1.0])
    out = c.zeros()
    c.remainder(lhs, 0, rhs, 0, out, 0)
    # 5.3 / 2 = 2.65 rounds to 3, so the remainder is negative
    assert out[0] == pytest.approx(math.remainder(5.3, 2.0))
    assert out[0] < 0
    assert_allclose(out[1:], [1.0 - 3 * 0.25, 0.5 + 3 * 1.0])


def test_remainder_tolerates_aliasing() -> None:
    """Tests that remainder may write into its dividend."""
    c = get_compiler(1, 1)
    lhs = np.array([7.0, 2.0])
    rhs = np.array([3.0, 1.0])
    c.remainder(lhs, 0, rhs, 0, lhs, 0)
    assert_allclose(lhs, [1.0, 0.0])


def test_remainder_by_zero_is_nan() -> None:
    """Tests that a zero divisor gives NaN instead of raising."""
    c = get_compiler(1, 1)
    out = c.zeros()
    with np.errstate(all="ignore"):
        c.remainder(np.array([1.0, 1.0]), 0, np.array([0.0, 1.0]), 0, out, 0)
    assert np.isnan(out).all()


def test_linear_combination_forms() -> None:
    """Tests the 2, 3 and 4 term linear combinations."""
    c = get_compiler(2, 2)
    xs = [_sample(c, s) for s in range(4)]
    a = [2.0, -0.5, 3.0, 0.25]
    out = c.zeros()
    for m in (2, 3, 4):
        c.linear_combination([(a[i], xs[i], 0) for i in range(m)], out, 0)
        assert_allclose(out, sum(a[i] * xs[i] for i in range(m)), rtol=1e-14, atol=1e-15)


def test_linear_combination_is_compensated() -> None:
    """Tests that cancellation does not lose the small term."""
    c = get_compiler(1, 1)
    big = np.array([1e20, 1e20])
    small = np.array([1.0, 3.0])
    out = c.zeros()
    c.linear_combination([(1.0, big, 0), (-1.0, big, 0), (1e-20, small, 0)], out, 0)
    assert_allclose(out, [1e-20, 3e-20], rtol=1e-15)


def test_linear_combination_tolerates_aliasing() -> None:
    """Tests that the result may be one of the operands."""
    c = get_compiler(1, 2)
    x = np.array([1.0, 2.0, 3.0])
    y = np.array([1.0, 1.0, 1.0])
    c.linear_combination([(2.0, x, 0), (1.0, y, 0)], x, 0)
    assert_array_equal(x, [3.0, 5.0, 7.0])


def test_short_array_raises_shape_mismatch() -> None:
    """Tests that spans that do not fit are rejected before writing."""
    c = get_compiler(2, 2)
    out = np.full(c.size, 7.0)
    with pytest.raises(ShapeMismatchError):
        c.add(np.zeros(5), 0, np.zeros(6), 0, out, 0)
    with pytest.raises(ShapeMismatchError):
        c.add(np.zeros(6), 1, np.zeros(6), 0, out, 0)
    with pytest.raises(ShapeMismatchError):
        c.multiply(np.zeros(6), -1, np.zeros(6), 0, out, 0)
    with pytest.raises(ShapeMismatchError):
        c.multiply(np.zeros((2, 3)), 0, np.zeros(6), 0, out, 0)
    assert_array_equal(out, 7.0)


def test_result_must_be_ndarray() -> None:
    """Tests that a list result is rejected."""
    c = get_compiler(1, 1)
    with pytest.raises(TypeError):
        c.add([1.0, 0.0], 0, [1.0, 0.0], 0, [0.0, 0.0], 0)


def test_result_must_be_float64() -> None:
    """Tests that an integer result array is rejected before any write."""
    c = get_compiler(1, 2)
    x = [1.5, 1.0, 0.0]
    out = np.full(c.size, 7, dtype=np.int64)
    with pytest.raises(TypeError, match="float64"):
        c.multiply(x, 0, x, 0, out, 0)
    with pytest.raises(TypeError, match="float64"):
        c.sin(x, 0, out, 0)
    with pytest.raises(TypeError, match="float64"):
        c.linear_combination([(2.0, x, 0)], out, 0)
    with pytest.raises(TypeError, match="float64"):
        c.add(x, 0, x, 0, np.zeros(c.size, dtype=np.float32), 0)
    assert_array_equal(out, 7)


def test_check_compatibility() -> None:
    """Tests signature compatibility checks."""
    c = get_compiler(2, 3)
    c.check_compatibility(get_compiler(2, 3))
    with pytest.raises(ShapeMismatchError):
        c.check_compatibility(get_compiler(3, 3))
    with pytest.raises(ShapeMismatchError):
        c.check_compatibility(get_compiler(2, 2))


def test_constant_and_variable() -> None:
    """Tests the array factories."""
    c = get_compiler(2, 2)
    assert_array_equal(c.constant(3.0), [3.0, 0.0, 0.0, 0.0, 0.0, 0.0])
    assert_array_equal(c.variable(1, 3.0), [3.0, 0.0, 0.0, 1.0, 0.0, 0.0])
    assert_array_equal(get_compiler(2, 0).variable(0, 5.0), [5.0])
    with pytest.raises(ValueError):
        c.variable(2, 1.0)


def test_taylor_of_cos_converges() -> None:
    """Tests that the truncated Taylor expansion of cos at 0 converges to cos(h)."""
    for h in (0.01, 0.1, 0.5):
        errors = []
        for order in range(1, 11):
            c = get_compiler(1, order)
            ds = c.zeros()
            c.cos(c.variable(0, 0.0), 0, ds, 0)
            errors.append(abs(c.taylor(ds, 0, [h]) - math.cos(h)))
        assert errors[-1] < 1e-11
        assert errors[2] < errors[0]


def test_taylor_of_polynomial_is_exact() -> None:
    """Tests that a polynomial is reproduced exactly at full order."""
    c = get_compiler(2, 3)
    x = c.variable(0, 1.0)
    y = c.variable(1, 2.0)
    y2 = c.zeros()
    c.multiply(y, 0, y, 0, y2, 0)
    f = c.zeros()
    c.multiply(x, 0, y2, 0, f, 0)
    dx, dy = 0.3, -0.7
    assert c.taylor(f, 0, [dx, dy]) == pytest.approx((1 + dx) * (2 + dy) ** 2, rel=1e-14)


def test_taylor_checks_delta_length() -> None:
    """Tests that delta must have one entry per parameter."""
    c = get_compiler(2, 2)
    with pytest.raises(ShapeMismatchError):
        c.taylor(c.zeros(), 0, [0.1])


def test_taylor_surfaces_factorial_failure(monkeypatch) -> None:
    """Tests that a failing factorial is reported as DSArithmeticError."""
    import derivstruct.compiler as compiler_module

    def _bad_factorial(n):
        raise DSArithmeticError("factorial failed")

    monkeypatch.setattr(compiler_module, "factorial", _bad_factorial)
    c = get_compiler(1, 2)
    with pytest.raises(DSArithmeticError):
        c.taylor(c.variable(0, 1.0), 0, [0.1])
