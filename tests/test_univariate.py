"""Unit tests for the derivative arrays in derivstruct.univariate."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from derivstruct import univariate


def test_length_is_order_plus_one() -> None:
    """Tests that every function returns order + 1 derivatives."""
    for order in (0, 1, 4):
        assert univariate.exp(0.3, order).shape == (order + 1,)
        assert univariate.atan(0.3, order).shape == (order + 1,)
        assert univariate.powi(0.3, 3, order).shape == (order + 1,)


def test_log_derivatives() -> None:
    """Tests the alternating factorial pattern of log."""
    assert_allclose(univariate.log(2.0, 3), [math.log(2.0), 0.5, -0.25, 0.25])


def test_odd_functions_at_zero() -> None:
    """Tests Taylor coefficients at 0 of the odd elementary functions."""
    assert_allclose(univariate.sin(0.0, 4), [0, 1, 0, -1, 0], atol=1e-15)
    assert_allclose(univariate.tanh(0.0, 5), [0, 1, 0, -2, 0, 16], atol=1e-12)
    assert_allclose(univariate.asin(0.0, 5), [0, 1, 0, 1, 0, 9], atol=1e-12)
    assert_allclose(univariate.asinh(0.0, 5), [0, 1, 0, -1, 0, 9], atol=1e-12)
    assert_allclose(univariate.atanh(0.0, 5), [0, 1, 0, 2, 0, 24], atol=1e-12)


def test_powi_truncates_for_positive_exponent() -> None:
    """Tests that derivatives beyond the exponent are exactly zero."""
    assert_array_equal(univariate.powi(3.0, 2, 4), [9.0, 6.0, 2.0, 0.0, 0.0])


def test_powi_negative_exponent() -> None:
    """Tests x ** -1 at x = 2."""
    assert_allclose(univariate.powi(2.0, -1, 3), [0.5, -0.25, 0.25, -0.375])


def test_powf_matches_powi_for_integer_exponent() -> None:
    """Tests that the real and integer power agree for p = 3."""
    assert_allclose(univariate.powf(1.7, 3.0, 4), univariate.powi(1.7, 3, 4), rtol=1e-14, atol=1e-14)


def test_pow_base_zero_at_zero() -> None:
    """Tests 0 ** x at x = 0: value 1 and alternating infinite derivatives."""
    assert_array_equal(univariate.pow_base(0.0, 0.0, 3), [1.0, -np.inf, np.inf, -np.inf])


def test_pow_base_zero_negative_exponent_is_nan() -> None:
    """Tests that 0 ** x is undefined for x < 0."""
    assert np.isnan(univariate.pow_base(0.0, -1.0, 2)).all()


def test_pow_base_zero_positive_exponent_is_zero() -> None:
    """Tests that 0 ** x vanishes identically for x > 0."""
    assert_array_equal(univariate.pow_base(0.0, 2.0, 2), [0.0, 0.0, 0.0])


def test_pow_base_regular() -> None:
    """Tests 2 ** x at x = 3."""
    ln2 = math.log(2.0)
    assert_allclose(univariate.pow_base(2.0, 3.0, 2), [8.0, 8.0 * ln2, 8.0 * ln2**2], rtol=1e-15)


@pytest.mark.parametrize("n", [2, 3, 4])
def test_rootn_first_derivative(n: int) -> None:
    """Tests d/dx x**(1/n) = x**(1/n - 1) / n."""
    x = 5.0
    df = univariate.rootn(x, n, 1)
    assert df[0] == pytest.approx(x ** (1.0 / n), rel=1e-15)
    assert df[1] == pytest.approx(x ** (1.0 / n - 1.0) / n, rel=1e-14)


def test_pole_gives_infinity_not_exception() -> None:
    """Tests that a pole follows IEEE arithmetic instead of raising."""
    with np.errstate(all="ignore"):
        df = univariate.log(0.0, 2)
    assert df[0] == -np.inf
    assert np.isinf(df[1])
