"""
derivstruct.math
----------------

Numerical helpers for the derivative structure kernels.

"""

import numpy as np
import scipy.special

from .errors import DSArithmeticError

# Dekker's splitting factor 2**27 + 1 for IEEE double precision
_SPLIT = 134217729.0

def _split(a):
    c = _SPLIT * a
    hi = c - (c - a)
    return hi, a - hi

def two_product(a, b):
    """
    Error-free transformation of a product.

    Parameters
    ----------
    a, b : array_like
        Factors.

    Returns
    -------
    p, e : ndarray
        ``p = fl(a * b)`` and the exact rounding error `e`, so that
        ``a * b == p + e`` exactly (barring overflow).

    """
    a = np.asarray(a, dtype = np.float64)
    b = np.asarray(b, dtype = np.float64)
    p = a * b
    ahi, alo = _split(a)
    bhi, blo = _split(b)
    e = alo * blo - (((p - ahi * bhi) - alo * bhi) - ahi * blo)
    return p, e

def two_sum(a, b):
    """
    Error-free transformation of a sum (Knuth's TwoSum).

    Returns
    -------
    s, e : ndarray
        ``s = fl(a + b)`` and ``a + b == s + e`` exactly.

    """
    s = a + b
    bb = s - a
    e = (a - (s - bb)) + (b - bb)
    return s, e

def linear_combination(a, b):
    """
    Accurate linear combination ``sum(a[i] * b[i])``.

    Parameters
    ----------
    a : sequence of float
        Scalar coefficients, length m.
    b : sequence of array_like
        The m terms. They must broadcast against each other;
        the combination is evaluated element-wise.

    Returns
    -------
    ndarray
        The linear combination.

    Notes
    -----
    This is the compensated dot product ("Dot2") of Ogita, Rump
    and Oishi, SIAM J. Sci. Comput. 26, 1955 (2005). The result
    is as accurate as if computed in twice the working precision
    and then rounded. If the compensated result is NaN (e.g. for
    infinite terms, where the error terms are inf - inf), the
    naive sum is returned instead.

    Examples
    --------
    >>> linear_combination([1.0, -1.0, 1e-20], [1e20, 1e20, 1.0])
    array(1.e-20)

    """

    if len(a) != len(b) or len(a) < 1:
        raise ValueError("a and b must have the same non-zero length")

    p, s = two_product(a[0], b[0])
    naive = p.copy()
    for i in range(1, len(a)):
        h, r = two_product(a[i], b[i])
        naive = naive + h
        p, q = two_sum(p, h)
        s = s + (q + r)

    result = p + s
    return np.where(np.isnan(result), naive, result)

def factorial(n):
    """
    Exact factorial of a non-negative integer.

    Raises
    ------
    DSArithmeticError
        If the factorial is not strictly positive, i.e. `n` is
        negative.

    """
    value = scipy.special.factorial(n, exact = True)
    if value <= 0:
        raise DSArithmeticError(f"factorial of {n} is not strictly positive")
    return value
