"""
derivstruct.univariate
----------------------

Derivative arrays of elementary single-argument functions.

Every function here returns the 1D array ``df`` of length
``order + 1`` with ``df[k]`` the k-th derivative of the
elementary function evaluated at the scalar `x`. These arrays
are the outer-function input of
:meth:`~derivstruct.compiler.DSCompiler.compose`.

The derivatives are computed in closed form. For ``tan``,
``tanh`` and the inverse trigonometric and hyperbolic functions,
the n-th derivative is a rational function whose numerator
polynomial is updated from order n - 1 to order n by a
three-term recurrence on its coefficients.

Scalars are promoted to ``np.float64`` so that poles and
domain errors follow IEEE arithmetic (infinities and NaN with
a numpy ``RuntimeWarning``) instead of raising.

"""

import numpy as np

def _new(order, value):
    df = np.zeros(order + 1, dtype = np.float64)
    df[0] = value
    return df

def exp(x, order):
    """
    Derivatives of :math:`e^x`.

    Examples
    --------
    >>> exp(0.0, 3)
    array([1., 1., 1., 1.])

    """
    df = np.empty(order + 1, dtype = np.float64)
    df.fill(np.exp(np.float64(x)))
    return df

def expm1(x, order):
    """ Derivatives of :math:`e^x - 1`. """
    x = np.float64(x)
    df = _new(order, np.expm1(x))
    df[1:] = np.exp(x)
    return df

def _log_series(value, inv, scale, order):
    # d^k/dx^k ln(x) = (-1)^(k-1) (k-1)! / x^k
    df = _new(order, value)
    xk = scale * inv
    for i in range(1, order + 1):
        df[i] = xk
        xk *= -i * inv
    return df

def log(x, order):
    """ Derivatives of the natural logarithm. """
    x = np.float64(x)
    return _log_series(np.log(x), 1.0 / x, 1.0, order)

def log1p(x, order):
    """ Derivatives of :math:`\\ln(1 + x)`. """
    x = np.float64(x)
    return _log_series(np.log1p(x), 1.0 / (1.0 + x), 1.0, order)

def log10(x, order):
    """ Derivatives of the base-10 logarithm. """
    x = np.float64(x)
    return _log_series(np.log10(x), 1.0 / x, 1.0 / np.log(10.0), order)

def sin(x, order):
    """ Derivatives of the sine. """
    x = np.float64(x)
    df = _new(order, np.sin(x))
    if order > 0:
        df[1] = np.cos(x)
        for i in range(2, order + 1):
            df[i] = -df[i-2]
    return df

def cos(x, order):
    """ Derivatives of the cosine. """
    x = np.float64(x)
    df = _new(order, np.cos(x))
    if order > 0:
        df[1] = -np.sin(x)
        for i in range(2, order + 1):
            df[i] = -df[i-2]
    return df

def sinh(x, order):
    """ Derivatives of the hyperbolic sine. """
    x = np.float64(x)
    df = _new(order, np.sinh(x))
    if order > 0:
        df[1] = np.cosh(x)
        for i in range(2, order + 1):
            df[i] = df[i-2]
    return df

def cosh(x, order):
    """ Derivatives of the hyperbolic cosine. """
    x = np.float64(x)
    df = _new(order, np.cosh(x))
    if order > 0:
        df[1] = np.sinh(x)
        for i in range(2, order + 1):
            df[i] = df[i-2]
    return df

def _tangent_series(t, order, sign):
    """
    Derivatives of tan (`sign` = +1) or tanh (`sign` = -1)
    given the function value `t`.

    The n-th derivative is a polynomial P_n(t) with
    P_{n+1}(t) = (1 + sign * t**2) P_n'(t). Only every other
    coefficient is non-zero, so `p` holds the coefficients of
    the current polynomial and the Horner evaluation in t**2
    updates them in place.
    """
    df = _new(order, t)
    if order > 0:
        p = np.zeros(order + 2)
        p[1] = 1 # P_0(t) = t
        t2 = t * t
        for n in range(1, order + 1):

            v = 0.0
            p[n+1] = sign * n * p[n]
            for k in range(n + 1, -1, -2):
                v = v * t2 + p[k]
                if k > 2:
                    p[k-2] = (k - 1) * p[k-1] + sign * (k - 3) * p[k-3]
                elif k == 2:
                    p[0] = p[1]

            if n % 2 == 0:
                v *= t
            df[n] = v

    return df

def tan(x, order):
    """ Derivatives of the tangent. """
    return _tangent_series(np.tan(np.float64(x)), order, +1)

def tanh(x, order):
    """ Derivatives of the hyperbolic tangent. """
    return _tangent_series(np.tanh(np.float64(x)), order, -1)

def _inverse_series(x, order, value, p0, f, coeff, top, step, flip = 1):
    """
    Derivatives of the inverse trigonometric and hyperbolic
    functions.

    The n-th derivative has the form ``coeff_n * Q_n(x)`` with
    ``coeff_n = coeff * f**(n-1)`` and Q_n a polynomial of
    degree n - 1 whose coefficients, `p`, obey a three-term
    recurrence. `top(n)` gives the leading coefficient ratio and
    `step(n, k, p)` the recurrence for the lower coefficients.
    """
    df = _new(order, value)
    if order > 0:
        p = np.zeros(order)
        p[0] = p0
        x2 = x * x
        df[1] = coeff * p[0]
        for n in range(2, order + 1):

            v = 0.0
            p[n-1] = top(n) * p[n-2]
            for k in range(n - 1, -1, -2):
                v = v * x2 + p[k]
                if k > 2:
                    p[k-2] = step(n, k, p)
                elif k == 2:
                    p[0] = flip * p[1]

            if n % 2 == 0:
                v *= x
            coeff *= f
            df[n] = coeff * v

    return df

def asin(x, order):
    """ Derivatives of the arcsine. """
    x = np.float64(x)
    f = 1.0 / (1.0 - x * x)
    return _inverse_series(x, order, np.arcsin(x), 1.0, f, np.sqrt(f),
                           lambda n: n - 1,
                           lambda n, k, p: (k - 1) * p[k-1] + (2 * n - k) * p[k-3])

def acos(x, order):
    """ Derivatives of the arccosine. """
    x = np.float64(x)
    f = 1.0 / (1.0 - x * x)
    return _inverse_series(x, order, np.arccos(x), -1.0, f, np.sqrt(f),
                           lambda n: n - 1,
                           lambda n, k, p: (k - 1) * p[k-1] + (2 * n - k) * p[k-3])

def atan(x, order):
    """ Derivatives of the arctangent. """
    x = np.float64(x)
    f = 1.0 / (1.0 + x * x)
    return _inverse_series(x, order, np.arctan(x), 1.0, f, f,
                           lambda n: -n,
                           lambda n, k, q: (k - 1) * q[k-1] + (k - 1 - 2 * n) * q[k-3])

def asinh(x, order):
    """ Derivatives of the inverse hyperbolic sine. """
    x = np.float64(x)
    f = 1.0 / (1.0 + x * x)
    return _inverse_series(x, order, np.arcsinh(x), 1.0, f, np.sqrt(f),
                           lambda n: 1 - n,
                           lambda n, k, p: (k - 1) * p[k-1] + (k - 2 * n) * p[k-3])

def acosh(x, order):
    """ Derivatives of the inverse hyperbolic cosine. """
    x = np.float64(x)
    f = 1.0 / (x * x - 1.0)
    return _inverse_series(x, order, np.arccosh(x), 1.0, f, np.sqrt(f),
                           lambda n: 1 - n,
                           lambda n, k, p: (1 - k) * p[k-1] + (k - 2 * n) * p[k-3],
                           flip = -1)

def atanh(x, order):
    """ Derivatives of the inverse hyperbolic tangent. """
    x = np.float64(x)
    f = 1.0 / (1.0 - x * x)
    return _inverse_series(x, order, np.arctanh(x), 1.0, f, f,
                           lambda n: n,
                           lambda n, k, q: (k - 1) * q[k-1] + (2 * n - k + 1) * q[k-3])

def powf(x, p, order):
    """
    Derivatives of :math:`x^p` for real `p`.

    Notes
    -----
    The value is computed with :func:`numpy.float_power` and
    inherits its conventions for negative `x`.

    Examples
    --------
    >>> powf(4.0, 0.5, 2)
    array([ 2.     ,  0.25   , -0.03125])

    """
    x = np.float64(x)
    df = np.zeros(order + 1, dtype = np.float64)

    # x**(p-i) for i = order, ..., 0
    xk = np.float_power(x, p - order)
    for i in range(order, 0, -1):
        df[i] = xk
        xk *= x
    df[0] = xk

    coeff = p
    for i in range(1, order + 1):
        df[i] *= coeff
        coeff *= p - i

    return df

def powi(x, n, order):
    """
    Derivatives of :math:`x^n` for integer `n`.

    For ``n > 0`` the derivatives of order larger than `n` are
    exactly zero. ``n == 0`` gives the constant 1.
    """
    x = np.float64(x)
    df = np.zeros(order + 1, dtype = np.float64)

    if n == 0:
        df[0] = 1.0
        return df

    if n > 0:
        # x**(n-i) for i = maxorder, ..., 0
        maxorder = min(order, n)
        xk = np.float_power(x, n - maxorder)
        for i in range(maxorder, 0, -1):
            df[i] = xk
            xk *= x
        df[0] = xk
    else:
        # (1/x)**(-n+i) for i = 0, ..., order
        inv = 1.0 / x
        xk = np.float_power(inv, -n)
        for i in range(order + 1):
            df[i] = xk
            xk *= inv

    coeff = float(n)
    for i in range(1, order + 1):
        df[i] *= coeff
        coeff *= n - i

    return df

def pow_base(a, x, order):
    """
    Derivatives of :math:`a^x` with respect to `x`, for a
    constant base `a`.

    Notes
    -----
    For ``a == 0``: at ``x == 0`` the value is 1 and the
    derivatives are alternately -inf and +inf; for ``x < 0``
    all entries are NaN; for ``x > 0`` all entries are 0.
    """
    x = np.float64(x)
    df = np.zeros(order + 1, dtype = np.float64)

    if a == 0:
        if x == 0:
            df[0] = 1.0
            infinity = np.inf
            for i in range(1, order + 1):
                infinity = -infinity
                df[i] = infinity
        elif x < 0:
            df.fill(np.nan)
    else:
        df[0] = np.float_power(a, x)
        ln_a = np.log(np.float64(a))
        for i in range(1, order + 1):
            df[i] = ln_a * df[i-1]

    return df

def rootn(x, n, order):
    """
    Derivatives of the `n`-th root of `x`.

    ``n == 2`` uses :func:`numpy.sqrt` and ``n == 3`` uses
    :func:`numpy.cbrt` (defined for negative `x`). Other `n`
    use ``x ** (1/n)``.
    """
    x = np.float64(x)
    df = np.zeros(order + 1, dtype = np.float64)

    if n == 2:
        df[0] = np.sqrt(x)
        xk = 0.5 / df[0]
    elif n == 3:
        df[0] = np.cbrt(x)
        xk = 1.0 / (3.0 * df[0] * df[0])
    else:
        df[0] = np.float_power(x, 1.0 / n)
        xk = 1.0 / (n * np.float_power(df[0], n - 1))

    n_inv = 1.0 / n
    x_inv = 1.0 / x
    for i in range(1, order + 1):
        df[i] = xk
        xk *= x_inv * (n_inv - i)

    return df
