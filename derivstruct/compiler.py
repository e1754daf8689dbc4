"""
derivstruct.compiler
--------------------

This module implements the class :class:`DSCompiler`, which
holds the "compiled" computation rules of derivative structures
for a fixed number of free parameters and derivation order.

A derivative structure is a flat 1D array holding the value
and all partial derivatives of a function up to the derivation
order. Slot 0 is the value. The compiler does not own any
derivative structure: all of its kernel methods act on arrays
supplied by the caller, each addressed by an ``(array, offset)``
pair and spanning :attr:`DSCompiler.size` contiguous slots.

The rules of the generalized Leibniz product formula and of
Faa di Bruno's composition formula are expanded once, when the
compiler is built, into indirection tables (see
:mod:`derivstruct.tables`). Multiplication and composition are
then plain sums of products driven by those tables.

Compilers should be obtained from
:func:`derivstruct.registry.get_compiler`, which builds each
(parameters, order) signature once and reuses it.

==========================   ======================================
**Structure bookkeeping**
-------------------------------------------------------------------
:attr:`~DSCompiler.size`     Number of slots
:meth:`~DSCompiler.get_partial_derivative_index`   Orders -> slot
:meth:`~DSCompiler.get_partial_derivative_orders`  Slot -> orders
:meth:`~DSCompiler.check_compatibility`            Signature check
:meth:`~DSCompiler.constant`                       New constant
:meth:`~DSCompiler.variable`                       New free parameter
--------------------------   --------------------------------------
**Arithmetic**
-------------------------------------------------------------------
:meth:`~DSCompiler.add`      ``lhs + rhs``
:meth:`~DSCompiler.subtract` ``lhs - rhs``
:meth:`~DSCompiler.negate`   ``-x``
:meth:`~DSCompiler.multiply` ``lhs * rhs``
:meth:`~DSCompiler.divide`   ``lhs / rhs``
:meth:`~DSCompiler.remainder` IEEE remainder
:meth:`~DSCompiler.linear_combination`  ``sum(a_i * x_i)``
--------------------------   --------------------------------------
**Functions**
-------------------------------------------------------------------
:meth:`~DSCompiler.compose`  ``f(x)`` from the derivatives of f
power                        ``pow_base``, ``powf``, ``powi``,
                             ``pow_ds``, ``rootn``, ``sqrt``,
                             ``cbrt``
exponential                  ``exp``, ``expm1``, ``log``,
                             ``log1p``, ``log10``
trigonometric                ``sin``, ``cos``, ``tan``, ``asin``,
                             ``acos``, ``atan``, ``atan2``
hyperbolic                   ``sinh``, ``cosh``, ``tanh``,
                             ``asinh``, ``acosh``, ``atanh``
--------------------------   --------------------------------------
**Evaluation**
-------------------------------------------------------------------
:meth:`~DSCompiler.taylor`   Truncated Taylor expansion
==========================   ======================================

Aliasing
--------
``add``, ``subtract``, ``negate``, ``remainder`` and
``linear_combination`` accept a result span that is one of the
operand spans. All other operations require the result span to
be disjoint from every operand span.

"""

import math
import warnings

import numpy as np

from . import tables
from . import univariate
from .errors import ShapeMismatchError
from .indexing import partial_derivative_index
from .math import linear_combination, factorial

def _ieee_remainder(x, y):
    """
    IEEE 754 remainder ``x - n*y`` with ``n`` the integer
    nearest ``x/y``. Invalid cases return NaN instead of raising.
    """
    if np.isnan(x) or np.isnan(y) or np.isinf(x) or y == 0:
        return np.nan
    return np.float64(math.remainder(x, y))

class DSCompiler:

    """
    Compiled computation rules for derivative structures.

    Attributes
    ----------
    parameters : int
        The number of free parameters.
    order : int
        The derivation order.
    size : int
        The number of slots of a derivative structure.
    sizes : tuple of tuple of int
        ``sizes[p][o]`` is the number of slots for `p`
        parameters truncated at order `o`.
    orders_table : tuple of tuple of int
        ``orders_table[i]`` is the order vector of slot `i`.
    lower_indirection : tuple of int
        Slots of the order - 1 structure within this one.
    mult_indirection : tuple of tuple of (int, int, int)
        Multiplication terms ``(c, l, r)`` of each slot.
    comp_indirection : tuple of tuple of (int, int, tuple of int)
        Composition terms ``(c, k, inner)`` of each slot.

    Notes
    -----
    The layout of the slots is fixed by the recursive build and
    is not the lexical derivative ordering. For two parameters
    at order 2 it is ``[f, f_x, f_xx, f_y, f_xy, f_yy]``. Use
    :meth:`get_partial_derivative_index` to locate a given
    derivative.

    The stored values are the derivatives themselves, with no
    factorial normalization.

    All tables are immutable once built.

    """

    def __init__(self, parameters, order, value_compiler = None, derivative_compiler = None):
        """
        Build a compiler from its two sub-compilers.

        Parameters
        ----------
        parameters : int
            The number of free parameters.
        order : int
            The derivation order.
        value_compiler : DSCompiler
            The compiler for (`parameters` - 1, `order`). Ignored
            if `parameters` is 0.
        derivative_compiler : DSCompiler
            The compiler for (`parameters`, `order` - 1). Ignored
            if `order` is 0.

        """

        if parameters < 0 or order < 0:
            raise ValueError("parameters and order must be >= 0")
        if parameters > 0 and order > 0:
            if value_compiler is None or derivative_compiler is None:
                raise ValueError("sub-compilers are required for parameters > 0 and order > 0")
            if (value_compiler.parameters, value_compiler.order) != (parameters - 1, order):
                raise ValueError("value_compiler must have signature (parameters - 1, order)")
            if (derivative_compiler.parameters, derivative_compiler.order) != (parameters, order - 1):
                raise ValueError("derivative_compiler must have signature (parameters, order - 1)")
        elif parameters > 0 and value_compiler is None:
            raise ValueError("value_compiler is required for parameters > 0")

        self.parameters = parameters
        self.order = order

        self.sizes = tables.compile_sizes(parameters, order, value_compiler)
        self.size = self.sizes[parameters][order]

        self.orders_table = tables.compile_orders(parameters, order,
                                                  value_compiler, derivative_compiler)
        self.lower_indirection = tables.compile_lower(parameters, order,
                                                      value_compiler, derivative_compiler)
        self.mult_indirection = tables.compile_multiplication(parameters, order,
                                                              value_compiler, derivative_compiler,
                                                              self.lower_indirection)
        self.comp_indirection = tables.compile_composition(parameters, order,
                                                           value_compiler, derivative_compiler,
                                                           self.sizes, self.orders_table)

        # Flat forms used by the kernels
        self._mult_packed = tables.pack_multiplication(self.mult_indirection)
        self._comp_packed = tables.pack_composition(self.comp_indirection)

    def __repr__(self):
        return f"DSCompiler(parameters={self.parameters:d}, order={self.order:d})"

    ##########################################
    # Bookkeeping

    def get_partial_derivative_index(self, *orders):
        """
        Get the slot index of a partial derivative.

        Parameters
        ----------
        *orders : int
            The derivation order with respect to each free
            parameter. Exactly :attr:`parameters` values.

        Returns
        -------
        int
            The slot index.

        Raises
        ------
        ShapeMismatchError
            If the number of orders is not :attr:`parameters`.
        OrderExceededError
            If the total order is larger than :attr:`order`.
        ValueError
            If an order is negative.

        Examples
        --------
        >>> c = get_compiler(2, 2)
        >>> c.get_partial_derivative_index(1, 1)
        4

        """
        return partial_derivative_index(self.parameters, self.order, self.sizes, orders)

    def get_partial_derivative_orders(self, index):
        """
        Get the derivation orders of a slot, the inverse of
        :meth:`get_partial_derivative_index`.

        Returns
        -------
        tuple of int

        """
        if index < 0 or index >= self.size:
            raise IndexError(f"slot index must be >= 0 and < {self.size:d}")
        return self.orders_table[index]

    def get_sizes(self):
        """ The ``sizes[p][o]`` table. """
        return self.sizes

    def get_lower_index(self):
        """ The lower derivatives indirection table. """
        return self.lower_indirection

    def get_multiplication_terms(self, index):
        """ The ``(c, l, r)`` multiplication terms of slot `index`. """
        return self.mult_indirection[index]

    def get_composition_terms(self, index):
        """ The ``(c, k, inner)`` composition terms of slot `index`. """
        return self.comp_indirection[index]

    def check_compatibility(self, other):
        """
        Check that `other` has the same signature.

        Raises
        ------
        ShapeMismatchError
            If the number of free parameters or the
            derivation order differ.

        """
        if self.parameters != other.parameters:
            raise ShapeMismatchError(self.parameters, other.parameters, "free parameters")
        if self.order != other.order:
            raise ShapeMismatchError(self.order, other.order, "derivation order")

    def zeros(self):
        """
        A new derivative structure array of zeros.
        """
        return np.zeros(self.size, dtype = np.float64)

    def constant(self, value):
        """
        A new derivative structure array for a constant.

        Examples
        --------
        >>> get_compiler(2, 1).constant(3.0)
        array([3., 0., 0.])

        """
        ds = self.zeros()
        ds[0] = value
        return ds

    def variable(self, index, value):
        """
        A new derivative structure array for a free parameter.

        Parameters
        ----------
        index : int
            The free parameter index, 0, ..., :attr:`parameters` - 1.
        value : float
            The value of the parameter.

        Returns
        -------
        ndarray
            The structure with value `value` and unit first
            derivative with respect to parameter `index`.

        Examples
        --------
        >>> get_compiler(2, 2).variable(1, 3.0)
        array([3., 0., 0., 1., 0., 0.])

        """
        if index < 0 or index >= self.parameters:
            raise ValueError(f"parameter index must be >= 0 and < {self.parameters:d}")

        ds = self.constant(value)
        if self.order > 0:
            orders = [0] * self.parameters
            orders[index] = 1
            ds[self.get_partial_derivative_index(*orders)] = 1.0
        return ds

    ##########################################
    # Array spans

    def _span(self, a, offset):
        """
        A bounds-checked view of the `size` slots of `a` starting
        at `offset`.
        """
        if np.ndim(a) != 1:
            raise ShapeMismatchError(np.ndim(a), 1, "array rank")
        if offset < 0:
            raise ShapeMismatchError(offset, 0, "array offset")
        if offset + self.size > len(a):
            raise ShapeMismatchError(len(a) - offset, self.size, "array span")
        return a[offset:offset + self.size]

    def _in(self, a, offset):
        return self._span(np.asarray(a, dtype = np.float64), offset)

    def _out(self, result, offset):
        if not isinstance(result, np.ndarray):
            raise TypeError("result must be an ndarray")
        if result.dtype != np.float64:
            raise TypeError(f"result must have dtype float64, not {result.dtype}")
        return self._span(result, offset)

    ##########################################
    # Arithmetic

    def linear_combination(self, terms, result, result_offset):
        """
        Compute the linear combination ``sum(a * x)`` of
        derivative structures.

        Parameters
        ----------
        terms : sequence of (float, array_like, int)
            The ``(a, array, offset)`` scale factor and operand
            span of each term. The usual forms have 2, 3 or 4
            terms.
        result : ndarray
            Result array. It may be one of the operands.
        result_offset : int
            Offset of the result span.

        Notes
        -----
        Each slot is accumulated with a compensated dot product
        (see :func:`derivstruct.math.linear_combination`) and is
        therefore more accurate than naive summation.

        """
        if len(terms) < 1:
            raise ValueError("at least one term is required")

        a = [float(t[0]) for t in terms]
        x = [self._in(t[1], t[2]) for t in terms]
        out = self._out(result, result_offset)

        out[:] = linear_combination(a, x)

    def add(self, lhs, lhs_offset, rhs, rhs_offset, result, result_offset):
        """ Add two derivative structures. """
        x = self._in(lhs, lhs_offset)
        y = self._in(rhs, rhs_offset)
        out = self._out(result, result_offset)
        np.add(x, y, out = out)

    def subtract(self, lhs, lhs_offset, rhs, rhs_offset, result, result_offset):
        """ Subtract two derivative structures. """
        x = self._in(lhs, lhs_offset)
        y = self._in(rhs, rhs_offset)
        out = self._out(result, result_offset)
        np.subtract(x, y, out = out)

    def negate(self, operand, operand_offset, result, result_offset):
        """ Negate a derivative structure. """
        x = self._in(operand, operand_offset)
        out = self._out(result, result_offset)
        np.negative(x, out = out)

    def multiply(self, lhs, lhs_offset, rhs, rhs_offset, result, result_offset):
        """
        Multiply two derivative structures.

        Parameters
        ----------
        lhs : array_like
            Left operand array.
        lhs_offset : int
            Offset of the left operand span.
        rhs : array_like
            Right operand array.
        rhs_offset : int
            Offset of the right operand span.
        result : ndarray
            Result array. The result span must not overlap the
            operand spans.
        result_offset : int
            Offset of the result span.

        Notes
        -----
        Slot `i` of the product is
        ``sum(c * lhs[l] * rhs[r] for (c, l, r) in mult_indirection[i])``,
        the generalized Leibniz rule expanded for this slot.

        """
        x = self._in(lhs, lhs_offset)
        y = self._in(rhs, rhs_offset)
        out = self._out(result, result_offset)

        slots, coeffs, left, right = self._mult_packed
        terms = coeffs * x[left] * y[right]
        out[:] = np.bincount(slots, weights = terms, minlength = self.size)

    def divide(self, lhs, lhs_offset, rhs, rhs_offset, result, result_offset):
        """
        Divide two derivative structures.

        The quotient is computed as ``lhs * rhs**-1``. A
        ``RuntimeWarning`` is issued if the value of `rhs` is
        zero.
        """
        x = self._in(lhs, lhs_offset)
        y = self._in(rhs, rhs_offset)
        out = self._out(result, result_offset)

        if y[0] == 0:
            warnings.warn("Zero divisor value encountered in derivative structure division",
                          RuntimeWarning)

        reciprocal = np.empty(self.size, dtype = np.float64)
        self.powi(y, 0, -1, reciprocal, 0)
        self.multiply(x, 0, reciprocal, 0, out, 0)

    def remainder(self, lhs, lhs_offset, rhs, rhs_offset, result, result_offset):
        """
        IEEE remainder of two derivative structures.

        The value is ``lhs - n * rhs`` with ``n`` the integer
        nearest ``lhs / rhs`` (not the floored modulus). Since
        ``n`` is locally constant, each derivative is
        ``lhs[i] - n * rhs[i]``.
        """
        x = self._in(lhs, lhs_offset)
        y = self._in(rhs, rhs_offset)
        out = self._out(result, result_offset)

        rem = _ieee_remainder(x[0], y[0])
        n = np.rint((x[0] - rem) / y[0])

        tail = x[1:] - n * y[1:]
        out[0] = rem
        out[1:] = tail

    ##########################################
    # Composition

    def compose(self, operand, operand_offset, f, result, result_offset):
        """
        Compute the composition of a single-argument function
        with a derivative structure.

        Parameters
        ----------
        operand : array_like
            Operand array.
        operand_offset : int
            Offset of the operand span.
        f : array_like
            ``f[k]`` is the k-th derivative of the outer function
            at the operand value, for k = 0, ..., :attr:`order`.
        result : ndarray
            Result array. The result span must not overlap the
            operand span.
        result_offset : int
            Offset of the result span.

        Notes
        -----
        Slot `i` of the result is
        ``sum(c * f[k] * prod(operand[j] for j in inner))`` over the
        terms ``(c, k, inner)`` of ``comp_indirection[i]``, i.e.
        Faa di Bruno's formula expanded for this slot.

        """
        x = self._in(operand, operand_offset)
        f = np.asarray(f, dtype = np.float64)
        if f.shape != (self.order + 1,):
            raise ShapeMismatchError(f.size, self.order + 1, "function derivative array length")
        out = self._out(result, result_offset)

        self._compose(x, f, out)

    def _compose(self, x, f, out):
        acc = np.zeros(self.size, dtype = np.float64)
        for slots, coeffs, korders, inner in self._comp_packed:
            terms = coeffs * f[korders]
            if inner.shape[1] > 0:
                terms = terms * np.prod(x[inner], axis = 1)
            acc += np.bincount(slots, weights = terms, minlength = self.size)
        out[:] = acc

    def _apply(self, df_fun, operand, operand_offset, result, result_offset, *args):
        # f(x) with df_fun(x0, *args, order) the derivatives of f
        x = self._in(operand, operand_offset)
        out = self._out(result, result_offset)
        self._compose(x, df_fun(x[0], *args, self.order), out)

    ##########################################
    # Power functions

    def pow_base(self, a, operand, operand_offset, result, result_offset):
        """
        Compute ``a ** x`` for a constant base `a` and a
        derivative structure exponent.

        See :func:`derivstruct.univariate.pow_base` for the
        ``a == 0`` conventions.
        """
        x = self._in(operand, operand_offset)
        out = self._out(result, result_offset)
        self._compose(x, univariate.pow_base(a, x[0], self.order), out)

    def powf(self, operand, operand_offset, p, result, result_offset):
        """ Compute ``x ** p`` for a real exponent `p`. """
        self._apply(univariate.powf, operand, operand_offset, result, result_offset, p)

    def powi(self, operand, operand_offset, n, result, result_offset):
        """
        Compute ``x ** n`` for an integer exponent `n`.

        ``n == 0`` gives the constant 1 (also at ``x == 0``).
        """
        if n == 0:
            self._in(operand, operand_offset)
            out = self._out(result, result_offset)
            out.fill(0.0)
            out[0] = 1.0
            return
        self._apply(univariate.powi, operand, operand_offset, result, result_offset, int(n))

    def pow_ds(self, x, x_offset, y, y_offset, result, result_offset):
        """
        Compute ``x ** y`` for two derivative structures, as
        ``exp(y * log(x))``.
        """
        xs = self._in(x, x_offset)
        ys = self._in(y, y_offset)
        out = self._out(result, result_offset)

        log_x = np.empty(self.size, dtype = np.float64)
        self.log(xs, 0, log_x, 0)
        y_log_x = np.empty(self.size, dtype = np.float64)
        self.multiply(log_x, 0, ys, 0, y_log_x, 0)
        self.exp(y_log_x, 0, out, 0)

    def rootn(self, operand, operand_offset, n, result, result_offset):
        """ Compute the `n`-th root of a derivative structure. """
        self._apply(univariate.rootn, operand, operand_offset, result, result_offset, n)

    def sqrt(self, operand, operand_offset, result, result_offset):
        """ Square root. """
        self.rootn(operand, operand_offset, 2, result, result_offset)

    def cbrt(self, operand, operand_offset, result, result_offset):
        """ Cube root. """
        self.rootn(operand, operand_offset, 3, result, result_offset)

    ##########################################
    # Exponential and logarithmic functions

    def exp(self, operand, operand_offset, result, result_offset):
        """ Exponential. """
        self._apply(univariate.exp, operand, operand_offset, result, result_offset)

    def expm1(self, operand, operand_offset, result, result_offset):
        """ ``exp(x) - 1``, accurate for small x. """
        self._apply(univariate.expm1, operand, operand_offset, result, result_offset)

    def log(self, operand, operand_offset, result, result_offset):
        """ Natural logarithm. """
        self._apply(univariate.log, operand, operand_offset, result, result_offset)

    def log1p(self, operand, operand_offset, result, result_offset):
        """ ``log(1 + x)``, accurate for small x. """
        self._apply(univariate.log1p, operand, operand_offset, result, result_offset)

    def log10(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.log10, operand, operand_offset, result, result_offset)

    ##########################################
    # Trigonometric functions

    def cos(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.cos, operand, operand_offset, result, result_offset)

    def sin(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.sin, operand, operand_offset, result, result_offset)

    def tan(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.tan, operand, operand_offset, result, result_offset)

    def acos(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.acos, operand, operand_offset, result, result_offset)

    def asin(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.asin, operand, operand_offset, result, result_offset)

    def atan(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.atan, operand, operand_offset, result, result_offset)

    def atan2(self, y, y_offset, x, x_offset, result, result_offset):
        """
        Two-argument arctangent of derivative structures.

        Notes
        -----
        The derivatives follow from
        ``atan2(y, x) = 2 atan(y / (r + x))`` for ``x >= 0`` and
        ``+/-pi - 2 atan(y / (r - x))`` otherwise, with
        ``r = sqrt(x**2 + y**2)``. The value slot is then replaced
        by :func:`numpy.arctan2` so that signed zeros and
        infinite arguments are handled exactly.

        """
        ys = self._in(y, y_offset)
        xs = self._in(x, x_offset)
        out = self._out(result, result_offset)

        y0 = ys[0]
        x0 = xs[0]

        tmp1 = np.empty(self.size, dtype = np.float64)
        tmp2 = np.empty(self.size, dtype = np.float64)
        self.multiply(xs, 0, xs, 0, tmp1, 0)        # x**2
        self.multiply(ys, 0, ys, 0, tmp2, 0)        # y**2
        self.add(tmp1, 0, tmp2, 0, tmp2, 0)         # x**2 + y**2
        self.rootn(tmp2, 0, 2, tmp1, 0)             # r

        if x0 >= 0:
            self.add(tmp1, 0, xs, 0, tmp2, 0)       # r + x
            self.divide(ys, 0, tmp2, 0, tmp1, 0)    # y / (r + x)
            self.atan(tmp1, 0, tmp2, 0)
            np.multiply(2.0, tmp2, out = out)
        else:
            self.subtract(tmp1, 0, xs, 0, tmp2, 0)  # r - x
            self.divide(ys, 0, tmp2, 0, tmp1, 0)    # y / (r - x)
            self.atan(tmp1, 0, tmp2, 0)
            out[0] = (-np.pi if tmp2[0] <= 0 else np.pi) - 2.0 * tmp2[0]
            np.multiply(-2.0, tmp2[1:], out = out[1:])

        out[0] = np.arctan2(y0, x0)

    ##########################################
    # Hyperbolic functions

    def cosh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.cosh, operand, operand_offset, result, result_offset)

    def sinh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.sinh, operand, operand_offset, result, result_offset)

    def tanh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.tanh, operand, operand_offset, result, result_offset)

    def acosh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.acosh, operand, operand_offset, result, result_offset)

    def asinh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.asinh, operand, operand_offset, result, result_offset)

    def atanh(self, operand, operand_offset, result, result_offset):
        self._apply(univariate.atanh, operand, operand_offset, result, result_offset)

    ##########################################
    # Evaluation

    def taylor(self, ds, ds_offset, delta):
        """
        Evaluate the truncated Taylor expansion of a derivative
        structure.

        Parameters
        ----------
        ds : array_like
            Derivative structure array.
        ds_offset : int
            Offset of the structure span.
        delta : sequence of float
            The displacement of each free parameter.

        Returns
        -------
        float
            ``sum(ds[i] * prod(delta[k]**o[k] / o[k]!))`` over all
            slots `i`, with ``o`` the order vector of slot `i`.

        Raises
        ------
        ShapeMismatchError
            If ``len(delta) != parameters``.
        DSArithmeticError
            If a factorial cannot be evaluated.

        """
        x = self._in(ds, ds_offset)
        delta = np.asarray(delta, dtype = np.float64)
        if delta.shape != (self.parameters,):
            raise ShapeMismatchError(delta.size, self.parameters, "delta length")

        value = 0.0
        # Highest orders (smallest terms) first
        for i in range(self.size - 1, -1, -1):
            term = x[i]
            for k, o in enumerate(self.orders_table[i]):
                if o > 0:
                    term *= delta[k] ** o / factorial(o)
            value += term

        return float(value)
