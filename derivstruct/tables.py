"""
derivstruct.tables
------------------

Construction of the indirection tables of a derivative
structure compiler.

The tables for `parameters` = P and `order` = N are derived
from the tables of two smaller compilers only:

* the *value compiler* for (P - 1, N), whose structure is the
  part of the (P, N) structure in which the last parameter is
  not differentiated, and
* the *derivative compiler* for (P, N - 1), whose structure is
  the derivative of the (P, N) structure with respect to the
  last parameter.

This is the doubly recursive construction of D. Kalman,
"Doubly Recursive Multivariate Automatic Differentiation",
Mathematics Magazine 75 (2002), unrolled once into tables.

===============================   ==========================================
:func:`compile_sizes`             ``sizes[p][o]`` slot counts
:func:`compile_orders`            order vector of every slot
:func:`compile_lower`             slots of the order N - 1 sub-structure
:func:`compile_multiplication`    generalized Leibniz rule terms
:func:`compile_composition`       Faa di Bruno formula terms
:func:`pack_multiplication`       flat numpy form for the kernels
:func:`pack_composition`          flat numpy form for the kernels
===============================   ==========================================

In all functions `value_compiler` and `derivative_compiler`
may be None when ``parameters == 0`` or ``order == 0``, which
are the trivial base cases.

"""

import numpy as np

from .indexing import partial_derivative_index, convert_index

def compile_sizes(parameters, order, value_compiler):
    """
    Compile the size table.

    Returns
    -------
    tuple of tuple of int
        ``sizes[p][o]``, the number of slots for `p` parameters
        truncated at order `o`, for ``p <= parameters`` and
        ``o <= order``.

    """

    if parameters == 0:
        return ((1,) * (order + 1),)

    # Rows 0 ... P-1 are the value compiler's table
    sizes = list(value_compiler.sizes[:parameters])

    last = [1]
    for i in range(order):
        last.append(last[i] + sizes[parameters - 1][i + 1])
    sizes.append(tuple(last))

    return tuple(sizes)

def compile_orders(parameters, order, value_compiler, derivative_compiler):
    """
    Compile the table of derivation orders.

    Returns
    -------
    tuple of tuple of int
        ``orders_table[i][k]`` is the derivation order of slot
        `i` with respect to parameter `k`.

    """

    if parameters == 0 or order == 0:
        return ((0,) * parameters,)

    table = []

    # The value part: the last parameter is not differentiated
    for vec in value_compiler.orders_table:
        table.append(tuple(vec) + (0,))

    # The derivative part: one more derivative w.r.t.
    # the last parameter
    for vec in derivative_compiler.orders_table:
        table.append(vec[:-1] + (vec[-1] + 1,))

    return tuple(table)

def compile_lower(parameters, order, value_compiler, derivative_compiler):
    """
    Compile the lower derivatives indirection table.

    Returns
    -------
    tuple of int
        ``lower[i]`` is the slot of the (P, N) structure that
        holds slot `i` of the (P, N - 1) structure. (The
        derivatives of order N - 1 or less are embedded in
        the order N structure.)

    """

    if parameters == 0 or order <= 1:
        return (0,)

    v_size = value_compiler.size
    lower = tuple(value_compiler.lower_indirection) + \
        tuple(v_size + i for i in derivative_compiler.lower_indirection)

    return lower

def _merge_terms(terms):
    """
    Sum the coefficients of terms with identical keys,
    keeping the order of first appearance and dropping
    zero coefficients.

    `terms` is an iterable of ``(coefficient, key)`` pairs.
    """
    combined = {}
    for c, key in terms:
        combined[key] = combined.get(key, 0) + c
    return [(c, key) for key, c in combined.items() if c != 0]

def compile_multiplication(parameters, order, value_compiler, derivative_compiler, lower):
    """
    Compile the multiplication indirection table.

    Parameters
    ----------
    parameters, order : int
        Signature of the compiler being built.
    value_compiler, derivative_compiler : DSCompiler
        The (P - 1, N) and (P, N - 1) compilers.
    lower : tuple of int
        The (P, N) lower indirection table.

    Returns
    -------
    tuple of tuple of (int, int, int)
        ``mult[i]`` is a list of ``(c, l, r)`` terms with
        ``(lhs * rhs)[i] = sum(c * lhs[l] * rhs[r])``.

    Notes
    -----
    The value part is the value compiler's table, unchanged.
    Each term ``c * f[l] * g[r]`` of the derivative compiler
    (a term of the derivative of the product) is split with the
    product rule into ``c * f[l] * dg[r] + c * df[l] * g[r]``,
    where the derivative slots live in the second block of the
    (P, N) structure and the undifferentiated ones are reached
    through `lower`.

    """

    if parameters == 0 or order == 0:
        return (((1, 0, 0),),)

    v_size = value_compiler.size
    mult = list(value_compiler.mult_indirection)

    for row in derivative_compiler.mult_indirection:
        split = []
        for c, l, r in row:
            split.append((c, (lower[l], v_size + r)))
            split.append((c, (v_size + l, lower[r])))

        mult.append(tuple((c, l, r) for c, (l, r) in _merge_terms(split)))

    return tuple(mult)

def compile_composition(parameters, order, value_compiler, derivative_compiler,
                        sizes, orders_table):
    """
    Compile the composition indirection table.

    Parameters
    ----------
    parameters, order : int
        Signature of the compiler being built.
    value_compiler, derivative_compiler : DSCompiler
        The (P - 1, N) and (P, N - 1) compilers.
    sizes : tuple of tuple of int
        The (P, N) size table.
    orders_table : tuple of tuple of int
        The (P, N) order vector table.

    Returns
    -------
    tuple of tuple of (int, int, tuple of int)
        ``comp[i]`` is a list of ``(c, k, inner)`` terms with
        ``f(g)[i] = sum(c * f[k] * prod(g[j] for j in inner))``
        where ``f[k]`` is the k-th derivative of the outer
        function at ``g[0]``.

    Notes
    -----
    Each derivative compiler term ``c * f[k] * g[j1] ... g[jm]``
    is differentiated w.r.t. the last parameter. Differentiating
    the outer function gives ``c * f[k+1] * g[j1] ... g[jm] * g_x``
    and differentiating each inner factor ``g[jl]`` gives one term
    with that factor replaced by its derivative. Inner indices
    are kept sorted so that equal products merge.

    """

    if parameters == 0 or order == 0:
        return (((1, 0, ()),),)

    comp = list(value_compiler.comp_indirection)

    # Slot of the first derivative w.r.t. the last parameter
    first = [0] * parameters
    first[parameters - 1] = 1
    g_x = partial_derivative_index(parameters, order, sizes, first)

    src_table = derivative_compiler.orders_table

    converted = {} # (P, N - 1) slot -> (P, N) slot
    def convert(j):
        if j not in converted:
            converted[j] = convert_index(j, parameters, src_table,
                                         parameters, order, sizes)
        return converted[j]

    raised = {} # (P, N) slot -> slot of its derivative w.r.t. the last parameter
    def differentiate(j):
        if j not in raised:
            vec = list(orders_table[j])
            vec[parameters - 1] += 1
            raised[j] = partial_derivative_index(parameters, order, sizes, vec)
        return raised[j]

    for row in derivative_compiler.comp_indirection:
        terms = []
        for c, k, inner in row:
            inner = [convert(j) for j in inner]

            # d/dx of the outer function
            terms.append((c, (k + 1, tuple(sorted(inner + [g_x])))))

            # d/dx of each inner factor
            for l in range(len(inner)):
                factors = list(inner)
                factors[l] = differentiate(factors[l])
                terms.append((c, (k, tuple(sorted(factors)))))

        comp.append(tuple((c, k, inner) for c, (k, inner) in _merge_terms(terms)))

    return tuple(comp)

def _readonly(a):
    a.flags.writeable = False
    return a

def pack_multiplication(mult):
    """
    Pack a multiplication table into flat index arrays.

    Returns
    -------
    slots, coeffs, left, right : ndarray
        One entry per term. ``slots`` holds the result slot of
        each term. All arrays are read-only.

    """
    slots, coeffs, left, right = [], [], [], []
    for i, row in enumerate(mult):
        for c, l, r in row:
            slots.append(i)
            coeffs.append(c)
            left.append(l)
            right.append(r)

    return (_readonly(np.array(slots, dtype = np.intp)),
            _readonly(np.array(coeffs, dtype = np.float64)),
            _readonly(np.array(left, dtype = np.intp)),
            _readonly(np.array(right, dtype = np.intp)))

def pack_composition(comp):
    """
    Pack a composition table into flat index arrays, grouped
    by the number of inner factors.

    Returns
    -------
    list of tuple
        One ``(slots, coeffs, korders, inner)`` group per
        distinct inner factor count ``m``. ``inner`` has shape
        ``(nterms, m)``. All arrays are read-only.

    """
    groups = {}
    for i, row in enumerate(comp):
        for c, k, inner in row:
            g = groups.setdefault(len(inner), ([], [], [], []))
            g[0].append(i)
            g[1].append(c)
            g[2].append(k)
            g[3].append(inner)

    packed = []
    for m in sorted(groups):
        slots, coeffs, korders, inner = groups[m]
        inner = np.array(inner, dtype = np.intp).reshape((len(slots), m))
        packed.append((_readonly(np.array(slots, dtype = np.intp)),
                       _readonly(np.array(coeffs, dtype = np.float64)),
                       _readonly(np.array(korders, dtype = np.intp)),
                       _readonly(inner)))

    return packed
