"""
derivstruct.indexing
--------------------

Translation between derivative order vectors and slot
indices of a flat derivative structure array.

A derivative structure for `parameters` free parameters and
derivation order `order` holds ``nderiv(order, parameters)``
values. Slot 0 is always the function value. The remaining
slots follow the recursive layout built by
:mod:`derivstruct.tables`: first the structure for one
parameter fewer (the last parameter not differentiated), then
the order - 1 structure of the derivative with respect to the
last parameter.

"""

import scipy.special

from .errors import ShapeMismatchError, OrderExceededError

def nderiv(order, parameters):
    """
    The number of slots of a derivative structure, i.e. the
    number of partial derivatives up to total order `order`
    in `parameters` variables, inclusively.
    This equals the binomial coefficient
    (`order` + `parameters`, `parameters`).

    Parameters
    ----------
    order : int
        The derivation order.
    parameters : int
        The number of free parameters.

    Returns
    -------
    int
        The number of slots.

    Examples
    --------
    >>> nderiv(2, 2)
    6
    >>> nderiv(3, 1)
    4

    """
    if order < 0 or parameters < 0:
        raise ValueError("order and parameters must be >= 0")
    return int(scipy.special.comb(order + parameters, parameters, exact = True))

def partial_derivative_index(parameters, order, sizes, orders):
    """
    Compute the slot index of a partial derivative.

    Parameters
    ----------
    parameters : int
        The number of free parameters.
    order : int
        The derivation order.
    sizes : sequence of sequence of int
        Size table with ``sizes[p][o]`` the number of slots for
        `p` parameters truncated at order `o`, for all
        ``p <= parameters`` and ``o <= order``.
    orders : sequence of int
        The derivation order with respect to each parameter.

    Returns
    -------
    int
        The slot index.

    Raises
    ------
    ShapeMismatchError
        If ``len(orders) != parameters``.
    OrderExceededError
        If the sum of `orders` is larger than `order`.
    ValueError
        If an entry of `orders` is negative.

    Notes
    -----
    This is the iterative form of the recursive layout
    theorem. Walking the parameters from last to first, each
    unit of derivation with respect to parameter `i` skips the
    value block ``sizes[i][m]`` and descends into the
    derivative sub-structure one order lower.

    """

    if len(orders) != parameters:
        raise ShapeMismatchError(len(orders), parameters, "order vector length")

    index = 0
    m = order # The remaining order of the current sub-structure
    orders_sum = 0
    for i in range(parameters - 1, -1, -1):

        d = int(orders[i])
        if d < 0:
            raise ValueError(f"derivation order of parameter {i:d} is negative")
        orders_sum += d
        if orders_sum > order:
            raise OrderExceededError(orders_sum, order)

        for _ in range(d):
            index += sizes[i][m]
            m -= 1

    return index

def convert_index(index, src_parameters, src_orders_table,
                  dest_parameters, dest_order, dest_sizes):
    """
    Move a slot index from one structure numbering to another.

    The order vector of `index` is read from the source table,
    padded with zeros (or truncated) to `dest_parameters`
    entries and re-indexed in the destination numbering.

    Parameters
    ----------
    index : int
        Slot index in the source numbering.
    src_parameters : int
        Number of free parameters of the source.
    src_orders_table : sequence of sequence of int
        Order vector table of the source.
    dest_parameters : int
        Number of free parameters of the destination.
    dest_order : int
        Derivation order of the destination.
    dest_sizes : sequence of sequence of int
        Size table of the destination.

    Returns
    -------
    int
        Slot index in the destination numbering.

    """
    orders = [0] * dest_parameters
    n = min(src_parameters, dest_parameters)
    orders[:n] = src_orders_table[index][:n]
    return partial_derivative_index(dest_parameters, dest_order, dest_sizes, orders)
