"""
derivstruct.errors
------------------

Exception classes raised by the derivative structure compiler.

The concrete error kinds derive from the matching builtin
exception as well as from :class:`DSError`, so callers may
catch either ``ValueError`` or the package-specific class.

"""

class DSError(Exception):
    """
    Base class of all derivative structure errors.
    """
    pass

class ShapeMismatchError(DSError, ValueError):
    """
    A dimension does not match what the compiler expects.

    Raised for order vectors whose length differs from the
    number of free parameters, for compilers with a different
    (parameters, order) signature, and for array spans that do
    not fit in the supplied array.

    Attributes
    ----------
    found : int
        The offending dimension.
    expected : int
        The required dimension.

    """

    def __init__(self, found, expected, what = "dimension"):
        self.found = found
        self.expected = expected
        super().__init__(f"{what} mismatch: {found:d} != {expected:d}")

class OrderExceededError(DSError, ValueError):
    """
    The total requested derivative order exceeds the
    derivation order of the compiler.

    Attributes
    ----------
    found : int
        The sum of the requested orders.
    bound : int
        The derivation order.

    """

    def __init__(self, found, bound):
        self.found = found
        self.bound = bound
        super().__init__(f"total derivation order {found:d} is larger than {bound:d}")

class DSArithmeticError(DSError, ArithmeticError):
    """
    An arithmetic step failed where valid inputs cannot
    make it fail (e.g. a non-positive factorial in
    Taylor evaluation).
    """
    pass
