"""
derivstruct.registry
--------------------

Process-wide cache of :class:`~derivstruct.compiler.DSCompiler`
objects.

A compiler for (P, N) is built from the compilers for (P - 1, N)
and (P, N - 1), so the registry keeps a 2D table indexed by
``[P][N]`` and fills every missing entry along the diagonals
``P + N = 0, 1, 2, ...`` in increasing order. The table is
never modified in place: a miss builds a complete new table,
copying the entries already built, and publishes it with a
single reference assignment. Readers therefore never observe a
partially filled table and lookups take no lock.

"""

import operator
import threading
import warnings

from .compiler import DSCompiler
from .indexing import nderiv

# Structure size above which building a compiler issues a warning
DEFAULT_SIZE_WARNING = 100000

class CompilerRegistry:
    """
    A cache of derivative structure compilers.

    Attributes
    ----------
    size_warning : int or None
        A ``ResourceWarning`` is issued when a compiler whose
        structure size exceeds this value is built. None
        disables the warning.

    """

    def __init__(self, size_warning = DEFAULT_SIZE_WARNING):
        """
        Create an empty registry.

        Parameters
        ----------
        size_warning : int or None, optional
            See :attr:`size_warning`. The default is
            :data:`DEFAULT_SIZE_WARNING`.

        """
        self.size_warning = size_warning
        self._compilers = () # Published table, a tuple of tuples
        self._lock = threading.Lock()

    def get_compiler(self, parameters, order):
        """
        Get the compiler for a signature, building it (and every
        compiler it depends on) if necessary.

        Parameters
        ----------
        parameters : int
            The number of free parameters, >= 0.
        order : int
            The derivation order, >= 0.

        Returns
        -------
        DSCompiler
            The cached compiler. Repeated calls return the same
            object.

        """

        parameters = operator.index(parameters) # TypeError if not an integer
        order = operator.index(order)
        if parameters < 0 or order < 0:
            raise ValueError("parameters and order must be >= 0")

        compiler = self._lookup(self._compilers, parameters, order)
        if compiler is not None:
            return compiler

        with self._lock:
            # Another thread may have published it meanwhile
            cache = self._compilers
            compiler = self._lookup(cache, parameters, order)
            if compiler is not None:
                return compiler

            if self.size_warning is not None and nderiv(order, parameters) > self.size_warning:
                warnings.warn(f"Building a derivative structure compiler with {nderiv(order, parameters):d} "
                              f"slots (parameters = {parameters:d}, order = {order:d})",
                              ResourceWarning)

            new_cache = self._build(cache, parameters, order)
            self._compilers = new_cache # single reference swap

        return new_cache[parameters][order]

    @staticmethod
    def _lookup(cache, parameters, order):
        if parameters < len(cache) and order < len(cache[parameters]):
            return cache[parameters][order]
        return None

    @staticmethod
    def _build(cache, parameters, order):
        """
        A new table containing the entries of `cache` and every
        compiler ``[p][o]`` with ``p <= parameters`` and
        ``o <= order``. Other cells may be None.
        """

        max_p = max(parameters, len(cache) - 1)
        max_o = max(order, len(cache[0]) - 1 if len(cache) > 0 else 0)

        table = [[None] * (max_o + 1) for _ in range(max_p + 1)]
        for p, row in enumerate(cache):
            table[p][:len(row)] = row

        # (P, N) needs (P - 1, N) and (P, N - 1):
        # fill in order of increasing P + N
        for diag in range(parameters + order + 1):
            for o in range(max(0, diag - parameters), min(order, diag) + 1):
                p = diag - o
                if table[p][o] is None:
                    value_compiler = None if p == 0 else table[p-1][o]
                    derivative_compiler = None if o == 0 else table[p][o-1]
                    table[p][o] = DSCompiler(p, o, value_compiler, derivative_compiler)

        return tuple(tuple(row) for row in table)

    def clear(self):
        """
        Drop all cached compilers. Compilers already handed out
        remain valid.
        """
        with self._lock:
            self._compilers = ()

_default_registry = CompilerRegistry()

def get_compiler(parameters, order):
    """
    Get the compiler for `parameters` free parameters and
    derivation order `order` from the process-wide registry.

    Examples
    --------
    >>> c = get_compiler(2, 2)
    >>> c.size
    6
    >>> c is get_compiler(2, 2)
    True

    """
    return _default_registry.get_compiler(parameters, order)

def default_registry():
    """ The process-wide :class:`CompilerRegistry`. """
    return _default_registry
