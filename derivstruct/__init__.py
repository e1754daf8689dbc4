"""
DERIVSTRUCT
===========

Derivative structures: flat arrays holding the value and all
partial derivatives of a function of several free parameters up
to a fixed total order, with arithmetic and elementary functions
computed directly on the arrays from precompiled indirection
tables.

>>> import derivstruct as ds
>>> c = ds.get_compiler(1, 3)
>>> x = c.variable(0, 2.0)
>>> x2 = c.zeros()
>>> c.multiply(x, 0, x, 0, x2, 0)
>>> x2
array([4., 4., 2., 0.])

"""

# Import sub-packages and modules into namespace
from . import errors
from . import indexing
from . import tables
from . import univariate
from . import math
from . import compiler
from . import registry

from .compiler import DSCompiler
from .registry import CompilerRegistry, get_compiler
from .errors import DSError, ShapeMismatchError, OrderExceededError, DSArithmeticError

__version__ = '0.1.0'
