"""
Python interface to the SuperLU sparse direct solver.

This module provides a ctypes-based interface to SuperLU's ``dgssv`` driver,
with owned matrix descriptors and a solve call that can be bounded by a timeout.
"""

from ._native import (
    ColPerm,
    Dtype,
    Fact,
    IterRefine,
    LibraryNotFoundError,
    Mtype,
    RowPerm,
    Stype,
    SuperLULibrary,
    Trans,
    YesNo,
    load_library,
)
from .errors import ConflictError, SolverError, SolveTimeoutError, UnsolvableError
from .options import Options
from .solver import solve, solve_system
from .super_matrix import SuperMatrix

__version__ = "0.1.0"
__all__ = [
    "ColPerm",
    "ConflictError",
    "Dtype",
    "Fact",
    "IterRefine",
    "LibraryNotFoundError",
    "Mtype",
    "Options",
    "RowPerm",
    "SolveTimeoutError",
    "SolverError",
    "Stype",
    "SuperLULibrary",
    "SuperMatrix",
    "Trans",
    "UnsolvableError",
    "YesNo",
    "load_library",
    "solve",
    "solve_system",
]
