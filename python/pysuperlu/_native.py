"""
SuperLU C interface using ctypes.

This module mirrors the parts of SuperLU's public headers (``supermatrix.h``,
``slu_util.h``, ``slu_ddefs.h``) that the Python interface needs, and binds
the corresponding functions of the ``libsuperlu`` shared library.

Nothing here is loaded at import time; call :func:`load_library` to obtain a
:class:`SuperLULibrary`.
"""

import ctypes
import functools
import logging
import os
from enum import IntEnum

import numpy as np
from numpy.ctypeslib import ndpointer

from .lib_detect import find_superlu

LOGGER = logging.getLogger(__name__)


class LibraryNotFoundError(ImportError):
    """Raised when the SuperLU shared library cannot be found or loaded."""


# Enumerations (int-sized C enums)

class Stype(IntEnum):
    SLU_NC = 0      # column-wise, no supernode
    SLU_NCP = 1     # column-wise, column-permuted, no supernode
    SLU_NR = 2      # row-wize, no supernode
    SLU_SC = 3      # column-wise, supernode
    SLU_SCP = 4     # supernode, column-wise, permuted
    SLU_SR = 5      # row-wise, supernode
    SLU_DN = 6      # Fortran style column-wise storage for dense matrix
    SLU_NR_loc = 7  # distributed compressed row format


class Dtype(IntEnum):
    SLU_S = 0
    SLU_D = 1
    SLU_C = 2
    SLU_Z = 3


class Mtype(IntEnum):
    SLU_GE = 0
    SLU_TRLU = 1
    SLU_TRUU = 2
    SLU_TRL = 3
    SLU_TRU = 4
    SLU_SYL = 5
    SLU_SYU = 6
    SLU_HEL = 7
    SLU_HEU = 8


class YesNo(IntEnum):
    NO = 0
    YES = 1


class Fact(IntEnum):
    DOFACT = 0
    SamePattern = 1
    SamePattern_SameRowPerm = 2
    FACTORED = 3


class ColPerm(IntEnum):
    NATURAL = 0
    MMD_ATA = 1
    MMD_AT_PLUS_A = 2
    COLAMD = 3
    METIS_AT_PLUS_A = 4
    PARMETIS = 5
    ZOLTAN = 6
    MY_PERMC = 7


class RowPerm(IntEnum):
    NOROWPERM = 0
    LargeDiag_MC64 = 1
    LargeDiag_HWPM = 2
    MY_PERMR = 3
    LargeDiag = 1   # pre-5.2 name


class Trans(IntEnum):
    NOTRANS = 0
    TRANS = 1
    CONJ = 2


class IterRefine(IntEnum):
    NOREFINE = 0
    SLU_SINGLE = 1
    SLU_DOUBLE = 2
    SLU_EXTRA = 3


class Norm(IntEnum):
    ONE_NORM = 0
    TWO_NORM = 1
    INF_NORM = 2


class Milu(IntEnum):
    SILU = 0
    SMILU_1 = 1
    SMILU_2 = 2
    SMILU_3 = 3


SUPERNODAL_STYPES = frozenset({Stype.SLU_SC, Stype.SLU_SCP, Stype.SLU_SR})


# Structures

class SuperMatrixStruct(ctypes.Structure):
    """The ``SuperMatrix`` descriptor."""
    _fields_ = [
        ("Stype", ctypes.c_int),     # Stype_t Stype
        ("Dtype", ctypes.c_int),     # Dtype_t Dtype
        ("Mtype", ctypes.c_int),     # Mtype_t Mtype
        ("nrow", ctypes.c_int),      # int_t nrow
        ("ncol", ctypes.c_int),      # int_t ncol
        ("Store", ctypes.c_void_p),  # void *Store
    ]


class NCformat(ctypes.Structure):
    _fields_ = [
        ("nnz", ctypes.c_int),                     # int_t nnz
        ("nzval", ctypes.c_void_p),                # void *nzval
        ("rowind", ctypes.POINTER(ctypes.c_int)),  # int_t *rowind
        ("colptr", ctypes.POINTER(ctypes.c_int)),  # int_t *colptr
    ]


class NRformat(ctypes.Structure):
    _fields_ = [
        ("nnz", ctypes.c_int),                     # int_t nnz
        ("nzval", ctypes.c_void_p),                # void *nzval
        ("colind", ctypes.POINTER(ctypes.c_int)),  # int_t *colind
        ("rowptr", ctypes.POINTER(ctypes.c_int)),  # int_t *rowptr
    ]


class DNformat(ctypes.Structure):
    _fields_ = [
        ("lda", ctypes.c_int),       # int_t lda
        ("nzval", ctypes.c_void_p),  # void *nzval
    ]


class SuperLUOptions(ctypes.Structure):
    """The ``superlu_options_t`` record."""
    _fields_ = [
        ("Fact", ctypes.c_int),                # fact_t Fact
        ("Equil", ctypes.c_int),               # yes_no_t Equil
        ("ColPerm", ctypes.c_int),             # colperm_t ColPerm
        ("Trans", ctypes.c_int),               # trans_t Trans
        ("IterRefine", ctypes.c_int),          # IterRefine_t IterRefine
        ("DiagPivotThresh", ctypes.c_double),  # double DiagPivotThresh
        ("SymmetricMode", ctypes.c_int),       # yes_no_t SymmetricMode
        ("PivotGrowth", ctypes.c_int),         # yes_no_t PivotGrowth
        ("ConditionNumber", ctypes.c_int),     # yes_no_t ConditionNumber
        ("RowPerm", ctypes.c_int),             # rowperm_t RowPerm
        ("ILU_DropRule", ctypes.c_int),        # int ILU_DropRule
        ("ILU_DropTol", ctypes.c_double),      # double ILU_DropTol
        ("ILU_FillFactor", ctypes.c_double),   # double ILU_FillFactor
        ("ILU_Norm", ctypes.c_int),            # norm_t ILU_Norm
        ("ILU_FillTol", ctypes.c_double),      # double ILU_FillTol
        ("ILU_MILU", ctypes.c_int),            # milu_t ILU_MILU
        ("ILU_MILU_Dim", ctypes.c_double),     # double ILU_MILU_Dim
        ("ParSymbFact", ctypes.c_int),         # yes_no_t ParSymbFact
        ("ReplaceTinyPivot", ctypes.c_int),    # yes_no_t ReplaceTinyPivot
        ("SolveInitialized", ctypes.c_int),    # yes_no_t SolveInitialized
        ("RefineInitialized", ctypes.c_int),   # yes_no_t RefineInitialized
        ("PrintStat", ctypes.c_int),           # yes_no_t PrintStat
        ("nnzL", ctypes.c_int),                # int nnzL
        ("nnzU", ctypes.c_int),                # int nnzU
        ("num_lookaheads", ctypes.c_int),      # int num_lookaheads
        ("lookahead_etree", ctypes.c_int),     # yes_no_t lookahead_etree
        ("SymPattern", ctypes.c_int),          # yes_no_t SymPattern
    ]


# Field name -> enum used to decode it
OPTION_ENUMS = {
    "Fact": Fact,
    "Equil": YesNo,
    "ColPerm": ColPerm,
    "Trans": Trans,
    "IterRefine": IterRefine,
    "SymmetricMode": YesNo,
    "PivotGrowth": YesNo,
    "ConditionNumber": YesNo,
    "RowPerm": RowPerm,
    "ILU_Norm": Norm,
    "ILU_MILU": Milu,
    "ParSymbFact": YesNo,
    "ReplaceTinyPivot": YesNo,
    "SolveInitialized": YesNo,
    "RefineInitialized": YesNo,
    "PrintStat": YesNo,
    "lookahead_etree": YesNo,
    "SymPattern": YesNo,
}


class SuperLUStat(ctypes.Structure):
    """The ``SuperLUStat_t`` record."""
    _fields_ = [
        ("panel_histo", ctypes.POINTER(ctypes.c_int)),  # int *panel_histo
        ("utime", ctypes.POINTER(ctypes.c_double)),     # double *utime
        ("ops", ctypes.POINTER(ctypes.c_float)),        # flops_t *ops
        ("TinyPivots", ctypes.c_int),                   # int TinyPivots
        ("RefineSteps", ctypes.c_int),                  # int RefineSteps
        ("expansions", ctypes.c_int),                   # int expansions
    ]


_P_MATRIX = ctypes.POINTER(SuperMatrixStruct)
_P_INT = ctypes.POINTER(ctypes.c_int)
_P_DOUBLE = ctypes.POINTER(ctypes.c_double)


def _declare(lib):
    """Set argtypes/restype on every function we call."""
    lib.set_default_options.argtypes = [ctypes.POINTER(SuperLUOptions)]
    lib.set_default_options.restype = None

    lib.StatInit.argtypes = [ctypes.POINTER(SuperLUStat)]
    lib.StatInit.restype = None

    lib.StatFree.argtypes = [ctypes.POINTER(SuperLUStat)]
    lib.StatFree.restype = None

    lib.intMalloc.argtypes = [ctypes.c_int]
    lib.intMalloc.restype = _P_INT

    lib.doubleMalloc.argtypes = [ctypes.c_size_t]
    lib.doubleMalloc.restype = _P_DOUBLE

    lib.superlu_free.argtypes = [ctypes.c_void_p]
    lib.superlu_free.restype = None

    lib.dCreate_CompCol_Matrix.argtypes = [
        _P_MATRIX,
        ctypes.c_int,
        ctypes.c_int,
        ctypes.c_int,
        _P_DOUBLE,
        _P_INT,
        _P_INT,
        ctypes.c_int,
        ctypes.c_int,
        ctypes.c_int,
    ]
    lib.dCreate_CompCol_Matrix.restype = None

    lib.dCreate_Dense_Matrix.argtypes = [
        _P_MATRIX,
        ctypes.c_int,
        ctypes.c_int,
        _P_DOUBLE,
        ctypes.c_int,
        ctypes.c_int,
        ctypes.c_int,
        ctypes.c_int,
    ]
    lib.dCreate_Dense_Matrix.restype = None

    for name in (
        "Destroy_CompCol_Matrix",
        "Destroy_CompCol_Permuted",
        "Destroy_CompRow_Matrix",
        "Destroy_SuperNode_Matrix",
        "Destroy_Dense_Matrix",
    ):
        func = getattr(lib, name)
        func.argtypes = [_P_MATRIX]
        func.restype = None

    lib.dgssv.argtypes = [
        ctypes.POINTER(SuperLUOptions),
        _P_MATRIX,
        _P_INT,
        _P_INT,
        _P_MATRIX,
        _P_MATRIX,
        _P_MATRIX,
        ctypes.POINTER(SuperLUStat),
        _P_INT,
    ]
    lib.dgssv.restype = None

    lib.sp_dgemv.argtypes = [
        ctypes.c_char_p,
        ctypes.c_double,
        _P_MATRIX,
        ndpointer(ctypes.c_double, flags="C_CONTIGUOUS"),
        ctypes.c_int,
        ctypes.c_double,
        ndpointer(ctypes.c_double, flags="C_CONTIGUOUS"),
        ctypes.c_int,
    ]
    lib.sp_dgemv.restype = ctypes.c_int


class SuperLULibrary:
    """Bound SuperLU functions.

    Methods take ctypes structures directly and pass them by reference.
    Pointers returned by the allocators are owned by whoever receives them
    until handed to a descriptor or released with :meth:`free`.

    Parameters
    ----------
    cdll : ctypes.CDLL
        The loaded ``libsuperlu`` shared library.
    path : str, optional
        Where the library was loaded from (informational).
    """

    def __init__(self, cdll, path=None):
        self._lib = cdll
        self.path = path
        _declare(cdll)

    def __repr__(self):
        return f"SuperLULibrary(path={self.path!r})"

    # Options and statistics

    def set_default_options(self, options):
        self._lib.set_default_options(ctypes.byref(options))

    def stat_init(self, stat):
        self._lib.StatInit(ctypes.byref(stat))

    def stat_free(self, stat):
        self._lib.StatFree(ctypes.byref(stat))

    # Memory

    def int_malloc(self, n):
        """Allocate ``n`` ints with the SuperLU allocator (never NULL)."""
        ptr = self._lib.intMalloc(max(int(n), 1))
        if not ptr:
            raise MemoryError(f"SuperLU intMalloc({n}) returned NULL")
        return ptr

    def double_malloc(self, n):
        """Allocate ``n`` doubles with the SuperLU allocator (never NULL)."""
        ptr = self._lib.doubleMalloc(max(int(n), 1))
        if not ptr:
            raise MemoryError(f"SuperLU doubleMalloc({n}) returned NULL")
        return ptr

    def free(self, ptr):
        """Release memory obtained from :meth:`int_malloc` or :meth:`double_malloc`."""
        self._lib.superlu_free(ctypes.cast(ptr, ctypes.c_void_p))

    # Descriptors

    def create_comp_col_matrix(self, matrix, m, n, nnz, nzval, rowind, colptr,
                               stype, dtype, mtype):
        self._lib.dCreate_CompCol_Matrix(
            ctypes.byref(matrix), m, n, nnz, nzval, rowind, colptr,
            int(stype), int(dtype), int(mtype),
        )

    def create_dense_matrix(self, matrix, m, n, x, ldx, stype, dtype, mtype):
        self._lib.dCreate_Dense_Matrix(
            ctypes.byref(matrix), m, n, x, ldx, int(stype), int(dtype), int(mtype),
        )

    def destroy_comp_col_matrix(self, matrix):
        self._lib.Destroy_CompCol_Matrix(ctypes.byref(matrix))

    def destroy_comp_col_permuted(self, matrix):
        self._lib.Destroy_CompCol_Permuted(ctypes.byref(matrix))

    def destroy_comp_row_matrix(self, matrix):
        self._lib.Destroy_CompRow_Matrix(ctypes.byref(matrix))

    def destroy_super_node_matrix(self, matrix):
        self._lib.Destroy_SuperNode_Matrix(ctypes.byref(matrix))

    def destroy_dense_matrix(self, matrix):
        self._lib.Destroy_Dense_Matrix(ctypes.byref(matrix))

    # Computation

    def dgssv(self, options, a, perm_c, perm_r, l, u, b, stat):
        """Factorize ``a`` and overwrite ``b`` with the solution.

        Returns
        -------
        info : int
            0 on success, see :class:`pysuperlu.errors.UnsolvableError`
            for the meaning of other values.
        """
        info = ctypes.c_int(0)
        self._lib.dgssv(
            ctypes.byref(options),
            ctypes.byref(a),
            perm_c,
            perm_r,
            ctypes.byref(l),
            ctypes.byref(u),
            ctypes.byref(b),
            ctypes.byref(stat),
            ctypes.byref(info),
        )
        return info.value

    def sp_dgemv(self, trans, alpha, a, x, beta, y):
        """Compute ``y := alpha*op(A)*x + beta*y`` in place."""
        return self._lib.sp_dgemv(
            trans.encode("ascii"), alpha, ctypes.byref(a), x, 1, beta, y, 1,
        )


def _resolve_path(path=None):
    if path:
        return str(path), "argument"
    env_path = os.environ.get("SUPERLU_LIBRARY")
    if env_path:
        return env_path, "SUPERLU_LIBRARY environment"
    return _detect_path()


@functools.lru_cache(maxsize=None)
def _detect_path():
    found = find_superlu()
    if found is None:
        return None, None
    return found.path, found.detection_method


@functools.lru_cache(maxsize=None)
def _load(path):
    try:
        cdll = ctypes.CDLL(path, mode=ctypes.RTLD_GLOBAL)
    except OSError as e:
        raise LibraryNotFoundError(
            f"Failed to load SuperLU library {path!r}: {e}\n\n"
            "Install SuperLU as a shared library (e.g. libsuperlu-dev on Debian/Ubuntu,\n"
            "superlu on Fedora/conda-forge) or point SUPERLU_LIBRARY at it:\n"
            "  export SUPERLU_LIBRARY=/path/to/libsuperlu.so"
        ) from e
    try:
        return SuperLULibrary(cdll, path=path)
    except AttributeError as e:
        raise LibraryNotFoundError(
            f"{path!r} does not look like a SuperLU library: {e}"
        ) from e


def load_library(path=None):
    """Load the SuperLU shared library.

    Parameters
    ----------
    path : str or os.PathLike, optional
        Explicit library path. Defaults to ``$SUPERLU_LIBRARY``, then to
        :func:`pysuperlu.lib_detect.find_superlu`.

    Returns
    -------
    library : SuperLULibrary
        Cached per resolved path.

    Raises
    ------
    LibraryNotFoundError
        If no library can be located or loaded.
    """
    resolved, method = _resolve_path(path)
    if resolved is None:
        raise LibraryNotFoundError(
            "Could not locate the SuperLU shared library.\n\n"
            "Install SuperLU with shared libraries (e.g. libsuperlu-dev) or set:\n"
            "  export SUPERLU_LIBRARY=/path/to/libsuperlu.so"
        )
    LOGGER.debug("Loading SuperLU from %s (%s)", resolved, method)
    return _load(resolved)


def as_double_array(ptr, n):
    """View ``n`` doubles at ``ptr`` as an ndarray (no copy)."""
    if n == 0:
        return np.empty(0, dtype=np.float64)
    return np.ctypeslib.as_array(ctypes.cast(ptr, _P_DOUBLE), shape=(n,))


def as_int_array(ptr, n):
    """View ``n`` ints at ``ptr`` as an ndarray (no copy)."""
    if n == 0:
        return np.empty(0, dtype=np.intc)
    return np.ctypeslib.as_array(ctypes.cast(ptr, _P_INT), shape=(n,))
