"""
Solve A X = B with SuperLU's ``dgssv``, optionally bounded by a timeout.

The native call is synchronous and cannot be interrupted, so it runs on a
worker thread. The caller waits on a one-slot queue for the worker's status;
when the timeout elapses first the caller gives up with
:class:`~pysuperlu.errors.SolveTimeoutError` while the worker finishes the
factorization, releases the permutation vectors, L, U and the statistics,
and drops the last references to A and B (which destroys them on the worker
thread).
"""

import contextlib
import datetime
import logging
import queue
import threading

import numpy as np
import scipy.sparse as sp

from ._native import SuperLUStat, SuperMatrixStruct, load_library
from .errors import ConflictError, SolveTimeoutError, UnsolvableError
from .options import Options
from .super_matrix import SuperMatrix

LOGGER = logging.getLogger(__name__)


# Sent by a worker that exited without an outcome
_WORKER_DIED = object()


def _timeout_seconds(timeout):
    if timeout is None:
        return None
    if isinstance(timeout, datetime.timedelta):
        seconds = timeout.total_seconds()
    else:
        seconds = float(timeout)
    if not seconds > 0:
        raise ValueError(f"timeout must be positive, got {timeout!r}")
    return seconds


def _check_shapes(a, columns):
    """Preflight checks, run before anything is allocated natively."""
    m, n = a.shape
    if m != n:
        raise ConflictError(f"Matrix must be square, got shape {a.shape}")
    if columns:
        length = columns[0].shape[0]
        if length != m:
            raise ConflictError(
                f"RHS dimension mismatch: A is {m}x{n}, column 0 has length {length}"
            )
        for j, col in enumerate(columns):
            if col.shape[0] != length:
                raise ConflictError(
                    f"RHS dimension mismatch: column {j} has length {col.shape[0]}, "
                    f"expected {length}"
                )
    if a.nnz == 0:
        raise UnsolvableError("Matrix has no nonzero entries")


def _columns_to_array(columns, nrows):
    result = np.zeros((nrows, len(columns)), dtype=np.float64)
    for j, col in enumerate(columns):
        result[:, j] = col
    return result


def _split_columns(flat, m, k):
    """Cut a column-major (m x k) buffer into k vectors of length m."""
    return [flat[j * m:(j + 1) * m].copy() for j in range(k)]


def _destroy_factor(destroy, matrix):
    # dgssv leaves L and U untouched when it rejects its arguments
    if matrix.Store:
        destroy(matrix)


def _dgssv(library, options, a_mat, b_mat):
    """Run dgssv on the wrapped matrices; returns (info, stat counters)."""
    m, n = a_mat.shape
    with contextlib.ExitStack() as cleanup:
        perm_r = library.int_malloc(m)
        cleanup.callback(library.free, perm_r)
        perm_c = library.int_malloc(n)
        cleanup.callback(library.free, perm_c)

        stat = SuperLUStat()
        library.stat_init(stat)
        cleanup.callback(library.stat_free, stat)

        l_mat = SuperMatrixStruct()
        u_mat = SuperMatrixStruct()
        cleanup.callback(_destroy_factor, library.destroy_comp_col_matrix, u_mat)
        cleanup.callback(_destroy_factor, library.destroy_super_node_matrix, l_mat)

        info = library.dgssv(
            options.ffi, a_mat.raw, perm_c, perm_r, l_mat, u_mat, b_mat.raw, stat,
        )
        counters = {
            "TinyPivots": stat.TinyPivots,
            "RefineSteps": stat.RefineSteps,
            "expansions": stat.expansions,
        }
    return info, counters


def _worker(library, lock, options, a_mat, b_mat, results):
    """Thread body: solve, then report exactly one outcome on ``results``.

    A worker killed by a ``BaseException`` still reports, with ``_WORKER_DIED``.
    """
    outcome = _WORKER_DIED
    try:
        with lock:
            info, counters = _dgssv(library, options, a_mat, b_mat)
        LOGGER.debug("dgssv finished with info=%d, stat=%s", info, counters)
        outcome = UnsolvableError(info=info, n=a_mat.cols) if info != 0 else None
    except Exception as exc:
        outcome = exc
    finally:
        results.put(outcome)


def solve(A, B, timeout=None, options=None, library=None):
    """Solve A X = B for one or more right-hand sides.

    Parameters
    ----------
    A : scipy.sparse matrix
        Square sparse matrix; converted to CSC when in another format.
    B : sequence of array_like
        Right-hand side columns, each of length ``A.shape[0]``. May be empty.
    timeout : float or datetime.timedelta, optional
        Longest time to wait, in seconds. Waits indefinitely when omitted.
    options : Options, optional
        Passed to SuperLU as they are. Defaults to ``Options()``.
    library : SuperLULibrary, optional
        Bindings to use; defaults to :func:`pysuperlu.load_library`.

    Returns
    -------
    X : list of ndarray
        One solution vector per column of ``B``, in order.

    Raises
    ------
    ConflictError
        A is not square, or a column of B has the wrong length.
    UnsolvableError
        A has no nonzeros, or SuperLU could not solve the system.
    SolveTimeoutError
        ``timeout`` elapsed before SuperLU finished. The computation keeps
        running in the background and cleans up after itself.

    Examples
    --------
    >>> import numpy as np
    >>> import scipy.sparse as sp
    >>> from pysuperlu import solve
    >>>
    >>> A = sp.diags([2.0, 4.0], format="csc")
    >>> solve(A, [np.array([2.0, 4.0]), np.array([4.0, 8.0])], timeout=5)
    [array([1., 1.]), array([2., 2.])]
    """
    a = A if sp.issparse(A) and A.format == "csc" else sp.csc_matrix(A)
    columns = [np.asarray(col, dtype=np.float64) for col in B]
    for j, col in enumerate(columns):
        if col.ndim != 1:
            raise ConflictError(f"RHS column {j} must be 1-D, got shape {col.shape}")
    _check_shapes(a, columns)
    seconds = _timeout_seconds(timeout)

    library = library or load_library()
    if options is None:
        options = Options(library=library)
    m = a.shape[0]
    k = len(columns)

    a_mat = SuperMatrix.from_csc(a, library=library)
    b_mat = SuperMatrix.from_dense(_columns_to_array(columns, m), library=library)

    lock = threading.Lock()
    results = queue.Queue(maxsize=1)
    worker = threading.Thread(
        target=_worker,
        args=(library, lock, options, a_mat, b_mat, results),
        name="superlu-dgssv",
        daemon=True,
    )
    LOGGER.debug("Solving %dx%d system (nnz=%d) for %d right-hand side(s)", m, m, a.nnz, k)
    worker.start()

    try:
        outcome = results.get(timeout=seconds)
    except queue.Empty:
        # The worker holds the remaining references and destroys A and B
        del a_mat, b_mat
        LOGGER.warning(
            "SuperLU solve of %dx%d system timed out after %g s; "
            "factorization continues in the background", m, m, seconds,
        )
        raise SolveTimeoutError(seconds) from None

    with a_mat, b_mat:
        if isinstance(outcome, UnsolvableError):
            raise outcome
        if outcome is _WORKER_DIED:
            raise RuntimeError("Unknown internal SuperLU error")
        if outcome is not None:
            raise RuntimeError("Unknown internal SuperLU error") from outcome
        with lock:
            flat = b_mat.flat_data()
    if flat is None:
        raise UnsolvableError("Solution could not be read back from B")
    return _split_columns(flat, m, k)


def solve_system(A, b, **kwargs):
    """Convenience function to solve Ax=b for a single right-hand side.

    Parameters
    ----------
    A : scipy.sparse matrix
        Square sparse matrix.
    b : array_like
        Right-hand side vector.
    **kwargs : dict
        ``timeout``, ``options`` and ``library``, as for :func:`solve`.

    Returns
    -------
    x : ndarray
        Solution vector
    """
    return solve(A, [b], **kwargs)[0]
