"""
Owning wrapper around SuperLU's ``SuperMatrix`` descriptor.

A descriptor built here owns its payload arrays: they are allocated with the
SuperLU allocator and handed to the descriptor, so the matching
``Destroy_*`` routine releases them. A descriptor adopted from elsewhere is
never released by the wrapper.
"""

import ctypes
import logging

import numpy as np
import scipy.sparse as sp

from ._native import (
    DNformat,
    Dtype,
    Mtype,
    NCformat,
    Stype,
    SuperMatrixStruct,
    SUPERNODAL_STYPES,
    as_double_array,
    as_int_array,
    load_library,
)

LOGGER = logging.getLogger(__name__)


# Stype -> SuperLULibrary method releasing a descriptor of that storage kind
_DESTRUCTORS = {
    Stype.SLU_NC: "destroy_comp_col_matrix",
    Stype.SLU_NCP: "destroy_comp_col_permuted",
    Stype.SLU_NR: "destroy_comp_row_matrix",
    Stype.SLU_DN: "destroy_dense_matrix",
}
_DESTRUCTORS.update({stype: "destroy_super_node_matrix" for stype in SUPERNODAL_STYPES})


def _check_index_range(shape, nnz=0):
    # SuperLU is built with 32-bit int_t
    limit = np.iinfo(np.intc).max
    if max(shape[0], shape[1] + 1, nnz) > limit:
        raise ValueError(
            f"Matrix of shape {shape} with {nnz} nonzeros exceeds SuperLU's 32-bit index range"
        )


class SuperMatrix:
    """A SuperLU matrix descriptor together with its ownership.

    Use the ``from_csc``, ``from_dense`` and ``adopt`` constructors rather
    than calling the class directly.

    Parameters
    ----------
    raw : SuperMatrixStruct
        The native descriptor.
    library : SuperLULibrary, optional
        Bindings used to release the descriptor; loaded on demand.
    owned : bool
        Whether the payload was allocated by this wrapper and must be
        destroyed with it.

    Examples
    --------
    >>> import numpy as np
    >>> import scipy.sparse as sp
    >>> from pysuperlu import SuperMatrix
    >>>
    >>> with SuperMatrix.from_csc(sp.eye(3, format="csc")) as a:
    ...     y = a.dot_vector(np.array([1.0, 2.0, 3.0]))
    >>> print(y)  # [1. 2. 3.]
    """

    def __init__(self, raw, library=None, owned=False):
        self._finalized = False
        self._raw = raw
        self._library = library
        self.owned = owned

    # Constructors

    @classmethod
    def from_csc(cls, mat, library=None):
        """Build an owned column-compressed descriptor.

        Parameters
        ----------
        mat : scipy.sparse matrix
            Must be in CSC format. Entries are copied as they are, without
            sorting or summing duplicates.
        library : SuperLULibrary, optional

        Returns
        -------
        matrix : SuperMatrix
            Tagged (SLU_NC, SLU_D, SLU_GE).
        """
        if not sp.issparse(mat) or mat.format != "csc":
            raise TypeError(
                f"SuperMatrix.from_csc requires a CSC matrix, got {type(mat).__name__}"
                + (f" in {mat.format!r} format" if sp.issparse(mat) else "")
            )
        _check_index_range(mat.shape, int(mat.nnz))
        library = library or load_library()

        m, n = mat.shape
        nnz = int(mat.nnz)
        data = np.asarray(mat.data[:nnz], dtype=np.float64)
        indices = np.asarray(mat.indices[:nnz], dtype=np.intc)
        indptr = np.asarray(mat.indptr, dtype=np.intc)

        nzval = library.double_malloc(nnz)
        rowind = library.int_malloc(nnz)
        colptr = library.int_malloc(n + 1)
        try:
            as_double_array(nzval, nnz)[:] = data
            as_int_array(rowind, nnz)[:] = indices
            as_int_array(colptr, n + 1)[:] = indptr
        except Exception:
            for ptr in (nzval, rowind, colptr):
                library.free(ptr)
            raise

        raw = SuperMatrixStruct()
        # nzval, rowind and colptr now belong to the descriptor
        library.create_comp_col_matrix(
            raw, m, n, nnz, nzval, rowind, colptr,
            Stype.SLU_NC, Dtype.SLU_D, Mtype.SLU_GE,
        )
        LOGGER.debug("Created SLU_NC matrix %dx%d with %d nonzeros", m, n, nnz)
        return cls(raw, library, owned=True)

    @classmethod
    def from_dense(cls, array, library=None):
        """Build an owned dense (column-major) descriptor.

        Parameters
        ----------
        array : array_like
            2-D array of shape (rows, cols); converted to float64.
        library : SuperLULibrary, optional

        Returns
        -------
        matrix : SuperMatrix
            Tagged (SLU_DN, SLU_D, SLU_GE) with leading dimension ``rows``.
        """
        array = np.asarray(array, dtype=np.float64)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got {array.ndim} dimension(s)")
        _check_index_range(array.shape)
        library = library or load_library()

        nrows, ncols = array.shape
        size = nrows * ncols
        buf = library.double_malloc(size)
        try:
            # element (i, j) lands at j * nrows + i
            as_double_array(buf, size)[:] = array.ravel(order="F")
        except Exception:
            library.free(buf)
            raise

        raw = SuperMatrixStruct()
        library.create_dense_matrix(
            raw, nrows, ncols, buf, nrows,
            Stype.SLU_DN, Dtype.SLU_D, Mtype.SLU_GE,
        )
        LOGGER.debug("Created SLU_DN matrix %dx%d", nrows, ncols)
        return cls(raw, library, owned=True)

    @classmethod
    def adopt(cls, raw, library=None):
        """Wrap a descriptor created elsewhere.

        The wrapper never releases an adopted descriptor: whoever created it
        stays responsible for destroying it, after the wrapper is done with it.
        """
        if not isinstance(raw, SuperMatrixStruct):
            raise TypeError(f"Expected SuperMatrixStruct, got {type(raw).__name__}")
        return cls(raw, library, owned=False)

    def release_raw(self):
        """Give up the descriptor without destroying it.

        The wrapper is unusable afterwards; the caller now owns the payload.
        """
        self._check_alive()
        self._finalized = True
        return self._raw

    # Accessors

    @property
    def library(self):
        if self._library is None:
            self._library = load_library()
        return self._library

    @property
    def raw(self):
        self._check_alive()
        return self._raw

    def raw_ptr(self):
        """Pointer to the descriptor, for passing to native routines."""
        self._check_alive()
        return ctypes.pointer(self._raw)

    @property
    def rows(self):
        return self._raw.nrow

    @property
    def cols(self):
        return self._raw.ncol

    @property
    def shape(self):
        return (self._raw.nrow, self._raw.ncol)

    @property
    def stype(self):
        return Stype(self._raw.Stype)

    @property
    def dtype(self):
        return Dtype(self._raw.Dtype)

    @property
    def mtype(self):
        return Mtype(self._raw.Mtype)

    @property
    def finalized(self):
        return self._finalized

    @property
    def nnz(self):
        """Stored entries: nnz of a compressed payload, rows*cols when dense."""
        self._check_alive()
        if not self._raw.Store:
            return 0
        if self._raw.Stype == Stype.SLU_DN:
            return self._raw.nrow * self._raw.ncol
        return self._nc_store().nnz

    # Extraction

    def flat_data(self):
        """Column-major values of a dense double payload.

        Returns
        -------
        data : ndarray or None
            A copy of length rows*cols, or None when the payload is not a
            dense double buffer.
        """
        self._check_alive()
        raw = self._raw
        if raw.Stype != Stype.SLU_DN or raw.Dtype != Dtype.SLU_D or not raw.Store:
            return None
        store = ctypes.cast(raw.Store, ctypes.POINTER(DNformat)).contents
        nrow, ncol, lda = raw.nrow, raw.ncol, store.lda
        if nrow == 0 or ncol == 0:
            return np.empty(0, dtype=np.float64)
        if not store.nzval or lda < nrow:
            return None
        view = as_double_array(store.nzval, lda * ncol).reshape(ncol, lda)
        return view[:, :nrow].reshape(-1).copy()

    def to_dense(self):
        """Payload as a row-major (rows, cols) array, or None if not dense."""
        data = self.flat_data()
        if data is None:
            return None
        return np.ascontiguousarray(data.reshape(self.cols, self.rows).T)

    def to_csc(self):
        """Back-convert a (SLU_NC, SLU_D, SLU_GE) descriptor.

        Returns
        -------
        mat : scipy.sparse.csc_matrix or None
            None for any other combination of tags.
        """
        self._check_alive()
        raw = self._raw
        tags = (raw.Stype, raw.Dtype, raw.Mtype)
        if tags != (Stype.SLU_NC, Dtype.SLU_D, Mtype.SLU_GE) or not raw.Store:
            return None
        store = self._nc_store()
        nnz, ncol = store.nnz, raw.ncol
        data = as_double_array(store.nzval, nnz).copy()
        indices = as_int_array(store.rowind, nnz).copy()
        indptr = as_int_array(store.colptr, ncol + 1).copy()
        return sp.csc_matrix((data, indices, indptr), shape=(raw.nrow, ncol))

    def dot_vector(self, x, transpose=False):
        """Sparse matrix-vector product through SuperLU's ``sp_dgemv``.

        Parameters
        ----------
        x : array_like
            Length ``cols`` (or ``rows`` when ``transpose`` is set).
        transpose : bool, optional
            Compute A^T x instead of A x.

        Returns
        -------
        y : ndarray
        """
        self._check_alive()
        if self._raw.Stype != Stype.SLU_NC:
            raise TypeError(f"dot_vector requires an SLU_NC matrix, got {self.stype.name}")
        x = np.ascontiguousarray(x, dtype=np.float64)
        if transpose and x.shape != (self.rows,):
            raise ValueError(
                "Input vector length must be equal to the number of rows when transposed."
            )
        if not transpose and x.shape != (self.cols,):
            raise ValueError(
                "Input vector length must be equal to the number of columns when not transposed."
            )
        y = np.zeros(self.cols if transpose else self.rows, dtype=np.float64)
        if y.size and x.size:
            self.library.sp_dgemv("T" if transpose else "N", 1.0, self._raw, x, 0.0, y)
        return y

    # Lifetime

    def _nc_store(self):
        return ctypes.cast(self._raw.Store, ctypes.POINTER(NCformat)).contents

    def _check_alive(self):
        if self._finalized:
            raise RuntimeError("SuperMatrix has been finalized")

    def finalize(self):
        """Release the payload if this wrapper owns it.

        Empty payloads (nnz == 0) are left alone: SuperLU's destructors do
        not handle them.
        """
        if self._finalized:
            return
        self._finalized = True

        raw = self._raw
        if not raw.Store or self._nc_store().nnz == 0:
            LOGGER.debug("Skipping destruction of empty %dx%d matrix", raw.nrow, raw.ncol)
            return
        if not self.owned:
            return

        name = _DESTRUCTORS.get(raw.Stype)
        if name is None:
            return
        getattr(self.library, name)(raw)
        raw.Store = None
        LOGGER.debug("Destroyed %s matrix %dx%d", Stype(raw.Stype).name, raw.nrow, raw.ncol)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.finalize()

    def __del__(self):
        if not getattr(self, "_finalized", True):
            self.finalize()

    def __repr__(self):
        state = "finalized" if self._finalized else ("owned" if self.owned else "adopted")
        try:
            stype = Stype(self._raw.Stype).name
        except ValueError:
            stype = str(self._raw.Stype)
        return f"<SuperMatrix {self._raw.nrow}x{self._raw.ncol} {stype} ({state})>"
