"""
pytest configuration and fixtures for SuperLU testing.
"""

import sys
import time
from pathlib import Path

import pytest
import numpy as np
import scipy.sparse as sp

# Add python and cli directories to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "python"))
sys.path.insert(0, str(project_root))

from pysuperlu import LibraryNotFoundError, load_library  # noqa: E402
from fake_superlu import FakeSuperLU  # noqa: E402


def _native_library():
    try:
        return load_library()
    except LibraryNotFoundError:
        return None


@pytest.fixture
def fake_lib():
    """Recording stand-in for the SuperLU bindings."""
    lib = FakeSuperLU()
    yield lib
    if lib.gate is not None:
        lib.gate.set()


@pytest.fixture
def native_lib():
    """The system SuperLU library; skips the test when it is missing."""
    lib = _native_library()
    if lib is None:
        pytest.skip("SuperLU shared library not available")
    return lib


@pytest.fixture(params=["fake", pytest.param("native", marks=pytest.mark.superlu)])
def library(request):
    """Run a test against the test double and against the real library."""
    if request.param == "fake":
        return request.getfixturevalue("fake_lib")
    return request.getfixturevalue("native_lib")


@pytest.fixture
def superlu_example():
    """The 5x5 example from the SuperLU user guide and its solution for b = 1."""
    values = np.array([19.0, 12.0, 12.0, 21.0, 12.0, 12.0, 21.0, 16.0, 21.0, 5.0, 21.0, 18.0])
    row_indices = np.array([0, 1, 4, 1, 2, 4, 0, 2, 0, 3, 3, 4])
    col_ptrs = np.array([0, 3, 6, 8, 10, 12])
    A = sp.csc_matrix((values, row_indices, col_ptrs), shape=(5, 5))
    x_expected = np.array([
        -0.03125000000000001,
        0.06547619047619048,
        0.013392857142857147,
        0.0625,
        0.03273809523809524,
    ])
    return A, x_expected


@pytest.fixture
def singular_matrix():
    """Structurally singular 5x5 matrix (column 4 is empty)."""
    triplets = [(0, 0), (1, 0), (2, 2), (3, 3), (4, 0), (4, 1), (4, 2), (4, 3)]
    rows, cols = zip(*triplets)
    return sp.csc_matrix((np.ones(len(triplets)), (rows, cols)), shape=(5, 5))


@pytest.fixture
def tridiagonal_matrix():
    """Generate a diagonally dominant tridiagonal matrix (10 on, 1 off the diagonal)."""
    def _generate(n):
        return sp.diags([1.0, 10.0, 1.0], [-1, 0, 1], shape=(n, n), format='csc')
    return _generate


@pytest.fixture
def wait_for():
    """Poll a condition until it holds or a deadline passes."""
    def _wait(condition, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(0.01)
        return condition()
    return _wait
