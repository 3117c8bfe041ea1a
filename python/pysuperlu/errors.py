"""
Errors raised by :func:`pysuperlu.solve`.

Every failure of a solve is one of three kinds:

- ``ConflictError``: the shapes of A and B do not fit together.
- ``UnsolvableError``: A has no nonzeros, SuperLU reported a non-zero
  ``info``, or the solution could not be read back.
- ``SolveTimeoutError``: the caller's timeout elapsed first.
"""


class SolverError(RuntimeError):
    """Base class for solve failures."""

    kind = "error"


class ConflictError(SolverError, ValueError):
    """A is not square, or a right-hand side has the wrong length."""

    kind = "conflict"


class UnsolvableError(SolverError):
    """The system could not be solved.

    Parameters
    ----------
    message : str, optional
        Explanation. Derived from ``info`` when omitted.
    info : int, optional
        The ``info`` code returned by ``dgssv``.
    n : int, optional
        Order of A, used to decode ``info``.
    """

    kind = "unsolvable"

    def __init__(self, message=None, info=None, n=None):
        self.info = info
        self.n = n
        if message is None:
            message = describe_info(info, n) if info is not None else "system is unsolvable"
        super().__init__(message)


class SolveTimeoutError(SolverError, TimeoutError):
    """The solve did not complete within the caller's timeout.

    The native computation keeps running in the background and releases its
    memory when it finishes.
    """

    kind = "timeout"

    def __init__(self, timeout):
        self.timeout = timeout
        super().__init__(f"SuperLU solve did not finish within {timeout:g} s")


def describe_info(info, n=None):
    """Translate a ``dgssv`` info code into a message."""
    if info == 0:
        return "success"
    if info < 0:
        return f"SuperLU error (info={info}): argument {-info} had an illegal value"
    if n is None or info <= n:
        return (
            f"SuperLU error (info={info}): U({info},{info}) is exactly zero, "
            "the factor U is exactly singular"
        )
    return (
        f"SuperLU error (info={info}): memory allocation failure "
        f"after {info - n} bytes"
    )
