"""SuperLU solver options."""

import logging

from ._native import OPTION_ENUMS, SuperLUOptions, load_library

LOGGER = logging.getLogger(__name__)

_FIELDS = frozenset(name for name, _ in SuperLUOptions._fields_)


class Options:
    """Holder for a ``superlu_options_t`` record.

    The record starts zeroed and is then filled by SuperLU's
    ``set_default_options`` (DOFACT, Equil=YES, ColPerm=COLAMD,
    Trans=NOTRANS, IterRefine=NOREFINE, DiagPivotThresh=1.0, PrintStat=YES,
    RowPerm=LargeDiag_MC64).
    Fields can be changed through keyword arguments, attribute access on
    the holder, or directly on ``options.ffi``; :func:`pysuperlu.solve`
    passes the record to SuperLU as it is.

    Parameters
    ----------
    library : SuperLULibrary, optional
        Bindings providing ``set_default_options``.
    **fields
        ``superlu_options_t`` fields to override after the defaults.

    Examples
    --------
    >>> from pysuperlu import ColPerm, Options
    >>> options = Options(ColPerm=ColPerm.NATURAL)
    >>> options.DiagPivotThresh = 0.1
    """

    def __init__(self, library=None, **fields):
        ffi = SuperLUOptions()
        (library or load_library()).set_default_options(ffi)
        object.__setattr__(self, "ffi", ffi)
        for name, value in fields.items():
            setattr(self, name, value)
        if fields:
            LOGGER.debug("SuperLU options overridden: %s", fields)

    def __getattr__(self, name):
        if name in _FIELDS:
            value = getattr(self.ffi, name)
            enum = OPTION_ENUMS.get(name)
            if enum is not None:
                try:
                    return enum(value)
                except ValueError:
                    return value
            return value
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name, value):
        if name not in _FIELDS:
            raise AttributeError(f"Unknown SuperLU option {name!r}")
        setattr(self.ffi, name, value)

    def as_dict(self):
        """Field name -> value, enum fields decoded."""
        return {name: getattr(self, name) for name, _ in SuperLUOptions._fields_}

    def copy(self):
        """An independent holder with the same field values."""
        other = object.__new__(type(self))
        ffi = SuperLUOptions.from_buffer_copy(self.ffi)
        object.__setattr__(other, "ffi", ffi)
        return other

    def __eq__(self, other):
        if not isinstance(other, Options):
            return NotImplemented
        return bytes(self.ffi) == bytes(other.ffi)

    def __repr__(self):
        fields = ", ".join(f"{k}={getattr(v, 'name', v)}" for k, v in self.as_dict().items())
        return f"Options({fields})"
