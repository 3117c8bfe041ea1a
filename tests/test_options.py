"""
Tests for the SuperLU options holder.
"""

import pytest

from pysuperlu import ColPerm, Fact, IterRefine, Options, RowPerm, Trans, YesNo


class TestDefaults:
    """Values set by set_default_options."""

    def test_defaults(self, library):
        options = Options(library=library)

        assert options.Fact == Fact.DOFACT
        assert options.Equil == YesNo.YES
        assert options.ColPerm == ColPerm.COLAMD
        assert options.Trans == Trans.NOTRANS
        assert options.IterRefine == IterRefine.NOREFINE
        assert options.DiagPivotThresh == 1.0
        assert options.PrintStat == YesNo.YES
        assert options.RowPerm == RowPerm.LargeDiag_MC64

    def test_enum_fields_decoded(self, fake_lib):
        options = Options(library=fake_lib)
        assert isinstance(options.ColPerm, ColPerm)
        assert isinstance(options.Equil, YesNo)
        assert isinstance(options.DiagPivotThresh, float)

    def test_defaults_applied_once(self, fake_lib):
        Options(library=fake_lib)
        assert fake_lib.calls == ["set_default_options"]


class TestOverrides:
    """Keyword and attribute overrides."""

    def test_keyword_overrides(self, fake_lib):
        options = Options(library=fake_lib, ColPerm=ColPerm.NATURAL, Equil=YesNo.NO)
        assert options.ColPerm == ColPerm.NATURAL
        assert options.Equil == YesNo.NO
        assert options.Trans == Trans.NOTRANS

    def test_attribute_assignment(self, fake_lib):
        options = Options(library=fake_lib)
        options.DiagPivotThresh = 0.1
        options.SymmetricMode = YesNo.YES

        assert options.DiagPivotThresh == pytest.approx(0.1)
        assert options.ffi.SymmetricMode == 1

    def test_record_mutation_visible(self, fake_lib):
        """The native record is exposed by reference."""
        options = Options(library=fake_lib)
        options.ffi.ColPerm = int(ColPerm.MMD_ATA)
        assert options.ColPerm == ColPerm.MMD_ATA

    def test_unknown_enum_value_kept(self, fake_lib):
        options = Options(library=fake_lib)
        options.ffi.ColPerm = 42
        assert options.ColPerm == 42

    def test_unknown_field_rejected(self, fake_lib):
        with pytest.raises(AttributeError, match="Unknown SuperLU option"):
            Options(library=fake_lib, ColumnPermutation=ColPerm.NATURAL)

        options = Options(library=fake_lib)
        with pytest.raises(AttributeError, match="Unknown SuperLU option"):
            options.colperm = ColPerm.NATURAL
        with pytest.raises(AttributeError):
            options.colperm


class TestHolder:
    """as_dict, copy and comparison."""

    def test_as_dict(self, fake_lib):
        values = Options(library=fake_lib).as_dict()
        assert list(values)[:5] == ["Fact", "Equil", "ColPerm", "Trans", "IterRefine"]
        assert values["ColPerm"] == ColPerm.COLAMD
        assert "SymPattern" in values

    def test_copy_is_independent(self, fake_lib):
        options = Options(library=fake_lib)
        other = options.copy()

        assert other == options
        assert other.ffi is not options.ffi

        other.ColPerm = ColPerm.NATURAL
        assert options.ColPerm == ColPerm.COLAMD
        assert other != options

    def test_copy_does_not_reload_defaults(self, fake_lib):
        Options(library=fake_lib).copy()
        assert fake_lib.calls.count("set_default_options") == 1

    def test_compare_with_other_types(self, fake_lib):
        assert Options(library=fake_lib) != "options"

    def test_repr(self, fake_lib):
        text = repr(Options(library=fake_lib))
        assert text.startswith("Options(")
        assert "ColPerm=COLAMD" in text
