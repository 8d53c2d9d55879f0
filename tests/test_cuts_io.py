"""Tests for training cuts, labels and catalog I/O."""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_array_equal

from catalog.cuts import RunCounters, class_labels, query_mask, training_mask
from catalog.features import SENTINEL
from catalog.io import annotate_catalog, is_supported, load_catalog, table_suffix, write_catalog


class TestClassLabels:
    def test_labels(self):
        cat = pd.DataFrame({"specclass": [2, 1, 0, 3, 2]})
        assert_array_equal(class_labels(cat), [1, 0, -1, -1, 1])


class TestTrainingMask:
    """Tests for training_mask()."""

    def test_clean_catalog_keeps_all(self, sdss_catalog):
        keep, counters = training_mask(sdss_catalog)
        assert keep.all()
        assert counters.n_rows == len(sdss_catalog)
        assert counters.n_missing == 0

    def test_each_exclusion_counted_once(self, sdss_catalog):
        cat = sdss_catalog.copy()
        cat.loc[0, "specclass"] = 0               # unlabelled
        cat.loc[1, "me2_r"] = SENTINEL            # missing
        cat.loc[2, "modelmag_r"] = 23.5           # too faint
        cat.loc[3, "specclass"] = 6
        cat.loc[3, "petror50_r"] = SENTINEL       # unlabelled takes precedence

        keep, counters = training_mask(cat)

        assert not keep[[0, 1, 2, 3]].any()
        assert keep[4:].all()
        assert counters.n_unlabelled == 2
        assert counters.n_missing == 1
        assert counters.n_out_of_range == 1

    def test_magnitude_limit_exclusive(self, sdss_catalog):
        cat = sdss_catalog.copy()
        cat.loc[0, "modelmag_r"] = 23.0
        keep, _ = training_mask(cat, mag_max=23.0)
        assert not keep[0]

    def test_extra_cut(self, sdss_catalog):
        keep, counters = training_mask(sdss_catalog, extra_cut="petror50_r < 2.0")
        expected = sdss_catalog["petror50_r"].to_numpy() < 2.0
        assert_array_equal(keep, expected)
        assert counters.n_rejected_by_cut == int((~expected).sum())

    def test_warns_when_most_rows_dropped(self, sdss_catalog):
        cat = sdss_catalog.copy()
        cat["specclass"] = 0
        cat.loc[:10, "specclass"] = 2
        with pytest.warns(UserWarning, match="keep only"):
            training_mask(cat)

    def test_non_boolean_cut_rejected(self, sdss_catalog):
        with pytest.raises(ValueError, match="boolean"):
            query_mask(sdss_catalog, "petror50_r + 1")


class TestRunCounters:
    def test_merge(self):
        a = RunCounters(n_rows=10, n_missing=1, n_out_of_range=2, n_unlabelled=3)
        b = RunCounters(n_rows=5, n_missing=1, n_rejected_by_cut=4)
        merged = a.merge(b)
        assert merged == RunCounters(15, 2, 2, 3, 4)

    def test_print_summary(self, capsys):
        RunCounters(n_rows=7, n_missing=2).print_summary()
        out = capsys.readouterr().out
        assert "Rows read" in out
        assert "7" in out
        assert "Rejected by cut" not in out


class TestCatalogIO:
    """Tests for catalog reading and writing."""

    @pytest.mark.parametrize("name,suffix", [
        ("eval.fits", ".fits"),
        ("eval.fits.gz", ".fits.gz"),
        ("EVAL.FIT", ".fit"),
        ("eval.csv", ".csv"),
    ])
    def test_table_suffix(self, name, suffix):
        assert table_suffix(name) == suffix

    def test_fits_roundtrip(self, sdss_catalog, tmp_path):
        path = write_catalog(sdss_catalog, tmp_path / "cat.fits")
        loaded = load_catalog(path)
        assert list(loaded.columns) == list(sdss_catalog.columns)
        np.testing.assert_allclose(loaded["psfmag_r"], sdss_catalog["psfmag_r"])
        assert_array_equal(loaded["specclass"], sdss_catalog["specclass"])

    def test_csv_roundtrip(self, sdss_catalog, tmp_path):
        path = write_catalog(sdss_catalog, tmp_path / "sub" / "cat.csv")
        loaded = load_catalog(path)
        assert len(loaded) == len(sdss_catalog)
        np.testing.assert_allclose(loaded["modelmag_r"], sdss_catalog["modelmag_r"])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_catalog(tmp_path / "nope.fits")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "cat.txt"
        path.write_text("a b\n1 2\n")
        with pytest.raises(ValueError, match="Unsupported"):
            load_catalog(path)

    def test_multidimensional_columns_dropped_with_warning(self, tmp_path):
        from astropy.table import Table

        table = Table({"ra": np.arange(3.0), "flux": np.ones((3, 5))})
        path = tmp_path / "vec.fits"
        table.write(path, format="fits")

        with pytest.warns(UserWarning, match="flux"):
            loaded = load_catalog(path)
        assert list(loaded.columns) == ["ra"]

    def test_is_supported(self):
        assert is_supported("cat.fits.gz")
        assert is_supported("CAT.CSV")
        assert not is_supported("eval_dr9.root")

    def test_annotate_adds_float32_columns(self, sdss_catalog):
        scores = {"bdtdvar": np.linspace(-1, 1, len(sdss_catalog))}
        out = annotate_catalog(sdss_catalog, scores)
        assert out["bdtdvar"].dtype == np.float32
        assert "bdtdvar" not in sdss_catalog.columns
        assert len(out.columns) == len(sdss_catalog.columns) + 1

    def test_annotate_slim(self, sdss_catalog):
        scores = {"bdtvar": np.zeros(len(sdss_catalog))}
        out = annotate_catalog(sdss_catalog, scores, keep_columns=["modelmag_r", "specclass"])
        assert list(out.columns) == ["modelmag_r", "specclass", "bdtvar"]

    def test_annotate_length_mismatch(self, sdss_catalog):
        with pytest.raises(ValueError, match="rows"):
            annotate_catalog(sdss_catalog, {"bdtvar": np.zeros(3)})
