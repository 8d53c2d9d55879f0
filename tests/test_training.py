"""Tests for the training pipeline."""

import numpy as np
import pytest
from astropy.io import fits
from numpy.testing import assert_array_equal

sklearn = pytest.importorskip("sklearn")

from classification.training import run_training, split_train_test  # noqa: E402
from run_config import (  # noqa: E402
    BDTHyperParameters,
    BDTMethod,
    ConfigurationError,
    TrainingConfig,
)


class TestSplit:
    """Tests for split_train_test()."""

    @pytest.fixture
    def labels(self):
        return np.r_[np.ones(60, dtype=int), np.zeros(40, dtype=int)]

    def test_exact_counts(self, labels):
        split = split_train_test(labels, 25, 10, random_state=0)
        assert (labels[split.train] == 1).sum() == 25
        assert (labels[split.train] == 0).sum() == 10
        assert split.n_train + split.n_test == len(labels)
        assert not np.intersect1d(split.train, split.test).size

    def test_reproducible(self, labels):
        a = split_train_test(labels, 25, 10, random_state=3)
        b = split_train_test(labels, 25, 10, random_state=3)
        assert_array_equal(a.train, b.train)

    def test_seed_changes_split(self, labels):
        a = split_train_test(labels, 25, 10, random_state=3)
        b = split_train_test(labels, 25, 10, random_state=4)
        assert not np.array_equal(a.train, b.train)

    def test_too_many_requested(self, labels):
        with pytest.raises(ConfigurationError, match="signal"):
            split_train_test(labels, 60, 10)
        with pytest.raises(ConfigurationError, match="background"):
            split_train_test(labels, 10, 45)


class TestRunTraining:
    """Tests for run_training()."""

    @pytest.fixture
    def config(self, small_hyper, tmp_path):
        return TrainingConfig(
            methods=(BDTMethod.BDT, BDTMethod.BDTD),
            hyper=small_hyper,
            output_dir=tmp_path / "sg_training",
            weights_dir=tmp_path / "weights",
            n_jobs=1,
        )

    def test_outputs(self, config, sdss_catalog):
        result = run_training(config, catalog=sdss_catalog, verbose=False)

        assert set(result.model_paths) == {BDTMethod.BDT, BDTMethod.BDTD}
        for method, path in result.model_paths.items():
            assert path.exists()
            assert path == config.model_path(method)
        assert [ev.method for ev in result.evaluations] == ["BDT", "BDTD"]
        assert result.split.n_train == 250
        assert result.split.n_test == 250
        assert all(ev.auc_roc > 0.9 for ev in result.evaluations)

    def test_results_file(self, config, sdss_catalog):
        result = run_training(config, catalog=sdss_catalog, verbose=False)

        with fits.open(result.results_path) as hdul:
            assert hdul[0].header["NTREES"] == 5
            assert hdul[0].header["METHODS"] == "BDT,BDTD"
            assert len(hdul["TRAIN"].data) == 250
            assert len(hdul["TEST"].data) == 250
            assert "BDTD" in hdul["TEST"].columns.names
            assert hdul["CORR_SIGNAL"].data.shape == (28, 28)
            assert hdul["CORR_BACKGROUND"].header["VAR1"] == "petror50_r"
            assert list(hdul["EVALUATION"].data["method"]) == ["BDT", "BDTD"]

    def test_cuts_applied(self, config, sdss_catalog):
        cat = sdss_catalog.copy()
        cat.loc[:19, "me1_r"] = -9999.0
        cat.loc[20:29, "specclass"] = 0
        result = run_training(config, catalog=cat, verbose=False)
        assert result.counters.n_missing == 20
        assert result.counters.n_unlabelled == 10
        assert result.split.n_train + result.split.n_test == 470

    def test_different_hyperparameters_do_not_collide(self, config, sdss_catalog):
        first = run_training(config, catalog=sdss_catalog, verbose=False)
        config.hyper = BDTHyperParameters(
            n_trees=6, min_leaf_events=5, max_depth=3, n_cuts=20,
            n_train_signal=150, n_train_background=100,
        )
        second = run_training(config, catalog=sdss_catalog, verbose=False)

        for method in config.methods:
            assert first.model_paths[method] != second.model_paths[method]
            assert first.model_paths[method].exists()
            assert second.model_paths[method].exists()
        assert first.results_path != second.results_path

    def test_missing_input(self, config, tmp_path):
        config.input_path = tmp_path / "absent.fits"
        with pytest.raises(FileNotFoundError):
            run_training(config, verbose=False)

    def test_missing_columns(self, config, sdss_catalog):
        with pytest.raises(ConfigurationError, match="lnlstar_r"):
            run_training(config, catalog=sdss_catalog.drop(columns=["lnlstar_r"]), verbose=False)

    @pytest.mark.parametrize("cut", ["no_such_column > 1", "ra < 'x'"])
    def test_bad_cut(self, config, sdss_catalog, cut):
        config.extra_cut = cut
        with pytest.raises(ConfigurationError, match="cut"):
            run_training(config, catalog=sdss_catalog, verbose=False)

    def test_not_enough_rows(self, config, make_catalog):
        with pytest.raises(ConfigurationError):
            run_training(config, catalog=make_catalog(100, 200), verbose=False)

    def test_from_file_with_summary(self, config, sdss_catalog, tmp_path, capsys):
        from catalog.io import write_catalog

        config.input_path = write_catalog(sdss_catalog, tmp_path / "train.fits")
        config.methods = (BDTMethod.BDTG,)
        run_training(config, verbose=True)

        out = capsys.readouterr().out
        assert "Using input file" in out
        assert "BDTG" in out
        assert "Training done" in out


class TestTrainingPlots:
    def test_roc_and_overtraining(self, small_hyper, sdss_catalog, tmp_path):
        pytest.importorskip("matplotlib")

        config = TrainingConfig(
            methods=(BDTMethod.BDT,),
            hyper=small_hyper,
            output_dir=tmp_path / "sg_training",
            weights_dir=tmp_path / "weights",
            make_plots=True,
        )
        result = run_training(config, catalog=sdss_catalog, verbose=False)

        names = sorted(p.name for p in result.plot_paths)
        assert names == [
            f"overtrain_BDT_{small_hyper.tag}.pdf",
            f"roc_BDT_{small_hyper.tag}.pdf",
        ]
        assert all(p.exists() for p in result.plot_paths)
