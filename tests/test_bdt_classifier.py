"""Tests for the BDT classifier variants and model persistence."""

import joblib
import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

# Skip all tests if sklearn not available
sklearn = pytest.importorskip("sklearn")

from catalog.cuts import class_labels  # noqa: E402
from catalog.features import FEATURE_NAMES, derive_features  # noqa: E402
from run_config import BDTHyperParameters, BDTMethod, UnknownMethodError  # noqa: E402


@pytest.fixture
def training_data(sdss_catalog):
    return derive_features(sdss_catalog), class_labels(sdss_catalog)


class TestDecorrelation:
    """Tests for DecorrelationTransform."""

    def test_unit_covariance(self):
        from classification.decorrelation import DecorrelationTransform

        rng = np.random.default_rng(1)
        base = rng.normal(size=(2000, 3))
        X = base @ np.array([[1.0, 0.8, 0.0], [0.0, 1.0, 0.5], [0.0, 0.0, 2.0]])

        Z = DecorrelationTransform().fit_transform(X)
        assert_allclose(np.cov(Z, rowvar=False), np.eye(3), atol=1e-8)
        assert_allclose(Z.mean(axis=0), 0.0, atol=1e-10)

    def test_symmetric_matrix(self):
        from classification.decorrelation import DecorrelationTransform

        rng = np.random.default_rng(2)
        transform = DecorrelationTransform().fit(rng.normal(size=(200, 4)))
        assert_allclose(transform.matrix_, transform.matrix_.T)

    def test_constant_feature(self):
        from classification.decorrelation import DecorrelationTransform

        rng = np.random.default_rng(3)
        X = np.column_stack([rng.normal(size=100), np.full(100, 5.0)])
        Z = DecorrelationTransform().fit_transform(X)
        assert np.isfinite(Z).all()

    def test_wrong_width(self):
        from classification.decorrelation import DecorrelationTransform

        transform = DecorrelationTransform().fit(np.random.default_rng(0).normal(size=(50, 3)))
        with pytest.raises(ValueError, match="Expected 3 features"):
            transform.transform(np.zeros((2, 4)))

    def test_correlation_matrix(self):
        from classification.decorrelation import correlation_matrix

        X = np.column_stack([np.arange(10.0), 2 * np.arange(10.0), np.ones(10)])
        corr = correlation_matrix(X)
        assert corr[0, 1] == pytest.approx(1.0)
        assert corr[0, 2] == 0.0


class TestBuildEstimator:
    """Tests for the method -> pipeline mapping."""

    @pytest.mark.parametrize("method", list(BDTMethod))
    def test_every_method_has_pipeline(self, method):
        from classification.methods import build_estimator, describe

        pipeline = build_estimator(method, BDTHyperParameters(n_trees=7, n_cuts=30))
        assert "bdt" in pipeline.named_steps
        assert pipeline.named_steps["cuts"].n_bins == 30
        assert pipeline.named_steps["bdt"].n_estimators == 7
        assert describe(method)

    def test_decorrelated_variant(self):
        from classification.methods import build_estimator

        steps = [name for name, _ in build_estimator(BDTMethod.BDTD, BDTHyperParameters()).steps]
        assert steps == ["decorrelate", "cuts", "bdt"]

    def test_tree_settings(self):
        from classification.methods import build_estimator

        hyper = BDTHyperParameters(max_depth=4, min_leaf_events=17)
        tree = build_estimator(BDTMethod.BDT, hyper).named_steps["bdt"].estimator
        assert tree.max_depth == 4
        assert tree.min_samples_leaf == 17
        assert tree.criterion == "gini"

    def test_unknown_method(self):
        from classification.methods import build_estimator

        with pytest.raises(UnknownMethodError):
            build_estimator("BDTF", BDTHyperParameters())


class TestBDTStarGalaxyClassifier:
    """Tests for the BDTStarGalaxyClassifier class."""

    def test_initialization(self, small_hyper):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        clf = BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper)
        assert clf.is_fitted is False
        assert clf.name == "BDT"
        assert clf.feature_names == list(FEATURE_NAMES)

    @pytest.mark.parametrize("method", list(BDTMethod))
    def test_fit_and_score(self, method, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        clf = BDTStarGalaxyClassifier(method, small_hyper, n_jobs=1).fit(features, labels)
        scores = clf.score(features)

        assert clf.is_fitted is True
        assert scores.shape == (len(features),)
        assert np.all((scores >= -1.0) & (scores <= 1.0))
        # Synthetic classes are well separated
        assert scores[labels == 1].mean() > scores[labels == 0].mean()

    def test_score_nan_rows(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        clf = BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(features, labels)
        subset = features.iloc[:5].copy()
        subset.iloc[2, 0] = np.nan
        scores = clf.score(subset)
        assert np.isnan(scores[2])
        assert np.isfinite(np.delete(scores, 2)).all()

    def test_deterministic(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        a = BDTStarGalaxyClassifier(BDTMethod.BDTD, small_hyper).fit(features, labels)
        b = BDTStarGalaxyClassifier(BDTMethod.BDTD, small_hyper).fit(features, labels)
        assert_array_equal(a.score(features), b.score(features))

    def test_score_row_matches_frame(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        clf = BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(features, labels)
        assert clf.score_row(features.iloc[4].to_numpy()) == pytest.approx(clf.score(features)[4])
        with pytest.raises(ValueError, match="Expected 28"):
            clf.score_row(np.zeros(5))

    def test_predict(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        clf = BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(features, labels)
        results = clf.predict(features.iloc[:10], threshold=0.05)
        assert len(results) == 10
        for r in results:
            assert isinstance(r.is_galaxy, bool)
            assert r.is_galaxy == (r.score > 0.05)
            assert 0 <= r.probability_galaxy <= 1

    def test_unfitted(self, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, _ = training_data
        clf = BDTStarGalaxyClassifier()
        with pytest.raises(RuntimeError, match="not fitted"):
            clf.score(features)
        with pytest.raises(RuntimeError, match="not fitted"):
            clf.save("unused.joblib")

    def test_missing_features(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        with pytest.raises(ValueError, match="Missing features"):
            BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(
                features.drop(columns=["mrrcc_r"]), labels
            )

    def test_fit_rejects_nan_and_single_class(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        bad = features.copy()
        bad.iloc[0, 3] = np.nan
        with pytest.raises(ValueError, match="NaN"):
            BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(bad, labels)
        with pytest.raises(ValueError, match="both classes"):
            BDTStarGalaxyClassifier(BDTMethod.BDT, small_hyper).fit(features, np.ones(len(labels)))

    def test_variable_ranking(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        for method in (BDTMethod.BDT, BDTMethod.BDTB):
            clf = BDTStarGalaxyClassifier(method, small_hyper, n_jobs=1).fit(features, labels)
            ranking = clf.variable_ranking()
            assert len(ranking) == 28
            importances = [imp for _, imp in ranking]
            assert importances == sorted(importances, reverse=True)


class TestPersistence:
    """Tests for save/load of model artifacts."""

    @pytest.fixture
    def fitted(self, small_hyper, training_data):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, labels = training_data
        return BDTStarGalaxyClassifier(BDTMethod.BDTD, small_hyper).fit(features, labels)

    def test_save_load(self, fitted, training_data, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier

        features, _ = training_data
        path = fitted.save(tmp_path / "nested" / "model.joblib")
        assert path.exists()

        loaded = BDTStarGalaxyClassifier.load(path, expected_method=BDTMethod.BDTD)
        assert loaded.is_fitted is True
        assert loaded.method is BDTMethod.BDTD
        assert loaded.hyper == fitted.hyper
        assert_array_equal(loaded.score(features), fitted.score(features))

    def test_missing_file(self, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier, ModelLoadError

        with pytest.raises(ModelLoadError, match="not found"):
            BDTStarGalaxyClassifier.load(tmp_path / "missing.joblib")

    def test_corrupt_file(self, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier, ModelLoadError

        path = tmp_path / "corrupt.joblib"
        path.write_bytes(b"not a pickle")
        with pytest.raises(ModelLoadError):
            BDTStarGalaxyClassifier.load(path)

    def test_foreign_artifact(self, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier, ModelLoadError

        path = tmp_path / "other.joblib"
        joblib.dump({"model": "something else"}, path)
        with pytest.raises(ModelLoadError, match="not a BDT model"):
            BDTStarGalaxyClassifier.load(path)

    def test_method_mismatch(self, fitted, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier, ModelLoadError

        path = fitted.save(tmp_path / "model.joblib")
        with pytest.raises(ModelLoadError, match="expected BDTG"):
            BDTStarGalaxyClassifier.load(path, expected_method=BDTMethod.BDTG)

    def test_feature_order_mismatch(self, fitted, tmp_path):
        from classification.bdt_classifier import BDTStarGalaxyClassifier, ModelLoadError

        path = fitted.save(tmp_path / "model.joblib")
        data = joblib.load(path)
        data["feature_names"] = list(reversed(data["feature_names"]))
        joblib.dump(data, path)
        with pytest.raises(ModelLoadError):
            BDTStarGalaxyClassifier.load(path)

    def test_frame_type(self, fitted, training_data):
        features, _ = training_data
        assert isinstance(features, pd.DataFrame)
        shuffled = features[list(reversed(features.columns))]
        assert_array_equal(fitted.score(shuffled), fitted.score(features))
