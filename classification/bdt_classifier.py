"""Trained boosted-tree star/galaxy classifier.

``BDTStarGalaxyClassifier`` wraps one fitted scikit-learn pipeline built by
:mod:`classification.methods`, together with the feature order it was
trained on and the hyperparameters that name its artifact on disk.

The classifier output is a score in [-1, 1]: ``2 * P(galaxy) - 1``. Positive
values lean galaxy (signal), negative values lean star (background).
"""

from dataclasses import dataclass
from pathlib import Path

import joblib
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.pipeline import Pipeline

from catalog.features import FEATURE_NAMES
from classification.methods import build_estimator
from run_config import BDTHyperParameters, BDTMethod

# Bumped when the saved payload layout changes
ARTIFACT_VERSION = 1


class ModelLoadError(RuntimeError):
    """A model artifact is missing, unreadable or for the wrong method. Fatal."""


@dataclass
class ClassificationResult:
    """Result of scoring one source.

    Attributes
    ----------
    score : float
        Classifier output in [-1, 1]
    is_galaxy : bool
        True if ``score`` exceeds the selection threshold
    probability_galaxy : float
        ``(score + 1) / 2``
    """

    score: float
    is_galaxy: bool
    probability_galaxy: float


class BDTStarGalaxyClassifier:
    """Boosted decision tree classifier for star-galaxy separation.

    Attributes
    ----------
    method : BDTMethod
        Variant of the underlying ensemble
    hyper : BDTHyperParameters
        Hyperparameters used to build the ensemble
    pipeline : Pipeline
        The scikit-learn pipeline (fitted after :meth:`fit`)
    feature_names : list
        Names of features in order
    is_fitted : bool
        Whether the model has been trained

    Examples
    --------
    >>> clf = BDTStarGalaxyClassifier(BDTMethod.BDTD, BDTHyperParameters(n_trees=400))
    >>> clf.fit(features_df, labels)
    >>> scores = clf.score(new_features)
    """

    def __init__(
        self,
        method: BDTMethod = BDTMethod.BDTD,
        hyper: BDTHyperParameters | None = None,
        random_state: int = 42,
        n_jobs: int | None = None,
    ):
        self.method = method
        self.hyper = hyper if hyper is not None else BDTHyperParameters()
        self.random_state = random_state
        self.pipeline: Pipeline = build_estimator(method, self.hyper, random_state, n_jobs)
        self.feature_names = list(FEATURE_NAMES)
        self.is_fitted = False

    @property
    def name(self) -> str:
        return self.method.value

    def _matrix(self, features: pd.DataFrame) -> NDArray:
        missing = [name for name in self.feature_names if name not in features.columns]
        if missing:
            raise ValueError(f"Missing features: {missing}")
        return features[self.feature_names].to_numpy(dtype=np.float64)

    def fit(
        self,
        features: pd.DataFrame,
        labels: NDArray,
        sample_weight: NDArray | None = None,
    ) -> "BDTStarGalaxyClassifier":
        """Train the classifier.

        Parameters
        ----------
        features : pd.DataFrame
            Feature matrix with columns matching feature_names; must be
            free of missing values
        labels : NDArray
            Binary labels (1 = galaxy, 0 = star)
        sample_weight : NDArray, optional
            Per-row training weights

        Returns
        -------
        BDTStarGalaxyClassifier
            self
        """
        X = self._matrix(features)
        y = np.asarray(labels).astype(int)

        if not np.isfinite(X).all():
            raise ValueError("Training features contain NaN or infinite values")
        if set(np.unique(y)) != {0, 1}:
            raise ValueError("Training labels must contain both classes (0 = star, 1 = galaxy)")

        fit_params = {}
        if sample_weight is not None:
            fit_params["bdt__sample_weight"] = np.asarray(sample_weight, dtype=np.float64)

        self.pipeline.fit(X, y, **fit_params)
        self.is_fitted = True
        return self

    def score(self, features: pd.DataFrame) -> NDArray:
        """Classifier output in [-1, 1] for each row.

        Rows containing NaN are not scored and get NaN.
        """
        if not self.is_fitted:
            raise RuntimeError("Model not fitted. Call fit() first.")

        X = self._matrix(features)
        out = np.full(len(X), np.nan)
        valid = np.isfinite(X).all(axis=1)
        if valid.any():
            prob = self.pipeline.predict_proba(X[valid])[:, 1]
            out[valid] = 2.0 * prob - 1.0
        return out

    def score_row(self, vector: NDArray) -> float:
        """Score a single feature vector in ``feature_names`` order."""
        vector = np.asarray(vector, dtype=np.float64).reshape(1, -1)
        if vector.shape[1] != len(self.feature_names):
            raise ValueError(
                f"Expected {len(self.feature_names)} features, got {vector.shape[1]}"
            )
        frame = pd.DataFrame(vector, columns=self.feature_names)
        return float(self.score(frame)[0])

    def predict(self, features: pd.DataFrame, threshold: float = 0.0) -> list[ClassificationResult]:
        """Classify sources as stars or galaxies with a score threshold."""
        scores = self.score(features)
        return [
            ClassificationResult(
                score=float(s),
                is_galaxy=bool(s > threshold),
                probability_galaxy=float((s + 1.0) / 2.0),
            )
            for s in scores
        ]

    def variable_ranking(self) -> list[tuple[str, float]]:
        """Feature importances from the fitted ensemble, largest first."""
        if not self.is_fitted:
            raise RuntimeError("Model not fitted. Call fit() first.")

        ensemble = self.pipeline.named_steps["bdt"]
        if hasattr(ensemble, "feature_importances_"):
            importances = ensemble.feature_importances_
        else:
            # Bagging exposes no aggregate importances
            importances = np.mean(
                [tree.feature_importances_ for tree in ensemble.estimators_], axis=0
            )
        ranking = zip(self.feature_names, map(float, importances), strict=True)
        return sorted(ranking, key=lambda x: x[1], reverse=True)

    def save(self, path: Path | str) -> Path:
        """Save the trained model to disk.

        Parameters
        ----------
        path : Path or str
            Output path for the model file (.joblib)
        """
        if not self.is_fitted:
            raise RuntimeError("Model not fitted. Call fit() first.")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(
            {
                "version": ARTIFACT_VERSION,
                "method": self.method.value,
                "hyper": self.hyper,
                "random_state": self.random_state,
                "feature_names": self.feature_names,
                "pipeline": self.pipeline,
            },
            path,
        )
        return path

    @classmethod
    def load(
        cls, path: Path | str, expected_method: BDTMethod | None = None
    ) -> "BDTStarGalaxyClassifier":
        """Load a trained model from disk.

        Parameters
        ----------
        path : Path or str
            Path to saved model file
        expected_method : BDTMethod, optional
            Fail if the artifact was trained for another method

        Returns
        -------
        BDTStarGalaxyClassifier
            Loaded classifier instance

        Raises
        ------
        ModelLoadError
            If the file is missing, unreadable or does not match
        """
        path = Path(path)
        if not path.exists():
            raise ModelLoadError(f"Model file not found: {path}")

        try:
            data = joblib.load(path)
        except Exception as e:
            raise ModelLoadError(f"Could not read model file {path}: {e}") from e

        if not isinstance(data, dict) or data.get("version") != ARTIFACT_VERSION:
            raise ModelLoadError(f"{path} is not a BDT model artifact (version {ARTIFACT_VERSION})")

        try:
            method = BDTMethod(data["method"])
        except ValueError:
            raise ModelLoadError(f"{path} holds unknown method {data['method']!r}") from None
        if expected_method is not None and method != expected_method:
            raise ModelLoadError(
                f"{path} holds a {method.value} model, expected {expected_method.value}"
            )
        if list(data["feature_names"]) != list(FEATURE_NAMES):
            raise ModelLoadError(f"{path} was trained on a different feature vector")

        instance = cls.__new__(cls)
        instance.method = method
        instance.hyper = data["hyper"]
        instance.random_state = data["random_state"]
        instance.feature_names = list(data["feature_names"])
        instance.pipeline = data["pipeline"]
        instance.is_fitted = True

        return instance
