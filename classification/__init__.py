"""Boosted decision tree classifiers for star/galaxy separation.

This module provides tools for:
- The four boosted-tree variants (adaptive boost, gradient boost, bagging,
  decorrelated adaptive boost) built on scikit-learn
- A classifier wrapper that trains, scores, saves and loads one variant
- The training pipeline (see classification.training)

Example usage:
    from classification import BDTStarGalaxyClassifier
    from run_config import BDTMethod

    clf = BDTStarGalaxyClassifier.load("weights/SGClassification_BDT_2000_50_15_200_30000_6000_BDTD.joblib")
    scores = clf.score(features)
    is_galaxy = scores > 0.05
"""

from classification.bdt_classifier import (
    ARTIFACT_VERSION,
    BDTStarGalaxyClassifier,
    ClassificationResult,
    ModelLoadError,
)
from classification.decorrelation import DecorrelationTransform, correlation_matrix
from classification.methods import build_estimator, describe

__all__ = [
    "ARTIFACT_VERSION",
    "BDTStarGalaxyClassifier",
    "ClassificationResult",
    "DecorrelationTransform",
    "ModelLoadError",
    "build_estimator",
    "correlation_matrix",
    "describe",
]
