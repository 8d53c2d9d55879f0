"""Boosted decision tree variants for star/galaxy separation.

Each ``BDTMethod`` maps to exactly one scikit-learn pipeline builder:

- BDT:  AdaBoost over Gini-split decision trees
- BDTG: gradient boosting with shrinkage and row subsampling
- BDTB: bagged decision trees
- BDTD: decorrelation transform followed by AdaBoost

All variants share the tree hyperparameters (number of trees, depth,
minimum leaf size) and a uniform grid of ``n_cuts`` candidate cut values
per variable, realised as a uniform-width discretisation in front of the
trees.

References:
- Freund & Schapire 1997, JCSS, 55, 119 (AdaBoost)
- Friedman 2001, Ann. Stat., 29, 1189 (gradient boosting)
- Breiman 1996, Mach. Learn., 24, 123 (bagging)
- Hoecker et al. 2007, arXiv:physics/0703039 (BDT options and decorrelation)
"""

from collections.abc import Callable

from sklearn.ensemble import (
    AdaBoostClassifier,
    BaggingClassifier,
    GradientBoostingClassifier,
)
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import KBinsDiscretizer
from sklearn.tree import DecisionTreeClassifier

from classification.decorrelation import DecorrelationTransform
from run_config import BDTHyperParameters, BDTMethod, UnknownMethodError

ADABOOST_BETA = 0.5
GRADIENT_SHRINKAGE = 0.1
GRADIENT_SUBSAMPLE = 0.5


def _cut_grid(hyper: BDTHyperParameters) -> KBinsDiscretizer:
    return KBinsDiscretizer(n_bins=hyper.n_cuts, encode="ordinal", strategy="uniform")


def _tree(hyper: BDTHyperParameters, random_state: int) -> DecisionTreeClassifier:
    return DecisionTreeClassifier(
        criterion="gini",
        max_depth=hyper.max_depth,
        min_samples_leaf=hyper.min_leaf_events,
        random_state=random_state,
    )


def _adaptive_boost(hyper: BDTHyperParameters, random_state: int, n_jobs: int | None) -> Pipeline:
    return Pipeline([
        ("cuts", _cut_grid(hyper)),
        ("bdt", AdaBoostClassifier(
            estimator=_tree(hyper, random_state),
            n_estimators=hyper.n_trees,
            learning_rate=ADABOOST_BETA,
            random_state=random_state,
        )),
    ])


def _gradient_boost(hyper: BDTHyperParameters, random_state: int, n_jobs: int | None) -> Pipeline:
    return Pipeline([
        ("cuts", _cut_grid(hyper)),
        ("bdt", GradientBoostingClassifier(
            n_estimators=hyper.n_trees,
            max_depth=hyper.max_depth,
            min_samples_leaf=hyper.min_leaf_events,
            learning_rate=GRADIENT_SHRINKAGE,
            subsample=GRADIENT_SUBSAMPLE,
            random_state=random_state,
        )),
    ])


def _bagging(hyper: BDTHyperParameters, random_state: int, n_jobs: int | None) -> Pipeline:
    return Pipeline([
        ("cuts", _cut_grid(hyper)),
        ("bdt", BaggingClassifier(
            estimator=_tree(hyper, random_state),
            n_estimators=hyper.n_trees,
            random_state=random_state,
            n_jobs=n_jobs,
        )),
    ])


def _decorrelated_boost(hyper: BDTHyperParameters, random_state: int, n_jobs: int | None) -> Pipeline:
    return Pipeline([
        ("decorrelate", DecorrelationTransform()),
        ("cuts", _cut_grid(hyper)),
        ("bdt", AdaBoostClassifier(
            estimator=_tree(hyper, random_state),
            n_estimators=hyper.n_trees,
            learning_rate=ADABOOST_BETA,
            random_state=random_state,
        )),
    ])


_BUILDERS: dict[BDTMethod, Callable[[BDTHyperParameters, int, int | None], Pipeline]] = {
    BDTMethod.BDT: _adaptive_boost,
    BDTMethod.BDTG: _gradient_boost,
    BDTMethod.BDTB: _bagging,
    BDTMethod.BDTD: _decorrelated_boost,
}


def build_estimator(
    method: BDTMethod,
    hyper: BDTHyperParameters,
    random_state: int = 42,
    n_jobs: int | None = None,
) -> Pipeline:
    """Create the unfitted pipeline for a method.

    Parameters
    ----------
    method : BDTMethod
        Classifier variant
    hyper : BDTHyperParameters
        Shared tree hyperparameters
    random_state : int
        Seed for reproducible boosting/bagging (default: 42)
    n_jobs : int, optional
        Parallel jobs for bagging; ignored by the boosted variants

    Returns
    -------
    Pipeline
        scikit-learn pipeline ending in a step named ``"bdt"``
    """
    try:
        builder = _BUILDERS[method]
    except KeyError:
        raise UnknownMethodError(f"No implementation registered for {method!r}") from None
    return builder(hyper, random_state, n_jobs)


def describe(method: BDTMethod) -> str:
    """One-line human description of a method."""
    return {
        BDTMethod.BDT: "AdaBoost decision trees",
        BDTMethod.BDTG: "Gradient-boosted decision trees",
        BDTMethod.BDTB: "Bagged decision trees",
        BDTMethod.BDTD: "Decorrelated inputs + AdaBoost decision trees",
    }[method]
