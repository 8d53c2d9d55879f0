"""Classifier performance metrics for star-galaxy separation.

Key metrics:
- ROC AUC on the test partition
- Signal (galaxy) efficiency at fixed background (star) efficiency,
  read off the ROC curve for test and training partitions
- Separation <S^2> between the galaxy and star score distributions
- Kolmogorov-Smirnov probabilities comparing training and test score
  distributions per class (overtraining check)

References:
- Hoecker et al. 2007, arXiv:physics/0703039 (separation, overtraining)
- Fawcett 2006, Pattern Recognit. Lett., 27, 861 (ROC analysis)
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import ks_2samp
from sklearn.metrics import roc_auc_score, roc_curve

# Background efficiencies at which the signal efficiency is reported
BACKGROUND_EFFICIENCIES = (0.01, 0.10, 0.30)
SCORE_RANGE = (-1.0, 1.0)


@dataclass
class MethodEvaluation:
    """Evaluation of one trained method.

    Attributes
    ----------
    method : str
        Method name
    auc_roc : float
        Area under the ROC curve (test partition)
    eff_signal_test : dict
        Signal efficiency at each background efficiency, test partition
    eff_signal_train : dict
        Signal efficiency at each background efficiency, training partition
    separation : float
        <S^2> of the test score distributions, 0 (identical) to 1 (disjoint)
    ks_signal : float
        KS probability, galaxy scores train vs test
    ks_background : float
        KS probability, star scores train vs test
    accuracy : float
        Fraction correctly classified at the selection threshold (test)
    galaxy_contamination : float
        Fraction of selected rows that are stars at the threshold (test)
    n_train, n_test : int
        Partition sizes
    ranking : list
        (feature, importance) pairs, largest first
    """

    method: str
    auc_roc: float
    eff_signal_test: dict[float, float]
    eff_signal_train: dict[float, float]
    separation: float
    ks_signal: float
    ks_background: float
    accuracy: float
    galaxy_contamination: float
    n_train: int
    n_test: int
    ranking: list[tuple[str, float]] = field(default_factory=list)


def signal_efficiency_at(
    scores: ArrayLike,
    labels: ArrayLike,
    background_efficiencies: tuple[float, ...] = BACKGROUND_EFFICIENCIES,
) -> dict[float, float]:
    """Galaxy efficiency at fixed star efficiency, interpolated on the ROC curve."""
    scores = np.asarray(scores, dtype=np.float64)
    labels = np.asarray(labels).astype(int)
    if len(np.unique(labels)) < 2:
        return {eff_b: np.nan for eff_b in background_efficiencies}
    fpr, tpr, _ = roc_curve(labels, scores)
    return {eff_b: float(np.interp(eff_b, fpr, tpr)) for eff_b in background_efficiencies}


def separation(
    scores_signal: ArrayLike,
    scores_background: ArrayLike,
    bins: int = 100,
    score_range: tuple[float, float] = SCORE_RANGE,
) -> float:
    """Separation <S^2> = 1/2 * sum (pS - pB)^2 / (pS + pB) over normalised histograms."""
    p_s, _ = np.histogram(scores_signal, bins=bins, range=score_range)
    p_b, _ = np.histogram(scores_background, bins=bins, range=score_range)
    if p_s.sum() == 0 or p_b.sum() == 0:
        return np.nan
    p_s = p_s / p_s.sum()
    p_b = p_b / p_b.sum()
    total = p_s + p_b
    nonzero = total > 0
    return float(0.5 * np.sum((p_s[nonzero] - p_b[nonzero]) ** 2 / total[nonzero]))


def ks_probability(train: ArrayLike, test: ArrayLike) -> float:
    """Two-sample KS p-value; NaN when either sample is empty."""
    train = np.asarray(train, dtype=np.float64)
    test = np.asarray(test, dtype=np.float64)
    if len(train) == 0 or len(test) == 0:
        return np.nan
    return float(ks_2samp(train, test).pvalue)


def confusion_matrix_star_galaxy(y_true: ArrayLike, y_pred: ArrayLike) -> dict:
    """Confusion matrix and derived rates (1 = galaxy, 0 = star).

    Returns
    -------
    dict
        ``confusion_matrix`` as [[TN, FP], [FN, TP]], ``accuracy``,
        ``galaxy_completeness`` and ``galaxy_contamination``; rates with a
        zero denominator are NaN
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(int)

    tp = int(((y_true == 1) & (y_pred == 1)).sum())
    tn = int(((y_true == 0) & (y_pred == 0)).sum())
    fp = int(((y_true == 0) & (y_pred == 1)).sum())
    fn = int(((y_true == 1) & (y_pred == 0)).sum())

    def _ratio(num: int, den: int) -> float:
        return float(num) / float(den) if den > 0 else np.nan

    return {
        "confusion_matrix": np.array([[tn, fp], [fn, tp]]),
        "n_total": len(y_true),
        "accuracy": _ratio(tp + tn, len(y_true)),
        "galaxy_completeness": _ratio(tp, tp + fn),
        "galaxy_contamination": _ratio(fp, tp + fp),
    }


def evaluate_method(
    method: str,
    scores_train: NDArray,
    labels_train: NDArray,
    scores_test: NDArray,
    labels_test: NDArray,
    threshold: float = 0.0,
    ranking: list[tuple[str, float]] | None = None,
) -> MethodEvaluation:
    """Evaluate one method from its training and test scores.

    Parameters
    ----------
    method : str
        Method name used in reports
    scores_train, scores_test : NDArray
        Classifier output per row
    labels_train, labels_test : NDArray
        Binary labels (1 = galaxy, 0 = star)
    threshold : float
        Score above which a row is classified as galaxy
    ranking : list, optional
        Variable ranking to carry into the report

    Returns
    -------
    MethodEvaluation
    """
    labels_train = np.asarray(labels_train).astype(int)
    labels_test = np.asarray(labels_test).astype(int)
    scores_train = np.asarray(scores_train, dtype=np.float64)
    scores_test = np.asarray(scores_test, dtype=np.float64)

    if len(np.unique(labels_test)) == 2:
        auc = float(roc_auc_score(labels_test, scores_test))
    else:
        auc = np.nan

    sig_test = scores_test[labels_test == 1]
    bkg_test = scores_test[labels_test == 0]
    cm = confusion_matrix_star_galaxy(labels_test, scores_test > threshold)

    return MethodEvaluation(
        method=method,
        auc_roc=auc,
        eff_signal_test=signal_efficiency_at(scores_test, labels_test),
        eff_signal_train=signal_efficiency_at(scores_train, labels_train),
        separation=separation(sig_test, bkg_test),
        ks_signal=ks_probability(scores_train[labels_train == 1], sig_test),
        ks_background=ks_probability(scores_train[labels_train == 0], bkg_test),
        accuracy=cm["accuracy"],
        galaxy_contamination=cm["galaxy_contamination"],
        n_train=len(labels_train),
        n_test=len(labels_test),
        ranking=list(ranking) if ranking else [],
    )


def format_evaluation_table(evaluations: list[MethodEvaluation]) -> str:
    """Format evaluations as a text table: test efficiency (training efficiency)."""
    eff_cols = " ".join(f"{f'@B={b:.2f}':>15}" for b in BACKGROUND_EFFICIENCIES)
    header = f"{'Method':<8} {'AUC':>7} {eff_cols} {'<S2>':>7} {'KS(S)':>7} {'KS(B)':>7}"
    separator = "-" * len(header)
    lines = [header, separator]

    for ev in evaluations:
        effs = " ".join(
            f"{f'{ev.eff_signal_test[b]:.3f} ({ev.eff_signal_train[b]:.3f})':>15}"
            for b in BACKGROUND_EFFICIENCIES
        )
        lines.append(
            f"{ev.method:<8} {ev.auc_roc:>7.4f} {effs} {ev.separation:>7.4f} "
            f"{ev.ks_signal:>7.3f} {ev.ks_background:>7.3f}"
        )

    return "\n".join(lines)
