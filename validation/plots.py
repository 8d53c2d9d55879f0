"""Visualization tools for star-galaxy classifier validation.

This module provides plots for:
- Classifier score distributions for galaxies and stars
- ROC curves (galaxy efficiency vs star rejection)
- Overtraining check (training vs test score distributions)
- Efficiency and impurity as a function of magnitude
"""

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend; plots go to files

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure
from numpy.typing import ArrayLike
from sklearn.metrics import roc_curve

from validation.efficiency import SelectionSummary
from validation.histograms import Histogram1D

GALAXY_COLOR = "steelblue"
STAR_COLOR = "firebrick"


def _step(ax, hist: Histogram1D, color: str, label: str) -> None:
    total = hist.counts.sum()
    density = hist.counts / total if total > 0 else hist.counts.astype(float)
    ax.stairs(density, hist.edges, color=color, lw=1.5, label=f"{label} (N = {total})")


def plot_score_distributions(
    galaxy_hist: Histogram1D,
    star_hist: Histogram1D,
    threshold: float | None = None,
    title: str = "Classifier output",
    figsize: tuple = (8, 6),
) -> Figure:
    """Normalised score distributions for true galaxies and true stars.

    Parameters
    ----------
    galaxy_hist, star_hist : Histogram1D
        Score histograms of each true class, same binning
    threshold : float, optional
        Selection threshold drawn as a vertical line
    title : str
        Plot title
    figsize : tuple
        Figure size

    Returns
    -------
    Figure
        Matplotlib figure object
    """
    fig, ax = plt.subplots(figsize=figsize)
    _step(ax, galaxy_hist, GALAXY_COLOR, "Galaxies")
    _step(ax, star_hist, STAR_COLOR, "Stars")

    if threshold is not None:
        ax.axvline(threshold, color="k", linestyle="--", lw=1, label=f"Cut = {threshold:g}")

    ax.set_xlabel("Score", fontsize=12)
    ax.set_ylabel("Fraction of sources", fontsize=12)
    ax.set_title(title, fontsize=14)
    ax.legend(loc="upper center")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_roc_curves(
    scores: dict[str, ArrayLike],
    labels: ArrayLike,
    title: str = "ROC curves (test sample)",
    figsize: tuple = (7, 7),
) -> Figure:
    """Galaxy efficiency vs star rejection for each method.

    Parameters
    ----------
    scores : dict
        Method name -> test scores
    labels : array-like
        Test labels (1 = galaxy, 0 = star)
    """
    labels = np.asarray(labels).astype(int)
    fig, ax = plt.subplots(figsize=figsize)

    for name, s in scores.items():
        fpr, tpr, _ = roc_curve(labels, np.asarray(s))
        ax.plot(tpr, 1 - fpr, lw=1.5, label=name)

    ax.set_xlabel("Galaxy efficiency", fontsize=12)
    ax.set_ylabel("Star rejection", fontsize=12)
    ax.set_title(title, fontsize=14)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.02)
    ax.legend(loc="lower left")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_overtraining(
    method: str,
    scores_train: ArrayLike,
    labels_train: ArrayLike,
    scores_test: ArrayLike,
    labels_test: ArrayLike,
    ks_signal: float | None = None,
    ks_background: float | None = None,
    bins: int = 40,
    figsize: tuple = (8, 6),
) -> Figure:
    """Overlay training (points) and test (filled) score distributions per class."""
    scores_train = np.asarray(scores_train)
    scores_test = np.asarray(scores_test)
    labels_train = np.asarray(labels_train).astype(int)
    labels_test = np.asarray(labels_test).astype(int)
    edges = np.linspace(-1, 1, bins + 1)
    centers = 0.5 * (edges[1:] + edges[:-1])

    fig, ax = plt.subplots(figsize=figsize)
    for cls, color, name in ((1, GALAXY_COLOR, "Galaxies"), (0, STAR_COLOR, "Stars")):
        ax.hist(
            scores_test[labels_test == cls], bins=edges, density=True,
            alpha=0.35, color=color, label=f"{name} (test)",
        )
        train_counts, _ = np.histogram(scores_train[labels_train == cls], bins=edges, density=True)
        ax.plot(centers, train_counts, "o", ms=3, color=color, label=f"{name} (train)")

    if ks_signal is not None and ks_background is not None:
        ax.text(
            0.05, 0.95,
            f"KS prob. galaxies = {ks_signal:.3f}\nKS prob. stars = {ks_background:.3f}",
            transform=ax.transAxes,
            fontsize=10,
            verticalalignment="top",
            bbox={"boxstyle": "round", "facecolor": "white", "alpha": 0.8},
        )

    ax.set_xlabel(f"{method} score", fontsize=12)
    ax.set_ylabel("Normalised counts", fontsize=12)
    ax.set_title(f"{method} overtraining check", fontsize=14)
    ax.legend(loc="upper center")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_efficiency_vs_magnitude(
    summaries: list[SelectionSummary],
    figsize: tuple = (12, 5),
) -> Figure:
    """Two panels: efficiency and impurity per magnitude bin for each selector.

    Bins with undefined values are left out of the lines.
    """
    fig, (ax_eff, ax_imp) = plt.subplots(1, 2, figsize=figsize, sharex=True)

    for summary in summaries:
        frame = summary.to_frame()
        centers = 0.5 * (frame["mag_lo"] + frame["mag_hi"])
        ax_eff.plot(centers, frame["efficiency"], "o-", ms=4, label=summary.name)
        ax_imp.plot(centers, frame["impurity"], "o-", ms=4, label=summary.name)

    ax_eff.set_ylabel("Galaxy efficiency [%]", fontsize=12)
    ax_imp.set_ylabel("Star impurity [%]", fontsize=12)
    for ax in (ax_eff, ax_imp):
        ax.set_xlabel("modelmag_r", fontsize=12)
        ax.grid(True, alpha=0.3)
        ax.legend(loc="best")

    plt.tight_layout()
    return fig
