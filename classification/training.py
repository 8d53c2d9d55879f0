"""Training pipeline for the BDT star/galaxy classifiers.

Steps:
1. Load the labelled catalog and apply the training cuts
2. Split galaxies (signal) and stars (background) at random into training
   partitions of fixed size; all remaining rows form the test partition
3. Train every enabled method and save it under a name derived from the
   hyperparameters
4. Evaluate every method on the test partition (and on the training
   partition for the overtraining check)
5. Write the training results file and print a summary
"""

import time
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
from astropy.io import fits
from astropy.table import Table
from numpy.typing import NDArray
from sklearn.model_selection import train_test_split

from catalog.cuts import RunCounters, class_labels, training_mask
from catalog.features import BINNING_COLUMN, FEATURE_NAMES, derive_features, missing_columns, required_columns
from classification.bdt_classifier import BDTStarGalaxyClassifier
from classification.decorrelation import correlation_matrix
from classification.methods import describe
from resource_config import get_config
from run_config import BDTMethod, ConfigurationError, TrainingConfig, read_input_catalog
from validation.metrics import MethodEvaluation, evaluate_method, format_evaluation_table


@dataclass
class TrainingSplit:
    """Row positions (into the cut catalog) of each partition."""

    train: NDArray
    test: NDArray

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)


@dataclass
class TrainingResult:
    """Everything a training run produced.

    Attributes
    ----------
    classifiers : dict
        Fitted classifier per method
    evaluations : list
        One MethodEvaluation per method, in method order
    model_paths : dict
        Saved artifact per method
    results_path : Path
        Training results FITS file
    counters : RunCounters
        Row exclusions from the training cuts
    split : TrainingSplit
        Partition used for training and testing
    elapsed : float
        Wall-clock seconds
    """

    classifiers: dict[BDTMethod, BDTStarGalaxyClassifier]
    evaluations: list[MethodEvaluation]
    model_paths: dict[BDTMethod, Path]
    results_path: Path
    counters: RunCounters
    split: TrainingSplit
    elapsed: float = 0.0
    plot_paths: list[Path] = field(default_factory=list)


def split_train_test(
    labels: NDArray,
    n_train_signal: int,
    n_train_background: int,
    random_state: int = 42,
) -> TrainingSplit:
    """Random per-class split with a fixed number of training rows per class.

    Parameters
    ----------
    labels : NDArray
        1 = galaxy (signal), 0 = star (background)
    n_train_signal, n_train_background : int
        Training rows drawn from each class; the rest are test rows
    random_state : int
        Seed for reproducibility

    Raises
    ------
    ConfigurationError
        If a class has no rows left for testing
    """
    labels = np.asarray(labels).astype(int)
    train_parts, test_parts = [], []

    for cls, n_train, name in (
        (1, n_train_signal, "signal (galaxy)"),
        (0, n_train_background, "background (star)"),
    ):
        idx = np.flatnonzero(labels == cls)
        if n_train >= len(idx):
            raise ConfigurationError(
                f"Requested {n_train} {name} training rows but only {len(idx)} pass the cuts; "
                "at least one must remain for testing"
            )
        train_idx, test_idx = train_test_split(idx, train_size=n_train, random_state=random_state)
        train_parts.append(train_idx)
        test_parts.append(test_idx)

    return TrainingSplit(
        train=np.sort(np.concatenate(train_parts)),
        test=np.sort(np.concatenate(test_parts)),
    )


def _tree_table(
    name: str,
    labels: NDArray,
    magnitudes: NDArray,
    scores: dict[BDTMethod, NDArray],
) -> fits.BinTableHDU:
    table = Table()
    table["classID"] = np.where(labels == 1, 0, 1).astype(np.int16)  # 0 = signal
    table["specclass"] = np.where(labels == 1, 2, 1).astype(np.int16)
    table[BINNING_COLUMN] = magnitudes.astype(np.float32)
    for method, values in scores.items():
        table[method.value] = values.astype(np.float32)
    hdu = fits.table_to_hdu(table)
    hdu.name = name
    return hdu


def _correlation_hdu(name: str, X: NDArray) -> fits.ImageHDU:
    hdu = fits.ImageHDU(correlation_matrix(X).astype(np.float32), name=name)
    for i, feature in enumerate(FEATURE_NAMES):
        hdu.header[f"VAR{i + 1}"] = feature
    return hdu


def _evaluation_hdu(evaluations: list[MethodEvaluation]) -> fits.BinTableHDU:
    rows = []
    for ev in evaluations:
        row = {
            "method": ev.method,
            "auc_roc": ev.auc_roc,
            "separation": ev.separation,
            "ks_signal": ev.ks_signal,
            "ks_background": ev.ks_background,
            "accuracy": ev.accuracy,
            "galaxy_contamination": ev.galaxy_contamination,
            "n_train": ev.n_train,
            "n_test": ev.n_test,
        }
        for eff_b, eff_s in ev.eff_signal_test.items():
            row[f"effS_test_B{int(round(eff_b * 100)):02d}"] = eff_s
        for eff_b, eff_s in ev.eff_signal_train.items():
            row[f"effS_train_B{int(round(eff_b * 100)):02d}"] = eff_s
        rows.append(row)
    hdu = fits.table_to_hdu(Table.from_pandas(pd.DataFrame(rows)))
    hdu.name = "EVALUATION"
    return hdu


def write_training_results(
    path: Path,
    config: TrainingConfig,
    features: pd.DataFrame,
    labels: NDArray,
    magnitudes: NDArray,
    split: TrainingSplit,
    scores_train: dict[BDTMethod, NDArray],
    scores_test: dict[BDTMethod, NDArray],
    evaluations: list[MethodEvaluation],
) -> Path:
    """Write training/test trees, input correlations and evaluation to FITS."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    primary = fits.PrimaryHDU()
    hyper = config.hyper
    primary.header["NTREES"] = hyper.n_trees
    primary.header["NEVMIN"] = hyper.min_leaf_events
    primary.header["MAXDEPTH"] = hyper.max_depth
    primary.header["NCUTS"] = hyper.n_cuts
    primary.header["NTRAINS"] = hyper.n_train_signal
    primary.header["NTRAINB"] = hyper.n_train_background
    primary.header["SEED"] = config.random_state
    primary.header["METHODS"] = ",".join(m.value for m in config.methods)

    X = features.to_numpy(dtype=np.float64)
    hdul = fits.HDUList([
        primary,
        _tree_table("TRAIN", labels[split.train], magnitudes[split.train], scores_train),
        _tree_table("TEST", labels[split.test], magnitudes[split.test], scores_test),
        _correlation_hdu("CORR_SIGNAL", X[labels == 1]),
        _correlation_hdu("CORR_BACKGROUND", X[labels == 0]),
        _evaluation_hdu(evaluations),
    ])
    hdul.writeto(path, overwrite=True)
    return path


def print_training_summary(result: TrainingResult) -> None:
    """Print evaluation table and variable ranking per method."""
    print("\n" + "=" * 70)
    print("Evaluation results (test sample, training sample in brackets)")
    print("Signal efficiency at background efficiency B")
    print("=" * 70)
    print(format_evaluation_table(result.evaluations))
    print()
    for ev in result.evaluations:
        print(f"{ev.method}: top 5 variables")
        for name, imp in ev.ranking[:5]:
            print(f"  {name:25s}: {imp:.4f}")
    print("=" * 70)


def run_training(
    config: TrainingConfig,
    catalog: pd.DataFrame | None = None,
    verbose: bool = True,
) -> TrainingResult:
    """Train, save and evaluate every enabled method.

    Parameters
    ----------
    config : TrainingConfig
        Run settings
    catalog : pd.DataFrame, optional
        Pre-loaded labelled catalog; read from ``config.input_path`` if None
    verbose : bool
        Print progress and the evaluation summary

    Returns
    -------
    TrainingResult
    """
    start = time.perf_counter()

    if catalog is None:
        if not config.input_path.exists():
            raise FileNotFoundError(f"Training catalog not found: {config.input_path}")
        catalog = read_input_catalog(config.input_path)
        if verbose:
            print(f"--- Using input file: {config.input_path} ({len(catalog)} rows)")

    absent = missing_columns(catalog, required_columns())
    if absent:
        raise ConfigurationError(f"Training catalog lacks required columns: {absent}")

    try:
        keep, counters = training_mask(
            catalog,
            sentinel=config.sentinel,
            mag_max=config.mag_max,
            extra_cut=config.extra_cut,
        )
    except (ValueError, SyntaxError, KeyError, NameError, TypeError) as e:
        raise ConfigurationError(f"Invalid cut expression {config.extra_cut!r}: {e}") from e
    selected = catalog.loc[keep].reset_index(drop=True)

    features = derive_features(selected)
    labels = class_labels(selected)
    magnitudes = selected[BINNING_COLUMN].to_numpy(dtype=np.float64)

    if verbose:
        counters.print_summary()
        print(f"--- After cuts: {int((labels == 1).sum())} galaxies, {int((labels == 0).sum())} stars")

    split = split_train_test(
        labels,
        config.hyper.n_train_signal,
        config.hyper.n_train_background,
        random_state=config.random_state,
    )
    if verbose:
        print(f"--- Training rows: {split.n_train}, test rows: {split.n_test}")

    n_jobs = config.n_jobs if config.n_jobs is not None else get_config().n_jobs
    X_train = features.iloc[split.train]
    X_test = features.iloc[split.test]
    y_train = labels[split.train]
    y_test = labels[split.test]

    classifiers: dict[BDTMethod, BDTStarGalaxyClassifier] = {}
    model_paths: dict[BDTMethod, Path] = {}
    scores_train: dict[BDTMethod, NDArray] = {}
    scores_test: dict[BDTMethod, NDArray] = {}
    evaluations: list[MethodEvaluation] = []

    for method in config.methods:
        if verbose:
            print(f"\n==> Training {method.value}: {describe(method)}")
        clf = BDTStarGalaxyClassifier(
            method, config.hyper, random_state=config.random_state, n_jobs=n_jobs
        )
        clf.fit(X_train, y_train)
        model_paths[method] = clf.save(config.model_path(method))
        classifiers[method] = clf
        if verbose:
            print(f"--- Wrote model: {model_paths[method]}")

        scores_train[method] = clf.score(X_train)
        scores_test[method] = clf.score(X_test)
        evaluations.append(
            evaluate_method(
                method.value,
                scores_train[method], y_train,
                scores_test[method], y_test,
                ranking=clf.variable_ranking(),
            )
        )

    results_path = write_training_results(
        config.results_path, config, features, labels, magnitudes,
        split, scores_train, scores_test, evaluations,
    )

    result = TrainingResult(
        classifiers=classifiers,
        evaluations=evaluations,
        model_paths=model_paths,
        results_path=results_path,
        counters=counters,
        split=split,
    )

    if config.make_plots:
        result.plot_paths = _write_training_plots(config, scores_train, scores_test, y_train, y_test, evaluations)

    result.elapsed = time.perf_counter() - start
    if verbose:
        print(f"\n==> Wrote training results: {results_path}")
        print_training_summary(result)
        print(f"==> Training done in {result.elapsed:.1f} s")

    return result


def _write_training_plots(
    config: TrainingConfig,
    scores_train: dict[BDTMethod, NDArray],
    scores_test: dict[BDTMethod, NDArray],
    y_train: NDArray,
    y_test: NDArray,
    evaluations: list[MethodEvaluation],
) -> list[Path]:
    import matplotlib.pyplot as plt

    from validation.plots import plot_overtraining, plot_roc_curves

    paths = []
    roc_path = config.output_dir / f"roc_BDT_{config.hyper.tag}.pdf"
    fig = plot_roc_curves({m.value: s for m, s in scores_test.items()}, y_test)
    fig.savefig(roc_path)
    plt.close(fig)
    paths.append(roc_path)

    for ev, method in zip(evaluations, scores_test, strict=True):
        path = config.output_dir / f"overtrain_{method.value}_{config.hyper.tag}.pdf"
        fig = plot_overtraining(
            method.value, scores_train[method], y_train, scores_test[method], y_test,
            ks_signal=ev.ks_signal, ks_background=ev.ks_background,
        )
        fig.savefig(path)
        plt.close(fig)
        paths.append(path)

    return paths
