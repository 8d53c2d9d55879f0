"""Apply trained BDT classifiers to a catalog and measure their performance.

For every row of the input catalog:
- derive the feature vector (rows with missing measurements are not scored)
- score it with each enabled method and select galaxies above the threshold
- apply the classical cut psfmag_r - modelmag_r > standard_cut
- tally true and selected galaxies/stars per modelmag_r bin
- fill score histograms per true class

Rows are processed in chunks, optionally on worker threads. Chunk results
are merged in chunk order, so scores, tallies and histograms do not depend
on the chunk size or the number of workers.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from tqdm import tqdm

from catalog.cuts import RunCounters, class_labels
from catalog.features import (
    BINNING_COLUMN,
    LABEL_COLUMN,
    derive_features,
    missing_columns,
    missing_value_mask,
    required_columns,
)
from catalog.io import annotate_catalog, write_catalog
from classification.bdt_classifier import BDTStarGalaxyClassifier
from resource_config import get_config
from run_config import ApplicationConfig, BDTMethod, ConfigurationError, read_input_catalog
from validation.efficiency import (
    SelectionSummary,
    format_summary_table,
    summaries_to_frame,
    tally_selection,
)
from validation.histograms import HistogramBook

STANDARD = "STANDARD"
STANDARD_CUT_COLUMN = "psfmag_r"
SLIM_COLUMNS = (BINNING_COLUMN, STANDARD_CUT_COLUMN, LABEL_COLUMN)

SCORE_RANGE = (-1.0, 1.0)
STANDARD_CUT_RANGE = (-0.5, 2.5)

# Histogram name suffix per true class (1 = galaxy, 0 = star)
CLASS_SUFFIXES = ((1, "GAL", "galaxies"), (0, "STA", "stars"))


@dataclass
class ChunkResult:
    """Everything computed for one block of catalog rows."""

    start: int
    scores: dict[BDTMethod, NDArray]
    summaries: dict[str, SelectionSummary]
    histograms: HistogramBook
    counters: RunCounters


@dataclass
class ApplicationResult:
    """Outcome of applying the classifiers to a catalog.

    Attributes
    ----------
    summaries : list
        Standard cut first, then one SelectionSummary per method
    counters : RunCounters
        Rows read and excluded
    scores : dict
        Per-row score per method, NaN for rows that were not scored
    histograms : HistogramBook
        Filled diagnostic histograms
    annotated_path, histogram_path, table_path : Path
        Written output files
    elapsed : float
        Wall-clock seconds
    """

    summaries: list[SelectionSummary]
    counters: RunCounters
    scores: dict[BDTMethod, NDArray]
    histograms: HistogramBook
    annotated_path: Path
    histogram_path: Path
    table_path: Path
    elapsed: float = 0.0
    plot_paths: list[Path] = field(default_factory=list)

    def summary(self, name: str) -> SelectionSummary:
        for s in self.summaries:
            if s.name == name:
                return s
        raise KeyError(name)


def load_models(config: ApplicationConfig) -> dict[BDTMethod, BDTStarGalaxyClassifier]:
    """Load the artifact of every enabled method; raises ModelLoadError."""
    return {
        method: BDTStarGalaxyClassifier.load(config.model_path(method), expected_method=method)
        for method in config.methods
    }


def standard_cut_variable(catalog: pd.DataFrame) -> NDArray:
    """psfmag_r - modelmag_r, large for extended sources."""
    return (
        catalog[STANDARD_CUT_COLUMN].to_numpy(dtype=np.float64)
        - catalog[BINNING_COLUMN].to_numpy(dtype=np.float64)
    )


def select_above(scores: NDArray, threshold: float) -> NDArray:
    """Rows whose score, as stored in the annotated catalog, exceeds ``threshold``.

    Scores are compared at float32 precision so the selection agrees with a
    cut applied to the written score column.
    """
    stored = np.asarray(scores, dtype=np.float32).astype(np.float64)
    return np.isfinite(stored) & (stored > threshold)


def book_histograms(config: ApplicationConfig) -> HistogramBook:
    """Book the 1D and 2D histograms per method and per true class."""
    book = HistogramBook()
    binning = config.binning
    mag_range = (binning.mag_min, binning.mag_max)
    n_bins_2d = (config.n_hist_bins, binning.n_bins)

    for method in config.methods:
        for _, suffix, label in CLASS_SUFFIXES:
            name = f"MVA_{method.value}_{suffix}"
            book.book_1d(name, f"{method.value} score, {label}", config.n_hist_bins, SCORE_RANGE)
            book.book_2d(
                f"{name}_MODELMAG", f"{method.value} score vs modelmag_r, {label}",
                n_bins_2d, SCORE_RANGE, mag_range,
            )

    for _, suffix, label in CLASS_SUFFIXES:
        name = f"STDCUT_{suffix}"
        book.book_1d(name, f"psfmag_r - modelmag_r, {label}", config.n_hist_bins, STANDARD_CUT_RANGE)
        book.book_2d(
            f"{name}_MODELMAG", f"psfmag_r - modelmag_r vs modelmag_r, {label}",
            n_bins_2d, STANDARD_CUT_RANGE, mag_range,
        )
    return book


def process_chunk(
    chunk: pd.DataFrame,
    start: int,
    models: dict[BDTMethod, BDTStarGalaxyClassifier],
    config: ApplicationConfig,
    template: HistogramBook,
) -> ChunkResult:
    """Score, select, tally and histogram one block of rows.

    Parameters
    ----------
    chunk : pd.DataFrame
        Catalog rows
    start : int
        Position of the first row in the full catalog
    models : dict
        Loaded classifier per method
    config : ApplicationConfig
        Threshold, binning and cut settings
    template : HistogramBook
        Bookings to fill (a zeroed copy is used)

    Returns
    -------
    ChunkResult
    """
    binning = config.binning
    labels = class_labels(chunk)
    missing = missing_value_mask(chunk, config.sentinel)
    mags = chunk[BINNING_COLUMN].to_numpy(dtype=np.float64)
    bins = binning.assign(mags)

    counters = RunCounters(
        n_rows=len(chunk),
        n_missing=int(missing.sum()),
        n_out_of_range=int((~missing & (bins < 0)).sum()),
        n_unlabelled=int((labels < 0).sum()),
    )

    # Unusable rows stay out of every counter and histogram
    bins = np.where(missing, -1, bins)
    counted = bins >= 0

    features = derive_features(chunk)
    features.loc[missing] = np.nan

    book = template.empty_copy()
    scores: dict[BDTMethod, NDArray] = {}
    summaries: dict[str, SelectionSummary] = {}

    cut_var = standard_cut_variable(chunk)
    summaries[STANDARD] = tally_selection(
        STANDARD, binning, bins, labels, cut_var > config.standard_cut
    )
    for cls, suffix, _ in CLASS_SUFFIXES:
        rows = counted & (labels == cls)
        book[f"STDCUT_{suffix}"].fill(cut_var[rows])
        book[f"STDCUT_{suffix}_MODELMAG"].fill(cut_var[rows], mags[rows])

    for method, model in models.items():
        s = model.score(features)
        scores[method] = s
        selected = select_above(s, config.threshold)
        summaries[method.value] = tally_selection(method.value, binning, bins, labels, selected)
        for cls, suffix, _ in CLASS_SUFFIXES:
            rows = counted & (labels == cls)
            book[f"MVA_{method.value}_{suffix}"].fill(s[rows])
            book[f"MVA_{method.value}_{suffix}_MODELMAG"].fill(s[rows], mags[rows])

    return ChunkResult(
        start=start, scores=scores, summaries=summaries, histograms=book, counters=counters
    )


def classify_catalog(
    catalog: pd.DataFrame,
    models: dict[BDTMethod, BDTStarGalaxyClassifier],
    config: ApplicationConfig,
    n_workers: int = 1,
    chunk_size: int = 20_000,
    progress: bool = False,
) -> tuple[dict[BDTMethod, NDArray], list[SelectionSummary], HistogramBook, RunCounters]:
    """Run the row loop over a loaded catalog.

    Returns
    -------
    scores : dict
        Per-row scores per method, in catalog order
    summaries : list
        Standard cut first, then the methods in configuration order
    histograms : HistogramBook
    counters : RunCounters
    """
    template = book_histograms(config)
    starts = list(range(0, len(catalog), chunk_size)) or [0]

    def _run(start: int) -> ChunkResult:
        chunk = catalog.iloc[start:start + chunk_size]
        return process_chunk(chunk, start, models, config, template)

    if n_workers > 1 and len(starts) > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            results = executor.map(_run, starts)
            if progress:
                results = tqdm(results, total=len(starts), desc="Classifying", unit="chunk")
            chunks = list(results)
    else:
        iterator = tqdm(starts, desc="Classifying", unit="chunk") if progress else starts
        chunks = [_run(start) for start in iterator]

    chunks.sort(key=lambda c: c.start)

    names = [STANDARD] + [m.value for m in config.methods]
    summaries = {name: SelectionSummary(name, config.binning) for name in names}
    counters = RunCounters()
    for result in chunks:
        counters = counters.merge(result.counters)
        for name in names:
            summaries[name] = summaries[name].merge(result.summaries[name])
        template.add(result.histograms)

    scores = {
        method: np.concatenate([c.scores[method] for c in chunks]) for method in config.methods
    }
    return scores, [summaries[name] for name in names], template, counters


def run_application(
    config: ApplicationConfig,
    catalog: pd.DataFrame | None = None,
    verbose: bool = True,
    progress: bool = False,
) -> ApplicationResult:
    """Apply every enabled method to a catalog and write all outputs.

    Parameters
    ----------
    config : ApplicationConfig
        Run settings
    catalog : pd.DataFrame, optional
        Pre-loaded catalog; read from ``config.input_path`` if None
    verbose : bool
        Print the per-bin tables and run counters
    progress : bool
        Show a progress bar over chunks

    Returns
    -------
    ApplicationResult

    Raises
    ------
    ModelLoadError
        If a model artifact is missing or does not match
    FileNotFoundError
        If the input catalog does not exist
    ConfigurationError
        If the catalog lacks required columns
    """
    start_time = time.perf_counter()

    if verbose:
        print("=" * 70)
        print("BDT star/galaxy application")
        print("=" * 70)

    models = load_models(config)
    if verbose:
        for method in models:
            print(f"--- Booked method: {method.value} ({config.model_path(method)})")

    if catalog is None:
        catalog = read_input_catalog(config.input_path)
        if verbose:
            print(f"--- Using input file: {config.input_path}")
    catalog = catalog.reset_index(drop=True)

    absent = missing_columns(catalog, required_columns())
    if absent:
        raise ConfigurationError(f"Catalog lacks required columns: {absent}")

    resources = get_config()
    chunk_size = config.chunk_size or resources.chunk_size
    n_chunks = -(-len(catalog) // chunk_size)
    n_workers = config.n_workers or resources.workers_for(n_chunks)
    if verbose:
        print(f"--- Processing {len(catalog)} rows "
              f"(chunks of {chunk_size}, {n_workers} worker(s))")

    scores, summaries, book, counters = classify_catalog(
        catalog, models, config, n_workers=n_workers, chunk_size=chunk_size, progress=progress
    )

    score_columns = {method.score_column: scores[method] for method in config.methods}
    keep = list(SLIM_COLUMNS) if config.slim_output else None
    annotated = annotate_catalog(catalog, score_columns, keep_columns=keep)
    annotated_path = write_catalog(annotated, config.annotated_path)

    histogram_path = book.write(config.histogram_path)

    table_path = config.table_path
    table_path.parent.mkdir(parents=True, exist_ok=True)
    summaries_to_frame(summaries).to_csv(table_path, index=False, na_rep="N/A")

    result = ApplicationResult(
        summaries=summaries,
        counters=counters,
        scores=scores,
        histograms=book,
        annotated_path=annotated_path,
        histogram_path=histogram_path,
        table_path=table_path,
    )

    if config.make_plots:
        result.plot_paths = _write_application_plots(config, book, summaries)

    result.elapsed = time.perf_counter() - start_time

    if verbose:
        print(f"--- Created annotated catalog: {annotated_path}")
        print(f"--- Created histogram file:    {histogram_path}")
        print(f"--- Created efficiency table:  {table_path}")
        print("\n" + "-" * 70)
        print(f"Selection: score > {config.threshold:g}, "
              f"standard cut psfmag_r - modelmag_r > {config.standard_cut:g}")
        print("-" * 70)
        print(format_summary_table(summaries))
        print("-" * 70)
        counters.print_summary()
        print(f"==> Application done in {result.elapsed:.1f} s")

    return result


def _write_application_plots(
    config: ApplicationConfig,
    book: HistogramBook,
    summaries: list[SelectionSummary],
) -> list[Path]:
    import matplotlib.pyplot as plt
    from matplotlib.backends.backend_pdf import PdfPages

    from validation.plots import plot_efficiency_vs_magnitude, plot_score_distributions

    path = config.output_dir / f"SGApp_BDT_{config.hyper.tag}.pdf"
    path.parent.mkdir(parents=True, exist_ok=True)
    with PdfPages(path) as pdf:
        for method in config.methods:
            fig = plot_score_distributions(
                book[f"MVA_{method.value}_GAL"],
                book[f"MVA_{method.value}_STA"],
                threshold=config.threshold,
                title=f"{method.value} output",
            )
            pdf.savefig(fig)
            plt.close(fig)

        fig = plot_score_distributions(
            book["STDCUT_GAL"],
            book["STDCUT_STA"],
            threshold=config.standard_cut,
            title="psfmag_r - modelmag_r",
        )
        fig.axes[0].set_xlabel("psfmag_r - modelmag_r", fontsize=12)
        pdf.savefig(fig)
        plt.close(fig)

        fig = plot_efficiency_vs_magnitude(summaries)
        pdf.savefig(fig)
        plt.close(fig)
    return [path]
