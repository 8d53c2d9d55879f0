"""Run configuration for BDT training and application.

All run parameters live in explicit dataclasses with documented defaults
instead of module globals. The classifier menu is the closed ``BDTMethod``
enumeration; method names from the command line are checked when the
configuration is parsed, not when a model is first used.

Usage:
    from run_config import ApplicationConfig, BDTHyperParameters, parse_method_list

    hyper = BDTHyperParameters(n_trees=500)
    config = ApplicationConfig(methods=parse_method_list("BDT,BDTD"), hyper=hyper)
    print(config.hyper.tag)   # "500_50_15_200_30000_6000"
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike, NDArray

from catalog.features import SENTINEL
from catalog.io import is_supported, load_catalog, table_suffix

# Environment override for the directory holding model artifacts
WEIGHTS_DIR_ENV = "SG_WEIGHTS_DIR"


class ConfigurationError(ValueError):
    """Invalid run configuration. Fatal: the run aborts."""


class UnknownMethodError(ConfigurationError):
    """A classifier name that is not a member of ``BDTMethod``."""


class BDTMethod(Enum):
    """Supported boosted-tree variants."""
    BDT = "BDT"      # adaptive boost
    BDTG = "BDTG"    # gradient boost
    BDTB = "BDTB"    # bagging
    BDTD = "BDTD"    # decorrelation + adaptive boost

    @property
    def score_column(self) -> str:
        """Column name for this method's score in annotated catalogs."""
        return f"{self.value.lower()}var"


DEFAULT_METHODS: tuple[BDTMethod, ...] = (BDTMethod.BDTD,)


def parse_method_list(method_list: str | None) -> tuple[BDTMethod, ...]:
    """Parse a comma-separated list of method names.

    Parameters
    ----------
    method_list : str or None
        E.g. ``"BDT,BDTD"``. Empty or None selects ``DEFAULT_METHODS``.

    Returns
    -------
    tuple[BDTMethod, ...]
        Enabled methods in enumeration order, without duplicates

    Raises
    ------
    UnknownMethodError
        If any name is not a supported method
    """
    if not method_list or not method_list.strip():
        return DEFAULT_METHODS

    requested = set()
    for name in method_list.split(","):
        name = name.strip()
        if not name:
            continue
        try:
            requested.add(BDTMethod(name))
        except ValueError:
            choices = " ".join(m.value for m in BDTMethod)
            raise UnknownMethodError(
                f'Method "{name}" not known under this name. Choose among the following: {choices}'
            ) from None

    if not requested:
        return DEFAULT_METHODS
    return tuple(m for m in BDTMethod if m in requested)


@dataclass(frozen=True)
class BDTHyperParameters:
    """Boosted-tree hyperparameters and training sample sizes.

    Attributes:
        n_trees: Number of trees in the ensemble
        min_leaf_events: Minimum number of training rows in a leaf
        max_depth: Maximum tree depth
        n_cuts: Number of grid points scanned per variable when splitting
        n_train_signal: Galaxies (signal) in the training partition
        n_train_background: Stars (background) in the training partition
    """
    n_trees: int = 2000
    min_leaf_events: int = 50
    max_depth: int = 15
    n_cuts: int = 200
    n_train_signal: int = 30000
    n_train_background: int = 6000

    def __post_init__(self) -> None:
        for name in ("n_trees", "min_leaf_events", "max_depth",
                     "n_train_signal", "n_train_background"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if int(self.n_cuts) != self.n_cuts or self.n_cuts < 2:
            raise ConfigurationError(f"n_cuts must be an integer >= 2, got {self.n_cuts!r}")

    @property
    def tag(self) -> str:
        """Filename tag; distinct parameter tuples never share a tag."""
        return (
            f"{self.n_trees}_{self.min_leaf_events}_{self.max_depth}_{self.n_cuts}"
            f"_{self.n_train_signal}_{self.n_train_background}"
        )


@dataclass(frozen=True)
class MagnitudeBinning:
    """Fixed-width half-open magnitude bins used to stratify results.

    Bin ``k`` covers ``[mag_min + k*width, mag_min + (k+1)*width)``.
    """
    mag_min: float = 14.0
    mag_max: float = 23.0
    width: float = 1.0

    def __post_init__(self) -> None:
        if not self.width > 0:
            raise ConfigurationError(f"Bin width must be positive, got {self.width}")
        if not self.mag_min < self.mag_max:
            raise ConfigurationError(
                f"mag_min ({self.mag_min}) must be below mag_max ({self.mag_max})"
            )

    @property
    def n_bins(self) -> int:
        return int(np.ceil(round((self.mag_max - self.mag_min) / self.width, 9)))

    @property
    def edges(self) -> NDArray:
        return self.mag_min + self.width * np.arange(self.n_bins + 1)

    def assign(self, magnitudes: ArrayLike) -> NDArray:
        """Bin index per magnitude, -1 when outside ``[mag_min, mag_max)`` or NaN."""
        mags = np.asarray(magnitudes, dtype=np.float64)
        bins = np.full(mags.shape, -1, dtype=np.int64)
        inside = np.isfinite(mags) & (mags >= self.mag_min) & (mags < self.mag_max)
        idx = np.floor((mags[inside] - self.mag_min) / self.width).astype(np.int64)
        bins[inside] = np.clip(idx, 0, self.n_bins - 1)
        return bins

    def label(self, k: int) -> str:
        lo = self.mag_min + k * self.width
        return f"{lo:g}-{min(lo + self.width, self.mag_max):g}"


def _default_weights_dir() -> Path:
    return Path(os.environ.get(WEIGHTS_DIR_ENV, "weights"))


def model_filename(method: BDTMethod, hyper: BDTHyperParameters) -> str:
    """Artifact name for a trained method, derived from its hyperparameters."""
    return f"SGClassification_BDT_{hyper.tag}_{method.value}.joblib"


@dataclass
class TrainingConfig:
    """Settings for a training run.

    Attributes:
        input_path: Labelled catalog (FITS or CSV)
        methods: Enabled classifier variants
        hyper: Tree hyperparameters and training sample sizes
        output_dir: Directory for the training results file and plots
        weights_dir: Directory for model artifacts
        sentinel: Catalog placeholder value treated as missing
        mag_max: Rows with modelmag_r at or above this are not used for training
        extra_cut: Optional pandas query expression rows must also satisfy
        random_state: Seed for the train/test split and the estimators
        n_jobs: Parallel jobs for estimators that support it (bagging)
        make_plots: Write ROC and overtraining plots
    """
    input_path: Path = Path("train_dr9.fits")
    methods: tuple[BDTMethod, ...] = DEFAULT_METHODS
    hyper: BDTHyperParameters = field(default_factory=BDTHyperParameters)
    output_dir: Path = Path("sg_training")
    weights_dir: Path = field(default_factory=_default_weights_dir)
    sentinel: float = SENTINEL
    mag_max: float = 23.0
    extra_cut: str | None = None
    random_state: int = 42
    n_jobs: int | None = None
    make_plots: bool = False

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.output_dir = Path(self.output_dir)
        self.weights_dir = Path(self.weights_dir)
        _check_input(self.input_path)
        _check_methods(self.methods)

    @property
    def results_path(self) -> Path:
        return self.output_dir / f"SGTraining_BDT_{self.hyper.tag}.fits"

    def model_path(self, method: BDTMethod) -> Path:
        return self.weights_dir / model_filename(method, self.hyper)


@dataclass
class ApplicationConfig:
    """Settings for applying trained models to a catalog.

    Attributes:
        input_path: Catalog to classify (FITS or CSV)
        methods: Methods whose trained models are applied
        hyper: Hyperparameters the models were trained with (locates artifacts)
        weights_dir: Directory holding model artifacts
        output_dir: Directory for the annotated catalog, histograms and tables
        threshold: Score above which a row is selected as a galaxy
        binning: Magnitude bins for the efficiency/impurity tables
        standard_cut: psfmag_r - modelmag_r above which the classical cut selects a galaxy
        n_hist_bins: Bins along the score axis of the diagnostic histograms
        sentinel: Catalog placeholder value treated as missing
        slim_output: Keep only the binning, label and score columns in the annotated copy
        make_plots: Write score-distribution plots
        n_workers: Worker threads for the row loop (None: resource profile)
        chunk_size: Rows per chunk (None: resource profile)
    """
    input_path: Path = Path("eval_dr9.fits")
    methods: tuple[BDTMethod, ...] = DEFAULT_METHODS
    hyper: BDTHyperParameters = field(default_factory=BDTHyperParameters)
    weights_dir: Path = field(default_factory=_default_weights_dir)
    output_dir: Path = Path(".")
    threshold: float = 0.05
    binning: MagnitudeBinning = field(default_factory=MagnitudeBinning)
    standard_cut: float = 0.145
    n_hist_bins: int = 100
    sentinel: float = SENTINEL
    slim_output: bool = False
    make_plots: bool = False
    n_workers: int | None = None
    chunk_size: int | None = None

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.weights_dir = Path(self.weights_dir)
        self.output_dir = Path(self.output_dir)
        _check_input(self.input_path)
        _check_methods(self.methods)
        if self.n_hist_bins < 1:
            raise ConfigurationError(f"n_hist_bins must be positive, got {self.n_hist_bins}")
        if self.n_workers is not None and self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be positive, got {self.n_workers}")
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")

    def model_path(self, method: BDTMethod) -> Path:
        return self.weights_dir / model_filename(method, self.hyper)

    @property
    def annotated_path(self) -> Path:
        suffix = table_suffix(self.input_path)
        return self.output_dir / f"newtree_BDT_{self.hyper.tag}{suffix}"

    @property
    def histogram_path(self) -> Path:
        return self.output_dir / f"SGApp_BDT_{self.hyper.tag}.fits"

    @property
    def table_path(self) -> Path:
        return self.output_dir / f"efficiency_BDT_{self.hyper.tag}.csv"


def _check_methods(methods: tuple[BDTMethod, ...]) -> None:
    if not methods:
        raise ConfigurationError("At least one method must be enabled")
    for method in methods:
        if not isinstance(method, BDTMethod):
            raise UnknownMethodError(f"Not a BDTMethod: {method!r}")


def _check_input(path: Path) -> None:
    if not is_supported(path):
        raise ConfigurationError(
            f"Unsupported catalog format {table_suffix(path) or '(none)'!r} for {path}; "
            "convert it to FITS or CSV"
        )


def read_input_catalog(path: Path):
    """Load the run's input catalog; unreadable files are configuration errors.

    A missing file still raises FileNotFoundError.
    """
    try:
        return load_catalog(path)
    except FileNotFoundError:
        raise
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read catalog {path}: {e}") from e


def add_hyperparameter_arguments(parser) -> None:
    """Add the shared hyperparameter and method flags to an argparse parser."""
    defaults = BDTHyperParameters()
    parser.add_argument(
        "--methods", default="",
        help="Comma-separated methods to use (BDT, BDTG, BDTB, BDTD; default: BDTD)",
    )
    parser.add_argument("--ntrees", type=int, default=defaults.n_trees,
                        help=f"Number of trees (default: {defaults.n_trees})")
    parser.add_argument("--nevmin", type=int, default=defaults.min_leaf_events,
                        help=f"Minimum rows per leaf (default: {defaults.min_leaf_events})")
    parser.add_argument("--maxdepth", type=int, default=defaults.max_depth,
                        help=f"Maximum tree depth (default: {defaults.max_depth})")
    parser.add_argument("--ncuts", type=int, default=defaults.n_cuts,
                        help=f"Grid points per variable (default: {defaults.n_cuts})")
    parser.add_argument("--ntrain", type=int, default=defaults.n_train_signal,
                        help=f"Training galaxies (default: {defaults.n_train_signal})")
    parser.add_argument("--nbckg", type=int, default=defaults.n_train_background,
                        help=f"Training stars (default: {defaults.n_train_background})")
    parser.add_argument("--weights-dir", type=Path, default=None,
                        help=f"Model artifact directory (default: ${WEIGHTS_DIR_ENV} or ./weights)")


def hyper_from_args(args) -> BDTHyperParameters:
    """Build hyperparameters from parsed command-line flags."""
    return BDTHyperParameters(
        n_trees=args.ntrees,
        min_leaf_events=args.nevmin,
        max_depth=args.maxdepth,
        n_cuts=args.ncuts,
        n_train_signal=args.ntrain,
        n_train_background=args.nbckg,
    )
