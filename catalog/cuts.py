"""Row selection for training and application.

Every exclusion is counted so a run can report how many rows it dropped
and why. The same missing-value policy holds in both pipelines.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from catalog.features import (
    BINNING_COLUMN,
    LABEL_COLUMN,
    SENTINEL,
    missing_value_mask,
)

GALAXY_CLASS = 2   # signal
STAR_CLASS = 1     # background


@dataclass
class RunCounters:
    """Row tallies for a single pass over a catalog.

    Attributes
    ----------
    n_rows : int
        Rows read
    n_missing : int
        Rows with a missing feature measurement
    n_out_of_range : int
        Rows whose magnitude falls outside the allowed range
    n_unlabelled : int
        Rows whose label is neither galaxy nor star
    n_rejected_by_cut : int
        Rows rejected by a user cut expression
    """

    n_rows: int = 0
    n_missing: int = 0
    n_out_of_range: int = 0
    n_unlabelled: int = 0
    n_rejected_by_cut: int = 0

    def merge(self, other: "RunCounters") -> "RunCounters":
        return RunCounters(
            n_rows=self.n_rows + other.n_rows,
            n_missing=self.n_missing + other.n_missing,
            n_out_of_range=self.n_out_of_range + other.n_out_of_range,
            n_unlabelled=self.n_unlabelled + other.n_unlabelled,
            n_rejected_by_cut=self.n_rejected_by_cut + other.n_rejected_by_cut,
        )

    def print_summary(self) -> None:
        print(f"--- Rows read:            {self.n_rows}")
        print(f"--- Missing measurements: {self.n_missing}")
        print(f"--- Magnitude out of range: {self.n_out_of_range}")
        print(f"--- Unlabelled:           {self.n_unlabelled}")
        if self.n_rejected_by_cut:
            print(f"--- Rejected by cut:      {self.n_rejected_by_cut}")


def class_labels(catalog: pd.DataFrame) -> NDArray:
    """Binary labels: 1 = galaxy, 0 = star, -1 = neither."""
    specclass = catalog[LABEL_COLUMN].to_numpy()
    labels = np.full(len(catalog), -1, dtype=np.int64)
    labels[specclass == GALAXY_CLASS] = 1
    labels[specclass == STAR_CLASS] = 0
    return labels


def training_mask(
    catalog: pd.DataFrame,
    sentinel: float = SENTINEL,
    mag_max: float = 23.0,
    extra_cut: str | None = None,
) -> tuple[NDArray, RunCounters]:
    """Select rows usable for supervised training.

    A row is kept when it is labelled galaxy or star, has no missing
    feature measurement, has ``modelmag_r < mag_max`` and satisfies
    ``extra_cut`` (a ``DataFrame.query`` expression) if one is given.

    Parameters
    ----------
    catalog : pd.DataFrame
        Labelled catalog
    sentinel : float
        Placeholder value treated as missing
    mag_max : float
        Faint magnitude limit
    extra_cut : str, optional
        Additional selection, e.g. ``"petror90_r < 30"``

    Returns
    -------
    mask : NDArray
        Boolean keep-mask aligned with the catalog rows
    counters : RunCounters
        Why rows were excluded; each row is counted under the first failed test
    """
    counters = RunCounters(n_rows=len(catalog))
    keep = np.ones(len(catalog), dtype=bool)

    labelled = class_labels(catalog) >= 0
    counters.n_unlabelled = int((~labelled).sum())
    keep &= labelled

    complete = ~missing_value_mask(catalog, sentinel)
    counters.n_missing = int((keep & ~complete).sum())
    keep &= complete

    mags = catalog[BINNING_COLUMN].to_numpy(dtype=np.float64)
    in_range = np.isfinite(mags) & (mags < mag_max)
    counters.n_out_of_range = int((keep & ~in_range).sum())
    keep &= in_range

    if extra_cut:
        passed = query_mask(catalog, extra_cut)
        counters.n_rejected_by_cut = int((keep & ~passed).sum())
        keep &= passed

    if len(catalog) and keep.sum() < 0.5 * len(catalog):
        warnings.warn(
            f"Training cuts keep only {int(keep.sum())} of {len(catalog)} rows",
            stacklevel=2,
        )

    return keep, counters


def query_mask(catalog: pd.DataFrame, expression: str) -> NDArray:
    """Evaluate a ``DataFrame.query`` expression as a boolean row mask."""
    passed = catalog.eval(expression)
    if not isinstance(passed, pd.Series) or passed.dtype != bool:
        raise ValueError(f"Cut expression does not yield a boolean per row: {expression!r}")
    return passed.to_numpy()
