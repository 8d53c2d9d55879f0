"""Feature vector used by the BDT star/galaxy classifiers.

The vector has 28 entries derived from SDSS-style catalog columns:

- Morphology (8): Petrosian radii, likelihood of star/exponential/de
  Vaucouleurs profile fits, adaptive moment ellipticities and size
- Colours (16): adjacent-band differences (u-g, g-r, r-i, i-z) in each of
  the fiber, PSF, model and Petrosian magnitude systems
- Magnitudes (4): r-band magnitude in each of the four systems

Feature order is significant: a model trained on this vector records it
and refuses to score frames in any other order.

References:
- Stoughton et al. 2002, AJ, 123, 485 (SDSS photometric parameters)
- Vasconcellos et al. 2011, AJ, 141, 189 (decision trees for SDSS star-galaxy)
"""

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray

# Catalog placeholder for a failed measurement
SENTINEL = -9999.0

MORPHOLOGY_COLUMNS = (
    "petror50_r",
    "petror90_r",
    "lnlstar_r",
    "lnlexp_r",
    "lnldev_r",
    "me1_r",
    "me2_r",
    "mrrcc_r",
)

MAGNITUDE_SYSTEMS = ("fibermag", "psfmag", "modelmag", "petromag")
BANDS = ("u", "g", "r", "i", "z")

LABEL_COLUMN = "specclass"
BINNING_COLUMN = "modelmag_r"


@dataclass(frozen=True)
class FeatureSpec:
    """One entry of the feature vector.

    Attributes
    ----------
    minuend : str
        Catalog column copied (or subtracted from)
    subtrahend : str or None
        Column subtracted from ``minuend`` for colour indices
    """

    minuend: str
    subtrahend: str | None = None

    @property
    def name(self) -> str:
        if self.subtrahend is None:
            return self.minuend
        return f"{self.minuend}-{self.subtrahend}"

    @property
    def is_colour(self) -> bool:
        return self.subtrahend is not None

    @property
    def source_columns(self) -> tuple[str, ...]:
        if self.subtrahend is None:
            return (self.minuend,)
        return (self.minuend, self.subtrahend)

    def evaluate(self, catalog: pd.DataFrame) -> NDArray:
        values = catalog[self.minuend].to_numpy(dtype=np.float64)
        if self.subtrahend is not None:
            values = values - catalog[self.subtrahend].to_numpy(dtype=np.float64)
        return values


def _build_feature_specs() -> tuple[FeatureSpec, ...]:
    specs = [FeatureSpec(col) for col in MORPHOLOGY_COLUMNS]
    for system in MAGNITUDE_SYSTEMS:
        for blue, red in zip(BANDS[:-1], BANDS[1:], strict=True):
            specs.append(FeatureSpec(f"{system}_{blue}", f"{system}_{red}"))
    specs.extend(FeatureSpec(f"{system}_r") for system in MAGNITUDE_SYSTEMS)
    return tuple(specs)


FEATURE_SPECS: tuple[FeatureSpec, ...] = _build_feature_specs()
FEATURE_NAMES: tuple[str, ...] = tuple(spec.name for spec in FEATURE_SPECS)


def source_columns() -> list[str]:
    """Catalog columns the feature vector is computed from, in first-use order."""
    seen: dict[str, None] = {}
    for spec in FEATURE_SPECS:
        for col in spec.source_columns:
            seen.setdefault(col, None)
    return list(seen)


def required_columns() -> list[str]:
    """All columns a catalog must carry for training or application."""
    cols = source_columns()
    for extra in (BINNING_COLUMN, LABEL_COLUMN):
        if extra not in cols:
            cols.append(extra)
    return cols


def missing_columns(catalog: pd.DataFrame, columns: list[str] | None = None) -> list[str]:
    """Return the required columns absent from ``catalog``."""
    if columns is None:
        columns = required_columns()
    return [col for col in columns if col not in catalog.columns]


def missing_value_mask(catalog: pd.DataFrame, sentinel: float = SENTINEL) -> NDArray:
    """Flag rows with a missing measurement in any feature source column.

    A value is missing when it is NaN, infinite, or equal to ``sentinel``.

    Returns
    -------
    NDArray
        Boolean array, True where the row cannot be used
    """
    cols = source_columns()
    values = catalog[cols].to_numpy(dtype=np.float64)
    bad = ~np.isfinite(values) | (values == sentinel)
    return bad.any(axis=1)


def derive_features(catalog: pd.DataFrame) -> pd.DataFrame:
    """Compute the 28-entry feature vector for every catalog row.

    No missing-value handling is done here; combine with
    :func:`missing_value_mask` to exclude unusable rows.

    Parameters
    ----------
    catalog : pd.DataFrame
        Catalog with all columns returned by :func:`source_columns`

    Returns
    -------
    pd.DataFrame
        Feature matrix with columns in ``FEATURE_NAMES`` order, sharing
        the catalog index
    """
    absent = missing_columns(catalog, source_columns())
    if absent:
        raise KeyError(f"Catalog is missing feature columns: {absent}")

    return pd.DataFrame(
        {spec.name: spec.evaluate(catalog) for spec in FEATURE_SPECS},
        index=catalog.index,
    )


def feature_vector(row: Mapping[str, float]) -> NDArray:
    """Feature vector for a single catalog row (dict, Series, record)."""
    vec = np.empty(len(FEATURE_SPECS), dtype=np.float64)
    for i, spec in enumerate(FEATURE_SPECS):
        value = float(row[spec.minuend])
        if spec.subtrahend is not None:
            value -= float(row[spec.subtrahend])
        vec[i] = value
    return vec
