"""Catalog access for star/galaxy separation.

This package provides:
- The 28-entry feature vector and its derivation from catalog columns
- The missing-value policy (NaN and -9999 placeholders)
- Training cuts and class labels (specclass 2 = galaxy, 1 = star)
- FITS/CSV catalog reading and writing, including annotated copies

Example usage:
    from catalog import load_catalog, derive_features, missing_value_mask

    cat = load_catalog("eval_dr9.fits")
    features = derive_features(cat)
    usable = ~missing_value_mask(cat)
"""

from catalog.cuts import (
    GALAXY_CLASS,
    STAR_CLASS,
    RunCounters,
    class_labels,
    query_mask,
    training_mask,
)
from catalog.features import (
    BINNING_COLUMN,
    FEATURE_NAMES,
    FEATURE_SPECS,
    LABEL_COLUMN,
    SENTINEL,
    FeatureSpec,
    derive_features,
    feature_vector,
    missing_columns,
    missing_value_mask,
    required_columns,
    source_columns,
)
from catalog.io import annotate_catalog, is_supported, load_catalog, table_suffix, write_catalog

__all__ = [
    "BINNING_COLUMN",
    "FEATURE_NAMES",
    "FEATURE_SPECS",
    "GALAXY_CLASS",
    "LABEL_COLUMN",
    "SENTINEL",
    "STAR_CLASS",
    "FeatureSpec",
    "RunCounters",
    "annotate_catalog",
    "class_labels",
    "derive_features",
    "feature_vector",
    "is_supported",
    "load_catalog",
    "missing_columns",
    "missing_value_mask",
    "query_mask",
    "required_columns",
    "source_columns",
    "table_suffix",
    "training_mask",
    "write_catalog",
]
