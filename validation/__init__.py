"""Validation module for measuring star/galaxy classifier performance.

Provides functions to:
- Evaluate trained classifiers on the test partition (ROC, separation,
  overtraining check)
- Tally efficiency and impurity of a galaxy selection per magnitude bin
- Fill and write diagnostic score histograms
- Apply trained classifiers to a catalog (see validation.application)

Submodules:
- metrics: Classifier evaluation metrics
- efficiency: Per-bin tallies, efficiency and impurity
- histograms: Mergeable histograms written to FITS
- application: Application pipeline
- plots: Visualization tools
"""

from .efficiency import (
    NOT_AVAILABLE,
    BinTally,
    SelectionSummary,
    format_percent,
    format_summary_table,
    summaries_to_frame,
    tally_selection,
)

from .histograms import (
    Histogram1D,
    Histogram2D,
    HistogramBook,
    read_histograms,
)

# Classifier evaluation
from .metrics import (
    BACKGROUND_EFFICIENCIES,
    MethodEvaluation,
    confusion_matrix_star_galaxy,
    evaluate_method,
    format_evaluation_table,
    ks_probability,
    separation,
    signal_efficiency_at,
)

__all__ = [
    # Per-bin tallies
    'NOT_AVAILABLE',
    'BinTally',
    'SelectionSummary',
    'format_percent',
    'format_summary_table',
    'summaries_to_frame',
    'tally_selection',
    # Histograms
    'Histogram1D',
    'Histogram2D',
    'HistogramBook',
    'read_histograms',
    # Evaluation metrics
    'BACKGROUND_EFFICIENCIES',
    'MethodEvaluation',
    'confusion_matrix_star_galaxy',
    'evaluate_method',
    'format_evaluation_table',
    'ks_probability',
    'separation',
    'signal_efficiency_at',
]
