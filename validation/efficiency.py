"""Per-magnitude-bin efficiency and impurity of a galaxy selection.

For each magnitude bin the counters are:
- true galaxies and true stars in the bin
- galaxies and stars passing the selection

from which
- efficiency = selected galaxies / true galaxies (percent)
- impurity   = selected stars / all selected rows (percent)

A bin with a zero denominator has an undefined value, represented as NaN
and shown as ``N/A``. Summaries add element-wise, so tallies built over
separate chunks of a catalog merge into exactly the single-pass result.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike

from run_config import MagnitudeBinning

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class BinTally:
    """Counters for one magnitude bin."""

    n_galaxy: int = 0
    n_star: int = 0
    n_galaxy_selected: int = 0
    n_star_selected: int = 0

    def __add__(self, other: "BinTally") -> "BinTally":
        return BinTally(
            n_galaxy=self.n_galaxy + other.n_galaxy,
            n_star=self.n_star + other.n_star,
            n_galaxy_selected=self.n_galaxy_selected + other.n_galaxy_selected,
            n_star_selected=self.n_star_selected + other.n_star_selected,
        )

    @property
    def n_selected(self) -> int:
        return self.n_galaxy_selected + self.n_star_selected

    @property
    def efficiency(self) -> float:
        """Percent of true galaxies selected; NaN for a bin without galaxies."""
        if self.n_galaxy == 0:
            return np.nan
        return float(self.n_galaxy_selected) / float(self.n_galaxy) * 100.0

    @property
    def impurity(self) -> float:
        """Percent of selected rows that are stars; NaN when nothing is selected."""
        if self.n_selected == 0:
            return np.nan
        return float(self.n_star_selected) / float(self.n_selected) * 100.0


@dataclass
class SelectionSummary:
    """Bin-keyed tallies for one selector (a BDT method or the standard cut).

    Attributes
    ----------
    name : str
        Selector name shown in reports
    binning : MagnitudeBinning
        Bin definition; keys of ``tallies`` are bin indices
    tallies : dict
        Bin index -> BinTally, one entry per bin
    """

    name: str
    binning: MagnitudeBinning
    tallies: dict[int, BinTally] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for k in range(self.binning.n_bins):
            self.tallies.setdefault(k, BinTally())

    def merge(self, other: "SelectionSummary") -> "SelectionSummary":
        if other.name != self.name or other.binning != self.binning:
            raise ValueError(f"Cannot merge summaries {self.name!r} and {other.name!r}")
        return SelectionSummary(
            name=self.name,
            binning=self.binning,
            tallies={k: self.tallies[k] + other.tallies[k] for k in self.tallies},
        )

    def total(self) -> BinTally:
        out = BinTally()
        for tally in self.tallies.values():
            out = out + tally
        return out

    def to_frame(self) -> pd.DataFrame:
        """One row per bin with counters, efficiency and impurity."""
        rows = []
        for k in sorted(self.tallies):
            t = self.tallies[k]
            rows.append({
                "selector": self.name,
                "mag_lo": self.binning.edges[k],
                "mag_hi": min(self.binning.edges[k + 1], self.binning.mag_max),
                "n_galaxy": t.n_galaxy,
                "n_star": t.n_star,
                "n_galaxy_selected": t.n_galaxy_selected,
                "n_star_selected": t.n_star_selected,
                "efficiency": t.efficiency,
                "impurity": t.impurity,
            })
        return pd.DataFrame(rows)


def tally_selection(
    name: str,
    binning: MagnitudeBinning,
    bins: ArrayLike,
    labels: ArrayLike,
    selected: ArrayLike,
) -> SelectionSummary:
    """Count true and selected galaxies/stars per magnitude bin.

    Parameters
    ----------
    name : str
        Selector name
    binning : MagnitudeBinning
        Bin definition
    bins : array-like
        Bin index per row; negative values are excluded from every counter
    labels : array-like
        1 = galaxy, 0 = star, anything else is excluded
    selected : array-like
        Boolean selection per row

    Returns
    -------
    SelectionSummary
    """
    bins = np.asarray(bins, dtype=np.int64)
    labels = np.asarray(labels)
    selected = np.asarray(selected, dtype=bool)

    n = binning.n_bins
    in_bin = (bins >= 0) & (bins < n)
    is_gal = in_bin & (labels == 1)
    is_star = in_bin & (labels == 0)

    def _count(mask):
        return np.bincount(bins[mask], minlength=n)

    n_gal = _count(is_gal)
    n_star = _count(is_star)
    n_gal_sel = _count(is_gal & selected)
    n_star_sel = _count(is_star & selected)

    tallies = {
        k: BinTally(
            n_galaxy=int(n_gal[k]),
            n_star=int(n_star[k]),
            n_galaxy_selected=int(n_gal_sel[k]),
            n_star_selected=int(n_star_sel[k]),
        )
        for k in range(n)
    }
    return SelectionSummary(name=name, binning=binning, tallies=tallies)


def format_percent(value: float) -> str:
    return NOT_AVAILABLE if not np.isfinite(value) else f"{value:.2f}%"


def format_summary_table(summaries: list[SelectionSummary]) -> str:
    """Per-bin table for every selector, bins as row groups."""
    if not summaries:
        return ""
    binning = summaries[0].binning
    header = (
        f"  {'Selector':<10} {'Sel.gal':>8} {'True gal':>9} {'Sel.star':>9} "
        f"{'Selected':>9} {'Efficiency':>11} {'Impurity':>10}"
    )
    lines = []
    for k in range(binning.n_bins):
        lines.append(f"Magnitude {binning.label(k)}")
        lines.append(header)
        for summary in summaries:
            t = summary.tallies[k]
            lines.append(
                f"  {summary.name:<10} {t.n_galaxy_selected:>8} {t.n_galaxy:>9} "
                f"{t.n_star_selected:>9} {t.n_selected:>9} "
                f"{format_percent(t.efficiency):>11} {format_percent(t.impurity):>10}"
            )
    return "\n".join(lines)


def summaries_to_frame(summaries: list[SelectionSummary]) -> pd.DataFrame:
    """Stack per-bin rows of several selectors into one table."""
    if not summaries:
        return pd.DataFrame()
    return pd.concat([s.to_frame() for s in summaries], ignore_index=True)
