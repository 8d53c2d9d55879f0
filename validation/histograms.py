"""Diagnostic histograms of classifier output.

Histograms are fixed-binning count arrays that are filled chunk by chunk
and add exactly, so a parallel fill matches a sequential one. The whole
book is written to a FITS file with one image HDU per histogram; axis
ranges and bin counts are recorded in the header so the file can be read
back without this module.
"""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from astropy.io import fits
from numpy.typing import ArrayLike, NDArray


@dataclass
class Histogram1D:
    """Fixed-binning 1D histogram."""

    name: str
    title: str
    n_bins: int
    x_range: tuple[float, float]
    counts: NDArray = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.counts is None:
            self.counts = np.zeros(self.n_bins, dtype=np.int64)

    @property
    def edges(self) -> NDArray:
        return np.linspace(self.x_range[0], self.x_range[1], self.n_bins + 1)

    def fill(self, x: ArrayLike) -> None:
        x = np.asarray(x, dtype=np.float64)
        x = x[np.isfinite(x)]
        counts, _ = np.histogram(x, bins=self.n_bins, range=self.x_range)
        self.counts += counts

    def add(self, other: "Histogram1D") -> None:
        if other.counts.shape != self.counts.shape or other.x_range != self.x_range:
            raise ValueError(f"Incompatible histograms {self.name!r} and {other.name!r}")
        self.counts += other.counts

    def empty_like(self) -> "Histogram1D":
        return Histogram1D(self.name, self.title, self.n_bins, self.x_range)

    def to_hdu(self) -> fits.ImageHDU:
        hdu = fits.ImageHDU(self.counts, name=self.name)
        hdu.header["HISTDIM"] = (1, "Histogram dimension")
        hdu.header["TITLE"] = self.title
        hdu.header["XMIN"] = self.x_range[0]
        hdu.header["XMAX"] = self.x_range[1]
        hdu.header["NBINSX"] = self.n_bins
        return hdu


@dataclass
class Histogram2D:
    """Fixed-binning 2D histogram; ``counts[ix, iy]``."""

    name: str
    title: str
    n_bins: tuple[int, int]
    x_range: tuple[float, float]
    y_range: tuple[float, float]
    counts: NDArray = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.counts is None:
            self.counts = np.zeros(self.n_bins, dtype=np.int64)

    def fill(self, x: ArrayLike, y: ArrayLike) -> None:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        ok = np.isfinite(x) & np.isfinite(y)
        counts, _, _ = np.histogram2d(
            x[ok], y[ok], bins=self.n_bins, range=[self.x_range, self.y_range]
        )
        self.counts += counts.astype(np.int64)

    def add(self, other: "Histogram2D") -> None:
        if other.counts.shape != self.counts.shape:
            raise ValueError(f"Incompatible histograms {self.name!r} and {other.name!r}")
        self.counts += other.counts

    def empty_like(self) -> "Histogram2D":
        return Histogram2D(self.name, self.title, self.n_bins, self.x_range, self.y_range)

    def to_hdu(self) -> fits.ImageHDU:
        # FITS images are row-major in y
        hdu = fits.ImageHDU(self.counts.T, name=self.name)
        hdu.header["HISTDIM"] = (2, "Histogram dimension")
        hdu.header["TITLE"] = self.title
        hdu.header["XMIN"] = self.x_range[0]
        hdu.header["XMAX"] = self.x_range[1]
        hdu.header["NBINSX"] = self.n_bins[0]
        hdu.header["YMIN"] = self.y_range[0]
        hdu.header["YMAX"] = self.y_range[1]
        hdu.header["NBINSY"] = self.n_bins[1]
        return hdu


class HistogramBook:
    """Named collection of histograms filled during one pass.

    Examples
    --------
    >>> book = HistogramBook()
    >>> book.book_1d("MVA_BDTD_GAL", "BDTD score, galaxies", 100, (-1, 1))
    >>> book["MVA_BDTD_GAL"].fill(scores)
    >>> book.write("SGApp.fits")
    """

    def __init__(self):
        self._hists: dict[str, Histogram1D | Histogram2D] = {}

    def __getitem__(self, name: str) -> Histogram1D | Histogram2D:
        return self._hists[name]

    def __contains__(self, name: str) -> bool:
        return name in self._hists

    def __iter__(self):
        return iter(self._hists.values())

    def __len__(self) -> int:
        return len(self._hists)

    def names(self) -> list[str]:
        return list(self._hists)

    def book_1d(self, name: str, title: str, n_bins: int, x_range: tuple[float, float]) -> Histogram1D:
        if name in self._hists:
            raise ValueError(f"Histogram {name!r} already booked")
        hist = Histogram1D(name, title, n_bins, tuple(x_range))
        self._hists[name] = hist
        return hist

    def book_2d(
        self,
        name: str,
        title: str,
        n_bins: tuple[int, int],
        x_range: tuple[float, float],
        y_range: tuple[float, float],
    ) -> Histogram2D:
        if name in self._hists:
            raise ValueError(f"Histogram {name!r} already booked")
        hist = Histogram2D(name, title, tuple(n_bins), tuple(x_range), tuple(y_range))
        self._hists[name] = hist
        return hist

    def empty_copy(self) -> "HistogramBook":
        """Same bookings with zeroed counts, for filling a chunk."""
        book = HistogramBook()
        for hist in self._hists.values():
            book._hists[hist.name] = hist.empty_like()
        return book

    def add(self, other: "HistogramBook") -> None:
        for hist in self._hists.values():
            hist.add(other[hist.name])

    def write(self, path: str | Path, overwrite: bool = True) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        primary = fits.PrimaryHDU()
        primary.header["NHIST"] = (len(self._hists), "Number of histogram extensions")
        hdul = fits.HDUList([primary] + [h.to_hdu() for h in self._hists.values()])
        hdul.writeto(path, overwrite=overwrite)
        return path


def read_histograms(path: str | Path) -> dict[str, NDArray]:
    """Read histogram counts back from a FITS file, ``counts[ix(, iy)]`` per name."""
    out = {}
    with fits.open(path) as hdul:
        for hdu in hdul[1:]:
            data = np.asarray(hdu.data)
            if hdu.header.get("HISTDIM") == 2:
                data = data.T
            out[hdu.name] = data.copy()
    return out
