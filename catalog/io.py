"""Reading and writing photometric catalogs.

FITS binary tables are read and written through astropy.table; CSV
through pandas. The output format always follows the input format so an
annotated copy can replace the original in downstream tools.
"""

import warnings
from pathlib import Path

import numpy as np
import pandas as pd
from astropy.table import Table

FITS_SUFFIXES = (".fits", ".fit", ".fts", ".fits.gz", ".fit.gz")
CSV_SUFFIXES = (".csv", ".csv.gz")


def table_suffix(path: str | Path) -> str:
    """Return the recognised table suffix of ``path`` (e.g. ``.fits.gz``)."""
    name = Path(path).name.lower()
    for suffix in sorted(FITS_SUFFIXES + CSV_SUFFIXES, key=len, reverse=True):
        if name.endswith(suffix):
            return suffix
    return Path(path).suffix.lower()


def _is_fits(path: Path) -> bool:
    return table_suffix(path) in FITS_SUFFIXES


def is_supported(path: str | Path) -> bool:
    """True when ``path`` names a FITS or CSV table."""
    return table_suffix(path) in FITS_SUFFIXES + CSV_SUFFIXES


def load_catalog(path: str | Path, hdu: int | str = 1) -> pd.DataFrame:
    """Load a catalog into a DataFrame.

    Parameters
    ----------
    path : str or Path
        FITS or CSV file
    hdu : int or str
        FITS extension holding the table (default: first extension)

    Returns
    -------
    pd.DataFrame
        Catalog rows in file order with a fresh RangeIndex
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog not found: {path}")

    if _is_fits(path):
        table = Table.read(path, hdu=hdu)
        # Multidimensional columns cannot live in a DataFrame
        names = [name for name in table.colnames if len(table[name].shape) <= 1]
        dropped = [name for name in table.colnames if name not in names]
        if dropped:
            warnings.warn(
                f"Dropping multidimensional columns from {path.name}: {dropped}",
                stacklevel=2,
            )
        df = table[names].to_pandas()
    elif table_suffix(path) in CSV_SUFFIXES:
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported catalog format: {path.suffix}")

    return df.reset_index(drop=True)


def write_catalog(catalog: pd.DataFrame, path: str | Path, overwrite: bool = True) -> Path:
    """Write a catalog, choosing FITS or CSV from the file name.

    Parameters
    ----------
    catalog : pd.DataFrame
        Rows to write
    path : str or Path
        Output path; parent directories are created
    overwrite : bool
        Replace an existing file (default: True)

    Returns
    -------
    Path
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if _is_fits(path):
        table = Table.from_pandas(catalog.reset_index(drop=True))
        table.write(path, format="fits", overwrite=overwrite)
    elif table_suffix(path) in CSV_SUFFIXES:
        if path.exists() and not overwrite:
            raise FileExistsError(f"Refusing to overwrite {path}")
        catalog.to_csv(path, index=False)
    else:
        raise ValueError(f"Unsupported catalog format: {path.suffix}")

    return path


def annotate_catalog(
    catalog: pd.DataFrame,
    scores: dict[str, np.ndarray],
    keep_columns: list[str] | None = None,
) -> pd.DataFrame:
    """Return a copy of ``catalog`` with one float32 column per score array.

    Parameters
    ----------
    catalog : pd.DataFrame
        Input rows
    scores : dict
        Mapping of new column name to per-row values (NaN for unscored rows)
    keep_columns : list of str, optional
        Restrict the copy to these input columns (plus the score columns)

    Returns
    -------
    pd.DataFrame
        Annotated copy; the input frame is not modified
    """
    out = catalog[keep_columns].copy() if keep_columns is not None else catalog.copy()
    for name, values in scores.items():
        values = np.asarray(values, dtype=np.float32)
        if values.shape != (len(out),):
            raise ValueError(
                f"Score column {name!r} has {values.shape[0]} rows, catalog has {len(out)}"
            )
        out[name] = values
    return out
