"""Shared fixtures: synthetic SDSS-like catalogs and small BDT settings."""

import numpy as np
import pandas as pd
import pytest

from catalog.features import BANDS
from run_config import BDTHyperParameters

# Typical colour offsets from the r band
_BAND_OFFSETS = {"u": 1.6, "g": 0.6, "r": 0.0, "i": -0.3, "z": -0.5}


def _synthetic_catalog(n_galaxy: int, n_star: int, seed: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    n = n_galaxy + n_star
    is_gal = np.r_[np.ones(n_galaxy, dtype=bool), np.zeros(n_star, dtype=bool)]

    modelmag_r = rng.uniform(14.5, 22.5, n)
    # Extended sources are fainter in the PSF magnitude
    extent = np.where(is_gal, rng.uniform(0.4, 1.5, n), rng.normal(0.0, 0.03, n))

    cols = {
        "ra": rng.uniform(150.0, 151.0, n),
        "dec": rng.uniform(2.0, 3.0, n),
    }
    for band in BANDS:
        model = modelmag_r + _BAND_OFFSETS[band]
        if band != "r":
            model = model + rng.normal(0.0, 0.1, n)
        cols[f"modelmag_{band}"] = model
        cols[f"psfmag_{band}"] = model + extent
        cols[f"petromag_{band}"] = model + 0.05 * extent + rng.normal(0.0, 0.02, n)
        cols[f"fibermag_{band}"] = model + 0.5 + 0.6 * extent + rng.normal(0.0, 0.02, n)

    petror50 = np.where(is_gal, rng.uniform(1.8, 4.0, n), rng.normal(1.3, 0.1, n))
    cols["petror50_r"] = petror50
    cols["petror90_r"] = petror50 * np.where(is_gal, rng.uniform(2.2, 3.2, n), rng.normal(2.0, 0.1, n))
    cols["lnlstar_r"] = np.where(is_gal, rng.uniform(-500.0, -50.0, n), rng.uniform(-5.0, 0.0, n))
    cols["lnlexp_r"] = rng.uniform(-100.0, 0.0, n)
    cols["lnldev_r"] = rng.uniform(-100.0, 0.0, n)
    cols["me1_r"] = rng.normal(0.0, 0.1, n)
    cols["me2_r"] = rng.normal(0.0, 0.1, n)
    cols["mrrcc_r"] = np.where(is_gal, rng.uniform(10.0, 40.0, n), rng.uniform(2.0, 6.0, n))
    cols["specclass"] = np.where(is_gal, 2, 1)

    catalog = pd.DataFrame(cols)
    return catalog.iloc[rng.permutation(n)].reset_index(drop=True)


@pytest.fixture
def make_catalog():
    """Factory for synthetic labelled catalogs."""
    def _make(n_galaxy: int = 300, n_star: int = 200, seed: int = 0) -> pd.DataFrame:
        return _synthetic_catalog(n_galaxy, n_star, seed)
    return _make


@pytest.fixture
def sdss_catalog(make_catalog):
    """500-row labelled catalog, 300 galaxies and 200 stars."""
    return make_catalog()


@pytest.fixture
def small_hyper():
    """Hyperparameters small enough for fast tests."""
    return BDTHyperParameters(
        n_trees=5,
        min_leaf_events=5,
        max_depth=3,
        n_cuts=20,
        n_train_signal=150,
        n_train_background=100,
    )


@pytest.fixture(scope="session")
def trained_weights(tmp_path_factory):
    """Train BDT and BDTD once; returns (weights_dir, hyperparameters, catalog)."""
    from classification.training import run_training
    from run_config import BDTMethod, TrainingConfig

    base = tmp_path_factory.mktemp("trained")
    catalog = _synthetic_catalog(300, 200, seed=1)
    hyper = BDTHyperParameters(
        n_trees=5, min_leaf_events=5, max_depth=3, n_cuts=20,
        n_train_signal=150, n_train_background=100,
    )
    config = TrainingConfig(
        methods=(BDTMethod.BDT, BDTMethod.BDTD),
        hyper=hyper,
        output_dir=base / "sg_training",
        weights_dir=base / "weights",
        n_jobs=1,
    )
    run_training(config, catalog=catalog, verbose=False)
    return base / "weights", hyper, catalog
