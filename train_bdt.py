#!/usr/bin/env python3
"""
BDT Star-Galaxy Classifier Training

Trains boosted decision tree classifiers that separate galaxies (signal,
specclass == 2) from stars (background, specclass == 1) using 28
morphological and photometric features of an SDSS-like catalog.

Usage:
    python train_bdt.py --methods BDT,BDTD --ntrees 400 --input train_dr9.fits

This produces:
- One model file per method: weights/SGClassification_BDT_<tag>_<METHOD>.joblib
- Training results: sg_training/SGTraining_BDT_<tag>.fits
- An evaluation summary on the console
"""

import argparse
import sys
from pathlib import Path

from classification.bdt_classifier import ModelLoadError
from classification.training import run_training
from run_config import (
    ConfigurationError,
    TrainingConfig,
    add_hyperparameter_arguments,
    hyper_from_args,
    parse_method_list,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Train BDT star/galaxy classifiers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python train_bdt.py                             # BDTD with default settings
    python train_bdt.py --methods BDT,BDTG,BDTB     # Several variants at once
    python train_bdt.py --ntrees 400 --cut "petror90_r < 30"
        """,
    )
    add_hyperparameter_arguments(parser)
    parser.add_argument("--input", type=Path, default=TrainingConfig.input_path,
                        help="Labelled training catalog (FITS or CSV)")
    parser.add_argument("--output-dir", type=Path, default=TrainingConfig.output_dir,
                        help="Directory for the training results file")
    parser.add_argument("--cut", default=None,
                        help="Extra selection expression, e.g. 'petror90_r < 30'")
    parser.add_argument("--seed", type=int, default=TrainingConfig.random_state,
                        help="Random seed for the split and the estimators")
    parser.add_argument("--plots", action="store_true",
                        help="Write ROC and overtraining plots")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    print("=" * 60)
    print("BDT STAR-GALAXY CLASSIFIER TRAINING")
    print("=" * 60)

    try:
        kwargs = {}
        if args.weights_dir is not None:
            kwargs["weights_dir"] = args.weights_dir
        config = TrainingConfig(
            input_path=args.input,
            methods=parse_method_list(args.methods),
            hyper=hyper_from_args(args),
            output_dir=args.output_dir,
            extra_cut=args.cut,
            random_state=args.seed,
            make_plots=args.plots,
            **kwargs,
        )
        print(f"--- Methods: {', '.join(m.value for m in config.methods)}")
        print(f"--- Hyperparameter tag: {config.hyper.tag}")
        run_training(config, verbose=True)
    except (ConfigurationError, ModelLoadError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print("\nDone!")


if __name__ == "__main__":
    main()
