#!/usr/bin/env python3
"""
BDT Star-Galaxy Classifier Application

Applies trained BDT classifiers to a catalog and measures, per modelmag_r
bin, the galaxy efficiency and star impurity of each method next to the
classical cut psfmag_r - modelmag_r > 0.145.

Usage:
    python apply_bdt.py --methods BDTD --input eval_dr9.fits

This produces:
- The annotated catalog newtree_BDT_<tag>.<ext> with one score column per method
- Diagnostic histograms SGApp_BDT_<tag>.fits
- Per-bin efficiency table efficiency_BDT_<tag>.csv
"""

import argparse
import sys
from pathlib import Path

from classification.bdt_classifier import ModelLoadError
from run_config import (
    ApplicationConfig,
    ConfigurationError,
    MagnitudeBinning,
    add_hyperparameter_arguments,
    hyper_from_args,
    parse_method_list,
)
from validation.application import run_application


def build_parser() -> argparse.ArgumentParser:
    binning = MagnitudeBinning()
    parser = argparse.ArgumentParser(
        description="Apply BDT star/galaxy classifiers to a catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python apply_bdt.py                              # BDTD with default settings
    python apply_bdt.py --methods BDT,BDTD --slim    # Keep only key columns
    python apply_bdt.py --threshold 0.1 --workers 4
        """,
    )
    add_hyperparameter_arguments(parser)
    parser.add_argument("--input", type=Path, default=ApplicationConfig.input_path,
                        help="Catalog to classify (FITS or CSV)")
    parser.add_argument("--output-dir", type=Path, default=ApplicationConfig.output_dir,
                        help="Directory for the annotated catalog, histograms and tables")
    parser.add_argument("--threshold", type=float, default=ApplicationConfig.threshold,
                        help="Score above which a source is a galaxy")
    parser.add_argument("--mag-min", type=float, default=binning.mag_min,
                        help="Bright edge of the first magnitude bin")
    parser.add_argument("--mag-max", type=float, default=binning.mag_max,
                        help="Faint edge of the last magnitude bin")
    parser.add_argument("--mag-width", type=float, default=binning.width,
                        help="Magnitude bin width")
    parser.add_argument("--standard-cut", type=float, default=ApplicationConfig.standard_cut,
                        help="psfmag_r - modelmag_r above which the classical cut selects a galaxy")
    parser.add_argument("--slim", action="store_true",
                        help="Annotated copy keeps only modelmag_r, psfmag_r, specclass and scores")
    parser.add_argument("--plots", action="store_true",
                        help="Write score distribution and efficiency plots")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker threads (default: from resource profile)")
    parser.add_argument("--chunk-size", type=int, default=None,
                        help="Rows per chunk (default: from resource profile)")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        kwargs = {}
        if args.weights_dir is not None:
            kwargs["weights_dir"] = args.weights_dir
        config = ApplicationConfig(
            input_path=args.input,
            methods=parse_method_list(args.methods),
            hyper=hyper_from_args(args),
            output_dir=args.output_dir,
            threshold=args.threshold,
            binning=MagnitudeBinning(args.mag_min, args.mag_max, args.mag_width),
            standard_cut=args.standard_cut,
            slim_output=args.slim,
            make_plots=args.plots,
            n_workers=args.workers,
            chunk_size=args.chunk_size,
            **kwargs,
        )
        run_application(config, verbose=True, progress=args.progress)
    except (ConfigurationError, ModelLoadError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print("\nDone!")


if __name__ == "__main__":
    main()
