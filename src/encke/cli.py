# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Command-line interface for catalog propagation.

Usage:
    # Propagate a SOF catalog to a new epoch (analytic planetary theory)
    encke mpcorb.sof mpcorb_new.sof 20270101

    # Use a JPL DE kernel, four worker processes
    encke mpcorb.sof mpcorb_new.sof 2461406.5 --ephemeris de440.bsp --workers 4

    # Re-run after a catalog update: unchanged records are reused from
    # the existing output unless --no-update is given
    encke mpcorb.sof mpcorb_new.sof today+30

    # Tighter tolerance, one-day macro-steps, ephemeris samples
    encke in.sof out.sof 20270101 --step 1 --tolerance 1e-13 --sample-file samples.txt
"""
import argparse
import logging
import os
import sys

from encke.adapters.parallel import propagate_catalog
from encke.domain.config import IntegrationConfig
from encke.domain.planetary_ephemeris import AnalyticEphemeris
from encke.domain.time_systems import parse_target_epoch

_log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="encke",
        description="Propagate a minor-planet orbit catalog (SOF) to a new epoch "
                    "with Encke's method and planetary perturbations",
    )
    parser.add_argument('input', help="Input catalog (SOF)")
    parser.add_argument('output', help="Output catalog (SOF); reused as previous output if present")
    parser.add_argument(
        'epoch',
        help="Target epoch: JD, YYYYMMDD[.ddd] (TT), or today[+/-days]; "
             "must be exactly representable in the catalog's Te column",
    )
    parser.add_argument(
        '--step', type=float, default=IntegrationConfig.step_days,
        help="Macro-step size in days (default: %(default)s)",
    )
    parser.add_argument(
        '--tolerance', type=float, default=IntegrationConfig.tolerance,
        help="RKF45 step error tolerance (default: %(default)s)",
    )
    parser.add_argument(
        '--workers', type=int, default=1,
        help="Number of worker processes (default: 1)",
    )
    parser.add_argument(
        '--include-unperturbed', action='store_true', default=False,
        help="Also integrate records without a fit RMS",
    )
    parser.add_argument('--sample-file', help="Write per-macro-step position samples here")
    parser.add_argument(
        '--ephemeris',
        help="JPL DE kernel (.bsp); default is the analytic planetary theory",
    )
    parser.add_argument(
        '--no-update', action='store_true', default=False,
        help="Do not reuse records from an existing output file",
    )
    parser.add_argument('--max-objects', type=int, help="Only process the first N records")
    parser.add_argument(
        '--radius-fudge', type=float, default=IntegrationConfig.radius_fudge,
        help="Scale perturber radii used for close-approach softening (default: %(default)s)",
    )
    parser.add_argument('-v', '--verbose', action='store_true', default=False,
                        help="Debug logging")
    return parser


def _load_ephemeris(path: str | None):
    if not path:
        return AnalyticEphemeris()
    from encke.adapters.jpl_ephemeris import JplEphemeris
    return JplEphemeris(path)


def run(args: argparse.Namespace):
    """Run a propagation from parsed arguments; returns the RunSummary."""
    target_jd = parse_target_epoch(args.epoch)
    config = IntegrationConfig(
        step_days=args.step,
        tolerance=args.tolerance,
        radius_fudge=args.radius_fudge,
        include_unperturbed=args.include_unperturbed,
    )
    if os.path.abspath(args.input) == os.path.abspath(args.output):
        raise ValueError("Input and output must be different files")
    previous = None if args.no_update else args.output
    summary = propagate_catalog(
        input_path=args.input,
        output_path=args.output,
        target_jd=target_jd,
        config=config,
        ephemeris=_load_ephemeris(args.ephemeris),
        workers=args.workers,
        sample_path=args.sample_file,
        previous_output=previous,
        max_objects=args.max_objects,
    )
    _log.info(
        "%d records: %d integrated, %d reused, %d passed through; %d rejected steps",
        summary.records_read, summary.integrated, summary.reused,
        summary.passed_through, summary.rejected_steps,
    )
    return summary


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        summary = run(args)
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename or e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, RuntimeError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(
        f"Wrote {args.output}: {summary.records_read} records "
        f"({summary.integrated} integrated, {summary.reused} reused)."
    )


if __name__ == '__main__':
    main()
