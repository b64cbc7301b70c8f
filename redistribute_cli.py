#!/usr/bin/env python3
"""
Area Redistribution CLI - Minimal entry point.

Fills small areas with individuals resampled from a sample file so that
each area's attribute totals match a target table. Everything except the
seed and the overwrite switch is read from the YAML run config.

Usage:
    python3 redistribute_cli.py run_config.yaml
    python3 redistribute_cli.py --config run_config.yaml --seed 7
    python3 redistribute_cli.py run_config.yaml --overwrite

Run config sections: input (target_table, sample), output (path, overwrite,
summary, plot), annealing (max_runs, error_margin, max_temperature,
temperature_conversion, max_swaps, time_limit), random_seed, verbose.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path if needed
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"seed must be non-negative, got: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Redistribute sample individuals into areas to match target statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 redistribute_cli.py examples/run_config.yaml
  python3 redistribute_cli.py --config examples/run_config.yaml --seed 7 --overwrite
        """
    )
    parser.add_argument("config", nargs="?", help="Path to run configuration YAML")
    parser.add_argument("--config", dest="config_option", metavar="CONFIG",
                        help="Path to run configuration YAML")
    parser.add_argument("--seed", type=non_negative_int,
                        help="Random seed, overrides 'random_seed' in the config")
    parser.add_argument("--overwrite", action="store_true", default=None,
                        help="Replace existing output files")
    return parser


def main(argv=None) -> int:
    """Main entry point for redistribution CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = args.config_option or args.config
    if not config_path:
        parser.print_usage()
        print("Error: a run configuration file is required")
        return 1

    try:
        from microsim.cli import run_from_config
        run_from_config(config_path, seed=args.seed, overwrite=args.overwrite)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1
    except Exception as e:
        print(f"\nError: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
