#!/usr/bin/env python3
"""
Configuration Validation Tool

Validates YAML run configuration files for area redistribution and
provides detailed feedback about parameter values, input data and
potential issues.
"""

import sys
import argparse
from pathlib import Path
from typing import Dict, Any

# Add current directory to path for imports
sys.path.append(str(Path(__file__).parent))

from microsim.cli import load_run_config, validate_run_config, ConfigValidationError
from microsim.annealing import AnnealingConfig
from microsim.io_utils import load_target_table, load_sample_pool


class ConfigValidator:
    """Advanced configuration validator with detailed feedback"""

    def __init__(self):
        self.warnings = []
        self.errors = []
        self.recommendations = []

    def validate_comprehensive(self, config_path: str) -> Dict[str, Any]:
        """Perform comprehensive validation with detailed feedback"""
        try:
            config = load_run_config(config_path)
        except (OSError, ConfigValidationError) as e:
            return {
                'valid': False,
                'errors': [f"Failed to load configuration: {e}"],
                'warnings': [],
                'recommendations': [],
                'summary': {}
            }

        self.warnings = []
        self.errors = []
        self.recommendations = []

        # Basic validation
        try:
            validate_run_config(config)
        except ConfigValidationError as e:
            self.errors.append(str(e))

        # Advanced validation
        annealing = self._validate_annealing(config.get('annealing') or {})
        self._validate_output(config.get('output') or {})
        self._validate_seed(config)

        # Cross-validation against the input data
        summary = {}
        if not self.errors and annealing is not None:
            summary = self._validate_inputs(config['input'], annealing)

        summary['annealing'] = annealing.to_dict() if annealing is not None else {}
        summary['reproducible'] = config.get('random_seed') not in (None, "random")

        return {
            'valid': len(self.errors) == 0,
            'errors': self.errors,
            'warnings': self.warnings,
            'recommendations': self.recommendations,
            'summary': summary
        }

    def _validate_annealing(self, annealing_config: Dict[str, Any]):
        """Validate annealing parameters"""
        if not isinstance(annealing_config, dict):
            return None
        try:
            annealing = AnnealingConfig.from_dict(annealing_config)
        except (TypeError, ValueError):
            # Already reported by validate_run_config
            return None

        if annealing.max_temperature == 0 or annealing.max_runs == 0:
            self.warnings.append("Swap budget is zero - areas keep their random starting population")
        if annealing.error_margin > 0:
            self.warnings.append(
                f"error_margin {annealing.error_margin} stops areas before an exact fit"
            )
        if annealing.temperature_conversion > 50:
            self.warnings.append(
                f"High temperature_conversion ({annealing.temperature_conversion}) accepts almost every worse swap"
            )
        if annealing.time_limit is not None and annealing.time_limit < 0.01:
            self.warnings.append(f"Very short time_limit ({annealing.time_limit}s) may stop areas immediately")

        return annealing

    def _validate_output(self, output_config: Dict[str, Any]):
        """Validate output configuration"""
        if not isinstance(output_config, dict):
            return
        path = output_config.get('path')
        if path is None:
            return
        if Path(path).exists() and not output_config.get('overwrite', False):
            self.errors.append(f"Output file already exists and overwrite is false: {path}")
        if Path(path).suffix.lower() != '.csv':
            self.warnings.append(f"Output path {path} does not end in .csv")
        plot = output_config.get('plot')
        if plot and Path(plot).suffix.lower() not in ('.png', '.pdf', '.svg'):
            self.warnings.append(f"Plot path {plot} has an unusual extension")

    def _validate_seed(self, config: Dict[str, Any]):
        """Validate reproducibility settings"""
        if config.get('random_seed') in (None, "random"):
            self.recommendations.append("Set random_seed to make runs reproducible")

    def _validate_inputs(self, input_config: Dict[str, Any], annealing: AnnealingConfig) -> Dict[str, Any]:
        """Load input files and check the targets can be reached"""
        try:
            target = load_target_table(input_config['target_table'])
            pool = load_sample_pool(input_config['sample'])
        except (OSError, ValueError) as e:
            self.errors.append(f"Failed to load input data: {e}")
            return {}

        value0 = pool.count_value(0)
        value1 = pool.count_value(1)
        needs0 = int(target.values[:, 0].sum())
        needs1 = int(target.values[:, 1].sum())

        # Feasibility
        if needs1 > 0 and value1 == 0:
            self.warnings.append("Targets need value-1 individuals but the sample has none - areas cannot fit")
        if needs0 > 0 and value0 == 0:
            self.warnings.append("Targets need value-0 individuals but the sample has none - areas cannot fit")

        empty_areas = [target.get_id(a) for a in range(target.num_areas()) if target.total_population(a) == 0]
        if empty_areas:
            self.warnings.append(f"{len(empty_areas)} area(s) have zero target population")

        # Budget
        budget = annealing.swap_budget()
        largest = max(target.total_population(a) for a in range(target.num_areas()))
        if largest > budget:
            self.recommendations.append(
                f"Largest area has {largest} people but only {budget} swaps per area - "
                f"consider raising max_runs or max_temperature"
            )

        return {
            'areas': {
                'count': target.num_areas(),
                'total_population': needs0 + needs1,
                'largest_population': largest,
                'empty': len(empty_areas)
            },
            'sample': {
                'count': pool.size(),
                'value_0': value0,
                'value_1': value1
            }
        }


def main():
    """Main validation function"""
    parser = argparse.ArgumentParser(
        description="Validate YAML run configuration files for area redistribution",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        'config_file',
        nargs='?',
        default='examples/run_config.yaml',
        help='Configuration file to validate (default: examples/run_config.yaml)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show detailed validation information'
    )

    parser.add_argument(
        '--warnings-only', '-w',
        action='store_true',
        help='Show only warnings and errors (no recommendations)'
    )

    args = parser.parse_args()

    validator = ConfigValidator()
    result = validator.validate_comprehensive(args.config_file)

    # Print results
    print("=" * 60)
    print("CONFIGURATION VALIDATION REPORT")
    print("=" * 60)
    print(f"File: {args.config_file}")
    print(f"Status: {'✅ VALID' if result['valid'] else '❌ INVALID'}")
    print()

    if result['errors']:
        print("ERRORS:")
        for error in result['errors']:
            print(f"  • {error}")
        print()

    if result['warnings']:
        print("WARNINGS:")
        for warning in result['warnings']:
            print(f"  • {warning}")
        print()

    if result['recommendations'] and not args.warnings_only:
        print("RECOMMENDATIONS:")
        for rec in result['recommendations']:
            print(f"  • {rec}")
        print()

    if result['summary'] and args.verbose:
        print("SUMMARY:")
        for section, data in result['summary'].items():
            if isinstance(data, dict):
                print(f"  {section.title()}:")
                for key, value in data.items():
                    print(f"    {key}: {value}")
            else:
                print(f"  {section.title()}: {data}")
        print()

    # Quick stats
    if not args.verbose:
        summary = result['summary']
        if 'areas' in summary and 'sample' in summary:
            print(f"Areas: {summary['areas']['count']}, "
                  f"Population: {summary['areas']['total_population']}, "
                  f"Sample: {summary['sample']['count']}")

    print("=" * 60)

    sys.exit(0 if result['valid'] else 1)


if __name__ == "__main__":
    main()
