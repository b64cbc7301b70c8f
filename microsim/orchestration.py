"""
Orchestration module for area population redistribution.

Implements the end-to-end run: load inputs, fill and anneal the world,
write assignments and the run summary.
"""

from typing import Dict, Optional
from pathlib import Path
import numpy as np

from .data_models import RunContext
from .annealing import AnnealingOptimizer, AreaResult, RedistributionResult
from .io_utils import load_target_table, load_sample_pool, save_assignments, save_metadata
from .reporting import (
    build_assignment_records,
    format_conditions,
    format_redistribution_report,
    summarize_errors,
)
from .cli import get_annealing_config


def resolve_seed(seed) -> int:
    """Turn a configured seed (int, None or 'random') into a concrete integer."""
    if seed is None or seed == "random":
        return int(np.random.randint(0, 2**31))
    return int(seed)


def load_run_context(target_path, sample_path) -> RunContext:
    """
    Load both input files into a fresh run context.

    Raises:
        FileNotFoundError: If an input file doesn't exist
        ParseError: If an input file is malformed
        EmptyAreaSetError, EmptySampleError: If an input file has no data rows
    """
    target = load_target_table(target_path)
    pool = load_sample_pool(sample_path)
    return RunContext(
        pool=pool,
        target=target,
        metadata={
            'target_table': str(target_path),
            'sample': str(sample_path),
        }
    )


def run_redistribution(run_config: Dict) -> RedistributionResult:
    """
    Redistribute sample individuals into areas to match target statistics.

    Args:
        run_config: Run configuration dict from YAML

    Algorithm:
        1. Load target table and sample from run_config['input']
        2. Setup seed (run_config['random_seed'], drawn at random if unset)
        3. Randomly fill each area to its target population
        4. Anneal each area in table order
        5. Save assignments to run_config['output']['path']
        6. Optionally save run summary YAML and fit plot
        7. Print summary report

    Returns:
        RedistributionResult (assignments are written to disk)
    """
    print("=" * 70)
    print("AREA REDISTRIBUTION")
    print("=" * 70)

    input_config = run_config['input']
    output_config = run_config['output']
    verbose = bool(run_config.get('verbose', False))

    print(f"Loading target table from: {input_config['target_table']}")
    print(f"Loading sample from: {input_config['sample']}")
    context = load_run_context(input_config['target_table'], input_config['sample'])
    print(f"Areas: {context.num_areas()}")
    print(f"Sample individuals: {context.pool.size()} "
          f"(value 0: {context.pool.count_value(0)}, value 1: {context.pool.count_value(1)})")
    if verbose:
        print(context.pool, end="")

    annealing_config = get_annealing_config(run_config)
    seed = resolve_seed(run_config.get('random_seed'))
    print(f"Random seed: {seed}")
    context.metadata['seed'] = seed

    # Check every output before doing the work
    output_path = Path(output_config['path'])
    summary_path: Optional[str] = output_config.get('summary')
    plot_path: Optional[str] = output_config.get('plot')
    overwrite = output_config.get('overwrite', False)
    if not overwrite:
        for path in (output_path, summary_path, plot_path):
            if path and Path(path).exists():
                raise FileExistsError(
                    f"Output file already exists: {path}\n"
                    f"Set 'output.overwrite: true' in config to overwrite"
                )

    optimizer = AnnealingOptimizer(context, annealing_config, seed)
    optimizer.initialize()
    if verbose:
        print()
        print(format_conditions(context.target, context.current, "Starting conditions:"))

    num_areas = context.num_areas()
    print(f"\nOptimizing {num_areas} areas...")

    def report_progress(area_result: AreaResult):
        done = area_result.area + 1
        if verbose:
            print(f"  Area {area_result.area_id}: error {area_result.initial_error} -> "
                  f"{area_result.final_error} ({area_result.swaps_attempted} swaps, "
                  f"{area_result.stop_reason})")
        elif done % 100 == 0 or done == num_areas:
            print(f"  Progress: {done}/{num_areas} areas optimized")

    result = optimizer.optimize(progress=report_progress)

    # Save assignments
    records = build_assignment_records(context.world, context.target)
    save_assignments(records, output_path, overwrite=overwrite)
    print(f"\nAssignments: {output_path} ({len(records)} records)")

    if summary_path:
        summary = result.to_dict()
        summary['inputs'] = {
            'target_table': context.metadata['target_table'],
            'sample': context.metadata['sample'],
        }
        summary['output'] = str(output_path)
        summary['error_statistics'] = summarize_errors(result)
        save_metadata(summary, summary_path, overwrite=overwrite)
        print(f"Summary: {summary_path}")

    if plot_path:
        from .visualization import plot_fit
        plot_fit(context.target, context.current, result, save_path=plot_path)
        print(f"Plot: {plot_path}")

    print()
    print(format_redistribution_report(result, context.target, context.current, detailed=verbose))

    return result
