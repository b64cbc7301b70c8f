"""
Area Population Redistribution for Microsimulation

This package builds a synthetic population for each small area by
resampling individuals from a small sample, so that each area's attribute
totals match target aggregate statistics. Simulated annealing guides the
swapping of individuals in and out of each area.

Key Features:
- One binary attribute per individual, two-column target counts per area
- Per-area simulated annealing with best-state restore
- Seedable, per-area random streams for reproducible runs
- CSV inputs/outputs, YAML run configuration

Modules:
- data_models: Core data structures (Individual, SamplePool, AttributeTable, WorldState, RunContext)
- statistics: Current-count rebuild and error calculation
- annealing: Per-area annealing state machine and optimizer
- reporting: Assignment records and run reports
- io_utils: CSV/YAML I/O
- cli: Run configuration loading and validation
- orchestration: End-to-end run workflow
- visualization: Fit and progress plots
"""

__version__ = "0.1.0"
__author__ = "Microsimulation Team"

from .data_models import (
    Individual,
    SamplePool,
    AttributeTable,
    WorldState,
    RunContext,
    EmptySampleError,
    EmptyAreaSetError,
)
from .annealing import AnnealingConfig, AnnealingOptimizer, AreaResult, RedistributionResult
from .reporting import AssignmentRecord, build_assignment_records
from .io_utils import ParseError

__all__ = [
    "Individual",
    "SamplePool",
    "AttributeTable",
    "WorldState",
    "RunContext",
    "EmptySampleError",
    "EmptyAreaSetError",
    "AnnealingConfig",
    "AnnealingOptimizer",
    "AreaResult",
    "RedistributionResult",
    "AssignmentRecord",
    "build_assignment_records",
    "ParseError",
]
