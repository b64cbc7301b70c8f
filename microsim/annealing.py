"""
Simulated annealing optimizer for area populations.

Each area is handled on its own: random members are swapped out for fresh
draws from the sample pool, and the swap is kept or undone according to the
Metropolis criterion under a falling temperature. The lowest-error
population seen for an area is remembered and restored at the end, so an
area is never left worse than the best state the search visited.

The per-area search is an explicit state machine:

    INIT -> COOLING(step) -> SWAPPING(attempt) -> CONVERGED | EXHAUSTED

which lets the acceptance rule and individual transitions be exercised
without running the whole schedule.
"""

import math
import time
from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .data_models import RunContext, AttributeTable, Individual, WorldState
from .statistics import StatisticsBuilder


class AnnealingState(Enum):
    """States of the per-area search."""
    INIT = "init"
    COOLING = "cooling"
    SWAPPING = "swapping"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = {AnnealingState.CONVERGED, AnnealingState.EXHAUSTED}

# Stop reasons recorded on AreaResult
STOP_CONVERGED = "converged"
STOP_SCHEDULE = "schedule_exhausted"
STOP_SWAP_CAP = "swap_cap"
STOP_DEADLINE = "deadline"


@dataclass
class AnnealingConfig:
    """
    Annealing schedule parameters.

    Attributes:
        max_runs: Swap attempts per temperature step
        error_margin: An area whose error is at or below this counts as fitted
        max_temperature: Number of temperature steps
        temperature_conversion: Scale factor turning a step into a temperature
        max_swaps: Optional cap on swap attempts per area
        time_limit: Optional per-area time budget in seconds
    """
    max_runs: int = 2
    error_margin: int = 0
    max_temperature: int = 20
    temperature_conversion: float = 5.0
    max_swaps: Optional[int] = None
    time_limit: Optional[float] = None

    def __post_init__(self):
        """Validate parameters."""
        for name in ('max_runs', 'error_margin', 'max_temperature'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
                raise ValueError(f"'{name}' must be a non-negative integer, got: {value!r}")
        if not isinstance(self.temperature_conversion, (int, float)) or self.temperature_conversion <= 0:
            raise ValueError(
                f"'temperature_conversion' must be a positive number, got: {self.temperature_conversion!r}"
            )
        if self.max_swaps is not None and (not isinstance(self.max_swaps, int) or self.max_swaps < 0):
            raise ValueError(f"'max_swaps' must be a non-negative integer or None, got: {self.max_swaps!r}")
        if self.time_limit is not None and (not isinstance(self.time_limit, (int, float)) or self.time_limit <= 0):
            raise ValueError(f"'time_limit' must be a positive number or None, got: {self.time_limit!r}")

    def temperature(self, step: int) -> float:
        """Temperature for schedule step ``step`` (max_temperature down to 1)."""
        return float(self.temperature_conversion) * (float(step) / float(self.max_temperature))

    def swap_budget(self) -> int:
        """Most swap attempts the schedule allows for one area."""
        budget = self.max_runs * self.max_temperature
        if self.max_swaps is not None:
            budget = min(budget, self.max_swaps)
        return budget

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnnealingConfig":
        """
        Build a config from a mapping such as the YAML ``annealing`` section.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown annealing parameters: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def metropolis_accept(
    current_error: int,
    new_error: int,
    temperature: float,
    rng: np.random.Generator
) -> bool:
    """
    Decide whether to keep a move under the Metropolis criterion.

    Moves that do not increase the error are always kept. Worse moves are
    kept with probability exp(-(new_error - current_error) / temperature);
    a random number is only drawn in that case.

    Args:
        current_error: Error before the move
        new_error: Error after the move
        temperature: Current temperature (> 0)
        rng: Random number generator

    Returns:
        True if the move should be kept
    """
    if new_error <= current_error:
        return True
    if temperature <= 0:
        return False
    return bool(rng.random() < math.exp(-(new_error - current_error) / temperature))


@dataclass
class SwapOutcome:
    """Record of one swap attempt."""
    index: int
    removed: Individual
    added: Individual
    old_error: int
    new_error: int
    accepted: bool


@dataclass
class AreaResult:
    """
    Outcome of optimizing one area.

    Attributes:
        area: Area index
        area_id: Area id from the target table
        initial_error: Error of the randomly filled population
        final_error: Error of the population left in the world
        min_error: Lowest error seen during the search
        swaps_attempted: Number of swap attempts
        swaps_accepted: Number of swaps kept
        temperature_steps: Number of temperature steps entered
        stop_reason: Why the search ended
        restored_best: True if the best snapshot replaced the final population
        error_history: Error after INIT and after every swap attempt
    """
    area: int
    area_id: Optional[str]
    initial_error: int
    final_error: int
    min_error: int
    swaps_attempted: int = 0
    swaps_accepted: int = 0
    temperature_steps: int = 0
    stop_reason: str = ""
    restored_best: bool = False
    error_history: List[int] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.stop_reason == STOP_CONVERGED

    def to_dict(self) -> Dict[str, Any]:
        """Summary without the error history."""
        return {
            'area': self.area,
            'area_id': self.area_id,
            'initial_error': self.initial_error,
            'final_error': self.final_error,
            'min_error': self.min_error,
            'swaps_attempted': self.swaps_attempted,
            'swaps_accepted': self.swaps_accepted,
            'temperature_steps': self.temperature_steps,
            'stop_reason': self.stop_reason,
            'restored_best': self.restored_best,
        }


class AreaAnnealer:
    """
    Simulated annealing search for a single area.

    Call ``step()`` to advance one transition or ``run()`` to go to a
    terminal state. The area's population in the context's world is
    mutated in place.
    """

    def __init__(self,
                 context: RunContext,
                 area: int,
                 config: AnnealingConfig,
                 rng: np.random.Generator,
                 clock: Callable[[], float] = time.monotonic):
        if context.world is None:
            raise ValueError("Run context has no world; fill it before optimizing")
        self.context = context
        self.area = area
        self.config = config
        self.rng = rng
        self.clock = clock
        self.stats = StatisticsBuilder(context)

        self.state = AnnealingState.INIT
        self.step_index = config.max_temperature
        self.attempt = 0
        self.temperature = 0.0
        self.error = 0
        self.initial_error = 0
        self.min_error = 0
        self.best_population: List[Individual] = []
        self.swaps_attempted = 0
        self.swaps_accepted = 0
        self.temperature_steps = 0
        self.stop_reason = ""
        self.restored_best = False
        self.history: List[int] = []
        self._deadline: Optional[float] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def step(self) -> AnnealingState:
        """Advance by one transition and return the new state."""
        if self.state == AnnealingState.INIT:
            self._initialize()
        elif self.state == AnnealingState.COOLING:
            self._cool()
        elif self.state == AnnealingState.SWAPPING:
            self._swap_or_advance()
        return self.state

    def run(self) -> AreaResult:
        while not self.done:
            self.step()
        return self.result()

    def _initialize(self):
        self.error = self.stats.calculate_error(self.area)
        self.initial_error = self.error
        self.min_error = self.error
        self.best_population = self.context.world.snapshot(self.area)
        self.history = [self.error]
        if self.config.time_limit is not None:
            self._deadline = self.clock() + self.config.time_limit

        if self.error <= self.config.error_margin:
            self._finish(AnnealingState.CONVERGED, STOP_CONVERGED)
        elif self.config.max_temperature < 1:
            self._finish(AnnealingState.EXHAUSTED, STOP_SCHEDULE)
        else:
            self.step_index = self.config.max_temperature
            self.state = AnnealingState.COOLING

    def _cool(self):
        self.temperature = self.config.temperature(self.step_index)
        self.attempt = 0
        self.temperature_steps += 1
        self.state = AnnealingState.SWAPPING

    def _swap_or_advance(self):
        if self.error <= self.config.error_margin:
            self._finish(AnnealingState.CONVERGED, STOP_CONVERGED)
        elif self.attempt >= self.config.max_runs:
            self.step_index -= 1
            if self.step_index < 1:
                self._finish(AnnealingState.EXHAUSTED, STOP_SCHEDULE)
            else:
                self.state = AnnealingState.COOLING
        elif self.config.max_swaps is not None and self.swaps_attempted >= self.config.max_swaps:
            self._finish(AnnealingState.EXHAUSTED, STOP_SWAP_CAP)
        elif self._deadline is not None and self.clock() >= self._deadline:
            self._finish(AnnealingState.EXHAUSTED, STOP_DEADLINE)
        else:
            self.attempt_swap()
            self.attempt += 1

    def attempt_swap(self) -> SwapOutcome:
        """
        Replace one random member with a fresh draw and keep or undo the change.

        Returns:
            SwapOutcome describing the attempt
        """
        population = self.context.world.population(self.area)
        index = int(self.rng.random() * len(population))
        removed = population.pop(index)
        added = self.context.pool.draw_random(self.rng)
        population.append(added)

        old_error = self.error
        new_error = self.stats.calculate_error(self.area)
        accepted = metropolis_accept(old_error, new_error, self.temperature, self.rng)

        if accepted:
            self.error = new_error
            self.swaps_accepted += 1
            if self.error < self.min_error:
                self.min_error = self.error
                self.best_population = self.context.world.snapshot(self.area)
        else:
            population.pop()
            population.insert(index, removed)
            self.stats.rebuild_current(self.area)

        self.swaps_attempted += 1
        self.history.append(self.error)

        return SwapOutcome(
            index=index,
            removed=removed,
            added=added,
            old_error=old_error,
            new_error=new_error,
            accepted=accepted
        )

    def _finish(self, state: AnnealingState, reason: str):
        if self.error > self.min_error:
            self.context.world.replace(self.area, self.best_population)
            self.error = self.min_error
            self.restored_best = True
        self.stats.rebuild_current(self.area)
        self.stop_reason = reason
        self.state = state

    def result(self) -> AreaResult:
        if not self.done:
            raise RuntimeError(f"Area {self.area} search has not finished (state: {self.state.value})")
        return AreaResult(
            area=self.area,
            area_id=self.context.target.get_id(self.area),
            initial_error=self.initial_error,
            final_error=self.error,
            min_error=self.min_error,
            swaps_attempted=self.swaps_attempted,
            swaps_accepted=self.swaps_accepted,
            temperature_steps=self.temperature_steps,
            stop_reason=self.stop_reason,
            restored_best=self.restored_best,
            error_history=list(self.history)
        )


@dataclass
class RedistributionResult:
    """
    Result of a full redistribution run.

    Attributes:
        area_results: One AreaResult per area, in table order
        seed: Seed the run's random streams were derived from
        config: Annealing parameters used
        starting_counts: Current counts right after the random fill
        elapsed_seconds: Wall time spent optimizing
    """
    area_results: List[AreaResult]
    seed: int
    config: AnnealingConfig
    starting_counts: AttributeTable
    elapsed_seconds: float = 0.0

    def total_initial_error(self) -> int:
        return sum(r.initial_error for r in self.area_results)

    def total_final_error(self) -> int:
        return sum(r.final_error for r in self.area_results)

    def converged_areas(self) -> List[AreaResult]:
        return [r for r in self.area_results if r.converged]

    def unconverged_areas(self) -> List[AreaResult]:
        return [r for r in self.area_results if not r.converged]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'seed': self.seed,
            'annealing': self.config.to_dict(),
            'elapsed_seconds': round(self.elapsed_seconds, 6),
            'total_initial_error': self.total_initial_error(),
            'total_final_error': self.total_final_error(),
            'converged_areas': len(self.converged_areas()),
            'areas': [r.to_dict() for r in self.area_results],
        }


class AnnealingOptimizer:
    """
    Fills a run context's world at random and anneals each area in turn.

    One integer seed drives everything: it is expanded into a stream for
    the initial fill plus one independent stream per area, so an area's
    outcome does not depend on which areas were optimized before it.
    """

    def __init__(self,
                 context: RunContext,
                 config: Optional[AnnealingConfig] = None,
                 seed: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.context = context
        self.config = config or AnnealingConfig()
        self.clock = clock

        seed_sequence = np.random.SeedSequence(seed)
        self.seed = int(seed_sequence.entropy)
        streams = seed_sequence.spawn(context.num_areas() + 1)
        self._fill_rng = np.random.default_rng(streams[0])
        self._area_rngs = [np.random.default_rng(stream) for stream in streams[1:]]

    def initialize(self) -> WorldState:
        """
        Fill every area with random draws up to its target population.

        Returns:
            The new world (also stored on the context)
        """
        self.context.world = WorldState.random_fill(
            self.context.target, self.context.pool, self._fill_rng
        )
        StatisticsBuilder(self.context).rebuild_all()
        return self.context.world

    def area_annealer(self, area: int) -> AreaAnnealer:
        if self.context.world is None:
            self.initialize()
        return AreaAnnealer(self.context, area, self.config, self._area_rngs[area], clock=self.clock)

    def optimize_area(self, area: int) -> AreaResult:
        return self.area_annealer(area).run()

    def optimize(self, progress: Optional[Callable[[AreaResult], None]] = None) -> RedistributionResult:
        """
        Optimize every area in table order.

        Args:
            progress: Optional callback invoked with each finished AreaResult

        Returns:
            RedistributionResult for the whole run
        """
        if self.context.world is None:
            self.initialize()
        StatisticsBuilder(self.context).rebuild_all()
        starting_counts = self.context.current.copy()

        start_time = self.clock()
        area_results = []
        for area in range(self.context.num_areas()):
            area_result = self.optimize_area(area)
            area_results.append(area_result)
            if progress is not None:
                progress(area_result)

        return RedistributionResult(
            area_results=area_results,
            seed=self.seed,
            config=self.config,
            starting_counts=starting_counts,
            elapsed_seconds=self.clock() - start_time
        )


def redistribute(
    context: RunContext,
    config: Optional[AnnealingConfig] = None,
    seed: Optional[int] = None
) -> RedistributionResult:
    """Fill and optimize a run context in one call."""
    optimizer = AnnealingOptimizer(context, config, seed)
    optimizer.initialize()
    return optimizer.optimize()
