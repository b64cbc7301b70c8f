"""
Data models for area population redistribution.

Core data structures: sampled individuals, the sample pool they are drawn
from, per-area attribute tables, the synthetic world and the run context
that ties them together.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Iterable

import numpy as np


class EmptySampleError(ValueError):
    """Raised when a sample pool holds no individuals."""
    pass


class EmptyAreaSetError(ValueError):
    """Raised when a target table holds no areas."""
    pass


@dataclass(frozen=True)
class Individual:
    """
    A sampled person carrying one binary attribute.

    Attributes:
        id: Identifier from the sample file
        value: Attribute value, 0 or 1 (selects the table column it counts towards)
    """
    id: str
    value: int

    def __post_init__(self):
        """Validate attribute value."""
        if self.value not in (0, 1):
            raise ValueError(f"Individual {self.id!r} value must be 0 or 1, got: {self.value!r}")


class SamplePool:
    """
    Read-only, ordered set of individuals to resample from.

    Individuals are drawn with replacement, so the same object can end up
    in several positions of several areas.
    """

    def __init__(self, individuals: Iterable[Individual]):
        self._individuals = tuple(individuals)
        if not self._individuals:
            raise EmptySampleError("Sample pool must contain at least one individual")

    def size(self) -> int:
        return len(self._individuals)

    def get(self, index: int) -> Individual:
        return self._individuals[index]

    def draw_random(self, rng: np.random.Generator) -> Individual:
        """
        Draw one individual uniformly at random.

        Args:
            rng: Random number generator

        Returns:
            Individual at position floor(u * size) for u uniform in [0, 1)
        """
        if not self._individuals:
            raise EmptySampleError("Cannot draw from an empty sample pool")
        position = int(rng.random() * len(self._individuals))
        return self._individuals[position]

    def count_value(self, value: int) -> int:
        """Number of individuals with the given attribute value."""
        return sum(1 for person in self._individuals if person.value == value)

    def __len__(self) -> int:
        return len(self._individuals)

    def __iter__(self):
        return iter(self._individuals)

    def __str__(self) -> str:
        lines = ["Read people:"]
        for person in self._individuals:
            lines.append(f"{person.id} {person.value}")
        return "\n".join(lines) + "\n"


class AttributeTable:
    """
    Two-column count table, one row per area.

    Used both for the target statistics read from file and for the current
    statistics of the synthetic world.
    """

    COLUMNS = (0, 1)

    def __init__(self, ids: Sequence[Optional[str]], values: np.ndarray):
        values = np.asarray(values, dtype=np.int64)
        if values.ndim != 2 or values.shape[1] != 2:
            raise ValueError(f"Table values must have shape (n, 2), got: {values.shape}")
        if len(ids) != values.shape[0]:
            raise ValueError(f"Got {len(ids)} ids for {values.shape[0]} rows")
        if (values < 0).any():
            raise ValueError("Table counts must be non-negative")
        self.ids = list(ids)
        self.values = values

    @classmethod
    def zeros(cls, size: int, ids: Optional[Sequence[str]] = None) -> "AttributeTable":
        """
        Create a table of the given size with all counts zeroed.

        Args:
            size: Number of rows/areas
            ids: Optional area ids (defaults to no ids)

        Returns:
            Zeroed AttributeTable
        """
        if ids is None:
            ids = [None] * size
        return cls(list(ids), np.zeros((size, 2), dtype=np.int64))

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, int, int]]) -> "AttributeTable":
        """
        Create a table from (area_id, count0, count1) rows.

        Raises:
            EmptyAreaSetError: If no rows are given
        """
        rows = list(rows)
        if not rows:
            raise EmptyAreaSetError("Target table must contain at least one area")
        ids = [row[0] for row in rows]
        values = np.array([[row[1], row[2]] for row in rows], dtype=np.int64)
        return cls(ids, values)

    def num_areas(self) -> int:
        return len(self.ids)

    def _check(self, area: int, col: Optional[int] = None):
        if not 0 <= area < len(self.ids):
            raise IndexError(f"Area index {area} out of range (0..{len(self.ids) - 1})")
        if col is not None and col not in self.COLUMNS:
            raise ValueError(f"Column must be 0 or 1, got: {col}")

    def total_population(self, area: int) -> int:
        self._check(area)
        return int(self.values[area, 0] + self.values[area, 1])

    def get(self, area: int, col: int) -> int:
        self._check(area, col)
        return int(self.values[area, col])

    def set(self, area: int, col: int, value: int):
        self._check(area, col)
        if value < 0:
            raise ValueError(f"Counts must be non-negative, got: {value}")
        self.values[area, col] = value

    def increment(self, area: int, col: int):
        self._check(area, col)
        self.values[area, col] += 1

    def get_id(self, area: int) -> Optional[str]:
        self._check(area)
        return self.ids[area]

    def row(self, area: int) -> tuple[int, int]:
        self._check(area)
        return int(self.values[area, 0]), int(self.values[area, 1])

    def copy(self) -> "AttributeTable":
        return AttributeTable(list(self.ids), self.values.copy())

    def row_to_string(self, area: int) -> str:
        """Text summary of one row."""
        count0, count1 = self.row(area)
        prefix = f"Area {self.ids[area]} " if self.ids[area] is not None else ""
        return f"{prefix}Value0 {count0} Value1 {count1}"

    def __len__(self) -> int:
        return len(self.ids)

    def __str__(self) -> str:
        lines = ["Read table:"]
        for area in range(len(self.ids)):
            count0, count1 = self.row(area)
            lines.append(f"{self.ids[area]} {count0} {count1}")
        return "\n".join(lines) + "\n"


class WorldState:
    """
    Synthetic world: for each area, an ordered list of individual references.

    Individuals are shared with the sample pool, never copied. The length of
    each area's list is fixed once the world is filled; optimization only
    replaces members.
    """

    def __init__(self, populations: Sequence[list[Individual]]):
        self._populations = [list(members) for members in populations]

    @classmethod
    def random_fill(
        cls,
        target: AttributeTable,
        pool: SamplePool,
        rng: np.random.Generator
    ) -> "WorldState":
        """
        Fill every area with random draws up to its target total population.

        Args:
            target: Target table giving each area's total population
            pool: Sample pool to draw from
            rng: Random number generator

        Returns:
            New WorldState
        """
        populations = []
        for area in range(target.num_areas()):
            populations.append([
                pool.draw_random(rng) for _ in range(target.total_population(area))
            ])
        return cls(populations)

    def num_areas(self) -> int:
        return len(self._populations)

    def population(self, area: int) -> list[Individual]:
        """Live population list of an area (mutations are visible to the world)."""
        return self._populations[area]

    def population_size(self, area: int) -> int:
        return len(self._populations[area])

    def snapshot(self, area: int) -> list[Individual]:
        """Structural copy of an area's population."""
        return list(self._populations[area])

    def replace(self, area: int, members: Sequence[Individual]):
        """Replace an area's population with a copy of ``members``."""
        self._populations[area] = list(members)

    def __len__(self) -> int:
        return len(self._populations)

    def __eq__(self, other) -> bool:
        if not isinstance(other, WorldState):
            return NotImplemented
        return self._populations == other._populations


@dataclass
class RunContext:
    """
    Everything one redistribution run operates on.

    Attributes:
        pool: Sample pool (read-only)
        target: Target table (read-only)
        current: Current statistics, rebuilt from the world on demand
        world: Synthetic world (None until filled)
        metadata: Additional information (source files, seed, timestamps)
    """
    pool: SamplePool
    target: AttributeTable
    current: Optional[AttributeTable] = None
    world: Optional[WorldState] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate inputs and allocate the current table."""
        if self.target.num_areas() == 0:
            raise EmptyAreaSetError("Target table must contain at least one area")
        if self.current is None:
            self.current = AttributeTable.zeros(self.target.num_areas(), self.target.ids)

    def num_areas(self) -> int:
        return self.target.num_areas()
