"""
Statistics builder.

Recomputes an area's current counts from its synthetic population and
measures how far they are from the target counts.
"""

from .data_models import RunContext, AttributeTable, WorldState


def rebuild_area_counts(world: WorldState, table: AttributeTable, area: int) -> None:
    """
    Zero one row of ``table`` and recount it from the area's population.

    Args:
        world: Synthetic world
        table: Table to write counts into
        area: Area index
    """
    table.set(area, 0, 0)
    table.set(area, 1, 0)
    for person in world.population(area):
        table.increment(area, person.value)


def l1_error(target: AttributeTable, current: AttributeTable, area: int) -> int:
    """
    Absolute difference summed over both columns of one area.

    If the target has 10 and 12 and the area currently has 5 and 17, the
    error is 10.
    """
    return (
        abs(target.get(area, 0) - current.get(area, 0))
        + abs(target.get(area, 1) - current.get(area, 1))
    )


class StatisticsBuilder:
    """Keeps a run context's current table in step with its world."""

    def __init__(self, context: RunContext):
        if context.world is None:
            raise ValueError("Run context has no world to build statistics from")
        self.context = context

    def rebuild_current(self, area: int) -> None:
        rebuild_area_counts(self.context.world, self.context.current, area)

    def rebuild_all(self) -> None:
        for area in range(self.context.num_areas()):
            self.rebuild_current(area)

    def calculate_error(self, area: int) -> int:
        """
        Rebuild the area's current counts and return their L1 distance to the target.

        Args:
            area: Area index

        Returns:
            Non-negative integer error
        """
        self.rebuild_current(area)
        return l1_error(self.context.target, self.context.current, area)

    def total_error(self) -> int:
        """Sum of errors over all areas (rebuilds every area)."""
        return sum(self.calculate_error(area) for area in range(self.context.num_areas()))
