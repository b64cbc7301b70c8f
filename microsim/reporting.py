"""
Reporting for area population redistribution.

Flattens the final world into area/person assignment records and produces
human-readable summaries of a run.
"""

from dataclasses import dataclass
from typing import Dict, List, Any, Iterable, Optional

from .data_models import AttributeTable, WorldState


OUTPUT_HEADER = ['Area', 'Person', 'Value']


@dataclass(frozen=True)
class AssignmentRecord:
    """One synthesized person placed in one area."""
    area_id: str
    individual_id: str
    individual_value: int

    def to_row(self) -> list:
        return [self.area_id, self.individual_id, self.individual_value]

    def to_dict(self) -> Dict[str, Any]:
        return dict(zip(OUTPUT_HEADER, self.to_row()))


def build_assignment_records(world: WorldState, table: AttributeTable) -> List[AssignmentRecord]:
    """
    Flatten a world into assignment records.

    Areas come in table order and members in their final population order.

    Args:
        world: Final synthetic world
        table: Table providing the area ids (normally the target table)

    Returns:
        List of AssignmentRecord
    """
    if world.num_areas() != table.num_areas():
        raise ValueError(
            f"World has {world.num_areas()} areas but table has {table.num_areas()}"
        )

    records = []
    for area in range(world.num_areas()):
        area_id = table.get_id(area)
        for person in world.population(area):
            records.append(AssignmentRecord(
                area_id=area_id,
                individual_id=person.id,
                individual_value=person.value
            ))
    return records


def counts_from_records(records: Iterable[AssignmentRecord], table: AttributeTable) -> AttributeTable:
    """
    Count attribute values per area from assignment records.

    Args:
        records: Assignment records
        table: Table whose ids define the area order

    Returns:
        New AttributeTable with the same ids as ``table``

    Raises:
        KeyError: If a record names an area not in ``table``
    """
    counts = AttributeTable.zeros(table.num_areas(), table.ids)
    index = {area_id: area for area, area_id in enumerate(table.ids)}
    for record in records:
        if record.area_id not in index:
            raise KeyError(f"Unknown area in records: {record.area_id!r}")
        counts.increment(index[record.area_id], record.individual_value)
    return counts


def format_conditions(target: AttributeTable, current: AttributeTable, title: str) -> str:
    """One line per area comparing current counts with the target."""
    lines = [title]
    for area in range(target.num_areas()):
        lines.append(f"  {current.row_to_string(area)} Target {target.row_to_string(area)}")
    return "\n".join(lines)


def format_redistribution_report(
    result,
    target: AttributeTable,
    current: AttributeTable,
    detailed: bool = True
) -> str:
    """
    Generate a human-readable report for a redistribution run.

    Args:
        result: RedistributionResult from the optimizer
        target: Target table
        current: Current table after optimization
        detailed: If True, include per-area starting and final conditions

    Returns:
        Report text
    """
    lines = []
    lines.append("=" * 60)
    lines.append("AREA REDISTRIBUTION REPORT")
    lines.append("=" * 60)
    lines.append(f"Random seed: {result.seed}")
    lines.append(f"Areas: {target.num_areas()}")
    lines.append(f"Converged areas: {len(result.converged_areas())}/{len(result.area_results)}")
    lines.append(f"Total error: {result.total_initial_error()} -> {result.total_final_error()}")
    lines.append(f"Elapsed: {result.elapsed_seconds:.3f} seconds")
    lines.append("")

    if detailed:
        lines.append(format_conditions(target, result.starting_counts, "STARTING CONDITIONS:"))
        lines.append("")
        lines.append(format_conditions(target, current, "FINAL CONDITIONS:"))
        lines.append("")

    unconverged = result.unconverged_areas()
    if unconverged:
        lines.append("RESIDUAL ERROR:")
        for area_result in unconverged:
            lines.append(
                f"  - Area {area_result.area_id}: error {area_result.final_error} "
                f"after {area_result.swaps_attempted} swaps ({area_result.stop_reason})"
            )
    else:
        lines.append("FIT: All areas within error margin")

    lines.append("=" * 60)

    return "\n".join(lines)


def summarize_errors(result) -> Optional[Dict[str, float]]:
    """Simple error statistics over areas, or None for an empty result."""
    if not result.area_results:
        return None
    finals = [r.final_error for r in result.area_results]
    return {
        'mean_final_error': sum(finals) / len(finals),
        'max_final_error': max(finals),
        'areas_with_residual': sum(1 for e in finals if e > 0),
    }
