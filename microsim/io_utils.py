"""
I/O utilities for area population redistribution.

Handles CSV parsing of the target table and the sample, writing of the
area/person assignment file, and YAML config/summary files.
"""

import csv
from pathlib import Path
from typing import Optional, Union, Iterable
from datetime import datetime
import yaml

from .data_models import (
    AttributeTable,
    Individual,
    SamplePool,
    EmptyAreaSetError,
    EmptySampleError,
)
from .reporting import AssignmentRecord, OUTPUT_HEADER


class ParseError(ValueError):
    """Raised when an input row is malformed or non-numeric."""
    pass


def _read_data_rows(csv_path: Path) -> Iterable[tuple[int, list[str]]]:
    """
    Yield (line_number, fields) for every non-blank row after the header.

    Fields are stripped of surrounding whitespace.
    """
    with open(csv_path, 'r', newline='') as f:
        reader = csv.reader(f)
        header_seen = False
        for row in reader:
            fields = [value.strip() for value in row]
            if not any(fields):
                continue
            if not header_seen:
                header_seen = True
                continue
            yield reader.line_num, fields


def _parse_int(value: str, csv_path: Path, line_number: int, column: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"{csv_path}:{line_number}: {column} is not an integer: {value!r}")


def load_target_table(csv_path: Union[str, Path]) -> AttributeTable:
    """
    Load a table of area statistics to replicate.

    CSV format:
        AreaID,Value0Count,Value1Count
        E0001,10,12
        E0002,7,9
        ...

    Args:
        csv_path: Path to CSV file

    Returns:
        AttributeTable with one row per area, in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ParseError: If a row is malformed or repeats an area id
        EmptyAreaSetError: If the file holds no areas
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"Target table not found: {csv_path}")

    rows = []
    seen = {}
    for line_number, fields in _read_data_rows(csv_path):
        if len(fields) != 3:
            raise ParseError(
                f"{csv_path}:{line_number}: expected 3 columns (AreaID,Value0Count,Value1Count), "
                f"got {len(fields)}"
            )
        area_id = fields[0]
        if area_id in seen:
            raise ParseError(
                f"{csv_path}:{line_number}: duplicate area id {area_id!r} (first seen on line {seen[area_id]})"
            )
        seen[area_id] = line_number
        count0 = _parse_int(fields[1], csv_path, line_number, "Value0Count")
        count1 = _parse_int(fields[2], csv_path, line_number, "Value1Count")
        if count0 < 0 or count1 < 0:
            raise ParseError(f"{csv_path}:{line_number}: counts must be non-negative")
        rows.append((area_id, count0, count1))

    if not rows:
        raise EmptyAreaSetError(f"No areas found in target table: {csv_path}")

    return AttributeTable.from_rows(rows)


def load_sample_pool(csv_path: Union[str, Path]) -> SamplePool:
    """
    Load the sample of individuals to draw from.

    CSV format:
        PersonID,Value
        P001,0
        P002,1
        ...

    Args:
        csv_path: Path to CSV file

    Returns:
        SamplePool in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ParseError: If a row is malformed or a value is not 0/1
        EmptySampleError: If the file holds no individuals
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"Sample file not found: {csv_path}")

    people = []
    for line_number, fields in _read_data_rows(csv_path):
        if len(fields) != 2:
            raise ParseError(
                f"{csv_path}:{line_number}: expected 2 columns (PersonID,Value), got {len(fields)}"
            )
        value = _parse_int(fields[1], csv_path, line_number, "Value")
        if value not in (0, 1):
            raise ParseError(f"{csv_path}:{line_number}: Value must be 0 or 1, got {value}")
        people.append(Individual(id=fields[0], value=value))

    if not people:
        raise EmptySampleError(f"No individuals found in sample file: {csv_path}")

    return SamplePool(people)


def save_assignments(
    records: Iterable[AssignmentRecord],
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Write area/person assignments to CSV.

    The file has the header ``Area,Person,Value`` followed by one line per
    record, in the order given.

    Args:
        records: Assignment records
        output_path: Path for output CSV
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved CSV file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Output file already exists: {output_path}")

    # Create parent directory if needed
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f, lineterminator='\n')
        writer.writerow(OUTPUT_HEADER)
        for record in records:
            writer.writerow(record.to_row())

    return output_path


def load_assignments(csv_path: Union[str, Path]) -> list[AssignmentRecord]:
    """
    Read an assignment file written by ``save_assignments``.

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ParseError: If a row is malformed
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"Assignment file not found: {csv_path}")

    records = []
    for line_number, fields in _read_data_rows(csv_path):
        if len(fields) != 3:
            raise ParseError(f"{csv_path}:{line_number}: expected 3 columns (Area,Person,Value)")
        value = _parse_int(fields[2], csv_path, line_number, "Value")
        records.append(AssignmentRecord(area_id=fields[0], individual_id=fields[1], individual_value=value))

    return records


def load_config(config_path: Union[str, Path]) -> dict:
    """
    Load a YAML file into a dictionary.

    Args:
        config_path: Path to YAML file

    Returns:
        Configuration dictionary (empty if the file is empty)

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    return config or {}


def save_metadata(
    metadata: dict,
    output_path: Union[str, Path],
    overwrite: bool = False
) -> Path:
    """
    Save run metadata to a YAML sidecar file.

    Args:
        metadata: Metadata dictionary
        output_path: Path for output YAML
        overwrite: If True, overwrite existing file

    Returns:
        Path to saved metadata file

    Raises:
        FileExistsError: If file exists and overwrite=False
    """
    output_path = Path(output_path)

    if output_path.exists() and not overwrite:
        raise FileExistsError(f"Metadata file already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    metadata = dict(metadata)
    metadata.setdefault('saved_at', datetime.now().isoformat())

    with open(output_path, 'w') as f:
        yaml.safe_dump(metadata, f, default_flow_style=False, sort_keys=False)

    return output_path


def validate_csv_format(csv_path: Union[str, Path], columns: int) -> tuple[bool, Optional[str]]:
    """
    Check that a CSV file has a header and at least one row of ``columns`` fields.

    Args:
        csv_path: Path to CSV file
        columns: Expected number of fields per data row

    Returns:
        Tuple of (is_valid, error_message)
    """
    csv_path = Path(csv_path)

    if not csv_path.exists():
        return False, f"File not found: {csv_path}"

    try:
        row_count = 0
        for line_number, fields in _read_data_rows(csv_path):
            row_count += 1
            if len(fields) != columns:
                return False, f"Line {line_number}: expected {columns} columns, got {len(fields)}"
            for value in fields[1:]:
                try:
                    int(value)
                except ValueError:
                    return False, f"Line {line_number}: non-integer value {value!r}"

        if row_count == 0:
            return False, "CSV file is empty (no data rows)"

        return True, None

    except (OSError, UnicodeDecodeError, csv.Error) as e:
        return False, f"Error reading CSV: {e}"
