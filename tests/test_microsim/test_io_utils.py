"""
Tests for I/O utilities and reporting.

Tests CSV parsing of target tables and samples, assignment output, YAML
sidecars, and assignment records.
"""

import unittest
import tempfile
import shutil
from pathlib import Path

import numpy as np

from microsim.data_models import (
    Individual,
    SamplePool,
    AttributeTable,
    WorldState,
    RunContext,
    EmptySampleError,
    EmptyAreaSetError,
)
from microsim.io_utils import (
    ParseError,
    load_target_table,
    load_sample_pool,
    save_assignments,
    load_assignments,
    load_config,
    save_metadata,
    validate_csv_format,
)
from microsim.annealing import AnnealingConfig, redistribute
from microsim.statistics import StatisticsBuilder
from microsim.reporting import (
    AssignmentRecord,
    build_assignment_records,
    counts_from_records,
    format_redistribution_report,
    summarize_errors,
)


class TestIOUtils(unittest.TestCase):
    """Test I/O utility functions."""

    def setUp(self):
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)

    def tearDown(self):
        """Clean up temporary directory."""
        shutil.rmtree(self.temp_dir)

    def write(self, name, text):
        path = self.temp_path / name
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_load_target_table(self):
        """Test header is skipped and every data row is kept."""
        path = self.write("areas.csv", "EDName,Females,Males\nE1,10,12\nE2, 7 ,9\n\nE3,0,0")

        table = load_target_table(path)

        self.assertEqual(table.num_areas(), 3)
        self.assertEqual(table.ids, ["E1", "E2", "E3"])
        self.assertEqual(table.row(1), (7, 9))
        self.assertEqual(table.row(2), (0, 0))

    def test_load_target_table_non_numeric(self):
        path = self.write("areas.csv", "EDName,Females,Males\nE1,ten,12\n")
        with self.assertRaises(ParseError) as ctx:
            load_target_table(path)
        self.assertIn(":2:", str(ctx.exception))

    def test_load_target_table_wrong_columns(self):
        path = self.write("areas.csv", "EDName,Females,Males\nE1,10\n")
        with self.assertRaises(ParseError):
            load_target_table(path)

    def test_load_target_table_negative_count(self):
        path = self.write("areas.csv", "EDName,Females,Males\nE1,-1,3\n")
        with self.assertRaises(ParseError):
            load_target_table(path)

    def test_load_target_table_duplicate_id(self):
        """Test a repeated area id is rejected instead of merged."""
        path = self.write("areas.csv", "EDName,Females,Males\nE1,1,2\nE2,3,4\nE1,5,6\n")
        with self.assertRaises(ParseError) as ctx:
            load_target_table(path)
        self.assertIn(":4:", str(ctx.exception))
        self.assertIn("line 2", str(ctx.exception))

    def test_load_target_table_header_only(self):
        path = self.write("areas.csv", "EDName,Females,Males\n")
        with self.assertRaises(EmptyAreaSetError):
            load_target_table(path)

    def test_load_target_table_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_target_table(self.temp_path / "missing.csv")

    def test_load_sample_pool(self):
        path = self.write("people.csv", "PersonID,Sex\nP1,0\nP2,1\nP3,1\n")

        pool = load_sample_pool(path)

        self.assertEqual(pool.size(), 3)
        self.assertEqual(pool.get(0), Individual("P1", 0))
        self.assertEqual(pool.count_value(1), 2)

    def test_load_sample_pool_bad_value(self):
        path = self.write("people.csv", "PersonID,Sex\nP1,2\n")
        with self.assertRaises(ParseError):
            load_sample_pool(path)

    def test_load_sample_pool_empty(self):
        path = self.write("people.csv", "PersonID,Sex\n")
        with self.assertRaises(EmptySampleError):
            load_sample_pool(path)

    def test_save_assignments_format(self):
        records = [
            AssignmentRecord("E1", "P1", 0),
            AssignmentRecord("E1", "P2", 1),
            AssignmentRecord("E2", "P1", 0),
        ]
        output_path = self.temp_path / "out" / "assignments.csv"

        save_assignments(records, output_path)

        with open(output_path) as f:
            lines = f.read().splitlines()
        self.assertEqual(lines, ["Area,Person,Value", "E1,P1,0", "E1,P2,1", "E2,P1,0"])
        self.assertEqual(load_assignments(output_path), records)

    def test_save_assignments_overwrite_protection(self):
        output_path = self.temp_path / "existing.csv"
        output_path.touch()

        with self.assertRaises(FileExistsError):
            save_assignments([], output_path, overwrite=False)

        save_assignments([], output_path, overwrite=True)

    def test_yaml_round_trip(self):
        path = save_metadata({'seed': 3, 'areas': [{'area': 0}]}, self.temp_path / "summary.yaml")
        loaded = load_config(path)
        self.assertEqual(loaded['seed'], 3)
        self.assertIn('saved_at', loaded)

    def test_load_config_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_config(self.temp_path / "nope.yaml")

    def test_validate_csv_format(self):
        good = self.write("good.csv", "a,b,c\nE1,1,2\n")
        bad = self.write("bad.csv", "a,b,c\nE1,x,2\n")
        empty = self.write("empty.csv", "a,b,c\n")

        self.assertEqual(validate_csv_format(good, 3), (True, None))
        self.assertFalse(validate_csv_format(bad, 3)[0])
        self.assertFalse(validate_csv_format(empty, 3)[0])
        self.assertFalse(validate_csv_format(good, 2)[0])
        self.assertFalse(validate_csv_format(self.temp_path / "missing.csv", 3)[0])


class TestReporting(unittest.TestCase):
    """Test assignment records and reports."""

    def setUp(self):
        self.a = Individual("A", 0)
        self.b = Individual("B", 1)
        self.target = AttributeTable.from_rows([("E1", 1, 2), ("E2", 0, 0), ("E3", 2, 0)])
        self.world = WorldState([[self.b, self.a, self.b], [], [self.a, self.a]])

    def test_records_follow_table_and_population_order(self):
        records = build_assignment_records(self.world, self.target)

        self.assertEqual(
            [r.to_row() for r in records],
            [["E1", "B", 1], ["E1", "A", 0], ["E1", "B", 1], ["E3", "A", 0], ["E3", "A", 0]]
        )
        self.assertEqual(records[0].to_dict(), {'Area': "E1", 'Person': "B", 'Value': 1})

    def test_area_count_mismatch(self):
        with self.assertRaises(ValueError):
            build_assignment_records(WorldState([[]]), self.target)

    def test_counts_round_trip(self):
        """Test counts from records match counts rebuilt from the world."""
        people = [Individual(f"P{i}", i % 2) for i in range(7)]
        context = RunContext(
            pool=SamplePool(people),
            target=AttributeTable.from_rows([("E1", 5, 8), ("E2", 0, 0), ("E3", 9, 1)])
        )
        redistribute(context, AnnealingConfig(), seed=21)
        StatisticsBuilder(context).rebuild_all()

        records = build_assignment_records(context.world, context.target)
        from_records = counts_from_records(records, context.target)

        np.testing.assert_array_equal(from_records.values, context.current.values)

    def test_counts_from_records_unknown_area(self):
        with self.assertRaises(KeyError):
            counts_from_records([AssignmentRecord("NOPE", "A", 0)], self.target)

    def test_report_text(self):
        people = [Individual("A", 0), Individual("C", 0)]
        context = RunContext(pool=SamplePool(people), target=AttributeTable.from_rows([("X", 0, 5), ("Y", 2, 0)]))
        result = redistribute(context, AnnealingConfig(), seed=2)

        report = format_redistribution_report(result, context.target, context.current)

        self.assertIn("AREA REDISTRIBUTION REPORT", report)
        self.assertIn("Random seed: 2", report)
        self.assertIn("STARTING CONDITIONS:", report)
        self.assertIn("Area X: error 10", report)
        self.assertNotIn("Area Y: error", report)

        stats = summarize_errors(result)
        self.assertEqual(stats['max_final_error'], 10)
        self.assertEqual(stats['areas_with_residual'], 1)


if __name__ == '__main__':
    unittest.main()
