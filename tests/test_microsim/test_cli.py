"""
Tests for run configuration handling and the end-to-end run.
"""

import unittest
import tempfile
import shutil
import contextlib
import io
from pathlib import Path

import yaml

from microsim.cli import (
    ConfigValidationError,
    load_run_config,
    validate_run_config,
    get_annealing_config,
    run_from_config,
    apply_overrides,
)
from microsim.orchestration import resolve_seed
from microsim.io_utils import load_assignments, load_config, load_target_table
from microsim.reporting import counts_from_records


class TestRunConfig(unittest.TestCase):
    """Test configuration loading and validation."""

    def setUp(self):
        """Create temporary directory with input files."""
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)

        self.target_path = self.temp_path / "areas.csv"
        with open(self.target_path, 'w') as f:
            f.write("EDName,Females,Males\nE1,3,2\nE2,0,0\nE3,1,4\n")

        self.sample_path = self.temp_path / "people.csv"
        with open(self.sample_path, 'w') as f:
            f.write("PersonID,Sex\nP1,0\nP2,1\nP3,0\n")

        self.config = {
            'input': {
                'target_table': str(self.target_path),
                'sample': str(self.sample_path),
            },
            'output': {
                'path': str(self.temp_path / "out" / "assignments.csv"),
            },
            'annealing': {'max_runs': 10},
            'random_seed': 7,
        }

    def tearDown(self):
        """Clean up temporary directory."""
        shutil.rmtree(self.temp_dir)

    def write_config(self, config):
        path = self.temp_path / "run.yaml"
        with open(path, 'w') as f:
            yaml.safe_dump(config, f)
        return path

    def test_valid_config(self):
        validate_run_config(self.config)
        self.assertEqual(get_annealing_config(self.config).max_runs, 10)

    def test_missing_sections(self):
        for section in ['input', 'output']:
            config = dict(self.config)
            del config[section]
            with self.assertRaises(ConfigValidationError):
                validate_run_config(config)

    def test_missing_input_file(self):
        self.config['input']['sample'] = str(self.temp_path / "missing.csv")
        with self.assertRaises(ConfigValidationError):
            validate_run_config(self.config)
        validate_run_config(self.config, check_paths=False)

    def test_missing_output_path(self):
        self.config['output'] = {}
        with self.assertRaises(ConfigValidationError):
            validate_run_config(self.config)

    def test_invalid_annealing(self):
        self.config['annealing'] = {'max_temperature': -3}
        with self.assertRaises(ConfigValidationError):
            validate_run_config(self.config)

        self.config['annealing'] = {'cooling': 'fast'}
        with self.assertRaises(ConfigValidationError):
            validate_run_config(self.config)

    def test_invalid_seed(self):
        self.config['random_seed'] = "abc"
        with self.assertRaises(ConfigValidationError):
            validate_run_config(self.config)

        self.config['random_seed'] = "random"
        validate_run_config(self.config)

    def test_load_run_config_empty(self):
        path = self.temp_path / "empty.yaml"
        path.touch()
        with self.assertRaises(ConfigValidationError):
            load_run_config(str(path))

    def test_load_run_config_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_run_config(str(self.temp_path / "missing.yaml"))

    def test_resolve_seed(self):
        self.assertEqual(resolve_seed(5), 5)
        self.assertIsInstance(resolve_seed(None), int)
        self.assertIsInstance(resolve_seed("random"), int)

    def test_run_from_config(self):
        """Test a full run writes assignments matching the target populations."""
        self.config['output']['summary'] = str(self.temp_path / "out" / "summary.yaml")
        config_path = self.write_config(self.config)

        with contextlib.redirect_stdout(io.StringIO()):
            result = run_from_config(str(config_path))

        records = load_assignments(self.config['output']['path'])
        target = load_target_table(self.target_path)
        counts = counts_from_records(records, target)

        self.assertEqual(len(records), 10)
        for area in range(target.num_areas()):
            self.assertEqual(sum(counts.row(area)), target.total_population(area))
        self.assertEqual(len(result.area_results), 3)
        self.assertEqual(result.seed, 7)

        summary = load_config(self.config['output']['summary'])
        self.assertEqual(summary['seed'], 7)
        self.assertEqual(len(summary['areas']), 3)
        self.assertEqual(summary['total_final_error'], result.total_final_error())

    def test_run_is_reproducible(self):
        outputs = []
        for name in ("first.csv", "second.csv"):
            self.config['output']['path'] = str(self.temp_path / name)
            config_path = self.write_config(self.config)
            with contextlib.redirect_stdout(io.StringIO()):
                run_from_config(str(config_path))
            with open(self.temp_path / name) as f:
                outputs.append(f.read())

        self.assertEqual(outputs[0], outputs[1])

    def test_run_refuses_existing_output(self):
        output_path = Path(self.config['output']['path'])
        output_path.parent.mkdir(parents=True)
        output_path.touch()
        config_path = self.write_config(self.config)

        with contextlib.redirect_stdout(io.StringIO()):
            with self.assertRaises(FileExistsError):
                run_from_config(str(config_path))

    def test_run_refuses_existing_summary_before_writing(self):
        """Test an existing summary stops the run before any assignments are written."""
        summary_path = self.temp_path / "summary.yaml"
        summary_path.write_text("seed: 1\n")
        self.config['output']['summary'] = str(summary_path)
        config_path = self.write_config(self.config)

        with contextlib.redirect_stdout(io.StringIO()):
            with self.assertRaises(FileExistsError):
                run_from_config(str(config_path))

        self.assertFalse(Path(self.config['output']['path']).exists())
        self.assertEqual(summary_path.read_text(), "seed: 1\n")

    def test_run_refuses_existing_plot_before_writing(self):
        plot_path = self.temp_path / "fit.png"
        plot_path.touch()
        self.config['output']['plot'] = str(plot_path)
        config_path = self.write_config(self.config)

        with contextlib.redirect_stdout(io.StringIO()):
            with self.assertRaises(FileExistsError):
                run_from_config(str(config_path))

        self.assertFalse(Path(self.config['output']['path']).exists())

    def test_overwrite_replaces_all_outputs(self):
        summary_path = self.temp_path / "summary.yaml"
        summary_path.write_text("seed: 1\n")
        self.config['output']['summary'] = str(summary_path)
        config_path = self.write_config(self.config)

        with contextlib.redirect_stdout(io.StringIO()):
            run_from_config(str(config_path), overwrite=True)

        self.assertTrue(Path(self.config['output']['path']).exists())
        self.assertEqual(load_config(summary_path)['seed'], 7)

    def test_apply_overrides(self):
        config = apply_overrides(self.config, seed=11, overwrite=True)
        self.assertEqual(config['random_seed'], 11)
        self.assertTrue(config['output']['overwrite'])
        self.assertEqual(self.config['random_seed'], 7)
        self.assertNotIn('overwrite', self.config['output'])

        self.assertEqual(apply_overrides(self.config), self.config)

    def test_seed_override(self):
        config_path = self.write_config(self.config)
        with contextlib.redirect_stdout(io.StringIO()):
            result = run_from_config(str(config_path), seed=123)
        self.assertEqual(result.seed, 123)

    def test_run_with_plot(self):
        plot_path = self.temp_path / "out" / "fit.png"
        self.config['output']['plot'] = str(plot_path)
        self.config['verbose'] = True
        config_path = self.write_config(self.config)

        buffer = io.StringIO()
        with contextlib.redirect_stdout(buffer):
            run_from_config(str(config_path))

        self.assertTrue(plot_path.exists())
        self.assertIn("Starting conditions:", buffer.getvalue())
        self.assertIn("Read people:\nP1 0\nP2 1\nP3 0\n", buffer.getvalue())


if __name__ == '__main__':
    unittest.main()
