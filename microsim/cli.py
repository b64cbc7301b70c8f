"""
CLI module for area population redistribution.

Handles run configuration loading, validation, and dispatch to the run
workflow.
"""

from typing import Dict, Any, Optional
from pathlib import Path
import yaml

from .annealing import AnnealingConfig


class ConfigValidationError(Exception):
    """Raised when run configuration is invalid."""
    pass


def load_run_config(config_path: str) -> Dict[str, Any]:
    """
    Load run configuration from YAML file.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        Dictionary containing run configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if config is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration file must contain a mapping")

    return config


def validate_run_config(config: Dict[str, Any], check_paths: bool = True) -> None:
    """
    Validate run configuration structure.

    Args:
        config: Run configuration dictionary
        check_paths: If True, require the input files to exist

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    for section in ['input', 'output']:
        if section not in config:
            raise ConfigValidationError(f"Missing required field: '{section}'")
        if not isinstance(config[section], dict):
            raise ConfigValidationError(f"'{section}' must be a dictionary")

    # Input section
    for field in ['target_table', 'sample']:
        if field not in config['input']:
            raise ConfigValidationError(f"Missing required field: 'input.{field}'")
        if check_paths:
            path = Path(config['input'][field])
            if not path.exists():
                raise ConfigValidationError(f"Input file not found: {path}")
            if not path.is_file():
                raise ConfigValidationError(f"Input path is not a file: {path}")

    # Output section
    if 'path' not in config['output']:
        raise ConfigValidationError("Missing required field: 'output.path'")

    overwrite = config['output'].get('overwrite', False)
    if not isinstance(overwrite, bool):
        raise ConfigValidationError(f"'output.overwrite' must be true or false, got: {overwrite}")

    # Annealing section (optional)
    annealing = config.get('annealing', {})
    if annealing is not None and not isinstance(annealing, dict):
        raise ConfigValidationError("'annealing' must be a dictionary")
    try:
        AnnealingConfig.from_dict(annealing)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"Invalid annealing parameters: {e}")

    # Seed (optional)
    seed = config.get('random_seed')
    if seed is not None and seed != "random":
        if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
            raise ConfigValidationError(
                f"'random_seed' must be a non-negative integer, null or 'random', got: {seed}"
            )


def get_annealing_config(config: Dict[str, Any]) -> AnnealingConfig:
    """Annealing parameters from a validated run configuration."""
    return AnnealingConfig.from_dict(config.get('annealing'))


def apply_overrides(
    config: Dict[str, Any],
    seed: Optional[int] = None,
    overwrite: Optional[bool] = None
) -> Dict[str, Any]:
    """Return a copy of ``config`` with command-line overrides applied."""
    config = dict(config)
    if seed is not None:
        config['random_seed'] = seed
    if overwrite is not None and isinstance(config.get('output'), dict):
        config['output'] = dict(config['output'], overwrite=overwrite)
    return config


def run_from_config(
    config_path: str,
    seed: Optional[int] = None,
    overwrite: Optional[bool] = None
):
    """
    Load run configuration and execute the redistribution.

    This is the main entry point called by redistribute_cli.py.

    Args:
        config_path: Path to run configuration YAML file
        seed: If given, replaces 'random_seed' from the file
        overwrite: If given, replaces 'output.overwrite' from the file

    Returns:
        RedistributionResult of the run

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
        Various exceptions from loading input files
    """
    print(f"Loading configuration from: {config_path}")
    config = apply_overrides(load_run_config(config_path), seed=seed, overwrite=overwrite)

    print("Validating configuration...")
    validate_run_config(config)

    from .orchestration import run_redistribution
    result = run_redistribution(config)

    print("\n✅ Run completed successfully!")
    return result
