"""
Ensemble configuration files: YAML in, validated EnsembleConfig out
"""
from pathlib import Path
from typing import Any, Union
import yaml
from pydantic import ValidationError
from rich.console import Console

from .schema import EnsembleConfig
from ..exceptions import ConfigurationError

console = Console()


def _describe(error: ValidationError) -> str:
    """One line per invalid option, addressed by its dotted path"""
    lines = []
    for err in error.errors():
        where = ".".join(str(part) for part in err["loc"]) or "<root>"
        lines.append(f"{where}: {err['msg']}")
    return "; ".join(lines)


def load_yaml(path: Union[str, Path]) -> dict:
    """Read a run file; an empty file means all defaults"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must hold a mapping of options, got {type(data).__name__}"
        )
    return data


def build_config(options: dict) -> EnsembleConfig:
    """
    Validate a mapping of run options

    Raises:
        ConfigurationError: Naming every invalid option
    """
    try:
        return EnsembleConfig(**options)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid ensemble configuration: {_describe(e)}") from e


def merge_overrides(config: EnsembleConfig, **overrides: Any) -> EnsembleConfig:
    """
    Revalidate a configuration with some top-level options replaced

    None values leave the configured option in place. Nested blocks
    (som, dbscan, prepare, output) are updated key by key.
    """
    options = config.model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(options.get(key), dict):
            options[key] = {**options[key], **value}
        else:
            options[key] = value
    return build_config(options)


def load_config(config_path: Union[str, Path]) -> EnsembleConfig:
    """
    Load and validate a run configuration from a YAML file

    Args:
        config_path: Path to config file

    Returns:
        Validated EnsembleConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If the file is unreadable or an option is invalid
    """
    config_path = Path(config_path)

    console.print(f"[dim]Loading config: {config_path}[/dim]")

    try:
        config = build_config(load_yaml(config_path))
    except ConfigurationError as e:
        console.print(f"[red]✗ Config validation failed:[/red] {e}")
        raise
    console.print(
        f"[green]✓[/green] Config validated: k in {config.nk}, {config.reps} subsample(s)"
    )
    return config


def save_config(config: EnsembleConfig, path: Union[str, Path]) -> None:
    """Write a configuration that load_config reads back unchanged"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]✓[/green] Config saved: {path}")
