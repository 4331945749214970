"""
Command-line interface for consensus ensemble runs
"""
import logging
import typer
from pathlib import Path
from rich.console import Console
from rich.table import Table
from typing import Optional

app = typer.Typer(
    name="consensus-ensemble",
    help="Subsampling ensemble of clustering algorithms for consensus clustering",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


@app.command()
def run(
    data: Path = typer.Argument(..., help="Samples x variables matrix (csv, parquet, h5, feather)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the ensemble array to this .npz file instead of the config's output location",
    ),
    reps: Optional[int] = typer.Option(None, "--reps", help="Override the number of subsamples"),
    algorithms: Optional[str] = typer.Option(
        None,
        "--algorithms",
        help="Comma-separated algorithm names (default: config, or every built-in)",
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Display a progress bar"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log run details"),
):
    """Cluster subsamples of DATA with every configured algorithm."""
    from .config import EnsembleConfig, load_config, merge_overrides
    from .ensemble import ConsensusEnsemble
    from .exceptions import ConfigurationError
    from .utils import load_data, Timer

    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    console.print("[bold cyan]→ Running consensus ensemble[/bold cyan]")
    console.print(f"Data: {data}")

    try:
        if output is not None and output.suffix.lower() != ".npz":
            raise ConfigurationError(f"--output must name a .npz file, got '{output.name}'")

        cfg = load_config(config) if config else EnsembleConfig()
        cfg = merge_overrides(
            cfg,
            progress=progress,
            reps=reps,
            algorithms=[a.strip() for a in algorithms.split(",")] if algorithms else None,
            # --output takes the place of the configured save
            output={"save": False} if output is not None else None,
        )

        df = load_data(data)
        console.print(f"Samples: {df.shape[0]}, variables: {df.shape[1]}")

        with Timer("Consensus ensemble"):
            result = ConsensusEnsemble(cfg).run(df)

        console.print(f"Ensemble array: {result.shape}")
        if result.failures:
            console.print(f"[yellow]⚠ {len(result.failures)} clustering call(s) failed[/yellow]")
        if output is not None:
            result.save(output)
            console.print(f"Saved: {output}")
        console.print("[bold green]✓ Consensus ensemble completed[/bold green]")
    except Exception as e:
        console.print(f"[bold red]✗ Consensus ensemble failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def algorithms():
    """List registered algorithms and distances."""
    from .algorithms import registry, FAMILIES
    from .distances import BUILTIN_DISTANCES, distance_registry

    table = Table(title="Clustering algorithms")
    table.add_column("Name", style="cyan")
    table.add_column("Family")
    table.add_column("Description")
    for family in FAMILIES:
        for name in registry.names(family):
            spec = registry.get(name)
            table.add_row(spec.name, spec.family, spec.description)
    console.print(table)

    dist = Table(title="Distances")
    dist.add_column("Name", style="cyan")
    dist.add_column("Source")
    for name in BUILTIN_DISTANCES:
        dist.add_row(name, "built-in")
    for name in distance_registry.names():
        dist.add_row(name, "registered")
    console.print(dist)


@app.command()
def check_config(
    cfg: Path = typer.Argument(..., help="Config file path"),
):
    """Validate a YAML config file."""
    from .config import load_config
    from .exceptions import ConfigurationError

    try:
        config = load_config(cfg)
    except (ConfigurationError, FileNotFoundError):
        raise typer.Exit(code=1)

    steps = len(config.nk) * config.reps
    console.print(f"nk: {config.nk}, reps: {config.reps}, cells per variant: {steps}")
    console.print(f"algorithms: {', '.join(config.algorithms) if config.algorithms else 'all built-in'}")


if __name__ == "__main__":
    app()
