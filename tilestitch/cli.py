"""Command-line interface for tile retrieval and stitching."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import PipelineConfig
from .exceptions import PipelineCancelled, TileStitchError
from .models.tile import TILE_SERVERS, TileType
from .services.pipeline_service import PipelineProgress, PipelineService

console = Console()

STAGE_LABELS = {
    "directories": "Creating directories",
    "tiles": "Fetching tiles",
    "columns": "Stitching columns",
    "combine": "Combining columns",
}


def config_options(func):
    """Options that override individual configuration values."""
    options = [
        click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML config file"),
        click.option("--zoom", "-z", type=int, help="Zoom level"),
        click.option("--north", type=float, help="Top latitude"),
        click.option("--south", type=float, help="Bottom latitude"),
        click.option("--east", type=float, help="Right longitude"),
        click.option("--west", type=float, help="Left longitude"),
        click.option("--type", "tile_type", type=click.Choice([t.value for t in TileType]), help="Tile server"),
        click.option("--base-url", help="Tile server base URL (overrides --type)"),
        click.option("--root", "storage_root", type=click.Path(file_okay=False), help="Download directory"),
        click.option("--output", "-o", "output_file", help="Composite file name"),
        click.option("--workers", "-w", type=click.IntRange(min=1), help="Concurrent tile requests"),
        click.option("--retries", "max_attempts", type=click.IntRange(min=1), help="Attempts per tile"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(config_path: Optional[str], **overrides) -> PipelineConfig:
    """Build the run configuration, exiting with a message if it is invalid."""
    try:
        config = PipelineConfig.load(Path(config_path) if config_path else None)
        return config.with_overrides(**overrides)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise SystemExit(1)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show log output")
def main(verbose: bool):
    """Tile Stitch - Download map tiles and stitch them into one image."""
    _setup_logging(verbose)


@main.command()
@click.argument("target", type=click.Path(dir_okay=False))
@config_options
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(target: str, config_path: Optional[str], force: bool, **overrides):
    """Write a configuration file to TARGET, starting from the defaults."""
    path = Path(target)
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] {path} already exists (use --force to overwrite)")
        raise SystemExit(1)

    config = _load_config(config_path, **overrides)
    path.parent.mkdir(parents=True, exist_ok=True)
    config.to_yaml(path)

    console.print(f"[green]Created config:[/green] {path}")


@main.command()
@config_options
def info(config_path: Optional[str], **overrides):
    """Show settings and the tile grid they produce."""
    config = _load_config(config_path, **overrides)

    with PipelineService(config) as service:
        try:
            grid = service.compute_grid()
        except TileStitchError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
        north, south, east, west = service.mapper.covered_extent(grid)

    table = Table(title="Tile Stitch Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Region North", f"{config.region.north:.6f}")
    table.add_row("Region South", f"{config.region.south:.6f}")
    table.add_row("Region East", f"{config.region.east:.6f}")
    table.add_row("Region West", f"{config.region.west:.6f}")
    table.add_row("Zoom", str(config.zoom))
    table.add_row("Tile Server", config.resolved_base_url)
    table.add_row("Storage Root", str(config.storage_root))
    table.add_row("Output", str(config.output_path))
    table.add_row("Workers", str(config.workers))
    table.add_row("Attempts Per Tile", str(config.retry.max_attempts))
    table.add_row("Columns", f"{grid.min_col} - {grid.max_col} ({grid.column_count})")
    table.add_row("Rows", f"{grid.min_row} - {grid.max_row - 1} ({grid.row_count})")
    table.add_row("Tile Grid", f"{grid.column_count} x {grid.row_count} = {grid.tile_count} tiles")
    table.add_row("Covered Extent", f"{north:.4f}N {south:.4f}S {west:.4f}W {east:.4f}E")

    console.print(table)


@main.command()
@config_options
@click.option("--skip-stitch", is_flag=True, help="Only download tiles")
def run(config_path: Optional[str], skip_stitch: bool, **overrides):
    """Download the tile grid and stitch it into one image."""
    config = _load_config(config_path, **overrides)
    console.print(f"[bold]Tile server:[/bold] {config.resolved_base_url}")

    with PipelineService(config) as service:
        result = _run_with_progress(lambda cancel, cb: service.run(cancel, cb, skip_stitch=skip_stitch))

    grid = result.grid
    console.print(f"[bold]Tile grid:[/bold] {grid.column_count} x {grid.row_count} = {grid.tile_count} tiles")
    if result.stitch_result is None:
        console.print(f"[green]Downloaded:[/green] {len(result.fetch_report.tiles)} tiles to {config.zoom_directory}")
        return

    width, height = result.stitch_result.size
    console.print(f"\n[green]Made composite![/green] Saved to: {result.stitch_result.output_path}")
    console.print(f"[dim]Size: {width} x {height} px in {result.elapsed_time:.1f}s[/dim]")


@main.command()
@config_options
def stitch(config_path: Optional[str], **overrides):
    """Stitch tiles that were already downloaded."""
    config = _load_config(config_path, **overrides)

    with PipelineService(config) as service:
        result = _run_with_progress(service.stitch_only)

    width, height = result.stitch_result.size
    console.print(f"[green]Made composite![/green] Saved to: {result.stitch_result.output_path}")
    console.print(f"[dim]Size: {width} x {height} px[/dim]")


@main.command()
def servers():
    """List the named tile servers."""
    table = Table(title="Tile Servers")
    table.add_column("Type", style="cyan")
    table.add_column("Base URL", style="green")

    for tile_type, base_url in TILE_SERVERS.items():
        table.add_row(tile_type.value, base_url)

    console.print(table)


def _run_with_progress(job):
    """Run ``job(cancel_event, progress_callback)`` with progress bars.

    The job runs on a worker thread so that Ctrl-C in the main thread can set
    the cancel event while it is still in flight. Exits non-zero with a
    diagnostic on any pipeline error.
    """
    cancel_event = threading.Event()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        tasks: dict[str, int] = {}

        def on_progress(update: PipelineProgress) -> None:
            label = STAGE_LABELS.get(update.stage)
            if label is None:
                return
            if update.stage not in tasks:
                tasks[update.stage] = progress.add_task(label, total=update.total)
            progress.update(tasks[update.stage], completed=update.completed, total=update.total)

        with ThreadPoolExecutor(max_workers=1) as runner:
            future = runner.submit(job, cancel_event, on_progress)
            try:
                return _await_job(future, cancel_event)
            except KeyboardInterrupt:
                console.print("[yellow]Interrupted.[/yellow]")
                raise SystemExit(130)
            except PipelineCancelled as e:
                console.print(f"[yellow]Cancelled:[/yellow] {e}")
                raise SystemExit(130)
            except TileStitchError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise SystemExit(1)


def _await_job(future, cancel_event: threading.Event):
    """Wait for a running job; on Ctrl-C, signal cancellation and wait for it to stop."""
    try:
        return future.result()
    except KeyboardInterrupt:
        cancel_event.set()
        console.print("[yellow]Stopping after in-flight requests...[/yellow]")
        return future.result()


if __name__ == "__main__":
    main()
