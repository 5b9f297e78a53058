"""
CLI entry point: Click-based command-line interface.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from flowfield import __version__
from flowfield.field import FieldStatus, FlowField

console = Console()

STATUS_STYLES = {
    FieldStatus.REACHES_GOAL: "green",
    FieldStatus.REACHES_FALLBACK: "yellow",
    FieldStatus.BLOCKED: "red",
}


@click.group()
@click.version_option(version=__version__, prog_name="flowfield")
@click.option("--verbose", "-v", is_flag=True, help="Log recomputation details.")
def cli(verbose: bool):
    """FLOWFIELD: exit flow fields with breakable-obstacle fallback.

    Precompute, for every walkable cell of a level, the next step toward the
    nearest exit.
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _load_runtime(level_path: str):
    from flowfield.config import LevelFormatError, build_runtime, load_level

    try:
        return build_runtime(load_level(level_path))
    except LevelFormatError as exc:
        raise click.ClickException(f"Invalid level {level_path}: {exc}") from exc


def _recompute(runtime) -> FlowField:
    from flowfield.engine import ConfigurationError

    try:
        return runtime.engine.recompute()
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("level_path", type=click.Path(exists=True))
@click.option("--arrows", is_flag=True, help="Print the field as ASCII arrows.")
@click.option("--output", "-o", default=None, type=click.Path(), help="Write the field as JSON.")
def compute(level_path: str, arrows: bool, output: str | None):
    """Compute the flow field of a YAML level."""
    from flowfield.viz.render import render_ascii

    runtime = _load_runtime(level_path)
    console.print(f"[bold blue]Loading level:[/bold blue] {runtime.level.name}")
    flow = _recompute(runtime)

    _print_summary(flow)

    if arrows:
        console.print(render_ascii(flow, runtime.level.grid), markup=False, highlight=False)

    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(flow.to_dict(), indent=2))
        console.print(f"[dim]Field saved to {output}[/dim]")


@cli.command()
@click.argument("level_path", type=click.Path(exists=True))
@click.argument("x", type=int)
@click.argument("y", type=int)
def query(level_path: str, x: int, y: int):
    """Show the node at (X, Y) and the path it leads along."""
    from flowfield.core.grid import Cell

    runtime = _load_runtime(level_path)
    flow = _recompute(runtime)

    cell = Cell(x, y)
    node = runtime.engine.get_node(cell)
    style = STATUS_STYLES[node.status]
    cost = str(node.cost) if node.is_reachable else "∞"
    console.print(
        f"({x}, {y}) [{style}]{node.status.name.lower()}[/{style}] "
        f"cost={cost} step={node.predecessor_offset.as_tuple()}"
    )

    path = flow.trace(cell)
    if path:
        console.print("path: " + " → ".join(f"({c.x},{c.y})" for c in path))


@cli.command()
@click.argument("level_path", type=click.Path(exists=True))
@click.option("--ticks", "-t", default=None, type=click.IntRange(min=1), help="Override simulation ticks.")
def simulate(level_path: str, ticks: int | None):
    """Run the level's scripted edits and report each recompute."""
    runtime = _load_runtime(level_path)
    scheduler = runtime.scheduler
    total = ticks if ticks is not None else runtime.config.ticks
    scheduler.clock.max_ticks = total

    if not scheduler.init():
        raise click.ClickException("Level has no valid exit cells")
    console.print(f"[bold green]Initial field:[/bold green] {runtime.engine.field!r}")

    while not scheduler.clock.is_done:
        report = scheduler.tick()
        if report.error:
            console.print(f"[red]t={report.tick:>4} recompute failed: {report.error}[/red]")
        elif report.recomputed:
            flow = runtime.engine.field
            counts = flow.status_counts()
            console.print(
                f"t={report.tick:>4} | {', '.join(report.events_fired) or '-'} | "
                f"gen={flow.generation} goal={counts[FieldStatus.REACHES_GOAL]} "
                f"fallback={counts[FieldStatus.REACHES_FALLBACK]} "
                f"blocked={counts[FieldStatus.BLOCKED]}"
            )
        elif report.events_fired:
            console.print(f"[dim]t={report.tick:>4} | {', '.join(report.events_fired)} (no change)[/dim]")

    console.print(f"[bold green]Done.[/bold green] {scheduler.recompute_count} recomputes over {total} ticks")


@cli.command()
@click.argument("level_path", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Save plot to file.")
def plot(level_path: str, output: str | None):
    """Plot the flow field with matplotlib."""
    from flowfield.viz.render import render_field_matplotlib

    runtime = _load_runtime(level_path)
    flow = _recompute(runtime)
    render_field_matplotlib(flow, runtime.level.ground, title=runtime.level.name, save_path=output)
    if output:
        console.print(f"[dim]Plot saved to {output}[/dim]")


def _print_summary(flow: FlowField):
    """Pretty-print field statistics."""
    table = Table(title="Flow Field", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    counts = flow.status_counts()
    table.add_row("Generation", str(flow.generation))
    table.add_row("Exits", str(len(flow.goals)))
    table.add_row("Cells", str(len(flow)))
    for status, count in counts.items():
        style = STATUS_STYLES[status]
        table.add_row(f"[{style}]{status.name.lower()}[/{style}]", str(count))
    max_cost = flow.max_cost()
    table.add_row("Max Cost", "-" if max_cost is None else str(max_cost))
    table.add_row("Elapsed", f"{flow.elapsed_ms:.1f} ms")

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
