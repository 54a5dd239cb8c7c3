"""CLI entry point for strata."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from strata.config import StrataConfig, load_config
from strata.config.loader import DEFAULT_CONFIG_TEMPLATE
from strata.local import hash_local, open_local
from strata.snapshot import (
    Snapshot,
    SnapshotError,
    Vertex,
    build_snapshot,
    diff_snapshots,
    summarize,
)

app = typer.Typer(
    name="strata",
    help="Snapshot content-addressed directory trees and show what diverged.",
)

config_app = typer.Typer(help="Manage strata configuration.")
app.add_typer(config_app, name="config")

LATEST_SNAPSHOT = "latest.json"

# Global state
_config: StrataConfig | None = None


def _get_config() -> StrataConfig:
    if _config is None:
        return load_config()
    return _config


class _JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    """Install a single stderr handler on the ``strata`` logger."""
    numeric = logging.WARNING if level == "warn" else getattr(logging, level.upper())
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger("strata")
    root.handlers = [handler]
    root.setLevel(numeric)
    root.propagate = False


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to strata.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _vertex_label(vertex: Vertex, show_identity: bool) -> str:
    kind = "[blue]" if vertex.is_container else "[green]"
    close = "[/blue]" if vertex.is_container else "[/green]"
    label = f"{kind}{escape(vertex.name)}{close}"
    if show_identity:
        label += f" [dim]#{vertex.identity}[/dim]"
    if vertex.suppressed:
        label = f"[italic]-> {label} (reference)[/italic]"
    return label


def _render(snapshot: Snapshot, title: str, show_identity: bool) -> Tree:
    """Lay a snapshot out as one branch per level, one sub-branch per sibling group."""
    tree = Tree(f"[bold]{title}[/bold] ({len(snapshot)} vertices)")
    for index, level in enumerate(snapshot.levels):
        level_branch = tree.add(f"[bold]Level {index}[/bold]")
        for siblings in level:
            parent = siblings[0].parent
            group = level_branch.add(f"[dim]{escape(parent.path) if parent else '(root)'}[/dim]")
            for vertex in siblings:
                group.add(_vertex_label(vertex, show_identity))
    return tree


def _snapshot_dir(root: Path, cfg: StrataConfig) -> Path:
    return root / cfg.output.directory


async def _snapshot_local(path: Path, cfg: StrataConfig) -> Snapshot:
    root_node, store = open_local(path, cfg.snapshot.ignore_patterns)
    await hash_local(root_node)
    return await build_snapshot(root_node, store, concurrency=cfg.snapshot.concurrency)


def _take_snapshot(path: Path, cfg: StrataConfig) -> Snapshot:
    return asyncio.run(_snapshot_local(path, cfg))


def _record(snapshot: Snapshot, root: Path, cfg: StrataConfig) -> Path:
    target_dir = _snapshot_dir(root, cfg)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / LATEST_SNAPSHOT
    snapshot.save(target)
    return target


@app.command()
def snapshot(
    path: Path = typer.Argument(Path("."), help="Directory to snapshot"),
    save: Annotated[
        Path | None, typer.Option("--save", "-o", help="Write the snapshot as JSON")
    ] = None,
    record: Annotated[
        bool, typer.Option("--record", help="Store as the baseline for `strata diff`")
    ] = False,
) -> None:
    """Build and print a snapshot of a directory."""
    cfg = _get_config()
    root = path.resolve()

    try:
        snap = _take_snapshot(root, cfg)
    except (SnapshotError, OSError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    rprint(_render(snap, f"Snapshot {snap.root.identity}", cfg.output.show_identity))

    if save is not None:
        snap.save(save)
        rprint(f"[green]Written to[/green] {save}")
    if record:
        target = _record(snap, root, cfg)
        rprint(f"[green]Recorded baseline[/green] {target}")


@app.command()
def diff(
    path: Path = typer.Argument(Path("."), help="Directory to snapshot"),
    previous: Annotated[
        Path | None,
        typer.Argument(help="Previous snapshot JSON (defaults to the recorded baseline)"),
    ] = None,
    save: Annotated[
        Path | None, typer.Option("--save", "-o", help="Write the current snapshot as JSON")
    ] = None,
    record: Annotated[
        bool, typer.Option("--record", help="Replace the baseline with the current snapshot")
    ] = False,
) -> None:
    """Show the vertices of a directory that diverge from a previous snapshot."""
    cfg = _get_config()
    root = path.resolve()
    previous_path = previous or _snapshot_dir(root, cfg) / LATEST_SNAPSHOT

    if not previous_path.is_file():
        rprint(
            f"[yellow]No previous snapshot at {escape(str(previous_path))}.[/yellow] "
            "Run `strata snapshot --record` first."
        )
        raise typer.Exit(1)

    try:
        old = Snapshot.load(previous_path)
        current = _take_snapshot(root, cfg)
        result = diff_snapshots(current, old)
    except (SnapshotError, OSError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    summary = summarize(result, current, old)
    if result is None:
        rprint(f"[green]No changes.[/green] Root is still {current.root.identity}")
    else:
        rprint(_render(result, f"Diverged {old.root.identity} -> {current.root.identity}",
                       cfg.output.show_identity))

        table = Table(title="Summary")
        table.add_column("Kind")
        table.add_column("Count", justify="right")
        table.add_row("added", str(len(summary.added)))
        table.add_row("moved", str(len(summary.moved)))
        table.add_row("unchanged", str(summary.unchanged))
        rprint(table)

    if save is not None:
        current.save(save)
        rprint(f"[green]Written to[/green] {save}")
    if record:
        target = _record(current, root, cfg)
        rprint(f"[green]Recorded baseline[/green] {target}")


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default strata.yaml in current directory."""
    target = Path("strata.yaml")
    if target.exists() and not force:
        rprint("[yellow]strata.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
