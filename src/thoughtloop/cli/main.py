"""CLI entry point for thoughtloop.

``thoughtloop watch`` attaches the detector to a running session server.
``thoughtloop check`` replays a saved reasoning transcript offline.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..core.config import Config, ConfigError, ConfigManager
from ..detector.state import SessionState

app = typer.Typer(
    name="thoughtloop",
    help="Detect and break reasoning loops in streaming agent sessions",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"thoughtloop {__version__}")
        raise typer.Exit()


def _load_config() -> Config:
    try:
        return asyncio.run(ConfigManager.load(str(Path.cwd())))
    except ConfigError as e:
        console.print(str(e), style="red", markup=False)
        raise typer.Exit(2)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """Detect and break reasoning loops in streaming agent sessions."""


@app.command()
def watch(
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Session server base URL",
    ),
    directory: Optional[str] = typer.Option(
        None,
        "--directory",
        "-d",
        help="Project directory to scope server requests to",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (debug, info, warn, error)",
    ),
    print_logs: Optional[bool] = typer.Option(
        None,
        "--print-logs/--no-print-logs",
        help="Print logs to stderr",
    ),
):
    """Watch a session server and interrupt sessions stuck in a thought loop."""
    from ..api_client import SessionControlClient
    from ..detector import ThoughtLoopDetector
    from ..runtime.logging import bootstrap_logging
    from ..runtime.watcher import EventWatcher

    cfg = _load_config()
    bootstrap_logging(cfg, mode="watch", level=log_level, console=print_logs)
    base_url = url or cfg.server.url

    async def run() -> None:
        async with SessionControlClient(
            base_url=base_url,
            timeout=cfg.server.timeout,
            directory=directory or cfg.server.directory,
        ) as client:
            detector = ThoughtLoopDetector(client, cfg.detector)
            await EventWatcher(client, detector).run()

    console.print(f"[dim]watching {base_url}[/dim]")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[dim]stopped[/dim]")


@app.command()
def check(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Text file containing a reasoning transcript",
    ),
    chunk: int = typer.Option(
        40,
        "--chunk",
        "-n",
        min=1,
        help="Characters per simulated delta",
    ),
):
    """Replay a transcript as reasoning deltas and report whether it loops."""
    cfg = _load_config().detector
    state = SessionState(
        max_segment_len=cfg.max_segment_len,
        max_history_segments=cfg.max_history_segments,
        min_levenshtein_distance=cfg.min_levenshtein_distance,
    )

    text = file.read_text(encoding="utf-8")
    detected_at: Optional[int] = None
    closest: Optional[int] = None
    deltas = 0
    for offset in range(0, len(text), chunk):
        deltas += 1
        state.update_delta(text[offset:offset + chunk])
        similarity = state.min_similarity_to_history()
        if len(state.trace_segments) > 1:
            closest = similarity if closest is None else min(closest, similarity)
        if state.detect_thought_loop(similarity):
            detected_at = offset
            break

    table = Table(show_header=False, box=None)
    table.add_row("deltas", str(deltas))
    table.add_row("segments", str(len(state.trace_segments)))
    table.add_row("closest distance", "-" if closest is None else str(closest))
    table.add_row("threshold", str(cfg.min_levenshtein_distance))
    if detected_at is None:
        table.add_row("result", "[green]no loop[/green]")
        console.print(table)
        return

    table.add_row("result", f"[red]loop detected at character {detected_at}[/red]")
    console.print(table)
    raise typer.Exit(1)


@app.command("config")
def show_config():
    """Print the resolved configuration as JSON."""
    cfg = _load_config()
    typer.echo(json.dumps(cfg.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
