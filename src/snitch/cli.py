"""Typer-based CLI for Snitch."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .buffer import BufferRegistry, TextBuffer
from .capture import capture_entry, controller_for_project
from .config import CONFIG_DIR, CONFIG_FILE, SnitchConfig
from .errors import NotInProject, SnitchError
from .ledger import read_ledger_tail
from .overlay import OverlayEngine
from .project import GitProjectResolver, find_project_root
from .tracker import TrackerStore

app = typer.Typer(
    name="snitch",
    help="Snitch - project-scoped notes, tasks and issues linked from your source",
    add_completion=False,
)

console = Console()


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load_project(start_dir: Path) -> tuple[Path, SnitchConfig]:
    """Resolve the project containing ``start_dir`` and load its configuration.

    The nearest repository (submodules included) holds the config; its
    submodule flag then decides which root the project is.
    """
    nearest = find_project_root(start_dir, submodule_independent=True)
    config = SnitchConfig.load(nearest)
    return find_project_root(start_dir, config.submodule_independent), config


def _project_or_exit(project: Optional[str]) -> tuple[Path, SnitchConfig]:
    start_dir = Path(project) if project else Path.cwd()
    try:
        return _load_project(start_dir)
    except NotInProject as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.command()
def init(
    project: str = typer.Option(
        None,
        "--project",
        "-p",
        help="Directory inside the project (default: current directory)",
    ),
):
    """Create the tracking document and project config.

    This command is idempotent - it will not overwrite existing data.
    """
    project_root, config = _project_or_exit(project)

    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_toml_str(), encoding="utf-8")
        console.print(f"[green]+[/green] Created config: {config_path}")
    else:
        console.print(f"[dim]Config already exists: {config_path}[/dim]")

    tracking_path = config.tracking_path(project_root)
    existed = tracking_path.exists()
    store = TrackerStore()
    store.ensure_sections(tracking_path, [t.heading for t in config.capture_templates()])
    store.save(tracking_path)
    if existed:
        console.print(f"[dim]Tracking document already exists: {tracking_path}[/dim]")
    else:
        console.print(f"[green]+[/green] Created tracking document: {tracking_path}")


@app.command()
def templates(
    project: str = typer.Option(None, "--project", "-p", help="Directory inside the project"),
):
    """List the capture templates configured for the project."""
    _, config = _project_or_exit(project)

    table = Table(title="Capture Templates")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Heading", style="magenta")
    table.add_column("Description", style="dim")
    for template in config.capture_templates():
        table.add_row(template.key, escape(template.heading), escape(template.description))
    console.print(table)


@app.command()
def capture(
    file: Path = typer.Argument(..., help="Source file to capture from"),
    template: str = typer.Option(..., "--template", "-t", help="Capture template key"),
    title: str = typer.Option(..., "--title", help="Entry title"),
    body: str = typer.Option("", "--body", "-b", help="Entry body"),
    start: Optional[int] = typer.Option(None, "--start", help="Region start offset"),
    end: Optional[int] = typer.Option(None, "--end", help="Region end offset"),
    match: Optional[str] = typer.Option(None, "--match", "-m", help="Select the first occurrence of this text"),
):
    """File an entry in the project tracker, linking the selected region to it.

    Without a region the entry is filed and the source is left untouched.
    """
    if match is not None and (start is not None or end is not None):
        console.print("[red]Error: Cannot combine --match with --start/--end[/red]")
        raise typer.Exit(code=1)
    if (start is None) != (end is None):
        console.print("[red]Error: --start and --end must be given together[/red]")
        raise typer.Exit(code=1)
    if not file.exists():
        console.print(f"[red]Error: File not found: {file}[/red]")
        raise typer.Exit(code=1)

    project_root, config = _project_or_exit(str(file.resolve().parent))
    buffer = BufferRegistry().open(file)

    try:
        if match is not None:
            offset = buffer.text.find(match)
            if offset < 0 or not match:
                console.print(f"[red]Error: Text not found in {file}: {escape(repr(match))}[/red]")
                raise typer.Exit(code=1)
            buffer.select(offset, offset + len(match))
        elif start is not None:
            buffer.select(start, end)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    resolver = GitProjectResolver(config.submodule_independent)
    controller = controller_for_project(project_root, resolver, config=config)

    try:
        result = capture_entry(controller, buffer, template, title, body)
    except SnitchError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    except OSError as e:
        console.print(f"[red]Error writing tracking document: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Filed #{result.sequence_number}[/green] {escape(title)}")
    console.print(f"  ID:   {result.entry_id}")
    if result.link_inserted:
        buffer.save()
        console.print(f"  Link: {escape(result.link_text)}")
    elif buffer.selection() is not None:
        console.print(f"[yellow]Link not inserted ({result.skip_reason})[/yellow]")


@app.command("list")
def list_entries(
    project: str = typer.Option(None, "--project", "-p", help="Directory inside the project"),
):
    """List entries in the project's tracking document."""
    project_root, config = _project_or_exit(project)
    tracking_path = config.tracking_path(project_root)
    if not tracking_path.exists():
        console.print(f"[yellow]No tracking document at {tracking_path}[/yellow]")
        console.print("[yellow]Run 'snitch init' or capture an entry first[/yellow]")
        return

    entries = list(TrackerStore().entries(tracking_path))
    if not entries:
        console.print("[dim]No entries[/dim]")
        return

    table = Table(title=f"{tracking_path.name} ({len(entries)} entries)")
    table.add_column("#", style="cyan", justify="right", no_wrap=True)
    table.add_column("ID", style="yellow", no_wrap=True)
    table.add_column("Section", style="magenta")
    table.add_column("Title")
    for entry in entries:
        number = str(entry.sequence_number) if entry.sequence_number is not None else "-"
        entry_id = entry.id[:8] + "..." if entry.id else "-"
        table.add_row(number, entry_id, escape(entry.section or "-"), escape(entry.title))
    console.print(table)


@app.command()
def render(
    file: Path = typer.Argument(..., help="File to display"),
):
    """Print a file with its links rendered as compact labels."""
    if not file.exists():
        console.print(f"[red]Error: File not found: {file}[/red]")
        raise typer.Exit(code=1)

    buffer = TextBuffer.from_file(file)
    engine = OverlayEngine()
    engine.enable(buffer)
    # Park the cursor at the end so no link starts out revealed
    buffer.goto(len(buffer))

    text = Text()
    for chunk, overlay in buffer.iter_display():
        text.append(chunk, style="underline cyan" if overlay is not None else None)
    console.print(text, end="" if buffer.text.endswith("\n") else "\n")


ledger_app = typer.Typer(help="Ledger commands")
app.add_typer(ledger_app, name="ledger")


@ledger_app.command("tail")
def ledger_tail(
    n: int = typer.Option(20, "--n", "-n", help="Number of recent events to display"),
    entry: Optional[str] = typer.Option(None, "--entry", "-e", help="Only events for this entry ID (prefix)"),
    project: str = typer.Option(None, "--project", "-p", help="Directory inside the project"),
):
    """Display the last N capture events from the ledger."""
    project_root, config = _project_or_exit(project)
    ledger_path = config.ledger_path(project_root)
    if ledger_path is None:
        console.print("[yellow]Ledger is disabled in this project[/yellow]")
        return

    events = read_ledger_tail(ledger_path, n=n, entry_id=entry)
    if not events:
        console.print("[dim]No events in ledger[/dim]")
        return

    table = Table(title=f"Last {len(events)} Ledger Event(s)")
    table.add_column("Timestamp (UTC)", style="cyan", no_wrap=True)
    table.add_column("Event Type", style="magenta", no_wrap=True)
    table.add_column("Entry ID", style="yellow")
    table.add_column("Payload", style="dim")

    for event in events:
        entry_id_str = event.entry_id[:8] + "..." if event.entry_id else "-"
        payload_str = str(event.payload)
        if len(payload_str) > 60:
            payload_str = payload_str[:57] + "..."
        table.add_row(event.ts.strftime("%Y-%m-%d %H:%M:%S"), event.event_type, entry_id_str, escape(payload_str))

    console.print(table)


@app.command()
def version():
    """Show Snitch version."""
    from . import __version__
    console.print(f"Snitch v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
