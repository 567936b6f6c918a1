"""
CLI interface for replaybook with Rich output.
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.status import Status
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from replaybook.config import load_config
from replaybook.errors import ReplaybookError
from replaybook.kernel import ExecutionResult
from replaybook.llm import make_ask_llm
from replaybook.notebook import CellOrigin, CellType
from replaybook.research import run_research
from replaybook.session import Session, SessionManager, slugify
from replaybook.utils import format_cell_content, get_cell_label, get_cell_style, truncate_text


console = Console()


def handle_errors(func):
    """Report replaybook errors in red and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ReplaybookError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
    return wrapper


def display_cell(cell, index: int):
    """Print one cell as a panel."""
    title = f"[bold]{index}[/bold]  {get_cell_label(cell.cell_type)}  [dim]{cell.origin.value}[/dim]"
    subtitle = None
    if cell.cell_type == CellType.CODE:
        subtitle = "[red]err[/red]" if cell.status == "error" else "[green]ok[/green]"
    console.print(Panel(
        format_cell_content(cell),
        title=title,
        title_align="left",
        subtitle=subtitle,
        subtitle_align="right",
        border_style=get_cell_style(cell),
        padding=(0, 1),
    ))
    if cell.cell_type == CellType.CODE and cell.status == "error" and cell.execution_result:
        console.print(Panel(
            Text(cell.execution_result, style="red"),
            title="[red]Error[/red]",
            title_align="left",
            border_style="red",
            padding=(0, 1),
        ))


def display_result(result: ExecutionResult):
    """Print the outcome of one execution."""
    for package in result.installed_packages:
        console.print(f"[dim]Installed missing package: {package}[/dim]")
    if result.success:
        if result.new_output:
            console.print(Panel(
                result.rendered,
                title=f"[blue]Output ({result.kind.value})[/blue]",
                title_align="left",
                border_style="blue",
                padding=(0, 1),
            ))
        else:
            console.print("[dim](no output)[/dim]")
    else:
        console.print(Panel(
            Text(result.rendered, style="red"),
            title="[red]Error[/red]",
            title_align="left",
            border_style="red",
            padding=(0, 1),
        ))
        if result.recovery_error:
            console.print(f"[yellow]Auto-install failed: {result.recovery_error}[/yellow]")


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to a JSON config file.")
@click.option("--sessions-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding session folders.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(package_name="replaybook")
@click.pass_context
@handle_errors
def main(ctx, config_path: Optional[str], sessions_dir: Optional[str], verbose: bool):
    """replaybook - research notebooks executed by full-session replay."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    config = load_config(Path(config_path) if config_path else None)
    if sessions_dir:
        config.sessions_dir = Path(sessions_dir)
    ctx.obj = SessionManager(config=config)


@main.command()
@click.argument("goal")
@click.pass_obj
@handle_errors
def new(manager: SessionManager, goal: str):
    """Create a session for GOAL."""
    slug = slugify(goal)
    if manager.exists(slug):
        console.print(f"[yellow]Session [bold]{slug}[/bold] already exists[/yellow]")
        console.print(f"[dim]Continue it with 'replaybook run {slug} CODE'[/dim]")
        sys.exit(1)
    session = manager.create(goal)
    session.add_cell(CellType.INTENT, CellOrigin.USER, goal)
    manager.save(session)
    console.print(f"[green]Created session[/green] [bold]{session.id}[/bold]")
    console.print(f"[dim]{session.directory}[/dim]")


@main.command()
@click.argument("slug")
@click.argument("code", required=False)
@click.option("-f", "--file", "code_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the code fragment from a file.")
@click.option("--origin", type=click.Choice(["user", "ai"]), default="user", show_default=True)
@click.pass_obj
@handle_errors
def run(manager: SessionManager, slug: str, code: Optional[str], code_file: Optional[str], origin: str):
    """Execute CODE in session SLUG after replaying its earlier cells."""
    if code_file:
        code = Path(code_file).read_text()
    if not code or not code.strip():
        console.print("[yellow]Nothing to execute[/yellow]")
        sys.exit(1)

    session = manager.load(slug)
    with Status("[bold]Replaying session...[/bold]", console=console, spinner="dots"):
        result = session.run_code(code, CellOrigin(origin))
    manager.save(session)
    display_result(result)
    if not result.success:
        sys.exit(1)


@main.command()
@click.argument("slug")
@click.pass_obj
@handle_errors
def show(manager: SessionManager, slug: str):
    """Display all cells of session SLUG."""
    session = manager.load(slug)
    console.print(Panel(
        f"[bold white]{session.notebook.title}[/bold white]  |  "
        f"[dim]{len(session.notebook.cells)} cells[/dim]",
        title="[bold blue]replaybook[/bold blue]",
        border_style="blue",
        padding=(0, 1),
    ))
    if not session.notebook.cells:
        console.print("[dim]No cells yet[/dim]")
    for i, cell in enumerate(session.notebook.cells):
        display_cell(cell, i)


@main.command(name="vars")
@click.argument("slug")
@click.pass_obj
@handle_errors
def show_vars(manager: SessionManager, slug: str):
    """Show tracked variables and glossary of session SLUG."""
    session = manager.load(slug)
    context = session.context

    table = Table(title="Variables", border_style="blue")
    table.add_column("Name", style="bold cyan")
    table.add_column("Value")
    for name, value in sorted(context.variables.items()):
        table.add_row(name, truncate_text(value, 80))
    console.print(table)

    if context.glossary:
        glossary = Table(title="Glossary", border_style="blue")
        glossary.add_column("Term", style="bold cyan")
        glossary.add_column("Definition")
        for term, definition in sorted(context.glossary.items()):
            glossary.add_row(term, definition)
        console.print(glossary)


@main.command()
@click.argument("slug")
@click.argument("term")
@click.argument("definition")
@click.pass_obj
@handle_errors
def define(manager: SessionManager, slug: str, term: str, definition: str):
    """Add TERM with DEFINITION to the glossary of session SLUG."""
    session = manager.load(slug)
    session.context.set_glossary(term, definition)
    manager.save(session)
    console.print(f"[green]Defined[/green] {term}")


@main.command()
@click.pass_obj
@handle_errors
def sessions(manager: SessionManager):
    """List saved sessions."""
    sessions_list = manager.list_sessions()

    if not sessions_list:
        console.print("[yellow]No saved sessions found[/yellow]")
        console.print("[dim]Create one with 'replaybook new GOAL'[/dim]")
        return

    table = Table(title="Saved Sessions", border_style="blue", show_lines=True)
    table.add_column("#", style="bold cyan", justify="right")
    table.add_column("Session", style="white")
    table.add_column("Title", style="dim")
    table.add_column("Cells", justify="right", style="green")

    for i, info in enumerate(sessions_list):
        table.add_row(
            str(i),
            info["id"],
            info.get("title", f"[red]{info.get('error', '')}[/red]"),
            str(info.get("cell_count", "")),
        )

    console.print(table)


@main.command()
@click.argument("slug")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
@handle_errors
def delete(manager: SessionManager, slug: str, yes: bool):
    """Delete session SLUG."""
    if not yes and not Confirm.ask(f"Delete session {slug}?"):
        return
    if manager.delete(slug):
        console.print(f"[green]Deleted[/green] {slug}")
    else:
        console.print(f"[yellow]No session named {slug}[/yellow]")
        sys.exit(1)


@main.command()
@click.argument("slug")
@click.option("-n", "--name", default=None, help="File name under the notebooks directory.")
@click.pass_obj
@handle_errors
def export(manager: SessionManager, slug: str, name: Optional[str]):
    """Save the notebook of session SLUG as notebooks/<name>.json."""
    session = manager.load(slug)
    path = manager.save_flat(session.notebook, name or slug)
    console.print(f"[green]Notebook saved to[/green] {path}")


def _print_step(index: int, step: str, code: str, result: ExecutionResult):
    console.print(Text(f"Step {index}: {step}", style="bold"))
    console.print(Panel(
        Syntax(code, "python", theme="monokai", line_numbers=False, word_wrap=True),
        border_style="green",
        padding=(0, 1),
    ))
    display_result(result)


@main.command()
@click.argument("goal")
@click.option("-d", "--dataset", "datasets", multiple=True, help="Dataset available locally (repeatable).")
@click.pass_obj
@handle_errors
def research(manager: SessionManager, goal: str, datasets: tuple[str, ...]):
    """Plan GOAL with the LLM, then generate and run code for every step."""
    ask = make_ask_llm(manager.config.llm)
    session: Session = run_research(goal, ask, manager, on_step=_print_step, datasets=list(datasets))
    ok = sum(1 for c in session.notebook.cells_of_type(CellType.CODE) if c.status == "ok")
    total = len(session.notebook.cells_of_type(CellType.CODE))
    console.print(f"\n[green]{ok}/{total} steps executed[/green]  [dim]session {session.id}[/dim]")


if __name__ == "__main__":
    main()
