"""SuperLU CLI - diagnostics for the SuperLU Python interface.

Usage:
    python -m cli.superlu_cli [COMMAND] [OPTIONS]
    superlu [COMMAND] [OPTIONS]     (if installed via pyproject.toml)
"""

from __future__ import annotations

import logging
import platform

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="superlu",
    help="SuperLU Sparse Direct Solver - library and configuration diagnostics",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

library_app = typer.Typer(help="SuperLU shared library detection and loading")
info_app = typer.Typer(help="System information")

app.add_typer(library_app, name="library")
app.add_typer(info_app, name="info")

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ─── Library Commands ─────────────────────────────────────────

@library_app.command("detect")
def library_detect():
    """Detect SuperLU shared libraries on this system."""
    from pysuperlu.lib_detect import detect_all

    console.print(Panel("SuperLU Library Detection", style="purple"))

    libs = detect_all()
    if not libs:
        console.print("[yellow]No SuperLU library detected.[/yellow]")
        raise typer.Exit(1)

    table = Table(title="Detected SuperLU Libraries")
    table.add_column("Method", style="bold")
    table.add_column("Path")
    table.add_column("Version")
    table.add_column("Details", style="cyan")

    for method, lib in libs.items():
        details = ", ".join(f"{k}={v}" for k, v in lib.details.items())
        table.add_row(method, lib.path, lib.version or "-", details or "-")

    console.print(table)


@library_app.command("check")
def library_check(
    path: str = typer.Option("", "--path", help="Library to load (default: auto-detect)"),
):
    """Load the SuperLU library and report the result."""
    from pysuperlu import LibraryNotFoundError, load_library

    try:
        lib = load_library(path or None)
    except LibraryNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Loaded SuperLU from {lib.path}[/green]")


# ─── Options Command ──────────────────────────────────────────

@app.command("options")
def show_options():
    """Show SuperLU's default solver options."""
    from pysuperlu import LibraryNotFoundError, Options

    try:
        options = Options()
    except LibraryNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="SuperLU Default Options")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name, value in options.as_dict().items():
        table.add_row(name, getattr(value, "name", str(value)))
    console.print(table)


# ─── Info Commands ────────────────────────────────────────────

@info_app.command("system")
def info_system():
    """Show system information relevant to SuperLU."""
    import numpy
    import scipy

    console.print(Panel("System Information", style="blue"))

    table = Table()
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("Platform", platform.platform())
    table.add_row("Architecture", platform.machine())
    table.add_row("Python", platform.python_version())
    table.add_row("NumPy", numpy.__version__)
    table.add_row("SciPy", scipy.__version__)

    from pysuperlu.lib_detect import find_superlu
    lib = find_superlu()
    table.add_row("SuperLU", f"{lib.path} ({lib.detection_method})" if lib else "not found")

    console.print(table)


# ─── Main ─────────────────────────────────────────────────────

def main():
    app()


if __name__ == "__main__":
    main()
