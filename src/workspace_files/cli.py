"""Workspace files tool entry point using Cyclopts.

Every capability in `tool.gpt` runs one of these commands, which forward to
the external helper executable.
"""

from __future__ import annotations

import os
import sys
from typing import NoReturn

import cyclopts
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from workspace_files.helper import HelperNotFoundError, WorkspaceHelper
from workspace_files.instructions import render_instructions
from workspace_files.manifest import load_manifest

LISTING_ENV = "OBOT_WORKSPACE_FILES"

console = Console()
err_console = Console(stderr=True)

app = cyclopts.App(
    name="workspace-files",
    help="List, read, write and copy files in the workspace.",
)


def _helper() -> WorkspaceHelper:
    try:
        return WorkspaceHelper()
    except HelperNotFoundError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        sys.exit(1)


def _forward(subcommand: str, *args: str | None) -> NoReturn:
    helper = _helper()
    try:
        result = helper.run(subcommand, *[a for a in args if a is not None])
    except OSError as e:
        err_console.print(
            f"[bold red]Error:[/bold red] could not run workspace helper "
            f"{escape(str(helper.executable))}: {escape(str(e))}"
        )
        sys.exit(1)
    sys.exit(result.returncode)


@app.command(name="list")
def list_files() -> None:
    """List all files in the workspace."""
    _forward("list")


@app.command
def read(filename: str | None = None) -> None:
    """Read a file from the workspace."""
    _forward("read", filename)


@app.command
def write(filename: str | None = None, content: str | None = None) -> None:
    """Write content to a file in the workspace."""
    _forward("write", filename, content)


@app.command
def copy(filename: str | None = None, to_filename: str | None = None) -> None:
    """Copy a workspace file to a new path."""
    _forward("copy", filename, to_filename)


@app.command(name="input")
def parse_input(input: str | None = None) -> None:
    """Parse tool input that references workspace files."""
    _forward("input", input)


@app.command
def instructions() -> None:
    """Print the workspace instructions with the current file listing."""
    listing = os.environ.get(LISTING_ENV)
    if listing is None:
        try:
            result = WorkspaceHelper().run("list", capture_output=True)
        except (HelperNotFoundError, OSError) as e:
            err_console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")
            listing = ""
        else:
            listing = result.stdout if result.returncode == 0 else ""

    sys.stdout.write(render_instructions(listing))


@app.command
def tools() -> None:
    """Show the capabilities declared in the tool manifest."""
    table = Table(title="Workspace tools")
    table.add_column("Name", style="bold")
    table.add_column("Command", style="cyan")
    table.add_column("Params", style="dim")
    for tool in load_manifest():
        table.add_row(tool.name, tool.subcommand or "", ", ".join(tool.params))
    console.print(table)


def main() -> None:
    app()
