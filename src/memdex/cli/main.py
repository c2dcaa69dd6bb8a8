"""memdex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from memdex.cli.capture import capture_cmd
from memdex.cli.catalog import recommend_cmd, sync_cmd, tools_cmd
from memdex.cli.docs import extract_cmd, retrieve_cmd
from memdex.cli.index import index_cmd
from memdex.cli.search import search_cmd, sessions_cmd
from memdex.cli.status import status_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("memdex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memdex {_version()}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="memdex",
    help=(
        "memdex — persistent memory index for coding agents.\n\n"
        "  memdex index     Chunk markdown notes and logs into the search store.\n"
        "  memdex search    Ranked excerpts (sessions for dated logs).\n"
        "  memdex capture   Append a work session to today's dated log.\n"
        "  memdex sync      Build the tool catalog; memdex recommend queries it."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging on stderr."),
    ] = False,
) -> None:
    """memdex — persistent memory index for coding agents."""
    _setup_logging(verbose)


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("sessions")(sessions_cmd)
app.command("sync")(sync_cmd)
app.command("recommend")(recommend_cmd)
app.command("tools")(tools_cmd)
app.command("extract")(extract_cmd)
app.command("retrieve")(retrieve_cmd)
app.command("status")(status_cmd)
app.command("capture")(capture_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed memdex version."""
    typer.echo(f"memdex {_version()}")


if __name__ == "__main__":
    app()
