"""Entry point for calbill."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from calbill import __version__
from calbill.commands.preview import preview_command
from calbill.commands.refresh import refresh_command, status_command
from calbill.commands.sync import sync_command
from calbill.core.config import ConfigError, default_config_path, load_config
from calbill.core.state import CLIState

app = typer.Typer(
    add_completion=False,
    help="Turn calendar events into billing records",
    invoke_without_command=True,
)


def configure_logging(verbose: bool, quiet: bool, json_output: bool, plain_output: bool) -> None:
    """Send calbill logs to stderr; machine-readable modes default to warnings only."""
    if verbose:
        level = logging.DEBUG
    elif quiet or json_output:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = logging.getLogger("calbill")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler: logging.Handler
    if plain_output:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=verbose,
            markup=False,
        )
    logger.addHandler(handler)
    logger.setLevel(level)


@app.callback()
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON where available"),
    plain_output: bool = typer.Option(
        False,
        "--plain",
        help="Output plain text (no rich formatting/tables)",
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    reference_dir: Optional[Path] = typer.Option(
        None,
        "--reference-dir",
        help="Directory holding the reference tables",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Quiet output"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """Initialize global CLI state."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if json_output and plain_output:
        typer.echo("Options --json and --plain are mutually exclusive.")
        raise typer.Exit(code=2)

    cfg_path = (config or default_config_path()).expanduser().resolve()
    try:
        cfg = load_config(cfg_path)
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}")
        raise typer.Exit(code=2)

    configure_logging(verbose=verbose, quiet=quiet, json_output=json_output, plain_output=plain_output)

    console = Console(
        quiet=quiet,
        no_color=plain_output,
        log_time=False,
        log_path=False,
    )
    ctx.obj = CLIState(
        json_output=(json_output and not plain_output),
        plain_output=plain_output,
        verbose=verbose,
        quiet=quiet,
        config_path=cfg_path,
        config=cfg,
        console=console,
        reference_dir=reference_dir,
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


app.command("sync")(sync_command)
app.command("preview")(preview_command)
app.command("refresh")(refresh_command)
app.command("status")(status_command)


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
