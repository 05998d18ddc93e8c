"""Command-line entry point.

Command tree::

    cloudshell info [--json]
    cloudshell start
    cloudshell connect [--fwd LOCAL:REMOTE]...    (alias: ssh)
    cloudshell key list|add|remove
    cloudshell auth login|logout|status

Global flags choose the output format and verbosity; they are applied in
:func:`main_callback` before any command runs. :func:`main` is the console
script. It turns :class:`~cloudshell.exceptions.CloudShellError` into a
one-line message and that error's exit code. Anything unexpected leaves a
traceback under ``<data dir>/logs``.
"""

from __future__ import annotations

import logging
import sys
import traceback
from datetime import datetime

import typer
from rich.console import Console
from rich.logging import RichHandler

from cloudshell import __version__
from cloudshell.commands.auth import auth_app
from cloudshell.commands.environment import connect_command, info_command, start_command
from cloudshell.commands.key import key_app
from cloudshell.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE

ISSUES_URL = "https://github.com/astrophena/cloudshell/issues"

app = typer.Typer(
    name="cloudshell",
    help="Start and connect to your Google Cloud Shell from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("info")(info_command)
app.command("start")(start_command)
app.command("connect")(connect_command)
app.command("ssh", hidden=True)(connect_command)
app.add_typer(key_app, name="key", help="Manage public keys authorized on the environment.")
app.add_typer(auth_app, name="auth", help="Manage the cached OAuth2 credential.")


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"cloudshell {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, no_color: bool) -> None:
    """Send ``cloudshell.*`` records to stderr through Rich.

    Only warnings surface by default; ``--verbose`` adds request, polling and
    SSH debug records.
    """
    logger = logging.getLogger("cloudshell")
    logger.handlers.clear()
    logger.addHandler(
        RichHandler(console=Console(stderr=True, no_color=no_color), show_path=False)
    )
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print data as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug details to stderr."),
) -> None:
    """Apply the global flags and attach an AppContext to *ctx*.

    A context passed in by the caller (``CliRunner.invoke(obj=...)``) is
    left alone.
    """
    from cloudshell.context import AppContext
    from cloudshell.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose, no_color)

    if ctx.obj is None:
        ctx.obj = AppContext()


def _write_crash_log(exc: Exception) -> str:
    """Save *exc*'s traceback and return the log path."""
    from cloudshell.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def main() -> None:
    """Run the CLI and exit with a status that reflects what went wrong."""
    from cloudshell.exceptions import CloudShellError
    from cloudshell.output import error

    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except CloudShellError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        error(f"Please report: {ISSUES_URL}")
        sys.exit(EXIT_GENERIC_FAILURE)
