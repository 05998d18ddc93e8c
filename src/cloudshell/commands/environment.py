"""Environment commands -- inspect, start, and connect.

Provides the top-level ``info``, ``start``, and ``connect`` (alias
``ssh``) commands::

    cloudshell info             # state and connection details
    cloudshell start            # boot and wait until running
    cloudshell ssh --fwd 8080:8080
"""

from __future__ import annotations

from typing import Optional

import typer

from cloudshell.context import AppContext, cancel_on_signals
from cloudshell.exceptions import CancelledError
from cloudshell.models import Environment
from cloudshell.output import OutputFormat, get_output, print_data, print_json, success
from cloudshell.session import InteractiveSession, PortForward


def _environment_json(env: Environment) -> dict:
    return env.model_dump(mode="json", by_alias=True, exclude={"raw_state"})


def _print_environment(env: Environment) -> None:
    """Print the human-readable summary shown by ``info`` and ``start``."""
    print_data(f"{env.display_state}.")
    print_data(f"Docker Image: {env.docker_image}")
    if env.web_host:
        print_data(f"Web Host: {env.web_host}")
    if env.has_ssh:
        print_data("SSH connection details:")
        print_data(f"  Host:     {env.ssh_host}")
        print_data(f"  Port:     {env.ssh_port}")
        print_data(f"  Username: {env.ssh_username}")
        print_data(f"  Command:  ssh -p {env.ssh_port} {env.ssh_username}@{env.ssh_host}")
    else:
        print_data("SSH is unavailable.")


def _ensure_running(app_ctx: AppContext) -> Environment:
    with cancel_on_signals() as cancel:
        credential = app_ctx.credential(cancel)
        with app_ctx.client(credential) as client:
            env = app_ctx.driver(client).ensure_running(cancel)
    if env is None:
        raise CancelledError("Cancelled while waiting for the environment to start")
    return env


def info_command(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Print the environment as JSON."),
) -> None:
    """Print information about the environment."""
    app_ctx: AppContext = ctx.obj
    with cancel_on_signals() as cancel:
        credential = app_ctx.credential(cancel)
    with app_ctx.client(credential) as client:
        env = client.get()

    if json_output or get_output().format == OutputFormat.JSON:
        print_json(_environment_json(env))
        return
    _print_environment(env)


def start_command(ctx: typer.Context) -> None:
    """Start the environment and wait until it is running."""
    env = _ensure_running(ctx.obj)
    if get_output().format == OutputFormat.JSON:
        print_json(_environment_json(env))
        return
    success("Environment is running.")
    _print_environment(env)


def connect_command(
    ctx: typer.Context,
    fwd: Optional[list[str]] = typer.Option(
        None,
        "--fwd",
        "-f",
        help="Forward a local port to a remote port: LOCAL:REMOTE. Repeatable.",
    ),
) -> None:
    """Start the environment if needed and open an interactive shell.

    Exits with the remote shell's exit status.
    """
    app_ctx: AppContext = ctx.obj
    forwards = [PortForward.parse(value) for value in fwd or []]

    env = _ensure_running(app_ctx)
    session = InteractiveSession(
        app_ctx.paths.private_key,
        connect_timeout=app_ctx.settings.connect_timeout,
        forwards=forwards,
    )
    status = session.connect(env)
    raise typer.Exit(code=status)
