"""Key commands -- manage public keys authorized on the environment.

Provides the ``cloudshell key`` sub-command group::

    cloudshell key list --format text
    cloudshell key add "$(cat ~/.ssh/id_ed25519.pub)"
    cloudshell key remove "ssh-ed25519 AAAA..."

Keys are passed and listed as ``<format> <content> [comment]`` lines, the
same shape as ``authorized_keys``.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import typer

from cloudshell.context import AppContext, cancel_on_signals
from cloudshell.exceptions import InvalidUsageError
from cloudshell.output import print_data, print_json, print_table, success

logger = logging.getLogger(__name__)

key_app = typer.Typer(no_args_is_help=True)


class KeyFormat(str, Enum):
    table = "table"
    text = "text"
    json = "json"


def _normalize_key(key: str) -> str:
    """Validate an OpenSSH public key line and return ``<format> <content>``.

    Raises:
        InvalidUsageError: If the value has no format or no content.
    """
    parts = key.split()
    if len(parts) < 2:
        raise InvalidUsageError(
            "Key is invalid: expected '<format> <content>', e.g. the contents of a .pub file"
        )
    return f"{parts[0]} {parts[1]}"


def _abbreviate(content: str) -> str:
    if len(content) <= 24:
        return content
    return f"{content[:12]}...{content[-8:]}"


def _managed_key(path: Path) -> str:
    """Return the managed public key as ``<format> <content>``, or ``""``.

    A missing or malformed file only means no row is marked as managed.
    """
    try:
        return _normalize_key(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, InvalidUsageError) as exc:
        logger.debug("No usable managed public key at %s: %s", path, exc)
        return ""


@key_app.command("list")
def key_list(
    ctx: typer.Context,
    format: KeyFormat = typer.Option(
        KeyFormat.table, "--format", "-f", help="Output format: table, text, or json."
    ),
) -> None:
    """List public keys authorized on the environment."""
    app_ctx: AppContext = ctx.obj
    with cancel_on_signals() as cancel:
        credential = app_ctx.credential(cancel)
    with app_ctx.client(credential) as client:
        keys = client.get().public_keys

    managed = _managed_key(app_ctx.paths.public_key)

    if format is KeyFormat.text:
        for key in keys:
            print_data(key)
    elif format is KeyFormat.json:
        print_json(keys)
    else:
        rows = []
        for key in keys:
            key_type, _, content = key.partition(" ")
            content = content.split(" ", 1)[0]
            is_managed = managed == f"{key_type} {content}"
            rows.append([key_type, _abbreviate(content), "yes" if is_managed else ""])
        print_table(["Type", "Key", "Managed"], rows, title="Public Keys")


@key_app.command("add")
def key_add(
    ctx: typer.Context,
    key: str = typer.Argument(help="Public key, e.g. \"$(cat ~/.ssh/id_ed25519.pub)\"."),
) -> None:
    """Authorize a public SSH key on the environment."""
    normalized = _normalize_key(key)
    app_ctx: AppContext = ctx.obj
    with cancel_on_signals() as cancel:
        credential = app_ctx.credential(cancel)
    with app_ctx.client(credential) as client:
        client.add_public_key(normalized)
    success("Key added.")


@key_app.command("remove")
def key_remove(
    ctx: typer.Context,
    key: str = typer.Argument(help="Public key exactly as shown by 'cloudshell key list --format text'."),
) -> None:
    """Revoke a public SSH key from the environment."""
    normalized = _normalize_key(key)
    app_ctx: AppContext = ctx.obj
    with cancel_on_signals() as cancel:
        credential = app_ctx.credential(cancel)
    with app_ctx.client(credential) as client:
        client.remove_public_key(normalized)
    success("Key removed.")
