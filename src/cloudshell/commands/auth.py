"""Auth commands -- manage the cached OAuth2 credential.

Provides the ``cloudshell auth`` sub-command group::

    cloudshell auth login    # run the browser flow, replace the credential
    cloudshell auth status   # show whether a credential is cached
    cloudshell auth logout   # delete the cached credential

Other commands authorize on demand, so ``login`` is only needed to switch
accounts or replace an expired token.
"""

from __future__ import annotations

from datetime import datetime, timezone

import typer

from cloudshell.context import AppContext, cancel_on_signals
from cloudshell.output import OutputFormat, get_output, info, print_json, print_table, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Only print the authorization URL."
    ),
) -> None:
    """Authorize cloudshell with your Google account."""
    app_ctx: AppContext = ctx.obj
    if no_browser:
        app_ctx.open_browser = False
    acquirer = app_ctx.token_acquirer()
    with cancel_on_signals() as cancel:
        acquirer.login(cancel)
    success(f"Credential saved to {app_ctx.credential_store.path}")


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Delete the cached credential."""
    app_ctx: AppContext = ctx.obj
    if app_ctx.credential_store.clear():
        success("Logged out.")
    else:
        info("No cached credential.")


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show the cached credential without contacting the provider."""
    app_ctx: AppContext = ctx.obj
    store = app_ctx.credential_store
    credential = store.load()
    if credential is None:
        info("Not logged in.")
        suggest("Run 'cloudshell auth login' to authorize.")
        return

    expiry = "unknown"
    expired = False
    if credential.expiry is not None:
        expiry = credential.expiry.isoformat()
        expiry_utc = credential.expiry
        if expiry_utc.tzinfo is None:
            expiry_utc = expiry_utc.replace(tzinfo=timezone.utc)
        expired = expiry_utc <= datetime.now(timezone.utc)

    if get_output().format == OutputFormat.JSON:
        print_json(
            {
                "path": str(store.path),
                "token_type": credential.token_type,
                "expiry": credential.expiry.isoformat() if credential.expiry else None,
                "expired": expired,
                "refresh_token": credential.refresh_token is not None,
            }
        )
        return

    rows = [
        ["Path", str(store.path)],
        ["Token type", credential.token_type],
        ["Expires", expiry + (" (expired)" if expired else "")],
        ["Refresh token", "yes" if credential.refresh_token else "no"],
    ]
    print_table(["Field", "Value"], rows, title="Cached Credential")
    if expired:
        suggest("Run 'cloudshell auth login' to replace the expired token.")
