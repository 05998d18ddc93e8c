"""cloudshell -- start and connect to Google Cloud Shell from the terminal.

This package authorizes against the Cloud Shell API with a loopback OAuth2
flow, boots the user's default environment, and opens an interactive SSH
session on it with a key pair it manages itself.

Typical workflow::

    cloudshell info      # show state and connection details
    cloudshell ssh       # start if needed, then open a shell

Modules:
    app: Typer application and CLI entry point.
    auth: Credential store and OAuth2 token acquisition.
    client: REST client for the default environment.
    lifecycle: Start-and-poll loop driving the environment to RUNNING.
    session: Interactive SSH session and port forwarding.
    keys: The managed Ed25519 key pair.
    models: Pydantic models shared across the package.
    config: XDG-aware paths, client secrets, and settings.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
