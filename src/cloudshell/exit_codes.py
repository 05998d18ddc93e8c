"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cloudshell.exceptions.CloudShellError` subclass.
Shell wrappers can inspect the exit code to tell an authorization problem
from an unreachable environment without parsing stderr.

A successful ``cloudshell connect`` exits with the remote shell's own exit
status, so these codes only describe failures that happen locally.

Example::

    $ cloudshell info
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the cached credential was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Authorization failed or the API rejected the credential."""

EXIT_NOT_FOUND = 4
"""The environment resource was not found (HTTP 404)."""

EXIT_API_ERROR = 5
"""The Cloud Shell API returned a non-2xx response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred talking to the API."""

EXIT_UNAVAILABLE = 7
"""The environment or the local terminal is not usable for a session."""

EXIT_LIFECYCLE_ERROR = 8
"""The environment could not be brought to the running state."""

EXIT_SESSION_ERROR = 9
"""The SSH transport or channel failed."""

EXIT_CANCELLED = 130
"""The operation was interrupted by the user (128 + SIGINT)."""
