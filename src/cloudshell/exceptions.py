"""Exception hierarchy for cloudshell.

All exceptions inherit from :class:`CloudShellError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cloudshell.exit_codes`.
The top-level error handler in :func:`cloudshell.app.main` catches
``CloudShellError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CloudShellError (exit 1)
    +-- ConfigError             (exit 1)
    +-- InvalidUsageError       (exit 2)
    +-- AuthError               (exit 3)
    +-- APIError                (exit 5)
    |   +-- NotFoundError       (exit 4)
    +-- ConnectionError_        (exit 6)
    +-- UnavailableError        (exit 7)
    +-- LifecycleError          (exit 8)
    |   +-- EnvironmentDeletingError
    |   +-- StartTimeoutError
    +-- SessionError            (exit 9)
    +-- CancelledError          (exit 130)
"""

from __future__ import annotations

from cloudshell.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SESSION_ERROR,
    EXIT_UNAVAILABLE,
)


class CloudShellError(Exception):
    """Base exception for all cloudshell errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cloudshell.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(CloudShellError):
    """Raised for configuration problems (missing client secrets, invalid settings)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(CloudShellError):
    """Raised for invalid CLI arguments (malformed keys, bad forward specs)."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(CloudShellError):
    """Raised when authorization fails or the API rejects the bearer token."""

    exit_code = EXIT_AUTH_FAILURE


class APIError(CloudShellError):
    """Raised when the Cloud Shell API answers with a non-2xx status.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status returned by the provider, if any.
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(APIError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ConnectionError_(CloudShellError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class UnavailableError(CloudShellError):
    """Raised when a session cannot be attempted.

    Covers an environment that is not running, missing SSH connection
    details, and a standard input that is not an interactive terminal.
    """

    exit_code = EXIT_UNAVAILABLE


class LifecycleError(CloudShellError):
    """Raised when the environment cannot be driven to the running state."""

    exit_code = EXIT_LIFECYCLE_ERROR


class EnvironmentDeletingError(LifecycleError):
    """Raised when the provider reports the environment as being deleted."""


class StartTimeoutError(LifecycleError):
    """Raised when a configured start timeout elapses before ``RUNNING``."""


class SessionError(CloudShellError):
    """Raised when the SSH transport or the shell channel fails locally."""

    exit_code = EXIT_SESSION_ERROR


class CancelledError(CloudShellError):
    """Raised when the user interrupts a blocking authorization wait."""

    exit_code = EXIT_CANCELLED
