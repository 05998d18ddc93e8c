"""Per-invocation state shared by the CLI commands.

:class:`AppContext` is created by :func:`~cloudshell.app.main_callback` and
stored in ``ctx.obj``. It resolves paths and settings once and builds the
collaborators each command needs, so commands stay short.

:func:`cancel_on_signals` turns ``SIGINT``/``SIGTERM`` into a
:class:`threading.Event` for the blocking waits (browser redirect, start
polling).
"""

from __future__ import annotations

import contextlib
import logging
import signal
import threading
from typing import Any, Iterator, Optional

from cloudshell.auth import CredentialStore, TokenAcquirer
from cloudshell.client import EnvironmentClient
from cloudshell.config import Paths, load_client_secrets, load_settings
from cloudshell.keys import KeyStore
from cloudshell.lifecycle import LifecycleDriver
from cloudshell.models import Credential, Settings

logger = logging.getLogger(__name__)

_CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class AppContext:
    """Lazily built collaborators for one CLI invocation.

    Args:
        paths: Where local state lives. Defaults to the XDG locations.
        open_browser: Whether authorization may launch a browser.
    """

    def __init__(self, paths: Optional[Paths] = None, open_browser: bool = True) -> None:
        self.paths = paths or Paths.default()
        self.open_browser = open_browser
        self._settings: Optional[Settings] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings(self.paths.settings)
        return self._settings

    @property
    def credential_store(self) -> CredentialStore:
        return CredentialStore(self.paths.credentials)

    @property
    def key_store(self) -> KeyStore:
        return KeyStore(self.paths.private_key, self.paths.public_key)

    def token_acquirer(self) -> TokenAcquirer:
        """Build the acquirer; fails with ``ConfigError`` if client secrets are missing."""
        secrets = load_client_secrets(self.paths.client_secrets)
        return TokenAcquirer(
            secrets,
            self.credential_store,
            open_browser=self.open_browser,
            timeout=self.settings.request_timeout,
        )

    def credential(self, cancel: Optional[threading.Event] = None) -> Credential:
        return self.token_acquirer().acquire(cancel)

    def client(self, credential: Credential) -> EnvironmentClient:
        return EnvironmentClient(
            credential,
            api_url=self.settings.api_url,
            timeout=self.settings.request_timeout,
        )

    def driver(self, client: EnvironmentClient) -> LifecycleDriver:
        return LifecycleDriver(
            client,
            key_store=self.key_store,
            poll_interval=self.settings.poll_interval,
            start_timeout=self.settings.start_timeout,
        )


@contextlib.contextmanager
def cancel_on_signals() -> Iterator[threading.Event]:
    """Yield an event that is set when ``SIGINT`` or ``SIGTERM`` arrives.

    Previous handlers are restored on exit. Outside the main thread no
    handlers are installed and the event is only set by the caller.
    """
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _handler(signum: int, frame: Any) -> None:
        logger.debug("Received signal %d, cancelling", signum)
        cancel.set()

    previous = {sig: signal.signal(sig, _handler) for sig in _CANCEL_SIGNALS}
    try:
        yield cancel
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
