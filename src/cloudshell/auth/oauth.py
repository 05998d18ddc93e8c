"""OAuth2 Authorization Code flow with a loopback redirect.

This module provides :class:`TokenAcquirer`, which obtains the bearer
credential every API call needs:

1. Returns the cached credential from the
   :class:`~cloudshell.auth.credential_store.CredentialStore` when one exists.
2. Otherwise binds a temporary HTTP server on an ephemeral ``127.0.0.1``
   port and uses it as the redirect target.
3. Shows the authorization URL and tries to open it in a browser.
4. Waits for the redirect carrying ``code`` (or for cancellation).
5. Exchanges the code at the token endpoint and persists the result.

The callback server runs on a background thread that is always shut down
and joined before :meth:`TokenAcquirer.acquire` returns, whatever the
outcome, so repeated calls never leave a listener behind.

Expiry is not checked here. An expired token surfaces as an
:class:`~cloudshell.exceptions.AuthError` from the API client; the user then
runs ``cloudshell auth login`` to replace it.
"""

from __future__ import annotations

import html
import logging
import queue
import threading
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from cloudshell.auth.credential_store import CredentialStore
from cloudshell.exceptions import AuthError, CancelledError, ConnectionError_
from cloudshell.models import ClientSecrets, Credential
from cloudshell.output import info, suggest

logger = logging.getLogger(__name__)

SCOPE = "https://www.googleapis.com/auth/cloud-platform"
"""Scope granting management of the Cloud Shell environment."""

STATE_TOKEN = "state-token"
"""Fixed anti-forgery value echoed back by the provider."""

_WAIT_SLICE = 0.1

# One interactive authorization per process at a time.
_authorize_lock = threading.Lock()


@dataclass
class _CallbackResult:
    code: Optional[str] = None
    error: Optional[str] = None


class TokenAcquirer:
    """Obtain a bearer credential, running the browser flow when needed.

    Args:
        secrets: The OAuth2 client registration.
        store: Where the credential is cached between invocations.
        open_browser: Try to launch the system browser with the
            authorization URL. The URL is always printed as well.
        timeout: Timeout in seconds for the token exchange request.
    """

    def __init__(
        self,
        secrets: ClientSecrets,
        store: CredentialStore,
        open_browser: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._secrets = secrets
        self._store = store
        self._open_browser = open_browser
        self._timeout = timeout

    def acquire(self, cancel: Optional[threading.Event] = None) -> Credential:
        """Return the cached credential, or authorize interactively.

        Args:
            cancel: Set from another thread (typically a signal handler) to
                abandon the wait for the browser redirect.

        Returns:
            The cached credential unchanged, or a freshly exchanged one that
            has already been saved.

        Raises:
            CancelledError: If *cancel* is set before the redirect arrives.
            AuthError: If the provider reports an error or rejects the code.
            ConnectionError_: If the token endpoint cannot be reached.
        """
        credential = self._store.load()
        if credential is not None:
            logger.debug("Using cached credential from %s", self._store.path)
            return credential
        return self.login(cancel)

    def login(self, cancel: Optional[threading.Event] = None) -> Credential:
        """Run the interactive flow unconditionally and replace the cached credential."""
        with _authorize_lock:
            return self._authorize(cancel or threading.Event())

    def authorization_url(self, redirect_uri: str) -> str:
        """Build the provider URL the user must visit to grant access."""
        params = {
            "client_id": self._secrets.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": SCOPE,
            "state": STATE_TOKEN,
            "access_type": "offline",
        }
        return f"{self._secrets.auth_uri}?{urlencode(params)}"

    # ------------------------------------------------------------------ #
    # Flow
    # ------------------------------------------------------------------ #

    def _authorize(self, cancel: threading.Event) -> Credential:
        outcome: queue.Queue[_CallbackResult] = queue.Queue(maxsize=1)
        server = HTTPServer(("127.0.0.1", 0), _make_callback_handler(outcome))
        port = server.server_address[1]
        redirect_uri = f"http://127.0.0.1:{port}/"
        logger.debug("Callback server listening on %s", redirect_uri)

        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": _WAIT_SLICE},
            name="cloudshell-oauth-callback",
            daemon=True,
        )
        thread.start()
        try:
            self._present(self.authorization_url(redirect_uri))
            code = self._wait_for_code(outcome, cancel)
        finally:
            server.shutdown()
            server.server_close()
            thread.join()
            logger.debug("Callback server on port %d closed", port)

        credential = self._exchange_code(code, redirect_uri)
        self._store.save(credential)
        return credential

    def _present(self, auth_url: str) -> None:
        """Print the authorization URL and try to open it in a browser."""
        info("Open the following link in your browser to authorize cloudshell:")
        info(f"  {auth_url}")
        if not self._open_browser:
            return

        def open_browser() -> None:
            try:
                opened = webbrowser.open(auth_url)
            except webbrowser.Error as exc:
                logger.debug("Could not launch a browser: %s", exc)
                return
            if not opened:
                logger.debug("No browser available; waiting for the link to be opened manually")

        threading.Thread(target=open_browser, daemon=True).start()
        suggest("Waiting for the authorization redirect (Ctrl-C to cancel)...")

    def _wait_for_code(
        self,
        outcome: queue.Queue[_CallbackResult],
        cancel: threading.Event,
    ) -> str:
        """Block until the callback delivers a result or *cancel* is set."""
        while True:
            if cancel.is_set():
                raise CancelledError("Authorization cancelled")
            try:
                result = outcome.get(timeout=_WAIT_SLICE)
            except queue.Empty:
                continue
            if result.error:
                raise AuthError(f"Authorization failed: {result.error}")
            assert result.code is not None
            return result.code

    def _exchange_code(self, code: str, redirect_uri: str) -> Credential:
        """Exchange the authorization code for a credential.

        Raises:
            AuthError: If the token endpoint rejects the code or its
                response lacks ``access_token``.
            ConnectionError_: On network failures.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self._secrets.client_id,
            "client_secret": self._secrets.client_secret,
        }
        try:
            response = httpx.post(
                self._secrets.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"Token exchange failed with status {exc.response.status_code}: "
                f"{_token_error_message(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Token exchange failed: {exc}") from exc

        if not token_data.get("access_token"):
            raise AuthError("Token response missing 'access_token' field")

        expiry = None
        expires_in = token_data.get("expires_in")
        if expires_in is not None:
            try:
                expiry = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
            except (TypeError, ValueError, OverflowError):
                logger.debug("Ignoring unusable expires_in %r", expires_in)

        return Credential(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type") or "Bearer",
            refresh_token=token_data.get("refresh_token"),
            expiry=expiry,
        )


def _token_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or str(body)
    return str(body)


def _make_callback_handler(
    outcome: queue.Queue[_CallbackResult],
) -> type[BaseHTTPRequestHandler]:
    """Build a request handler class that reports into *outcome*."""

    def deliver(result: _CallbackResult) -> None:
        # Only the first redirect counts; later ones are answered but dropped.
        try:
            outcome.put_nowait(result)
        except queue.Full:
            logger.debug("Ignoring extra authorization callback")

    class CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            params = parse_qs(urlparse(self.path).query)
            error = params.get("error", [""])[0]
            code = params.get("code", [""])[0].strip()
            state = params.get("state", [""])[0]

            if error:
                description = params.get("error_description", [""])[0]
                message = f"{error} - {description}" if description else error
                deliver(_CallbackResult(error=message))
                self._respond(200, f"Authorization failed: {message}")
                return

            if not code or state != STATE_TOKEN:
                self._respond(400, "Missing or invalid authorization code.")
                return

            deliver(_CallbackResult(code=code))
            self._respond(
                200,
                "Authorization successful! You can close this window "
                "and return to the terminal.",
            )

        def _respond(self, status: int, message: str) -> None:
            body = f"<html><body><h2>{html.escape(message)}</h2></body></html>"
            payload = body.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("callback: " + format, *args)

    return CallbackHandler
