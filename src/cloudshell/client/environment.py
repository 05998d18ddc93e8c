"""Thin REST client for the user's default Cloud Shell environment.

This module provides :class:`EnvironmentClient`, a blocking client that
wraps :class:`httpx.Client` and exposes the four calls cloudshell makes
against ``users/me/environments/default``:

- :meth:`~EnvironmentClient.get` -- state, connection details, and keys.
- :meth:`~EnvironmentClient.start` -- boot the environment.
- :meth:`~EnvironmentClient.add_public_key` /
  :meth:`~EnvironmentClient.remove_public_key` -- manage authorized keys.

Every call is a single request carrying the bearer credential. Non-2xx
responses become typed exceptions carrying the status and the provider's
message. Nothing is retried here; polling policy belongs to
:class:`~cloudshell.lifecycle.LifecycleDriver`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from cloudshell.exceptions import APIError, AuthError, ConnectionError_, NotFoundError
from cloudshell.models import DEFAULT_API_URL, Credential, Environment

logger = logging.getLogger(__name__)

ENVIRONMENT_PATH = "/users/me/environments/default"


class EnvironmentClient:
    """Client for the default environment resource.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        credential: Bearer credential injected into every request.
        api_url: Base URL of the Cloud Shell API.
        timeout: Per-request timeout in seconds.

    Example::

        with EnvironmentClient(credential) as client:
            env = client.get()
    """

    def __init__(
        self,
        credential: Credential,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
    ) -> None:
        self._credential = credential
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> EnvironmentClient:
        self._client = httpx.Client(
            base_url=self._api_url,
            timeout=self._timeout,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def get(self) -> Environment:
        """Fetch the environment's current state, connection info, and keys."""
        response = self._request("GET", ENVIRONMENT_PATH)
        try:
            return Environment.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.debug("Undecodable environment body: %s", exc)
            content_type = response.headers.get("content-type", "unknown content type")
            raise APIError(
                f"Unexpected environment response (HTTP {response.status_code}, {content_type})",
                status_code=response.status_code,
            ) from exc

    def start(self, public_keys: Optional[list[str]] = None) -> None:
        """Ask the provider to start the environment.

        Starting an environment that is already running is accepted by the
        provider and is not an error.

        Args:
            public_keys: Keys to authorize as part of the start request.
        """
        body: dict[str, Any] = {}
        if public_keys:
            body["publicKeys"] = list(public_keys)
        self._request("POST", f"{ENVIRONMENT_PATH}:start", json_body=body)

    def add_public_key(self, key: str) -> None:
        """Authorize an OpenSSH public key on the environment."""
        self._request("POST", f"{ENVIRONMENT_PATH}:addPublicKey", json_body={"key": key})

    def remove_public_key(self, key: str) -> None:
        """Revoke a previously authorized OpenSSH public key."""
        self._request("POST", f"{ENVIRONMENT_PATH}:removePublicKey", json_body={"key": key})

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send one authenticated request and map errors.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            APIError: On any other non-2xx status.
            ConnectionError_: On network / timeout errors.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        headers = {
            "Accept": "application/json",
            "Authorization": self._credential.authorization_header,
        }
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, headers=headers, json=json_body)
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Cloud Shell API request failed: {exc}") from exc

        self._map_response_error(response)
        return response

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = _error_message(response)
        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg, status_code=status)
        raise APIError(full_msg, status_code=status)


def _error_message(response: httpx.Response) -> str:
    """Extract the provider's message from a Google API error body."""
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""

    if isinstance(detail, dict):
        err = detail.get("error")
        if isinstance(err, dict):
            return err.get("message") or err.get("status") or ""
        return detail.get("message") or (err if isinstance(err, str) else "") or ""
    return str(detail)
