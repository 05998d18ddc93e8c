"""HTTP client for the Cloud Shell REST API.

Classes:
    :class:`EnvironmentClient` -- blocking client for the user's default
    environment, backed by :class:`httpx.Client`.

Example::

    from cloudshell.client import EnvironmentClient

    with EnvironmentClient(credential, api_url=settings.api_url) as client:
        env = client.get()
"""

from cloudshell.client.environment import ENVIRONMENT_PATH, EnvironmentClient

__all__ = ["ENVIRONMENT_PATH", "EnvironmentClient"]
