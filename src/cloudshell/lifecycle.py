"""Drive the environment to the ``RUNNING`` state.

:class:`LifecycleDriver` issues one start request and then polls the
environment on a fixed interval until the provider reports ``RUNNING``.

State handling::

    DISABLED / STARTING / UNKNOWN  -> wait poll_interval, poll again
    RUNNING                        -> done, return the environment
    DELETING                       -> EnvironmentDeletingError

The wait between polls is the only place the loop suspends, and it is
interrupted by the caller's cancellation event. Cancellation is not an
error: :meth:`LifecycleDriver.ensure_running` returns ``None``. Transport
errors from a poll propagate immediately and are never retried.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from cloudshell.client import EnvironmentClient
from cloudshell.exceptions import EnvironmentDeletingError, StartTimeoutError
from cloudshell.keys import KeyStore
from cloudshell.models import Environment, EnvironmentState
from cloudshell.output import progress

logger = logging.getLogger(__name__)


class LifecycleDriver:
    """Start the environment and wait for it to become reachable.

    Args:
        client: An open :class:`~cloudshell.client.EnvironmentClient`.
        key_store: When given, the managed key pair is created if needed and
            its public key is authorized by the start request.
        poll_interval: Seconds to wait between state polls.
        start_timeout: Optional upper bound in seconds on the whole wait.
            ``None`` waits until ``RUNNING``, ``DELETING``, or cancellation.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        client: EnvironmentClient,
        key_store: Optional[KeyStore] = None,
        poll_interval: float = 5.0,
        start_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._key_store = key_store
        self._poll_interval = poll_interval
        self._start_timeout = start_timeout
        self._clock = clock

    def ensure_running(self, cancel: Optional[threading.Event] = None) -> Optional[Environment]:
        """Start the environment and poll until it is ``RUNNING``.

        Args:
            cancel: Event checked before starting and during every wait.

        Returns:
            The ``RUNNING`` environment, including its SSH connection
            fields, or ``None`` if *cancel* was set first.

        Raises:
            EnvironmentDeletingError: If the provider reports ``DELETING``.
            StartTimeoutError: If ``start_timeout`` elapses first.
            CloudShellError: Any API error from ``start`` or ``get``.
        """
        cancel = cancel or threading.Event()

        public_keys: list[str] = []
        if self._key_store is not None:
            public_keys.append(self._key_store.ensure().public_key)

        if cancel.is_set():
            return None

        logger.debug("Requesting environment start")
        self._client.start(public_keys)

        deadline = None
        if self._start_timeout is not None:
            deadline = self._clock() + self._start_timeout

        while True:
            env = self._client.get()
            logger.debug("Environment state: %s", env.raw_state or env.state.value)

            if env.state is EnvironmentState.RUNNING:
                return env
            if env.state is EnvironmentState.DELETING:
                raise EnvironmentDeletingError(
                    "The environment is being deleted; try again once deletion completes"
                )

            wait = self._poll_interval
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise StartTimeoutError(
                        f"Environment did not reach RUNNING within {self._start_timeout:g}s "
                        f"(last state: {env.display_state})"
                    )
                wait = min(wait, remaining)

            progress(f"Environment is {env.display_state.lower()}, waiting...")
            if cancel.wait(wait):
                logger.debug("Start wait cancelled")
                return None
