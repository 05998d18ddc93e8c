"""Local terminal handling for interactive sessions.

- :func:`raw_mode` -- put a TTY in raw mode and always restore it.
- :func:`terminal_size` -- current ``(width, height)`` of a TTY.
- :class:`ResizeWatcher` -- relay ``SIGWINCH`` to a callback from a
  background thread.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import termios
import threading
import tty
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (80, 24)

_EXIT_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def _exit_on_signal(signum: int, frame: Any) -> None:
    raise SystemExit(128 + signum)


@contextlib.contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """Switch *fd* to raw mode for the duration of the block.

    The attributes saved on entry are written back on every exit path,
    including exceptions raised inside the block. While the block runs,
    ``SIGTERM`` and ``SIGHUP`` raise :class:`SystemExit` (status
    ``128 + signum``) so the restore still happens; the previous handlers
    are reinstalled afterwards. Handlers are only touched from the main
    thread.
    """
    saved = termios.tcgetattr(fd)
    previous: dict[int, Any] = {}
    if threading.current_thread() is threading.main_thread():
        previous = {sig: signal.signal(sig, _exit_on_signal) for sig in _EXIT_SIGNALS}
    try:
        tty.setraw(fd)
        yield
    finally:
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        except termios.error as exc:
            logger.debug("Terminal attributes not restored: %s", exc)
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def terminal_size(fd: int) -> tuple[int, int]:
    """Return ``(width, height)`` of the terminal on *fd*, or 80x24."""
    try:
        size = os.get_terminal_size(fd)
    except OSError:
        return DEFAULT_SIZE
    if not size.columns or not size.lines:
        return DEFAULT_SIZE
    return size.columns, size.lines


class ResizeWatcher:
    """Forward local window size changes to *on_resize*.

    The signal handler only sets an event; the callback runs on a
    dedicated thread so it may block on network I/O. Failures in the
    callback are logged and otherwise ignored.

    Signal handlers can only be installed from the main thread. When
    started elsewhere, or on platforms without ``SIGWINCH``, the watcher
    is inert.

    Args:
        fd: Terminal whose size is reported.
        on_resize: Called with ``(width, height)`` after each change.
    """

    def __init__(self, fd: int, on_resize: Callable[[int, int], Any]) -> None:
        self._fd = fd
        self._on_resize = on_resize
        self._pending = threading.Event()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._previous: Any = None
        self._installed = False

    def start(self) -> None:
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is None or threading.current_thread() is not threading.main_thread():
            logger.debug("Window resize relay disabled")
            return

        self._thread = threading.Thread(
            target=self._run, name="cloudshell-resize", daemon=True
        )
        self._thread.start()
        self._previous = signal.signal(sigwinch, self._handle_signal)
        self._installed = True

    def stop(self) -> None:
        """Restore the previous handler and join the relay thread."""
        if self._installed:
            signal.signal(signal.SIGWINCH, self._previous)
            self._installed = False
        self._stopped.set()
        self._pending.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> ResizeWatcher:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self._pending.set()

    def _run(self) -> None:
        while True:
            self._pending.wait()
            self._pending.clear()
            if self._stopped.is_set():
                return
            width, height = terminal_size(self._fd)
            try:
                self._on_resize(width, height)
            except Exception as exc:
                logger.debug("Window resize not forwarded: %s", exc)
