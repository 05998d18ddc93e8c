"""Tests for raw mode, terminal size, and resize relay."""

from __future__ import annotations

import os
import pty
import select
import signal
import termios
import threading
import time
from unittest.mock import patch

import pytest

from cloudshell.session.terminal import DEFAULT_SIZE, ResizeWatcher, raw_mode, terminal_size


class TestRawMode:
    def test_restores_saved_attributes(self) -> None:
        with patch("cloudshell.session.terminal.termios") as mock_termios, \
             patch("cloudshell.session.terminal.tty") as mock_tty:
            mock_termios.tcgetattr.return_value = ["before"]
            with raw_mode(5):
                mock_tty.setraw.assert_called_once_with(5)
                mock_termios.tcsetattr.assert_not_called()

        mock_termios.tcsetattr.assert_called_once_with(5, mock_termios.TCSADRAIN, ["before"])

    def test_restores_on_exception(self) -> None:
        with patch("cloudshell.session.terminal.termios") as mock_termios, \
             patch("cloudshell.session.terminal.tty"):
            mock_termios.tcgetattr.return_value = ["before"]
            with pytest.raises(RuntimeError):
                with raw_mode(5):
                    raise RuntimeError("boom")

        mock_termios.tcsetattr.assert_called_once_with(5, mock_termios.TCSADRAIN, ["before"])

    def test_tcgetattr_failure_changes_nothing(self) -> None:
        with patch("cloudshell.session.terminal.termios") as mock_termios, \
             patch("cloudshell.session.terminal.tty") as mock_tty:
            mock_termios.tcgetattr.side_effect = OSError("not a tty")
            with pytest.raises(OSError):
                with raw_mode(5):
                    pass

        mock_tty.setraw.assert_not_called()
        mock_termios.tcsetattr.assert_not_called()

    def test_previous_signal_handlers_reinstalled(self) -> None:
        def sentinel(signum, frame) -> None:
            pass

        previous = signal.signal(signal.SIGTERM, sentinel)
        try:
            with patch("cloudshell.session.terminal.termios"), \
                 patch("cloudshell.session.terminal.tty"):
                with raw_mode(5):
                    assert signal.getsignal(signal.SIGTERM) is not sentinel
            assert signal.getsignal(signal.SIGTERM) is sentinel
        finally:
            signal.signal(signal.SIGTERM, previous)

    def test_sigterm_exits_through_restore(self) -> None:
        with patch("cloudshell.session.terminal.termios") as mock_termios, \
             patch("cloudshell.session.terminal.tty"):
            mock_termios.tcgetattr.return_value = ["before"]
            with pytest.raises(SystemExit) as exc_info:
                with raw_mode(5):
                    os.kill(os.getpid(), signal.SIGTERM)
                    time.sleep(5)

        assert exc_info.value.code == 128 + signal.SIGTERM
        mock_termios.tcsetattr.assert_called_once_with(5, mock_termios.TCSADRAIN, ["before"])

    @pytest.mark.skipif(not hasattr(os, "fork"), reason="needs a pseudo-terminal")
    def test_sigterm_leaves_real_terminal_cooked(self) -> None:
        pid, master = pty.fork()
        if pid == 0:
            code = 1
            try:
                with raw_mode(0):
                    os.write(1, b"R")
                    while True:
                        time.sleep(0.05)
            except SystemExit as exc:
                code = exc.code
            finally:
                os._exit(code)

        try:
            ready, _, _ = select.select([master], [], [], 10)
            assert ready, "child never entered raw mode"
            assert os.read(master, 1) == b"R"

            os.kill(pid, signal.SIGTERM)
            _, status = os.waitpid(pid, 0)

            assert os.WIFEXITED(status)
            assert os.WEXITSTATUS(status) == 128 + signal.SIGTERM
            lflag = termios.tcgetattr(master)[3]
            assert lflag & termios.ICANON
            assert lflag & termios.ECHO
        finally:
            os.close(master)


class TestTerminalSize:
    def test_reports_size(self) -> None:
        with patch(
            "cloudshell.session.terminal.os.get_terminal_size",
            return_value=os.terminal_size((132, 50)),
        ):
            assert terminal_size(0) == (132, 50)

    def test_falls_back_when_not_a_tty(self) -> None:
        with patch(
            "cloudshell.session.terminal.os.get_terminal_size", side_effect=OSError("ENOTTY")
        ):
            assert terminal_size(0) == DEFAULT_SIZE

    def test_falls_back_on_zero_size(self) -> None:
        with patch(
            "cloudshell.session.terminal.os.get_terminal_size",
            return_value=os.terminal_size((0, 0)),
        ):
            assert terminal_size(0) == (80, 24)


class TestResizeWatcher:
    def test_sigwinch_forwards_new_size(self) -> None:
        received: list[tuple[int, int]] = []
        delivered = threading.Event()

        def on_resize(width: int, height: int) -> None:
            received.append((width, height))
            delivered.set()

        with patch("cloudshell.session.terminal.terminal_size", return_value=(120, 30)):
            with ResizeWatcher(0, on_resize):
                os.kill(os.getpid(), signal.SIGWINCH)
                assert delivered.wait(5)

        assert received == [(120, 30)]

    def test_restores_previous_handler(self) -> None:
        before = signal.getsignal(signal.SIGWINCH)
        watcher = ResizeWatcher(0, lambda w, h: None)
        watcher.start()
        assert signal.getsignal(signal.SIGWINCH) != before
        watcher.stop()
        assert signal.getsignal(signal.SIGWINCH) == before

    def test_callback_failure_is_not_fatal(self) -> None:
        calls: list[int] = []
        first = threading.Event()
        second = threading.Event()

        def flaky(width: int, height: int) -> None:
            calls.append(width)
            if len(calls) == 1:
                first.set()
                raise OSError("channel closed")
            second.set()

        with patch("cloudshell.session.terminal.terminal_size", return_value=(90, 20)):
            watcher = ResizeWatcher(0, flaky)
            watcher.start()
            try:
                watcher._handle_signal(signal.SIGWINCH, None)
                assert first.wait(5)
                watcher._handle_signal(signal.SIGWINCH, None)
                assert second.wait(5)
            finally:
                watcher.stop()

        assert calls == [90, 90]

    def test_inert_outside_main_thread(self) -> None:
        before = signal.getsignal(signal.SIGWINCH)
        result: dict[str, object] = {}

        def run() -> None:
            watcher = ResizeWatcher(0, lambda w, h: None)
            watcher.start()
            result["handler"] = signal.getsignal(signal.SIGWINCH)
            watcher.stop()

        thread = threading.Thread(target=run)
        thread.start()
        thread.join(5)
        assert result["handler"] == before
