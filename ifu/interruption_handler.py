"""
Turns SIGINT/SIGTERM into a graceful stop of the upload run.
"""

import logging
import signal
import sys
import threading
from typing import Any

from .cancellation import CancelToken


class InterruptionHandler:
    """
    Cancel the run on the first interruption, exit at once on the second.

    The first signal stops new dispatch; files already uploading finish or
    time out. Use as a context manager so the previous handlers are restored.
    """

    def __init__(self, cancel_token: CancelToken):
        self.cancel_token = cancel_token
        self.logger = logging.getLogger(__name__)
        self.is_handling_interruption = False
        self._previous: dict[int, Any] = {}

    def _signals(self) -> list[int]:
        signals = [signal.SIGINT, signal.SIGTERM]
        # SIGBREAK only exists on Windows
        if sys.platform == "win32" and hasattr(signal, "SIGBREAK"):
            signals.append(signal.SIGBREAK)
        return signals

    def install(self) -> None:
        # Signal handlers can only be set from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in self._signals():
            self._previous[signum] = signal.signal(signum, self._handle_interruption)

    def uninstall(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def __enter__(self) -> "InterruptionHandler":
        self.install()
        return self

    def __exit__(self, *exc_info) -> None:
        self.uninstall()

    def _handle_interruption(self, signum: int, frame: Any) -> None:
        if self.is_handling_interruption:
            self.logger.warning("Second interruption received, exiting immediately")
            sys.exit(130)

        self.is_handling_interruption = True
        name = signal.Signals(signum).name
        self.logger.warning(f"{name} received: finishing in-flight uploads, no new files will be started")
        self.cancel_token.cancel(f"interrupted by {name}")
