import threading
import time


class CancelToken:
    """Run-wide cancellation flag with an optional deadline."""

    def __init__(self, deadline: float | None = None) -> None:
        """
        Args:
            deadline: Seconds from now after which the run counts as cancelled.
        """
        self._event = threading.Event()
        self._expires_at = time.monotonic() + deadline if deadline else None
        self.reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            self.cancel("deadline exceeded")
            return True
        return False
