"""
Cooperative cancellation.

A ``CancellationToken`` is a thread-safe flag shared by the caller, the agent
loop and tool executors. Nothing is interrupted pre-emptively: the loop checks
the flag at its suspension points and executors are expected to poll it.
"""

import threading


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Set the flag. Later calls keep the first reason."""
        with self._lock:
            if not self._event.is_set():
                self._reason = reason
                self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; returns the flag."""
        return self._event.wait(timeout)

    def cancel_after(self, seconds: float, reason: str = "timeout") -> "Deadline":
        """
        Arm a wall-clock deadline that cancels this token.

        Args:
            seconds: Delay before cancellation
            reason: Reason recorded when the deadline fires

        Returns:
            Deadline handle; call ``cancel()`` on it once the run is over
        """
        deadline = Deadline(self, seconds, reason)
        deadline.start()
        return deadline

    def __repr__(self) -> str:
        state = f"cancelled ({self._reason})" if self.is_cancelled else "active"
        return f"CancellationToken({state})"


class Deadline:
    """Timer that cancels a token after a delay."""

    def __init__(self, token: CancellationToken, seconds: float, reason: str = "timeout"):
        self.token = token
        self.seconds = seconds
        self.reason = reason
        self._timer = threading.Timer(seconds, token.cancel, kwargs={"reason": reason})
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        """Disarm the timer; a no-op if it already fired."""
        self._timer.cancel()

    @property
    def fired(self) -> bool:
        return self.token.is_cancelled and self.token.reason == self.reason
