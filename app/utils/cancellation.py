"""Cancellation token shared by every stage of one pipeline run."""

import threading

from app.core.errors import PipelineCancelled


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise PipelineCancelled if the token was triggered."""
        if self._event.is_set():
            raise PipelineCancelled()

    def wait(self, seconds: float) -> bool:
        """
        Sleep for up to ``seconds``, waking early on cancellation.

        Returns:
            True if the token was cancelled during (or before) the wait
        """
        return self._event.wait(timeout=max(0.0, seconds))
