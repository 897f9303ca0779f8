"""
Streaming helpers: cooperative cancellation and the smoothing window.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER_CHARS = 1024


class CancellationToken:
    """
    Cooperative cancellation signal.

    Safe to cancel from another thread (e.g. a signal handler) while the
    stream is consumed on the event loop. Streams check it between
    fragments, never in the middle of one.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


class StreamBuffer:
    """
    Small fixed-size smoothing window between provider and consumer.

    Fragments are held until ``window`` of them are pending or their text
    reaches ``max_chars``, then released joined in arrival order. A window
    of 1 passes every fragment through unchanged.

    Call ``flush()`` on completion, error and cancellation so nothing
    pending is dropped.
    """

    def __init__(self, window: int = 1, max_chars: int = DEFAULT_MAX_BUFFER_CHARS):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        if max_chars < 1:
            raise ValueError(f"max_chars must be >= 1, got {max_chars}")
        self._window = window
        self._max_chars = max_chars
        self._pending: list[str] = []
        self._pending_chars = 0

    @property
    def window(self) -> int:
        return self._window

    @property
    def pending(self) -> int:
        """Number of fragments held back."""
        return len(self._pending)

    def push(self, fragment: str) -> list[str]:
        """Add a fragment; return the chunks now ready to emit."""
        if not fragment:
            return []
        self._pending.append(fragment)
        self._pending_chars += len(fragment)

        if len(self._pending) >= self._window or self._pending_chars >= self._max_chars:
            return self.flush()
        return []

    def flush(self) -> list[str]:
        """Release everything pending as one chunk (empty list if nothing)."""
        if not self._pending:
            return []
        chunk = "".join(self._pending)
        self._pending.clear()
        self._pending_chars = 0
        return [chunk]
