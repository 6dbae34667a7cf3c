"""
Consumers waiting for the next candidate set.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class CallbackQueue:
    """Zero-argument continuations, each run at most once."""

    def __init__(self) -> None:
        self._callbacks: list[Callback] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def enqueue(self, callback: Callback) -> None:
        self._callbacks.append(callback)

    def clear(self) -> None:
        self._callbacks = []

    def drain(self) -> int:
        """Invoke every queued callback and empty the queue.

        The queue is swapped out before invoking, so callbacks enqueued
        during the drain wait for the next commit.
        """
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Completion callback failed: {e}")
        return len(callbacks)
