"""Cooperative cancellation token shared between a job and its worker."""

import threading

from treasure_hunt.engine.errors import SolveCancelled


class CancellationToken:
    """Thread-safe one-shot cancellation flag.

    The requesting side calls ``cancel``; the worker polls
    ``raise_if_cancelled`` at its safe checkpoints.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SolveCancelled("cancellation requested")
