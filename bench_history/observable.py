"""
Snapshot feed: the current value plus a subscription list.

The history store is the single writer; any number of readers either poll
`current` or subscribe for every new snapshot. Snapshots are replaced
wholesale, never mutated, so a reader cannot observe a torn state.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, List, TypeVar

from bench_history.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], None]


class SnapshotFeed(Generic[T]):
    """
    Thread-safe holder for the latest published snapshot.

    Subscribers are called on the publishing thread, outside the internal
    lock, in subscription order.
    """

    def __init__(self, initial: T) -> None:
        self._lock = threading.Lock()
        self._current = initial
        self._subscribers: List[Subscriber[T]] = []

    @property
    def current(self) -> T:
        with self._lock:
            return self._current

    def subscribe(self, callback: Subscriber[T], replay: bool = False) -> Callable[[], None]:
        """
        Register `callback` for future snapshots.

        Returns a function that removes the subscription (idempotent).
        """
        with self._lock:
            self._subscribers.append(callback)
            snapshot = self._current

        if replay:
            self._notify(callback, snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, snapshot: T) -> None:
        with self._lock:
            self._current = snapshot
            subscribers = list(self._subscribers)

        for callback in subscribers:
            self._notify(callback, snapshot)

    @staticmethod
    def _notify(callback: Subscriber[T], snapshot: T) -> None:
        try:
            callback(snapshot)
        except Exception:  # noqa: BLE001
            log.exception("Snapshot subscriber failed", extra={"subscriber": repr(callback)})


__all__ = ["SnapshotFeed"]
