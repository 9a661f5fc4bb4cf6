"""Deduplicating, delaying work queue for reconcile requests."""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from typing import Callable, Hashable

from .. import metrics

BASE_DELAY = 1.0
MAX_DELAY = 60.0


class WorkQueue:
    """Queue of reconcile requests processed by a pool of workers.

    An item is held at most once while waiting. An item added while it is
    being processed is queued again once the worker calls :meth:`done`, so
    one key is never processed by two workers at the same time.

    Failed items are retried with per-item exponential backoff starting at
    ``base_delay`` and doubling up to ``max_delay``. :meth:`forget` resets it.
    """

    def __init__(
        self,
        name: str,
        base_delay: float = BASE_DELAY,
        max_delay: float = MAX_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[Hashable] = deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._waiting: list[tuple[float, int, Hashable]] = []
        self._ready_at: dict[Hashable, float] = {}
        self._seq = itertools.count()
        self._failures: dict[Hashable, int] = {}
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def _update_depth(self) -> None:
        metrics.queue_depth.labels(controller=self.name).set(len(self._queue))

    def _add_locked(self, item: Hashable) -> None:
        if item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        self._update_depth()
        self._cond.notify()

    def add(self, item: Hashable) -> None:
        """Queue an item for processing."""
        with self._cond:
            if self._shutting_down:
                return
            self._add_locked(item)

    def add_after(self, item: Hashable, delay: float) -> None:
        """Queue an item once ``delay`` seconds have passed.

        If the item is already waiting, the earlier of the two times wins.
        """
        if delay <= 0:
            self.add(item)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            current = self._ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._ready_at[item] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._seq), item))
            self._cond.notify_all()

    def when(self, item: Hashable) -> float:
        """Return the backoff for the item's next retry and count the failure."""
        with self._cond:
            failures = self._failures.get(item, 0)
            self._failures[item] = failures + 1
        return min(self.base_delay * (2**failures), self.max_delay)

    def add_rate_limited(self, item: Hashable) -> None:
        """Queue an item after its current backoff."""
        self.add_after(item, self.when(item))

    def forget(self, item: Hashable) -> None:
        """Reset the item's backoff."""
        with self._cond:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._cond:
            return self._failures.get(item, 0)

    def _promote_due(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            ready_at, _, item = heapq.heappop(self._waiting)
            if self._ready_at.get(item) != ready_at:
                continue
            del self._ready_at[item]
            self._add_locked(item)

    def get(self, timeout: float | None = None) -> Hashable | None:
        """Block until an item is ready and mark it as processing.

        Returns:
            The item, or None if the queue shut down or ``timeout`` elapsed
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_due()
                if self._queue:
                    item = self._queue.popleft()
                    self._dirty.discard(item)
                    self._processing.add(item)
                    self._update_depth()
                    return item
                if self._shutting_down:
                    return None

                now = self._clock()
                wait: float | None = None
                if self._waiting:
                    wait = max(self._waiting[0][0] - now, 0.0)
                if deadline is not None:
                    if now >= deadline:
                        return None
                    remaining = deadline - now
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, item: Hashable) -> None:
        """Mark an item as processed, queueing it again if it was re-added meanwhile."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._update_depth()
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting items and wake up all waiting workers."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down
