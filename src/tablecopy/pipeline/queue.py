from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic

from ..errors import QueueInvariantViolation
from ..metrics import QUEUE_DEPTH
from .types import T


class BoundedQueue(Generic[T]):
    """Fixed-capacity FIFO handoff between threads.

    ``push`` blocks while the queue is full, ``pop`` blocks while it is empty.
    One lock guards the deque; two conditions on that lock wake exactly one
    waiter per successful operation, since each operation changes the length
    by one.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

    def push(self, item: T) -> None:
        """Append ``item``, waiting for room if the queue is full."""
        with self._not_full:
            while len(self._items) >= self._capacity:
                self._not_full.wait()
            self._items.append(item)
            depth = len(self._items)
            if depth > self._capacity:
                raise QueueInvariantViolation(f"queue length {depth} > capacity {self._capacity}")
            self._not_empty.notify()
        QUEUE_DEPTH.set(depth)

    def pop(self) -> T:
        """Remove and return the oldest item, waiting if the queue is empty."""
        with self._not_empty:
            while not self._items:
                self._not_empty.wait()
            item = self._items.popleft()
            depth = len(self._items)
            self._not_full.notify()
        QUEUE_DEPTH.set(depth)
        return item
