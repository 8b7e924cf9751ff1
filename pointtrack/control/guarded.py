"""Lock-guarded value shared across worker threads."""

from __future__ import annotations

import copy
import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class Guarded(Generic[T]):
    """Holds a value behind a private lock.

    Only copy-in/copy-out access is offered; the lock is never handed out,
    so callers cannot hold it across calls into another worker.
    """

    def __init__(self, value: T):
        self._value = copy.deepcopy(value)
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            return copy.deepcopy(self._value)

    def set(self, value: T) -> None:
        value = copy.deepcopy(value)
        with self._lock:
            self._value = value
