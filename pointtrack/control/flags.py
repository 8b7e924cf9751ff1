"""Operator intent bits shared between the UI side and the pipeline worker."""

from __future__ import annotations

import threading
from enum import IntFlag


class Flag(IntFlag):
    CENTER = 1 << 0
    ENABLED_H = 1 << 1
    ENABLED_P = 1 << 2
    ZERO = 1 << 3


class ControlFlags:
    """Single-word bit field with atomic read-modify-write.

    The internal lock only ever wraps one integer operation, so setters
    never wait on a pipeline cycle.
    """

    def __init__(self, initial: Flag = Flag.ENABLED_H | Flag.ENABLED_P):
        self._bits = int(initial)
        self._lock = threading.Lock()

    def set(self, flag: Flag, value: bool) -> None:
        with self._lock:
            if value:
                self._bits |= int(flag)
            else:
                self._bits &= ~int(flag)

    def negate(self, flag: Flag) -> None:
        with self._lock:
            self._bits ^= int(flag)

    def get(self, flag: Flag) -> bool:
        with self._lock:
            return (self._bits & int(flag)) == int(flag)

    def test_and_clear(self, flag: Flag) -> bool:
        """Return whether flag was set, clearing it in the same step."""
        with self._lock:
            was_set = (self._bits & int(flag)) == int(flag)
            self._bits &= ~int(flag)
            return was_set

    def snapshot(self) -> Flag:
        with self._lock:
            return Flag(self._bits)
