"""
Logical clocks supplying the mint timestamp.

`now()` must never go backwards. `SystemClock` reads wall-clock seconds and
clamps to the last value it returned; `ManualClock` is driven by tests.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Unix seconds, non-decreasing across calls."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        t = int(time.time())
        with self._lock:
            if t < self._last:
                t = self._last
            self._last = t
        return t


class ManualClock:
    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("clock start must be non-negative")
        self._t = int(start)

    def now(self) -> int:
        return self._t

    def set(self, t: int) -> None:
        if t < self._t:
            raise ValueError(f"clock cannot go backwards ({t} < {self._t})")
        self._t = int(t)

    def advance(self, dt: int = 1) -> int:
        if dt < 0:
            raise ValueError("advance must be non-negative")
        self._t += int(dt)
        return self._t


__all__ = ["Clock", "SystemClock", "ManualClock"]
