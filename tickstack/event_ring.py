"""Fixed-capacity event log shown in the dashboard's event panel.

The ring appends until it holds ``capacity`` events, then overwrites
slots cyclically starting from index 0.  After the first overwrite the
slot order is no longer chronological; readers that need time order
must sort by ``TickEvent.received_at``.
"""

from __future__ import annotations

import threading

from .common_types import TickEvent


class EventRing:
    """Thread-safe fill-then-overwrite ring of recent ``TickEvent`` objects.

    All mutation happens under a single lock so concurrent ``push`` calls
    never interleave partial updates of ``slots`` / ``fill_cursor`` /
    ``is_full``.
    """

    def __init__(self, capacity: int = 8) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._slots: list[TickEvent] = []
        self._fill_cursor = 0
        self._is_full = False
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def fill_cursor(self) -> int:
        with self._lock:
            return self._fill_cursor

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._is_full

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def push(self, event: TickEvent) -> None:
        """Append while filling; overwrite ``slots[fill_cursor]`` once full."""
        with self._lock:
            if not self._is_full:
                self._slots.append(event)
                if len(self._slots) == self._capacity:
                    self._is_full = True
                return
            self._slots[self._fill_cursor] = event
            self._fill_cursor = (self._fill_cursor + 1) % self._capacity

    def snapshot(self) -> list[TickEvent]:
        """Copy of the slots in current array order (not time order after wrap)."""
        with self._lock:
            return list(self._slots)

    def reset(self) -> None:
        """Drop every event and return to the initial filling state."""
        with self._lock:
            self._slots = []
            self._fill_cursor = 0
            self._is_full = False
