"""Dashboard session: the single consumer of the tick stream.

Wires the pieces together with explicit ownership and no module-level
state:

- the ``TickSource`` emits onto an ``EventChannel``;
- ``pump()`` drains the channel in receipt order, records each event in
  the ``EventRing`` and applies it to every watched symbol's window;
- ``watch()`` / ``set_granularity()`` build a fresh window from a new
  historical fetch, discarding the previous one.

One session lives in Streamlit ``session_state`` per browser session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from .common_types import ERROR, INFO, EventKind, SeriesPoint, TickEvent, now_ms
from .config import Config
from .event_ring import EventRing
from .history import HistoryLoad, load_window
from .series_merge import BoundedSeriesWindow, apply_event
from .tick_source import EventChannel, PollHandle, TickSource

logger = logging.getLogger(__name__)


class MarketDataSource(Protocol):
    def fetch_prices(self, symbols: frozenset[str]) -> dict[str, str]: ...

    def fetch_history(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> list[SeriesPoint]: ...


class DashboardSession:
    """Owns the event ring, the tick source and one window per watched symbol."""

    def __init__(
        self,
        cfg: Config,
        source: MarketDataSource,
        *,
        tick_source: TickSource | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.cfg = cfg
        self._source = source
        self._clock = clock
        self.ring = EventRing(cfg.ring_capacity)
        self.channel = EventChannel(clock=clock)
        self.tick_source = tick_source or TickSource(
            source.fetch_prices,
            interval_s=cfg.poll_interval_s,
            clock=clock,
        )
        self._handle: PollHandle | None = None
        self._windows: dict[str, BoundedSeriesWindow] = {}
        self.last_errors: dict[str, str] = {}

    # ── Polling lifecycle ───────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def start(self) -> None:
        """Start live polling for the configured symbols (idempotent)."""
        if self.is_running:
            return
        self._handle = self.tick_source.start(self.cfg.symbols, self.channel.put)
        self.notify(INFO, f"Live prices started for {', '.join(self.cfg.symbols)}")

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    # ── Windows ─────────────────────────────────────────────

    def window(self, symbol: str) -> BoundedSeriesWindow | None:
        return self._windows.get(symbol)

    @property
    def watched(self) -> list[str]:
        return list(self._windows)

    def watch(self, symbol: str, granularity: str | None = None) -> HistoryLoad:
        """Build *symbol*'s window from a fresh historical fetch.

        Any existing window for *symbol* is discarded first, whether or not
        the new load succeeds.
        """
        granularity = granularity or self.cfg.default_granularity
        self._windows.pop(symbol, None)
        result = load_window(self._source, symbol, granularity, now=self._clock())
        if result.ok:
            self._windows[symbol] = result.window  # type: ignore[assignment]
            self.last_errors.pop(symbol, None)
        else:
            self.last_errors[symbol] = result.error
            self.notify(ERROR, f"{symbol}: {result.error}")
        return result

    def set_granularity(self, symbol: str, granularity: str) -> HistoryLoad:
        """Switch *symbol* to *granularity*; never resizes the old window in place."""
        current = self._windows.get(symbol)
        if current is not None and current.granularity == granularity:
            return HistoryLoad(symbol, granularity, window=current)
        logger.info(
            "Granularity switch for %s: %s → %s",
            symbol, current.granularity if current else None, granularity,
        )
        return self.watch(symbol, granularity)

    def unwatch(self, symbol: str) -> None:
        self._windows.pop(symbol, None)
        self.last_errors.pop(symbol, None)

    # ── Event flow ──────────────────────────────────────────

    def notify(self, kind: EventKind, message: str) -> None:
        """Queue an info/error event behind any ticks already received."""
        self.channel.put(TickEvent.notice(kind, message))

    def pump(self) -> int:
        """Drain pending events into the ring and every window; returns the count."""
        events = self.channel.drain()
        for event in events:
            self.ring.push(event)
            for window in self._windows.values():
                apply_event(window, event)
        if events:
            logger.debug("Pumped %d events into %d windows", len(events), len(self._windows))
        return len(events)

    def recent_events(self) -> list[TickEvent]:
        """Ring contents newest first (slot order is not time order after wrap)."""
        return sorted(self.ring.snapshot(), key=lambda e: e.received_at, reverse=True)

    def reset_events(self) -> None:
        self.ring.reset()
