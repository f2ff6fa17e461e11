"""Background price polling for the dashboard.

Moves the live-price fetch off the Streamlit rerun loop into a
dedicated ``threading.Thread``.  The scheduler thread fires on a fixed
wall-clock interval and hands every poll to its own short-lived worker
thread, so a slow fetch never delays the next one.  Each successful poll
becomes one ``price_tick`` event delivered to the ``on_event`` sink, normally
:meth:`EventChannel.put`, which stamps the receipt time and which the
main loop drains on each rerun.

Usage::

    channel = EventChannel()
    source = TickSource(adapter.fetch_prices, interval_s=cfg.poll_interval_s)
    handle = source.start({"bitcoin", "ethereum"}, channel.put)

    # On each Streamlit rerun:
    for event in channel.drain():
        ...

    handle.cancel()
"""
from __future__ import annotations

import dataclasses
import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable

import httpx

from .common_types import TickEvent, now_ms
from .errors import ConfigError, FetchError
from .log_redaction import redact_secrets

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[frozenset[str]], dict[str, str]]
EventSink = Callable[[TickEvent], None]


class EventChannel:
    """Single-consumer queue between the poll threads and the dashboard.

    ``put`` stamps ``received_at`` and enqueues under one lock, so queue
    order is receipt order and stamps never decrease across drains.  When
    ``maxsize`` events are pending (nobody is draining) the oldest pending
    event is dropped to make room and counted in ``dropped``.
    """

    def __init__(self, maxsize: int = 1000, clock: Callable[[], int] = now_ms) -> None:
        self._queue: queue.Queue[TickEvent] = queue.Queue(maxsize=maxsize)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_stamp = 0
        self.dropped: int = 0

    def put(self, event: TickEvent) -> TickEvent:
        """Stamp *event* with the ingestion time and enqueue it; returns the stamped event."""
        with self._lock:
            stamp = max(self._clock(), self._last_stamp)
            self._last_stamp = stamp
            stamped = dataclasses.replace(event, received_at=stamp)
            if self._queue.full():
                try:
                    oldest = self._queue.get_nowait()
                except queue.Empty:  # drained between the check and the get
                    pass
                else:
                    self.dropped += 1
                    logger.warning(
                        "Event channel full, dropped oldest %s event (%d dropped so far)",
                        oldest.kind, self.dropped,
                    )
            self._queue.put_nowait(stamped)
        return stamped

    def drain(self) -> list[TickEvent]:
        """Drain all pending events in receipt order."""
        events: list[TickEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return events

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class PollHandle:
    """Cancel handle returned by :meth:`TickSource.start`."""

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def cancel(self) -> None:
        """Stop future polls; in-flight results are discarded when they land."""
        self._stop_event.set()
        logger.info("Tick source cancel requested")

    def wait(self, timeout: float) -> bool:
        return self._stop_event.wait(timeout=timeout)


class TickSource:
    """Polls *fetch_prices* immediately and then every *interval_s* seconds.

    Thread-safe: observable status attributes are updated under a lock
    and read from the Streamlit main thread.

    Parameters
    ----------
    fetch_prices : callable
        ``fetch_prices(symbols) -> {symbol: price_text}``; raises on failure.
        Symbols are passed through exactly as given to :meth:`start`.
    interval_s : float
        Wall-clock spacing between poll dispatches.
    clock : callable
        Completion timestamp (ms) stamped on each event.  An
        :class:`EventChannel` sink re-stamps at ingestion.
    """

    def __init__(
        self,
        fetch_prices: PriceFetcher,
        interval_s: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._fetch_prices = fetch_prices
        self._interval_s = interval_s
        self._clock = clock
        self._lock = threading.Lock()

        # Observable status (read from Streamlit main thread)
        self.poll_count: int = 0
        self.events_emitted: int = 0
        self.last_poll_ts: float = 0.0
        self.last_poll_status: str = "—"
        self.last_poll_error: str = ""

    @property
    def interval_s(self) -> float:
        return self._interval_s

    # ── Lifecycle ───────────────────────────────────────────

    def start(self, symbols: Iterable[str], on_event: EventSink) -> PollHandle:
        """Start polling *symbols*; returns the handle that stops it."""
        tracked = frozenset(symbols)
        handle = PollHandle()
        handle._thread = threading.Thread(
            target=self._run_loop,
            args=(handle, tracked, on_event),
            name="tick-source-scheduler",
            daemon=True,
        )
        handle._thread.start()
        logger.info(
            "Tick source started for %s (interval=%.1fs)",
            ", ".join(sorted(tracked)) or "<none>", self._interval_s,
        )
        return handle

    # ── Internal loop ───────────────────────────────────────

    def _run_loop(self, handle: PollHandle, symbols: frozenset[str], on_event: EventSink) -> None:
        """Dispatch one poll per tick of a fixed wall-clock schedule."""
        next_due = time.monotonic()
        while not handle.cancelled:
            worker = threading.Thread(
                target=self._poll_once,
                args=(handle, symbols, on_event),
                name="tick-source-poll",
                daemon=True,
            )
            worker.start()

            next_due += self._interval_s
            if handle.wait(max(0.0, next_due - time.monotonic())):
                break
        logger.info("Tick source loop exited")

    def _record_failure(self, message: str) -> None:
        with self._lock:
            self.poll_count += 1
            self.last_poll_ts = time.time()
            self.last_poll_status = "ERROR"
            self.last_poll_error = message

    def _poll_once(self, handle: PollHandle, symbols: frozenset[str], on_event: EventSink) -> None:
        try:
            prices = self._fetch_prices(symbols)
        except ConfigError as exc:
            logger.warning("Price poll skipped: %s", exc)
            self._record_failure(str(exc))
            return
        except (FetchError, httpx.HTTPError, OSError, ValueError) as exc:
            safe = redact_secrets(str(exc))
            logger.warning("Price poll failed: %s", safe)
            self._record_failure(safe)
            return
        except Exception as exc:
            safe = redact_secrets(str(exc))
            logger.exception("Price poll unexpected error: %s", safe)
            self._record_failure(safe)
            return

        if handle.cancelled:
            logger.debug("Discarding poll result that completed after cancel")
            return

        event = TickEvent.price_tick(
            {str(sym): str(price) for sym, price in prices.items()},
            received_at=self._clock(),
        )
        with self._lock:
            self.poll_count += 1
            self.events_emitted += 1
            self.last_poll_ts = time.time()
            self.last_poll_status = f"{len(event.payload)} prices"
            self.last_poll_error = ""

        try:
            on_event(event)
        except Exception:
            logger.exception("Tick event sink failed")
