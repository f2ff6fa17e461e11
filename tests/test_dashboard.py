"""Tests for tickstack.dashboard — the tick-stream consumer."""
from __future__ import annotations

import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from tickstack.common_types import ERROR, INFO, PRICE_TICK, SeriesPoint, TickEvent
from tickstack.config import Config
from tickstack.dashboard import DashboardSession
from tickstack.errors import FetchError

DAY = 86_400_000


class _Clock:
    def __init__(self, start: int = 10 * DAY) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


def _cfg(**overrides) -> Config:
    base = dict(
        coincap_api_key="k",
        symbols=("bitcoin", "ethereum"),
        poll_interval_s=60.0,
        ring_capacity=8,
        default_granularity="7d",
    )
    base.update(overrides)
    return Config(**base)


def _history(n: int, last: str = "2000") -> list[SeriesPoint]:
    pts = [SeriesPoint(time=i * DAY, price=Decimal(1000 + 100 * i)) for i in range(n - 1)]
    pts.append(SeriesPoint(time=(n - 1) * DAY, price=Decimal(last)))
    return pts


def _source(history_len: int = 7) -> MagicMock:
    source = MagicMock()
    source.fetch_prices.return_value = {}

    def _fetch_history(symbol, interval, start, end):
        n = {"d1": history_len}.get(interval, 24)
        return _history(n)

    source.fetch_history.side_effect = _fetch_history
    return source


@pytest.fixture
def session():
    s = DashboardSession(_cfg(), _source(), clock=_Clock())
    yield s
    s.stop()


class TestWatch:
    def test_watch_builds_window(self, session):
        result = session.watch("ethereum")
        assert result.ok
        assert session.window("ethereum") is result.window
        assert session.watched == ["ethereum"]

    def test_failed_watch_records_error_event(self):
        source = _source()
        source.fetch_history.side_effect = FetchError("HTTP 500")
        s = DashboardSession(_cfg(), source, clock=_Clock())

        result = s.watch("bitcoin", "1d")
        s.pump()

        assert not result.ok
        assert s.window("bitcoin") is None
        assert "bitcoin" in s.last_errors
        events = s.recent_events()
        assert len(events) == 1
        assert events[0].kind == ERROR
        assert "bitcoin" in events[0].message

    def test_unwatch_discards_window(self, session):
        session.watch("bitcoin")
        session.unwatch("bitcoin")
        assert session.window("bitcoin") is None
        assert session.watched == []


class TestGranularitySwitch:
    def test_switch_builds_new_window_from_fresh_fetch(self):
        source = _source()
        s = DashboardSession(_cfg(), source, clock=_Clock())
        old = s.watch("bitcoin", "1d").window
        assert old.window_size == 24 and len(old.points) == 24

        new = s.set_granularity("bitcoin", "7d").window

        assert new is not old
        assert new.window_size == 7
        assert len(new.points) == 7
        # the old window object is untouched, not trimmed in place
        assert len(old.points) == 24
        assert old.window_size == 24
        assert source.fetch_history.call_count == 2
        assert source.fetch_history.call_args.args[1] == "d1"

    def test_same_granularity_keeps_window(self):
        source = _source()
        s = DashboardSession(_cfg(), source, clock=_Clock())
        w = s.watch("bitcoin", "7d").window
        assert s.set_granularity("bitcoin", "7d").window is w
        assert source.fetch_history.call_count == 1


class TestPump:
    def test_tick_reaches_ring_and_windows(self, session):
        session.watch("ethereum", "7d")
        session.watch("bitcoin", "7d")
        stamped = session.channel.put(TickEvent.price_tick({"ethereum": "2100.50"}, received_at=0))

        assert session.pump() == 1

        eth = session.window("ethereum")
        btc = session.window("bitcoin")
        assert len(eth.points) == 7
        assert eth.points[-1].price == Decimal("2100.50")
        assert eth.points[-1].time == stamped.received_at > 10 * DAY
        first = eth.points[0].price
        assert eth.percent_change == float((Decimal("2100.50") - first) / first * 100)
        # bitcoin absent from the tick → unchanged
        assert btc.points[-1].price == Decimal("2000")
        assert len(session.ring) == 1

    def test_times_ascend_across_pumps(self):
        readings = iter([11 * DAY, 11 * DAY, 12 * DAY - 5])
        s = DashboardSession(_cfg(), _source(), clock=lambda: next(readings))
        s.watch("bitcoin", "7d")
        # a producer that stamped its own event later than the next one
        s.channel.put(TickEvent.price_tick({"bitcoin": "3"}, received_at=20 * DAY))
        s.pump()
        s.channel.put(TickEvent.price_tick({"bitcoin": "2"}, received_at=1_000))
        s.pump()

        times = [p.time for p in s.window("bitcoin").points]
        assert times == sorted(times)
        assert [p.price for p in s.window("bitcoin").points[-2:]] == [Decimal("3"), Decimal("2")]

    def test_info_events_logged_but_not_charted(self, session):
        w = session.watch("bitcoin", "7d").window
        before = list(w.points)
        session.notify(INFO, "Weather: sunny")
        session.pump()
        assert w.points == before
        assert session.recent_events()[0].kind == INFO

    def test_ring_keeps_only_capacity_events(self, session):
        for i in range(12):
            session.channel.put(TickEvent.price_tick({"bitcoin": str(i)}))
        session.pump()
        events = session.recent_events()
        assert len(events) == 8
        assert [e.payload["bitcoin"] for e in events] == [str(i) for i in range(11, 3, -1)]

    def test_reset_events(self, session):
        session.notify(INFO, "hello")
        session.pump()
        session.reset_events()
        assert session.recent_events() == []


class TestLiveLoop:
    def test_start_polls_and_pump_merges(self):
        source = _source()
        source.fetch_prices.return_value = {"bitcoin": "2500"}
        s = DashboardSession(_cfg(poll_interval_s=0.05), source, clock=_Clock())
        w = s.watch("bitcoin", "7d").window
        s.start()
        try:
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline and w.last_price != Decimal("2500"):
                s.pump()
                time.sleep(0.01)
        finally:
            s.stop()

        assert not s.is_running
        kinds = {e.kind for e in s.recent_events()}
        assert PRICE_TICK in kinds
        assert INFO in kinds
        assert s.window("bitcoin").last_price == Decimal("2500")

    def test_symbol_spelling_survives_the_live_loop(self):
        source = _source()
        source.fetch_prices.side_effect = lambda syms: {s: "2500" for s in syms}
        s = DashboardSession(_cfg(symbols=("ETH",), poll_interval_s=0.05), source, clock=_Clock())
        w = s.watch("ETH", "7d").window
        s.start()
        try:
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline and w.last_price != Decimal("2500"):
                s.pump()
                time.sleep(0.01)
        finally:
            s.stop()

        assert source.fetch_prices.call_args.args[0] == frozenset({"ETH"})
        assert w.last_price == Decimal("2500")

    def test_start_is_idempotent(self):
        tick_source = MagicMock()
        tick_source.start.return_value.cancelled = False
        s = DashboardSession(_cfg(), _source(), tick_source=tick_source, clock=_Clock())
        s.start()
        s.start()
        assert tick_source.start.call_count == 1
        symbols, sink = tick_source.start.call_args.args
        assert symbols == ("bitcoin", "ethereum")
        assert sink == s.channel.put
        s.stop()
        tick_source.start.return_value.cancel.assert_called_once()
