"""Tests for tickstack.series_merge — splicing live ticks into windows."""
from __future__ import annotations

from decimal import Decimal

import pytest

from tickstack.common_types import ERROR, INFO, SeriesPoint, TickEvent
from tickstack.series_merge import (
    BoundedSeriesWindow,
    apply_event,
    compute_percent_change,
    initialize,
    parse_price,
)


def _points(*prices: str, start: int = 1_000) -> list[SeriesPoint]:
    return [SeriesPoint(time=start + i, price=Decimal(p)) for i, p in enumerate(prices)]


class TestParsePrice:
    @pytest.mark.parametrize("text,expected", [
        ("2100.50", Decimal("2100.50")),
        (" 6929.82 ", Decimal("6929.82")),
        ("1e3", Decimal("1000")),
        (42, Decimal("42")),
    ])
    def test_valid(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", [None, "", "abc", "NaN", "nan", "Infinity", "-inf", True])
    def test_invalid_is_none(self, text):
        assert parse_price(text) is None


class TestPercentChange:
    def test_ten_percent(self):
        assert compute_percent_change(_points("100", "110")) == 10.0

    def test_negative_change(self):
        assert compute_percent_change(_points("200", "150", "100")) == -50.0

    def test_single_point_is_none(self):
        assert compute_percent_change(_points("100")) is None

    def test_empty_is_none(self):
        assert compute_percent_change([]) is None

    def test_zero_base_is_none(self):
        assert compute_percent_change(_points("0", "5")) is None


class TestInitialize:
    def test_seeds_points_and_change(self):
        w = initialize("bitcoin", _points("100", "105", "110"), window_size=5, granularity="7d")
        assert w.symbol == "bitcoin"
        assert len(w.points) == 3
        assert w.percent_change == 10.0
        assert w.granularity == "7d"

    def test_excess_history_keeps_newest(self):
        w = initialize("bitcoin", _points("1", "2", "3", "4"), window_size=2)
        assert [p.price for p in w.points] == [Decimal("3"), Decimal("4")]

    def test_single_point_history(self):
        w = initialize("bitcoin", _points("100"), window_size=5)
        assert w.percent_change is None

    def test_window_size_below_two_rejected(self):
        with pytest.raises(ValueError):
            initialize("bitcoin", [], window_size=1)


class TestApplyEvent:
    def test_tick_at_capacity_evicts_exactly_one(self):
        history = _points("100", "101", "102", "103", "104")
        w = initialize("bitcoin", history, window_size=5)
        tick = TickEvent.price_tick({"bitcoin": "110"}, received_at=9_000)

        result = apply_event(w, tick)

        assert result is w
        assert len(w.points) == 5
        assert w.points[0] == history[1]
        assert w.points[-1] == SeriesPoint(time=9_000, price=Decimal("110"))
        assert w.percent_change == pytest.approx((110 - 101) / 101 * 100)

    def test_tick_below_capacity_only_appends(self):
        w = initialize("bitcoin", _points("100", "101"), window_size=5)
        apply_event(w, TickEvent.price_tick({"bitcoin": "120"}, received_at=9_000))
        assert len(w.points) == 3
        assert w.points[0].price == Decimal("100")
        assert w.percent_change == 20.0

    def test_tick_on_single_point_window_computes_change(self):
        w = initialize("bitcoin", _points("100"), window_size=24)
        assert w.percent_change is None
        apply_event(w, TickEvent.price_tick({"bitcoin": "90"}, received_at=9_000))
        assert w.percent_change == -10.0

    def test_missing_symbol_is_noop(self):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        points_before = w.points
        snapshot = list(w.points)
        change_before = w.percent_change

        apply_event(w, TickEvent.price_tick({"ethereum": "2000"}, received_at=9_000))

        assert w.points is points_before
        assert w.points == snapshot
        assert w.percent_change == change_before

    @pytest.mark.parametrize("bad", ["NaN", "n/a", "", "Infinity"])
    def test_unparsable_price_is_noop(self, bad):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        snapshot = list(w.points)
        apply_event(w, TickEvent.price_tick({"bitcoin": bad}, received_at=9_000))
        assert w.points == snapshot
        assert w.percent_change == 10.0

    @pytest.mark.parametrize("kind", [INFO, ERROR])
    def test_non_tick_events_never_mutate(self, kind):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        snapshot = list(w.points)
        apply_event(w, TickEvent.notice(kind, "bitcoin: 999", received_at=9_000))
        assert w.points == snapshot
        assert w.percent_change == 10.0

    def test_duplicate_ticks_both_append(self):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        tick = TickEvent.price_tick({"bitcoin": "120"}, received_at=9_000)
        apply_event(w, tick)
        apply_event(w, tick)
        assert len(w.points) == 4
        assert w.points[-1] == w.points[-2]

    def test_tick_older_than_newest_point_is_skipped(self):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        apply_event(w, TickEvent.price_tick({"bitcoin": "120"}, received_at=2_000))
        apply_event(w, TickEvent.price_tick({"bitcoin": "90"}, received_at=1_500))
        assert [p.time for p in w.points] == [1_000, 1_001, 2_000]
        assert w.points[-1].price == Decimal("120")
        assert w.percent_change == 20.0

    def test_tick_at_same_time_as_newest_point_appends(self):
        w = initialize("bitcoin", _points("100", "110"), window_size=5)
        apply_event(w, TickEvent.price_tick({"bitcoin": "120"}, received_at=1_001))
        assert [p.time for p in w.points] == [1_000, 1_001, 1_001]

    def test_long_stream_stays_bounded(self):
        w = initialize("bitcoin", _points("100", "101", "102"), window_size=3)
        for i in range(50):
            apply_event(w, TickEvent.price_tick({"bitcoin": str(200 + i)}, received_at=10_000 + i))
            assert len(w.points) <= 3
        assert [p.time for p in w.points] == [10_047, 10_048, 10_049]
        times = [p.time for p in w.points]
        assert times == sorted(times)

    def test_daily_eth_end_to_end(self):
        day = 86_400_000
        prices = ["1800", "1850", "1900", "1875", "1950", "1980", "2000"]
        history = [SeriesPoint(time=i * day, price=Decimal(p)) for i, p in enumerate(prices)]
        w = initialize("ethereum", history, window_size=7, granularity="7d")

        apply_event(w, TickEvent.price_tick({"ethereum": "2100.50", "bitcoin": "60000"}, received_at=7 * day))

        assert len(w.points) == 7
        assert w.points[0].price == Decimal("1850")
        assert w.points[-1].price == Decimal("2100.50")
        expected = float((Decimal("2100.50") - Decimal("1850")) / Decimal("1850") * 100)
        assert w.percent_change == expected


class TestWindowHelpers:
    def test_last_price(self):
        w = BoundedSeriesWindow(symbol="bitcoin", window_size=3)
        assert w.last_price is None
        w.points.extend(_points("1", "2"))
        assert w.last_price == Decimal("2")
