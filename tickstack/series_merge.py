"""Splice live price ticks into a bounded historical series.

One ``BoundedSeriesWindow`` exists per watched symbol.  It is seeded
from a historical fetch by :func:`initialize` and then advanced by
:func:`apply_event` for every event drained from the tick channel.
A granularity change never resizes a window; the caller builds a new
one from a fresh fetch instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .common_types import PRICE_TICK, SeriesPoint, TickEvent

logger = logging.getLogger(__name__)


@dataclass
class BoundedSeriesWindow:
    """Time-ascending points for one symbol, at most ``window_size`` long."""

    symbol: str
    window_size: int
    points: list[SeriesPoint] = field(default_factory=list)
    granularity: str | None = None
    percent_change: float | None = None

    @property
    def last_price(self) -> Decimal | None:
        return self.points[-1].price if self.points else None


def parse_price(value: Any) -> Decimal | None:
    """Parse decimal price text; ``None`` for missing, garbage, NaN or ±Infinity."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


def compute_percent_change(points: list[SeriesPoint]) -> float | None:
    """``(last - first) / first * 100``; ``None`` with < 2 points or a zero base."""
    if len(points) < 2:
        return None
    first = points[0].price
    if first == 0:
        return None
    return float((points[-1].price - first) / first * 100)


def initialize(
    symbol: str,
    historical_points: Iterable[SeriesPoint],
    window_size: int,
    granularity: str | None = None,
) -> BoundedSeriesWindow:
    """Seed a window from an already time-ascending historical series.

    The history is expected to be sized upstream by the window policy;
    any excess beyond *window_size* is dropped from the oldest end.
    """
    if window_size < 2:
        raise ValueError(f"window_size must be >= 2, got {window_size}")
    points = list(historical_points)
    if len(points) > window_size:
        logger.debug(
            "%s: history has %d points, keeping newest %d",
            symbol, len(points), window_size,
        )
        points = points[-window_size:]
    window = BoundedSeriesWindow(
        symbol=symbol,
        window_size=window_size,
        points=points,
        granularity=granularity,
    )
    window.percent_change = compute_percent_change(window.points)
    return window


def apply_event(window: BoundedSeriesWindow, event: TickEvent) -> BoundedSeriesWindow:
    """Append the window's price from a ``price_tick`` event, evicting the oldest overflow.

    Non-tick events, ticks without this symbol, unparsable prices and ticks
    stamped before the newest point leave the window untouched.  Duplicate
    ticks are not deduplicated: every qualifying event appends a point.
    """
    if event.kind != PRICE_TICK:
        return window

    price = parse_price(event.payload.get(window.symbol))
    if price is None:
        return window
    if window.points and event.received_at < window.points[-1].time:
        logger.debug(
            "%s: skipping tick stamped %d, older than newest point %d",
            window.symbol, event.received_at, window.points[-1].time,
        )
        return window

    window.points.append(SeriesPoint(time=event.received_at, price=price))
    overflow = len(window.points) - window.window_size
    if overflow > 0:
        del window.points[:overflow]
    window.percent_change = compute_percent_change(window.points)
    return window
