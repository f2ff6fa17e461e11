"""Shared event and series records.

Every producer (tick source, dashboard notifications) emits a
``TickEvent``; every historical or live observation of a price becomes
a ``SeriesPoint``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

EventKind = Literal["info", "price_tick", "error"]

INFO = "info"
PRICE_TICK = "price_tick"
ERROR = "error"


def now_ms() -> int:
    """Process-local wall clock in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TickEvent:
    """One entry in the event stream."""

    kind: EventKind
    received_at: int  # ms since epoch, stamped at ingestion
    payload: dict[str, str] = field(default_factory=dict)  # symbol -> price text (price_tick only)
    message: str = ""  # human-readable text (info / error)

    @classmethod
    def price_tick(cls, prices: dict[str, str], received_at: int | None = None) -> TickEvent:
        return cls(
            kind=PRICE_TICK,
            received_at=now_ms() if received_at is None else received_at,
            payload=dict(prices),
        )

    @classmethod
    def notice(cls, kind: EventKind, message: str, received_at: int | None = None) -> TickEvent:
        return cls(
            kind=kind,
            received_at=now_ms() if received_at is None else received_at,
            message=message,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "received_at": self.received_at,
            "payload": dict(self.payload),
            "message": self.message,
        }


@dataclass(frozen=True)
class SeriesPoint:
    """A single (time, price) observation; volume/market cap only from history."""

    time: int  # ms since epoch
    price: Decimal
    volume: Decimal | None = None
    market_cap: Decimal | None = None
