"""Granularity → history/window sizing.

The same ``WindowSpec`` drives both the historical fetch (how far back,
at which CoinCap interval, how many points to keep) and the live merge
(how many points the chart window retains).  Sub-day views keep a short
intraday series; multi-day views keep one point per day.
"""

from __future__ import annotations

from dataclasses import dataclass

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS


@dataclass(frozen=True)
class WindowSpec:
    granularity: str
    api_interval: str  # CoinCap history interval: m5, m15, m30, h1, d1
    span_ms: int  # how far back the historical fetch reaches
    window_size: int  # points retained, for history and live merge alike
    label_format: str  # strftime pattern for chart axis labels

    @property
    def history_point_count(self) -> int:
        return self.window_size


_POLICIES: dict[str, WindowSpec] = {
    "1h": WindowSpec("1h", "m5", _HOUR_MS, 12, "%H:%M"),
    "6h": WindowSpec("6h", "m15", 6 * _HOUR_MS, 24, "%H:%M, %d %b"),
    "12h": WindowSpec("12h", "m30", 12 * _HOUR_MS, 24, "%H:%M, %d %b"),
    "1d": WindowSpec("1d", "h1", _DAY_MS, 24, "%H:%M"),
    "7d": WindowSpec("7d", "d1", 7 * _DAY_MS, 7, "%d %b"),
    "30d": WindowSpec("30d", "d1", 30 * _DAY_MS, 30, "%d %b %y"),
}

GRANULARITIES: tuple[str, ...] = tuple(_POLICIES)


def resolve(granularity: str) -> WindowSpec:
    """Return the sizing policy for *granularity* ('1h', '6h', … '30d')."""
    try:
        return _POLICIES[granularity]
    except KeyError:
        raise ValueError(
            f"Unsupported granularity {granularity!r} (expected one of {', '.join(GRANULARITIES)})"
        ) from None
