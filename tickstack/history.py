"""Initial chart load: historical fetch sized by the window policy.

Every failure at this boundary becomes a user-visible error string on
the returned ``HistoryLoad``; nothing escapes to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from .common_types import SeriesPoint, now_ms
from .errors import ConfigError, FetchError
from .log_redaction import redact_secrets
from .series_merge import BoundedSeriesWindow, initialize
from .window_policy import resolve

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load price data. Please try again later."


class HistorySource(Protocol):
    def fetch_history(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> list[SeriesPoint]: ...


@dataclass
class HistoryLoad:
    """Either a seeded window or an error message, never both."""

    symbol: str
    granularity: str
    window: BoundedSeriesWindow | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.window is not None


def load_window(
    source: HistorySource,
    symbol: str,
    granularity: str,
    now: int | None = None,
) -> HistoryLoad:
    """Fetch history for *symbol* at *granularity* and seed a new window."""
    try:
        spec = resolve(granularity)
    except ValueError as exc:
        logger.warning("History load for %s rejected: %s", symbol, exc)
        return HistoryLoad(symbol, granularity, error=str(exc))

    end = now_ms() if now is None else now
    start = end - spec.span_ms
    try:
        history = source.fetch_history(symbol, spec.api_interval, start, end)
    except ConfigError as exc:
        logger.warning("History load for %s not configured: %s", symbol, exc)
        return HistoryLoad(symbol, granularity, error=str(exc))
    except (FetchError, httpx.HTTPError, OSError, ValueError) as exc:
        logger.warning("History load for %s failed: %s", symbol, redact_secrets(str(exc)))
        return HistoryLoad(symbol, granularity, error=LOAD_FAILED_MESSAGE)

    window = initialize(
        symbol,
        history[-spec.history_point_count:],
        spec.window_size,
        granularity=granularity,
    )
    logger.info(
        "Loaded %d %s points for %s (window=%d)",
        len(window.points), granularity, symbol, spec.window_size,
    )
    return HistoryLoad(symbol, granularity, window=window)
