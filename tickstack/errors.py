"""Error types and the fetch retry policy for tickstack.

``FetchError`` covers every remote failure the adapters can hit.  Its
``TransientFetchError`` subclass marks the ones worth another attempt
(rate limiting, 5xx, connect errors and timeouts) and carries the HTTP
status when there was one.  ``retry()`` re-runs a fetch on those only.
"""
from __future__ import annotations

import functools
import logging
import time

logger = logging.getLogger(__name__)

# Statuses CoinCap, OpenWeatherMap and newsdata.io answer with when a
# repeat of the same request can succeed.
RETRYABLE_STATUS: frozenset[int] = frozenset({429, 500, 502, 503, 504})


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

class TickstackError(Exception):
    """Base error for all tickstack subsystems."""
    pass


class FetchError(TickstackError):
    """A remote call failed: network error, non-2xx status or bad payload."""

    def __init__(self, message: str, *, endpoint: str = "", symbol: str = ""):
        self.endpoint = endpoint
        self.symbol = symbol
        super().__init__(message)


class TransientFetchError(FetchError):
    """A fetch failure worth retrying; ``status_code`` is None for network errors."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        symbol: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, endpoint=endpoint, symbol=symbol)


class ConfigError(TickstackError):
    """A fetch cannot run because its configuration (e.g. API key) is missing."""
    pass


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------

def retry(attempts: int = 3, base_delay: float = 1.0, backoff: float = 2.0, max_delay: float = 10.0):
    """Retry a fetch on ``TransientFetchError`` with exponential backoff.

    Every other exception, including a plain ``FetchError`` for a 4xx or
    a malformed body, propagates on the first attempt.  The last
    transient failure is re-raised once *attempts* are used up.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            delay = base_delay
            for attempt in range(1, attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except TransientFetchError as exc:
                    if attempt >= attempts:
                        raise
                    logger.warning(
                        "%s: %s (attempt %d/%d, status=%s), retrying in %.1fs",
                        exc.endpoint or fn.__qualname__, exc, attempt, attempts,
                        exc.status_code if exc.status_code is not None else "network",
                        delay,
                    )
                    time.sleep(delay)
                    delay = min(delay * backoff, max_delay)
            raise RuntimeError(f"retry: {fn.__qualname__} ran 0 attempts")
        return wrapper
    return decorator
