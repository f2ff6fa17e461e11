"""Global configuration for the tickstack dashboard.

All tunables can be overridden via environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_float(key: str, default: float) -> float:
    """Read an env var as float, returning *default* on parse failure."""
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_int(key: str, default: int) -> int:
    """Read an env var as int, returning *default* on parse failure."""
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_list(key: str, default: str, *, lower: bool = True) -> tuple[str, ...]:
    """Read a comma-separated env var as a tuple, dropping blank items."""
    items = (s.strip() for s in os.getenv(key, default).split(","))
    return tuple(s.lower() if lower else s for s in items if s)


@dataclass(frozen=True)
class Config:
    """Central configuration – one instance per dashboard session.

    Environment variables are read at **instantiation** time (not module
    import time) so callers can set them programmatically before
    creating a ``Config``.
    """

    # ── Credentials (repr=False to prevent accidental logging) ──
    coincap_api_key: str = field(default_factory=lambda: os.getenv("COINCAP_API_KEY", ""), repr=False)
    openweather_api_key: str = field(default_factory=lambda: os.getenv("OPENWEATHER_API_KEY", ""), repr=False)
    newsdata_api_key: str = field(default_factory=lambda: os.getenv("NEWSDATA_API_KEY", ""), repr=False)

    # ── Endpoints ───────────────────────────────────────────────
    coincap_base_url: str = field(default_factory=lambda: os.getenv(
        "COINCAP_BASE_URL",
        "https://rest.coincap.io/v3",
    ))

    # ── Tracked assets ──────────────────────────────────────────
    symbols: tuple[str, ...] = field(default_factory=lambda: _env_list("TICKSTACK_SYMBOLS", "bitcoin,ethereum"))
    default_granularity: str = field(default_factory=lambda: os.getenv("TICKSTACK_DEFAULT_GRANULARITY", "1d"))

    # ── Polling cadence ─────────────────────────────────────────
    poll_interval_s: float = field(default_factory=lambda: _env_float("TICKSTACK_POLL_INTERVAL_S", 10.0))
    http_timeout_s: float = field(default_factory=lambda: _env_float("TICKSTACK_HTTP_TIMEOUT_S", 10.0))

    # ── Event log ───────────────────────────────────────────────
    ring_capacity: int = field(default_factory=lambda: _env_int("TICKSTACK_RING_CAPACITY", 8))

    # ── Context panels ──────────────────────────────────────────
    cities: tuple[str, ...] = field(default_factory=lambda: _env_list(
        "TICKSTACK_CITIES", "New York,London,Tokyo", lower=False,
    ))

    # ── Derived helpers ─────────────────────────────────────────

    @property
    def has_price_feed(self) -> bool:
        return bool(self.coincap_api_key)
