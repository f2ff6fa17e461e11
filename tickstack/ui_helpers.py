"""Pure helpers behind the Streamlit dashboard panels.

Kept free of Streamlit calls so the panel logic is testable.  The
``*_or_message`` wrappers take adapters the caller already holds (one set
per browser session) and turn a configuration or fetch failure into the
text the sidebar shows in place of the panel.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import pandas as pd

from .errors import ConfigError, FetchError
from .ingest_coincap import AssetSummary, CoinCapAdapter
from .ingest_news import NewsArticle, NewsDataAdapter
from .ingest_weather import OpenWeatherAdapter, WeatherReport
from .tick_source import EventChannel, TickSource

logger = logging.getLogger(__name__)


def assets_or_message(adapter: CoinCapAdapter, symbols: Iterable[str]) -> dict[str, AssetSummary] | str:
    try:
        return adapter.fetch_assets(symbols)
    except (ConfigError, FetchError) as exc:
        logger.warning("Market overview unavailable: %s", exc)
        return str(exc)


def weather_or_message(adapter: OpenWeatherAdapter, cities: Iterable[str]) -> dict[str, WeatherReport | str] | str:
    try:
        return adapter.fetch_cities(cities)
    except ConfigError as exc:
        return str(exc)


def news_or_message(adapter: NewsDataAdapter, limit: int = 5) -> list[NewsArticle] | str:
    try:
        return adapter.fetch_crypto_news(limit=limit)
    except (ConfigError, FetchError) as exc:
        logger.warning("News unavailable: %s", exc)
        return str(exc)


def format_usd_compact(value: float | None) -> str:
    """$1.19T / $404.98B / $12.30M style; em dash for missing."""
    if value is None:
        return "—"
    for divisor, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M")):
        if abs(value) >= divisor:
            return f"${value / divisor:,.2f}{suffix}"
    return f"${value:,.2f}"


def market_overview_frame(assets: dict[str, AssetSummary]) -> pd.DataFrame:
    """One row per asset in the given order, ready for ``st.dataframe``."""
    rows = []
    for symbol, asset in assets.items():
        rows.append({
            "Asset": asset.name or symbol,
            "Symbol": asset.ticker,
            "Price (USD)": float(asset.price_usd),
            "24h %": asset.change_percent_24h,
            "Market Cap": format_usd_compact(asset.market_cap_usd),
        })
    return pd.DataFrame(rows, columns=["Asset", "Symbol", "Price (USD)", "24h %", "Market Cap"])


def poll_status_line(source: TickSource, channel: EventChannel) -> str:
    """Sidebar caption: poll count, last status, backlog and drops."""
    parts = [f"Polls: {source.poll_count}", f"last: {source.last_poll_status}"]
    if channel.pending:
        parts.append(f"pending: {channel.pending}")
    if channel.dropped:
        parts.append(f"dropped: {channel.dropped}")
    line = " · ".join(parts)
    if source.last_poll_error:
        line += f" · error: {source.last_poll_error}"
    return line
