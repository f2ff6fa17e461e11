"""Live Crypto Dashboard — historical series with live CoinCap ticks overlaid.

Features:
- Historical price chart per asset, sized by the selected granularity
- Live price ticks merged into the chart every poll cycle (default 10 s)
- Percent change over the visible window
- Recent-events panel (fixed-size ring of the latest events)
- Market overview: 24h change and market cap per tracked asset
- Weather for several cities + crypto news sidebar

Run with::

    streamlit run streamlit_dashboard.py

Requires ``COINCAP_API_KEY`` in ``.env`` or environment.
Optional: ``OPENWEATHER_API_KEY``, ``NEWSDATA_API_KEY`` for the sidebar.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

from tickstack.common_types import ERROR, INFO
from tickstack.config import Config
from tickstack.dashboard import DashboardSession
from tickstack.ingest_coincap import AssetSummary, CoinCapAdapter
from tickstack.ingest_news import NewsArticle, NewsDataAdapter
from tickstack.ingest_weather import OpenWeatherAdapter, WeatherReport
from tickstack.log_redaction import apply_global_log_redaction
from tickstack.series_merge import BoundedSeriesWindow
from tickstack.ui_helpers import (
    assets_or_message,
    market_overview_frame,
    news_or_message,
    poll_status_line,
    weather_or_message,
)
from tickstack.window_policy import GRANULARITIES, resolve

PROJECT_ROOT = Path(__file__).resolve().parent


def _load_env_file(env_path: Path) -> None:
    """Load KEY=VALUE pairs from .env into process env."""
    if not env_path.exists():
        return
    try:
        lines = env_path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        logging.getLogger(__name__).warning("Could not read %s: %s", env_path, exc)
        return
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            os.environ.setdefault(key, value)


_load_env_file(PROJECT_ROOT / ".env")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
apply_global_log_redaction()
logger = logging.getLogger(__name__)

# ── Page config ─────────────────────────────────────────────────

st.set_page_config(
    page_title="Live Crypto Dashboard",
    page_icon="📈",
    layout="wide",
)

# ── Persistent state (survives reruns) ──────────────────────────

if "session" not in st.session_state:
    _cfg = Config()
    _adapter = CoinCapAdapter(_cfg.coincap_api_key, _cfg.coincap_base_url, _cfg.http_timeout_s)
    st.session_state.cfg = _cfg
    st.session_state.coincap_adapter = _adapter
    st.session_state.weather_adapter = OpenWeatherAdapter(_cfg.openweather_api_key, _cfg.http_timeout_s)
    st.session_state.news_adapter = NewsDataAdapter(_cfg.newsdata_api_key, _cfg.http_timeout_s)
    st.session_state.session = DashboardSession(_cfg, _adapter)
    st.session_state.auto_refresh = True

cfg: Config = st.session_state.cfg
session: DashboardSession = st.session_state.session


# ── Cached panel wrappers (avoid re-fetching every rerun) ───────
# Adapters live in session_state; leading-underscore args are not hashed.

@st.cache_data(ttl=60, show_spinner=False)
def _cached_assets(_adapter: CoinCapAdapter, symbols: tuple[str, ...]) -> dict[str, AssetSummary] | str:
    return assets_or_message(_adapter, symbols)


@st.cache_data(ttl=600, show_spinner=False)
def _cached_weather(_adapter: OpenWeatherAdapter, cities: tuple[str, ...]) -> dict[str, WeatherReport | str] | str:
    return weather_or_message(_adapter, cities)


@st.cache_data(ttl=300, show_spinner=False)
def _cached_news(_adapter: NewsDataAdapter) -> list[NewsArticle] | str:
    return news_or_message(_adapter, limit=5)


def _window_frame(window: BoundedSeriesWindow) -> pd.DataFrame:
    return pd.DataFrame({
        "time": [datetime.fromtimestamp(p.time / 1000, tz=UTC) for p in window.points],
        "price": [float(p.price) for p in window.points],
    })


def _render_chart(symbol: str) -> None:
    window = session.window(symbol)
    if window is None:
        st.error(session.last_errors.get(symbol, "No data loaded."))
        return

    spec = resolve(window.granularity or cfg.default_granularity)
    price = window.last_price
    m1, m2 = st.columns(2)
    m1.metric(
        f"{symbol.upper()} (USD)",
        f"${float(price):,.2f}" if price is not None else "—",
        delta=f"{window.percent_change:+.2f}%" if window.percent_change is not None else None,
    )
    m2.metric("Points", f"{len(window.points)} / {window.window_size}")

    df = _window_frame(window)
    if df.empty:
        st.info("No price points in this window yet.")
        return
    df["label"] = df["time"].dt.strftime(spec.label_format)
    fig = px.line(df, x="label", y="price", markers=window.granularity != "30d")
    fig.update_layout(
        xaxis_title="Time",
        yaxis_title="Price (USD)",
        margin=dict(l=0, r=0, t=10, b=0),
        height=360,
    )
    st.plotly_chart(fig, width="stretch")


# ── Sidebar ─────────────────────────────────────────────────────

with st.sidebar:
    st.header("⚙️ Controls")
    if not cfg.has_price_feed:
        st.warning("Set `COINCAP_API_KEY` in `.env` for live and historical prices.")

    granularity = st.radio(
        "Granularity",
        GRANULARITIES,
        index=GRANULARITIES.index(cfg.default_granularity) if cfg.default_granularity in GRANULARITIES else 0,
        horizontal=True,
    )
    st.session_state.auto_refresh = st.toggle("Auto-refresh", value=st.session_state.auto_refresh)

    st.caption(poll_status_line(session.tick_source, session.channel))

    st.divider()
    st.subheader("🌤️ Weather")
    weather = _cached_weather(st.session_state.weather_adapter, cfg.cities)
    if isinstance(weather, dict):
        noted = st.session_state.setdefault("weather_noted", {})
        for city, report in weather.items():
            if isinstance(report, WeatherReport):
                st.markdown(report.summary)
                if noted.get(city) != report.summary:
                    noted[city] = report.summary
                    session.notify(INFO, f"Weather: {report.summary}")
            else:
                st.caption(f"{city}: {report}")
    else:
        st.caption(weather)

    st.subheader("📰 Crypto News")
    news = _cached_news(st.session_state.news_adapter)
    if isinstance(news, list):
        for article in news:
            st.markdown(f"**[{article.title}]({article.link})**  \n{article.date}")
    else:
        st.caption(news)


# ── Session wiring ──────────────────────────────────────────────

if cfg.has_price_feed:
    session.start()

for sym in cfg.symbols:
    current = session.window(sym)
    if current is None and sym not in session.last_errors:
        session.watch(sym, granularity)
    elif current is not None and current.granularity != granularity:
        session.set_granularity(sym, granularity)
    elif current is None and st.session_state.get("last_granularity") != granularity:
        session.watch(sym, granularity)
st.session_state.last_granularity = granularity

session.pump()

# ── Main panels ─────────────────────────────────────────────────

st.title("📈 Live Crypto Dashboard")

st.subheader("🌐 Market Overview")
assets = _cached_assets(st.session_state.coincap_adapter, cfg.symbols)
if isinstance(assets, dict) and assets:
    st.dataframe(
        market_overview_frame(assets),
        hide_index=True,
        width="stretch",
        column_config={
            "Price (USD)": st.column_config.NumberColumn(format="$%.2f"),
            "24h %": st.column_config.NumberColumn(format="%+.2f%%"),
        },
    )
else:
    st.caption(assets or "No market data returned.")

chart_cols = st.columns(max(len(cfg.symbols), 1))
for col, sym in zip(chart_cols, cfg.symbols):
    with col:
        st.subheader(sym.capitalize())
        _render_chart(sym)
        if st.button("Reload", key=f"reload_{sym}"):
            session.watch(sym, granularity)
            st.rerun()

st.divider()
head_l, head_r = st.columns([4, 1])
head_l.subheader("🔔 Recent Events")
if head_r.button("Clear events"):
    session.reset_events()

events = session.recent_events()
if not events:
    st.caption("No events yet.")
for event in events:
    ts = datetime.fromtimestamp(event.received_at / 1000, tz=UTC).strftime("%H:%M:%S")
    if event.kind == ERROR:
        st.error(f"`{ts}` {event.message}")
    elif event.kind == INFO:
        st.info(f"`{ts}` {event.message}")
    else:
        prices = ", ".join(f"{sym}: {price}" for sym, price in sorted(event.payload.items()))
        st.success(f"`{ts}` PRICE: {prices}")


# ── Auto-refresh trigger ───────────────────────────────────────

if st.session_state.auto_refresh and cfg.has_price_feed:
    # Sleep briefly (not the full poll interval) to keep the UI responsive.
    time.sleep(1)
    st.rerun()
