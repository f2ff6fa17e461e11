"""Synchronous CoinCap adapter.

Polls two endpoints:
 1. /assets?ids=…                     (current prices and 24h summary per asset)
 2. /assets/{id}/history?interval=…   (historical price series)

Uses httpx synchronously so the adapter can be called from the tick
source's worker threads and from Streamlit reruns without asyncio.
Prices are kept as the decimal text CoinCap sends to avoid float
rounding at the boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from ._http import get_json
from .common_types import SeriesPoint
from .errors import ConfigError, FetchError
from .series_merge import parse_price

logger = logging.getLogger(__name__)

COINCAP_BASE = "https://rest.coincap.io/v3"


def _data_rows(body: Any, endpoint: str, symbol: str = "") -> list[dict[str, Any]]:
    """Extract the ``data`` list of dicts from a CoinCap response body."""
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, list):
        raise FetchError(
            f"CoinCap {endpoint} returned {type(data).__name__} instead of a data list",
            endpoint=endpoint, symbol=symbol,
        )
    return [row for row in data if isinstance(row, dict)]


def _as_float(value: Any) -> float | None:
    parsed = parse_price(value)
    return float(parsed) if parsed is not None else None


@dataclass(frozen=True)
class AssetSummary:
    """One row of the market overview: price plus 24h change and market cap."""

    asset_id: str
    name: str
    ticker: str
    price_usd: str
    change_percent_24h: float | None = None
    market_cap_usd: float | None = None


class CoinCapAdapter:
    """Synchronous adapter for CoinCap asset prices and history."""

    def __init__(
        self,
        api_key: str,
        base_url: str = COINCAP_BASE,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def _headers(self, endpoint: str) -> dict[str, str]:
        if not self.api_key:
            raise ConfigError(f"COINCAP_API_KEY missing – cannot call CoinCap {endpoint}")
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    # ── Live prices ─────────────────────────────────────────────

    def fetch_assets(self, symbols: Iterable[str]) -> dict[str, AssetSummary]:
        """GET /assets?ids=… → ``{symbol: AssetSummary}``.

        CoinCap ids are lowercase; the request lowercases them and the
        result is keyed by the caller's own spelling.  Assets CoinCap
        omits, or returns without a price, are absent from the mapping.
        """
        spelling = {s.lower(): s for s in symbols}
        if not spelling:
            return {}
        headers = self._headers("assets")
        body = get_json(
            self.client,
            f"{self.base_url}/assets",
            params={"ids": ",".join(sorted(spelling))},
            headers=headers,
            label="CoinCap assets",
        )
        assets: dict[str, AssetSummary] = {}
        for row in _data_rows(body, "assets"):
            asset_id = str(row.get("id") or "").lower()
            price = row.get("priceUsd")
            if asset_id not in spelling or price is None:
                continue
            assets[spelling[asset_id]] = AssetSummary(
                asset_id=asset_id,
                name=str(row.get("name") or asset_id),
                ticker=str(row.get("symbol") or ""),
                price_usd=str(price),
                change_percent_24h=_as_float(row.get("changePercent24Hr")),
                market_cap_usd=_as_float(row.get("marketCapUsd")),
            )
        return assets

    def fetch_prices(self, symbols: Iterable[str]) -> dict[str, str]:
        """``{symbol: priceUsd_text}`` for the tick source, in the caller's spelling."""
        return {sym: asset.price_usd for sym, asset in self.fetch_assets(symbols).items()}

    # ── History ─────────────────────────────────────────────────

    def fetch_history(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> list[SeriesPoint]:
        """GET /assets/{id}/history → time-ascending ``SeriesPoint`` list.

        Rows with a missing or unparsable price are skipped.  The order
        CoinCap returns is kept as-is.
        """
        headers = self._headers("history")
        body = get_json(
            self.client,
            f"{self.base_url}/assets/{symbol.lower()}/history",
            params={"interval": interval, "start": start_ms, "end": end_ms},
            headers=headers,
            label=f"CoinCap history ({symbol})",
        )
        points: list[SeriesPoint] = []
        skipped = 0
        for row in _data_rows(body, "history", symbol):
            price = parse_price(row.get("priceUsd"))
            ts = row.get("time")
            if price is None or not isinstance(ts, (int, float)):
                skipped += 1
                continue
            points.append(SeriesPoint(
                time=int(ts),
                price=price,
                volume=parse_price(row.get("volumeUsd")),
                market_cap=parse_price(row.get("marketCapUsd")),
            ))
        if skipped:
            logger.debug("CoinCap history %s: skipped %d malformed rows", symbol, skipped)
        return points
