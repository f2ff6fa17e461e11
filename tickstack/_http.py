"""Shared HTTP helpers for the CoinCap, OpenWeatherMap and newsdata.io adapters.

Centralises retry, status handling and URL sanitisation so that API keys
are never logged in plain text, regardless of which adapter raises the
error.  Every failure surfaces as a :class:`~tickstack.errors.FetchError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import RETRYABLE_STATUS, FetchError, TransientFetchError, retry
from .log_redaction import sanitize_url

logger = logging.getLogger(__name__)

# Maximum number of attempts (including the first request).
_MAX_ATTEMPTS: int = 3


@retry(attempts=_MAX_ATTEMPTS)
def _get(
    client: httpx.Client,
    url: str,
    params: dict[str, Any],
    headers: dict[str, str],
    label: str,
) -> httpx.Response:
    try:
        r = client.get(url, params=params, headers=headers)
    except (httpx.ConnectError, httpx.TimeoutException) as exc:
        raise TransientFetchError(
            f"{label} network error ({type(exc).__name__})", endpoint=label,
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"{label} request failed: {sanitize_url(str(exc))}", endpoint=label) from exc

    if r.status_code in RETRYABLE_STATUS:
        raise TransientFetchError(
            f"{label} HTTP {r.status_code} from {sanitize_url(str(r.url))}",
            endpoint=label, status_code=r.status_code,
        )
    if r.is_error:
        raise FetchError(
            f"{label} HTTP {r.status_code} from {sanitize_url(str(r.url))}", endpoint=label,
        )
    return r


def get_json(
    client: httpx.Client,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    label: str = "HTTP",
) -> Any:
    """GET *url* and return the decoded JSON body; raises ``FetchError``."""
    r = _get(client, url, dict(params or {}), dict(headers or {}), label)
    try:
        return r.json()
    except ValueError:
        ct = r.headers.get("content-type", "")
        raise FetchError(
            f"{label} returned non-JSON (content-type={ct!r}, "
            f"status={r.status_code}, url={sanitize_url(str(r.url))})",
            endpoint=label,
        ) from None
