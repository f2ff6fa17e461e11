"""newsdata.io crypto headline adapter for the dashboard sidebar."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ._http import get_json
from .errors import ConfigError, FetchError

NEWSDATA_URL = "https://newsdata.io/api/1/news"


@dataclass
class NewsArticle:
    title: str
    content: str
    date: str
    link: str


class NewsDataAdapter:
    def __init__(self, api_key: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=timeout)

    def fetch_crypto_news(self, limit: int = 5, query: str = "cryptocurrency") -> list[NewsArticle]:
        """Latest *limit* articles matching *query*; missing fields get placeholders."""
        if not self.api_key:
            raise ConfigError("NEWSDATA_API_KEY missing – check your environment variables")
        body = get_json(
            self.client,
            NEWSDATA_URL,
            params={"apikey": self.api_key, "q": query},
            label="newsdata.io",
        )
        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise FetchError("newsdata.io returned no results list", endpoint="news")

        articles: list[NewsArticle] = []
        for row in results[:limit]:
            if not isinstance(row, dict):
                continue
            articles.append(NewsArticle(
                title=row.get("title") or "No Title",
                content=row.get("description") or "No Content",
                date=row.get("pubDate") or "Unknown Date",
                link=row.get("link") or "#",
            ))
        return articles
