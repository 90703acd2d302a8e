"""
NewsAPI data source for headlines and article search.

API Documentation: https://newsapi.org/docs
Free tier: 100 calls/day
"""

from typing import Any

from market_gateway.datasource.base import BaseDataSource
from market_gateway.datasource.types import NewsArticle
from market_gateway.services.errors import (
    AuthenticationError,
    RateLimitError,
    UpstreamError,
)

CATEGORIES: tuple[str, ...] = (
    "business",
    "entertainment",
    "general",
    "health",
    "science",
    "sports",
    "technology",
)
SORT_OPTIONS: tuple[str, ...] = ("relevancy", "popularity", "publishedAt")


def _source_name(article: Any) -> str:
    source = article.get("source")
    name = source.get("name") if isinstance(source, dict) else None
    return name or "Unknown"


class NewsAPISource(BaseDataSource):
    """
    NewsAPI data source.

    Errors come back as ``{"status": "error", "code": ..., "message": ...}``.
    """

    SERVICE_ID = "newsapi"

    def detect_error(self, payload: Any) -> None:
        if not isinstance(payload, dict) or payload.get("status") != "error":
            return

        code = str(payload.get("code", ""))
        if code == "rateLimited":
            raise RateLimitError(self.service_id)
        if code.startswith("apiKey"):
            raise AuthenticationError(
                "NewsAPI rejected the API key", service_id=self.service_id
            )
        raise UpstreamError(
            "NewsAPI error",
            service_id=self.service_id,
            status_code=400,
            retryable=code == "unexpectedError",
        )

    def _articles(self, data: Any) -> list[NewsArticle]:
        return [
            NewsArticle(
                source=_source_name(article),
                author=article.get("author"),
                title=article.get("title") or "",
                description=article.get("description"),
                url=self._require(article, "url"),
                url_to_image=article.get("urlToImage"),
                published_at=self._require(article, "publishedAt"),
                content=article.get("content"),
            )
            for article in map(self._require_mapping, self._require_list(data, "articles"))
        ]

    async def fetch_headlines(
        self,
        category: str | None = None,
        country: str = "us",
        page_size: int = 20,
    ) -> list[NewsArticle]:
        """Fetch top headlines for a country and optional category."""
        data = await self._get(
            "/top-headlines",
            params={
                "country": country,
                "category": category,
                "pageSize": str(page_size),
            },
        )
        return self._articles(data)

    async def search(
        self,
        query: str,
        language: str = "en",
        sort_by: str = "publishedAt",
        page_size: int = 20,
    ) -> list[NewsArticle]:
        """Search all articles."""
        data = await self._get(
            "/everything",
            params={
                "q": query,
                "language": language,
                "sortBy": sort_by,
                "pageSize": str(page_size),
            },
        )
        return self._articles(data)
