"""
Crypto news client for tradesxbt.

Tries CryptoCompare first and NewsAPI.org second. Failures are returned as
a Result rather than replaced with sample data here; the display layer
decides what to show (see services.feeds).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from .result import Result
from ..constants import CRYPTOCOMPARE_NEWS_URL, NEWSAPI_URL, MARKET_TIMEOUT
from ..errors import FeedError


logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 150


@dataclass(frozen=True)
class NewsArticle:
    """A news headline with summary and link."""
    id: str
    title: str
    summary: str
    link: str
    published: str
    category: str = "Crypto"
    source: Optional[str] = None
    authors: tuple[str, ...] = field(default_factory=tuple)
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "link": self.link,
            "published": self.published,
            "category": self.category,
            "source": self.source,
            "authors": list(self.authors),
        }


def _sample_articles() -> list[NewsArticle]:
    now = datetime.now(timezone.utc).isoformat()
    return [
        NewsArticle(
            id="1",
            title="Bitcoin Surges Past $50,000",
            summary="Bitcoin has reached a new milestone...",
            link="https://example.com/news/1",
            published=now,
            category="Market",
            authors=("John Doe",),
        ),
        NewsArticle(
            id="2",
            title="Ethereum 2.0 Update Progress",
            summary="The Ethereum network upgrade continues...",
            link="https://example.com/news/2",
            published=now,
            category="Technology",
            authors=("Jane Smith",),
        ),
    ]


SAMPLE_ARTICLES: tuple[NewsArticle, ...] = tuple(_sample_articles())


def parse_cryptocompare(data: dict) -> list[NewsArticle]:
    """
    Convert a CryptoCompare news payload.

    Raises:
        FeedError: If the payload has no article list
    """
    items = data.get("Data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise FeedError("Invalid data format from CryptoCompare API")

    articles = []
    for item in items:
        published = datetime.fromtimestamp(int(item.get("published_on", 0)), tz=timezone.utc)
        source = item.get("source")
        articles.append(NewsArticle(
            id=str(item.get("id", "")),
            title=item.get("title", ""),
            summary=(item.get("body") or "")[:SUMMARY_LENGTH] + "...",
            link=item.get("url", ""),
            published=published.isoformat(),
            category=item.get("categories") or "Crypto",
            source=source,
            authors=(source,) if source else (),
            image_url=item.get("imageurl"),
        ))
    return articles


def parse_newsapi(data: dict) -> list[NewsArticle]:
    """
    Convert a NewsAPI.org payload.

    Raises:
        FeedError: If the payload has no article list
    """
    items = data.get("articles") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise FeedError("Invalid data format from NewsAPI")

    return [
        NewsArticle(
            id=str(index),
            title=item.get("title") or "",
            summary=item.get("description") or item.get("content") or "No description available",
            link=item.get("url") or "",
            published=item.get("publishedAt") or "",
            source=(item.get("source") or {}).get("name"),
            authors=(item["author"],) if item.get("author") else (),
            image_url=item.get("urlToImage"),
        )
        for index, item in enumerate(items)
    ]


class NewsClient:
    """
    Fetches crypto news from two alternate providers.

    Args:
        http_client: Shared HTTP client
        cryptocompare_key: Optional CryptoCompare key (the endpoint works without one)
        newsapi_key: NewsAPI.org key (that provider is skipped without one)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cryptocompare_key: Optional[str] = None,
        newsapi_key: Optional[str] = None,
        timeout: float = MARKET_TIMEOUT,
    ) -> None:
        self._client = http_client
        self._cryptocompare_key = cryptocompare_key
        self._newsapi_key = newsapi_key
        self._timeout = timeout

    async def _get_json(self, url: str, params: dict, service: str) -> dict:
        try:
            response = await self._client.get(url, params=params, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise FeedError(f"{service} request failed: {e}") from e
        if response.is_error:
            raise FeedError(f"{service} API returned {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise FeedError(f"{service} returned invalid JSON") from e

    async def _from_cryptocompare(self, limit: int, category: Optional[str] = None) -> list[NewsArticle]:
        params = {"lang": "EN", "sortOrder": "popular", "limit": str(limit)}
        if category:
            params["categories"] = category.upper()
        if self._cryptocompare_key:
            params["api_key"] = self._cryptocompare_key
        data = await self._get_json(CRYPTOCOMPARE_NEWS_URL, params, "CryptoCompare")
        return parse_cryptocompare(data)

    async def _from_newsapi(self, query: str, limit: int) -> list[NewsArticle]:
        if not self._newsapi_key:
            raise FeedError("NewsAPI key is not configured")
        params = {
            "q": query,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": str(limit),
            "apiKey": self._newsapi_key,
        }
        data = await self._get_json(NEWSAPI_URL, params, "NewsAPI")
        return parse_newsapi(data)

    async def latest_news(self, limit: int = 10) -> Result[list[NewsArticle]]:
        """
        Fetch general crypto news.

        Returns:
            Result with the articles, or the last provider's error
        """
        try:
            return Result.success(await self._from_cryptocompare(limit), "cryptocompare")
        except FeedError as e:
            logger.warning(f"Error fetching news from CryptoCompare: {e}")

        try:
            return Result.success(
                await self._from_newsapi("crypto OR bitcoin OR ethereum", limit), "newsapi"
            )
        except FeedError as e:
            logger.warning(f"Error fetching news from NewsAPI: {e}")
            return Result.failure(e, "newsapi")

    async def news_for_token(self, symbol: str, limit: int = 10) -> Result[list[NewsArticle]]:
        """
        Fetch news about one token, falling back to general news when
        neither provider has token-specific articles.
        """
        try:
            articles = await self._from_cryptocompare(limit, category=symbol)
            if articles:
                return Result.success(articles, "cryptocompare")
        except FeedError as e:
            logger.warning(f"Error fetching {symbol} news from CryptoCompare: {e}")

        try:
            articles = await self._from_newsapi(symbol, limit)
            if articles:
                return Result.success(articles, "newsapi")
        except FeedError as e:
            logger.warning(f"Error fetching {symbol} news from NewsAPI: {e}")

        return await self.latest_news(limit)
