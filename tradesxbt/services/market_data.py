"""
CoinGecko market data client for tradesxbt.

GET requests are idempotent and retried with exponential backoff on network
errors, rate limiting and transient server errors. A 404 means "no data" and
is returned as None.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from ..constants import (
    COINGECKO_BASE_URL,
    COINGECKO_PRO_BASE_URL,
    MARKET_MAX_RETRIES,
    MARKET_TIMEOUT,
    RETRYABLE_STATUSES,
)
from ..errors import MarketDataError, MarketDataRateLimitError


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class DeveloperData:
    """Repository activity for a coin. All counters default to zero."""
    forks: int = 0
    stars: int = 0
    subscribers: int = 0
    total_issues: int = 0
    closed_issues: int = 0
    pull_requests_merged: int = 0
    pull_request_contributors: int = 0
    code_additions_deletions_4_weeks: dict = field(
        default_factory=lambda: {"additions": 0, "deletions": 0}
    )
    commit_count_4_weeks: int = 0
    last_4_weeks_commit_activity_series: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'DeveloperData':
        defaults = cls()
        return cls(**{
            name: data.get(name) if data.get(name) is not None else getattr(defaults, name)
            for name in defaults.__dataclass_fields__
        })


@dataclass
class Category:
    """A market category summary."""
    id: str
    name: str
    market_cap: Optional[float]
    market_cap_change_24h: Optional[float]
    volume_24h: Optional[float]
    updated_at: str


class CoinGeckoClient:
    """
    Async CoinGecko REST client.

    Args:
        http_client: Shared HTTP client
        api_key: Pro API key (switches to the pro endpoint when set)
        base_url: Override for the API root
        max_retries: Retries after the first attempt
        backoff: Base delay in seconds; attempt n waits backoff * 2**n
        timeout: Per-request timeout in seconds
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = MARKET_MAX_RETRIES,
        backoff: float = 1.0,
        timeout: float = MARKET_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._base_url = base_url or (COINGECKO_PRO_BASE_URL if api_key else COINGECKO_BASE_URL)
        self._max_retries = max_retries
        self._backoff = backoff
        self._timeout = timeout
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-cg-pro-api-key"] = self._api_key
        return headers

    async def fetch(self, endpoint: str, params: Optional[dict] = None) -> Optional[Any]:
        """
        GET an endpoint with retries.

        Args:
            endpoint: Path below the API root (e.g., "/coins/markets")
            params: Query parameters

        Returns:
            Decoded JSON, or None for 404

        Raises:
            MarketDataRateLimitError: On 429 after retries
            MarketDataError: On other failures after retries
        """
        url = f"{self._base_url}{endpoint}"
        attempt = 0

        while True:
            try:
                response = await self._client.get(
                    url, params=params, headers=self._headers(), timeout=self._timeout
                )
            except httpx.TransportError as e:
                if attempt < self._max_retries:
                    await self._wait(attempt, endpoint, f"network error: {e}")
                    attempt += 1
                    continue
                raise MarketDataError(f"Network error: {e}") from e

            status = response.status_code
            if status in RETRYABLE_STATUSES and attempt < self._max_retries:
                await self._wait(attempt, endpoint, f"HTTP {status}")
                attempt += 1
                continue

            if status == 404:
                logger.warning(f"Resource not found at {endpoint}")
                return None
            if status == 429:
                raise MarketDataRateLimitError()
            if response.is_error:
                raise MarketDataError(f"API Error: {status} - {response.reason_phrase}", status)
            try:
                return response.json()
            except ValueError as e:
                raise MarketDataError(f"Invalid JSON from {endpoint}", status) from e

    async def _wait(self, attempt: int, endpoint: str, reason: str) -> None:
        delay = self._backoff * (2 ** attempt)
        logger.debug(f"Retrying {endpoint} in {delay:.1f}s after {reason}")
        await self._sleep(delay)

    async def get_coins_market_data(
        self,
        currency: str = "usd",
        ids: Optional[list[str]] = None,
        order: str = "market_cap_desc",
        limit: int = 100,
        category: Optional[str] = None
    ) -> Optional[list[dict]]:
        params = {
            "vs_currency": currency,
            "order": order,
            "per_page": str(limit),
            "sparkline": "false",
        }
        if ids:
            params["ids"] = ",".join(ids)
        if category:
            params["category"] = category
        return await self.fetch("/coins/markets", params)

    async def search(self, query: str) -> Optional[dict]:
        return await self.fetch("/search", {"query": query})

    async def get_global_data(self) -> Optional[dict]:
        return await self.fetch("/global")

    async def get_trending(self) -> Optional[dict]:
        return await self.fetch("/search/trending")

    async def get_simple_price(self, ids: list[str], currency: str = "usd") -> Optional[dict]:
        return await self.fetch("/simple/price", {
            "ids": ",".join(ids),
            "vs_currencies": currency,
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
            "include_market_cap": "true",
        })

    async def get_coin_details(self, coin_id: str) -> Optional[dict]:
        return await self.fetch(f"/coins/{coin_id}", {
            "localization": "false",
            "tickers": "true",
            "market_data": "true",
            "community_data": "true",
            "developer_data": "true",
            "sparkline": "true",
        })

    async def get_market_chart(
        self,
        coin_id: str,
        days: Union[int, str],
        currency: str = "usd",
        interval: Optional[str] = None
    ) -> Optional[dict]:
        params = {"vs_currency": currency, "days": str(days)}
        if interval:
            params["interval"] = interval
        return await self.fetch(f"/coins/{coin_id}/market_chart", params)

    async def get_ohlc(self, coin_id: str, days: int, currency: str = "usd") -> Optional[list]:
        return await self.fetch(f"/coins/{coin_id}/ohlc", {
            "vs_currency": currency,
            "days": str(days),
        })

    async def get_market_chart_range(
        self,
        coin_id: str,
        currency: str,
        start: int,
        end: int
    ) -> Optional[dict]:
        return await self.fetch(f"/coins/{coin_id}/market_chart/range", {
            "vs_currency": currency,
            "from": str(start),
            "to": str(end),
        })

    async def get_top_gainers_losers(
        self,
        currency: str = "usd",
        timeframe: str = "24h",
        limit: int = 10
    ) -> Optional[dict]:
        return await self.fetch("/coins/top_gainers_losers", {
            "vs_currency": currency,
            "duration": timeframe,
            "top": str(limit),
        })

    async def get_developer_data(self, coin_id: str) -> DeveloperData:
        data = await self.fetch(f"/coins/{coin_id}/developer_data")
        if not data:
            logger.warning(f"No developer data available for token: {coin_id}")
            return DeveloperData()
        return DeveloperData.from_dict(data)

    async def get_repositories(self, coin_id: str) -> list[dict]:
        return await self.fetch(f"/coins/{coin_id}/repositories") or []

    async def get_status_updates(self, coin_id: str, page: int = 1, per_page: int = 10) -> list[dict]:
        data = await self.fetch(f"/coins/{coin_id}/status_updates", {
            "page": str(page),
            "per_page": str(per_page),
        })
        return (data or {}).get("status_updates") or []

    async def get_categories(self) -> list[Category]:
        data = await self.fetch("/coins/categories") or []
        updated_at = datetime.now(timezone.utc).isoformat()
        return [
            Category(
                id=item.get("id", ""),
                name=item.get("name", ""),
                market_cap=item.get("market_cap"),
                market_cap_change_24h=item.get("market_cap_change_24h"),
                volume_24h=item.get("volume_24h"),
                updated_at=updated_at,
            )
            for item in data
        ]
