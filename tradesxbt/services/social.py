"""
Social feed client for tradesxbt (Twitter lists via RapidAPI).

Failures are returned as a Result; sample tweets are chosen by the display
layer (see services.feeds).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx

from .result import Result
from ..constants import MARKET_TIMEOUT, TWITTER_API_HOST, TWITTER_LIST_ID
from ..errors import FeedError


logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "https://abs.twimg.com/sticky/default_profile_images/default_profile_400x400.png"
SOCIAL_MAX_RETRIES = 2


@dataclass(frozen=True)
class TweetUser:
    name: str
    screen_name: str
    profile_image_url_https: str = DEFAULT_AVATAR
    verified: bool = False


@dataclass(frozen=True)
class Tweet:
    """A tweet with engagement counters."""
    tweet_id: str
    text: str
    created_at: str
    user: TweetUser
    replies: int = 0
    retweets: int = 0
    favorites: int = 0
    views: int = 0
    media_url: tuple[str, ...] = field(default_factory=tuple)
    video_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> 'Tweet':
        """Build a Tweet from a twitter154 result entry."""
        user = data.get("user") or {}
        return cls(
            tweet_id=str(data.get("tweet_id", "")),
            text=data.get("text") or "",
            created_at=data.get("creation_date") or datetime.now(timezone.utc).isoformat(),
            user=TweetUser(
                name=user.get("name") or "Crypto User",
                screen_name=user.get("username") or "cryptouser",
                profile_image_url_https=user.get("profile_pic_url") or DEFAULT_AVATAR,
                verified=bool(user.get("is_verified") or user.get("is_blue_verified")),
            ),
            replies=data.get("reply_count") or 0,
            retweets=data.get("retweet_count") or 0,
            favorites=data.get("favorite_count") or 0,
            views=data.get("views") or 0,
            media_url=tuple(data.get("media_url") or ()),
            video_url=data.get("video_url"),
        )


def _ago(seconds: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=seconds)).isoformat()


SAMPLE_TWEETS: tuple[Tweet, ...] = (
    Tweet(
        tweet_id="1565246572489728100",
        text="Bitcoin just broke $50k! This bull run is just getting started. #BTC #Crypto",
        created_at=_ago(0),
        user=TweetUser("Crypto Trader", "cryptotrader", verified=True),
        replies=42, retweets=156, favorites=879,
    ),
    Tweet(
        tweet_id="1565246572489728101",
        text="Ethereum 2.0 upgrade is proceeding well. Excited about the future of $ETH. "
             "Lower gas fees coming soon!",
        created_at=_ago(3600),
        user=TweetUser("ETH Developer", "ethdev", verified=True),
        replies=18, retweets=64, favorites=312,
    ),
    Tweet(
        tweet_id="1565246572489728102",
        text="Just made my first DeFi transaction. The future of finance is here! #DeFi #Crypto",
        created_at=_ago(7200),
        user=TweetUser("DeFi Enthusiast", "defienthusiast"),
        replies=5, retweets=12, favorites=57,
    ),
)


def sample_search_results(symbol: str, name: str) -> list[Tweet]:
    """Sample tweets mentioning a token, used when search is unavailable."""
    symbol = symbol.upper()
    return [
        Tweet(
            tweet_id="1565246572489728103",
            text=f"{symbol} is looking bullish today! Price target $1000 soon? #{symbol} #Crypto",
            created_at=_ago(0),
            user=TweetUser("Crypto Analyst", "cryptoanalyst", verified=True),
            replies=12, retweets=34, favorites=89,
        ),
        Tweet(
            tweet_id="1565246572489728104",
            text=f"Just bought more {name} (${symbol})! This project has massive potential "
                 "in the next bull cycle.",
            created_at=_ago(1800),
            user=TweetUser("Crypto Whale", "cryptowhale", verified=True),
            replies=5, retweets=15, favorites=67,
        ),
        Tweet(
            tweet_id="1565246572489728105",
            text=f"{name} just announced a major partnership! Bullish on ${symbol} #Crypto #Altcoins",
            created_at=_ago(3600),
            user=TweetUser("Crypto News", "cryptonews"),
            replies=8, retweets=29, favorites=102,
        ),
    ]


class SocialFeedClient:
    """
    RapidAPI twitter154 client.

    Args:
        http_client: Shared HTTP client
        api_key: RapidAPI key (requests fail fast without one)
        max_retries: Retries on network errors, 429 and 5xx
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        max_retries: int = SOCIAL_MAX_RETRIES,
        backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._max_retries = max_retries
        self._backoff = backoff
        self._sleep = sleep

    async def _get(self, path: str, params: dict) -> dict:
        if not self._api_key:
            raise FeedError("RapidAPI key is not configured")

        headers = {"x-rapidapi-host": TWITTER_API_HOST, "x-rapidapi-key": self._api_key}
        url = f"https://{TWITTER_API_HOST}{path}"

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.get(
                    url, params=params, headers=headers, timeout=MARKET_TIMEOUT
                )
            except httpx.TransportError as e:
                error = FeedError(f"Twitter request failed: {e}")
            else:
                retryable = response.status_code == 429 or response.status_code >= 500
                if not response.is_error:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise FeedError("Twitter API returned invalid JSON") from e
                error = FeedError(f"Twitter API returned {response.status_code}")
                if not retryable:
                    raise error

            if attempt < self._max_retries:
                await self._sleep(self._backoff * (2 ** attempt))
        raise error

    async def list_timeline(
        self,
        list_id: str = TWITTER_LIST_ID,
        limit: int = 40,
        continuation_token: Optional[str] = None
    ) -> Result[list[Tweet]]:
        """Fetch tweets from a curated list."""
        params = {"list_id": list_id, "limit": str(limit)}
        path = "/lists/tweets"
        if continuation_token:
            params["continuation_token"] = continuation_token
            path = "/lists/tweets/continuation"

        try:
            data = await self._get(path, params)
            results = data.get("results") if isinstance(data, dict) else None
            if not results:
                raise FeedError("No data received from Twitter API")
            return Result.success([Tweet.from_api(item) for item in results], "twitter")
        except FeedError as e:
            logger.warning(f"Error fetching Twitter timeline: {e}")
            return Result.failure(e, "twitter")

    async def search(self, query: str, limit: int = 20) -> Result[list[Tweet]]:
        """Search recent tweets for a keyword or cashtag."""
        try:
            data = await self._get("/search/search", {
                "query": query,
                "section": "top",
                "limit": str(limit),
                "language": "en",
            })
            results = data.get("results") if isinstance(data, dict) else None
            return Result.success([Tweet.from_api(item) for item in results or []], "twitter")
        except FeedError as e:
            logger.warning(f"Error searching Twitter for {query}: {e}")
            return Result.failure(e, "twitter")
