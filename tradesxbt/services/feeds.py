"""
Display-side policy for peripheral feeds.

Clients report failures as Results; widgets always show something, so on
failure the sample data is rendered and the failure is logged and flagged.
"""
import logging
from dataclasses import dataclass
from typing import Generic, Optional, Sequence, TypeVar

from .news import SAMPLE_ARTICLES, NewsArticle
from .result import Result
from .social import SAMPLE_TWEETS, Tweet, sample_search_results


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class FeedView(Generic[T]):
    """
    Items to display and whether they are samples.

    Attributes:
        items: Items to render
        is_sample: True when the live fetch failed or returned nothing
        error: The failure behind a sample view
    """
    items: tuple
    is_sample: bool = False
    error: Optional[Exception] = None


def choose_items(result: Result[list], samples: Sequence[T], feed: str) -> FeedView[T]:
    """
    Pick live items or samples for a feed widget.

    Args:
        result: Outcome of the live fetch
        samples: Items to show instead on failure
        feed: Feed name for logging

    Returns:
        FeedView with live items when the fetch succeeded with data
    """
    if result.ok and result.value:
        return FeedView(items=tuple(result.value))
    if result.error is not None:
        logger.warning(f"{feed} feed unavailable, showing sample data: {result.error}")
    else:
        logger.info(f"{feed} feed returned no items, showing sample data")
    return FeedView(items=tuple(samples), is_sample=True, error=result.error)


def articles_or_samples(result: Result[list[NewsArticle]]) -> FeedView[NewsArticle]:
    return choose_items(result, SAMPLE_ARTICLES, "News")


def tweets_or_samples(result: Result[list[Tweet]]) -> FeedView[Tweet]:
    return choose_items(result, SAMPLE_TWEETS, "Twitter")


def token_tweets_or_samples(result: Result[list[Tweet]], symbol: str, name: str) -> FeedView[Tweet]:
    return choose_items(result, sample_search_results(symbol, name), f"Twitter search for {symbol}")
