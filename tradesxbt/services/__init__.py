"""Market data, news and social feed clients."""
from .result import Result
from .market_data import CoinGeckoClient
from .news import NewsArticle, NewsClient
from .social import SocialFeedClient, Tweet
from .feeds import FeedView, articles_or_samples, tweets_or_samples

__all__ = [
    'Result',
    'CoinGeckoClient',
    'NewsArticle',
    'NewsClient',
    'SocialFeedClient',
    'Tweet',
    'FeedView',
    'articles_or_samples',
    'tweets_or_samples',
]
