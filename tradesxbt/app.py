"""
Application services for tradesxbt.

AppServices builds every long-lived object the CLI needs and owns their
lifecycle: the shared HTTP client, the SQLite store, the conversation and
token stores, the tool registry and the simulated connection manager.
"""
import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from .chat.orchestrator import ChatOrchestrator
from .config import ConfigManager
from .history.thread_store import ConversationStore
from .history.token_history import TokenHistoryStore
from .llm.provider_registry import ProviderRegistry
from .services.market_data import CoinGeckoClient
from .services.news import NewsClient
from .services.social import SocialFeedClient
from .storage.db import KeyValueStore
from .tools.registry import ToolRegistry
from .tools.simulated import SimulatedConnectionManager


logger = logging.getLogger(__name__)


class AppServices:
    """
    Explicitly constructed service container.

    Use as an async context manager:

        async with AppServices(config) as services:
            await services.orchestrator.send_message("What is BTC doing?")

    Args:
        config: Loaded configuration
        db_path: SQLite file (":memory:" for a throwaway store)
        http_client: Client to use instead of creating one (not closed on exit)
    """

    def __init__(
        self,
        config: ConfigManager,
        db_path: Optional[Union[Path, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.market.request_timeout,
            follow_redirects=True,
        )
        self.storage = KeyValueStore(db_path)
        self.conversations = ConversationStore(self.storage)
        self.token_history = TokenHistoryStore(self.storage)

        self.market = CoinGeckoClient(
            self.http_client,
            api_key=config.get_api_key("COINGECKO_API_KEY"),
            max_retries=config.market.max_retries,
            timeout=config.market.request_timeout,
        )
        self.news = NewsClient(
            self.http_client,
            cryptocompare_key=config.get_api_key("CRYPTOCOMPARE_API_KEY"),
            newsapi_key=config.get_api_key("NEWSAPI_KEY"),
            timeout=config.market.request_timeout,
        )
        self.social = SocialFeedClient(self.http_client, api_key=config.get_api_key("RAPIDAPI_KEY"))

        self.connections = SimulatedConnectionManager()
        self.tools = ToolRegistry(self.market, self.connections, self.news)
        self.providers = ProviderRegistry(config, self.http_client, self.tools)
        self.orchestrator = ChatOrchestrator(
            self.conversations,
            self.providers.get_preferred,
            tool_registry=self.tools,
            fallback_model=config.llm.fallback_model,
            streaming=config.ui.streaming,
        )
        self._closed = False

    async def __aenter__(self) -> 'AppServices':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Drop simulated connections, close the HTTP client and the database."""
        if self._closed:
            return
        self._closed = True
        self.connections.close_all()
        if self._owns_client:
            await self.http_client.aclose()
        self.storage.close()
        logger.debug("Application services closed")
