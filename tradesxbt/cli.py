"""
Interactive chat loop and one-shot commands for tradesxbt.
"""
import logging
from typing import Optional

from .app import AppServices
from .errors import MarketDataError, TradesXBTError, format_error
from .history.models import Message
from .rich_ui.prompt_input import QUIT_COMMAND, PromptInput
from .rich_ui.renderer import ChatRenderer
from .services.feeds import articles_or_samples, token_tweets_or_samples, tweets_or_samples


logger = logging.getLogger(__name__)

COMMANDS = [
    ("/help", "Show this help"),
    ("/new", "Start a new chat"),
    ("/threads", "List chat threads"),
    ("/switch", "Switch to thread N"),
    ("/delete", "Delete thread N"),
    ("/price", "Show prices, e.g. /price btc eth"),
    ("/news", "Latest news, optionally for a token"),
    ("/tweets", "Social feed, optionally for a token"),
    ("/tokens", "Recently viewed tokens"),
    ("/quit", "Exit"),
]


class CLI:
    """
    Terminal front end over AppServices.

    Args:
        services: Application services
        renderer: Console renderer
        prompt: Line input (created on demand for the interactive loop)
    """

    def __init__(
        self,
        services: AppServices,
        renderer: Optional[ChatRenderer] = None,
        prompt: Optional[PromptInput] = None,
    ) -> None:
        self._services = services
        self._renderer = renderer or ChatRenderer(markdown=services.config.ui.markdown_rendering)
        self._prompt = prompt
        self._running = False

    @property
    def renderer(self) -> ChatRenderer:
        return self._renderer

    async def ask(self, text: str) -> int:
        """Run one chat turn and print the answer."""
        message = await self._send(text)
        return 0 if message is not None else 1

    async def _send(self, text: str) -> Optional[Message]:
        orchestrator = self._services.orchestrator
        view = self._renderer.stream_view()
        unsubscribe = orchestrator.subscribe(view.update)
        view.start()
        try:
            message = await orchestrator.send_message(text)
        finally:
            unsubscribe()
            view.finish()

        if message is None:
            if orchestrator.last_error is not None:
                self._renderer.print_error(format_error(orchestrator.last_error))
            return None
        self._renderer.print_message(message)
        return message

    async def show_prices(self, coins: list[str]) -> int:
        services = self._services
        if not coins:
            self._renderer.print_error("Name at least one coin, e.g. btc or ethereum")
            return 1
        try:
            ids = [await services.tools.resolve_coin_id(coin) for coin in coins]
            entries = await services.market.get_coins_market_data(
                services.config.market.vs_currency, ids=ids, limit=len(ids)
            )
        except MarketDataError as e:
            self._renderer.print_error(format_error(e))
            return 1

        if not entries:
            self._renderer.print_warning(f"No market data found for {', '.join(coins)}")
            return 1
        for entry in entries:
            services.token_history.add_token(str(entry.get("symbol", "")).upper(), entry)
        self._renderer.print_prices(entries, services.config.market.vs_currency)
        return 0

    async def show_news(self, token: Optional[str] = None) -> int:
        news = self._services.news
        result = await (news.news_for_token(token) if token else news.latest_news())
        self._renderer.print_news(articles_or_samples(result))
        return 0

    async def show_tweets(self, token: Optional[str] = None) -> int:
        social = self._services.social
        if token:
            result = await social.search(f"${token.upper()}")
            view = token_tweets_or_samples(result, token, token.upper())
        else:
            view = tweets_or_samples(await social.list_timeline())
        self._renderer.print_tweets(view)
        return 0

    def show_threads(self) -> int:
        store = self._services.conversations
        self._renderer.print_threads(store.threads, store.current_thread_id)
        return 0

    def show_tokens(self) -> int:
        history = self._services.token_history
        self._renderer.print_token_history(history.history, history.selected_token)
        return 0

    def _thread_at(self, arg: str):
        threads = self._services.conversations.threads
        try:
            index = int(arg) - 1
        except ValueError:
            return None
        return threads[index] if 0 <= index < len(threads) else None

    async def handle_command(self, line: str) -> None:
        """Run a slash command from the chat loop."""
        name, _, arg = line.partition(" ")
        arg = arg.strip()
        orchestrator = self._services.orchestrator

        if name == QUIT_COMMAND:
            self._running = False
        elif name == "/help":
            self._renderer.print_help(COMMANDS)
        elif name == "/new":
            orchestrator.new_chat()
            self._renderer.print_info("Started a new chat.")
        elif name == "/threads":
            self.show_threads()
        elif name in ("/switch", "/delete"):
            thread = self._thread_at(arg)
            if thread is None:
                self._renderer.print_error(f"No thread number {arg or '?'}")
            elif name == "/switch":
                self._renderer.print_thread(orchestrator.select_thread(thread.id))
            else:
                orchestrator.delete_thread(thread.id)
                self._renderer.print_info(f"Deleted \"{thread.title}\"")
        elif name == "/price":
            await self.show_prices(arg.split())
        elif name == "/news":
            await self.show_news(arg or None)
        elif name == "/tweets":
            await self.show_tweets(arg or None)
        elif name == "/tokens":
            self.show_tokens()
        else:
            self._renderer.print_error(f"Unknown command: {name}. Type /help for commands.")

    async def run(self) -> int:
        """Interactive chat loop; returns the exit code."""
        services = self._services
        try:
            provider = services.providers.get_preferred()
        except TradesXBTError as e:
            self._renderer.print_error(format_error(e))
            return 1

        if self._prompt is None:
            self._prompt = PromptInput()
        self._prompt.set_commands(COMMANDS)
        self._prompt.set_status(provider=provider.name, model=provider.model)
        self._renderer.print_banner(provider.name, provider.model)

        self._running = True
        while self._running:
            self._prompt.set_status(unread=services.orchestrator.unread_count)
            line = (await self._prompt.get_input()).strip()
            if not line:
                continue
            if line.startswith("/"):
                await self.handle_command(line)
                continue
            await self._send(line)

        self._renderer.print_info("Goodbye!")
        return 0
