"""
Rich console rendering for tradesxbt.

ChatRenderer prints messages, tables and notices. StreamView follows the
snapshots of a streaming AI message and shows them in a Live display.
"""
import json
import logging
from enum import Enum
from typing import Iterable, Optional, Sequence

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from ..constants import APP_DESCRIPTION, APP_NAME, APP_VERSION
from ..history.models import Message, Thread, TokenHistoryItem
from ..llm.base import ToolCall
from ..llm.stream_aggregator import (
    Completed,
    Failed,
    MessageSnapshot,
    SnapshotDiff,
    Started,
    TextAppended,
    ToolCallUpdated,
)
from ..services.feeds import FeedView
from ..services.news import NewsArticle
from ..services.social import Tweet
from ..utils import (
    format_large_number,
    format_percent,
    format_price,
    format_timestamp,
    truncate_string,
)


logger = logging.getLogger(__name__)


class StreamPhase(Enum):
    IDLE = "idle"
    THINKING = "thinking"
    RESPONDING = "responding"
    COMPLETE = "complete"
    ERROR = "error"


def _tool_call_line(call: ToolCall) -> Text:
    line = Text("  ⚙ ", style="yellow")
    line.append(call.function.name, style="bold yellow")
    if call.function.arguments:
        line.append(f" {truncate_string(call.function.arguments, 60)}", style="dim")
    return line


class StreamView:
    """Live display of one streaming AI message.

    State transitions:
        IDLE → THINKING (start)
        THINKING → RESPONDING (first text or tool call)
        * → COMPLETE (Completed diff or finish)
        * → ERROR (Failed diff or abort)
    """

    def __init__(self, console: Console, markdown: bool = True) -> None:
        self._console = console
        self._markdown = markdown
        self._phase = StreamPhase.IDLE
        self._live: Optional[Live] = None
        self._snapshot = MessageSnapshot()

    @property
    def phase(self) -> StreamPhase:
        return self._phase

    def start(self) -> None:
        if self._live is not None:
            logger.warning(f"StreamView.start called in {self._phase.value} state, resetting")
            self._stop_live()
        self._phase = StreamPhase.THINKING
        self._snapshot = MessageSnapshot()
        self._live = Live(
            Spinner("dots", text="Analyzing...", style="cyan"),
            console=self._console,
            refresh_per_second=10,
            vertical_overflow="visible",
            transient=True,
        )
        self._live.start()

    def _renderable(self) -> RenderableType:
        parts: list[RenderableType] = [Text("🤖 TradesXBT", style="bold cyan")]
        parts.extend(_tool_call_line(call) for call in self._snapshot.tool_calls)
        if self._snapshot.text:
            parts.append(Markdown(self._snapshot.text) if self._markdown else Text(self._snapshot.text))
        return Group(*parts)

    def update(self, snapshot: MessageSnapshot, diff: SnapshotDiff) -> None:
        """Apply one aggregation step to the display."""
        self._snapshot = snapshot
        if isinstance(diff, Started):
            if self._live is None:
                self.start()
            return
        if isinstance(diff, (TextAppended, ToolCallUpdated)):
            self._phase = StreamPhase.RESPONDING
            if self._live is not None:
                self._live.update(self._renderable())
        elif isinstance(diff, Completed):
            self._phase = StreamPhase.COMPLETE
        elif isinstance(diff, Failed):
            self._phase = StreamPhase.ERROR

    def _stop_live(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def finish(self) -> None:
        """Close the live display; the caller prints the final message."""
        self._stop_live()
        if self._phase is not StreamPhase.ERROR:
            self._phase = StreamPhase.COMPLETE

    def abort(self) -> None:
        self._stop_live()
        self._phase = StreamPhase.ERROR


class ChatRenderer:
    """
    Renders chat messages and dashboard tables to a Rich console.

    Args:
        console: Console to print to (a new one if omitted)
        markdown: Render AI messages as Markdown
    """

    def __init__(self, console: Optional[Console] = None, markdown: bool = True) -> None:
        self._console = console or Console(color_system="auto")
        self._markdown = markdown

    @property
    def console(self) -> Console:
        return self._console

    def stream_view(self) -> StreamView:
        return StreamView(self._console, markdown=self._markdown)

    def print(self, *args, **kwargs) -> None:
        self._console.print(*args, **kwargs)

    def print_banner(self, provider: str, model: str) -> None:
        self._console.print(f"[bold cyan]{APP_NAME}[/bold cyan] [dim]v{APP_VERSION}[/dim]")
        self._console.print(f"[dim]{APP_DESCRIPTION}[/dim]")
        self._console.print(f"[dim]Provider:[/dim] {provider} [dim]Model:[/dim] {model}")
        self._console.print("[dim]Type /help for commands.[/dim]")
        self._console.print()

    def print_message(self, message: Message, show_tools: bool = True) -> None:
        """Print a user or AI message with a role header."""
        if message.is_ai:
            self._console.print(Text("🤖 TradesXBT", style="bold cyan"))
            if show_tools:
                for call in message.tool_calls:
                    self._console.print(_tool_call_line(call))
            if self._markdown:
                self._console.print(Markdown(message.content or ""))
            else:
                self._console.print(Text(message.content))
        else:
            self._console.print(Text("👤 You", style="dim"))
            self._console.print(Text(message.content))
        self._console.print()

    def print_thread(self, thread: Thread) -> None:
        self._console.print(f"[bold]{thread.title}[/bold] [dim]{format_timestamp(thread.updated_at)}[/dim]")
        self._console.print()
        for message in thread.messages:
            self.print_message(message)

    def print_threads(self, threads: Sequence[Thread], current_id: Optional[str] = None) -> None:
        if not threads:
            self.print_info("No chat threads yet.")
            return
        table = Table(title="Chat threads", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title")
        table.add_column("Messages", justify="right")
        table.add_column("Updated", style="dim")
        for index, thread in enumerate(threads, 1):
            title = thread.title
            if thread.id == current_id:
                title = f"[bold cyan]{title}[/bold cyan]"
            elif not thread.is_read:
                title = f"[bold]{title}[/bold] [yellow]●[/yellow]"
            table.add_row(str(index), title, str(len(thread.messages)), format_timestamp(thread.updated_at))
        self._console.print(table)

    def print_prices(self, entries: Iterable[dict], currency: str = "usd") -> None:
        """Print a market table from CoinGecko /coins/markets entries."""
        table = Table(title="Market data")
        table.add_column("Coin")
        table.add_column("Price", justify="right")
        table.add_column("24h", justify="right")
        table.add_column("Market cap", justify="right")
        table.add_column("Volume", justify="right")
        for entry in entries:
            change = entry.get("price_change_percentage_24h")
            style = "green" if (change or 0) >= 0 else "red"
            table.add_row(
                f"{entry.get('name', '')} [dim]{str(entry.get('symbol', '')).upper()}[/dim]",
                format_price(entry.get("current_price"), currency),
                f"[{style}]{format_percent(change)}[/{style}]",
                format_large_number(entry.get("market_cap")),
                format_large_number(entry.get("total_volume")),
            )
        self._console.print(table)

    def print_news(self, view: FeedView[NewsArticle]) -> None:
        if view.is_sample:
            self.print_warning("Live news is unavailable, showing sample articles.")
        for article in view.items:
            self._console.print(f"[bold]{article.title}[/bold]")
            source = f" · {article.source}" if article.source else ""
            self._console.print(f"[dim]{article.published}{source}[/dim]")
            self._console.print(Text(article.summary))
            if article.link:
                self._console.print(f"[link={article.link}]{article.link}[/link]")
            self._console.print()

    def print_tweets(self, view: FeedView[Tweet]) -> None:
        if view.is_sample:
            self.print_warning("Live social feed is unavailable, showing sample posts.")
        for tweet in view.items:
            badge = " ✔" if tweet.user.verified else ""
            self._console.print(f"[bold]{tweet.user.name}{badge}[/bold] [dim]@{tweet.user.screen_name}[/dim]")
            self._console.print(Text(tweet.text))
            self._console.print(
                f"[dim]💬 {tweet.replies}  🔁 {tweet.retweets}  ♥ {tweet.favorites}[/dim]"
            )
            self._console.print()

    def print_token_history(self, items: Sequence[TokenHistoryItem], selected: Optional[str] = None) -> None:
        if not items:
            self.print_info("No tokens viewed yet.")
            return
        table = Table(title="Token history")
        table.add_column("Token")
        table.add_column("Price", justify="right")
        table.add_column("Alerts", justify="center")
        table.add_column("Added", style="dim")
        for item in items:
            details = item.details or {}
            token = f"[bold cyan]{item.token}[/bold cyan]" if item.token == selected else item.token
            table.add_row(
                token,
                format_price(details.get("current_price") or details.get("price")),
                "🔔" if item.has_notifications else "",
                format_timestamp(item.added_at),
            )
        self._console.print(table)

    def print_json(self, data) -> None:
        self._console.print_json(json.dumps(data))

    def print_error(self, message: str, title: str = "Error") -> None:
        self._console.print(f"[bold red]✗ {title}[/bold red]")
        self._console.print(Text(message, style="red"))
        self._console.print()

    def print_warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_info(self, message: str) -> None:
        self._console.print(f"[dim]{message}[/dim]")

    def print_help(self, commands: Sequence[tuple[str, str]]) -> None:
        table = Table(show_header=False, box=None)
        table.add_column(style="cyan")
        table.add_column(style="dim")
        for name, description in commands:
            table.add_row(name, description)
        self._console.print(table)
