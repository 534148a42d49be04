"""
Main entry point for tradesxbt.
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from rich.logging import RichHandler

from .constants import APP_DESCRIPTION, APP_NAME, APP_VERSION


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=APP_DESCRIPTION
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"{APP_NAME} {APP_VERSION}"
    )

    parser.add_argument(
        "-p", "--provider",
        type=str,
        help="AI provider to use (groq, perplexity, demo)"
    )

    parser.add_argument(
        "-m", "--model",
        type=str,
        help="Model to use"
    )

    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Disable response streaming"
    )

    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use the offline demo assistant"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("chat", help="Interactive chat (default)")

    ask = subparsers.add_parser("ask", help="Ask one question and print the answer")
    ask.add_argument("text", nargs="+", help="Question text")

    price = subparsers.add_parser("price", help="Show current prices")
    price.add_argument("coins", nargs="+", help="Coin symbols or CoinGecko ids")

    news = subparsers.add_parser("news", help="Show crypto news")
    news.add_argument("token", nargs="?", help="Token symbol")

    subparsers.add_parser("threads", help="List saved chat threads")
    subparsers.add_parser("tokens", help="Show recently viewed tokens")

    return parser.parse_args(argv)


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=debug)],
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)


async def run_command(args: argparse.Namespace, config) -> int:
    from .app import AppServices
    from .cli import CLI

    async with AppServices(config) as services:
        cli = CLI(services)
        command = args.command or "chat"
        if command == "ask":
            return await cli.ask(" ".join(args.text))
        if command == "price":
            return await cli.show_prices(args.coins)
        if command == "news":
            return await cli.show_news(args.token)
        if command == "threads":
            return cli.show_threads()
        if command == "tokens":
            return cli.show_tokens()
        return await cli.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args.debug)
    logger = logging.getLogger(__name__)

    from .config import ConfigManager
    from .errors import TradesXBTError, format_error

    config = ConfigManager()

    if args.demo:
        config.allow_demo = True
        config.update_llm(provider="demo")

    if args.provider:
        config.update_llm(provider=args.provider)

    if args.model:
        config.update_llm(model=args.model)

    if args.no_stream:
        config.ui.streaming = False

    try:
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return EXIT_INTERRUPTED
    except TradesXBTError as e:
        print(f"Error: {format_error(e)}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        logger.exception("Fatal error")
        print(f"Fatal error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
