"""Tool registry: executes tool calls requested by the AI analyst."""
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .analysis import (
    SIGNAL_WARNING,
    TIMEFRAME_DAYS,
    analyze_price_series,
    trading_signal,
)
from .catalog import DEFAULT_CHAT_GROUPS, ToolCatalog
from .simulated import SimulatedConnectionManager
from ..llm.base import ToolCall, ToolResult
from ..services.market_data import CoinGeckoClient
from ..services.news import NewsClient


logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]

# Symbols whose CoinGecko id differs from the lowercase symbol
TOKEN_IDS = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "sol": "solana",
    "symx": "symbiosis-finance",
    "bnb": "binancecoin",
    "xrp": "ripple",
    "ada": "cardano",
    "doge": "dogecoin",
    "dot": "polkadot",
    "link": "chainlink",
    "avax": "avalanche-2",
    "matic": "matic-network",
    "ltc": "litecoin",
    "uni": "uniswap",
    "shib": "shiba-inu",
}

PARSE_ERROR = json.dumps({"error": "Failed to parse tool arguments"})


def _int_arg(args: Dict[str, Any], name: str, default: int) -> int:
    value = args.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ToolRegistry:
    """
    Executes tool calls by name.

    Every call returns a JSON string. Unknown tools and failing handlers
    produce an error payload instead of raising.

    Args:
        market: CoinGecko client used by market and analysis tools
        connections: Owner of simulated feed connections
        news: News client for get_crypto_news (news tools report an error without it)
        catalog: Tool declarations offered to the model
    """

    def __init__(
        self,
        market: CoinGeckoClient,
        connections: Optional[SimulatedConnectionManager] = None,
        news: Optional[NewsClient] = None,
        catalog: Optional[ToolCatalog] = None,
    ) -> None:
        self._market = market
        self._connections = connections or SimulatedConnectionManager()
        self._news = news
        self._catalog = catalog or ToolCatalog()
        self._handlers: Dict[str, Handler] = {
            "get_coin_price": self._get_coin_price,
            "get_market_data": self._get_market_data,
            "search_coins": self._search_coins,
            "get_coin_details": self._get_coin_details,
            "get_historical_data": self._get_historical_data,
            "get_trending_coins": self._get_trending_coins,
            "get_top_gainers_losers": self._get_top_gainers_losers,
            "get_crypto_price": self._get_crypto_price,
            "analyze_token": self._analyze_token,
            "get_trading_volume": self._get_trading_volume,
            "get_historical_prices": self._get_historical_prices,
            "get_crypto_news": self._get_crypto_news,
            "analyze_trend": self._analyze_trend,
            "generate_trading_signal": self._generate_trading_signal,
            "search_web": self._search_web,
            "fetch_webpage": self._fetch_webpage,
            "connect_dex_websocket": self._connect_dex_websocket,
            "get_token_live_data": self._get_token_live_data,
            "disconnect_websocket": self._disconnect_websocket,
        }

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    def definitions(self, groups=DEFAULT_CHAT_GROUPS) -> list[dict]:
        """Tool declarations for a chat request."""
        return self._catalog.to_openai_format(groups)

    async def implement_tool(self, name: str, args: Dict[str, Any]) -> str:
        """
        Execute a tool.

        Args:
            name: Tool name
            args: Parsed arguments

        Returns:
            JSON-encoded result or error payload
        """
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Unknown tool requested: {name}")
            return json.dumps({"error": f'Tool "{name}" not implemented or recognized'})

        try:
            result = await handler(args)
        except Exception as e:
            logger.exception(f"Error executing tool {name}")
            return json.dumps({"error": f'Failed to execute tool "{name}"', "message": str(e)})
        return json.dumps(result)

    async def process_tool_call(self, tool_call: ToolCall) -> ToolResult:
        """
        Parse a tool call's arguments and execute it.

        Args:
            tool_call: Call assembled from the model's stream

        Returns:
            ToolResult for the call (an error payload if arguments are not a JSON object)
        """
        raw = tool_call.function.arguments.strip()
        try:
            args = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            logger.warning(f"Malformed arguments for {tool_call.function.name}: {raw!r}")
            return ToolResult(tool_call.id, PARSE_ERROR)
        if not isinstance(args, dict):
            return ToolResult(tool_call.id, PARSE_ERROR)

        result = await self.implement_tool(tool_call.function.name, args)
        return ToolResult(tool_call.id, result)

    async def resolve_coin_id(self, symbol: str) -> str:
        """Map a ticker symbol to a CoinGecko id."""
        key = symbol.strip().lower().lstrip("$")
        if key in TOKEN_IDS:
            return TOKEN_IDS[key]
        found = await self._market.search(key)
        for coin in (found or {}).get("coins", []):
            if str(coin.get("symbol", "")).lower() == key:
                return coin["id"]
        return key

    async def _market_entry(self, coin_id: str, currency: str = "usd") -> Optional[dict]:
        data = await self._market.get_coins_market_data(currency, [coin_id])
        return data[0] if data else None

    async def _get_coin_price(self, args: Dict[str, Any]) -> Any:
        entry = await self._market_entry(args["coin_id"], args.get("currency", "usd"))
        return entry or {"error": "Coin not found"}

    async def _get_market_data(self, args: Dict[str, Any]) -> Any:
        data = await self._market.get_coins_market_data(
            args.get("currency", "usd"),
            order=args.get("order", "market_cap_desc"),
            limit=_int_arg(args, "limit", 10),
        )
        return data or []

    async def _search_coins(self, args: Dict[str, Any]) -> Any:
        data = await self._market.search(args["query"])
        return (data or {}).get("coins", [])[:10]

    async def _get_coin_details(self, args: Dict[str, Any]) -> Any:
        data = await self._market.get_coin_details(args["coin_id"])
        if not data:
            return {"error": "Coin not found"}
        market = data.get("market_data") or {}
        return {
            "id": data.get("id"),
            "name": data.get("name"),
            "symbol": data.get("symbol"),
            "description": (data.get("description") or {}).get("en"),
            "image": (data.get("image") or {}).get("large"),
            "market_data": {
                key: market.get(key)
                for key in (
                    "current_price",
                    "market_cap",
                    "total_volume",
                    "price_change_percentage_24h",
                    "price_change_percentage_7d",
                    "price_change_percentage_30d",
                )
            },
            "categories": data.get("categories"),
            "last_updated": data.get("last_updated"),
        }

    async def _get_historical_data(self, args: Dict[str, Any]) -> Any:
        interval = "daily" if args.get("interval", "daily") == "daily" else None
        data = await self._market.get_market_chart(
            args["coin_id"], _int_arg(args, "days", 7), interval=interval
        )
        return data or {"error": "No historical data available"}

    async def _get_trending_coins(self, args: Dict[str, Any]) -> Any:
        return await self._market.get_trending() or {"coins": []}

    async def _get_top_gainers_losers(self, args: Dict[str, Any]) -> Any:
        data = await self._market.get_top_gainers_losers(
            "usd", args.get("timeframe", "24h"), _int_arg(args, "limit", 10)
        )
        return data or {"error": "No data available"}

    async def _get_crypto_price(self, args: Dict[str, Any]) -> Any:
        symbol = args["symbol"]
        coin_id = await self.resolve_coin_id(symbol)
        data = await self._market.get_simple_price([coin_id])
        entry = (data or {}).get(coin_id)
        if not entry:
            return {"symbol": symbol.upper(), "error": f"Price data not found for {symbol}", "source": "none"}
        return {
            "symbol": symbol.upper(),
            "price": entry.get("usd"),
            "market_cap": entry.get("usd_market_cap"),
            "volume_24h": entry.get("usd_24h_vol"),
            "change_24h": entry.get("usd_24h_change"),
            "source": "coingecko",
        }

    async def _analyze_token(self, args: Dict[str, Any]) -> Any:
        symbol = args["symbol"]
        coin_id = await self.resolve_coin_id(symbol)
        entry = await self._market_entry(coin_id)
        if not entry:
            return {"symbol": symbol.upper(), "error": f"No market data found for {symbol}"}
        signal, confidence = trading_signal(entry.get("price_change_percentage_24h"))
        return {
            "symbol": symbol.upper(),
            "name": entry.get("name"),
            "price": entry.get("current_price"),
            "market_cap": entry.get("market_cap"),
            "market_cap_rank": entry.get("market_cap_rank"),
            "volume_24h": entry.get("total_volume"),
            "change_24h": entry.get("price_change_percentage_24h"),
            "high_24h": entry.get("high_24h"),
            "low_24h": entry.get("low_24h"),
            "ath": entry.get("ath"),
            "signal": signal,
            "confidence": confidence,
            "warning": SIGNAL_WARNING,
        }

    async def _get_trading_volume(self, args: Dict[str, Any]) -> Any:
        symbol = args["symbol"]
        entry = await self._market_entry(await self.resolve_coin_id(symbol))
        if not entry:
            return {"symbol": symbol.upper(), "error": f"No volume data found for {symbol}"}
        return {
            "symbol": symbol.upper(),
            "volume_24h": entry.get("total_volume"),
            "market_cap": entry.get("market_cap"),
            "source": "coingecko",
        }

    async def _get_historical_prices(self, args: Dict[str, Any]) -> Any:
        symbol = args["symbol"]
        days = max(1, min(_int_arg(args, "days", 7), 365))
        data = await self._market.get_market_chart(await self.resolve_coin_id(symbol), days)
        prices = (data or {}).get("prices") or []
        if not prices:
            return {"symbol": symbol.upper(), "error": f"No historical data found for {symbol}"}
        values = [point[1] for point in prices]
        analysis = analyze_price_series(prices)
        return {
            "symbol": symbol.upper(),
            "days": days,
            "start_price": values[0],
            "end_price": values[-1],
            "high": max(values),
            "low": min(values),
            "percent_change": analysis.percent_change,
            "prices": prices,
        }

    async def _get_crypto_news(self, args: Dict[str, Any]) -> Any:
        if self._news is None:
            return {"error": "News service is not configured"}
        symbol = str(args.get("symbol", "crypto"))
        limit = max(1, min(_int_arg(args, "limit", 5), 10))
        if symbol.lower() == "crypto":
            result = await self._news.latest_news(limit)
        else:
            result = await self._news.news_for_token(symbol, limit)
        if not result.ok:
            return {"error": "News unavailable", "message": str(result.error)}
        return [article.to_dict() for article in result.value[:limit]]

    async def _analyze_trend(self, args: Dict[str, Any]) -> Any:
        coin_id = args["coin_id"]
        timeframe = args.get("timeframe", "7d")
        chart = await self._market.get_market_chart(coin_id, TIMEFRAME_DAYS.get(timeframe, 90))
        entry = await self._market_entry(coin_id)
        prices = (chart or {}).get("prices") or []
        if not prices or not entry:
            return {"error": "Could not retrieve data for analysis"}

        analysis = analyze_price_series(prices)
        return {
            "coin": coin_id,
            "timeframe": timeframe,
            "trend": analysis.trend,
            "percentChange": analysis.percent_change,
            "currentPrice": entry.get("current_price"),
            "sma7": analysis.sma7,
            "sma30": analysis.sma30,
            "volume": entry.get("total_volume"),
        }

    async def _generate_trading_signal(self, args: Dict[str, Any]) -> Any:
        coin_id = args["coin_id"]
        entry = await self._market_entry(coin_id)
        if not entry:
            return {"error": "Could not retrieve data for trading signal"}
        change = entry.get("price_change_percentage_24h")
        signal, confidence = trading_signal(change)
        return {
            "coin": coin_id,
            "signal": signal,
            "confidence": confidence,
            "price": entry.get("current_price"),
            "change24h": change,
            "marketCap": entry.get("market_cap"),
            "warning": SIGNAL_WARNING,
        }

    async def _search_web(self, args: Dict[str, Any]) -> Any:
        query = args["query"]
        return {
            "results": [{
                "title": f"Web search results for: {query}",
                "content": "For up-to-date information, please check financial news sites "
                           "or cryptocurrency exchanges.",
            }],
            "message": "Web search is simulated; no browser integration is available.",
            "simulated": True,
        }

    async def _fetch_webpage(self, args: Dict[str, Any]) -> Any:
        url = args["url"]
        return {
            "title": f"Content from: {url}",
            "content": "Webpage extraction is simulated; no browser integration is available.",
            "url": url,
            "simulated": True,
        }

    async def _connect_dex_websocket(self, args: Dict[str, Any]) -> Any:
        return self._connections.connect(
            args["exchange"], args["token_address"], str(args.get("chain_id", "1"))
        )

    async def _get_token_live_data(self, args: Dict[str, Any]) -> Any:
        return self._connections.live_data(args["connection_id"], args.get("data_type", "price"))

    async def _disconnect_websocket(self, args: Dict[str, Any]) -> Any:
        return self._connections.disconnect(args["connection_id"])
