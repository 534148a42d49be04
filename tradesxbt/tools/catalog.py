"""
Tool catalog for the AI analyst.

Declares every callable tool in OpenAI function format, grouped so the chat
flow can choose which groups the model is offered.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


CURRENCIES = ["usd", "eur", "gbp", "jpy", "aud", "cad"]

SYMBOL_PARAM = {
    "type": "string",
    "description": "The cryptocurrency symbol, e.g., BTC, ETH, SOL, etc.",
}
COIN_ID_PARAM = {
    "type": "string",
    "description": "The CoinGecko ID of the cryptocurrency (e.g., bitcoin, ethereum, solana)",
}

# Groups offered to the model in chat
DEFAULT_CHAT_GROUPS = ("chat", "analysis")


def _function(
    name: str,
    description: str,
    properties: Optional[dict] = None,
    required: Optional[list[str]] = None
) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties or {},
                "required": required or [],
            },
        },
    }


TOOL_DEFINITIONS: dict[str, list[dict[str, Any]]] = {
    "market": [
        _function(
            "get_coin_price",
            "Get the current price and basic market data for a cryptocurrency",
            {
                "coin_id": COIN_ID_PARAM,
                "currency": {
                    "type": "string",
                    "description": "The currency to display prices in (default: usd)",
                    "enum": CURRENCIES,
                },
            },
            ["coin_id"],
        ),
        _function(
            "get_market_data",
            "Get market data for multiple cryptocurrencies",
            {
                "limit": {"type": "number", "description": "Number of results to return (default: 10, max: 100)"},
                "currency": {"type": "string", "description": "Price currency (default: usd)", "enum": CURRENCIES},
                "order": {
                    "type": "string",
                    "description": "Sort order",
                    "enum": ["market_cap_desc", "market_cap_asc", "volume_desc", "volume_asc"],
                },
            },
        ),
        _function(
            "search_coins",
            "Search for cryptocurrencies by name or symbol",
            {"query": {"type": "string", "description": "Search query (e.g., bitcoin, eth, sol)"}},
            ["query"],
        ),
        _function(
            "get_coin_details",
            "Get detailed information about a specific cryptocurrency",
            {"coin_id": COIN_ID_PARAM},
            ["coin_id"],
        ),
        _function(
            "get_historical_data",
            "Get historical price and market data for a cryptocurrency",
            {
                "coin_id": COIN_ID_PARAM,
                "days": {"type": "number", "description": "Days of data (1, 7, 14, 30, 90, 180, 365)"},
                "interval": {"type": "string", "description": "Data interval", "enum": ["daily", "hourly"]},
            },
            ["coin_id", "days"],
        ),
        _function("get_trending_coins", "Get trending cryptocurrencies"),
        _function(
            "get_top_gainers_losers",
            "Get top gaining and losing cryptocurrencies",
            {
                "timeframe": {
                    "type": "string",
                    "description": "Timeframe for calculation",
                    "enum": ["1h", "24h", "7d", "14d", "30d", "200d", "1y"],
                },
                "limit": {"type": "number", "description": "Number of results to return (default: 10)"},
            },
        ),
    ],
    "chat": [
        _function(
            "get_crypto_price",
            "Get the current price and market data for a cryptocurrency",
            {"symbol": SYMBOL_PARAM},
            ["symbol"],
        ),
        _function(
            "analyze_token",
            "Get detailed analysis of a cryptocurrency token including price, volume, and market cap",
            {"symbol": SYMBOL_PARAM},
            ["symbol"],
        ),
        _function(
            "get_trading_volume",
            "Get 24h trading volume for a cryptocurrency token",
            {"symbol": SYMBOL_PARAM},
            ["symbol"],
        ),
        _function(
            "get_historical_prices",
            "Get historical price data for a cryptocurrency token over a time period",
            {
                "symbol": SYMBOL_PARAM,
                "days": {"type": "number", "description": "Number of days of historical data to retrieve (1-365)"},
            },
            ["symbol"],
        ),
        _function(
            "get_crypto_news",
            "Get latest news for a cryptocurrency or the market in general",
            {
                "symbol": {
                    "type": "string",
                    "description": 'The cryptocurrency symbol. Use "crypto" for general market news.',
                },
                "limit": {"type": "number", "description": "Number of news items to retrieve (1-10)"},
            },
            ["symbol"],
        ),
    ],
    "analysis": [
        _function(
            "analyze_trend",
            "Analyze price trend and provide technical analysis",
            {
                "coin_id": {"type": "string", "description": "The CoinGecko ID of the cryptocurrency"},
                "timeframe": {"type": "string", "description": "Timeframe for analysis", "enum": ["24h", "7d", "30d", "90d"]},
            },
            ["coin_id", "timeframe"],
        ),
        _function(
            "generate_trading_signal",
            "Generate a trading signal (buy, sell, hold) with confidence level",
            {"coin_id": {"type": "string", "description": "The CoinGecko ID of the cryptocurrency"}},
            ["coin_id"],
        ),
    ],
    "browser": [
        _function(
            "search_web",
            "Search the web for information on cryptocurrencies, markets, or trading",
            {"query": {"type": "string", "description": "Search query"}},
            ["query"],
        ),
        _function(
            "fetch_webpage",
            "Fetch and extract content from a specific webpage",
            {"url": {"type": "string", "description": "URL of the webpage to fetch"}},
            ["url"],
        ),
    ],
    "feeds": [
        _function(
            "connect_dex_websocket",
            "Connects to a decentralized exchange feed for real-time token data",
            {
                "exchange": {
                    "type": "string",
                    "description": "The exchange to connect to (uniswap, pancakeswap, sushiswap, solana-dex, bitquery)",
                },
                "token_address": {"type": "string", "description": "The token contract address to monitor"},
                "chain_id": {
                    "type": "string",
                    "description": "The blockchain chain ID (1 for Ethereum, 56 for BSC, solana for Solana)",
                },
            },
            ["exchange", "token_address"],
        ),
        _function(
            "get_token_live_data",
            "Gets real-time data for a token from an active feed connection",
            {
                "connection_id": {"type": "string", "description": "The ID of the active connection"},
                "data_type": {"type": "string", "description": "Type of data to retrieve (price, liquidity, trades)"},
            },
            ["connection_id", "data_type"],
        ),
        _function(
            "disconnect_websocket",
            "Disconnects an active feed connection",
            {"connection_id": {"type": "string", "description": "The ID of the connection to disconnect"}},
            ["connection_id"],
        ),
    ],
}


@dataclass
class ToolDefinition:
    """Definition of a tool available to the LLM.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: JSON schema for the tool's parameters.
        group: Tool group for filtering (market, chat, analysis, browser, feeds).
        enabled: Whether the tool is currently enabled.
    """
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    group: str = "chat"
    enabled: bool = True

    @classmethod
    def from_openai_format(cls, tool_dict: dict[str, Any], group: str = "chat") -> "ToolDefinition":
        """Create a ToolDefinition from OpenAI-style tool format."""
        func = tool_dict.get("function", {})
        return cls(
            name=func.get("name", ""),
            description=func.get("description", ""),
            parameters=func.get("parameters", {}),
            group=group,
            enabled=True,
        )

    def to_openai_format(self) -> dict[str, Any]:
        """Convert this ToolDefinition to OpenAI-style tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            }
        }


def get_builtin_tools() -> list[ToolDefinition]:
    """Get all built-in tool definitions."""
    return [
        ToolDefinition.from_openai_format(tool, group)
        for group, tools in TOOL_DEFINITIONS.items()
        for tool in tools
    ]


class ToolCatalog:
    """Collection of tool definitions with per-tool enablement.

    Example:
        catalog = ToolCatalog()
        tools = catalog.to_openai_format(groups=("chat", "analysis"))
    """

    def __init__(self, tools: Optional[list[ToolDefinition]] = None) -> None:
        self._tools: list[ToolDefinition] = list(tools) if tools is not None else get_builtin_tools()
        self._disabled_tools: set[str] = set()

    def disable_tool(self, name: str) -> None:
        self._disabled_tools.add(name)

    def enable_tool(self, name: str) -> None:
        self._disabled_tools.discard(name)

    def is_tool_disabled(self, name: str) -> bool:
        return name in self._disabled_tools

    @property
    def tools(self) -> list[ToolDefinition]:
        """Get all tools in the catalog."""
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDefinition]:
        for tool in self._tools:
            if tool.name == name:
                return tool
        return None

    def filter(self, groups: Optional[Iterable[str]] = None) -> list[ToolDefinition]:
        """Enabled tools, optionally restricted to some groups.

        Args:
            groups: Group names to include (all groups if None)

        Returns:
            Matching ToolDefinitions in declaration order
        """
        allowed = set(groups) if groups is not None else None
        return [
            tool for tool in self._tools
            if tool.enabled
            and tool.name not in self._disabled_tools
            and (allowed is None or tool.group in allowed)
        ]

    def to_openai_format(self, groups: Optional[Iterable[str]] = None) -> list[dict[str, Any]]:
        """Declarations to send with a chat request."""
        return [tool.to_openai_format() for tool in self.filter(groups)]
