"""
Tests for the tool catalog and the tool dispatcher.
"""
import json
import random

import allure
import httpx
import pytest
import pytest_asyncio
from hypothesis import given, settings, strategies as st

from conftest import mock_client, no_sleep
from tradesxbt.llm.base import ToolCall
from tradesxbt.services.market_data import CoinGeckoClient
from tradesxbt.tools.analysis import trading_signal
from tradesxbt.tools.catalog import DEFAULT_CHAT_GROUPS, TOOL_DEFINITIONS, ToolCatalog
from tradesxbt.tools.formatting import format_tool_result
from tradesxbt.tools.registry import ToolRegistry
from tradesxbt.tools.simulated import SimulatedConnectionManager


BTC_MARKET = {
    "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
    "current_price": 50000, "market_cap": 1_000_000_000_000, "market_cap_rank": 1,
    "total_volume": 30_000_000_000, "price_change_percentage_24h": -7.5,
    "high_24h": 51000, "low_24h": 49000, "ath": 69000,
}


def coingecko_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/simple/price"):
        ids = request.url.params["ids"]
        if ids == "bitcoin":
            return httpx.Response(200, json={"bitcoin": {
                "usd": 50000, "usd_market_cap": 1e12, "usd_24h_vol": 3e10, "usd_24h_change": 2.5,
            }})
        return httpx.Response(200, json={})
    if path.endswith("/coins/markets"):
        if request.url.params.get("ids") == "bitcoin":
            return httpx.Response(200, json=[BTC_MARKET])
        return httpx.Response(200, json=[])
    if path.endswith("/bitcoin/market_chart"):
        prices = [[i, 100.0 + i] for i in range(31)]
        return httpx.Response(200, json={"prices": prices})
    if path.endswith("/search"):
        return httpx.Response(200, json={"coins": [{"id": "pepe", "symbol": "PEPE"}]})
    return httpx.Response(404)


@pytest_asyncio.fixture
async def registry():
    async with mock_client(coingecko_handler) as client:
        market = CoinGeckoClient(client, sleep=no_sleep)
        connections = SimulatedConnectionManager(rng=random.Random(1), clock=lambda: 1700000000.0)
        yield ToolRegistry(market, connections)


def decode(result: str):
    return json.loads(result)


@allure.feature("Tools")
@allure.story("Catalog")
@allure.severity(allure.severity_level.NORMAL)
def test_every_declared_tool_has_a_handler():
    registry = ToolRegistry(market=None)
    declared = {tool["function"]["name"] for tools in TOOL_DEFINITIONS.values() for tool in tools}
    assert declared == set(registry.tool_names)


@allure.feature("Tools")
@allure.story("Catalog")
@allure.severity(allure.severity_level.NORMAL)
def test_chat_groups_and_disabled_tools():
    catalog = ToolCatalog()
    names = [t["function"]["name"] for t in catalog.to_openai_format(DEFAULT_CHAT_GROUPS)]
    assert "get_crypto_price" in names
    assert "generate_trading_signal" in names
    assert "search_web" not in names

    catalog.disable_tool("get_crypto_price")
    names = [t["function"]["name"] for t in catalog.to_openai_format(DEFAULT_CHAT_GROUPS)]
    assert "get_crypto_price" not in names
    assert catalog.is_tool_disabled("get_crypto_price")

    catalog.enable_tool("get_crypto_price")
    assert not catalog.is_tool_disabled("get_crypto_price")


@allure.feature("Tools")
@allure.story("Dispatch")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_unknown_tool_returns_error_payload(registry):
    result = decode(await registry.implement_tool("launch_rocket", {}))
    assert result == {"error": 'Tool "launch_rocket" not implemented or recognized'}


@allure.feature("Tools")
@allure.story("Dispatch")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_handler_failure_returns_error_payload(registry):
    result = decode(await registry.implement_tool("get_coin_price", {}))
    assert result["error"] == 'Failed to execute tool "get_coin_price"'
    assert "coin_id" in result["message"]


@allure.feature("Tools")
@allure.story("Dispatch")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_malformed_arguments_are_reported(registry):
    call = ToolCall.create("call_1", "get_crypto_price", '{"symbol": "BT')
    result = await registry.process_tool_call(call)

    assert result.tool_call_id == "call_1"
    assert decode(result.result) == {"error": "Failed to parse tool arguments"}


@allure.feature("Tools")
@allure.story("Market tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_crypto_price_resolves_known_symbols(registry):
    result = await registry.process_tool_call(
        ToolCall.create("c", "get_crypto_price", '{"symbol": "btc"}')
    )
    data = decode(result.result)
    assert data["symbol"] == "BTC"
    assert data["price"] == 50000
    assert data["change_24h"] == 2.5


@allure.feature("Tools")
@allure.story("Market tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_crypto_price_reports_missing_data(registry):
    data = decode(await registry.implement_tool("get_crypto_price", {"symbol": "pepe"}))
    assert data["error"] == "Price data not found for pepe"


@allure.feature("Tools")
@allure.story("Market tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_coin_details_not_found(registry):
    data = decode(await registry.implement_tool("get_coin_details", {"coin_id": "nothing"}))
    assert data == {"error": "Coin not found"}


@allure.feature("Tools")
@allure.story("Analysis tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_analyze_trend(registry):
    data = decode(await registry.implement_tool("analyze_trend", {"coin_id": "bitcoin", "timeframe": "30d"}))

    assert data["trend"] == "bullish"
    assert data["percentChange"] == pytest.approx(30.0)
    assert data["sma7"] == pytest.approx(sum(range(124, 131)) / 7)
    assert data["currentPrice"] == 50000


@allure.feature("Tools")
@allure.story("Analysis tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_analyze_trend_without_data(registry):
    data = decode(await registry.implement_tool("analyze_trend", {"coin_id": "ghost", "timeframe": "7d"}))
    assert data == {"error": "Could not retrieve data for analysis"}


@allure.feature("Tools")
@allure.story("Analysis tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_trading_signal_tool(registry):
    data = decode(await registry.implement_tool("generate_trading_signal", {"coin_id": "bitcoin"}))
    assert data["signal"] == "BUY"
    assert data["confidence"] == pytest.approx(0.675)
    assert "Not financial advice" in data["warning"]


@allure.feature("Tools")
@allure.story("Analysis tools")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=100)
@given(st.floats(min_value=-100, max_value=100, allow_nan=False))
def test_trading_signal_thresholds(change):
    """
    Property 5: Signals follow the 5% thresholds and confidence stays within [0.5, 0.9].
    """
    signal, confidence = trading_signal(change)
    if change > 5:
        assert signal == "SELL"
    elif change < -5:
        assert signal == "BUY"
    else:
        assert signal == "HOLD"
    assert 0.5 <= confidence <= 0.9


@allure.feature("Tools")
@allure.story("Simulated feeds")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_simulated_feed_lifecycle(registry):
    connected = decode(await registry.implement_tool(
        "connect_dex_websocket", {"exchange": "uniswap", "token_address": "0xabc"}
    ))
    connection_id = connected["connectionId"]
    assert connection_id == "uniswap_0xabc_1700000000000"
    assert connected["simulated"] is True

    live = decode(await registry.implement_tool(
        "get_token_live_data", {"connection_id": connection_id, "data_type": "price"}
    ))
    assert live["simulated"] is True
    assert "price" in live["tokenData"]

    closed = decode(await registry.implement_tool("disconnect_websocket", {"connection_id": connection_id}))
    assert closed["success"] is True


@allure.feature("Tools")
@allure.story("Simulated feeds")
@allure.severity(allure.severity_level.MINOR)
@pytest.mark.asyncio
async def test_unsupported_exchange(registry):
    data = decode(await registry.implement_tool(
        "connect_dex_websocket", {"exchange": "mtgox", "token_address": "0x1"}
    ))
    assert "not supported" in data["error"]
    assert "uniswap" in data["supported"]


@allure.feature("Tools")
@allure.story("Formatting")
@allure.severity(allure.severity_level.NORMAL)
def test_format_tool_result():
    assert format_tool_result('{"error": "Coin not found"}') == "Error: Coin not found"
    assert format_tool_result('{"error": "Failed", "message": "boom"}') == "Error: Failed - boom"
    assert format_tool_result('{"price": 1}') == '{\n  "price": 1\n}'
    assert format_tool_result("not json") == "not json"
