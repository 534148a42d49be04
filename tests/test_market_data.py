"""
Tests for the CoinGecko client: retries, status handling and endpoint wrappers.
"""
import allure
import httpx
import pytest

from conftest import mock_client
from tradesxbt.constants import COINGECKO_BASE_URL, COINGECKO_PRO_BASE_URL
from tradesxbt.errors import MarketDataError, MarketDataRateLimitError, format_error
from tradesxbt.services.market_data import CoinGeckoClient


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def sequence(*responses):
    """Handler returning the given responses in order and counting calls."""
    queue = list(responses)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    handler.seen = seen
    return handler


@allure.feature("Market data")
@allure.story("Status handling")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_not_found_returns_none():
    handler = sequence(httpx.Response(404))
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=SleepRecorder())
        assert await market.get_coin_details("no-such-coin") is None
    assert len(handler.seen) == 1


@allure.feature("Market data")
@allure.story("Retries")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_rate_limit_is_retried_then_raised():
    sleep = SleepRecorder()
    handler = sequence(httpx.Response(429))
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=sleep)
        with pytest.raises(MarketDataRateLimitError) as excinfo:
            await market.get_trending()

    assert excinfo.value.message == "Rate limit exceeded. Please try again later."
    assert len(handler.seen) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


@allure.feature("Market data")
@allure.story("Retries")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_server_error_is_retried_until_success():
    handler = sequence(
        httpx.Response(503),
        httpx.Response(502),
        httpx.Response(200, json={"coins": [{"item": {"id": "bitcoin"}}]}),
    )
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=SleepRecorder())
        data = await market.get_trending()

    assert data["coins"][0]["item"]["id"] == "bitcoin"
    assert len(handler.seen) == 3


@allure.feature("Market data")
@allure.story("Retries")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_network_errors_are_retried():
    handler = sequence(
        httpx.ConnectError("down"),
        httpx.Response(200, json={"bitcoin": {"usd": 50000}}),
    )
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=SleepRecorder())
        assert await market.get_simple_price(["bitcoin"]) == {"bitcoin": {"usd": 50000}}


@allure.feature("Market data")
@allure.story("Status handling")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    handler = sequence(httpx.Response(403))
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=SleepRecorder())
        with pytest.raises(MarketDataError) as excinfo:
            await market.get_global_data()

    assert excinfo.value.status == 403
    assert excinfo.value.message == "API Error: 403 - Forbidden"
    assert len(handler.seen) == 1


@allure.feature("Market data")
@allure.story("Endpoints")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_pro_key_switches_endpoint_and_header():
    handler = sequence(httpx.Response(200, json=[]))
    async with mock_client(handler) as client:
        await CoinGeckoClient(client, api_key="cg-pro").get_coins_market_data("usd", ["bitcoin"])

    request = handler.seen[0]
    assert str(request.url).startswith(COINGECKO_PRO_BASE_URL)
    assert request.headers["x-cg-pro-api-key"] == "cg-pro"
    assert request.url.params["ids"] == "bitcoin"


@allure.feature("Market data")
@allure.story("Endpoints")
@allure.severity(allure.severity_level.MINOR)
@pytest.mark.asyncio
async def test_developer_data_defaults_to_zeros():
    handler = sequence(httpx.Response(200, json={"id": "newcoin"}))
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client)
        data = await market.get_developer_data("newcoin")

    assert str(handler.seen[0].url).startswith(COINGECKO_BASE_URL)
    assert data.forks == 0
    assert data.stars == 0


def by_path(routes: dict):
    """Handler answering by URL path suffix; unknown paths are 404."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        for suffix, response in routes.items():
            if request.url.path.endswith(suffix):
                return response
        return httpx.Response(404)

    handler.seen = seen
    return handler


@allure.feature("Market data")
@allure.story("Status handling")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_non_json_body_is_a_market_data_error():
    handler = sequence(httpx.Response(200, text="<html>oops</html>"))
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client, sleep=SleepRecorder())
        with pytest.raises(MarketDataError) as excinfo:
            await market.search("btc")

    assert excinfo.value.status == 200
    assert "/search" in excinfo.value.message
    assert len(handler.seen) == 1


@allure.feature("Market data")
@allure.story("Errors")
@allure.severity(allure.severity_level.MINOR)
def test_rate_limit_message_reads_cleanly():
    message = format_error(MarketDataRateLimitError())
    assert message == "Rate limit exceeded. Please try again later. Please wait a moment and try again."
    assert ".." not in message


@allure.feature("Market data")
@allure.story("Endpoints")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_ohlc_and_chart_range_parameters():
    handler = by_path({
        "/coins/bitcoin/ohlc": httpx.Response(200, json=[[1700000000000, 1, 2, 0.5, 1.5]]),
        "/coins/bitcoin/market_chart/range": httpx.Response(200, json={"prices": [[1, 50000]]}),
    })
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client)
        ohlc = await market.get_ohlc("bitcoin", 7, currency="eur")
        chart = await market.get_market_chart_range("bitcoin", "usd", 1699000000, 1700000000)

    assert ohlc == [[1700000000000, 1, 2, 0.5, 1.5]]
    assert chart == {"prices": [[1, 50000]]}
    assert dict(handler.seen[0].url.params) == {"vs_currency": "eur", "days": "7"}
    assert dict(handler.seen[1].url.params) == {
        "vs_currency": "usd", "from": "1699000000", "to": "1700000000",
    }


@allure.feature("Market data")
@allure.story("Endpoints")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_repositories_and_status_updates_unwrap():
    handler = by_path({
        "/coins/ethereum/repositories": httpx.Response(200, json=[{"name": "go-ethereum"}]),
        "/coins/ethereum/status_updates": httpx.Response(
            200, json={"status_updates": [{"description": "Mainnet upgrade"}]}
        ),
    })
    async with mock_client(handler) as client:
        market = CoinGeckoClient(client)
        repositories = await market.get_repositories("ethereum")
        updates = await market.get_status_updates("ethereum", page=2, per_page=5)
        missing_repositories = await market.get_repositories("unknown")
        missing_updates = await market.get_status_updates("unknown")

    assert repositories == [{"name": "go-ethereum"}]
    assert updates == [{"description": "Mainnet upgrade"}]
    assert handler.seen[1].url.params["page"] == "2"
    assert handler.seen[1].url.params["per_page"] == "5"
    assert missing_repositories == []
    assert missing_updates == []


@allure.feature("Market data")
@allure.story("Endpoints")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_categories_are_mapped():
    handler = by_path({
        "/coins/categories": httpx.Response(200, json=[
            {
                "id": "layer-1", "name": "Layer 1", "market_cap": 1.5e12,
                "market_cap_change_24h": -1.2, "volume_24h": 4.0e10,
            },
            {"id": "meme-token", "name": "Meme"},
        ]),
    })
    async with mock_client(handler) as client:
        categories = await CoinGeckoClient(client).get_categories()

    assert [c.id for c in categories] == ["layer-1", "meme-token"]
    layer1, meme = categories
    assert layer1.name == "Layer 1"
    assert layer1.market_cap == 1.5e12
    assert layer1.market_cap_change_24h == -1.2
    assert layer1.volume_24h == 4.0e10
    assert meme.market_cap is None
    assert layer1.updated_at == meme.updated_at
    assert layer1.updated_at.endswith("+00:00")
