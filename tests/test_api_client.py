import base64

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from src.api.endpoints import DexAdapter, MarketAdapter, get_adapter, pseudo_address
from utils.api_client import LIVE, SYNTHETIC, APIResult, OKXClient, build_query, sign_request
from utils.cache import TTLCache

CREDENTIALS = {"api_key": "key", "secret_key": "secret", "passphrase": "pass"}


@pytest_asyncio.fixture
async def fake_okx():
    """Local stand-in for the OKX REST API."""
    calls = []

    async def ok(request):
        calls.append(request)
        return web.json_response({"code": "0", "msg": "", "data": [{"instId": "PEPE-USDT", "last": "0.01"}]})

    async def unauthorized(request):
        return web.json_response({"code": "50113", "msg": "Invalid sign"}, status=401)

    async def server_error(request):
        return web.Response(status=500, text="boom")

    async def api_error(request):
        return web.json_response({"code": "50011", "msg": "Too many requests", "data": []})

    async def no_data(request):
        return web.json_response({"code": "0", "msg": ""})

    app = web.Application()
    app.router.add_get("/api/v5/ok", ok)
    app.router.add_get("/api/v5/unauthorized", unauthorized)
    app.router.add_get("/api/v5/error", server_error)
    app.router.add_get("/api/v5/api-error", api_error)
    app.router.add_get("/api/v5/no-data", no_data)

    server = TestServer(app)
    await server.start_server()
    server.calls = calls
    yield server
    await server.close()


def live_client(server, **kwargs) -> OKXClient:
    options = dict(CREDENTIALS, enable_rate_limiting=False)
    options.update(kwargs)
    return OKXClient(
        adapter=DexAdapter(),
        base_url=str(server.make_url("")).rstrip("/"),
        use_real_api=True,
        **options
    )


def test_sign_request_is_base64_sha256():
    signature = sign_request("secret", "2024-03-01T12:00:00.000Z", "get", "/api/v5/market/ticker?instId=BTC-USDT")
    assert len(base64.b64decode(signature)) == 32
    assert signature == sign_request("secret", "2024-03-01T12:00:00.000Z", "GET",
                                     "/api/v5/market/ticker?instId=BTC-USDT")
    assert signature != sign_request("secret", "2024-03-01T12:00:00.000Z", "GET",
                                     "/api/v5/market/ticker?instId=BTC-USDT", body='{"a":1}')


def test_build_query_skips_none():
    assert build_query({"instId": "BTC-USDT", "limit": None}) == "instId=BTC-USDT"
    assert build_query(None) == ""


def test_api_result_records():
    result = APIResult(ok=True, data={"code": "0", "data": [{"a": 1}]})
    assert result.records == [{"a": 1}]
    assert APIResult(ok=True, data={"code": "0", "data": {"a": 1}}).records == [{"a": 1}]
    assert APIResult(ok=False).records == []


def test_get_adapter():
    assert isinstance(get_adapter("dex"), DexAdapter)
    assert isinstance(get_adapter("MARKET"), MarketAdapter)
    with pytest.raises(ValueError):
        get_adapter("futures")


@pytest.mark.asyncio
async def test_disabled_api_returns_synthetic(client):
    endpoint, params = client.adapter.token_list()
    result = await client.request(endpoint, "GET", params)

    assert result.ok
    assert result.source == SYNTHETIC
    assert result.status_text == "OK (Mock - API Disabled)"
    assert result.data["code"] == "0"
    assert len(result.records) == 20


@pytest.mark.asyncio
async def test_disabled_api_without_fallback_fails():
    client = OKXClient(adapter=DexAdapter(), use_real_api=False, use_mock_on_failure=False)
    result = await client.request("/api/v5/dex/aggregator/all-tokens")

    assert not result.ok
    assert result.status == 503
    assert result.error


@pytest.mark.asyncio
async def test_missing_credentials_returns_synthetic():
    client = OKXClient(adapter=DexAdapter(), use_real_api=True,
                       api_key="", secret_key="", passphrase="")
    result = await client.request("/api/v5/dex/aggregator/all-tokens", params={"chainIndex": "66"})

    assert result.synthetic
    assert result.status_text == "OK (Mock - No Credentials)"


@pytest.mark.asyncio
async def test_mock_token_list_is_deterministic(client):
    endpoint, params = client.adapter.token_list()
    first = client.adapter.parse_tokens((await client.request(endpoint, "GET", params)).records)
    second = client.adapter.parse_tokens((await client.request(endpoint, "GET", params)).records)

    assert [t.address for t in first] == [t.address for t in second]
    assert first[0].address == pseudo_address("TOKEN0:66")


@pytest.mark.asyncio
async def test_live_request_is_signed_and_cached(fake_okx):
    client = live_client(fake_okx, cache=TTLCache(60))
    try:
        first = await client.request("/api/v5/ok", params={"instId": "PEPE-USDT"})
        second = await client.request("/api/v5/ok", params={"instId": "PEPE-USDT"})
    finally:
        await client.close()

    assert first.ok and first.source == LIVE and first.status_text == "OK"
    assert second.status_text == "OK (Cached)"
    assert second.data == first.data
    assert len(fake_okx.calls) == 1

    headers = fake_okx.calls[0].headers
    assert headers["OK-ACCESS-KEY"] == "key"
    assert headers["OK-ACCESS-PASSPHRASE"] == "pass"
    assert headers["OK-ACCESS-TIMESTAMP"].endswith("Z")
    assert headers["User-Agent"].startswith("OKC-Token-Dashboard/")
    expected = sign_request("secret", headers["OK-ACCESS-TIMESTAMP"], "GET", "/api/v5/ok?instId=PEPE-USDT")
    assert headers["OK-ACCESS-SIGN"] == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("endpoint,status_text", [
    ("/api/v5/unauthorized", "OK (Mock - Authentication Failed)"),
    ("/api/v5/missing", "OK (Mock - Endpoint Not Found)"),
    ("/api/v5/error", "OK (Mock - HTTP 500)"),
    ("/api/v5/api-error", "OK (Mock - API Error 50011)"),
    ("/api/v5/no-data", "OK (Mock - Invalid Response)"),
])
async def test_failures_fall_back_to_synthetic(fake_okx, endpoint, status_text):
    client = live_client(fake_okx)
    try:
        result = await client.request(endpoint)
    finally:
        await client.close()

    assert result.ok
    assert result.synthetic
    assert result.status_text == status_text


@pytest.mark.asyncio
async def test_failures_without_fallback_keep_status(fake_okx):
    client = live_client(fake_okx, use_mock_on_failure=False)
    try:
        unauthorized = await client.request("/api/v5/unauthorized")
        api_error = await client.request("/api/v5/api-error")
    finally:
        await client.close()

    assert not unauthorized.ok and unauthorized.status == 401
    assert not api_error.ok and "50011" in api_error.error


@pytest.mark.asyncio
async def test_network_error_falls_back():
    client = OKXClient(adapter=DexAdapter(), base_url="http://127.0.0.1:1", use_real_api=True,
                       enable_rate_limiting=False, timeout=2, **CREDENTIALS)
    try:
        result = await client.request("/api/v5/dex/market/ticker", params={"instId": "0xabc"})
    finally:
        await client.close()

    assert result.synthetic
    assert result.status_text == "OK (Mock - Request Failed)"
    assert result.records


@pytest.mark.asyncio
async def test_synthetic_results_are_not_cached(fake_okx):
    cache = TTLCache(60)
    client = live_client(fake_okx, cache=cache)
    try:
        await client.request("/api/v5/error")
    finally:
        await client.close()
    assert len(cache) == 0


def test_market_adapter_mocks():
    adapter = MarketAdapter()
    endpoint, params = adapter.ticker({"symbol": "PEPE"})
    assert params == {"instId": "PEPE-USDT"}

    payload = adapter.mock_payload(endpoint, params)
    metrics = adapter.parse_ticker(payload["data"], {"symbol": "PEPE"})
    assert metrics["holders"] == 0
    assert metrics["liquidity"] > 0

    endpoint, params = adapter.trades({"symbol": "PEPE"}, limit=500)
    assert params["limit"] == "100"
    swaps = adapter.parse_trades(adapter.mock_payload(endpoint, params)["data"], {"symbol": "PEPE"})
    assert len(swaps) == 20
    assert all(s.type in ("buy", "sell") for s in swaps)
