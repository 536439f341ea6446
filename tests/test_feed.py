"""Tests for the Binance REST client and the ticker stream.

All HTTP calls are mocked — no real network traffic.
"""

import json

import httpx
import pytest

from signaldesk.config import Config
from signaldesk.feed import binance_client
from signaldesk.feed.binance_client import BinanceClient, parse_kline
from signaldesk.feed.models import Kline
from signaldesk.feed.ticker_stream import TickerStream, parse_ticker_message
from signaldesk.strategy.models import Tick


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    defaults = dict(
        symbol="SOLUSDT",
        kline_interval="1m",
        kline_limit=100,
        refresh_interval_seconds=60,
        binance_rest_url="https://api.binance.com",
        binance_ws_url="wss://stream.binance.com:9443",
        default_mode="standard",
        log_level="WARNING",
        api_port=8080,
    )
    defaults.update(overrides)
    return Config(**defaults)


MOCK_KLINES_RESPONSE = [
    [
        1700000000000, "57.10", "57.40", "56.90", "57.25", "1520.5",
        1700000059999, "87000.1", 310, "800.2", "45800.4", "0",
    ],
    [
        1700000060000, "57.25", "57.60", "57.20", "57.55", "980.0",
        1700000119999, "56300.9", 204, "410.0", "23580.1", "0",
    ],
]


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(binance_client, "_RETRY_BASE_DELAY", 0.0)


# ── Kline parsing / REST ─────────────────────────────────────────────────


def test_parse_kline():
    k = parse_kline(MOCK_KLINES_RESPONSE[0])
    assert isinstance(k, Kline)
    assert k.time == "2023-11-14T22:13:20Z"
    assert k.open == pytest.approx(57.10)
    assert k.high == pytest.approx(57.40)
    assert k.low == pytest.approx(56.90)
    assert k.close == pytest.approx(57.25)
    assert k.volume == pytest.approx(1520.5)
    assert k.close_time == 1700000059999


@pytest.mark.asyncio
async def test_fetch_klines(monkeypatch):
    """Request params default to the configured symbol/interval/limit."""
    client = BinanceClient(_make_config())
    captured = {}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        captured["url"] = url
        captured["params"] = params
        return httpx.Response(200, json=MOCK_KLINES_RESPONSE, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    klines = await client.fetch_klines()
    assert len(klines) == 2
    assert klines[1].close == pytest.approx(57.55)
    assert captured["url"] == "https://api.binance.com/api/v3/klines"
    assert captured["params"] == {"symbol": "SOLUSDT", "interval": "1m", "limit": 100}


@pytest.mark.asyncio
async def test_fetch_klines_explicit_params(monkeypatch):
    client = BinanceClient(_make_config(binance_rest_url="https://api.binance.com/"))
    captured = {}

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        captured["url"] = url
        captured["params"] = params
        return httpx.Response(200, json=[], request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    assert await client.fetch_klines("BTCUSDT", "5m", 50) == []
    assert captured["url"] == "https://api.binance.com/api/v3/klines"
    assert captured["params"] == {"symbol": "BTCUSDT", "interval": "5m", "limit": 50}


@pytest.mark.asyncio
async def test_retry_on_503(monkeypatch, no_retry_delay):
    client = BinanceClient(_make_config())
    attempts = []

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        attempts.append(url)
        status = 503 if len(attempts) < 3 else 200
        body = MOCK_KLINES_RESPONSE if status == 200 else {"msg": "busy"}
        return httpx.Response(status, json=body, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    klines = await client.fetch_klines()
    assert len(attempts) == 3
    assert len(klines) == 2


@pytest.mark.asyncio
async def test_retries_exhausted(monkeypatch, no_retry_delay):
    client = BinanceClient(_make_config())
    attempts = []

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        attempts.append(url)
        return httpx.Response(429, json={"msg": "rate"}, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(httpx.HTTPStatusError):
        await client.fetch_klines()
    assert len(attempts) == binance_client._MAX_RETRIES


@pytest.mark.asyncio
async def test_transport_error_retried(monkeypatch, no_retry_delay):
    client = BinanceClient(_make_config())
    attempts = []

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        attempts.append(url)
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(httpx.ConnectError):
        await client.fetch_klines()
    assert len(attempts) == binance_client._MAX_RETRIES


@pytest.mark.asyncio
async def test_client_error_not_retried(monkeypatch, no_retry_delay):
    """400 (e.g. invalid symbol) is raised on the first attempt."""
    client = BinanceClient(_make_config())
    attempts = []

    async def _mock_get(self, url, *, headers=None, params=None, timeout=None):
        attempts.append(url)
        return httpx.Response(
            400, json={"code": -1121, "msg": "Invalid symbol."},
            request=httpx.Request("GET", url),
        )

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)

    with pytest.raises(httpx.HTTPStatusError):
        await client.fetch_klines("NOPE")
    assert len(attempts) == 1


# ── Ticker stream ────────────────────────────────────────────────────────


MOCK_TICKER = {
    "e": "24hrTicker",
    "E": 1700000000123,
    "s": "SOLUSDT",
    "c": "142.35",
    "v": "1833910.12",
}


class TestParseTickerMessage:
    def test_raw_stream(self):
        tick = parse_ticker_message(json.dumps(MOCK_TICKER))
        assert tick == Tick(price=142.35, volume=1833910.12)

    def test_combined_stream_envelope(self):
        raw = json.dumps({"stream": "solusdt@ticker", "data": MOCK_TICKER})
        assert parse_ticker_message(raw) == Tick(price=142.35, volume=1833910.12)

    def test_bytes_frame(self):
        assert parse_ticker_message(json.dumps(MOCK_TICKER).encode()) is not None

    def test_subscription_ack_ignored(self):
        assert parse_ticker_message(json.dumps({"result": None, "id": 1})) is None

    def test_invalid_json(self):
        assert parse_ticker_message("not json{") is None

    def test_unparseable_price(self):
        raw = json.dumps({**MOCK_TICKER, "c": "abc"})
        assert parse_ticker_message(raw) is None

    def test_non_object(self):
        assert parse_ticker_message("[1, 2, 3]") is None


class TestTickerStream:
    def test_handle_message_forwards_tick(self):
        ticks = []
        stream = TickerStream("wss://example.test/ws/solusdt@ticker", ticks.append)
        stream.handle_message(json.dumps(MOCK_TICKER))
        assert ticks == [Tick(price=142.35, volume=1833910.12)]
        assert stream.message_count == 1

    def test_handle_message_skips_junk(self):
        ticks = []
        stream = TickerStream("wss://example.test/ws/solusdt@ticker", ticks.append)
        stream.handle_message("garbage")
        assert ticks == []
        assert stream.message_count == 0

    def test_callback_error_is_contained(self):
        def _boom(tick):
            raise RuntimeError("consumer failed")

        stream = TickerStream("wss://example.test/ws/solusdt@ticker", _boom)
        stream.handle_message(json.dumps(MOCK_TICKER))
        assert stream.message_count == 1

    def test_initial_state(self):
        stream = TickerStream("wss://example.test/ws/solusdt@ticker", lambda t: None)
        assert stream.connected is False
        stream.stop()
        assert stream.connected is False

    def test_stream_url_from_config(self):
        assert _make_config().ticker_stream_url == (
            "wss://stream.binance.com:9443/ws/solusdt@ticker"
        )
