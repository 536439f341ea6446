"""Binance 24h-ticker WebSocket stream.

Pushes last-price updates for the watched symbol into a synchronous
callback.  Reconnects with a doubling backoff after a disconnect; retry
policy lives here, never in the signal core.

Binance ticker message (abridged)::

    {"e": "24hrTicker", "s": "SOLUSDT", "c": "142.35", "v": "1833910.12", ...}

``c`` is the last price and ``v`` the traded base-asset volume.
"""

import asyncio
import json
import logging
from typing import Callable, Optional

import websockets

from signaldesk.strategy.models import Tick

logger = logging.getLogger("signaldesk.feed")

_RECONNECT_DELAY_SECONDS = 1.0
_MAX_RECONNECT_DELAY_SECONDS = 60.0
_HEARTBEAT_TIMEOUT_SECONDS = 30

TickCallback = Callable[[Tick], None]


def parse_ticker_message(raw: str | bytes) -> Optional[Tick]:
    """Parse a raw ticker frame into a ``Tick``.

    Returns ``None`` for subscription acks, other event types, and
    malformed payloads.
    """
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ticker stream: invalid JSON message")
        return None

    # Combined-stream envelope: {"stream": ..., "data": {...}}
    if isinstance(msg, dict) and "data" in msg:
        msg = msg["data"]

    if not isinstance(msg, dict) or "c" not in msg or "v" not in msg:
        return None

    try:
        return Tick(price=float(msg["c"]), volume=float(msg["v"]))
    except (TypeError, ValueError):
        logger.debug("Ticker stream: unparseable price/volume in %s", msg)
        return None


class TickerStream:
    """Reconnecting WebSocket client for one Binance ticker stream.

    Args:
        url: Full stream URL, e.g.
            ``wss://stream.binance.com:9443/ws/solusdt@ticker``.
        on_tick: Called synchronously with every parsed ``Tick``.
    """

    def __init__(
        self,
        url: str,
        on_tick: TickCallback,
        reconnect_delay: float = _RECONNECT_DELAY_SECONDS,
        max_reconnect_delay: float = _MAX_RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._url = url
        self._on_tick = on_tick
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._running = False
        self._connected = False
        self._messages = 0

    @property
    def connected(self) -> bool:
        """``True`` while a WebSocket connection is open."""
        return self._connected

    @property
    def message_count(self) -> int:
        """Number of ticks delivered since start."""
        return self._messages

    def stop(self) -> None:
        """Signal the stream to stop; the owning task should be cancelled."""
        self._running = False

    # ── Loop ─────────────────────────────────────────────────────────────

    async def run(self) -> None:
        """Connect and consume until :meth:`stop` is called or cancelled."""
        self._running = True
        delay = self._reconnect_delay

        while self._running:
            try:
                await self._stream_loop()
            except (websockets.WebSocketException, OSError) as exc:
                self._connected = False
                logger.warning(
                    "Ticker stream connection error (%s) — retrying in %.1fs",
                    exc, delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_reconnect_delay)
                continue

            # Clean close — reset backoff
            self._connected = False
            delay = self._reconnect_delay
            if not self._running:
                break
            logger.info("Ticker stream closed — reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)

    async def _stream_loop(self) -> None:
        logger.info("Ticker stream: connecting to %s", self._url)
        async with websockets.connect(
            self._url,
            ping_interval=20,
            ping_timeout=_HEARTBEAT_TIMEOUT_SECONDS,
            close_timeout=5,
        ) as ws:
            self._connected = True
            logger.info("Ticker stream: connected")
            async for raw in ws:
                if not self._running:
                    break
                self.handle_message(raw)

    def handle_message(self, raw: str | bytes) -> None:
        """Parse *raw* and forward a tick to the callback."""
        tick = parse_ticker_message(raw)
        if tick is None:
            return
        self._messages += 1
        try:
            self._on_tick(tick)
        except Exception as exc:
            logger.error("Ticker stream: on_tick callback error: %s", exc)
