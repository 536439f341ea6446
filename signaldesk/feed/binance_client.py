"""Binance REST API async client.

Fetches periodic OHLCV kline batches for the watched symbol.  Public
market-data endpoints only; no authentication.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from signaldesk.config import Config
from signaldesk.feed.models import Kline

logger = logging.getLogger("signaldesk.feed")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


def parse_kline(row: list) -> Kline:
    """Convert one Binance kline array into a ``Kline``.

    Row layout: ``[openTime, open, high, low, close, volume, closeTime, ...]``
    with prices and volume as decimal strings.
    """
    open_time = datetime.fromtimestamp(int(row[0]) / 1000, tz=timezone.utc)
    return Kline(
        time=open_time.isoformat().replace("+00:00", "Z"),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
        close_time=int(row[6]),
    )


class BinanceClient:
    """Async client wrapping the Binance spot klines endpoint."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.binance_rest_url.rstrip("/")

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        timeout=30.0,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        logger.error("Binance %s %s failed after %d attempts", method.upper(), url, _MAX_RETRIES)
        raise last_exc  # type: ignore[misc]

    # ── Kline data ───────────────────────────────────────────────────────

    async def fetch_klines(
        self,
        symbol: Optional[str] = None,
        interval: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Kline]:
        """Fetch recent klines from Binance.

        Args:
            symbol: e.g. ``"SOLUSDT"``; defaults to the configured symbol.
            interval: e.g. ``"1m"``; defaults to the configured interval.
            limit: number of klines to request (max 1000).

        Returns:
            List of ``Kline`` objects ordered oldest-first.
        """
        url = f"{self._base_url}/api/v3/klines"
        params = {
            "symbol": symbol or self._config.symbol,
            "interval": interval or self._config.kline_interval,
            "limit": limit or self._config.kline_limit,
        }

        resp = await self._request_with_retry("get", url, params=params)

        return [parse_kline(row) for row in resp.json()]
