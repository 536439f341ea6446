"""SignalDesk — signal engine (orchestration loop).

Connects the kline feed, the ticker stream and the signal core.  Batch
refresh → snapshot rebuild → gate; tick → price override → gate.

Everything runs on one asyncio event loop.  The ``on_*`` handlers are
synchronous and never await, so the session state only ever has a single
writer.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from signaldesk.api.routers import update_engine_status
from signaldesk.config import Config
from signaldesk.feed.binance_client import BinanceClient
from signaldesk.feed.ticker_stream import TickerStream
from signaldesk.strategy.errors import (
    InsufficientDataError,
    InvalidInputError,
    MissingFieldError,
)
from signaldesk.strategy.gate import SessionState, update_recommendation
from signaldesk.strategy.models import CandleData, IndicatorSnapshot, Recommendation, Tick
from signaldesk.strategy.snapshot import apply_tick, build_snapshot

logger = logging.getLogger("signaldesk")

Listener = Callable[["SignalEngine"], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SignalEngine:
    """Owns the session state and the current snapshot for one asset.

    Args:
        config: Application configuration.
        client: A ``BinanceClient`` (or compatible duck-type / mock).
        session: Optional pre-built ``SessionState``; defaults to a fresh
            one in the configured mode.
    """

    def __init__(
        self,
        config: Config,
        client: BinanceClient,
        session: Optional[SessionState] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._session = session or SessionState(mode=config.default_mode)
        self._snapshot: Optional[IndicatorSnapshot] = None
        self._stream: Optional[TickerStream] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._listeners: list[Listener] = []
        self._running: bool = False
        self._cycle_count: int = 0
        self._tick_count: int = 0

    # ── Read side ────────────────────────────────────────────────────────

    @property
    def symbol(self) -> str:
        """Return the symbol this engine watches."""
        return self._config.symbol

    @property
    def running(self) -> bool:
        return self._running

    def get_snapshot(self) -> Optional[IndicatorSnapshot]:
        """Latest indicator snapshot, or ``None`` before the first batch."""
        return self._snapshot

    def get_recommendation(self) -> Optional[Recommendation]:
        """Currently surfaced recommendation, or ``None``."""
        return self._session.current_recommendation

    def get_session_state(self) -> dict:
        """Return ``{"last_signal_price", "mode"}`` for presentation."""
        return {
            "last_signal_price": self._session.last_signal_price,
            "mode": self._session.mode,
        }

    def add_listener(self, listener: Listener) -> None:
        """Register a callback fired after refreshes, mode switches and new recommendations."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception as exc:
                logger.error("Listener %r failed: %s", listener, exc)

    # ── Event handlers ───────────────────────────────────────────────────

    def on_batch_refresh(self, candles: list[CandleData]) -> bool:
        """Rebuild the snapshot from a fresh OHLCV batch and run the gate.

        On ``InsufficientDataError`` / ``InvalidInputError`` the cycle is
        skipped and the previous snapshot is kept.

        Returns ``True`` if the snapshot was replaced.
        """
        try:
            snapshot = build_snapshot(candles)
        except (InsufficientDataError, InvalidInputError) as exc:
            logger.warning("Batch refresh skipped: %s", exc)
            update_engine_status(last_error=str(exc))
            return False

        self._snapshot = snapshot
        update_engine_status(
            last_refresh_at=_now_iso(),
            price=snapshot.price,
            last_error=None,
        )
        self._evaluate()
        self._notify()
        return True

    def on_tick(self, price: float, volume: float) -> bool:
        """Override the snapshot's price/volume with a streamed tick.

        Indicators are not recomputed.  Ticks arriving before the first
        batch are dropped; invalid ticks are rejected without touching
        state.

        Returns ``True`` if the tick was applied.
        """
        if self._snapshot is None:
            logger.debug("Tick dropped — no snapshot yet")
            return False
        try:
            self._snapshot = apply_tick(self._snapshot, price, volume)
        except InvalidInputError as exc:
            logger.warning("Tick rejected: %s", exc)
            return False

        self._tick_count += 1
        update_engine_status(
            last_tick_at=_now_iso(),
            tick_count=self._tick_count,
            price=self._snapshot.price,
        )
        if self._evaluate() is not None:
            self._notify()
        return True

    def handle_tick(self, tick: Tick) -> None:
        """Ticker-stream callback adapter."""
        self.on_tick(tick.price, tick.volume)

    def on_mode_change(self, mode: str) -> None:
        """Switch mode, reset the recommendation state and re-run the gate.

        Raises ``KeyError`` for an unknown mode; state is left untouched.
        """
        previous = self._session.mode
        self._session.switch_mode(mode)
        logger.info("Mode switched %s → %s — recommendation reset", previous, mode)
        update_engine_status(
            mode=mode,
            recommendation=None,
            last_signal_price=None,
            last_signal_at=None,
        )
        if self._snapshot is not None:
            self._evaluate()
        self._notify()

    def _evaluate(self) -> Optional[Recommendation]:
        """Run the gate on the current snapshot, logging accepted changes."""
        try:
            accepted = update_recommendation(self._session, self._snapshot)
        except MissingFieldError as exc:
            logger.warning("Classification skipped: %s", exc)
            return None

        if accepted is not None:
            logger.info(
                "%s %s @ %.4f (confidence %.2f, target %.4f, stop %.4f) — %s",
                self._session.mode, accepted.action, self._session.last_signal_price,
                accepted.confidence, accepted.target_price, accepted.stop_loss,
                accepted.reason,
            )
            update_engine_status(
                recommendation=accepted.action,
                last_signal_price=self._session.last_signal_price,
                last_signal_at=_now_iso(),
            )
        return accepted

    # ── Lifecycle ────────────────────────────────────────────────────────

    def attach_stream(self, stream: TickerStream) -> None:
        """Attach the ticker stream started alongside the refresh loop."""
        self._stream = stream

    async def initialize(self) -> None:
        """Mark the engine running and publish the initial status."""
        self._running = True
        update_engine_status(
            running=True,
            symbol=self.symbol,
            mode=self._session.mode,
            started_at=_now_iso(),
        )

    def _publish_stream_status(self) -> None:
        if self._stream is None:
            return
        update_engine_status(
            stream_connected=self._stream.connected,
            stream_message_count=self._stream.message_count,
        )

    def stop(self) -> None:
        """Stop the refresh loop and the ticker stream together."""
        self._running = False
        if self._stream is not None:
            self._stream.stop()
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()

    # ── Refresh loop ─────────────────────────────────────────────────────

    async def refresh_once(self) -> dict:
        """Fetch one kline batch and feed it to :meth:`on_batch_refresh`."""
        klines = await self._client.fetch_klines(
            self._config.symbol,
            self._config.kline_interval,
            self._config.kline_limit,
        )
        candles = [
            CandleData(k.time, k.open, k.high, k.low, k.close, k.volume)
            for k in klines
        ]
        if not self.on_batch_refresh(candles):
            return {"action": "skipped", "candles": len(candles)}
        recommendation = self.get_recommendation()
        return {
            "action": "refreshed",
            "candles": len(candles),
            "recommendation": recommendation.action if recommendation else None,
        }

    async def run(
        self,
        poll_interval: int | None = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run the batch-refresh loop until stopped.

        Args:
            poll_interval: Seconds between refreshes. Defaults to config.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.refresh_interval_seconds
        if not self._running:
            await self.initialize()
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                result = await self.refresh_once()
                results.append(result)
                logger.info("Cycle %d: %s", cycle, result.get("action", "unknown"))
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)
                results.append({"action": "error", "reason": str(exc)})
                update_engine_status(last_error=str(exc))
            update_engine_status(
                cycle_count=self._cycle_count,
                last_cycle_at=_now_iso(),
            )
            self._publish_stream_status()

            if max_cycles > 0 and cycle >= max_cycles:
                break

            if poll_interval <= 0:
                await asyncio.sleep(0)
            # Interruptible sleep — checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        return results

    async def run_all(self, max_cycles: int = 0) -> list[dict]:
        """Run the refresh loop and the ticker stream until stopped.

        Both are torn down together when the loop exits.
        """
        await self.initialize()
        if self._stream is not None:
            self._stream_task = asyncio.create_task(self._stream.run())
        try:
            return await self.run(max_cycles=max_cycles)
        finally:
            self.stop()
            if self._stream_task is not None:
                try:
                    await self._stream_task
                except asyncio.CancelledError:
                    pass
            update_engine_status(running=False, stream_connected=False)
