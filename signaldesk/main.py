"""SignalDesk — application entry point.

Boots the FastAPI internal server and provides the CLI entry point that
runs the signal engine (kline refresh loop + ticker stream).
"""

import logging

from fastapi import FastAPI

from signaldesk.api.routers import router

app = FastAPI(title="SignalDesk Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("signaldesk")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments, build the engine and run it."""
    import argparse
    import asyncio
    import signal

    from signaldesk.api.routers import configure_routers
    from signaldesk.cli.dashboard import print_status
    from signaldesk.config import load_config
    from signaldesk.engine import SignalEngine
    from signaldesk.feed.binance_client import BinanceClient
    from signaldesk.feed.ticker_stream import TickerStream
    from signaldesk.strategy.gate import SessionState

    parser = argparse.ArgumentParser(description="SignalDesk trading signal monitor")
    parser.add_argument(
        "--mode",
        choices=["standard", "scalping"],
        default=None,
        help="Signal mode (default: SIGNAL_MODE or standard)",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the signal engine without the API server",
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Print the status panel on every update",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=0,
        help="Stop after N refresh cycles (0 = run until stopped)",
    )
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    session = SessionState(mode=args.mode or config.default_mode)
    engine = SignalEngine(config, BinanceClient(config), session=session)
    engine.attach_stream(TickerStream(config.ticker_stream_url, engine.handle_tick))
    if args.console:
        engine.add_listener(print_status)
    configure_routers(engine=engine)

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received — stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    if args.engine_only:
        asyncio.run(_run_engine_only(engine, args.cycles))
    else:
        asyncio.run(_run_with_api(engine, config.api_port, args.cycles))


async def _run_with_api(engine, port: int, max_cycles: int = 0) -> None:
    """Start the API server and the signal engine concurrently."""
    import asyncio
    import uvicorn

    logger.info("Starting SignalDesk for %s in %s mode.",
                engine.symbol, engine.get_session_state()["mode"])

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    async def _serve():
        try:
            await server.serve()
        finally:
            engine.stop()

    async def _engine():
        try:
            return await engine.run_all(max_cycles=max_cycles)
        finally:
            server.should_exit = True

    logger.info("API available at http://localhost:%d", port)
    results = await asyncio.gather(_serve(), _engine(), return_exceptions=True)
    logger.info("SignalDesk stopped. Results: %s", results)


async def _run_engine_only(engine, max_cycles: int = 0) -> None:
    """Run the signal engine without starting the API server."""
    logger.info("Starting SignalDesk engine (no API) for %s.", engine.symbol)
    await engine.run_all(max_cycles=max_cycles)
    logger.info("SignalDesk engine stopped.")


if __name__ == "__main__":
    _run_cli()
