"""Internal API routers — /snapshot, /recommendation, /session, /status, /mode endpoints.

No signal logic.  Reads from the engine and the shared status dict.
"""

import dataclasses
import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

logger = logging.getLogger("signaldesk")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_ENGINE_STATUS: dict = {
    "running": False,
    "symbol": None,
    "mode": None,
    "price": None,
    "recommendation": None,
    "last_signal_price": None,
    "last_signal_at": None,
    "started_at": None,
    "cycle_count": 0,
    "last_cycle_at": None,
    "last_refresh_at": None,
    "last_tick_at": None,
    "tick_count": 0,
    "stream_connected": False,
    "stream_message_count": 0,
    "last_error": None,
}

_engine_status: dict = {**_DEFAULT_ENGINE_STATUS}
_engine = None  # Set via configure_routers()


def configure_routers(engine=None, reset_status: bool = False) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine: A ``SignalEngine`` instance (or duck-type for tests).
        reset_status: Restore the status dict to its defaults.
    """
    global _engine  # noqa: PLW0603
    _engine = engine
    if reset_status:
        _engine_status.clear()
        _engine_status.update(_DEFAULT_ENGINE_STATUS)


def update_engine_status(**fields) -> None:
    """Update individual fields of the engine status dict."""
    _engine_status.update(fields)


def _as_dict(value) -> Optional[dict]:
    return dataclasses.asdict(value) if value is not None else None


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return engine status (cycles, last refresh / tick, last error)."""
    return dict(_engine_status)


@router.get("/snapshot")
async def get_snapshot():
    """Return the latest indicator snapshot."""
    if _engine is None:
        return {"snapshot": None}
    return {"snapshot": _as_dict(_engine.get_snapshot())}


@router.get("/recommendation")
async def get_recommendation():
    """Return the currently surfaced recommendation."""
    if _engine is None:
        return {"recommendation": None}
    return {"recommendation": _as_dict(_engine.get_recommendation())}


@router.get("/session")
async def get_session():
    """Return the last signal price and active mode."""
    if _engine is None:
        return {"last_signal_price": None, "mode": None}
    return _engine.get_session_state()


@router.post("/mode")
async def change_mode(body: dict):
    """Switch trading mode; resets the current recommendation.

    Body: ``{"mode": "standard" | "scalping"}``.  Unknown modes are
    rejected with 422 and leave the session untouched.
    """
    if _engine is None:
        return JSONResponse(status_code=503, content={"error": "Engine not running"})
    mode = str(body.get("mode", "")).lower()
    try:
        _engine.on_mode_change(mode)
    except KeyError as exc:
        return JSONResponse(status_code=422, content={"error": exc.args[0]})
    logger.info("Mode changed to '%s' via dashboard.", mode)
    return _engine.get_session_state()
