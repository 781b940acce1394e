"""Internal API routers — /status, /insight, /signals, /trades, /state endpoints.

No business logic.  Reads shared state the engine updates each cycle and the
trade journal.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

logger = logging.getLogger("bostrade.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_STATUS: dict = {
    "mode": "idle",
    "running": False,
    "symbol": None,
    "strategy": None,
    "test_mode": True,
    "balance": None,
    "available_margin": None,
    "trades_today": 0,
    "max_trades_per_day": None,
    "open_position": None,
    "started_at": None,
    "cycle_count": 0,
    "last_cycle_at": None,
    "last_signal_time": None,
    "last_order_time": None,
}

_SIGNAL_HISTORY_MAX = 50

_bot_status: dict = {**_DEFAULT_STATUS}
_strategy_insight: dict = {}  # Updated by engine each cycle
_signal_history: list = []  # Recent signal log (max 50 entries)
_journal = None  # Set via configure_routers()
_engine = None   # Set via configure_routers()


def configure_routers(
    journal=None,
    engine=None,
    bot_status: Optional[dict] = None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        journal: A ``TradeJournal`` instance (or duck-type for tests).
        engine: The ``TradingEngine`` whose strategy state ``/state`` shows.
        bot_status: Optional fields to seed the status dict with.
    """
    global _journal, _engine  # noqa: PLW0603
    _journal = journal
    _engine = engine
    if bot_status is not None:
        _bot_status.update(bot_status)


def reset_state() -> None:
    """Restore the default shared state (used between tests)."""
    global _journal, _engine  # noqa: PLW0603
    _bot_status.clear()
    _bot_status.update(_DEFAULT_STATUS)
    _strategy_insight.clear()
    _signal_history.clear()
    _journal = None
    _engine = None


def update_bot_status(**fields) -> None:
    """Update individual fields of the status dict."""
    _bot_status.update(fields)


def update_strategy_insight(insight: dict) -> None:
    """Store the latest strategy analysis for the ``/insight`` endpoint."""
    _strategy_insight.clear()
    _strategy_insight.update(insight)


def record_signal(signal_data: dict) -> None:
    """Append one evaluation outcome to the signal history log.

    Every cycle is logged (entries, skips and errors) so the history shows
    a complete decision timeline.
    """
    _signal_history.append({
        "symbol": signal_data.get("symbol", ""),
        "direction": signal_data.get("direction") or "—",
        "status": signal_data.get("status", ""),
        "reason": signal_data.get("reason", ""),
        "evaluated_at": signal_data.get("evaluated_at", ""),
    })
    if len(_signal_history) > _SIGNAL_HISTORY_MAX:
        del _signal_history[0]


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return the bot's running status and account snapshot."""
    return _bot_status


@router.get("/insight")
async def get_insight():
    """Return the most recent strategy analysis."""
    return _strategy_insight


@router.get("/signals")
async def get_signals(limit: int = Query(default=20, ge=1, le=_SIGNAL_HISTORY_MAX)):
    """Return recent signal evaluations, newest first."""
    recent = list(reversed(_signal_history))[:limit]
    return {"signals": recent, "total": len(_signal_history)}


@router.get("/trades")
async def get_trades(limit: int = Query(default=20, ge=1, le=500)):
    """Return recent journal entries, newest first."""
    if _journal is None:
        return {"trades": [], "total": 0}
    records = _journal.read_all()
    return {"trades": list(reversed(records))[:limit], "total": len(records)}


@router.get("/state")
async def get_state():
    """Return the BOS tracker state, when the active strategy keeps one."""
    strategy = getattr(_engine, "strategy", None)
    tracker = getattr(strategy, "tracker", None)
    if tracker is None:
        return {"strategy": getattr(strategy, "name", None), "state": None}
    return {"strategy": strategy.name, "state": tracker.state.to_dict()}
