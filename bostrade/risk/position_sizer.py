"""Position sizing — pure math, no I/O.

Calculates the quantity of the base asset to trade so that hitting the
stop loses a fixed percentage of the account balance.
"""

import logging

logger = logging.getLogger("bostrade.risk")


def calculate_position_size(
    balance: float,
    risk_pct: float,
    entry_price: float,
    stop_loss: float,
    min_size: float = 0.0,
    max_size: float = float("inf"),
) -> float:
    """Calculate position size in base-asset units.

    Formula::

        risk_amount   = balance × (risk_pct / 100)
        stop_distance = |entry_price − stop_loss|
        size          = risk_amount / stop_distance

    The result is clamped to ``[min_size, max_size]``.

    Args:
        balance: Available account balance in quote currency (e.g. USDT).
        risk_pct: Percentage of balance to risk per trade (e.g. 2.0).
        entry_price: Planned entry price.
        stop_loss: Stop-loss price.
        min_size: Smallest size the exchange accepts.
        max_size: Largest size allowed per trade.

    Returns:
        Position size, or ``0.0`` when the stop distance is zero.

    Raises:
        ValueError: If *balance* or *risk_pct* is non-positive.
    """
    if balance <= 0:
        raise ValueError(f"balance must be positive, got {balance}")
    if risk_pct <= 0:
        raise ValueError(f"risk_pct must be positive, got {risk_pct}")

    stop_distance = abs(entry_price - stop_loss)
    if stop_distance == 0:
        logger.error("Stop distance is zero — cannot size position")
        return 0.0

    size = balance * (risk_pct / 100.0) / stop_distance

    if size < min_size:
        logger.info("Position size %.6f below minimum, using %s", size, min_size)
        size = min_size
    if size > max_size:
        logger.info("Position size %.6f above maximum, capping at %s", size, max_size)
        size = max_size
    return size


def format_position_size(size: float, symbol: str) -> float:
    """Round *size* to the precision the exchange uses for *symbol*.

    BTC pairs trade in 0.001 steps, ETH pairs in 0.01, everything else 0.0001.
    """
    if "BTC" in symbol:
        return round(size, 3)
    if "ETH" in symbol:
        return round(size, 2)
    return round(size, 4)
