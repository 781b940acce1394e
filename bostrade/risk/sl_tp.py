"""Stop-loss and take-profit calculation — pure math, no I/O.

Used by the single-timeframe trend-breakout strategy.  The stop is the
tighter of the trailing swing extreme and an ATR-based distance; the target
is a fixed multiple of the stop distance.
"""

from typing import Optional


def calculate_stop_loss(
    direction: str,
    current_price: float,
    atr: float,
    swing_low: Optional[float] = None,
    swing_high: Optional[float] = None,
    atr_multiplier: float = 1.0,
) -> float:
    """Calculate the stop-loss price.

    LONG:  ``max(swing_low, price - atr × mult)``
    SHORT: ``min(swing_high, price + atr × mult)``

    A missing swing falls back to the ATR stop alone.

    Raises:
        ValueError: If *direction* is not ``"LONG"`` or ``"SHORT"``.
    """
    if direction == "LONG":
        atr_stop = current_price - atr * atr_multiplier
        return max(swing_low, atr_stop) if swing_low else atr_stop
    if direction == "SHORT":
        atr_stop = current_price + atr * atr_multiplier
        return min(swing_high, atr_stop) if swing_high else atr_stop
    raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{direction}'")


def calculate_take_profit(
    direction: str,
    entry_price: float,
    stop_loss: float,
    multiplier: float = 2.0,
) -> float:
    """Take-profit = entry ± |entry − stop| × *multiplier*."""
    distance = abs(entry_price - stop_loss)
    if direction == "LONG":
        return entry_price + distance * multiplier
    if direction == "SHORT":
        return entry_price - distance * multiplier
    raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{direction}'")
