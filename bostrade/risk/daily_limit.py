"""Daily trade counter — caps the number of entries per calendar day.

The caller passes the current date on every call, so the day rollover is
driven by the engine's clock and tests need no clock mocking.
"""

import logging
from datetime import date
from typing import Optional

logger = logging.getLogger("bostrade.risk")


class DailyTradeCounter:
    """Counts trades per day and resets when the date changes.

    Args:
        max_trades: Maximum number of trades allowed per day.
    """

    def __init__(self, max_trades: int = 3) -> None:
        if max_trades <= 0:
            raise ValueError(f"max_trades must be positive, got {max_trades}")
        self._max_trades = max_trades
        self._count = 0
        self._day: Optional[date] = None

    def _roll(self, today: date) -> None:
        if self._day != today:
            if self._day is not None:
                logger.info("New trading day %s — trade counter reset", today)
            self._day = today
            self._count = 0

    def can_trade(self, today: date) -> bool:
        """Return True if another trade is allowed on *today*."""
        self._roll(today)
        return self._count < self._max_trades

    def record_trade(self, today: date) -> int:
        """Count one trade on *today* and return the day's total."""
        self._roll(today)
        self._count += 1
        logger.info("Trades today: %d/%d", self._count, self._max_trades)
        return self._count

    @property
    def trades_today(self) -> int:
        return self._count

    @property
    def max_trades(self) -> int:
        return self._max_trades
