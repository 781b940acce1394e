"""Risk manager — trade validation, margin checks and trade summaries.

Wraps the pure sizing helpers with the configured ``RiskSettings`` and the
daily trade counter.
"""

import logging
from datetime import date

from bostrade.models.strategy_settings import RiskSettings
from bostrade.risk.daily_limit import DailyTradeCounter
from bostrade.risk.position_sizer import calculate_position_size, format_position_size

logger = logging.getLogger("bostrade.risk")

# Actual risk may overshoot the configured percentage by this factor
# (rounding and the minimum size) before a trade is rejected.
_RISK_TOLERANCE = 1.5
# Extra margin reserved for fees and slippage.
_MARGIN_BUFFER = 1.1


class RiskManager:
    """Applies ``RiskSettings`` to individual trade proposals.

    Args:
        settings: Risk limits and sizing parameters.
    """

    def __init__(self, settings: RiskSettings) -> None:
        self._settings = settings
        self._daily = DailyTradeCounter(settings.max_trades_per_day)

    @property
    def settings(self) -> RiskSettings:
        return self._settings

    # ── Daily limit ──────────────────────────────────────────────────────

    def can_trade_today(self, today: date) -> bool:
        return self._daily.can_trade(today)

    def record_trade(self, today: date) -> int:
        return self._daily.record_trade(today)

    @property
    def trades_today(self) -> int:
        return self._daily.trades_today

    # ── Sizing ───────────────────────────────────────────────────────────

    def position_size(
        self, balance: float, entry_price: float, stop_loss: float, symbol: str,
    ) -> float:
        """Size a trade and round it to the symbol's precision."""
        size = calculate_position_size(
            balance,
            self._settings.risk_pct,
            entry_price,
            stop_loss,
            min_size=self._settings.min_position_size,
            max_size=self._settings.max_position_size,
        )
        return format_position_size(size, symbol)

    def validate_trade(
        self,
        balance: float,
        entry_price: float,
        stop_loss: float,
        position_size: float,
    ) -> bool:
        """Reject trades whose actual risk exceeds 1.5× the configured risk."""
        if balance <= 0 or position_size <= 0:
            logger.warning(
                "Invalid trade: balance=%.2f size=%.6f", balance, position_size,
            )
            return False

        stop_distance = abs(entry_price - stop_loss)
        potential_loss = stop_distance * position_size
        risk_pct = potential_loss / balance * 100.0
        limit = self._settings.risk_pct * _RISK_TOLERANCE

        logger.info(
            "Risk check: balance=%.2f entry=%.2f stop=%.2f size=%.6f "
            "max loss=%.2f (%.2f%%)",
            balance, entry_price, stop_loss, position_size,
            potential_loss, risk_pct,
        )
        if risk_pct > limit:
            logger.warning("Risk too high: %.2f%% > %.2f%%", risk_pct, limit)
            return False
        return True

    def has_sufficient_balance(
        self, balance: float, position_size: float, entry_price: float,
    ) -> bool:
        """Check that margin for the trade (plus a 10 % buffer) is available."""
        required = position_size * entry_price / self._settings.leverage * _MARGIN_BUFFER
        if balance < required:
            logger.warning(
                "Insufficient balance: %.2f < %.2f required", balance, required,
            )
            return False
        return True

    @staticmethod
    def trade_summary(
        direction: str,
        entry_price: float,
        stop_loss: float,
        take_profit: float,
        position_size: float,
        balance: float,
    ) -> dict:
        """Summarize a trade's risk and reward for logs and the journal."""
        risk_amount = abs(entry_price - stop_loss) * position_size
        reward_amount = abs(take_profit - entry_price) * position_size
        return {
            "type": direction,
            "entry_price": round(entry_price, 2),
            "stop_loss": round(stop_loss, 2),
            "take_profit": round(take_profit, 2),
            "position_size": position_size,
            "risk_amount": round(risk_amount, 2),
            "reward_amount": round(reward_amount, 2),
            "risk_reward_ratio": (
                round(reward_amount / risk_amount, 2) if risk_amount else None
            ),
            "risk_pct": round(risk_amount / balance * 100.0, 2) if balance else None,
        }
