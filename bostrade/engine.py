"""BOSTrade — Trading engine (orchestration loop).

Connects strategy, risk management, and broker into a single polling loop.
Strategy evaluates → engine manages the open position or sizes and places
a new order.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from bostrade.api.routers import record_signal, update_bot_status, update_strategy_insight
from bostrade.config import Config
from bostrade.repos.trade_journal import TradeJournal
from bostrade.risk.risk_manager import RiskManager
from bostrade.strategy.base import StrategyProtocol, StrategyResult

logger = logging.getLogger("bostrade")


class TradingEngine:
    """Orchestrates one evaluation-and-execution cycle per call.

    Args:
        config: Application configuration.
        broker: A ``BingXClient`` (or compatible duck-type / mock).
        strategy: A strategy implementing ``StrategyProtocol``.
        risk_manager: Defaults to one built from the config's risk settings.
        journal: Optional ``TradeJournal`` for ENTRY/EXIT records.
    """

    def __init__(
        self,
        config: Config,
        broker,
        strategy: StrategyProtocol,
        risk_manager: Optional[RiskManager] = None,
        journal: Optional[TradeJournal] = None,
    ) -> None:
        self._config = config
        self._settings = config.strategy_settings()
        self._broker = broker
        self._strategy = strategy
        self._risk = risk_manager or RiskManager(self._settings.risk)
        self._journal = journal
        self._running: bool = False
        self._cycle_count: int = 0

    @property
    def strategy(self) -> StrategyProtocol:
        return self._strategy

    @property
    def symbol(self) -> str:
        return self._settings.symbol

    @property
    def running(self) -> bool:
        return self._running

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Fetch the initial balance and publish the starting status."""
        update_bot_status(
            mode="paper" if self._config.test_mode else "live",
            running=True,
            symbol=self.symbol,
            strategy=self._strategy.name,
            test_mode=self._config.test_mode,
            max_trades_per_day=self._settings.risk.max_trades_per_day,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            balance = await self._broker.get_balance()
            update_bot_status(
                balance=balance.balance,
                available_margin=balance.available_margin,
            )
            logger.info(
                "Engine ready: %s on %s (%s), balance %.2f %s",
                self._strategy.name, self.symbol,
                "test mode" if self._config.test_mode else "LIVE",
                balance.available_margin, balance.asset,
            )
        except Exception as exc:
            logger.error("Failed to fetch initial balance (BingX unreachable?): %s", exc)
        self._running = True

    def stop(self) -> None:
        """Signal the engine to stop after the current cycle."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: int | None = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run the trading loop until stopped.

        Args:
            poll_interval: Seconds between cycles.  Defaults to
                           ``config.poll_interval_seconds``.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds
        results: list[dict] = []
        cycle = 0

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                result = await self.run_once()
            except Exception as exc:
                logger.exception("Cycle %d error: %s", cycle, exc)
                result = {"action": "error", "reason": str(exc)}
                record_signal({
                    "symbol": self.symbol,
                    "status": "error",
                    "reason": f"ERROR: {exc}",
                    "evaluated_at": datetime.now(timezone.utc).isoformat(),
                })
            results.append(result)
            logger.info("Cycle %d: %s", cycle, result.get("action", "unknown"))
            update_bot_status(
                cycle_count=self._cycle_count,
                last_cycle_at=datetime.now(timezone.utc).isoformat(),
                trades_today=self._risk.trades_today,
            )

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep: checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        update_bot_status(running=False)
        return results

    # ── Single cycle ─────────────────────────────────────────────────────

    def _skip(self, reason: str, utc_now: datetime, message: str, direction=None) -> dict:
        record_signal({
            "symbol": self.symbol,
            "direction": direction,
            "status": "skipped",
            "reason": message,
            "evaluated_at": utc_now.isoformat(),
        })
        return {"action": "skipped", "reason": reason}

    async def run_once(self, utc_now: Optional[datetime] = None) -> dict:
        """Execute one trading cycle.

        Returns a dict describing the action taken:

        - ``{"action": "skipped", "reason": "..."}``
        - ``{"action": "holding", "side": ...}``
        - ``{"action": "position_closed", ...}``
        - ``{"action": "order_placed", ...}``
        - ``{"action": "order_failed", "reason": ...}``

        Args:
            utc_now: Current UTC datetime.  Defaults to ``datetime.now(UTC)``.
                     Accepting it as a parameter makes the engine testable
                     without mocking ``datetime``.
        """
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        # 1 ── Trading hours
        if not self._config.in_trading_hours(utc_now.hour):
            return self._skip(
                "outside_trading_hours", utc_now, "Outside trading hours",
            )

        # 2 ── Daily trade limit
        if not self._risk.can_trade_today(utc_now.date()):
            return self._skip(
                "daily_limit", utc_now, "Max trades per day reached",
            )

        # 3 ── Strategy evaluation (delegates to pluggable strategy)
        result = await self._strategy.evaluate(self._broker, self._settings)

        insight = dict(self._strategy.last_insight)
        insight["evaluated_at"] = utc_now.isoformat()
        update_strategy_insight(insight)

        # 4 ── Current position management
        positions = await self._broker.get_positions(self.symbol)
        position = next((p for p in positions if p.size != 0), None)
        update_bot_status(
            open_position=(
                {"side": position.side, "size": position.size,
                 "entry_price": position.entry_price,
                 "unrealized_profit": position.unrealized_profit}
                if position else None
            ),
        )
        if position is not None:
            return await self._manage_position(position, result, utc_now)

        if result is None:
            message = insight.get("result", "no_signal").replace("_", " ").capitalize()
            return self._skip("no_signal", utc_now, message)

        # 5 ── Entry
        return await self._enter(result, utc_now)

    async def _manage_position(
        self, position, result: Optional[StrategyResult], utc_now: datetime,
    ) -> dict:
        """Close the open position on an exit or opposite signal, else hold."""
        logger.info(
            "Open position: %s %s @ %.2f",
            position.side, position.size, position.entry_price,
        )
        decision = self._strategy.should_exit(
            position.side, self._strategy.last_indicators,
        )
        if decision.exit:
            return await self._close(position, decision.reason, utc_now)

        if result is not None and result.signal.direction != position.side:
            return await self._close(
                position, f"Opposite {result.signal.direction} signal", utc_now,
            )

        record_signal({
            "symbol": self.symbol,
            "direction": position.side,
            "status": "holding",
            "reason": "Holding current position",
            "evaluated_at": utc_now.isoformat(),
        })
        return {"action": "holding", "side": position.side, "size": position.size}

    async def _close(self, position, reason: str, utc_now: datetime) -> dict:
        logger.info("Closing %s position: %s", position.side, reason)
        order = await self._broker.close_position(
            self.symbol, position.side, abs(position.size),
        )
        if not order.success:
            logger.error("Failed to close position: %s", order.error)
            return {"action": "order_failed", "reason": order.error}

        if self._journal is not None:
            self._journal.record_exit(
                position.side,
                abs(position.size),
                reason,
                order_id=order.order_id,
                exit_price=self._strategy.last_indicators.current_price,
                pnl=position.unrealized_profit,
                test_mode=self._config.test_mode,
            )
        self._reset_strategy()

        record_signal({
            "symbol": self.symbol,
            "direction": position.side,
            "status": "closed",
            "reason": reason,
            "evaluated_at": utc_now.isoformat(),
        })
        update_bot_status(open_position=None)
        return {
            "action": "position_closed",
            "side": position.side,
            "size": abs(position.size),
            "reason": reason,
            "pnl": position.unrealized_profit,
        }

    def _reset_strategy(self) -> None:
        reset = getattr(self._strategy, "reset_state", None)
        if callable(reset):
            reset()

    def _abandon(
        self, reason: str, utc_now: datetime, message: str, direction: str,
    ) -> dict:
        """Skip a setup that will not be traded and clear it from the strategy."""
        self._reset_strategy()
        return self._skip(reason, utc_now, message, direction)

    def _fill_price(self, result: StrategyResult) -> float:
        """Price a market order is expected to fill at.

        The latest close from the strategy's indicators; the signal's own
        entry price when no close is available.
        """
        price = self._strategy.last_indicators.current_price
        return price if price is not None else result.signal.entry_price

    async def _enter(self, result: StrategyResult, utc_now: datetime) -> dict:
        """Size, validate and place a market order for *result*.

        Sizing and risk checks use the expected fill price, not the
        proposed entry level.  A setup that is not traded is abandoned.
        """
        signal = result.signal
        direction = signal.direction
        risk = self._settings.risk
        price = self._fill_price(result)

        if direction == "LONG":
            levels_valid = result.sl < price < result.tp
        else:
            levels_valid = result.tp < price < result.sl
        if not levels_valid:
            return self._abandon(
                "entry_invalidated", utc_now,
                f"Price {price:.2f} outside stop {result.sl:.2f} / "
                f"target {result.tp:.2f}",
                direction,
            )

        balance = await self._broker.get_balance()
        available = balance.available_margin
        update_bot_status(balance=balance.balance, available_margin=available)
        if available < risk.min_balance:
            return self._abandon(
                "insufficient_balance", utc_now,
                f"Balance {available:.2f} below minimum", direction,
            )

        size = self._risk.position_size(available, price, result.sl, self.symbol)
        if not self._risk.validate_trade(available, price, result.sl, size):
            return self._abandon(
                "risk_rejected", utc_now, "Rejected by risk management", direction,
            )
        if not self._risk.has_sufficient_balance(available, size, price):
            return self._abandon(
                "insufficient_balance", utc_now, "Insufficient margin", direction,
            )

        summary = self._risk.trade_summary(
            direction, price, result.sl, result.tp, size, available,
        )
        logger.info(
            "%s setup: price=%.2f (proposed %.2f) stop=%.2f target=%.2f size=%s "
            "risk=%.2f (%.2f%%)",
            direction, price, signal.entry_price, result.sl, result.tp, size,
            summary["risk_amount"], summary["risk_pct"] or 0.0,
        )

        side = "BUY" if direction == "LONG" else "SELL"
        order = await self._broker.place_order(
            self.symbol, side, size, stop_loss=result.sl, take_profit=result.tp,
        )
        if not order.success:
            logger.error("Order failed: %s", order.error)
            record_signal({
                "symbol": self.symbol,
                "direction": direction,
                "status": "failed",
                "reason": f"Order failed: {order.error}",
                "evaluated_at": utc_now.isoformat(),
            })
            self._reset_strategy()
            return {"action": "order_failed", "reason": order.error}

        trades_today = self._risk.record_trade(utc_now.date())
        if self._journal is not None:
            self._journal.record_entry(
                summary, order.order_id,
                symbol=self.symbol,
                reason=signal.reason,
                proposed_entry=signal.entry_price,
                test_mode=self._config.test_mode,
            )
        self._reset_strategy()

        record_signal({
            "symbol": self.symbol,
            "direction": direction,
            "status": "entered",
            "reason": signal.reason,
            "evaluated_at": utc_now.isoformat(),
        })
        update_bot_status(
            last_signal_time=utc_now.isoformat(),
            last_order_time=utc_now.isoformat(),
            trades_today=trades_today,
        )
        logger.info("%s order placed: id=%s", direction, order.order_id)

        return {
            "action": "order_placed",
            "order_id": order.order_id,
            "direction": direction,
            "size": size,
            "entry": price,
            "proposed_entry": signal.entry_price,
            "sl": result.sl,
            "tp": result.tp,
            "reason": signal.reason,
        }
