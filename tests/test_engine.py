"""Tests for the trading engine orchestration.

Verifies end-to-end flow: fetch candles → evaluate signal → risk → order,
plus position management.  Uses a mock broker to avoid real BingX calls.
"""

from datetime import datetime, timezone

import pytest

from bostrade.broker.models import Balance, Candle, OrderResult, Position
from bostrade.config import Config
from bostrade.engine import TradingEngine
from bostrade.repos.trade_journal import TradeJournal
from bostrade.strategy.base import StrategyResult, macd_exit
from bostrade.strategy.bos_strategy import BOSStrategy
from bostrade.strategy.models import EntrySignal, IndicatorSnapshot, MACDSnapshot


NOON = datetime(2025, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    """Build a Config with sensible test defaults."""
    defaults = dict(
        bingx_api_key="test-key",
        bingx_api_secret="test-secret",
        test_mode=True,
        symbol="BTC-USDT",
        strategy="bos",
        higher_interval="4h",
        lower_interval="5m",
        interval="15m",
        candle_limit=100,
        poll_interval_seconds=1,
        risk_pct=2.0,
        max_trades_per_day=3,
        min_position_size=0.001,
        max_position_size=1.0,
        trading_hours_enabled=False,
        trading_start_utc=0,
        trading_end_utc=24,
        log_level="WARNING",
        log_file="",
        trades_file="",
        health_port=8080,
    )
    defaults.update(overrides)
    return Config(**defaults)


def _k(t, o, h, l, c, v=100.0) -> Candle:
    return Candle(time=t, open=o, high=h, low=l, close=c, volume=v)


def _higher_break() -> list[Candle]:
    padding = [_k(i, 90.0, 91.0, 89.0, 90.0) for i in range(40)]
    window = [
        _k(40 + i, 100.0, 103.0 if i == 3 else 101.0, 95.0 + abs(i - 10) * 0.2, 100.0)
        for i in range(20)
    ]
    return padding + window + [
        _k(60, 101.0, 102.8, 100.5, 102.5),
        _k(61, 102.5, 104.0, 102.0, 104.0),
    ]


def _lower_break() -> list[Candle]:
    window = [
        _k(i, 98.5, 99.0 if i == 4 else 98.8, 98.0 if i == 6 else 98.2, 98.5)
        for i in range(10)
    ]
    return window + [_k(10, 98.5, 99.0, 98.4, 98.9), _k(11, 98.9, 99.5, 98.8, 99.3)]


def _long_result(entry: float = 100.0, sl: float = 98.0, tp: float = 104.0) -> StrategyResult:
    return StrategyResult(
        signal=EntrySignal("LONG", entry, 1, "✓ test setup"), sl=sl, tp=tp,
    )


# ── Mocks ────────────────────────────────────────────────────────────────


class MockBroker:
    """Duck-typed BingXClient replacement for engine tests."""

    def __init__(
        self,
        higher: list[Candle] | None = None,
        lower: list[Candle] | None = None,
        balance: float = 10_000.0,
        positions: list[Position] | None = None,
        order_success: bool = True,
    ) -> None:
        self.higher = higher or []
        self.lower = lower or []
        self.balance = balance
        self.positions = positions or []
        self.order_success = order_success
        self.placed_orders: list[tuple] = []
        self.closed: list[tuple] = []

    async def get_klines(self, symbol, interval, limit=100):
        return self.higher if interval == "4h" else self.lower

    async def get_balance(self):
        return Balance(asset="USDT", balance=self.balance, available_margin=self.balance)

    async def get_positions(self, symbol):
        return self.positions

    async def place_order(self, symbol, side, quantity, stop_loss=None, take_profit=None):
        self.placed_orders.append((symbol, side, quantity, stop_loss, take_profit))
        if not self.order_success:
            return OrderResult(success=False, symbol=symbol, side=side, error="rejected")
        return OrderResult(
            success=True, order_id="555", symbol=symbol, side=side, quantity=quantity,
        )

    async def close_position(self, symbol, side, quantity):
        self.closed.append((symbol, side, quantity))
        return OrderResult(success=True, order_id="556", symbol=symbol)


class StubStrategy:
    """Returns a canned result; records reset calls."""

    name = "stub"

    def __init__(self, result=None, indicators=None, error=None) -> None:
        self.result = result
        self.error = error
        self.last_insight: dict = {}
        self.last_indicators = indicators or IndicatorSnapshot()
        self.reset_calls = 0

    async def evaluate(self, broker, settings):
        if self.error is not None:
            raise self.error
        self.last_insight = {"result": "long_signal" if self.result else "no_signal"}
        return self.result

    def should_exit(self, side, indicators):
        return macd_exit(side, indicators)

    def reset_state(self):
        self.reset_calls += 1


# ── Engine tests ─────────────────────────────────────────────────────────


class TestTradingEngine:
    """Integration tests for TradingEngine.run_once()."""

    @pytest.mark.asyncio
    async def test_bos_places_order_end_to_end(self, tmp_path):
        """Break → pullback into zone → confirmation → order placed."""
        journal = TradeJournal(str(tmp_path / "trades.ndjson"))
        broker = MockBroker(higher=_higher_break(), lower=_lower_break())
        strategy = BOSStrategy()
        engine = TradingEngine(_make_config(), broker, strategy, journal=journal)
        await engine.initialize()

        first = await engine.run_once(utc_now=NOON)
        assert first == {"action": "skipped", "reason": "no_signal"}

        broker.higher = _higher_break() + [_k(62, 100.0, 100.2, 98.9, 99.0)]
        result = await engine.run_once(utc_now=NOON)

        assert result["action"] == "order_placed"
        assert result["direction"] == "LONG"
        # Sized at the latest close the market order fills at.
        assert result["entry"] == pytest.approx(99.0)
        assert result["proposed_entry"] == pytest.approx(98.75)
        assert result["sl"] == pytest.approx(98.498)
        assert result["sl"] < result["entry"] < result["tp"]
        assert len(broker.placed_orders) == 1
        symbol, side, size, sl, tp = broker.placed_orders[0]
        assert (symbol, side) == ("BTC-USDT", "BUY")
        assert size == pytest.approx(1.0)  # capped at max_position_size

        # State is cleared for the next setup and the trade is journaled.
        assert strategy.tracker.state.entry_proposed is False
        records = journal.read_all()
        assert len(records) == 1
        assert records[0]["event"] == "ENTRY"
        assert records[0]["order_id"] == "555"

    @pytest.mark.asyncio
    async def test_skips_outside_trading_hours(self):
        config = _make_config(
            trading_hours_enabled=True, trading_start_utc=8, trading_end_utc=20,
        )
        broker = MockBroker()
        engine = TradingEngine(config, broker, StubStrategy(_long_result()))

        result = await engine.run_once(
            utc_now=datetime(2025, 2, 1, 3, 0, tzinfo=timezone.utc),
        )
        assert result == {"action": "skipped", "reason": "outside_trading_hours"}
        assert broker.placed_orders == []

    @pytest.mark.asyncio
    async def test_daily_limit_blocks_second_trade(self):
        broker = MockBroker()
        engine = TradingEngine(
            _make_config(max_trades_per_day=1), broker, StubStrategy(_long_result()),
        )
        first = await engine.run_once(utc_now=NOON)
        second = await engine.run_once(utc_now=NOON)

        assert first["action"] == "order_placed"
        assert second == {"action": "skipped", "reason": "daily_limit"}
        assert len(broker.placed_orders) == 1

    @pytest.mark.asyncio
    async def test_skips_on_low_balance(self):
        broker = MockBroker(balance=5.0)
        strategy = StubStrategy(_long_result())
        engine = TradingEngine(_make_config(), broker, strategy)
        result = await engine.run_once(utc_now=NOON)
        assert result == {"action": "skipped", "reason": "insufficient_balance"}
        assert strategy.reset_calls == 1

    @pytest.mark.asyncio
    async def test_skips_no_signal(self):
        engine = TradingEngine(_make_config(), MockBroker(), StubStrategy(None))
        result = await engine.run_once(utc_now=NOON)
        assert result == {"action": "skipped", "reason": "no_signal"}

    @pytest.mark.asyncio
    async def test_order_failure_is_reported(self):
        broker = MockBroker(order_success=False)
        strategy = StubStrategy(_long_result())
        engine = TradingEngine(_make_config(), broker, strategy)
        result = await engine.run_once(utc_now=NOON)
        assert result == {"action": "order_failed", "reason": "rejected"}
        assert strategy.reset_calls == 1

    @pytest.mark.asyncio
    async def test_risk_rejection_abandons_setup(self):
        broker = MockBroker(balance=1_000.0)
        strategy = StubStrategy(_long_result())
        config = _make_config(min_position_size=50.0, max_position_size=100.0)
        engine = TradingEngine(config, broker, strategy)

        result = await engine.run_once(utc_now=NOON)

        assert result == {"action": "skipped", "reason": "risk_rejected"}
        assert strategy.reset_calls == 1
        assert broker.placed_orders == []

    @pytest.mark.asyncio
    async def test_sizes_from_market_price_not_proposal(self):
        """Proposal at 100 with stop 98, market at 101: risk uses the 3.0 distance."""
        broker = MockBroker(balance=1_000.0)
        strategy = StubStrategy(
            _long_result(entry=100.0, sl=98.0, tp=104.0),
            indicators=IndicatorSnapshot(current_price=101.0),
        )
        engine = TradingEngine(
            _make_config(max_position_size=100.0), broker, strategy,
        )

        result = await engine.run_once(utc_now=NOON)

        assert result["action"] == "order_placed"
        assert result["entry"] == pytest.approx(101.0)
        assert result["proposed_entry"] == pytest.approx(100.0)
        # 1000 × 2 % / 3.0, not / 2.0
        assert result["size"] == pytest.approx(6.667)
        assert broker.placed_orders[0][2] == pytest.approx(6.667)

    @pytest.mark.asyncio
    async def test_price_beyond_stop_abandons_setup(self):
        broker = MockBroker()
        strategy = StubStrategy(
            _long_result(entry=100.0, sl=98.0, tp=104.0),
            indicators=IndicatorSnapshot(current_price=97.5),
        )
        engine = TradingEngine(_make_config(), broker, strategy)

        result = await engine.run_once(utc_now=NOON)

        assert result == {"action": "skipped", "reason": "entry_invalidated"}
        assert strategy.reset_calls == 1
        assert broker.placed_orders == []

    @pytest.mark.asyncio
    async def test_failed_bos_order_clears_proposal(self):
        broker = MockBroker(
            higher=_higher_break(), lower=_lower_break(), order_success=False,
        )
        strategy = BOSStrategy()
        engine = TradingEngine(_make_config(), broker, strategy)
        await engine.run_once(utc_now=NOON)

        broker.higher = _higher_break() + [_k(62, 100.0, 100.2, 98.9, 99.0)]
        result = await engine.run_once(utc_now=NOON)

        assert result["action"] == "order_failed"
        assert strategy.tracker.state.entry_proposed is False
        assert strategy.tracker.state.lower_break is None

    @pytest.mark.asyncio
    async def test_closes_long_on_bearish_macd_cross(self, tmp_path):
        journal = TradeJournal(str(tmp_path / "trades.ndjson"))
        position = Position("BTC-USDT", "LONG", 0.5, 100.0, 3.2, 1.0)
        broker = MockBroker(positions=[position])
        strategy = StubStrategy(
            None,
            indicators=IndicatorSnapshot(
                macd=MACDSnapshot(-0.1, 0.0, -0.1, False, True), current_price=101.0,
            ),
        )
        engine = TradingEngine(_make_config(), broker, strategy, journal=journal)

        result = await engine.run_once(utc_now=NOON)

        assert result["action"] == "position_closed"
        assert broker.closed == [("BTC-USDT", "LONG", 0.5)]
        assert strategy.reset_calls == 1
        exit_record = journal.read_all()[0]
        assert exit_record["event"] == "EXIT"
        assert exit_record["pnl"] == pytest.approx(3.2)

    @pytest.mark.asyncio
    async def test_closes_on_opposite_signal(self):
        position = Position("BTC-USDT", "SHORT", 0.2, 100.0, -1.0, 1.0)
        broker = MockBroker(positions=[position])
        engine = TradingEngine(_make_config(), broker, StubStrategy(_long_result()))

        result = await engine.run_once(utc_now=NOON)

        assert result["action"] == "position_closed"
        assert result["reason"] == "Opposite LONG signal"
        assert broker.placed_orders == []

    @pytest.mark.asyncio
    async def test_holds_position_without_exit(self):
        position = Position("BTC-USDT", "LONG", 0.2, 100.0, 1.0, 1.0)
        broker = MockBroker(positions=[position])
        engine = TradingEngine(_make_config(), broker, StubStrategy(_long_result()))

        result = await engine.run_once(utc_now=NOON)

        assert result == {"action": "holding", "side": "LONG", "size": 0.2}
        assert broker.placed_orders == []
        assert broker.closed == []

    @pytest.mark.asyncio
    async def test_loop_logs_and_continues_on_error(self):
        engine = TradingEngine(
            _make_config(), MockBroker(), StubStrategy(error=RuntimeError("boom")),
        )
        await engine.initialize()
        results = await engine.run(poll_interval=0, max_cycles=2)

        assert [r["action"] for r in results] == ["error", "error"]
        assert results[0]["reason"] == "boom"
        assert engine.running is False

    @pytest.mark.asyncio
    async def test_stop_ends_loop(self):
        engine = TradingEngine(_make_config(), MockBroker(), StubStrategy(None))
        await engine.initialize()
        engine.stop()
        assert await engine.run(poll_interval=0) == []
