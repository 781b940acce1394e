"""Deterministic tests for bostrade.strategy.indicators.

All tests use fixed candle data fixtures. Same input = same output, always.
"""

import pytest

from bostrade.models.strategy_settings import IndicatorConfig
from bostrade.strategy.indicators import (
    calculate_atr,
    calculate_average_volume,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    check_bearish_breakdown,
    check_bullish_breakout,
    compute_indicators,
    find_swing_high,
    find_swing_low,
    is_volume_spike,
    latest_ema,
)
from bostrade.strategy.models import CandleData, IndicatorSnapshot


def _make_candle(t: int, o: float, h: float, l: float, c: float, vol: float = 100.0) -> CandleData:
    return CandleData(time=t, open=o, high=h, low=l, close=c, volume=vol)


def _flat(n: int, price: float = 100.0, vol: float = 100.0) -> list[CandleData]:
    return [_make_candle(i, price, price + 1, price - 1, price, vol) for i in range(n)]


def _closes(values: list[float]) -> list[CandleData]:
    return [_make_candle(i, v, v + 1, v - 1, v) for i, v in enumerate(values)]


# ── EMA ──────────────────────────────────────────────────────────────────


class TestEMA:
    def test_seeded_with_first_value(self):
        ema = calculate_ema([1.0, 2.0, 3.0], 2)
        assert len(ema) == 3
        assert ema[0] == pytest.approx(1.0)
        assert ema[1] == pytest.approx(5.0 / 3.0)
        assert ema[2] == pytest.approx(23.0 / 9.0)

    def test_short_series_raises(self):
        with pytest.raises(ValueError):
            calculate_ema([1.0, 2.0], 5)

    def test_latest_ema_none_on_short_history(self):
        assert latest_ema(_flat(10), 20) is None

    def test_latest_ema_constant_series(self):
        assert latest_ema(_flat(30, price=50.0), 20) == pytest.approx(50.0)


# ── MACD ─────────────────────────────────────────────────────────────────


class TestMACD:
    def test_none_when_short(self):
        assert calculate_macd(_flat(34)) is None

    def test_flat_series_has_no_cross(self):
        macd = calculate_macd(_flat(40))
        assert macd.macd == pytest.approx(0.0)
        assert macd.signal == pytest.approx(0.0)
        assert macd.bullish_cross is False
        assert macd.bearish_cross is False

    def test_bullish_cross_on_jump(self):
        macd = calculate_macd(_closes([100.0] * 39 + [110.0]))
        assert macd.macd > macd.signal
        assert macd.histogram > 0
        assert macd.bullish_cross is True
        assert macd.bearish_cross is False

    def test_bearish_cross_on_drop(self):
        macd = calculate_macd(_closes([100.0] * 39 + [90.0]))
        assert macd.bearish_cross is True
        assert macd.bullish_cross is False


# ── RSI / ATR ────────────────────────────────────────────────────────────


class TestRSI:
    def test_needs_period_plus_one(self):
        assert calculate_rsi(_flat(14), 14) is None

    def test_all_gains_is_100(self):
        assert calculate_rsi(_closes([100.0 + i for i in range(20)]), 14) == pytest.approx(100.0)

    def test_balanced_moves_is_50(self):
        closes = [100.0 if i % 2 == 0 else 101.0 for i in range(15)]
        assert calculate_rsi(_closes(closes), 14) == pytest.approx(50.0)


class TestATR:
    def test_constant_range(self):
        assert calculate_atr(_flat(15), 14) == pytest.approx(2.0)

    def test_insufficient_data(self):
        assert calculate_atr(_flat(14), 14) is None

    def test_gap_uses_previous_close(self):
        candles = _flat(14) + [_make_candle(14, 105, 106, 104, 105)]
        # Last true range = |106 - 100| = 6; the other 13 are 2.
        assert calculate_atr(candles, 14) == pytest.approx((13 * 2.0 + 6.0) / 14)


# ── Volume ───────────────────────────────────────────────────────────────


class TestVolume:
    def test_average_volume(self):
        assert calculate_average_volume(_flat(25, vol=200.0), 20) == pytest.approx(200.0)

    def test_spike_detected(self):
        candles = _flat(20) + [_make_candle(20, 100, 101, 99, 100, vol=140.0)]
        assert is_volume_spike(candles, 20, 1.3) is True

    def test_no_spike_below_multiplier(self):
        candles = _flat(20) + [_make_candle(20, 100, 101, 99, 100, vol=120.0)]
        assert is_volume_spike(candles, 20, 1.3) is False

    def test_no_spike_on_short_history(self):
        assert is_volume_spike(_flat(20), 20, 1.3) is False


# ── Swings / breakouts ───────────────────────────────────────────────────


class TestSwingsAndBreakouts:
    def test_trailing_swings(self):
        candles = _closes([100.0, 98.0, 103.0, 101.0, 99.0])
        assert find_swing_low(candles, 3) == pytest.approx(98.0)
        assert find_swing_high(candles, 3) == pytest.approx(104.0)
        assert find_swing_low(candles, 10) is None

    def test_bullish_breakout_above_resistance(self):
        candles = _flat(10) + [_make_candle(10, 100, 101.5, 100, 101.2)]
        assert check_bullish_breakout(candles, 10) is True

    def test_bullish_breakout_near_miss_tolerated(self):
        # Resistance 101; 100.9 is within 0.2 %.
        candles = _flat(10) + [_make_candle(10, 100, 100.95, 100, 100.9)]
        assert check_bullish_breakout(candles, 10, 0.002) is True

    def test_bullish_breakout_too_far_below(self):
        candles = _flat(10) + [_make_candle(10, 100, 100.5, 100, 100.5)]
        assert check_bullish_breakout(candles, 10, 0.002) is False

    def test_bearish_breakdown_below_support(self):
        candles = _flat(10) + [_make_candle(10, 99, 99.2, 98.5, 98.8)]
        assert check_bearish_breakdown(candles, 10) is True


# ── Snapshot ─────────────────────────────────────────────────────────────


class TestComputeIndicators:
    def test_empty_input(self):
        assert compute_indicators([], IndicatorConfig()) == IndicatorSnapshot()

    def test_partial_history(self):
        snap = compute_indicators(_flat(60), IndicatorConfig())
        assert snap.ema_fast == pytest.approx(100.0)
        assert snap.ema_slow == pytest.approx(100.0)
        assert snap.ema_long is None
        assert snap.macd is not None
        assert snap.rsi is not None
        assert snap.atr == pytest.approx(2.0)
        assert snap.current_price == pytest.approx(100.0)
        assert snap.to_dict()["ema_long"] is None
