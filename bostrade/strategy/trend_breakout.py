"""Trend-breakout strategy — single timeframe, no state.

Long rules:
    1. EMA fast > EMA slow (uptrend)
    2. Close breaks recent resistance (near-miss tolerated)
    3. MACD bullish cross
    4. RSI below the overbought level
    5. Volume spike

Short rules mirror them (downtrend, breakdown, bearish cross, RSI above the
oversold level, volume spike).  A signal needs at least three of five.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from bostrade.risk.sl_tp import calculate_stop_loss, calculate_take_profit
from bostrade.strategy.base import ExitDecision, StrategyResult, macd_exit, to_candle_data
from bostrade.strategy.indicators import compute_indicators
from bostrade.strategy.models import EntrySignal, IndicatorSnapshot
from bostrade.strategy.structure import SignalCheck

logger = logging.getLogger("bostrade.strategy")

MIN_CONDITIONS = 3
INSUFFICIENT_DATA = "Insufficient data for analysis"


@dataclass(frozen=True)
class _Condition:
    met: bool
    success: str
    failure: str


def _has_required(ind: IndicatorSnapshot) -> bool:
    return (
        ind.ema_fast is not None
        and ind.ema_slow is not None
        and ind.macd is not None
        and ind.rsi is not None
        and ind.atr is not None
    )


def _tally(side: str, conditions: list[_Condition], ind: IndicatorSnapshot) -> SignalCheck:
    """Passed checks first, then failures; signal when enough passed."""
    passed = [f"✓ {c.success}" for c in conditions if c.met]
    failed = [f"✗ {c.failure}" for c in conditions if not c.met]
    return SignalCheck(
        signal=len(passed) >= MIN_CONDITIONS,
        side=side,
        reasons=passed + failed,
        indicators=ind.to_dict(),
    )


def check_long_conditions(ind: IndicatorSnapshot, config) -> SignalCheck:
    """Evaluate the five long conditions against an ``IndicatorConfig``."""
    if not _has_required(ind):
        return SignalCheck(False, "LONG", [INSUFFICIENT_DATA], ind.to_dict())

    emas = f"EMA{config.ema_fast}: {ind.ema_fast:.2f} vs EMA{config.ema_slow}: {ind.ema_slow:.2f}"
    macd = f"MACD: {ind.macd.macd:.4f} vs signal: {ind.macd.signal:.4f}"
    return _tally("LONG", [
        _Condition(ind.ema_fast > ind.ema_slow,
                   f"Uptrend ({emas})", f"No uptrend ({emas})"),
        _Condition(ind.bullish_breakout,
                   "Bullish breakout detected", "No bullish breakout"),
        _Condition(ind.macd.bullish_cross,
                   f"Bullish MACD cross ({macd})", f"No bullish MACD cross ({macd})"),
        _Condition(ind.rsi < config.rsi_overbought,
                   f"RSI not overbought ({ind.rsi:.2f} < {config.rsi_overbought})",
                   f"RSI overbought ({ind.rsi:.2f} >= {config.rsi_overbought})"),
        _Condition(ind.volume_spike,
                   "Volume spike confirmed", "No volume spike"),
    ], ind)


def check_short_conditions(ind: IndicatorSnapshot, config) -> SignalCheck:
    """Evaluate the five short conditions against an ``IndicatorConfig``."""
    if not _has_required(ind):
        return SignalCheck(False, "SHORT", [INSUFFICIENT_DATA], ind.to_dict())

    emas = f"EMA{config.ema_fast}: {ind.ema_fast:.2f} vs EMA{config.ema_slow}: {ind.ema_slow:.2f}"
    macd = f"MACD: {ind.macd.macd:.4f} vs signal: {ind.macd.signal:.4f}"
    return _tally("SHORT", [
        _Condition(ind.ema_fast < ind.ema_slow,
                   f"Downtrend ({emas})", f"No downtrend ({emas})"),
        _Condition(ind.bearish_breakdown,
                   "Bearish breakdown detected", "No bearish breakdown"),
        _Condition(ind.macd.bearish_cross,
                   f"Bearish MACD cross ({macd})", f"No bearish MACD cross ({macd})"),
        _Condition(ind.rsi > config.rsi_oversold,
                   f"RSI not oversold ({ind.rsi:.2f} > {config.rsi_oversold})",
                   f"RSI oversold ({ind.rsi:.2f} <= {config.rsi_oversold})"),
        _Condition(ind.volume_spike,
                   "Volume spike confirmed", "No volume spike"),
    ], ind)


class TrendBreakoutStrategy:
    """Trend-following breakout on a single timeframe.

    Implements ``StrategyProtocol``.  Stop is the tighter of the trailing
    swing and an ATR stop; target is a multiple of the stop distance.
    """

    name = "trend_breakout"

    def __init__(self) -> None:
        self.last_insight: dict = {}
        self.last_indicators: IndicatorSnapshot = IndicatorSnapshot()

    async def evaluate(self, broker, settings) -> Optional[StrategyResult]:
        """Fetch candles, compute indicators and check both directions."""
        raw = await broker.get_klines(
            settings.symbol, settings.interval, settings.candle_limit,
        )
        candles = to_candle_data(raw)
        ind = compute_indicators(candles, settings.indicators)
        self.last_indicators = ind

        long_check = check_long_conditions(ind, settings.indicators)
        short_check = check_short_conditions(ind, settings.indicators)

        self.last_insight = {
            "strategy": "Trend Breakout",
            "pair": settings.symbol,
            "timeframes": [settings.interval],
            "indicators": ind.to_dict(),
            "long_reasons": long_check.reasons,
            "short_reasons": short_check.reasons,
        }

        for check in (long_check, short_check):
            if not check.signal:
                continue
            risk = settings.risk
            sl = calculate_stop_loss(
                check.side,
                ind.current_price,
                ind.atr,
                swing_low=ind.swing_low,
                swing_high=ind.swing_high,
                atr_multiplier=risk.stop_loss_atr_multiplier,
            )
            tp = calculate_take_profit(
                check.side, ind.current_price, sl, risk.take_profit_multiplier,
            )
            self.last_insight["result"] = f"{check.side.lower()}_signal"
            logger.info("%s signal on %s", check.side, settings.symbol)
            return StrategyResult(
                signal=EntrySignal(
                    direction=check.side,
                    entry_price=ind.current_price,
                    candle_time=candles[-1].time,
                    reason="; ".join(check.reasons),
                ),
                sl=sl,
                tp=tp,
                atr=ind.atr,
            )

        self.last_insight["result"] = "no_signal"
        return None

    def should_exit(self, side: str, indicators: IndicatorSnapshot) -> ExitDecision:
        return macd_exit(side, indicators)
