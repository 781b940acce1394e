"""Strategy protocol and shared result types.

Defines the interface that all strategies must implement, plus the
default indicator-based exit rule they share.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from bostrade.strategy.models import CandleData, EntrySignal, IndicatorSnapshot


@dataclass(frozen=True)
class StrategyResult:
    """Bundles a signal with its risk parameters.

    Returned by strategies so the engine doesn't need to know
    which indicator or structure method was used.
    """

    signal: EntrySignal
    sl: float
    tp: float
    atr: Optional[float] = None


@dataclass(frozen=True)
class ExitDecision:
    """Whether an open position should be closed, and why."""

    exit: bool
    reason: str = ""


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all trading strategies must satisfy.

    Implementations also keep ``last_insight`` (a dict for the status API)
    and ``last_indicators`` (the primary timeframe snapshot) up to date on
    every ``evaluate`` call.
    """

    name: str
    last_insight: dict
    last_indicators: IndicatorSnapshot

    async def evaluate(self, broker, settings) -> Optional[StrategyResult]:
        """Evaluate market conditions and return a trade setup or None."""
        ...

    def should_exit(self, side: str, indicators: IndicatorSnapshot) -> ExitDecision:
        """Decide whether an open *side* position should be closed."""
        ...


def macd_exit(side: str, indicators: IndicatorSnapshot) -> ExitDecision:
    """Exit a LONG on a bearish MACD cross and a SHORT on a bullish one."""
    macd = indicators.macd
    if macd is None:
        return ExitDecision(exit=False)
    if side == "LONG" and macd.bearish_cross:
        return ExitDecision(exit=True, reason="Bearish MACD cross while LONG")
    if side == "SHORT" and macd.bullish_cross:
        return ExitDecision(exit=True, reason="Bullish MACD cross while SHORT")
    return ExitDecision(exit=False)


def to_candle_data(raw: list) -> list[CandleData]:
    """Convert broker candles into ``CandleData`` for strategy use."""
    return [
        CandleData(c.time, c.open, c.high, c.low, c.close, c.volume)
        for c in raw
    ]
