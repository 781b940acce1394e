"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar for strategy consumption."""

    time: int  # open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class MACDSnapshot:
    """Latest MACD values plus crossover flags."""

    macd: float
    signal: float
    histogram: float
    bullish_cross: bool
    bearish_cross: bool


@dataclass(frozen=True)
class IndicatorSnapshot:
    """All indicator values for one timeframe at the latest candle.

    Numeric fields are ``None`` when the candle history is too short for
    the requested period.  Boolean flags default to ``False``.
    """

    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    ema_long: Optional[float] = None
    macd: Optional[MACDSnapshot] = None
    rsi: Optional[float] = None
    atr: Optional[float] = None
    avg_volume: Optional[float] = None
    volume_spike: bool = False
    swing_low: Optional[float] = None
    swing_high: Optional[float] = None
    bullish_breakout: bool = False
    bearish_breakdown: bool = False
    current_price: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EntrySignal:
    """A trade entry signal produced by a strategy."""

    direction: str  # "LONG" or "SHORT"
    entry_price: float
    candle_time: int
    reason: str
