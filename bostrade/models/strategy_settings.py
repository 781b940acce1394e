"""Strategy settings dataclasses.

Groups the indicator periods, BOS structure parameters and risk limits that
the strategies and the engine consume.  Every group validates itself on
construction so a bad ``.env`` fails at startup instead of producing
silently wrong zones.
"""

from dataclasses import dataclass, field


class InvalidConfigurationError(ValueError):
    """Raised when a settings group holds values the strategy cannot use."""


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class IndicatorConfig:
    """Periods and thresholds for the indicator snapshot."""

    ema_fast: int = 20
    ema_slow: int = 50
    ema_long: int = 200
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    atr_period: int = 14
    volume_period: int = 20
    volume_spike_multiplier: float = 1.3
    swing_lookback: int = 10
    breakout_lookback: int = 10
    breakout_tolerance: float = 0.002

    def __post_init__(self) -> None:
        for name in (
            "ema_fast", "ema_slow", "ema_long", "macd_fast", "macd_slow",
            "macd_signal", "rsi_period", "atr_period", "volume_period",
            "swing_lookback", "breakout_lookback",
        ):
            _require_positive(name, getattr(self, name))
        if self.macd_fast >= self.macd_slow:
            raise InvalidConfigurationError(
                f"macd_fast ({self.macd_fast}) must be below "
                f"macd_slow ({self.macd_slow})"
            )
        if not 0 <= self.rsi_oversold < self.rsi_overbought <= 100:
            raise InvalidConfigurationError(
                "RSI thresholds must satisfy 0 <= oversold < overbought <= 100"
            )
        if self.breakout_tolerance < 0:
            raise InvalidConfigurationError(
                f"breakout_tolerance must be >= 0, got {self.breakout_tolerance}"
            )


@dataclass(frozen=True)
class BOSConfig:
    """Parameters of the multi-timeframe Break-of-Structure tracker.

    ``trend_ema_period`` defaults to 50 rather than 200 because the exchange
    caps how many higher-timeframe candles one request returns.
    """

    trend_ema_period: int = 50
    higher_lookback: int = 20
    lower_lookback: int = 10
    swing_window: int = 5
    fib_entry: float = 0.5
    fib_limit: float = 0.618
    stop_buffer: float = 0.05
    risk_reward_ratio: float = 2.0

    def __post_init__(self) -> None:
        for name in (
            "trend_ema_period", "higher_lookback", "lower_lookback",
            "swing_window", "risk_reward_ratio",
        ):
            _require_positive(name, getattr(self, name))
        if not 0 < self.fib_entry < self.fib_limit < 1:
            raise InvalidConfigurationError(
                "Fibonacci ratios must satisfy 0 < fib_entry < fib_limit < 1, "
                f"got {self.fib_entry} / {self.fib_limit}"
            )
        if self.stop_buffer < 0:
            raise InvalidConfigurationError(
                f"stop_buffer must be >= 0, got {self.stop_buffer}"
            )


@dataclass(frozen=True)
class RiskSettings:
    """Position sizing and trade-limit parameters."""

    risk_pct: float = 2.0
    take_profit_multiplier: float = 2.0
    stop_loss_atr_multiplier: float = 1.0
    max_trades_per_day: int = 3
    min_position_size: float = 0.001
    max_position_size: float = 1.0
    leverage: float = 1.0
    min_balance: float = 10.0

    def __post_init__(self) -> None:
        for name in (
            "risk_pct", "take_profit_multiplier", "stop_loss_atr_multiplier",
            "max_trades_per_day", "leverage",
        ):
            _require_positive(name, getattr(self, name))
        if not 0 <= self.min_position_size <= self.max_position_size:
            raise InvalidConfigurationError(
                "Position size limits must satisfy 0 <= min <= max, got "
                f"{self.min_position_size} / {self.max_position_size}"
            )


@dataclass(frozen=True)
class StrategySettings:
    """Everything a strategy evaluation needs besides candle data."""

    symbol: str = "BTC-USDT"
    interval: str = "15m"
    higher_interval: str = "4h"
    lower_interval: str = "5m"
    candle_limit: int = 100
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    bos: BOSConfig = field(default_factory=BOSConfig)
    risk: RiskSettings = field(default_factory=RiskSettings)

    def __post_init__(self) -> None:
        _require_positive("candle_limit", self.candle_limit)
