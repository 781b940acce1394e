"""BOSTrade — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from bostrade.models.strategy_settings import (
    BOSConfig,
    IndicatorConfig,
    RiskSettings,
    StrategySettings,
)


_REQUIRED_VARS = [
    "BINGX_API_KEY",
    "BINGX_API_SECRET",
]

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    bingx_api_key: str
    bingx_api_secret: str
    test_mode: bool
    symbol: str
    strategy: str
    higher_interval: str
    lower_interval: str
    interval: str
    candle_limit: int
    poll_interval_seconds: int
    risk_pct: float
    max_trades_per_day: int
    min_position_size: float
    max_position_size: float
    trading_hours_enabled: bool
    trading_start_utc: int
    trading_end_utc: int
    log_level: str
    log_file: str
    trades_file: str
    health_port: int
    bos_trend_ema: int = 50
    bos_higher_lookback: int = 20
    bos_lower_lookback: int = 10

    @property
    def bingx_base_url(self) -> str:
        """Return the BingX API base URL: VST (demo) in test mode."""
        if self.test_mode:
            return "https://open-api-vst.bingx.com"
        return "https://open-api.bingx.com"

    def in_trading_hours(self, hour_utc: int) -> bool:
        """True when *hour_utc* falls inside the configured trading window.

        Always True when the filter is disabled.  A window whose start is
        after its end wraps past midnight.
        """
        if not self.trading_hours_enabled:
            return True
        start, end = self.trading_start_utc, self.trading_end_utc
        if start <= end:
            return start <= hour_utc < end
        return hour_utc >= start or hour_utc < end

    def strategy_settings(self) -> StrategySettings:
        """Build the validated settings bundle the strategies consume."""
        return StrategySettings(
            symbol=self.symbol,
            interval=self.interval,
            higher_interval=self.higher_interval,
            lower_interval=self.lower_interval,
            candle_limit=self.candle_limit,
            indicators=IndicatorConfig(),
            bos=BOSConfig(
                trend_ema_period=self.bos_trend_ema,
                higher_lookback=self.bos_higher_lookback,
                lower_lookback=self.bos_lower_lookback,
            ),
            risk=RiskSettings(
                risk_pct=self.risk_pct,
                max_trades_per_day=self.max_trades_per_day,
                min_position_size=self.min_position_size,
                max_position_size=self.max_position_size,
            ),
        )


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Config(
        bingx_api_key=os.environ["BINGX_API_KEY"],
        bingx_api_secret=os.environ["BINGX_API_SECRET"],
        test_mode=_env_bool("TEST_MODE", "true"),
        symbol=os.environ.get("SYMBOL", "BTC-USDT"),
        strategy=os.environ.get("STRATEGY", "bos"),
        higher_interval=os.environ.get("HIGHER_INTERVAL", "4h"),
        lower_interval=os.environ.get("LOWER_INTERVAL", "5m"),
        interval=os.environ.get("INTERVAL", "15m"),
        candle_limit=int(os.environ.get("CANDLE_LIMIT", "100")),
        poll_interval_seconds=int(os.environ.get("POLL_INTERVAL_SECONDS", "120")),
        risk_pct=float(os.environ.get("RISK_PCT", "2.0")),
        max_trades_per_day=int(os.environ.get("MAX_TRADES_PER_DAY", "3")),
        min_position_size=float(os.environ.get("MIN_POSITION_SIZE", "0.001")),
        max_position_size=float(os.environ.get("MAX_POSITION_SIZE", "1.0")),
        trading_hours_enabled=_env_bool("TRADING_HOURS_ENABLED", "false"),
        trading_start_utc=int(os.environ.get("TRADING_START_UTC", "0")),
        trading_end_utc=int(os.environ.get("TRADING_END_UTC", "24")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_file=os.environ.get("LOG_FILE", "logs/bot.log"),
        trades_file=os.environ.get("TRADES_FILE", "logs/trades.ndjson"),
        health_port=int(os.environ.get("HEALTH_PORT", "8080")),
        bos_trend_ema=int(os.environ.get("BOS_TREND_EMA", "50")),
        bos_higher_lookback=int(os.environ.get("BOS_HIGHER_LOOKBACK", "20")),
        bos_lower_lookback=int(os.environ.get("BOS_LOWER_LOOKBACK", "10")),
    )
