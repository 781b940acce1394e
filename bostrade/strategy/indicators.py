"""Technical indicators — EMA, MACD, RSI, ATR, volume, swings, breakouts.

Pure functions, no I/O.  Series helpers raise ``ValueError`` on short input;
the ``latest``-style helpers and :func:`compute_indicators` return ``None``
(or ``False`` for flags) instead, so a strategy never fails on thin history.
"""

from typing import Optional

from bostrade.strategy.models import CandleData, IndicatorSnapshot, MACDSnapshot


# ── EMA ──────────────────────────────────────────────────────────────────


def calculate_ema(values: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = value × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The series is seeded with the first value, so the returned list has
    the same length as *values*.

    Raises ``ValueError`` if fewer than *period* values are provided.
    """
    if period <= 0:
        raise ValueError(f"EMA period must be positive, got {period}")
    if len(values) < period:
        raise ValueError(
            f"Need at least {period} values for EMA({period}), "
            f"got {len(values)}"
        )

    k = 2.0 / (period + 1)
    ema: list[float] = [values[0]]
    for value in values[1:]:
        ema.append(value * k + ema[-1] * (1 - k))
    return ema


def latest_ema(candles: list[CandleData], period: int) -> Optional[float]:
    """Return the most recent EMA of closes, or ``None`` on short history."""
    if period <= 0 or len(candles) < period:
        return None
    return calculate_ema([c.close for c in candles], period)[-1]


# ── MACD ─────────────────────────────────────────────────────────────────


def calculate_macd(
    candles: list[CandleData],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> Optional[MACDSnapshot]:
    """Calculate MACD line, signal line, histogram and crossover flags.

    MACD line = EMA(fast) − EMA(slow); the signal line is the EMA(signal)
    of the MACD line from the point the slow EMA has a full window.

    A bullish cross is flagged when the previous bar had MACD ≤ signal and
    the latest bar has MACD > signal.  The bearish cross is the mirror.

    Returns ``None`` when fewer than ``slow + signal`` candles are given.
    """
    if len(candles) < slow + signal:
        return None

    closes = [c.close for c in candles]
    fast_ema = calculate_ema(closes, fast)
    slow_ema = calculate_ema(closes, slow)

    # Only use MACD points once the slow EMA has seen a full window
    macd_line = [f - s for f, s in zip(fast_ema, slow_ema)][slow - 1:]
    signal_line = calculate_ema(macd_line, signal)

    cur_macd, prev_macd = macd_line[-1], macd_line[-2]
    cur_sig, prev_sig = signal_line[-1], signal_line[-2]

    return MACDSnapshot(
        macd=cur_macd,
        signal=cur_sig,
        histogram=cur_macd - cur_sig,
        bullish_cross=prev_macd <= prev_sig and cur_macd > cur_sig,
        bearish_cross=prev_macd >= prev_sig and cur_macd < cur_sig,
    )


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(candles: list[CandleData], period: int = 14) -> Optional[float]:
    """Calculate Wilder's Relative Strength Index for the latest candle.

    Algorithm (Wilder-smoothed):
        1. delta = close[i] - close[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns 100 when the average loss is zero and ``None`` when fewer than
    ``period + 1`` candles are available.
    """
    if period <= 0 or len(candles) < period + 1:
        return None

    closes = [c.close for c in candles]
    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(candles: list[CandleData], period: int = 14) -> Optional[float]:
    """Calculate the Average True Range over *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` candles (need a previous close for TR)
    and returns ``None`` otherwise.
    """
    if period <= 0 or len(candles) < period + 1:
        return None

    true_ranges: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        true_ranges.append(
            max(high - low, abs(high - prev_close), abs(low - prev_close))
        )

    recent = true_ranges[-period:]
    return sum(recent) / len(recent)


# ── Volume ───────────────────────────────────────────────────────────────


def calculate_average_volume(
    candles: list[CandleData], period: int = 20,
) -> Optional[float]:
    """Mean volume of the last *period* candles."""
    if period <= 0 or len(candles) < period:
        return None
    return sum(c.volume for c in candles[-period:]) / period


def is_volume_spike(
    candles: list[CandleData],
    period: int = 20,
    multiplier: float = 1.3,
) -> bool:
    """Return True when the latest volume exceeds the prior average × *multiplier*.

    The average is taken over the *period* candles before the latest one.
    """
    if len(candles) < period + 1:
        return False
    avg_volume = calculate_average_volume(candles[:-1], period)
    if avg_volume is None:
        return False
    return candles[-1].volume > avg_volume * multiplier


# ── Swings (trailing min/max) ────────────────────────────────────────────


def find_swing_low(candles: list[CandleData], lookback: int = 10) -> Optional[float]:
    """Lowest low of the trailing *lookback* candles."""
    if lookback <= 0 or len(candles) < lookback:
        return None
    return min(c.low for c in candles[-lookback:])


def find_swing_high(candles: list[CandleData], lookback: int = 10) -> Optional[float]:
    """Highest high of the trailing *lookback* candles."""
    if lookback <= 0 or len(candles) < lookback:
        return None
    return max(c.high for c in candles[-lookback:])


# ── Breakouts ────────────────────────────────────────────────────────────


def check_bullish_breakout(
    candles: list[CandleData],
    lookback: int = 10,
    tolerance: float = 0.002,
) -> bool:
    """Check if the latest close broke the resistance of the prior window.

    Resistance is the highest high of the *lookback* candles before the
    latest.  A close above it counts, and so does a close within
    *tolerance* (fraction) below it when the previous close had not yet
    broken the level.
    """
    if len(candles) < lookback + 1:
        return False

    current_close = candles[-1].close
    previous_close = candles[-2].close
    resistance = max(c.high for c in candles[-lookback - 1:-1])

    return current_close > resistance or (
        previous_close <= resistance
        and current_close >= resistance * (1 - tolerance)
    )


def check_bearish_breakdown(
    candles: list[CandleData],
    lookback: int = 10,
    tolerance: float = 0.002,
) -> bool:
    """Mirror of :func:`check_bullish_breakout` for support breaks."""
    if len(candles) < lookback + 1:
        return False

    current_close = candles[-1].close
    previous_close = candles[-2].close
    support = min(c.low for c in candles[-lookback - 1:-1])

    return current_close < support or (
        previous_close >= support
        and current_close <= support * (1 + tolerance)
    )


# ── Snapshot ─────────────────────────────────────────────────────────────


def compute_indicators(candles: list[CandleData], config) -> IndicatorSnapshot:
    """Compute every indicator for *candles* using an ``IndicatorConfig``."""
    if not candles:
        return IndicatorSnapshot()

    return IndicatorSnapshot(
        ema_fast=latest_ema(candles, config.ema_fast),
        ema_slow=latest_ema(candles, config.ema_slow),
        ema_long=latest_ema(candles, config.ema_long),
        macd=calculate_macd(
            candles, config.macd_fast, config.macd_slow, config.macd_signal,
        ),
        rsi=calculate_rsi(candles, config.rsi_period),
        atr=calculate_atr(candles, config.atr_period),
        avg_volume=calculate_average_volume(candles, config.volume_period),
        volume_spike=is_volume_spike(
            candles, config.volume_period, config.volume_spike_multiplier,
        ),
        swing_low=find_swing_low(candles, config.swing_lookback),
        swing_high=find_swing_high(candles, config.swing_lookback),
        bullish_breakout=check_bullish_breakout(
            candles, config.breakout_lookback, config.breakout_tolerance,
        ),
        bearish_breakdown=check_bearish_breakdown(
            candles, config.breakout_lookback, config.breakout_tolerance,
        ),
        current_price=candles[-1].close,
    )
