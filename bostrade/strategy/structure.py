"""Multi-timeframe Break-of-Structure (BOS) tracker.

Turns a higher-timeframe and a lower-timeframe candle stream into a
directional trade proposal.  An entry is only proposed after both time
scales confirm:

    1. Trend        — higher close vs. a long EMA.
    2. Higher BOS   — higher close breaks the structure window in trend
                      direction (newly, the previous close had not).
    3. Zone         — 50 %–61.8 % Fibonacci retracement of that impulse.
    4. Occupancy    — higher close inside the zone (recomputed every tick).
    5. Lower BOS    — same detector on the lower timeframe, trend-aligned,
                      only looked for while price sits in the zone.
    6. Proposal     — entry/stop/target from the lower impulse; locked until
                      :meth:`BOSStructureTracker.reset_state`.
    7. Checklists   — ordered long/short checks with human-readable reasons.

Each step is a pure function ``StrategyState -> StrategyState``; the tracker
only owns the current snapshot.  Nothing here raises on short data — every
insufficiency degrades to "not detected".
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Literal, Optional

from bostrade.models.strategy_settings import BOSConfig, StrategySettings
from bostrade.strategy.indicators import compute_indicators, latest_ema
from bostrade.strategy.models import CandleData, IndicatorSnapshot

logger = logging.getLogger("bostrade.structure")

Direction = Literal["BULLISH", "BEARISH"]
BULLISH: Direction = "BULLISH"
BEARISH: Direction = "BEARISH"

Timeframe = Literal["higher", "lower"]


# ── Structural records ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Impulse:
    """Price run from a swing origin to the breaking extreme."""

    start: float
    end: float
    size: float


@dataclass(frozen=True)
class StructureBreak:
    """A detected break of structure on one timeframe."""

    detected: bool
    type: Direction
    break_level: float
    impulse: Impulse
    timestamp: int
    timeframe: Timeframe
    lookback: int


@dataclass(frozen=True)
class RetracementZone:
    """Band between two Fibonacci retracement levels, always ``low < high``."""

    low: float
    high: float
    type: Direction

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


@dataclass(frozen=True)
class StrategyState:
    """Snapshot of the tracker's structural state."""

    trend: Optional[Direction] = None
    higher_break: Optional[StructureBreak] = None
    retracement_zone: Optional[RetracementZone] = None
    in_retracement_zone: bool = False
    lower_break: Optional[StructureBreak] = None
    entry_proposed: bool = False
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SignalCheck:
    """Outcome of one long/short checklist."""

    signal: bool
    side: Literal["LONG", "SHORT"]
    reasons: list[str] = field(default_factory=list)
    indicators: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one ``analyze()`` call produces."""

    higher_indicators: IndicatorSnapshot
    lower_indicators: IndicatorSnapshot
    long_signal: SignalCheck
    short_signal: SignalCheck
    state: StrategyState
    strategy: str = "BOSStrategy"

    def to_dict(self) -> dict:
        return asdict(self)


# ── Swing / break / zone primitives ─────────────────────────────────────


def find_pivot_low(candles: list[CandleData], window: int = 5) -> float:
    """Return the most recent neighbor-bounded swing low in *candles*.

    A candle is a pivot low when no candle within *window* bars on either
    side has a lower low.  Falls back to the overall minimum low when the
    sequence is too short or holds no pivot.
    """
    for i in range(len(candles) - window - 1, window - 1, -1):
        low = candles[i].low
        if all(c.low >= low for c in candles[i - window:i]) and all(
            c.low >= low for c in candles[i + 1:i + window + 1]
        ):
            return low
    return min(c.low for c in candles)


def find_pivot_high(candles: list[CandleData], window: int = 5) -> float:
    """Mirror of :func:`find_pivot_low` for swing highs."""
    for i in range(len(candles) - window - 1, window - 1, -1):
        high = candles[i].high
        if all(c.high <= high for c in candles[i - window:i]) and all(
            c.high <= high for c in candles[i + 1:i + window + 1]
        ):
            return high
    return max(c.high for c in candles)


def detect_structure_break(
    candles: list[CandleData],
    direction: Optional[Direction],
    lookback: int,
    swing_window: int = 5,
    timeframe: Timeframe = "higher",
) -> Optional[StructureBreak]:
    """Detect a fresh break of structure on the latest candle.

    The last ``lookback + 2`` candles are split into a structure window
    (all but the last two) and a previous/current pair.  For a bullish
    break the current close must be strictly above the window's highest
    high while the previous close is still at or below it; the impulse
    runs from the window's latest pivot low to the current high.  Bearish
    is the mirror image.

    Returns ``None`` when *direction* is ``None``, the sequence is shorter
    than ``lookback + 2`` or no fresh break occurred.
    """
    if direction is None or lookback <= 0 or len(candles) < lookback + 2:
        return None

    current = candles[-1]
    previous = candles[-2]
    window = candles[-(lookback + 2):-2]

    if direction == BULLISH:
        level = max(c.high for c in window)
        if not (current.close > level and previous.close <= level):
            return None
        origin = find_pivot_low(window, swing_window)
        end = current.high
    else:
        level = min(c.low for c in window)
        if not (current.close < level and previous.close >= level):
            return None
        origin = find_pivot_high(window, swing_window)
        end = current.low

    return StructureBreak(
        detected=True,
        type=direction,
        break_level=level,
        impulse=Impulse(start=origin, end=end, size=abs(end - origin)),
        timestamp=current.time,
        timeframe=timeframe,
        lookback=lookback,
    )


def _fib_levels(
    impulse: Impulse, direction: Direction, fib_entry: float, fib_limit: float,
) -> tuple[float, float]:
    """Return the (entry, limit) retracement prices of *impulse*."""
    sign = -1.0 if direction == BULLISH else 1.0
    return (
        impulse.end + sign * impulse.size * fib_entry,
        impulse.end + sign * impulse.size * fib_limit,
    )


def calculate_retracement_zone(
    impulse: Impulse,
    direction: Direction,
    fib_entry: float = 0.5,
    fib_limit: float = 0.618,
) -> RetracementZone:
    """Fibonacci retracement band of *impulse*, normalized to ``low < high``."""
    level_a, level_b = _fib_levels(impulse, direction, fib_entry, fib_limit)
    return RetracementZone(
        low=min(level_a, level_b), high=max(level_a, level_b), type=direction,
    )


def calculate_entry_levels(
    impulse: Impulse, direction: Direction, config: BOSConfig,
) -> tuple[float, float, float]:
    """Return ``(entry, stop_loss, take_profit)`` for a confirmation impulse.

    Entry sits on the ``fib_entry`` level; the stop sits on the
    ``fib_limit`` level pushed a further ``stop_buffer × size`` away from
    entry; the target is ``risk_reward_ratio`` times the risk distance.
    """
    entry, limit = _fib_levels(
        impulse, direction, config.fib_entry, config.fib_limit,
    )
    buffer = impulse.size * config.stop_buffer

    if direction == BULLISH:
        stop_loss = limit - buffer
        take_profit = entry + (entry - stop_loss) * config.risk_reward_ratio
    else:
        stop_loss = limit + buffer
        take_profit = entry - (stop_loss - entry) * config.risk_reward_ratio
    return entry, stop_loss, take_profit


# ── Pipeline steps (pure) ────────────────────────────────────────────────


def _drop_higher_break(state: StrategyState) -> StrategyState:
    """Clear the higher break and its zone; a locked proposal survives."""
    state = replace(
        state,
        higher_break=None,
        retracement_zone=None,
        in_retracement_zone=False,
    )
    if not state.entry_proposed:
        state = replace(state, lower_break=None)
    return state


def step_trend(
    state: StrategyState, higher: list[CandleData], config: BOSConfig,
) -> StrategyState:
    """Classify the higher-timeframe trend from close vs. EMA."""
    ema = latest_ema(higher, config.trend_ema_period)
    trend: Optional[Direction] = None
    if ema is not None:
        close = higher[-1].close
        if close > ema:
            trend = BULLISH
        elif close < ema:
            trend = BEARISH

    state = replace(state, trend=trend)
    if state.higher_break is not None and state.higher_break.type != trend:
        state = _drop_higher_break(state)
    return state


def step_higher_break(
    state: StrategyState, higher: list[CandleData], config: BOSConfig,
) -> StrategyState:
    """Capture a fresh higher-timeframe break; keep the held one otherwise."""
    if state.trend is None:
        return state
    if len(higher) < config.higher_lookback + 2:
        return _drop_higher_break(state)

    fresh = detect_structure_break(
        higher, state.trend, config.higher_lookback,
        config.swing_window, timeframe="higher",
    )
    if fresh is None or fresh == state.higher_break:
        return state

    state = replace(state, higher_break=fresh)
    if not state.entry_proposed:
        state = replace(state, lower_break=None)
    return state


def step_retracement_zone(state: StrategyState, config: BOSConfig) -> StrategyState:
    """Derive the retracement zone from the held higher break."""
    brk = state.higher_break
    if brk is None or not brk.detected:
        return replace(state, retracement_zone=None)
    zone = calculate_retracement_zone(
        brk.impulse, brk.type, config.fib_entry, config.fib_limit,
    )
    return replace(state, retracement_zone=zone)


def step_zone_occupancy(
    state: StrategyState, higher: list[CandleData],
) -> StrategyState:
    """Test the latest higher-timeframe close against the zone."""
    zone = state.retracement_zone
    inside = zone is not None and bool(higher) and zone.contains(higher[-1].close)
    return replace(state, in_retracement_zone=inside)


def step_lower_break(
    state: StrategyState, lower: list[CandleData], config: BOSConfig,
) -> StrategyState:
    """Look for the trend-aligned confirmation break while inside the zone."""
    if not state.in_retracement_zone or state.lower_break is not None:
        return state
    fresh = detect_structure_break(
        lower, state.trend, config.lower_lookback,
        config.swing_window, timeframe="lower",
    )
    if fresh is None:
        return state
    return replace(state, lower_break=fresh)


def step_entry_proposal(state: StrategyState, config: BOSConfig) -> StrategyState:
    """Propose entry/stop/target once, from the lower-timeframe impulse."""
    brk = state.lower_break
    if state.entry_proposed or brk is None or not brk.detected:
        return state
    entry, stop_loss, take_profit = calculate_entry_levels(
        brk.impulse, brk.type, config,
    )
    return replace(
        state,
        entry_proposed=True,
        entry_price=entry,
        stop_loss=stop_loss,
        take_profit=take_profit,
    )


def proposal_is_stale(state: StrategyState) -> bool:
    """True when a locked proposal no longer matches the higher-timeframe setup.

    That is, the higher break behind it is gone or the trend no longer
    points the way the confirmation break did.  The proposal itself stays
    locked; clearing it is the caller's decision.
    """
    if not state.entry_proposed or state.lower_break is None:
        return False
    return state.higher_break is None or state.trend != state.lower_break.type


def run_pipeline(
    state: StrategyState,
    higher: list[CandleData],
    lower: list[CandleData],
    config: BOSConfig,
) -> StrategyState:
    """Apply steps 1–6 in order and return the new state."""
    state = step_trend(state, higher, config)
    state = step_higher_break(state, higher, config)
    state = step_retracement_zone(state, config)
    state = step_zone_occupancy(state, higher)
    state = step_lower_break(state, lower, config)
    return step_entry_proposal(state, config)


# ── Signal checklists ────────────────────────────────────────────────────


def _check_entry(
    state: StrategyState,
    indicators: IndicatorSnapshot,
    side: Literal["LONG", "SHORT"],
) -> SignalCheck:
    direction: Direction = BULLISH if side == "LONG" else BEARISH
    word = "bullish" if side == "LONG" else "bearish"
    base = indicators.to_dict()
    reasons: list[str] = []

    def _fail(message: str) -> SignalCheck:
        reasons.append(f"✗ {message}")
        return SignalCheck(signal=False, side=side, reasons=reasons, indicators=base)

    if state.trend != direction:
        return _fail(f"Higher-timeframe trend is not {word}")
    relation = ">" if side == "LONG" else "<"
    reasons.append(f"✓ Higher-timeframe trend {word} (close {relation} EMA)")

    brk = state.higher_break
    if brk is None or not brk.detected or brk.type != direction:
        return _fail(f"No {word} higher-timeframe BOS")
    reasons.append(f"✓ Higher-timeframe BOS detected (break: {brk.break_level:.2f})")

    zone = state.retracement_zone
    if zone is None:
        return _fail("Higher-timeframe retracement zone not calculated")
    reasons.append(f"✓ Retracement zone: {zone.low:.2f} - {zone.high:.2f}")

    if not state.in_retracement_zone:
        return _fail("Price is not inside the retracement zone")
    reasons.append("✓ Price inside the higher-timeframe retracement zone")

    lower = state.lower_break
    if lower is None or not lower.detected or lower.type != direction:
        return _fail("Waiting for lower-timeframe BOS confirmation")
    reasons.append(f"✓ Lower-timeframe BOS confirmed (break: {lower.break_level:.2f})")

    if not state.entry_proposed:
        return _fail("Lower-timeframe entry zone not calculated")
    reasons.append(
        f"✓ Entry proposed: {state.entry_price:.2f} | "
        f"SL: {state.stop_loss:.2f} | TP: {state.take_profit:.2f}"
    )

    return SignalCheck(
        signal=True,
        side=side,
        reasons=reasons,
        indicators={
            **base,
            "entry_price": state.entry_price,
            "stop_loss": state.stop_loss,
            "take_profit": state.take_profit,
        },
    )


def check_long_entry(
    state: StrategyState, indicators: IndicatorSnapshot,
) -> SignalCheck:
    """Walk the long checklist, stopping at the first unmet condition."""
    return _check_entry(state, indicators, "LONG")


def check_short_entry(
    state: StrategyState, indicators: IndicatorSnapshot,
) -> SignalCheck:
    """Walk the short checklist, stopping at the first unmet condition."""
    return _check_entry(state, indicators, "SHORT")


# ── Tracker ──────────────────────────────────────────────────────────────


class BOSStructureTracker:
    """Owns one symbol's :class:`StrategyState` across polling ticks.

    ``analyze()`` calls must not overlap; the engine runs ticks strictly
    one after another.
    """

    name = "BOSStrategy"

    def __init__(self) -> None:
        self._state = StrategyState()

    @property
    def state(self) -> StrategyState:
        return self._state

    def analyze(
        self,
        higher_candles: list[CandleData],
        lower_candles: list[CandleData],
        settings: Optional[StrategySettings] = None,
    ) -> AnalysisResult:
        """Advance the structural state by one tick and assemble signals."""
        if settings is None:
            settings = StrategySettings()

        higher_ind = compute_indicators(higher_candles, settings.indicators)
        lower_ind = compute_indicators(lower_candles, settings.indicators)

        previous = self._state
        self._state = run_pipeline(
            previous, higher_candles, lower_candles, settings.bos,
        )
        self._log_transitions(previous, self._state)

        return AnalysisResult(
            higher_indicators=higher_ind,
            lower_indicators=lower_ind,
            long_signal=check_long_entry(self._state, higher_ind),
            short_signal=check_short_entry(self._state, higher_ind),
            state=self._state,
            strategy=self.name,
        )

    def reset_state(self) -> None:
        """Forget all structure; the next ``analyze()`` starts from scratch."""
        self._state = StrategyState()
        logger.info("BOS state reset")

    @staticmethod
    def _log_transitions(before: StrategyState, after: StrategyState) -> None:
        if after.trend != before.trend:
            logger.info("Trend %s -> %s", before.trend, after.trend)
        if after.higher_break is not None and after.higher_break != before.higher_break:
            logger.info(
                "Higher-timeframe %s BOS at %.2f (impulse %.2f -> %.2f)",
                after.higher_break.type,
                after.higher_break.break_level,
                after.higher_break.impulse.start,
                after.higher_break.impulse.end,
            )
        elif before.higher_break is not None and after.higher_break is None:
            logger.info("Higher-timeframe BOS invalidated")
        if after.in_retracement_zone and not before.in_retracement_zone:
            zone = after.retracement_zone
            logger.info("Price entered retracement zone %.2f - %.2f", zone.low, zone.high)
        if after.lower_break is not None and before.lower_break is None:
            logger.info(
                "Lower-timeframe %s BOS confirmed at %.2f",
                after.lower_break.type, after.lower_break.break_level,
            )
        if after.entry_proposed and not before.entry_proposed:
            logger.info(
                "Entry proposed: %.2f | SL %.2f | TP %.2f",
                after.entry_price, after.stop_loss, after.take_profit,
            )
