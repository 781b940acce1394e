"""Multi-timeframe Break-of-Structure strategy.

Implements ``StrategyProtocol`` on top of :class:`BOSStructureTracker`:
fetches the higher and lower timeframe candles, advances the tracker one
tick and turns a passing long/short checklist into a ``StrategyResult``
with the tracker's proposed entry, stop and target.
"""

import logging
from typing import Optional

from bostrade.strategy.base import ExitDecision, StrategyResult, macd_exit, to_candle_data
from bostrade.strategy.models import EntrySignal, IndicatorSnapshot
from bostrade.strategy.structure import AnalysisResult, BOSStructureTracker, proposal_is_stale

logger = logging.getLogger("bostrade.strategy")


class BOSStrategy:
    """Higher-timeframe BOS + retracement, lower-timeframe confirmation.

    Flow:
        1. Fetch higher (e.g. 4h) and lower (e.g. 5m) candles.
        2. ``tracker.analyze()`` → state + long/short checklists.
        3. If a checklist passes → ``StrategyResult`` at the proposed levels.

    The tracker state survives between calls; the engine calls
    :meth:`reset_state` once the proposal has been traded or abandoned.
    """

    name = "bos"

    def __init__(self, tracker: Optional[BOSStructureTracker] = None) -> None:
        self.tracker = tracker or BOSStructureTracker()
        self.last_insight: dict = {}
        self.last_indicators: IndicatorSnapshot = IndicatorSnapshot()
        self.last_analysis: Optional[AnalysisResult] = None

    async def evaluate(self, broker, settings) -> Optional[StrategyResult]:
        """Run one BOS tick.

        Args:
            broker: A ``BingXClient`` (or compatible duck-type / mock).
            settings: ``StrategySettings`` for symbol, intervals and params.

        Returns:
            ``StrategyResult`` when every long or short check passes,
            else ``None``.
        """
        higher = to_candle_data(
            await broker.get_klines(
                settings.symbol, settings.higher_interval, settings.candle_limit,
            )
        )
        lower = to_candle_data(
            await broker.get_klines(
                settings.symbol, settings.lower_interval, settings.candle_limit,
            )
        )

        analysis = self.tracker.analyze(higher, lower, settings)
        if proposal_is_stale(analysis.state):
            logger.info(
                "Untraded %s proposal invalidated (trend %s), looking for a new setup",
                analysis.state.lower_break.type, analysis.state.trend,
            )
            self.tracker.reset_state()
            analysis = self.tracker.analyze(higher, lower, settings)
        self.last_analysis = analysis
        self.last_indicators = analysis.higher_indicators

        state = analysis.state
        self.last_insight = {
            "strategy": "BOS Multi-Timeframe",
            "pair": settings.symbol,
            "timeframes": [settings.higher_interval, settings.lower_interval],
            "checks": {
                "trend": state.trend is not None,
                "higher_bos": state.higher_break is not None,
                "retracement_zone": state.retracement_zone is not None,
                "in_zone": state.in_retracement_zone,
                "lower_bos": state.lower_break is not None,
                "entry_proposed": state.entry_proposed,
            },
            "state": state.to_dict(),
            "long_reasons": analysis.long_signal.reasons,
            "short_reasons": analysis.short_signal.reasons,
        }

        for check, direction in (
            (analysis.long_signal, "LONG"),
            (analysis.short_signal, "SHORT"),
        ):
            if not check.signal:
                continue
            self.last_insight["result"] = f"{direction.lower()}_signal"
            candle_time = higher[-1].time if higher else 0
            return StrategyResult(
                signal=EntrySignal(
                    direction=direction,
                    entry_price=state.entry_price,
                    candle_time=candle_time,
                    reason="; ".join(check.reasons),
                ),
                sl=state.stop_loss,
                tp=state.take_profit,
                atr=analysis.higher_indicators.atr,
            )

        self.last_insight["result"] = "no_signal"
        return None

    def should_exit(self, side: str, indicators: IndicatorSnapshot) -> ExitDecision:
        return macd_exit(side, indicators)

    def reset_state(self) -> None:
        """Clear the tracker so the next tick looks for a new setup."""
        self.tracker.reset_state()
