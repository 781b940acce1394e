"""Strategy registry — maps strategy names to classes.

Used by the CLI to instantiate the strategy named by ``STRATEGY``.
"""

from bostrade.strategy.base import StrategyProtocol
from bostrade.strategy.bos_strategy import BOSStrategy
from bostrade.strategy.trend_breakout import TrendBreakoutStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "bos": BOSStrategy,
    "trend_breakout": TrendBreakoutStrategy,
}


def get_strategy(name: str) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]()
