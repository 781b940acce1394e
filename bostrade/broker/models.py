"""Broker data models — typed representations of BingX swap API objects."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Candle:
    """A single candlestick bar."""

    time: int  # open time, epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Balance:
    """Margin balance of one asset."""

    asset: str
    balance: float
    available_margin: float


@dataclass(frozen=True)
class Position:
    """An open perpetual-swap position."""

    symbol: str
    side: str  # "LONG" or "SHORT"
    size: float
    entry_price: float
    unrealized_profit: float
    leverage: float


@dataclass(frozen=True)
class OrderResult:
    """Outcome of an order request."""

    success: bool
    order_id: Optional[str] = None
    symbol: str = ""
    side: str = ""
    quantity: float = 0.0
    error: Optional[str] = None
