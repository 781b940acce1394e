"""BingX perpetual-swap REST API async client.

Handles all communication with BingX: kline fetching, balance and position
queries, order placement and leverage changes.  Every request is signed
with HMAC-SHA256 over the sorted query string.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import time
from typing import Optional

import httpx

from bostrade.broker.models import Balance, Candle, OrderResult, Position
from bostrade.config import Config

logger = logging.getLogger("bostrade.broker")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_KLINES_PATH = "/openApi/swap/v3/quote/klines"
_BALANCE_PATH = "/openApi/swap/v3/user/balance"
_POSITIONS_PATH = "/openApi/swap/v2/user/positions"
_ORDER_PATH = "/openApi/swap/v2/trade/order"
_LEVERAGE_PATH = "/openApi/swap/v2/trade/leverage"

_TEST_MODE_BALANCE = Balance(asset="USDT", balance=100.0, available_margin=100.0)


def build_query_string(params: dict) -> str:
    """Join *params* as ``key=value`` pairs sorted by key."""
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def sign(params: dict, secret: str) -> str:
    """Return the hex HMAC-SHA256 signature of the sorted query string."""
    return hmac.new(
        secret.encode("utf-8"),
        build_query_string(params).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class BingXClient:
    """Async client wrapping the BingX perpetual-swap REST API."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.bingx_base_url
        self._api_key = config.bingx_api_key
        self._api_secret = config.bingx_api_secret
        self._test_mode = config.test_mode
        self._headers = {"X-BX-APIKEY": self._api_key}

    @property
    def test_mode(self) -> bool:
        return self._test_mode

    @staticmethod
    def _timestamp_ms() -> int:
        return int(time.time() * 1000)

    def _signed_params(self, params: Optional[dict] = None) -> list[tuple[str, str]]:
        """Add timestamp + signature and return the sorted query pairs."""
        full = {**(params or {}), "timestamp": self._timestamp_ms()}
        signature = sign(full, self._api_secret)
        pairs = [(key, str(full[key])) for key in sorted(full)]
        pairs.append(("signature", signature))
        return pairs

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
    ) -> dict:
        """Execute a signed request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.  Returns the
        decoded JSON body.
        """
        url = f"{self._base_url}{path}"
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        params=self._signed_params(params),
                        timeout=30.0,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "BingX %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), path, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "BingX %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), path, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        # All retries exhausted, raise the last error
        raise last_exc  # type: ignore[misc]

    # ── Market data ──────────────────────────────────────────────────────

    async def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int = 100,
    ) -> list[Candle]:
        """Fetch candlestick data.

        Args:
            symbol: e.g. ``"BTC-USDT"``
            interval: e.g. ``"4h"``, ``"5m"``
            limit: number of candles to request

        Returns:
            List of ``Candle`` objects ordered oldest-first, or an empty list
            when the exchange reports an error.
        """
        data = await self._request_with_retry(
            "get", _KLINES_PATH,
            {"symbol": symbol, "interval": interval, "limit": limit},
        )
        if data.get("code") != 0 or not data.get("data"):
            logger.error("Klines request failed: %s", data.get("msg"))
            return []

        candles = [
            Candle(
                time=int(k["time"]),
                open=float(k["open"]),
                high=float(k["high"]),
                low=float(k["low"]),
                close=float(k["close"]),
                volume=float(k["volume"]),
            )
            for k in data["data"]
        ]
        candles.sort(key=lambda c: c.time)
        return candles

    # ── Account ──────────────────────────────────────────────────────────

    async def get_balance(self) -> Balance:
        """Return the USDT margin balance (a fixed 100 USDT in test mode)."""
        if self._test_mode:
            return _TEST_MODE_BALANCE

        data = await self._request_with_retry("get", _BALANCE_PATH)
        if data.get("code") != 0 or not data.get("data"):
            logger.error("Balance request failed: %s", data.get("msg"))
            return Balance(asset="USDT", balance=0.0, available_margin=0.0)

        entries = data["data"]
        if isinstance(entries, dict):
            entries = [entries.get("balance", entries)]
        usdt = next((b for b in entries if b.get("asset") == "USDT"), {})
        return Balance(
            asset="USDT",
            balance=float(usdt.get("balance", 0)),
            available_margin=float(usdt.get("availableMargin", 0)),
        )

    async def get_positions(self, symbol: str) -> list[Position]:
        """Return the open positions for *symbol*."""
        data = await self._request_with_retry(
            "get", _POSITIONS_PATH, {"symbol": symbol},
        )
        if data.get("code") != 0 or not data.get("data"):
            return []

        return [
            Position(
                symbol=p["symbol"],
                side=p["positionSide"],
                size=float(p["positionAmt"]),
                entry_price=float(p["avgPrice"]),
                unrealized_profit=float(p.get("unrealizedProfit", 0)),
                leverage=float(p.get("leverage", 1)),
            )
            for p in data["data"]
        ]

    # ── Orders ───────────────────────────────────────────────────────────

    async def place_order(
        self,
        symbol: str,
        side: str,
        quantity: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> OrderResult:
        """Place a market order, attaching SL/TP outside test mode.

        Args:
            symbol: e.g. ``"BTC-USDT"``
            side: ``"BUY"`` or ``"SELL"``
            quantity: Size in base-asset units.
            stop_loss: Optional stop price (``STOP_MARKET``).
            take_profit: Optional target price (``TAKE_PROFIT_MARKET``).

        Returns:
            ``OrderResult``; HTTP and exchange errors are reported through
            ``success=False`` rather than raised.
        """
        side = side.upper()
        params: dict = {
            "symbol": symbol,
            "side": side,
            "positionSide": "LONG" if side == "BUY" else "SHORT",
            "type": "MARKET",
            "quantity": quantity,
        }
        if not self._test_mode:
            if take_profit is not None:
                params["takeProfit"] = json.dumps({
                    "type": "TAKE_PROFIT_MARKET",
                    "stopPrice": float(take_profit),
                    "price": float(take_profit),
                    "workingType": "MARK_PRICE",
                })
            if stop_loss is not None:
                params["stopLoss"] = json.dumps({
                    "type": "STOP_MARKET",
                    "stopPrice": float(stop_loss),
                    "price": float(stop_loss),
                    "workingType": "MARK_PRICE",
                })

        try:
            data = await self._request_with_retry("post", _ORDER_PATH, params)
        except httpx.HTTPError as exc:
            logger.error("Order request failed: %s", exc)
            return OrderResult(success=False, symbol=symbol, side=side, error=str(exc))

        if data.get("code") == 0 and data.get("data"):
            order = data["data"].get("order", {})
            return OrderResult(
                success=True,
                order_id=str(order.get("orderId")),
                symbol=symbol,
                side=side,
                quantity=quantity,
            )
        logger.error("Order rejected: %s", data.get("msg"))
        return OrderResult(
            success=False, symbol=symbol, side=side, error=data.get("msg"),
        )

    async def close_position(
        self, symbol: str, side: str, quantity: float,
    ) -> OrderResult:
        """Close a position with an opposite-side market order."""
        close_side = "SELL" if side == "LONG" else "BUY"
        return await self.place_order(symbol, close_side, quantity)

    async def set_leverage(self, symbol: str, leverage: int) -> bool:
        """Set leverage for *symbol*; returns True on success."""
        try:
            data = await self._request_with_retry(
                "post", _LEVERAGE_PATH,
                {"symbol": symbol, "leverage": str(leverage), "side": "BOTH"},
            )
        except httpx.HTTPError as exc:
            logger.error("Leverage request failed: %s", exc)
            return False
        return data.get("code") == 0
