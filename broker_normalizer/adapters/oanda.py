"""
Broker Normalizer - OANDA v20 Adapter.

============================================================
PURPOSE
============================================================
Caller-facing operations for the OANDA v20 REST API.

Each operation issues a raw request (or walks the transaction
pager), then hands the payload to the normalizers / order state
interpreter and returns canonical entities.

FEATURES:
- Markets loaded once into the market registry
- Order requests with broker precision and signed units
- Full transaction history via the pager
- Order book reconstruction for supported instruments

CRITICAL CONSTRAINTS:
- Sequential awaits only, no retries
- Broker errors surface as BrokerError subclasses

============================================================
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config import (
    FETCH_MY_TRADES_CLOSED_TRADES,
    FETCH_MY_TRADES_TRANSACTIONS,
    MAX_CANDLES_PER_REQUEST,
    OandaConfig,
)
from ..errors import (
    ArgumentsRequired,
    BadRequest,
    BadResponse,
    InvalidOrder,
    NotSupported,
)
from ..normalizers import (
    filter_by_since_limit,
    parse_balance,
    parse_candle,
    parse_funding_transaction,
    parse_ledger,
    parse_market,
    parse_positions,
    parse_ticker,
    parse_trades,
    safe_string,
    safe_value,
)
from ..order_interpreter import parse_order, parse_orders
from ..orderbook import reconstruct_order_book
from ..pager import TransactionPager
from ..precise import string_neg, to_precision
from ..registry import MarketRegistry
from ..tokens import ORDER_TYPE
from ..types import (
    Balance,
    Candle,
    CanonicalOrder,
    CanonicalPosition,
    FundingTransaction,
    LedgerEntry,
    Market,
    OrderBook,
    OrderSide,
    Ticker,
    Trade,
)
from .base import BrokerAdapter, Transport
from .logging_utils import AdapterLogger
from .transport import AiohttpTransport


# ============================================================
# ENDPOINTS
# ============================================================

INSTRUMENTS = "accounts/{accountID}/instruments"
SUMMARY = "accounts/{accountID}/summary"
CONFIGURATION = "accounts/{accountID}/configuration"
PRICING = "accounts/{accountID}/pricing"
ORDERS = "accounts/{accountID}/orders"
ORDER = "accounts/{accountID}/orders/{orderSpecifier}"
ORDER_CANCEL = "accounts/{accountID}/orders/{orderSpecifier}/cancel"
TRADES = "accounts/{accountID}/trades"
CANDLES = "instruments/{instrument}/candles"
ORDER_BOOK = "instruments/{instrument}/orderBook"

FUNDING_TRANSACTION_TYPES = "FUNDING,TRANSFER_FUNDS"


def _token(value: Union[Enum, str, None]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class OandaAdapter(BrokerAdapter):
    """
    OANDA v20 adapter.

    Usage:
        async with OandaAdapter(OandaConfig.from_env()) as oanda:
            await oanda.load_markets()
            order = await oanda.create_order("EUR/USD", "market", "buy", "100")
    """

    def __init__(
        self,
        config: Optional[OandaConfig] = None,
        transport: Optional[Transport] = None,
    ):
        self._config = config or OandaConfig.from_env()
        self._log = AdapterLogger("oanda")
        self._transport = transport or AiohttpTransport(self._config, self._log)
        self._pager = TransactionPager(self._transport, self._config.pagination)
        self.registry = MarketRegistry(self._config.common_currencies)

    @property
    def broker_id(self) -> str:
        return "oanda"

    @property
    def config(self) -> OandaConfig:
        return self._config

    async def close(self) -> None:
        await self._transport.close()

    # --------------------------------------------------------
    # MARKETS
    # --------------------------------------------------------

    async def fetch_markets(self) -> List[Market]:
        """Tradeable instruments of the account."""
        response = await self._transport.request(INSTRUMENTS)
        instruments = safe_value(response, "instruments", [])
        return [parse_market(instrument, self.registry.currency_code) for instrument in instruments]

    async def load_markets(self, reload: bool = False) -> Dict[str, Market]:
        """
        Load markets into the registry (once unless reload).

        Returns:
            symbol -> Market
        """
        if reload or not self.registry.is_loaded:
            self.registry.load(await self.fetch_markets())
        return {symbol: self.registry.market(symbol) for symbol in self.registry.symbols()}

    async def market(self, symbol: str) -> Market:
        await self.load_markets()
        return self.registry.market(symbol)

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        """
        Reconstructed order book.

        Raises:
            NotSupported: If the broker publishes no book for the symbol
        """
        market = await self.market(symbol)
        if market.symbol not in self._config.order_book_symbols:
            raise NotSupported(
                f"Order book is not available for {market.symbol}",
                context={"supported": list(self._config.order_book_symbols)},
            )
        response = await self._transport.request(ORDER_BOOK, {"instrument": market.id})
        order_book = safe_value(response, "orderBook")
        if order_book is None:
            raise BadResponse(f"Order book response without orderBook for {market.symbol}")
        return reconstruct_order_book(order_book, market.symbol, limit=limit)

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1m",
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        """Bid/mid/ask candles, `since` in ms."""
        market = await self.market(symbol)
        granularity = self._config.timeframes.get(timeframe)
        if granularity is None:
            raise BadRequest(
                f"Unsupported timeframe: {timeframe}",
                context={"timeframes": sorted(self._config.timeframes)},
            )

        request: Dict[str, Any] = {
            "instrument": market.id,
            "granularity": granularity,
            "price": "BMA",
        }
        if since is not None:
            request["from"] = since // 1000
        if limit is not None:
            request["count"] = min(limit, MAX_CANDLES_PER_REQUEST)

        response = await self._transport.request(CANDLES, request)
        candles = [parse_candle(candle) for candle in safe_value(response, "candles", [])]
        return filter_by_since_limit(candles, since, limit)

    async def fetch_tickers(self, symbols: Optional[Sequence[str]] = None) -> Dict[str, Ticker]:
        """
        Best bid/ask per symbol.

        Raises:
            ArgumentsRequired: If no symbols are given
        """
        if not symbols:
            raise ArgumentsRequired("fetch_tickers() requires a symbols argument")
        await self.load_markets()
        ids = [self.registry.market(symbol).id for symbol in symbols]
        response = await self._transport.request(PRICING, {"instruments": ",".join(ids)})

        tickers: Dict[str, Ticker] = {}
        for price in safe_value(response, "prices", []):
            ticker = parse_ticker(price, self.registry)
            tickers[ticker.symbol] = ticker
        return tickers

    async def fetch_ticker(self, symbol: str) -> Ticker:
        market = await self.market(symbol)
        tickers = await self.fetch_tickers([market.symbol])
        if market.symbol not in tickers:
            raise BadResponse(f"Pricing response has no price for {market.symbol}")
        return tickers[market.symbol]

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    def _build_order(
        self,
        market: Market,
        type: Union[Enum, str],
        side: Union[Enum, str],
        amount: Any,
        price: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        side_token = (_token(side) or "").lower()
        if side_token not in (OrderSide.BUY.value, OrderSide.SELL.value):
            raise BadRequest(f"Invalid order side: {side}")
        if amount is None:
            raise ArgumentsRequired("Order amount is required")

        units = to_precision(amount, market.precision.amount, truncate=True)
        order: Dict[str, Any] = {
            "instrument": market.id,
            "type": ORDER_TYPE.to_broker(_token(type).lower()),
            "units": units if side_token == OrderSide.BUY.value else string_neg(units),
        }
        if price is not None:
            order["price"] = to_precision(price, market.precision.price)
        order.update(params or {})
        return {"order": order}

    async def create_order(
        self,
        symbol: str,
        type: Union[Enum, str],
        side: Union[Enum, str],
        amount: Any,
        price: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> CanonicalOrder:
        """
        Submit an order.

        Args:
            params: Extra order fields (timeInForce, clientExtensions, ...)

        Raises:
            InvalidOrder: If the broker cancels or rejects the order at once
        """
        market = await self.market(symbol)
        request = self._build_order(market, type, side, amount, price, params)
        order = request["order"]
        self._log.log_order(
            "create",
            symbol=market.symbol,
            side=_token(side),
            order_type=order["type"],
            amount=order["units"],
            price=order.get("price"),
        )

        response = await self._transport.request(ORDERS, request, method="POST")
        return self._interpret(response, market, "create")

    async def edit_order(
        self,
        id: str,
        symbol: str,
        type: Union[Enum, str],
        side: Union[Enum, str],
        amount: Any,
        price: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> CanonicalOrder:
        """Replace an order; the broker cancels it and creates a new one."""
        market = await self.market(symbol)
        request = self._build_order(market, type, side, amount, price, params)
        request["orderSpecifier"] = id
        self._log.log_order("edit", order_id=id, symbol=market.symbol, side=_token(side),
                            amount=request["order"]["units"], price=request["order"].get("price"))

        response = await self._transport.request(ORDER, request, method="PUT")
        return self._interpret(response, market, "edit")

    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> CanonicalOrder:
        await self.load_markets()
        response = await self._transport.request(ORDER_CANCEL, {"orderSpecifier": id}, method="PUT")
        order = parse_order(response, self.registry)
        self._log.log_order("cancel", order_id=order.id, symbol=order.symbol, status=_token(order.status))
        return order

    def _interpret(self, response: Dict[str, Any], market: Market, operation: str) -> CanonicalOrder:
        try:
            order = parse_order(response, self.registry, market)
        except InvalidOrder as e:
            self._log.log_order(operation, symbol=market.symbol, error_message=e.reason or e.message)
            raise
        self._log.log_order(
            operation,
            order_id=order.id,
            symbol=order.symbol,
            side=_token(order.side),
            order_type=_token(order.type),
            amount=order.amount,
            price=order.price,
            status=_token(order.status),
        )
        return order

    async def fetch_order(self, id: str, symbol: Optional[str] = None) -> CanonicalOrder:
        await self.load_markets()
        response = await self._transport.request(ORDER, {"orderSpecifier": id})
        return parse_order(safe_value(response, "order", {}), self.registry)

    async def fetch_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
        state: str = "ALL",
        params: Optional[Dict[str, Any]] = None,
    ) -> List[CanonicalOrder]:
        """
        Orders of the account filtered by state.

        Args:
            state: PENDING, FILLED, TRIGGERED, CANCELLED or ALL
        """
        await self.load_markets()
        market = self.registry.market(symbol) if symbol is not None else None

        request: Dict[str, Any] = {"state": state}
        if market is not None:
            request["instrument"] = market.id
        if limit is not None:
            request["count"] = limit
        request.update(params or {})

        response = await self._transport.request(ORDERS, request)
        return parse_orders(safe_value(response, "orders", []), self.registry, market, since, limit)

    async def fetch_open_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[CanonicalOrder]:
        return await self.fetch_orders(symbol, since, limit, state="PENDING")

    async def fetch_closed_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[CanonicalOrder]:
        return await self.fetch_orders(symbol, since, limit, state="FILLED")

    async def fetch_canceled_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[CanonicalOrder]:
        return await self.fetch_orders(symbol, since, limit, state="CANCELLED")

    async def fetch_orders_by_ids(
        self,
        ids: Union[str, Sequence[str]],
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[CanonicalOrder]:
        if not ids:
            raise ArgumentsRequired("fetch_orders_by_ids() requires ids")
        ids_csv = ids if isinstance(ids, str) else ",".join(str(order_id) for order_id in ids)
        return await self.fetch_orders(None, since, limit, state="ALL", params={"ids": ids_csv})

    # --------------------------------------------------------
    # POSITIONS / TRADES
    # --------------------------------------------------------

    async def _fetch_account_trades(
        self,
        symbols: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        state: str = "ALL",
    ) -> List[Dict[str, Any]]:
        await self.load_markets()
        request: Dict[str, Any] = {"state": state}
        if limit is not None:
            request["count"] = limit
        if symbols and len(symbols) == 1:
            request["instrument"] = self.registry.market(symbols[0]).id
        response = await self._transport.request(TRADES, request)
        return safe_value(response, "trades", [])

    async def fetch_positions(self, symbols: Optional[Sequence[str]] = None) -> List[CanonicalPosition]:
        """Open trades as positions."""
        trades = await self._fetch_account_trades(symbols, state="OPEN")
        if symbols:
            symbols = [self.registry.market(symbol).symbol for symbol in symbols]
        return parse_positions(trades, self.registry, symbols)

    async def fetch_my_trades(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
        method: Optional[str] = None,
    ) -> List[Trade]:
        """
        Account fills.

        Args:
            method: "transactions" (ORDER_FILL history via the pager) or
                "closed_trades" (closed trade records); config default when None
        """
        await self.load_markets()
        market = self.registry.market(symbol) if symbol is not None else None
        method = method or self._config.fetch_my_trades_method

        if method == FETCH_MY_TRADES_TRANSACTIONS:
            raw = await self._pager.fetch(since=since, params={"type": "ORDER_FILL"})
        elif method == FETCH_MY_TRADES_CLOSED_TRADES:
            raw = await self._fetch_account_trades(
                [market.symbol] if market is not None else None,
                state="CLOSED",
            )
        else:
            raise NotSupported(f"Unknown fetch_my_trades method: {method}")

        return parse_trades(raw, self.registry, market, since, limit)

    # --------------------------------------------------------
    # LEDGER / FUNDING
    # --------------------------------------------------------

    async def fetch_ledger(
        self,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[LedgerEntry]:
        """Account ledger ordered by time, then id."""
        await self.load_markets()
        transactions = await self._pager.fetch(since=since)
        return parse_ledger(transactions, self.registry, since, limit)

    async def fetch_transactions(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[FundingTransaction]:
        """Deposits, withdrawals and other funding movements."""
        await self.load_markets()
        currency = self.registry.currency_code(code) if code is not None else None
        transactions = await self._pager.fetch(since=since, params={"type": FUNDING_TRANSACTION_TYPES})
        funding = [parse_funding_transaction(transaction, currency) for transaction in transactions]
        return filter_by_since_limit(funding, since, limit)

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def fetch_account(self) -> Dict[str, Any]:
        response = await self._transport.request(SUMMARY)
        return safe_value(response, "account", {})

    async def fetch_balance(self) -> Dict[str, Balance]:
        account = await self.fetch_account()
        return parse_balance(account, self.registry)

    async def fetch_margin_rate(self) -> Optional[str]:
        account = await self.fetch_account()
        return safe_string(account, "marginRate")

    async def set_margin_rate(self, rate: Any) -> Dict[str, Any]:
        """Change the account margin rate (e.g. "0.05" for 20:1)."""
        margin_rate = to_precision(rate, None)
        response = await self._transport.request(CONFIGURATION, {"marginRate": margin_rate}, method="PATCH")
        self._log.info(f"Margin rate set to {margin_rate}")
        return response
