"""
Broker Normalizer Package.

============================================================
PURPOSE
============================================================
Turns OANDA v20 REST responses into a canonical, exchange-agnostic
trading data model.

CRITICAL PRINCIPLE:
    "Order state is inferred from the terminal transaction."
    "Numbers never pass through binary floating point."

============================================================
MODULES
============================================================
- precise: Decimal string algebra
- pager: Cursor-paginated transaction history
- order_interpreter: Order lifecycle state from transaction bundles
- orderbook: Directional book from price buckets
- normalizers: Raw record -> canonical entity mappers
- types: Canonical data model
- tokens: Broker token maps
- registry: Market registry
- errors: Exception hierarchy
- config: Configuration
- adapters: OANDA adapter, transports, error mapping, logging

============================================================
"""

from .config import OandaConfig, PaginationConfig, TransportConfig
from .errors import (
    ArgumentsRequired,
    AuthenticationError,
    BadRequest,
    BadResponse,
    BadSymbol,
    BrokerError,
    ExchangeError,
    ExchangeNotAvailable,
    InvalidOrder,
    MalformedNumber,
    MalformedPageLink,
    NotSupported,
    OrderNotFound,
    RequestTimeout,
    TransportError,
    UnknownMarket,
    UnrecognizedBookEntry,
)
from .order_interpreter import build_bundle, parse_order, parse_orders
from .orderbook import reconstruct_order_book
from .pager import TransactionPager, parse_page_link
from .registry import MarketRegistry
from .types import (
    Balance,
    BookLevel,
    Candle,
    CanonicalOrder,
    CanonicalPosition,
    FundingTransaction,
    LedgerEntry,
    Market,
    OrderBook,
    OrderSide,
    OrderStatus,
    OrderType,
    PaginationCursor,
    Ticker,
    Trade,
    TransactionBundle,
    TransactionKind,
)


__version__ = "1.0.0"
