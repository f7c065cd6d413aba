"""
Broker Normalizer - Types.

============================================================
PURPOSE
============================================================
Canonical, exchange-agnostic trading data model.

CRITICAL PRINCIPLE:
    "Numbers are numeric strings produced by the decimal
     string algebra, never floats."

Every entity is immutable, keeps the raw broker payload in
`info`, and serializes deterministically through to_dict().
Fields the broker did not report are None, never zero.

============================================================
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


# ============================================================
# ENUMS
# ============================================================

class OrderStatus(str, Enum):
    """Canonical order status."""

    OPEN = "open"
    CLOSED = "closed"
    CANCELED = "canceled"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


class OrderType(str, Enum):
    """Canonical order type."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"


class OrderSide(str, Enum):
    """Order side."""

    BUY = "buy"
    SELL = "sell"


class TimeInForce(str, Enum):
    """Time in force for orders."""

    GTC = "GTC"
    """Good Till Canceled."""

    IOC = "IOC"
    """Immediate Or Cancel."""

    FOK = "FOK"
    """Fill Or Kill."""

    GTD = "GTD"
    """Good Till Date."""


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"


class LedgerDirection(str, Enum):
    IN = "in"
    OUT = "out"


class LedgerEntryType(str, Enum):
    TRADE = "trade"
    TRANSACTION = "transaction"
    MARGIN = "margin"


class FundingType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionKind(str, Enum):
    """Transaction slots that can appear in an order-action response."""

    ORDER_CREATE = "orderCreateTransaction"
    ORDER_FILL = "orderFillTransaction"
    ORDER_CANCEL = "orderCancelTransaction"
    ORDER_REJECT = "orderRejectTransaction"


# A known enum member, or the broker's token passed through verbatim.
Token = Union[Enum, str]


# ============================================================
# HELPERS
# ============================================================

def iso8601(timestamp: Optional[int]) -> Optional[str]:
    """Render millisecond epoch time as ISO-8601 UTC with milliseconds."""
    if timestamp is None:
        return None
    seconds, millis = divmod(timestamp, 1000)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "__dataclass_fields__"):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    return value


class _Canonical:
    """Serialization mixin for canonical entities."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dict (enum members become their values)."""
        data = _plain(self)
        if hasattr(self, "timestamp"):
            data["datetime"] = iso8601(getattr(self, "timestamp"))
        return data


# ============================================================
# MARKETS
# ============================================================

@dataclass(frozen=True)
class MinMax:
    min: Optional[str] = None
    max: Optional[str] = None


@dataclass(frozen=True)
class MarketPrecision:
    """Decimal places accepted by the broker."""

    amount: Optional[int] = None
    """Decimal places for units."""

    price: Optional[int] = None
    """Decimal places for prices."""


@dataclass(frozen=True)
class MarketLimits:
    amount: MinMax = field(default_factory=MinMax)
    price: MinMax = field(default_factory=MinMax)
    cost: MinMax = field(default_factory=MinMax)
    leverage: MinMax = field(default_factory=MinMax)


@dataclass(frozen=True)
class Market(_Canonical):
    """
    Static market metadata.

    Owned by the market registry; normalizers only reference it.
    """

    id: str
    """Broker instrument id (e.g., EUR_USD)."""

    symbol: str
    """Canonical symbol (e.g., EUR/USD)."""

    base: str
    quote: str
    base_id: str
    quote_id: str

    type: str = "spot"
    """Canonical market type."""

    instrument_type: Optional[str] = None
    """Broker asset class (CURRENCY, CFD, METAL)."""

    margin: bool = True

    precision: MarketPrecision = field(default_factory=MarketPrecision)
    limits: MarketLimits = field(default_factory=MarketLimits)

    info: Dict[str, Any] = field(default_factory=dict, compare=False)
    """Raw instrument record."""


# ============================================================
# ORDERS
# ============================================================

@dataclass(frozen=True)
class TransactionBundle:
    """
    Transactions returned together by one order-affecting call.

    An explicit ordered sequence of (kind, transaction) pairs.
    The last pair is the terminal transaction of the action.
    """

    entries: Tuple[Tuple[TransactionKind, Dict[str, Any]], ...] = ()

    @property
    def kinds(self) -> List[TransactionKind]:
        return [kind for kind, _ in self.entries]

    @property
    def last_kind(self) -> Optional[TransactionKind]:
        return self.entries[-1][0] if self.entries else None

    def get(self, kind: TransactionKind) -> Optional[Dict[str, Any]]:
        """Return the transaction of the given kind, if present."""
        for entry_kind, transaction in self.entries:
            if entry_kind == kind:
                return transaction
        return None

    def __contains__(self, kind: TransactionKind) -> bool:
        return self.get(kind) is not None

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class CanonicalOrder(_Canonical):
    """Normalized order."""

    id: Optional[str]
    timestamp: Optional[int]
    """Creation (or cancellation) time, ms since epoch."""

    status: Optional[Token] = None
    type: Optional[Token] = None
    side: Optional[OrderSide] = None
    symbol: Optional[str] = None
    time_in_force: Optional[Token] = None
    price: Optional[str] = None
    amount: Optional[str] = None
    filled: Optional[str] = None
    remaining: Optional[str] = None
    client_order_id: Optional[str] = None

    info: Dict[str, Any] = field(default_factory=dict, compare=False)
    """Raw order record or bundle."""

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


# ============================================================
# POSITIONS / TRADES
# ============================================================

@dataclass(frozen=True)
class CanonicalPosition(_Canonical):
    """Open (or closed) position derived from a broker trade record."""

    id: Optional[str]
    symbol: Optional[str]
    timestamp: Optional[int] = None
    side: Optional[PositionSide] = None
    entry_price: Optional[str] = None
    contracts: Optional[str] = None
    unrealized_pnl: Optional[str] = None
    realized_pnl: Optional[str] = None
    status: Optional[Token] = None
    collateral: Optional[str] = None
    info: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


@dataclass(frozen=True)
class Fee:
    cost: Optional[str] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class Trade(_Canonical):
    """Executed fill."""

    id: Optional[str]
    timestamp: Optional[int]
    symbol: Optional[str]
    order: Optional[str] = None
    """Order (or batch) that produced the fill."""

    type: Optional[Token] = None
    side: Optional[OrderSide] = None
    price: Optional[str] = None
    amount: Optional[str] = None
    fee: Optional[Fee] = None
    info: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


# ============================================================
# LEDGER / FUNDING / BALANCE
# ============================================================

@dataclass(frozen=True)
class LedgerEntry(_Canonical):
    """One account-affecting transaction."""

    id: Optional[str]
    timestamp: Optional[int]
    direction: Optional[LedgerDirection] = None
    account: Optional[str] = None
    reference_id: Optional[str] = None
    type: Optional[Token] = None
    symbol: Optional[str] = None
    amount: Optional[str] = None
    after: Optional[str] = None
    """Account balance after the transaction."""

    info: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


@dataclass(frozen=True)
class FundingTransaction(_Canonical):
    """Deposit, withdrawal or other funding movement."""

    id: Optional[str]
    timestamp: Optional[int]
    currency: Optional[str] = None
    amount: Optional[str] = None
    type: Optional[Token] = None
    txid: Optional[str] = None
    info: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


@dataclass(frozen=True)
class Balance(_Canonical):
    currency: Optional[str]
    free: Optional[str] = None
    used: Optional[str] = None
    total: Optional[str] = None
    info: Dict[str, Any] = field(default_factory=dict, compare=False)


# ============================================================
# MARKET DATA
# ============================================================

@dataclass(frozen=True)
class Ticker(_Canonical):
    """Best bid/ask snapshot."""

    symbol: Optional[str]
    timestamp: Optional[int]
    bid: Optional[str] = None
    bid_volume: Optional[str] = None
    ask: Optional[str] = None
    ask_volume: Optional[str] = None
    info: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


@dataclass(frozen=True)
class Candle(_Canonical):
    timestamp: Optional[int]
    open: Optional[str] = None
    high: Optional[str] = None
    low: Optional[str] = None
    close: Optional[str] = None
    volume: Optional[str] = None


@dataclass(frozen=True)
class BookLevel:
    price: str
    volume: Optional[str]


@dataclass(frozen=True)
class OrderBook(_Canonical):
    """
    Directional order book.

    Bids descending, asks ascending: best levels are at index 0.
    """

    symbol: Optional[str]
    timestamp: Optional[int]
    bids: Tuple[BookLevel, ...] = ()
    asks: Tuple[BookLevel, ...] = ()
    nonce: Optional[int] = None

    @property
    def datetime(self) -> Optional[str]:
        return iso8601(self.timestamp)


# ============================================================
# PAGINATION
# ============================================================

@dataclass(frozen=True)
class PaginationCursor:
    """Boundary ids parsed from one transaction page-link."""

    from_id: int
    to_id: Optional[int] = None
