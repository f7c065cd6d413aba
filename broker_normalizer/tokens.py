"""
Broker Normalizer - Broker Token Maps.

============================================================
PURPOSE
============================================================
Explicit partial mappings from broker tokens (order states,
order types, time-in-force, ledger types, ...) to canonical
enum members.

Unrecognized tokens pass through verbatim instead of failing,
so new broker-side values never break normalization.

============================================================
"""

from typing import Dict, Generic, Mapping, Optional, TypeVar, Union

from .types import (
    LedgerEntryType,
    OrderStatus,
    OrderType,
    PositionStatus,
    TimeInForce,
    FundingType,
)


T = TypeVar("T")


class TokenMap(Generic[T]):
    """
    Partial mapping broker token -> canonical value, identity fallback.

    Example:
        >>> ORDER_STATUS("FILLED")
        <OrderStatus.CLOSED: 'closed'>
        >>> ORDER_STATUS("SOMETHING_NEW")
        'SOMETHING_NEW'
    """

    def __init__(self, table: Mapping[str, T]):
        self._table: Dict[str, T] = dict(table)

    def __call__(self, token: Optional[str]) -> Union[T, str, None]:
        if token is None:
            return None
        return self._table.get(token, token)

    def __contains__(self, token: str) -> bool:
        return token in self._table

    def to_broker(self, value: Union[T, str]) -> str:
        """
        Reverse lookup: first broker token mapping to value.

        Unknown values are upper-cased and passed through.
        """
        for token, mapped in self._table.items():
            if mapped == value:
                return token
        raw = value.value if hasattr(value, "value") else value
        return str(raw).upper()


# ============================================================
# ORDERS
# ============================================================

ORDER_STATUS: TokenMap[OrderStatus] = TokenMap({
    "PENDING": OrderStatus.OPEN,
    "FILLED": OrderStatus.CLOSED,
    "TRIGGERED": OrderStatus.CLOSED,
    "CANCELLED": OrderStatus.CANCELED,
    "REJECTED": OrderStatus.REJECTED,
})

# Type field of order records (list/get calls)
ORDER_TYPE: TokenMap[OrderType] = TokenMap({
    "MARKET": OrderType.MARKET,
    "LIMIT": OrderType.LIMIT,
    "STOP": OrderType.STOP,
})

# Type field of order-create transactions
ORDER_TRANSACTION_TYPE: TokenMap[OrderType] = TokenMap({
    "MARKET_ORDER": OrderType.MARKET,
    "LIMIT_ORDER": OrderType.LIMIT,
    "STOP_ORDER": OrderType.STOP,
})

TIME_IN_FORCE: TokenMap[TimeInForce] = TokenMap({
    "GTC": TimeInForce.GTC,
    "IOC": TimeInForce.IOC,
    "FOK": TimeInForce.FOK,
    "GTD": TimeInForce.GTD,
})


# ============================================================
# POSITIONS
# ============================================================

POSITION_STATUS: TokenMap[PositionStatus] = TokenMap({
    "OPEN": PositionStatus.OPEN,
    "CLOSED": PositionStatus.CLOSED,
    "CLOSE_WHEN_TRADEABLE": PositionStatus.UNKNOWN,
})


# ============================================================
# LEDGER / FUNDING
# ============================================================

_TRADE_TRANSACTIONS = [
    "ORDER",
    "MARKET_ORDER",
    "MARKET_ORDER_REJECT",
    "LIMIT_ORDER",
    "LIMIT_ORDER_REJECT",
    "STOP_ORDER",
    "STOP_ORDER_REJECT",
    "MARKET_IF_TOUCHED_ORDER",
    "MARKET_IF_TOUCHED_ORDER_REJECT",
    "TAKE_PROFIT_ORDER",
    "TAKE_PROFIT_ORDER_REJECT",
    "STOP_LOSS_ORDER",
    "STOP_LOSS_ORDER_REJECT",
    "GUARANTEED_STOP_LOSS_ORDER",
    "GUARANTEED_STOP_LOSS_ORDER_REJECT",
    "TRAILING_STOP_LOSS_ORDER",
    "TRAILING_STOP_LOSS_ORDER_REJECT",
    "ONE_CANCELS_ALL_ORDER",
    "ONE_CANCELS_ALL_ORDER_REJECT",
    "ONE_CANCELS_ALL_ORDER_TRIGGERED",
    "ORDER_FILL",
    "ORDER_CANCEL",
    "ORDER_CANCEL_REJECT",
    "ORDER_CLIENT_EXTENSIONS_MODIFY",
    "ORDER_CLIENT_EXTENSIONS_MODIFY_REJECT",
    "TRADE_CLIENT_EXTENSIONS_MODIFY",
    "TRADE_CLIENT_EXTENSIONS_MODIFY_REJECT",
    "DELAYED_TRADE_CLOSURE",
]

_FUNDING_TRANSACTIONS = [
    "FUNDING",
    "TRANSFER_FUNDS",
    "TRANSFER_FUNDS_REJECT",
    "DAILY_FINANCING",
]

_MARGIN_TRANSACTIONS = [
    "MARGIN_CALL_ENTER",
    "MARGIN_CALL_EXTEND",
    "MARGIN_CALL_EXIT",
    "RESET_RESETTABLE_PL",
]

# Keys double as the set of ledger-relevant transaction types.
LEDGER_ENTRY_TYPE: TokenMap[LedgerEntryType] = TokenMap({
    **{t: LedgerEntryType.TRADE for t in _TRADE_TRANSACTIONS},
    **{t: LedgerEntryType.TRANSACTION for t in _FUNDING_TRANSACTIONS},
    **{t: LedgerEntryType.MARGIN for t in _MARGIN_TRANSACTIONS},
})

FUNDING_TYPE: TokenMap[FundingType] = TokenMap({
    "deposit": FundingType.DEPOSIT,
    "withdrawal": FundingType.WITHDRAWAL,
})
