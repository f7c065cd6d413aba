"""
Broker Normalizer - Entity Normalizers.

============================================================
PURPOSE
============================================================
Pure mappers from raw broker records to canonical entities:
markets, positions, trades, ledger entries, funding movements,
tickers, candles and balances.

DESIGN PRINCIPLES:
- No I/O, no shared mutable state
- Missing optional fields become None (never zero or "")
- Instrument ids resolve through the market registry only;
  parse_market is the one place an id is split into base/quote
- All numbers go through the decimal string algebra

============================================================
"""

import calendar
import logging
import re
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from .errors import BadResponse
from .precise import ZERO, decimal_key, string_abs, string_gt
from .registry import MarketRegistry
from .tokens import (
    FUNDING_TYPE,
    LEDGER_ENTRY_TYPE,
    ORDER_TYPE,
    POSITION_STATUS,
)
from .types import (
    Balance,
    Candle,
    CanonicalPosition,
    Fee,
    FundingTransaction,
    LedgerDirection,
    LedgerEntry,
    Market,
    MarketLimits,
    MarketPrecision,
    MinMax,
    OrderSide,
    PositionSide,
    Ticker,
    Trade,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

INSTRUMENT_DELIMITER = "_"


# ============================================================
# FIELD ACCESS
# ============================================================

def safe_string(record: Any, key: Any, default: Optional[str] = None) -> Optional[str]:
    """
    Read a field as a string.

    Absent, null and empty values yield `default`.
    """
    if isinstance(record, Mapping):
        value = record.get(key)
    elif isinstance(record, Sequence) and not isinstance(record, str) and isinstance(key, int):
        value = record[key] if -len(record) <= key < len(record) else None
    else:
        return default
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def safe_string2(record: Any, key1: Any, key2: Any) -> Optional[str]:
    value = safe_string(record, key1)
    return value if value is not None else safe_string(record, key2)


def safe_value(record: Any, key: Any, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        value = record.get(key)
        return default if value is None else value
    if isinstance(record, Sequence) and not isinstance(record, str) and isinstance(key, int):
        return record[key] if -len(record) <= key < len(record) else default
    return default


def _safe_int(record: Any, key: str) -> Optional[int]:
    value = safe_string(record, key)
    if value is None or not value.lstrip("-").isdigit():
        return None
    return int(value)


# ============================================================
# TIME
# ============================================================

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})?$"
)
_UNIX = re.compile(r"^(\d+)(?:\.(\d+))?$")


def parse_date(value: Optional[str]) -> Optional[int]:
    """
    Parse an RFC 3339 (nanosecond precision) or UNIX-seconds timestamp.

    Returns:
        Milliseconds since epoch, or None if absent/unparsable
    """
    if value is None:
        return None
    value = str(value).strip()

    unix = _UNIX.match(value)
    if unix:
        seconds, fraction = unix.groups()
        return int(seconds) * 1000 + int((fraction or "0")[:3].ljust(3, "0"))

    match = _RFC3339.match(value)
    if not match:
        logger.debug(f"Unparsable timestamp: {value}")
        return None

    base, fraction, zone = match.groups()
    moment = datetime.strptime(base, "%Y-%m-%dT%H:%M:%S")
    seconds = calendar.timegm(moment.timetuple())
    if zone and zone != "Z":
        sign = 1 if zone[0] == "+" else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        seconds -= sign * (hours * 3600 + minutes * 60)
    millis = int((fraction or "0")[:3].ljust(3, "0"))
    return seconds * 1000 + millis


def filter_by_since_limit(
    items: Iterable[T],
    since: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[T]:
    """Keep items at or after `since`, then the first `limit` of them."""
    result = list(items)
    if since is not None:
        result = [
            item for item in result
            if getattr(item, "timestamp", None) is not None and item.timestamp >= since
        ]
    if limit is not None:
        result = result[:limit]
    return result


# ============================================================
# SHARED DERIVATIONS
# ============================================================

def resolve_symbol(
    market_id: Optional[str],
    registry: MarketRegistry,
    market: Optional[Market] = None,
) -> Optional[str]:
    """
    Canonical symbol for a raw instrument id.

    Raises:
        UnknownMarket: If the id is present but not registered
    """
    if market_id is not None:
        return registry.market_by_id(market_id).symbol
    return market.symbol if market is not None else None


def side_from_units(units: Optional[str]) -> Tuple[Optional[OrderSide], Optional[str]]:
    """
    Split signed units into (side, absolute amount).

    Positive units are a buy; anything else a sell.
    """
    if units is None:
        return None, None
    side = OrderSide.BUY if string_gt(units, "0") else OrderSide.SELL
    return side, string_abs(units)


def _id_key(entity_id: Optional[str]):
    return decimal_key(entity_id) if entity_id is not None else ZERO


# ============================================================
# MARKETS
# ============================================================

def parse_market(
    instrument: Dict[str, Any],
    currency_code: Optional[Callable[[str], Optional[str]]] = None,
) -> Market:
    """
    Build a Market from an instrument record.

    Args:
        instrument: Raw instrument (name, displayPrecision, ...)
        currency_code: Currency id -> code mapper (identity if None)

    Returns:
        Market

    Raises:
        BadResponse: If the instrument name is missing or not BASE_QUOTE
    """
    market_id = safe_string(instrument, "name")
    if market_id is None or INSTRUMENT_DELIMITER not in market_id:
        raise BadResponse(
            f"Instrument name is not BASE{INSTRUMENT_DELIMITER}QUOTE: {market_id!r}",
            context={"instrument": instrument},
        )

    base_id, quote_id = market_id.split(INSTRUMENT_DELIMITER, 1)
    code = currency_code or (lambda currency_id: currency_id)
    base = code(base_id)
    quote = code(quote_id)

    return Market(
        id=market_id,
        symbol=f"{base}/{quote}",
        base=base,
        quote=quote,
        base_id=base_id,
        quote_id=quote_id,
        type="spot",
        instrument_type=safe_string(instrument, "type"),
        margin=True,
        precision=MarketPrecision(
            amount=_safe_int(instrument, "tradeUnitsPrecision"),
            price=_safe_int(instrument, "displayPrecision"),
        ),
        limits=MarketLimits(
            amount=MinMax(
                min=safe_string(instrument, "minimumTradeSize"),
                max=safe_string(instrument, "maximumOrderUnits"),
            ),
            leverage=MinMax(min="1"),
        ),
        info=instrument,
    )


# ============================================================
# POSITIONS
# ============================================================

def parse_position(
    position: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market] = None,
) -> CanonicalPosition:
    """
    Normalize an open-trade record into a position.

    Side comes from the sign of initialUnits.
    """
    initial_units = safe_string(position, "initialUnits")
    side = None
    contracts = None
    if initial_units is not None:
        side = PositionSide.LONG if string_gt(initial_units, "0") else PositionSide.SHORT
        contracts = string_abs(initial_units)

    return CanonicalPosition(
        id=safe_string(position, "id"),
        symbol=resolve_symbol(safe_string(position, "instrument"), registry, market),
        timestamp=parse_date(safe_string(position, "openTime")),
        side=side,
        entry_price=safe_string(position, "price"),
        contracts=contracts,
        unrealized_pnl=safe_string(position, "unrealizedPL"),
        realized_pnl=safe_string(position, "realizedPL"),
        status=POSITION_STATUS(safe_string(position, "state")),
        collateral=safe_string(position, "marginUsed"),
        info=position,
    )


def parse_positions(
    positions: Iterable[Dict[str, Any]],
    registry: MarketRegistry,
    symbols: Optional[Sequence[str]] = None,
) -> List[CanonicalPosition]:
    result = [parse_position(position, registry) for position in positions]
    if symbols:
        result = [position for position in result if position.symbol in symbols]
    return result


# ============================================================
# TRADES
# ============================================================

def parse_trade(
    trade: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market] = None,
) -> Trade:
    """
    Normalize a fill.

    Accepts both ORDER_FILL transactions (time, units, price) and
    closed trade records (closeTime, initialUnits, averageClosePrice).
    """
    side, amount = side_from_units(safe_string2(trade, "units", "initialUnits"))

    if safe_string(trade, "closeTime") is not None:
        price = safe_string2(trade, "averageClosePrice", "price")
    else:
        price = safe_string(trade, "price")

    commission = safe_string(trade, "commission")
    fee = Fee(cost=commission) if commission is not None else None

    return Trade(
        id=safe_string(trade, "id"),
        timestamp=parse_date(safe_string2(trade, "time", "closeTime")),
        symbol=resolve_symbol(safe_string(trade, "instrument"), registry, market),
        order=safe_string2(trade, "orderID", "batchID"),
        type=ORDER_TYPE(safe_string(trade, "type")),
        side=side,
        price=price,
        amount=amount,
        fee=fee,
        info=trade,
    )


def parse_trades(
    trades: Iterable[Dict[str, Any]],
    registry: MarketRegistry,
    market: Optional[Market] = None,
    since: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Trade]:
    result = [parse_trade(trade, registry, market) for trade in trades]
    if market is not None:
        result = [trade for trade in result if trade.symbol == market.symbol]
    return filter_by_since_limit(result, since, limit)


# ============================================================
# LEDGER
# ============================================================

def is_ledger_relevant(transaction: Dict[str, Any]) -> bool:
    transaction_type = safe_string(transaction, "type")
    return transaction_type is not None and transaction_type in LEDGER_ENTRY_TYPE


def parse_ledger_entry(
    transaction: Dict[str, Any],
    registry: MarketRegistry,
) -> LedgerEntry:
    """
    Normalize one account transaction into a ledger entry.

    The signed quantity is `units` for order transactions and
    `amount` for funding transactions; its sign gives the direction.
    """
    signed = safe_string2(transaction, "units", "amount")
    direction = None
    amount = None
    if signed is not None:
        direction = LedgerDirection.IN if string_gt(signed, "0") else LedgerDirection.OUT
        amount = string_abs(signed)

    return LedgerEntry(
        id=safe_string(transaction, "id"),
        timestamp=parse_date(safe_string(transaction, "time")),
        direction=direction,
        account=safe_string(transaction, "accountID"),
        reference_id=safe_string(transaction, "requestID"),
        type=LEDGER_ENTRY_TYPE(safe_string(transaction, "type")),
        symbol=resolve_symbol(safe_string(transaction, "instrument"), registry),
        amount=amount,
        after=safe_string(transaction, "accountBalance"),
        info=transaction,
    )


def parse_ledger(
    transactions: Iterable[Dict[str, Any]],
    registry: MarketRegistry,
    since: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[LedgerEntry]:
    """
    One entry per ledger-relevant transaction.

    Ordered by ascending time, ties broken by numeric id.
    """
    entries = []
    for transaction in transactions:
        if not is_ledger_relevant(transaction):
            logger.debug(
                f"Skipping transaction {safe_string(transaction, 'id')} "
                f"of non-ledger type {safe_string(transaction, 'type')}"
            )
            continue
        entries.append(parse_ledger_entry(transaction, registry))
    entries.sort(key=lambda entry: (
        entry.timestamp if entry.timestamp is not None else 0,
        _id_key(entry.id),
    ))
    return filter_by_since_limit(entries, since, limit)


# ============================================================
# FUNDING / BALANCE
# ============================================================

def parse_funding_transaction(
    transaction: Dict[str, Any],
    currency: Optional[str] = None,
) -> FundingTransaction:
    """
    Normalize a TRANSFER_FUNDS transaction.

    CLIENT_FUNDING transfers become deposit/withdrawal by sign;
    other funding reasons pass through as the type.
    """
    amount = safe_string(transaction, "amount")
    funding_type = None
    if safe_string(transaction, "type") == "TRANSFER_FUNDS":
        reason = safe_string(transaction, "fundingReason")
        if reason == "CLIENT_FUNDING" and amount is not None:
            funding_type = "deposit" if string_gt(amount, "0") else "withdrawal"
        else:
            funding_type = reason

    return FundingTransaction(
        id=safe_string(transaction, "id"),
        timestamp=parse_date(safe_string(transaction, "time")),
        currency=currency,
        amount=amount,
        type=FUNDING_TYPE(funding_type),
        txid=safe_string(transaction, "requestID"),
        info=transaction,
    )


def parse_balance(account: Dict[str, Any], registry: MarketRegistry) -> Dict[str, Balance]:
    """Account summary -> {currency code: Balance}."""
    code = registry.currency_code(safe_string(account, "currency"))
    balance = Balance(
        currency=code,
        free=safe_string(account, "balance"),
        info=account,
    )
    return {code: balance} if code is not None else {}


# ============================================================
# MARKET DATA
# ============================================================

def parse_ticker(
    ticker: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market] = None,
) -> Ticker:
    """Best bid/ask from a pricing record (first level of each side)."""
    best_bid = safe_value(safe_value(ticker, "bids"), 0)
    best_ask = safe_value(safe_value(ticker, "asks"), 0)

    return Ticker(
        symbol=resolve_symbol(safe_string(ticker, "instrument"), registry, market),
        timestamp=parse_date(safe_string(ticker, "time")),
        bid=safe_string(best_bid, "price"),
        bid_volume=safe_string(best_bid, "liquidity"),
        ask=safe_string(best_ask, "price"),
        ask_volume=safe_string(best_ask, "liquidity"),
        info=ticker,
    )


def parse_candle(candle: Dict[str, Any]) -> Candle:
    """
    Candle from a BMA (bid/mid/ask) candle record.

    Open/close from mid, high from ask, low from bid.
    """
    mid = safe_value(candle, "mid")
    ask = safe_value(candle, "ask")
    bid = safe_value(candle, "bid")
    return Candle(
        timestamp=parse_date(safe_string(candle, "time")),
        open=safe_string(mid, "o"),
        high=safe_string(ask, "h"),
        low=safe_string(bid, "l"),
        close=safe_string(mid, "c"),
        volume=safe_string(candle, "volume"),
    )
