"""
Broker Normalizer - Order Book Reconstructor.

The broker publishes its book as a flat list of price buckets with
long/short percentages and no side. Sides are recovered by exact
comparison against the book's reference price: below is a bid,
above is an ask. A bucket exactly at the reference price cannot be
classified and is rejected.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import BadResponse, UnrecognizedBookEntry
from .normalizers import parse_date, safe_string, safe_value
from .precise import decimal_key, string_add, string_gt, string_lt
from .types import BookLevel, OrderBook


logger = logging.getLogger(__name__)


def _bucket_volume(bucket: Dict[str, Any]) -> Optional[str]:
    long_pct = safe_string(bucket, "longCountPercent")
    short_pct = safe_string(bucket, "shortCountPercent")
    if long_pct is None:
        return short_pct
    if short_pct is None:
        return long_pct
    return string_add(long_pct, short_pct)


def reconstruct_order_book(
    order_book: Dict[str, Any],
    symbol: Optional[str],
    timestamp: Optional[int] = None,
    limit: Optional[int] = None,
) -> OrderBook:
    """
    Build a directional book from an orderBook payload.

    Args:
        order_book: The `orderBook` object (price, unixTime, buckets)
        symbol: Canonical symbol of the book
        timestamp: Override for the book time (ms)
        limit: Keep at most this many levels per side

    Returns:
        OrderBook with bids descending and asks ascending

    Raises:
        BadResponse: If the reference price is missing
        UnrecognizedBookEntry: If a bucket sits at the reference price
    """
    reference = safe_string(order_book, "price")
    if reference is None:
        raise BadResponse("Order book without reference price", context={"symbol": symbol})

    if timestamp is None:
        timestamp = parse_date(safe_string(order_book, "unixTime"))
    if timestamp is None:
        timestamp = parse_date(safe_string(order_book, "time"))

    bids: List[BookLevel] = []
    asks: List[BookLevel] = []

    for bucket in safe_value(order_book, "buckets", []):
        price = safe_string(bucket, "price")
        if price is None:
            raise UnrecognizedBookEntry(bucket, reference)
        level = BookLevel(price=price, volume=_bucket_volume(bucket))
        if string_lt(price, reference):
            bids.append(level)
        elif string_gt(price, reference):
            asks.append(level)
        else:
            raise UnrecognizedBookEntry(bucket, reference)

    bids.sort(key=lambda level: decimal_key(level.price), reverse=True)
    asks.sort(key=lambda level: decimal_key(level.price))

    if limit is not None:
        bids = bids[:limit]
        asks = asks[:limit]

    logger.debug(f"Order book {symbol}: {len(bids)} bids, {len(asks)} asks around {reference}")

    return OrderBook(
        symbol=symbol,
        timestamp=timestamp,
        bids=tuple(bids),
        asks=tuple(asks),
    )
