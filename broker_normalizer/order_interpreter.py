"""
Broker Normalizer - Order State Interpreter.

============================================================
PURPOSE
============================================================
Infers an order's lifecycle state from what the broker returns.

Order-affecting calls do not return a status. They return a
bundle of transactions (create, fill, cancel, reject) and the
LAST transaction of the bundle is the terminal state of the
action:

    create            -> open
    create, fill      -> closed
    create, cancel    -> InvalidOrder (accepted then cancelled)
    cancel only       -> canceled (response to a cancel request)

List/get calls return order records with an explicit `state`,
which maps through ORDER_STATUS.

============================================================
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import BadResponse, InvalidOrder
from .normalizers import (
    filter_by_since_limit,
    parse_date,
    resolve_symbol,
    safe_string,
    safe_string2,
    side_from_units,
)
from .precise import string_abs
from .registry import MarketRegistry
from .tokens import ORDER_STATUS, ORDER_TRANSACTION_TYPE, ORDER_TYPE, TIME_IN_FORCE
from .types import (
    CanonicalOrder,
    Market,
    OrderStatus,
    TransactionBundle,
    TransactionKind,
)


logger = logging.getLogger(__name__)


# ============================================================
# BUNDLE CONSTRUCTION
# ============================================================

def _sequence_key(position: int, transaction: Dict[str, Any]) -> Tuple[int, int]:
    transaction_id = safe_string(transaction, "id")
    if transaction_id is not None and transaction_id.isdigit():
        return (int(transaction_id), position)
    return (-1, position)


def build_bundle(response: Dict[str, Any]) -> TransactionBundle:
    """
    Collect the order transactions of a response into an ordered bundle.

    Transactions are ordered by their broker transaction id, which is
    assigned monotonically. When any transaction lacks an id the
    payload order is kept.

    Args:
        response: Raw response of a create/edit/cancel call

    Returns:
        TransactionBundle (possibly empty)
    """
    kinds = {kind.value: kind for kind in TransactionKind}
    found = []
    if isinstance(response, dict):
        for key, transaction in response.items():
            if key in kinds and isinstance(transaction, dict):
                found.append((kinds[key], transaction))

    keys = [_sequence_key(index, transaction) for index, (_, transaction) in enumerate(found)]
    if all(key[0] >= 0 for key in keys):
        ordered = [pair for _, pair in sorted(zip(keys, found), key=lambda item: item[0])]
    else:
        ordered = found

    return TransactionBundle(entries=tuple(ordered))


def is_bundle(payload: Dict[str, Any]) -> bool:
    return isinstance(payload, dict) and any(kind.value in payload for kind in TransactionKind)


# ============================================================
# INTERPRETATION
# ============================================================

def _parse_cancel_only(
    bundle: TransactionBundle,
    response: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market],
) -> CanonicalOrder:
    cancel = bundle.get(TransactionKind.ORDER_CANCEL)
    return CanonicalOrder(
        id=safe_string(cancel, "orderID"),
        timestamp=parse_date(safe_string(cancel, "time")),
        status=OrderStatus.CANCELED,
        symbol=resolve_symbol(safe_string(cancel, "instrument"), registry, market),
        client_order_id=safe_string(cancel, "clientOrderID"),
        info=response,
    )


def _parse_bundle(
    response: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market],
) -> CanonicalOrder:
    bundle = build_bundle(response)
    create = bundle.get(TransactionKind.ORDER_CREATE)

    if create is None:
        if TransactionKind.ORDER_CANCEL in bundle:
            return _parse_cancel_only(bundle, response, registry, market)
        raise BadResponse(
            "Order response without create or cancel transaction",
            context={"kinds": [kind.value for kind in bundle.kinds]},
        )

    last_kind = bundle.last_kind
    if last_kind in (TransactionKind.ORDER_CANCEL, TransactionKind.ORDER_REJECT):
        terminal = bundle.get(last_kind)
        reason = safe_string2(terminal, "rejectReason", "reason")
        logger.warning(
            f"Order {safe_string(create, 'id')} terminated by "
            f"{last_kind.value}: {reason}"
        )
        raise InvalidOrder(
            f"Order was not accepted: {reason}",
            reason=reason,
            context={"order_id": safe_string(create, "id"), "terminal": last_kind.value},
        )

    side, amount = side_from_units(safe_string(create, "units"))

    status = OrderStatus.OPEN
    filled = None
    remaining = amount
    if last_kind == TransactionKind.ORDER_FILL:
        status = OrderStatus.CLOSED
        fill_units = safe_string(bundle.get(TransactionKind.ORDER_FILL), "units")
        filled = string_abs(fill_units) if fill_units is not None else amount
        remaining = None

    extensions = create.get("clientExtensions") if isinstance(create, dict) else None

    return CanonicalOrder(
        id=safe_string(create, "id"),
        timestamp=parse_date(safe_string(create, "time")),
        status=status,
        type=ORDER_TRANSACTION_TYPE(safe_string(create, "type")),
        side=side,
        symbol=resolve_symbol(safe_string(create, "instrument"), registry, market),
        time_in_force=TIME_IN_FORCE(safe_string(create, "timeInForce")),
        price=safe_string(create, "price"),
        amount=amount,
        filled=filled,
        remaining=remaining,
        client_order_id=safe_string(extensions, "id"),
        info=response,
    )


def _parse_record(
    order: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market],
) -> CanonicalOrder:
    side, amount = side_from_units(safe_string(order, "units"))
    state = safe_string(order, "state")

    filled = None
    remaining = None
    if state == "FILLED":
        filled = amount
    elif state in ("PENDING", "TRIGGERED"):
        remaining = amount

    extensions = order.get("clientExtensions")

    return CanonicalOrder(
        id=safe_string(order, "id"),
        timestamp=parse_date(safe_string(order, "createTime")),
        status=ORDER_STATUS(state),
        type=ORDER_TYPE(safe_string(order, "type")),
        side=side,
        symbol=resolve_symbol(safe_string(order, "instrument"), registry, market),
        time_in_force=TIME_IN_FORCE(safe_string(order, "timeInForce")),
        price=safe_string(order, "price"),
        amount=amount,
        filled=filled,
        remaining=remaining,
        client_order_id=safe_string(extensions, "id"),
        info=order,
    )


def parse_order(
    payload: Dict[str, Any],
    registry: MarketRegistry,
    market: Optional[Market] = None,
) -> CanonicalOrder:
    """
    Interpret a create/edit/cancel response or a direct order record.

    Args:
        payload: Response bundle, or an order record (has createTime)
        registry: Market registry for symbol resolution
        market: Market to fall back on when the payload has no instrument

    Returns:
        CanonicalOrder

    Raises:
        InvalidOrder: If a create/edit bundle ends in cancel or reject
        BadResponse: If the payload is neither a bundle nor a record
    """
    if is_bundle(payload):
        return _parse_bundle(payload, registry, market)
    if isinstance(payload, dict) and "createTime" in payload:
        return _parse_record(payload, registry, market)
    raise BadResponse(
        "Payload is neither an order record nor a transaction bundle",
        context={"keys": sorted(payload) if isinstance(payload, dict) else None},
    )


def parse_orders(
    orders: Iterable[Dict[str, Any]],
    registry: MarketRegistry,
    market: Optional[Market] = None,
    since: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[CanonicalOrder]:
    result = [parse_order(order, registry, market) for order in orders]
    if market is not None:
        result = [order for order in result if order.symbol == market.symbol]
    return filter_by_since_limit(result, since, limit)
