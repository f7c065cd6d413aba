"""
Order State Interpreter Tests.

============================================================
PURPOSE
============================================================
Order lifecycle state inferred from transaction bundles and
order records.

TEST CATEGORIES:
- Bundle construction: explicit ordering
- Create/edit bundles: terminal transaction decides status
- Cancel-only bundles
- Direct order records
- Token passthrough

============================================================
"""

import pytest

from broker_normalizer.errors import BadResponse, InvalidOrder, UnknownMarket
from broker_normalizer.order_interpreter import build_bundle, parse_order, parse_orders
from broker_normalizer.types import OrderSide, OrderStatus, OrderType, TimeInForce, TransactionKind


def create_transaction(units="-1", type="LIMIT_ORDER", id="13", instrument="USD_JPY"):
    return {
        "id": id,
        "accountID": "001-004-1234567-001",
        "batchID": id,
        "requestID": "132995756821489501",
        "time": "2022-02-03T11:38:15.490811234Z",
        "type": type,
        "instrument": instrument,
        "units": units,
        "price": "101.000",
        "timeInForce": "GTC",
        "positionFill": "DEFAULT",
        "reason": "CLIENT_ORDER",
    }


def fill_transaction(units="-1", id="14", order_id="13"):
    return {
        "id": id,
        "batchID": order_id,
        "time": "2022-02-03T11:38:15.490811234Z",
        "type": "ORDER_FILL",
        "orderID": order_id,
        "instrument": "USD_JPY",
        "units": units,
        "price": "114.824",
        "commission": "0.0000",
        "accountBalance": "20.0000",
    }


def cancel_transaction(id="69", order_id="68", reason="MARKET_HALTED"):
    return {
        "id": id,
        "batchID": order_id,
        "time": "2022-02-06T07:55:40.491081947Z",
        "type": "ORDER_CANCEL",
        "orderID": order_id,
        "reason": reason,
    }


# ============================================================
# BUNDLE CONSTRUCTION TESTS
# ============================================================

class TestBuildBundle:
    """Tests for build_bundle."""

    def test_orders_by_transaction_id(self):
        """Transactions are ordered by id, not by payload key order."""
        response = {
            "orderFillTransaction": fill_transaction(),
            "orderCreateTransaction": create_transaction(),
            "relatedTransactionIDs": ["13", "14"],
            "lastTransactionID": "14",
        }

        bundle = build_bundle(response)

        assert bundle.kinds == [TransactionKind.ORDER_CREATE, TransactionKind.ORDER_FILL]
        assert bundle.last_kind == TransactionKind.ORDER_FILL

    def test_ignores_non_transaction_keys(self):
        bundle = build_bundle({"orderCreateTransaction": create_transaction(), "lastTransactionID": "13"})

        assert len(bundle) == 1
        assert TransactionKind.ORDER_CREATE in bundle
        assert TransactionKind.ORDER_FILL not in bundle

    def test_payload_order_without_ids(self):
        """Missing ids fall back to payload order."""
        create = create_transaction()
        del create["id"]
        cancel = cancel_transaction()
        bundle = build_bundle({"orderCreateTransaction": create, "orderCancelTransaction": cancel})

        assert bundle.kinds == [TransactionKind.ORDER_CREATE, TransactionKind.ORDER_CANCEL]

    def test_edit_response_cancel_precedes_create(self):
        """Edit responses cancel the old order before creating the new one."""
        response = {
            "orderCancelTransaction": cancel_transaction(id="70", order_id="68", reason="CLIENT_REQUEST_REPLACED"),
            "orderCreateTransaction": create_transaction(id="71"),
        }

        assert build_bundle(response).last_kind == TransactionKind.ORDER_CREATE


# ============================================================
# CREATE / EDIT BUNDLE TESTS
# ============================================================

class TestCreateBundle:
    """Tests for create/edit responses."""

    def test_bare_create_is_open(self, registry):
        """Create without fill -> open."""
        order = parse_order({"orderCreateTransaction": create_transaction()}, registry)

        assert order.status == OrderStatus.OPEN
        assert order.id == "13"
        assert order.type == OrderType.LIMIT
        assert order.price == "101.000"
        assert order.time_in_force == TimeInForce.GTC
        assert order.symbol == "USD/JPY"
        assert order.filled is None

    def test_create_then_fill_is_closed(self, registry):
        """Create followed by fill -> closed."""
        response = {
            "orderCreateTransaction": create_transaction(),
            "orderFillTransaction": fill_transaction(),
        }

        order = parse_order(response, registry)

        assert order.status == OrderStatus.CLOSED
        assert order.filled == "1"
        assert order.remaining is None

    def test_create_then_cancel_raises_invalid_order(self, registry):
        """Create followed by cancel -> InvalidOrder with the cancel reason."""
        response = {
            "orderCreateTransaction": create_transaction(id="68"),
            "orderCancelTransaction": cancel_transaction(id="69", order_id="68"),
        }

        with pytest.raises(InvalidOrder) as exc_info:
            parse_order(response, registry)

        assert exc_info.value.reason == "MARKET_HALTED"

    def test_create_then_reject_raises_invalid_order(self, registry):
        response = {
            "orderCreateTransaction": create_transaction(id="64"),
            "orderRejectTransaction": {
                "id": "65",
                "type": "LIMIT_ORDER_REJECT",
                "reason": "CLIENT_ORDER",
                "rejectReason": "UNITS_INVALID",
            },
        }

        with pytest.raises(InvalidOrder) as exc_info:
            parse_order(response, registry)

        assert exc_info.value.reason == "UNITS_INVALID"

    def test_negative_units_is_sell(self, registry):
        """units "-5" -> sell, amount "5"."""
        order = parse_order({"orderCreateTransaction": create_transaction(units="-5")}, registry)

        assert order.side == OrderSide.SELL
        assert order.amount == "5"

    def test_positive_units_is_buy(self, registry):
        """units "3" -> buy, amount "3"."""
        order = parse_order({"orderCreateTransaction": create_transaction(units="3")}, registry)

        assert order.side == OrderSide.BUY
        assert order.amount == "3"

    def test_timestamp_from_nanosecond_time(self, registry):
        order = parse_order({"orderCreateTransaction": create_transaction()}, registry)

        assert order.timestamp == 1643888295490
        assert order.datetime == "2022-02-03T11:38:15.490Z"

    def test_unknown_instrument_propagates(self, registry):
        with pytest.raises(UnknownMarket):
            parse_order({"orderCreateTransaction": create_transaction(instrument="FOO_BAR")}, registry)

    def test_market_fallback_without_instrument(self, registry):
        create = create_transaction()
        del create["instrument"]

        order = parse_order({"orderCreateTransaction": create}, registry, registry.market("EUR/USD"))

        assert order.symbol == "EUR/USD"


# ============================================================
# CANCEL-ONLY BUNDLE TESTS
# ============================================================

class TestCancelOnlyBundle:
    """Tests for cancel responses."""

    def test_cancel_only(self, registry):
        """Id is the cancelled order, status canceled."""
        response = {
            "orderCancelTransaction": cancel_transaction(id="51", order_id="50", reason="CLIENT_REQUEST"),
            "relatedTransactionIDs": ["51"],
            "lastTransactionID": "51",
        }

        order = parse_order(response, registry)

        assert order.id == "50"
        assert order.status == OrderStatus.CANCELED
        assert order.timestamp == 1644134140491
        assert order.side is None

    def test_fill_only_is_bad_response(self, registry):
        with pytest.raises(BadResponse):
            parse_order({"orderFillTransaction": fill_transaction()}, registry)


# ============================================================
# ORDER RECORD TESTS
# ============================================================

class TestOrderRecord:
    """Tests for list/get order records."""

    def test_filled_market_order(self, registry):
        """The canonical record scenario."""
        record = {
            "id": "19",
            "createTime": "2022-02-03T12:13:45Z",
            "type": "MARKET",
            "instrument": "USD_JPY",
            "units": "1",
            "state": "FILLED",
        }

        order = parse_order(record, registry)

        assert order.status == OrderStatus.CLOSED
        assert order.side == OrderSide.BUY
        assert order.type == OrderType.MARKET
        assert order.symbol == "USD/JPY"
        assert order.filled == "1"
        assert order.remaining is None
        assert order.timestamp == 1643890425000
        assert order.to_dict()["status"] == "closed"

    @pytest.mark.parametrize("state", ["PENDING", "TRIGGERED"])
    def test_pending_has_remaining(self, registry, state):
        record = {"id": "20", "createTime": "2022-02-03T12:13:45Z", "type": "LIMIT",
                  "instrument": "EUR_USD", "units": "-100", "price": "1.10000", "state": state}

        order = parse_order(record, registry)

        assert order.remaining == "100"
        assert order.filled is None

    def test_cancelled_state(self, registry):
        record = {"id": "21", "createTime": "2022-02-03T12:13:45Z", "type": "LIMIT",
                  "instrument": "EUR_USD", "units": "10", "state": "CANCELLED"}

        assert parse_order(record, registry).status == OrderStatus.CANCELED

    def test_unrecognized_tokens_pass_through(self, registry):
        """Unknown type/state/time-in-force tokens are kept verbatim."""
        record = {"id": "22", "createTime": "2022-02-03T12:13:45Z", "type": "TAKE_PROFIT",
                  "instrument": "EUR_USD", "state": "SOMETHING_NEW", "timeInForce": "GFD"}

        order = parse_order(record, registry)

        assert order.type == "TAKE_PROFIT"
        assert order.status == "SOMETHING_NEW"
        assert order.time_in_force == "GFD"
        assert order.side is None
        assert order.amount is None

    def test_idempotent(self, registry):
        """Normalizing the same record twice yields equal output."""
        record = {"id": "19", "createTime": "2022-02-03T12:13:45Z", "type": "MARKET",
                  "instrument": "USD_JPY", "units": "1", "state": "FILLED"}

        assert parse_order(record, registry).to_dict() == parse_order(record, registry).to_dict()

    def test_neither_record_nor_bundle(self, registry):
        with pytest.raises(BadResponse):
            parse_order({"id": "1"}, registry)


class TestParseOrders:
    """Tests for parse_orders filtering."""

    def test_since_and_limit(self, registry):
        records = [
            {"id": "1", "createTime": "2022-02-01T00:00:00Z", "instrument": "EUR_USD", "state": "FILLED"},
            {"id": "2", "createTime": "2022-02-02T00:00:00Z", "instrument": "EUR_USD", "state": "FILLED"},
            {"id": "3", "createTime": "2022-02-03T00:00:00Z", "instrument": "EUR_USD", "state": "FILLED"},
        ]

        orders = parse_orders(records, registry, since=1643760000000, limit=1)

        assert [order.id for order in orders] == ["2"]


# ============================================================
# RUN TESTS
# ============================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
