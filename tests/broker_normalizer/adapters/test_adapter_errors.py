"""
Broker Error Classification Tests.

============================================================
PURPOSE
============================================================
Broker error payloads map onto the exception hierarchy.

TEST CATEGORIES:
- Exact errorCode match
- Broad errorMessage match
- HTTP status fallback
- Raised exception types and context

============================================================
"""

import pytest

from broker_normalizer.adapters.errors import (
    ErrorCategory,
    classify_error,
    raise_for_error,
)
from broker_normalizer.errors import (
    AuthenticationError,
    BadRequest,
    BadSymbol,
    BrokerError,
    ExchangeError,
    ExchangeNotAvailable,
    OrderNotFound,
)


# ============================================================
# CLASSIFICATION TESTS
# ============================================================

class TestClassifyError:
    """Tests for classify_error."""

    def test_success_is_none(self):
        assert classify_error({"orders": []}, 200) is None
        assert classify_error(None, 200) is None

    def test_exact_code_wins(self):
        response = {"errorCode": "ORDER_DOESNT_EXIST", "errorMessage": "Invalid value specified for 'x'"}

        assert classify_error(response, 404) == ErrorCategory.ORDER_NOT_FOUND

    @pytest.mark.parametrize("message, category", [
        ("Invalid value specified for 'instrument'", ErrorCategory.BAD_SYMBOL),
        ("Invalid value specified for 'units'", ErrorCategory.BAD_REQUEST),
        ("Maximum value for 'count' exceeded", ErrorCategory.BAD_REQUEST),
        ("FOO_BAR is not a valid instrument.", ErrorCategory.BAD_SYMBOL),
        ("Insufficient authorization to perform request.", ErrorCategory.AUTHENTICATION),
        ("The order ID specified does not exist", ErrorCategory.ORDER_NOT_FOUND),
        ("The specified page size is invalid", ErrorCategory.BAD_REQUEST),
    ])
    def test_broad_messages(self, message, category):
        assert classify_error({"errorMessage": message}, 400) == category

    def test_unknown_message(self):
        assert classify_error({"errorMessage": "Something odd"}, 400) == ErrorCategory.EXCHANGE_ERROR

    def test_message_without_http_status(self):
        """An errorMessage is an error even on a 2xx status."""
        assert classify_error({"errorMessage": "Something odd"}, 200) == ErrorCategory.EXCHANGE_ERROR

    @pytest.mark.parametrize("status, category", [
        (401, ErrorCategory.AUTHENTICATION),
        (403, ErrorCategory.AUTHENTICATION),
        (404, ErrorCategory.EXCHANGE_ERROR),
        (503, ErrorCategory.NOT_AVAILABLE),
    ])
    def test_status_fallback(self, status, category):
        assert classify_error({}, status) == category


# ============================================================
# RAISE TESTS
# ============================================================

class TestRaiseForError:
    """Tests for raise_for_error."""

    def test_success_does_not_raise(self):
        raise_for_error({"account": {}}, 200, "accounts/{accountID}/summary")

    @pytest.mark.parametrize("response, status, exception", [
        ({"errorCode": "UNITS_INVALID", "errorMessage": "bad units"}, 400, BadRequest),
        ({"errorMessage": "Invalid Instrument FOO"}, 400, BadSymbol),
        ({"errorMessage": "The provided request was forbidden."}, 403, AuthenticationError),
        ({"errorMessage": "The Order specified does not exist"}, 404, OrderNotFound),
        ({"errorMessage": "Unexpected"}, 400, ExchangeError),
    ])
    def test_exception_types(self, response, status, exception):
        with pytest.raises(exception):
            raise_for_error(response, status)

    def test_message_and_context(self):
        with pytest.raises(BadRequest) as exc_info:
            raise_for_error({"errorCode": "UNITS_INVALID", "errorMessage": "bad units"}, 400, "orders")

        error = exc_info.value
        assert isinstance(error, BrokerError)
        assert str(error).startswith("oanda ")
        assert "UNITS_INVALID" in str(error)
        assert error.context["error_code"] == "UNITS_INVALID"
        assert error.context["endpoint"] == "orders"

    def test_not_available(self):
        with pytest.raises(ExchangeNotAvailable) as exc_info:
            raise_for_error(None, 502, "accounts/{accountID}/summary")

        assert exc_info.value.status_code == 502
        assert exc_info.value.endpoint == "accounts/{accountID}/summary"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
