"""
OANDA Adapter - Error Classification.

============================================================
PURPOSE
============================================================
Maps broker error payloads onto the exception hierarchy:
- Exact match on `errorCode`
- Substring (broad) match on `errorMessage`
- HTTP status fallback when the body carries no message

============================================================
ERROR CATEGORIES
============================================================
1. BAD_REQUEST      - Invalid units, price, page size, parameters
2. BAD_SYMBOL       - Unknown or invalid instrument
3. AUTHENTICATION   - Forbidden / insufficient authorization
4. ORDER_NOT_FOUND  - Order id does not exist
5. NOT_AVAILABLE    - Broker-side 5xx without a message
6. EXCHANGE_ERROR   - Any other error message

============================================================
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from ..errors import (
    AuthenticationError,
    BadRequest,
    BadSymbol,
    BrokerError,
    ExchangeError,
    ExchangeNotAvailable,
    OrderNotFound,
)


logger = logging.getLogger(__name__)


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorCategory(Enum):
    """Broker error categories."""

    BAD_REQUEST = "BAD_REQUEST"
    BAD_SYMBOL = "BAD_SYMBOL"
    AUTHENTICATION = "AUTHENTICATION"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"


CATEGORY_EXCEPTIONS: Dict[ErrorCategory, Type[BrokerError]] = {
    ErrorCategory.BAD_REQUEST: BadRequest,
    ErrorCategory.BAD_SYMBOL: BadSymbol,
    ErrorCategory.AUTHENTICATION: AuthenticationError,
    ErrorCategory.ORDER_NOT_FOUND: OrderNotFound,
    ErrorCategory.NOT_AVAILABLE: ExchangeNotAvailable,
    ErrorCategory.EXCHANGE_ERROR: ExchangeError,
}


# ============================================================
# OANDA ERROR TABLES
# ============================================================

# errorCode / rejectReason values
OANDA_EXACT_ERRORS: Dict[str, ErrorCategory] = {
    "UNITS_INVALID": ErrorCategory.BAD_REQUEST,
    "PRICE_INVALID": ErrorCategory.BAD_REQUEST,
    "UNITS_LIMIT_EXCEEDED": ErrorCategory.BAD_REQUEST,
    "oanda::rest::core::InvalidParameterException": ErrorCategory.BAD_REQUEST,
    "ORDER_DOESNT_EXIST": ErrorCategory.ORDER_NOT_FOUND,
    "NO_SUCH_ORDER": ErrorCategory.ORDER_NOT_FOUND,
    "INVALID_PAGESIZE": ErrorCategory.BAD_REQUEST,
    "MARGIN_RATE_INVALID": ErrorCategory.BAD_REQUEST,
}

# errorMessage substrings, first match wins (specific before generic)
OANDA_BROAD_ERRORS: List[Tuple[str, ErrorCategory]] = [
    ("Maximum value for ", ErrorCategory.BAD_REQUEST),
    ("Invalid value specified for 'instrument'", ErrorCategory.BAD_SYMBOL),
    ("Invalid value specified for ", ErrorCategory.BAD_REQUEST),
    (" is not a valid instrument.", ErrorCategory.BAD_SYMBOL),
    ("Invalid Instrument ", ErrorCategory.BAD_SYMBOL),
    ("The request was missing required data", ErrorCategory.BAD_REQUEST),
    ("The provided request was forbidden", ErrorCategory.AUTHENTICATION),
    ("Insufficient authorization to perform request", ErrorCategory.AUTHENTICATION),
    ("The order ID specified does not exist", ErrorCategory.ORDER_NOT_FOUND),
    ("The trade ID specified does not exist", ErrorCategory.BAD_REQUEST),
    ("The transaction ID specified does not exist", ErrorCategory.BAD_REQUEST),
    ("The units specified exceeds the maximum number of units allowed", ErrorCategory.BAD_REQUEST),
    ("The Order specified does not exist", ErrorCategory.ORDER_NOT_FOUND),
    ("The specified page size is invalid", ErrorCategory.BAD_REQUEST),
    ("The margin rate provided is invalid", ErrorCategory.BAD_REQUEST),
]


# ============================================================
# CLASSIFICATION
# ============================================================

def classify_error(
    response: Optional[Dict[str, Any]],
    http_status: Optional[int] = None,
) -> Optional[ErrorCategory]:
    """
    Classify a broker response.

    Args:
        response: Decoded JSON body (may be None)
        http_status: HTTP status code

    Returns:
        ErrorCategory, or None if the response is not an error
    """
    body = response if isinstance(response, dict) else {}
    message = body.get("errorMessage") or ""
    code = body.get("errorCode") or ""

    if message:
        if code in OANDA_EXACT_ERRORS:
            return OANDA_EXACT_ERRORS[code]
        for fragment, category in OANDA_BROAD_ERRORS:
            if fragment in message:
                return category
        return ErrorCategory.EXCHANGE_ERROR

    if http_status in (401, 403):
        return ErrorCategory.AUTHENTICATION
    if http_status is not None and http_status >= 500:
        return ErrorCategory.NOT_AVAILABLE
    if http_status is not None and http_status >= 400:
        return ErrorCategory.EXCHANGE_ERROR
    return None


def raise_for_error(
    response: Optional[Dict[str, Any]],
    http_status: Optional[int] = None,
    endpoint: Optional[str] = None,
) -> None:
    """
    Raise the mapped exception if the response is an error.

    Raises:
        BrokerError subclass chosen by classify_error
    """
    category = classify_error(response, http_status)
    if category is None:
        return

    body = response if isinstance(response, dict) else {}
    feedback = json.dumps(body, sort_keys=True) if body else f"HTTP {http_status}"
    message = f"oanda {feedback}"
    context = {
        "category": category.value,
        "error_code": body.get("errorCode"),
        "http_status": http_status,
        "endpoint": endpoint,
    }

    logger.warning(f"Broker error on {endpoint} ({category.value}): {body.get('errorMessage')}")

    exception_class = CATEGORY_EXCEPTIONS[category]
    if exception_class is ExchangeNotAvailable:
        raise ExchangeNotAvailable(message, endpoint=endpoint, status_code=http_status)
    raise exception_class(message, context=context)
