"""
Broker Normalizer - Exception Hierarchy.

============================================================
PURPOSE
============================================================
Every failure the normalization layer can surface.

Normalizers, the order state interpreter and the pager never
swallow these: they propagate to the caller untouched.

============================================================
EXCEPTION HIERARCHY
============================================================
BrokerError (base)
├── ExchangeError
│   ├── AuthenticationError
│   ├── BadRequest
│   │   ├── BadSymbol
│   │   │   └── UnknownMarket
│   │   └── ArgumentsRequired
│   ├── InvalidOrder
│   │   └── OrderNotFound
│   ├── NotSupported
│   └── BadResponse
│       ├── MalformedPageLink
│       └── UnrecognizedBookEntry
├── TransportError
│   ├── RequestTimeout
│   └── ExchangeNotAvailable
└── MalformedNumber

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Optional


class BrokerError(Exception):
    """Base exception for all broker normalizer errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


# ============================================================
# BROKER-REPORTED / REQUEST-LEVEL ERRORS
# ============================================================

class ExchangeError(BrokerError):
    """The broker answered, but with an error or an unusable payload."""


class AuthenticationError(ExchangeError):
    """Missing or rejected credentials."""


class BadRequest(ExchangeError):
    """The broker rejected request parameters."""


class BadSymbol(BadRequest):
    """The symbol or instrument is not valid for this broker."""


class UnknownMarket(BadSymbol):
    """An instrument id could not be resolved through the market registry."""

    def __init__(self, market_id: Optional[str], message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Unknown market: {market_id}",
            context={"market_id": market_id},
        )
        self.market_id = market_id


class ArgumentsRequired(BadRequest):
    """A caller-facing operation was invoked without a required argument."""


class InvalidOrder(ExchangeError):
    """
    Order action failed at request level.

    Raised when a create/edit bundle terminates with a cancellation:
    the broker accepted the request and immediately cancelled it.
    """

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class OrderNotFound(InvalidOrder):
    """The referenced order does not exist."""


class NotSupported(ExchangeError):
    """The broker does not offer this operation for the given arguments."""


class BadResponse(ExchangeError):
    """The broker payload violates the shape the normalizer relies on."""


class MalformedPageLink(BadResponse):
    """A page-link in a transaction summary has no parsable boundary id."""

    def __init__(self, link: Any, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Malformed transaction page link: {link!r}",
            context={"link": link},
        )
        self.link = link


class UnrecognizedBookEntry(BadResponse):
    """An order-book bucket is priced exactly at the reference price."""

    def __init__(self, bucket: Any, reference_price: Optional[str] = None) -> None:
        super().__init__(
            f"Order book bucket cannot be assigned to a side: {bucket!r} "
            f"(reference price {reference_price})",
            context={"bucket": bucket, "reference_price": reference_price},
        )
        self.bucket = bucket
        self.reference_price = reference_price


# ============================================================
# TRANSPORT ERRORS
# ============================================================

class TransportError(BrokerError):
    """Communication with the broker failed before a usable answer arrived."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            context={"endpoint": endpoint, "status_code": status_code},
            original_error=original_error,
        )
        self.endpoint = endpoint
        self.status_code = status_code


class RequestTimeout(TransportError):
    """The request did not complete in time."""


class ExchangeNotAvailable(TransportError):
    """The broker is down or answered with a server error."""


# ============================================================
# DATA CONTRACT ERRORS
# ============================================================

class MalformedNumber(BrokerError, ValueError):
    """A value handed to the decimal string algebra is not a finite number."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"Malformed numeric string: {value!r}", context={"value": value})
        self.value = value
