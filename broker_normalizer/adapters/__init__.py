"""
Broker Normalizer - Adapters Package.

============================================================
PURPOSE
============================================================
Broker adapter implementations.

AVAILABLE ADAPTERS:
- OandaAdapter: OANDA v20 REST API

TRANSPORTS:
- AiohttpTransport: HTTP transport (aiohttp)
- MockTransport: Scripted responses for testing

UTILITIES:
- AdapterLogger: Secure logging
- classify_error / raise_for_error: Broker error mapping

============================================================
"""

# Base types
from .base import BrokerAdapter, Transport

# Adapters
from .oanda import OandaAdapter

# Transports
from .transport import AiohttpTransport
from .mock import MockTransport, RecordedCall

# Errors
from .errors import (
    ErrorCategory,
    OANDA_EXACT_ERRORS,
    OANDA_BROAD_ERRORS,
    classify_error,
    raise_for_error,
)

# Logging
from .logging_utils import (
    AdapterLogger,
    mask_value,
    mask_headers,
    mask_params,
    mask_url,
)


__all__ = [
    "BrokerAdapter",
    "Transport",
    "OandaAdapter",
    "AiohttpTransport",
    "MockTransport",
    "RecordedCall",
    "ErrorCategory",
    "OANDA_EXACT_ERRORS",
    "OANDA_BROAD_ERRORS",
    "classify_error",
    "raise_for_error",
    "AdapterLogger",
    "mask_value",
    "mask_headers",
    "mask_params",
    "mask_url",
]
