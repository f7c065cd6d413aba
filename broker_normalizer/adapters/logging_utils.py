"""
OANDA Adapter - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Structured request/response/order logging for the adapter
with credential masking.

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log the raw API token
2. Mask the Authorization header
3. Mask token-like query and body parameters
4. Log request bodies as a hash, never verbatim

============================================================
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


# ============================================================
# SENSITIVE DATA
# ============================================================

SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "cookie",
}

SENSITIVE_PARAMS = {
    "token",
    "access_token",
    "api_token",
    "apikey",
    "api_key",
    "secret",
    "password",
}


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a secret, keeping its first `show_chars` characters.

    Bearer tokens keep their scheme: "Bearer abcd...***".
    """
    if not value:
        return "***"
    scheme = ""
    if value.startswith("Bearer "):
        scheme, value = "Bearer ", value[len("Bearer "):]
    if len(value) <= show_chars:
        return f"{scheme}***"
    return f"{scheme}{value[:show_chars]}...***"


def mask_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    if not headers:
        return {}
    return {
        key: mask_value(str(value)) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Mask sensitive parameters, recursing into nested dicts."""
    if not params:
        return {}
    masked = {}
    for key, value in params.items():
        if str(key).lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        else:
            masked[key] = value
    return masked


def mask_url(url: Optional[str]) -> Optional[str]:
    """Mask sensitive query parameters of a URL."""
    if not url:
        return url
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (key, "***" if key.lower() in SENSITIVE_PARAMS else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*,:")))


def hash_body(body: Any) -> Optional[str]:
    """Short SHA-256 digest of a request body."""
    if not body:
        return None
    if isinstance(body, (dict, list)):
        text = json.dumps(body, sort_keys=True, default=str)
    else:
        text = str(body)
    return hashlib.sha256(text.encode()).hexdigest()[:16]


# ============================================================
# LOG ENTRIES
# ============================================================

@dataclass
class RequestLogEntry:
    timestamp: str
    broker: str
    request_id: str
    method: str
    url: str
    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, Any]] = None
    body_hash: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({k: v for k, v in asdict(self).items() if v is not None}, default=str)


@dataclass
class ResponseLogEntry:
    timestamp: str
    broker: str
    request_id: str
    status_code: Optional[int]
    latency_ms: float
    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({k: v for k, v in asdict(self).items() if v is not None}, default=str)


@dataclass
class OrderLogEntry:
    timestamp: str
    broker: str
    operation: str
    order_id: Optional[str] = None
    symbol: Optional[str] = None
    side: Optional[str] = None
    order_type: Optional[str] = None
    amount: Optional[str] = None
    price: Optional[str] = None
    status: Optional[str] = None
    error_message: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({k: v for k, v in asdict(self).items() if v is not None}, default=str)


def _now() -> str:
    return datetime.utcnow().isoformat()


# ============================================================
# ADAPTER LOGGER
# ============================================================

class AdapterLogger:
    """
    Secure logger for broker adapter operations.

    Requests and responses go to DEBUG, order operations to INFO
    (WARNING when they fail).
    """

    def __init__(self, broker: str, logger_name: Optional[str] = None):
        self._broker = broker
        self._logger = logging.getLogger(logger_name or f"broker_normalizer.adapters.{broker}")
        self._request_counter = 0

    def _next_request_id(self) -> str:
        self._request_counter += 1
        return f"{self._broker}-{self._request_counter}"

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> str:
        """
        Log an outgoing request.

        Returns:
            Request id for correlating the response
        """
        request_id = self._next_request_id()
        entry = RequestLogEntry(
            timestamp=_now(),
            broker=self._broker,
            request_id=request_id,
            method=method,
            url=mask_url(url),
            headers=mask_headers(headers) or None,
            params=mask_params(params) or None,
            body_hash=hash_body(body),
        )
        self._logger.debug(f"REQUEST: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        request_id: str,
        status_code: Optional[int],
        latency_ms: float,
        success: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        entry = ResponseLogEntry(
            timestamp=_now(),
            broker=self._broker,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 2),
            success=success,
            error_code=error_code,
            error_message=error_message,
        )
        if success:
            self._logger.debug(f"RESPONSE: {entry.to_json()}")
        else:
            self._logger.warning(f"RESPONSE: {entry.to_json()}")

    def log_order(
        self,
        operation: str,
        order_id: Optional[str] = None,
        symbol: Optional[str] = None,
        side: Optional[str] = None,
        order_type: Optional[str] = None,
        amount: Optional[str] = None,
        price: Optional[str] = None,
        status: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        entry = OrderLogEntry(
            timestamp=_now(),
            broker=self._broker,
            operation=operation,
            order_id=order_id,
            symbol=symbol,
            side=side,
            order_type=order_type,
            amount=amount,
            price=price,
            status=status,
            error_message=error_message,
        )
        if error_message:
            self._logger.warning(f"ORDER: {entry.to_json()}")
        else:
            self._logger.info(f"ORDER: {entry.to_json()}")

    def info(self, message: str) -> None:
        self._logger.info(f"[{self._broker}] {message}")
