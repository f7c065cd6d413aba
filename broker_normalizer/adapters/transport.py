"""
OANDA Adapter - aiohttp Transport.

============================================================
PURPOSE
============================================================
HTTP transport for the v20 REST API:
- Path templates ({accountID}, {instrument}, ...) filled from
  config and params
- Bearer-token authentication
- Query string for GET, JSON body otherwise
- Broker error payloads mapped through raise_for_error

CRITICAL CONSTRAINTS:
- No retries, no rate limiting
- One ClientSession per transport, closed by close()

============================================================
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, Optional, Tuple

import aiohttp

from ..config import OandaConfig
from ..errors import (
    ArgumentsRequired,
    AuthenticationError,
    BadResponse,
    RequestTimeout,
    TransportError,
)
from .base import Transport
from .errors import raise_for_error
from .logging_utils import AdapterLogger


logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def implode_path(endpoint: str, params: Dict[str, Any], account_id: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    """
    Fill the path placeholders of an endpoint template.

    Placeholder values are taken out of params; {accountID}
    defaults to the configured account.

    Raises:
        ArgumentsRequired: If a placeholder has no value
    """
    remaining = dict(params)

    def substitute(match: "re.Match") -> str:
        name = match.group(1)
        value = remaining.pop(name, None)
        if value is None and name == "accountID":
            value = account_id
        if value is None:
            raise ArgumentsRequired(f"{endpoint} requires '{name}'", context={"endpoint": endpoint})
        return str(value)

    return _PLACEHOLDER.sub(substitute, endpoint), remaining


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class AiohttpTransport(Transport):
    """
    aiohttp-based transport.

    Usage:
        async with AiohttpTransport(OandaConfig.from_env()) as transport:
            summary = await transport.request("accounts/{accountID}/summary")
    """

    def __init__(self, config: OandaConfig, adapter_logger: Optional[AdapterLogger] = None):
        self._config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._log = adapter_logger or AdapterLogger("oanda")

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    @property
    def api_root(self) -> str:
        return f"{self._config.base_url}/{self._config.transport.api_version}"

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self.is_connected:
            return
        timeout = aiohttp.ClientTimeout(total=self._config.transport.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info(f"OANDA transport opened ({'practice' if self._config.practice else 'live'})")

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.info("OANDA transport closed")

    async def __aenter__(self) -> "AiohttpTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------------------------------------------------
    # REQUESTS
    # --------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        if not self._config.api_token:
            raise AuthenticationError("OANDA API token is not configured")
        return {
            "Authorization": f"Bearer {self._config.api_token}",
            "Content-Type": "application/json",
            "Accept-Datetime-Format": "RFC3339",
        }

    async def request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> Dict[str, Any]:
        path, remaining = implode_path(endpoint, params or {}, self._config.account_id)
        url = f"{self.api_root}/{path}"
        headers = self._headers()
        method = method.upper()

        query = None
        body = None
        if method == "GET":
            query = {key: _query_value(value) for key, value in remaining.items() if value is not None}
        elif remaining:
            body = remaining

        await self.connect()
        request_id = self._log.log_request(method, url, headers=headers, params=query, body=body)
        started = time.monotonic()

        try:
            async with self._session.request(
                method,
                url,
                params=query,
                json=body,
                headers=headers,
            ) as response:
                status = response.status
                text = await response.text()
        except asyncio.TimeoutError as e:
            self._log.log_response(request_id, None, (time.monotonic() - started) * 1000, False,
                                   error_message="timeout")
            raise RequestTimeout(
                f"Request timed out after {self._config.transport.timeout_seconds}s: {method} {path}",
                endpoint=endpoint,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            self._log.log_response(request_id, None, (time.monotonic() - started) * 1000, False,
                                   error_message=str(e))
            raise TransportError(
                f"Network error on {method} {path}: {e}",
                endpoint=endpoint,
                original_error=e,
            ) from e

        latency_ms = (time.monotonic() - started) * 1000
        data = self._decode(text, status, endpoint)

        error_message = data.get("errorMessage") if isinstance(data, dict) else None
        self._log.log_response(
            request_id,
            status,
            latency_ms,
            success=status < 400 and not error_message,
            error_code=data.get("errorCode") if isinstance(data, dict) else None,
            error_message=error_message,
        )

        raise_for_error(data, status, endpoint)
        return data

    @staticmethod
    def _decode(text: str, status: int, endpoint: str) -> Dict[str, Any]:
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            if status >= 400:
                raise_for_error(None, status, endpoint)
            raise BadResponse(
                f"Non-JSON response from {endpoint}",
                context={"status": status, "body": text[:200]},
                original_error=e,
            ) from e
