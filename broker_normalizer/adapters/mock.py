"""
Broker Normalizer - Mock Transport.

============================================================
PURPOSE
============================================================
Scripted transport for testing adapters without a network.

FEATURES:
- Responses keyed by (method, endpoint template)
- Sequential responses for repeated calls (e.g. pages)
- Callable responses computed from request params
- Error injection (exceptions or broker error payloads)
- Full call recording

============================================================
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

from ..errors import TransportError
from .base import Transport
from .errors import raise_for_error


logger = logging.getLogger(__name__)


ScriptedResponse = Union[Dict[str, Any], Callable[[Dict[str, Any]], Dict[str, Any]], BaseException]


@dataclass
class RecordedCall:
    """One request seen by the mock."""

    method: str
    endpoint: str
    params: Dict[str, Any] = field(default_factory=dict)


class MockTransport(Transport):
    """
    In-memory transport serving scripted responses.

    Usage:
        transport = MockTransport()
        transport.add_response("GET", "accounts/{accountID}/summary", {"account": {...}})
        adapter = OandaAdapter(config, transport=transport)
    """

    def __init__(self, responses: Optional[Dict[Tuple[str, str], Any]] = None, status_code: int = 200):
        self._responses: Dict[Tuple[str, str], Deque[ScriptedResponse]] = {}
        self._sticky: Dict[Tuple[str, str], ScriptedResponse] = {}
        self.calls: List[RecordedCall] = []
        self.status_code = status_code
        self.closed = False
        for (method, endpoint), response in (responses or {}).items():
            self.set_response(method, endpoint, response)

    # --------------------------------------------------------
    # SCRIPTING
    # --------------------------------------------------------

    def set_response(self, method: str, endpoint: str, response: ScriptedResponse) -> None:
        """Serve `response` for every call to (method, endpoint)."""
        self._sticky[(method.upper(), endpoint)] = response

    def add_response(self, method: str, endpoint: str, response: ScriptedResponse) -> None:
        """Queue `response` for the next call; queued responses win over sticky ones."""
        self._responses.setdefault((method.upper(), endpoint), deque()).append(response)

    def calls_to(self, endpoint: str, method: Optional[str] = None) -> List[RecordedCall]:
        return [
            call for call in self.calls
            if call.endpoint == endpoint and (method is None or call.method == method.upper())
        ]

    def reset(self) -> None:
        self._responses.clear()
        self._sticky.clear()
        self.calls.clear()

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> Dict[str, Any]:
        key = (method.upper(), endpoint)
        request_params = dict(params or {})
        self.calls.append(RecordedCall(method=key[0], endpoint=endpoint, params=request_params))
        logger.debug(f"Mock {key[0]} {endpoint} {request_params}")

        queue = self._responses.get(key)
        if queue:
            response = queue.popleft()
        elif key in self._sticky:
            response = self._sticky[key]
        else:
            raise TransportError(f"No scripted response for {key[0]} {endpoint}", endpoint=endpoint)

        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(request_params)

        data = copy.deepcopy(response)
        raise_for_error(data, self.status_code, endpoint)
        return data

    async def close(self) -> None:
        self.closed = True
