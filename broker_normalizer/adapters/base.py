"""
Broker Normalizer - Adapter Base.

============================================================
PURPOSE
============================================================
Abstract interfaces for the request transport and for the
caller-facing broker adapter.

DESIGN PRINCIPLES:
- The adapter never touches HTTP; it only sees Transport
- Transport returns decoded JSON or raises a BrokerError
- Fully testable with MockTransport

============================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..types import (
    Balance,
    Candle,
    CanonicalOrder,
    CanonicalPosition,
    FundingTransaction,
    LedgerEntry,
    Market,
    OrderBook,
    Ticker,
    Trade,
)


# ============================================================
# TRANSPORT
# ============================================================

class Transport(ABC):
    """
    Request/response channel to the broker.

    Endpoints are path templates relative to the API root
    (e.g. "accounts/{accountID}/orders"); the transport fills
    the placeholders it owns and consumes the ones it fills
    from params.
    """

    @abstractmethod
    async def request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> Dict[str, Any]:
        """
        Perform one request.

        Returns:
            Decoded JSON body

        Raises:
            TransportError: On network failure or timeout
            ExchangeError: On a broker error payload
        """
        pass

    async def close(self) -> None:
        """Release underlying resources."""


# ============================================================
# BROKER ADAPTER
# ============================================================

class BrokerAdapter(ABC):
    """
    Caller-facing broker operations returning canonical entities.

    Implementations:
    - OandaAdapter: OANDA v20 REST
    """

    @property
    @abstractmethod
    def broker_id(self) -> str:
        pass

    # --------------------------------------------------------
    # MARKETS
    # --------------------------------------------------------

    @abstractmethod
    async def fetch_markets(self) -> List[Market]:
        pass

    @abstractmethod
    async def load_markets(self, reload: bool = False) -> Dict[str, Market]:
        pass

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    @abstractmethod
    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBook:
        pass

    @abstractmethod
    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str = "1m",
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Candle]:
        pass

    @abstractmethod
    async def fetch_ticker(self, symbol: str) -> Ticker:
        pass

    @abstractmethod
    async def fetch_tickers(self, symbols: Optional[Sequence[str]] = None) -> Dict[str, Ticker]:
        pass

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    @abstractmethod
    async def create_order(
        self,
        symbol: str,
        type: str,
        side: str,
        amount: Any,
        price: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> CanonicalOrder:
        pass

    @abstractmethod
    async def cancel_order(self, id: str, symbol: Optional[str] = None) -> CanonicalOrder:
        pass

    @abstractmethod
    async def fetch_order(self, id: str, symbol: Optional[str] = None) -> CanonicalOrder:
        pass

    @abstractmethod
    async def fetch_orders(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
        state: str = "ALL",
    ) -> List[CanonicalOrder]:
        pass

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    @abstractmethod
    async def fetch_positions(self, symbols: Optional[Sequence[str]] = None) -> List[CanonicalPosition]:
        pass

    @abstractmethod
    async def fetch_my_trades(
        self,
        symbol: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Trade]:
        pass

    @abstractmethod
    async def fetch_ledger(
        self,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[LedgerEntry]:
        pass

    @abstractmethod
    async def fetch_transactions(
        self,
        code: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[FundingTransaction]:
        pass

    @abstractmethod
    async def fetch_balance(self) -> Dict[str, Balance]:
        pass

    async def close(self) -> None:
        """Release the adapter's resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
