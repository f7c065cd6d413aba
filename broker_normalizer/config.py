"""
Broker Normalizer - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the OANDA adapter and its transport.

Broker constant tables (timeframes, order-book symbols) are
static data owned here, never core logic.

CRITICAL CONSTRAINTS:
- No internal retries
- Credentials come from the environment, never from code

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv


# ============================================================
# BROKER CONSTANTS
# ============================================================

LIVE_URL = "https://api-fxtrade.oanda.com"
PRACTICE_URL = "https://api-fxpractice.oanda.com"

# Canonical timeframe -> candle granularity
TIMEFRAMES: Dict[str, str] = {
    "5s": "S5",
    "10s": "S10",
    "15s": "S15",
    "30s": "S30",
    "1m": "M1",
    "2m": "M2",
    "4m": "M4",
    "5m": "M5",
    "10m": "M10",
    "15m": "M15",
    "30m": "M30",
    "1h": "H1",
    "2h": "H2",
    "3h": "H3",
    "4h": "H4",
    "6h": "H6",
    "8h": "H8",
    "12h": "H12",
    "1d": "D",
    "1w": "W",
    "1M": "M",
}

# The API lists instruments that have no order book and offers no way
# to tell them apart; this is the list published in the web UI.
ORDER_BOOK_SYMBOLS: List[str] = [
    "AUD/JPY", "AUD/USD", "EUR/AUD", "EUR/CHF", "EUR/GBP", "EUR/JPY",
    "EUR/USD", "GBP/CHF", "GBP/JPY", "GBP/USD", "NZD/USD", "USD/CAD",
    "USD/CHF", "USD/JPY", "XAU/USD", "XAG/USD",
]

MAX_CANDLES_PER_REQUEST = 5000

FETCH_MY_TRADES_TRANSACTIONS = "transactions"
FETCH_MY_TRADES_CLOSED_TRADES = "closed_trades"


# ============================================================
# TRANSPORT CONFIGURATION
# ============================================================

@dataclass
class TransportConfig:
    """
    HTTP transport configuration.
    """

    live_url: str = LIVE_URL
    """Base URL of the live (fxTrade) environment."""

    practice_url: str = PRACTICE_URL
    """Base URL of the practice (fxPractice) environment."""

    api_version: str = "v3"
    """REST API version path segment."""

    timeout_seconds: float = 30.0
    """Total request timeout."""


# ============================================================
# PAGINATION CONFIGURATION
# ============================================================

@dataclass
class PaginationConfig:
    """
    Transaction history pagination.
    """

    page_size: Optional[int] = None
    """Default pageSize for transaction summaries (None = broker default)."""

    default_since: int = 0
    """Start of history when the caller gives no `since` (epoch zero)."""


# ============================================================
# ADAPTER CONFIGURATION
# ============================================================

@dataclass
class OandaConfig:
    """
    Complete OANDA adapter configuration.
    """

    account_id: Optional[str] = None
    """Account id; fills {accountID} in endpoint paths."""

    api_token: Optional[str] = None
    """Personal access token sent as a bearer token."""

    practice: bool = False
    """Use the practice environment."""

    transport: TransportConfig = field(default_factory=TransportConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)

    timeframes: Dict[str, str] = field(default_factory=lambda: dict(TIMEFRAMES))
    order_book_symbols: List[str] = field(default_factory=lambda: list(ORDER_BOOK_SYMBOLS))

    common_currencies: Dict[str, str] = field(default_factory=dict)
    """Broker currency id -> canonical code overrides."""

    fetch_my_trades_method: str = FETCH_MY_TRADES_TRANSACTIONS
    """Source of fetch_my_trades: transaction fills or closed trades."""

    @property
    def base_url(self) -> str:
        if self.practice:
            return self.transport.practice_url
        return self.transport.live_url

    @classmethod
    def from_env(cls, practice: Optional[bool] = None) -> "OandaConfig":
        """
        Create config from environment variables (.env is honoured).

        Reads OANDA_ACCOUNT_ID, OANDA_API_TOKEN, OANDA_PRACTICE and
        OANDA_TIMEOUT_SECONDS.
        """
        load_dotenv()

        if practice is None:
            practice = os.getenv("OANDA_PRACTICE", "false").lower() in {"1", "true", "yes"}

        transport = TransportConfig()
        timeout = os.getenv("OANDA_TIMEOUT_SECONDS")
        if timeout:
            transport.timeout_seconds = float(timeout)

        return cls(
            account_id=os.getenv("OANDA_ACCOUNT_ID"),
            api_token=os.getenv("OANDA_API_TOKEN"),
            practice=practice,
            transport=transport,
        )
