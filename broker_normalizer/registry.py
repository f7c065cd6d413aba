"""
Broker Normalizer - Market Registry.

In-memory lookup of static market metadata, loaded once from the
broker's instrument list. Normalizers resolve every instrument id
through it; unknown ids raise UnknownMarket instead of defaulting.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import UnknownMarket
from .types import Market


logger = logging.getLogger(__name__)


class MarketRegistry:
    """Markets indexed by broker id and by canonical symbol."""

    def __init__(self, common_currencies: Optional[Mapping[str, str]] = None):
        self._by_id: Dict[str, Market] = {}
        self._by_symbol: Dict[str, Market] = {}
        self._common_currencies: Dict[str, str] = dict(common_currencies or {})

    @property
    def is_loaded(self) -> bool:
        return bool(self._by_id)

    def load(self, markets: Iterable[Market]) -> None:
        """Replace the registry contents."""
        self._by_id = {}
        self._by_symbol = {}
        for market in markets:
            self._by_id[market.id] = market
            self._by_symbol[market.symbol] = market
        logger.info(f"Market registry loaded: {len(self._by_id)} markets")

    def market_by_id(self, market_id: Optional[str]) -> Market:
        """
        Resolve a broker instrument id.

        Raises:
            UnknownMarket: If the id is not registered
        """
        market = self._by_id.get(market_id) if market_id is not None else None
        if market is None:
            raise UnknownMarket(market_id)
        return market

    def market(self, symbol: str) -> Market:
        """
        Resolve a canonical symbol (EUR/USD) or a broker id (EUR_USD).

        Raises:
            UnknownMarket: If neither is registered
        """
        market = self._by_symbol.get(symbol) or self._by_id.get(symbol)
        if market is None:
            raise UnknownMarket(symbol, f"Unknown symbol: {symbol}")
        return market

    def currency_code(self, currency_id: Optional[str]) -> Optional[str]:
        """Broker currency id -> canonical currency code."""
        if currency_id is None:
            return None
        return self._common_currencies.get(currency_id, currency_id.upper())

    def symbols(self) -> List[str]:
        return list(self._by_symbol)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._by_symbol or symbol in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)
