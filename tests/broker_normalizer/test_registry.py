"""
Market Registry and Configuration Tests.
"""

import pytest

from broker_normalizer.config import LIVE_URL, PRACTICE_URL, OandaConfig
from broker_normalizer.errors import BadSymbol, UnknownMarket
from broker_normalizer.registry import MarketRegistry


class TestMarketRegistry:
    """Tests for MarketRegistry."""

    def test_lookup_by_id_and_symbol(self, registry):
        assert registry.market_by_id("EUR_USD").symbol == "EUR/USD"
        assert registry.market("EUR/USD").id == "EUR_USD"
        assert registry.market("EUR_USD").symbol == "EUR/USD"

    def test_unknown_id_raises(self, registry):
        with pytest.raises(UnknownMarket):
            registry.market_by_id("XYZ_ABC")

    def test_unknown_symbol_is_bad_symbol(self, registry):
        with pytest.raises(BadSymbol):
            registry.market("XYZ/ABC")

    def test_none_id_raises(self, registry):
        with pytest.raises(UnknownMarket):
            registry.market_by_id(None)

    def test_contents(self, registry):
        assert len(registry) == 4
        assert "USD/JPY" in registry
        assert "USD_JPY" in registry
        assert "GBP/JPY" not in registry
        assert registry.is_loaded

    def test_empty_registry(self):
        registry = MarketRegistry()

        assert not registry.is_loaded
        assert registry.symbols() == []

    def test_currency_code(self):
        registry = MarketRegistry({"XBT": "BTC"})

        assert registry.currency_code("XBT") == "BTC"
        assert registry.currency_code("usd") == "USD"
        assert registry.currency_code(None) is None

    def test_reload_replaces(self, registry):
        registry.load([registry.market("EUR/USD")])

        assert registry.symbols() == ["EUR/USD"]


class TestOandaConfig:
    """Tests for OandaConfig."""

    def test_base_url(self):
        assert OandaConfig(practice=True).base_url == PRACTICE_URL
        assert OandaConfig(practice=False).base_url == LIVE_URL

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OANDA_ACCOUNT_ID", "001-001-1111111-001")
        monkeypatch.setenv("OANDA_API_TOKEN", "secret-token")
        monkeypatch.setenv("OANDA_PRACTICE", "true")
        monkeypatch.setenv("OANDA_TIMEOUT_SECONDS", "5")

        config = OandaConfig.from_env()

        assert config.account_id == "001-001-1111111-001"
        assert config.api_token == "secret-token"
        assert config.practice is True
        assert config.transport.timeout_seconds == 5.0

    def test_from_env_practice_override(self, monkeypatch):
        monkeypatch.setenv("OANDA_PRACTICE", "true")

        assert OandaConfig.from_env(practice=False).practice is False

    def test_defaults(self):
        config = OandaConfig()

        assert config.timeframes["1h"] == "H1"
        assert "EUR/USD" in config.order_book_symbols
        assert config.pagination.page_size is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
