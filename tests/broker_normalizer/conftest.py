"""
Shared fixtures for broker normalizer tests.
"""

import copy

import pytest

from broker_normalizer.adapters import MockTransport, OandaAdapter
from broker_normalizer.config import OandaConfig
from broker_normalizer.normalizers import parse_market
from broker_normalizer.registry import MarketRegistry


ACCOUNT_ID = "001-004-123456-001"

INSTRUMENTS = [
    {
        "name": "EUR_USD",
        "type": "CURRENCY",
        "displayName": "EUR/USD",
        "pipLocation": -4,
        "displayPrecision": 5,
        "tradeUnitsPrecision": 0,
        "minimumTradeSize": "1",
        "maximumOrderUnits": "100000000",
        "marginRate": "0.0333",
    },
    {
        "name": "USD_JPY",
        "type": "CURRENCY",
        "displayName": "USD/JPY",
        "pipLocation": -2,
        "displayPrecision": 3,
        "tradeUnitsPrecision": 0,
        "minimumTradeSize": "1",
        "maximumOrderUnits": "100000000",
        "marginRate": "0.04",
    },
    {
        "name": "GBP_USD",
        "type": "CURRENCY",
        "displayName": "GBP/USD",
        "pipLocation": -4,
        "displayPrecision": 5,
        "tradeUnitsPrecision": 0,
        "minimumTradeSize": "1",
        "maximumOrderUnits": "100000000",
        "marginRate": "0.05",
    },
    {
        "name": "DE30_EUR",
        "type": "CFD",
        "displayName": "Germany 30",
        "pipLocation": 0,
        "displayPrecision": 1,
        "tradeUnitsPrecision": 1,
        "minimumTradeSize": "0.1",
        "maximumOrderUnits": "2500",
        "marginRate": "0.05",
    },
]


@pytest.fixture
def instruments():
    return copy.deepcopy(INSTRUMENTS)


@pytest.fixture
def registry(instruments):
    markets = MarketRegistry()
    markets.load(parse_market(instrument, markets.currency_code) for instrument in instruments)
    return markets


@pytest.fixture
def config():
    return OandaConfig(account_id=ACCOUNT_ID, api_token="test-token-0123456789", practice=True)


@pytest.fixture
def transport(instruments):
    mock = MockTransport()
    mock.set_response("GET", "accounts/{accountID}/instruments", {"instruments": instruments})
    return mock


@pytest.fixture
def adapter(config, transport):
    return OandaAdapter(config, transport=transport)
