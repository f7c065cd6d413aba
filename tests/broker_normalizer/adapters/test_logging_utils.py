"""
Adapter Logging Utility Tests.

Credentials must never reach the log output.
"""

import json
import logging

import pytest

from broker_normalizer.adapters.logging_utils import (
    AdapterLogger,
    OrderLogEntry,
    hash_body,
    mask_headers,
    mask_params,
    mask_url,
    mask_value,
)


TOKEN = "0123456789abcdef-secret"
LOGGER_NAME = "broker_normalizer.adapters.oanda"


# ============================================================
# MASKING TESTS
# ============================================================

class TestMasking:
    """Tests for the masking helpers."""

    def test_mask_value(self):
        assert mask_value(TOKEN) == "0123...***"
        assert mask_value("abc") == "***"
        assert mask_value("") == "***"
        assert mask_value(None) == "***"

    def test_mask_bearer_keeps_scheme(self):
        assert mask_value(f"Bearer {TOKEN}") == "Bearer 0123...***"

    def test_mask_headers(self):
        masked = mask_headers({"Authorization": f"Bearer {TOKEN}", "Content-Type": "application/json"})

        assert masked["Authorization"] == "Bearer 0123...***"
        assert masked["Content-Type"] == "application/json"
        assert mask_headers(None) == {}

    def test_mask_params_nested(self):
        masked = mask_params({"instrument": "EUR_USD", "auth": {"api_token": TOKEN}})

        assert masked["instrument"] == "EUR_USD"
        assert masked["auth"]["api_token"] == "0123...***"

    def test_mask_url(self):
        url = "https://api-fxpractice.oanda.com/v3/accounts/1/pricing?token=abc&instruments=EUR_USD"

        masked = mask_url(url)

        assert "abc" not in masked
        assert "token=***" in masked
        assert "instruments=EUR_USD" in masked

    def test_mask_url_without_query(self):
        url = "https://api-fxpractice.oanda.com/v3/accounts"

        assert mask_url(url) == url
        assert mask_url(None) is None

    def test_hash_body(self):
        assert hash_body(None) is None
        assert hash_body({"a": 1, "b": 2}) == hash_body({"b": 2, "a": 1})
        assert len(hash_body({"order": {"units": "1"}})) == 16


# ============================================================
# ADAPTER LOGGER TESTS
# ============================================================

class TestAdapterLogger:
    """Tests for AdapterLogger."""

    def test_request_ids_increment(self):
        adapter_logger = AdapterLogger("oanda")

        assert adapter_logger.log_request("GET", "https://example.com/a") == "oanda-1"
        assert adapter_logger.log_request("GET", "https://example.com/b") == "oanda-2"

    def test_request_is_masked(self, caplog):
        adapter_logger = AdapterLogger("oanda")

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            adapter_logger.log_request(
                "POST",
                "https://api-fxpractice.oanda.com/v3/accounts/1/orders",
                headers={"Authorization": f"Bearer {TOKEN}"},
                body={"order": {"units": "1"}},
            )

        assert TOKEN not in caplog.text
        assert "REQUEST" in caplog.text
        assert '"units"' not in caplog.text

    def test_failed_response_is_warning(self, caplog):
        adapter_logger = AdapterLogger("oanda")

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            adapter_logger.log_response("oanda-1", 200, 12.345, True)
            adapter_logger.log_response("oanda-2", 404, 8.0, False, error_message="not found")

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.DEBUG, logging.WARNING]

    def test_order_log_levels(self, caplog):
        adapter_logger = AdapterLogger("oanda")

        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            adapter_logger.log_order("create", order_id="13", symbol="EUR/USD")
            adapter_logger.log_order("create", symbol="EUR/USD", error_message="MARKET_HALTED")

        assert [record.levelno for record in caplog.records] == [logging.INFO, logging.WARNING]
        assert "MARKET_HALTED" in caplog.records[1].getMessage()

    def test_info_is_broker_prefixed(self, caplog):
        adapter_logger = AdapterLogger("oanda")

        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            adapter_logger.info("Margin rate set to 0.05")

        assert caplog.records[0].getMessage() == "[oanda] Margin rate set to 0.05"

    def test_order_entry_json_skips_empty_fields(self):
        entry = OrderLogEntry(timestamp="t", broker="oanda", operation="cancel", order_id="50")

        data = json.loads(entry.to_json())

        assert data == {"timestamp": "t", "broker": "oanda", "operation": "cancel", "order_id": "50"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
