# Overview: Pytest coverage for store settings and the base-currency lock.

import pytest

from shopledger.errors import BaseCurrencyLocked, InvalidInput
from shopledger.services import accounts_service, settings_service


class TestDefaults:
    def test_config_applies_without_a_row(self, db_session):
        assert settings_service.get_store_setting() is None
        settings = settings_service.get_currency_settings()
        assert settings.base_currency == "AFN"
        assert settings.configs["USD"]["method"] == "divide"
        assert settings.legacy_implicit_rate is False

    def test_seed_is_idempotent(self, db_session):
        first = settings_service.seed_settings()
        second = settings_service.seed_settings()
        assert first.id == second.id == "current"
        assert second.low_stock_threshold == 10
        assert second.expiry_threshold_months == 3


class TestUpdate:
    def test_store_fields(self, db_session):
        row = settings_service.update_settings(
            {"store_name": "Shifa Pharmacy", "low_stock_threshold": "4", "expiry_threshold_months": 6},
        )
        assert row.store_name == "Shifa Pharmacy"
        assert row.low_stock_threshold == 4
        assert row.expiry_threshold_months == 6

    @pytest.mark.parametrize("value", ["many", -1])
    def test_bad_threshold(self, db_session, value):
        with pytest.raises(InvalidInput):
            settings_service.update_settings({"low_stock_threshold": value})

    def test_base_currency_change_on_empty_ledger(self, db_session):
        settings_service.update_settings({"base_currency": "USD"})
        assert settings_service.get_currency_settings().base_currency == "USD"

    def test_base_currency_locked_once_ledger_has_data(self, db_session):
        customer = accounts_service.create_customer({"name": "Karim", "opening_balance": 10})
        assert settings_service.ledger_has_data()

        with pytest.raises(BaseCurrencyLocked):
            settings_service.update_settings({"base_currency": "USD"})
        assert settings_service.get_currency_settings().base_currency == "AFN"

        # Non-currency fields still update
        settings_service.update_settings({"store_name": "Shifa", "base_currency": "AFN"})
        assert accounts_service.customers.require(customer.id).balance == pytest.approx(10)

    def test_currency_table_replaced(self, db_session):
        settings_service.update_settings({
            "currency_configs": {
                "AFN": {"method": "multiply"},
                "USD": {"method": "multiply", "symbol": "$"},
            },
        })
        configs = settings_service.get_currency_settings().configs
        assert set(configs) == {"AFN", "USD"}
        assert configs["USD"]["method"] == "multiply"
        assert configs["AFN"]["name"] == "AFN"

    @pytest.mark.parametrize("configs", [
        {},
        {"EUR": {"method": "multiply"}},
        {"AFN": {"method": "sideways"}},
        {"USD": {"method": "divide"}},
    ])
    def test_invalid_currency_table(self, db_session, configs):
        with pytest.raises(InvalidInput):
            settings_service.update_settings({"currency_configs": configs})
