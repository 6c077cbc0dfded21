"""Tests for the settings store and environment configuration."""

import pytest

from ledgerkit.config import LedgerConfig
from ledgerkit.domain.allocation import DEFAULT_ATTEMPTS
from ledgerkit.domain.entities import CodeSlot
from ledgerkit.domain.errors import NotFoundError, ValidationError
from ledgerkit.domain.settings import SettingsService


class TestLedgerConfig:
    def test_defaults(self):
        config = LedgerConfig.from_env({})
        assert config.code_overrides == {}
        assert config.fallback_codes == {}
        assert config.allocation_attempts == DEFAULT_ATTEMPTS
        assert config.allocation_backoff == 0.0

    def test_slot_overrides_and_fallbacks(self):
        config = LedgerConfig.from_env(
            {
                "LEDGERKIT_CODE_TREASURY_CASH_RECEIPT": "12",
                "LEDGERKIT_CODE_TREASURY_CHECK_PAYMENT_CODE": "210101",
                "LEDGERKIT_ALLOCATION_ATTEMPTS": "3",
                "LEDGERKIT_ALLOCATION_BACKOFF": "0.25",
            }
        )
        assert config.code_overrides == {CodeSlot.CASH_RECEIPT.value: 12}
        assert config.fallback_codes == {CodeSlot.CHECK_PAYMENT.value: "210101"}
        assert config.allocation_attempts == 3
        assert config.allocation_backoff == 0.25

    def test_blank_values_ignored(self):
        config = LedgerConfig.from_env({"LEDGERKIT_CODE_TREASURY_CASH_RECEIPT": "  "})
        assert config.code_overrides == {}

    @pytest.mark.parametrize(
        "environ",
        [
            {"LEDGERKIT_CODE_TREASURY_CASH_RECEIPT": "cash"},
            {"LEDGERKIT_ALLOCATION_ATTEMPTS": "0"},
            {"LEDGERKIT_ALLOCATION_ATTEMPTS": "11"},
            {"LEDGERKIT_ALLOCATION_BACKOFF": "slow"},
        ],
    )
    def test_invalid_values(self, environ):
        with pytest.raises(ValidationError):
            LedgerConfig.from_env(environ)


class TestSettingsService:
    def test_set_and_get(self, settings_service, chart):
        settings_service.set("CODE_TREASURY_CASH_RECEIPT", name="Cash", special_id=chart["110101"])
        setting = settings_service.get("CODE_TREASURY_CASH_RECEIPT")
        assert setting.name == "Cash"
        assert setting.special_id == chart["110101"]

    def test_set_replaces(self, settings_service):
        settings_service.set("X", value=1)
        settings_service.set("X", value={"code": "1101"})
        assert settings_service.get("X").value == {"code": "1101"}
        assert len(settings_service.list_settings()) == 1

    def test_set_unknown_code_node(self, settings_service):
        with pytest.raises(NotFoundError):
            settings_service.set("X", special_id=999)

    def test_set_requires_code(self, settings_service):
        with pytest.raises(ValidationError):
            settings_service.set(" ", value=1)

    def test_delete(self, settings_service):
        settings_service.set("X", value=1)
        settings_service.delete("X")
        assert settings_service.get("X") is None
        with pytest.raises(NotFoundError):
            settings_service.delete("X")

    def test_code_reference(self, settings_service, chart):
        settings_service.set("A", value={"id": chart["1101"]})
        settings_service.set("B", value="1101")
        assert settings_service.get_code_reference("A") == chart["1101"]
        assert settings_service.get_code_reference("B") is None
        assert settings_service.get_code_reference("missing") is None

    def test_literal_code(self, settings_service):
        settings_service.set("A", value="110101")
        settings_service.set("B", value={"code": 1101})
        settings_service.set("C", value=True)
        assert settings_service.get_literal_code("A") == "110101"
        assert settings_service.get_literal_code("B") == "1101"
        assert settings_service.get_literal_code("C") is None

    @pytest.mark.parametrize("value", [6500, "6500", {"value": 6500}, {"start": 6500}])
    def test_get_int_from_setting(self, settings_service, value):
        settings_service.set("START", value=value)
        assert settings_service.get_int("START", "START_ENV", 1) == 6500

    def test_get_int_tiers(self, temp_db):
        settings = SettingsService(temp_db, environ={"START_ENV": "7000"})
        assert settings.get_int("START", "START_ENV", 1) == 7000
        assert settings.get_int("START", None, 1) == 1
        settings.set("START", value=8000)
        assert settings.get_int("START", "START_ENV", 1) == 8000
