"""
Tests for environment-driven settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError
from stockledger.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("API_BASE_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.API_BASE_URL == "http://localhost:5000/api"
        assert settings.API_TOKEN is None
        assert settings.READ_RETRY_ATTEMPTS == 3
        assert settings.BALANCE_EPSILON == Decimal("0.001")
        assert settings.LOG_LEVEL == "INFO"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api/")
        monkeypatch.setenv("API_TOKEN", "tok")
        monkeypatch.setenv("INVENTORY_PAGE_SIZE", "250")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        settings = Settings(_env_file=None)

        assert settings.API_BASE_URL == "https://erp.example.com/api"
        assert settings.API_TOKEN == "tok"  # noqa: S105
        assert settings.INVENTORY_PAGE_SIZE == 250
        assert settings.LOG_LEVEL == "WARNING"

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("API_BASE_URL", "ftp://erp"),
            ("LOG_LEVEL", "VERBOSE"),
            ("READ_RETRY_ATTEMPTS", 0),
            ("BALANCE_EPSILON", Decimal("0.5")),
            ("REQUEST_TIMEOUT_SECONDS", 0),
        ],
    )
    def test_invalid_values(self, field: str, value: object) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()
