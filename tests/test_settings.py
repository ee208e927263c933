import pytest

from parcel_booking.settings import Settings


def test_defaults_are_strict():
    settings = Settings()

    assert settings.barcode_policy == "strict"
    assert settings.require_barcode is True


def test_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./parcel.db")
    monkeypatch.setenv("DMS_BASE_URL", "https://dms.example.com/")
    monkeypatch.setenv("DMS_TIMEOUT_SECONDS", "3.5")
    monkeypatch.setenv("BARCODE_POLICY", "Lenient")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///./parcel.db"
    assert settings.dms_base_url == "https://dms.example.com"
    assert settings.dms_timeout_seconds == 3.5
    assert settings.require_barcode is False
    assert settings.log_level == "DEBUG"


def test_unknown_barcode_policy_is_rejected(monkeypatch):
    monkeypatch.setenv("BARCODE_POLICY", "sometimes")

    with pytest.raises(ValueError):
        Settings.from_env()
