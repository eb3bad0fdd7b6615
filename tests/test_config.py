import pytest

from app.config import AppConfig, AuthConfig, BookingConfig, _safe_int, _validate_config


def test_defaults_are_valid():
    _validate_config(AppConfig())


@pytest.mark.parametrize(
    "config, message",
    [
        (AppConfig(auth=AuthConfig(access_token_expire_minutes=0)), "ACCESS_TOKEN_EXPIRE_MINUTES"),
        (AppConfig(auth=AuthConfig(rate_limit=0)), "AUTH_RATE_LIMIT"),
        (AppConfig(booking=BookingConfig(pending_timeout_minutes=0)), "PENDING_BOOKING_TIMEOUT_MINUTES"),
        (AppConfig(booking=BookingConfig(max_advance_days=0)), "MAX_ADVANCE_BOOKING_DAYS"),
        (AppConfig(booking=BookingConfig(timezone="Mars/Olympus_Mons")), "APP_TIMEZONE"),
    ],
)
def test_invalid_values_are_rejected(config, message):
    with pytest.raises(ValueError, match=message):
        _validate_config(config)


def test_safe_int_reports_variable(monkeypatch):
    monkeypatch.setenv("SOME_LIMIT", "ten")
    with pytest.raises(ValueError, match="SOME_LIMIT"):
        _safe_int("SOME_LIMIT", "1")


def test_safe_int_default(monkeypatch):
    monkeypatch.delenv("SOME_LIMIT", raising=False)
    assert _safe_int("SOME_LIMIT", "7") == 7
