from __future__ import annotations

import pytest

from pyhaassohn.config import (
    PelletsAutoResetMode,
    StoveConfig,
    build_base_url,
    normalize_address,
    parse_auto_reset_mode,
    parse_pellets_max_kg,
    parse_poll_interval,
)
from pyhaassohn.exceptions import StoveConfigError


def test_normalize_address_appends_numeric_port() -> None:
    assert normalize_address("192.168.1.40", 8080) == "192.168.1.40:8080"
    assert normalize_address(" stove.local ", "81") == "stove.local:81"


def test_normalize_address_keeps_existing_port_and_ignores_bad_port() -> None:
    assert normalize_address("stove.local:81", 8080) == "stove.local:81"
    assert normalize_address("stove.local", "http") == "stove.local"
    assert normalize_address("stove.local", "") == "stove.local"
    assert normalize_address("", 80) == ""
    assert normalize_address(None) == ""


def test_build_base_url() -> None:
    assert build_base_url("192.168.1.40") == "http://192.168.1.40"
    assert build_base_url("https://stove.local/") == "https://stove.local"
    with pytest.raises(StoveConfigError):
        build_base_url("  ")


def test_setting_parsers_fall_back_to_defaults() -> None:
    assert parse_poll_interval("0") == 10.0
    assert parse_poll_interval("abc") == 10.0
    assert parse_poll_interval("2.5") == 2.5
    assert parse_pellets_max_kg(None) == 30.0
    assert parse_pellets_max_kg("-5") == 0.0
    assert parse_auto_reset_mode("reset15") is PelletsAutoResetMode.RESET15
    assert parse_auto_reset_mode("bogus") is PelletsAutoResetMode.NONE


def test_auto_reset_refill_values() -> None:
    assert PelletsAutoResetMode.NONE.refill_kg is None
    assert PelletsAutoResetMode.RESET15.refill_kg == 15.0
    assert PelletsAutoResetMode.RESET30.refill_kg == 30.0


def test_from_settings() -> None:
    config = StoveConfig.from_settings(
        {
            "address": " 192.168.1.40 ",
            "pin": "1234",
            "port": "8080",
            "pollInterval": 30,
            "pellets_kg": "12.5",
            "pellets_max_kg": 20,
            "pellets_auto_reset": "reset30",
        }
    )

    assert config.resolved_address == "192.168.1.40:8080"
    assert config.pin == "1234"
    assert config.poll_interval == 30.0
    assert config.pellets_kg == 12.5
    assert config.pellets_max_kg == 20.0
    assert config.pellets_auto_reset is PelletsAutoResetMode.RESET30


def test_from_settings_defaults() -> None:
    config = StoveConfig.from_settings({})

    assert config.address == ""
    assert config.port is None
    assert config.poll_interval == 10.0
    assert config.pellets_kg is None
    assert config.pellets_auto_reset is PelletsAutoResetMode.NONE


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HAASSOHN_ADDRESS", "stove.local")
    monkeypatch.setenv("HAASSOHN_PIN", "9876")
    monkeypatch.setenv("HAASSOHN_POLL_INTERVAL", "5")
    monkeypatch.setenv("HAASSOHN_TIMEOUT", "2.5")
    monkeypatch.delenv("HAASSOHN_PORT", raising=False)

    config = StoveConfig.from_env(pellets_max_kg=40.0)

    assert config.address == "stove.local"
    assert config.pin == "9876"
    assert config.poll_interval == 5.0
    assert config.timeout == 2.5
    assert config.pellets_max_kg == 40.0
