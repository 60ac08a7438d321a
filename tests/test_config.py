"""Tests for SalesConfig defaults, validation and environment loading."""

from pathlib import Path

import pytest

from vending_core.config import DEFAULT_API_BASE, SalesConfig
from vending_core.exceptions import ConfigError
from vending_core.timezone import TimeZoneConverter

VS_VARS = [
    "VS_API_BASE",
    "VS_API_TOKEN",
    "VS_STORE_URL",
    "VS_STORE_KEY",
    "VS_MACHINES_JSON",
    "VS_VENDOR_TZ",
    "VS_BUSINESS_TZ",
    "VS_TIMEOUT",
    "VS_RETRIES",
    "VS_MAX_WORKERS",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in VS_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    """Test defaults when no VS_* variable is set."""
    config = SalesConfig.from_env()

    assert config.api_base == DEFAULT_API_BASE
    assert config.api_token is None
    assert config.store_url is None
    assert config.machines_json is None
    assert config.vendor_tz == "Asia/Shanghai"
    assert config.business_tz == "Europe/Madrid"
    assert config.max_workers == 8


def test_from_env(clean_env) -> None:
    """Test that every VS_* variable is read and normalized."""
    clean_env.setenv("VS_API_BASE", "https://api.example/v1/")
    clean_env.setenv("VS_API_TOKEN", "secret")
    clean_env.setenv("VS_STORE_URL", "https://store.example/")
    clean_env.setenv("VS_MACHINES_JSON", "utils/machines.json")
    clean_env.setenv("VS_BUSINESS_TZ", "Asia/Tokyo")
    clean_env.setenv("VS_TIMEOUT", "12.5")
    clean_env.setenv("VS_RETRIES", "0")
    clean_env.setenv("VS_MAX_WORKERS", "2")

    config = SalesConfig.from_env()

    assert config.api_base == "https://api.example/v1"
    assert config.api_token == "secret"
    assert config.store_url == "https://store.example"
    assert config.machines_json == Path("utils/machines.json")
    assert config.business_tz == "Asia/Tokyo"
    assert config.timeout == 12.5
    assert config.retries == 0
    assert config.max_workers == 2
    assert TimeZoneConverter.from_config(config).business_tz_name == "Asia/Tokyo"


def test_bad_number_in_env(clean_env) -> None:
    """Test that a non-numeric value names its variable."""
    clean_env.setenv("VS_MAX_WORKERS", "many")

    with pytest.raises(ConfigError, match="VS_MAX_WORKERS"):
        SalesConfig.from_env()


def test_unknown_timezone() -> None:
    """Test that unknown IANA zones are rejected."""
    with pytest.raises(ConfigError, match="business_tz"):
        SalesConfig(business_tz="Mars/Olympus_Mons")


@pytest.mark.parametrize("kwargs", [{"timeout": 0}, {"retries": -1}, {"max_workers": 0}])
def test_numeric_bounds(kwargs) -> None:
    """Test numeric lower bounds."""
    with pytest.raises(ConfigError):
        SalesConfig(**kwargs)


def test_machines_json_coerced_to_path() -> None:
    """Test that the registry path is coerced to Path."""
    assert SalesConfig(machines_json="machines.json").machines_json == Path("machines.json")
