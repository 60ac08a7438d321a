"""Unified configuration for Vending Sales Core.

This module provides a single configuration class used by the transport
clients, the machine registry and the sales service.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from vending_core.exceptions import ConfigError

DEFAULT_API_BASE = "https://nonstopmachine.com/wp-json/helados/v1"
DEFAULT_VENDOR_TZ = "Asia/Shanghai"
DEFAULT_BUSINESS_TZ = "Europe/Madrid"


@dataclass
class SalesConfig:
    """Everything the sales pipeline needs to reach its collaborators.

    Attributes:
        api_base: Base URL of the live vendor API.
        api_token: Bearer token for the live vendor API.
        store_url: Base URL of the persisted store (PostgREST-compatible).
            None disables the persisted source.
        store_key: API key sent to the persisted store.
        machines_json: Path to the machine registry JSON file.
        vendor_tz: IANA zone the machines stamp sales in.
        business_tz: IANA zone of the franchisee-facing calendar.
        timeout: Default HTTP timeout in seconds.
        retries: Transport-level retry attempts (urllib3 Retry).
        max_workers: Upper bound on concurrent fetch units.
        open_day_ttl: Seconds before an open day view is considered stale.
        open_month_ttl: Seconds before an open month view is considered stale.

    Environment variables (``from_env``):
        VS_API_BASE, VS_API_TOKEN, VS_STORE_URL, VS_STORE_KEY,
        VS_MACHINES_JSON, VS_VENDOR_TZ, VS_BUSINESS_TZ, VS_TIMEOUT,
        VS_RETRIES, VS_MAX_WORKERS
    """

    api_base: str = DEFAULT_API_BASE
    api_token: Optional[str] = None
    store_url: Optional[str] = None
    store_key: Optional[str] = None
    machines_json: Optional[Path] = None
    vendor_tz: str = DEFAULT_VENDOR_TZ
    business_tz: str = DEFAULT_BUSINESS_TZ
    timeout: float = 30.0
    retries: int = 3
    max_workers: int = 8
    open_day_ttl: float = 30.0
    open_month_ttl: float = 60.0

    def __post_init__(self) -> None:
        if isinstance(self.machines_json, str):
            self.machines_json = Path(self.machines_json)
        for name in ("vendor_tz", "business_tz"):
            key = getattr(self, name)
            try:
                ZoneInfo(key)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ConfigError(f"Unknown timezone for {name}: {key!r}") from e
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.retries < 0:
            raise ConfigError(f"retries must be >= 0, got {self.retries}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_env(cls) -> SalesConfig:
        """Build a configuration from ``VS_*`` environment variables.

        Raises:
            ConfigError: If a numeric variable cannot be parsed or a timezone
                is unknown.

        Examples:
            >>> os.environ["VS_BUSINESS_TZ"] = "Europe/Madrid"
            >>> SalesConfig.from_env().business_tz
            'Europe/Madrid'
        """
        env = os.environ

        def _number(name: str, default: float, kind: type = float) -> float:
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return kind(raw.strip())
            except ValueError as e:
                raise ConfigError(f"{name} must be a number, got {raw!r}") from e

        machines = env.get("VS_MACHINES_JSON")
        return cls(
            api_base=env.get("VS_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            api_token=env.get("VS_API_TOKEN") or None,
            store_url=(env.get("VS_STORE_URL") or "").rstrip("/") or None,
            store_key=env.get("VS_STORE_KEY") or None,
            machines_json=Path(machines) if machines else None,
            vendor_tz=env.get("VS_VENDOR_TZ", DEFAULT_VENDOR_TZ),
            business_tz=env.get("VS_BUSINESS_TZ", DEFAULT_BUSINESS_TZ),
            timeout=_number("VS_TIMEOUT", 30.0),
            retries=int(_number("VS_RETRIES", 3, int)),
            max_workers=int(_number("VS_MAX_WORKERS", 8, int)),
        )
