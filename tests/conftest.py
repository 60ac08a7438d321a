"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from vending_core.machines import MachineRegistry
from vending_core.models import Machine
from vending_core.timezone import TimeZoneConverter


@pytest.fixture
def converter() -> TimeZoneConverter:
    return TimeZoneConverter("Asia/Shanghai", "Europe/Madrid")


@pytest.fixture
def machines() -> list[Machine]:
    return [
        Machine("m-001", "dev-001", "Playa Norte"),
        Machine("m-002", "dev-002", "Centro"),
        Machine("m-003", "dev-003", "Estación"),
    ]


@pytest.fixture
def registry(machines: list[Machine]) -> MachineRegistry:
    return MachineRegistry(machines)
