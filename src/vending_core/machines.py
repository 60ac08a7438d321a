"""Machine registry for resolving machine filters to devices.

This module loads the franchisee's machine list from a JSON file and maps
each machine to the device identifier the live vendor API is queried with.

File format::

    {
        "m-001": {"device_id": "865123045678901", "name": "Playa Norte", "active": true},
        "m-002": {"device_id": "865123045678902", "name": "Centro"}
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from vending_core.exceptions import ConfigError, NoMachinesError
from vending_core.models import Machine

logger = logging.getLogger(__name__)

ALL_MACHINES = "all"


def load_machines_from_json(machines_path: Path) -> list[Machine]:
    """Load machine definitions from a registry JSON file.

    Args:
        machines_path: Path to the registry JSON file.

    Returns:
        Machines sorted by machine_id.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, or an entry
            lacks a device_id.

    Examples:
        >>> machines = load_machines_from_json(Path("machines.json"))
        >>> machines[0]
        Machine(machine_id='m-001', device_id='865123045678901', name='Playa Norte', active=True)
    """
    try:
        data = json.loads(Path(machines_path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Machine registry not found: {machines_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Machine registry is not valid JSON: {machines_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Machine registry must be a JSON object: {machines_path}")
    return machines_from_mapping(data)


def machines_from_mapping(data: Mapping[str, Any]) -> list[Machine]:
    """Build Machine objects from an already-parsed registry mapping."""
    machines = []
    for machine_id, rec in data.items():
        if not isinstance(rec, Mapping):
            raise ConfigError(f"Machine '{machine_id}' must map to an object, got {rec!r}")
        device_id = rec.get("device_id")
        if not device_id:
            raise ConfigError(f"Machine '{machine_id}' has no device_id")
        machines.append(
            Machine(
                machine_id=str(machine_id),
                device_id=str(device_id),
                name=str(rec.get("name") or machine_id),
                active=bool(rec.get("active", True)),
            )
        )
    machines.sort(key=lambda m: m.machine_id)
    return machines


class MachineRegistry:
    """Registry of the machines a franchisee owns.

    Example:
        >>> registry = MachineRegistry.from_json("utils/machines.json")
        >>> registry.list_machines()
        ['m-001', 'm-002']
        >>> [m.device_id for m in registry.resolve("m-002")]
        ['865123045678902']
    """

    def __init__(self, machines: Iterable[Machine]) -> None:
        self._machines: dict[str, Machine] = {}
        for m in machines:
            if m.machine_id in self._machines:
                raise ConfigError(f"Duplicate machine id '{m.machine_id}' in registry")
            self._machines[m.machine_id] = m

    @classmethod
    def from_json(cls, machines_path: Path | str) -> MachineRegistry:
        registry = cls(load_machines_from_json(Path(machines_path)))
        logger.debug("Loaded %d machine(s) from %s", len(registry), machines_path)
        return registry

    def __len__(self) -> int:
        return len(self._machines)

    def list_machines(self, include_inactive: bool = False) -> list[str]:
        """List machine ids, active ones only unless ``include_inactive``."""
        return sorted(
            mid for mid, m in self._machines.items() if include_inactive or m.active
        )

    def get(self, machine_id: str) -> Optional[Machine]:
        return self._machines.get(machine_id)

    def resolve(self, machine_filter: str = ALL_MACHINES) -> list[Machine]:
        """Resolve a machine filter ("all" or a machine id) to machines.

        "all" selects every active machine. A specific id selects that
        machine even when it is inactive, so historical views still work.

        Raises:
            NoMachinesError: If the registry is empty, holds no active machine
                for "all", or does not know the requested id.
        """
        if not self._machines:
            raise NoMachinesError("No machines are registered")
        if machine_filter == ALL_MACHINES:
            machines = [self._machines[mid] for mid in self.list_machines()]
            if not machines:
                raise NoMachinesError("No active machines are registered")
            return machines
        machine = self._machines.get(machine_filter)
        if machine is None:
            raise NoMachinesError(f"Machine '{machine_filter}' is not registered")
        return [machine]
